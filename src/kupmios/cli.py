"""
Command-line interface for the Kupmios provider.

Runs single provider queries against Kupo and Ogmios and prints the
results as JSON.
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional, Sequence

import structlog

from kupmios import __version__
from kupmios.config import KupmiosConfig, set_config
from kupmios.provider.interface import Credential, OutRef, ProviderError
from kupmios.provider.kupmios import Kupmios


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Logs go to stderr so stdout stays valid JSON
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def _add_target_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "target",
        help="Bech32 address, or payment credential hash with --credential",
    )
    parser.add_argument(
        "--credential",
        action="store_true",
        help="Treat the target as a credential hash and match all its addresses",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kupmios",
        description="Query Cardano chain state through Kupo and Ogmios",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--kupo-url", help="Kupo base URL")
    parser.add_argument("--ogmios-url", help="Ogmios WebSocket URL")
    parser.add_argument("--client-id", help="Access proxy client id")
    parser.add_argument("--client-secret", help="Access proxy client secret")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from KUPMIOS_LOG_LEVEL, INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format (default: from KUPMIOS_LOG_JSON)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("params", help="Show current protocol parameters")

    utxos_parser = subparsers.add_parser("utxos", help="List unspent outputs")
    _add_target_argument(utxos_parser)
    utxos_parser.add_argument("--unit", help="Only outputs holding this unit")

    unit_parser = subparsers.add_parser(
        "utxo-by-unit", help="Show the single output holding a unit"
    )
    unit_parser.add_argument("unit", help="Policy id followed by hex asset name")

    outrefs_parser = subparsers.add_parser("outrefs", help="Look up outputs by reference")
    outrefs_parser.add_argument(
        "out_refs",
        nargs="+",
        type=OutRef.parse,
        metavar="TX_HASH#INDEX",
        help="Output references",
    )

    delegation_parser = subparsers.add_parser("delegation", help="Show delegation state")
    delegation_parser.add_argument("reward_address", help="Bech32 reward address")

    datum_parser = subparsers.add_parser("datum", help="Show a datum by hash")
    datum_parser.add_argument("datum_hash", help="Datum hash")

    await_parser = subparsers.add_parser("await-tx", help="Wait for a transaction to confirm")
    await_parser.add_argument("tx_hash", help="Transaction hash")
    await_parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between polls (default: from config)",
    )
    await_parser.add_argument(
        "--timeout",
        type=float,
        help="Give up after this many seconds (default: wait forever)",
    )

    submit_parser = subparsers.add_parser("submit", help="Submit a signed transaction")
    submit_parser.add_argument(
        "tx_file",
        type=Path,
        help="File holding the hex encoded CBOR of the signed transaction",
    )

    return parser


def build_config(args: argparse.Namespace) -> KupmiosConfig:
    """Build the configuration, command-line flags overriding the environment."""
    overrides = {
        "kupo_url": args.kupo_url,
        "ogmios_url": args.ogmios_url,
        "client_id": args.client_id,
        "client_secret": args.client_secret,
        "log_level": args.log_level,
        "log_json": args.log_json or None,
    }
    return KupmiosConfig(
        **{key: value for key, value in overrides.items() if value is not None},
    )


async def run_command(provider: Kupmios, args: argparse.Namespace) -> Any:
    """Run a command and return its JSON-serializable result."""
    if args.command == "params":
        return asdict(await provider.get_protocol_parameters())

    if args.command == "utxos":
        target = Credential(args.target) if args.credential else args.target
        if args.unit:
            utxos = await provider.get_utxos_with_unit(target, args.unit)
        else:
            utxos = await provider.get_utxos(target)
        return [utxo.to_dict() for utxo in utxos]

    if args.command == "utxo-by-unit":
        utxo = await provider.get_utxo_by_unit(args.unit)
        return utxo.to_dict() if utxo else None

    if args.command == "outrefs":
        utxos = await provider.get_utxos_by_out_ref(args.out_refs)
        return [utxo.to_dict() for utxo in utxos]

    if args.command == "delegation":
        return asdict(await provider.get_delegation(args.reward_address))

    if args.command == "datum":
        return {"datum_hash": args.datum_hash, "datum": await provider.get_datum(args.datum_hash)}

    if args.command == "await-tx":
        confirmed = await provider.await_tx(args.tx_hash, args.interval, args.timeout)
        return {"tx_hash": args.tx_hash, "confirmed": confirmed}

    if args.command == "submit":
        tx_cbor = args.tx_file.read_text().strip()
        return {"tx_hash": await provider.submit_tx(tx_cbor)}

    raise ValueError(f"Unknown command: {args.command}")


async def execute(config: KupmiosConfig, args: argparse.Namespace) -> Any:
    set_config(config)
    async with Kupmios(config) as provider:
        return await run_command(provider, args)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = build_config(args)
    setup_logging(config.log_level, config.log_json)

    try:
        result = asyncio.run(execute(config, args))
    except ProviderError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
