"""
Conversion of Kupo match records into canonical unspent outputs.
"""

import asyncio
from typing import Any, Dict, List, Optional

import cbor2
import structlog
from pycardano import PlutusV1Script, PlutusV2Script, PlutusV3Script

from kupmios.provider.indexer import IndexerClient
from kupmios.provider.interface import (
    LOVELACE,
    MalformedResponseError,
    ScriptReference,
    UnspentOutput,
)
from kupmios.utils import unit_from_indexer

logger = structlog.get_logger(__name__)

PLUTUS_SCRIPTS = {
    "plutus:v1": ("PlutusV1", PlutusV1Script),
    "plutus:v2": ("PlutusV2", PlutusV2Script),
    "plutus:v3": ("PlutusV3", PlutusV3Script),
}


def encode_plutus_script(script_hex: str, script_cls: type) -> str:
    """Wrap a flat Plutus script in its CBOR bytestring form."""
    script = script_cls(bytes.fromhex(script_hex))
    return cbor2.dumps(bytes(script)).hex()


def build_assets(value: Dict[str, Any]) -> Dict[str, int]:
    """Build the asset map of a Kupo value, lovelace always included."""
    assets = {LOVELACE: int(value["coins"])}
    for key, quantity in (value.get("assets") or {}).items():
        assets[unit_from_indexer(key)] = int(quantity)
    return assets


class UtxoNormalizer:
    """
    Turns raw Kupo matches into UnspentOutput entities.

    Inline datums and reference scripts are fetched from the indexer on
    every call; nothing is cached.
    """

    def __init__(self, indexer: IndexerClient):
        self.indexer = indexer

    async def normalize(self, records: List[Dict[str, Any]]) -> List[UnspentOutput]:
        """Normalize all records concurrently, keeping their order."""
        return list(await asyncio.gather(*(self.normalize_one(r) for r in records)))

    async def normalize_one(self, record: Dict[str, Any]) -> UnspentOutput:
        try:
            tx_hash = record["transaction_id"]
            output_index = int(record["output_index"])
            address = record["address"]
            assets = build_assets(record["value"])
            datum_type = record.get("datum_type")
            if datum_type in ("hash", "inline") and not record["datum_hash"]:
                raise KeyError("datum_hash")
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Invalid Kupo match: {e!r}") from e

        datum_hash = None
        datum = None
        if datum_type == "hash":
            datum_hash = record["datum_hash"]
        elif datum_type == "inline":
            datum = await self.indexer.get_datum(record["datum_hash"])

        script_ref = None
        if record.get("script_hash"):
            script_ref = await self.resolve_script(record["script_hash"])

        return UnspentOutput(
            tx_hash=tx_hash,
            output_index=output_index,
            address=address,
            assets=assets,
            datum_hash=datum_hash,
            datum=datum,
            script_ref=script_ref,
        )

    async def resolve_script(self, script_hash: str) -> ScriptReference:
        """Fetch a reference script and bring it into canonical form."""
        result = await self.indexer.get_script(script_hash)
        language = result["language"]
        script = result["script"]

        if language == "native":
            return ScriptReference(type="Native", script=script)

        if language not in PLUTUS_SCRIPTS:
            raise MalformedResponseError(
                f"Unknown script language {language!r} for script hash: {script_hash}"
            )
        script_type, script_cls = PLUTUS_SCRIPTS[language]
        try:
            encoded = encode_plutus_script(script, script_cls)
        except ValueError as e:
            raise MalformedResponseError(f"Invalid script body for {script_hash}: {e}") from e
        logger.debug("script_resolved", script_hash=script_hash, type=script_type)
        return ScriptReference(type=script_type, script=encoded)
