"""
Ogmios node bridge client.

Each call opens its own WebSocket, sends a single JSON-RPC request, takes
the first message as the answer and closes the socket. With at most one
request in flight per connection no request ids are needed; keep it that
way if connections are ever reused.
"""

import json
from typing import Any, Dict, List, Optional

import structlog
from websockets.asyncio.client import connect

from kupmios.provider.auth import AuthSession
from kupmios.provider.interface import (
    BridgeRpcError,
    Delegation,
    MalformedResponseError,
    ProtocolParameters,
    TransactionSubmitError,
)

logger = structlog.get_logger(__name__)


def parse_ratio(value: str) -> float:
    """Parse an Ogmios ``numerator/denominator`` string into a float."""
    numerator, _, denominator = str(value).partition("/")
    return int(numerator) / int(denominator or 1)


def parse_cost_models(raw: Dict[str, List[int]]) -> Dict[str, List[int]]:
    """Rename ``plutus:v1`` style keys to ``PlutusV1``."""
    cost_models = {}
    for key, costs in raw.items():
        version = key.split(":")[1].upper()
        cost_models[f"Plutus{version}"] = costs
    return cost_models


def parse_protocol_parameters(result: Dict[str, Any]) -> ProtocolParameters:
    """Build protocol parameters from an Ogmios v6 result."""
    try:
        return ProtocolParameters(
            min_fee_a=int(result["minFeeCoefficient"]),
            min_fee_b=int(result["minFeeConstant"]["ada"]["lovelace"]),
            max_tx_size=int(result["maxTransactionSize"]["bytes"]),
            max_val_size=int(result["maxValueSize"]["bytes"]),
            key_deposit=int(result["stakeCredentialDeposit"]["ada"]["lovelace"]),
            pool_deposit=int(result["stakePoolDeposit"]["ada"]["lovelace"]),
            price_mem=parse_ratio(result["scriptExecutionPrices"]["memory"]),
            price_step=parse_ratio(result["scriptExecutionPrices"]["cpu"]),
            max_tx_ex_mem=int(result["maxExecutionUnitsPerTransaction"]["memory"]),
            max_tx_ex_steps=int(result["maxExecutionUnitsPerTransaction"]["cpu"]),
            coins_per_utxo_byte=int(result["minUtxoDepositCoefficient"]),
            collateral_percentage=int(result["collateralPercentage"]),
            max_collateral_inputs=int(result["maxCollateralInputs"]),
            cost_models=parse_cost_models(result["plutusCostModels"]),
            # Only present from the Conway era on
            min_fee_ref_script_cost_per_byte=int(
                result.get("minFeeReferenceScripts", {}).get("base", 0)
            ),
        )
    except (KeyError, IndexError, TypeError, ValueError, ZeroDivisionError) as e:
        raise MalformedResponseError(f"Invalid protocol parameters: {e!r}") from e


def parse_delegation(result: Optional[Dict[str, Any]]) -> Delegation:
    """Build a delegation from an Ogmios reward account summary."""
    try:
        summaries = list(result.values()) if isinstance(result, dict) else list(result or [])
        summary = summaries[0] if summaries else None
        if not summary:
            return Delegation(pool_id=None, rewards=0)
        delegate = summary.get("delegate") or {}
        rewards = summary.get("rewards") or {}
        return Delegation(
            pool_id=delegate.get("id") or None,
            rewards=int(rewards.get("ada", {}).get("lovelace", 0)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise MalformedResponseError(f"Invalid reward account summary: {e!r}") from e


class NodeBridgeClient:
    """
    Ogmios JSON-RPC client, one connection per call.
    """

    def __init__(self, url: str, session: AuthSession):
        self.url = url
        self.session = session

    async def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send a JSON-RPC request on a fresh connection and await the reply.

        Returns:
            The decoded response message (with either 'result' or 'error')
        """
        request: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            request["params"] = params

        logger.debug("ogmios_request", method=method)
        async with connect(self.url, additional_headers=self.session.headers()) as ws:
            await ws.send(json.dumps(request))
            message = await ws.recv()

        try:
            response = json.loads(message)
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON from Ogmios on {method}: {e}") from e
        if not isinstance(response, dict):
            raise MalformedResponseError(f"Unexpected Ogmios message on {method}")
        return response

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Send a JSON-RPC request and return its result, raising on an error reply."""
        response = await self.call(method, params)
        if "error" in response:
            logger.error("ogmios_request_failed", method=method, error=response["error"])
            raise BridgeRpcError(response["error"], method)
        if "result" not in response:
            raise MalformedResponseError(f"Ogmios reply to {method} has no result")
        return response["result"]

    async def get_protocol_parameters(self) -> ProtocolParameters:
        """Get current protocol parameters."""
        result = await self.request("queryLedgerState/protocolParameters")
        return parse_protocol_parameters(result)

    async def get_delegation(self, reward_address: str) -> Delegation:
        """Get delegation and rewards of a reward address."""
        result = await self.request(
            "queryLedgerState/rewardAccountSummaries",
            {"keys": [reward_address]},
        )
        return parse_delegation(result)

    async def submit_transaction(self, tx_cbor: str) -> str:
        """
        Submit a signed transaction.

        Raises:
            TransactionSubmitError: Carrying the node's error object unchanged
        """
        response = await self.call("submitTransaction", {"transaction": {"cbor": tx_cbor}})

        result = response.get("result")
        if result:
            try:
                tx_hash = result["transaction"]["id"]
            except (KeyError, TypeError) as e:
                raise MalformedResponseError(f"Invalid submitTransaction result: {e!r}") from e
            logger.info("tx_submitted", tx_hash=tx_hash)
            return tx_hash

        error = response.get("error")
        logger.error("tx_submit_failed", error=error)
        raise TransactionSubmitError(error, "submitTransaction")
