"""
Kupo + Ogmios chain provider.

Routes UTXO, datum and confirmation queries to Kupo and protocol
parameters, delegation and submission to Ogmios.
"""

import asyncio
from typing import List, Optional, Sequence

import httpx
import structlog

from kupmios.config import KupmiosConfig, get_config
from kupmios.provider.auth import AuthSession
from kupmios.provider.bridge import NodeBridgeClient
from kupmios.provider.indexer import IndexerClient
from kupmios.provider.interface import (
    AddressOrCredential,
    AmbiguousUnitError,
    ChainProvider,
    Delegation,
    OutRef,
    ProtocolParameters,
    UnspentOutput,
)
from kupmios.provider.normalizer import UtxoNormalizer
from kupmios.provider.poller import ConfirmationPoller

logger = structlog.get_logger(__name__)


class Kupmios(ChainProvider):
    """
    Chain provider backed by a Kupo indexer and an Ogmios node bridge.

    Both backends may sit behind an access proxy; the provider owns the
    proxy session and shares it between the two clients.
    """

    def __init__(
        self,
        config: Optional[KupmiosConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the provider.

        Args:
            config: Provider configuration. Uses global config if not provided.
            http_client: HTTP client for Kupo, created on first use if not given
        """
        self.config = config or get_config()
        self.session = AuthSession(self.config.client_id, self.config.client_secret)
        self.indexer = IndexerClient(
            self.config.kupo_url,
            self.session,
            client=http_client,
            timeout=self.config.http_timeout_seconds,
        )
        self.bridge = NodeBridgeClient(self.config.ogmios_url, self.session)
        self.normalizer = UtxoNormalizer(self.indexer)

    async def close(self) -> None:
        await self.indexer.disconnect()

    async def __aenter__(self) -> "Kupmios":
        await self.indexer.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def get_protocol_parameters(self) -> ProtocolParameters:
        return await self.bridge.get_protocol_parameters()

    async def get_utxos(
        self,
        address_or_credential: AddressOrCredential,
    ) -> List[UnspentOutput]:
        records = await self.indexer.get_unspent_at(address_or_credential)
        return await self.normalizer.normalize(records)

    async def get_utxos_with_unit(
        self,
        address_or_credential: AddressOrCredential,
        unit: str,
    ) -> List[UnspentOutput]:
        records = await self.indexer.get_unspent_at(address_or_credential, unit)
        return await self.normalizer.normalize(records)

    async def get_utxo_by_unit(self, unit: str) -> Optional[UnspentOutput]:
        records = await self.indexer.get_unspent_by_unit(unit)
        if len(records) > 1:
            raise AmbiguousUnitError(unit, len(records))
        utxos = await self.normalizer.normalize(records)
        return utxos[0] if utxos else None

    async def get_utxos_by_out_ref(
        self,
        out_refs: Sequence[OutRef],
    ) -> List[UnspentOutput]:
        """
        Get outputs by reference.

        Kupo cannot filter on output index, so every output of each
        referenced transaction is fetched and the unrequested ones dropped.
        """
        wanted = set(out_refs)
        tx_hashes = list(dict.fromkeys(ref.tx_hash for ref in out_refs))

        batches = await asyncio.gather(
            *(self._get_utxos_of_tx(tx_hash) for tx_hash in tx_hashes)
        )
        return [
            utxo for utxos in batches for utxo in utxos
            if utxo.out_ref in wanted
        ]

    async def _get_utxos_of_tx(self, tx_hash: str) -> List[UnspentOutput]:
        records = await self.indexer.get_unspent_by_tx(tx_hash)
        return await self.normalizer.normalize(records)

    async def get_delegation(self, reward_address: str) -> Delegation:
        return await self.bridge.get_delegation(reward_address)

    async def get_datum(self, datum_hash: str) -> str:
        return await self.indexer.get_datum(datum_hash)

    def confirmation_poller(
        self,
        tx_hash: str,
        check_interval: Optional[float] = None,
    ) -> ConfirmationPoller:
        """Create a poller for a transaction; call ``wait`` on it and ``stop`` to abort."""
        return ConfirmationPoller(
            self.indexer,
            tx_hash,
            interval=(
                check_interval if check_interval is not None
                else self.config.confirmation_interval_seconds
            ),
            settle_delay=self.config.confirmation_settle_seconds,
        )

    async def await_tx(
        self,
        tx_hash: str,
        check_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        poller = self.confirmation_poller(tx_hash, check_interval)
        return await poller.wait(timeout=timeout)

    async def submit_tx(self, tx_cbor: str) -> str:
        return await self.bridge.submit_transaction(tx_cbor)
