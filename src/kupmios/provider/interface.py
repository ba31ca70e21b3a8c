"""
Abstract interface for chain-state providers.

Defines the canonical data model and the contract every provider backend
must implement, together with the errors a provider may raise.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

LOVELACE = "lovelace"


@dataclass(frozen=True)
class ProtocolParameters:
    """Snapshot of the ledger protocol parameters."""
    min_fee_a: int                          # Fee coefficient (per byte)
    min_fee_b: int                          # Fee constant
    max_tx_size: int                        # Maximum transaction size in bytes
    max_val_size: int                       # Maximum value size
    key_deposit: int                        # Stake key registration deposit
    pool_deposit: int                       # Pool registration deposit
    price_mem: float                        # Plutus memory price
    price_step: float                       # Plutus step price
    max_tx_ex_mem: int                      # Max execution memory
    max_tx_ex_steps: int                    # Max execution steps
    coins_per_utxo_byte: int                # Min ADA per UTXO byte
    collateral_percentage: int              # Collateral percentage for scripts
    max_collateral_inputs: int              # Maximum collateral inputs
    cost_models: Dict[str, List[int]] = field(default_factory=dict)
    min_fee_ref_script_cost_per_byte: int = 0


@dataclass(frozen=True)
class OutRef:
    """Reference to a transaction output."""
    tx_hash: str
    output_index: int

    def __str__(self) -> str:
        return f"{self.tx_hash}#{self.output_index}"

    @classmethod
    def parse(cls, value: str) -> "OutRef":
        """Parse a ``<tx_hash>#<index>`` string."""
        tx_hash, sep, index = value.partition("#")
        if not sep or not tx_hash:
            raise ValueError(f"Invalid output reference: {value}")
        return cls(tx_hash=tx_hash, output_index=int(index))


@dataclass(frozen=True)
class Credential:
    """Payment or stake credential (key hash or script hash)."""
    hash: str
    type: str = "Key"


@dataclass(frozen=True)
class ScriptReference:
    """Reference script attached to an output."""
    type: str       # Native, PlutusV1, PlutusV2 or PlutusV3
    script: str     # Hex encoded script body


@dataclass
class UnspentOutput:
    """Canonical unspent transaction output."""
    tx_hash: str
    output_index: int
    address: str
    assets: Dict[str, int]
    datum_hash: Optional[str] = None
    datum: Optional[str] = None
    script_ref: Optional[ScriptReference] = None

    @property
    def out_ref(self) -> OutRef:
        return OutRef(self.tx_hash, self.output_index)

    @property
    def lovelace(self) -> int:
        return self.assets.get(LOVELACE, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "output_index": self.output_index,
            "address": self.address,
            "assets": dict(self.assets),
            "datum_hash": self.datum_hash,
            "datum": self.datum,
            "script_ref": (
                {"type": self.script_ref.type, "script": self.script_ref.script}
                if self.script_ref else None
            ),
        }


@dataclass(frozen=True)
class Delegation:
    """Delegation state of a reward address."""
    pool_id: Optional[str]
    rewards: int


AddressOrCredential = Union[str, Credential]


class ChainProvider(ABC):
    """
    Abstract interface for chain-state access.

    Concrete providers answer ledger queries and submit transactions.
    Callers depend only on this contract so backends can be swapped.
    """

    @abstractmethod
    async def get_protocol_parameters(self) -> ProtocolParameters:
        """Get current protocol parameters."""
        pass

    @abstractmethod
    async def get_utxos(
        self,
        address_or_credential: AddressOrCredential,
    ) -> List[UnspentOutput]:
        """
        Get all unspent outputs at an address or under a credential.

        Args:
            address_or_credential: Bech32 address or payment credential

        Returns:
            List of unspent outputs
        """
        pass

    @abstractmethod
    async def get_utxos_with_unit(
        self,
        address_or_credential: AddressOrCredential,
        unit: str,
    ) -> List[UnspentOutput]:
        """
        Get unspent outputs at an address or credential holding a unit.

        Args:
            address_or_credential: Bech32 address or payment credential
            unit: Policy id followed by the hex asset name

        Returns:
            List of unspent outputs holding the unit
        """
        pass

    @abstractmethod
    async def get_utxo_by_unit(self, unit: str) -> Optional[UnspentOutput]:
        """
        Get the single unspent output holding a unit.

        Raises:
            AmbiguousUnitError: If more than one output holds the unit
        """
        pass

    @abstractmethod
    async def get_utxos_by_out_ref(
        self,
        out_refs: Sequence[OutRef],
    ) -> List[UnspentOutput]:
        """Get the unspent outputs matching the given output references."""
        pass

    @abstractmethod
    async def get_delegation(self, reward_address: str) -> Delegation:
        """Get the delegation state of a reward address."""
        pass

    @abstractmethod
    async def get_datum(self, datum_hash: str) -> str:
        """
        Get a datum by hash.

        Raises:
            DatumNotFoundError: If the indexer knows no datum for the hash
        """
        pass

    @abstractmethod
    async def await_tx(
        self,
        tx_hash: str,
        check_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Wait until a transaction's outputs are visible on chain.

        Args:
            tx_hash: Hash of the transaction to monitor
            check_interval: Seconds between polls
            timeout: Maximum time to wait, unbounded when None

        Returns:
            True once confirmed, False if stopped or timed out
        """
        pass

    @abstractmethod
    async def submit_tx(self, tx_cbor: str) -> str:
        """
        Submit a signed transaction.

        Args:
            tx_cbor: Hex encoded CBOR of the signed transaction

        Returns:
            Transaction hash

        Raises:
            TransactionSubmitError: If the node rejects the transaction
        """
        pass


class ProviderError(Exception):
    """Base class for provider failures."""
    pass


class DatumNotFoundError(ProviderError):
    """Raised when no datum is known for a hash."""

    def __init__(self, datum_hash: str):
        super().__init__(f"No datum found for datum hash: {datum_hash}")
        self.datum_hash = datum_hash


class AmbiguousUnitError(ProviderError):
    """Raised when a unit expected at a single output is held by several."""

    def __init__(self, unit: str, count: int):
        super().__init__(
            f"Unit needs to be an NFT or only held by one address "
            f"({count} outputs hold {unit})"
        )
        self.unit = unit
        self.count = count


class BridgeRpcError(ProviderError):
    """Raised when the node bridge answers with an error object."""

    def __init__(self, error: Any, method: Optional[str] = None):
        super().__init__(f"Ogmios error{f' on {method}' if method else ''}: {error}")
        self.error = error
        self.method = method


class TransactionSubmitError(BridgeRpcError):
    """Raised when transaction submission is rejected."""
    pass


class MalformedResponseError(ProviderError):
    """Raised when a backend message cannot be decoded."""
    pass
