"""
Kupmios Provider

A chain-state provider for Cardano that answers UTXO, datum and script
queries from a Kupo indexer and protocol parameters, delegation and
transaction submission from an Ogmios node bridge.
"""

__version__ = "0.1.0"

from kupmios.provider.interface import (
    ChainProvider,
    Credential,
    Delegation,
    OutRef,
    ProtocolParameters,
    ScriptReference,
    UnspentOutput,
)
from kupmios.provider.kupmios import Kupmios

__all__ = [
    "ChainProvider",
    "Credential",
    "Delegation",
    "Kupmios",
    "OutRef",
    "ProtocolParameters",
    "ScriptReference",
    "UnspentOutput",
]
