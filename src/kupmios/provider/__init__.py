"""
Provider Layer.

Routes chain-state reads and transaction submission to the Kupo indexer
(HTTP) and the Ogmios node bridge (JSON-RPC over WebSocket).
"""

from kupmios.provider.auth import AuthSession
from kupmios.provider.bridge import NodeBridgeClient
from kupmios.provider.indexer import IndexerClient
from kupmios.provider.interface import ChainProvider
from kupmios.provider.kupmios import Kupmios
from kupmios.provider.normalizer import UtxoNormalizer
from kupmios.provider.poller import ConfirmationPoller, PollerState

__all__ = [
    "AuthSession",
    "ChainProvider",
    "ConfirmationPoller",
    "IndexerClient",
    "Kupmios",
    "NodeBridgeClient",
    "PollerState",
    "UtxoNormalizer",
]
