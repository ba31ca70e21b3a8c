"""
Pytest configuration and shared fixtures for the test suite.
"""

import json
import time
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import unquote

import httpx
import pytest

from kupmios.config import KupmiosConfig
from kupmios.provider.auth import AuthSession
from kupmios.provider.indexer import IndexerClient
from kupmios.provider.kupmios import Kupmios


KUPO_URL = "http://kupo.test"
OGMIOS_URL = "ws://ogmios.test"

TEST_ADDRESS = (
    "addr_test1qz2fxv2umyhttkxyxp8x0dlpdt3k6cwng5pxj3jhsydzer3jcu5d8ps7zex2k2xt3uqxgjqnnj83ws8lhrn648jjxtwq2ytjqp"
)
TEST_POLICY_ID = "a" * 56


# ============================================================================
# Test Data Generators
# ============================================================================

def generate_test_tx_hash(index: int = 0) -> str:
    """Generate a deterministic test transaction hash."""
    base = "abcd1234" * 8  # 64 chars
    return base[:60] + f"{index:04d}"


def make_match(
    tx_hash: Optional[str] = None,
    output_index: int = 0,
    address: str = TEST_ADDRESS,
    coins: int = 2_000_000,
    assets: Optional[Dict[str, int]] = None,
    datum_type: Optional[str] = None,
    datum_hash: Optional[str] = None,
    script_hash: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a Kupo match record."""
    return {
        "transaction_index": 0,
        "transaction_id": tx_hash or generate_test_tx_hash(0),
        "output_index": output_index,
        "address": address,
        "value": {"coins": coins, "assets": assets or {}},
        "datum_hash": datum_hash,
        "datum_type": datum_type,
        "script_hash": script_hash,
        "created_at": {"slot_no": 1000, "header_hash": "ff" * 32},
        "spent_at": None,
    }


def ogmios_protocol_parameters() -> Dict[str, Any]:
    """Protocol parameters as answered by Ogmios v6."""
    return {
        "minFeeCoefficient": 44,
        "minFeeConstant": {"ada": {"lovelace": 155381}},
        "minFeeReferenceScripts": {"range": 25600, "base": 15.0, "multiplier": 1.2},
        "maxBlockBodySize": {"bytes": 90112},
        "maxTransactionSize": {"bytes": 16384},
        "maxValueSize": {"bytes": 5000},
        "stakeCredentialDeposit": {"ada": {"lovelace": 2000000}},
        "stakePoolDeposit": {"ada": {"lovelace": 500000000}},
        "minUtxoDepositCoefficient": 4310,
        "collateralPercentage": 150,
        "maxCollateralInputs": 3,
        "scriptExecutionPrices": {"memory": "577/10000", "cpu": "721/10000000"},
        "maxExecutionUnitsPerTransaction": {"memory": 14000000, "cpu": 10000000000},
        "plutusCostModels": {
            "plutus:v1": [100788, 420, 1, 1],
            "plutus:v2": [100788, 420, 1, 1, 1000],
            "plutus:v3": [100788, 420],
        },
    }


# ============================================================================
# Fake Kupo
# ============================================================================

Route = Union[Any, Callable[[httpx.Request], Any]]


class FakeKupo:
    """In-memory Kupo answering on an httpx mock transport."""

    def __init__(self):
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []
        self.request_times: List[float] = []
        self.set_cookie: Optional[str] = None
        self.status_code = 200

    def route(self, path: str, body: Route) -> None:
        """Register the JSON body (or a callable producing it) for a path."""
        self.routes[path] = body

    def paths(self) -> List[str]:
        return [unquote(r.url.raw_path.decode()) for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.request_times.append(time.monotonic())

        headers = []
        if self.set_cookie:
            headers.append(("set-cookie", self.set_cookie))

        path = unquote(request.url.raw_path.decode())
        if path not in self.routes:
            return httpx.Response(404, json={"hint": "not found"}, headers=headers)

        body = self.routes[path]
        if callable(body):
            body = body(request)
        headers.append(("content-type", "application/json"))
        return httpx.Response(self.status_code, content=json.dumps(body), headers=headers)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=KUPO_URL,
            transport=httpx.MockTransport(self.handler),
        )


# ============================================================================
# Fake Ogmios
# ============================================================================

class FakeConnection:
    """A single WebSocket connection to the fake Ogmios."""

    def __init__(self, url: str, headers: Optional[Dict[str, str]], reply: Any):
        self.url = url
        self.headers = headers or {}
        self.reply = reply
        self.sent: List[Dict[str, Any]] = []
        self.entered = False
        self.closed = False

    async def __aenter__(self) -> "FakeConnection":
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.closed = True

    async def send(self, message: str) -> None:
        self.sent.append(json.loads(message))

    async def recv(self) -> str:
        if isinstance(self.reply, str):
            return self.reply
        return json.dumps(self.reply)


class FakeOgmios:
    """Fake Ogmios handing out one queued reply per connection."""

    def __init__(self):
        self.replies: List[Any] = []
        self.connections: List[FakeConnection] = []

    def reply(self, message: Any) -> None:
        self.replies.append(message)

    def connect(self, url: str, additional_headers: Optional[Dict[str, str]] = None):
        connection = FakeConnection(url, additional_headers, self.replies.pop(0))
        self.connections.append(connection)
        return connection


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> KupmiosConfig:
    """Create a test configuration."""
    return KupmiosConfig(
        kupo_url=KUPO_URL,
        ogmios_url=OGMIOS_URL,
        client_id="test-client-id",
        client_secret="test-client-secret",
        confirmation_interval_seconds=0.05,
        confirmation_settle_seconds=0.1,
        log_level="DEBUG",
    )


@pytest.fixture
def session() -> AuthSession:
    return AuthSession("test-client-id", "test-client-secret")


@pytest.fixture
def fake_kupo() -> FakeKupo:
    return FakeKupo()


@pytest.fixture
def fake_ogmios(monkeypatch) -> FakeOgmios:
    """Fake Ogmios patched in as the bridge's connection factory."""
    fake = FakeOgmios()
    monkeypatch.setattr("kupmios.provider.bridge.connect", fake.connect)
    return fake


@pytest.fixture
def indexer(fake_kupo, session) -> IndexerClient:
    return IndexerClient(KUPO_URL, session, client=fake_kupo.client())


@pytest.fixture
def provider(test_config, fake_kupo, fake_ogmios) -> Kupmios:
    return Kupmios(test_config, http_client=fake_kupo.client())
