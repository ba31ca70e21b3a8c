"""
Kupo indexer client.

Answers pattern-matched UTXO, datum and script queries over HTTP.
"""

from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Dict, List, Optional

import httpx
import structlog

from kupmios.provider.auth import AuthSession
from kupmios.provider.interface import (
    AddressOrCredential,
    Credential,
    DatumNotFoundError,
    MalformedResponseError,
)
from kupmios.utils import UNIT_SEPARATOR, split_unit

logger = structlog.get_logger(__name__)


class _RejectAllCookies(DefaultCookiePolicy):
    """Cookie policy that never stores a cookie."""

    def set_ok(self, cookie, request):
        return False


def session_only_cookies() -> CookieJar:
    """Cookie jar that stays empty; the AuthSession alone carries the session cookie."""
    return CookieJar(policy=_RejectAllCookies())


def address_pattern(address_or_credential: AddressOrCredential) -> str:
    """Build the match pattern for an address or every address of a credential."""
    if isinstance(address_or_credential, Credential):
        return f"{address_or_credential.hash}/*"
    return address_or_credential


class IndexerClient:
    """
    Kupo HTTP client.

    Every request carries the session headers and feeds the response
    headers back into the session.
    """

    def __init__(
        self,
        base_url: str,
        session: AuthSession,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the indexer client.

        Args:
            base_url: Kupo base URL
            session: Session shared with the node bridge
            client: Preconfigured HTTP client, created lazily if not given
            timeout: Request timeout in seconds, unbounded when None
        """
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self._client = client
        if client is not None:
            client.cookies = session_only_cookies()

    async def connect(self) -> None:
        """Create the HTTP client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            cookies=session_only_cookies(),
        )
        logger.debug("kupo_client_created", base_url=self.base_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug("kupo_client_closed")

    async def _request(self, path: str) -> Any:
        """Make an authenticated GET request and decode the JSON body."""
        if not self._client:
            await self.connect()

        response = await self._client.get(path, headers=self.session.headers())
        self.session.observe(response.headers.get_list("set-cookie"))

        if response.is_error:
            logger.error("kupo_request_failed", path=path, status=response.status_code)
        response.raise_for_status()

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON from Kupo at {path}: {e}") from e

    async def get_matches(self, pattern: str, query: str = "") -> List[Dict[str, Any]]:
        """
        Get unspent matches for a Kupo pattern.

        Args:
            pattern: Kupo pattern (address, credential wildcard, asset or output pattern)
            query: Extra query string parameters, each prefixed with '&'

        Returns:
            Raw match records
        """
        result = await self._request(f"/matches/{pattern}?unspent{query}")
        if not isinstance(result, list):
            raise MalformedResponseError(f"Expected a list of matches for {pattern}")
        logger.debug("kupo_matches", pattern=pattern, count=len(result))
        return result

    async def get_unspent_at(
        self,
        address_or_credential: AddressOrCredential,
        unit: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Get unspent matches at an address or credential, optionally holding a unit."""
        query = ""
        if unit:
            policy_id, asset_name = split_unit(unit)
            query = f"&policy_id={policy_id}"
            if asset_name:
                query += f"&asset_name={asset_name}"
        return await self.get_matches(address_pattern(address_or_credential), query)

    async def get_unspent_by_unit(self, unit: str) -> List[Dict[str, Any]]:
        """Get unspent matches holding a unit, any asset name when the unit has none."""
        policy_id, asset_name = split_unit(unit)
        return await self.get_matches(f"{policy_id}{UNIT_SEPARATOR}{asset_name or '*'}")

    async def get_unspent_by_tx(self, tx_hash: str) -> List[Dict[str, Any]]:
        """Get every unspent output of a transaction."""
        return await self.get_matches(f"*@{tx_hash}")

    async def get_datum(self, datum_hash: str) -> str:
        """
        Get a datum body by hash.

        Raises:
            DatumNotFoundError: If Kupo has no datum for the hash
        """
        result = await self._request(f"/datums/{datum_hash}")
        if not result or not result.get("datum"):
            raise DatumNotFoundError(datum_hash)
        return result["datum"]

    async def get_script(self, script_hash: str) -> Dict[str, str]:
        """Get a script body and its language by script hash."""
        result = await self._request(f"/scripts/{script_hash}")
        if not result or "script" not in result or "language" not in result:
            raise MalformedResponseError(f"No script found for script hash: {script_hash}")
        return result
