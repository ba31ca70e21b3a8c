"""
Access proxy session for the indexer and node bridge.

Starts out authenticating with client credentials and switches to the
session cookie as soon as the proxy issues one.
"""

import re
from typing import Dict, Iterable, Optional

import structlog

logger = structlog.get_logger(__name__)

CLIENT_ID_HEADER = "CF-Access-Client-Id"
CLIENT_SECRET_HEADER = "CF-Access-Client-Secret"
COOKIE_NAME = "CF_Authorization"

_COOKIE_PATTERN = re.compile(rf"{COOKIE_NAME}=([^;]+)")


class AuthSession:
    """
    Credential material for authenticated backend calls.

    Owned by one provider instance. Both the header read and the cookie
    update run without awaiting in between, which keeps them atomic under
    asyncio; a threaded caller must guard them with a lock.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.cookie: Optional[str] = None

    @property
    def has_cookie(self) -> bool:
        return self.cookie is not None

    def headers(self) -> Dict[str, str]:
        """Get the headers authenticating the next call."""
        if self.cookie:
            return {"Cookie": f"{COOKIE_NAME}={self.cookie}"}
        if self.client_id is None and self.client_secret is None:
            return {}
        return {
            CLIENT_ID_HEADER: self.client_id or "",
            CLIENT_SECRET_HEADER: self.client_secret or "",
        }

    def observe(self, set_cookie_headers: Iterable[str]) -> bool:
        """
        Capture the session cookie from Set-Cookie response headers.

        The last matching header wins and replaces any earlier cookie.
        The cookie is never dropped again, even if the proxy later rejects it.

        Returns:
            True if a cookie was captured
        """
        captured = False
        for header in set_cookie_headers:
            match = _COOKIE_PATTERN.search(header)
            if match:
                if self.cookie is None:
                    logger.info("session_cookie_acquired")
                self.cookie = match.group(1)
                captured = True
        return captured
