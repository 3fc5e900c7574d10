"""
Anti-forgery tokens held server-side.

A browser session gets an opaque session id (cookie) and a random token.
State-changing requests must echo the token in a header; it is compared
against the stored value, never against anything the client alone controls.
Tokens live for CSRF_TOKEN_TTL_MINUTES; expired entries are evicted whenever
a new token is issued.
"""
import logging
import secrets
import threading
import time
from typing import Dict, Optional, Tuple

from datagrid.core.config import settings
from datagrid.models.errors import AuthorizationError

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32

class CsrfTokenStore:
    def __init__(self, ttl_seconds: Optional[float] = None):
        # session id -> (token, issued at)
        self._tokens: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> float:
        if self._ttl_seconds is not None:
            return self._ttl_seconds
        return settings.CSRF_TOKEN_TTL_MINUTES * 60

    def __len__(self) -> int:
        return len(self._tokens)

    def _is_expired(self, issued_at: float, now: float) -> bool:
        return now - issued_at > self.ttl_seconds

    def _evict_expired(self, now: float) -> None:
        expired = [sid for sid, (_, issued_at) in self._tokens.items() if self._is_expired(issued_at, now)]
        for sid in expired:
            del self._tokens[sid]
        if expired:
            logger.debug("Evicted %d expired anti-forgery tokens, %d held", len(expired), len(self))

    def issue(self, session_id: Optional[str] = None) -> Tuple[str, str]:
        """
        Returns (session_id, token), reusing the session's token while it is still valid.
        """
        now = time.monotonic()
        with self._lock:
            self._evict_expired(now)
            if session_id and session_id in self._tokens:
                return session_id, self._tokens[session_id][0]
            session_id = secrets.token_urlsafe(TOKEN_BYTES)
            token = secrets.token_hex(TOKEN_BYTES)
            self._tokens[session_id] = (token, now)
            return session_id, token

    def verify(self, session_id: Optional[str], token: Optional[str]) -> None:
        entry = self._tokens.get(session_id) if session_id else None
        expected = None
        if entry and not self._is_expired(entry[1], time.monotonic()):
            expected = entry[0]
        if not expected or not token or not secrets.compare_digest(expected, token):
            logger.warning("Rejected request with missing or invalid anti-forgery token")
            raise AuthorizationError("CSRF token missing or invalid")

token_store = CsrfTokenStore()
