# signed, expiring admin session tokens
from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from db.config import DEFAULT_SESSION_TTL
from db.models import AdminSession


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionSigner:
    """
    Issues and checks admin tokens of the form ``<issued-epoch>.<nonce>.<sig>``.

    sig is HMAC-SHA256 over ``<issued-epoch>.<nonce>`` with the signer's
    secret. A token is valid while its signature matches and issued + ttl
    lies in the future.
    """

    def __init__(
        self,
        secret: Union[str, bytes, None] = None,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if secret is None:
            secret = secrets.token_bytes(32)
        elif isinstance(secret, str):
            secret = secret.encode("utf-8")
        self._secret = secret
        self.ttl = ttl
        self._clock = clock or _utcnow

    def _sign(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def issue(self) -> AdminSession:
        issued = int(self._clock().timestamp())
        payload = f"{issued}.{secrets.token_hex(16)}"
        issued_at = datetime.fromtimestamp(issued, tz=timezone.utc)
        return AdminSession(
            token=f"{payload}.{self._sign(payload)}",
            issued_at=issued_at,
            expires_at=issued_at + self.ttl,
        )

    def verify(self, token: Optional[str]) -> Optional[AdminSession]:
        """Decode token; None when it is malformed, forged or expired."""
        if not token:
            return None
        parts = token.split(".")
        if len(parts) != 3:
            return None
        issued_raw, nonce, signature = parts
        if not hmac.compare_digest(signature, self._sign(f"{issued_raw}.{nonce}")):
            return None
        try:
            issued_at = datetime.fromtimestamp(int(issued_raw), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
        expires_at = issued_at + self.ttl
        if self._clock() >= expires_at:
            return None
        return AdminSession(token=token, issued_at=issued_at, expires_at=expires_at)
