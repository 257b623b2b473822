"""Administrator authentication.

The core only needs a boolean oracle, ``Authenticator.check(credential)``.
The default implementation exchanges the configured username/password for
a signed, time-limited token and accepts only tokens it signed.
"""

import hmac
from typing import Optional, Protocol

from fastapi import Header, Query
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from keylock.common.exceptions import UnauthorizedError

TOKEN_HEADER = "X-Keylock-Token"


class Authenticator(Protocol):
    def check(self, credential: Optional[str]) -> bool:
        ...


class SignedTokenAuthenticator:
    """Issues and verifies itsdangerous-signed administrator tokens."""

    def __init__(self, secret_key: str, username: str, password: str, max_age: int = 8 * 3600):
        self._serializer = URLSafeTimedSerializer(secret_key, salt="admin-session")
        self._username = username
        self._password = password
        self.max_age = max_age

    def login(self, username: str, password: str) -> Optional[str]:
        """Return a signed token for valid credentials, else None."""
        user_ok = hmac.compare_digest(
            (username or "").encode(), self._username.encode()
        )
        pass_ok = hmac.compare_digest(
            (password or "").encode(), self._password.encode()
        )
        if not (user_ok and pass_ok):
            return None
        return self._serializer.dumps({"role": "admin", "sub": username})

    def check(self, credential: Optional[str]) -> bool:
        if not credential:
            return False
        try:
            payload = self._serializer.loads(credential, max_age=self.max_age)
        except (BadSignature, SignatureExpired):
            return False
        return isinstance(payload, dict) and payload.get("role") == "admin"


async def require_admin(
    x_keylock_token: Optional[str] = Header(None, alias=TOKEN_HEADER),
    token: Optional[str] = Query(None),
) -> str:
    """FastAPI dependency that rejects requests without a valid admin token.

    Runs before the route body, so a rejected request never reaches the store.
    """
    from keylock.deps import get_authenticator

    credential = x_keylock_token or token
    if not get_authenticator().check(credential):
        raise UnauthorizedError("Invalid or missing administrator token")
    return credential
