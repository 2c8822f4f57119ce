"""Access-token verification.

Tokens are issued by the identity provider (Supabase Auth), not by this
service. They are HS256 JWTs signed with the project's JWT secret and carry
``sub`` (user id), ``email``, ``aud`` ("authenticated") and ``exp``.

``create_access_token`` mints a token of the same shape; it exists for local
development and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from config.settings import settings
from src.nb_common.errors import UnauthorizedError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"


def create_access_token(
    user_id: str,
    email: str | None = None,
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": user_id,
        "aud": settings.SUPABASE_JWT_AUDIENCE,
        "role": "authenticated",
        "iat": now,
        "exp": now + expires_in,
    }
    if email:
        payload["email"] = email
    return str(jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm=_ALGORITHM))


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        UnauthorizedError: signature, expiry or audience check failed, or no ``sub``.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
    except JWTError:
        raise UnauthorizedError() from None

    if not payload.get("sub"):
        raise UnauthorizedError()
    return payload
