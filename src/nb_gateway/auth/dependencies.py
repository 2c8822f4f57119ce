"""FastAPI dependencies: get_current_user / get_optional_user.

Usage in any protected router:
    from src.nb_gateway.auth.dependencies import get_current_user

    @router.get("/protected")
    async def protected(user: AuthUser = Depends(get_current_user)):
        ...

The token is read from the ``Authorization: Bearer`` header first, then from
the ``sb-access-token`` cookie set by the front end.
"""

from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.nb_common.errors import UnauthorizedError
from src.nb_gateway.auth.jwt_handler import decode_access_token

ACCESS_TOKEN_COOKIE = "sb-access-token"

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str | None = None


def _extract_token(
    request: Request, credentials: HTTPAuthorizationCredentials | None
) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthUser | None:
    """Return the caller, or None when no valid token was presented."""
    token = _extract_token(request, credentials)
    if token is None:
        return None
    try:
        payload = decode_access_token(token)
    except UnauthorizedError:
        return None
    return AuthUser(id=str(payload["sub"]), email=payload.get("email"))


async def get_current_user(
    user: AuthUser | None = Depends(get_optional_user),
) -> AuthUser:
    """Return the caller or raise HTTP 401."""
    if user is None:
        raise UnauthorizedError()
    return user
