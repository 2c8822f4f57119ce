"""nb_gateway REST API — session introspection for the front end."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.nb_gateway.auth.dependencies import AuthUser, get_optional_user

router = APIRouter(prefix="/auth", tags=["auth"])


class SessionUser(BaseModel):
    id: str
    email: str | None


class SessionResponse(BaseModel):
    user: SessionUser | None


@router.get("/user")
async def get_session_user(
    user: Annotated[AuthUser | None, Depends(get_optional_user)],
) -> SessionResponse:
    """Who am I — ``{"user": null}`` instead of 401 when signed out."""
    if user is None:
        return SessionResponse(user=None)
    return SessionResponse(user=SessionUser(id=user.id, email=user.email))
