# tablepos/core/identity.py

from uuid import uuid4

from fastapi import Depends, HTTPException, status

from tablepos.core.jwt import decode_access_token
from tablepos.core.oauth2 import oauth2_scheme


def new_actor_id() -> str:
    """Opaque id for an anonymous session."""
    return uuid4().hex


def get_current_actor(token: str = Depends(oauth2_scheme)) -> str:
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    actor_id = payload.get("sub")

    if not actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    return actor_id
