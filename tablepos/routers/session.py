# tablepos/routers/session.py

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from tablepos.core.identity import new_actor_id
from tablepos.core.jwt import create_access_token

logger = logging.getLogger("tablepos.session")

router = APIRouter(prefix="/session", tags=["Session"])


class SessionRequest(BaseModel):
    actor_id: str | None = Field(None, min_length=1, max_length=128)


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    actor_id: str


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def open_session(payload: SessionRequest | None = None):
    # Anonymous sign-in when no actor id is supplied
    actor_id = (payload.actor_id if payload else None) or new_actor_id()
    logger.info(f"Session opened for actor {actor_id}")

    return SessionResponse(
        access_token=create_access_token(actor_id),
        actor_id=actor_id,
    )
