from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from tablepos.core.config import settings

def create_access_token(actor_id: str, expires_delta: timedelta | None = None):
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": actor_id, "exp": expire, "type": "access"}

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )

def decode_access_token(token: str):
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )

        # Ensure the token type is "access"
        if payload.get("type") != "access":
            return None

        return payload

    except JWTError:
        return None
