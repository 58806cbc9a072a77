"""Bearer-token identification. Issuing and revoking tokens lives elsewhere."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from libris.config import settings
from libris.domain.errors import Unauthorized

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Sign a token whose subject is `user_id`."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.jwt_expire_minutes
    )
    payload = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Return the user id carried by `token`. Raises Unauthorized."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise Unauthorized("Invalid or expired token") from exc
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized("Token has no subject")
    return str(user_id)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """FastAPI dependency resolving the caller's user id."""
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authenticated")
    return decode_access_token(credentials.credentials)
