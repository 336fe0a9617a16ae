from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import InvalidTokenError, MissingTokenError, UserNotFoundError
from app.core.logging_config import set_user_id
from app.core.security import decode_token
from app.models.user import User

# auto_error=False so a missing header maps to our 401 error shape instead of FastAPI's 403
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """Decode the bearer token; 401 when absent, 403 when invalid or expired"""
    if credentials is None or not credentials.credentials:
        raise MissingTokenError()

    payload = decode_token(credentials.credentials)
    if not payload.get("sub"):
        raise InvalidTokenError("Invalid token payload")

    set_user_id(str(payload["sub"]))
    return payload


async def get_current_user(
    payload: dict = Depends(get_token_payload),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise InvalidTokenError("Invalid token payload")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise UserNotFoundError(str(user_id))

    return user


async def require_work_access(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[dict]:
    """
    Gate for the /works routes.

    Open unless REQUIRE_AUTH is set; then a valid access token is needed.
    Only the token is checked, the users table is not queried.
    """
    if not settings.REQUIRE_AUTH:
        return None
    return get_token_payload(credentials)
