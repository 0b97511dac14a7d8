import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from cachetools import TTLCache
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config.settings import get_settings

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# token -> (user id, exp timestamp)
_token_cache: TTLCache = TTLCache(maxsize=1024, ttl=get_settings().token_cache_ttl_seconds)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _invalid_token() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> Optional[str]:
    """Return the ``id`` claim of a verified token.

    Raises a 401 ``HTTPException`` when the signature or expiry check fails.
    """
    cached = _token_cache.get(token)
    if cached is not None and cached[1] > time.time():
        return cached[0]

    settings = get_settings()
    try:
        data = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise _invalid_token()

    user_id = data.get("id")
    if user_id is not None:
        user_id = str(user_id)
        _token_cache[token] = (user_id, float(data.get("exp", 0)))
    return user_id


async def get_caller_identity(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[str]:
    """Caller's user id, or ``None`` when no bearer token was sent.

    Handlers decide what a missing identity means; a token that is present
    but invalid is always a 401.
    """
    if not token:
        return None
    return decode_access_token(token)


def clear_token_cache() -> None:
    _token_cache.clear()
