from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, Security
from fastapi.security import APIKeyCookie
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.database import get_db
from app.errors import Forbidden, Unauthenticated
from app.models.user import User

load_dotenv()

SECRET_KEY = os.getenv("SESSION_SECRET") or os.getenv("JWT_SECRET", "dev-secret-change-me")
ALGORITHM = os.getenv("SESSION_ALGORITHM", "HS256")
COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "sid")
EXPIRY_MINUTES = int(os.getenv("SESSION_EXPIRY_MINUTES", "10080"))

logger = logging.getLogger(__name__)

session_cookie = APIKeyCookie(name=COOKIE_NAME, auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: int
    is_admin: bool = False


def extract_session_token(cookie_header: Optional[str], name: str = COOKIE_NAME) -> Optional[str]:
    """Return the value of the ``name`` cookie from a raw Cookie header."""
    if not cookie_header:
        return None
    prefix = f"{name}="
    for part in cookie_header.split(";"):
        part = part.strip()
        if part.startswith(prefix):
            return part[len(prefix):] or None
    return None


def verify_session_token(token: Optional[str]) -> Optional[Identity]:
    """Check signature and expiry; None for anything that isn't a valid session."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None

    raw_id = payload.get("user_id", payload.get("sub", payload.get("id")))
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        return None
    return Identity(user_id=user_id, is_admin=bool(payload.get("is_admin", False)))


def resolve_identity(cookie_header: Optional[str]) -> Optional[Identity]:
    return verify_session_token(extract_session_token(cookie_header))


def create_session_token(user_id: int, is_admin: bool = False, expires_in: Optional[timedelta] = None) -> str:
    """Mint a session token. Used by local tooling and tests; no route issues tokens."""
    expire = datetime.now(timezone.utc) + (expires_in or timedelta(minutes=EXPIRY_MINUTES))
    claims = {"user_id": user_id, "is_admin": is_admin, "exp": expire}
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


async def get_current_identity(token: Optional[str] = Security(session_cookie)) -> Identity:
    identity = verify_session_token(token)
    if identity is None:
        raise Unauthenticated()
    return identity


async def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    result = await db.execute(select(User).where(User.id == identity.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise Unauthenticated()
    return user


def _is_admin(user: User, identity: Identity) -> bool:
    role = getattr(user, "role", None)
    if isinstance(role, str) and role.lower() == "admin":
        return True
    return identity.is_admin


async def require_admin(
    identity: Identity = Depends(get_current_identity),
    user: User = Depends(get_current_user),
) -> User:
    if not _is_admin(user, identity):
        logger.info("User %s denied admin access", identity.user_id)
        raise Forbidden()
    return user
