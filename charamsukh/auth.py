from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings
from .core import get_session, get_settings
from .errors import Forbidden, Unauthenticated
from .models.users import User


@lru_cache(maxsize=None)
def make_password_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=['bcrypt'], deprecated='auto', bcrypt__rounds=rounds)


def hash_password(settings: Settings, password: str) -> str:
    return make_password_context(settings.bcrypt_rounds).hash(password)


def verify_password(settings: Settings, password: str, hashed: str) -> bool:
    return make_password_context(settings.bcrypt_rounds).verify(password, hashed)


def create_access_token(settings: Settings, data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({'exp': expire})
    encoded = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return encoded


def decode_token(settings: Settings, token: str):
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return payload
    except JWTError:
        return None


def token_for(settings: Settings, user: User) -> str:
    return create_access_token(settings, {'id': user.id, 'role': user.role})


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get('Authorization')
    if not header:
        return None
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


async def verify_token(session: AsyncSession, settings: Settings, token: Optional[str]) -> User:
    """Decode the token and re-check that its account still exists and is active"""
    if not token:
        raise Unauthenticated('No token provided, authorization denied')
    payload = decode_token(settings, token)
    if not payload or 'id' not in payload:
        raise Unauthenticated('Token is not valid')
    user = await session.get(User, payload['id'], populate_existing=True)
    if not user or not user.is_active:
        raise Unauthenticated('Token is no longer valid')
    return user


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> User:
    return await verify_token(session, settings, _bearer_token(request))


async def get_optional_user(
    request: Request,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """Like get_current_user, but an absent or bad token means an anonymous caller"""
    try:
        return await verify_token(session, settings, _bearer_token(request))
    except Unauthenticated:
        return None


def require_roles(*roles: str):
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise Forbidden()
        return current_user
    return dependency
