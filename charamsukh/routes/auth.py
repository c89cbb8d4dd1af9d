import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_user, token_for
from ..config import Settings
from ..core import get_session, get_settings
from ..crud import authenticate_user, create_user
from ..models.users import User
from ..schemas.users import LoginIn, RegisterIn, UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post('/register', status_code=201)
async def register(
    payload: RegisterIn,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    user = await create_user(session, settings, payload)
    logger.info(f"User {user.id} registered as {user.role}")
    return {'success': True, 'token': token_for(settings, user), 'user': UserOut.from_user(user)}


@router.post('/login')
async def login(
    payload: LoginIn,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    user = await authenticate_user(session, settings, payload.email, payload.password)
    return {'success': True, 'token': token_for(settings, user), 'user': UserOut.from_user(user)}


@router.get('/me')
async def me(current_user: User = Depends(get_current_user)):
    return {'success': True, 'user': UserOut.from_user(current_user)}
