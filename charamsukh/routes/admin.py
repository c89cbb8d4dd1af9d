import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import require_roles
from ..core import get_session
from ..crud import admin_update_user, delete_account, list_all_stories, list_users, platform_stats
from ..models.users import User
from ..schemas.stories import StorySummaryOut
from ..schemas.users import AdminUserUpdateIn, UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get('/stats')
async def stats(session: AsyncSession = Depends(get_session), admin: User = Depends(require_roles('admin'))):
    return {'success': True, 'stats': await platform_stats(session)}


@router.get('/users')
async def users(session: AsyncSession = Depends(get_session), admin: User = Depends(require_roles('admin'))):
    accounts = await list_users(session)
    return {'success': True, 'users': [UserOut.from_user(u) for u in accounts]}


@router.get('/stories')
async def stories(session: AsyncSession = Depends(get_session), admin: User = Depends(require_roles('admin'))):
    items = await list_all_stories(session)
    return {'success': True, 'stories': [StorySummaryOut.from_story(s, s.author) for s in items]}


@router.put('/users/{user_id}')
async def update_user(
    user_id: int,
    payload: AdminUserUpdateIn,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_roles('admin')),
):
    user = await admin_update_user(session, admin, user_id, payload)
    logger.info(f"Admin {admin.id} updated user {user_id}")
    return {'success': True, 'message': 'User updated', 'user': UserOut.from_user(user)}


@router.delete('/users/{user_id}')
async def remove_user(
    user_id: int,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_roles('admin')),
):
    admin_id = admin.id
    summary = await delete_account(session, admin, user_id)
    logger.info(f"Admin {admin_id} deleted user {user_id}")
    return {'success': True, 'message': 'User deleted', **summary}
