from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import require_roles
from ..core import get_session
from ..crud import create_category, delete_category, list_categories, update_category
from ..models.users import User
from ..schemas.categories import CategoryIn, CategoryOut, CategoryUpdateIn

router = APIRouter()


@router.get('')
async def list_all(session: AsyncSession = Depends(get_session)):
    categories = await list_categories(session)
    return {'success': True, 'categories': [CategoryOut.from_category(c) for c in categories]}


@router.post('', status_code=201)
async def create(
    payload: CategoryIn,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_roles('admin')),
):
    category = await create_category(session, payload)
    return {'success': True, 'category': CategoryOut.from_category(category)}


@router.put('/{category_id}')
async def update(
    category_id: int,
    payload: CategoryUpdateIn,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_roles('admin')),
):
    category = await update_category(session, category_id, payload)
    return {'success': True, 'category': CategoryOut.from_category(category)}


@router.delete('/{category_id}')
async def remove(
    category_id: int,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_roles('admin')),
):
    await delete_category(session, category_id)
    return {'success': True, 'message': 'Category removed'}
