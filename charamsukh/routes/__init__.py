from fastapi import APIRouter
from .auth import router as auth_router
from .stories import router as stories_router
from .categories import router as categories_router
from .admin import router as admin_router
from .users import router as users_router

router = APIRouter()
router.include_router(auth_router, prefix='/auth', tags=['auth'])
router.include_router(stories_router, prefix='/stories', tags=['stories'])
router.include_router(categories_router, prefix='/categories', tags=['categories'])
router.include_router(admin_router, prefix='/admin', tags=['admin'])
router.include_router(users_router, prefix='/users', tags=['users'])
