from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_user, require_roles
from ..core import get_session
from ..crud import author_stats, get_dashboard, update_profile, update_reading_progress
from ..models.users import User
from ..schemas.stories import HistoryEntryOut, StorySummaryOut
from ..schemas.users import ProfileUpdateIn, ProgressIn, UserOut, UserStatsOut

router = APIRouter()


@router.get('/dashboard')
async def dashboard(session: AsyncSession = Depends(get_session), current_user: User = Depends(get_current_user)):
    data = await get_dashboard(session, current_user)
    return {
        'success': True,
        'stats': UserOut.from_user(current_user).stats,
        'bookmarkedStories': [StorySummaryOut.from_story(s, s.author) for s in data['bookmarked']],
        'readingHistory': [HistoryEntryOut.from_entry(entry, story) for entry, story in data['history']],
        'continueReading': [HistoryEntryOut.from_entry(entry, story) for entry, story in data['continue_reading']],
    }


@router.get('/author/stats')
async def stats_for_author(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles('author', 'admin')),
):
    data = await author_stats(session, current_user.id)
    return {
        'success': True,
        'stats': data['stats'],
        'stories': [StorySummaryOut.from_story(s, s.author) for s in data['stories']],
    }


@router.put('/profile')
async def profile(
    payload: ProfileUpdateIn,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    user = await update_profile(session, current_user, payload)
    return {'success': True, 'message': 'Profile updated', 'user': UserOut.from_user(user)}


@router.put('/progress/{story_id}')
async def progress(
    story_id: int,
    payload: ProgressIn,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    entry = await update_reading_progress(session, current_user, story_id, payload.progress, payload.time_spent)
    return {
        'success': True,
        'progress': entry.progress,
        'completed': entry.completed,
        'stats': UserStatsOut(
            stories_read=current_user.stories_read,
            hours_listened=round(current_user.hours_listened or 0, 2),
            bookmarks=current_user.bookmarks_count,
        ),
    }
