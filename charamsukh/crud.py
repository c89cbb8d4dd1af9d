from typing import List, Optional, Tuple

from sqlalchemy import and_, delete, exists, func, or_, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from . import lifecycle
from .auth import hash_password, verify_password
from .config import Settings
from .errors import Conflict, Forbidden, InvalidCredentials, NotFound, ValidationError
from .models.audio_jobs import AudioJob
from .models.bookmarks import Bookmark
from .models.categories import Category
from .models.comments import StoryComment
from .models.likes import StoryLike
from .models.reading_history import ReadingHistory
from .models.stories import Story
from .models.story_tags import StoryTag
from .models.users import User, DEFAULT_PREFERENCES

STORY_SORTS = {
    'publishedAt': Story.published_at,
    'createdAt': Story.created_at,
    'views': Story.views,
    'likes': Story.likes_count,
    'reads': Story.reads,
}
COUNTERS = {
    'views': Story.views,
    'reads': Story.reads,
    'audioPlays': Story.audio_plays,
}
FEATURED_LIMIT = 6
HISTORY_LIMIT = 10
CONTINUE_READING_LIMIT = 5


# accounts
async def create_user(session: AsyncSession, settings: Settings, payload) -> User:
    email = payload.email.lower()
    existing = await session.execute(select(User.id).where(User.email == email))
    if existing.first():
        raise Conflict('An account with this email already exists')
    user = User(
        name=payload.name,
        email=email,
        hashed_password=hash_password(settings, payload.password),
        role=payload.role,
        preferences=dict(DEFAULT_PREFERENCES),
        last_login=lifecycle.utcnow(),
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict('An account with this email already exists')
    await session.refresh(user)
    return user


async def authenticate_user(session: AsyncSession, settings: Settings, email: str, password: str) -> User:
    q = await session.execute(select(User).where(User.email == (email or '').strip().lower()))
    user = q.scalars().first()
    # one error for every failure so callers cannot probe which emails exist
    if not user or not verify_password(settings, password or '', user.hashed_password) or not user.is_active:
        raise InvalidCredentials()
    user.last_login = lifecycle.utcnow()
    await session.commit()
    await session.refresh(user)
    return user


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    return await session.get(User, user_id, populate_existing=True)


async def update_profile(session: AsyncSession, user: User, payload) -> User:
    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.bio is not None:
        user.bio = payload.bio
    if payload.avatar is not None:
        user.avatar = payload.avatar
    if payload.preferences is not None:
        prefs = dict(user.preferences or DEFAULT_PREFERENCES)
        prefs.update(payload.preferences.model_dump(by_alias=True, exclude_none=True))
        # reassign so the JSON column is flagged dirty
        user.preferences = prefs
    await session.commit()
    await session.refresh(user)
    return user


async def list_users(session: AsyncSession) -> List[User]:
    q = await session.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return q.scalars().all()


async def admin_update_user(session: AsyncSession, admin: User, user_id: int, payload) -> User:
    user = await get_user_by_id(session, user_id)
    if not user:
        raise NotFound('User not found')
    if user.id == admin.id and (payload.is_active is False or (payload.role and payload.role != 'admin')):
        raise ValidationError('Admins cannot suspend or demote themselves')
    if payload.is_active is not None:
        user.is_active = payload.is_active
    if payload.role is not None:
        user.role = payload.role
    await session.commit()
    await session.refresh(user)
    return user


async def _recount(session: AsyncSession, story_ids: List[int]):
    """Rebuild denormalized engagement counters from the surviving rows"""
    if not story_ids:
        return
    await session.execute(
        update(Story)
        .where(Story.id.in_(story_ids))
        .values(
            likes_count=select(func.count(StoryLike.id)).where(StoryLike.story_id == Story.id).scalar_subquery(),
            comments_count=select(func.count(StoryComment.id)).where(StoryComment.story_id == Story.id).scalar_subquery(),
            bookmarks_count=select(func.count(Bookmark.id)).where(Bookmark.story_id == Story.id).scalar_subquery(),
        )
        .execution_options(synchronize_session=False)
    )


async def _purge_stories(session: AsyncSession, story_ids: List[int]):
    if not story_ids:
        return
    bookmarkers = (await session.execute(select(Bookmark.user_id).where(Bookmark.story_id.in_(story_ids)))).scalars().all()
    for table in (StoryLike, StoryComment, Bookmark, ReadingHistory, AudioJob, StoryTag):
        await session.execute(delete(table).where(table.story_id.in_(story_ids)))
    await session.execute(delete(Story).where(Story.id.in_(story_ids)))
    for user_id in bookmarkers:
        await session.execute(
            update(User)
            .where(User.id == user_id, User.bookmarks_count > 0)
            .values(bookmarks_count=User.bookmarks_count - 1)
        )


async def delete_account(session: AsyncSession, admin: User, user_id: int) -> dict:
    """
    Hard-delete an account together with everything it owns.

    Authored stories go with all their engagement rows; the account's own
    likes, comments, bookmarks and reading history are removed and the
    counters of the stories they touched are recomputed.
    """
    user = await get_user_by_id(session, user_id)
    if not user:
        raise NotFound('User not found')
    if user.id == admin.id:
        raise ValidationError('Admins cannot delete their own account')

    authored = (await session.execute(select(Story.id).where(Story.author_id == user_id))).scalars().all()
    touched = set()
    for table in (StoryLike, StoryComment, Bookmark):
        touched.update((await session.execute(select(table.story_id).where(table.user_id == user_id))).scalars().all())

    await _purge_stories(session, list(authored))
    for table in (StoryLike, StoryComment, Bookmark, ReadingHistory):
        await session.execute(delete(table).where(table.user_id == user_id))
    await session.execute(update(AudioJob).where(AudioJob.requested_by == user_id).values(requested_by=None))
    await _recount(session, [sid for sid in touched if sid not in set(authored)])
    await session.execute(delete(User).where(User.id == user_id))
    await session.commit()
    session.expunge_all()
    return {'deletedStories': len(authored), 'affectedStories': len(touched - set(authored))}


# reading progress & dashboard
async def update_reading_progress(session: AsyncSession, user: User, story_id: int, progress: int, time_spent: float) -> ReadingHistory:
    user_id = user.id
    ensure_visible(await get_story(session, story_id), user)
    completed = progress >= 100
    for attempt in range(2):
        q = await session.execute(
            select(ReadingHistory).where(ReadingHistory.user_id == user_id, ReadingHistory.story_id == story_id)
        )
        entry = q.scalars().first()
        newly_completed = completed and (entry is None or not entry.completed)
        if entry is None:
            entry = ReadingHistory(user_id=user_id, story_id=story_id)
            session.add(entry)
        entry.progress = progress
        entry.completed = completed
        entry.last_read = lifecycle.utcnow()
        try:
            await session.flush()
        except IntegrityError:
            # a concurrent request inserted the row first; retry as an update
            await session.rollback()
            if attempt:
                raise
            continue
        break

    values = {'hours_listened': User.hours_listened + time_spent / 3600}
    if newly_completed:
        values['stories_read'] = User.stories_read + 1
    await session.execute(update(User).where(User.id == user_id).values(**values))
    await session.commit()
    await session.refresh(entry)
    await session.refresh(user)
    return entry


def visible_to(viewer: Optional[User]):
    """SQL counterpart of ensure_visible"""
    if viewer is not None and viewer.role == 'admin':
        return true()
    public = and_(Story.status == lifecycle.PUBLISHED, Story.is_public.is_(True))
    if viewer is None:
        return public
    return or_(public, Story.author_id == viewer.id)


async def get_dashboard(session: AsyncSession, user: User) -> dict:
    bookmarked = await session.execute(
        select(Story)
        .join(Bookmark, Bookmark.story_id == Story.id)
        .where(Bookmark.user_id == user.id, visible_to(user))
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .options(selectinload(Story.author))
    )
    history_q = (
        select(ReadingHistory, Story)
        .join(Story, Story.id == ReadingHistory.story_id)
        .where(ReadingHistory.user_id == user.id, visible_to(user))
        .order_by(ReadingHistory.last_read.desc(), ReadingHistory.id.desc())
        .options(selectinload(Story.author))
    )
    history = await session.execute(history_q.limit(HISTORY_LIMIT))
    continue_reading = await session.execute(
        history_q.where(ReadingHistory.completed.is_(False)).limit(CONTINUE_READING_LIMIT)
    )
    return {
        'bookmarked': bookmarked.scalars().all(),
        'history': history.all(),
        'continue_reading': continue_reading.all(),
    }


# categories
async def list_categories(session: AsyncSession, active_only: bool = True) -> List[Category]:
    q = select(Category).order_by(Category.name)
    if active_only:
        q = q.where(Category.is_active.is_(True))
    return (await session.execute(q)).scalars().all()


async def create_category(session: AsyncSession, payload) -> Category:
    existing = await session.execute(select(Category.id).where(func.lower(Category.name) == payload.name.lower()))
    if existing.first():
        raise Conflict('Category already exists')
    category = Category(name=payload.name)
    if payload.icon:
        category.icon = payload.icon
    if payload.color:
        category.color = payload.color
    session.add(category)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict('Category already exists')
    await session.refresh(category)
    return category


async def update_category(session: AsyncSession, category_id: int, payload) -> Category:
    category = await session.get(Category, category_id)
    if not category:
        raise NotFound('Category not found')
    if payload.name is not None:
        name = payload.name.strip()
        if not name:
            raise ValidationError.field('name', 'Name is required')
        clash = await session.execute(
            select(Category.id).where(func.lower(Category.name) == name.lower(), Category.id != category_id)
        )
        if clash.first():
            raise Conflict('Category already exists')
        # stories keep the old name; categories are referenced by name only
        category.name = name
    for field in ('icon', 'color', 'is_active'):
        value = getattr(payload, field)
        if value is not None:
            setattr(category, field, value)
    await session.commit()
    await session.refresh(category)
    return category


async def delete_category(session: AsyncSession, category_id: int):
    category = await session.get(Category, category_id)
    if not category:
        raise NotFound('Category not found')
    await session.delete(category)
    await session.commit()


# stories
async def get_story(session: AsyncSession, story_id: int) -> Story:
    q = await session.execute(
        select(Story)
        .where(Story.id == story_id)
        .options(selectinload(Story.author))
        .execution_options(populate_existing=True)
    )
    story = q.scalars().first()
    if not story:
        raise NotFound('Story not found')
    return story


async def list_comments(session: AsyncSession, story_id: int) -> List[StoryComment]:
    q = await session.execute(
        select(StoryComment)
        .where(StoryComment.story_id == story_id)
        .order_by(StoryComment.created_at.asc(), StoryComment.id.asc())
        .options(selectinload(StoryComment.user))
    )
    return q.scalars().all()


async def create_story(
    session: AsyncSession,
    settings: Settings,
    author: User,
    payload,
    cover_image: str = '',
    audio_url: str = '',
) -> Story:
    story = Story(
        title=payload.title,
        category=payload.category,
        tags=list(payload.tags),
        author_id=author.id,
        cover_image=cover_image,
        description='',
        has_audio=bool(audio_url),
        audio_url=audio_url,
        audio_status='generated' if audio_url else 'none',
    )
    lifecycle.apply_content(story, payload.content, payload.description)
    lifecycle.initial_status(story, settings.default_story_status)
    session.add(story)
    await session.flush()
    await _index_tags(session, story.id, story.tags)
    await session.commit()
    return await get_story(session, story.id)


async def _index_tags(session: AsyncSession, story_id: int, tags: List[str]):
    await session.execute(delete(StoryTag).where(StoryTag.story_id == story_id))
    session.add_all([StoryTag(story_id=story_id, tag=tag) for tag in dict.fromkeys(tags)])


async def list_published(
    session: AsyncSession,
    category: Optional[str] = None,
    search_term: Optional[str] = None,
    has_audio: Optional[bool] = None,
    sort: str = 'publishedAt',
) -> List[Story]:
    if sort not in STORY_SORTS:
        raise ValidationError.field('sort', f"sort must be one of {', '.join(STORY_SORTS)}")
    q = select(Story).where(visible_to(None))
    if category:
        q = q.where(Story.category == category)
    if has_audio:
        q = q.where(Story.has_audio.is_(True))
    term = (search_term or '').strip().lower()
    if term:
        tagged = exists().where(StoryTag.story_id == Story.id, StoryTag.tag.contains(term, autoescape=True))
        q = q.where(or_(func.lower(Story.title).contains(term, autoescape=True), tagged))
    q = q.order_by(STORY_SORTS[sort].desc(), Story.id.desc()).options(selectinload(Story.author))
    return (await session.execute(q)).scalars().all()


async def featured_stories(session: AsyncSession) -> List[Story]:
    base = select(Story).where(visible_to(None)).options(selectinload(Story.author))
    featured = (await session.execute(
        base.where(Story.featured.is_(True)).order_by(Story.published_at.desc()).limit(FEATURED_LIMIT)
    )).scalars().all()
    if featured:
        return featured
    return (await session.execute(base.order_by(Story.published_at.desc(), Story.id.desc()).limit(FEATURED_LIMIT))).scalars().all()


async def list_all_stories(session: AsyncSession) -> List[Story]:
    q = select(Story).order_by(Story.created_at.desc(), Story.id.desc()).options(selectinload(Story.author))
    return (await session.execute(q)).scalars().all()


async def update_story(session: AsyncSession, story: Story, payload, tags: Optional[List[str]]) -> Story:
    if payload.title is not None:
        story.title = payload.title.strip()
    if payload.category is not None:
        story.category = payload.category.strip()
    if tags is not None:
        story.tags = tags
        await _index_tags(session, story.id, tags)
    if payload.is_public is not None:
        story.is_public = payload.is_public
    if payload.content is not None:
        lifecycle.apply_content(story, payload.content, payload.description)
    elif payload.description is not None:
        story.description = payload.description or lifecycle.derive_description(story.content)
    story.last_modified = lifecycle.utcnow()
    await session.commit()
    return await get_story(session, story.id)


async def submit_story(session: AsyncSession, story: Story) -> Story:
    if story.status != lifecycle.DRAFT:
        raise ValidationError.field('status', 'Only drafts can be submitted for review')
    lifecycle.transition(story, lifecycle.PENDING)
    await session.commit()
    return await get_story(session, story.id)


async def moderate_story(session: AsyncSession, story: Story, payload) -> Story:
    if payload.status:
        lifecycle.transition(story, payload.status)
    if payload.category:
        story.category = payload.category
    if payload.featured is not None:
        story.featured = payload.featured
    if payload.moderation_notes is not None:
        story.moderation_notes = payload.moderation_notes
    story.last_modified = lifecycle.utcnow()
    await session.commit()
    return await get_story(session, story.id)


async def delete_story(session: AsyncSession, story: Story):
    await _purge_stories(session, [story.id])
    await session.commit()
    session.expunge(story)


def ensure_visible(story: Story, viewer: Optional[User]):
    if story.status == lifecycle.PUBLISHED and story.is_public:
        return
    if viewer is not None and (viewer.role == 'admin' or viewer.id == story.author_id):
        return
    raise NotFound('Story not found')


def ensure_owner_or_admin(story: Story, user: User):
    if user.role != 'admin' and story.author_id != user.id:
        raise Forbidden('Not authorized')


# engagement
async def increment_counter(session: AsyncSession, story_id: int, counter: str) -> int:
    column = COUNTERS[counter]
    result = await session.execute(
        update(Story).where(Story.id == story_id).values({column.key: column + 1})
    )
    if not result.rowcount:
        raise NotFound('Story not found')
    await session.commit()
    return await session.scalar(select(column).where(Story.id == story_id))


async def toggle_like(session: AsyncSession, story_id: int, user_id: int) -> Tuple[bool, int]:
    await get_story(session, story_id)
    removed = await session.execute(
        delete(StoryLike).where(StoryLike.story_id == story_id, StoryLike.user_id == user_id)
    )
    if removed.rowcount:
        await session.execute(
            update(Story)
            .where(Story.id == story_id, Story.likes_count > 0)
            .values(likes_count=Story.likes_count - 1)
        )
        liked = False
    else:
        session.add(StoryLike(story_id=story_id, user_id=user_id))
        try:
            await session.flush()
        except IntegrityError:
            # a concurrent like from the same account already landed
            await session.rollback()
            count = await session.scalar(select(Story.likes_count).where(Story.id == story_id))
            return True, count
        await session.execute(
            update(Story).where(Story.id == story_id).values(likes_count=Story.likes_count + 1)
        )
        liked = True
    await session.commit()
    count = await session.scalar(select(Story.likes_count).where(Story.id == story_id))
    return liked, count


async def add_comment(session: AsyncSession, story_id: int, user_id: int, text: str) -> List[StoryComment]:
    await get_story(session, story_id)
    session.add(StoryComment(story_id=story_id, user_id=user_id, comment=text))
    await session.execute(
        update(Story).where(Story.id == story_id).values(comments_count=Story.comments_count + 1)
    )
    await session.commit()
    return await list_comments(session, story_id)


async def toggle_bookmark(session: AsyncSession, story_id: int, user_id: int) -> Tuple[bool, int]:
    await get_story(session, story_id)
    removed = await session.execute(
        delete(Bookmark).where(Bookmark.story_id == story_id, Bookmark.user_id == user_id)
    )
    if removed.rowcount:
        await session.execute(
            update(Story).where(Story.id == story_id, Story.bookmarks_count > 0)
            .values(bookmarks_count=Story.bookmarks_count - 1)
        )
        await session.execute(
            update(User).where(User.id == user_id, User.bookmarks_count > 0)
            .values(bookmarks_count=User.bookmarks_count - 1)
        )
        bookmarked = False
    else:
        session.add(Bookmark(story_id=story_id, user_id=user_id))
        try:
            await session.flush()
        except IntegrityError:
            await session.rollback()
            count = await session.scalar(select(Story.bookmarks_count).where(Story.id == story_id))
            return True, count
        await session.execute(
            update(Story).where(Story.id == story_id).values(bookmarks_count=Story.bookmarks_count + 1)
        )
        await session.execute(
            update(User).where(User.id == user_id).values(bookmarks_count=User.bookmarks_count + 1)
        )
        bookmarked = True
    await session.commit()
    count = await session.scalar(select(Story.bookmarks_count).where(Story.id == story_id))
    return bookmarked, count


async def viewer_flags(session: AsyncSession, story_id: int, user_id: int) -> Tuple[bool, bool]:
    liked = await session.scalar(
        select(func.count(StoryLike.id)).where(StoryLike.story_id == story_id, StoryLike.user_id == user_id)
    )
    bookmarked = await session.scalar(
        select(func.count(Bookmark.id)).where(Bookmark.story_id == story_id, Bookmark.user_id == user_id)
    )
    return bool(liked), bool(bookmarked)


# aggregation
async def author_stats(session: AsyncSession, author_id: int) -> dict:
    totals = (await session.execute(
        select(
            func.count(Story.id),
            func.coalesce(func.sum(Story.reads), 0),
            func.coalesce(func.sum(Story.likes_count), 0),
            func.coalesce(func.sum(Story.views), 0),
            func.coalesce(func.sum(Story.audio_plays), 0),
        ).where(Story.author_id == author_id)
    )).one()
    audio_stories = await session.scalar(
        select(func.count(Story.id)).where(Story.author_id == author_id, Story.has_audio.is_(True))
    )
    stories = (await session.execute(
        select(Story)
        .where(Story.author_id == author_id)
        .order_by(Story.created_at.desc(), Story.id.desc())
        .options(selectinload(Story.author))
    )).scalars().all()
    return {
        'stats': {
            'totalStories': totals[0],
            'totalReads': int(totals[1]),
            'totalLikes': int(totals[2]),
            'totalViews': int(totals[3]),
            'audioPlays': int(totals[4]),
            'audioStories': audio_stories,
        },
        'stories': stories,
    }


async def platform_stats(session: AsyncSession) -> dict:
    roles = dict((await session.execute(select(User.role, func.count(User.id)).group_by(User.role))).all())
    statuses = dict((await session.execute(select(Story.status, func.count(Story.id)).group_by(Story.status))).all())
    totals = (await session.execute(
        select(
            func.coalesce(func.sum(Story.likes_count), 0),
            func.coalesce(func.sum(Story.audio_plays), 0),
            func.coalesce(func.sum(Story.views), 0),
        )
    )).one()
    return {
        'totalUsers': roles.get('reader', 0),
        'totalAuthors': roles.get('author', 0),
        'totalAdmins': roles.get('admin', 0),
        'totalStories': sum(statuses.values()),
        'draftStories': statuses.get(lifecycle.DRAFT, 0),
        'pendingStories': statuses.get(lifecycle.PENDING, 0),
        'publishedStories': statuses.get(lifecycle.PUBLISHED, 0),
        'rejectedStories': statuses.get(lifecycle.REJECTED, 0),
        'totalLikes': int(totals[0]),
        'audioPlays': int(totals[1]),
        'totalViews': int(totals[2]),
    }
