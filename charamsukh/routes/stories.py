import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud, queue_manager
from ..auth import get_current_user, get_optional_user, require_roles
from ..config import Settings
from ..core import ENGAGEMENT, get_session, get_settings
from ..errors import ValidationError, field_errors
from ..file_storage import FileStorageManager
from ..models.stories import Story
from ..models.users import User
from ..parsing import parse_bool, parse_tags
from ..schemas.stories import (
    AudioJobOut,
    AudioOut,
    CommentIn,
    CommentOut,
    GenerateAudioIn,
    ModerateIn,
    StoryCreateIn,
    StoryOut,
    StorySummaryOut,
    StoryUpdateIn,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_storage(request: Request) -> FileStorageManager:
    return request.app.state.storage


async def _story_detail(session: AsyncSession, story: Story, viewer: Optional[User] = None) -> StoryOut:
    comments = await crud.list_comments(session, story.id)
    liked = bookmarked = None
    if viewer is not None:
        liked, bookmarked = await crud.viewer_flags(session, story.id, viewer.id)
    return StoryOut.from_story(
        story,
        story.author,
        comments=[CommentOut.from_comment(c, c.user) for c in comments],
        liked=liked,
        bookmarked=bookmarked,
    )


def _audio_out(story: Story) -> AudioOut:
    return AudioOut(
        has_audio=story.has_audio,
        audio_url=story.audio_url or '',
        audio_status=story.audio_status,
        duration=story.audio_duration,
        voice=story.audio_voice,
    )


def _build_create_payload(title, content, category, description, tags, generate_audio) -> StoryCreateIn:
    """Validate the multipart fields together so every violation is reported at once"""
    errors = []
    parsed_tags: List[str] = []
    wants_audio = False
    try:
        parsed_tags = parse_tags(tags)
    except ValidationError as e:
        errors.extend(e.errors or [])
    try:
        wants_audio = parse_bool(generate_audio, 'generateAudio')
    except ValidationError as e:
        errors.extend(e.errors or [])

    payload = None
    try:
        payload = StoryCreateIn(
            title=title or '',
            content=content or '',
            category=category or '',
            description=description or '',
            tags=parsed_tags,
            generate_audio=wants_audio,
        )
    except PydanticValidationError as e:
        errors = field_errors(e.errors()) + errors
    if errors:
        raise ValidationError('Validation failed', errors=errors)
    return payload


@router.get('')
async def list_stories(
    category: Optional[str] = None,
    search_term: Optional[str] = Query(None, alias='searchTerm'),
    has_audio: Optional[str] = Query(None, alias='hasAudio'),
    sort: str = 'publishedAt',
    session: AsyncSession = Depends(get_session),
):
    stories = await crud.list_published(
        session,
        category=category,
        search_term=search_term,
        has_audio=parse_bool(has_audio, 'hasAudio'),
        sort=sort,
    )
    return {
        'success': True,
        'count': len(stories),
        'stories': [StorySummaryOut.from_story(s, s.author) for s in stories],
    }


@router.get('/featured')
async def list_featured(session: AsyncSession = Depends(get_session)):
    stories = await crud.featured_stories(session)
    return {'success': True, 'stories': [StorySummaryOut.from_story(s, s.author) for s in stories]}


@router.get('/{story_id}')
async def get_one(
    story_id: int,
    session: AsyncSession = Depends(get_session),
    viewer: Optional[User] = Depends(get_optional_user),
):
    story = await crud.get_story(session, story_id)
    crud.ensure_visible(story, viewer)
    # every fetch counts as a view
    await crud.increment_counter(session, story_id, 'views')
    ENGAGEMENT.labels(action='view').inc()
    story = await crud.get_story(session, story_id)
    return {'success': True, 'story': await _story_detail(session, story, viewer)}


@router.post('', status_code=201)
async def create(
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[List[str]] = Form(None),
    generate_audio: Optional[str] = Form(None, alias='generateAudio'),
    cover_image: Optional[UploadFile] = File(None, alias='coverImage'),
    audio_file: Optional[UploadFile] = File(None, alias='audioFile'),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    storage: FileStorageManager = Depends(get_storage),
    author: User = Depends(require_roles('author', 'admin')),
):
    payload = _build_create_payload(title, content, category, description, tags, generate_audio)

    # a broken upload never fails the story itself
    cover_url = ''
    if cover_image is not None and cover_image.filename:
        try:
            cover_url = await storage.save_cover_image(cover_image)
        except Exception as e:
            logger.warning({'msg': 'cover_upload_failed', 'filename': cover_image.filename, 'error': str(e)})
    audio_url = ''
    if audio_file is not None and audio_file.filename:
        try:
            audio_url = await storage.save_audio(audio_file)
        except Exception as e:
            logger.warning({'msg': 'audio_upload_failed', 'filename': audio_file.filename, 'error': str(e)})

    story = await crud.create_story(session, settings, author, payload, cover_image=cover_url, audio_url=audio_url)
    if payload.generate_audio and not audio_url:
        await queue_manager.enqueue_audio_job(
            session, story, author.id, max_attempts=settings.audio_job_max_attempts
        )
        story = await crud.get_story(session, story.id)
    logger.info(f"Story {story.id} created by {author.id} with status {story.status}")
    return {
        'success': True,
        'message': 'Story created successfully',
        'story': await _story_detail(session, story),
    }


@router.put('/{story_id}')
async def update(
    story_id: int,
    payload: StoryUpdateIn,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    story = await crud.get_story(session, story_id)
    crud.ensure_owner_or_admin(story, current_user)
    tags = parse_tags(payload.tags) if payload.tags is not None else None
    story = await crud.update_story(session, story, payload, tags)
    return {'success': True, 'message': 'Story updated', 'story': await _story_detail(session, story, current_user)}


@router.post('/{story_id}/submit')
async def submit(
    story_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    story = await crud.get_story(session, story_id)
    crud.ensure_owner_or_admin(story, current_user)
    story = await crud.submit_story(session, story)
    return {'success': True, 'message': 'Story submitted for review', 'story': await _story_detail(session, story, current_user)}


@router.post('/{story_id}/like')
async def like(
    story_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    crud.ensure_visible(await crud.get_story(session, story_id), current_user)
    liked, count = await crud.toggle_like(session, story_id, current_user.id)
    ENGAGEMENT.labels(action='like' if liked else 'unlike').inc()
    return {'success': True, 'liked': liked, 'count': count}


@router.post('/{story_id}/comment')
async def comment(
    story_id: int,
    payload: CommentIn,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    crud.ensure_visible(await crud.get_story(session, story_id), current_user)
    comments = await crud.add_comment(session, story_id, current_user.id, payload.comment)
    ENGAGEMENT.labels(action='comment').inc()
    return {
        'success': True,
        'message': 'Comment added',
        'comments': [CommentOut.from_comment(c, c.user) for c in comments],
    }


@router.post('/{story_id}/bookmark')
async def bookmark(
    story_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    crud.ensure_visible(await crud.get_story(session, story_id), current_user)
    bookmarked, count = await crud.toggle_bookmark(session, story_id, current_user.id)
    ENGAGEMENT.labels(action='bookmark' if bookmarked else 'unbookmark').inc()
    return {'success': True, 'bookmarked': bookmarked, 'count': count}


@router.post('/{story_id}/read')
async def read(
    story_id: int,
    session: AsyncSession = Depends(get_session),
    viewer: Optional[User] = Depends(get_optional_user),
):
    crud.ensure_visible(await crud.get_story(session, story_id), viewer)
    reads = await crud.increment_counter(session, story_id, 'reads')
    ENGAGEMENT.labels(action='read').inc()
    return {'success': True, 'reads': reads}


@router.post('/{story_id}/play')
async def play(
    story_id: int,
    session: AsyncSession = Depends(get_session),
    viewer: Optional[User] = Depends(get_optional_user),
):
    crud.ensure_visible(await crud.get_story(session, story_id), viewer)
    plays = await crud.increment_counter(session, story_id, 'audioPlays')
    ENGAGEMENT.labels(action='play').inc()
    return {'success': True, 'audioPlays': plays}


@router.delete('/{story_id}')
async def remove(
    story_id: int,
    session: AsyncSession = Depends(get_session),
    storage: FileStorageManager = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    story = await crud.get_story(session, story_id)
    crud.ensure_owner_or_admin(story, current_user)
    assets = (story.cover_image, story.audio_url)
    await crud.delete_story(session, story)
    for url in assets:
        storage.delete(url)
    logger.info(f"Story {story_id} deleted by {current_user.id}")
    return {'success': True, 'message': 'Story deleted'}


@router.post('/{story_id}/generate-audio', status_code=202)
async def generate_audio(
    story_id: int,
    payload: Optional[GenerateAudioIn] = None,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    story = await crud.get_story(session, story_id)
    crud.ensure_owner_or_admin(story, current_user)
    voice = payload.voice if payload else 'default'
    job = await queue_manager.enqueue_audio_job(
        session, story, current_user.id, voice=voice, max_attempts=settings.audio_job_max_attempts
    )
    return {'success': True, 'message': 'Audio generation started', 'job': AudioJobOut.from_job(job)}


@router.get('/{story_id}/audio')
async def audio_status(
    story_id: int,
    session: AsyncSession = Depends(get_session),
    viewer: Optional[User] = Depends(get_optional_user),
):
    story = await crud.get_story(session, story_id)
    crud.ensure_visible(story, viewer)
    job = await queue_manager.get_latest_job(session, story_id)
    return {
        'success': True,
        'audio': _audio_out(story),
        'job': AudioJobOut.from_job(job) if job else None,
    }


@router.post('/{story_id}/audio/cancel')
async def cancel_audio(
    story_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    story = await crud.get_story(session, story_id)
    crud.ensure_owner_or_admin(story, current_user)
    job = await queue_manager.cancel_active_job(session, story)
    story = await crud.get_story(session, story_id)
    return {
        'success': True,
        'message': 'Audio generation cancelled',
        'audio': _audio_out(story),
        'job': AudioJobOut.from_job(job),
    }


@router.put('/{story_id}/moderate')
async def moderate(
    story_id: int,
    payload: ModerateIn,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_roles('admin')),
):
    story = await crud.get_story(session, story_id)
    story = await crud.moderate_story(session, story, payload)
    logger.info(f"Story {story_id} moderated by {admin.id}: status={story.status}")
    return {
        'success': True,
        'message': 'Story moderated successfully',
        'story': await _story_detail(session, story, admin),
    }
