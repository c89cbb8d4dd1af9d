"""
Audio Narration Job Queue
Jobs are rows in ``audio_jobs`` so they survive restarts; the story's
``audio_status`` mirrors the state of its latest job.
"""
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import ValidationError
from .lifecycle import utcnow
from .models.audio_jobs import AudioJob
from .models.stories import Story

logger = logging.getLogger(__name__)

QUEUED = 'queued'
RUNNING = 'running'
SUCCEEDED = 'succeeded'
FAILED = 'failed'
CANCELLED = 'cancelled'
ACTIVE_STATUSES = (QUEUED, RUNNING)


async def get_active_job(session: AsyncSession, story_id: int) -> Optional[AudioJob]:
    q = await session.execute(
        select(AudioJob)
        .where(AudioJob.story_id == story_id, AudioJob.status.in_(ACTIVE_STATUSES))
        .order_by(AudioJob.id.desc())
    )
    return q.scalars().first()


async def get_latest_job(session: AsyncSession, story_id: int) -> Optional[AudioJob]:
    q = await session.execute(
        select(AudioJob)
        .where(AudioJob.story_id == story_id)
        .order_by(AudioJob.id.desc())
        .execution_options(populate_existing=True)
    )
    return q.scalars().first()


async def enqueue_audio_job(
    session: AsyncSession,
    story: Story,
    requested_by: Optional[int],
    voice: str = 'default',
    max_attempts: int = 3,
) -> AudioJob:
    """
    Mark the story as generating and persist a queued job.
    A story with a queued or running job gets that job back instead of a second one.
    """
    existing = await get_active_job(session, story.id)
    if existing:
        return existing

    job = AudioJob(
        story_id=story.id,
        requested_by=requested_by,
        status=QUEUED,
        voice=voice,
        attempts=0,
        max_attempts=max_attempts,
    )
    session.add(job)
    story.audio_status = 'generating'
    story.audio_voice = voice
    await session.commit()
    await session.refresh(job)
    logger.info(f"Audio job {job.id} enqueued for story {story.id}")
    return job


async def claim_next_job(session: AsyncSession) -> Optional[AudioJob]:
    """Atomically move the oldest queued job to running and return it"""
    while True:
        q = await session.execute(
            select(AudioJob.id).where(AudioJob.status == QUEUED).order_by(AudioJob.id.asc()).limit(1)
        )
        job_id = q.scalar()
        if job_id is None:
            return None
        now = utcnow()
        claimed = await session.execute(
            update(AudioJob)
            .where(AudioJob.id == job_id, AudioJob.status == QUEUED)
            .values(status=RUNNING, attempts=AudioJob.attempts + 1, started_at=now, updated_at=now)
        )
        await session.commit()
        if claimed.rowcount:
            return await session.get(AudioJob, job_id, populate_existing=True)
        # another worker won the race; look again


async def _finish(session: AsyncSession, job_id: int, values: dict) -> bool:
    """Apply a terminal/retry update only if the job is still running (not cancelled)"""
    result = await session.execute(
        update(AudioJob)
        .where(AudioJob.id == job_id, AudioJob.status == RUNNING)
        .values(updated_at=utcnow(), **values)
    )
    return bool(result.rowcount)


async def mark_succeeded(session: AsyncSession, job: AudioJob, audio_url: str, duration: int) -> bool:
    now = utcnow()
    applied = await _finish(session, job.id, {
        'status': SUCCEEDED,
        'audio_url': audio_url,
        'duration': duration,
        'error_message': None,
        'completed_at': now,
    })
    if applied:
        await session.execute(
            update(Story)
            .where(Story.id == job.story_id)
            .values(has_audio=True, audio_url=audio_url, audio_status='generated', audio_duration=duration)
        )
    await session.commit()
    return applied


async def mark_attempt_failed(session: AsyncSession, job: AudioJob, error: str) -> Optional[str]:
    """Requeue the job, or fail it (and the story's audio) once attempts run out"""
    exhausted = job.attempts >= job.max_attempts
    values = {'error_message': error[:1000]}
    if exhausted:
        values.update(status=FAILED, completed_at=utcnow())
    else:
        values.update(status=QUEUED)
    applied = await _finish(session, job.id, values)
    if applied and exhausted:
        await session.execute(update(Story).where(Story.id == job.story_id).values(audio_status='failed'))
    await session.commit()
    if not applied:
        return None
    return values['status']


async def cancel_active_job(session: AsyncSession, story: Story) -> AudioJob:
    job = await get_active_job(session, story.id)
    if not job:
        raise ValidationError('No audio generation in progress')
    job.status = CANCELLED
    job.completed_at = utcnow()
    story.audio_status = 'generated' if story.has_audio else 'none'
    await session.commit()
    await session.refresh(job)
    logger.info(f"Audio job {job.id} cancelled for story {story.id}")
    return job


async def recover_running_jobs(session: AsyncSession) -> int:
    """Requeue jobs that were running when the process stopped"""
    result = await session.execute(
        update(AudioJob).where(AudioJob.status == RUNNING).values(status=QUEUED, updated_at=utcnow())
    )
    await session.commit()
    if result.rowcount:
        logger.info(f"Requeued {result.rowcount} interrupted audio jobs")
    return result.rowcount
