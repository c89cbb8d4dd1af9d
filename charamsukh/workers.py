"""
Background Queue Workers
Polls the persisted audio job queue and runs narration outside request handling
"""
import asyncio
import logging
from typing import Dict, List

from .core import AUDIO_JOBS, Database
from .models.stories import Story
from .narration import NarrationError, NarrationProvider
from . import queue_manager

logger = logging.getLogger(__name__)


class BaseWorker:
    """Base worker class for polling a queue"""

    name = 'worker'

    def __init__(self, delay: float = 1.0):
        self.delay = delay
        self.running = False
        self.processed_count = 0
        self.error_count = 0

    async def start(self):
        """Start the worker"""
        self.running = True
        logger.info(f"Starting {self.__class__.__name__}")

        while self.running:
            try:
                handled = await self.run_once()
                if not handled:
                    await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Worker {self.__class__.__name__} error: {str(e)}")
                self.error_count += 1
                await asyncio.sleep(self.delay)

    async def stop(self):
        """Stop the worker"""
        self.running = False
        logger.info(f"Stopping {self.__class__.__name__}")

    async def run_once(self) -> bool:
        """Process at most one job; return False when the queue was empty"""
        raise NotImplementedError


class AudioWorker(BaseWorker):
    """Worker for audio narration jobs"""

    name = 'audio'

    def __init__(self, db: Database, provider: NarrationProvider, delay: float = 2.0):
        super().__init__(delay=delay)
        self.db = db
        self.provider = provider

    async def run_once(self) -> bool:
        async with self.db.session() as session:
            job = await queue_manager.claim_next_job(session)
            if job is None:
                return False
            story = await session.get(Story, job.story_id)
            text = story.content if story else ''

        logger.info(f"Audio job {job.id} running (attempt {job.attempts}/{job.max_attempts})")

        # The provider call happens outside any open transaction
        try:
            if story is None:
                raise NarrationError(f'Story {job.story_id} no longer exists')
            result = await self.provider.narrate(job.story_id, text, job.voice)
        except Exception as e:
            await self._record_failure(job, str(e))
            return True

        async with self.db.session() as session:
            applied = await queue_manager.mark_succeeded(session, job, result.audio_url, result.duration)
        if applied:
            self.processed_count += 1
            AUDIO_JOBS.labels(outcome='succeeded').inc()
            logger.info(f"Audio job {job.id} completed for story {job.story_id}")
        else:
            AUDIO_JOBS.labels(outcome='discarded').inc()
            logger.info(f"Audio job {job.id} result discarded; job was cancelled")
        return True

    async def _record_failure(self, job, error: str):
        self.error_count += 1
        async with self.db.session() as session:
            outcome = await queue_manager.mark_attempt_failed(session, job, error)
        if outcome == queue_manager.FAILED:
            AUDIO_JOBS.labels(outcome='failed').inc()
            logger.error(f"Audio job {job.id} failed permanently: {error}")
        elif outcome == queue_manager.QUEUED:
            AUDIO_JOBS.labels(outcome='retried').inc()
            logger.warning(f"Audio job {job.id} attempt {job.attempts} failed, requeued: {error}")


class WorkerManager:
    """Manages background workers"""

    def __init__(self, workers: List[BaseWorker] = None):
        self.workers = workers or []
        self.tasks = []

    async def start_all(self):
        """Start all workers"""
        for worker in self.workers:
            task = asyncio.create_task(worker.start())
            self.tasks.append(task)
        logger.info(f"Started {len(self.workers)} queue workers")

    async def stop_all(self):
        """Stop all workers"""
        for worker in self.workers:
            await worker.stop()

        for task in self.tasks:
            task.cancel()

        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []
        logger.info("All queue workers stopped")

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        """Get worker statistics"""
        stats = {}
        for worker in self.workers:
            stats[worker.name] = {
                "processed": worker.processed_count,
                "errors": worker.error_count,
                "running": worker.running
            }
        return stats
