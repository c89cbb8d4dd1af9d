import asyncio
import logging
from typing import AsyncIterator, Optional

from fastapi import Request
from prometheus_client import Counter, start_http_server
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings
from .errors import ServiceUnavailable

logger = logging.getLogger(__name__)

AUDIO_JOBS = Counter('charamsukh_audio_jobs_total', 'Audio narration jobs by outcome', ['outcome'])
ENGAGEMENT = Counter('charamsukh_engagement_total', 'Story engagement actions', ['action'])


def init_metrics(port: int):
    """Initialize Prometheus metrics server"""
    try:
        start_http_server(port)
        logger.info(f"Prometheus metrics server started on port {port}")
    except Exception as e:
        logger.warning(f'Prometheus start failed: {e}')


class Database:
    """
    Owns the async engine and session factory for one application instance.
    Opened on startup, pinged by the health check, disposed on shutdown.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    def _create_engine(self) -> AsyncEngine:
        url = self.settings.database_url
        if url.startswith('sqlite'):
            return create_async_engine(url, future=True, echo=False)
        return create_async_engine(
            url,
            future=True,
            echo=False,
            pool_size=20,
            max_overflow=10,
            pool_pre_ping=True,
        )

    async def connect(self):
        """Create the engine and verify connectivity with a fixed retry loop"""
        max_retries = self.settings.db_connect_retries
        retry_delay = self.settings.db_retry_delay

        for attempt in range(max_retries):
            try:
                logger.info(f"Attempting to connect to database (attempt {attempt + 1}/{max_retries})")
                self.engine = self._create_engine()
                self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
                await self.ping()
                logger.info("Database connected successfully")
                return
            except Exception as e:
                logger.warning(f'Database startup attempt {attempt + 1} failed: {e}')
                if self.engine is not None:
                    await self.engine.dispose()
                self.engine = None
                self.session_factory = None

                if attempt < max_retries - 1:
                    logger.info(f"Retrying database connection in {retry_delay} seconds...")
                    await asyncio.sleep(retry_delay)
                else:
                    logger.error("Failed to connect to database after all retries")
                    raise

    async def ping(self) -> bool:
        if self.engine is None:
            return False
        async with self.engine.connect() as conn:
            await conn.execute(text('SELECT 1'))
        return True

    async def is_healthy(self) -> bool:
        try:
            return await self.ping()
        except Exception as e:
            logger.warning(f'Database health check failed: {e}')
            return False

    async def create_all(self):
        from .models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    def session(self) -> AsyncSession:
        if self.session_factory is None:
            raise ServiceUnavailable('Database not connected')
        return self.session_factory()

    async def close(self):
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connection closed")
        self.engine = None
        self.session_factory = None


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session bound to the application's database"""
    db: Database = request.app.state.db
    async with db.session() as session:
        yield session


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
