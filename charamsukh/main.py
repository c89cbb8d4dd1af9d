import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pythonjsonlogger import jsonlogger

from .config import Settings
from .core import Database, init_metrics
from .errors import install_error_handlers
from .file_storage import FileStorageManager
from .narration import build_provider
from .queue_manager import recover_running_jobs
from .routes import router
from .workers import AudioWorker, WorkerManager

# setup structured logging
logger = logging.getLogger('charamsukh')
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    app = FastAPI(title="CharamSukh API", version="1.0.0")

    app.state.settings = settings
    app.state.db = Database(settings)
    app.state.storage = FileStorageManager(settings.upload_dir, settings.max_upload_bytes)
    app.state.worker_manager = WorkerManager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    install_error_handlers(app)
    app.include_router(router, prefix="/api")
    app.mount('/uploads', StaticFiles(directory=settings.upload_dir), name='uploads')

    @app.get('/api/health')
    async def health(request: Request):
        connected = await request.app.state.db.is_healthy()
        return {
            'success': True,
            'status': 'OK' if connected else 'DEGRADED',
            'message': 'CharamSukh API is running',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'databaseConnected': connected,
        }

    @app.middleware('http')
    async def log_requests(request: Request, call_next):
        logger.info({'msg': 'request_start', 'method': request.method, 'path': request.url.path})
        response = await call_next(request)
        logger.info({'msg': 'request_end', 'path': request.url.path, 'status': response.status_code})
        return response

    @app.on_event("startup")
    async def startup():
        db: Database = app.state.db
        await db.connect()
        if settings.auto_create_schema:
            await db.create_all()
        if settings.metrics_port:
            init_metrics(settings.metrics_port)
        if settings.audio_worker_enabled:
            async with db.session() as session:
                await recover_running_jobs(session)
            worker = AudioWorker(db, build_provider(settings), delay=settings.audio_worker_poll_seconds)
            app.state.worker_manager.workers.append(worker)
            await app.state.worker_manager.start_all()

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.worker_manager.stop_all()
        for worker in app.state.worker_manager.workers:
            if isinstance(worker, AudioWorker):
                await worker.provider.close()
        await app.state.db.close()

    return app

