import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from clicklink_app.config import Settings, settings as default_settings
from clicklink_app.database.connection import Database
from clicklink_app.exceptions import GENERIC_SERVER_ERROR, ClickLinkError
from clicklink_app.hit_processor.aggregate_worker import AggregateWorker
from clicklink_app.queue.factory import QueueBackend, QueueFactory
from clicklink_app.services.geolocation import create_geolocator
from clicklink_app.api.v1 import analytics, redirect, urls

logger = logging.getLogger("clicklink_app")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The database handle, queue and geolocator are created once when the app
    starts and released when it stops; requests reach them via app.state.
    With the in-memory queue an aggregate worker thread runs alongside the
    app, since no other process can read that queue.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        queue = QueueFactory.create(settings)
        database = Database(settings.database_url, busy_timeout=settings.database_busy_timeout)
        database.create_all()
        app.state.database = database
        app.state.queue = queue
        app.state.geolocator = create_geolocator(settings)

        worker = None
        if QueueBackend(settings.queue_backend) == QueueBackend.MEMORY:
            worker = AggregateWorker(queue=queue, database=database, settings=settings)
            worker.start_background()
        app.state.aggregate_worker = worker

        logger.info("%s started (%s)", settings.app_name, settings.environment)
        try:
            yield
        finally:
            if worker is not None:
                worker.shutdown(timeout=settings.queue_worker_interval + 5)
            queue.close()
            database.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="A URL shortener with click analytics built with FastAPI",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.exception_handler(ClickLinkError)
    async def clicklink_error_handler(request: Request, exc: ClickLinkError):
        detail = exc.message
        if exc.is_server_error:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            if not settings.debug:
                detail = GENERIC_SERVER_ERROR
        return JSONResponse(status_code=exc.status_code, content={"detail": detail})

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
        detail = str(exc) if settings.debug else GENERIC_SERVER_ERROR
        return JSONResponse(status_code=500, content={"detail": detail})

    @app.get("/")
    def read_root():
        """Root endpoint with API information"""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
            "redoc": "/redoc"
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "environment": settings.environment}

    ######## Include routers
    app.include_router(urls.router, prefix="/api/v1")
    app.include_router(analytics.router, prefix="/api/v1")
    # Catch-all /{short_code} goes last
    app.include_router(redirect.router)

    return app


configure_logging(default_settings)
app = create_app()
