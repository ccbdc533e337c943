"""
Resume Pipeline - Main FastAPI application
"""
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from resume_pipeline.core.config import settings
from resume_pipeline.core.logging_config import configure_logging
from resume_pipeline.core.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from resume_pipeline.resumes.router import router as resumes_router
from resume_pipeline.services import Services

logger = structlog.get_logger()


def create_app(services: Optional[Services] = None, worker_mode: Optional[str] = None) -> FastAPI:
    """Build the application; tests pass their own services and worker mode"""
    worker_mode = worker_mode or settings.QUEUE_WORKER_MODE

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Resume ingestion, processing queue and processing state service",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Last added runs first: correlation id is bound before request logging
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        app_services = getattr(app.state, "services", None)
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "queue_worker": worker_mode,
            "queue_worker_running": bool(app_services and app_services.worker.running),
        }

    app.include_router(resumes_router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize on startup"""
        logger.info("application_starting", version=settings.APP_VERSION, queue_worker=worker_mode)
        app.state.services = services or Services.from_settings()
        await app.state.services.startup()
        if worker_mode == "inprocess":
            app.state.services.worker.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop the worker and release the connection pool"""
        logger.info("application_shutting_down")
        await app.state.services.shutdown()

    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "resume_pipeline.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
