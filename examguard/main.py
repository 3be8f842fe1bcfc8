"""
ExamGuard Service - FastAPI Application

Exam sessions, proctoring event pipeline and the live monitoring channel.
"""
import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.deps import Services
from .api.live import router as live_router
from .api.routes.candidates import router as candidates_router
from .api.routes.exam_session import responses_router, router as exam_session_router
from .api.routes.monitoring import router as monitoring_router
from .api.routes.proctor_logs import router as proctor_logs_router
from .api.routes.reports import router as reports_router
from .config import settings
from .errors import ExamGuardError
from .utils.logging import log_error, log_request, log_startup
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

QUIET_PATHS = ["/health", "/favicon.ico"]


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the application.

    Args:
        services: Pre-built service container (tests pass their own store/clock)
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Exam session & proctoring engine",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None
    )
    app.state.services = services or Services(settings)

    # ========================================================================
    # Request Logging Middleware
    # ========================================================================

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests with timing."""
        start = time.time()
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            log_error("RequestError", str(e))
            raise

        if path not in QUIET_PATHS:
            duration_ms = int((time.time() - start) * 1000)
            log_request(request.method, path, response.status_code, duration_ms)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # Error Handling
    # ========================================================================

    @app.exception_handler(ExamGuardError)
    async def examguard_error_handler(request: Request, exc: ExamGuardError):
        if exc.status_code >= 500:
            log_error(type(exc).__name__, exc.message)
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": exc.error_code}
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error": "internal_error"}
        )

    # Include routers
    app.include_router(candidates_router)
    app.include_router(exam_session_router)
    app.include_router(responses_router)
    app.include_router(proctor_logs_router)
    app.include_router(monitoring_router)
    app.include_router(reports_router)
    app.include_router(live_router)

    @app.on_event("startup")
    async def startup_event():
        config = app.state.services.config
        log_startup(settings.APP_NAME, settings.PORT, {
            "Record store": type(app.state.services.store).__name__,
            "Auto-submit sweep": f"{config.AUTO_SUBMIT_SWEEP_INTERVAL}s",
            "Face absent window": f"{config.FACE_ABSENT_WINDOW}s",
            "Noise threshold": config.AUDIO_NOISE_THRESHOLD,
            "Debug mode": settings.DEBUG,
        })

        await app.state.services.startup()

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.services.shutdown()
        logger.info(f"{settings.APP_NAME} stopped")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        services = app.state.services
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": "1.0.0",
            "observers": len(services.hub.registry),
            "proctor_sessions": len(services.proctors),
            "auto_submit_scheduler": services.scheduler.running,
        }

    return app


setup_logging(
    service_name="examguard",
    level=settings.LOG_LEVEL,
    log_to_file=settings.LOG_TO_FILE,
    log_dir=settings.LOG_DIR
)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("examguard.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.DEBUG)
