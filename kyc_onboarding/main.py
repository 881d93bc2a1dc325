"""
KYC Onboarding Gateway - Main Application
FastAPI application entry point: document autofill, onboarding submission and review tasks
"""
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.httpsredirect import HTTPSRedirectMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from loguru import logger
import sys

from kyc_onboarding.config import settings
from kyc_onboarding.database import init_db, close_db
from kyc_onboarding.routers import applications, extraction, onboarding, tasks
from kyc_onboarding.middleware.request_logger import RequestLogMiddleware
from kyc_onboarding.services.exceptions import UpstreamServiceError
from kyc_onboarding.services.onboarding_service import onboarding_service
from kyc_onboarding.services.scheduler import PeriodicTask
from kyc_onboarding.services.task_board import task_board


# Configure logging
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level="DEBUG" if settings.DEBUG else "INFO"
)
logger.add(
    "logs/app_{time:YYYY-MM-DD}.log",
    rotation="1 day",
    retention="30 days",
    compression="gz",
    level="INFO"
)


def build_background_tasks():
    """Session/alert sweeper, plus the task board refresh when enabled"""
    background = [
        PeriodicTask("session-sweep", onboarding_service.sweep, settings.SWEEP_INTERVAL_SECONDS),
    ]
    if settings.TASK_AUTO_REFRESH:
        background.append(PeriodicTask(
            "task-board-refresh",
            task_board.refresh,
            settings.TASK_REFRESH_INTERVAL_SECONDS,
            run_immediately=True
        ))
    return background


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    os.makedirs(settings.TEMP_UPLOAD_DIR, exist_ok=True)
    os.makedirs("logs", exist_ok=True)

    await init_db()
    logger.info("Database initialized")

    background = build_background_tasks()
    for periodic in background:
        periodic.start()

    yield

    # Shutdown
    for periodic in background:
        await periodic.stop()
    await close_db()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Customer onboarding gateway: OCR-based form autofill, BPMN workflow submission and review task management",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
    swagger_ui_parameters={
        "syntaxHighlight.theme": "obsidian",
        "docExpansion": "none",
        "defaultModelsExpandDepth": -1,
        "displayRequestDuration": True,
    }
)


# Security Middleware - HTTPS redirect in production
if settings.ENVIRONMENT == "production":
    app.add_middleware(HTTPSRedirectMiddleware)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"]
)


# Custom Middleware
app.add_middleware(RequestLogMiddleware)


# Exception Handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed messages"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation error", "errors": errors}
    )


@app.exception_handler(UpstreamServiceError)
async def upstream_exception_handler(request: Request, exc: UpstreamServiceError):
    """External backend failures: 404 passes through, everything else is a bad gateway"""
    logger.warning(f"Upstream failure on {request.url.path}: {exc}")
    status_code = status.HTTP_404_NOT_FOUND if exc.status_code == 404 else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.user_message(), "upstream_status": exc.status_code}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal error occurred. Please try again later."}
    )


# Include Routers
app.include_router(extraction.router, prefix="/extraction", tags=["Extraction"])
app.include_router(onboarding.router, prefix="/onboarding", tags=["Onboarding"])
app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
app.include_router(applications.router, prefix="/applications", tags=["Applications"])


# Health Check Endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.DEBUG else "Documentation disabled"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "kyc_onboarding.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
