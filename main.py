"""
Payslip Generator - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from payslip_app import __version__
from payslip_app.config import settings
from payslip_app.database import init_db, close_db
from payslip_app.services.payslip_renderer import shutdown_render_executor
from payslip_app.utils.error_handling import (
    setup_exception_handlers,
    ErrorTrackingMiddleware,
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    await init_db()
    logger.info("Database tables initialized")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")
    shutdown_render_executor()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Employee registry, company branding and bulk payslip PDF generation",
    version=__version__,
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Success-Count", "X-Error-Count", "X-Errors"],
)

app.add_middleware(ErrorTrackingMiddleware)
setup_exception_handlers(app)

# Uploaded logos and signatures
Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.app_env,
    }


# ===========================================
# INCLUDE ROUTERS
# ===========================================

from payslip_app.routers import (  # noqa: E402
    employees, company_settings, payslips, uploads, dashboard,
)

app.include_router(employees.router, prefix="/api/employees", tags=["Employees"])
app.include_router(company_settings.router, prefix="/api/company-settings", tags=["Company Settings"])
app.include_router(payslips.router, prefix="/api/payslips", tags=["Payslips"])
app.include_router(uploads.router, prefix="/api", tags=["Uploads"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
