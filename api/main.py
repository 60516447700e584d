"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, etl
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from ingestion.scheduler import build_scheduler

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Multi-Platform Order ETL",
    description="Pulls orders from Shopee, TikTok Shop and Facebook into a unified PostgreSQL schema",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(etl.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Multi-Platform Order ETL")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    logger.info(f"Enabled platforms: {settings.enabled_platforms()}")

    app.state.scheduler = build_scheduler()
    app.state.scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Multi-Platform Order ETL")
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        await scheduler.close()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Multi-Platform Order ETL",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "trigger_all": "/api/etl/trigger-all",
            "trigger_platform": "/api/etl/{platform}/trigger",
            "process_date": "/api/etl/{platform}/process-date?date=YYYY-MM-DD",
            "status": "/api/etl/status",
            "api_test": "/api/etl/{platform}/api-test",
            "order_count": "/api/etl/{platform}/order-count?date=YYYY-MM-DD",
            "enable_scheduler": "/api/etl/scheduler/enable",
            "disable_scheduler": "/api/etl/scheduler/disable",
            "reset_statistics": "/api/etl/statistics/reset"
        }
    }
