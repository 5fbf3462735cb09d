from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from estate_api.core.config import settings
from estate_api.core.database import init_db, check_database_connection
from estate_api.core.errors import register_exception_handlers
from estate_api.core.responses import utc_timestamp
from estate_api.api import api_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    # Create database tables (in production, use migrations)
    init_db()
    logger.info("Database tables created/verified")

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Property listings, services catalogue and contact inquiries for a real estate agency",
    lifespan=lifespan,
)

logger.info(f"CORS origins configured: {settings.CORS_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
def health_check():
    """Service status, environment and database reachability."""
    return {
        "success": True,
        "message": "Real Estate API is running",
        "timestamp": utc_timestamp(),
        "environment": settings.ENVIRONMENT,
        "database": "connected" if check_database_connection() else "disconnected",
    }


@app.get("/")
def root():
    """API index."""
    return {
        "success": True,
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "documentation": {
            "health": "/health",
            "openapi": "/docs",
            "properties": "/api/v1/properties",
            "services": "/api/v1/services",
            "contact": "/api/v1/contact",
            "auth": "/api/v1/auth",
        },
    }
