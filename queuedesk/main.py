"""
Queuedesk - Main Application Entry Point
Restaurant waitlist and room queue backend
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import structlog

from queuedesk.core.config import get_settings
from queuedesk.core.database import init_db
from queuedesk.api import auth, bookings, branches, public, queue, rooms, websockets
from queuedesk.services.live_view import live_view

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing Queuedesk backend")
    if settings.ENVIRONMENT == "development":
        await init_db()
    else:
        logger.info("Database managed by Alembic migrations")
    live_view.start()

    yield

    # Shutdown
    live_view.stop()
    logger.info("Shutting down Queuedesk backend")


# Create FastAPI application
app = FastAPI(
    title="Queuedesk API",
    description="Restaurant waitlist, room assignment and booking backend",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(public.router, prefix="/api/v1/public", tags=["public"])
app.include_router(queue.router, prefix="/api/v1", tags=["queue"])
app.include_router(rooms.router, prefix="/api/v1", tags=["rooms"])
app.include_router(bookings.router, prefix="/api/v1", tags=["bookings"])
app.include_router(branches.router, prefix="/api/v1/branches", tags=["branches"])
app.include_router(websockets.router, prefix="/api/v1/ws", tags=["websockets"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "queuedesk-api"}


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Queuedesk API",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "queuedesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )
