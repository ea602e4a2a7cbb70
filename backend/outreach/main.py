"""Main FastAPI application for the campaign workflow engine."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from outreach.config import settings
from outreach.database import Base, engine

# Import models so they register with SQLAlchemy before create_all
from outreach.models import (
    Campaign,
    JobPosting,
    Company,
    Prospect,
    BackgroundTask,
    QuotaLedgerEntry,
    Notification,
)

from outreach.routers import (
    campaign_routes,
    prospect_routes,
    company_routes,
    task_routes,
    notification_routes,
)
from outreach.scheduler import start_scheduler, stop_scheduler
from outreach.services.workflow_manager import create_workflow_manager
from outreach.websocket import get_socket_app

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Outreach Campaign Workflow API",
    description="Job postings to enriched companies, ranked prospects and contact details",
    version="1.0.0",
    redirect_slashes=False
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================
# ROUTER REGISTRATION
# ============================================

app.include_router(campaign_routes.router)
app.include_router(prospect_routes.router)
app.include_router(company_routes.router)
app.include_router(task_routes.router)
app.include_router(notification_routes.router)

# Mount WebSocket
socket_app = get_socket_app()
app.mount("/socket.io", socket_app)

# ============================================
# HEALTH & ROOT ENDPOINTS
# ============================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "registered_tables": len(Base.metadata.tables),
        "features": [
            "company_enrichment",
            "prospect_collection",
            "auto_selection",
            "contact_enrichment",
            "websocket_notifications",
            "scheduled_retries",
        ]
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Outreach Campaign Workflow API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


# ============================================
# STARTUP & SHUTDOWN
# ============================================

@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info("Starting Outreach Campaign Workflow API...")

    Base.metadata.create_all(bind=engine)
    logger.info(f"Registered {len(Base.metadata.tables)} SQLAlchemy tables")

    if getattr(app.state, "workflow_manager", None) is None:
        app.state.workflow_manager = create_workflow_manager()

    if settings.ENABLE_SCHEDULER:
        start_scheduler(app.state.workflow_manager)

    logger.info("Application started successfully!")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("Shutting down Outreach Campaign Workflow API...")
    stop_scheduler()

    manager = getattr(app.state, "workflow_manager", None)
    if manager is not None:
        await manager.dispatcher.drain()
