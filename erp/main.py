from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from erp.config import settings
from erp.api.v1.router import api_router
from erp.core.exceptions import ERPError
from erp.database import init_db, async_session_factory
from erp.jobs import start_scheduler, shutdown_scheduler, get_job_status


logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create database tables
    - Start background scheduler (unless SCHEDULER_ENABLED is false)
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    # Shutdown
    shutdown_scheduler()
    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Authentication", "description": "JWT login and user accounts"},
    {"name": "Employees", "description": "Employee records linked to user accounts"},
    {"name": "Leave Requests", "description": "Leave applications, approval and annual balance"},
    {"name": "Payroll", "description": "Monthly payroll with computed gross and net salary"},
    {"name": "Attendance", "description": "Check-in/out, hours worked and monthly summaries"},
    {"name": "Performance Reviews", "description": "Periodic reviews with ratings and sign-off"},
    {"name": "Compliance Tracking", "description": "Employee compliance items, verification and expiry"},
    {"name": "Invoices", "description": "GST invoices with CGST/SGST/IGST split"},
    {"name": "Bills", "description": "Vendor bills, approval and payments"},
    {"name": "Customer Addresses", "description": "Billing and shipping addresses per customer"},
    {"name": "GST", "description": "GST calculation and GSTIN validation"},
    {"name": "Exports", "description": "Excel, CSV and printable exports of invoices and bills"},
    {"name": "Prints", "description": "Printable invoice and bill documents"},
]

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(ERPError)
async def erp_error_handler(request: Request, exc: ERPError):
    """Business rule failures raised by services."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown",
            "scheduled_jobs": len(get_job_status()),
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except SQLAlchemyError as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
