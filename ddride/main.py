"""
Main FastAPI application for the DDRide service
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from ddride.config import settings
from ddride.errors import DDRideError, PartialCascadeError
from ddride.api import (
    system,
    groups,
    events,
    drivers,
    verification,
    sessions,
    rides,
    admin
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info(f"Starting DDRide service ({settings.APP_ENV})...")
    yield
    logger.info("Shutting down DDRide service...")


app = FastAPI(
    title="DDRide Service",
    description="Verified designated driver coordination for events",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PartialCascadeError)
async def partial_cascade_handler(request: Request, exc: PartialCascadeError):
    # Operator-only detail stays in the logs
    logger.error(f"{request.method} {request.url.path}: {exc} {exc.report}")
    return JSONResponse(
        status_code=500,
        content={"code": "DD_INTERNAL_ERROR", "message": "Internal server error", "details": {}}
    )


@app.exception_handler(DDRideError)
async def ddride_error_handler(request: Request, exc: DDRideError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"code": "DD_INTERNAL_ERROR", "message": "Internal server error", "details": {}}
    )


# Include routers
app.include_router(system.router, tags=["System"])
app.include_router(groups.router, prefix="/groups", tags=["Groups"])
app.include_router(events.router, prefix="/events", tags=["Events"])
app.include_router(drivers.router, prefix="/drivers", tags=["Drivers"])
app.include_router(verification.router, prefix="/verification", tags=["Verification"])
app.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
app.include_router(rides.router, prefix="/rides", tags=["Rides"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "DDRide",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/ready")
async def readiness():
    return {"status": "ready"}


@app.get("/live")
async def liveness():
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ddride.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )
