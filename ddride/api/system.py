"""
System Router - Health checks and monitoring
"""
import logging
from fastapi import APIRouter
from datetime import datetime
import redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from ddride.config import settings
from ddride.db.database import SessionLocal
from ddride.worker.celery_app import WORKER_QUEUE

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint returning status of backing services.
    Returns machine-readable JSON.
    """
    # Check database
    database_status = "unhealthy"
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        database_status = "healthy"
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
    finally:
        db.close()

    # Check Redis
    redis_status = "unhealthy"
    worker_queue_depth = 0
    try:
        r = redis.from_url(settings.REDIS_URL)
        r.ping()
        redis_status = "healthy"
        worker_queue_depth = r.llen(WORKER_QUEUE) or 0
    except redis.RedisError as e:
        logger.warning(f"Redis health check failed: {e}")

    return {
        "database": database_status,
        "redis": redis_status,
        "worker_queue_depth": worker_queue_depth,
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }
