"""
Health check endpoint with database and queue store status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from redis.exceptions import RedisError
import redis.asyncio as redis
from api.dependencies import get_db, get_redis
from schemas.api import HealthCheckResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Queue store (Redis) connectivity status
    """

    # Check database connectivity
    db_connected = False
    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {str(e)}")

    # Check queue store connectivity
    queue_connected = False
    try:
        queue_connected = bool(await redis_client.ping())
    except (RedisError, OSError) as e:
        logger.error(f"Queue store connection failed: {str(e)}")

    return HealthCheckResponse.from_checks(db_connected, queue_connected)
