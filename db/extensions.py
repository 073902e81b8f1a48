# db/extensions.py

import logging
import os

import redis
from flask_mail import Mail
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate()
mail = Mail()

logger = logging.getLogger(__name__)


def create_redis_pool():
    """
    Pool for the generation lock and health check.
    No connection is opened until the first command.
    """
    redis_url = os.getenv('REDIS_URL')
    if redis_url:
        # rediss:// URLs get an SSL connection class from redis-py itself
        logger.info("✅ Redis pool from REDIS_URL")
        return redis.ConnectionPool.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )

    logger.info("🔧 Local Redis pool")
    return redis.ConnectionPool(
        host=os.getenv('REDIS_HOST', 'localhost'),
        port=int(os.getenv('REDIS_PORT', 6379)),
        db=int(os.getenv('REDIS_DB', 0)),
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )


redis_pool = create_redis_pool()
redis_client = redis.Redis(connection_pool=redis_pool)


def check_redis_health():
    try:
        redis_client.ping()
        return True
    except redis.exceptions.RedisError as e:
        logger.error(f"❌ Redis health check failed: {str(e)}")
        return False


def prewarm_redis():
    """Open the first pooled connection at startup; a failure is retried on first use."""
    try:
        redis_client.ping()
        logger.info("✅ Redis connection pool ready")
    except redis.exceptions.RedisError as e:
        logger.warning(f"⚠️  Redis pre-warm failed (will retry on first request): {str(e)}")
