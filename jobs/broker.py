"""
Dramatiq broker configuration.

Redis-based message broker for commission run tasks.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from compensation.config.operational_constants import RUN_TASK_MAX_RETRIES
from compensation.config.settings import settings
from compensation.utils.exceptions import is_retryable
from compensation.utils.redis_utils import get_redis_url_masked


def should_retry(retries_so_far: int, exception: BaseException) -> bool:
    """Only transient failures are redelivered; caller errors never are."""
    return retries_so_far < RUN_TASK_MAX_RETRIES and is_retryable(exception)


# Initialize Redis broker with graceful shutdown middleware
redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
)

# ShutdownNotifications: Allows workers to gracefully shutdown
# CurrentMessage: Provides access to current message in actors
# Retries: Exponential backoff for transient failures
redis_broker.add_middleware(ShutdownNotifications())
redis_broker.add_middleware(CurrentMessage())
redis_broker.add_middleware(
    Retries(
        max_retries=RUN_TASK_MAX_RETRIES,
        min_backoff=1000,  # 1 second
        max_backoff=60000,  # 1 minute
        retry_when=should_retry,
    )
)

dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(f"Dramatiq broker initialized: {get_redis_url_masked()}")
