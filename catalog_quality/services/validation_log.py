"""
Validation Log Writers

Append-only sinks for evaluation runs. Every append is independent (its own
database session, or a single Redis XADD), so concurrent batch workers never
wait on each other to log.
"""
import json
import logging
import uuid

from catalog_quality.config import QualitySettings
from catalog_quality.database import AsyncSessionLocal, get_redis
from catalog_quality.models.quality_validation_log import QualityValidationLog
from catalog_quality.quality.collaborators import ValidationLogEntry, ValidationLogWriter

logger = logging.getLogger(__name__)

VALIDATION_LOG_STREAM = "quality:validation_logs"
STREAM_MAXLEN = 100000


class DatabaseValidationLogWriter:
    """Appends to the `quality_validation_logs` table"""

    async def append(self, entry: ValidationLogEntry) -> None:
        async with AsyncSessionLocal() as session:
            try:
                session.add(
                    QualityValidationLog(
                        product_id=uuid.UUID(entry.product_id),
                        overall_score=entry.overall_score,
                        error_count=entry.error_count,
                        warning_count=entry.warning_count,
                        info_count=entry.info_count,
                        details=entry.details,
                        created_at=entry.created_at,
                    )
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.debug(f"Validation log stored for product {entry.product_id} (score {entry.overall_score})")


class RedisValidationLogWriter:
    """
    Appends to a capped Redis stream.

    Args:
        stream: Stream key
        maxlen: Approximate cap on stream length (oldest entries trimmed)
    """

    def __init__(self, stream: str = VALIDATION_LOG_STREAM, maxlen: int = STREAM_MAXLEN):
        self.stream = stream
        self.maxlen = maxlen

    async def append(self, entry: ValidationLogEntry) -> None:
        redis = await get_redis()
        await redis.xadd(
            self.stream,
            {
                "product_id": entry.product_id,
                "overall_score": entry.overall_score,
                "error_count": entry.error_count,
                "warning_count": entry.warning_count,
                "info_count": entry.info_count,
                "details": json.dumps(entry.details),
                "created_at": entry.created_at.isoformat(),
            },
            maxlen=self.maxlen,
            approximate=True,
        )


def create_log_writer(settings: QualitySettings) -> ValidationLogWriter:
    """
    Build the log writer selected by QUALITY_LOG_BACKEND.

    Raises:
        ValueError: unknown backend
    """
    if settings.log_backend == "database":
        return DatabaseValidationLogWriter()
    if settings.log_backend == "redis":
        return RedisValidationLogWriter()
    raise ValueError(f"Unknown validation log backend '{settings.log_backend}' (expected database or redis)")

