"""Quality engine configuration loaded from environment variables"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class QualitySettings:
    """
    Tunable engine constants.

    Penalty weights are engine-wide, never per rule:
        score = 100 - (failed ERROR * error_penalty + failed WARNING * warning_penalty)
    """
    error_penalty: int = 20  # Each failed ERROR rule costs 20 points
    warning_penalty: int = 5  # Each failed WARNING rule costs 5 points
    complete_threshold: int = 80  # Products below 80 are flagged as incomplete
    external_timeout_seconds: float = 5.0  # UNIQUE lookups and CUSTOM executors
    log_timeout_seconds: float = 5.0
    batch_concurrency: int = 8
    heuristic_suggestions: bool = False
    log_backend: str = "database"  # database | redis
    revalidation_cron_hour: int = 2

    @classmethod
    def from_env(cls) -> "QualitySettings":
        return cls(
            error_penalty=int(os.getenv("QUALITY_ERROR_PENALTY", "20")),
            warning_penalty=int(os.getenv("QUALITY_WARNING_PENALTY", "5")),
            complete_threshold=int(os.getenv("QUALITY_COMPLETE_THRESHOLD", "80")),
            external_timeout_seconds=float(os.getenv("QUALITY_EXTERNAL_TIMEOUT_SECONDS", "5.0")),
            log_timeout_seconds=float(os.getenv("QUALITY_LOG_TIMEOUT_SECONDS", "5.0")),
            batch_concurrency=int(os.getenv("QUALITY_BATCH_CONCURRENCY", "8")),
            heuristic_suggestions=_env_bool("QUALITY_HEURISTIC_SUGGESTIONS", False),
            log_backend=os.getenv("QUALITY_LOG_BACKEND", "database").strip().lower(),
            revalidation_cron_hour=int(os.getenv("QUALITY_REVALIDATION_CRON_HOUR", "2")),
        )


# Singleton instance
_settings_instance: Optional[QualitySettings] = None


def get_settings() -> QualitySettings:
    """Get singleton instance of QualitySettings"""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = QualitySettings.from_env()
    return _settings_instance
