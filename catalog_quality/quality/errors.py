"""Structured exception hierarchy for the quality engine.

Per-rule errors (ConfigurationError, EvaluatorExecutionError) are recovered by
the engine and turned into failed ERROR results. ProviderError aborts a single
product. LogWriteError is reported as a soft warning next to the report.
"""
from typing import Any, Dict, Optional

__all__ = [
    "QualityEngineError",
    "ConfigurationError",
    "EvaluatorExecutionError",
    "ProviderError",
    "ProductNotFoundError",
    "LogWriteError",
]


class QualityEngineError(Exception):
    """Base exception for all quality engine errors."""

    def __init__(
        self,
        message: str,
        *,
        rule_code: Optional[str] = None,
        product_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.message = message
        self.rule_code = rule_code
        self.product_id = product_id
        self.details = details or {}
        self.cause = cause

        if cause is not None:
            self.details.setdefault("cause", str(cause) or type(cause).__name__)
            self.details.setdefault("cause_type", type(cause).__name__)

        parts = [message]
        if rule_code or product_id:
            parts.insert(0, f"[rule={rule_code or '?'} product={product_id or '?'}]")

        super().__init__(" ".join(parts))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "rule_code": self.rule_code,
            "product_id": self.product_id,
            "details": self.details,
        }


class ConfigurationError(QualityEngineError):
    """A rule's parameters are structurally invalid for its type."""


class EvaluatorExecutionError(QualityEngineError):
    """A UNIQUE lookup or CUSTOM executor failed or timed out."""


class ProviderError(QualityEngineError):
    """The product provider could not supply data for a product."""


class ProductNotFoundError(ProviderError):
    """The product provider has no product with the requested id."""


class LogWriteError(QualityEngineError):
    """The validation log writer failed to persist an evaluation run."""
