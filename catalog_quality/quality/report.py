"""
Evaluation results, suggestions and the product quality report.

These are value objects: produced fresh on every evaluation run and never
mutated afterwards (pydantic frozen models).
"""
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_quality.quality.rules import RuleSeverity, RuleType


class FailureKind(str, Enum):
    NONE = "none"  # Rule evaluated normally (passed or failed)
    CONFIGURATION = "configuration"  # Malformed rule parameters
    EXECUTION = "execution"  # UNIQUE/CUSTOM collaborator failed or timed out


class QualityValidationResult(BaseModel):
    """Outcome of one rule against one product"""
    model_config = ConfigDict(frozen=True)

    rule_id: str
    rule_code: str
    rule_name: str
    rule_type: RuleType
    passed: bool
    severity: RuleSeverity
    message: Optional[str] = None
    attribute_code: Optional[str] = None
    current_value: Any = None
    failure_kind: FailureKind = FailureKind.NONE

    @property
    def is_broken_rule(self) -> bool:
        return self.failure_kind != FailureKind.NONE


class QualitySuggestion(BaseModel):
    """Actionable improvement hint derived from a failed rule"""
    model_config = ConfigDict(frozen=True)

    type: str
    priority: int = Field(..., ge=1, le=5)  # 1 = most urgent
    message: str
    attribute_code: Optional[str] = None
    impact_score: int = Field(..., ge=0)  # Estimated score-point gain


class ProductQualityReport(BaseModel):
    """One evaluation run for one product"""
    model_config = ConfigDict(frozen=True)

    product_id: str
    product_sku: str
    product_name: str
    overall_score: int = Field(..., ge=0, le=100)
    error_count: int = Field(..., ge=0)
    warning_count: int = Field(..., ge=0)
    info_count: int = Field(..., ge=0)
    results: List[QualityValidationResult] = Field(default_factory=list)
    suggestions: List[QualitySuggestion] = Field(default_factory=list)
    evaluated_at: datetime
    warnings: List[str] = Field(default_factory=list)  # Non-fatal, e.g. log write failure

    @property
    def failed_results(self) -> List[QualityValidationResult]:
        return [r for r in self.results if not r.passed]

    @property
    def blocks_publication(self) -> bool:
        return self.error_count > 0
