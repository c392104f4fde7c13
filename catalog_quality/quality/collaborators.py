"""
Capability interfaces the engine depends on.

The engine owns no storage and no scripting runtime. Product data, the rule
set, uniqueness checks, custom rule execution and the validation log sink are
all injected through these narrow async interfaces.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from catalog_quality.quality.product import ProductSnapshot
from catalog_quality.quality.report import ProductQualityReport
from catalog_quality.quality.rules import QualityRule
from catalog_quality.quality.values import AttributeValue


@dataclass(frozen=True)
class RuleSet:
    """Immutable snapshot of the active rules, taken once per evaluation or batch"""
    rules: Tuple[QualityRule, ...]
    loaded_at: datetime

    def __len__(self) -> int:
        return len(self.rules)


@dataclass(frozen=True)
class UniquenessScope:
    """Restricts a uniqueness check to products sharing these scope values"""
    category_id: Optional[str] = None
    family_id: Optional[str] = None
    channel_id: Optional[str] = None

    @classmethod
    def for_product(cls, scope: str, product: ProductSnapshot) -> "UniquenessScope":
        if scope == "category":
            return cls(category_id=product.category_id)
        if scope == "family":
            return cls(family_id=product.family_id)
        if scope == "channel":
            return cls(channel_id=product.channel_id)
        return cls()


@dataclass(frozen=True)
class CustomRuleOutcome:
    passed: bool
    message: Optional[str] = None


@dataclass(frozen=True)
class ValidationLogEntry:
    """Append-only record of one evaluation run"""
    product_id: str
    overall_score: int
    error_count: int
    warning_count: int
    info_count: int
    details: Dict[str, Any]
    created_at: datetime

    @classmethod
    def from_report(cls, report: ProductQualityReport) -> "ValidationLogEntry":
        """Failed results and suggestions only; passed rules are not logged"""
        return cls(
            product_id=report.product_id,
            overall_score=report.overall_score,
            error_count=report.error_count,
            warning_count=report.warning_count,
            info_count=report.info_count,
            details={
                "product_sku": report.product_sku,
                "failed_results": [r.model_dump(mode="json") for r in report.failed_results],
                "suggestions": [s.model_dump(mode="json") for s in report.suggestions],
            },
            created_at=report.evaluated_at,
        )


class ProductProvider(Protocol):
    async def get_product(self, product_id: str) -> ProductSnapshot:
        """Raises ProviderError when the product cannot be supplied"""
        ...


class RuleStore(Protocol):
    async def load_active_rules(self) -> RuleSet:
        ...


class UniquenessLookup(Protocol):
    async def exists(
        self,
        attribute_code: str,
        value: AttributeValue,
        excluding_product_id: str,
        scope: UniquenessScope,
    ) -> bool:
        """True when another product in scope already holds this value"""
        ...


class CustomRuleExecutor(Protocol):
    async def execute(
        self,
        script_ref: str,
        product: ProductSnapshot,
        parameters: Mapping[str, Any],
    ) -> CustomRuleOutcome:
        ...


class ValidationLogWriter(Protocol):
    async def append(self, entry: ValidationLogEntry) -> None:
        """Raises on failure; the engine turns that into a soft warning"""
        ...
