"""
Product Quality API Endpoints

Provides REST API for product quality evaluation, validation history and the
quality dashboard. Rule definitions are read-only here.
"""
import logging
from typing import Dict, Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, Field

from catalog_quality.quality.errors import ProductNotFoundError, ProviderError
from catalog_quality.quality.formats import available_formats
from catalog_quality.quality.report import ProductQualityReport
from catalog_quality.quality.rules import (
    RULE_TYPE_LABELS,
    SEVERITY_LABELS,
    InvalidParameters,
    QualityRule,
    parameters_to_dict,
)
from catalog_quality.services.quality_engine import QualityEngine, get_quality_engine
from catalog_quality.services.quality_stats import QualityStatsService, get_quality_stats_service
from catalog_quality.services.rule_store import DatabaseRuleStore, get_rule_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/quality", tags=["quality"])

MAX_BATCH_SIZE = 1000


# Pydantic models


class QualityRuleResponse(BaseModel):
    """Active rule as seen by the engine"""
    id: str
    code: str
    name: str
    description: Optional[str] = None
    type: str
    severity: str
    attribute_id: Optional[str] = None
    attribute_code: Optional[str] = None
    product_field: Optional[str] = None
    category_id: Optional[str] = None
    family_id: Optional[str] = None
    channel_id: Optional[str] = None
    parameters: Dict[str, Any]
    parameters_valid: bool
    error_message: Optional[str] = None
    position: int


class LabelResponse(BaseModel):
    """Enum value with its display label"""
    value: str
    label: str


class BatchValidationRequest(BaseModel):
    """Batch evaluation request"""
    product_ids: List[str] = Field(..., min_length=1, max_length=MAX_BATCH_SIZE)
    concurrency: Optional[int] = Field(None, ge=1, le=64)
    channel_id: Optional[str] = Field(None, description="Channel context for channel-scoped rules")


class BatchItemError(BaseModel):
    """Product that could not be evaluated"""
    product_id: str
    error: Dict[str, Any]


class BatchValidationResponse(BaseModel):
    """Batch evaluation results (report order not guaranteed)"""
    total: int
    evaluated: int
    failed: int
    reports: List[ProductQualityReport]
    errors: List[BatchItemError]


def _rule_response(rule: QualityRule) -> QualityRuleResponse:
    return QualityRuleResponse(
        id=rule.id,
        code=rule.code,
        name=rule.name,
        description=rule.description,
        type=rule.type.value,
        severity=rule.severity.value,
        attribute_id=rule.attribute_id,
        attribute_code=rule.attribute_code,
        product_field=rule.product_field,
        category_id=rule.category_id,
        family_id=rule.family_id,
        channel_id=rule.channel_id,
        parameters=parameters_to_dict(rule.parameters),
        parameters_valid=not isinstance(rule.parameters, InvalidParameters),
        error_message=rule.error_message,
        position=rule.position,
    )


# API Endpoints


@router.get("/rules/active", response_model=List[QualityRuleResponse])
async def get_active_rules(
    rule_store: DatabaseRuleStore = Depends(get_rule_store),
) -> List[QualityRuleResponse]:
    """
    Get all active quality rules ordered by position.

    Rules with malformed parameters are listed with `parameters_valid=false`;
    they fail as ERROR when evaluated.
    """
    try:
        rules = await rule_store.list_active_rules()
        return [_rule_response(rule) for rule in rules]

    except Exception as e:
        logger.error(f"Error loading active rules: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve active rules: {str(e)}"
        )


@router.get("/rule-types", response_model=List[LabelResponse])
async def get_rule_types() -> List[LabelResponse]:
    """List supported rule types"""
    return [LabelResponse(value=rule_type.value, label=label) for rule_type, label in RULE_TYPE_LABELS.items()]


@router.get("/severities", response_model=List[LabelResponse])
async def get_severities() -> List[LabelResponse]:
    """List rule severities"""
    return [LabelResponse(value=severity.value, label=label) for severity, label in SEVERITY_LABELS.items()]


@router.get("/formats", response_model=List[str])
async def get_formats() -> List[str]:
    """List format names usable by FORMAT rules"""
    return available_formats()


@router.get("/validate/product/{product_id}", response_model=ProductQualityReport)
async def validate_product(
    product_id: str = Path(..., description="Product to evaluate"),
    channel_id: Optional[str] = Query(None, description="Channel context for channel-scoped rules"),
    engine: QualityEngine = Depends(get_quality_engine),
) -> ProductQualityReport:
    """
    Evaluate one product against the active rules.

    A validation log failure does not fail the request; it is listed in the
    report's `warnings`.

    Raises:
        404: unknown product
        502: product data could not be loaded
    """
    try:
        return await engine.evaluate(product_id, channel_id=channel_id)

    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=f"Product data unavailable: {e.message}")


@router.post("/validate/products", response_model=BatchValidationResponse)
async def validate_products(
    request: BatchValidationRequest,
    engine: QualityEngine = Depends(get_quality_engine),
) -> BatchValidationResponse:
    """
    Evaluate several products concurrently.

    One product's failure never aborts the batch; it is listed under `errors`.
    """
    reports: List[ProductQualityReport] = []
    errors: List[BatchItemError] = []

    async for item in engine.evaluate_batch(
        request.product_ids,
        concurrency_limit=request.concurrency,
        channel_id=request.channel_id,
    ):
        if item.ok:
            reports.append(item.report)
        else:
            errors.append(BatchItemError(product_id=item.product_id, error=item.error.to_dict()))

    return BatchValidationResponse(
        total=len(request.product_ids),
        evaluated=len(reports),
        failed=len(errors),
        reports=reports,
        errors=errors,
    )


@router.get("/history/product/{product_id}")
async def get_product_history(
    product_id: str = Path(..., description="Product to get history for"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Entries per page"),
    stats: QualityStatsService = Depends(get_quality_stats_service),
) -> Dict[str, Any]:
    """
    Get validation history for a product, newest first.

    Returns:
        Paginated log entries and a trend summary
    """
    try:
        history = await stats.get_product_history(product_id, page=page, page_size=page_size)

    except Exception as e:
        logger.error(f"Error getting quality history for {product_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve quality history: {str(e)}"
        )

    if history is None:
        raise HTTPException(status_code=404, detail=f"Product not found: {product_id}")
    return history


@router.get("/dashboard")
async def get_quality_dashboard(
    days: int = Query(30, ge=1, le=365, description="Days of validation logs to include"),
    top_issues: int = Query(10, ge=1, le=50, description="Number of top failing rules"),
    stats: QualityStatsService = Depends(get_quality_stats_service),
) -> Dict[str, Any]:
    """
    Get catalog-wide quality statistics.

    Uses each product's latest evaluation within the window.
    """
    try:
        return await stats.get_dashboard_stats(days=days, top_issues=top_issues)

    except Exception as e:
        logger.error(f"Error getting quality dashboard: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve quality dashboard: {str(e)}"
        )
