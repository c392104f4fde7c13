"""
Rule Evaluators

One function per rule type. Pure evaluators take the target value, the typed
parameter record and the evaluation context and return a RuleOutcome. UNIQUE
and CUSTOM call external collaborators and are awaited by the engine with a
timeout (see ExternalRuleRunner).

Absent values pass every constraint-style rule except REQUIRED, so each rule
stays single-purpose: a missing attribute is penalized once, by its REQUIRED
rule, not once per constraint defined on it.
"""
import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from catalog_quality.quality.collaborators import (
    CustomRuleExecutor,
    UniquenessLookup,
    UniquenessScope,
)
from catalog_quality.quality.errors import ConfigurationError, EvaluatorExecutionError
from catalog_quality.quality.formats import get_format_validator
from catalog_quality.quality.product import ProductSnapshot
from catalog_quality.quality.rules import (
    CustomParameters,
    EnumParameters,
    FormatParameters,
    InvalidParameters,
    MaxLengthParameters,
    MinLengthParameters,
    QualityRule,
    RangeParameters,
    RegexParameters,
    Relation,
    RelationshipParameters,
    RequiredParameters,
    RuleType,
    UniqueParameters,
)
from catalog_quality.quality.values import (
    ABSENT,
    AttributeValue,
    BoolValue,
    ListValue,
    is_blank,
)

T = TypeVar("T")


@dataclass(frozen=True)
class RuleOutcome:
    passed: bool
    message: Optional[str] = None


PASSED = RuleOutcome(passed=True)


@dataclass(frozen=True)
class EvaluationContext:
    rule: QualityRule
    product: ProductSnapshot
    value: AttributeValue

    @property
    def label(self) -> str:
        return self.rule.target_code or "product"


def _fail(message: str) -> RuleOutcome:
    return RuleOutcome(passed=False, message=message)


def _scalars(value: AttributeValue) -> List[AttributeValue]:
    """List items, or the value itself for scalars"""
    if isinstance(value, ListValue):
        return list(value.items)
    return [value]


def _display(value: AttributeValue, limit: int = 60) -> str:
    text = value.as_text()
    return text if len(text) <= limit else text[:limit - 3] + "..."


# Target resolution


RULES_WITHOUT_TARGET = (RuleType.CUSTOM,)


def resolve_target_value(rule: QualityRule, product: ProductSnapshot) -> AttributeValue:
    """
    Value the rule checks on this product.

    Raises:
        ConfigurationError: when a rule type that needs a target has none
    """
    if rule.attribute_id is not None:
        return product.attribute_value(rule.attribute_id)
    if rule.product_field is not None:
        return product.field_value(rule.product_field)
    params = rule.parameters
    if isinstance(params, RelationshipParameters) and params.source:
        return product.value_of(params.source)
    if rule.type in RULES_WITHOUT_TARGET:
        return ABSENT
    raise ConfigurationError(
        f"{rule.type.value} rule has no target attribute or product field",
        rule_code=rule.code,
    )


# Pure evaluators


def evaluate_required(value: AttributeValue, params: RequiredParameters, ctx: EvaluationContext) -> RuleOutcome:
    if is_blank(value):
        return _fail(f"'{ctx.label}' is required")
    return PASSED


def evaluate_min_length(value: AttributeValue, params: MinLengthParameters, ctx: EvaluationContext) -> RuleOutcome:
    if value.is_absent:
        return PASSED
    length = len(value.as_text())
    if length < params.min:
        return _fail(f"'{ctx.label}' must be at least {params.min} characters (found {length})")
    return PASSED


def evaluate_max_length(value: AttributeValue, params: MaxLengthParameters, ctx: EvaluationContext) -> RuleOutcome:
    if value.is_absent:
        return PASSED
    length = len(value.as_text())
    if length > params.max:
        return _fail(f"'{ctx.label}' must be at most {params.max} characters (found {length})")
    return PASSED


def evaluate_regex(value: AttributeValue, params: RegexParameters, ctx: EvaluationContext) -> RuleOutcome:
    if value.is_absent:
        return PASSED
    for item in _scalars(value):
        if params.compiled.fullmatch(item.as_text()) is None:
            return _fail(f"'{ctx.label}' value '{_display(item)}' does not match pattern {params.pattern}")
    return PASSED


def _describe_range(params: RangeParameters) -> str:
    if params.min is not None and params.max is not None:
        return f"between {params.min} and {params.max}"
    if params.min is not None:
        return f"at least {params.min}"
    return f"at most {params.max}"


def evaluate_range(value: AttributeValue, params: RangeParameters, ctx: EvaluationContext) -> RuleOutcome:
    if value.is_absent:
        return PASSED
    for item in _scalars(value):
        number = item.as_number()
        if number is None:
            return _fail(f"'{ctx.label}' value '{_display(item)}' is not a number")
        if (params.min is not None and number < params.min) or (params.max is not None and number > params.max):
            return _fail(f"'{ctx.label}' must be {_describe_range(params)} (found {_display(item)})")
    return PASSED


def _enum_member(item: AttributeValue, params: EnumParameters) -> bool:
    text = item.as_text()
    if params.case_sensitive:
        if text in params.values:
            return True
    elif text.casefold() in {v.casefold() for v in params.values}:
        return True

    number = item.as_number() if not isinstance(item, BoolValue) else None
    if number is not None:
        for allowed in params.values:
            try:
                if Decimal(allowed) == number:
                    return True
            except ArithmeticError:
                continue
    return False


def evaluate_enum(value: AttributeValue, params: EnumParameters, ctx: EvaluationContext) -> RuleOutcome:
    if value.is_absent:
        return PASSED
    for item in _scalars(value):
        if not _enum_member(item, params):
            allowed = ", ".join(params.values)
            return _fail(f"'{ctx.label}' value '{_display(item)}' is not one of: {allowed}")
    return PASSED


def evaluate_format(value: AttributeValue, params: FormatParameters, ctx: EvaluationContext) -> RuleOutcome:
    if value.is_absent:
        return PASSED
    try:
        validator = get_format_validator(params.format)
    except KeyError:
        raise ConfigurationError(f"Unknown format '{params.format}'", rule_code=ctx.rule.code)
    for item in _scalars(value):
        if not validator(item.as_text().strip()):
            return _fail(f"'{ctx.label}' value '{_display(item)}' is not a valid {params.format}")
    return PASSED


def _values_equal(left: AttributeValue, right: AttributeValue) -> bool:
    if not isinstance(left, BoolValue) and not isinstance(right, BoolValue):
        left_number, right_number = left.as_number(), right.as_number()
        if left_number is not None and right_number is not None:
            return left_number == right_number
    return left.as_text() == right.as_text()


def evaluate_relationship(
    value: AttributeValue, params: RelationshipParameters, ctx: EvaluationContext
) -> RuleOutcome:
    other = ctx.product.value_of(params.other_attribute)
    label = ctx.rule.target_code or params.source or "product"
    other_label = params.other_attribute

    if params.relation == Relation.REQUIRES:
        if is_blank(value) or not is_blank(other):
            return PASSED
        return _fail(f"'{other_label}' is required when '{label}' is set")

    # Comparisons only apply when both sides are present
    if value.is_absent or other.is_absent:
        return PASSED

    if params.relation == Relation.EQUALS:
        if _values_equal(value, other):
            return PASSED
        return _fail(f"'{label}' must equal '{other_label}'")

    if params.relation == Relation.NOT_EQUALS:
        if not _values_equal(value, other):
            return PASSED
        return _fail(f"'{label}' must differ from '{other_label}'")

    left, right = value.as_number(), other.as_number()
    if left is None or right is None:
        return _fail(f"'{label}' and '{other_label}' must both be numeric to compare")
    if params.relation == Relation.GREATER_THAN:
        if left > right:
            return PASSED
        return _fail(f"'{label}' ({left}) must be greater than '{other_label}' ({right})")
    if left < right:
        return PASSED
    return _fail(f"'{label}' ({left}) must be less than '{other_label}' ({right})")


PureEvaluator = Callable[[AttributeValue, object, EvaluationContext], RuleOutcome]

PURE_EVALUATORS: Dict[RuleType, PureEvaluator] = {
    RuleType.REQUIRED: evaluate_required,
    RuleType.MIN_LENGTH: evaluate_min_length,
    RuleType.MAX_LENGTH: evaluate_max_length,
    RuleType.REGEX: evaluate_regex,
    RuleType.RANGE: evaluate_range,
    RuleType.ENUM: evaluate_enum,
    RuleType.FORMAT: evaluate_format,
    RuleType.RELATIONSHIP: evaluate_relationship,
}

EXTERNAL_RULE_TYPES = frozenset({RuleType.UNIQUE, RuleType.CUSTOM})

EXPECTED_PARAMETERS = {
    RuleType.REQUIRED: RequiredParameters,
    RuleType.MIN_LENGTH: MinLengthParameters,
    RuleType.MAX_LENGTH: MaxLengthParameters,
    RuleType.REGEX: RegexParameters,
    RuleType.RANGE: RangeParameters,
    RuleType.ENUM: EnumParameters,
    RuleType.UNIQUE: UniqueParameters,
    RuleType.FORMAT: FormatParameters,
    RuleType.RELATIONSHIP: RelationshipParameters,
    RuleType.CUSTOM: CustomParameters,
}


def check_parameters(rule: QualityRule) -> None:
    """
    Reject a rule whose parameter record does not fit its type.

    Raises:
        ConfigurationError: for InvalidParameters or a mismatched record
    """
    params = rule.parameters
    if isinstance(params, InvalidParameters):
        raise ConfigurationError(params.reason, rule_code=rule.code)
    expected = EXPECTED_PARAMETERS[rule.type]
    if not isinstance(params, expected):
        raise ConfigurationError(
            f"{rule.type.value} rule carries {type(params).__name__}, expected {expected.__name__}",
            rule_code=rule.code,
        )


def evaluate_pure(rule: QualityRule, product: ProductSnapshot) -> RuleOutcome:
    """
    Evaluate a rule that needs no external collaborator.

    Raises:
        ConfigurationError: malformed parameters or missing target
    """
    check_parameters(rule)
    value = resolve_target_value(rule, product)
    ctx = EvaluationContext(rule=rule, product=product, value=value)
    return PURE_EVALUATORS[rule.type](value, rule.parameters, ctx)


# External evaluators


class ExternalRuleRunner:
    """
    Runs UNIQUE and CUSTOM rules against injected collaborators.

    Each call is bounded by a timeout; failures and timeouts raise
    EvaluatorExecutionError so the engine can report them as failed ERROR results.
    """

    def __init__(
        self,
        uniqueness_lookup: Optional[UniquenessLookup] = None,
        custom_executor: Optional[CustomRuleExecutor] = None,
        timeout_seconds: float = 5.0,
    ):
        self.uniqueness_lookup = uniqueness_lookup
        self.custom_executor = custom_executor
        self.timeout_seconds = timeout_seconds

    async def evaluate(self, rule: QualityRule, product: ProductSnapshot) -> RuleOutcome:
        check_parameters(rule)
        value = resolve_target_value(rule, product)
        ctx = EvaluationContext(rule=rule, product=product, value=value)
        if rule.type == RuleType.UNIQUE:
            return await self.evaluate_unique(value, rule.parameters, ctx)
        if rule.type == RuleType.CUSTOM:
            return await self.evaluate_custom(value, rule.parameters, ctx)
        raise ValueError(f"{rule.type.value} is not an external rule type")

    async def _bounded(self, call: Callable[[], Awaitable[T]], ctx: EvaluationContext, what: str) -> T:
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise EvaluatorExecutionError(
                f"{what} timed out after {self.timeout_seconds:.1f}s",
                rule_code=ctx.rule.code,
                product_id=ctx.product.id,
                cause=e,
            )
        except EvaluatorExecutionError:
            raise
        except Exception as e:
            raise EvaluatorExecutionError(
                f"{what} failed: {e}",
                rule_code=ctx.rule.code,
                product_id=ctx.product.id,
                cause=e,
            )

    async def evaluate_unique(
        self, value: AttributeValue, params: UniqueParameters, ctx: EvaluationContext
    ) -> RuleOutcome:
        if is_blank(value):
            return PASSED
        if self.uniqueness_lookup is None:
            raise EvaluatorExecutionError(
                "No uniqueness lookup configured", rule_code=ctx.rule.code, product_id=ctx.product.id
            )

        scope = UniquenessScope.for_product(params.scope, ctx.product)
        duplicated = await self._bounded(
            lambda: self.uniqueness_lookup.exists(ctx.label, value, ctx.product.id, scope),
            ctx,
            "Uniqueness lookup",
        )
        if duplicated:
            return _fail(f"'{ctx.label}' value '{_display(value)}' is already used by another product")
        return PASSED

    async def evaluate_custom(
        self, value: AttributeValue, params: CustomParameters, ctx: EvaluationContext
    ) -> RuleOutcome:
        if self.custom_executor is None:
            raise EvaluatorExecutionError(
                "No custom rule executor configured", rule_code=ctx.rule.code, product_id=ctx.product.id
            )

        outcome = await self._bounded(
            lambda: self.custom_executor.execute(params.script_ref, ctx.product, params.options),
            ctx,
            f"Custom rule '{params.script_ref}'",
        )
        if outcome.passed:
            return PASSED
        return _fail(outcome.message or f"Custom rule '{params.script_ref}' failed")
