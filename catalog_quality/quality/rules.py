"""
Quality Rule Model

Immutable rule description plus one typed parameter record per rule type.
Raw parameter payloads (JSON objects from the rule store) are parsed once,
when the rule is loaded. A payload that does not fit its type is kept as
InvalidParameters so the rule still shows up as a failed ERROR result instead
of disappearing or crashing the evaluation.
"""
import re
from dataclasses import dataclass, field, fields as dataclass_fields
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from catalog_quality.quality.errors import ConfigurationError
from catalog_quality.quality.formats import get_format_validator


class RuleType(str, Enum):
    REQUIRED = "REQUIRED"
    MIN_LENGTH = "MIN_LENGTH"
    MAX_LENGTH = "MAX_LENGTH"
    REGEX = "REGEX"
    RANGE = "RANGE"
    ENUM = "ENUM"
    UNIQUE = "UNIQUE"
    FORMAT = "FORMAT"
    RELATIONSHIP = "RELATIONSHIP"
    CUSTOM = "CUSTOM"


class RuleSeverity(str, Enum):
    ERROR = "ERROR"  # Blocks publication
    WARNING = "WARNING"  # Flagged, does not block
    INFO = "INFO"  # Advisory only


RULE_TYPE_LABELS = {
    RuleType.REQUIRED: "Required field",
    RuleType.MIN_LENGTH: "Minimum length",
    RuleType.MAX_LENGTH: "Maximum length",
    RuleType.REGEX: "Regular expression",
    RuleType.RANGE: "Numeric range",
    RuleType.ENUM: "Allowed values",
    RuleType.UNIQUE: "Unique value",
    RuleType.FORMAT: "Specific format",
    RuleType.RELATIONSHIP: "Field relationship",
    RuleType.CUSTOM: "Custom rule",
}

SEVERITY_LABELS = {
    RuleSeverity.ERROR: "Error (blocks publication)",
    RuleSeverity.WARNING: "Warning",
    RuleSeverity.INFO: "Informational",
}

# Core product fields a rule without an attribute may target
PRODUCT_FIELDS = (
    "name",
    "sku",
    "description",
    "short_description",
    "price",
    "brand",
    "manufacturer",
    "weight",
    "meta_title",
    "meta_description",
    "meta_keywords",
    "url_key",
    "categories",
    "images",
)

# Alternate names accepted for core fields
FIELD_ALIASES = {
    "media": "images",
}

REGEX_FLAGS = {
    "IGNORECASE": re.IGNORECASE,
    "MULTILINE": re.MULTILINE,
    "DOTALL": re.DOTALL,
}

UNIQUE_SCOPES = ("global", "category", "family", "channel")


class Relation(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    REQUIRES = "requires"


# Parameter records


@dataclass(frozen=True)
class RequiredParameters:
    pass


@dataclass(frozen=True)
class MinLengthParameters:
    min: int


@dataclass(frozen=True)
class MaxLengthParameters:
    max: int


@dataclass(frozen=True)
class RegexParameters:
    pattern: str
    compiled: "re.Pattern[str]" = field(compare=False, repr=False)


@dataclass(frozen=True)
class RangeParameters:
    min: Optional[Decimal]
    max: Optional[Decimal]


@dataclass(frozen=True)
class EnumParameters:
    values: Tuple[str, ...]
    case_sensitive: bool = True


@dataclass(frozen=True)
class UniqueParameters:
    scope: str = "global"


@dataclass(frozen=True)
class FormatParameters:
    format: str


@dataclass(frozen=True)
class RelationshipParameters:
    other_attribute: str
    relation: Relation
    source: Optional[str] = None


@dataclass(frozen=True)
class CustomParameters:
    script_ref: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InvalidParameters:
    """Marker for a payload that did not parse; evaluating it raises ConfigurationError"""
    reason: str
    raw: Mapping[str, Any] = field(default_factory=dict)


RuleParameters = Union[
    RequiredParameters,
    MinLengthParameters,
    MaxLengthParameters,
    RegexParameters,
    RangeParameters,
    EnumParameters,
    UniqueParameters,
    FormatParameters,
    RelationshipParameters,
    CustomParameters,
    InvalidParameters,
]


@dataclass(frozen=True)
class QualityRule:
    """A configured quality check. Never mutated during an evaluation run."""
    id: str
    code: str
    name: str
    type: RuleType
    severity: RuleSeverity = RuleSeverity.ERROR
    parameters: RuleParameters = field(default_factory=RequiredParameters)
    description: Optional[str] = None
    attribute_id: Optional[str] = None
    attribute_code: Optional[str] = None
    product_field: Optional[str] = None  # Core product field when attribute_id is None
    category_id: Optional[str] = None
    family_id: Optional[str] = None
    channel_id: Optional[str] = None
    error_message: Optional[str] = None
    is_active: bool = True
    position: int = 0

    @property
    def target_code(self) -> Optional[str]:
        """Attribute code or core field this rule checks, if any"""
        return self.attribute_code or self.product_field

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (self.position, self.code)


# Parsing


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"'{name}' must be an integer, got a boolean")
    if isinstance(value, float) and not value.is_integer():
        raise ConfigurationError(f"'{name}' must be a whole number, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ConfigurationError(f"'{name}' must be an integer, got {value!r}")
    if number < 0:
        raise ConfigurationError(f"'{name}' must not be negative, got {number}")
    return number


def _as_decimal(value: Any, name: str) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"'{name}' must be a number, got a boolean")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(f"'{name}' must be a number, got {value!r}")
    if not number.is_finite():
        raise ConfigurationError(f"'{name}' must be finite, got {value!r}")
    return number


def _parse_required(raw: Mapping[str, Any]) -> RequiredParameters:
    return RequiredParameters()


def _parse_min_length(raw: Mapping[str, Any]) -> MinLengthParameters:
    value = _first(raw, "min", "minLength", "min_length")
    if value is None:
        raise ConfigurationError("MIN_LENGTH requires a 'min' parameter")
    return MinLengthParameters(min=_as_int(value, "min"))


def _parse_max_length(raw: Mapping[str, Any]) -> MaxLengthParameters:
    value = _first(raw, "max", "maxLength", "max_length")
    if value is None:
        raise ConfigurationError("MAX_LENGTH requires a 'max' parameter")
    return MaxLengthParameters(max=_as_int(value, "max"))


def _parse_regex(raw: Mapping[str, Any]) -> RegexParameters:
    pattern = _first(raw, "pattern", "regex")
    if not isinstance(pattern, str) or not pattern:
        raise ConfigurationError("REGEX requires a non-empty 'pattern' string")

    flags = 0
    for flag_name in raw.get("flags") or []:
        try:
            flags |= REGEX_FLAGS[str(flag_name).upper()]
        except KeyError:
            raise ConfigurationError(f"Unknown regex flag '{flag_name}'")

    try:
        compiled = re.compile(pattern, flags)
    except re.error as e:
        raise ConfigurationError(f"REGEX pattern does not compile: {e}")
    return RegexParameters(pattern=pattern, compiled=compiled)


def _parse_range(raw: Mapping[str, Any]) -> RangeParameters:
    minimum = _as_decimal(raw.get("min"), "min")
    maximum = _as_decimal(raw.get("max"), "max")
    if minimum is None and maximum is None:
        raise ConfigurationError("RANGE requires at least one of 'min' or 'max'")
    if minimum is not None and maximum is not None and minimum > maximum:
        raise ConfigurationError(f"RANGE has min ({minimum}) greater than max ({maximum})")
    return RangeParameters(min=minimum, max=maximum)


def _parse_enum(raw: Mapping[str, Any]) -> EnumParameters:
    values = _first(raw, "values", "allowedValues")
    if isinstance(values, str) or not isinstance(values, Iterable):
        raise ConfigurationError("ENUM requires a 'values' list")
    normalized = tuple(str(v) for v in values if v is not None)
    if not normalized:
        raise ConfigurationError("ENUM 'values' must not be empty")
    case_sensitive = _first(raw, "caseSensitive", "case_sensitive")
    return EnumParameters(
        values=normalized,
        case_sensitive=True if case_sensitive is None else bool(case_sensitive),
    )


def _parse_unique(raw: Mapping[str, Any]) -> UniqueParameters:
    scope = str(raw.get("scope") or "global").lower()
    if scope not in UNIQUE_SCOPES:
        raise ConfigurationError(
            f"UNIQUE scope must be one of {', '.join(UNIQUE_SCOPES)}, got '{scope}'"
        )
    return UniqueParameters(scope=scope)


def _parse_format(raw: Mapping[str, Any]) -> FormatParameters:
    name = raw.get("format")
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError("FORMAT requires a 'format' name")
    try:
        get_format_validator(name)
    except KeyError:
        raise ConfigurationError(f"Unknown format '{name}'")
    return FormatParameters(format=name.strip().lower())


def _parse_relationship(raw: Mapping[str, Any]) -> RelationshipParameters:
    other = _first(raw, "otherAttribute", "other_attribute", "target")
    if not isinstance(other, str) or not other:
        raise ConfigurationError("RELATIONSHIP requires an 'otherAttribute'")
    relation_name = _first(raw, "relation", "condition")
    try:
        relation = Relation(str(relation_name).lower())
    except ValueError:
        allowed = ", ".join(r.value for r in Relation)
        raise ConfigurationError(f"RELATIONSHIP relation must be one of {allowed}, got {relation_name!r}")
    source = raw.get("source")
    return RelationshipParameters(
        other_attribute=other,
        relation=relation,
        source=str(source) if source else None,
    )


def _parse_custom(raw: Mapping[str, Any]) -> CustomParameters:
    script_ref = _first(raw, "scriptRef", "script_ref", "script")
    if not isinstance(script_ref, str) or not script_ref:
        raise ConfigurationError("CUSTOM requires a 'scriptRef'")
    options = {
        key: value for key, value in raw.items()
        if key not in ("scriptRef", "script_ref", "script")
    }
    return CustomParameters(script_ref=script_ref, options=options)


_PARSERS = {
    RuleType.REQUIRED: _parse_required,
    RuleType.MIN_LENGTH: _parse_min_length,
    RuleType.MAX_LENGTH: _parse_max_length,
    RuleType.REGEX: _parse_regex,
    RuleType.RANGE: _parse_range,
    RuleType.ENUM: _parse_enum,
    RuleType.UNIQUE: _parse_unique,
    RuleType.FORMAT: _parse_format,
    RuleType.RELATIONSHIP: _parse_relationship,
    RuleType.CUSTOM: _parse_custom,
}


def parse_parameters(rule_type: RuleType, raw: Optional[Mapping[str, Any]]) -> RuleParameters:
    """
    Parse a raw parameter payload into the typed record for its rule type.

    Args:
        rule_type: Rule type selecting the record shape
        raw: JSON object from the rule store (None is treated as empty)

    Returns:
        Typed parameter record

    Raises:
        ConfigurationError: if the payload is structurally invalid
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{rule_type.value} parameters must be an object, got {type(raw).__name__}")
    return _PARSERS[rule_type](raw)


def build_rule(
    *,
    id: str,
    code: str,
    name: str,
    type: Union[RuleType, str],
    severity: Union[RuleSeverity, str] = RuleSeverity.ERROR,
    parameters: Optional[Mapping[str, Any]] = None,
    **fields: Any,
) -> QualityRule:
    """
    Build a QualityRule from stored values, parsing parameters once.

    Malformed parameters never raise here: they become InvalidParameters and
    surface as a failed ERROR result when the rule is evaluated.
    """
    rule_type = RuleType(type)
    raw = dict(parameters or {})

    target_field = fields.pop("product_field", None) or raw.get("field")
    target_field = FIELD_ALIASES.get(target_field, target_field)
    if target_field is not None and not fields.get("attribute_id") and target_field not in PRODUCT_FIELDS:
        parsed: RuleParameters = InvalidParameters(reason=f"Unknown product field '{target_field}'", raw=raw)
    else:
        try:
            parsed = parse_parameters(rule_type, raw)
        except ConfigurationError as e:
            parsed = InvalidParameters(reason=e.message, raw=raw)

    return QualityRule(
        id=str(id),
        code=code,
        name=name,
        type=rule_type,
        severity=RuleSeverity(severity),
        parameters=parsed,
        product_field=target_field,
        **fields,
    )


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return [_plain(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    return value


def parameters_to_dict(params: RuleParameters) -> Dict[str, Any]:
    """JSON-safe view of a parameter record (compiled patterns omitted)"""
    return {
        item.name: _plain(getattr(params, item.name))
        for item in dataclass_fields(params)
        if item.compare
    }
