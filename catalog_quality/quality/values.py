"""
Attribute value variant

Product attribute values are one of a closed set of shapes:
Text, Number, Bool, List or Absent. Evaluators branch on the shape instead of
inspecting arbitrary Python objects.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple


class AttributeValue:
    """Base class for attribute value shapes"""

    is_absent = False

    def as_text(self) -> str:
        raise NotImplementedError

    def as_number(self) -> Optional[Decimal]:
        """Numeric view of the value, or None when not numeric"""
        return None

    def to_json(self) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class TextValue(AttributeValue):
    text: str

    def as_text(self) -> str:
        return self.text

    def as_number(self) -> Optional[Decimal]:
        return _parse_decimal(self.text)

    def to_json(self) -> Any:
        return self.text


@dataclass(frozen=True)
class NumberValue(AttributeValue):
    number: Decimal

    def as_text(self) -> str:
        # 12.50 -> "12.5", 3.0 -> "3", 1E+30 -> "1000...0"
        text = format(self.number, "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text

    def as_number(self) -> Optional[Decimal]:
        return self.number

    def to_json(self) -> Any:
        if not self.number.is_finite():
            return str(self.number)
        if self.number == self.number.to_integral_value():
            return int(self.number)
        return float(self.number)


@dataclass(frozen=True)
class BoolValue(AttributeValue):
    flag: bool

    def as_text(self) -> str:
        return "true" if self.flag else "false"

    def to_json(self) -> Any:
        return self.flag


@dataclass(frozen=True)
class ListValue(AttributeValue):
    items: Tuple[AttributeValue, ...]

    def as_text(self) -> str:
        return ", ".join(item.as_text() for item in self.items)

    def to_json(self) -> Any:
        return [item.to_json() for item in self.items]


@dataclass(frozen=True)
class AbsentValue(AttributeValue):
    """The product does not carry this attribute at all"""

    is_absent = True

    def as_text(self) -> str:
        return ""

    def to_json(self) -> Any:
        return None


ABSENT = AbsentValue()


def _parse_decimal(raw: str) -> Optional[Decimal]:
    candidate = raw.strip()
    # Decimal comma: "12,5"
    if candidate.count(",") == 1 and "." not in candidate:
        candidate = candidate.replace(",", ".")
    if not candidate:
        return None
    try:
        number = Decimal(candidate)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def to_attribute_value(raw: Any) -> AttributeValue:
    """
    Convert a raw Python value (as stored or received as JSON) into the variant.

    None maps to ABSENT. Values that are already variants pass through.

    Raises:
        TypeError: for values outside the closed set (dicts, bytes, objects)
            and for non-finite numbers (NaN, infinity)
    """
    if isinstance(raw, AttributeValue):
        return raw
    if raw is None:
        return ABSENT
    # bool before int: bool is an int subclass
    if isinstance(raw, bool):
        return BoolValue(raw)
    if isinstance(raw, (int, Decimal, float)):
        number = Decimal(str(raw)) if isinstance(raw, float) else Decimal(raw)
        if not number.is_finite():
            raise TypeError(f"Unsupported non-finite number: {raw}")
        return NumberValue(number)
    if isinstance(raw, str):
        return TextValue(raw)
    if isinstance(raw, (list, tuple)):
        return ListValue(tuple(to_attribute_value(item) for item in raw if item is not None))
    raise TypeError(f"Unsupported attribute value type: {type(raw).__name__}")


def is_blank(value: AttributeValue) -> bool:
    """True when a value is absent, whitespace-only text or an empty list"""
    if value.is_absent:
        return True
    if isinstance(value, TextValue):
        return not value.text.strip()
    if isinstance(value, ListValue):
        return len(value.items) == 0
    return False
