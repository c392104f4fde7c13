"""Product snapshot handed to the engine by a product provider"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from catalog_quality.quality.values import ABSENT, AttributeValue, to_attribute_value


@dataclass(frozen=True)
class ProductAttribute:
    attribute_id: str
    code: str
    value: AttributeValue


@dataclass(frozen=True)
class ProductSnapshot:
    """
    Read-only view of one product at evaluation time.

    Attributes:
        attributes: Attribute values keyed by attribute id. An attribute missing
            from this mapping is "absent", not "empty".
        fields: Core product fields (name, description, price, images, ...)
            already converted to attribute values.
        channel_id: Channel context of this evaluation, if any.
    """
    id: str
    sku: str
    name: str
    category_id: Optional[str] = None
    family_id: Optional[str] = None
    channel_id: Optional[str] = None
    attributes: Mapping[str, ProductAttribute] = field(default_factory=dict)
    fields: Mapping[str, AttributeValue] = field(default_factory=dict)

    def attribute_value(self, attribute_id: str) -> AttributeValue:
        attribute = self.attributes.get(attribute_id)
        return attribute.value if attribute is not None else ABSENT

    def field_value(self, name: str) -> AttributeValue:
        return self.fields.get(name, ABSENT)

    def value_of(self, code: str) -> AttributeValue:
        """Value by attribute code, falling back to a core field of that name"""
        for attribute in self.attributes.values():
            if attribute.code == code:
                return attribute.value
        return self.field_value(code)

    def scope_value(self, axis: str) -> Optional[str]:
        return {
            "category": self.category_id,
            "family": self.family_id,
            "channel": self.channel_id,
        }.get(axis)


def build_product(
    *,
    id: Any,
    sku: str,
    name: str,
    category_id: Any = None,
    family_id: Any = None,
    channel_id: Any = None,
    attributes: Optional[Mapping[str, Mapping[str, Any]]] = None,
    fields: Optional[Mapping[str, Any]] = None,
) -> ProductSnapshot:
    """
    Build a snapshot from plain Python values.

    Args:
        attributes: {attribute_id: {"code": ..., "value": ...}}
        fields: {field_name: raw value}; "name" and "sku" default to the
            product's own name and sku
    """
    converted_attributes: Dict[str, ProductAttribute] = {}
    for attribute_id, entry in (attributes or {}).items():
        converted_attributes[str(attribute_id)] = ProductAttribute(
            attribute_id=str(attribute_id),
            code=entry["code"],
            value=to_attribute_value(entry.get("value")),
        )

    converted_fields = {"name": to_attribute_value(name), "sku": to_attribute_value(sku)}
    for field_name, raw in (fields or {}).items():
        converted_fields[field_name] = to_attribute_value(raw)

    return ProductSnapshot(
        id=str(id),
        sku=sku,
        name=name,
        category_id=str(category_id) if category_id is not None else None,
        family_id=str(family_id) if family_id is not None else None,
        channel_id=str(channel_id) if channel_id is not None else None,
        attributes=converted_attributes,
        fields=converted_fields,
    )
