"""
Scope Resolver

Selects the rules applicable to a product. A rule applies when it is active
and every non-null scope field (category, family, channel) equals the
product's value on that axis. The attribute scope never excludes a rule: a
product that lacks the attribute is evaluated against an absent value.
"""
from typing import Iterable, List

from catalog_quality.quality.product import ProductSnapshot
from catalog_quality.quality.rules import QualityRule


def rule_applies(rule: QualityRule, product: ProductSnapshot) -> bool:
    if not rule.is_active:
        return False
    if rule.category_id is not None and rule.category_id != product.category_id:
        return False
    if rule.family_id is not None and rule.family_id != product.family_id:
        return False
    if rule.channel_id is not None and rule.channel_id != product.channel_id:
        return False
    return True


def resolve_applicable_rules(product: ProductSnapshot, rules: Iterable[QualityRule]) -> List[QualityRule]:
    """
    Return the rules that apply to a product, ordered by position then code.

    Args:
        product: Product with resolved category/family/channel
        rules: Full rule set (inactive rules are skipped)

    Returns:
        Ordered list of applicable rules
    """
    applicable = [rule for rule in rules if rule_applies(rule, product)]
    return sorted(applicable, key=lambda rule: rule.sort_key)
