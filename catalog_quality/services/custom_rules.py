"""
Custom Rule Registry

In-process executor for CUSTOM quality rules. A rule's `script` parameter
names a registered check; checks are plain (sync or async) callables that
receive the product snapshot and the rule's options and return a
CustomRuleOutcome. Sync checks run in a worker thread, off the event loop.
Unknown script names raise, which the engine reports as a failed ERROR
result.
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from catalog_quality.quality.collaborators import CustomRuleOutcome
from catalog_quality.quality.product import ProductSnapshot
from catalog_quality.quality.values import ListValue, is_blank

logger = logging.getLogger(__name__)

CustomCheck = Callable[[ProductSnapshot, Mapping[str, Any]], Any]


class CustomRuleRegistry:
    """Maps script references to check functions"""

    def __init__(self):
        self._checks: Dict[str, CustomCheck] = {}

    def register(self, script_ref: str, check: Optional[CustomCheck] = None):
        """
        Register a check, directly or as a decorator.

        Usage:
            @registry.register("meta_title_mentions_name")
            def check(product, options): ...
        """
        def decorator(func: CustomCheck) -> CustomCheck:
            self._checks[script_ref] = func
            return func

        if check is not None:
            return decorator(check)
        return decorator

    def available(self) -> List[str]:
        return sorted(self._checks)

    async def execute(
        self,
        script_ref: str,
        product: ProductSnapshot,
        parameters: Mapping[str, Any],
    ) -> CustomRuleOutcome:
        """
        Raises:
            KeyError: no check registered under `script_ref`
        """
        check = self._checks.get(script_ref)
        if check is None:
            raise KeyError(f"Unknown custom rule script '{script_ref}'")

        if inspect.iscoroutinefunction(check):
            outcome = await check(product, parameters)
        else:
            outcome = await asyncio.to_thread(check, product, parameters)
            if inspect.isawaitable(outcome):
                outcome = await outcome

        if isinstance(outcome, CustomRuleOutcome):
            return outcome
        # Plain truthy/falsy results are accepted too
        return CustomRuleOutcome(passed=bool(outcome))


def meta_title_mentions_name(product: ProductSnapshot, options: Mapping[str, Any]) -> CustomRuleOutcome:
    """SEO title should contain the product name"""
    meta_title = product.value_of("meta_title")
    if is_blank(meta_title):
        return CustomRuleOutcome(passed=True)
    if product.name.strip().lower() in meta_title.as_text().lower():
        return CustomRuleOutcome(passed=True)
    return CustomRuleOutcome(passed=False, message="Meta title should mention the product name")


def short_description_differs(product: ProductSnapshot, options: Mapping[str, Any]) -> CustomRuleOutcome:
    """Short description should not just repeat the full description"""
    short = product.value_of("short_description")
    full = product.value_of("description")
    if is_blank(short) or is_blank(full):
        return CustomRuleOutcome(passed=True)
    if short.as_text().strip() == full.as_text().strip():
        return CustomRuleOutcome(passed=False, message="Short description repeats the full description")
    return CustomRuleOutcome(passed=True)


def min_image_count(product: ProductSnapshot, options: Mapping[str, Any]) -> CustomRuleOutcome:
    """At least `options["min"]` images (default 3)"""
    minimum = int(options.get("min", 3))
    images = product.value_of("images")
    if isinstance(images, ListValue):
        count = len(images.items)
    else:
        count = 0 if is_blank(images) else 1
    if count >= minimum:
        return CustomRuleOutcome(passed=True)
    return CustomRuleOutcome(passed=False, message=f"Product has {count} images, at least {minimum} recommended")


# Singleton instance
_registry_instance: Optional[CustomRuleRegistry] = None


def get_custom_rule_registry() -> CustomRuleRegistry:
    """Get singleton registry with the built-in checks registered"""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = CustomRuleRegistry()
        _registry_instance.register("meta_title_mentions_name", meta_title_mentions_name)
        _registry_instance.register("short_description_differs", short_description_differs)
        _registry_instance.register("min_image_count", min_image_count)
        logger.info(f"Custom rule registry ready: {', '.join(_registry_instance.available())}")
    return _registry_instance
