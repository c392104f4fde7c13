"""
Shared fixtures: in-memory collaborators for the quality engine.
"""
import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from catalog_quality.config import QualitySettings
from catalog_quality.quality.collaborators import CustomRuleOutcome, RuleSet
from catalog_quality.quality.errors import ProductNotFoundError
from catalog_quality.quality.product import build_product
from catalog_quality.quality.rules import build_rule
from catalog_quality.services.quality_engine import QualityEngine


class InMemoryRuleStore:
    def __init__(self, rules=None):
        self.rules = list(rules or [])
        self.load_count = 0

    async def load_active_rules(self):
        self.load_count += 1
        return RuleSet(rules=tuple(self.rules), loaded_at=datetime.now(timezone.utc))


class InMemoryProductProvider:
    def __init__(self, products=None, delay: float = 0.0):
        self.products = {product.id: product for product in (products or [])}
        self.delay = delay
        self.requested: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_product(self, product_id):
        self.requested.append(product_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if product_id not in self.products:
                raise ProductNotFoundError(f"Product not found: {product_id}", product_id=product_id)
            return self.products[product_id]
        finally:
            self.in_flight -= 1


class RecordingLogWriter:
    def __init__(self, error: Optional[Exception] = None, delay: float = 0.0):
        self.entries = []
        self.error = error
        self.delay = delay

    async def append(self, entry):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.entries.append(entry)


class StaticUniquenessLookup:
    def __init__(self, taken: Optional[Dict[str, set]] = None):
        self.taken = taken or {}
        self.calls = []

    async def exists(self, attribute_code, value, excluding_product_id, scope):
        self.calls.append((attribute_code, value, excluding_product_id, scope))
        return value.as_text() in self.taken.get(attribute_code, set())


class StubCustomExecutor:
    def __init__(self, outcome: Optional[CustomRuleOutcome] = None, error: Optional[Exception] = None):
        self.outcome = outcome or CustomRuleOutcome(passed=True)
        self.error = error

    async def execute(self, script_ref, product, parameters):
        if self.error is not None:
            raise self.error
        return self.outcome


@pytest.fixture
def settings():
    return QualitySettings(log_timeout_seconds=0.5, external_timeout_seconds=0.5)


@pytest.fixture
def make_rule():
    """Factory: make_rule("REQUIRED", field="name", severity="ERROR", ...)"""
    counter = {"n": 0}

    def _make(rule_type, field=None, severity="ERROR", parameters=None, code=None, **extra):
        counter["n"] += 1
        number = counter["n"]
        return build_rule(
            id=extra.pop("id", f"rule-{number}"),
            code=code or f"{rule_type.lower()}_{field or 'product'}_{number}",
            name=extra.pop("name", f"{rule_type} {field or ''}".strip()),
            type=rule_type,
            severity=severity,
            parameters=parameters,
            product_field=field,
            position=extra.pop("position", number),
            **extra,
        )

    return _make


@pytest.fixture
def widget():
    """Product from the reference scenario: valid name, empty description, negative price"""
    return build_product(
        id="p-1",
        sku="WID-1",
        name="Widget",
        category_id="c1",
        fields={"description": "", "price": -5},
    )


@pytest.fixture
def make_engine(settings):
    """Factory wiring a QualityEngine to in-memory collaborators"""

    def _make(rules=None, products=None, log_writer=None, uniqueness_lookup=None,
              custom_executor=None, engine_settings=None, provider=None):
        return QualityEngine(
            rule_store=InMemoryRuleStore(rules),
            product_provider=provider or InMemoryProductProvider(products),
            log_writer=log_writer if log_writer is not None else RecordingLogWriter(),
            uniqueness_lookup=uniqueness_lookup,
            custom_executor=custom_executor,
            settings=engine_settings or settings,
        )

    return _make


@pytest.fixture
def make_provider():
    return InMemoryProductProvider


@pytest.fixture
def make_log_writer():
    return RecordingLogWriter


@pytest.fixture
def make_uniqueness_lookup():
    return StaticUniquenessLookup


@pytest.fixture
def make_custom_executor():
    return StubCustomExecutor
