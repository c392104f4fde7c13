"""
Unit tests for rule evaluators

Tests every rule type, absent-value handling, target resolution, and the
UNIQUE/CUSTOM runner with its timeout.
"""
import asyncio
import pytest

from catalog_quality.quality.collaborators import CustomRuleOutcome, UniquenessScope
from catalog_quality.quality.errors import ConfigurationError, EvaluatorExecutionError
from catalog_quality.quality.evaluators import (
    ExternalRuleRunner,
    check_parameters,
    evaluate_pure,
    resolve_target_value,
)
from catalog_quality.quality.product import build_product
from catalog_quality.quality.values import ABSENT


def product(**fields):
    attributes = fields.pop("attributes", None)
    return build_product(
        id=fields.pop("id", "p-1"),
        sku=fields.pop("sku", "SKU-1"),
        name=fields.pop("name", "Widget"),
        category_id=fields.pop("category_id", None),
        attributes=attributes,
        fields=fields,
    )


class TestTargetResolution:
    """Test which value a rule looks at"""

    def test_attribute_by_id(self, make_rule):
        rule = make_rule("REQUIRED", attribute_id="a1", attribute_code="color")
        item = product(attributes={"a1": {"code": "color", "value": "red"}})
        assert resolve_target_value(rule, item).as_text() == "red"

    def test_missing_attribute_is_absent(self, make_rule):
        rule = make_rule("REQUIRED", attribute_id="a1", attribute_code="color")
        assert resolve_target_value(rule, product()) is ABSENT

    def test_product_field(self, make_rule):
        rule = make_rule("MIN_LENGTH", field="description", parameters={"min": 1})
        assert resolve_target_value(rule, product(description="Long")).as_text() == "Long"

    def test_rule_without_target_raises(self, make_rule):
        rule = make_rule("REQUIRED")
        with pytest.raises(ConfigurationError, match="no target"):
            resolve_target_value(rule, product())

    def test_custom_rule_needs_no_target(self, make_rule):
        rule = make_rule("CUSTOM", parameters={"scriptRef": "x"})
        assert resolve_target_value(rule, product()) is ABSENT


class TestRequired:
    """Test REQUIRED rules"""

    @pytest.mark.parametrize("value", [None, "", "  ", []])
    def test_blank_fails(self, make_rule, value):
        rule = make_rule("REQUIRED", field="brand")
        outcome = evaluate_pure(rule, product(brand=value))
        assert not outcome.passed
        assert "'brand' is required" in outcome.message

    def test_zero_and_false_are_present(self, make_rule):
        assert evaluate_pure(make_rule("REQUIRED", field="price"), product(price=0)).passed
        assert evaluate_pure(make_rule("REQUIRED", field="brand"), product(brand=False)).passed


class TestLengthRules:
    """Test MIN_LENGTH and MAX_LENGTH"""

    def test_min_length_fails_short_text(self, make_rule):
        rule = make_rule("MIN_LENGTH", field="description", parameters={"min": 120})
        outcome = evaluate_pure(rule, product(description=""))
        assert not outcome.passed
        assert "at least 120 characters (found 0)" in outcome.message

    def test_min_length_passes_absent(self, make_rule):
        rule = make_rule("MIN_LENGTH", field="description", parameters={"min": 120})
        assert evaluate_pure(rule, product()).passed

    def test_max_length(self, make_rule):
        rule = make_rule("MAX_LENGTH", field="meta_title", parameters={"max": 5})
        assert evaluate_pure(rule, product(meta_title="short")).passed
        assert not evaluate_pure(rule, product(meta_title="too long")).passed

    def test_length_of_number_uses_text_form(self, make_rule):
        rule = make_rule("MAX_LENGTH", field="price", parameters={"max": 4})
        assert evaluate_pure(rule, product(price=12.50)).passed  # "12.5"


class TestRegex:
    """Test REGEX rules use full matches"""

    def test_full_match_required(self, make_rule):
        rule = make_rule("REGEX", field="sku", parameters={"pattern": "[A-Z]+-\\d+"})
        assert evaluate_pure(rule, product(sku="ABC-12")).passed
        assert not evaluate_pure(rule, product(sku="ABC-12x")).passed

    def test_every_list_item_checked(self, make_rule):
        rule = make_rule("REGEX", field="images", parameters={"pattern": "https://.+\\.jpg"})
        outcome = evaluate_pure(rule, product(images=["https://cdn/a.jpg", "https://cdn/b.png"]))
        assert not outcome.passed
        assert "b.png" in outcome.message


class TestRange:
    """Test RANGE rules"""

    def test_negative_price_fails(self, make_rule):
        rule = make_rule("RANGE", field="price", parameters={"min": 0.01, "max": 999999})
        outcome = evaluate_pure(rule, product(price=-5))
        assert not outcome.passed
        assert "between 0.01 and 999999" in outcome.message

    def test_numeric_text_accepted(self, make_rule):
        rule = make_rule("RANGE", field="weight", parameters={"min": 0})
        assert evaluate_pure(rule, product(weight="2,5")).passed

    def test_non_numeric_fails(self, make_rule):
        rule = make_rule("RANGE", field="weight", parameters={"max": 10})
        outcome = evaluate_pure(rule, product(weight="heavy"))
        assert not outcome.passed
        assert "is not a number" in outcome.message

    def test_bounds_inclusive(self, make_rule):
        rule = make_rule("RANGE", field="price", parameters={"min": 1, "max": 2})
        assert evaluate_pure(rule, product(price=1)).passed
        assert evaluate_pure(rule, product(price=2)).passed


class TestEnum:
    """Test ENUM rules"""

    def test_case_sensitive_by_default(self, make_rule):
        rule = make_rule("ENUM", field="brand", parameters={"values": ["Acme", "Globex"]})
        assert evaluate_pure(rule, product(brand="Acme")).passed
        assert not evaluate_pure(rule, product(brand="acme")).passed

    def test_case_insensitive(self, make_rule):
        rule = make_rule("ENUM", field="brand", parameters={"values": ["Acme"], "caseSensitive": False})
        assert evaluate_pure(rule, product(brand="ACME")).passed

    def test_numeric_values_compare_as_numbers(self, make_rule):
        rule = make_rule("ENUM", field="weight", parameters={"values": ["1", "2.5"]})
        assert evaluate_pure(rule, product(weight=2.50)).passed


class TestFormat:
    """Test FORMAT rules"""

    def test_gtin(self, make_rule):
        rule = make_rule("FORMAT", attribute_id="a-ean", attribute_code="ean", parameters={"format": "gtin"})
        valid = product(attributes={"a-ean": {"code": "ean", "value": "4006381333931"}})
        invalid = product(attributes={"a-ean": {"code": "ean", "value": "4006381333932"}})
        assert evaluate_pure(rule, valid).passed
        outcome = evaluate_pure(rule, invalid)
        assert not outcome.passed
        assert "not a valid gtin" in outcome.message

    def test_absent_passes(self, make_rule):
        rule = make_rule("FORMAT", field="url_key", parameters={"format": "slug"})
        assert evaluate_pure(rule, product()).passed


class TestRelationship:
    """Test RELATIONSHIP rules"""

    def test_requires(self, make_rule):
        rule = make_rule(
            "RELATIONSHIP", field="weight",
            parameters={"otherAttribute": "manufacturer", "relation": "requires"},
        )
        assert evaluate_pure(rule, product()).passed
        assert evaluate_pure(rule, product(weight=2, manufacturer="Acme")).passed
        outcome = evaluate_pure(rule, product(weight=2))
        assert not outcome.passed
        assert "'manufacturer' is required when 'weight' is set" in outcome.message

    def test_greater_than(self, make_rule):
        rule = make_rule(
            "RELATIONSHIP", attribute_id="a-list", attribute_code="list_price",
            parameters={"otherAttribute": "price", "relation": "greater_than"},
        )
        higher = product(price=10, attributes={"a-list": {"code": "list_price", "value": 12}})
        lower = product(price=10, attributes={"a-list": {"code": "list_price", "value": 8}})
        assert evaluate_pure(rule, higher).passed
        assert not evaluate_pure(rule, lower).passed

    def test_equals(self, make_rule):
        rule = make_rule(
            "RELATIONSHIP", field="meta_title",
            parameters={"otherAttribute": "name", "relation": "equals"},
        )
        assert evaluate_pure(rule, product(name="Widget", meta_title="Widget")).passed
        outcome = evaluate_pure(rule, product(name="Widget", meta_title="Gadget"))
        assert not outcome.passed
        assert "'meta_title' must equal 'name'" in outcome.message

    def test_equals_compares_numbers_numerically(self, make_rule):
        rule = make_rule(
            "RELATIONSHIP", field="price",
            parameters={"otherAttribute": "weight", "relation": "equals"},
        )
        assert evaluate_pure(rule, product(price="12.50", weight=12.5)).passed
        assert not evaluate_pure(rule, product(price=12, weight=13)).passed

    def test_not_equals(self, make_rule):
        rule = make_rule(
            "RELATIONSHIP", field="short_description",
            parameters={"otherAttribute": "description", "relation": "not_equals"},
        )
        assert evaluate_pure(rule, product(short_description="Short", description="Long text")).passed
        outcome = evaluate_pure(rule, product(short_description="Same", description="Same"))
        assert not outcome.passed
        assert "must differ from 'description'" in outcome.message

    def test_less_than(self, make_rule):
        rule = make_rule(
            "RELATIONSHIP", field="price",
            parameters={"otherAttribute": "weight", "relation": "less_than"},
        )
        assert evaluate_pure(rule, product(price=5, weight=10)).passed
        outcome = evaluate_pure(rule, product(price=10, weight=10))
        assert not outcome.passed
        assert "'price' (10) must be less than 'weight' (10)" in outcome.message

    def test_comparison_needs_numbers(self, make_rule):
        rule = make_rule(
            "RELATIONSHIP", field="brand",
            parameters={"otherAttribute": "price", "relation": "less_than"},
        )
        outcome = evaluate_pure(rule, product(brand="Acme", price=10))
        assert not outcome.passed
        assert "must both be numeric" in outcome.message

    def test_comparison_skipped_when_one_side_absent(self, make_rule):
        rule = make_rule(
            "RELATIONSHIP", field="meta_title",
            parameters={"otherAttribute": "name", "relation": "not_equals"},
        )
        assert evaluate_pure(rule, product(name="Widget")).passed
        assert not evaluate_pure(rule, product(name="Widget", meta_title="Widget")).passed

    def test_source_parameter_as_target(self, make_rule):
        rule = make_rule(
            "RELATIONSHIP",
            parameters={"source": "short_description", "otherAttribute": "description", "relation": "not_equals"},
        )
        outcome = evaluate_pure(rule, product(short_description="Same", description="Same"))
        assert not outcome.passed
        assert "'short_description' must differ from 'description'" in outcome.message


class TestParameterChecks:
    """Test malformed rules raise ConfigurationError at evaluation"""

    def test_invalid_parameters(self, make_rule):
        rule = make_rule("MIN_LENGTH", field="name", parameters={"min": "lots"})
        with pytest.raises(ConfigurationError):
            check_parameters(rule)
        with pytest.raises(ConfigurationError):
            evaluate_pure(rule, product())


class TestExternalRuleRunner:
    """Test UNIQUE and CUSTOM evaluation"""

    @pytest.mark.asyncio
    async def test_unique_duplicate_fails(self, make_rule, make_uniqueness_lookup):
        lookup = make_uniqueness_lookup({"sku": {"SKU-1"}})
        runner = ExternalRuleRunner(uniqueness_lookup=lookup)
        rule = make_rule("UNIQUE", field="sku")

        outcome = await runner.evaluate(rule, product())

        assert not outcome.passed
        assert "already used" in outcome.message
        attribute_code, _, excluded, scope = lookup.calls[0]
        assert attribute_code == "sku"
        assert excluded == "p-1"
        assert scope == UniquenessScope()

    @pytest.mark.asyncio
    async def test_unique_category_scope(self, make_rule, make_uniqueness_lookup):
        lookup = make_uniqueness_lookup()
        runner = ExternalRuleRunner(uniqueness_lookup=lookup)
        rule = make_rule("UNIQUE", field="name", parameters={"scope": "category"})

        assert (await runner.evaluate(rule, product(category_id="c1"))).passed
        assert lookup.calls[0][3] == UniquenessScope(category_id="c1")

    @pytest.mark.asyncio
    async def test_unique_blank_value_skips_lookup(self, make_rule, make_uniqueness_lookup):
        lookup = make_uniqueness_lookup()
        runner = ExternalRuleRunner(uniqueness_lookup=lookup)

        assert (await runner.evaluate(make_rule("UNIQUE", field="url_key"), product())).passed
        assert lookup.calls == []

    @pytest.mark.asyncio
    async def test_unique_without_lookup(self, make_rule):
        with pytest.raises(EvaluatorExecutionError, match="No uniqueness lookup"):
            await ExternalRuleRunner().evaluate(make_rule("UNIQUE", field="sku"), product())

    @pytest.mark.asyncio
    async def test_custom_outcome_message(self, make_rule, make_custom_executor):
        executor = make_custom_executor(CustomRuleOutcome(passed=False, message="Needs 3 images"))
        runner = ExternalRuleRunner(custom_executor=executor)
        rule = make_rule("CUSTOM", parameters={"scriptRef": "min_image_count"})

        outcome = await runner.evaluate(rule, product())
        assert not outcome.passed
        assert outcome.message == "Needs 3 images"

    @pytest.mark.asyncio
    async def test_custom_exception_wrapped(self, make_rule, make_custom_executor):
        runner = ExternalRuleRunner(custom_executor=make_custom_executor(error=RuntimeError("boom")))
        rule = make_rule("CUSTOM", parameters={"scriptRef": "broken"})

        with pytest.raises(EvaluatorExecutionError, match="boom") as exc_info:
            await runner.evaluate(rule, product())
        assert exc_info.value.rule_code == rule.code
        assert exc_info.value.details["cause_type"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_custom_timeout(self, make_rule):
        class SlowExecutor:
            async def execute(self, script_ref, product, parameters):
                await asyncio.sleep(1)
                return CustomRuleOutcome(passed=True)

        runner = ExternalRuleRunner(custom_executor=SlowExecutor(), timeout_seconds=0.01)
        rule = make_rule("CUSTOM", parameters={"scriptRef": "slow"})

        with pytest.raises(EvaluatorExecutionError, match="timed out"):
            await runner.evaluate(rule, product())
