"""
Unit tests for attribute values and named formats

Tests value conversion, blank detection, numeric views, format validators.
"""
import pytest
from decimal import Decimal

from catalog_quality.quality.formats import (
    available_formats,
    get_format_validator,
    gtin_checksum_ok,
    is_email,
    is_gtin,
    is_isbn13,
    is_url,
    register_format,
)
from catalog_quality.quality.values import (
    ABSENT,
    BoolValue,
    ListValue,
    NumberValue,
    TextValue,
    is_blank,
    to_attribute_value,
)


class TestValueConversion:
    """Test raw Python values map onto the closed value variant"""

    def test_none_is_absent(self):
        assert to_attribute_value(None) is ABSENT

    def test_bool_is_not_treated_as_number(self):
        assert to_attribute_value(True) == BoolValue(True)

    def test_int_and_float_become_decimal(self):
        assert to_attribute_value(3) == NumberValue(Decimal(3))
        assert to_attribute_value(0.1) == NumberValue(Decimal("0.1"))

    def test_list_drops_none_items(self):
        value = to_attribute_value(["a", None, 2])
        assert value == ListValue((TextValue("a"), NumberValue(Decimal(2))))

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            to_attribute_value({"nested": "object"})

    def test_non_finite_numbers_rejected(self):
        with pytest.raises(TypeError, match="non-finite"):
            to_attribute_value(float("inf"))
        with pytest.raises(TypeError, match="non-finite"):
            to_attribute_value(Decimal("NaN"))

    def test_to_json_round_trips_plain_values(self):
        assert to_attribute_value(12.5).to_json() == 12.5
        assert to_attribute_value(4).to_json() == 4
        assert to_attribute_value(["x"]).to_json() == ["x"]
        assert ABSENT.to_json() is None


class TestBlankValues:
    """Test what counts as missing for REQUIRED"""

    @pytest.mark.parametrize("raw", [None, "", "   ", []])
    def test_blank(self, raw):
        assert is_blank(to_attribute_value(raw))

    @pytest.mark.parametrize("raw", ["x", 0, False, ["a"]])
    def test_not_blank(self, raw):
        assert not is_blank(to_attribute_value(raw))


class TestNumericView:
    """Test as_number parsing of text values"""

    def test_text_number(self):
        assert TextValue(" 42.50 ").as_number() == Decimal("42.50")

    def test_decimal_comma(self):
        assert TextValue("12,5").as_number() == Decimal("12.5")

    def test_non_numeric_text(self):
        assert TextValue("abc").as_number() is None
        assert TextValue("NaN").as_number() is None

    def test_number_text_is_normalized(self):
        assert NumberValue(Decimal("12.50")).as_text() == "12.5"
        assert NumberValue(Decimal("3.0")).as_text() == "3"

    def test_huge_number_text_is_plain(self):
        assert NumberValue(Decimal("1E+30")).as_text() == "1" + "0" * 30
        assert NumberValue(Decimal("1E+30")).to_json() == 10 ** 30

    def test_non_finite_number_never_raises(self):
        assert NumberValue(Decimal("Infinity")).to_json() == "Infinity"


class TestFormats:
    """Test built-in format validators"""

    def test_email(self):
        assert is_email("buyer@example.com")
        assert not is_email("buyer@example")
        assert not is_email("not an email")

    def test_url(self):
        assert is_url("https://shop.example.com/p/1")
        assert not is_url("ftp://example.com")
        assert not is_url("example.com")

    def test_malformed_url_is_invalid(self):
        assert not is_url("http://[bad")
        assert not is_url("https://[::1")

    def test_gtin_checksum(self):
        assert gtin_checksum_ok("4006381333931")
        assert not gtin_checksum_ok("4006381333932")

    def test_gtin_lengths(self):
        assert is_gtin("036000291452")  # UPC-A
        assert is_gtin("4006381333931")  # EAN-13
        assert not is_gtin("40063813339")  # 11 digits

    def test_isbn13_accepts_hyphens(self):
        assert is_isbn13("978-3-16-148410-0")
        assert not is_isbn13("4006381333931")  # valid EAN, not a book prefix

    def test_lookup_is_case_insensitive(self):
        assert get_format_validator(" EMAIL ") is is_email

    def test_gtin13_hyphenated_alias(self):
        assert get_format_validator("gtin-13")("4006381333931")
        assert not get_format_validator("GTIN-13")("036000291452")

    def test_unknown_format_raises(self):
        with pytest.raises(KeyError):
            get_format_validator("postcode")

    def test_register_format(self):
        register_format("even_digits", lambda value: value.isdigit() and len(value) % 2 == 0)
        assert "even_digits" in available_formats()
        assert get_format_validator("even_digits")("1234")
