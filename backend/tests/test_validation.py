"""
Payload validation tests (no HTTP).
"""

import pytest

from smartshop.models import Product
from smartshop.validation import (
    MAX_AMOUNT_CENTS,
    ModelValidationPolicy,
    ValidationError,
    check_amount,
    coerce_int,
    enforce_rules_product,
    validate_payload,
)

POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "selling_price_cents", "is_active"},
    required_on_create={"name"},
)


class TestCoerceInt:

    @pytest.mark.parametrize("raw,expected", [(5, 5), ("150", 150), (" 42 ", 42), ("-3", -3)])
    def test_accepts(self, raw, expected):
        assert coerce_int("qty", raw) == expected

    @pytest.mark.parametrize("raw", [True, 1.5, "1.0", "1e3", "", "abc", None, [1]])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            coerce_int("qty", raw)


class TestValidatePayload:

    def test_create_requires_fields(self):
        with pytest.raises(ValidationError, match="Missing required fields: name"):
            validate_payload(model=Product, payload={}, policy=POLICY, partial=False)

    def test_partial_skips_required(self):
        assert validate_payload(model=Product, payload={"code": " X1 "}, policy=POLICY, partial=True) == {"code": "X1"}

    def test_rejects_non_writable(self):
        with pytest.raises(ValidationError, match="Field not allowed: shop_id"):
            validate_payload(model=Product, payload={"name": "A", "shop_id": 2}, policy=POLICY, partial=False)

    def test_rejects_null_for_required_column(self):
        with pytest.raises(ValidationError, match="name cannot be null"):
            validate_payload(model=Product, payload={"name": None}, policy=POLICY, partial=True)

    def test_boolean_must_be_bool(self):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload={"is_active": "yes"}, policy=POLICY, partial=True)

    def test_string_length_checked(self):
        with pytest.raises(ValidationError, match="exceeds max length 100"):
            validate_payload(model=Product, payload={"code": "x" * 101}, policy=POLICY, partial=True)

    def test_non_dict_payload(self):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload=["name"], policy=POLICY, partial=True)


class TestBusinessRules:

    def test_amount_ceiling(self):
        check_amount("x", MAX_AMOUNT_CENTS)
        with pytest.raises(ValidationError):
            check_amount("x", MAX_AMOUNT_CENTS + 1)

    def test_amount_required(self):
        with pytest.raises(ValidationError, match="x is required"):
            check_amount("x", None, allow_none=False)

    def test_blank_code_becomes_none(self):
        patch = {"code": ""}
        enforce_rules_product(patch)
        assert patch == {"code": None}
