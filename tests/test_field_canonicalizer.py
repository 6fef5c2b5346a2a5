import pytest

from blinkit_scraper.core.field_canonicalizer import (
    IN_STOCK,
    OUT_OF_STOCK,
    FieldCanonicalizer,
    coerce_availability,
    coerce_discount,
    coerce_identifier,
    coerce_number,
    find_inner,
)


def test_coerce_number_strips_currency_and_separators():
    assert coerce_number("₹1,234.50") == 1234.5
    assert coerce_number("₹ 45") == 45.0
    assert coerce_number(42) == 42
    assert coerce_number(12.5) == 12.5


def test_coerce_number_rejects_non_numbers():
    assert coerce_number(True) is None
    assert coerce_number(float("nan")) is None
    assert coerce_number("N/A") is None
    assert coerce_number("abc") is None
    assert coerce_number("") is None
    assert coerce_number("1.2.3") is None
    assert coerce_number({"value": 3}) is None


def test_out_of_range_integers_are_absent():
    huge = 10 ** 400
    assert coerce_number(huge) is None
    assert coerce_identifier(huge) is None
    assert coerce_discount(huge) is None

    canonicalizer = FieldCanonicalizer()
    assert canonicalizer.extract({"price": huge, "offer_price": 45}, "price") == 45
    assert canonicalizer.extract({"quantity": huge}, "quantity") is None


def test_coerce_availability():
    assert coerce_availability(True) == IN_STOCK
    assert coerce_availability(False) == OUT_OF_STOCK
    assert coerce_availability("Out of Stock") == OUT_OF_STOCK
    assert coerce_availability("in stock") == IN_STOCK
    assert coerce_availability("maybe") is None
    assert coerce_availability(True, negated=True) == OUT_OF_STOCK


def test_coerce_discount_renders_numbers_as_percent():
    assert coerce_discount(15.0) == "15%"
    assert coerce_discount(12.5) == "12.5%"
    assert coerce_discount(" 20% OFF ") == "20% OFF"
    assert coerce_discount("") is None


def test_first_alias_wins():
    canonicalizer = FieldCanonicalizer()
    assert canonicalizer.extract({"title": "B", "name": "A"}, "name") == "A"
    assert canonicalizer.extract({"title": "B"}, "name") == "B"


def test_failed_coercion_falls_through_to_next_alias():
    canonicalizer = FieldCanonicalizer()
    assert canonicalizer.extract({"price": "free", "offer_price": "₹45"}, "price") == 45.0


def test_composite_fields_unwrap_one_level():
    canonicalizer = FieldCanonicalizer()
    assert canonicalizer.extract({"name": {"text": "Amul Milk"}}, "name") == "Amul Milk"
    assert canonicalizer.extract({"images": [{"url": "https://cdn/x.jpg"}]}, "image_url") == "https://cdn/x.jpg"
    assert canonicalizer.extract({"price": {"value": "₹30"}}, "price") == 30.0
    assert canonicalizer.extract({"offers": {"price": "99"}}, "price") == 99.0


def test_composite_unwrap_ignores_nested_containers():
    canonicalizer = FieldCanonicalizer()
    assert canonicalizer.extract({"name": {"text": {"deep": "x"}}}, "name") is None


def test_negated_availability_flags():
    canonicalizer = FieldCanonicalizer()
    assert canonicalizer.extract({"out_of_stock": True}, "availability") == OUT_OF_STOCK
    assert canonicalizer.extract({"sold_out": False}, "availability") == IN_STOCK
    assert canonicalizer.extract({"inventory": 4}, "availability") is None


def test_identifier_keeps_native_type():
    canonicalizer = FieldCanonicalizer()
    assert canonicalizer.extract({"id": 123}, "product_id") == 123
    assert canonicalizer.extract({"prid": " 456 "}, "product_id") == "456"
    assert canonicalizer.extract({"id": True}, "product_id") is None


def test_unknown_field_raises():
    with pytest.raises(KeyError):
        FieldCanonicalizer().extract({"name": "x"}, "colour")


def test_non_dict_candidate_yields_nothing():
    assert FieldCanonicalizer().extract(["name"], "name") is None


def test_extract_layered_prefers_inner_object():
    canonicalizer = FieldCanonicalizer()
    bases = ({"name": "Inner"}, {"name": "Outer", "price": 5})
    assert canonicalizer.extract_layered(bases, "name") == "Inner"
    assert canonicalizer.extract_layered(bases, "price") == 5


def test_find_inner_uses_wrapper_keys():
    assert find_inner({"product": {"name": "x"}, "tracking": {}}) == {"name": "x"}
    assert find_inner({"data": {}}) is None
    assert find_inner({"name": "x"}) is None


def test_missing_availability_is_absent_before_normalization():
    assert FieldCanonicalizer().extract({"name": "Milk"}, "availability") is None
