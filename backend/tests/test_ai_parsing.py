"""Tests for extracting structured data from model output."""

import math
from decimal import Decimal

import pytest

from tradeflow.core.ai_parsing import extract_json_object, normalize_amount, normalize_number, normalize_price


@pytest.mark.parametrize("text, expected", [
    ('```json\n{"counter_offer": 900}\n```', {"counter_offer": 900}),
    ('Sure!\n```\n{"counter_offer": 910}\n```\nThanks', {"counter_offer": 910}),
    ('My answer: {"response": "ok", "counter_offer": 920} hope that helps', {"response": "ok", "counter_offer": 920}),
    ('{"response": "use {braces} freely"} and then {"other": 1}', {"response": "use {braces} freely"}),
    ('{"response": "quote \\" inside", "n": {"x": 1}}', {"response": 'quote " inside', "n": {"x": 1}}),
])
def test_extract_json_object(text, expected):
    assert extract_json_object(text) == expected


@pytest.mark.parametrize("text", [
    "I cannot comply with that request.",
    "",
    "   ",
    None,
    42,
    "[1, 2, 3]",
    "{not json at all}",
    '{"unterminated": ',
])
def test_extract_json_object_returns_none(text):
    assert extract_json_object(text) is None


def test_extract_json_skips_broken_fence():
    """Test that a fenced block that does not parse falls through to the other strategies."""
    text = '```json\n{broken\n```\nActual: {"counter_offer": 930}'
    assert extract_json_object(text) == {"counter_offer": 930}


def test_normalize_number():
    assert normalize_number(900) == Decimal(900)
    assert normalize_number(900.5) == Decimal("900.5")
    assert normalize_number("$1,250.00") == Decimal("1250.00")
    assert normalize_number("-12.5%") == Decimal("-12.5")
    assert normalize_number(Decimal("3.14")) == Decimal("3.14")


@pytest.mark.parametrize("value", [None, True, False, "abc", "-", "1.2.3", math.nan, math.inf, Decimal("Infinity"), [], {}])
def test_normalize_number_rejects(value):
    assert normalize_number(value) is None


def test_normalize_price():
    assert normalize_price("12.345") == Decimal("12.35")
    assert normalize_price(950) == Decimal("950.00")
    assert normalize_price(0) is None
    assert normalize_price("-5") is None
    assert normalize_price("free") is None


@pytest.mark.parametrize("value", [1e300, Decimal("1E+40"), 10 ** 10, "9999999999.995", -1e300])
def test_amounts_outside_column_range_are_absent(value):
    """Test that huge amounts become None instead of raising."""
    assert normalize_amount(value) is None
    assert normalize_price(value) is None


def test_normalize_amount_keeps_sign():
    assert normalize_amount(-20) == Decimal("-20.00")
    assert normalize_amount("9999999999.99") == Decimal("9999999999.99")
