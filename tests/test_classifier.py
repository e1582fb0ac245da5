"""
Unit tests for the LLM-backed content classifier and its fallbacks.
"""

import pytest

from core.ai.base import parse_json_object
from core.exceptions import AIProviderError
from workers.ai_generator.models import UNCATEGORIZED


async def test_categorize_product_parses_reply(classifier):
    result = await classifier.categorize_product("Noise Cancelling Headphones", "Over-ear, 30h battery")

    assert result.category == "Electronics"
    assert result.confidence == pytest.approx(0.92)
    assert result.keywords == ["tech", "deal"]
    assert result.fallback is False


async def test_categorize_product_falls_back_when_provider_fails(failing_classifier):
    result = await failing_classifier.categorize_product("Anything", "at all")

    assert result == UNCATEGORIZED
    assert result.category == "Uncategorized"
    assert result.confidence == 0
    assert result.keywords == []
    assert result.fallback is True


async def test_categorize_product_falls_back_on_malformed_json(make_classifier):
    classifier = make_classifier(lambda prompt: "this is not json")

    result = await classifier.categorize_product("Lamp", "Desk lamp")

    assert result.fallback is True
    assert result.category == "Uncategorized"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(1.7, 1.0), (-0.3, 0.0), (None, 0.5), ("high", 0.5), ("0.25", 0.25)],
)
async def test_confidence_is_clamped(make_classifier, raw, expected):
    classifier = make_classifier(lambda prompt: {"category": "Travel", "confidence": raw})

    result = await classifier.categorize_product("Suitcase", "")

    assert result.confidence == pytest.approx(expected)


async def test_generate_product_content_echoes_input_on_failure(failing_classifier):
    content = await failing_classifier.generate_product_content("Robot Vacuum", "Cleans floors", "Electronics")

    assert content.title == "Robot Vacuum"
    assert content.description == "Cleans floors"
    assert content.features == []
    assert content.benefits == []
    assert content.fallback is True


async def test_generate_product_content(classifier):
    content = await classifier.generate_product_content("Robot Vacuum", "Cleans floors", "Electronics")

    assert content.title == "Robot Vacuum Deluxe"
    assert content.features == ["Fast", "Light"]
    assert content.fallback is False


async def test_generate_coupon_codes_drops_malformed_entries(make_classifier):
    reply = {
        "codes": [
            {"code": "SAVE10", "description": "10% off", "discountType": "percentage", "discountValue": 10},
            {"code": "FLAT5", "description": "$5 off", "discountType": "FIXED", "discountValue": "5",
             "minimumSpend": 20, "expiresIn": 30},
            {"code": "BOGUS", "discountType": "bogo", "discountValue": 1},
            {"description": "no code", "discountType": "fixed", "discountValue": 3},
            {"code": "NOVALUE", "discountType": "fixed"},
        ]
    }
    classifier = make_classifier(lambda prompt: reply)

    coupons = await classifier.generate_coupon_codes("Acme", "Fashion", count=5)

    assert [c.code for c in coupons] == ["SAVE10", "FLAT5"]
    assert coupons[0].expires_in_days == 7
    assert coupons[1].discount_type == "fixed"
    assert coupons[1].discount_value == 5.0
    assert coupons[1].minimum_spend == 20.0
    assert coupons[1].expires_in_days == 30
    assert all(c.category == "Fashion" for c in coupons)


async def test_generate_coupon_codes_failure_returns_empty(failing_classifier):
    assert await failing_classifier.generate_coupon_codes("Acme", "Fashion") == []


async def test_trending_keywords(classifier, failing_classifier):
    keywords = await classifier.trending_keywords("Beauty")

    assert keywords[0] == "Beauty Gadget 1"
    assert await failing_classifier.trending_keywords("Beauty") == []


def test_parse_json_object_strips_code_fences():
    raw = '```json\n{"keywords": ["a", "b"]}\n```'

    assert parse_json_object(raw) == {"keywords": ["a", "b"]}


def test_parse_json_object_rejects_non_objects():
    with pytest.raises(AIProviderError):
        parse_json_object("[1, 2, 3]")
    with pytest.raises(AIProviderError):
        parse_json_object("{not json")
