"""
End-to-end tests for the generator run: counts, log lifecycle, run lock,
error aggregation and graceful degradation.
"""

import asyncio
from datetime import timedelta

import httpx
import pytest
from sqlalchemy import func, select

from core.config import settings
from core.exceptions import GeneratorAlreadyRunningError
from core.models import (
    AffiliateNetwork,
    AIGenerationLog,
    Coupon,
    GenerationStatus,
    Merchant,
    NetworkStatus,
    Product,
)
from workers.affiliate.networks import GenericNetworkClient
from workers.ai_generator import orchestrator
from workers.ai_generator.classifier import ContentClassifier
from workers.ai_generator.lock import acquire_lock
from workers.ai_generator.models import GeneratorConfig
from workers.ai_generator.orchestrator import coerce_config, get_recent_logs, get_status, run_generation

TRENDS_ONLY = {
    "sources": {"googleTrends": True, "amazonAPI": False, "affiliateFeeds": False},
    "categories": ["Electronics"],
}


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def _only_log(session_factory) -> AIGenerationLog:
    async with session_factory() as session:
        return (await session.execute(select(AIGenerationLog))).scalar_one()


# ── Config ────────────────────────────────────────────────────────────

def test_none_and_empty_config_equal_defaults():
    assert coerce_config(None) == GeneratorConfig()
    assert coerce_config({}) == GeneratorConfig()


def test_partial_config_merges_over_defaults():
    config = coerce_config({"qualityThreshold": 3.5, "sources": {"amazonAPI": False}})

    assert config.quality_threshold == 3.5
    assert config.min_reviews == 100
    assert config.sources.amazon_api is False
    assert config.sources.google_trends is True
    assert config.categories == ["Electronics", "Fashion", "Home & Garden", "Sports", "Beauty"]


async def test_run_without_config_matches_default_config(session_factory, classifier):
    implicit = await run_generation(None, session_factory=session_factory, classifier=classifier)
    explicit = await run_generation(GeneratorConfig(), session_factory=session_factory, classifier=classifier)

    async with session_factory() as session:
        logs = await get_recent_logs(session, limit=2)
    assert logs[0].meta["config"] == logs[1].meta["config"] == GeneratorConfig().to_log()
    assert implicit.products_found == explicit.products_found == 25
    assert implicit.products_added == 25
    assert explicit.products_updated == 25


# ── Happy path ────────────────────────────────────────────────────────

async def test_trends_only_run_on_empty_store(session_factory, classifier):
    result = await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=classifier)

    assert result.products_found == 5
    assert result.products_added == 5
    assert result.products_updated == 0
    assert result.errors == []
    assert result.log_id > 0

    async with session_factory() as session:
        products = (await session.execute(select(Product))).scalars().all()
        merchants = (await session.execute(select(Merchant))).scalars().all()
    assert len(products) == 5
    assert all(p.meta["aiGenerated"] is True for p in products)
    assert all(p.meta["source"] == "google_trends" for p in products)
    assert all(10 <= p.sale_price <= 1000 for p in products)
    assert [m.slug for m in merchants] == ["unknown-merchant"]

    log = await _only_log(session_factory)
    assert log.status == GenerationStatus.COMPLETED
    assert log.type == "product_discovery"
    assert log.source == "multi_source"
    assert log.products_added == 5
    assert log.errors is None
    assert log.completed_at is not None


async def test_second_run_updates_instead_of_duplicating(session_factory, classifier):
    await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=classifier)
    second = await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=classifier)

    assert second.products_added == 0
    assert second.products_updated == 5
    assert await _count(session_factory, Product) == 5


async def test_coupons_are_generated_for_merchants(session_factory, classifier):
    config = {**TRENDS_ONLY, "categories": ["Electronics", "Fashion", "Travel"]}

    result = await run_generation(config, session_factory=session_factory, classifier=classifier)

    # one merchant (Unknown Merchant) x first two categories x 3 ideas
    assert result.coupons_found == 6
    assert result.coupons_added == 6
    async with session_factory() as session:
        coupons = (await session.execute(select(Coupon))).scalars().all()
    assert all(c.is_verified is False for c in coupons)

    rerun = await run_generation(config, session_factory=session_factory, classifier=classifier)
    assert rerun.coupons_found == 6
    assert rerun.coupons_added == 0
    assert rerun.errors == []
    assert await _count(session_factory, Coupon) == 6


async def test_quality_gate_skips_affiliate_products(session_factory, classifier):
    async with session_factory() as session:
        session.add(AffiliateNetwork(
            name="Awin", slug="awin", api_endpoint="https://feeds.example.com", status=NetworkStatus.ACTIVE
        ))
        await session.commit()

    def feed(request):
        if request.url.path == "/products":
            return httpx.Response(200, json={"products": [
                {"id": 1, "name": "Good Tent", "price": 150, "rating": 4.8, "reviewCount": 900, "merchant": "Camp Co",
                 "productUrl": "https://camp.example.com/tent"},
                {"id": 2, "name": "Bad Tent", "price": 150, "rating": 2.1, "reviewCount": 900, "merchant": "Camp Co"},
            ]})
        return httpx.Response(200, json={"coupons": []})

    config = {"sources": {"googleTrends": False}, "categories": ["Sports"]}
    result = await run_generation(
        config, session_factory=session_factory, classifier=classifier,
        affiliate_transport=httpx.MockTransport(feed),
    )

    assert result.products_found == 2
    assert result.products_skipped == 1
    assert result.products_added == 1
    async with session_factory() as session:
        product = (await session.execute(select(Product))).scalar_one()
    assert product.sku == "1"
    assert "utm_medium=affiliate" in product.affiliate_url


# ── Errors ────────────────────────────────────────────────────────────

async def test_failing_network_is_recorded_and_others_continue(session_factory, classifier):
    async with session_factory() as session:
        session.add_all([
            AffiliateNetwork(name="Down", slug="down-network", api_endpoint="https://down.example.com",
                             status=NetworkStatus.ACTIVE),
            AffiliateNetwork(name="Up", slug="up-network", api_endpoint="https://up.example.com",
                             status=NetworkStatus.ACTIVE),
        ])
        await session.commit()

    def feed(request):
        if request.url.host == "down.example.com":
            return httpx.Response(502)
        if request.url.path == "/products":
            return httpx.Response(200, json={"products": [{"id": 5, "name": "Camp Stove", "price": 45}]})
        return httpx.Response(200, json={"coupons": []})

    config = {"sources": {"googleTrends": False}, "categories": ["Sports"]}
    result = await run_generation(
        config, session_factory=session_factory, classifier=classifier,
        affiliate_transport=httpx.MockTransport(feed),
    )

    assert result.products_added == 1
    assert any("down-network: HTTP 502" in e for e in result.errors)
    assert (await _only_log(session_factory)).status == GenerationStatus.COMPLETED


async def test_null_feed_does_not_drop_other_networks_or_coupon_ideas(session_factory, classifier):
    async with session_factory() as session:
        session.add_all([
            Merchant(name="Acme", slug="acme"),
            AffiliateNetwork(name="Up", slug="up-network", api_endpoint="https://up.example.com",
                             status=NetworkStatus.ACTIVE),
            AffiliateNetwork(name="Null", slug="null-network", api_endpoint="https://null.example.com",
                             status=NetworkStatus.ACTIVE),
        ])
        await session.commit()

    def feed(request):
        if request.url.host == "null.example.com":
            key = "products" if request.url.path == "/products" else "coupons"
            return httpx.Response(200, json={key: None})
        if request.url.path == "/products":
            return httpx.Response(200, json={"products": [{"id": 5, "name": "Camp Stove", "price": 45}]})
        return httpx.Response(200, json={"coupons": []})

    config = {"sources": {"googleTrends": False}, "categories": ["Sports"]}
    result = await run_generation(
        config, session_factory=session_factory, classifier=classifier,
        affiliate_transport=httpx.MockTransport(feed),
    )

    assert result.products_found == 1
    assert result.products_added == 1
    # Acme and Unknown Merchant x one category x 3 ideas
    assert result.coupons_found == 6
    assert result.coupons_added == 6
    assert result.errors == []


async def test_unparseable_feed_is_recorded_per_network(session_factory, classifier, monkeypatch):
    async with session_factory() as session:
        session.add_all([
            AffiliateNetwork(name="Odd", slug="odd-network", api_endpoint="https://odd.example.com",
                             status=NetworkStatus.ACTIVE),
            AffiliateNetwork(name="Up", slug="up-network", api_endpoint="https://up.example.com",
                             status=NetworkStatus.ACTIVE),
        ])
        await session.commit()

    original_parse = GenericNetworkClient.parse_products

    def parse(self, payload):
        if self.network.slug == "odd-network":
            raise TypeError("unexpected row shape")
        return original_parse(self, payload)

    monkeypatch.setattr(GenericNetworkClient, "parse_products", parse)

    def feed(request):
        if request.url.path == "/products":
            return httpx.Response(200, json={"products": [{"id": 5, "name": "Camp Stove", "price": 45}]})
        return httpx.Response(200, json={"coupons": "not-a-list"})

    config = {"sources": {"googleTrends": False}, "categories": ["Sports"]}
    result = await run_generation(
        config, session_factory=session_factory, classifier=classifier,
        affiliate_transport=httpx.MockTransport(feed),
    )

    assert result.products_added == 1
    assert result.errors == ["Affiliate network odd-network: malformed product feed: unexpected row shape"]
    assert result.coupons_found == 3


async def test_bad_slack_webhook_does_not_fail_a_finished_run(session_factory, classifier, monkeypatch):
    monkeypatch.setattr(settings, "slack_webhook_url", "https://hooks.slack.example:notaport/hook")

    result = await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=classifier)

    assert result.products_added == 5
    assert (await _only_log(session_factory)).status == GenerationStatus.COMPLETED


async def test_two_of_ten_failing_candidates_are_aggregated(session_factory, fake_provider):
    broken = {"Electronics Gadget 2 Pro Model", "Fashion Gadget 4 Pro Model"}

    class FlakyClassifier(ContentClassifier):
        async def generate_product_content(self, name, description, category):
            if name in broken:
                raise RuntimeError("enrichment exploded")
            return await super().generate_product_content(name, description, category)

    config = {**TRENDS_ONLY, "categories": ["Electronics", "Fashion"]}
    result = await run_generation(config, session_factory=session_factory, classifier=FlakyClassifier(fake_provider))

    assert result.products_found == 10
    assert result.products_added + result.products_updated == 8
    assert len(result.errors) == 2
    assert all("enrichment exploded" in e for e in result.errors)

    log = await _only_log(session_factory)
    assert log.status == GenerationStatus.COMPLETED
    assert len(log.errors) == 2
    assert await _count(session_factory, Product) == 8


async def test_llm_outage_degrades_but_run_completes(session_factory, make_classifier, fake_provider):
    def no_categorize(prompt):
        if "categorize it accurately" in prompt:
            raise RuntimeError("rate limited")
        return fake_provider.reply(prompt)

    result = await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=make_classifier(no_categorize))

    assert result.products_added == 5
    assert result.errors == []
    async with session_factory() as session:
        product = (await session.execute(select(Product).limit(1))).scalar_one()
    assert product.meta["category"] == "Electronics"
    assert product.meta["categoryConfidence"] == 0
    assert (await _only_log(session_factory)).status == GenerationStatus.COMPLETED


async def test_fatal_error_marks_log_failed_and_releases_lock(session_factory, classifier, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("coupon table unavailable")

    monkeypatch.setattr(orchestrator, "_process_coupons", explode)

    with pytest.raises(RuntimeError, match="coupon table unavailable"):
        await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=classifier)

    log = await _only_log(session_factory)
    assert log.status == GenerationStatus.FAILED
    assert log.completed_at is not None
    assert "coupon table unavailable" in log.errors
    async with session_factory() as session:
        assert (await get_status(session)).is_running is False


# ── Run lock ──────────────────────────────────────────────────────────

async def test_concurrent_run_is_rejected_without_a_second_log(session_factory, fake_provider):
    started, release = asyncio.Event(), asyncio.Event()

    class BlockingClassifier(ContentClassifier):
        async def trending_keywords(self, category):
            started.set()
            await release.wait()
            return await super().trending_keywords(category)

    first = asyncio.create_task(
        run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=BlockingClassifier(fake_provider))
    )
    await asyncio.wait_for(started.wait(), timeout=5)

    async with session_factory() as session:
        status = await get_status(session)
    assert status.is_running is True

    with pytest.raises(GeneratorAlreadyRunningError) as exc_info:
        await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=ContentClassifier(fake_provider))
    assert exc_info.value.current_log_id == status.current_log_id
    assert await _count(session_factory, AIGenerationLog) == 1

    release.set()
    result = await asyncio.wait_for(first, timeout=10)

    assert result.log_id == status.current_log_id
    assert await _count(session_factory, AIGenerationLog) == 1
    async with session_factory() as session:
        assert (await get_status(session)).to_dict() == {"isRunning": False, "currentLogId": None}


async def test_expired_lock_is_taken_over(session_factory, classifier):
    async with session_factory() as session:
        await acquire_lock(session, "crashed-worker", timedelta(minutes=-1))
        assert (await get_status(session)).is_running is False

    result = await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=classifier)

    assert result.products_added == 5


async def test_recent_logs_newest_first(session_factory, classifier):
    first = await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=classifier)
    second = await run_generation(TRENDS_ONLY, session_factory=session_factory, classifier=classifier)

    async with session_factory() as session:
        logs = await get_recent_logs(session, limit=1)
    assert [log.id for log in logs] == [second.log_id]
    assert first.log_id < second.log_id
