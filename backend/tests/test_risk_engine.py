"""
Tests for the rule-based risk engine

Tests cover:
- Amount tiers and their exclusive boundaries
- International, express and suspicious-provider rules
- Decision thresholds (approve / challenge / block)
- Per-client velocity inside the window, bounded store and purge
"""
from datetime import datetime, timedelta, timezone

import pytest

from halo.models.payloads import HaloNormalized, NormalizedPayload
from halo.models.risk import RiskDecision
from halo.services.risk_engine import RiskEngine


START = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start=START):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def record(total_cents=2500, country="US", shipping_speed="standard", provider="stripe", currency="USD"):
    return HaloNormalized(
        total_cents=total_cents,
        currency=currency,
        country=country,
        provider=provider,
        shipping_speed=shipping_speed,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return RiskEngine(
        challenge_score=30,
        block_score=60,
        velocity_window_minutes=10,
        max_tracked_clients=100,
        suspicious_providers=["unknown", "unsupported"],
        home_country="US",
        clock=clock,
    )


# ============================================================================
# Scoring rules
# ============================================================================

class TestScoring:
    """Points contributed by each rule"""

    def test_low_risk_domestic_standard(self, engine):
        assessment = engine.assess(record())

        assert assessment.risk_score == 0
        assert assessment.decision == RiskDecision.APPROVE
        assert assessment.factors == []
        assert assessment.velocity_count == 0

    @pytest.mark.parametrize("total_cents,score,factor", [
        (5000, 0, None),
        (5001, 10, "elevated_value"),
        (10000, 10, "elevated_value"),
        (10001, 20, "moderate_value"),
        (50001, 35, "high_value"),
        (100001, 50, "very_high_value"),
    ])
    def test_amount_tiers_are_exclusive(self, engine, total_cents, score, factor):
        assessment = engine.assess(record(total_cents=total_cents))

        assert assessment.risk_score == score
        assert assessment.factors == ([factor] if factor else [])

    def test_only_highest_amount_tier_applies(self, engine):
        assessment = engine.assess(record(total_cents=250000))

        assert assessment.factors == ["very_high_value"]

    def test_international_adds_twenty(self, engine):
        assessment = engine.assess(record(country="gb"))

        assert assessment.risk_score == 20
        assert "international" in assessment.factors

    def test_express_adds_ten(self, engine):
        assessment = engine.assess(record(shipping_speed="EXPRESS"))

        assert assessment.risk_score == 10
        assert assessment.factors == ["express_shipping"]

    @pytest.mark.parametrize("provider", ["unknown", "Unsupported"])
    def test_suspicious_provider(self, engine, provider):
        assessment = engine.assess(record(provider=provider))

        assert assessment.risk_score == 25
        assert assessment.factors == ["suspicious_provider"]

    def test_accepts_normalized_payload_wrapper(self, engine):
        wrapped = NormalizedPayload(halo_normalized=record(total_cents=60000))

        assert engine.assess(wrapped).risk_score == 35

    def test_tiers_use_minor_units_regardless_of_currency(self, engine):
        assessment = engine.assess(record(total_cents=12000, currency="JPY"))

        assert assessment.factors == ["moderate_value"]


# ============================================================================
# Decisions
# ============================================================================

class TestDecision:
    """Score thresholds"""

    @pytest.mark.parametrize("score,decision", [
        (0, RiskDecision.APPROVE),
        (29, RiskDecision.APPROVE),
        (30, RiskDecision.CHALLENGE),
        (59, RiskDecision.CHALLENGE),
        (60, RiskDecision.BLOCK),
        (135, RiskDecision.BLOCK),
    ])
    def test_thresholds(self, engine, score, decision):
        assert engine.decide(score) == decision

    def test_high_value_is_challenged(self, engine):
        assessment = engine.assess(record(total_cents=60000))

        assert assessment.risk_score == 35
        assert assessment.requires_challenge
        assert not assessment.blocked

    def test_international_express_high_value_is_blocked(self, engine):
        assessment = engine.assess(record(total_cents=110000, country="FR", shipping_speed="express"))

        assert assessment.risk_score == 80
        assert assessment.blocked
        assert assessment.factors == ["very_high_value", "international", "express_shipping"]

    def test_thresholds_come_from_settings_by_default(self):
        engine = RiskEngine()

        assert engine.challenge_score == 30
        assert engine.block_score == 60
        assert engine.home_country == "US"

    def test_dump_is_json_ready(self, engine):
        dumped = engine.assess(record(total_cents=60000)).model_dump(mode="json")

        assert dumped == {
            "risk_score": 35,
            "decision": "challenge",
            "factors": ["high_value"],
            "velocity_count": 0,
        }


# ============================================================================
# Velocity
# ============================================================================

class TestVelocity:
    """Per-client checkout counts inside the window"""

    def test_no_client_records_nothing(self, engine):
        for _ in range(10):
            engine.assess(record())

        assert len(engine) == 0

    def test_tiers(self, engine):
        scores = [engine.assess(record(), client_id="user_a").risk_score for _ in range(7)]

        # counts 1-3 clean, 4-5 over three, 6+ over five
        assert scores == [0, 0, 0, 15, 15, 30, 30]

    def test_velocity_alert_factor_and_count(self, engine):
        for _ in range(5):
            assessment = engine.assess(record(), client_id="user_a")

        assert assessment.velocity_count == 5
        assert assessment.factors == ["velocity_alert"]

    def test_velocity_can_push_into_challenge(self, engine):
        for _ in range(5):
            assessment = engine.assess(record(total_cents=20000), client_id="user_a")

        assert assessment.risk_score == 35
        assert assessment.requires_challenge

    def test_clients_are_counted_separately(self, engine):
        for _ in range(5):
            engine.assess(record(), client_id="user_a")

        assessment = engine.assess(record(), client_id="user_b")

        assert assessment.velocity_count == 1
        assert len(engine) == 2

    def test_count_resets_after_idle_window(self, engine, clock):
        for _ in range(5):
            engine.assess(record(), client_id="user_a")

        clock.advance(minutes=11)
        assessment = engine.assess(record(), client_id="user_a")

        assert assessment.velocity_count == 1
        assert assessment.risk_score == 0

    def test_store_is_bounded(self, clock):
        engine = RiskEngine(max_tracked_clients=3, clock=clock)

        for i in range(5):
            engine.assess(record(), client_id=f"user_{i}")

        assert len(engine) == 3
        # oldest clients were evicted and start over
        assert engine.assess(record(), client_id="user_0").velocity_count == 1

    def test_recent_activity_protects_from_eviction(self, clock):
        engine = RiskEngine(max_tracked_clients=2, clock=clock)

        engine.assess(record(), client_id="user_a")
        engine.assess(record(), client_id="user_b")
        engine.assess(record(), client_id="user_a")
        engine.assess(record(), client_id="user_c")

        assert engine.assess(record(), client_id="user_a").velocity_count == 3


class TestPurge:
    def test_purge_drops_idle_counters(self, engine, clock):
        engine.assess(record(), client_id="user_a")
        clock.advance(minutes=8)
        engine.assess(record(), client_id="user_b")
        clock.advance(minutes=5)

        assert engine.purge_stale() == 1
        assert len(engine) == 1

    def test_purge_with_nothing_stale(self, engine):
        engine.assess(record(), client_id="user_a")

        assert engine.purge_stale() == 0
        assert len(engine) == 1
