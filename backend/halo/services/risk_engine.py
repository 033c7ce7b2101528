"""
Risk Engine

Scores a normalized checkout record and turns the score into a decision:

    score < challenge_score                    -> approve
    challenge_score <= score < block_score     -> challenge (step-up required)
    score >= block_score                       -> block

Rules (points):
- Amount tiers on total_cents: > 100000 (+50), > 50000 (+35),
  > 10000 (+20), > 5000 (+10)
- Country other than the home country (+20)
- Express shipping (+10)
- Velocity per client inside the window: > 5 checkouts (+30), > 3 (+15)
- Suspicious provider (+25)

Velocity counters live in process memory, bounded to the most recently
active clients and purged once idle for longer than the window.
"""
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional, Union

from ..config import settings
from ..models.payloads import HaloNormalized, NormalizedPayload
from ..models.risk import RiskAssessment, RiskDecision

logger = logging.getLogger(__name__)


# (exclusive lower bound in minor units, points, factor), highest first
AMOUNT_TIERS = [
    (100000, 50, "very_high_value"),
    (50000, 35, "high_value"),
    (10000, 20, "moderate_value"),
    (5000, 10, "elevated_value"),
]

INTERNATIONAL_POINTS = 20
EXPRESS_POINTS = 10
SUSPICIOUS_PROVIDER_POINTS = 25

# (count strictly above, points), highest first
VELOCITY_TIERS = [
    (5, 30),
    (3, 15),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Velocity:
    count: int
    last_seen: datetime


class RiskEngine:
    """
    Rule-based scorer for normalized checkouts.

    Stateless apart from the per-client velocity counters, which are only
    touched when assess() is given a client_id.
    """

    def __init__(
        self,
        challenge_score: Optional[int] = None,
        block_score: Optional[int] = None,
        velocity_window_minutes: Optional[int] = None,
        max_tracked_clients: Optional[int] = None,
        suspicious_providers: Optional[Iterable[str]] = None,
        home_country: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.challenge_score = settings.risk_challenge_score if challenge_score is None else challenge_score
        self.block_score = settings.risk_block_score if block_score is None else block_score
        self.velocity_window = timedelta(
            minutes=velocity_window_minutes or settings.risk_velocity_window_minutes
        )
        self.max_tracked_clients = max_tracked_clients or settings.risk_velocity_max_clients
        self.suspicious_providers = {
            p.lower() for p in (
                settings.risk_suspicious_providers if suspicious_providers is None else suspicious_providers
            )
        }
        self.home_country = (home_country or settings.default_country).upper()
        self._clock = clock
        self._velocity: "OrderedDict[str, _Velocity]" = OrderedDict()
        self._lock = threading.Lock()

    def _record(self, client_id: str) -> int:
        """Count this checkout for the client and return the count in the window."""
        now = self._clock()

        with self._lock:
            stats = self._velocity.pop(client_id, None)
            if stats is None or now - stats.last_seen > self.velocity_window:
                stats = _Velocity(count=1, last_seen=now)
            else:
                stats.count += 1
                stats.last_seen = now

            self._velocity[client_id] = stats
            while len(self._velocity) > self.max_tracked_clients:
                evicted, _ = self._velocity.popitem(last=False)
                logger.debug(f"Velocity store full, evicted {evicted}")

            return stats.count

    def decide(self, score: int) -> RiskDecision:
        if score >= self.block_score:
            return RiskDecision.BLOCK
        if score >= self.challenge_score:
            return RiskDecision.CHALLENGE
        return RiskDecision.APPROVE

    def assess(
        self,
        normalized: Union[HaloNormalized, NormalizedPayload],
        client_id: Optional[str] = None
    ) -> RiskAssessment:
        """
        Score a normalized checkout.

        Args:
            normalized: Canonical record (or its NormalizedPayload wrapper)
            client_id: Caller identity for velocity tracking; when None the
                velocity rule is skipped and nothing is recorded

        Returns:
            RiskAssessment with score, decision and contributing factors
        """
        if isinstance(normalized, NormalizedPayload):
            normalized = normalized.halo_normalized

        score = 0
        factors = []

        for bound, points, factor in AMOUNT_TIERS:
            if normalized.total_cents > bound:
                score += points
                factors.append(factor)
                break

        if normalized.country.upper() != self.home_country:
            score += INTERNATIONAL_POINTS
            factors.append("international")

        if normalized.shipping_speed.lower() == "express":
            score += EXPRESS_POINTS
            factors.append("express_shipping")

        velocity_count = 0
        if client_id:
            velocity_count = self._record(client_id)
            for above, points in VELOCITY_TIERS:
                if velocity_count > above:
                    score += points
                    factors.append("velocity_alert")
                    break

        if normalized.provider.lower() in self.suspicious_providers:
            score += SUSPICIOUS_PROVIDER_POINTS
            factors.append("suspicious_provider")

        assessment = RiskAssessment(
            risk_score=score,
            decision=self.decide(score),
            factors=factors,
            velocity_count=velocity_count,
        )

        logger.info(
            f"Risk {assessment.decision.value} (score={score}) for {normalized.total_cents} "
            f"{normalized.currency}: {', '.join(factors) or 'no factors'}"
        )
        return assessment

    def purge_stale(self, now: Optional[datetime] = None) -> int:
        """Drop velocity counters idle for longer than the window."""
        cutoff = (now or self._clock()) - self.velocity_window

        with self._lock:
            stale = [c for c, s in self._velocity.items() if s.last_seen < cutoff]
            for client_id in stale:
                del self._velocity[client_id]

        if stale:
            logger.info(f"Purged {len(stale)} idle velocity counter(s)")
        return len(stale)

    def __len__(self) -> int:
        return len(self._velocity)
