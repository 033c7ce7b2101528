"""
Checkout Orchestrator

Wires the translation layer together:

    prepare: parse -> resolve adapter -> build -> normalize -> risk
    submit:  payment method checks -> detect + normalize -> risk -> step-up gate -> authorize

Everything here is synchronous. Persistence of the result is left to the
caller (see order_service.record_order).
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel

from ..exceptions import (
    PaymentMethodUnavailableError,
    RiskBlockedError,
    UnknownProtocolError,
    UnparseableIntentError,
)
from ..mocks.payment_processor import authorize_payment
from ..models.intents import StructuredIntent
from ..models.payloads import NormalizedPayload
from ..models.payment_methods import PaymentMethod
from ..models.risk import RiskAssessment
from ..protocols.base import CatalogLookup, ProtocolAdapter
from ..protocols.registry import ProtocolRegistry
from .card_validator import validate_expiry
from .intent_parser import parse_intent
from .normalizer import PayloadNormalizer
from .risk_engine import RiskEngine
from .step_up import StepUpVerificationService

logger = logging.getLogger(__name__)


@dataclass
class CheckoutPreparation:
    intent: StructuredIntent
    protocol: str
    payload: BaseModel
    normalized: NormalizedPayload
    step_up_required: bool
    risk: RiskAssessment


@dataclass
class CheckoutResult:
    protocol: str
    normalized: NormalizedPayload
    authorization: Dict[str, Any]
    payment_method_id: str
    raw_payload: Dict[str, Any]
    risk: RiskAssessment

    @property
    def authorized(self) -> bool:
        return self.authorization.get("status") == "authorized"


class CheckoutOrchestrator:
    """Single entry point from free text to an authorized checkout."""

    def __init__(
        self,
        registry: ProtocolRegistry,
        catalog_lookup: CatalogLookup,
        step_up: StepUpVerificationService,
        authorize: Callable[..., Dict[str, Any]] = authorize_payment,
        risk_engine: Optional[RiskEngine] = None
    ):
        self.registry = registry
        self.catalog_lookup = catalog_lookup
        self.step_up = step_up
        self.normalizer = PayloadNormalizer(registry)
        self.risk_engine = risk_engine if risk_engine is not None else RiskEngine()
        self._authorize = authorize

    def _adapter(self, protocol: str) -> ProtocolAdapter:
        adapter = self.registry.get(protocol)
        if adapter is None:
            raise UnknownProtocolError(
                f"No protocol adapter registered for '{protocol}'",
                {"protocol": protocol, "available": [e.protocol_name for e in self.registry.list()]}
            )
        return adapter

    def build(self, intent: StructuredIntent, protocol: str) -> BaseModel:
        """
        Build a protocol payload for an already-structured intent.

        Raises:
            UnknownProtocolError: protocol not registered
            CatalogMissError: catalog has no product for intent.item
        """
        return self._adapter(protocol).build(intent, self.catalog_lookup)

    def prepare(self, text: str, protocol: str) -> CheckoutPreparation:
        """
        Turn an utterance into a protocol payload ready for submission.

        Raises:
            UnparseableIntentError: No purchase intent in the text
            UnknownProtocolError: protocol not registered
            CatalogMissError: catalog has no product for the item
        """
        intent = parse_intent(text)
        if intent is None:
            raise UnparseableIntentError(
                "Could not find a purchase request in the message",
                {"text": text}
            )

        adapter = self._adapter(protocol)
        payload = adapter.build(intent, self.catalog_lookup)
        normalized = adapter.normalize(payload)
        risk = self.risk_engine.assess(normalized)

        logger.info(
            f"Prepared {adapter.protocol_name} checkout for {intent.item!r}: "
            f"{normalized.halo_normalized.total_cents} {normalized.halo_normalized.currency}, "
            f"risk={risk.decision.value}"
        )

        return CheckoutPreparation(
            intent=intent,
            protocol=adapter.protocol_name,
            payload=payload,
            normalized=normalized,
            step_up_required=self.step_up.requires_step_up(intent.amount) or risk.requires_challenge,
            risk=risk,
        )

    def submit(
        self,
        payload: Union[BaseModel, Dict[str, Any]],
        payment_method: PaymentMethod,
        session_token: Optional[str] = None,
        protocol: Optional[str] = None
    ) -> CheckoutResult:
        """
        Submit a protocol payload against a stored payment method.

        Raises:
            UnknownProtocolError: Payload matches no registered protocol
            PaymentMethodUnavailableError: Card inactive, unverified or expired
            NormalizationGapError: Payload lacks amount or currency (logged at ERROR)
            RiskBlockedError: Risk decision is "block"
            VerificationRequiredError: Over threshold or risk challenge without a
                challenged, verified session
        """
        if payment_method.status != "active" or not payment_method.verified:
            raise PaymentMethodUnavailableError(
                "Payment method cannot be charged",
                {
                    "payment_method_id": payment_method.id,
                    "status": payment_method.status,
                    "verified": payment_method.verified,
                }
            )
        if not validate_expiry(payment_method.card_exp_month, payment_method.card_exp_year):
            raise PaymentMethodUnavailableError(
                "Payment method has expired",
                {"payment_method_id": payment_method.id}
            )

        protocol_name, normalized = self.normalizer.normalize(payload, protocol, submitted=True)
        canonical = normalized.halo_normalized
        amount = canonical.total_cents / 100

        risk = self.risk_engine.assess(canonical, client_id=payment_method.user_id)
        if risk.blocked:
            raise RiskBlockedError(
                "Checkout blocked by risk review",
                {"protocol": protocol_name, "risk_score": risk.risk_score, "factors": risk.factors}
            )

        if self.step_up.requires_step_up(amount) or risk.requires_challenge:
            self.step_up.require_verified(session_token, amount, challenged=True)

        raw = payload.model_dump(mode="json", by_alias=True) if isinstance(payload, BaseModel) else dict(payload)
        authorization = self._authorize(
            payment_method.tokenized_provider_id,
            canonical,
            {"protocol": protocol_name, "user_id": payment_method.user_id},
        )

        # a verified session covers exactly one checkout
        if session_token and authorization.get("status") == "authorized":
            self.step_up.cancel(session_token)

        logger.info(
            f"Submitted {protocol_name} checkout: {canonical.total_cents} {canonical.currency} "
            f"-> {authorization.get('status')}"
        )

        return CheckoutResult(
            protocol=protocol_name,
            normalized=normalized,
            authorization=authorization,
            payment_method_id=payment_method.id,
            raw_payload=raw,
            risk=risk,
        )
