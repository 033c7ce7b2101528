"""
UCP (Universal Commerce Protocol) Adapter

Intent-shaped payloads: {"protocol": "UCP", "intent": {"action", "params"}}
"""
from typing import Any, Dict, Optional

from ..base import ProtocolAdapter, CatalogLookup, stable_id
from ...config import settings
from ...models.intents import StructuredIntent
from ...models.payloads import UCPIntent, UCPIntentBody, UCPParams, NormalizedPayload


class UCPAdapter(ProtocolAdapter):
    protocol_name = "ucp"
    version = "2026-01-11"
    description = "Universal Commerce Protocol"
    payload_model = UCPIntent

    def __init__(self, country: Optional[str] = None, payment_provider: Optional[str] = None):
        self.country = country or settings.default_country
        self.payment_provider = payment_provider or settings.default_payment_provider

    def can_handle(self, raw: Dict[str, Any]) -> bool:
        intent = raw.get("intent") if isinstance(raw, dict) else None
        return isinstance(intent, dict) and bool(intent.get("action"))

    def build(self, intent: StructuredIntent, catalog_lookup: CatalogLookup) -> UCPIntent:
        entry = catalog_lookup(intent.item)

        return UCPIntent(
            intent=UCPIntentBody(
                action=intent.action,
                params=UCPParams(
                    item=intent.item,
                    item_id=entry.id,
                    checkout_id=stable_id(
                        "ucp", intent.item, intent.amount, intent.currency,
                        intent.shipping_speed, entry.id, entry.price_cents
                    ),
                    amount=intent.amount,
                    currency=intent.currency,
                    shipping_speed=intent.shipping_speed,
                ),
                context={
                    "country": self.country,
                    "payment_provider": self.payment_provider,
                },
            )
        )

    def normalize(self, payload: UCPIntent) -> NormalizedPayload:
        if isinstance(payload, dict):
            payload = self.parse(payload)

        params = payload.intent.params
        # context is an optional extension
        context = getattr(payload.intent, "context", None) or {}

        return self._canonical(
            amount=params.amount,
            currency=params.currency,
            country=context.get("country") or self.country,
            provider=context.get("payment_provider") or self.payment_provider,
            shipping_speed=params.shipping_speed,
        )
