"""
ACP (Agentic Commerce Protocol) Adapter

Builds and normalizes ACP checkout-session payloads:
{"protocol": "ACP", "payload": {"total_amount", "currency", "country",
"payment_provider", "shipping_type", ...}}
"""
from typing import Any, Dict, Optional

from ..base import ProtocolAdapter, CatalogLookup, stable_id
from ...config import settings
from ...models.intents import StructuredIntent
from ...models.payloads import ACPPayload, ACPCheckoutBody, NormalizedPayload


class ACPAdapter(ProtocolAdapter):
    protocol_name = "acp"
    version = "2026-01-16"
    description = "OpenAI/Stripe Agentic Checkout Protocol"
    payload_model = ACPPayload

    def __init__(self, country: Optional[str] = None, payment_provider: Optional[str] = None):
        self.country = country or settings.default_country
        self.payment_provider = payment_provider or settings.default_payment_provider

    def can_handle(self, raw: Dict[str, Any]) -> bool:
        body = raw.get("payload") if isinstance(raw, dict) else None
        return isinstance(body, dict) and "total_amount" in body

    def build(self, intent: StructuredIntent, catalog_lookup: CatalogLookup) -> ACPPayload:
        entry = catalog_lookup(intent.item)
        digest_parts = (
            intent.item, intent.amount, intent.currency, intent.shipping_speed,
            entry.id, entry.price_cents
        )

        return ACPPayload(
            payload=ACPCheckoutBody(
                checkout_session_id=stable_id("cs", "acp", *digest_parts),
                line_items=[{
                    "id": stable_id("li", *digest_parts),
                    "product_id": entry.id,
                    "name": intent.item,
                    "quantity": 1,
                    "list_price_cents": entry.price_cents,
                }],
                total_amount=intent.amount,
                currency=intent.currency,
                country=self.country,
                payment_provider=self.payment_provider,
                shipping_type=intent.shipping_speed,
            )
        )

    def normalize(self, payload: ACPPayload) -> NormalizedPayload:
        if isinstance(payload, dict):
            payload = self.parse(payload)

        body = payload.payload
        return self._canonical(
            amount=body.total_amount,
            currency=body.currency,
            country=body.country,
            provider=body.payment_provider,
            shipping_speed=body.shipping_type,
        )
