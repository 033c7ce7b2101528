"""
x402 (HTTP 402 Payment Required) Adapter

Builds a 402 challenge whose first payment requirement carries the price
in USDC-style atomic units (6 decimals). Halo-specific checkout fields
ride along under extensions["halo"].
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from ..base import ProtocolAdapter, CatalogLookup, stable_id
from ...exceptions import NormalizationGapError
from ...config import settings
from ...models.intents import StructuredIntent
from ...models.payloads import X402Payload, X402Resource, X402Requirement, NormalizedPayload

ATOMIC_UNITS = Decimal(10) ** 6

DEFAULT_NETWORK = "eip155:arc"
DEFAULT_ASSET = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
DEFAULT_PAY_TO = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"

# Stablecoins whose face value is one unit of the named fiat currency
_STABLECOIN_CURRENCIES = {"USDC": "USD", "EURC": "EUR"}


def to_atomic(amount: float) -> str:
    return str(int(Decimal(str(amount)) * ATOMIC_UNITS))


def from_atomic(atomic: str) -> Decimal:
    return Decimal(atomic) / ATOMIC_UNITS


class X402Adapter(ProtocolAdapter):
    protocol_name = "x402"
    version = "2.0.0"
    description = "Coinbase x402 HTTP Payment Protocol"
    payload_model = X402Payload

    def __init__(
        self,
        resource_base_url: str = "https://halo.example.com/checkout",
        pay_to: str = DEFAULT_PAY_TO,
        country: Optional[str] = None,
        payment_provider: Optional[str] = None
    ):
        self.resource_base_url = resource_base_url.rstrip("/")
        self.pay_to = pay_to
        self.country = country or settings.default_country
        self.payment_provider = payment_provider or settings.default_payment_provider

    def can_handle(self, raw: Dict[str, Any]) -> bool:
        if not isinstance(raw, dict):
            return False
        if raw.get("x402Version") == 2:
            return True

        resource = raw.get("resource")
        has_url = isinstance(resource, dict) and bool(resource.get("url"))
        return has_url and ("accepts" in raw or "accepted" in raw)

    def build(self, intent: StructuredIntent, catalog_lookup: CatalogLookup) -> X402Payload:
        entry = catalog_lookup(intent.item)
        invoice_id = stable_id(
            "inv", intent.item, intent.amount, intent.currency,
            intent.shipping_speed, entry.id, entry.price_cents
        )

        return X402Payload(
            error="Payment required",
            resource=X402Resource(
                url=f"{self.resource_base_url}/{invoice_id}",
                description=intent.item,
            ),
            accepts=[
                X402Requirement(
                    network=DEFAULT_NETWORK,
                    asset=DEFAULT_ASSET,
                    amount=to_atomic(intent.amount),
                    payTo=self.pay_to,
                    extra={"name": "USDC", "version": "2", "invoice_id": invoice_id},
                )
            ],
            extensions={
                "halo": {
                    "item_id": entry.id,
                    "currency": intent.currency,
                    "country": self.country,
                    "provider": self.payment_provider,
                    "shipping_speed": intent.shipping_speed,
                }
            },
        )

    def normalize(self, payload: X402Payload) -> NormalizedPayload:
        if isinstance(payload, dict):
            payload = self.parse(payload)

        requirement = payload.accepts[0] if payload.accepts else None
        halo = payload.extensions.get("halo") or {}

        amount: Optional[Decimal] = None
        if requirement is not None and requirement.amount is not None:
            try:
                amount = from_atomic(requirement.amount)
            except InvalidOperation:
                raise NormalizationGapError(
                    "x402 payment requirement amount is not an atomic integer",
                    {"protocol": self.protocol_name, "amount": requirement.amount}
                )

        currency = halo.get("currency")
        if not currency and requirement is not None:
            currency = _STABLECOIN_CURRENCIES.get(str(requirement.extra.get("name", "")).upper())

        return self._canonical(
            amount=amount,
            currency=currency,
            country=halo.get("country") or self.country,
            provider=halo.get("provider") or self.payment_provider,
            shipping_speed=halo.get("shipping_speed") or "standard",
        )
