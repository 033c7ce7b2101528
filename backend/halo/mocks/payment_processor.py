"""
Mock Payment Processor

Simulates authorization of a normalized checkout. The processor only ever
sees the vault token and the canonical totals, never protocol payloads or
raw card data.

Demo mode always approves. Otherwise special test tokens decline and the
remainder approve ~90% of the time based on a deterministic hash.
"""
import hashlib
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from ..config import settings
from ..models.payloads import HaloNormalized


# Test tokens that trigger specific behaviors
DECLINE_TOKENS = {
    "tok_decline": "insufficient_funds",
    "tok_decline_fraud": "fraud_suspected",
    "tok_decline_expired": "card_expired",
    "tok_decline_invalid": "invalid_card",
}

_DECLINE_REASONS = ["insufficient_funds", "do_not_honor", "generic_decline"]


def authorize_payment(
    payment_token: str,
    normalized: HaloNormalized,
    metadata: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Authorize a normalized checkout against a tokenized card.

    Args:
        payment_token: Vault token (tok_*)
        normalized: Canonical checkout totals
        metadata: Optional transaction metadata (order_id, user_id, protocol)

    Returns:
        Authorization result dictionary:
        - status: "authorized" or "declined"
        - authorization_code: auth_* when approved
        - decline_reason: reason when declined
        - processed_at, amount_cents, currency, provider
    """
    metadata = metadata or {}
    processed_at = datetime.now(timezone.utc)
    amount_cents = normalized.total_cents

    result = {
        "status": "authorized",
        "authorization_code": None,
        "decline_reason": None,
        "processed_at": processed_at.isoformat(),
        "amount_cents": amount_cents,
        "currency": normalized.currency,
        "provider": normalized.provider,
        "metadata": metadata,
    }

    hash_input = f"{payment_token}:{amount_cents}:{normalized.currency}"
    hash_value = int(hashlib.sha256(hash_input.encode()).hexdigest()[:8], 16)

    if not settings.demo_mode:
        if payment_token in DECLINE_TOKENS:
            result.update(status="declined", decline_reason=DECLINE_TOKENS[payment_token])
            return result

        if hash_value % 10 == 0:
            result.update(
                status="declined",
                decline_reason=_DECLINE_REASONS[hash_value % len(_DECLINE_REASONS)]
            )
            return result

    seed = f"{payment_token}:{processed_at.isoformat()}"
    result["authorization_code"] = f"auth_{hashlib.sha256(seed.encode()).hexdigest()[:12]}"
    return result


def get_processor_status() -> Dict[str, Any]:
    return {
        "status": "operational",
        "supported_currencies": ["USD", "EUR", "GBP", "INR", "JPY"],
        "supported_card_types": ["visa", "mastercard", "amex", "discover"],
        "max_amount_cents": 100000000,
        "min_amount_cents": 50,
    }
