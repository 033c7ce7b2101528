"""
Mock Card Vault

Simulates the provider-side tokenization step: a raw card number goes in,
an opaque token comes out, and only the token is ever stored.

Tokens are deterministic per (brand, card number) so re-adding the same
card yields the same token.
"""
import hashlib
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)

# Stripe test cards that skip OTP verification when auto-verify is enabled
TEST_CARD_PREFIX = "42"


def tokenize_card(card_number: str, brand: str) -> str:
    """
    Exchange a raw card number for a vault token.

    Returns:
        Token of the form tok_<brand>_<digest>
    """
    digits = "".join(ch for ch in card_number if ch.isdigit())
    digest = hashlib.sha256(f"{brand}:{digits}".encode("utf-8")).hexdigest()[:16]
    token = f"tok_{brand}_{digest}"

    logger.debug(f"Tokenized {brand} card ending {digits[-4:]}")
    return token


def is_test_card(card_number: str) -> bool:
    digits = "".join(ch for ch in card_number if ch.isdigit())
    return digits.startswith(TEST_CARD_PREFIX)


def validate_payment_token(token: str) -> bool:
    """Structural check on a vault token."""
    return isinstance(token, str) and token.startswith("tok_") and len(token) > len("tok_")


def get_vault_status() -> Dict[str, Any]:
    return {
        "status": "operational",
        "supported_card_types": ["visa", "mastercard", "amex", "discover"],
    }
