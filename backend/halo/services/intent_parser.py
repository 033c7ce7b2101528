"""
Intent Parser

Turns a free-text purchase request into a StructuredIntent.

Precision over recall: text without a buy-trigger verb yields None rather
than a best-guess intent. Amount and currency fall back to 100 USD when
the text names no price.
"""
import math
import re
import logging
from typing import List, Optional, Pattern, Tuple

from ..models.intents import StructuredIntent

logger = logging.getLogger(__name__)


DEFAULT_AMOUNT = 100.0
DEFAULT_CURRENCY = "USD"
DEFAULT_ITEM = "Item"

_TRIGGER = re.compile(r"\b(?:buy|get|purchase|order)\s+(?:(?:a|an|the)\s+)?", re.IGNORECASE)
_EXPRESS = re.compile(r"\b(?:express|overnight|rush|fast)\b", re.IGNORECASE)

_NUMBER = r"(\d[\d,]*(?:\.\d+)?)"


def _currency_pattern(markers: str) -> Pattern[str]:
    """'for <marker> <n>' or 'for <n> <marker>'."""
    return re.compile(
        rf"\bfor\s+(?:{markers})\s*{_NUMBER}|\bfor\s+{_NUMBER}\s*(?:{markers})",
        re.IGNORECASE
    )


# Fixed priority order: first match wins
_CURRENCY_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    ("USD", _currency_pattern(r"\$|usd\b|dollars?\b|bucks?\b")),
    ("INR", _currency_pattern(r"₹|inr\b|rupees?\b")),
    ("EUR", _currency_pattern(r"€|eur\b|euros?\b")),
    ("GBP", _currency_pattern(r"£|gbp\b|pounds?\b")),
    ("JPY", _currency_pattern(r"¥|jpy\b|yen\b")),
]

_SYMBOLS = r"[$₹€£¥]"
_CURRENCY_WORDS = r"usd|inr|eur|gbp|jpy|dollars?|bucks?|rupees?|euros?|pounds?|yen"
_PRICE_CLAUSE = re.compile(
    rf"\bfor\s+(?:{_SYMBOLS}|(?:{_CURRENCY_WORDS})\b)?\s*\d[\d,]*(?:\.\d+)?\s*(?:{_SYMBOLS}|(?:{_CURRENCY_WORDS})\b)?",
    re.IGNORECASE
)
_VENDOR_CLAUSE = re.compile(r"\bfrom\s+\S+", re.IGNORECASE)
_SHIPPING_CLAUSE = re.compile(r"\bwith\s+express\s+shipping\b", re.IGNORECASE)


def extract_amount(text: str) -> Tuple[float, str]:
    """
    Find the price and currency named in the text.

    Returns:
        (amount in major units, ISO currency code), defaulting to (100, "USD")
        when no price is named or the named price overflows a float
    """
    for code, pattern in _CURRENCY_PATTERNS:
        match = pattern.search(text)
        if match:
            raw = match.group(1) or match.group(2)
            amount = float(raw.replace(",", ""))
            if not math.isfinite(amount):
                logger.warning(f"Price {raw[:20]}... is out of range, using the default amount")
                break
            return amount, code

    return DEFAULT_AMOUNT, DEFAULT_CURRENCY


def extract_shipping_speed(text: str) -> str:
    """Return "express" for rush keywords, else "standard"."""
    return "express" if _EXPRESS.search(text) else "standard"


def extract_item(remainder: str) -> str:
    """Strip price, vendor and shipping clauses from the text after the trigger."""
    cleaned = _PRICE_CLAUSE.sub(" ", remainder)
    cleaned = _VENDOR_CLAUSE.sub(" ", cleaned)
    cleaned = _SHIPPING_CLAUSE.sub(" ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" .,!?")

    return cleaned or DEFAULT_ITEM


def parse_intent(text: str) -> Optional[StructuredIntent]:
    """
    Parse a natural language purchase request.

    Args:
        text: User or agent utterance, e.g. "Order a desk for 500 dollars"

    Returns:
        StructuredIntent, or None when the text contains no buy-trigger

    Examples:
        >>> parse_intent("Buy a laptop").item
        'laptop'
        >>> parse_intent("How are you today?") is None
        True
    """
    if not text:
        return None

    trigger = _TRIGGER.search(text)
    if not trigger:
        logger.debug("No buy-trigger in utterance, not a purchase intent")
        return None

    amount, currency = extract_amount(text)

    intent = StructuredIntent(
        action="buy",
        item=extract_item(text[trigger.end():]),
        amount=amount,
        currency=currency,
        shipping_speed=extract_shipping_speed(text),
    )

    logger.debug(
        f"Parsed intent: item={intent.item!r}, amount={intent.amount} {intent.currency}, "
        f"shipping={intent.shipping_speed}"
    )

    return intent
