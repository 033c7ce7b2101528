"""
Card Validator

Stateless card number and expiry checks used before a card is stored
or a checkout is submitted.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..exceptions import InvalidCardError


_NON_DIGITS = re.compile(r"[^0-9]")
_CARD_CHARS = re.compile(r"^[0-9 -]+$")

MIN_CARD_DIGITS = 12
MAX_CARD_DIGITS = 19

# Ordered: first matching rule wins
_MASTERCARD_2_SERIES = re.compile(r"^2(?:22[1-9]|2[3-9][0-9]|[3-6][0-9]{2}|7[01][0-9]|720)")
_DISCOVER = re.compile(
    r"^6(?:011|5|4[4-9]|22(?:1(?:2[6-9]|[3-9][0-9])|[2-8][0-9]{2}|9(?:[01][0-9]|2[0-5])))"
)


@dataclass(frozen=True)
class CardBrand:
    """Detected card network with display metadata."""
    brand: str
    name: str
    color: str


VISA = CardBrand("visa", "Visa", "#1434CB")
MASTERCARD = CardBrand("mastercard", "Mastercard", "#EB001B")
AMEX = CardBrand("amex", "American Express", "#006FCF")
DISCOVER = CardBrand("discover", "Discover", "#FF6000")
UNKNOWN = CardBrand("unknown", "Card", "#6b7280")


def _digits(value: str) -> str:
    return _NON_DIGITS.sub("", value or "")


def luhn_check(card_number: str) -> bool:
    """
    Mod-10 check digit validation.

    Non-digit characters are stripped first. Doubling starts with the
    second digit from the right; doubled values above 9 are reduced by 9.
    """
    digits = _digits(card_number)
    if not digits:
        return False

    total = 0
    double = False
    for ch in reversed(digits):
        digit = int(ch)
        if double:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
        double = not double

    return total % 10 == 0


def detect_brand(card_number: str) -> CardBrand:
    """Detect the card network from its IIN prefix."""
    digits = _digits(card_number)

    if digits.startswith("4"):
        return VISA
    if re.match(r"^5[1-5]", digits) or _MASTERCARD_2_SERIES.match(digits):
        return MASTERCARD
    if re.match(r"^3[47]", digits):
        return AMEX
    if _DISCOVER.match(digits):
        return DISCOVER

    return UNKNOWN


def format_card_number(value: str) -> str:
    """Group digits 4-6-5 for Amex and 4-4-4-4 for everything else."""
    digits = _digits(value)

    if detect_brand(digits) is AMEX:
        groups = [digits[0:4], digits[4:10], digits[10:15], digits[15:]]
    else:
        groups = [digits[i:i + 4] for i in range(0, len(digits), 4)]

    return " ".join(group for group in groups if group)


def validate_expiry(month: int, year: int, now: Optional[datetime] = None) -> bool:
    """
    Check a card expiry against the current month.

    Args:
        month: Expiry month (1-12)
        year: Four-digit expiry year
        now: Reference time, defaults to wall-clock UTC

    Returns:
        False if the month is out of range or the expiry month has passed
    """
    now = now or datetime.now(timezone.utc)

    if month < 1 or month > 12:
        return False
    if year < now.year:
        return False
    if year == now.year and month < now.month:
        return False

    return True


def validate_card(
    card_number: str,
    exp_month: int,
    exp_year: int,
    now: Optional[datetime] = None
) -> CardBrand:
    """
    Validate a card before storage or submission.

    Returns:
        Detected CardBrand

    Raises:
        InvalidCardError: If the number is malformed or the Luhn or
            expiry check fails
    """
    if not _CARD_CHARS.match(card_number or ""):
        raise InvalidCardError(
            "Card number may only contain digits, spaces and dashes",
            {"reason": "format"}
        )

    digits = _digits(card_number)
    if not MIN_CARD_DIGITS <= len(digits) <= MAX_CARD_DIGITS:
        raise InvalidCardError(
            f"Card number must have {MIN_CARD_DIGITS}-{MAX_CARD_DIGITS} digits",
            {"reason": "length", "digits": len(digits)}
        )

    if not luhn_check(digits):
        raise InvalidCardError(
            "Card number failed checksum validation",
            {"reason": "luhn", "last4": digits[-4:]}
        )

    if not validate_expiry(exp_month, exp_year, now):
        raise InvalidCardError(
            f"Card expiry {exp_month:02d}/{exp_year} is invalid or in the past",
            {"reason": "expiry", "exp_month": exp_month, "exp_year": exp_year}
        )

    return detect_brand(digits)
