"""
Payment Method Service

Adds, verifies and manages tokenized cards.

Raw card numbers are validated and tokenized on the way in and never
persisted. New cards start unverified with a short-lived OTP; the Stripe
test cards (prefix 42) are verified on creation when
settings.auto_verify_test_cards is on.
"""
import json
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db.models import PaymentMethodModel, utcnow
from ..exceptions import (
    PaymentMethodNotFoundError,
    PaymentMethodUnavailableError,
    VerificationFailedError,
)
from ..mocks.card_vault import tokenize_card, is_test_card
from ..models.payment_methods import AddPaymentMethodRequest, BillingAddress, PaymentMethod
from .card_validator import validate_card, validate_expiry

logger = logging.getLogger(__name__)


def _naive_utc(now: Optional[datetime]) -> datetime:
    """Reference time as naive UTC, matching what SQLite returns."""
    if now is None:
        return utcnow()
    if now.tzinfo is not None:
        return now.astimezone(timezone.utc).replace(tzinfo=None)
    return now


def generate_otp(length: Optional[int] = None) -> str:
    length = length or settings.otp_length
    return "".join(secrets.choice("0123456789") for _ in range(length))


def _to_model(row: PaymentMethodModel) -> PaymentMethod:
    billing = json.loads(row.billing_address) if row.billing_address else None
    return PaymentMethod(
        id=row.id,
        user_id=row.user_id,
        tokenized_provider_id=row.tokenized_provider_id,
        card_brand=row.card_brand,
        card_last4=row.card_last4,
        card_exp_month=row.card_exp_month,
        card_exp_year=row.card_exp_year,
        card_holder_name=row.card_holder_name,
        verified=row.verified,
        verification_otp=row.verification_otp,
        verification_otp_expires=row.verification_otp_expires,
        billing_address=BillingAddress(**billing) if billing else None,
        is_default=row.is_default,
        status=row.status,
        created_at=row.created_at,
        last_used=row.last_used,
    )


async def _get_row(
    db: AsyncSession,
    payment_method_id: str,
    user_id: Optional[str] = None
) -> PaymentMethodModel:
    query = select(PaymentMethodModel).where(PaymentMethodModel.id == payment_method_id)
    if user_id is not None:
        query = query.where(PaymentMethodModel.user_id == user_id)

    row = (await db.execute(query)).scalar_one_or_none()
    if row is None:
        raise PaymentMethodNotFoundError(
            f"Payment method {payment_method_id} not found",
            {"payment_method_id": payment_method_id}
        )
    return row


async def _active_rows(db: AsyncSession, user_id: str) -> List[PaymentMethodModel]:
    result = await db.execute(
        select(PaymentMethodModel)
        .where(PaymentMethodModel.user_id == user_id)
        .where(PaymentMethodModel.status == "active")
        .order_by(PaymentMethodModel.created_at)
    )
    return list(result.scalars().all())


# ============================================================================
# Creation & Verification
# ============================================================================

async def add_payment_method(
    db: AsyncSession,
    request: AddPaymentMethodRequest,
    now: Optional[datetime] = None
) -> PaymentMethod:
    """
    Validate, tokenize and store a card.

    Args:
        db: Database session
        request: Card details including the raw number
        now: Reference time for expiry checks and OTP window

    Returns:
        Stored PaymentMethod, including the pending OTP (callers sanitize
        before returning it to clients)

    Raises:
        InvalidCardError: Luhn or expiry failure
    """
    now = _naive_utc(now)
    brand = validate_card(request.card_number, request.card_exp_month, request.card_exp_year, now)
    digits = "".join(ch for ch in request.card_number if ch in "0123456789")

    auto_verified = settings.auto_verify_test_cards and is_test_card(digits)
    otp = None if auto_verified else generate_otp()

    is_first = not await _active_rows(db, request.user_id)

    row = PaymentMethodModel(
        id=f"pm_{uuid.uuid4().hex[:16]}",
        user_id=request.user_id,
        tokenized_provider_id=tokenize_card(digits, brand.brand),
        card_brand=brand.brand,
        card_last4=digits[-4:],
        card_exp_month=request.card_exp_month,
        card_exp_year=request.card_exp_year,
        card_holder_name=request.card_holder_name,
        verified=auto_verified,
        verification_otp=otp,
        verification_otp_expires=(
            now + timedelta(minutes=settings.payment_method_otp_ttl_minutes) if otp else None
        ),
        billing_address=(
            json.dumps(request.billing_address.model_dump()) if request.billing_address else None
        ),
        is_default=is_first,
        status="active",
        created_at=now,
    )

    # validate the record before it is persisted
    payment_method = _to_model(row)

    db.add(row)
    await db.commit()

    logger.info(
        f"Added payment method {payment_method.id} for {request.user_id}: "
        f"{brand.brand} ****{payment_method.card_last4}, verified={auto_verified}, default={is_first}"
    )
    if otp and settings.demo_mode:
        logger.info(f"[DEMO] Payment method OTP for {payment_method.id}: {otp}")

    return payment_method


async def verify_payment_method(
    db: AsyncSession,
    payment_method_id: str,
    otp: str,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> PaymentMethod:
    """
    Confirm a card with its OTP.

    Raises:
        PaymentMethodNotFoundError: Unknown id
        VerificationFailedError: No OTP pending, OTP expired, or mismatch
    """
    now = _naive_utc(now)
    row = await _get_row(db, payment_method_id, user_id)

    if not row.verification_otp or not row.verification_otp_expires:
        raise VerificationFailedError("No OTP pending", {"payment_method_id": payment_method_id})

    if row.verification_otp_expires < now:
        raise VerificationFailedError("OTP expired", {"payment_method_id": payment_method_id})

    if not secrets.compare_digest(row.verification_otp, otp):
        raise VerificationFailedError("Invalid OTP", {"payment_method_id": payment_method_id})

    row.verified = True
    row.verification_otp = None
    row.verification_otp_expires = None
    await db.commit()
    await db.refresh(row)

    logger.info(f"Payment method {payment_method_id} verified")
    return _to_model(row)


async def resend_otp(
    db: AsyncSession,
    payment_method_id: str,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> PaymentMethod:
    """Issue a fresh OTP and expiry window for an unverified card."""
    now = _naive_utc(now)
    row = await _get_row(db, payment_method_id, user_id)

    if row.verified:
        raise VerificationFailedError(
            "Payment method is already verified",
            {"payment_method_id": payment_method_id}
        )

    row.verification_otp = generate_otp()
    row.verification_otp_expires = now + timedelta(minutes=settings.payment_method_otp_ttl_minutes)
    await db.commit()
    await db.refresh(row)

    logger.info(f"Resent OTP for payment method {payment_method_id}")
    if settings.demo_mode:
        logger.info(f"[DEMO] Payment method OTP for {row.id}: {row.verification_otp}")

    return _to_model(row)


# ============================================================================
# Retrieval & Management
# ============================================================================

async def list_payment_methods(db: AsyncSession, user_id: str) -> List[PaymentMethod]:
    """Active payment methods for a user, OTP stripped."""
    return [_to_model(row).sanitized() for row in await _active_rows(db, user_id)]


async def get_payment_method(
    db: AsyncSession,
    payment_method_id: str,
    user_id: Optional[str] = None
) -> PaymentMethod:
    return _to_model(await _get_row(db, payment_method_id, user_id)).sanitized()


async def get_usable_payment_method(
    db: AsyncSession,
    payment_method_id: str,
    user_id: Optional[str] = None
) -> PaymentMethod:
    """
    Payment method that may be charged right now.

    Raises:
        PaymentMethodNotFoundError: Unknown id
        PaymentMethodUnavailableError: Not active or not verified
    """
    payment_method = await get_payment_method(db, payment_method_id, user_id)

    if payment_method.status != "active":
        raise PaymentMethodUnavailableError(
            f"Payment method is {payment_method.status}",
            {"payment_method_id": payment_method_id, "status": payment_method.status}
        )
    if not payment_method.verified:
        raise PaymentMethodUnavailableError(
            "Payment method has not been verified",
            {"payment_method_id": payment_method_id}
        )

    return payment_method


async def set_default(db: AsyncSession, payment_method_id: str, user_id: str) -> PaymentMethod:
    """Make one active method the user's default and clear the flag elsewhere."""
    row = await _get_row(db, payment_method_id, user_id)
    if row.status != "active":
        raise PaymentMethodUnavailableError(
            f"Payment method is {row.status}",
            {"payment_method_id": payment_method_id, "status": row.status}
        )

    for other in await _active_rows(db, user_id):
        other.is_default = other.id == payment_method_id

    await db.commit()
    await db.refresh(row)

    logger.info(f"Default payment method for {user_id} set to {payment_method_id}")
    return _to_model(row).sanitized()


async def remove_payment_method(db: AsyncSession, payment_method_id: str, user_id: str) -> None:
    """
    Soft-remove a card.

    If it was the default, the oldest remaining active method becomes the
    default.
    """
    row = await _get_row(db, payment_method_id, user_id)
    was_default = row.is_default

    row.status = "removed"
    row.is_default = False

    if was_default:
        remaining = [r for r in await _active_rows(db, user_id) if r.id != payment_method_id]
        if remaining:
            remaining[0].is_default = True

    await db.commit()
    logger.info(f"Removed payment method {payment_method_id} for {user_id}")


async def mark_used(db: AsyncSession, payment_method_id: str, now: Optional[datetime] = None) -> None:
    row = await _get_row(db, payment_method_id)
    row.last_used = _naive_utc(now)
    await db.commit()


async def expire_payment_methods(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Flip active cards whose expiry month has passed to "expired".

    Returns:
        Number of payment methods expired
    """
    now = _naive_utc(now)
    result = await db.execute(
        select(PaymentMethodModel).where(PaymentMethodModel.status == "active")
    )

    expired = 0
    for row in result.scalars().all():
        if not validate_expiry(row.card_exp_month, row.card_exp_year, now):
            row.status = "expired"
            row.is_default = False
            expired += 1

    if expired:
        await db.commit()
        logger.info(f"Expired {expired} payment method(s)")

    return expired
