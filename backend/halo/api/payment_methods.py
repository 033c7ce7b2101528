"""
Payment Methods API Endpoints

Tokenized card management. Responses never include raw card numbers;
the pending OTP is only echoed back in demo mode.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any
import logging

from ..config import settings
from ..db.init_db import get_db
from ..models.payment_methods import AddPaymentMethodRequest, VerifyPaymentMethodRequest
from ..services import payment_method_service as service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
async def add_payment_method(
    request: AddPaymentMethodRequest,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """
    Add a card.

    Returns:
        {"payment_method": PaymentMethod, "requires_verification": bool,
         "demo_otp": str | null}
    """
    payment_method = await service.add_payment_method(db, request)

    return {
        "payment_method": payment_method.sanitized().model_dump(mode="json"),
        "requires_verification": not payment_method.verified,
        "demo_otp": payment_method.verification_otp if settings.demo_mode else None,
    }


@router.get("")
async def list_payment_methods(
    user_id: str = Query(..., description="User identifier"),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    payment_methods = await service.list_payment_methods(db, user_id)
    return {
        "user_id": user_id,
        "payment_methods": [pm.model_dump(mode="json") for pm in payment_methods],
        "count": len(payment_methods),
    }


@router.get("/{payment_method_id}")
async def get_payment_method(
    payment_method_id: str,
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    payment_method = await service.get_payment_method(db, payment_method_id, user_id)
    return payment_method.model_dump(mode="json")


@router.post("/{payment_method_id}/verify")
async def verify_payment_method(
    payment_method_id: str,
    request: VerifyPaymentMethodRequest,
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    payment_method = await service.verify_payment_method(db, payment_method_id, request.otp, user_id)
    return payment_method.sanitized().model_dump(mode="json")


@router.post("/{payment_method_id}/resend-otp")
async def resend_otp(
    payment_method_id: str,
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    payment_method = await service.resend_otp(db, payment_method_id, user_id)
    return {
        "payment_method_id": payment_method.id,
        "otp_expires": payment_method.verification_otp_expires.isoformat(),
        "demo_otp": payment_method.verification_otp if settings.demo_mode else None,
    }


@router.post("/{payment_method_id}/default")
async def set_default_payment_method(
    payment_method_id: str,
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    payment_method = await service.set_default(db, payment_method_id, user_id)
    return payment_method.model_dump(mode="json")


@router.delete("/{payment_method_id}")
async def remove_payment_method(
    payment_method_id: str,
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await service.remove_payment_method(db, payment_method_id, user_id)
    return {"payment_method_id": payment_method_id, "status": "removed"}
