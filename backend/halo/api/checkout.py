"""
Checkout API Endpoints

prepare: utterance -> protocol payload (+ whether step-up is needed)
submit:  protocol payload + payment method -> authorized/declined order
"""
from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional
import logging

from ..db.init_db import get_db
from ..services.checkout_orchestrator import CheckoutOrchestrator
from ..services.order_service import record_order
from ..services.payment_method_service import get_payment_method, mark_used
from .dependencies import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


class PrepareCheckoutRequest(BaseModel):
    text: str = Field(..., max_length=2000)
    protocol: str = "acp"


class SubmitCheckoutRequest(BaseModel):
    user_id: str
    payment_method_id: str
    payload: Dict[str, Any]
    protocol: Optional[str] = None
    session_token: Optional[str] = None


@router.post("/checkout/prepare")
async def prepare_checkout(
    request: PrepareCheckoutRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """
    Parse, build and normalize in one step.

    Returns:
        {
            "intent": StructuredIntent,
            "protocol": str,
            "payload": protocol payload,
            "normalized": NormalizedPayload,
            "step_up_required": bool,
            "risk": RiskAssessment
        }
    """
    preparation = orchestrator.prepare(request.text, request.protocol)

    return {
        "intent": preparation.intent.model_dump(by_alias=True),
        "protocol": preparation.protocol,
        "payload": preparation.payload.model_dump(by_alias=True),
        "normalized": preparation.normalized.model_dump(),
        "step_up_required": preparation.step_up_required,
        "risk": preparation.risk.model_dump(mode="json"),
    }


@router.post("/checkout/submit")
async def submit_checkout(
    request: SubmitCheckoutRequest = Body(...),
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """
    Submit a protocol payload and record the resulting order.

    Over the step-up threshold, or when the risk review asks for a
    challenge, a verified session_token is required (403
    halo:verification:required otherwise). A blocked risk review is
    refused with 403 halo:risk:blocked.
    """
    payment_method = await get_payment_method(db, request.payment_method_id, request.user_id)

    result = orchestrator.submit(
        request.payload,
        payment_method,
        session_token=request.session_token,
        protocol=request.protocol,
    )

    order = await record_order(
        db,
        user_id=request.user_id,
        protocol=result.protocol,
        normalized=result.normalized,
        authorization=result.authorization,
        raw_payload=result.raw_payload,
        payment_method_id=payment_method.id,
    )
    if result.authorized:
        await mark_used(db, payment_method.id)

    return {
        "order_id": order.order_id,
        "status": order.status,
        "authorization_code": order.authorization_code,
        "decline_reason": order.decline_reason,
        "protocol": result.protocol,
        "normalized": result.normalized.model_dump(),
        "risk": result.risk.model_dump(mode="json"),
    }
