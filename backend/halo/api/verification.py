"""
Step-Up Verification API Endpoints

OTP / simulated biometric gate for high-value checkouts.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import Dict, Any
import logging

from ..exceptions import VerificationSessionError
from ..models.verification import VerificationChallenge, VerificationMethod, VerificationResult
from ..services.step_up import StepUpVerificationService
from .dependencies import get_step_up

logger = logging.getLogger(__name__)

router = APIRouter()


class StartVerificationRequest(BaseModel):
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    method: VerificationMethod = VerificationMethod.OTP
    force: bool = False


class SubmitOTPRequest(BaseModel):
    otp: str = Field(..., max_length=12, pattern="^[0-9]+$")


@router.post("/start")
async def start_verification(
    request: StartVerificationRequest,
    step_up: StepUpVerificationService = Depends(get_step_up)
) -> VerificationChallenge:
    """
    Open a step-up session.

    Amounts at or below the threshold come back already verified with
    step_up_required=false unless force is set (risk decision "challenge").
    """
    return step_up.start_verification(request.amount, request.method, force=request.force)


@router.post("/{session_token}/otp")
async def submit_otp(
    session_token: str,
    request: SubmitOTPRequest,
    step_up: StepUpVerificationService = Depends(get_step_up)
) -> VerificationResult:
    """Submit the OTP. A wrong code returns state=failed; the session stays open for retry."""
    return step_up.submit_otp(session_token, request.otp)


@router.post("/{session_token}/biometric")
async def complete_biometric(
    session_token: str,
    step_up: StepUpVerificationService = Depends(get_step_up)
) -> VerificationResult:
    """Finish a simulated Face ID / Touch ID / fingerprint scan."""
    return step_up.complete_biometric(session_token)


@router.get("/{session_token}")
async def get_verification(
    session_token: str,
    step_up: StepUpVerificationService = Depends(get_step_up)
) -> VerificationResult:
    session = step_up.get_session(session_token)
    if session is None:
        raise VerificationSessionError(
            "Verification session not found or already closed",
            {"session_token": session_token}
        )
    return session


@router.delete("/{session_token}")
async def cancel_verification(
    session_token: str,
    step_up: StepUpVerificationService = Depends(get_step_up)
) -> Dict[str, Any]:
    """Cancel and discard a session. Idempotent."""
    cancelled = step_up.cancel(session_token)
    return {"session_token": session_token, "cancelled": cancelled, "state": "idle"}
