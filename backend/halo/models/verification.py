"""
Pydantic Step-Up Verification Models

States and results of the OTP / simulated biometric gate that protects
high-value checkouts.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class VerificationState(str, Enum):
    IDLE = "idle"
    AWAITING_INPUT = "awaiting_input"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


class VerificationMethod(str, Enum):
    OTP = "otp"
    FACE_ID = "face_id"
    TOUCH_ID = "touch_id"
    FINGERPRINT = "fingerprint"

    @property
    def is_biometric(self) -> bool:
        return self is not VerificationMethod.OTP


class VerificationChallenge(BaseModel):
    """
    Returned when a step-up session starts.

    display_otp is only populated in demo mode: the simulated environment
    shows the code to the user instead of sending it.
    """
    session_token: str
    method: VerificationMethod
    state: VerificationState
    amount: float = Field(ge=0, allow_inf_nan=False)
    step_up_required: bool
    display_otp: Optional[str] = None
    created_at: datetime


class VerificationResult(BaseModel):
    """Outcome of an OTP submission or biometric completion."""
    session_token: str
    method: VerificationMethod
    state: VerificationState
    verified: bool
    attempts: int = 0
    error_code: Optional[str] = None
    message: str
