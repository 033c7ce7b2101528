"""
Pydantic PaymentMethod Models

Tokenized card records. Raw card numbers never leave the request model:
only brand, last four digits and the vault token are persisted.
"""
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field


class BillingAddress(BaseModel):
    """Billing address attached to a card."""
    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = Field(default="US", min_length=2, max_length=2)


class PaymentMethod(BaseModel):
    """
    Stored payment method.

    Lifecycle:
    - Created unverified on add (OTP pending)
    - Verified once the OTP check passes inside its expiry window
    - "expired" when the card expiry passes
    - "removed" on deletion (soft state, never physically deleted)
    """
    id: str = Field(pattern="^pm_")
    user_id: str
    tokenized_provider_id: str = Field(pattern="^tok_")
    card_brand: str
    card_last4: str = Field(pattern="^[0-9]{4}$")
    card_exp_month: int = Field(ge=1, le=12)
    card_exp_year: int
    card_holder_name: str
    verified: bool = False
    verification_otp: Optional[str] = None
    verification_otp_expires: Optional[datetime] = None
    billing_address: Optional[BillingAddress] = None
    is_default: bool = False
    status: Literal["active", "expired", "removed"] = "active"
    created_at: datetime
    last_used: Optional[datetime] = None

    def sanitized(self) -> "PaymentMethod":
        """Copy without the pending OTP value."""
        return self.model_copy(update={"verification_otp": None})


class AddPaymentMethodRequest(BaseModel):
    """Request to add a card. The raw number is tokenized immediately."""
    user_id: str
    card_number: str = Field(min_length=12, max_length=23)
    card_holder_name: str
    card_exp_month: int
    card_exp_year: int
    billing_address: Optional[BillingAddress] = None


class VerifyPaymentMethodRequest(BaseModel):
    """OTP submission for a pending payment method."""
    otp: str = Field(pattern="^[0-9]+$")
