"""
Pydantic Order Models

A recorded checkout: normalized totals, authorization outcome, and the raw
protocol payload it came from.
"""
from datetime import datetime
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field


class Order(BaseModel):
    """
    Stored checkout record.

    total_cents/currency/country/provider/shipping_speed mirror the
    NormalizedPayload; raw_payload keeps the protocol-specific fields that
    normalization drops.
    """
    order_id: str = Field(pattern="^ord_")
    user_id: str
    protocol: str
    payment_method_id: Optional[str] = None
    total_cents: int = Field(ge=0)
    currency: str
    country: str
    provider: str
    shipping_speed: str
    status: Literal["authorized", "declined"]
    authorization_code: Optional[str] = None
    decline_reason: Optional[str] = None
    raw_payload: Dict[str, Any]
    created_at: datetime
