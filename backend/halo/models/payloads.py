"""
Pydantic Protocol Payload Models

Wire shapes for ACP, UCP and x402 checkout payloads plus the canonical
NormalizedPayload. Field names and nesting are a compatibility surface
and must not be renamed.

ProtocolPayload is a discriminated union on the "protocol" tag.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter


# ==================== ACP ====================

class ACPCheckoutBody(BaseModel):
    """ACP checkout-session body. Unknown keys are extension fields."""
    total_amount: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    currency: Optional[str] = None
    country: str = "US"
    payment_provider: str = "stripe"
    shipping_type: str = "standard"

    model_config = {"extra": "allow"}


class ACPPayload(BaseModel):
    """Agentic Commerce Protocol checkout session."""
    protocol: Literal["ACP"] = "ACP"
    payload: ACPCheckoutBody

    model_config = {"extra": "allow"}


# ==================== UCP ====================

class UCPParams(BaseModel):
    """UCP intent parameters."""
    item: str = "Item"
    amount: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    currency: Optional[str] = None
    shipping_speed: str = "standard"

    model_config = {"extra": "allow"}


class UCPIntentBody(BaseModel):
    """UCP intent: an action plus its parameters."""
    action: str
    params: UCPParams

    model_config = {"extra": "allow"}


class UCPIntent(BaseModel):
    """Universal Commerce Protocol intent."""
    protocol: Literal["UCP"] = "UCP"
    intent: UCPIntentBody

    model_config = {"extra": "allow"}


# ==================== x402 ====================

class X402Resource(BaseModel):
    """Resource guarded by the 402 challenge."""
    url: str
    description: str = ""
    mimeType: str = "application/json"

    model_config = {"extra": "allow"}


class X402Requirement(BaseModel):
    """One accepted way to pay. Amount is a string in atomic units."""
    scheme: str = "exact"
    network: str
    asset: str
    amount: Optional[str] = Field(default=None, pattern=r"^[0-9]+$")
    payTo: str
    maxTimeoutSeconds: int = 60
    extra: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


class X402Payload(BaseModel):
    """HTTP 402 Payment Required challenge."""
    protocol: Literal["x402"] = "x402"
    x402Version: int = 2
    error: Optional[str] = None
    resource: X402Resource
    accepts: List[X402Requirement] = Field(default_factory=list)
    extensions: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


# ==================== Union ====================

ProtocolPayload = Annotated[
    Union[ACPPayload, UCPIntent, X402Payload],
    Field(discriminator="protocol")
]

protocol_payload_adapter: TypeAdapter = TypeAdapter(ProtocolPayload)


# ==================== Canonical ====================

class HaloNormalized(BaseModel):
    """Canonical provider-agnostic checkout record."""
    total_cents: int = Field(ge=0)
    currency: str
    country: str
    provider: str
    shipping_speed: str

    model_config = {"extra": "forbid"}


class NormalizedPayload(BaseModel):
    """
    Normalized payload persisted and displayed downstream.

    Invariant: total_cents == round(amount * 100), integer, non-negative.
    """
    halo_normalized: HaloNormalized

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "example": {
                "halo_normalized": {
                    "total_cents": 8300,
                    "currency": "USD",
                    "country": "US",
                    "provider": "stripe",
                    "shipping_speed": "express"
                }
            }
        }
    }
