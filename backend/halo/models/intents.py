"""
Pydantic StructuredIntent Model

One structured purchase intent per user utterance, produced by the
intent parser and consumed by every protocol adapter.
"""
from typing import Literal
from pydantic import BaseModel, Field


class StructuredIntent(BaseModel):
    """
    Structured buy intent.

    Notes:
    - Amount is in major currency units (dollars, rupees, yen)
    - Immutable once produced
    - Parser falls back to amount=100 and currency=USD when unparseable
    """
    action: Literal["buy"] = "buy"
    item: str = Field(min_length=1)
    amount: float = Field(ge=0, allow_inf_nan=False)
    currency: str = Field(pattern="^[A-Z]{3}$")
    shipping_speed: Literal["standard", "express"] = Field(
        default="standard",
        alias="shippingSpeed"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "action": "buy",
                "item": "desk",
                "amount": 500,
                "currency": "USD",
                "shippingSpeed": "standard"
            }
        }
    }
