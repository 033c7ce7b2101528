"""
Card Validation API Endpoints

Stateless checks for the add-card form.
"""
from fastapi import APIRouter
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional
import logging

from ..services.card_validator import detect_brand, format_card_number, luhn_check, validate_expiry

logger = logging.getLogger(__name__)

router = APIRouter()


class ValidateCardRequest(BaseModel):
    card_number: str = Field(..., max_length=32)
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None


@router.post("/validate")
async def validate_card_endpoint(request: ValidateCardRequest) -> Dict[str, Any]:
    """
    Luhn, brand and expiry report for a card number.

    Expiry is only checked when both month and year are supplied.
    """
    brand = detect_brand(request.card_number)
    luhn_valid = luhn_check(request.card_number)

    expiry_valid = None
    if request.exp_month is not None and request.exp_year is not None:
        expiry_valid = validate_expiry(request.exp_month, request.exp_year)

    return {
        "valid": luhn_valid and expiry_valid is not False,
        "luhn_valid": luhn_valid,
        "expiry_valid": expiry_valid,
        "brand": brand.brand,
        "brand_name": brand.name,
        "brand_color": brand.color,
        "formatted": format_card_number(request.card_number),
    }
