"""
Intent API Endpoints

Free-text purchase request -> StructuredIntent.
"""
from fastapi import APIRouter
from pydantic import BaseModel, Field
from typing import Dict, Any
import logging

from ..services.intent_parser import parse_intent

logger = logging.getLogger(__name__)

router = APIRouter()


class ParseIntentRequest(BaseModel):
    text: str = Field(..., max_length=2000)


@router.post("/intents/parse")
async def parse_intent_endpoint(request: ParseIntentRequest) -> Dict[str, Any]:
    """
    Parse a purchase request.

    Returns:
        {"parsed": bool, "intent": StructuredIntent | null}

    A message without a buy-trigger is not an error: parsed is false and
    intent is null.

    Example:
        POST /halo/intents/parse {"text": "Buy nike shoes for $120 with express shipping"}
    """
    intent = parse_intent(request.text)

    return {
        "parsed": intent is not None,
        "intent": intent.model_dump(by_alias=True) if intent else None,
    }
