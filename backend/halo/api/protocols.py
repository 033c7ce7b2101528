"""
Protocol API Endpoints

Registry inspection, detection, building, normalization and risk scoring.
Used by the protocol inspector.
"""
from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel
from typing import Any, Dict, Optional
import logging

from ..exceptions import UnknownProtocolError
from ..models.intents import StructuredIntent
from ..protocols.registry import ProtocolRegistry
from ..services.checkout_orchestrator import CheckoutOrchestrator
from ..services.normalizer import PayloadNormalizer
from ..services.risk_engine import RiskEngine
from .dependencies import get_registry, get_orchestrator, get_normalizer, get_risk_engine

logger = logging.getLogger(__name__)

router = APIRouter()


class BuildRequest(BaseModel):
    protocol: str
    intent: StructuredIntent


class NormalizeRequest(BaseModel):
    payload: Dict[str, Any]
    protocol: Optional[str] = None


@router.get("/protocols")
async def list_protocols(registry: ProtocolRegistry = Depends(get_registry)) -> Dict[str, Any]:
    """Registered adapters in detection order."""
    protocols = [entry.adapter.metadata() for entry in registry.list()]
    return {"protocols": protocols, "count": len(protocols)}


@router.post("/detect")
async def detect_protocol(
    payload: Dict[str, Any] = Body(...),
    registry: ProtocolRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    """
    Identify which protocol a raw payload belongs to.

    Raises:
        UnknownProtocolError: No registered adapter claims it
    """
    protocol = registry.detect(payload)
    if protocol is None:
        raise UnknownProtocolError(
            "Payload does not match any registered protocol",
            {"keys": sorted(payload.keys())}
        )

    adapter = registry.get(protocol)
    return {"protocol": protocol, "version": adapter.version}


@router.post("/build")
async def build_payload(
    request: BuildRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """Build a protocol payload from a structured intent."""
    payload = orchestrator.build(request.intent, request.protocol)
    return {
        "protocol": orchestrator.registry.get(request.protocol).protocol_name,
        "payload": payload.model_dump(by_alias=True),
    }


@router.post("/normalize")
async def normalize_payload(
    request: NormalizeRequest,
    normalizer: PayloadNormalizer = Depends(get_normalizer)
) -> Dict[str, Any]:
    """Normalize any registered protocol's payload into the canonical shape."""
    protocol, normalized = normalizer.normalize(request.payload, request.protocol)
    return {"protocol": protocol, **normalized.model_dump()}


@router.post("/risk/assess")
async def assess_payload(
    request: NormalizeRequest,
    normalizer: PayloadNormalizer = Depends(get_normalizer),
    risk_engine: RiskEngine = Depends(get_risk_engine)
) -> Dict[str, Any]:
    """
    Normalize a payload and score it.

    Velocity is not recorded; only a submitted checkout counts toward it.
    """
    protocol, normalized = normalizer.normalize(request.payload, request.protocol)
    risk = risk_engine.assess(normalized)
    return {
        "protocol": protocol,
        "normalized": normalized.model_dump(),
        "risk": risk.model_dump(mode="json"),
    }
