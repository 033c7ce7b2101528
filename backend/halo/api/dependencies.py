"""
FastAPI dependencies for the process-wide services built in the lifespan.
"""
from fastapi import Request

from ..protocols.registry import ProtocolRegistry
from ..services.checkout_orchestrator import CheckoutOrchestrator
from ..services.normalizer import PayloadNormalizer
from ..services.risk_engine import RiskEngine
from ..services.step_up import StepUpVerificationService


def get_registry(request: Request) -> ProtocolRegistry:
    return request.app.state.registry


def get_step_up(request: Request) -> StepUpVerificationService:
    return request.app.state.step_up


def get_orchestrator(request: Request) -> CheckoutOrchestrator:
    return request.app.state.orchestrator


def get_normalizer(request: Request) -> PayloadNormalizer:
    return request.app.state.orchestrator.normalizer


def get_risk_engine(request: Request) -> RiskEngine:
    return request.app.state.risk_engine
