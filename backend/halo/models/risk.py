"""
Pydantic Risk Assessment Models

Score and decision produced for every normalized checkout record.
"""
from enum import Enum
from typing import List
from pydantic import BaseModel, Field


class RiskDecision(str, Enum):
    APPROVE = "approve"
    CHALLENGE = "challenge"
    BLOCK = "block"


class RiskAssessment(BaseModel):
    """
    Result of scoring one normalized checkout.

    factors lists the rules that contributed to the score, e.g.
    ["moderate_value", "express_shipping"].
    """
    risk_score: int = Field(ge=0)
    decision: RiskDecision
    factors: List[str] = Field(default_factory=list)
    velocity_count: int = Field(default=0, ge=0)

    @property
    def requires_challenge(self) -> bool:
        return self.decision == RiskDecision.CHALLENGE

    @property
    def blocked(self) -> bool:
        return self.decision == RiskDecision.BLOCK
