"""
Pydantic models for conversation analysis.

These are shared across all providers: adapters return raw text, and the
normalizer turns that text into a ThreadlyResponse. Field names follow the
JSON contract the LLM is asked to produce.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Scenario(str, Enum):
    PROFESSIONAL = "Professional"
    PERSONAL = "Personal"
    ROMANTIC = "Romantic"
    FAMILY = "Family"
    CONFLICT = "Conflict"
    SALES = "Sales"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StrategyType(str, Enum):
    RECOMMENDED = "recommended"
    BOLD = "bold"
    SAFE = "safe"
    CAUTION = "caution"


class Analysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    sentiment: str
    dynamics: str
    urgency: Urgency
    urgencyReasoning: str
    keyPoints: tuple[str, ...]


class StrategyResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategyType: StrategyType
    replyText: str  # the literal message to send
    predictedOutcome: str
    riskLevel: RiskLevel
    riskExplanation: str
    reasoning: str
    followUp: str


class Simulator(BaseModel):
    model_config = ConfigDict(frozen=True)

    theirResponse: str
    yourFollowUp: str
    finalReaction: str


class ThreadlyResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    analysis: Analysis
    responses: tuple[StrategyResponse, ...]
    simulator: Simulator


class AnalysisRequest(BaseModel):
    """A validated request, built by the service after input checks pass."""

    model_config = ConfigDict(frozen=True)

    history: str
    scenario: Scenario
    tone: int
    context: str = ""
    provider: str
    credential: str = Field(repr=False)
