"""Fallback and clarification models."""

from typing import Literal

from pydantic import BaseModel, Field

FallbackType = Literal["refine", "broaden", "redirect", "clarify", "alternative_source"]


class FallbackStrategy(BaseModel):
    """Recovery strategy suggested for a weak result set."""

    type: FallbackType
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    suggested_actions: list[str] = Field(default_factory=list)
    alternative_queries: list[str] | None = None
    clarifying_questions: list[str] | None = None
    recommended_sources: list[str] | None = None


class FallbackResponse(BaseModel):
    """Advisory text returned alongside weak results."""

    should_fallback: bool
    strategy: FallbackStrategy
    enhanced_message: str
    user_guidance: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


class QueryCharacteristics(BaseModel):
    """Shape of the original query as seen by the fallback analyzer."""

    is_vague: bool = False
    is_too_specific: bool = False
    needs_context: bool = False
    missing_location: bool = False
    missing_timeframe: bool = False
    query_length: int = 0
    complexity: Literal["simple", "moderate", "complex"] = "simple"


class ResultMetrics(BaseModel):
    """Numbers the fallback trigger is computed from."""

    result_count: int = 0
    average_score: float = 0.0
    top_result_score: float = 0.0
    diversity_score: float = 0.0
