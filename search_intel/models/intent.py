"""Intent classification models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PrimaryIntent = Literal[
    "factual", "recommendation", "comparison", "status", "planning", "conversational"
]
SearchPriority = Literal["high", "medium", "low", "skip"]
QueryType = Literal["factual", "local", "temporal", "comparative", "exploratory"]


class IntentConfidence(BaseModel):
    """Confidence scores for the four classification axes."""

    model_config = ConfigDict(frozen=True)

    needs_web_search: float = Field(default=0.0, ge=0.0, le=1.0)
    temporal_relevance: float = Field(default=0.0, ge=0.0, le=1.0)
    location_relevance: float = Field(default=0.0, ge=0.0, le=1.0)
    personal_relevance: float = Field(default=0.0, ge=0.0, le=1.0)


class IntentEntities(BaseModel):
    """Entities extracted from a query, in order of appearance."""

    model_config = ConfigDict(frozen=True)

    locations: list[str] = Field(default_factory=list)
    time_references: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    comparisons: list[str] = Field(default_factory=list)


class SearchStrategy(BaseModel):
    """How (and whether) a query should be searched."""

    model_config = ConfigDict(frozen=True)

    priority: SearchPriority = "skip"
    query_type: QueryType = "factual"
    expected_sources: list[str] = Field(default_factory=lambda: ["general"])


class QueryIntent(BaseModel):
    """Immutable result of classifying one query."""

    model_config = ConfigDict(frozen=True)

    primary_intent: PrimaryIntent = "conversational"
    confidence: IntentConfidence = Field(default_factory=IntentConfidence)
    entities: IntentEntities = Field(default_factory=IntentEntities)
    search_strategy: SearchStrategy = Field(default_factory=SearchStrategy)
    reasoning: list[str] = Field(default_factory=list)


class ContextPreferences(BaseModel):
    """Stored preferences the classifier and rewriter consult."""

    career_field: str | None = None
    lifestyle: list[str] = Field(default_factory=list)
    priorities: list[str] = Field(default_factory=list)


class UserContext(BaseModel):
    """Versioned per-request user context.

    Every field the pipeline reads is listed here with a neutral default, so
    components never need to probe for missing keys.
    """

    schema_version: Literal[1] = 1
    current_location: str | None = None
    target_cities: list[str] = Field(default_factory=list)
    preferences: ContextPreferences = Field(default_factory=ContextPreferences)
    conversation_history: list[str] = Field(default_factory=list)
    recent_topics: list[str] = Field(default_factory=list)
    last_web_search: datetime | None = None
