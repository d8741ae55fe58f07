"""User memory models kept by the memory store."""

from datetime import datetime

from pydantic import BaseModel, Field


class UserPreferences(BaseModel):
    """Structured relocation preferences known about a user."""

    career_field: str | None = None
    job_preferences: list[str] = Field(default_factory=list)
    lifestyle_needs: list[str] = Field(default_factory=list)
    family_requirements: list[str] = Field(default_factory=list)
    housing_constraints: str | None = None
    budget: str | None = None
    discussed_cities: list[str] = Field(default_factory=list)
    transportation_concerns: list[str] = Field(default_factory=list)
    work_setup: str | None = None
    cost_of_living_preferences: list[str] = Field(default_factory=list)
    preferred_neighborhoods: list[str] = Field(default_factory=list)
    timeframe: str | None = None
    must_have_amenities: list[str] = Field(default_factory=list)
    deal_breakers: list[str] = Field(default_factory=list)


class ConversationSummary(BaseModel):
    """Rolling summary of a user's conversation."""

    summary: str = ""
    last_updated: datetime | None = None
    message_count: int = Field(default=0, ge=0)
    key_topics: list[str] = Field(default_factory=list)
    urgent_queries: list[str] = Field(default_factory=list)
    location_context: list[str] = Field(default_factory=list)


class ContextualMemory(BaseModel):
    """Everything the store remembers about one user."""

    conversation_summary: ConversationSummary = Field(default_factory=ConversationSummary)
    recent_searches: list[str] = Field(default_factory=list)
    last_web_search: datetime | None = None
    adaptive_prompts: list[str] = Field(default_factory=list)
