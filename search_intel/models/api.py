"""Request and response models for the HTTP surface and the search service."""

from typing import Literal

from pydantic import BaseModel, Field

from search_intel.models.cache import MatchType
from search_intel.models.context import AssembledContext, ContextAssemblyOptions, MemoryContext
from search_intel.models.fallback import FallbackResponse
from search_intel.models.intent import QueryIntent, UserContext
from search_intel.models.query import RewrittenQuery
from search_intel.models.search import RefinementSuggestions, ResultsSummary, ScoredResult

SearchStatus = Literal["completed", "cached", "skipped", "unavailable"]


class IntentRequest(BaseModel):
    """Intent classification request."""

    query: str = Field(max_length=2000)
    user_context: UserContext | None = None


class SearchRequest(BaseModel):
    """Web search request."""

    query: str = Field(max_length=2000)
    user_id: str | None = Field(default=None, description="Memory store key for the user")
    conversation_history: list[str] = Field(
        default_factory=list, description="Recent messages, oldest first"
    )
    force_refresh: bool = Field(default=False, description="Bypass the similarity cache")
    max_results: int | None = Field(
        default=None, ge=1, le=8, description="Number of results to return"
    )
    include_reasoning: bool = Field(
        default=False, description="Include intent, rewrite and cache match details"
    )


class SearchOutcome(BaseModel):
    """Result of running one query through the search pipeline."""

    query: str
    status: SearchStatus
    search_query: str | None = Field(default=None, description="Query sent to the provider")
    results: list[ScoredResult] = Field(default_factory=list)
    summary: ResultsSummary = Field(default_factory=ResultsSummary)
    suggestions: RefinementSuggestions = Field(default_factory=RefinementSuggestions)
    from_cache: bool = False
    cache_id: str | None = None
    cache_match_type: MatchType | None = None
    cache_confidence: float | None = None
    fallback: FallbackResponse | None = None
    fallback_message: str = ""
    warning: str | None = None
    quality: Literal["high", "moderate"] | None = None
    message: str | None = None
    error: str | None = None
    intent: QueryIntent | None = None
    rewritten_query: RewrittenQuery | None = None
    processing_time: float = Field(default=0.0, ge=0.0, description="Seconds")


# The HTTP response is the outcome itself
SearchResponse = SearchOutcome


class ContextRequest(BaseModel):
    """Context assembly request."""

    query: str = Field(max_length=2000)
    user_id: str | None = None
    conversation_history: list[str] = Field(default_factory=list)
    memory: MemoryContext | None = None
    options: ContextAssemblyOptions | None = None
    include_web_results: bool = True


class ContextResponse(BaseModel):
    """Search outcome plus the assembled context built from it."""

    search: SearchOutcome | None = None
    context: AssembledContext


class CleanupResponse(BaseModel):
    """Result of a cache cleanup."""

    removed: int = Field(ge=0)
    size: int = Field(ge=0)
