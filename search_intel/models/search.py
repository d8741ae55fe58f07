"""Web search result models shared by the provider client, filter and cache."""

from typing import Literal

from pydantic import BaseModel, Field

SourceType = Literal["news", "official", "review", "social", "commercial", "general"]


class WebSearchResult(BaseModel):
    """Raw result returned by a search provider.

    Attributes:
        title: Result title
        snippet: Short excerpt shown by the provider
        link: Result URL
        position: 1-based rank assigned by the provider
        domain: Host name without ``www.``, filled in during enrichment
        publish_date: Date string found in the snippet, if any
        source_type: Coarse origin classification, filled in during enrichment
    """

    title: str = ""
    snippet: str = ""
    link: str = ""
    position: int = Field(default=0, ge=0)
    domain: str | None = None
    publish_date: str | None = None
    source_type: SourceType | None = None


class ScoredResult(WebSearchResult):
    """Search result with the four axis scores and their weighted combination."""

    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    semantic_score: float = Field(default=0.0, ge=0.0, le=1.0)
    context_score: float = Field(default=0.0, ge=0.0, le=1.0)
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    final_score: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: list[str] = Field(default_factory=list)


class ResultsSummary(BaseModel):
    """Aggregate view of a filtered result set."""

    total_processed: int = Field(default=0, ge=0)
    total_filtered: int = Field(default=0, ge=0)
    average_score: float = Field(default=0.0, ge=0.0, le=1.0)
    top_score_type: str = "general"
    weak_results: bool = True


class RefinementSuggestions(BaseModel):
    """Hints for improving a query that produced weak results."""

    needs_refinement: bool = False
    suggested_queries: list[str] = Field(default_factory=list)
    missing_context: list[str] = Field(default_factory=list)


class FilteredResults(BaseModel):
    """Ranked results that cleared the quality threshold (at most 8)."""

    results: list[ScoredResult] = Field(default_factory=list, max_length=8)
    summary: ResultsSummary = Field(default_factory=ResultsSummary)
    suggestions: RefinementSuggestions = Field(default_factory=RefinementSuggestions)
