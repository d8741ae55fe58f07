"""Similarity cache entry and match models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

import numpy as np
from pydantic import BaseModel, Field

from search_intel.models.intent import QueryIntent
from search_intel.models.search import ScoredResult

MatchType = Literal["exact", "semantic", "topical", "intent"]


@dataclass
class CacheMetadata:
    """Timing and quality information about a cached search."""

    timestamp: datetime
    expires_at: datetime
    search_provider: str = "serper"
    result_count: int = 0
    average_score: float = 0.0


@dataclass
class CacheUsage:
    """Access statistics maintained by the cache on every hit."""

    access_count: int = 0
    last_accessed: datetime | None = None
    similar_queries: list[str] = field(default_factory=list)


@dataclass
class CachedSearchResult:
    """A stored search, owned and mutated only by ``SearchMemoryCache``.

    Attributes:
        id: Cache identifier returned from ``store_search_results``
        original_query: Query string the results were fetched for
        rewritten_query: Rewritten form that was sent to the provider
        intent: Intent snapshot taken at store time
        results: Scored results, at most 10, unique by link
        metadata: Timestamps, provider name and quality summary
        usage: Access counter and recently matched similar queries
        query_fingerprint: Fixed-length vector of the query text
        topic_fingerprint: Fixed-length vector of the intent topics
    """

    id: str
    original_query: str
    rewritten_query: str
    intent: QueryIntent
    results: list[ScoredResult]
    metadata: CacheMetadata
    usage: CacheUsage
    query_fingerprint: np.ndarray
    topic_fingerprint: np.ndarray

    def is_expired(self, now: datetime) -> bool:
        return now > self.metadata.expires_at


@dataclass
class SimilarityMatch:
    """Best cached search found for a new query."""

    cached_result: CachedSearchResult
    similarity_score: float
    match_type: MatchType
    confidence: float
    reasoning: list[str] = field(default_factory=list)


class CacheHitPreview(BaseModel):
    """Outcome of a read-only cache probe."""

    would_hit: bool
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    match_type: MatchType | None = None


class QueryUsage(BaseModel):
    """A cached query and how often it has been reused."""

    query: str
    count: int = Field(ge=0)


class CacheStats(BaseModel):
    """Snapshot of cache health."""

    size: int = Field(ge=0)
    max_size: int = Field(ge=1)
    hits: int = Field(default=0, ge=0)
    lookups: int = Field(default=0, ge=0)
    hit_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    average_age_minutes: int = Field(default=0, ge=0)
    most_used_queries: list[QueryUsage] = Field(default_factory=list)
    top_topics: list[str] = Field(default_factory=list)
