"""Pydantic models for the search intelligence pipeline."""

from search_intel.models.api import (
    CleanupResponse,
    ContextRequest,
    ContextResponse,
    IntentRequest,
    SearchOutcome,
    SearchRequest,
    SearchResponse,
)
from search_intel.models.cache import (
    CachedSearchResult,
    CacheHitPreview,
    CacheStats,
    SimilarityMatch,
)
from search_intel.models.context import (
    AssembledContext,
    ContextAssemblyOptions,
    MemoryComparison,
    MemoryContext,
    MemoryFact,
    MemoryPreference,
    MemorySummary,
)
from search_intel.models.error import ErrorResponse
from search_intel.models.fallback import FallbackResponse, FallbackStrategy
from search_intel.models.intent import (
    ContextPreferences,
    IntentConfidence,
    IntentEntities,
    QueryIntent,
    SearchStrategy,
    UserContext,
)
from search_intel.models.memory import ConversationSummary, UserPreferences
from search_intel.models.query import RewrittenQuery
from search_intel.models.search import (
    FilteredResults,
    RefinementSuggestions,
    ResultsSummary,
    ScoredResult,
    WebSearchResult,
)

__all__ = [
    # Intent models
    "QueryIntent",
    "IntentConfidence",
    "IntentEntities",
    "SearchStrategy",
    "UserContext",
    "ContextPreferences",
    # Rewrite models
    "RewrittenQuery",
    # Result models
    "WebSearchResult",
    "ScoredResult",
    "FilteredResults",
    "ResultsSummary",
    "RefinementSuggestions",
    # Cache models
    "CachedSearchResult",
    "SimilarityMatch",
    "CacheStats",
    "CacheHitPreview",
    # Fallback models
    "FallbackStrategy",
    "FallbackResponse",
    # Context models
    "AssembledContext",
    "ContextAssemblyOptions",
    "MemoryContext",
    "MemoryPreference",
    "MemoryFact",
    "MemorySummary",
    "MemoryComparison",
    # Memory store models
    "UserPreferences",
    "ConversationSummary",
    # API models
    "IntentRequest",
    "SearchRequest",
    "SearchOutcome",
    "SearchResponse",
    "ContextRequest",
    "ContextResponse",
    "CleanupResponse",
    # Error models
    "ErrorResponse",
]
