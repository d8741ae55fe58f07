"""Similarity cache for web search results."""

import hashlib
import logging
import math
import threading
import uuid
from collections import Counter
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import numpy as np

from search_intel.models.cache import (
    CachedSearchResult,
    CacheHitPreview,
    CacheMetadata,
    CacheStats,
    CacheUsage,
    MatchType,
    QueryUsage,
    SimilarityMatch,
)
from search_intel.models.intent import QueryIntent
from search_intel.models.query import RewrittenQuery
from search_intel.models.search import FilteredResults, ScoredResult
from search_intel.retrieval.fingerprint import HashingEmbedder, TextEmbedder, cosine_similarity

logger = logging.getLogger(__name__)

EXACT_MATCH_SCORE = 0.95
MAX_CACHED_RESULTS = 10
MAX_SIMILAR_QUERIES = 5
EVICTION_TARGET_RATIO = 0.8
CLEANUP_TRIGGER_RATIO = 0.8
CLEANUP_TARGET_RATIO = 0.6
RECENCY_DECAY_HOURS = 168.0

# Weights of the four similarity signals
QUERY_WEIGHT = 0.4
TOPIC_WEIGHT = 0.3
INTENT_WEIGHT = 0.2
LOCATION_WEIGHT = 0.1


def _merge_results(*result_lists: list[ScoredResult]) -> list[ScoredResult]:
    """Merge by link keeping the higher score, best first, at most 10."""
    merged: dict[str, ScoredResult] = {}
    for results in result_lists:
        for result in results:
            existing = merged.get(result.link)
            if existing is None or result.final_score > existing.final_score:
                merged[result.link] = result
    ranked = sorted(merged.values(), key=lambda r: r.final_score, reverse=True)
    return ranked[:MAX_CACHED_RESULTS]


def _average_score(results: list[ScoredResult]) -> float:
    if not results:
        return 0.0
    return sum(r.final_score for r in results) / len(results)


class SearchMemoryCache:
    """Bounded, thread-safe cache of past searches keyed by query similarity.

    Every public method takes the single internal lock. Fingerprints are
    computed before the lock is taken and nothing inside the critical
    sections performs I/O.

    One instance is owned by the search service; tests create their own and
    call ``clear()`` in teardown.
    """

    def __init__(
        self,
        max_cache_size: int = 500,
        default_ttl_minutes: int = 120,
        similarity_threshold: float = 0.75,
        enable_semantic_matching: bool = True,
        purge_expired_on_access: bool = True,
        embedder: TextEmbedder | None = None,
        search_provider: str = "serper",
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the cache.

        Args:
            max_cache_size: Maximum number of entries
            default_ttl_minutes: TTL for queries that are not time-sensitive
            similarity_threshold: Minimum similarity for a match
            enable_semantic_matching: When False only exact repeats match
            purge_expired_on_access: Drop expired entries on every lookup
            embedder: Fingerprint generator (hashing embedder by default)
            search_provider: Provider name recorded on stored entries
            clock: Source of the current time
        """
        if max_cache_size < 1:
            raise ValueError(f"max_cache_size must be positive, got {max_cache_size}")

        self.max_cache_size = max_cache_size
        self.default_ttl_minutes = default_ttl_minutes
        self.similarity_threshold = similarity_threshold
        self.enable_semantic_matching = enable_semantic_matching
        self.purge_expired_on_access = purge_expired_on_access
        self.embedder = embedder or HashingEmbedder()
        self.search_provider = search_provider
        self.clock = clock or (lambda: datetime.now(UTC))

        self._entries: dict[str, CachedSearchResult] = {}
        self._lock = threading.Lock()
        self._lookups = 0
        self._hits = 0

        logger.info(
            f"Initialized SearchMemoryCache: max_size={max_cache_size}, "
            f"ttl={default_ttl_minutes}min, threshold={similarity_threshold}, "
            f"semantic={enable_semantic_matching}"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, cache_id: str) -> CachedSearchResult | None:
        with self._lock:
            return self._entries.get(cache_id)

    def find_similar_search(
        self, query: str, intent: QueryIntent, min_confidence: float | None = None
    ) -> SimilarityMatch | None:
        """Find the cached search most similar to a query.

        A hit increments the entry's access counter and records the query
        among its similar queries. A match whose confidence does not exceed
        ``min_confidence`` is a miss and leaves usage untouched.

        Args:
            query: New user query
            intent: Classification of the new query
            min_confidence: Confidence a match must exceed to be reused

        Returns:
            Best reusable match above the similarity threshold, or None
        """
        query_fp = self.embedder.embed(query)
        topic_fp = self.embedder.embed_terms(intent.entities.topics)

        with self._lock:
            now = self.clock()
            if self.purge_expired_on_access:
                self._purge_expired(now)

            self._lookups += 1
            match = self._best_match(query, intent, query_fp, topic_fp, now)
            if (
                match is not None
                and min_confidence is not None
                and match.confidence <= min_confidence
            ):
                logger.debug(
                    f"Cache match rejected: confidence {match.confidence:.3f} "
                    f"<= {min_confidence:.3f}"
                )
                match = None
            if match is not None:
                self._hits += 1
                self._record_usage(match.cached_result, query, now)

        if match is not None:
            logger.info(
                f"✓ Cache HIT - type={match.match_type}, "
                f"similarity={match.similarity_score:.3f}, confidence={match.confidence:.3f}"
            )
        else:
            logger.debug(f"Cache miss for query: {query}")
        return match

    def would_hit_cache(self, query: str, intent: QueryIntent) -> CacheHitPreview:
        """Probe the cache without touching usage statistics or hit counters."""
        query_fp = self.embedder.embed(query)
        topic_fp = self.embedder.embed_terms(intent.entities.topics)

        with self._lock:
            match = self._best_match(query, intent, query_fp, topic_fp, self.clock())

        if match is None:
            return CacheHitPreview(would_hit=False)
        return CacheHitPreview(
            would_hit=True, confidence=match.confidence, match_type=match.match_type
        )

    def store_search_results(
        self,
        query: str,
        intent: QueryIntent,
        rewritten_query: RewrittenQuery,
        filtered: FilteredResults,
        custom_ttl_minutes: int | None = None,
    ) -> str:
        """Store a complete filtered result set.

        Args:
            query: Original user query
            intent: Classification at store time
            rewritten_query: Rewrite that was sent to the provider
            filtered: Filtered results to cache
            custom_ttl_minutes: Overrides the intent-derived TTL

        Returns:
            Cache ID of the new entry
        """
        query_fp = self.embedder.embed(query)
        topic_fp = self.embedder.embed_terms(intent.entities.topics)
        results = _merge_results(filtered.results)
        ttl_minutes = custom_ttl_minutes or self.ttl_for_intent(intent)

        with self._lock:
            now = self.clock()
            evicted = 0
            if len(self._entries) >= self.max_cache_size:
                evicted = self._evict_least_useful(
                    math.floor(self.max_cache_size * EVICTION_TARGET_RATIO), now
                )

            cache_id = self._generate_cache_id(query, intent, now)
            self._entries[cache_id] = CachedSearchResult(
                id=cache_id,
                original_query=query,
                rewritten_query=rewritten_query.rewritten,
                intent=intent,
                results=results,
                metadata=CacheMetadata(
                    timestamp=now,
                    expires_at=now + timedelta(minutes=ttl_minutes),
                    search_provider=self.search_provider,
                    result_count=len(results),
                    average_score=filtered.summary.average_score,
                ),
                usage=CacheUsage(access_count=0, last_accessed=now),
                query_fingerprint=query_fp,
                topic_fingerprint=topic_fp,
            )
            size = len(self._entries)

        if evicted:
            logger.info(f"Evicted {evicted} least useful cache entries")
        logger.info(
            f"✓ Cached {len(results)} results as {cache_id} "
            f"(ttl={ttl_minutes}min, size={size})"
        )
        return cache_id

    def update_cached_result(
        self,
        cache_id: str,
        new_results: list[ScoredResult],
        additional_query: str | None = None,
    ) -> bool:
        """Merge new results into an existing entry.

        Returns:
            False when the entry is missing or expired
        """
        with self._lock:
            cached = self._entries.get(cache_id)
            if cached is None or cached.is_expired(self.clock()):
                return False

            cached.results = _merge_results(cached.results, new_results)
            cached.metadata.result_count = len(cached.results)
            cached.metadata.average_score = _average_score(cached.results)

            similar = cached.usage.similar_queries
            if additional_query and additional_query not in similar:
                similar.append(additional_query)
                del similar[:-MAX_SIMILAR_QUERIES]

        logger.debug(f"Updated cache entry {cache_id}")
        return True

    def get_cache_stats(self) -> CacheStats:
        with self._lock:
            now = self.clock()
            entries = list(self._entries.values())
            lookups, hits = self._lookups, self._hits

        if entries:
            total_age = sum((now - e.metadata.timestamp).total_seconds() for e in entries)
            average_age = round(total_age / len(entries) / 60)
        else:
            average_age = 0

        most_used = sorted(entries, key=lambda e: e.usage.access_count, reverse=True)[:10]
        topic_counts = Counter(
            topic for entry in entries for topic in entry.intent.entities.topics
        )

        return CacheStats(
            size=len(entries),
            max_size=self.max_cache_size,
            hits=hits,
            lookups=lookups,
            hit_rate=hits / lookups if lookups else 0.0,
            average_age_minutes=max(0, average_age),
            most_used_queries=[
                QueryUsage(query=e.original_query, count=e.usage.access_count) for e in most_used
            ],
            top_topics=[topic for topic, _ in topic_counts.most_common(10)],
        )

    def cleanup(self, force_resize: bool = False) -> int:
        """Purge expired entries; when forced above 80% capacity, shrink to 60%.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self.clock()
            initial = len(self._entries)
            self._purge_expired(now)
            if force_resize and len(self._entries) > self.max_cache_size * CLEANUP_TRIGGER_RATIO:
                self._evict_least_useful(
                    math.floor(self.max_cache_size * CLEANUP_TARGET_RATIO), now
                )
            removed = initial - len(self._entries)

        logger.info(f"Cache cleanup removed {removed} entries")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._lookups = 0
            self._hits = 0

    def ttl_for_intent(self, intent: QueryIntent) -> int:
        """TTL in minutes: shorter for time-sensitive queries."""
        if intent.confidence.temporal_relevance > 0.8:
            return 30
        if intent.confidence.temporal_relevance > 0.6:
            return 60
        if intent.search_strategy.priority == "high":
            return 90
        return self.default_ttl_minutes

    def usefulness(self, cached: CachedSearchResult, now: datetime) -> float:
        age_hours = (now - cached.metadata.timestamp).total_seconds() / 3600
        recency = max(0.0, 1 - age_hours / RECENCY_DECAY_HOURS)
        return (
            cached.usage.access_count * 0.4
            + recency * 0.3
            + cached.metadata.average_score * 0.3
        )

    # Internal helpers; callers hold the lock

    def _best_match(
        self,
        query: str,
        intent: QueryIntent,
        query_fp: np.ndarray,
        topic_fp: np.ndarray,
        now: datetime,
    ) -> SimilarityMatch | None:
        best: SimilarityMatch | None = None
        for cached in self._entries.values():
            if cached.is_expired(now):
                continue
            match = self._similarity(query, intent, query_fp, topic_fp, cached, now)
            if match is None or match.similarity_score < self.similarity_threshold:
                continue
            if best is None or match.similarity_score > best.similarity_score:
                best = match
        return best

    def _similarity(
        self,
        query: str,
        intent: QueryIntent,
        query_fp: np.ndarray,
        topic_fp: np.ndarray,
        cached: CachedSearchResult,
        now: datetime,
    ) -> SimilarityMatch | None:
        reasoning: list[str] = []
        match_type: MatchType = "semantic"

        if query.strip().lower() == cached.original_query.strip().lower():
            score = EXACT_MATCH_SCORE
            match_type = "exact"
            reasoning.append("Exact query match")
        elif not self.enable_semantic_matching:
            return None
        else:
            query_sim = cosine_similarity(query_fp, cached.query_fingerprint)
            topic_sim = cosine_similarity(topic_fp, cached.topic_fingerprint)
            intent_sim = self._intent_similarity(intent, cached.intent)
            location_sim = self._location_overlap(intent, cached.intent)

            score = (
                query_sim * QUERY_WEIGHT
                + topic_sim * TOPIC_WEIGHT
                + intent_sim * INTENT_WEIGHT
                + location_sim * LOCATION_WEIGHT
            )
            reasoning.append(f"Query similarity: {query_sim * 100:.1f}%")
            reasoning.append(f"Topic similarity: {topic_sim * 100:.1f}%")
            reasoning.append(f"Intent similarity: {intent_sim * 100:.1f}%")
            if location_sim > 0:
                reasoning.append(f"Location overlap: {location_sim * 100:.1f}%")

            if topic_sim > 0.8:
                match_type = "topical"
            elif intent_sim > 0.7:
                match_type = "intent"

        confidence = score
        if cached.metadata.average_score > 0.7:
            confidence += 0.1
        age_hours = (now - cached.metadata.timestamp).total_seconds() / 3600
        if age_hours > 24:
            confidence -= 0.1
        if age_hours > 72:
            confidence -= 0.2

        return SimilarityMatch(
            cached_result=cached,
            similarity_score=score,
            match_type=match_type,
            confidence=max(0.0, min(1.0, confidence)),
            reasoning=reasoning,
        )

    @staticmethod
    def _intent_similarity(a: QueryIntent, b: QueryIntent) -> float:
        score = 0.0
        if a.primary_intent == b.primary_intent:
            score += 0.5
        if a.search_strategy.priority == b.search_strategy.priority:
            score += 0.2
        if a.search_strategy.query_type == b.search_strategy.query_type:
            score += 0.2
        diff = abs(a.confidence.needs_web_search - b.confidence.needs_web_search)
        score += max(0.0, 1 - diff) * 0.1
        return min(1.0, score)

    @staticmethod
    def _location_overlap(a: QueryIntent, b: QueryIntent) -> float:
        a_locations = {loc.lower() for loc in a.entities.locations}
        b_locations = {loc.lower() for loc in b.entities.locations}
        if not a_locations or not b_locations:
            return 0.0
        return len(a_locations & b_locations) / len(a_locations | b_locations)

    def _record_usage(self, cached: CachedSearchResult, query: str, now: datetime) -> None:
        cached.usage.access_count += 1
        cached.usage.last_accessed = now
        similar = cached.usage.similar_queries
        if query != cached.original_query and query not in similar:
            similar.append(query)
            del similar[:-MAX_SIMILAR_QUERIES]

    def _purge_expired(self, now: datetime) -> None:
        expired = [cache_id for cache_id, e in self._entries.items() if e.is_expired(now)]
        for cache_id in expired:
            del self._entries[cache_id]

    def _evict_least_useful(self, target_size: int, now: datetime) -> int:
        if len(self._entries) <= target_size:
            return 0
        # sorted() is stable: among equally useful entries the oldest insert goes first
        ranked = sorted(self._entries.items(), key=lambda item: self.usefulness(item[1], now))
        to_remove = ranked[: len(self._entries) - target_size]
        for cache_id, _ in to_remove:
            del self._entries[cache_id]
        return len(to_remove)

    def _generate_cache_id(self, query: str, intent: QueryIntent, now: datetime) -> str:
        seed = f"{query}_{intent.primary_intent}_{now.isoformat()}"
        digest = hashlib.md5(seed.encode("utf-8")).hexdigest()[:12]
        return f"cache_{digest}_{uuid.uuid4().hex[:8]}"
