"""Tests for SearchMemoryCache.

Properties covered:
- size never exceeds max_cache_size
- cached results are unique by link and at most 10
- read-only probes leave statistics untouched
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from conftest import make_intent, make_scored
from search_intel.models.search import FilteredResults, ResultsSummary
from search_intel.retrieval.search_cache import SearchMemoryCache

DISTINCT_QUERIES = [
    "parks in Denver",
    "tacos in Austin",
    "nursing jobs Ohio",
    "weather Seattle",
    "rent Boise",
    "museums Chicago",
    "ski resorts Utah",
    "coffee shops Portland",
    "beaches Miami",
    "startups Boston",
]


def filtered_for(prefix: str, count: int = 3, score: float = 0.6) -> FilteredResults:
    results = [make_scored(f"https://{prefix}.com/{i}", score) for i in range(count)]
    return FilteredResults(
        results=results,
        summary=ResultsSummary(
            total_processed=count,
            total_filtered=count,
            average_score=score,
            weak_results=False,
        ),
    )


def store(cache, rewriter, query, intent=None, filtered=None):
    intent = intent or make_intent()
    return cache.store_search_results(
        query, intent, rewriter.passthrough(query), filtered or filtered_for("example")
    )


class TestLookup:
    """Test exact and similarity lookups."""

    def test_exact_round_trip(self, cache, rewriter):
        cache_id = store(cache, rewriter, "parks in Denver")

        match = cache.find_similar_search("parks in Denver", make_intent())

        assert match is not None
        assert match.cached_result.id == cache_id
        assert match.match_type == "exact"
        assert match.similarity_score == pytest.approx(0.95)
        assert match.confidence >= 0.9
        assert match.reasoning == ["Exact query match"]

    def test_exact_match_ignores_case_and_whitespace(self, cache, rewriter):
        store(cache, rewriter, "parks in Denver")

        match = cache.find_similar_search("  PARKS IN DENVER ", make_intent())

        assert match is not None
        assert match.match_type == "exact"

    def test_similar_query_reuses_cached_search(self, cache, classifier, rewriter):
        """'top neighborhoods Austin' matches a cached 'best neighborhoods in Austin'."""
        stored_query = "best neighborhoods in Austin"
        store(cache, rewriter, stored_query, classifier.classify_intent(stored_query))

        match = cache.find_similar_search(
            "top neighborhoods Austin", classifier.classify_intent("top neighborhoods Austin")
        )

        assert match is not None
        assert match.match_type == "topical"
        assert match.similarity_score >= 0.75
        assert match.confidence > 0.75

    def test_semantic_matching_disabled(self, classifier, rewriter, clock):
        cache = SearchMemoryCache(enable_semantic_matching=False, clock=clock)
        stored_query = "best neighborhoods in Austin"
        store(cache, rewriter, stored_query, classifier.classify_intent(stored_query))

        similar = cache.find_similar_search(
            "top neighborhoods Austin", classifier.classify_intent("top neighborhoods Austin")
        )
        exact = cache.find_similar_search(stored_query, classifier.classify_intent(stored_query))

        assert similar is None
        assert exact is not None
        assert exact.match_type == "exact"

    def test_unrelated_query_misses(self, cache, classifier, rewriter):
        stored_query = "best neighborhoods in Austin"
        store(cache, rewriter, stored_query, classifier.classify_intent(stored_query))

        query = "nursing salaries in Ohio"
        assert cache.find_similar_search(query, classifier.classify_intent(query)) is None

    def test_empty_cache_misses(self, cache):
        assert cache.find_similar_search("parks in Denver", make_intent()) is None

    def test_hit_records_usage(self, cache, rewriter):
        cache_id = store(cache, rewriter, "parks in Denver")

        cache.find_similar_search("Parks in Denver", make_intent())

        cached = cache.get(cache_id)
        assert cached.usage.access_count == 1
        assert cached.usage.similar_queries == ["Parks in Denver"]

    def test_match_below_confidence_floor_is_a_miss(self, cache, rewriter):
        cache_id = store(cache, rewriter, "parks in Denver")

        match = cache.find_similar_search("Parks in Denver", make_intent(), min_confidence=1.0)

        assert match is None
        assert cache.get(cache_id).usage.access_count == 0
        assert cache.get(cache_id).usage.similar_queries == []
        stats = cache.get_cache_stats()
        assert stats.lookups == 1
        assert stats.hits == 0

    def test_match_above_confidence_floor_is_a_hit(self, cache, rewriter):
        store(cache, rewriter, "parks in Denver")

        match = cache.find_similar_search("parks in Denver", make_intent(), min_confidence=0.75)

        assert match is not None
        assert cache.get_cache_stats().hits == 1

    def test_similar_queries_keep_last_five(self, cache, rewriter):
        cache_id = store(cache, rewriter, "parks in Denver")
        variants = [
            "Parks in Denver",
            "PARKS IN DENVER",
            "parks IN denver",
            "Parks In Denver",
            "parks in DENVER",
            "PARKS in Denver",
            "parks in Denver ",
        ]

        for variant in variants:
            cache.find_similar_search(variant, make_intent())

        cached = cache.get(cache_id)
        assert cached.usage.access_count == 7
        assert cached.usage.similar_queries == variants[-5:]

    def test_would_hit_has_no_side_effects(self, cache, rewriter):
        cache_id = store(cache, rewriter, "parks in Denver")

        preview = cache.would_hit_cache("parks in Denver", make_intent())

        assert preview.would_hit is True
        assert preview.match_type == "exact"
        assert cache.get(cache_id).usage.access_count == 0
        stats = cache.get_cache_stats()
        assert stats.lookups == 0
        assert stats.hits == 0

    def test_would_hit_miss(self, cache):
        preview = cache.would_hit_cache("parks in Denver", make_intent())
        assert preview.would_hit is False
        assert preview.match_type is None


class TestExpiry:
    """Test TTL handling."""

    def test_entry_expires_after_default_ttl(self, cache, rewriter, clock):
        store(cache, rewriter, "parks in Denver")

        clock.advance(minutes=119)
        assert cache.find_similar_search("parks in Denver", make_intent()) is not None

        clock.advance(minutes=2)
        assert cache.find_similar_search("parks in Denver", make_intent()) is None
        assert len(cache) == 0

    def test_time_sensitive_entry_expires_sooner(self, cache, rewriter, clock):
        intent = make_intent(temporal=0.9, priority="high")
        store(cache, rewriter, "weather Seattle", intent)

        clock.advance(minutes=29)
        assert cache.find_similar_search("weather Seattle", intent) is not None

        clock.advance(minutes=2)
        assert cache.find_similar_search("weather Seattle", intent) is None

    def test_custom_ttl(self, cache, rewriter, clock):
        cache.store_search_results(
            "parks in Denver",
            make_intent(),
            rewriter.passthrough("parks in Denver"),
            filtered_for("example"),
            custom_ttl_minutes=5,
        )

        clock.advance(minutes=6)

        assert cache.find_similar_search("parks in Denver", make_intent()) is None

    def test_ttl_for_intent(self, cache):
        assert cache.ttl_for_intent(make_intent(temporal=0.9)) == 30
        assert cache.ttl_for_intent(make_intent(temporal=0.7)) == 60
        assert cache.ttl_for_intent(make_intent(temporal=0.1, priority="high")) == 90
        assert cache.ttl_for_intent(make_intent(temporal=0.1)) == 120

    def test_expired_entry_not_updated(self, cache, rewriter, clock):
        cache_id = store(cache, rewriter, "parks in Denver")
        clock.advance(minutes=121)

        assert cache.update_cached_result(cache_id, [make_scored("https://new.com/1", 0.9)]) is False


class TestEvictionAndCleanup:
    """Test capacity management."""

    def test_least_useful_entry_evicted(self, rewriter, clock):
        cache = SearchMemoryCache(max_cache_size=5, clock=clock)
        ids = []
        for query in DISTINCT_QUERIES[:5]:
            ids.append(store(cache, rewriter, query))
            clock.advance(minutes=1)
        # Every entry except the first is reused once
        for query in DISTINCT_QUERIES[1:5]:
            assert cache.find_similar_search(query, make_intent()) is not None

        store(cache, rewriter, DISTINCT_QUERIES[5])

        assert len(cache) == 5
        assert cache.get(ids[0]) is None
        assert all(cache.get(cache_id) is not None for cache_id in ids[1:])

    def test_size_never_exceeds_maximum(self, rewriter, clock):
        cache = SearchMemoryCache(max_cache_size=5, clock=clock)

        for index in range(20):
            store(cache, rewriter, f"{DISTINCT_QUERIES[index % 10]} {index}")
            assert len(cache) <= 5

    def test_cleanup_force_resize(self, rewriter, clock):
        cache = SearchMemoryCache(max_cache_size=10, clock=clock)
        for query in DISTINCT_QUERIES[:9]:
            store(cache, rewriter, query)

        assert cache.cleanup() == 0
        removed = cache.cleanup(force_resize=True)

        assert removed == 3
        assert len(cache) == 6

    def test_cleanup_purges_expired(self, cache, rewriter, clock):
        store(cache, rewriter, "parks in Denver")
        store(cache, rewriter, "weather Seattle", make_intent(temporal=0.9))

        clock.advance(minutes=45)

        assert cache.cleanup() == 1
        assert len(cache) == 1

    def test_clear(self, cache, rewriter):
        store(cache, rewriter, "parks in Denver")
        cache.find_similar_search("parks in Denver", make_intent())

        cache.clear()

        assert len(cache) == 0
        stats = cache.get_cache_stats()
        assert stats.lookups == 0
        assert stats.hits == 0

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            SearchMemoryCache(max_cache_size=0)


class TestResultsAndStats:
    """Test stored results, updates and statistics."""

    def test_results_deduplicated_by_link(self, cache, rewriter):
        filtered = FilteredResults(
            results=[
                make_scored("https://a.com/1", 0.5),
                make_scored("https://a.com/1", 0.8),
                make_scored("https://b.com/1", 0.6),
            ]
        )

        cache_id = store(cache, rewriter, "parks in Denver", filtered=filtered)

        results = cache.get(cache_id).results
        assert [r.link for r in results] == ["https://a.com/1", "https://b.com/1"]
        assert results[0].final_score == 0.8

    def test_update_merges_results(self, cache, rewriter):
        cache_id = store(cache, rewriter, "parks in Denver", filtered=filtered_for("old", count=8))

        updated = cache.update_cached_result(
            cache_id,
            [make_scored(f"https://new.com/{i}", 0.9) for i in range(5)],
            additional_query="city parks Denver",
        )

        cached = cache.get(cache_id)
        assert updated is True
        assert len(cached.results) == 10
        assert len({r.link for r in cached.results}) == 10
        assert cached.results[0].final_score == 0.9
        assert cached.metadata.result_count == 10
        assert cached.usage.similar_queries == ["city parks Denver"]

    def test_update_unknown_entry(self, cache):
        assert cache.update_cached_result("cache_missing", []) is False

    def test_stats(self, cache, rewriter):
        store(cache, rewriter, "parks in Denver", make_intent(topics=["parks", "denver"]))
        cache.find_similar_search("parks in Denver", make_intent())
        cache.find_similar_search("nursing salaries in Ohio", make_intent(primary_intent="status"))

        stats = cache.get_cache_stats()

        assert stats.size == 1
        assert stats.max_size == 500
        assert stats.hits == 1
        assert stats.lookups == 2
        assert stats.hit_rate == pytest.approx(0.5)
        assert stats.most_used_queries[0].query == "parks in Denver"
        assert stats.most_used_queries[0].count == 1
        assert stats.top_topics == ["parks", "denver"]

    def test_entry_metadata(self, cache, rewriter, clock):
        cache_id = store(cache, rewriter, "parks in Denver")

        cached = cache.get(cache_id)

        assert cached.original_query == "parks in Denver"
        assert cached.metadata.result_count == 3
        assert cached.metadata.timestamp == clock()
        assert cached.query_fingerprint.shape == (cache.embedder.dimensions,)

    def test_cache_id_format(self, cache, rewriter):
        cache_id = store(cache, rewriter, "parks in Denver")
        assert cache_id.startswith("cache_")
        assert cache_id != store(cache, rewriter, "parks in Denver")

    def test_concurrent_access(self, rewriter, clock):
        cache = SearchMemoryCache(max_cache_size=20, clock=clock)

        def work(index: int) -> None:
            query = f"{DISTINCT_QUERIES[index % 10]} {index}"
            store(cache, rewriter, query)
            cache.find_similar_search(query, make_intent())
            cache.get_cache_stats()

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(work, range(100)))

        assert len(cache) <= 20
        assert cache.get_cache_stats().lookups == 100


class TestSearchCacheProperties:
    """Property-based tests for SearchMemoryCache."""

    @settings(deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        max_size=st.integers(min_value=1, max_value=8),
        queries=st.lists(st.sampled_from(DISTINCT_QUERIES), min_size=1, max_size=25),
    )
    def test_property_size_bounded(self, rewriter, clock, max_size, queries):
        """Property: the cache never holds more than max_cache_size entries."""
        cache = SearchMemoryCache(max_cache_size=max_size, clock=clock)

        for query in queries:
            store(cache, rewriter, query)
            assert len(cache) <= max_size

    @settings(deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        links=st.lists(st.sampled_from("abcdefghijklmnop"), min_size=1, max_size=8),
        extra=st.lists(st.sampled_from("abcdefghijklmnop"), max_size=12),
    )
    def test_property_results_unique_and_bounded(self, rewriter, clock, links, extra):
        """Property: stored results are unique by link and at most 10."""
        cache = SearchMemoryCache(clock=clock)
        filtered = FilteredResults(
            results=[make_scored(f"https://{link}.com/", 0.5) for link in links]
        )
        cache_id = store(cache, rewriter, "parks in Denver", filtered=filtered)
        cache.update_cached_result(
            cache_id, [make_scored(f"https://{link}.com/", 0.7) for link in extra]
        )

        results = cache.get(cache_id).results
        assert len(results) <= 10
        assert len({r.link for r in results}) == len(results)
