"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime, timedelta

import pytest

from search_intel.config import Settings
from search_intel.models.intent import (
    IntentConfidence,
    IntentEntities,
    QueryIntent,
    SearchStrategy,
)
from search_intel.models.search import ScoredResult, WebSearchResult
from search_intel.retrieval.intent_classifier import IntentClassifier
from search_intel.retrieval.query_rewriter import QueryRewriter
from search_intel.retrieval.result_filter import SemanticResultFilter
from search_intel.retrieval.search_cache import SearchMemoryCache

FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeSearchProvider:
    """Search provider double recording the queries it receives."""

    def __init__(self, results: list[WebSearchResult] | None = None, error: Exception | None = None):
        self.results = results or []
        self.error = error
        self.queries: list[str] = []
        self.closed = False

    async def search(self, query: str) -> list[WebSearchResult]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.results)

    async def close(self) -> None:
        self.closed = True


def make_intent(
    primary_intent: str = "factual",
    needs_web_search: float = 0.5,
    temporal: float = 0.1,
    location: float = 0.0,
    personal: float = 0.0,
    locations: list[str] | None = None,
    time_references: list[str] | None = None,
    topics: list[str] | None = None,
    comparisons: list[str] | None = None,
    priority: str = "medium",
    query_type: str = "factual",
    expected_sources: list[str] | None = None,
) -> QueryIntent:
    """Build a QueryIntent directly, without running the classifier."""
    return QueryIntent(
        primary_intent=primary_intent,
        confidence=IntentConfidence(
            needs_web_search=needs_web_search,
            temporal_relevance=temporal,
            location_relevance=location,
            personal_relevance=personal,
        ),
        entities=IntentEntities(
            locations=locations or [],
            time_references=time_references or [],
            topics=topics or [],
            comparisons=comparisons or [],
        ),
        search_strategy=SearchStrategy(
            priority=priority,
            query_type=query_type,
            expected_sources=expected_sources or ["general"],
        ),
    )


def make_scored(
    link: str,
    score: float,
    title: str = "Result title long enough to count",
    snippet: str = "A snippet describing the result.",
    domain: str | None = None,
    source_type: str = "general",
) -> ScoredResult:
    return ScoredResult(
        title=title,
        snippet=snippet,
        link=link,
        position=1,
        domain=domain or link.split("/")[2],
        source_type=source_type,
        final_score=score,
    )


def austin_results() -> list[WebSearchResult]:
    return [
        WebSearchResult(
            title="Best Neighborhoods in Austin for Young Professionals",
            snippet=(
                "Our guide to the best neighborhoods in Austin covers Zilker, Mueller and "
                "East Austin. Compare rent, walkability and nightlife."
            ),
            link="https://www.austinguide.com/best-neighborhoods",
            position=1,
        ),
        WebSearchResult(
            title="Top 10 Austin Neighborhoods to Live In",
            snippet=(
                "Looking for the top neighborhoods in Austin? These areas offer great "
                "schools, parks and restaurants. Prices vary widely by area."
            ),
            link="https://www.realtor.com/austin-neighborhoods",
            position=2,
        ),
        WebSearchResult(
            title="Austin neighborhood guide and reviews",
            snippet=(
                "Residents review the best Austin neighborhoods. Read ratings on safety, "
                "commute and the local food scene before you move."
            ),
            link="https://www.reddit.com/r/Austin/neighborhoods",
            position=3,
        ),
    ]


def denver_weather_results() -> list[WebSearchResult]:
    return [
        WebSearchResult(
            title="Denver Weather Today: Current Conditions and Forecast",
            snippet=(
                "Current weather in Denver today. Sunny skies with highs near 75 and "
                "light winds, and the hourly forecast shows clear conditions tonight."
            ),
            link="https://www.weather.gov/bou/denver",
            position=1,
        ),
        WebSearchResult(
            title="Denver, CO current weather conditions report",
            snippet=(
                "Live weather report for Denver updated every hour. Current temperature, "
                "humidity and wind, plus radar and today's outlook."
            ),
            link="https://www.wunderground.com/weather/us/co/denver",
            position=2,
        ),
        WebSearchResult(
            title="Today in Denver: weather news and traffic update",
            snippet=(
                "Breaking news for Denver today: the weather stays dry, and traffic on "
                "I-25 is moving. Here is the current update for commuters."
            ),
            link="https://www.denverpost.com/weather-today",
            position=3,
        ),
    ]


@pytest.fixture
def clock():
    """Clock frozen at a fixed instant."""
    return FrozenClock()


@pytest.fixture
def classifier(clock):
    return IntentClassifier(clock=clock)


@pytest.fixture
def rewriter(clock):
    return QueryRewriter(clock=clock)


@pytest.fixture
def result_filter(clock):
    return SemanticResultFilter(clock=clock)


@pytest.fixture
def cache(clock):
    """Fresh similarity cache, cleared after each test."""
    cache = SearchMemoryCache(clock=clock)
    yield cache
    cache.clear()


@pytest.fixture
def test_settings():
    """Settings independent of the environment and any .env file."""
    return Settings(_env_file=None, serper_api_key="test-serper-key")
