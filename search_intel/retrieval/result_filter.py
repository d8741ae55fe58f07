"""Scoring, filtering and ranking of raw web search results."""

import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime
from urllib.parse import urlparse

from search_intel.models.intent import QueryIntent
from search_intel.models.query import RewrittenQuery
from search_intel.models.search import (
    FilteredResults,
    RefinementSuggestions,
    ResultsSummary,
    ScoredResult,
    SourceType,
    WebSearchResult,
)

logger = logging.getLogger(__name__)

MAX_FILTERED_RESULTS = 8

DOMAIN_AUTHORITY: dict[str, float] = {
    # News
    "cnn.com": 0.85,
    "bbc.com": 0.85,
    "reuters.com": 0.85,
    "ap.org": 0.85,
    # Local
    "yelp.com": 0.7,
    "tripadvisor.com": 0.7,
    "foursquare.com": 0.65,
    # Real estate
    "zillow.com": 0.8,
    "realtor.com": 0.8,
    "apartments.com": 0.75,
    # Jobs
    "linkedin.com": 0.85,
    "indeed.com": 0.8,
    "glassdoor.com": 0.8,
    # General
    "wikipedia.org": 0.75,
    "reddit.com": 0.6,
    "quora.com": 0.55,
}

SUFFIX_AUTHORITY = ((".gov", 0.95), (".edu", 0.9), (".org", 0.8))
DEFAULT_AUTHORITY = 0.5

SOURCE_TYPE_WEIGHTS: dict[str, float] = {
    "official": 1.0,
    "news": 0.9,
    "review": 0.8,
    "general": 0.75,
    "commercial": 0.7,
    "social": 0.6,
}

# (relevance, semantic, context, quality) by search priority
SCORE_WEIGHTS: dict[str, tuple[float, float, float, float]] = {
    "high": (0.3, 0.35, 0.25, 0.1),
    "medium": (0.35, 0.3, 0.25, 0.1),
    "low": (0.5, 0.2, 0.2, 0.1),
}
DEFAULT_WEIGHTS = (0.4, 0.3, 0.2, 0.1)

INTENT_INDICATORS: dict[str, re.Pattern[str]] = {
    "factual": re.compile(r"\b(data|statistics|facts|information|report|study)\b"),
    "recommendation": re.compile(r"\b(best|top|recommended|guide|review|rating|popular)\b"),
    "comparison": re.compile(r"\b(vs|versus|compare|comparison|difference|better|pros|cons)\b"),
    "status": re.compile(r"\b(current|now|today|available|open|closed|status|update)\b"),
    "planning": re.compile(r"\b(guide|tips|advice|planning|how to|checklist|prepare)\b"),
}

DATE_PATTERN = re.compile(r"(\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2}|[A-Za-z]+ \d{1,2}, \d{4})")
DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%B %d, %Y", "%b %d, %Y")
UNPARSEABLE_DATE_AGE_DAYS = 365

SENTENCE_PATTERN = re.compile(r"[.!?]\s")
CONNECTIVE_PATTERN = re.compile(r"\b(and|or|but|also|however|therefore)\b", re.IGNORECASE)
SPAM_PATTERN = re.compile(r"\b(click here|free|best deal|amazing|unbelievable)\b", re.IGNORECASE)
RECOMMENDATION_WORDS = re.compile(r"best|good|recommend", re.IGNORECASE)


def extract_domain(url: str) -> str:
    """Host name of a URL without a leading ``www.``, or ``unknown``."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return "unknown"
    if not hostname:
        return "unknown"
    return hostname.removeprefix("www.")


def classify_source_type(title: str, domain: str) -> SourceType:
    title_lower = title.lower()
    if domain.endswith(".gov") or domain.endswith(".edu"):
        return "official"
    if re.search(r"news|breaking|report", title_lower):
        return "news"
    if re.search(r"review|rating|opinion", title_lower):
        return "review"
    if re.search(r"reddit|twitter|facebook|social", domain):
        return "social"
    if re.search(r"shop|buy|price|deal", title_lower):
        return "commercial"
    return "general"


def extract_publish_date(snippet: str) -> str | None:
    match = DATE_PATTERN.search(snippet)
    return match.group(0) if match else None


def domain_authority(domain: str) -> float:
    if domain in DOMAIN_AUTHORITY:
        return DOMAIN_AUTHORITY[domain]
    for suffix, authority in SUFFIX_AUTHORITY:
        if domain.endswith(suffix):
            return authority
    return DEFAULT_AUTHORITY


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class SemanticResultFilter:
    """Scores raw search results on four axes and keeps the best ones.

    Scores:
    - relevance: term overlap with search terms, original and rewritten query
    - semantic: intent-specific vocabulary, locations, recency, topics
    - context: expected source types, freshness, location presence
    - quality: domain authority, source type, length and spam heuristics
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.clock = clock or (lambda: datetime.now(UTC))

    def filter_and_rank_results(
        self,
        raw_results: list[WebSearchResult],
        intent: QueryIntent,
        rewritten_query: RewrittenQuery,
        min_quality_threshold: float = 0.3,
    ) -> FilteredResults:
        """Score, filter and rank results.

        Args:
            raw_results: Results as returned by the provider
            intent: Classification of the query
            rewritten_query: Rewrite that was sent to the provider
            min_quality_threshold: Minimum final score to keep a result

        Returns:
            FilteredResults with at most 8 results, best first. The summary
            covers every result that cleared the threshold.
        """
        logger.info(
            f"→ Result Filtering START - {len(raw_results)} results, "
            f"threshold={min_quality_threshold}"
        )

        now = self.clock()
        enriched = [self.enrich(result) for result in raw_results]
        scored = [self.score_result(r, intent, rewritten_query, now) for r in enriched]

        passed = [r for r in scored if r.final_score >= min_quality_threshold]
        # sorted() is stable, so ties keep provider order
        ranked = sorted(passed, key=lambda r: r.final_score, reverse=True)

        summary = self.generate_summary(scored, ranked)
        suggestions = self.generate_suggestions(ranked, intent, rewritten_query, now.year)

        if summary.weak_results:
            logger.warning(
                f"⚠ Weak results: {summary.total_filtered}/{summary.total_processed} passed, "
                f"avg={summary.average_score:.2f}"
            )
        logger.info(
            f"✓ Result Filtering COMPLETE - kept {min(len(ranked), MAX_FILTERED_RESULTS)} "
            f"of {len(scored)}"
        )

        return FilteredResults(
            results=ranked[:MAX_FILTERED_RESULTS],
            summary=summary,
            suggestions=suggestions,
        )

    def enrich(self, result: WebSearchResult) -> WebSearchResult:
        """Fill in domain, source type and publish date.

        Always returns a plain WebSearchResult, so previously scored results
        (e.g. from the cache) can be scored again.
        """
        domain = extract_domain(result.link)
        return WebSearchResult(
            title=result.title,
            snippet=result.snippet,
            link=result.link,
            position=result.position,
            domain=domain,
            source_type=classify_source_type(result.title, domain),
            publish_date=extract_publish_date(result.snippet),
        )

    def score_result(
        self,
        result: WebSearchResult,
        intent: QueryIntent,
        rewritten_query: RewrittenQuery,
        now: datetime,
    ) -> ScoredResult:
        relevance = self.calculate_relevance_score(result, rewritten_query)
        semantic = self.calculate_semantic_score(result, intent, now.year)
        context = self.calculate_context_score(result, intent, now)
        quality = self.calculate_quality_score(result)

        w_rel, w_sem, w_ctx, w_qual = SCORE_WEIGHTS.get(
            intent.search_strategy.priority, DEFAULT_WEIGHTS
        )
        final = (
            relevance * w_rel + semantic * w_sem + context * w_ctx + quality * w_qual
        ) / (w_rel + w_sem + w_ctx + w_qual)

        return ScoredResult(
            **result.model_dump(),
            relevance_score=relevance,
            semantic_score=semantic,
            context_score=context,
            quality_score=quality,
            final_score=_clamp(final),
            reasoning=self.generate_score_reasoning(result, relevance, semantic, context, quality),
        )

    def calculate_relevance_score(self, result: WebSearchResult, query: RewrittenQuery) -> float:
        title = result.title.lower()
        snippet = result.snippet.lower()
        score = 0.0

        for term in query.search_terms:
            if term in title:
                score += 0.15
            if term in snippet:
                score += 0.08

        for word in (w for w in query.original.lower().split() if len(w) > 2):
            if word in title:
                score += 0.1
            if word in snippet:
                score += 0.05

        for word in (w for w in query.rewritten.lower().split() if len(w) > 2):
            if word in title:
                score += 0.08
            if word in snippet:
                score += 0.04

        score += max(0.0, (10 - result.position) / 100)
        return _clamp(score)

    def calculate_semantic_score(self, result: WebSearchResult, intent: QueryIntent, year: int) -> float:
        text = f"{result.title.lower()} {result.snippet.lower()}"
        score = 0.0

        indicator = INTENT_INDICATORS.get(intent.primary_intent)
        if indicator is not None and indicator.search(text):
            score += 0.3

        if intent.confidence.location_relevance > 0.6:
            for location in intent.entities.locations:
                if location.lower() in text:
                    score += 0.2

        if intent.confidence.temporal_relevance > 0.6:
            recency = rf"\b({year - 1}|{year}|current|recent|latest|now|today)\b"
            if re.search(recency, text):
                score += 0.2

        topic_matches = sum(1 for topic in intent.entities.topics if topic in text)
        score += min(0.3, topic_matches * 0.1)

        return _clamp(score)

    def calculate_context_score(self, result: WebSearchResult, intent: QueryIntent, now: datetime) -> float:
        score = 0.5

        source_type = result.source_type or "general"
        if source_type in intent.search_strategy.expected_sources:
            score += 0.3

        if intent.confidence.temporal_relevance > 0.7 and result.publish_date:
            age_days = self.content_age_days(result.publish_date, now)
            if age_days <= 30:
                score += 0.2
            elif age_days <= 90:
                score += 0.1

        if intent.confidence.location_relevance > 0.6:
            text = f"{result.title} {result.snippet}".lower()
            if any(location.lower() in text for location in intent.entities.locations):
                score += 0.2

        return _clamp(score)

    def calculate_quality_score(self, result: WebSearchResult) -> float:
        score = 0.5

        domain = result.domain or extract_domain(result.link)
        score += domain_authority(domain) * 0.3

        type_weight = SOURCE_TYPE_WEIGHTS.get(result.source_type or "general", 0.75)
        score += (type_weight - 0.5) * 0.4

        if len(result.title) < 20 or len(result.title) > 120:
            score -= 0.1
        if len(result.snippet) < 50 or len(result.snippet) > 300:
            score -= 0.1

        if SENTENCE_PATTERN.search(result.snippet):
            score += 0.1
        if CONNECTIVE_PATTERN.search(result.snippet):
            score += 0.05

        if SPAM_PATTERN.search(result.title):
            score -= 0.2
        if result.snippet.count("...") > 2:
            score -= 0.1

        return _clamp(score, 0.1, 1.0)

    def content_age_days(self, publish_date: str, now: datetime) -> int:
        """Age in whole days; unparseable dates count as a year old."""
        for fmt in DATE_FORMATS:
            try:
                published = datetime.strptime(publish_date, fmt).replace(tzinfo=UTC)
            except ValueError:
                continue
            if now.tzinfo is None:
                now = now.replace(tzinfo=UTC)
            return (now - published).days
        return UNPARSEABLE_DATE_AGE_DAYS

    def generate_summary(self, scored: list[ScoredResult], ranked: list[ScoredResult]) -> ResultsSummary:
        average = sum(r.final_score for r in ranked) / len(ranked) if ranked else 0.0
        top_type = (ranked[0].source_type or "general") if ranked else "general"
        return ResultsSummary(
            total_processed=len(scored),
            total_filtered=len(ranked),
            average_score=_clamp(average),
            top_score_type=top_type,
            weak_results=average < 0.5 or len(ranked) < 3,
        )

    def generate_suggestions(
        self,
        ranked: list[ScoredResult],
        intent: QueryIntent,
        query: RewrittenQuery,
        year: int,
    ) -> RefinementSuggestions:
        needs_refinement = len(ranked) < 3 or ranked[0].final_score < 0.6
        suggested: list[str] = []
        missing: list[str] = []

        if needs_refinement:
            if not intent.entities.locations:
                missing.append("specific location or city name")
                suggested.append(f"{query.original} [specific city]")

            if intent.confidence.temporal_relevance < 0.3:
                missing.append(f"time frame (current, recent, {year})")
                suggested.append(f"{query.original} {year} current")

            if len(query.search_terms) > 8:
                suggested.append(" ".join(query.original.split(" ")[:5]))

            if intent.primary_intent == "recommendation":
                stripped = RECOMMENDATION_WORDS.sub("", query.original).strip()
                suggested.append(f"best {stripped}")

        return RefinementSuggestions(
            needs_refinement=needs_refinement,
            suggested_queries=suggested[:3],
            missing_context=missing[:3],
        )

    def generate_score_reasoning(
        self,
        result: WebSearchResult,
        relevance: float,
        semantic: float,
        context: float,
        quality: float,
    ) -> list[str]:
        reasoning = []
        if relevance > 0.7:
            reasoning.append("High relevance to query terms")
        elif relevance < 0.3:
            reasoning.append("Low relevance to query terms")
        if semantic > 0.6:
            reasoning.append("Strong semantic alignment with intent")
        elif semantic < 0.3:
            reasoning.append("Weak semantic alignment")
        if context > 0.7:
            reasoning.append("Good contextual fit")
        if quality > 0.8:
            reasoning.append("High-quality source")
        elif quality < 0.4:
            reasoning.append("Lower-quality source")
        if result.source_type:
            reasoning.append(f"Source type: {result.source_type}")
        if result.domain:
            reasoning.append(f"Domain: {result.domain}")
        return reasoning
