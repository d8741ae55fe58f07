"""Query rewriting for web search recall."""

import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime

from search_intel.models.intent import QueryIntent, UserContext
from search_intel.models.query import RewriteStrategy, RewrittenQuery
from search_intel.retrieval.entity_extractor import STOP_WORDS, YEAR, tokenize, unique

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 200
MAX_SEARCH_TERMS = 10

# Topic bucket -> expansions; the first two are appended when the bucket name appears
TOPIC_EXPANSIONS: dict[str, list[str]] = {
    "housing": ["real estate", "apartments", "rent", "buy", "property market"],
    "jobs": ["employment", "career opportunities", "job market", "hiring", "salaries"],
    "weather": ["climate", "temperature", "rainfall", "seasons", "weather patterns"],
    "cost": ["cost of living", "expenses", "budget", "prices", "affordability"],
    "safety": ["crime rate", "safety statistics", "neighborhood safety", "security"],
    "schools": ["education", "school districts", "universities", "academic rankings"],
    "transport": ["public transit", "commute", "transportation", "traffic", "walkability"],
    "culture": ["arts", "museums", "nightlife", "restaurants", "entertainment", "diversity"],
}

CONTEXTUAL_FRAMEWORKS: dict[str, str] = {
    "relocation": "for people moving to",
    "comparison": "compared to other cities",
    "planning": "for someone planning to move",
    "recommendation": "best options for",
    "factual": "accurate information about",
    "status": "current status of",
}

INTENT_TERMS: dict[str, list[str]] = {
    "factual": ["information", "facts", "data"],
    "recommendation": ["best", "top", "recommended", "popular"],
    "comparison": ["compare", "vs", "difference", "better"],
    "status": ["current", "status", "available", "open"],
    "planning": ["planning", "guide", "advice", "tips"],
    "conversational": ["discussion", "opinion", "experience"],
}

CONVERSATIONAL_PREFIX = re.compile(
    r"^(can you |could you |would you |please |i want to |i need |help me )", re.IGNORECASE
)
CONVERSATIONAL_PHRASES = re.compile(
    r"\b(tell me about|explain to me|let me know about)\b", re.IGNORECASE
)
FILLER_WORDS = re.compile(r"\b(um|uh|well|so|like|you know)\b", re.IGNORECASE)
TRAILING_QUESTION = re.compile(r"\?+$")
WHITESPACE = re.compile(r"\s+")

CAREER_PATTERN = re.compile(r"\b(job|career|work|employment|salary)\b", re.IGNORECASE)
RELOCATION_PATTERN = re.compile(r"\b(move|relocat\w*|city|living)\b", re.IGNORECASE)
RECENCY_TOKEN = re.compile(r"\b(" + YEAR + r"|current|latest|recent)\b", re.IGNORECASE)
COMPARISON_TOKEN = re.compile(r"\b(vs|compare)\b", re.IGNORECASE)


class QueryRewriter:
    """Rewrites user queries into search-engine friendly form.

    One of four strategies is chosen from the intent: comparative, contextual,
    expanded or direct. A final pass adds city and recency qualifiers and
    bounds the length.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.clock = clock or (lambda: datetime.now(UTC))

    def rewrite_query(
        self,
        query: str,
        intent: QueryIntent,
        context: UserContext | None = None,
    ) -> RewrittenQuery:
        """Rewrite a query for web search.

        Args:
            query: Original user query
            intent: Classification of the query
            context: Optional user context

        Returns:
            RewrittenQuery; never raises
        """
        context = context or UserContext()
        year = self.clock().year

        strategy = self.determine_strategy(intent)
        logger.info(f"→ Query Rewrite START - strategy={strategy}")

        if strategy == "direct":
            rewritten = self.clean_query(query)
        elif strategy == "expanded":
            rewritten = self.expand_query(query, intent, year)
        elif strategy == "contextual":
            rewritten = self.add_context(query, intent, context)
        else:
            rewritten = self.optimize_for_comparison(query, intent, context)

        rewritten = self.apply_final_optimizations(rewritten, intent, year)

        result = RewrittenQuery(
            original=query,
            rewritten=rewritten,
            search_terms=self.extract_search_terms(rewritten, intent),
            context=self.build_contextual_info(intent, context),
            strategy=strategy,
            confidence=self.calculate_rewrite_confidence(query, rewritten, intent),
            reasoning=self.generate_reasoning(query, rewritten, strategy, intent),
        )

        logger.info(f"✓ Query Rewrite COMPLETE: '{query}' → '{rewritten}'")
        return result

    def passthrough(self, query: str) -> RewrittenQuery:
        """Wrap a query unchanged, for re-scoring results that came from the cache."""
        terms = [t for t in tokenize(query) if t not in STOP_WORDS]
        return RewrittenQuery(
            original=query,
            rewritten=query,
            search_terms=unique(terms)[:MAX_SEARCH_TERMS],
            context=[],
            strategy="direct",
            confidence=0.8,
            reasoning=["Using cached results"],
        )

    def determine_strategy(self, intent: QueryIntent) -> RewriteStrategy:
        if intent.entities.comparisons:
            return "comparative"
        if (
            intent.confidence.location_relevance > 0.6
            or intent.confidence.personal_relevance > 0.6
        ):
            return "contextual"
        if intent.search_strategy.priority == "high":
            return "expanded"
        return "direct"

    def clean_query(self, query: str) -> str:
        """Strip conversational framing, trailing question marks and filler words."""
        cleaned = CONVERSATIONAL_PREFIX.sub("", query)
        cleaned = CONVERSATIONAL_PHRASES.sub("", cleaned)
        cleaned = TRAILING_QUESTION.sub("", cleaned.strip()).strip()
        cleaned = FILLER_WORDS.sub("", cleaned)
        return WHITESPACE.sub(" ", cleaned).strip()

    def expand_query(self, query: str, intent: QueryIntent, year: int) -> str:
        expanded = query
        query_lower = query.lower()

        for topic, expansions in TOPIC_EXPANSIONS.items():
            if topic in query_lower:
                expanded = f"{expanded} {' OR '.join(expansions[:2])}"

        if intent.confidence.temporal_relevance > 0.6:
            modifiers = self.get_time_modifiers(query_lower, year)
            if modifiers:
                expanded = f"{expanded} {' '.join(modifiers)}"

        return expanded

    def get_time_modifiers(self, query_lower: str, year: int) -> list[str]:
        modifiers: list[str] = []
        if re.search(r"\b(now|current|today)\b", query_lower):
            modifiers.extend(["current", "now", "today", str(year)])
        if re.search(r"\b(recent|latest|this year)\b", query_lower):
            modifiers.extend(["recent", "latest", "this year", str(year - 1), str(year)])
        if re.search(r"\b(future|upcoming|will)\b", query_lower):
            modifiers.extend(["upcoming", "projected", "forecast", "planned"])
        return modifiers[:3]

    def add_context(self, query: str, intent: QueryIntent, context: UserContext) -> str:
        contextual = query

        if intent.confidence.location_relevance > 0.6 and context.target_cities:
            contextual = f"{contextual} in {' OR '.join(context.target_cities[:2])}"

        career_field = context.preferences.career_field
        if career_field and CAREER_PATTERN.search(query):
            contextual = f"{contextual} {career_field}"

        if RELOCATION_PATTERN.search(query):
            framework = CONTEXTUAL_FRAMEWORKS.get(intent.primary_intent)
            if framework:
                contextual = f"{contextual} {framework}"

        return contextual

    def optimize_for_comparison(
        self, query: str, intent: QueryIntent, context: UserContext
    ) -> str:
        comparative = query
        comparisons = [c.strip() for c in intent.entities.comparisons if c.strip()]

        if len(comparisons) > 1:
            first, *rest = comparisons
            comparative = f"compare {first} vs {' vs '.join(rest)}"

        if context.target_cities and not COMPARISON_TOKEN.search(comparative):
            cities = context.target_cities[:3]
            if len(cities) > 1:
                comparative = f"{comparative} comparing {' vs '.join(cities)}"

        return f"{comparative} comparison pros and cons"

    def apply_final_optimizations(self, query: str, intent: QueryIntent, year: int) -> str:
        optimized = query

        if intent.entities.locations and "city" not in optimized.lower():
            optimized = f"{optimized} city"

        if intent.confidence.temporal_relevance > 0.7 and not RECENCY_TOKEN.search(optimized):
            optimized = f"{optimized} {year} current"

        return WHITESPACE.sub(" ", optimized).strip()[:MAX_QUERY_LENGTH]

    def extract_search_terms(self, rewritten: str, intent: QueryIntent) -> list[str]:
        terms = [loc.lower() for loc in intent.entities.locations]
        terms.extend(topic.lower() for topic in intent.entities.topics)
        terms.extend(INTENT_TERMS.get(intent.primary_intent, []))
        terms.extend(t for t in tokenize(rewritten) if len(t) > 2 and t not in STOP_WORDS)
        return unique(terms)[:MAX_SEARCH_TERMS]

    def build_contextual_info(self, intent: QueryIntent, context: UserContext) -> list[str]:
        info: list[str] = []
        if context.current_location:
            info.append(f"Current location: {context.current_location}")
        if context.target_cities:
            info.append(f"Target cities: {', '.join(context.target_cities)}")
        if context.preferences.career_field:
            info.append(f"Career: {context.preferences.career_field}")
        if context.preferences.priorities:
            info.append(f"Priorities: {', '.join(context.preferences.priorities)}")
        if intent.search_strategy.expected_sources:
            info.append(f"Expected sources: {', '.join(intent.search_strategy.expected_sources)}")
        return info

    def calculate_rewrite_confidence(
        self, original: str, rewritten: str, intent: QueryIntent
    ) -> float:
        """Score how much the rewrite is likely to help.

        Over-expansion penalties grow with the amount of padding, so the score
        never increases once a rewrite is more than three times the original
        length or longer than 25 words.
        """
        confidence = 0.5
        ratio = len(rewritten) / max(len(original), 1)
        word_count = len(rewritten.split())

        if ratio > 1.2:
            confidence += 0.2
        if intent.entities.locations:
            confidence += 0.15
        if intent.confidence.temporal_relevance > 0.6:
            confidence += 0.15
        if COMPARISON_TOKEN.search(rewritten):
            confidence += 0.1

        if ratio > 3:
            confidence -= 0.2 + 0.05 * (ratio - 3)
        if word_count > 25:
            confidence -= 0.1 + 0.01 * (word_count - 25)

        return max(0.1, min(1.0, confidence))

    def generate_reasoning(
        self,
        original: str,
        rewritten: str,
        strategy: RewriteStrategy,
        intent: QueryIntent,
    ) -> list[str]:
        reasoning = [
            f"Strategy: {strategy}",
            f"Original length: {len(original.split())} words",
            f"Rewritten length: {len(rewritten.split())} words",
        ]
        if len(rewritten) > len(original):
            reasoning.append("Added contextual information for better search results")
        if intent.entities.locations:
            reasoning.append("Enhanced with location-specific terms")
        if intent.confidence.temporal_relevance > 0.6:
            reasoning.append("Added temporal context for current information")
        if strategy == "comparative":
            reasoning.append("Optimized for comparison queries")
        return reasoning
