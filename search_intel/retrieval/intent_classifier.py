"""Rule-based intent classification for web search decisions."""

import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from search_intel.models.intent import (
    IntentConfidence,
    IntentEntities,
    PrimaryIntent,
    QueryIntent,
    SearchStrategy,
    UserContext,
)
from search_intel.retrieval.entity_extractor import (
    RELATIVE_LOCATION_PATTERN,
    TEMPORAL_PATTERNS,
    EntityExtractor,
)

logger = logging.getLogger(__name__)

# Scored in this order; ties keep the earlier category
INTENT_KEYWORDS: dict[str, list[str]] = {
    "factual": ["what is", "define", "explain", "how does", "why", "when", "where"],
    "recommendation": [
        "recommend", "suggest", "best", "top", "good", "should i", "where should",
        "hidden gems", "must visit",
    ],
    "comparison": ["vs", "versus", "compare", "better", "difference", "which is", "pros and cons"],
    "status": [
        "is", "are", "status", "available", "open", "closed", "happening",
        "current", "today", "right now", "latest", "update", "conditions", "weather",
    ],
    "planning": ["planning", "thinking about", "considering", "help me", "advice", "guidance"],
}

HIGH_PRIORITY_TOPICS = [
    "housing market", "job market", "crime rate", "weather", "cost of living",
    "school district", "transportation", "healthcare", "emergency", "breaking news",
    "travel conditions", "road conditions", "safety", "trek", "trekking", "visiting",
    "trip", "travel", "going to",
]

PLANNING_OVERRIDE = re.compile(
    r"\b(move to|relocat\w*|thinking about|considering|planning)\b", re.IGNORECASE
)
FRESHNESS_PATTERN = re.compile(r"\b(current|latest|recent|news|market|price)\b", re.IGNORECASE)
OPINION_PATTERN = re.compile(r"\b(review|rating|opinion|experience)\b", re.IGNORECASE)
TRAVEL_PATTERN = re.compile(
    r"\b(safe|safety|conditions|weather|traveling|visiting|going to|trip to)\b", re.IGNORECASE
)
NEAR_FUTURE_PATTERN = re.compile(
    r"\b(next week|tomorrow|this weekend|soon|planning to go)\b", re.IGNORECASE
)
PERSONAL_PATTERN = re.compile(
    r"\b(i|me|my|should i|help me|what do you think)\b", re.IGNORECASE
)

TEMPORAL_SCORES = {"immediate": 0.9, "recent": 0.7, "specific": 0.6, "future": 0.4}
RECENT_SEARCH_WINDOW = timedelta(minutes=5)


def _keyword_pattern(phrases: list[str]) -> re.Pattern[str]:
    return re.compile(r"\b(" + "|".join(re.escape(p) for p in phrases) + r")\b")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class IntentClassifier:
    """Decides whether a query needs web search and how it should be searched.

    The classifier is stateless apart from its clock, which is only consulted
    to judge how recent the user's last web search was.
    """

    def __init__(
        self,
        extractor: EntityExtractor | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.extractor = extractor or EntityExtractor()
        self.clock = clock or (lambda: datetime.now(UTC))
        self._keyword_patterns = {
            intent: [_keyword_pattern([k]) for k in keywords]
            for intent, keywords in INTENT_KEYWORDS.items()
        }
        self._high_priority_pattern = _keyword_pattern(HIGH_PRIORITY_TOPICS)

    def classify_intent(self, query: str, context: UserContext | None = None) -> QueryIntent:
        """Classify a query.

        Args:
            query: Raw user query
            context: Optional user context; absent fields count as neutral

        Returns:
            QueryIntent. Never raises; a blank query yields the
            lowest-confidence conversational intent.
        """
        if not query or not query.strip():
            logger.debug("Empty query, returning conversational intent")
            return QueryIntent(reasoning=["Empty query"])

        context = context or UserContext()
        normalized = query.lower().strip()

        entities = self.extractor.extract(query)
        primary_intent = self.determine_primary_intent(normalized)
        confidence, signals = self.calculate_confidence(normalized, entities, context)
        strategy = self.determine_search_strategy(primary_intent, confidence, entities)
        reasoning = self.generate_reasoning(primary_intent, confidence, entities) + signals

        intent = QueryIntent(
            primary_intent=primary_intent,
            confidence=confidence,
            entities=entities,
            search_strategy=strategy,
            reasoning=reasoning,
        )

        logger.info(
            f"✓ Intent classified: {primary_intent} "
            f"(web={confidence.needs_web_search:.2f}, priority={strategy.priority}, "
            f"type={strategy.query_type})"
        )
        return intent

    def determine_primary_intent(self, normalized_query: str) -> PrimaryIntent:
        max_score = 0
        primary_intent: PrimaryIntent = "conversational"

        for intent, patterns in self._keyword_patterns.items():
            score = sum(1 for pattern in patterns if pattern.search(normalized_query))
            if score > max_score:
                max_score = score
                primary_intent = intent  # type: ignore[assignment]

        if PLANNING_OVERRIDE.search(normalized_query):
            primary_intent = "planning"

        return primary_intent

    def calculate_confidence(
        self,
        normalized_query: str,
        entities: IntentEntities,
        context: UserContext,
    ) -> tuple[IntentConfidence, list[str]]:
        """Compute the four confidence axes.

        Returns:
            Tuple of (confidence, reasoning lines for context-derived signals)
        """
        signals: list[str] = []

        # Web search need
        web = 0.0
        if entities.time_references:
            web += 0.3
        if entities.locations:
            web += 0.2
        if self._high_priority_pattern.search(normalized_query):
            web += 0.4
        if FRESHNESS_PATTERN.search(normalized_query):
            web += 0.3
        if OPINION_PATTERN.search(normalized_query):
            web += 0.25
        if TRAVEL_PATTERN.search(normalized_query):
            web += 0.3
        if NEAR_FUTURE_PATTERN.search(normalized_query):
            web += 0.2

        if context.last_web_search is not None:
            last_search = context.last_web_search
            if last_search.tzinfo is None:
                last_search = last_search.replace(tzinfo=UTC)
            if self.clock() - last_search < RECENT_SEARCH_WINDOW:
                web += 0.15
                signals.append("Recent web search in this conversation")

        recent_topics = {t.lower() for t in context.recent_topics}
        if recent_topics and any(topic in recent_topics for topic in entities.topics):
            web += 0.1
            signals.append("Continues a recently discussed topic")

        # Temporal relevance: strongest matching category wins
        temporal = 0.1
        for category, pattern in TEMPORAL_PATTERNS.items():
            if pattern.search(normalized_query):
                temporal = max(temporal, TEMPORAL_SCORES[category])

        # Location relevance
        location = min(len(entities.locations) * 0.3, 0.9)
        if RELATIVE_LOCATION_PATTERN.search(normalized_query):
            location += 0.2
        if any(city.lower() in normalized_query for city in context.target_cities if city):
            location += 0.3

        # Personal relevance
        personal = 0.0
        career_field = context.preferences.career_field
        if career_field and career_field.lower() in normalized_query:
            personal += 0.3
        if any(
            topic in message.lower()
            for message in context.conversation_history
            for topic in entities.topics
        ):
            personal += 0.2
        if PERSONAL_PATTERN.search(normalized_query):
            personal += 0.3

        confidence = IntentConfidence(
            needs_web_search=_clamp(web),
            temporal_relevance=_clamp(temporal),
            location_relevance=_clamp(location),
            personal_relevance=_clamp(personal),
        )
        return confidence, signals

    def determine_search_strategy(
        self,
        intent: PrimaryIntent,
        confidence: IntentConfidence,
        entities: IntentEntities,
    ) -> SearchStrategy:
        if confidence.needs_web_search >= 0.7:
            priority = "high"
        elif confidence.needs_web_search >= 0.4:
            priority = "medium"
        elif confidence.needs_web_search >= 0.2:
            priority = "low"
        else:
            priority = "skip"

        if confidence.temporal_relevance > 0.6:
            query_type, sources = "temporal", ["news", "official"]
        elif confidence.location_relevance > 0.6:
            query_type, sources = "local", ["review", "local", "social"]
        elif entities.comparisons:
            query_type, sources = "comparative", ["review", "analysis", "data"]
        elif intent == "recommendation":
            query_type, sources = "exploratory", ["review", "guide", "social"]
        else:
            query_type, sources = "factual", ["general"]

        return SearchStrategy(priority=priority, query_type=query_type, expected_sources=sources)

    def generate_reasoning(
        self,
        intent: PrimaryIntent,
        confidence: IntentConfidence,
        entities: IntentEntities,
    ) -> list[str]:
        reasoning = [f"Primary intent: {intent}"]

        if confidence.needs_web_search >= 0.7:
            reasoning.append("High confidence web search needed")
        elif confidence.needs_web_search >= 0.4:
            reasoning.append("Moderate confidence web search beneficial")
        else:
            reasoning.append("Low confidence web search needed")

        if confidence.temporal_relevance > 0.6:
            reasoning.append("Time-sensitive query detected")
        if confidence.location_relevance > 0.6:
            reasoning.append("Location-specific information needed")
        if entities.locations:
            reasoning.append(f"Locations mentioned: {', '.join(entities.locations)}")
        if entities.time_references:
            reasoning.append(f"Time references: {', '.join(entities.time_references)}")
        if confidence.personal_relevance > 0.5:
            reasoning.append("Query relates to user preferences/context")

        return reasoning
