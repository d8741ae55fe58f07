"""Fallback and clarification analysis for weak search results."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from search_intel.models.fallback import (
    FallbackResponse,
    FallbackStrategy,
    QueryCharacteristics,
    ResultMetrics,
)
from search_intel.models.intent import QueryIntent
from search_intel.models.search import FilteredResults

logger = logging.getLogger(__name__)

# Weak-result thresholds; tuning knobs rather than invariants
MIN_RESULT_COUNT = 3
MIN_AVERAGE_SCORE = 0.4
MIN_TOP_SCORE = 0.5
MIN_DIVERSITY = 0.3
HIGH_SEARCH_EXPECTATION = 0.8

REFINE_AVERAGE_SCORE = 0.3
ALTERNATIVE_SOURCE_DIVERSITY = 0.2
MAX_CLARIFYING_QUESTIONS = 4

FALLBACK_TEMPLATES: dict[str, str] = {
    "refine": (
        "I found some results, but they might not be exactly what you're looking for. "
        "Try being more specific about:"
    ),
    "broaden": "I found limited results. You might want to search for something broader like:",
    "redirect": "Based on your query, you might be interested in these related topics:",
    "clarify": "I need a bit more information to find the best results. Could you tell me:",
    "alternative_source": (
        "The current results are limited. You might find better information by checking:"
    ),
}

CLARIFYING_QUESTIONS: dict[str, list[str]] = {
    "location": [
        "Which specific city or region are you interested in?",
        "Are you looking for information about a particular neighborhood?",
        "Should I focus on a specific geographic area?",
    ],
    "timeframe": [
        "Are you looking for current information or historical data?",
        "What time period should I focus on?",
        "Do you need the most recent updates?",
    ],
    "scope": [
        "Are you looking for general information or something specific?",
        "Should I focus on particular aspects of this topic?",
        "What's the main purpose of your search?",
    ],
    "personal": [
        "Are you planning to visit, move there, or just researching?",
        "What are your main priorities or concerns?",
        "Are you looking for personal experiences or official data?",
    ],
}

RECOMMENDED_SOURCES: dict[str, list[str]] = {
    "factual": [
        "Official government websites (.gov)",
        "Academic institutions (.edu)",
        "Wikipedia for general information",
    ],
    "recommendation": [
        "Review sites (Yelp, TripAdvisor)",
        "Local community forums (Reddit)",
        "Travel and lifestyle blogs",
    ],
    "comparison": [
        "City comparison websites",
        "Cost of living calculators",
        "Real estate market reports",
    ],
    "status": [
        "News websites",
        "Official city/state websites",
        "Real-time data sources",
    ],
    "planning": [
        "Relocation guides",
        "Official city/state websites",
        "Local community forums (Reddit)",
    ],
    "conversational": [
        "Wikipedia for general information",
        "News websites",
        "Local community forums (Reddit)",
    ],
}


class SearchFallbackHandler:
    """Decides whether results are too weak and what the user should try next.

    The output is advisory text for the caller; weak results are never an
    error.
    """

    def __init__(
        self,
        min_conditions: int = 2,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the handler.

        Args:
            min_conditions: How many of the six weak-result conditions must
                hold before a fallback is suggested
            clock: Source of the current year used in suggestions
        """
        self.min_conditions = min_conditions
        self.clock = clock or (lambda: datetime.now(UTC))

    def analyze_fallback_needs(
        self,
        filtered: FilteredResults,
        intent: QueryIntent,
        query: str,
    ) -> FallbackResponse:
        """Analyze a filtered result set.

        Args:
            filtered: Output of the result filter
            intent: Classification of the query
            query: Original user query

        Returns:
            FallbackResponse; ``should_fallback`` is False for adequate results
        """
        metrics = self.calculate_metrics(filtered)

        if not self.should_trigger_fallback(filtered, intent, metrics):
            return FallbackResponse(
                should_fallback=False,
                strategy=FallbackStrategy(
                    type="refine",
                    confidence=1.0,
                    reasoning="Results are adequate",
                    suggested_actions=[],
                ),
                enhanced_message="Found good results for your query.",
            )

        characteristics = self.analyze_query(query, intent)
        strategy = self.determine_strategy(metrics, characteristics, intent)

        logger.warning(
            f"⚠ Fallback triggered: strategy={strategy.type}, "
            f"results={metrics.result_count}, avg={metrics.average_score:.2f}"
        )

        return FallbackResponse(
            should_fallback=True,
            strategy=strategy,
            enhanced_message=self.enhanced_message(strategy),
            user_guidance=self.user_guidance(strategy, intent),
            next_steps=self.next_steps(strategy),
        )

    def calculate_metrics(self, filtered: FilteredResults) -> ResultMetrics:
        results = filtered.results
        count = len(results)
        diversity = 0.0
        if count:
            unique_domains = len({r.domain for r in results})
            unique_types = len({r.source_type for r in results})
            diversity = (unique_domains + unique_types) / (count * 2)
        return ResultMetrics(
            result_count=count,
            average_score=filtered.summary.average_score,
            top_result_score=results[0].final_score if results else 0.0,
            diversity_score=diversity,
        )

    def should_trigger_fallback(
        self,
        filtered: FilteredResults,
        intent: QueryIntent,
        metrics: ResultMetrics,
    ) -> bool:
        conditions = [
            metrics.result_count < MIN_RESULT_COUNT,
            metrics.average_score < MIN_AVERAGE_SCORE,
            metrics.top_result_score < MIN_TOP_SCORE,
            metrics.diversity_score < MIN_DIVERSITY,
            filtered.summary.weak_results,
            intent.confidence.needs_web_search > HIGH_SEARCH_EXPECTATION
            and metrics.result_count == 0,
        ]
        return sum(conditions) >= self.min_conditions

    def analyze_query(self, query: str, intent: QueryIntent) -> QueryCharacteristics:
        words = query.split()
        length = len(words)
        has_location = bool(intent.entities.locations)

        if length < 4:
            complexity = "simple"
        elif length < 8:
            complexity = "moderate"
        else:
            complexity = "complex"

        return QueryCharacteristics(
            is_vague=length < 3,
            is_too_specific=length > 12 and not has_location,
            needs_context=intent.confidence.personal_relevance > 0.7 and not has_location,
            missing_location=intent.confidence.location_relevance > 0.5 and not has_location,
            missing_timeframe=(
                intent.confidence.temporal_relevance > 0.6
                and not intent.entities.time_references
            ),
            query_length=length,
            complexity=complexity,
        )

    def determine_strategy(
        self,
        metrics: ResultMetrics,
        characteristics: QueryCharacteristics,
        intent: QueryIntent,
    ) -> FallbackStrategy:
        if metrics.result_count == 0:
            return self.broaden_strategy(intent)
        if metrics.average_score < REFINE_AVERAGE_SCORE:
            return self.refine_strategy(characteristics, intent)
        if characteristics.is_vague or characteristics.needs_context:
            return self.clarify_strategy(characteristics, intent)
        if metrics.diversity_score < ALTERNATIVE_SOURCE_DIVERSITY:
            return self.alternative_source_strategy(intent)
        return self.refine_strategy(characteristics, intent)

    def refine_strategy(
        self, characteristics: QueryCharacteristics, intent: QueryIntent
    ) -> FallbackStrategy:
        actions: list[str] = []
        queries: list[str] = []
        topics = intent.entities.topics
        main_topic = topics[0] if topics else None

        if characteristics.missing_location:
            actions.append("Add a specific city or location")
            if main_topic:
                queries.append(f"{main_topic} in [your city]")

        if characteristics.missing_timeframe:
            actions.append(f"Specify a time period (current, recent, {self.clock().year})")
            if main_topic:
                queries.append(f"current {main_topic}")

        if main_topic:
            queries.extend([f"best {main_topic}", f"{main_topic} guide", f"{main_topic} tips"])

        return FallbackStrategy(
            type="refine",
            confidence=0.8,
            reasoning="Results exist but have low relevance scores",
            suggested_actions=actions,
            alternative_queries=queries[:3],
        )

    def broaden_strategy(self, intent: QueryIntent) -> FallbackStrategy:
        queries: list[str] = []
        topics = intent.entities.topics

        if topics:
            queries.append(topics[0])
            if len(topics) > 1:
                queries.append(f"{topics[0]} OR {topics[1]}")
            if intent.primary_intent == "planning":
                queries.extend(["relocation guide", "moving tips"])

        return FallbackStrategy(
            type="broaden",
            confidence=0.7,
            reasoning="No results found, query may be too specific",
            suggested_actions=[
                "Use fewer, more general terms",
                "Remove very specific requirements",
                "Try searching for broader categories",
            ],
            alternative_queries=queries[:3],
        )

    def clarify_strategy(
        self, characteristics: QueryCharacteristics, intent: QueryIntent
    ) -> FallbackStrategy:
        questions: list[str] = []
        if characteristics.missing_location:
            questions.extend(CLARIFYING_QUESTIONS["location"][:2])
        if characteristics.missing_timeframe:
            questions.extend(CLARIFYING_QUESTIONS["timeframe"][:2])
        if characteristics.is_vague:
            questions.extend(CLARIFYING_QUESTIONS["scope"][:2])
        if intent.confidence.personal_relevance > 0.7:
            questions.extend(CLARIFYING_QUESTIONS["personal"][:2])

        return FallbackStrategy(
            type="clarify",
            confidence=0.9,
            reasoning="Query needs more context for optimal results",
            suggested_actions=[
                "Provide more specific details",
                "Add context about your situation",
            ],
            clarifying_questions=questions[:MAX_CLARIFYING_QUESTIONS],
        )

    def alternative_source_strategy(self, intent: QueryIntent) -> FallbackStrategy:
        return FallbackStrategy(
            type="alternative_source",
            confidence=0.6,
            reasoning="Limited source diversity in current results",
            suggested_actions=[
                "Try different types of sources",
                "Look for specialized databases",
            ],
            recommended_sources=RECOMMENDED_SOURCES.get(intent.primary_intent, [])[:3],
        )

    def enhanced_message(self, strategy: FallbackStrategy) -> str:
        template = FALLBACK_TEMPLATES[strategy.type]

        if strategy.type == "refine":
            actions = ", ".join(strategy.suggested_actions).lower()
            return f"{template} {actions or 'the location, timeframe or topic'}."
        if strategy.type == "broaden":
            return f"{template} {', '.join(strategy.alternative_queries or []) or 'more general terms'}."
        if strategy.type == "clarify":
            questions = strategy.clarifying_questions or []
            first = questions[0] if questions else "more details about what you're looking for"
            return f"{template} {first}"
        if strategy.type == "alternative_source":
            sources = ", ".join(strategy.recommended_sources or []) or "different types of sources"
            return f"{template} {sources}."
        return "Let me help you find better results with a refined search."

    def user_guidance(self, strategy: FallbackStrategy, intent: QueryIntent) -> list[str]:
        guidance = [self.enhanced_message(strategy)]

        if strategy.alternative_queries:
            guidance.append(f'Try searching for: "{strategy.alternative_queries[0]}"')
        if strategy.clarifying_questions:
            guidance.append(f"Consider: {strategy.clarifying_questions[0]}")
        if strategy.recommended_sources:
            guidance.append(f"Check: {strategy.recommended_sources[0]}")

        if intent.confidence.location_relevance > 0.6 and not intent.entities.locations:
            guidance.append(
                "💡 Tip: Adding a specific city name usually improves results significantly."
            )
        if intent.confidence.temporal_relevance > 0.6 and not intent.entities.time_references:
            guidance.append(
                "💡 Tip: Specify if you need current information by adding "
                f"'{self.clock().year}' or 'current' to your search."
            )

        return guidance

    def next_steps(self, strategy: FallbackStrategy) -> list[str]:
        steps: list[str] = []

        if strategy.type == "refine":
            steps.append("Rephrase your query with more specific terms")
            if strategy.alternative_queries:
                steps.append(f'Try: "{strategy.alternative_queries[0]}"')
        elif strategy.type == "broaden":
            steps.append("Use more general search terms")
            steps.append("Remove overly specific details")
        elif strategy.type == "clarify":
            steps.append("Provide additional context in your next message")
            if strategy.clarifying_questions:
                steps.append(f"Answer: {strategy.clarifying_questions[0]}")
        elif strategy.type == "alternative_source":
            steps.append("Consider checking specialized sources")
            if strategy.recommended_sources:
                steps.append(f"Visit: {strategy.recommended_sources[0]}")

        steps.append("Ask me to search again with your refined query")
        return [f"{i}. {step}" for i, step in enumerate(steps, 1)]

    def generate_fallback_message(
        self, response: FallbackResponse, filtered: FilteredResults
    ) -> str:
        """Render a fallback response as a markdown block for the user.

        Returns:
            Empty string when no fallback is needed
        """
        if not response.should_fallback:
            return ""

        parts = [response.enhanced_message]

        if filtered.results:
            parts.append(
                f"\nI found {len(filtered.results)} result(s), but they may not be "
                "exactly what you're looking for."
            )

        if response.user_guidance:
            parts.append("\n**Suggestions:**")
            parts.extend(f"• {line}" for line in response.user_guidance)

        if response.strategy.alternative_queries:
            parts.append("\n**Try searching for:**")
            parts.extend(f'• "{q}"' for q in response.strategy.alternative_queries)

        if response.strategy.clarifying_questions:
            parts.append("\n**To help me find better results:**")
            parts.extend(f"• {q}" for q in response.strategy.clarifying_questions)

        return "\n".join(parts)
