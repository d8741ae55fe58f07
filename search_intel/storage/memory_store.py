"""In-process user memory store.

Keeps per-user preferences and a heuristic rolling conversation summary. The
pipeline reads user context from it and writes search timestamps back.
"""

import logging
import re
import threading
from collections.abc import Callable
from datetime import UTC, datetime

from search_intel.models.context import MemoryContext, MemoryFact, MemoryPreference
from search_intel.models.intent import ContextPreferences, UserContext
from search_intel.models.memory import ContextualMemory, ConversationSummary, UserPreferences

logger = logging.getLogger(__name__)

KEY_TOPIC_KEYWORDS = [
    "career", "job", "work", "remote", "office",
    "housing", "rent", "buy", "budget", "cost",
    "family", "schools", "safety", "kids",
    "climate", "weather", "transportation", "commute",
    "nightlife", "culture", "food", "entertainment",
    "healthcare", "hospitals", "fitness", "outdoors",
]  # fmt: skip

URGENT_INDICATORS = re.compile(
    r"\b(today|now|current|latest|immediate|urgent|asap|quickly|recent|this week)\b",
    re.IGNORECASE,
)

# "Austin TX", "New York City"
LOCATION_CONTEXT_PATTERN = re.compile(
    r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*"
    r"(?:\s+(?:City|CA|NY|TX|FL|WA|OR|CO|NC|GA|IL|MA|PA|VA|MD|DC))\b"
)

MAX_KEY_TOPICS = 8
MAX_LOCATIONS = 10
MAX_RECENT_SEARCHES = 10
MAX_URGENT_QUERIES = 5
MAX_SUMMARY_LINES = 20
MIN_SEARCH_LENGTH = 10

# UserPreferences field -> memory preference key
PREFERENCE_KEYS: dict[str, str] = {
    "career_field": "career",
    "job_preferences": "job preferences",
    "lifestyle_needs": "lifestyle",
    "family_requirements": "family",
    "housing_constraints": "housing",
    "budget": "budget",
    "discussed_cities": "cities",
    "transportation_concerns": "transportation",
    "work_setup": "work setup",
    "cost_of_living_preferences": "cost of living",
    "preferred_neighborhoods": "neighborhoods",
    "timeframe": "timeframe",
    "must_have_amenities": "amenities",
    "deal_breakers": "deal breakers",
}


def extract_key_topics(text: str) -> list[str]:
    text_lower = text.lower()
    return [k for k in KEY_TOPIC_KEYWORDS if k in text_lower][:MAX_KEY_TOPICS]


def extract_location_context(text: str) -> list[str]:
    locations: list[str] = []
    for match in LOCATION_CONTEXT_PATTERN.findall(text):
        if match not in locations:
            locations.append(match)
    return locations[:MAX_LOCATIONS]


def generate_adaptive_prompts(summary: ConversationSummary) -> list[str]:
    prompts: list[str] = []
    if "career" in summary.key_topics:
        prompts.append("Consider career growth opportunities and industry presence")
    if "family" in summary.key_topics:
        prompts.append("Prioritize family-friendly amenities and school districts")
    if summary.urgent_queries:
        prompts.append("Focus on time-sensitive and current information")
    if len(summary.location_context) > 2:
        prompts.append("Provide comparative analysis between discussed cities")
    return prompts


class InMemoryUserMemoryStore:
    """Thread-safe user memory kept in process memory.

    Returned models are copies; callers cannot mutate stored state.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._preferences: dict[str, UserPreferences] = {}
        self._memories: dict[str, ContextualMemory] = {}

    def get_preferences(self, user_id: str) -> UserPreferences | None:
        with self._lock:
            preferences = self._preferences.get(user_id)
            return preferences.model_copy(deep=True) if preferences else None

    def set_preferences(self, user_id: str, preferences: UserPreferences) -> None:
        with self._lock:
            self._preferences[user_id] = preferences.model_copy(deep=True)

    def get_conversation_summary(self, user_id: str) -> ConversationSummary | None:
        with self._lock:
            memory = self._memories.get(user_id)
            return memory.conversation_summary.model_copy(deep=True) if memory else None

    def get_contextual_memory(self, user_id: str) -> ContextualMemory | None:
        with self._lock:
            memory = self._memories.get(user_id)
            return memory.model_copy(deep=True) if memory else None

    def record_search_timestamp(self, user_id: str, when: datetime | None = None) -> None:
        """Remember when a web search last ran for this user."""
        when = when or self.clock()
        with self._lock:
            memory = self._memories.setdefault(user_id, ContextualMemory())
            memory.last_web_search = when

    def record_exchange(self, user_id: str, user_input: str, response: str) -> ConversationSummary:
        """Fold one user/assistant exchange into the rolling summary.

        Args:
            user_id: User the exchange belongs to
            user_input: Message the user sent
            response: Assistant reply

        Returns:
            The updated conversation summary
        """
        now = self.clock()
        with self._lock:
            memory = self._memories.setdefault(user_id, ContextualMemory())
            previous = memory.conversation_summary

            lines = [line for line in previous.summary.split("\n") if line]
            lines.append(f"User: {user_input.strip()[:200]}")
            lines.append(f"Assistant: {response.strip()[:200]}")
            text = "\n".join(lines[-MAX_SUMMARY_LINES:])

            urgent = list(previous.urgent_queries)
            if URGENT_INDICATORS.search(user_input):
                urgent = (urgent + [user_input])[-MAX_URGENT_QUERIES:]

            summary = ConversationSummary(
                summary=text,
                last_updated=now,
                message_count=previous.message_count + 2,
                key_topics=extract_key_topics(text),
                urgent_queries=urgent,
                location_context=extract_location_context(text),
            )

            if len(user_input) > MIN_SEARCH_LENGTH:
                memory.recent_searches = [user_input, *memory.recent_searches][
                    :MAX_RECENT_SEARCHES
                ]
            memory.conversation_summary = summary
            memory.adaptive_prompts = generate_adaptive_prompts(summary)

        logger.debug(
            f"Updated memory for user {user_id}: {summary.message_count} messages, "
            f"topics={summary.key_topics}"
        )
        return summary.model_copy(deep=True)

    def build_user_context(
        self, user_id: str | None, conversation_history: list[str] | None = None
    ) -> UserContext:
        """Build the classifier/rewriter context for a user.

        Unknown or missing users get a neutral context carrying only the
        supplied conversation history.
        """
        history = list(conversation_history or [])
        if not user_id:
            return UserContext(conversation_history=history)

        preferences = self.get_preferences(user_id) or UserPreferences()
        memory = self.get_contextual_memory(user_id) or ContextualMemory()
        summary = memory.conversation_summary

        target_cities = list(preferences.discussed_cities)
        for location in summary.location_context:
            if location not in target_cities:
                target_cities.append(location)

        return UserContext(
            target_cities=target_cities,
            preferences=ContextPreferences(
                career_field=preferences.career_field,
                lifestyle=list(preferences.lifestyle_needs),
                priorities=[*preferences.must_have_amenities, *preferences.cost_of_living_preferences],
            ),
            conversation_history=history,
            recent_topics=list(summary.key_topics),
            last_web_search=memory.last_web_search,
        )

    def build_memory_context(self, user_id: str | None) -> MemoryContext:
        """Expose stored preferences and search history as assembler memory."""
        if not user_id:
            return MemoryContext()

        preferences = self.get_preferences(user_id)
        memory = self.get_contextual_memory(user_id) or ContextualMemory()

        items: list[MemoryPreference] = []
        if preferences:
            for field, key in PREFERENCE_KEYS.items():
                value = getattr(preferences, field)
                if isinstance(value, list):
                    value = ", ".join(value)
                if value:
                    items.append(MemoryPreference(key=key, value=value, confidence=0.8))

        facts = [
            MemoryFact(content=f"Previously asked: {query}", relevance=0.6, source="search_history")
            for query in memory.recent_searches
        ]
        facts.extend(
            MemoryFact(content=f"Discussed location: {location}", relevance=0.5)
            for location in memory.conversation_summary.location_context
        )

        return MemoryContext(preferences=items, facts=facts)
