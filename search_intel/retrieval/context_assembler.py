"""Token-budgeted context assembly for the language model."""

import logging
import math
from dataclasses import dataclass, replace

from search_intel.models.context import (
    AssembledContext,
    ContextAssemblyOptions,
    MemoryComparison,
    MemoryContext,
    MemoryFact,
    MemorySummary,
    PrioritizedSection,
)
from search_intel.models.intent import QueryIntent, UserContext
from search_intel.models.search import FilteredResults, ScoredResult

logger = logging.getLogger(__name__)

SECTION_PRIORITIES: dict[str, int] = {
    "user_query": 100,
    "user_profile": 90,
    "recent_preferences": 85,
    "web_results": 80,
    "relevant_facts": 75,
    "conversation_history": 70,
    "summaries": 65,
    "comparisons": 60,
    "general_memory": 50,
}

# Number of web results kept per compression level
MAX_WEB_RESULTS: dict[str, int] = {
    "none": 8,
    "light": 6,
    "moderate": 5,
    "aggressive": 3,
}

CHARS_PER_TOKEN = 4
MIN_COMPRESSION_RATIO = 0.3
COMPRESSION_START = 0.9
NEAR_LIMIT = 0.95
LONG_LINE = 50

MAX_PREFERENCES = 5
MAX_FACTS = 8
MAX_SUMMARIES = 2
MAX_COMPARISONS = 3


def estimate_tokens(text: str) -> int:
    """Rough token count for English text, one token per four characters."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass(frozen=True)
class _Section:
    name: str
    content: str
    priority: int
    tokens: int


def _section(name: str, content: str, priority: int) -> _Section:
    return _Section(name=name, content=content, priority=priority, tokens=estimate_tokens(content))


class ContextAssembler:
    """Merges profile, memory, web results and conversation into one bundle.

    Sections are packed greedily by priority. A section that does not fit is
    compressed when at least 30% of it can be kept, otherwise dropped, so the
    total never exceeds ``max_tokens``. Assembly is deterministic and has no
    side effects.
    """

    def assemble_context(
        self,
        query: str,
        intent: QueryIntent,
        user_context: UserContext | None,
        memory: MemoryContext | None,
        web_results: FilteredResults | None = None,
        options: ContextAssemblyOptions | None = None,
    ) -> AssembledContext:
        """Assemble a token-bounded context bundle.

        Args:
            query: User query the context is built for
            intent: Classification of the query
            user_context: Profile and conversation context
            memory: Long-term memory bundle
            web_results: Filtered search results, if a search ran
            options: Budget and verbosity settings

        Returns:
            AssembledContext; never raises
        """
        opts = options or ContextAssemblyOptions()
        user_context = user_context or UserContext()
        memory = memory or MemoryContext()
        topics = self.relevance_topics(intent, opts)

        logger.debug(
            f"→ Context Assembly START - query='{query[:50]}', "
            f"max_tokens={opts.max_tokens}, compression={opts.compression_level}"
        )

        sections: list[_Section] = []
        if opts.preserve_user_context:
            sections.append(
                _section(
                    "user_profile",
                    self.build_user_profile(user_context),
                    SECTION_PRIORITIES["user_profile"],
                )
            )
        sections.append(
            _section(
                "relevant_memory",
                self.build_memory_section(memory, intent, topics),
                SECTION_PRIORITIES["relevant_facts"],
            )
        )
        if opts.include_web_results and web_results is not None and web_results.results:
            sections.append(
                _section(
                    "web_results",
                    self.build_web_results_section(web_results, opts),
                    SECTION_PRIORITIES["web_results"],
                )
            )
        sections.append(
            _section(
                "conversation_context",
                self.build_conversation_section(user_context, opts),
                SECTION_PRIORITIES["conversation_history"],
            )
        )

        packed = self.optimize_sections(sections, opts.max_tokens)
        by_name = {s.name: s.content for s in packed}

        total_tokens = sum(s.tokens for s in packed)
        original_tokens = sum(s.tokens for s in sections)
        compression_ratio = total_tokens / original_tokens if original_tokens else 1.0

        context = AssembledContext(
            user_profile=by_name.get("user_profile", ""),
            relevant_memory=by_name.get("relevant_memory", ""),
            web_results=by_name.get("web_results", ""),
            conversation_context=by_name.get("conversation_context", ""),
            total_tokens=total_tokens,
            compression_ratio=min(1.0, compression_ratio),
            context_sources=[s.name for s in packed],
            confidence_score=self.calculate_confidence(packed, intent),
            prioritized_sections=[
                PrioritizedSection(section=s.name, priority=s.priority, token_count=s.tokens)
                for s in packed
            ],
            optimizations=self.optimization_details(sections, packed, opts),
            warnings=self.generate_warnings(sections, packed, opts),
        )

        logger.debug(
            f"✓ Context Assembly COMPLETE: {total_tokens}/{opts.max_tokens} tokens, "
            f"sections={context.context_sources}"
        )
        return context

    def relevance_topics(self, intent: QueryIntent, options: ContextAssemblyOptions) -> list[str]:
        """Topics used to select memory items: extracted topics plus focus areas."""
        topics = [t.lower() for t in intent.entities.topics]
        for area in options.focus_areas:
            area = area.strip().lower()
            if area and area not in topics:
                topics.append(area)
        return topics

    def build_user_profile(self, user_context: UserContext) -> str:
        profile: list[str] = []
        preferences = user_context.preferences

        if user_context.current_location:
            profile.append(f"Current location: {user_context.current_location}")
        if user_context.target_cities:
            profile.append(f"Cities considering: {', '.join(user_context.target_cities)}")
        if preferences.career_field:
            profile.append(f"Career: {preferences.career_field}")
        if preferences.priorities:
            profile.append(f"Priorities: {', '.join(preferences.priorities[:5])}")
        if preferences.lifestyle:
            profile.append(f"Lifestyle preferences: {', '.join(preferences.lifestyle[:3])}")

        if not profile:
            return "User profile: New user, no established preferences yet."
        return "User profile:\n" + "\n".join(profile)

    def build_memory_section(
        self, memory: MemoryContext, intent: QueryIntent, topics: list[str]
    ) -> str:
        parts: list[str] = []

        preferences = sorted(
            (p for p in memory.preferences if self._matches_topic(p.key, topics)),
            key=lambda p: p.confidence,
            reverse=True,
        )[:MAX_PREFERENCES]
        if preferences:
            lines = "\n".join(f"{p.key}: {p.value}" for p in preferences)
            parts.append(f"Preferences:\n{lines}")

        facts = sorted(
            (f for f in memory.facts if self._fact_relevant(f, intent, topics)),
            key=lambda f: f.relevance,
            reverse=True,
        )[:MAX_FACTS]
        if facts:
            lines = "\n".join(f"- {f.content}" for f in facts)
            parts.append(f"Relevant information:\n{lines}")

        summaries = [s for s in memory.summaries if self._summary_relevant(s, topics)]
        for summary in summaries[:MAX_SUMMARIES]:
            parts.append(f"{summary.topic} summary: {summary.summary}")

        comparisons = [c for c in memory.comparisons if self._comparison_relevant(c, intent)]
        for comparison in comparisons[:MAX_COMPARISONS]:
            parts.append(f"Comparison ({' vs '.join(comparison.cities)}): {comparison.conclusion}")

        if not parts:
            return "No relevant memory found."
        return "\n\n".join(parts)

    def build_web_results_section(
        self, web_results: FilteredResults, options: ContextAssemblyOptions
    ) -> str:
        if not web_results.results:
            return "No web search results available."

        lines = [f"Web search found {len(web_results.results)} relevant results:"]
        limit = MAX_WEB_RESULTS[options.compression_level]
        for index, result in enumerate(web_results.results[:limit], 1):
            lines.append(f"{index}. {self.compress_web_result(result, options.compression_level)}")

        if web_results.summary.weak_results:
            lines.append(
                "Note: Search results have moderate confidence. Consider refining search terms."
            )
        return "\n".join(lines)

    def compress_web_result(self, result: ScoredResult, level: str) -> str:
        if level == "aggressive":
            return f"{result.title} (Score: {result.final_score:.2f})"
        if level == "moderate":
            return f"{result.title}: {result.snippet[:100]}... (Score: {result.final_score:.2f})"
        if level == "light":
            return f"{result.title}: {result.snippet[:150]}... [{result.domain or 'unknown'}]"
        return f"{result.title}: {result.snippet} [{result.link}]"

    def build_conversation_section(
        self, user_context: UserContext, options: ContextAssemblyOptions
    ) -> str:
        history = user_context.conversation_history
        if not history:
            return "No recent conversation context."

        max_messages = 6 if options.prioritize_recent else 4
        recent = history[-max_messages:]

        if options.compression_level == "aggressive":
            words = [w for w in " ".join(recent).split() if len(w) > 4][:10]
            return f"Recent topics discussed: {', '.join(words)}"

        lines = "\n".join(f"{i}. {message}" for i, message in enumerate(recent, 1))
        return f"Recent conversation:\n{lines}"

    def optimize_sections(self, sections: list[_Section], max_tokens: int) -> list[_Section]:
        """Pack sections into the budget in priority order."""
        packed: list[_Section] = []
        total = 0

        # sorted() is stable, so equal priorities keep build order
        for section in sorted(sections, key=lambda s: s.priority, reverse=True):
            if total + section.tokens <= max_tokens:
                packed.append(section)
                total += section.tokens
                continue

            if total >= max_tokens * COMPRESSION_START:
                logger.debug(f"Dropping section {section.name}: budget exhausted")
                continue

            remaining = max_tokens - total
            ratio = remaining / section.tokens
            if ratio <= MIN_COMPRESSION_RATIO:
                logger.debug(f"Dropping section {section.name}: ratio {ratio:.2f} too low")
                continue

            content = self.compress_content(section.content, ratio, remaining)
            if not content:
                continue
            compressed = replace(section, content=content, tokens=estimate_tokens(content))
            packed.append(compressed)
            total += compressed.tokens

        return packed

    def compress_content(self, content: str, ratio: float, max_tokens: int) -> str:
        """Keep the important lines of ``content`` and cut it to ``max_tokens``.

        Lines with a colon, a bullet marker or under 50 characters are kept
        first; other lines fill the proportional target in their original
        order.
        """
        lines = content.split("\n")
        target = max(1, math.floor(len(lines) * ratio))

        important = {
            i
            for i, line in enumerate(lines)
            if ":" in line or line.startswith(("-", "•")) or len(line) < LONG_LINE
        }
        extra = [i for i in range(len(lines)) if i not in important][
            : max(0, target - len(important))
        ]
        keep = important.union(extra)
        compressed = "\n".join(line for i, line in enumerate(lines) if i in keep)

        return compressed[: max_tokens * CHARS_PER_TOKEN].rstrip()

    def calculate_confidence(self, sections: list[_Section], intent: QueryIntent) -> float:
        confidence = 0.5
        thresholds = {
            "user_profile": (50, 0.15),
            "relevant_memory": (100, 0.2),
            "web_results": (200, 0.25),
            "conversation_context": (80, 0.1),
        }
        for section in sections:
            min_tokens, boost = thresholds[section.name]
            if section.tokens > min_tokens:
                confidence += boost

        confidence += intent.confidence.needs_web_search * 0.1
        confidence += intent.confidence.personal_relevance * 0.1
        return min(1.0, confidence)

    def optimization_details(
        self,
        original: list[_Section],
        packed: list[_Section],
        options: ContextAssemblyOptions,
    ) -> list[str]:
        details: list[str] = []
        original_tokens = sum(s.tokens for s in original)
        packed_tokens = sum(s.tokens for s in packed)

        if packed_tokens < original_tokens:
            reduction = (original_tokens - packed_tokens) / original_tokens * 100
            details.append(f"Reduced content by {reduction:.1f}% to fit token budget")
        if len(packed) < len(original):
            details.append(f"Filtered {len(original) - len(packed)} low-priority sections")
        if options.compression_level != "none":
            details.append(f"Applied {options.compression_level} compression")
        return details

    def generate_warnings(
        self,
        original: list[_Section],
        packed: list[_Section],
        options: ContextAssemblyOptions,
    ) -> list[str]:
        warnings: list[str] = []
        total = sum(s.tokens for s in packed)
        requested = sum(s.tokens for s in original)

        if total > options.max_tokens * NEAR_LIMIT or requested > options.max_tokens:
            warnings.append("Context is near token limit, some information may be truncated")
        if not any(s.name == "web_results" and s.tokens > 0 for s in packed):
            warnings.append("No web search results included in context")
        if not any(s.name == "user_profile" and s.tokens > 20 for s in packed):
            warnings.append("Limited user profile information available")
        return warnings

    @staticmethod
    def _matches_topic(key: str, topics: list[str]) -> bool:
        key = key.lower()
        return any(topic in key or key in topic for topic in topics)

    @staticmethod
    def _fact_relevant(fact: MemoryFact, intent: QueryIntent, topics: list[str]) -> bool:
        content = fact.content.lower()
        return any(topic in content for topic in topics) or any(
            location.lower() in content for location in intent.entities.locations
        )

    @staticmethod
    def _summary_relevant(summary: MemorySummary, topics: list[str]) -> bool:
        topic_lower = summary.topic.lower()
        return any(topic in topic_lower or topic_lower in topic for topic in topics)

    @staticmethod
    def _comparison_relevant(comparison: MemoryComparison, intent: QueryIntent) -> bool:
        return any(
            city.lower() in location.lower()
            for city in comparison.cities
            for location in intent.entities.locations
        )
