"""Entity extraction shared by the classifier, rewriter and fingerprinting."""

import logging
import re

from search_intel.models.intent import IntentEntities

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "from", "up", "about", "into", "through", "during", "before",
        "after", "above", "below", "between", "among", "is", "are", "was", "were",
        "be", "been", "have", "has", "had", "do", "does", "did", "will", "would",
        "could", "should", "can", "what", "which", "who", "how", "why", "when",
        "where", "you", "your", "this", "that", "these", "those", "there", "tell",
        "please", "any", "some", "its", "it's",
    }
)

# Four-digit years from 1500 through 2999
YEAR = r"(?:1[5-9]|2\d)\d{2}"

# Category order matters: it decides the order of extracted time references
TEMPORAL_PATTERNS: dict[str, re.Pattern[str]] = {
    "immediate": re.compile(r"\b(now|right now|currently|at the moment|today)\b", re.IGNORECASE),
    "recent": re.compile(
        r"\b(recently|lately|this (?:week|month|year)|past (?:few|several)|latest|current)\b",
        re.IGNORECASE,
    ),
    "future": re.compile(
        r"\b(will|going to|planning|future|upcoming|next (?:week|month|year))\b",
        re.IGNORECASE,
    ),
    "specific": re.compile(
        r"\b(" + YEAR + r"|january|february|march|april|may|june|july|august|"
        r"september|october|november|december)\b",
        re.IGNORECASE,
    ),
}

# Prepositions are case-sensitive: only capitalized place names count
LOCATION_PATTERN = re.compile(
    r"\b(in|at|near|around|close to|within)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"
)
RELATIVE_LOCATION_PATTERN = re.compile(
    r"\b(here|there|local|nearby|around here|this area)\b", re.IGNORECASE
)
COMPARISON_PATTERN = re.compile(
    r"\b(?:vs|versus|compare|better than|worse than|difference between)\b", re.IGNORECASE
)
TOKEN_PATTERN = re.compile(r"[a-z0-9']+")

MAX_TOPICS = 5


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens with punctuation stripped."""
    return [t.strip("'") for t in TOKEN_PATTERN.findall(text.lower()) if t.strip("'")]


def unique(items) -> list[str]:
    """Deduplicate while preserving first-seen order."""
    seen: set[str] = set()
    ordered = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


class EntityExtractor:
    """Pulls locations, time references, topics and comparison fragments out of a query."""

    def extract(self, query: str) -> IntentEntities:
        """Extract entities from a raw query.

        Args:
            query: Raw user query (original casing)

        Returns:
            IntentEntities with every list in order of first appearance
        """
        if not query or not query.strip():
            return IntentEntities()

        entities = IntentEntities(
            locations=self.extract_locations(query),
            time_references=self.extract_time_references(query),
            topics=self.extract_topics(query),
            comparisons=self.extract_comparisons(query),
        )

        logger.debug(
            f"Extracted entities: locations={entities.locations}, "
            f"time={entities.time_references}, topics={entities.topics}, "
            f"comparisons={entities.comparisons}"
        )
        return entities

    def extract_locations(self, query: str) -> list[str]:
        return unique(match.group(2) for match in LOCATION_PATTERN.finditer(query))

    def extract_time_references(self, query: str) -> list[str]:
        references = []
        for pattern in TEMPORAL_PATTERNS.values():
            references.extend(match.group(0) for match in pattern.finditer(query))
        return unique(references)

    def extract_topics(self, query: str) -> list[str]:
        words = [w for w in tokenize(query) if len(w) >= 3 and w not in STOP_WORDS]
        return unique(words)[:MAX_TOPICS]

    def extract_comparisons(self, query: str) -> list[str]:
        """Split a query on comparison connectives.

        A single fragment joined by "and" (as in "compare Austin and Denver")
        is split into its two sides.
        """
        if not COMPARISON_PATTERN.search(query):
            return []

        parts = [p.strip() for p in COMPARISON_PATTERN.split(query)]
        parts = [p for p in parts if len(p) > 2]

        if len(parts) == 1 and " and " in parts[0]:
            parts = [p.strip() for p in parts[0].split(" and ") if len(p.strip()) > 2]

        return parts
