"""Context assembly models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

CompressionLevel = Literal["none", "light", "moderate", "aggressive"]


class MemoryPreference(BaseModel):
    """A remembered user preference."""

    key: str
    value: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    last_updated: datetime | None = None


class MemoryFact(BaseModel):
    """A remembered fact with a relevance weight."""

    content: str
    relevance: float = Field(default=0.5, ge=0.0, le=1.0)
    source: str = "conversation"
    timestamp: datetime | None = None


class MemorySummary(BaseModel):
    """A topic summary kept from earlier conversations."""

    topic: str
    summary: str
    key_points: list[str] = Field(default_factory=list)
    timestamp: datetime | None = None


class MemoryComparison(BaseModel):
    """Conclusion of an earlier city comparison."""

    cities: list[str]
    criteria: str = ""
    conclusion: str
    timestamp: datetime | None = None


class MemoryContext(BaseModel):
    """Long-term memory bundle read by the context assembler."""

    preferences: list[MemoryPreference] = Field(default_factory=list)
    facts: list[MemoryFact] = Field(default_factory=list)
    summaries: list[MemorySummary] = Field(default_factory=list)
    comparisons: list[MemoryComparison] = Field(default_factory=list)


class ContextAssemblyOptions(BaseModel):
    """Budget and verbosity settings for one assembly."""

    max_tokens: int = Field(default=4000, ge=1)
    preserve_user_context: bool = True
    prioritize_recent: bool = True
    include_web_results: bool = True
    compression_level: CompressionLevel = "moderate"
    focus_areas: list[str] = Field(default_factory=list)


class PrioritizedSection(BaseModel):
    """A section that made it into the assembled context."""

    section: str
    priority: int
    token_count: int = Field(ge=0)


class AssembledContext(BaseModel):
    """Token-bounded context bundle handed to the language model."""

    user_profile: str = ""
    relevant_memory: str = ""
    web_results: str = ""
    conversation_context: str = ""
    total_tokens: int = Field(default=0, ge=0)
    compression_ratio: float = Field(default=1.0, ge=0.0, le=1.0)
    context_sources: list[str] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    prioritized_sections: list[PrioritizedSection] = Field(default_factory=list)
    optimizations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def to_prompt(self) -> str:
        """Join the non-empty sections in priority order."""
        by_name = {
            "user_profile": self.user_profile,
            "relevant_memory": self.relevant_memory,
            "web_results": self.web_results,
            "conversation_context": self.conversation_context,
        }
        parts = [by_name[s.section] for s in self.prioritized_sections if by_name.get(s.section)]
        return "\n\n".join(parts)
