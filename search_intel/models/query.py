"""Query rewriting models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RewriteStrategy = Literal["direct", "expanded", "contextual", "comparative"]


class RewrittenQuery(BaseModel):
    """Search-optimized form of a user query."""

    model_config = ConfigDict(frozen=True)

    original: str
    rewritten: str
    search_terms: list[str] = Field(
        default_factory=list, max_length=10, description="Unique terms, at most 10"
    )
    context: list[str] = Field(default_factory=list, description="Contextual annotations")
    strategy: RewriteStrategy = "direct"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: list[str] = Field(default_factory=list)
