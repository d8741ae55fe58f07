"""Search intelligence pipeline: intent, rewriting, filtering, caching and context assembly."""

__version__ = "1.0.0"
