"""Retrieval intelligence components for the search pipeline."""

from search_intel.retrieval.context_assembler import ContextAssembler
from search_intel.retrieval.entity_extractor import EntityExtractor
from search_intel.retrieval.fallback_handler import SearchFallbackHandler
from search_intel.retrieval.fingerprint import HashingEmbedder, TextEmbedder, cosine_similarity
from search_intel.retrieval.intent_classifier import IntentClassifier
from search_intel.retrieval.query_rewriter import QueryRewriter
from search_intel.retrieval.result_filter import SemanticResultFilter
from search_intel.retrieval.search_cache import SearchMemoryCache

__all__ = [
    "ContextAssembler",
    "EntityExtractor",
    "HashingEmbedder",
    "IntentClassifier",
    "QueryRewriter",
    "SearchFallbackHandler",
    "SearchMemoryCache",
    "SemanticResultFilter",
    "TextEmbedder",
    "cosine_similarity",
]
