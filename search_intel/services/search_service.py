"""Search service orchestrating the retrieval intelligence pipeline."""

import time
from collections.abc import Callable
from datetime import UTC, datetime

from search_intel.clients.serper_client import (
    SearchProvider,
    SearchProviderError,
    SearchProviderUnavailableError,
    SerperClient,
)
from search_intel.config import Settings, get_settings
from search_intel.logging_config import get_logger
from search_intel.models.api import (
    ContextRequest,
    ContextResponse,
    SearchOutcome,
    SearchRequest,
)
from search_intel.models.context import ContextAssemblyOptions
from search_intel.models.intent import QueryIntent, UserContext
from search_intel.models.search import FilteredResults
from search_intel.retrieval.context_assembler import ContextAssembler
from search_intel.retrieval.fallback_handler import SearchFallbackHandler
from search_intel.retrieval.fingerprint import HashingEmbedder
from search_intel.retrieval.intent_classifier import IntentClassifier
from search_intel.retrieval.query_rewriter import QueryRewriter
from search_intel.retrieval.result_filter import SemanticResultFilter
from search_intel.retrieval.search_cache import SearchMemoryCache
from search_intel.storage.memory_store import InMemoryUserMemoryStore

logger = get_logger(__name__)

SKIP_MESSAGE = "This query doesn't require web search based on intent analysis."
WEAK_RESULTS_WARNING = (
    "Search results have moderate confidence. Consider refining your query for better results."
)
MIN_STRONG_RESULTS = 3


class SearchService:
    """Service running a user query through the search pipeline.

    Pipeline:
    1. Intent classification with context from the user memory store
    2. Similarity cache lookup (unless forced to refresh)
    3. Query rewriting
    4. Web search through the provider
    5. Result scoring and filtering
    6. Cache store and search timestamp
    7. Fallback analysis for weak results

    ``build_context`` additionally assembles a token-bounded context bundle
    for the language model.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        provider: SearchProvider | None = None,
        cache: SearchMemoryCache | None = None,
        memory_store: InMemoryUserMemoryStore | None = None,
        classifier: IntentClassifier | None = None,
        rewriter: QueryRewriter | None = None,
        result_filter: SemanticResultFilter | None = None,
        fallback_handler: SearchFallbackHandler | None = None,
        assembler: ContextAssembler | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize search service.

        Args:
            settings: Application settings (global settings by default)
            provider: Web search provider (Serper client by default)
            cache: Similarity cache owned by this service
            memory_store: User memory store
            classifier: Intent classifier
            rewriter: Query rewriter
            result_filter: Result scorer and filter
            fallback_handler: Fallback analyzer
            assembler: Context assembler
            clock: Source of the current time shared by all components
        """
        self.settings = settings or get_settings()
        self.clock = clock or (lambda: datetime.now(UTC))

        api_key = self.settings.serper_api_key
        self.provider = provider or SerperClient(
            api_key=api_key.get_secret_value() if api_key else None,
            base_url=self.settings.serper_base_url,
            num_results=self.settings.search_num_results,
            timeout=self.settings.search_timeout,
        )
        self.cache = cache or SearchMemoryCache(
            max_cache_size=self.settings.cache_max_size,
            default_ttl_minutes=self.settings.cache_default_ttl_minutes,
            similarity_threshold=self.settings.cache_similarity_threshold,
            enable_semantic_matching=self.settings.cache_enable_semantic_matching,
            purge_expired_on_access=self.settings.cache_purge_expired_on_access,
            embedder=HashingEmbedder(self.settings.fingerprint_dimensions),
            clock=self.clock,
        )
        self.memory_store = memory_store or InMemoryUserMemoryStore(clock=self.clock)
        self.classifier = classifier or IntentClassifier(clock=self.clock)
        self.rewriter = rewriter or QueryRewriter(clock=self.clock)
        self.result_filter = result_filter or SemanticResultFilter(clock=self.clock)
        self.fallback_handler = fallback_handler or SearchFallbackHandler(
            min_conditions=self.settings.fallback_min_conditions,
            clock=self.clock,
        )
        self.assembler = assembler or ContextAssembler()

        logger.info(
            f"SearchService initialized: cache_size={self.cache.max_cache_size}, "
            f"threshold={self.settings.search_quality_threshold}, "
            f"provider_configured={self.settings.search_provider_configured}"
        )

    async def search(self, request: SearchRequest) -> SearchOutcome:
        """Run a query through the search pipeline.

        Args:
            request: Search request

        Returns:
            SearchOutcome; weak results and a missing provider key are
            reported in the outcome, not raised

        Raises:
            SearchProviderError: If the provider call fails; nothing is cached
        """
        user_context = self.memory_store.build_user_context(
            request.user_id, request.conversation_history
        )
        outcome, _ = await self._search(request, user_context)
        return outcome

    async def build_context(self, request: ContextRequest) -> ContextResponse:
        """Search (unless disabled) and assemble context for the language model.

        Args:
            request: Context request

        Returns:
            ContextResponse with the search outcome and the assembled context

        Raises:
            SearchProviderError: If the provider call fails
        """
        user_context = self.memory_store.build_user_context(
            request.user_id, request.conversation_history
        )
        options = request.options or ContextAssemblyOptions(
            max_tokens=self.settings.context_max_tokens,
            compression_level=self.settings.context_compression_level,
        )

        outcome: SearchOutcome | None = None
        web_results: FilteredResults | None = None
        if request.include_web_results and options.include_web_results:
            search_request = SearchRequest(
                query=request.query,
                user_id=request.user_id,
                conversation_history=request.conversation_history,
                max_results=8,
            )
            outcome, intent = await self._search(search_request, user_context)
            web_results = FilteredResults(
                results=outcome.results,
                summary=outcome.summary,
                suggestions=outcome.suggestions,
            )
        else:
            intent = self.classifier.classify_intent(request.query, user_context)

        memory = request.memory or self.memory_store.build_memory_context(request.user_id)
        context = self.assembler.assemble_context(
            request.query, intent, user_context, memory, web_results, options
        )
        return ContextResponse(search=outcome, context=context)

    async def _search(
        self, request: SearchRequest, user_context: UserContext
    ) -> tuple[SearchOutcome, QueryIntent]:
        start_time = time.time()
        query = request.query
        max_results = request.max_results or self.settings.default_max_results

        logger.info("=" * 80)
        logger.info("🔍 SEARCH PIPELINE START")
        logger.info(f"Query: '{query}'")
        logger.info(
            f"Parameters: max_results={max_results}, force_refresh={request.force_refresh}"
        )
        logger.info("-" * 80)

        # Step 1: Intent classification
        intent = self.classifier.classify_intent(query, user_context)
        reasoning_intent = intent if request.include_reasoning else None

        # Step 2: Cache lookup, before the skip check so repeats of earlier
        # searches are answered even when phrased conversationally
        if not request.force_refresh:
            match = self.cache.find_similar_search(
                query, intent, min_confidence=self.settings.cache_reuse_confidence
            )
            if match is not None:
                cached = match.cached_result
                filtered = self.result_filter.filter_and_rank_results(
                    cached.results,
                    intent,
                    self.rewriter.passthrough(query),
                    self.settings.search_quality_threshold,
                )
                outcome = self._complete(
                    query=query,
                    status="cached",
                    search_query=cached.rewritten_query,
                    filtered=filtered,
                    intent=intent,
                    max_results=max_results,
                    start_time=start_time,
                    include_reasoning=request.include_reasoning,
                    from_cache=True,
                    cache_id=cached.id,
                    cache_match_type=match.match_type,
                    cache_confidence=match.confidence,
                )
                return outcome, intent
        else:
            logger.info("→ Cache lookup SKIPPED (force_refresh)")

        if intent.search_strategy.priority == "skip":
            logger.info("✓ SEARCH PIPELINE COMPLETE (skipped by intent)")
            return (
                SearchOutcome(
                    query=query,
                    status="skipped",
                    message=SKIP_MESSAGE,
                    intent=reasoning_intent,
                    processing_time=time.time() - start_time,
                ),
                intent,
            )

        # Step 3: Query rewriting
        rewritten = self.rewriter.rewrite_query(query, intent, user_context)

        # Step 4: Web search
        try:
            raw_results = await self.provider.search(rewritten.rewritten)
        except SearchProviderUnavailableError as e:
            logger.warning(f"⚠ Search provider unavailable: {e}")
            return (
                SearchOutcome(
                    query=query,
                    status="unavailable",
                    search_query=rewritten.rewritten,
                    error=str(e),
                    intent=reasoning_intent,
                    rewritten_query=rewritten if request.include_reasoning else None,
                    processing_time=time.time() - start_time,
                ),
                intent,
            )
        except SearchProviderError as e:
            logger.error(
                f"✗ SEARCH PIPELINE FAILED - provider error (status={e.status_code}): {e.message}"
            )
            raise

        # Step 5: Scoring and filtering
        filtered = self.result_filter.filter_and_rank_results(
            raw_results, intent, rewritten, self.settings.search_quality_threshold
        )

        # Step 6: Cache store, only for complete result sets
        cache_id = self.cache.store_search_results(query, intent, rewritten, filtered)
        if request.user_id:
            self.memory_store.record_search_timestamp(request.user_id, self.clock())

        outcome = self._complete(
            query=query,
            status="completed",
            search_query=rewritten.rewritten,
            filtered=filtered,
            intent=intent,
            max_results=max_results,
            start_time=start_time,
            include_reasoning=request.include_reasoning,
            cache_id=cache_id,
            rewritten_query=rewritten if request.include_reasoning else None,
        )
        return outcome, intent

    def _complete(
        self,
        query: str,
        status: str,
        search_query: str,
        filtered: FilteredResults,
        intent: QueryIntent,
        max_results: int,
        start_time: float,
        include_reasoning: bool,
        **extra,
    ) -> SearchOutcome:
        """Run fallback analysis and build the final outcome."""
        # Step 7: Fallback analysis
        fallback = self.fallback_handler.analyze_fallback_needs(filtered, intent, query)
        fallback_message = self.fallback_handler.generate_fallback_message(fallback, filtered)

        results = filtered.results[:max_results]
        weak = filtered.summary.weak_results or len(results) < MIN_STRONG_RESULTS
        processing_time = time.time() - start_time

        logger.info("-" * 80)
        logger.info(
            f"✓ SEARCH PIPELINE COMPLETE ({status}) - {processing_time:.2f}s, "
            f"{len(results)} results, quality={'moderate' if weak else 'high'}"
        )
        logger.info("=" * 80)

        return SearchOutcome(
            query=query,
            status=status,
            search_query=search_query,
            results=results,
            summary=filtered.summary,
            suggestions=filtered.suggestions,
            fallback=fallback,
            fallback_message=fallback_message,
            warning=WEAK_RESULTS_WARNING if weak else None,
            quality="moderate" if weak else "high",
            intent=intent if include_reasoning else None,
            processing_time=processing_time,
            **extra,
        )

    async def close(self) -> None:
        """Release the provider's HTTP resources."""
        await self.provider.close()
