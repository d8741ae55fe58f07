"""FastAPI application entry point."""

import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from search_intel.clients.serper_client import SearchProviderError
from search_intel.config import get_settings
from search_intel.logging_config import (
    clear_request_id,
    get_logger,
    get_request_id,
    set_request_id,
    setup_logging,
)
from search_intel.models.api import (
    CleanupResponse,
    ContextRequest,
    ContextResponse,
    IntentRequest,
    SearchRequest,
    SearchResponse,
)
from search_intel.models.cache import CacheStats
from search_intel.models.error import ErrorResponse
from search_intel.models.intent import QueryIntent
from search_intel.services.search_service import SearchService

# Setup logging configuration
setup_logging()
logger = get_logger(__name__)

# Load and validate configuration at startup
settings = get_settings()

# Global service instance, owns the similarity cache
search_service: SearchService | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    global search_service

    logger.info("Starting Search Intelligence Service...")
    logger.info(
        f"Configuration: cache_max_size={settings.cache_max_size}, "
        f"quality_threshold={settings.search_quality_threshold}, "
        f"provider_configured={settings.search_provider_configured}"
    )
    if not settings.search_provider_configured:
        logger.warning("⚠ SERPER_API_KEY is not set, web search will report as unavailable")

    search_service = SearchService(settings=settings)

    logger.info("Search Intelligence Service started successfully")

    yield

    logger.info("Shutting down Search Intelligence Service...")
    if search_service:
        search_service.cache.clear()
        await search_service.close()
    search_service = None
    logger.info("Search Intelligence Service shut down successfully")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Intent-aware web search with query rewriting, result filtering, "
    "similarity caching and context assembly",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(
    request: Request, status_code: int, error: str, detail: str
) -> JSONResponse:
    request_id = (
        getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            timestamp=datetime.now(UTC),
            request_id=request_id,
            status_code=status_code,
        ).model_dump(mode="json"),
        headers={"X-Request-ID": request_id},
    )


# Request ID and error handling middleware
@app.middleware("http")
async def request_middleware(request: Request, call_next):
    """Add request ID tracking and error handling."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    set_request_id(request_id)

    try:
        logger.info(f"Request started: {request.method} {request.url.path}")
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            f"Request completed: {request.method} {request.url.path} - Status: {response.status_code}"
        )
        return response
    except Exception as e:
        logger.error(
            f"Unhandled exception: {str(e)}",
            exc_info=True,
            extra={"path": request.url.path},
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal Server Error",
            str(e),
        )
    finally:
        clear_request_id()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(f"{field}: {error['msg']}")
    detail = "; ".join(errors)

    logger.warning(f"Validation error: {detail}", extra={"path": request.url.path})

    return _error_response(
        request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", detail
    )


@app.exception_handler(SearchProviderError)
async def search_provider_exception_handler(request: Request, exc: SearchProviderError):
    """Handle search provider failures."""
    logger.error(f"Search provider error (status={exc.status_code}): {exc.message}")

    return _error_response(
        request, status.HTTP_502_BAD_GATEWAY, "Search Provider Error", exc.message
    )


def _require_service() -> SearchService:
    if not search_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search service not initialized",
        )
    return search_service


# API Endpoints


@app.get("/health")
async def health_check():
    """Health check endpoint.

    Returns:
        dict: Health status, cache size and provider availability
    """
    return {
        "status": "healthy",
        "service": "Search Intelligence Service",
        "version": settings.api_version,
        "cache_size": len(search_service.cache) if search_service else 0,
        "search_provider_configured": settings.search_provider_configured,
    }


@app.post(
    "/api/v1/intent",
    response_model=QueryIntent,
    summary="Classify query intent",
    description="Decide whether a query needs web search and how it should be searched.",
)
async def classify_intent(request: IntentRequest) -> QueryIntent:
    service = _require_service()
    return service.classifier.classify_intent(request.query, request.user_context)


@app.post(
    "/api/v1/search",
    response_model=SearchResponse,
    summary="Search the web",
    description="Run a query through intent analysis, caching, rewriting, search and filtering.",
)
async def search(request: SearchRequest) -> SearchResponse:
    """Run the search pipeline.

    Provider failures are mapped to 502 by the exception handler; a missing
    provider key is reported in the response with status ``unavailable``.
    """
    service = _require_service()
    logger.info(f"Processing search: '{request.query[:100]}'")

    response = await service.search(request)
    logger.info(
        f"Search {response.status} in {response.processing_time:.2f}s "
        f"with {len(response.results)} results"
    )
    return response


@app.post(
    "/api/v1/context",
    response_model=ContextResponse,
    summary="Assemble language model context",
    description="Search (optionally) and merge results with profile, memory and conversation.",
)
async def build_context(request: ContextRequest) -> ContextResponse:
    service = _require_service()
    return await service.build_context(request)


@app.get(
    "/api/v1/cache/stats",
    response_model=CacheStats,
    summary="Similarity cache statistics",
)
async def cache_stats() -> CacheStats:
    service = _require_service()
    return service.cache.get_cache_stats()


@app.post(
    "/api/v1/cache/cleanup",
    response_model=CleanupResponse,
    summary="Purge expired cache entries",
    description="Remove expired entries; with force_resize, also shrink an almost full cache.",
)
async def cache_cleanup(force_resize: bool = False) -> CleanupResponse:
    service = _require_service()
    removed = service.cache.cleanup(force_resize=force_resize)
    logger.info(f"Cache cleanup removed {removed} entries")
    return CleanupResponse(removed=removed, size=len(service.cache))
