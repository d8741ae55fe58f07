"""Service layer for business logic."""

from search_intel.services.search_service import SearchService

__all__ = ["SearchService"]
