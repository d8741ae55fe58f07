"""External service clients."""

from search_intel.clients.serper_client import (
    SearchProvider,
    SearchProviderError,
    SearchProviderUnavailableError,
    SerperClient,
)

__all__ = [
    "SearchProvider",
    "SearchProviderError",
    "SearchProviderUnavailableError",
    "SerperClient",
]
