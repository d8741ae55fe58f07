"""Application configuration using Pydantic Settings."""

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings are validated at startup. Invalid values cause the
    application to fail fast with clear error messages. A missing search
    provider key is not an error: web search is then reported as unavailable.
    """

    # API Settings
    api_title: str = Field(default="Search Intelligence Service", description="API title")
    api_version: str = Field(default="1.0.0", description="API version")

    # Search Provider Settings
    serper_api_key: SecretStr | None = Field(default=None, description="Serper API key")
    serper_base_url: str = Field(
        default="https://google.serper.dev/search",
        description="Serper search endpoint",
    )
    search_timeout: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Search provider request timeout in seconds",
    )
    search_num_results: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of raw results requested from the provider",
    )

    # Pipeline Settings
    search_quality_threshold: float = Field(
        default=0.25,
        ge=0.0,
        le=1.0,
        description="Minimum final score for a result to survive filtering",
    )
    default_max_results: int = Field(
        default=5,
        ge=1,
        le=8,
        description="Number of filtered results returned to callers by default",
    )

    # Similarity Cache Settings
    cache_max_size: int = Field(
        default=500,
        ge=1,
        le=100_000,
        description="Maximum number of cached searches",
    )
    cache_default_ttl_minutes: int = Field(
        default=120,
        ge=1,
        description="TTL for cached searches that are not time-sensitive",
    )
    cache_similarity_threshold: float = Field(
        default=0.75,
        gt=0.0,
        le=1.0,
        description="Minimum similarity for a cached search to match",
    )
    cache_reuse_confidence: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Minimum match confidence before cached results are reused",
    )
    cache_enable_semantic_matching: bool = Field(
        default=True,
        description="Match similar queries, not only exact repeats",
    )
    cache_purge_expired_on_access: bool = Field(
        default=True,
        description="Drop expired entries on every lookup",
    )
    fingerprint_dimensions: int = Field(
        default=64,
        ge=8,
        le=1024,
        description="Length of the hashed query fingerprint vectors",
    )

    # Fallback Settings
    fallback_min_conditions: int = Field(
        default=2,
        ge=1,
        le=6,
        description="Number of weak-result conditions that trigger a fallback",
    )

    # Context Assembly Settings
    context_max_tokens: int = Field(
        default=4000,
        ge=1,
        le=200_000,
        description="Token budget for assembled context",
    )
    context_compression_level: str = Field(
        default="moderate",
        description="Compression level (none, light, moderate, aggressive)",
    )

    # Logging Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("context_compression_level")
    @classmethod
    def validate_compression_level(cls, v: str) -> str:
        """Ensure compression level is valid."""
        valid_levels = {"none", "light", "moderate", "aggressive"}
        v_lower = v.lower()
        if v_lower not in valid_levels:
            raise ValueError(
                f"context_compression_level must be one of {valid_levels}, got '{v}'"
            )
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got '{v}'")
        return v_upper

    @field_validator("serper_api_key")
    @classmethod
    def validate_api_key(cls, v: SecretStr | None) -> SecretStr | None:
        """Ensure the API key is not blank or a placeholder when provided."""
        if v is None:
            return v
        value = v.get_secret_value()
        if value.strip() == "":
            raise ValueError("serper_api_key cannot be empty string")
        if value == "your-serper-api-key-here":
            raise ValueError(
                "serper_api_key must be set to a valid API key, not the placeholder value"
            )
        return v

    def model_post_init(self, __context) -> None:
        """Additional validation after model initialization."""
        if self.search_num_results < self.default_max_results:
            raise ValueError(
                f"search_num_results ({self.search_num_results}) must be >= "
                f"default_max_results ({self.default_max_results})"
            )

    @property
    def search_provider_configured(self) -> bool:
        """Whether a search provider key is available."""
        return self.serper_api_key is not None


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns:
        Settings: The application settings

    Raises:
        ValueError: If settings validation fails
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing).

    Returns:
        Settings: The reloaded application settings
    """
    global _settings
    _settings = Settings()
    return _settings
