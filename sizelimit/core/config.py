"""
Request body limit settings.

Loaded once from environment variables (or a .env file) with Pydantic
Settings. A negative MAX_BODY_BYTES or a zero READ_CHUNK_SIZE fails at
startup rather than on the first request.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    """
    Defaults for RequestSizeLimitMiddleware and the example service.

    Values passed to the middleware directly take precedence.
    Example: MAX_BODY_BYTES=2048 -> max_body_bytes == 2048
    """

    # Application Mode
    app_mode: str = "local" # local, dev, production

    # Ceiling per request body, copied into every reader; 0 allows only empty bodies
    max_body_bytes: int = Field(default=1_048_576, ge=0)
    # Largest http.request message the gated receive hands the app
    read_chunk_size: int = Field(default=65_536, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json" # json or console

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

# Middleware instances read this at construction, not per request
@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
