"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


# Hard ceiling of the Lark batch_create endpoint
LARK_MAX_BATCH_SIZE = 500


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # LARK OPEN API
    # ===================
    lark_app_id: Optional[str] = Field(
        None,
        description="Lark custom app ID"
    )
    lark_app_secret: Optional[str] = Field(
        None,
        description="Lark custom app secret"
    )
    lark_api_base: str = Field(
        default="https://open.larksuite.com/open-apis",
        description="Lark Open API base URL (use open.feishu.cn for Feishu)"
    )
    lark_request_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Per-request timeout in seconds (None = wait indefinitely)"
    )

    # ===================
    # IMPORT TARGET
    # ===================
    default_app_token: Optional[str] = Field(
        None,
        description="Base app token used when a request does not name one"
    )
    default_table_id: Optional[str] = Field(
        None,
        description="Table ID used when a request does not name one"
    )
    import_batch_size: int = Field(
        default=LARK_MAX_BATCH_SIZE,
        ge=1,
        le=LARK_MAX_BATCH_SIZE,
        description="Records per batch_create call"
    )

    # ===================
    # API SECURITY
    # ===================
    api_key: Optional[str] = Field(
        None,
        description="API key for authentication (x-api-key header)"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def lark_configured(self) -> bool:
        """Check if Lark credentials are present."""
        return bool(self.lark_app_id and self.lark_app_secret)

    @property
    def default_target_configured(self) -> bool:
        return bool(self.default_app_token and self.default_table_id)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
