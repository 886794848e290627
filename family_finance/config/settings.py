"""
Configuration Management for Family Finance

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Hosted database + auth provider configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    url: str = Field(
        ...,
        description="Project URL, e.g. https://xyz.supabase.co"
    )
    anon_key: str = Field(
        ...,
        description="Public anon key (row level security applies)"
    )
    
    # Table names
    accounts_table: str = Field(default="accounts")
    categories_table: str = Field(default="categories")
    transactions_table: str = Field(default="transactions")
    
    # Request behaviour
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="Per-request timeout"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient transport failures"
    )
    
    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("Supabase URL must start with http:// or https://")
        return v.rstrip("/")
    
    @field_validator("anon_key")
    @classmethod
    def validate_anon_key(cls, v: str) -> str:
        """Catch keys that obviously belong to another service."""
        if len(v) < 20:
            raise ValueError("Supabase anon key looks invalid (too short)")
        if v.startswith(("pk_", "sk_")):
            raise ValueError(
                "Key looks like it belongs to another service; "
                "use the Supabase 'anon' key"
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    analysis_model_name: str = Field(
        default="gemini-1.5-flash",
        description="Model used for the financial analysis"
    )
    receipt_model_name: str = Field(
        default="gemini-1.5-flash",
        description="Multimodal model used for receipt extraction"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
    )


class AppSettings(BaseSettings):
    """
    Main application settings.
    
    Loads configuration from environment variables and .env file.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Environment
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    
    # Local session cache
    session_dir: str = Field(
        default=".family_finance",
        description="Directory for the local session/preferences cache"
    )
    
    # Receipt uploads
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )
    receipt_max_dimension: int = Field(
        default=1600,
        ge=256,
        le=4096,
        description="Longest side of a receipt image sent to the model"
    )
    
    # Ledger rules
    max_installments: int = Field(
        default=120,
        ge=1,
        description="Maximum installment count for one expense"
    )
    analysis_record_limit: int = Field(
        default=50,
        ge=1,
        le=500,
        description="How many recent transactions the analysis sees"
    )
    
    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]
    
    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.
    
    Aggregates all sub-settings for easy access.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Sub-settings are loaded lazily to allow partial configuration
    
    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()
    
    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()
    
    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).
    
    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.
    
    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()
    
    for name in ("supabase", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
    
    return results
