"""Configuration loaded from ROUTE_DOC_* environment variables (or .env)."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for a route-doc run.

    Command line options override the matching values.
    """

    # Where handler sources live and where documents may be written.
    source_root: str = Field(default=".")
    repo_root: str = Field(default=".")
    docs_root: str = Field(default="docs")

    # Skeleton document contents.
    openapi_version: str = Field(default="3.0.3")
    api_title: str = Field(default="API")
    api_description: str = Field(default="HTTP API reference.")
    api_version: str = Field(default="1.0.0")
    contact_name: str = Field(default="API Support")
    contact_email: str = Field(default="support@example.com")
    server_url: str = Field(default="/api")
    security_scheme_name: str = Field(default="cookieAuth")
    cookie_name: str = Field(default="session")

    # Inline vs shared shape thresholds.
    inline_leaf_limit: int = Field(default=25, ge=1)
    nested_field_limit: int = Field(default=8, ge=1)

    # LLM model used to word narratives; None keeps wording deterministic.
    model: str | None = Field(default=None)

    log_level: str = Field(default="WARNING")

    model_config = SettingsConfigDict(
        env_prefix="ROUTE_DOC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {sorted(valid_levels)}")
        return upper
