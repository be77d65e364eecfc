from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Runtime
    environment: str = Field(default="development", validation_alias="NODE_ENV")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # CORS / Frontends (admin + storefront)
    frontend_urls: str | None = Field(default=None, validation_alias="FRONTEND_URLS")

    # AWS / data
    aws_region: str = Field(default="eu-west-1", validation_alias="AWS_REGION")
    # Points boto3 at DynamoDB Local / an S3-compatible store during development.
    aws_endpoint_url: str | None = Field(default=None, validation_alias="AWS_ENDPOINT_URL")
    items_table_name: str = Field(default="CatalogoProducts", validation_alias="ITEMS_TABLE")
    categories_table_name: str = Field(
        default="CatalogoCategories", validation_alias="CATEGORIES_TABLE"
    )
    images_bucket_name: str = Field(
        default="catalogo-product-images", validation_alias="IMAGES_BUCKET"
    )
    presigned_url_expiration_seconds: int = Field(
        default=300, validation_alias="PRESIGNED_URL_EXPIRATION_SECONDS"
    )

    # Retry / backoff for store calls.
    retry_max_attempts: int = Field(default=3, validation_alias="RETRY_MAX_ATTEMPTS")
    retry_initial_delay_ms: int = Field(default=100, validation_alias="RETRY_INITIAL_DELAY_MS")
    retry_max_delay_ms: int = Field(default=5000, validation_alias="RETRY_MAX_DELAY_MS")
    retry_backoff_multiplier: float = Field(
        default=2.0, validation_alias="RETRY_BACKOFF_MULTIPLIER"
    )

    # Circuit breaker around object-store calls (per process, best-effort).
    circuit_failure_threshold: int = Field(default=5, validation_alias="CIRCUIT_FAILURE_THRESHOLD")
    circuit_reset_timeout_s: float = Field(default=60.0, validation_alias="CIRCUIT_RESET_TIMEOUT_S")

    # Pagination cursors are encrypted with a key derived from this secret.
    cursor_secret: str | None = Field(default=None, validation_alias="CURSOR_SECRET")

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    def require_in_production(self) -> None:
        """
        Enforce required settings in production.

        Development/staging may run with defaults for local work; production
        must not fall back to an insecure cursor key.
        """
        if not self.is_production:
            return

        missing: list[str] = []
        if not (self.cursor_secret and str(self.cursor_secret).strip()):
            missing.append("CURSOR_SECRET")

        if missing:
            raise RuntimeError(
                "Missing required production environment variables: "
                + ", ".join(missing)
            )

    def to_log_safe_dict(self) -> dict[str, object]:
        """
        A redacted representation safe for structured logs / diagnostics.
        """
        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "frontend_urls": self.frontend_urls,
            "aws": {
                "aws_region": self.aws_region,
                "aws_endpoint_url": self.aws_endpoint_url,
                "items_table_name": self.items_table_name,
                "categories_table_name": self.categories_table_name,
                "images_bucket_name": self.images_bucket_name,
            },
            "retry": {
                "max_attempts": self.retry_max_attempts,
                "initial_delay_ms": self.retry_initial_delay_ms,
                "max_delay_ms": self.retry_max_delay_ms,
                "multiplier": self.retry_backoff_multiplier,
            },
            "circuit": {
                "failure_threshold": self.circuit_failure_threshold,
                "reset_timeout_s": self.circuit_reset_timeout_s,
            },
            "cursor_secret_configured": bool(self.cursor_secret and str(self.cursor_secret).strip()),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s


# Backwards-compatible module-level singleton.
settings = get_settings()
