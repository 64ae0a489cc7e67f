"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "clausebase"
    postgres_password: str = "clausebase_dev_password"
    postgres_db: str = "clausebase"
    postgres_port: int = 5432

    # Redis (Celery broker + result backend)
    redis_url: str = "redis://localhost:6379/0"

    # API
    api_port: int = 8000
    api_host: str = "0.0.0.0"
    environment: str = "development"

    # Logging
    log_level: str = "INFO"

    # Content store: inline, s3, ipfs
    content_store_provider: str = "inline"

    # MinIO / S3
    minio_endpoint: str = "localhost:9000"
    minio_access_key: Optional[str] = None  # Required in non-dev
    minio_secret_key: Optional[str] = None  # Required in non-dev
    minio_bucket: str = "clausebase-contents"
    minio_use_ssl: bool = False

    # IPFS (Pinata)
    pinata_jwt: Optional[str] = None
    pinata_api_url: str = "https://api.pinata.cloud"
    pinata_gateway: str = "https://gateway.pinata.cloud"
    ipfs_timeout_seconds: float = 15.0

    # Ledger anchor: local, http, disabled
    ledger_anchor_provider: str = "local"
    ledger_gateway_url: Optional[str] = None
    ledger_signer_credential: Optional[str] = None  # base64 of 64-byte Ed25519 keypair
    ledger_anchor_timeout_seconds: float = 20.0
    ledger_memo_prefix: str = "ClausebaseProof"

    # Proof anchoring after merge: inline (same request) or async (Celery worker)
    anchor_mode: str = "inline"

    # Version chain
    version_create_max_retries: int = 3

    # Invitations
    invitation_ttl_days: int = 7
    frontend_url: str = "http://localhost:5173"

    # Notifications
    notification_webhook_url: Optional[str] = None
    notification_timeout_seconds: int = 10

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@localhost:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    def validate_production_settings(self):
        """Validate settings for production environment."""
        env = self.environment.lower()
        if env not in ("development", "test", "dev"):
            if self.content_store_provider == "inline":
                raise ValueError(
                    "CONTENT_STORE_PROVIDER=inline is not allowed in production. "
                    "Use CONTENT_STORE_PROVIDER=s3 or ipfs."
                )
            if self.content_store_provider == "s3" and (
                not self.minio_access_key or not self.minio_secret_key
            ):
                raise ValueError(
                    "MINIO_ACCESS_KEY and MINIO_SECRET_KEY are required in production. "
                    "Do not use default credentials."
                )
            if self.content_store_provider == "ipfs" and not self.pinata_jwt:
                raise ValueError("PINATA_JWT is required for the ipfs content store.")
            if self.ledger_anchor_provider == "local":
                raise ValueError(
                    "LEDGER_ANCHOR_PROVIDER=local is not allowed in production. "
                    "Use LEDGER_ANCHOR_PROVIDER=http."
                )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
