"""Application settings and configuration."""

from datetime import timedelta, timezone
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "dev-jwt-secret-change-in-production"


class CollectionSettings(BaseModel):
    """A token collection operators can claim from and send out of."""

    key: str
    name: str
    address: str
    fixed_amount: int = Field(gt=0)


DEFAULT_COLLECTIONS = [
    CollectionSettings(
        key="red",
        name="RED Collection",
        address="0x496320a36995aEdCCEaB5ab34d240f3ecDBc31c8",
        fixed_amount=1,
    ),
    CollectionSettings(
        key="blue",
        name="BLUE Collection",
        address="0x8b6AFe84B299BDE6473b06d197536ad025DE4fAa",
        fixed_amount=1,
    ),
]


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
    postgres_user: str = "tokendrop"
    postgres_password: str = "tokendrop_dev_password"
    postgres_db: str = "tokendrop"
    postgres_port: int = 5432

    # API
    api_port: int = 8000
    api_host: str = "0.0.0.0"
    environment: str = "development"

    # Access gate (identity provider issues HS256 JWTs)
    jwt_secret_key: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = "authenticated"

    # Ledger: tenant local civil time, fixed offset from UTC
    local_utc_offset_hours: int = 9

    # External commit relay
    relay_url: str = "http://localhost:8545"
    relay_api_key: Optional[str] = None
    relay_timeout_seconds: float = 30.0
    airdrop_contract_address: str = "0x09326509e1d76df069eaeceb6310f716e1d53d6c"

    # Collections
    collections: list[CollectionSettings] = Field(default_factory=lambda: list(DEFAULT_COLLECTIONS))

    # Notifications
    explorer_tx_url: str = "https://sepolia.etherscan.io/tx/"
    mail_sender_name: str = "TOKENDROP"

    # Admin
    admin_token: Optional[str] = None

    # Logging
    log_level: str = "INFO"

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
    def local_timezone(self) -> timezone:
        """Fixed-offset timezone used for date-only range boundaries."""
        return timezone(timedelta(hours=self.local_utc_offset_hours))

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    def get_collection(self, key: str) -> Optional[CollectionSettings]:
        """Look up a configured collection by key."""
        for collection in self.collections:
            if collection.key == key:
                return collection
        return None

    def validate_production_settings(self):
        """Validate settings for production environment."""
        env = self.environment.lower()
        if env not in ("development", "test", "dev"):
            if self.jwt_secret_key == DEFAULT_JWT_SECRET:
                raise ValueError(
                    "JWT_SECRET_KEY must be set to the identity provider secret in production."
                )
            if not self.admin_token:
                raise ValueError("ADMIN_TOKEN is required in production.")
        keys = [collection.key for collection in self.collections]
        if len(keys) != len(set(keys)):
            raise ValueError("Collection keys must be unique.")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
