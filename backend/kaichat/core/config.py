"""
Application configuration using Pydantic Settings.

Environment-based infrastructure switching is controlled by the ENVIRONMENT variable.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "gcp"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Document store (local)
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./kaichat.db"

    # ===========================================
    # Kai AI service
    # ===========================================
    KAI_ENDPOINT: str = "http://localhost:8001/chat"
    KAI_API_KEY: str = ""
    KAI_TIMEOUT_SECONDS: float = 120.0

    # ===========================================
    # Auth
    # ===========================================
    # mock: bearer token is the user id (development only)
    # local: HS256 JWT signed with LOCAL_JWT_SECRET
    # oidc: RS256 ID token checked against a JWKS (Firebase by default)
    # Unset: oidc under gcp, mock otherwise
    AUTH_PROVIDER: Optional[Literal["mock", "local", "oidc"]] = None
    LOCAL_JWT_SECRET: str = ""
    LOCAL_JWT_ISSUER: str = "kaichat-local"
    LOCAL_JWT_EXPIRE_MINUTES: int = 60 * 24

    # Empty issuer and audience fall back to Firebase for GOOGLE_CLOUD_PROJECT
    OIDC_ISSUER: str = ""
    OIDC_AUDIENCE: str = ""
    OIDC_JWKS_URL: str = ""
    OIDC_EMAIL_CLAIM: str = "email"
    OIDC_NAME_CLAIM: str = "name"

    # ===========================================
    # Google Cloud
    # ===========================================
    GOOGLE_CLOUD_PROJECT: str = ""
    FIRESTORE_COLLECTION: str = "chatSessions"
    GCS_BUCKET: str = ""

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    # URL for accessing the backend (for local storage public URLs)
    BASE_URL: str = "http://localhost:8000"

    # ===========================================
    # Storage / uploads
    # ===========================================
    STORAGE_BASE_PATH: str = "./storage"
    UPLOAD_CHUNK_SIZE: int = 256 * 1024
    # Max chunks buffered per file part before the parser waits on the upload
    UPLOAD_QUEUE_DEPTH: int = 8

    @property
    def is_gcp(self) -> bool:
        """Check if running in GCP environment."""
        return self.ENVIRONMENT == "gcp"

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.ENVIRONMENT == "local"

    @property
    def auth_provider(self) -> str:
        """Configured auth provider, never mock by default on GCP."""
        if self.AUTH_PROVIDER:
            return self.AUTH_PROVIDER
        return "oidc" if self.is_gcp else "mock"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
