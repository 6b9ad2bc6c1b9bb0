"""Configuration settings for the Scell SDK."""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import Credential

DEFAULT_BASE_URL = "https://api.scell.io/api/v1"
DEFAULT_LOCAL_BASE_URL = "http://localhost:8000/api/v1"


class Environment(str, Enum):
    """Execution environment of the Scell account."""

    SANDBOX = "sandbox"  # no billing, nothing actually sent
    PRODUCTION = "production"

    def is_sandbox(self) -> bool:
        return self is Environment.SANDBOX

    def is_production(self) -> bool:
        return self is Environment.PRODUCTION


class ScellSettings(BaseSettings):
    """SDK configuration, read from ``SCELL_*`` environment variables."""

    # HTTP settings
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Scell API base URL")
    timeout: float = Field(default=30.0, gt=0, description="Total request timeout in seconds")
    connect_timeout: float = Field(default=10.0, gt=0, description="Connect timeout in seconds")
    retry_attempts: int = Field(default=3, ge=0, description="Maximum number of retries")
    retry_delay: int = Field(default=100, ge=0, description="Backoff base delay in milliseconds")
    verify_ssl: bool = Field(
        default=True,
        description="Verify TLS certificates (disable only for local development)",
    )

    # Credentials, at most one of them
    bearer_token: Optional[str] = Field(default=None, description="Dashboard bearer token")
    api_key: Optional[str] = Field(default=None, description="Server-to-server API key")
    tenant_key: Optional[str] = Field(default=None, description="Multi-tenant partner key")

    # Webhook settings
    webhook_secret: Optional[str] = Field(default=None, description="Secret for verifying webhooks")

    environment: Environment = Field(default=Environment.PRODUCTION)

    model_config = SettingsConfigDict(
        env_prefix="SCELL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def sandbox(cls, **overrides) -> "ScellSettings":
        """Settings for the sandbox environment."""
        return cls(environment=Environment.SANDBOX, **overrides)

    @classmethod
    def local(cls, base_url: str = DEFAULT_LOCAL_BASE_URL, **overrides) -> "ScellSettings":
        """Settings for a local development API. TLS verification is off."""
        return cls(base_url=base_url, verify_ssl=False, **overrides)

    def active_credential(self) -> Optional[Credential]:
        """
        Return the configured credential.

        Returns:
            The credential, or None if none is configured

        Raises:
            ValueError: If more than one credential is configured
        """
        configured = [
            credential
            for credential in (
                Credential.tenant_key(self.tenant_key) if self.tenant_key else None,
                Credential.api_key(self.api_key) if self.api_key else None,
                Credential.bearer(self.bearer_token) if self.bearer_token else None,
            )
            if credential is not None
        ]
        if len(configured) > 1:
            raise ValueError(
                "Only one of SCELL_BEARER_TOKEN, SCELL_API_KEY and SCELL_TENANT_KEY may be set"
            )
        return configured[0] if configured else None


@lru_cache()
def get_settings() -> ScellSettings:
    """
    Get cached settings instance.

    Returns:
        ScellSettings: SDK settings
    """
    return ScellSettings()
