"""
Application settings and configuration management.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""
    
    log_level: str = Field(default="INFO")
    
    # Datadog API Configuration
    datadog_api_key: str = Field(default="", description="Datadog API key (DATADOG_API_KEY)")
    datadog_app_key: str = Field(default="", description="Datadog application key (DATADOG_APP_KEY)")
    datadog_site: str = Field(
        default="datadoghq.com",
        description="Datadog site the organisation lives on (e.g. datadoghq.eu, us5.datadoghq.com)"
    )
    
    @field_validator('datadog_api_key', 'datadog_app_key', mode='after')
    @classmethod
    def strip_api_keys(cls, v: str) -> str:
        """Strip whitespace from API keys; pasted keys often carry a newline."""
        return v.strip() if v else v
    
    @field_validator('datadog_site', mode='after')
    @classmethod
    def normalize_site(cls, v: str) -> str:
        """Accept 'https://api.datadoghq.com' style values as well as bare sites."""
        site = v.strip().rstrip("/")
        for prefix in ("https://", "http://"):
            if site.startswith(prefix):
                site = site[len(prefix):]
        if site.startswith("api."):
            site = site[4:]
        return site
    
    # incident.io Configuration
    incidentio_webhook_token: Optional[str] = Field(
        default=None,
        description="incident.io alert source token, used when the config file does not carry one"
    )
    
    # HTTP Configuration
    http_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for each Datadog API request"
    )
    monitor_page_size: int = Field(
        default=1000,
        gt=0,
        description="Number of monitors requested per page when listing monitors"
    )
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Allow extra fields to be ignored for backward compatibility
        extra="ignore"
    )
    
    @property
    def datadog_api_url(self) -> str:
        """Base URL of the Datadog API for the configured site."""
        return f"https://api.{self.datadog_site}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
