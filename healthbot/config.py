"""Configuration management for HealthBot."""

import json
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiEndpointConfig(BaseModel):
    """An API endpoint to probe and the status codes it may answer with."""

    path: str
    method: str = "GET"
    expected: List[int] = Field(default_factory=lambda: [200])


DEFAULT_PAGES = [
    "/", "/apps", "/games", "/tools", "/pricing",
    "/about", "/contact", "/login", "/register", "/dashboard",
    "/craiverse", "/blog", "/forgot-password", "/help",
]

DEFAULT_API_ENDPOINTS = [
    {"path": "/api/health", "method": "GET", "expected": [200]},
    {"path": "/api/warmup", "method": "GET", "expected": [200]},
    {"path": "/api/apps", "method": "GET", "expected": [200]},
    {"path": "/api/tools", "method": "GET", "expected": [200]},
    {"path": "/api/games", "method": "GET", "expected": [200]},
    {"path": "/api/bots/status", "method": "GET", "expected": [200]},
    {"path": "/api/credits/packages", "method": "GET", "expected": [200, 401]},
    {"path": "/api/javari/chat", "method": "POST", "expected": [200, 400, 401]},
]

DEFAULT_TABLES = [
    "users", "profiles", "credits", "payments", "subscriptions",
    "apps", "tools", "games", "bots", "bot_runs", "bot_issues",
    "conversations", "messages", "notifications",
]

DEFAULT_SECURITY_HEADERS = [
    "strict-transport-security",
    "x-content-type-options",
    "x-frame-options",
    "content-security-policy",
    "referrer-policy",
]


class Settings(BaseSettings):
    """HealthBot configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="HEALTHBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="dev", description="Environment: dev, prod")

    # Probe targets
    base_url: str = Field(
        default="http://localhost:3000",
        description="Base address of the platform being probed"
    )
    user_agent: str = Field(default="HealthBot/1.0", description="User-Agent sent by probes")
    pages: List[str] = Field(default_factory=lambda: list(DEFAULT_PAGES))
    api_endpoints: List[ApiEndpointConfig] = Field(
        default_factory=lambda: [ApiEndpointConfig(**e) for e in DEFAULT_API_ENDPOINTS]
    )
    required_tables: List[str] = Field(default_factory=lambda: list(DEFAULT_TABLES))
    security_headers: List[str] = Field(default_factory=lambda: list(DEFAULT_SECURITY_HEADERS))
    catalog_path: Optional[Path] = Field(
        default=None,
        description="JSON file overriding pages, api_endpoints, required_tables and security_headers"
    )
    patterns_path: Optional[Path] = Field(
        default=None,
        description="JSON file replacing the built-in remediation pattern catalog"
    )

    # Timeouts and concurrency
    probe_timeout: float = Field(default=10.0, description="Per-probe timeout in seconds")
    run_timeout: float = Field(default=300.0, description="Wall-clock ceiling for one run in seconds")
    max_concurrent_probes: int = Field(default=20, description="Maximum probes in flight")

    # Trigger authorization
    trigger_secret: Optional[str] = Field(
        default=None,
        description="Shared secret expected as 'Authorization: Bearer <secret>'"
    )
    trigger_source_header: str = Field(
        default="x-scheduled-invocation",
        description="Header set to '1' by the trusted scheduler"
    )

    # Database Configuration
    db_path: Path = Field(
        default=Path.home() / ".healthbot" / "db.sqlite",
        description="SQLite ledger path"
    )
    platform_database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL of the platform store whose tables are probed"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json",
        description="Log format: json, console"
    )

    # Remediation
    max_response_issues: int = Field(default=20, description="Issues included in a health-check response")
    sweep_limit: Optional[int] = Field(default=None, description="Maximum tickets per sweep")
    remediation_step_delay: float = Field(
        default=0.1,
        description="Simulated duration of one remediation step in seconds"
    )
    autofix_actor: str = Field(default="healthbot-autofix", description="Actor recorded on ticket activity")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Ensure database directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if self.catalog_path:
            self._apply_catalog_file(self.catalog_path)

    def _apply_catalog_file(self, path: Path) -> None:
        """Override the surface lists from a JSON catalog file."""
        with open(path, "r") as f:
            data = json.load(f)

        if "pages" in data:
            self.pages = list(data["pages"])
        if "api_endpoints" in data:
            self.api_endpoints = [ApiEndpointConfig(**e) for e in data["api_endpoints"]]
        if "required_tables" in data:
            self.required_tables = list(data["required_tables"])
        if "security_headers" in data:
            self.security_headers = list(data["security_headers"])

    @property
    def ledger_url(self) -> str:
        """SQLAlchemy URL of the ledger database."""
        return f"sqlite+aiosqlite:///{self.db_path}"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (for testing)."""
    global _settings
    _settings = None
