"""Configuration management for PromptGrid.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the PROMPTGRID_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (PROMPTGRID_* prefix)
2. .env file in the project root
3. Default values defined in PromptGridConfig

Example .env file:
    PROMPTGRID_BACKEND_URL=http://127.0.0.1:8765/generate
    PROMPTGRID_COOKIE_FILE=~/.config/promptgrid/cookies.json
    PROMPTGRID_LOGIN_COMMAND=["promptgrid-capture-cookies"]
    PROMPTGRID_ARTIFACT_FILTER=all

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from promptgrid.core.config import config

    print(config.backend_url)
    print(config.cookie_file)

    # Configuration is immutable after initialization
    # To change values, set environment variables and restart

Timeouts
--------
Every external call made by the server is bounded:
- backend_timeout: the generation call (can take minutes for large batches)
- fetch_timeout: each individual artifact download
- login_timeout: the external interactive login command

See Also
--------
- .env.example: Template with all available configuration options
- PromptGridConfig: Full configuration class documentation
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Package directory, used to resolve the default static/templates locations.
_PACKAGE_DIR = Path(__file__).resolve().parents[1]


class PromptGridConfig(BaseSettings):
    """Main configuration for PromptGrid.

    This class uses Pydantic Settings to manage all application configuration.
    Values are loaded from environment variables with the PROMPTGRID_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Backend Settings:
        backend_url : str
            Endpoint of the image-generation backend
        backend_timeout : float
            Seconds allowed for a single generation call
        fetch_timeout : float
            Seconds allowed for each artifact download
        max_concurrent_fetches : int
            Upper bound on parallel artifact downloads within one request
        artifact_filter : Literal["all", "png"]
            Which reported artifacts are downloaded ("all" or only image/png)

    Session Settings:
        cookie_file : Path
            JSON credential store the session is restored from
        required_cookies : list[str]
            Cookie names that must be present for a session to be usable
        cookie_domains : list[str]
            Hosts (and their subdomains) artifact downloads may send the
            session cookies to.  The backend host is always included.
        login_command : list[str]
            External command (argv) that performs interactive login and
            writes ``cookie_file``.  Empty disables ``GET /api/login``.
        login_timeout : float
            Seconds allowed for the login command

    Request Settings:
        max_reference_images : int
            Maximum number of reference images per request
        aspect_ratios : list[str]
            Aspect ratios offered by the frontend

    Server Settings:
        server_host : str
            Server bind address (0.0.0.0 for local network)
        server_port : int
            Server port (1024-65535)
        log_level : str
            Root logging level used by the CLI entry point
        static_dir : Path
            Directory served at ``/static``
        templates_dir : Path
            Directory holding ``index.html``

    Examples
    --------
    Create a custom configuration:

        >>> custom_config = PromptGridConfig(
        ...     backend_url="http://localhost:9000/generate",
        ...     artifact_filter="png",
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PROMPTGRID_",
        case_sensitive=False,
    )

    # Backend settings
    backend_url: str = Field(
        default="http://127.0.0.1:8765/generate",
        description="Endpoint of the image-generation backend",
    )
    backend_timeout: float = Field(
        default=120.0,
        description="Seconds allowed for a single generation call",
        gt=0,
    )
    fetch_timeout: float = Field(
        default=30.0,
        description="Seconds allowed for each artifact download",
        gt=0,
    )
    max_concurrent_fetches: int = Field(
        default=4,
        description="Maximum parallel artifact downloads per request",
        ge=1,
        le=32,
    )
    artifact_filter: Literal["all", "png"] = Field(
        default="all",
        description="Download every reported artifact, or only image/png ones",
    )

    # Session settings
    cookie_file: Path = Field(
        default=Path("~/.config/promptgrid/cookies.json"),
        description="JSON cookie store used to restore the session",
    )
    required_cookies: list[str] = Field(
        default_factory=lambda: ["__Secure-1PSID"],
        description="Cookies that must be present for a usable session",
    )
    cookie_domains: list[str] = Field(
        default_factory=lambda: ["google.com", "googleusercontent.com"],
        description="Hosts (and their subdomains) that artifact downloads may send session cookies to",
    )
    login_command: list[str] = Field(
        default_factory=list,
        description="External interactive login command (argv); empty disables login",
    )
    login_timeout: float = Field(
        default=300.0,
        description="Seconds allowed for the interactive login command",
        gt=0,
    )

    # Request settings
    max_reference_images: int = Field(
        default=10,
        description="Maximum reference images accepted per request",
        ge=0,
        le=10,
    )
    aspect_ratios: list[str] = Field(
        default_factory=lambda: ["1:1", "3:4", "4:3", "9:16", "16:9"],
        description="Aspect ratios offered by the frontend",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level",
    )
    static_dir: Path = Field(
        default=_PACKAGE_DIR / "static",
        description="Directory served at /static",
    )
    templates_dir: Path = Field(
        default=_PACKAGE_DIR / "templates",
        description="Directory holding index.html",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        """Accept lower-case level names from the environment."""
        if isinstance(value, str):
            return value.upper()
        return value

    def __init__(self, **kwargs):
        """Initialize configuration and resolve paths.

        ``cookie_file`` is user-expanded (``~``) so that the default works
        regardless of the working directory.  The cookie store itself is not
        created here: it is written by the external login command.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.cookie_file = self.cookie_file.expanduser()
        self.static_dir = self.static_dir.resolve()
        self.templates_dir = self.templates_dir.resolve()


# Global configuration instance
# This instance is created automatically when the module is imported and serves
# as the single source of truth for all configuration values across the application.
# It loads values from environment variables (PROMPTGRID_* prefix) and .env file.
config = PromptGridConfig()
