"""Configuration management for imagedrop.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the IMAGEDROP_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (IMAGEDROP_* prefix)
2. .env file in the project root
3. Default values defined in ImagedropConfig

Example .env file:
    IMAGEDROP_SERVER_PORT=3000
    IMAGEDROP_IMAGES_DIR=images
    IMAGEDROP_GEMINI_API_KEY=...
    IMAGEDROP_MAX_BODY_BYTES=52428800

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from imagedrop.core.config import config

    print(config.server_port)
    print(config.images_dir)

Image Analysis
--------------
Background analysis needs ``gemini_api_key``.  When it is unset the server
still starts and accepts uploads; every analysis attempt then settles with a
configuration error instead of a description.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_ANALYSIS_PROMPT = (
    "Describe this image in detail. Mention the main subjects, the setting, "
    "notable colours and any visible text."
)


class ImagedropConfig(BaseSettings):
    """Main configuration for imagedrop.

    Values are loaded from environment variables with the IMAGEDROP_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Server Settings:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1-65535)
        log_level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
            Root log level applied by the CLI entry point
        cors_origins : list[str]
            Allowed CORS origins

    Paths:
        images_dir : Path
            Directory served under ``/images`` and listed by ``/api/images``
        public_dir : Path
            Directory with the viewer pages served at ``/``

    Limits:
        max_body_bytes : int
            Ceiling for raw request bodies; larger bodies get ``413``

    Image Analysis:
        gemini_api_key : str | None
            API key for the analysis capability
        gemini_model : str
            Model name used for ``generateContent``
        gemini_base_url : str
            REST base URL of the Generative Language API
        analysis_timeout : float
            Seconds before an outbound analysis call is abandoned
        analysis_prompt : str
            Instruction sent alongside every image

    Notes
    -----
    - ``images_dir`` is created automatically if it doesn't exist
    - Configuration is immutable after initialization
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="IMAGEDROP_",
        case_sensitive=False,
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level",
    )
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )

    # Paths
    images_dir: Path = Field(
        default=Path("images"),
        description="Directory of static images served under /images",
    )
    public_dir: Path = Field(
        default=PACKAGE_DIR / "static",
        description="Directory of viewer pages served at /",
    )

    # Limits
    max_body_bytes: int = Field(
        default=50 * 1024 * 1024,
        description="Maximum accepted raw request body size in bytes",
        ge=1,
    )

    # Image analysis
    gemini_api_key: str | None = Field(
        default=None,
        description="API key for the Gemini image analysis capability",
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model used for image descriptions",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the Generative Language REST API",
    )
    analysis_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for a single analysis call",
        gt=0,
    )
    analysis_prompt: str = Field(
        default=DEFAULT_ANALYSIS_PROMPT,
        description="Instruction sent with every image",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the images directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.images_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance
# Loads values from environment variables (IMAGEDROP_* prefix) and .env file.
config = ImagedropConfig()
