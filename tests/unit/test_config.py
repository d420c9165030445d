"""Tests for imagedrop.core.config — configuration management.

Tests cover:
- Default values for configuration fields.
- Environment variable overrides via the IMAGEDROP_ prefix.
- Automatic images directory creation on initialisation.
- Pydantic validation constraints (port range, body limit, log level).
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from imagedrop.core.config import ImagedropConfig


class TestConfigDefaults:
    """Verify that ImagedropConfig provides sensible defaults."""

    def test_default_server(self, monkeypatch, temp_dir: Path):
        monkeypatch.delenv("IMAGEDROP_SERVER_PORT", raising=False)
        cfg = ImagedropConfig(images_dir=str(temp_dir / "images"), _env_file=None)
        assert cfg.server_host == "0.0.0.0"
        assert cfg.server_port == 3000
        assert cfg.log_level == "INFO"

    def test_default_body_limit(self, test_config: ImagedropConfig):
        """Default raw body ceiling is 50 MiB."""
        assert test_config.max_body_bytes == 50 * 1024 * 1024

    def test_default_public_dir_ships_viewer(self, test_config: ImagedropConfig):
        assert (test_config.public_dir / "view-image.html").is_file()

    def test_api_key_optional(self, monkeypatch, temp_dir: Path):
        monkeypatch.delenv("IMAGEDROP_GEMINI_API_KEY", raising=False)
        cfg = ImagedropConfig(images_dir=str(temp_dir / "images"), _env_file=None)
        assert cfg.gemini_api_key is None


class TestConfigDirectoryCreation:
    def test_images_dir_created(self, test_config: ImagedropConfig):
        assert test_config.images_dir.is_dir()


class TestConfigEnvironment:
    """Verify IMAGEDROP_ environment overrides."""

    def test_port_from_env(self, monkeypatch, temp_dir: Path):
        monkeypatch.setenv("IMAGEDROP_SERVER_PORT", "8080")
        cfg = ImagedropConfig(images_dir=str(temp_dir / "images"), _env_file=None)
        assert cfg.server_port == 8080

    def test_api_key_from_env(self, monkeypatch, temp_dir: Path):
        monkeypatch.setenv("IMAGEDROP_GEMINI_API_KEY", "from-env")
        cfg = ImagedropConfig(images_dir=str(temp_dir / "images"), _env_file=None)
        assert cfg.gemini_api_key == "from-env"


class TestConfigValidation:
    @pytest.mark.parametrize("port", [0, 70000])
    def test_port_range(self, port, temp_dir: Path):
        with pytest.raises(ValidationError):
            ImagedropConfig(images_dir=str(temp_dir), server_port=port, _env_file=None)

    def test_body_limit_positive(self, temp_dir: Path):
        with pytest.raises(ValidationError):
            ImagedropConfig(images_dir=str(temp_dir), max_body_bytes=0, _env_file=None)

    def test_log_level_literal(self, temp_dir: Path):
        with pytest.raises(ValidationError):
            ImagedropConfig(images_dir=str(temp_dir), log_level="LOUD", _env_file=None)
