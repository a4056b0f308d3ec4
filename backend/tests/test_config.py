"""Tests for hivemind.config Settings."""

import pytest
from pydantic import ValidationError

from hivemind.config import Settings


class TestSettingsDefaults:
    """Default settings load without errors when no env vars set."""

    def test_default_settings_load(self):
        """Settings() loads with no environment."""
        settings = Settings()
        assert settings is not None

    def test_default_database_dir(self, monkeypatch):
        """DATABASE_DIR defaults to ./data."""
        monkeypatch.delenv("DATABASE_DIR", raising=False)
        assert Settings().DATABASE_DIR == "./data"

    def test_default_frontend_url(self, monkeypatch):
        """FRONTEND_URL defaults to the dev server."""
        monkeypatch.delenv("FRONTEND_URL", raising=False)
        assert Settings().FRONTEND_URL == "http://localhost:3000"

    def test_default_capacity(self, monkeypatch):
        """The store holds 5000 entities and rejects beyond that by default."""
        monkeypatch.delenv("MAX_ENTITIES", raising=False)
        monkeypatch.delenv("CAPACITY_POLICY", raising=False)
        settings = Settings()
        assert settings.MAX_ENTITIES == 5000
        assert settings.CAPACITY_POLICY == "reject"

    def test_default_extraction_limits(self, monkeypatch):
        """Context radius and input cap have defaults."""
        monkeypatch.delenv("CONTEXT_RADIUS", raising=False)
        monkeypatch.delenv("MAX_INPUT_CHARS", raising=False)
        settings = Settings()
        assert settings.CONTEXT_RADIUS == 30
        assert settings.MAX_INPUT_CHARS == 100 * 1024


class TestSettingsEnvOverride:
    """Environment variable overrides are respected."""

    def test_database_dir_override(self, monkeypatch):
        """DATABASE_DIR is read from the environment."""
        monkeypatch.setenv("DATABASE_DIR", "/custom/data/path")
        assert Settings().DATABASE_DIR == "/custom/data/path"

    def test_max_entities_override(self, monkeypatch):
        """MAX_ENTITIES is read from the environment."""
        monkeypatch.setenv("MAX_ENTITIES", "10")
        assert Settings().MAX_ENTITIES == 10

    def test_capacity_policy_override(self, monkeypatch):
        """CAPACITY_POLICY accepts evict_lru."""
        monkeypatch.setenv("CAPACITY_POLICY", "evict_lru")
        assert Settings().CAPACITY_POLICY == "evict_lru"

    def test_unknown_capacity_policy_rejected(self, monkeypatch):
        """An unknown CAPACITY_POLICY fails validation."""
        monkeypatch.setenv("CAPACITY_POLICY", "drop_random")
        with pytest.raises(ValidationError):
            Settings()

    def test_constructor_override(self):
        """Keyword arguments override defaults."""
        settings = Settings(LAYOUT_MAX_ITERATIONS=50, LAYOUT_TICK_SECONDS=0)
        assert settings.LAYOUT_MAX_ITERATIONS == 50
        assert settings.LAYOUT_TICK_SECONDS == 0
