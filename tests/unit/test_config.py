"""Tests for pydantic-settings configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from brief.config import AnnotateConfig, Settings, get_settings

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[pytest.MonkeyPatch]:
    """Remove Brief env vars so defaults are observable."""
    for key in list(os.environ):
        if key.startswith(("APP__", "STORAGE__", "ANNOTATE__", "EXPORT__")):
            monkeypatch.delenv(key, raising=False)
    yield monkeypatch


class TestDefaults:
    """Settings defaults."""

    def test_defaults(self, clean_env: pytest.MonkeyPatch) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.app.port == 8080
        assert s.app.log_dir == Path("logs")
        assert s.storage.backend == "database"
        assert s.storage.database_url.startswith("sqlite+aiosqlite://")
        assert s.annotate.selection_debounce_ms == 20
        assert s.annotate.toast_seconds == 2.5
        assert s.export.instruction == (
            "Please apply these annotations to the source document."
        )

    def test_storage_secret_is_hidden(self, clean_env: pytest.MonkeyPatch) -> None:
        """The secret never appears in repr output."""
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert "dev-secret" not in repr(s.app)


class TestEnvOverrides:
    """Nested env vars use the double-underscore delimiter."""

    def test_storage_backend(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("STORAGE__BACKEND", "memory")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.storage.backend == "memory"

    def test_unknown_backend_rejected(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("STORAGE__BACKEND", "redis")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_debounce_override(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("ANNOTATE__SELECTION_DEBOUNCE_MS", "50")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.annotate.selection_debounce_ms == 50

    def test_negative_debounce_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not be negative"):
            AnnotateConfig(selection_debounce_ms=-1)

    def test_export_instruction_override(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("EXPORT__INSTRUCTION", "Apply these edits.")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.export.instruction == "Apply these edits."


class TestGetSettings:
    def test_cached(self) -> None:
        """get_settings() returns the same instance until cache_clear()."""
        first = get_settings()
        assert get_settings() is first
        get_settings.cache_clear()
        assert get_settings() is not first
