"""Tests for YAML configuration loading."""

import os
from decimal import Decimal

import pytest
from pydantic import ValidationError

from karat.config import (
    KaratConfig,
    get_config,
    load_config,
    resolve_env_vars,
    set_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's env vars and working directory."""
    for key in list(os.environ):
        if key.startswith("KARAT_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    yield
    set_config(None)


def _write(tmp_path, text):
    path = tmp_path / "karat.yaml"
    path.write_text(text)
    return path


class TestLoadConfig:
    def test_defaults_without_file(self):
        config = load_config()
        assert config == KaratConfig()
        assert config.rate_limits.guest == 20
        assert config.validation.default_tax_percentage == Decimal("3")

    def test_explicit_path(self, tmp_path):
        path = _write(tmp_path, "rate_limits:\n  guest: 5\nexecution:\n  auto_confirm: true\n")
        config = load_config(str(path))
        assert config.rate_limits.guest == 5
        assert config.rate_limits.assistant == 100
        assert config.execution.auto_confirm is True

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_discovers_working_directory_file(self, tmp_path):
        _write(tmp_path, "content_filter:\n  max_message_length: 500\n")
        assert load_config().content_filter.max_message_length == 500

    def test_env_var_references(self, tmp_path, monkeypatch):
        monkeypatch.setenv("KARAT_TEST_MODEL", "claude-test")
        path = _write(tmp_path, "completion:\n  model: ${KARAT_TEST_MODEL}\n")
        assert load_config(str(path)).completion.model == "claude-test"

    def test_env_overrides_win(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "rate_limits:\n  guest: 5\n")
        monkeypatch.setenv("KARAT_RATE_LIMITS_GUEST", "7")
        monkeypatch.setenv("KARAT_EXECUTION_AUTO_CONFIRM", "true")
        config = load_config(str(path))
        assert config.rate_limits.guest == 7
        assert config.execution.auto_confirm is True

    def test_inverted_price_band(self, tmp_path):
        path = _write(
            tmp_path,
            "validation:\n  min_price_per_gram: 9000\n  max_price_per_gram: 100\n",
        )
        with pytest.raises(ValidationError):
            load_config(str(path))


class TestHelpers:
    def test_resolve_missing_var_is_empty(self):
        assert resolve_env_vars("key=${KARAT_UNSET_VALUE}") == "key="

    def test_get_config_is_cached(self):
        set_config(None)
        first = get_config()
        assert get_config() is first

    def test_limit_for_unknown_mode_falls_back_to_guest(self):
        assert KaratConfig().rate_limits.limit_for("unknown") == 20
