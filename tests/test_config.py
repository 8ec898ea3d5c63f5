"""Tests for configuration resolution."""

from argparse import Namespace
from dataclasses import replace
from pathlib import Path

import pytest

from llmffmpeg.config import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MODEL_COMPAT,
    DEFAULT_MODEL_OPENAI,
    load_config,
    normalize_base_url,
    resolve_config,
    save_config,
)
from llmffmpeg.executor import DEFAULT_SILENT_FAILURE_PHRASES


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("MODEL", "PROVIDER", "LLM_API_URL", "OPENAI_API_KEY", "BEARER_TOKEN", "TEMPLATE", "HISTORY_LIMIT"):
        monkeypatch.delenv(f"LLM_FFMPEG_{name}", raising=False)


def _args(**kw):
    return Namespace(**kw)


class TestNormalizeBaseUrl:
    def test_adds_scheme_and_suffix(self):
        assert normalize_base_url("localhost:11434") == "http://localhost:11434/v1"

    def test_keeps_existing_suffix(self):
        assert normalize_base_url("https://host/v1/") == "https://host/v1"


class TestLoadConfig:
    """Tests for the key=value file."""

    def test_missing_file(self, tmp_path):
        assert load_config(tmp_path / "none.env") == {}

    def test_parses_and_coerces(self, tmp_path):
        path = tmp_path / "config.env"
        path.write_text(
            "# comment\n"
            "model = llama3\n"
            "history_limit=10\n"
            "history_path=~/h.txt\n"
            "silent_failure_phrases=foo, bar ,\n"
            "bearer_token=none\n"
            "junk line\n"
            "unknown_key=1\n"
        )
        data = load_config(path)
        assert data["model"] == "llama3"
        assert data["history_limit"] == 10
        assert data["history_path"] == Path("~/h.txt").expanduser()
        assert data["silent_failure_phrases"] == ("foo", "bar")
        assert data["bearer_token"] is None
        assert "unknown_key" not in data

    def test_bad_limit(self, tmp_path):
        path = tmp_path / "config.env"
        path.write_text("history_limit=0\n")
        with pytest.raises(ValueError):
            load_config(path)


class TestResolveConfig:
    """Tests for CLI > env > file > default precedence."""

    def test_defaults(self, tmp_path):
        cfg = resolve_config(_args(), config_path=tmp_path / "none.env")
        assert cfg.provider == "compat"
        assert cfg.base_url == "http://localhost:11434/v1"
        assert cfg.model == DEFAULT_MODEL_COMPAT
        assert cfg.history_limit == DEFAULT_HISTORY_LIMIT
        assert cfg.silent_failure_phrases == DEFAULT_SILENT_FAILURE_PHRASES
        assert cfg.token == "ffmpeg"

    def test_api_key_selects_openai(self, tmp_path):
        cfg = resolve_config(_args(api_key="sk-x"), config_path=tmp_path / "none.env")
        assert cfg.provider == "openai"
        assert cfg.base_url is None
        assert cfg.model == DEFAULT_MODEL_OPENAI

    def test_api_key_with_url_stays_compat(self, tmp_path):
        cfg = resolve_config(_args(api_key="sk-x", url="myhost:8000"), config_path=tmp_path / "none.env")
        assert cfg.provider == "compat"
        assert cfg.base_url == "http://myhost:8000/v1"

    def test_precedence(self, tmp_path, monkeypatch):
        path = tmp_path / "config.env"
        path.write_text("model=from-file\nhistory_limit=7\n")
        assert resolve_config(_args(), config_path=path).model == "from-file"

        monkeypatch.setenv("LLM_FFMPEG_MODEL", "from-env")
        monkeypatch.setenv("LLM_FFMPEG_HISTORY_LIMIT", "9")
        cfg = resolve_config(_args(), config_path=path)
        assert cfg.model == "from-env"
        assert cfg.history_limit == 9

        cfg = resolve_config(_args(model="from-cli", history_limit=3), config_path=path)
        assert cfg.model == "from-cli"
        assert cfg.history_limit == 3

    def test_phrases_extend_defaults(self, tmp_path):
        path = tmp_path / "config.env"
        path.write_text("silent_failure_phrases=muxing overhead: unknown\n")
        cfg = resolve_config(_args(), config_path=path)
        assert cfg.silent_failure_phrases[-1] == "muxing overhead: unknown"
        assert set(DEFAULT_SILENT_FAILURE_PHRASES) <= set(cfg.silent_failure_phrases)

    def test_ffmpeg_path_sets_token(self, tmp_path):
        path = tmp_path / "config.env"
        path.write_text("ffmpeg=/opt/bin/ffmpeg\n")
        cfg = resolve_config(_args(), config_path=path)
        assert cfg.ffmpeg == "/opt/bin/ffmpeg"
        assert cfg.token == "ffmpeg"

    def test_bad_provider(self, tmp_path):
        with pytest.raises(ValueError):
            resolve_config(_args(provider="azure"), config_path=tmp_path / "none.env")

    def test_bad_history_limit(self, tmp_path):
        with pytest.raises(ValueError):
            resolve_config(_args(history_limit=0), config_path=tmp_path / "none.env")


class TestSaveConfig:
    def test_save_skips_secrets(self, cfg, tmp_path):
        cfg = replace(cfg, openai_api_key="sk-secret")
        path = save_config(cfg, tmp_path / "out" / "config.env")
        text = path.read_text()
        assert "model=test-model" in text
        assert "history_limit=50" in text
        assert "sk-secret" not in text

    def test_saved_file_loads_back(self, cfg, tmp_path):
        path = save_config(replace(cfg, model="llama3"), tmp_path / "config.env")
        assert load_config(path)["model"] == "llama3"
