import json
from pathlib import Path

import pytest

from toonana import config_manager as cfg


def test_missing_settings_file_yields_defaults(data_root: Path) -> None:
    settings = cfg.load_settings(data_root)

    assert settings.gemini_api_key is None
    assert settings.gemini_model == cfg.DEFAULT_GEMINI_MODEL
    assert settings.resolve_ollama_url() == cfg.DEFAULT_OLLAMA_URL
    assert settings.resolve_ollama_model() == cfg.DEFAULT_OLLAMA_MODEL
    assert settings.job_timeout_seconds == cfg.DEFAULT_JOB_TIMEOUT_SECONDS


def test_corrupt_settings_file_yields_defaults(data_root: Path) -> None:
    cfg.settings_path(data_root).write_text("{not json", encoding="utf-8")

    assert cfg.load_settings(data_root).avatar_description is None


def test_non_object_settings_file_yields_defaults(data_root: Path) -> None:
    cfg.settings_path(data_root).write_text("[1, 2]", encoding="utf-8")

    assert cfg.load_settings(data_root).debug is False


def test_save_and_load_round_trip_keeps_unknown_keys(data_root: Path) -> None:
    settings = cfg.ToonanaSettings.model_validate(
        {
            "gemini_api_key": "k-123",
            "avatar_description": "short hair",
            "theme": "dark",
        }
    )

    path = cfg.save_settings(data_root, settings)

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["gemini_api_key"] == "k-123"
    assert stored["theme"] == "dark"
    loaded = cfg.load_settings(data_root)
    assert loaded.resolve_gemini_key() == "k-123"
    assert loaded.avatar_description == "short hair"


def test_environment_fills_unset_values(data_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    monkeypatch.setenv("OLLAMA_URL", "http://ollama.internal:11434")
    monkeypatch.setenv("TOONANA_JOB_TIMEOUT", "42")

    settings = cfg.load_settings(data_root)

    assert settings.resolve_gemini_key() == "from-env"
    assert settings.resolve_ollama_url() == "http://ollama.internal:11434"
    assert settings.job_timeout_seconds == 42.0


def test_file_values_win_over_environment(data_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cfg.save_settings(data_root, cfg.ToonanaSettings(gemini_api_key="from-file"))
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")

    assert cfg.load_settings(data_root).resolve_gemini_key() == "from-file"
    assert cfg.load_settings(data_root, include_environment=False).resolve_gemini_key() == "from-file"


def test_environment_ignored_when_not_requested(data_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")

    assert cfg.load_settings(data_root, include_environment=False).gemini_api_key is None


def test_blank_secret_resolves_to_none() -> None:
    settings = cfg.ToonanaSettings(gemini_api_key="   ", nano_banana_api_key="")

    assert settings.resolve_gemini_key() is None
    assert settings.resolve_nano_banana_key() is None
    assert not settings.renderer_configured


def test_resolve_data_root_prefers_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "from-env"
    monkeypatch.setenv(cfg.DATA_DIR_ENV, str(target))

    resolved = cfg.resolve_data_root()

    assert resolved == target.resolve()
    assert resolved.is_dir()
    assert cfg.resolve_data_root(tmp_path / "explicit") == (tmp_path / "explicit").resolve()


def test_settings_provider_saves_and_reloads(data_root: Path) -> None:
    provider = cfg.SettingsProvider(data_root)

    provider.save(cfg.ToonanaSettings(avatar_description="round glasses"))

    assert provider.data_root == data_root
    assert provider.load().avatar_description == "round glasses"
