"""Unit tests for application settings configuration."""

from pathlib import Path

from context_discovery.config import Settings


def test_settings_uses_project_env_file_independent_of_cwd():
    """Settings should always include the project-root .env as an env source."""
    env_files = Settings.model_config.get("env_file")
    assert env_files is not None

    normalized = {str(Path(item)) for item in env_files}
    expected_project_env = str(Path(__file__).resolve().parents[2] / ".env")

    assert expected_project_env in normalized
    assert str(Path(".env")) in normalized


def test_discovery_defaults():
    settings = Settings(_env_file=None)

    assert settings.parallel_timeout_ms == 15000
    assert settings.semantic_min_confidence == 0.7
    assert settings.semantic_limit == 20
    assert settings.enable_term_mapping is False
    assert settings.default_seed_table == "rpt.Patient"
    assert settings.terminology_cache_ttl_seconds == 600
    assert settings.relationship_cache_ttl_seconds == 300


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PARALLEL_TIMEOUT_MS", "5000")
    monkeypatch.setenv("ENABLE_TERM_MAPPING", "true")

    settings = Settings(_env_file=None)

    assert settings.parallel_timeout_ms == 5000
    assert settings.enable_term_mapping is True
