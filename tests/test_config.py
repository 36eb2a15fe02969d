# =============================================================================
# tests/test_config.py - Settings Tests
# =============================================================================
# This module contains tests for:
# - Layered JSON settings (base file + environment overlay)
# - Environment variable precedence with nested keys
# - Derived properties and the DEBUG sink
# =============================================================================

import json

import pytest
from pydantic import ValidationError

from app.config import Settings, _deep_merge, settings_files
from app.main import build_log_router
from core.models.log_event import Severity, SinkKind


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """An empty settings directory used instead of the tests/ directory."""
    monkeypatch.setenv("APP_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("ENVIRONMENT", "staging")
    for name in ("APP_NAME", "DEBUG", "FORECAST_SEED", "LOGGING__MINIMUM_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


BASE = {
    "APP_NAME": "Forecast API (base)",
    "LOGGING": {
        "minimum_level": "Information",
        "overrides": {"uvicorn": "Warning"},
        "sinks": [{"name": "console", "kind": "console"}],
    },
}


class TestLayeredSettings:
    """Tests for the JSON settings layers."""

    def test_defaults_without_files(self, config_dir):
        settings = Settings()

        assert settings.APP_NAME == "Forecast API"
        assert settings.LOGGING.minimum_level == Severity.INFORMATION
        assert [s.kind for s in settings.LOGGING.sinks] == [SinkKind.CONSOLE]

    def test_base_file(self, config_dir):
        write_json(config_dir / "appsettings.json", BASE)

        settings = Settings()

        assert settings.APP_NAME == "Forecast API (base)"
        assert settings.LOGGING.overrides == {"uvicorn": Severity.WARNING}

    def test_overlay_deep_merges(self, config_dir):
        write_json(config_dir / "appsettings.json", BASE)
        write_json(config_dir / "appsettings.staging.json", {
            "LOGGING": {
                "minimum_level": "Debug",
                "overrides": {"app.routers.weather": "Trace"},
            },
        })

        settings = Settings()

        assert settings.ENVIRONMENT == "staging"
        assert settings.APP_NAME == "Forecast API (base)"
        assert settings.LOGGING.minimum_level == Severity.DEBUG
        assert settings.LOGGING.overrides == {
            "uvicorn": Severity.WARNING,
            "app.routers.weather": Severity.TRACE,
        }
        # Lists replace rather than merge; the overlay did not name sinks
        assert [s.name for s in settings.LOGGING.sinks] == ["console"]

    def test_overlay_for_other_environment_ignored(self, config_dir):
        write_json(config_dir / "appsettings.json", BASE)
        write_json(config_dir / "appsettings.production.json", {"APP_NAME": "Prod"})

        assert Settings().APP_NAME == "Forecast API (base)"

    def test_environment_variables_win(self, config_dir, monkeypatch):
        write_json(config_dir / "appsettings.json", BASE)
        monkeypatch.setenv("APP_NAME", "From Env")
        monkeypatch.setenv("LOGGING__MINIMUM_LEVEL", "error")

        settings = Settings()

        assert settings.APP_NAME == "From Env"
        assert settings.LOGGING.minimum_level == Severity.ERROR
        # Sibling keys from the files survive a nested override
        assert settings.LOGGING.overrides == {"uvicorn": Severity.WARNING}

    def test_init_arguments_win(self, config_dir, monkeypatch):
        monkeypatch.setenv("FORECAST_SEED", "1")

        assert Settings(FORECAST_SEED=2).FORECAST_SEED == 2

    def test_lower_case_environment_variable_picks_overlay(self, config_dir, monkeypatch):
        write_json(config_dir / "appsettings.json", BASE)
        write_json(config_dir / "appsettings.production.json", {"APP_NAME": "Prod"})
        monkeypatch.delenv("ENVIRONMENT")
        monkeypatch.setenv("environment", "production")

        settings = Settings()

        assert settings.ENVIRONMENT == "production"
        assert settings.APP_NAME == "Prod"

    def test_init_environment_picks_overlay(self, config_dir):
        write_json(config_dir / "appsettings.json", BASE)
        write_json(config_dir / "appsettings.production.json", {"APP_NAME": "Prod"})

        settings = Settings(ENVIRONMENT="production")

        assert settings.ENVIRONMENT == "production"
        assert settings.APP_NAME == "Prod"

    def test_dotenv_environment_picks_overlay(self, config_dir, monkeypatch):
        write_json(config_dir / "appsettings.json", BASE)
        write_json(config_dir / "appsettings.production.json", {"APP_NAME": "Prod"})
        (config_dir / ".env").write_text("ENVIRONMENT=production\n", encoding="utf-8")
        monkeypatch.delenv("ENVIRONMENT")
        monkeypatch.chdir(config_dir)

        settings = Settings()

        assert settings.ENVIRONMENT == "production"
        assert settings.APP_NAME == "Prod"
    def test_invalid_level_rejected(self, config_dir):
        write_json(config_dir / "appsettings.json", {"LOGGING": {"minimum_level": "Loud"}})

        with pytest.raises(ValidationError):
            Settings()

    def test_file_sink_without_path_rejected(self, config_dir):
        write_json(config_dir / "appsettings.json", {
            "LOGGING": {"sinks": [{"name": "file", "kind": "file"}]},
        })

        with pytest.raises(ValidationError):
            Settings()

    def test_malformed_json_fails(self, config_dir):
        (config_dir / "appsettings.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(ValueError):
            Settings()


class TestHelpers:
    """Tests for settings helpers."""

    def test_settings_files(self, tmp_path):
        files = settings_files(tmp_path, "production")

        assert files == [tmp_path / "appsettings.json", tmp_path / "appsettings.production.json"]

    def test_deep_merge(self):
        base = {"a": 1, "nested": {"x": 1, "y": 2}, "items": [1, 2]}

        merged = _deep_merge(base, {"nested": {"y": 3}, "items": [9]})

        assert merged == {"a": 1, "nested": {"x": 1, "y": 3}, "items": [9]}
        assert base["nested"] == {"x": 1, "y": 2}

    def test_cors_origins_list(self, config_dir):
        settings = Settings(CORS_ORIGINS="http://localhost:4200, https://forecast.example.com,")

        assert settings.cors_origins_list == ["http://localhost:4200", "https://forecast.example.com"]

    def test_environment_flags(self, config_dir):
        assert Settings(ENVIRONMENT="production").is_production
        assert not Settings(ENVIRONMENT="development").is_production

    def test_settings_files_default_to_development(self, tmp_path):
        assert settings_files(tmp_path)[-1] == tmp_path / "appsettings.development.json"


class TestDebugSink:
    """DEBUG adds a Trace-level debug sink to the router."""

    def test_debug_adds_debug_sink(self, config_dir):
        router = build_log_router(Settings(DEBUG=True))
        try:
            assert [sink.name for sink in router.sinks] == ["console", "debug"]
            assert router.sinks[-1].minimum_level == Severity.TRACE
        finally:
            router.flush_and_close()

    def test_no_debug_sink_by_default(self, config_dir):
        router = build_log_router(Settings())
        try:
            assert [sink.name for sink in router.sinks] == ["console"]
        finally:
            router.flush_and_close()

    def test_configured_debug_sink_not_duplicated(self, config_dir):
        settings = Settings(DEBUG=True, LOGGING={
            "sinks": [{"name": "stderr", "kind": "debug", "minimum_level": "Warning"}],
        })
        router = build_log_router(settings)
        try:
            assert [sink.name for sink in router.sinks] == ["stderr"]
            assert router.sinks[0].minimum_level == Severity.WARNING
        finally:
            router.flush_and_close()
