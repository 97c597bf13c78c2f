"""
Unit Tests for Configuration Management.

Black box tests against the public interface of config.py.
Tests run against the real project files (YAML configs).
Failure scenarios use tmp_path to create controlled filesystems.
"""

import shutil

import pytest

from crm_erp.core.config import (
    AppConfig,
    find_project_root,
    get_app_config,
    get_database_url,
    get_redis_url,
    get_settings,
    load_yaml_config,
    validate_project_root,
)
from crm_erp.core.config_schema import (
    ConsumerConfigSchema,
    ErpSchema,
    EventsSchema,
)


@pytest.fixture(autouse=True)
def _clear_config_cache():
    """Clear lru_cache between tests so each test gets a fresh load."""
    get_settings.cache_clear()
    get_app_config.cache_clear()
    yield
    get_settings.cache_clear()
    get_app_config.cache_clear()


def _copy_config(tmp_path, monkeypatch):
    """Copy the real config tree into tmp_path and make it the project root."""
    root = find_project_root()
    (tmp_path / ".project_root").touch()
    shutil.copytree(root / "config" / "settings", tmp_path / "config" / "settings")
    monkeypatch.chdir(tmp_path)
    return tmp_path / "config" / "settings"


class TestFindProjectRoot:
    def test_finds_root_from_project_directory(self):
        root = find_project_root()
        assert (root / ".project_root").exists()
        assert (root / "config" / "settings").is_dir()

    def test_raises_when_no_marker_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(RuntimeError, match="Project root not found"):
            find_project_root()

    def test_validate_exits_when_marker_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit):
            validate_project_root()


class TestLoadYamlConfig:
    def test_loads_events_yaml_as_dict(self):
        data = load_yaml_config("events.yaml")
        assert "erp_processor" in data["consumers"]

    def test_raises_for_nonexistent_file(self):
        with pytest.raises(FileNotFoundError):
            load_yaml_config("nonexistent.yaml")

    def test_returns_empty_dict_for_empty_yaml(self, tmp_path, monkeypatch):
        settings_dir = _copy_config(tmp_path, monkeypatch)
        (settings_dir / "empty.yaml").write_text("")

        assert load_yaml_config("empty.yaml") == {}


class TestAppConfig:
    def test_loads_every_section(self):
        config = get_app_config()

        assert config.application.name
        assert config.database.driver
        assert config.logging.level
        assert isinstance(config.events, EventsSchema)
        assert isinstance(config.erp, ErpSchema)
        assert config.observability.health_checks.ready_timeout_seconds > 0

    def test_erp_processor_consumer_defaults(self):
        consumer = get_app_config().consumer("erp_processor")

        assert isinstance(consumer, ConsumerConfigSchema)
        assert consumer.stream == get_app_config().events.streams.user_created
        assert consumer.malformed_policy == "retry"
        assert consumer.invalid_policy == "drop"
        assert consumer.batch_size >= 1

    def test_unknown_consumer_raises_key_error(self):
        with pytest.raises(KeyError, match="not configured"):
            get_app_config().consumer("nope")

    def test_unknown_key_is_rejected(self, tmp_path, monkeypatch):
        settings_dir = _copy_config(tmp_path, monkeypatch)
        with open(settings_dir / "erp.yaml", "a") as f:
            f.write("\nunexpected_key: 1\n")

        with pytest.raises(ValueError, match="erp.yaml"):
            AppConfig()

    def test_invalid_policy_is_rejected(self, tmp_path, monkeypatch):
        settings_dir = _copy_config(tmp_path, monkeypatch)
        events = settings_dir / "events.yaml"
        events.write_text(events.read_text().replace("invalid_policy: drop", "invalid_policy: ignore"))

        with pytest.raises(ValueError, match="events.yaml"):
            AppConfig()

    def test_publishing_without_broker_is_rejected(self, tmp_path, monkeypatch):
        settings_dir = _copy_config(tmp_path, monkeypatch)
        features = settings_dir / "features.yaml"
        features.write_text(features.read_text().replace("events_enabled: true", "events_enabled: false"))

        with pytest.raises(ValueError, match="features.yaml"):
            AppConfig()

    def test_reclaim_settings_loaded(self):
        reclaim = get_app_config().consumer("erp_processor").reclaim

        assert reclaim.enabled is True
        assert reclaim.max_deliveries >= 1
        assert reclaim.interval_seconds > 0

    def test_get_app_config_is_cached(self):
        assert get_app_config() is get_app_config()


class TestConnectionUrls:
    def test_database_url_uses_yaml_settings(self):
        db = get_app_config().database
        url = get_database_url()

        assert url.startswith(f"{db.driver}://{db.user}:")
        assert url.endswith(f"@{db.host}:{db.port}/{db.name}")

    def test_sqlite_database_url(self, tmp_path, monkeypatch):
        settings_dir = _copy_config(tmp_path, monkeypatch)
        database = settings_dir / "database.yaml"
        database.write_text(
            database.read_text()
            .replace("driver: postgresql+asyncpg", "driver: sqlite+aiosqlite")
            .replace("name: crm_erp", "name: crm_erp.db")
        )

        assert get_database_url() == "sqlite+aiosqlite:///crm_erp.db"

    def test_redis_url(self):
        redis = get_app_config().database.redis
        url = get_redis_url()

        assert url.startswith("redis://:")
        assert url.endswith(f"@{redis.host}:{redis.port}/{redis.db}")
