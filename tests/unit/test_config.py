"""Tests for CacheSettings."""

from datetime import timezone
from pathlib import Path

import pydantic
import pytest

from litecache.core.config import EVERY_MINUTE, MB, CacheSettings


class TestDefaults:
    """Default values applied when nothing is overridden."""

    def test_defaults(self, tmp_path):
        settings = CacheSettings(path=str(tmp_path))

        assert settings.name == "litecache"
        assert settings.sync_interval == EVERY_MINUTE
        assert settings.timezone == "UTC"
        assert settings.purge_percent == 0.2
        assert settings.purge_timeout == 30.0
        assert settings.page_size == 4096
        assert settings.cache_size == 64 * MB
        assert settings.max_db_size == 128 * MB

    def test_derived_sizes(self, tmp_path):
        settings = CacheSettings(path=str(tmp_path))

        assert settings.cache_size_pages == 64 * MB // 4096
        assert settings.max_page_count == 128 * MB // 4096

    def test_utc_tzinfo(self, tmp_path):
        settings = CacheSettings(path=str(tmp_path))
        assert settings.tzinfo is timezone.utc

    def test_named_timezone(self, tmp_path):
        settings = CacheSettings(path=str(tmp_path), timezone="America/Sao_Paulo")
        assert str(settings.tzinfo) == "America/Sao_Paulo"


class TestDatabasePath:
    """Location of the database file."""

    def test_creates_missing_directory(self, tmp_path):
        target = tmp_path / "nested" / "dir"
        settings = CacheSettings(path=str(target), name="sessions")

        assert settings.database_path == target / "sessions_cache.db"
        assert target.is_dir()

    def test_defaults_to_working_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = CacheSettings()

        assert settings.database_path == Path(tmp_path) / "litecache_cache.db"


class TestValidation:
    """Settings rejected before any I/O."""

    @pytest.mark.parametrize("value", [-0.1, 1.5])
    def test_purge_percent_out_of_range(self, value):
        with pytest.raises(pydantic.ValidationError):
            CacheSettings(purge_percent=value)

    @pytest.mark.parametrize("value", [0.0, 1.0])
    def test_purge_percent_bounds_allowed(self, value):
        assert CacheSettings(purge_percent=value).purge_percent == value

    @pytest.mark.parametrize("value", [0, 256, 1000, 131072])
    def test_invalid_page_size(self, value):
        with pytest.raises(pydantic.ValidationError, match="page_size"):
            CacheSettings(page_size=value)

    def test_cache_size_smaller_than_page(self):
        with pytest.raises(pydantic.ValidationError, match="cache_size"):
            CacheSettings(page_size=4096, cache_size=1024)

    def test_zero_sizes_allowed(self):
        settings = CacheSettings(cache_size=0, max_db_size=0)
        assert settings.cache_size == 0
        assert settings.max_db_size == 0

    def test_purge_timeout_must_be_positive(self):
        with pytest.raises(pydantic.ValidationError):
            CacheSettings(purge_timeout=0)

    @pytest.mark.parametrize("value", ["* * *", "* * * * * * *"])
    def test_invalid_sync_interval(self, value):
        with pytest.raises(pydantic.ValidationError, match="cron fields"):
            CacheSettings(sync_interval=value)

    @pytest.mark.parametrize("value", ["99 * * * *", "* 25 * * *", "*/0 * * * *", "* * * 13 *", "61 * * * * *", "* * * * fooday"])
    def test_out_of_range_sync_interval(self, value):
        with pytest.raises(pydantic.ValidationError, match="invalid sync_interval"):
            CacheSettings(sync_interval=value)

    def test_six_field_sync_interval(self):
        assert CacheSettings(sync_interval="*/10 * * * * *").sync_interval == "*/10 * * * * *"

    def test_unknown_timezone(self):
        with pytest.raises(pydantic.ValidationError, match="timezone"):
            CacheSettings(timezone="Mars/Olympus_Mons")

    def test_unknown_field(self):
        with pytest.raises(pydantic.ValidationError):
            CacheSettings(not_a_setting=True)

    def test_log_level_normalized(self):
        assert CacheSettings(log_level="debug").log_level == "DEBUG"


class TestEnvironment:
    """LITECACHE_* environment overrides."""

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("LITECACHE_PURGE_PERCENT", "0.5")
        monkeypatch.setenv("LITECACHE_NAME", "fromenv")

        settings = CacheSettings()

        assert settings.purge_percent == 0.5
        assert settings.name == "fromenv"

    def test_explicit_value_beats_env(self, monkeypatch):
        monkeypatch.setenv("LITECACHE_PURGE_PERCENT", "0.5")
        assert CacheSettings(purge_percent=0.1).purge_percent == 0.1

    def test_frozen(self):
        settings = CacheSettings()
        with pytest.raises(pydantic.ValidationError):
            settings.purge_percent = 0.9
