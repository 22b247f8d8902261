"""Tests for the versioned settings record and its persistence."""

import json

import pytest

from supersearch.core.errors import ConfigurationError
from supersearch.core.settings import (
    SETTINGS_VERSION,
    SettingsManager,
    SuperSearchSettings,
    parse_settings,
)


class TestSuperSearchSettings:

    def test_defaults(self):
        settings = SuperSearchSettings()
        assert settings.version == SETTINGS_VERSION
        assert settings.database_url == ""
        assert settings.excluded_directories == []
        assert settings.last_run_timestamp == 0
        assert settings.text_batch_size == 10
        assert settings.pdf_concurrency == 1
        assert settings.pdf_batch_size == 10

    def test_excluded_directories_from_comma_separated_text(self):
        settings = SuperSearchSettings(excluded_directories=" private, archive/old ,, ")
        assert settings.excluded_directories == ["private", "archive/old"]

    @pytest.mark.parametrize("field", ["text_batch_size", "pdf_concurrency", "pdf_batch_size"])
    def test_sizes_must_be_positive(self, field):
        with pytest.raises(ConfigurationError):
            parse_settings({"version": 1, field: 0})

    def test_future_version_rejected(self):
        with pytest.raises(ConfigurationError, match="unsupported settings version"):
            parse_settings({"version": SETTINGS_VERSION + 1})

    def test_legacy_blob_is_migrated(self):
        settings = parse_settings({
            "databaseURL": "postgres://localhost/pgml",
            "excludedDirectories": ["private"],
            "lastEmbeddedingTime": 1234,
            "textEmbedBatchSize": 5,
            "pdfConcurrentProcessSize": 2,
            "pdfEmbedBatchSize": 20,
        })
        assert settings.version == SETTINGS_VERSION
        assert settings.database_url == "postgres://localhost/pgml"
        assert settings.excluded_directories == ["private"]
        assert settings.last_run_timestamp == 1234
        assert settings.text_batch_size == 5
        assert settings.pdf_concurrency == 2
        assert settings.pdf_batch_size == 20

    def test_pipeline_config(self):
        settings = SuperSearchSettings(model_name="m", splitter_parameters='{"a": 1}')
        config = settings.pipeline_config()
        assert config.model_name == "m"
        assert config.splitter_parameters == '{"a": 1}'


class TestSettingsManager:

    def test_missing_file_gives_defaults(self, tmp_path):
        manager = SettingsManager(tmp_path)
        assert manager.settings.text_batch_size == 10
        assert manager.settings.collection_name == tmp_path.resolve().name

    def test_set_persists_and_reloads(self, tmp_path):
        manager = SettingsManager(tmp_path)
        manager.set("pdf_concurrency", "3")
        manager.set("excluded_directories", "a, b")

        reloaded = SettingsManager(tmp_path)
        assert reloaded.settings.pdf_concurrency == 3
        assert reloaded.settings.excluded_directories == ["a", "b"]
        stored = json.loads(manager.config_file.read_text())
        assert stored["version"] == SETTINGS_VERSION

    def test_invalid_value_is_rejected_and_not_saved(self, tmp_path):
        manager = SettingsManager(tmp_path)
        with pytest.raises(ConfigurationError):
            manager.set("text_batch_size", "-1")
        assert manager.settings.text_batch_size == 10
        assert not manager.config_file.exists()

    def test_unknown_key(self, tmp_path):
        manager = SettingsManager(tmp_path)
        with pytest.raises(ConfigurationError, match="Unknown setting"):
            manager.set("colour", "blue")
        with pytest.raises(ConfigurationError):
            manager.get("colour")

    def test_reset(self, tmp_path):
        manager = SettingsManager(tmp_path)
        manager.set("pdf_batch_size", "42")
        manager.reset("pdf_batch_size")
        assert SettingsManager(tmp_path).settings.pdf_batch_size == 10

    def test_malformed_file_blocks_load(self, tmp_path):
        (tmp_path / ".supersearch").mkdir()
        (tmp_path / ".supersearch" / "settings.json").write_text("{broken")
        with pytest.raises(ConfigurationError):
            SettingsManager(tmp_path)

    def test_invalid_content_blocks_load(self, tmp_path):
        (tmp_path / ".supersearch").mkdir()
        (tmp_path / ".supersearch" / "settings.json").write_text(
            json.dumps({"version": 1, "pdf_concurrency": "many"})
        )
        with pytest.raises(ConfigurationError):
            SettingsManager(tmp_path)

    def test_environment_overrides_database_url(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SUPERSEARCH_DATABASE_URL", "postgres://env/pgml")
        assert SettingsManager(tmp_path).settings.database_url == "postgres://env/pgml"

    def test_environment_database_url_is_never_saved(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SUPERSEARCH_DATABASE_URL", "postgres://user:secret@db/pgml")
        manager = SettingsManager(tmp_path)
        manager.set("text_batch_size", "5")
        manager.advance_watermark(42)

        stored = json.loads(manager.config_file.read_text())
        assert stored["database_url"] == ""
        assert stored["text_batch_size"] == 5
        assert manager.settings.database_url == "postgres://user:secret@db/pgml"

    def test_environment_keeps_stored_database_url_on_disk(self, tmp_path, monkeypatch):
        manager = SettingsManager(tmp_path)
        manager.set("database_url", "postgres://localhost/pgml")

        monkeypatch.setenv("SUPERSEARCH_DATABASE_URL", "postgres://env/pgml")
        overridden = SettingsManager(tmp_path)
        overridden.reset("pdf_batch_size")

        stored = json.loads(overridden.config_file.read_text())
        assert stored["database_url"] == "postgres://localhost/pgml"

    def test_explicit_database_url_is_saved_under_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SUPERSEARCH_DATABASE_URL", "postgres://env/pgml")
        manager = SettingsManager(tmp_path)
        manager.set("database_url", "postgres://vault/pgml")

        stored = json.loads(manager.config_file.read_text())
        assert stored["database_url"] == "postgres://vault/pgml"

    def test_advance_watermark(self, tmp_path):
        manager = SettingsManager(tmp_path)
        manager.advance_watermark(99)
        assert SettingsManager(tmp_path).settings.last_run_timestamp == 99

    def test_validate_reports_missing_database_and_bad_parameters(self, tmp_path):
        manager = SettingsManager(tmp_path)
        manager.set("model_parameters", "{oops")

        validation = manager.validate()

        assert not validation["valid"]
        assert "database_url not set" in validation["issues"]
        assert any("model_parameters" in issue for issue in validation["issues"])

    def test_validate_ok(self, tmp_path):
        manager = SettingsManager(tmp_path)
        manager.set("database_url", "postgres://localhost/pgml")
        assert manager.validate()["valid"]
