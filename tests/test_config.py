import json
from pathlib import Path

import pytest

from cdda_backup.config import (
    DEFAULT_CONFIG,
    Config,
    ConfigurationError,
    Settings,
)


def test_missing_file_is_created_with_defaults(tmp_path):
    path = tmp_path / "cfg" / "config.json"
    cfg = Config(path)
    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == DEFAULT_CONFIG
    assert cfg.backup_folder_name == "Backups"
    assert not cfg.is_configured()


def test_stored_values_merge_over_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"save_directory": "/games/cdda/save"}), encoding="utf-8")
    cfg = Config(path)
    assert cfg.save_directory == "/games/cdda/save"
    assert cfg.grace_period == DEFAULT_CONFIG["grace_period_seconds"]
    assert cfg.timestamp_format == DEFAULT_CONFIG["timestamp_format"]


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_unreadable_config_falls_back_to_defaults(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")
    cfg = Config(path)
    assert cfg.save_directory == ""
    assert cfg.poll_interval == DEFAULT_CONFIG["poll_interval_seconds"]


def test_save_round_trips(tmp_path):
    path = tmp_path / "config.json"
    cfg = Config(path)
    cfg.save_directory = str(tmp_path)
    cfg.grace_period = 2.5
    cfg.save()
    assert Config(path).grace_period == 2.5
    assert Config(path).save_directory == str(tmp_path)


def test_setters_clamp(tmp_path):
    cfg = Config(tmp_path / "config.json")
    cfg.grace_period = -3
    cfg.poll_interval = 0
    cfg.max_log_size_mb = 0
    cfg.log_level = "debug"
    assert cfg.grace_period == 0.0
    assert cfg.poll_interval == 0.05
    assert cfg.max_log_size_mb == 1
    assert cfg.log_level == "DEBUG"


def test_to_settings_requires_save_directory(tmp_path):
    cfg = Config(tmp_path / "config.json")
    with pytest.raises(ConfigurationError, match="save_directory"):
        cfg.to_settings()


def test_to_settings_rejects_bad_timing(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"save_directory": str(tmp_path), "poll_interval_seconds": "fast"}),
        encoding="utf-8",
    )
    with pytest.raises(ConfigurationError):
        Config(path).to_settings()


def test_to_settings_resolves_values(tmp_path):
    cfg = Config(tmp_path / "config.json")
    cfg.save_directory = str(tmp_path)
    cfg.backup_folder_name = "Snapshots"
    cfg.grace_period = 1.0
    settings = cfg.to_settings()
    assert settings.watched_root == tmp_path.resolve()
    assert settings.backup_directory == tmp_path.resolve() / "Snapshots"
    assert settings.grace_period == 1.0


def test_backup_directory_is_derived():
    settings = Settings(watched_root=Path("/games/save"), backup_folder_name="Backups")
    assert settings.backup_directory == Path("/games/save/Backups")
    with pytest.raises(AttributeError):
        settings.backup_folder_name = "Other"  # type: ignore[misc]
