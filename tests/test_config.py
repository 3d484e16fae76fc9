"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from bidbase.core.config import ConfigError, load_app_config, validate_app_config_file
from bidbase.core.config.loader import ENV_OVERRIDES


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


def write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "app.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_file_gives_defaults(tmp_path):
    config = load_app_config(tmp_path / "absent.yaml")

    assert config.database.url == "sqlite:///data/bidbase.db"
    assert config.sync.page_size == 100
    assert config.sync.error_sample_limit == 10
    assert config.feed.retry.max_attempts == 3
    assert config.feed.api_key is None


def test_values_loaded(tmp_path):
    path = write(tmp_path, """
database:
  url: sqlite:///tmp/test.db
sync:
  page_size: 250
  max_workers: 4
feed:
  base_url: https://feed.example.gov.za/v2
  retry:
    max_attempts: 5
logging:
  level: debug
""")
    config = load_app_config(path)

    assert config.database.url == "sqlite:///tmp/test.db"
    assert config.sync.page_size == 250
    assert config.sync.max_workers == 4
    assert config.feed.base_url == "https://feed.example.gov.za/v2"
    assert config.feed.retry.max_attempts == 5
    assert config.logging.level == "DEBUG"


def test_env_references_expanded(tmp_path, monkeypatch):
    monkeypatch.setenv("FEED_TOKEN", "abc123")
    monkeypatch.delenv("FEED_BASE", raising=False)
    path = write(tmp_path, """
feed:
  api_key: ${FEED_TOKEN}
  base_url: ${FEED_BASE:-https://fallback.example/v1}
""")
    config = load_app_config(path)

    assert config.feed.api_key == "abc123"
    assert config.feed.base_url == "https://fallback.example/v1"


def test_unset_env_reference_is_no_key(tmp_path):
    path = write(tmp_path, "feed:\n  api_key: ${BIDBASE_UNSET_TOKEN:-}\n")
    assert load_app_config(path).feed.api_key is None


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/bidbase")
    monkeypatch.setenv("OCDS_API_KEY", "from-env")
    monkeypatch.setenv("LOG_LEVEL", "warning")
    path = write(tmp_path, "database:\n  url: sqlite:///file.db\n")

    config = load_app_config(path)

    assert config.database.url == "postgresql://u:p@db/bidbase"
    assert config.feed.api_key == "from-env"
    assert config.logging.level == "WARNING"


def test_env_disabled(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/bidbase")
    path = write(tmp_path, "database:\n  url: sqlite:///file.db\n")

    assert load_app_config(path, expand_env=False).database.url == "sqlite:///file.db"


def test_invalid_yaml(tmp_path):
    path = write(tmp_path, "database: [unclosed\n")

    with pytest.raises(ConfigError) as exc_info:
        load_app_config(path)
    assert exc_info.value.path == path
    assert exc_info.value.details


def test_non_mapping_top_level(tmp_path):
    with pytest.raises(ConfigError):
        load_app_config(write(tmp_path, "- just\n- a list\n"))


@pytest.mark.parametrize(
    "text",
    [
        "sync:\n  page_size: 0\n",
        "sync:\n  max_workers: 100\n",
        "logging:\n  level: chatty\n",
        "api:\n  port: 70000\n",
    ],
)
def test_invalid_values(tmp_path, text):
    with pytest.raises(ConfigError, match="Invalid app configuration"):
        load_app_config(write(tmp_path, text))


def test_validate_file(tmp_path):
    assert validate_app_config_file(write(tmp_path, "sync:\n  page_size: 10\n")) == []

    errors = validate_app_config_file(write(tmp_path, "sync:\n  page_size: -1\n"))
    assert len(errors) == 1
    assert errors[0].startswith("sync.page_size")


def test_validate_missing_file(tmp_path):
    errors = validate_app_config_file(tmp_path / "absent.yaml")
    assert errors and "not found" in errors[0]


def test_ensure_directories(tmp_path):
    config = load_app_config(tmp_path / "absent.yaml")
    config.config_dir = tmp_path / "configs"
    config.data_dir = tmp_path / "data"
    config.logging.file = tmp_path / "logs" / "bidbase.log"

    config.ensure_directories()

    assert (tmp_path / "configs").is_dir()
    assert (tmp_path / "data").is_dir()
    assert (tmp_path / "logs").is_dir()
