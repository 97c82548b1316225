import os
import pytest
from unittest.mock import patch
from repotracker.config import Config, get_config

CONFIG_VARS = ("GITHUB_TOKEN", "DATABASE_URL", "GITHUB_PER_PAGE", "GITHUB_TIMEOUT",
               "SYNC_STALE_HOURS", "LOG_LEVEL", "LOG_DIR")


@pytest.fixture
def mock_env_vars(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("GITHUB_PER_PAGE", "50")
    monkeypatch.setenv("GITHUB_TIMEOUT", "5")
    monkeypatch.setenv("SYNC_STALE_HOURS", "12")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_DIR", "/tmp/repotracker-logs")


def test_config_loads_from_env(mock_env_vars):
    config = get_config()
    assert config.github_token == "ghp_test"
    assert config.database_url == "sqlite:///:memory:"
    assert config.github_per_page == 50
    assert config.github_timeout == 5
    assert config.sync_stale_hours == 12
    assert config.log_level == "DEBUG"
    assert config.log_dir == "/tmp/repotracker-logs"


@patch.dict(os.environ, {}, clear=True)
def test_config_default_values():
    config = get_config(load_env=False)
    assert config.github_token is None
    assert config.database_url == "sqlite:///repotracker.db"
    assert config.github_api_url == "https://api.github.com"
    assert config.github_per_page == 100
    assert config.github_timeout == 15
    assert config.sync_stale_hours == 24
    assert config.log_level == "INFO"
    assert config.log_dir == "logs"


@patch.dict(os.environ, {"GITHUB_TOKEN": "", "LOG_DIR": ""}, clear=True)
def test_config_empty_values_mean_unset():
    config = Config(load_env=False)
    assert config.github_token is None
    assert config.log_dir is None


@patch.dict(os.environ, {"GITHUB_PER_PAGE": "lots"}, clear=True)
def test_config_rejects_non_integer_page_size():
    with pytest.raises(ValueError):
        Config(load_env=False)
