"""Unit tests for SettingsManager."""

import os
import tempfile
from pathlib import Path

import pytest

from pagepal.services import RetrieverConfig, SettingsManager
from pagepal.services.settings_manager import DEFAULT_USER_AGENT

ENV_NAMES = (
    "PAGEPAL_LIBRARY_DIR",
    "PAGEPAL_DB_PATH",
    "PAGEPAL_USER_AGENT",
    "PAGEPAL_REQUEST_DELAY_MS",
    "PAGEPAL_TIMEOUT",
    "PAGEPAL_MAX_RETRIES",
    "PAGEPAL_CONCURRENCY",
)


@pytest.fixture
def temp_env_dir():
    """Provide a temporary directory for .env files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env():
    """Remove PAGEPAL_* variables before the test and restore them after."""
    saved = {name: os.environ.pop(name, None) for name in ENV_NAMES}
    yield
    for name, value in saved.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


def write_env(directory, **values):
    lines = [f"PAGEPAL_{name.upper()}={value}" for name, value in values.items()]
    (directory / ".env").write_text("\n".join(lines) + "\n")


class TestDefaults:
    def test_missing_env_file_uses_defaults(self, temp_env_dir, clean_env):
        settings = SettingsManager(project_root=temp_env_dir)

        assert settings.get_library_dir() == temp_env_dir / "library"
        assert settings.get_db_path() == temp_env_dir / "library" / "pagepal.db"
        assert settings.get_user_agent() == DEFAULT_USER_AGENT
        assert settings.retriever_config() == RetrieverConfig()

    def test_blank_values_fall_back(self, temp_env_dir, clean_env):
        write_env(temp_env_dir, user_agent="   ", library_dir="")
        settings = SettingsManager(project_root=temp_env_dir)

        assert settings.get_user_agent() == DEFAULT_USER_AGENT
        assert settings.get_library_dir() == temp_env_dir / "library"


class TestEnvFile:
    def test_values_are_read_from_env_file(self, temp_env_dir, clean_env):
        write_env(
            temp_env_dir,
            library_dir="/srv/books",
            user_agent="pagepal/1.0",
            request_delay_ms=250,
            timeout=5.5,
            max_retries=6,
            concurrency=3,
        )
        settings = SettingsManager(project_root=temp_env_dir)

        assert settings.get_library_dir() == Path("/srv/books")
        assert settings.get_db_path() == Path("/srv/books/pagepal.db")
        assert settings.retriever_config() == RetrieverConfig(
            user_agent="pagepal/1.0", delay=0.25, timeout=5.5, max_retries=6, concurrency=3
        )

    def test_explicit_db_path(self, temp_env_dir, clean_env):
        write_env(temp_env_dir, db_path="/tmp/other.db")
        assert SettingsManager(project_root=temp_env_dir).get_db_path() == Path("/tmp/other.db")

    def test_process_environment_wins_over_env_file(self, temp_env_dir, clean_env):
        write_env(temp_env_dir, concurrency=3)
        os.environ["PAGEPAL_CONCURRENCY"] = "12"

        assert SettingsManager(project_root=temp_env_dir).get_concurrency() == 12

    def test_reload_env_picks_up_changes(self, temp_env_dir, clean_env):
        write_env(temp_env_dir, request_delay_ms=100)
        settings = SettingsManager(project_root=temp_env_dir)
        assert settings.get_request_delay() == 0.1

        write_env(temp_env_dir, request_delay_ms=1000)
        settings.reload_env()
        assert settings.get_request_delay() == 1.0


class TestMalformedValues:
    def test_malformed_numbers_use_defaults(self, temp_env_dir, clean_env):
        write_env(temp_env_dir, timeout="soon", request_delay_ms="1.5")
        settings = SettingsManager(project_root=temp_env_dir)

        assert settings.get_timeout() == 20.0
        assert settings.get_request_delay() == 0.1

    def test_negative_numbers_use_defaults(self, temp_env_dir, clean_env):
        write_env(temp_env_dir, concurrency=-4, timeout=-1)
        settings = SettingsManager(project_root=temp_env_dir)

        assert settings.get_concurrency() == 8
        assert settings.get_timeout() == 20.0

    def test_zero_retries_are_raised_to_one(self, temp_env_dir, clean_env):
        write_env(temp_env_dir, max_retries=0, concurrency=0)
        settings = SettingsManager(project_root=temp_env_dir)

        assert settings.get_max_retries() == 1
        assert settings.get_concurrency() == 1
