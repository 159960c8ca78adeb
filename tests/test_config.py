"""Tests for configuration loading and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from agentloop.config import loader
from agentloop.config.loader import load_configuration
from agentloop.config.schema import Configuration, LoggingConfig, MCPServerConfig
from agentloop.constants import LOG_LEVEL_ENV_VAR
from agentloop.exceptions import ConfigurationError, ValidationError
from agentloop.utils.logging import setup_logging


@pytest.fixture
def system_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the system config at a temp file and clear env overrides."""
    path = tmp_path / "system" / "config.toml"
    path.parent.mkdir()
    monkeypatch.setattr(loader, "get_system_config_path", lambda: path)
    # setenv first so teardown removes anything a .env file loads
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "")
    monkeypatch.delenv(LOG_LEVEL_ENV_VAR)
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / ".agentloop").mkdir(parents=True)
    return root


def _write_project(project: Path, text: str) -> None:
    (project / ".agentloop" / "config.toml").write_text(text)


def test_defaults_without_files(system_config: Path, project: Path) -> None:
    config = load_configuration(project)

    assert config.memory_size == 10
    assert config.max_tool_rounds == 25
    assert config.logging.level == "INFO"
    assert config.cwd == project


def test_project_overrides_system(system_config: Path, project: Path) -> None:
    system_config.write_text(
        "[orchestrator]\nmemory_size = 4\nmax_tool_rounds = 7\n\n[logging]\nlevel = \"debug\"\n",
    )
    _write_project(project, "[orchestrator]\nmax_tool_rounds = 2\n")

    config = load_configuration(project)

    assert config.memory_size == 4
    assert config.max_tool_rounds == 2
    assert config.logging.level == "DEBUG"


def test_environment_overrides_files(
    system_config: Path,
    project: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _write_project(project, "[logging]\nlevel = \"DEBUG\"\n")
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "warning")

    assert load_configuration(project).logging.level == "WARNING"


def test_dotenv_file_is_loaded(system_config: Path, project: Path) -> None:
    (project / ".env").write_text(f"{LOG_LEVEL_ENV_VAR}=ERROR\n")

    assert load_configuration(project).logging.level == "ERROR"


def test_invalid_toml_is_skipped(
    system_config: Path,
    project: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    _write_project(project, "[orchestrator\nmemory_size = ")

    with caplog.at_level(logging.WARNING, logger="agentloop.config.loader"):
        config = load_configuration(project)

    assert config.memory_size == 10
    assert "Skipping invalid project config" in caplog.text


@pytest.mark.parametrize(
    "text",
    [
        "[orchestrator]\nmemory_size = 0\n",
        "[logging]\nlevel = \"verbose\"\n",
        "[mcp_servers.quotes]\nenabled = true\n",
    ],
)
def test_invalid_values_raise(system_config: Path, project: Path, text: str) -> None:
    _write_project(project, text)

    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_configuration(project)


def test_missing_mcp_working_directory_fails_validation(
    system_config: Path,
    project: Path,
) -> None:
    _write_project(
        project,
        "[mcp_servers.quotes]\ncommand = \"quotes-server\"\ncwd = \"/does/not/exist\"\n",
    )

    with pytest.raises(ConfigurationError, match="quotes"):
        load_configuration(project)


def test_mcp_server_needs_exactly_one_transport() -> None:
    with pytest.raises(ValidationError):
        MCPServerConfig(command="quotes-server", url="https://tools.example.com/sse")

    assert MCPServerConfig(url="https://tools.example.com/sse").command is None


def test_to_dict_is_json_friendly(tmp_path: Path) -> None:
    data = Configuration(cwd=tmp_path).to_dict()

    assert data["cwd"] == str(tmp_path)
    assert data["orchestrator"]["memory_size"] == 10


def test_setup_logging_configures_root() -> None:
    root = logging.getLogger()
    saved_level, saved_handlers = root.level, list(root.handlers)

    try:
        setup_logging(LoggingConfig(level="debug"))

        assert root.level == logging.DEBUG
        assert logging.getLogger("fastmcp").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
