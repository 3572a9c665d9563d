"""
Pytest tests for ci_job_log/config.py.

Run from the repository root:
    pytest ci_job_log/test_config.py -v
"""

import sys
from pathlib import Path

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from ci_job_log.config import JobLogSettings, default_config_path, load_settings, load_yaml_settings
from ci_job_log.refresher import DEFAULT_POLL_INTERVAL_S
from common_gitlab import DEFAULT_GITLAB_URL


def test_defaults_without_file(tmp_path):
    settings = load_settings(tmp_path / "missing.yaml", environ={})
    assert settings == JobLogSettings()
    assert settings.gitlab_url == DEFAULT_GITLAB_URL
    assert settings.poll_interval_s == DEFAULT_POLL_INTERVAL_S


def test_yaml_values(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("gitlab_url: https://gitlab.example.com\npoll_interval_s: 5\ndouble_underline: yes\n")

    settings = load_settings(path, environ={})

    assert settings.gitlab_url == "https://gitlab.example.com"
    assert settings.poll_interval_s == 5.0
    assert settings.double_underline is True


def test_environment_overrides_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("gitlab_url: https://from-yaml\npoll_interval_s: 5\n")

    settings = load_settings(
        path,
        environ={"GITLAB_URL": "https://from-env", "GITLAB_TOKEN": "glpat-x", "CI_JOB_LOG_POLL_INTERVAL_S": "1.5"},
    )

    assert settings.gitlab_url == "https://from-env"
    assert settings.token == "glpat-x"
    assert settings.poll_interval_s == 1.5


def test_explicit_overrides_win(tmp_path):
    settings = load_settings(
        tmp_path / "missing.yaml",
        environ={"GITLAB_URL": "https://from-env"},
        gitlab_url="https://from-cli",
        poll_interval_s=None,
    )
    assert settings.gitlab_url == "https://from-cli"
    assert settings.poll_interval_s == DEFAULT_POLL_INTERVAL_S


def test_unknown_and_invalid_keys_are_ignored(tmp_path, caplog):
    path = tmp_path / "config.yaml"
    path.write_text("colour: blue\npoll_interval_s: often\n")

    settings = load_yaml_settings(path)

    assert settings == JobLogSettings()
    assert "colour" in caplog.text
    assert "poll_interval_s" in caplog.text


def test_broken_yaml_falls_back_to_defaults(tmp_path, caplog):
    path = tmp_path / "config.yaml"
    path.write_text("gitlab_url: [unterminated\n")

    assert load_yaml_settings(path) == JobLogSettings()
    assert "Could not read" in caplog.text


def test_non_mapping_yaml_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n")
    assert load_yaml_settings(path) == JobLogSettings()


def test_default_config_path_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CI_JOB_LOG_CONFIG", str(tmp_path / "custom.yaml"))
    assert default_config_path() == tmp_path / "custom.yaml"

    monkeypatch.delenv("CI_JOB_LOG_CONFIG")
    assert default_config_path().parts[-3:] == (".config", "ci-job-log", "config.yaml")
