# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Settings for ci-job-log.

Resolution order (later wins):
  - built-in defaults (below)
  - YAML file: $CI_JOB_LOG_CONFIG, else ~/.config/ci-job-log/config.yaml
  - environment: GITLAB_URL, GITLAB_TOKEN, CI_JOB_LOG_POLL_INTERVAL_S
  - explicit overrides (CLI flags)

Example config.yaml:

    gitlab_url: https://gitlab.example.com
    poll_interval_s: 5
    double_underline: true
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from common_gitlab import DEFAULT_GITLAB_URL

from .refresher import DEFAULT_INITIAL_DELAY_S, DEFAULT_POLL_INTERVAL_S

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobLogSettings:
    gitlab_url: str = DEFAULT_GITLAB_URL
    token: Optional[str] = None
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    initial_delay_s: float = DEFAULT_INITIAL_DELAY_S
    http_timeout_s: float = 10.0
    double_underline: bool = False

    def with_overrides(self, **overrides: Any) -> "JobLogSettings":
        """Apply non-None overrides (e.g. CLI flags)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def default_config_path() -> Path:
    override = os.environ.get("CI_JOB_LOG_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "ci-job-log" / "config.yaml"


def _coerce(value: Any, default: Any) -> Any:
    if value is None:
        return None
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def _from_mapping(base: JobLogSettings, data: Mapping[str, Any], *, source: str) -> JobLogSettings:
    known = {f.name: getattr(base, f.name) for f in fields(JobLogSettings)}
    updates: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            _logger.warning("Ignoring unknown setting %r in %s", key, source)
            continue
        try:
            updates[key] = _coerce(value, known[key])
        except (TypeError, ValueError):
            _logger.warning("Ignoring invalid value for %r in %s: %r", key, source, value)
    return replace(base, **updates)


def load_yaml_settings(path: Path, base: Optional[JobLogSettings] = None) -> JobLogSettings:
    settings = base or JobLogSettings()
    if not path.exists():
        return settings
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        _logger.warning("Could not read %s (%s); using defaults", path, e)
        return settings
    if not isinstance(data, dict):
        _logger.warning("Expected a mapping in %s; using defaults", path)
        return settings
    return _from_mapping(settings, data, source=str(path))


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> JobLogSettings:
    env = os.environ if environ is None else environ
    settings = load_yaml_settings(config_path or default_config_path())

    from_env: Dict[str, Any] = {}
    if env.get("GITLAB_URL"):
        from_env["gitlab_url"] = env["GITLAB_URL"]
    if env.get("GITLAB_TOKEN"):
        from_env["token"] = env["GITLAB_TOKEN"]
    if env.get("CI_JOB_LOG_POLL_INTERVAL_S"):
        from_env["poll_interval_s"] = env["CI_JOB_LOG_POLL_INTERVAL_S"]
    settings = _from_mapping(settings, from_env, source="environment")

    return settings.with_overrides(**overrides)
