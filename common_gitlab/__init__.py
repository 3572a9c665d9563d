# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitLab API clients for ci-job-log.

- `common_gitlab/` defines the synchronous `requests` client + shared stats helpers
- `common_gitlab/async_client.py` is the `aiohttp` client used for live polling
- `common_gitlab/projects.py` maps local repositories to GitLab projects
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from .exceptions import (
    GitLabAPIError,
    GitLabAuthError,
    GitLabForbiddenError,
    GitLabNotFoundError,
    GitLabProjectNotFoundError,
    GitLabRequestError,
    error_for_status,
)
from .models import (
    GitLabProject,
    JobInfo,
    JobTrace,
    etag_from_headers,
    job_endpoint,
    trace_endpoint,
)

_logger = logging.getLogger(__name__)

DEFAULT_GITLAB_URL = "https://gitlab.com"


# ======================================================================================
# GLOBAL API STATISTICS (GitLab)
# ======================================================================================


class _GitLabAPIStats:
    """Global singleton for tracking GitLab REST statistics across both clients."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.rest_calls_total = 0
        self.rest_calls_by_label: Dict[str, int] = {}
        self.rest_success_total = 0
        self.rest_not_modified_total = 0
        self.rest_time_total_s = 0.0
        self.rest_errors_total = 0
        self.rest_errors_by_status: Dict[int, int] = {}
        self.rest_last_error: Dict[str, Any] = {}

    def record(self, *, label: str, endpoint: str, status_code: Optional[int], dt_s: float) -> None:
        """Record one REST call (sync or async)."""
        lbl = str(label or "").strip() or "unknown"
        self.rest_calls_total += 1
        self.rest_calls_by_label[lbl] = int(self.rest_calls_by_label.get(lbl, 0) or 0) + 1
        self.rest_time_total_s += max(0.0, float(dt_s or 0.0))
        if status_code is None:
            return
        sc = int(status_code)
        if sc == 304:
            self.rest_not_modified_total += 1
        elif 200 <= sc < 300:
            self.rest_success_total += 1
        elif sc >= 400:
            self.rest_errors_total += 1
            self.rest_errors_by_status[sc] = int(self.rest_errors_by_status.get(sc, 0) or 0) + 1
            self.rest_last_error = {"status": sc, "endpoint": str(endpoint or ""), "label": lbl}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": int(self.rest_calls_total),
            "success_total": int(self.rest_success_total),
            "not_modified_total": int(self.rest_not_modified_total),
            "error_total": int(self.rest_errors_total),
            "time_total_s": float(self.rest_time_total_s),
            "by_label": dict(sorted(self.rest_calls_by_label.items(), key=lambda kv: (-int(kv[1] or 0), kv[0]))),
            "errors_by_status": dict(sorted(self.rest_errors_by_status.items())),
        }


GITLAB_API_STATS = _GitLabAPIStats()


def get_gitlab_token_from_file() -> Optional[str]:
    """Get GitLab token from `~/.config/gitlab-token` (best-effort)."""
    try:
        token_file = Path.home() / ".config" / "gitlab-token"
        if token_file.exists():
            return token_file.read_text().strip() or None
    except OSError:
        pass
    return None


def resolve_gitlab_token(token: Optional[str] = None) -> Optional[str]:
    # Token priority: 1) provided token, 2) environment variable, 3) config file
    return token or os.environ.get("GITLAB_TOKEN") or get_gitlab_token_from_file()


class GitLabAPIClient:
    """Synchronous GitLab REST API client.

    Used for one-shot fetches (CLI `show`, raw trace export). Live polling goes
    through `common_gitlab.async_client.AsyncGitLabAPIClient`.
    """

    def __init__(self, token: Optional[str] = None, base_url: str = DEFAULT_GITLAB_URL, *, timeout: int = 10):
        self.token = resolve_gitlab_token(token)
        self.base_url = str(base_url or DEFAULT_GITLAB_URL).rstrip("/")
        self.timeout = int(timeout)
        self.headers: Dict[str, str] = {}
        if self.token:
            self.headers["PRIVATE-TOKEN"] = self.token

    def _url(self, endpoint: str) -> str:
        ep = str(endpoint or "")
        return f"{self.base_url}{ep}" if ep.startswith("/") else f"{self.base_url}/{ep}"

    def _request(
        self,
        endpoint: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        etag: Optional[str] = None,
        label: Optional[str] = None,
    ) -> "requests.Response":
        """GET `endpoint`; returns the response for 2xx/304, raises otherwise."""
        ep = str(endpoint or "")
        lbl = str(label or "").strip() or "unknown"
        headers = dict(self.headers)
        if etag:
            headers["If-None-Match"] = etag

        t0 = time.monotonic()
        status_code: Optional[int] = None
        try:
            _logger.debug("GitLab REST GET [%s] %s", lbl, ep)
            response = requests.get(self._url(ep), headers=headers, params=params, timeout=self.timeout)
            status_code = int(response.status_code)
            if status_code == 304:
                return response
            if status_code >= 400:
                raise error_for_status(status_code, ep)
            return response
        except requests.exceptions.RequestException as e:
            raise GitLabRequestError(
                status_code=int(status_code or 0), endpoint=ep, message=f"GitLab API request failed for {ep}: {e}"
            ) from e
        finally:
            GITLAB_API_STATS.record(label=lbl, endpoint=ep, status_code=status_code, dt_s=time.monotonic() - t0)

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, *, label: Optional[str] = None) -> Any:
        """Make a GET request to the GitLab API and return JSON (dict/list) or raise."""
        return self._request(endpoint, params=params, label=label).json()

    def get_job_trace(self, project: GitLabProject, job_id: int, etag: Optional[str] = None) -> Optional[JobTrace]:
        """Fetch a job trace; returns None when `etag` still matches (304)."""
        response = self._request(trace_endpoint(project, job_id), etag=etag, label="job_trace")
        if response.status_code == 304:
            return None
        return JobTrace(raw_trace=response.text, etag=etag_from_headers(response.headers))

    def get_single_job(self, project: GitLabProject, job_id: int) -> JobInfo:
        data = self.get(job_endpoint(project, job_id), label="job")
        return JobInfo.from_api(data if isinstance(data, dict) else {})

    def get_rest_call_stats(self) -> Dict[str, Any]:
        """Return best-effort REST call stats for the current process/run."""
        return GITLAB_API_STATS.to_dict()


__all__ = [
    "DEFAULT_GITLAB_URL",
    "GITLAB_API_STATS",
    "GitLabAPIClient",
    "GitLabAPIError",
    "GitLabAuthError",
    "GitLabForbiddenError",
    "GitLabNotFoundError",
    "GitLabProject",
    "GitLabProjectNotFoundError",
    "GitLabRequestError",
    "JobInfo",
    "JobTrace",
    "resolve_gitlab_token",
]
