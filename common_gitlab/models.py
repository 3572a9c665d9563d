# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Plain data returned by the GitLab clients."""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Optional

from common_types import JobStatus


@dataclass(frozen=True)
class GitLabProject:
    """A GitLab project addressed by its namespaced path (`group/sub/project`)."""

    path_with_namespace: str
    base_url: str

    @property
    def api_id(self) -> str:
        """URL-encoded project path, usable as `:id` in `/projects/:id/...`."""
        return urllib.parse.quote(self.path_with_namespace, safe="")


@dataclass(frozen=True)
class JobTrace:
    """One fetch of a job's trace.

    `etag` is the sync token for the next conditional request. An empty string
    is still a valid token (the server simply did not send one); it is never
    sent as `If-None-Match`, so every poll returns the full body and the
    refresher detects "unchanged" by comparing it with the cached trace.
    """

    raw_trace: str
    etag: str = ""


@dataclass(frozen=True)
class JobInfo:
    job_id: int
    status: JobStatus
    name: str = ""
    web_url: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "JobInfo":
        return cls(
            job_id=int(data.get("id") or 0),
            status=JobStatus.normalize(data.get("status")),
            name=str(data.get("name") or ""),
            web_url=str(data.get("web_url") or ""),
        )


def trace_endpoint(project: GitLabProject, job_id: int) -> str:
    return f"/api/v4/projects/{project.api_id}/jobs/{int(job_id)}/trace"


def job_endpoint(project: GitLabProject, job_id: int) -> str:
    return f"/api/v4/projects/{project.api_id}/jobs/{int(job_id)}"


def etag_from_headers(headers: Any) -> str:
    value: Optional[str] = None
    try:
        value = headers.get("ETag")
    except AttributeError:
        value = None
    return str(value or "").strip()
