# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Locator strings for job log documents.

Format:
  gitlab-job-log:Job <id>?<percent-encoded JSON {"job": <id>, "repositoryRoot": <root>}>

The path part is only a display label; the query carries the data. JSON keys
are sorted so equal pairs always encode to the same string.
"""

from __future__ import annotations

import json
import urllib.parse
from typing import NamedTuple

JOB_LOG_URI_SCHEME = "gitlab-job-log"


class JobLogUriError(ValueError):
    pass


class JobLogLocation(NamedTuple):
    repository_root: str
    job_id: int


def to_job_log_uri(repository_root: str, job_id: int) -> str:
    query = json.dumps({"repositoryRoot": str(repository_root), "job": int(job_id)}, sort_keys=True)
    return f"{JOB_LOG_URI_SCHEME}:Job {int(job_id)}?{urllib.parse.quote(query, safe='')}"


def from_job_log_uri(uri: str) -> JobLogLocation:
    s = str(uri or "")
    if not is_job_log_uri(s):
        raise JobLogUriError(f"not a {JOB_LOG_URI_SCHEME} locator: {s!r}")
    _, sep, query = s.partition("?")
    if not sep:
        raise JobLogUriError(f"locator has no query: {s!r}")
    try:
        data = json.loads(urllib.parse.unquote(query))
    except ValueError as e:
        raise JobLogUriError(f"locator query is not JSON: {s!r}") from e
    if not isinstance(data, dict) or not isinstance(data.get("repositoryRoot"), str) or not isinstance(data.get("job"), int):
        raise JobLogUriError(f"locator query is missing repositoryRoot/job: {s!r}")
    return JobLogLocation(repository_root=data["repositoryRoot"], job_id=data["job"])


def is_job_log_uri(uri: str) -> bool:
    return str(uri or "").startswith(f"{JOB_LOG_URI_SCHEME}:")
