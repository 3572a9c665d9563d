# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Asynchronous GitLab REST client (aiohttp).

Used by the live-log refresher: every poll is a conditional trace request
(`If-None-Match`), so an idle job costs one 304 per tick.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from . import DEFAULT_GITLAB_URL, GITLAB_API_STATS, resolve_gitlab_token
from .exceptions import GitLabRequestError, error_for_status
from .models import GitLabProject, JobInfo, JobTrace, etag_from_headers, job_endpoint, trace_endpoint

_logger = logging.getLogger(__name__)


class AsyncGitLabAPIClient:
    """aiohttp-based GitLab client.

    The session is created lazily and must be released with `close()` (or by
    using the client as an async context manager).
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = DEFAULT_GITLAB_URL,
        *,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.token = resolve_gitlab_token(token)
        self.base_url = str(base_url or DEFAULT_GITLAB_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=float(timeout))
        self.headers: Dict[str, str] = {}
        if self.token:
            self.headers["PRIVATE-TOKEN"] = self.token
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "AsyncGitLabAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get(self, endpoint: str, *, etag: Optional[str] = None, label: str = "unknown", as_json: bool = False):
        """GET `endpoint`; returns (status, headers, body) for 2xx/304, raises otherwise."""
        url = f"{self.base_url}{endpoint}"
        # Auth goes on every request; the session may be caller-supplied.
        headers: Dict[str, str] = dict(self.headers)
        if etag:
            headers["If-None-Match"] = etag

        t0 = time.monotonic()
        status: Optional[int] = None
        try:
            _logger.debug("GitLab REST GET (async) [%s] %s", label, endpoint)
            async with self._get_session().get(url, headers=headers) as response:
                status = int(response.status)
                if status == 304:
                    return status, response.headers, None
                if status >= 400:
                    raise error_for_status(status, endpoint)
                body: Any = await (response.json() if as_json else response.text())
                return status, response.headers, body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GitLabRequestError(
                status_code=int(status or 0), endpoint=endpoint, message=f"GitLab API request failed for {endpoint}: {e}"
            ) from e
        finally:
            GITLAB_API_STATS.record(label=label, endpoint=endpoint, status_code=status, dt_s=time.monotonic() - t0)

    async def get_job_trace(self, project: GitLabProject, job_id: int, etag: Optional[str] = None) -> Optional[JobTrace]:
        """Fetch a job trace; returns None when `etag` still matches (304)."""
        status, headers, body = await self._get(trace_endpoint(project, job_id), etag=etag, label="job_trace")
        if status == 304:
            return None
        return JobTrace(raw_trace=str(body or ""), etag=etag_from_headers(headers))

    async def get_single_job(self, project: GitLabProject, job_id: int) -> JobInfo:
        _, _, body = await self._get(job_endpoint(project, job_id), label="job", as_json=True)
        return JobInfo.from_api(body if isinstance(body, dict) else {})
