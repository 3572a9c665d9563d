# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitLab-backed `JobTraceSource`: repository root -> project -> REST call."""

from __future__ import annotations

import asyncio
from typing import Optional

from common_gitlab.async_client import AsyncGitLabAPIClient
from common_gitlab.models import GitLabProject, JobTrace
from common_gitlab.projects import GitLabProjectRepository
from common_types import JobStatus


class GitLabJobTraceSource:
    def __init__(self, client: AsyncGitLabAPIClient, projects: GitLabProjectRepository):
        self.client = client
        self.projects = projects

    async def _project(self, repository_root: str) -> GitLabProject:
        # First lookup opens the git repository; keep it off the event loop.
        return await asyncio.to_thread(self.projects.get_project_or_fail, repository_root)

    async def fetch_trace_increment(
        self, repository_root: str, job_id: int, sync_token: Optional[str]
    ) -> Optional[JobTrace]:
        project = await self._project(repository_root)
        return await self.client.get_job_trace(project, job_id, etag=sync_token)

    async def fetch_job_status(self, repository_root: str, job_id: int) -> JobStatus:
        project = await self._project(repository_root)
        job = await self.client.get_single_job(project, job_id)
        return job.status
