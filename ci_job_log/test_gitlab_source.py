"""
Pytest tests for ci_job_log/gitlab_source.py (repository root -> project -> REST call).

Run from the repository root:
    pytest ci_job_log/test_gitlab_source.py -v
"""

import sys
import threading
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from ci_job_log.gitlab_source import GitLabJobTraceSource
from common_gitlab.exceptions import GitLabProjectNotFoundError
from common_gitlab.models import GitLabProject, JobInfo, JobTrace
from common_gitlab.projects import GitLabProjectRepository
from common_types import JobStatus

REPO = "/path/to/repo"
PROJECT = GitLabProject("group/project", "https://gitlab.example.com")


def _client(trace=None, status=JobStatus.RUNNING):
    client = MagicMock()
    client.get_job_trace = AsyncMock(return_value=trace)
    client.get_single_job = AsyncMock(return_value=JobInfo(42, status))
    return client


@pytest.fixture
def projects():
    repo = GitLabProjectRepository("https://gitlab.example.com")
    repo.register(REPO, PROJECT)
    return repo


@pytest.mark.asyncio
async def test_trace_increment_uses_project_and_token(projects):
    client = _client(JobTrace("log", "etag-2"))
    source = GitLabJobTraceSource(client, projects)

    assert await source.fetch_trace_increment(REPO, 42, "etag-1") == JobTrace("log", "etag-2")
    client.get_job_trace.assert_awaited_once_with(PROJECT, 42, etag="etag-1")


@pytest.mark.asyncio
async def test_unchanged_trace_is_none(projects):
    source = GitLabJobTraceSource(_client(None), projects)
    assert await source.fetch_trace_increment(REPO, 42, "etag-1") is None


@pytest.mark.asyncio
async def test_job_status(projects):
    client = _client(status=JobStatus.CANCELED)
    source = GitLabJobTraceSource(client, projects)

    assert await source.fetch_job_status(REPO, 42) is JobStatus.CANCELED
    client.get_single_job.assert_awaited_once_with(PROJECT, 42)


@pytest.mark.asyncio
async def test_project_lookup_runs_off_the_event_loop():
    loop_thread = threading.get_ident()
    seen = []
    projects = MagicMock()
    projects.get_project_or_fail.side_effect = lambda root: seen.append(threading.get_ident()) or PROJECT
    source = GitLabJobTraceSource(_client(JobTrace("log", "")), projects)

    await source.fetch_trace_increment(REPO, 42, None)

    projects.get_project_or_fail.assert_called_once_with(REPO)
    assert seen and seen[0] != loop_thread


@pytest.mark.asyncio
async def test_unknown_repository_raises(tmp_path):
    client = _client()
    source = GitLabJobTraceSource(client, GitLabProjectRepository())

    with pytest.raises(GitLabProjectNotFoundError):
        await source.fetch_trace_increment(str(tmp_path), 42, None)
    client.get_job_trace.assert_not_awaited()
