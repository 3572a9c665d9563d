# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""What viewers consume: filtered text, decorations, folding regions, raw export."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NamedTuple, Optional

from common_gitlab import GitLabAPIClient
from common_gitlab.projects import GitLabProjectRepository
from common_types import JobStatus

from .job_log_cache import JobLogCache
from .job_log_uri import from_job_log_uri
from .refresher import JobLogRefreshers, JobTraceSource
from .transform import RenderedLog, folding_ranges, render

_logger = logging.getLogger(__name__)


class FoldingRegion(NamedTuple):
    start_line: int
    end_line: int


class JobLogContentProvider:
    """Serves job log documents out of a shared `JobLogCache`.

    Render data is computed on first access and memoized in the cache until
    the trace changes.
    """

    def __init__(
        self,
        cache: JobLogCache,
        source: JobTraceSource,
        refreshers: Optional[JobLogRefreshers] = None,
        *,
        double_underline: bool = False,
    ):
        self.cache = cache
        self.source = source
        self.refreshers = refreshers
        self.double_underline = bool(double_underline)

    async def provide_content(self, uri: str) -> str:
        """Filtered text for a job log locator, fetching the trace once if needed."""
        repository_root, job_id = from_job_log_uri(uri)

        if self.cache.get(job_id) is None:
            await self._fetch_into_cache(repository_root, job_id)

        rendered = self.rendered_log(job_id)
        return rendered.filtered_text if rendered is not None else ""

    async def _fetch_into_cache(self, repository_root: str, job_id: int) -> None:
        trace = await self.source.fetch_trace_increment(repository_root, job_id, None)
        status = await self.source.fetch_job_status(repository_root, job_id)
        raw_trace = trace.raw_trace if trace is not None else ""

        if status is JobStatus.RUNNING:
            etag = trace.etag if trace is not None else ""
            self.cache.set_for_running(repository_root, job_id, raw_trace, etag)
            if self.refreshers is not None:
                self.refreshers.start(job_id)
        else:
            self.cache.set(job_id, raw_trace)
        _logger.debug("Job %s: fetched %d chars (%s)", job_id, len(raw_trace), status.value)

    def rendered_log(self, job_id: int) -> Optional[RenderedLog]:
        item = self.cache.get(job_id)
        if item is None:
            return None
        if item.derived is not None:
            return item.derived

        rendered = render(item.raw_trace, item.is_live, double_underline=self.double_underline)
        self.cache.add_decorations(
            job_id,
            rendered.sections,
            rendered.decorations,
            rendered.filtered_text,
            for_raw_trace=item.raw_trace,
        )
        return rendered

    def folding_regions(self, job_id: int) -> List[FoldingRegion]:
        rendered = self.rendered_log(job_id)
        if rendered is None:
            return []
        return [FoldingRegion(start, end) for start, end in folding_ranges(rendered.sections)]


def save_raw_job_trace(
    uri: str,
    output_path: Path,
    *,
    cache: JobLogCache,
    client: GitLabAPIClient,
    projects: GitLabProjectRepository,
) -> Path:
    """Write the raw (unfiltered) trace of a job to `output_path`.

    Uses the cached trace when there is one, otherwise fetches it once.
    """
    repository_root, job_id = from_job_log_uri(uri)

    item = cache.get(job_id)
    if item is not None:
        text = item.raw_trace
    else:
        project = projects.get_project_or_fail(repository_root)
        trace = client.get_job_trace(project, job_id)
        text = trace.raw_trace if trace is not None else ""

    path = Path(output_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(text.encode("utf-8"))
    _logger.info("Saved raw trace of job %s to %s", job_id, path)
    return path
