# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Live refresh of a running job's trace.

A `JobLogRefresher` polls the remote trace source for one job and writes every
new increment into the shared `JobLogCache`:

    Active --(cache entry gone / no repository / dispose())--> Disposed

Tick:
  1. no cache entry, or entry without repository root  -> dispose
  2. conditional fetch with the entry's sync token
     - new content: `set_for_running()`, re-arm the status re-check
     - unchanged (None, or the same body) and re-check armed: disarm, ask for the job status;
       not running anymore -> notify, demote the entry with `set()`
       (the next tick then takes branch 1)
  3. reschedule on the fixed interval unless disposed; errors never stop it

The status re-check is armed once per "unchanged" streak, so an idle job costs
at most one status request between content changes.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Set

from common_gitlab.models import JobTrace
from common_types import JobStatus

from .job_log_cache import JobLogCache

_logger = logging.getLogger(__name__)

DEFAULT_INITIAL_DELAY_S: float = 0.01
# ^ First check comes almost immediately, so already-finished jobs are demoted fast.
DEFAULT_POLL_INTERVAL_S: float = 3.0


class JobTraceSource(Protocol):
    """Remote trace access used by the refresher."""

    async def fetch_trace_increment(
        self, repository_root: str, job_id: int, sync_token: Optional[str]
    ) -> Optional[JobTrace]:
        """New trace + token, or None when unchanged since `sync_token`."""

    async def fetch_job_status(self, repository_root: str, job_id: int) -> JobStatus:
        ...


JobFinishedCallback = Callable[[int], Any]


class JobLogRefresher:
    """Polls one job until its trace is final or `dispose()` is called.

    Must be created while an event loop is running.
    """

    def __init__(
        self,
        job_id: int,
        cache: JobLogCache,
        source: JobTraceSource,
        *,
        on_job_finished: Optional[JobFinishedCallback] = None,
        initial_delay_s: float = DEFAULT_INITIAL_DELAY_S,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
    ):
        self.job_id = int(job_id)
        self.cache = cache
        self.source = source
        self.on_job_finished = on_job_finished
        self.poll_interval_s = float(poll_interval_s)

        # Re-check the job status once after the trace stops changing.
        self.should_recheck_status = True

        self._loop = asyncio.get_running_loop()
        self._disposed = False
        self._disposed_event = asyncio.Event()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self.ticks = 0

        _logger.debug("Job %s: refresher started", self.job_id)
        self._schedule(float(initial_delay_s))

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def _schedule(self, delay_s: float) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(delay_s, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self._disposed:
            return
        self._task = self._loop.create_task(self.tick())

    async def tick(self) -> None:
        """Run one refresh step (normally driven by the timer)."""
        if self._disposed:
            return
        self.ticks += 1

        item = self.cache.get(self.job_id)
        if item is None or not item.repository_root:
            self.dispose()
            return

        old_trace = item.raw_trace
        repository_root = item.repository_root
        try:
            new_result = await self.source.fetch_trace_increment(repository_root, self.job_id, item.sync_token)
            if new_result is not None and new_result.raw_trace == old_trace:
                # Without an ETag every poll is a full 200; same body means unchanged.
                new_result = None
            if new_result is not None:
                self.should_recheck_status = True
                self.cache.set_for_running(repository_root, self.job_id, new_result.raw_trace, new_result.etag)
            elif self.should_recheck_status:
                self.should_recheck_status = False
                status = await self.source.fetch_job_status(repository_root, self.job_id)
                if status is not JobStatus.RUNNING:
                    _logger.debug("Job %s is %s; trace is final", self.job_id, status.value)
                    self._notify_finished()
                    self.cache.set(self.job_id, old_trace)
        except Exception as e:
            _logger.debug("Job %s: refresh failed: %s", self.job_id, e)
        finally:
            if not self._disposed:
                self._schedule(self.poll_interval_s)

    def _notify_finished(self) -> None:
        if self.on_job_finished is None:
            return
        try:
            result = self.on_job_finished(self.job_id)
        except Exception as e:
            _logger.debug("Job %s: finished-callback failed: %s", self.job_id, e)
            return
        if inspect.isawaitable(result):
            # Fire and forget; keep a reference until it completes.
            task = asyncio.ensure_future(result)
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._disposed_event.set()
        _logger.debug("Job %s: refresher disposed", self.job_id)

    async def wait_disposed(self) -> None:
        await self._disposed_event.wait()


class JobLogRefreshers:
    """At most one active refresher per job id."""

    def __init__(
        self,
        cache: JobLogCache,
        source: JobTraceSource,
        *,
        on_job_finished: Optional[JobFinishedCallback] = None,
        initial_delay_s: float = DEFAULT_INITIAL_DELAY_S,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
    ):
        self.cache = cache
        self.source = source
        self.on_job_finished = on_job_finished
        self.initial_delay_s = float(initial_delay_s)
        self.poll_interval_s = float(poll_interval_s)
        self._refreshers: Dict[int, JobLogRefresher] = {}

    def start(self, job_id: int) -> JobLogRefresher:
        """Return the active refresher for `job_id`, creating one if needed."""
        key = int(job_id)
        current = self._refreshers.get(key)
        if current is not None and not current.is_disposed:
            return current
        refresher = JobLogRefresher(
            key,
            self.cache,
            self.source,
            on_job_finished=self.on_job_finished,
            initial_delay_s=self.initial_delay_s,
            poll_interval_s=self.poll_interval_s,
        )
        self._refreshers[key] = refresher
        return refresher

    def get(self, job_id: int) -> Optional[JobLogRefresher]:
        return self._refreshers.get(int(job_id))

    def is_refreshing(self, job_id: int) -> bool:
        refresher = self._refreshers.get(int(job_id))
        return refresher is not None and not refresher.is_disposed

    def stop(self, job_id: int) -> None:
        refresher = self._refreshers.pop(int(job_id), None)
        if refresher is not None:
            refresher.dispose()

    def stop_all(self) -> None:
        for job_id in list(self._refreshers):
            self.stop(job_id)
