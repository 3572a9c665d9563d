# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""In-memory store of job traces and their rendered form.

Caching strategy:
  - Key: job_id (int)
  - Value: `CacheItem` (raw trace, sync token, repository root, derived render data)
  - Process lifetime only; nothing is written to disk

`sync_token is None` marks a final trace (job finished, nothing left to poll).
A string token (possibly empty) marks a live trace that a refresher keeps
updating; `repository_root` is only set for live traces.

Whenever `raw_trace` is replaced, the derived render data is dropped; it is
recomputed lazily by whoever reads the item next. There is no lock: all
access happens on one event loop, and readers re-`get()` after every await.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from .transform import LineRange, RenderedLog, Section

_logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Hit/miss/write counters, tracked automatically."""
    hit: int = 0
    miss: int = 0
    write: int = 0


@dataclass(frozen=True)
class CacheItem:
    raw_trace: str
    sync_token: Optional[str] = None
    repository_root: Optional[str] = None
    derived: Optional[RenderedLog] = None

    @property
    def is_live(self) -> bool:
        return self.sync_token is not None


class JobLogCache:
    """Shared per-job trace store, owned by the composition root."""

    def __init__(self) -> None:
        self._items: Dict[int, CacheItem] = {}
        self.stats = CacheStats()

    def __contains__(self, job_id: int) -> bool:
        return int(job_id) in self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, job_id: int) -> Optional[CacheItem]:
        item = self._items.get(int(job_id))
        if item is None:
            self.stats.miss += 1
        else:
            self.stats.hit += 1
        return item

    def set(self, job_id: int, raw_trace: str) -> None:
        """Store a final trace (no sync token, no repository association)."""
        self._items[int(job_id)] = CacheItem(raw_trace=raw_trace)
        self.stats.write += 1

    def set_for_running(self, repository_root: str, job_id: int, raw_trace: str, sync_token: str) -> None:
        """Store a live trace that a refresher may keep updating."""
        self._items[int(job_id)] = CacheItem(
            raw_trace=raw_trace,
            sync_token=str(sync_token if sync_token is not None else ""),
            repository_root=str(repository_root),
        )
        self.stats.write += 1

    def add_decorations(
        self,
        job_id: int,
        sections: Dict[str, Section],
        decorations: Dict[str, List[LineRange]],
        filtered_text: str,
        *,
        for_raw_trace: Optional[str] = None,
    ) -> None:
        """Attach render data to the current item; no-op if the item is gone.

        When `for_raw_trace` is given, the data is only attached if the item
        still holds that exact trace.
        """
        key = int(job_id)
        item = self._items.get(key)
        if item is None:
            _logger.debug("Job %s left the cache before its render data was attached", key)
            return
        if for_raw_trace is not None and item.raw_trace != for_raw_trace:
            _logger.debug("Job %s trace changed while rendering; dropping stale render data", key)
            return
        derived = RenderedLog(sections=sections, decorations=decorations, filtered_text=filtered_text)
        self._items[key] = replace(item, derived=derived)

    def clear_all(self) -> None:
        self._items.clear()
        self.stats = CacheStats()
