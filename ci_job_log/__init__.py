"""
GitLab CI job log rendering + live refresh (ci-job-log).

This package contains the implementation for:
- ANSI SGR parsing into styled spans (`ci_job_log.ansi`)
- trace rendering: sections, decoration ranges, filtered text (`ci_job_log.transform`)
- the shared per-job trace cache (`ci_job_log.job_log_cache`)
- live polling of running jobs (`ci_job_log.refresher`)

Public API is re-exported here; the GitLab transport lives in `common_gitlab/`.
"""

from .ansi import (  # noqa: F401
    AttributeFlags,
    NamedColor,
    RgbColor,
    Span,
    Style,
    StyleParser,
)
from .job_log_cache import CacheItem, JobLogCache  # noqa: F401
from .job_log_uri import JobLogUriError, from_job_log_uri, to_job_log_uri  # noqa: F401
from .provider import FoldingRegion, JobLogContentProvider, save_raw_job_trace  # noqa: F401
from .refresher import JobLogRefresher, JobLogRefreshers, JobTraceSource  # noqa: F401
from .transform import RUNNING_DECORATION_KEY, LineRange, RenderedLog, Section, render  # noqa: F401

__all__ = [
    "AttributeFlags",
    "CacheItem",
    "FoldingRegion",
    "JobLogCache",
    "JobLogContentProvider",
    "JobLogRefresher",
    "JobLogRefreshers",
    "JobLogUriError",
    "JobTraceSource",
    "LineRange",
    "NamedColor",
    "RUNNING_DECORATION_KEY",
    "RenderedLog",
    "RgbColor",
    "Section",
    "Span",
    "Style",
    "StyleParser",
    "from_job_log_uri",
    "render",
    "save_raw_job_trace",
    "to_job_log_uri",
]
