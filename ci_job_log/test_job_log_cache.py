"""
Pytest tests for ci_job_log/job_log_cache.py.

Run from the repository root:
    pytest ci_job_log/test_job_log_cache.py -v
"""

import sys
from pathlib import Path

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from ci_job_log.job_log_cache import CacheItem, JobLogCache
from ci_job_log.transform import LineRange, Section, render


def test_set_then_get():
    cache = JobLogCache()
    cache.set(123, "raw trace")

    item = cache.get(123)
    assert item == CacheItem(raw_trace="raw trace")
    assert item.sync_token is None
    assert item.repository_root is None
    assert not item.is_live


def test_get_missing_is_none():
    cache = JobLogCache()
    assert cache.get(1) is None
    assert 1 not in cache


def test_set_for_running_keeps_token_and_root():
    cache = JobLogCache()
    cache.set_for_running("/repo", 123, "partial", "W/\"abc\"")

    item = cache.get(123)
    assert item.raw_trace == "partial"
    assert item.sync_token == "W/\"abc\""
    assert item.repository_root == "/repo"
    assert item.is_live


def test_empty_sync_token_is_still_live():
    cache = JobLogCache()
    cache.set_for_running("/repo", 5, "", "")
    assert cache.get(5).is_live


def test_set_demotes_running_item():
    cache = JobLogCache()
    cache.set_for_running("/repo", 123, "trace", "etag")
    cache.set(123, "trace")

    item = cache.get(123)
    assert item.sync_token is None
    assert item.repository_root is None
    assert item.raw_trace == "trace"


def test_add_decorations_attaches_render_data():
    cache = JobLogCache()
    cache.set(7, "line\n")
    sections = {"s": Section("s", 0, 1, 0, 2)}
    decorations = {"k": [LineRange(0, 0, 4)]}

    cache.add_decorations(7, sections, decorations, "line\n")

    derived = cache.get(7).derived
    assert derived.sections == sections
    assert derived.decorations == decorations
    assert derived.filtered_text == "line\n"


def test_add_decorations_on_missing_item_is_noop():
    cache = JobLogCache()
    cache.add_decorations(7, {}, {}, "text")
    assert cache.get(7) is None
    assert len(cache) == 0


def test_add_decorations_skips_stale_trace():
    cache = JobLogCache()
    cache.set_for_running("/repo", 7, "old", "t1")
    cache.set_for_running("/repo", 7, "old + new", "t2")

    cache.add_decorations(7, {}, {}, "old", for_raw_trace="old")
    assert cache.get(7).derived is None

    cache.add_decorations(7, {}, {}, "old + new", for_raw_trace="old + new")
    assert cache.get(7).derived.filtered_text == "old + new"


def test_new_trace_drops_render_data():
    cache = JobLogCache()
    cache.set_for_running("/repo", 7, "a", "t1")
    rendered = render("a", True)
    cache.add_decorations(7, rendered.sections, rendered.decorations, rendered.filtered_text)
    assert cache.get(7).derived is not None

    cache.set_for_running("/repo", 7, "a\nb", "t2")
    assert cache.get(7).derived is None


def test_add_decorations_keeps_trace_and_token():
    cache = JobLogCache()
    cache.set_for_running("/repo", 7, "a", "t1")
    cache.add_decorations(7, {}, {}, "a\n")

    item = cache.get(7)
    assert (item.raw_trace, item.sync_token, item.repository_root) == ("a", "t1", "/repo")


def test_clear_all():
    cache = JobLogCache()
    cache.set(1, "a")
    cache.set_for_running("/repo", 2, "b", "")
    cache.clear_all()

    assert cache.get(1) is None
    assert cache.get(2) is None
    assert len(cache) == 0


def test_stats_are_tracked():
    cache = JobLogCache()
    cache.set(1, "a")
    cache.get(1)
    cache.get(2)

    assert (cache.stats.write, cache.stats.hit, cache.stats.miss) == (1, 1, 1)
