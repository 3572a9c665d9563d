"""
Pytest tests for ci_job_log/job_log_uri.py.

Run from the repository root:
    pytest ci_job_log/test_job_log_uri.py -v
"""

import sys
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from ci_job_log.job_log_uri import (
    JOB_LOG_URI_SCHEME,
    JobLogLocation,
    JobLogUriError,
    from_job_log_uri,
    is_job_log_uri,
    to_job_log_uri,
)


def test_format():
    uri = to_job_log_uri("/path/to/repo", 123)

    assert uri.startswith(f"{JOB_LOG_URI_SCHEME}:Job 123?")
    assert " " not in uri.split("?", 1)[1]
    assert is_job_log_uri(uri)


def test_encoding_is_deterministic():
    assert to_job_log_uri("/repo", 1) == to_job_log_uri("/repo", 1)
    assert to_job_log_uri("/repo", 1) != to_job_log_uri("/repo", 2)


@pytest.mark.parametrize(
    "root, job_id",
    [
        ("/path/to/repo", 123),
        ("", 0),
        ("/tmp/with space/and?question", 7),
        ("/tmp/100%/#hash&amp", 42),
        ("C:\\Users\\dev\\repo", 9),
        ("/home/d\u00e9v/\u30ea\u30dd", 2**40),
        ("/repo", -5),
    ],
)
def test_round_trip(root, job_id):
    assert from_job_log_uri(to_job_log_uri(root, job_id)) == JobLogLocation(root, job_id)


@pytest.mark.parametrize(
    "uri",
    [
        "",
        "file:///tmp/x",
        f"{JOB_LOG_URI_SCHEME}:Job 1",
        f"{JOB_LOG_URI_SCHEME}:Job 1?not-json",
        f"{JOB_LOG_URI_SCHEME}:Job 1?%5B1%2C2%5D",
        f"{JOB_LOG_URI_SCHEME}:Job 1?%7B%22job%22%3A1%7D",
        f"{JOB_LOG_URI_SCHEME}:Job 1?%7B%22job%22%3A%221%22%2C%22repositoryRoot%22%3A%22%2Fr%22%7D",
    ],
)
def test_invalid_locators(uri):
    with pytest.raises(JobLogUriError):
        from_job_log_uri(uri)


def test_error_is_a_value_error():
    with pytest.raises(ValueError):
        from_job_log_uri("nope")


def test_is_job_log_uri():
    assert not is_job_log_uri("https://gitlab.com")
    assert not is_job_log_uri("")
