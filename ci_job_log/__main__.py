#!/usr/bin/env python3
"""Module entrypoint for `ci_job_log`.

Usage (from the repository root):
  - `python3 -m ci_job_log render path/to/job.log`
  - `python3 -m ci_job_log follow ~/src/myproject 123456`
"""

from __future__ import annotations

from .cli import _cli


if __name__ == "__main__":
    raise SystemExit(_cli())
