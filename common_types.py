#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Common shared enums/types that must be used by both:
- `common_gitlab/` (API/data layer)
- `ci_job_log/` (log rendering + live refresh)

This module MUST NOT import `common_gitlab` or `ci_job_log` to avoid cycles.
"""

from __future__ import annotations

from enum import Enum


class JobStatus(str, Enum):
    """Normalized GitLab CI job status strings."""

    CREATED = "created"
    WAITING_FOR_RESOURCE = "waiting_for_resource"
    PREPARING = "preparing"
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELED = "canceled"
    SKIPPED = "skipped"
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, raw: object) -> "JobStatus":
        s = str(raw or "").strip().lower()
        for member in cls:
            if member.value == s:
                return member
        return cls.UNKNOWN

    @property
    def is_live(self) -> bool:
        """True when the job can still append to its trace."""
        return self is JobStatus.RUNNING
