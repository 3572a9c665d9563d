# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitLab API error types.

Shared by the sync (`requests`) and async (`aiohttp`) clients so callers can
catch one hierarchy regardless of transport.
"""

from __future__ import annotations


class GitLabAPIError(Exception):
    def __init__(self, *, status_code: int, endpoint: str, message: str):
        super().__init__(message)
        self.status_code = int(status_code)
        self.endpoint = str(endpoint or "")


class GitLabAuthError(GitLabAPIError):
    pass


class GitLabForbiddenError(GitLabAPIError):
    pass


class GitLabNotFoundError(GitLabAPIError):
    pass


class GitLabRequestError(GitLabAPIError):
    pass


class GitLabProjectNotFoundError(GitLabAPIError):
    """No GitLab project could be derived from a local repository."""

    def __init__(self, repository_root: str, reason: str = ""):
        msg = f"No GitLab project found for repository {repository_root}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(status_code=0, endpoint="", message=msg)
        self.repository_root = str(repository_root or "")


def error_for_status(status_code: int, endpoint: str) -> GitLabAPIError:
    """Map an HTTP error status onto the matching exception type."""
    if status_code == 401:
        return GitLabAuthError(status_code=401, endpoint=endpoint, message="GitLab API returned 401 Unauthorized. Check your token.")
    if status_code == 403:
        return GitLabForbiddenError(status_code=403, endpoint=endpoint, message="GitLab API returned 403 Forbidden. Token may lack permissions.")
    if status_code == 404:
        return GitLabNotFoundError(status_code=404, endpoint=endpoint, message=f"GitLab API returned 404 Not Found for {endpoint}")
    return GitLabRequestError(status_code=status_code, endpoint=endpoint, message=f"GitLab API returned {status_code} for {endpoint}")
