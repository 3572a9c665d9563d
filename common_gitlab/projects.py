# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Map local git checkouts to GitLab projects (GitPython only, no subprocess)."""

from __future__ import annotations

import logging
import re
import threading
import urllib.parse
from pathlib import Path
from typing import Dict, Optional

import git  # GitPython

from . import DEFAULT_GITLAB_URL
from .exceptions import GitLabProjectNotFoundError
from .models import GitLabProject

_logger = logging.getLogger(__name__)

# git@host:group/project.git  (scp-like syntax, no scheme)
_SCP_LIKE_RE = re.compile(r"^(?:[^@/]+@)?(?P<host>[^:/]+):(?P<path>[^/].*)$")


def project_path_from_remote_url(remote_url: str, base_url: str = DEFAULT_GITLAB_URL) -> Optional[str]:
    """Return `group/sub/project` for a GitLab remote URL, or None.

    Handles HTTPS, `ssh://` and scp-like remotes. When the GitLab instance is
    served under a sub-path (e.g. `https://host/gitlab`), that prefix is removed
    from HTTPS remotes.
    """
    url = str(remote_url or "").strip()
    if not url:
        return None

    if "://" in url:
        parsed = urllib.parse.urlparse(url)
        path = parsed.path or ""
        if parsed.scheme in ("http", "https"):
            base_path = urllib.parse.urlparse(str(base_url or "")).path.rstrip("/")
            if base_path and path.startswith(base_path + "/"):
                path = path[len(base_path):]
    else:
        m = _SCP_LIKE_RE.match(url)
        if not m:
            return None
        path = m.group("path")

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    if "/" not in path:
        return None
    return path


class GitLabProjectRepository:
    """Resolve (and memoize) the GitLab project behind a repository root."""

    def __init__(self, base_url: str = DEFAULT_GITLAB_URL):
        self.base_url = str(base_url or DEFAULT_GITLAB_URL).rstrip("/")
        self._mu = threading.Lock()
        self._projects: Dict[str, GitLabProject] = {}

    def get_project_or_fail(self, repository_root: str) -> GitLabProject:
        root = str(repository_root or "")
        with self._mu:
            cached = self._projects.get(root)
        if cached is not None:
            return cached

        try:
            repo = git.Repo(Path(root))
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise GitLabProjectNotFoundError(root, f"not a git repository ({e.__class__.__name__})") from e

        remotes = list(repo.remotes)
        if not remotes:
            raise GitLabProjectNotFoundError(root, "repository has no remotes")
        remote = next((r for r in remotes if r.name == "origin"), remotes[0])
        remote_url = next(iter(remote.urls), "")

        path = project_path_from_remote_url(remote_url, self.base_url)
        if not path:
            raise GitLabProjectNotFoundError(root, f"cannot parse remote URL {remote_url!r}")

        project = GitLabProject(path_with_namespace=path, base_url=self.base_url)
        _logger.debug("Resolved %s -> %s (remote %s)", root, path, remote.name)
        with self._mu:
            self._projects[root] = project
        return project

    def register(self, repository_root: str, project: GitLabProject) -> None:
        """Pin a project for a root without consulting git."""
        with self._mu:
            self._projects[str(repository_root or "")] = project
