"""
CLI wrapper for ci_job_log.

Offline subcommands (`render`, `uri`) need no token; `show`, `follow` and
`save` talk to GitLab.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from common_gitlab import GitLabAPIClient, GitLabAPIError, GitLabProject
from common_gitlab.async_client import AsyncGitLabAPIClient
from common_gitlab.projects import GitLabProjectRepository

from .config import JobLogSettings, load_settings
from .gitlab_source import GitLabJobTraceSource
from .job_log_cache import JobLogCache
from .job_log_uri import JobLogUriError, from_job_log_uri, to_job_log_uri
from .provider import JobLogContentProvider, save_raw_job_trace
from .refresher import JobLogRefreshers
from .render import render_html
from .transform import RenderedLog, render

logger = logging.getLogger(__name__)


def _write(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def _print_sections(rendered: RenderedLog) -> None:
    for section in sorted(rendered.sections.values(), key=lambda s: s.start_line):
        if section.end_line is None:
            logger.info(f"{section.key}: lines {section.start_line}- (open)")
            continue
        took = ""
        if section.end_time is not None:
            took = f" ({section.end_time - section.start_time}s)"
        logger.info(f"{section.key}: lines {section.start_line}-{section.end_line}{took}")


def _read_trace_file(path: Path) -> str:
    # CRs must survive: they split control and displayed segments.
    return path.read_bytes().decode("utf-8", errors="replace")


def _cmd_render(args: argparse.Namespace, settings: JobLogSettings) -> int:
    raw_trace = _read_trace_file(Path(args.file).expanduser())
    if args.html:
        _write(render_html(raw_trace, double_underline=settings.double_underline) + "\n")
        return 0
    rendered = render(raw_trace, bool(args.running), double_underline=settings.double_underline)
    if args.sections:
        _print_sections(rendered)
        return 0
    _write(rendered.filtered_text)
    return 0


def _projects(args: argparse.Namespace, settings: JobLogSettings) -> GitLabProjectRepository:
    """Project lookup for `args.repository_root`, pinned when `--project` is given."""
    projects = GitLabProjectRepository(settings.gitlab_url)
    if getattr(args, "project", None):
        projects.register(
            args.repository_root,
            GitLabProject(path_with_namespace=args.project.strip("/"), base_url=projects.base_url),
        )
    return projects


def _sync_client(settings: JobLogSettings) -> GitLabAPIClient:
    return GitLabAPIClient(settings.token, settings.gitlab_url, timeout=int(settings.http_timeout_s))


def _cmd_show(args: argparse.Namespace, settings: JobLogSettings) -> int:
    projects = _projects(args, settings)
    client = _sync_client(settings)
    project = projects.get_project_or_fail(args.repository_root)
    job = client.get_single_job(project, int(args.job_id))
    logger.info(f"Job {args.job_id} ({project.path_with_namespace}): {job.status.value} {job.web_url}".rstrip())
    trace = client.get_job_trace(project, int(args.job_id))
    raw_trace = trace.raw_trace if trace is not None else ""
    if args.html:
        _write(render_html(raw_trace, double_underline=settings.double_underline) + "\n")
    else:
        _write(render(raw_trace, False, double_underline=settings.double_underline).filtered_text)
    logger.debug(f"REST stats: {client.get_rest_call_stats()}")
    return 0


def _completed_lines(filtered_text: str, raw_trace: str, final: bool) -> List[str]:
    """Filtered lines that can no longer change.

    While a job runs, its last raw line may still grow or be overwritten via CR,
    so only lines terminated in the raw trace count. Filtered lines map 1:1 to
    raw lines.
    """
    lines = filtered_text.split("\n")[:-1]
    if final:
        return lines
    return lines[:raw_trace.count("\n")]


async def _follow_job(
    provider: JobLogContentProvider,
    refreshers: JobLogRefreshers,
    repository_root: str,
    job_id: int,
    poll_interval_s: float,
) -> int:
    await provider.provide_content(to_job_log_uri(repository_root, job_id))
    refresher = refreshers.get(job_id)
    shown = 0
    while True:
        item = provider.cache.get(job_id)
        rendered = provider.rendered_log(job_id)
        if item is None or rendered is None:
            break
        final = not item.is_live or refresher is None or refresher.is_disposed
        lines = _completed_lines(rendered.filtered_text, item.raw_trace, final)
        if len(lines) > shown:
            _write("".join(line + "\n" for line in lines[shown:]))
            shown = len(lines)
        if final:
            break
        try:
            await asyncio.wait_for(refresher.wait_disposed(), timeout=poll_interval_s)
        except asyncio.TimeoutError:
            pass
    return 0


async def _follow(args: argparse.Namespace, settings: JobLogSettings) -> int:
    cache = JobLogCache()
    projects = _projects(args, settings)
    async with AsyncGitLabAPIClient(settings.token, settings.gitlab_url, timeout=settings.http_timeout_s) as client:
        source = GitLabJobTraceSource(client, projects)
        refreshers = JobLogRefreshers(
            cache,
            source,
            on_job_finished=lambda jid: logger.info(f"Job {jid} finished"),
            initial_delay_s=settings.initial_delay_s,
            poll_interval_s=settings.poll_interval_s,
        )
        provider = JobLogContentProvider(cache, source, refreshers, double_underline=settings.double_underline)
        try:
            return await _follow_job(
                provider, refreshers, args.repository_root, int(args.job_id), settings.poll_interval_s
            )
        finally:
            refreshers.stop_all()


def _cmd_follow(args: argparse.Namespace, settings: JobLogSettings) -> int:
    return asyncio.run(_follow(args, settings))


def _cmd_save(args: argparse.Namespace, settings: JobLogSettings) -> int:
    save_raw_job_trace(
        to_job_log_uri(args.repository_root, int(args.job_id)),
        Path(args.output or f"{int(args.job_id)}.log"),
        cache=JobLogCache(),
        client=_sync_client(settings),
        projects=_projects(args, settings),
    )
    return 0


def _cmd_uri(args: argparse.Namespace, settings: JobLogSettings) -> int:
    if args.decode:
        location = from_job_log_uri(args.decode)
        _write(f"{location.repository_root}\t{location.job_id}\n")
        return 0
    if not args.repository_root or args.job_id is None:
        logger.error("ERROR: uri needs <repository_root> <job_id> (or --decode <locator>)")
        return 2
    _write(to_job_log_uri(args.repository_root, int(args.job_id)) + "\n")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ci_job_log",
        description="Render GitLab CI job logs (ANSI colors, sections) and follow running jobs.",
        epilog="Examples:\n"
               "  %(prog)s render ~/Downloads/123456.log --sections\n"
               "  %(prog)s show ~/src/myproject 123456\n"
               "  %(prog)s follow ~/src/myproject 123456\n"
               "  %(prog)s save ~/src/myproject 123456 /tmp/123456.log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", default=None, help="YAML config file (default: ~/.config/ci-job-log/config.yaml)")
    parser.add_argument("--gitlab-url", default=None, help="GitLab base URL (default: $GITLAB_URL or https://gitlab.com)")
    parser.add_argument("--poll-interval", type=float, default=None, help="Seconds between live refreshes (default: 3)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("render", help="Render a local raw trace file")
    p.add_argument("file")
    p.add_argument("--html", action="store_true", help="Print per-line HTML instead of plain text")
    p.add_argument("--sections", action="store_true", help="List sections instead of printing text")
    p.add_argument("--running", action="store_true", help="Render as a live (running) trace")
    p.set_defaults(func=_cmd_render)

    p = sub.add_parser("show", help="Fetch a job trace once and print it")
    p.add_argument("repository_root")
    p.add_argument("job_id", type=int)
    p.add_argument("--html", action="store_true")
    p.add_argument("--project", default=None, help="GitLab project path (skips git remote lookup)")
    p.set_defaults(func=_cmd_show)

    p = sub.add_parser("follow", help="Print a job trace and keep printing new output until the job ends")
    p.add_argument("repository_root")
    p.add_argument("job_id", type=int)
    p.add_argument("--project", default=None, help="GitLab project path (skips git remote lookup)")
    p.set_defaults(func=_cmd_follow)

    p = sub.add_parser("save", help="Save the raw (unfiltered) trace to a file")
    p.add_argument("repository_root")
    p.add_argument("job_id", type=int)
    p.add_argument("output", nargs="?", default=None, help="Output path (default: <job_id>.log)")
    p.add_argument("--project", default=None, help="GitLab project path (skips git remote lookup)")
    p.set_defaults(func=_cmd_save)

    p = sub.add_parser("uri", help="Encode or decode a job log locator")
    p.add_argument("repository_root", nargs="?", default=None)
    p.add_argument("job_id", nargs="?", type=int, default=None)
    p.add_argument("--decode", default=None, metavar="LOCATOR")
    p.set_defaults(func=_cmd_uri)

    return parser


def _cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    settings = load_settings(
        Path(args.config).expanduser() if args.config else None,
        gitlab_url=args.gitlab_url,
        poll_interval_s=args.poll_interval,
    )

    try:
        return int(args.func(args, settings))
    except (GitLabAPIError, JobLogUriError, OSError) as e:
        logger.error(f"ERROR: {e}")
        return 2
