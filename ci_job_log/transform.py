# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Turn a raw CI job trace into display data.

`render()` walks the trace line by line and produces:
- `sections`: named, timed regions delimited by GitLab's
  `section_start:<time>:<key>` / `section_end:<time>:<key>` markers
- `decorations`: style key -> list of single-line column ranges, in the
  coordinates of the *filtered* text (escape sequences removed)
- `filtered_text`: the trace with escape sequences and CR-overwritten
  segments removed

Line anatomy (GitLab runner output):

    section_start:1560896352:step_script\\r\\x1b[0KExecuting "step_script"\\r
    `--------- control segment ---------'  `------ displayed segment -----'

Everything before the last CR (excluding a trailing CR) is what the terminal
would have overwritten; only the part after it is shown.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .ansi import StyleParser

RUNNING_DECORATION_KEY = "running"

SECTION_START = "section_start"
SECTION_END = "section_end"


@dataclass(frozen=True)
class Section:
    key: str
    start_line: int
    start_time: int
    end_line: Optional[int] = None
    end_time: Optional[int] = None

    @property
    def is_closed(self) -> bool:
        return self.end_line is not None


@dataclass(frozen=True)
class LineRange:
    """Columns [start, end) on one line of the filtered text."""

    line: int
    start: int
    end: int


@dataclass(frozen=True)
class RenderedLog:
    sections: Dict[str, Section]
    decorations: Dict[str, List[LineRange]]
    filtered_text: str


def _parse_section_directive(raw_line: str, directive: str, cr_index: int) -> Optional[Tuple[int, str]]:
    """Return (time, key) for `directive:<time>:<key>` found before `cr_index`."""
    index = raw_line.find(directive)
    if index == -1 or index >= cr_index:
        return None
    tokens = raw_line[index:].split(":", 3)
    if len(tokens) < 3:
        return None
    key = tokens[2].split("\r", 1)[0]
    try:
        time = int(tokens[1])
    except ValueError:
        return None
    return time, key


def split_line(raw_line: str) -> Tuple[int, str]:
    """Return (control CR index or -1, displayed segment)."""
    cr_index = raw_line.rfind("\r", 0, max(len(raw_line) - 1, 0))
    line_end = len(raw_line) - 1 if raw_line.endswith("\r") else len(raw_line)
    return cr_index, raw_line[cr_index + 1:line_end]


def render(raw_trace: str, is_running: bool, *, double_underline: bool = False) -> RenderedLog:
    """Parse one complete trace (fresh `StyleParser`, fresh sections)."""
    lines = raw_trace.split("\n")
    line_count = len(lines)

    decorations: Dict[str, List[LineRange]] = {}
    sections: Dict[str, Section] = {}
    parser = StyleParser(double_underline=double_underline)
    chunks: List[str] = []

    for line_number, raw_line in enumerate(lines):
        cr_index, line = split_line(raw_line)

        if cr_index != -1:
            start = _parse_section_directive(raw_line, SECTION_START, cr_index)
            if start is not None:
                start_time, key = start
                sections[key] = Section(key=key, start_line=line_number, start_time=start_time)

            end = _parse_section_directive(raw_line, SECTION_END, cr_index)
            if end is not None:
                end_time, key = end
                opened = sections.get(key)
                if opened is not None:
                    # The marker line itself is not part of the section body.
                    sections[key] = Section(
                        key=key,
                        start_line=opened.start_line,
                        start_time=opened.start_time,
                        end_line=max(line_number - 1, opened.start_line),
                        end_time=end_time,
                    )

        escape_length = 0
        for span in parser.append_line(line):
            if span.is_escape:
                escape_length += span.length
                continue
            decorations.setdefault(span.style.key(), []).append(
                LineRange(line_number, span.offset - escape_length, span.end - escape_length)
            )
            chunks.append(line[span.offset:span.end])

        # A trailing empty line means the trace already ended with "\n".
        if line_number < line_count - 1 or line:
            chunks.append("\n")

    if is_running:
        eol_line = line_count if lines[-1] else line_count - 1
        decorations[RUNNING_DECORATION_KEY] = [LineRange(eol_line, 0, 0)]
    else:
        decorations[RUNNING_DECORATION_KEY] = []

    return RenderedLog(sections=sections, decorations=decorations, filtered_text="".join(chunks))


def folding_ranges(sections: Dict[str, Section]) -> List[Tuple[int, int]]:
    """(start_line, end_line) for every closed section, ordered by start line."""
    out = [(s.start_line, s.end_line) for s in sections.values() if s.end_line is not None]
    return sorted(out)
