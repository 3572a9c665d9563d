# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Display options for decoration keys, and HTML rendering of traces."""

from __future__ import annotations

import functools
import html
from typing import Dict, List, Optional

from .ansi import AttributeFlags, Color, NamedColor, RgbColor, Style, StyleParser
from .transform import RUNNING_DECORATION_KEY, split_line

# Named slots resolve to the viewer's terminal theme; None = inherit.
THEME_COLORS: Dict[NamedColor, Optional[str]] = {
    NamedColor.DEFAULT_BACKGROUND: None,
    NamedColor.DEFAULT_FOREGROUND: None,
    NamedColor.BLACK: "terminal.ansiBlack",
    NamedColor.RED: "terminal.ansiRed",
    NamedColor.GREEN: "terminal.ansiGreen",
    NamedColor.YELLOW: "terminal.ansiYellow",
    NamedColor.BLUE: "terminal.ansiBlue",
    NamedColor.MAGENTA: "terminal.ansiMagenta",
    NamedColor.CYAN: "terminal.ansiCyan",
    NamedColor.WHITE: "terminal.ansiWhite",
    NamedColor.BRIGHT_BLACK: "terminal.ansiBrightBlack",
    NamedColor.BRIGHT_RED: "terminal.ansiBrightRed",
    NamedColor.BRIGHT_GREEN: "terminal.ansiBrightGreen",
    NamedColor.BRIGHT_YELLOW: "terminal.ansiBrightYellow",
    NamedColor.BRIGHT_BLUE: "terminal.ansiBrightBlue",
    NamedColor.BRIGHT_MAGENTA: "terminal.ansiBrightMagenta",
    NamedColor.BRIGHT_CYAN: "terminal.ansiBrightCyan",
    NamedColor.BRIGHT_WHITE: "terminal.ansiBrightWhite",
}

# Concrete colors for HTML output (dark background).
HTML_COLORS: Dict[NamedColor, str] = {
    NamedColor.BLACK: "#6b7280",
    NamedColor.RED: "#ef4444",
    NamedColor.GREEN: "#22c55e",
    NamedColor.YELLOW: "#eab308",
    NamedColor.BLUE: "#60a5fa",
    NamedColor.MAGENTA: "#c084fc",
    NamedColor.CYAN: "#22d3ee",
    NamedColor.WHITE: "#e2e8f0",
    NamedColor.BRIGHT_BLACK: "#9ca3af",
    NamedColor.BRIGHT_RED: "#f87171",
    NamedColor.BRIGHT_GREEN: "#4ade80",
    NamedColor.BRIGHT_YELLOW: "#facc15",
    NamedColor.BRIGHT_BLUE: "#93c5fd",
    NamedColor.BRIGHT_MAGENTA: "#d8b4fe",
    NamedColor.BRIGHT_CYAN: "#67e8f9",
    NamedColor.BRIGHT_WHITE: "#f8fafc",
}


def theme_color(color: Color) -> Optional[str]:
    if isinstance(color, RgbColor):
        return color.hex
    return THEME_COLORS[color]


def style_options(style: Style) -> Dict[str, str]:
    """Editor decoration options for one style (unset entries omitted)."""
    opts: Dict[str, str] = {}
    bg = theme_color(style.background_color)
    fg = theme_color(style.foreground_color)
    if bg:
        opts["backgroundColor"] = bg
    if fg:
        opts["color"] = fg
    if style.has(AttributeFlags.BOLD):
        opts["fontWeight"] = "bold"
    if style.has(AttributeFlags.ITALIC):
        opts["fontStyle"] = "italic"
    if style.has(AttributeFlags.UNDERLINE):
        opts["textDecoration"] = "underline"
    if style.has(AttributeFlags.FAINT):
        opts["opacity"] = "50%"
    return opts


@functools.lru_cache(maxsize=1024)
def _decoration_options_cached(key: str) -> tuple:
    if key == RUNNING_DECORATION_KEY:
        return (("after", "running-job"),)
    return tuple(sorted(style_options(Style.from_key(key)).items()))


def decoration_options(key: str) -> Dict[str, str]:
    """Translate a decoration key from `render()` back into display options."""
    return dict(_decoration_options_cached(key))


def _html_color(color: Color) -> Optional[str]:
    if isinstance(color, RgbColor):
        return color.hex
    return HTML_COLORS.get(color)


def style_css(style: Style) -> str:
    fg, bg = style.foreground_color, style.background_color
    if style.has(AttributeFlags.INVERSE):
        fg, bg = bg, fg
    parts: List[str] = []
    fg_css = _html_color(fg)
    bg_css = _html_color(bg)
    if fg_css:
        parts.append(f"color: {fg_css};")
    if bg_css:
        parts.append(f"background-color: {bg_css};")
    if style.has(AttributeFlags.BOLD):
        parts.append("font-weight: bold;")
    if style.has(AttributeFlags.FAINT):
        parts.append("opacity: 0.7;")
    if style.has(AttributeFlags.ITALIC):
        parts.append("font-style: italic;")
    decorations = []
    if style.has(AttributeFlags.UNDERLINE) or style.has(AttributeFlags.DOUBLE_UNDERLINE):
        decorations.append("underline")
    if style.has(AttributeFlags.CROSSED_OUT):
        decorations.append("line-through")
    if style.has(AttributeFlags.OVERLINED):
        decorations.append("overline")
    if decorations:
        parts.append(f"text-decoration: {' '.join(decorations)};")
    if style.has(AttributeFlags.CONCEAL):
        parts.append("visibility: hidden;")
    return " ".join(parts)


def render_html(raw_trace: str, *, double_underline: bool = False) -> str:
    """HTML for a raw trace: escaped text, one `<span style=...>` per styled run.

    No surrounding `<pre>`; one output line per trace line.
    """
    parser = StyleParser(double_underline=double_underline)
    out_lines: List[str] = []
    for raw_line in raw_trace.split("\n"):
        _, line = split_line(raw_line)
        pieces: List[str] = []
        for span in parser.append_line(line):
            if span.is_escape:
                continue
            text = html.escape(line[span.offset:span.end])
            css = style_css(span.style)
            pieces.append(f'<span style="{css}">{text}</span>' if css else text)
        out_lines.append("".join(pieces))
    if out_lines and out_lines[-1] == "":
        out_lines.pop()
    return "\n".join(out_lines)
