# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Incremental ANSI SGR (Select Graphic Rendition) parser.

`StyleParser.append_line()` turns one line of raw terminal output into
contiguous `Span`s, each tagged with an immutable `Style` snapshot. Style
state carries over from one line to the next, so one parser instance covers
one continuous document.

Only two CSI finals are recognized:
- `ESC [ ... m`  SGR, applied to the current style
- `ESC [ ... K`  erase-in-line, kept as a cosmetic escape span (no erase)

Anything else starting with ESC is left in the text as-is. The parser never
raises on input.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Union

ESC = "\x1b"

_ARGS_RE = re.compile(r"[0-9;]*")


class NamedColor(Enum):
    """Terminal palette slot (8 base, 8 bright, and the two defaults)."""

    DEFAULT_BACKGROUND = "default_background"
    DEFAULT_FOREGROUND = "default_foreground"

    BLACK = "black"
    RED = "red"
    GREEN = "green"
    YELLOW = "yellow"
    BLUE = "blue"
    MAGENTA = "magenta"
    CYAN = "cyan"
    WHITE = "white"

    BRIGHT_BLACK = "bright_black"
    BRIGHT_RED = "bright_red"
    BRIGHT_GREEN = "bright_green"
    BRIGHT_YELLOW = "bright_yellow"
    BRIGHT_BLUE = "bright_blue"
    BRIGHT_MAGENTA = "bright_magenta"
    BRIGHT_CYAN = "bright_cyan"
    BRIGHT_WHITE = "bright_white"

    @classmethod
    def base(cls, index: int) -> "NamedColor":
        return _BASE_COLORS[index]

    @classmethod
    def bright(cls, index: int) -> "NamedColor":
        return _BRIGHT_COLORS[index]


_BASE_COLORS = (
    NamedColor.BLACK,
    NamedColor.RED,
    NamedColor.GREEN,
    NamedColor.YELLOW,
    NamedColor.BLUE,
    NamedColor.MAGENTA,
    NamedColor.CYAN,
    NamedColor.WHITE,
)
_BRIGHT_COLORS = (
    NamedColor.BRIGHT_BLACK,
    NamedColor.BRIGHT_RED,
    NamedColor.BRIGHT_GREEN,
    NamedColor.BRIGHT_YELLOW,
    NamedColor.BRIGHT_BLUE,
    NamedColor.BRIGHT_MAGENTA,
    NamedColor.BRIGHT_CYAN,
    NamedColor.BRIGHT_WHITE,
)


class RgbColor(NamedTuple):
    r: int
    g: int
    b: int

    @property
    def hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    @classmethod
    def from_hex(cls, value: str) -> "RgbColor":
        s = value.lstrip("#")
        return cls(int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16))


Color = Union[NamedColor, RgbColor]


def color_to_json(color: Color) -> str:
    if isinstance(color, RgbColor):
        return color.hex
    return color.value


def color_from_json(value: str) -> Color:
    if value.startswith("#"):
        return RgbColor.from_hex(value)
    return NamedColor(value)


class AttributeFlags(IntFlag):
    NONE = 0
    BOLD = 1 << 0
    FAINT = 1 << 1
    ITALIC = 1 << 2
    UNDERLINE = 1 << 3
    SLOW_BLINK = 1 << 4
    RAPID_BLINK = 1 << 5
    INVERSE = 1 << 6
    CONCEAL = 1 << 7
    CROSSED_OUT = 1 << 8
    FRAKTUR = 1 << 9
    DOUBLE_UNDERLINE = 1 << 10
    PROPORTIONAL = 1 << 11
    FRAMED = 1 << 12
    ENCIRCLED = 1 << 13
    OVERLINED = 1 << 14
    SUPERSCRIPT = 1 << 15
    SUBSCRIPT = 1 << 16


@dataclass(frozen=True)
class Style:
    """Immutable rendering style of a span."""

    background_color: Color = NamedColor.DEFAULT_BACKGROUND
    foreground_color: Color = NamedColor.DEFAULT_FOREGROUND
    attributes: AttributeFlags = AttributeFlags.NONE
    font_index: int = 0

    def has(self, flag: AttributeFlags) -> bool:
        return bool(self.attributes & flag)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backgroundColor": color_to_json(self.background_color),
            "foregroundColor": color_to_json(self.foreground_color),
            "attributeFlags": int(self.attributes),
            "fontIndex": int(self.font_index),
        }

    def key(self) -> str:
        """Canonical JSON form; structurally equal styles share one key."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_key(cls, key: str) -> "Style":
        data = json.loads(key)
        return cls(
            background_color=color_from_json(str(data["backgroundColor"])),
            foreground_color=color_from_json(str(data["foregroundColor"])),
            attributes=AttributeFlags(int(data["attributeFlags"])),
            font_index=int(data["fontIndex"]),
        )


DEFAULT_STYLE = Style()


@dataclass(frozen=True)
class Span:
    """`length` characters of the parsed line starting at `offset`."""

    offset: int
    length: int
    style: Style
    is_escape: bool = False

    @property
    def end(self) -> int:
        return self.offset + self.length


# Setting the key flag clears the paired flag.
_EXCLUSIVE_SET = {
    1: (AttributeFlags.BOLD, AttributeFlags.FAINT),
    2: (AttributeFlags.FAINT, AttributeFlags.BOLD),
    3: (AttributeFlags.ITALIC, AttributeFlags.FRAKTUR),
    4: (AttributeFlags.UNDERLINE, AttributeFlags.DOUBLE_UNDERLINE),
    5: (AttributeFlags.SLOW_BLINK, AttributeFlags.RAPID_BLINK),
    6: (AttributeFlags.RAPID_BLINK, AttributeFlags.SLOW_BLINK),
    7: (AttributeFlags.INVERSE, AttributeFlags.NONE),
    8: (AttributeFlags.CONCEAL, AttributeFlags.NONE),
    9: (AttributeFlags.CROSSED_OUT, AttributeFlags.NONE),
    20: (AttributeFlags.FRAKTUR, AttributeFlags.ITALIC),
    26: (AttributeFlags.PROPORTIONAL, AttributeFlags.NONE),
    51: (AttributeFlags.FRAMED, AttributeFlags.ENCIRCLED),
    52: (AttributeFlags.ENCIRCLED, AttributeFlags.FRAMED),
    53: (AttributeFlags.OVERLINED, AttributeFlags.NONE),
    73: (AttributeFlags.SUPERSCRIPT, AttributeFlags.SUBSCRIPT),
    74: (AttributeFlags.SUBSCRIPT, AttributeFlags.SUPERSCRIPT),
}

_CLEAR = {
    22: AttributeFlags.BOLD | AttributeFlags.FAINT,
    23: AttributeFlags.ITALIC | AttributeFlags.FRAKTUR,
    24: AttributeFlags.UNDERLINE | AttributeFlags.DOUBLE_UNDERLINE,
    25: AttributeFlags.SLOW_BLINK | AttributeFlags.RAPID_BLINK,
    27: AttributeFlags.INVERSE,
    28: AttributeFlags.CONCEAL,
    29: AttributeFlags.CROSSED_OUT,
    50: AttributeFlags.PROPORTIONAL,
    54: AttributeFlags.FRAMED | AttributeFlags.ENCIRCLED,
    55: AttributeFlags.OVERLINED,
}


def convert_8bit_color(index: int) -> Color:
    """Map a 256-color palette index to a named slot or an RGB value."""
    if 0 <= index <= 7:
        return NamedColor.base(index)
    if 8 <= index <= 15:
        return NamedColor.bright(index - 8)
    if 232 <= index <= 255:
        level = (255 * (index - 232)) // 23
        return RgbColor(level, level, level)

    cube = index - 16
    cube, b6 = divmod(cube, 6)
    r6, g6 = divmod(cube, 6)
    return RgbColor(round(255 * r6 / 5), round(255 * g6 / 5), round(255 * b6 / 5))


@dataclass
class _StyleState:
    """Mutable accumulator; callers only ever see `snapshot()`."""

    background_color: Color = NamedColor.DEFAULT_BACKGROUND
    foreground_color: Color = NamedColor.DEFAULT_FOREGROUND
    attributes: int = 0
    font_index: int = 0
    _cached: Optional[Style] = field(default=None, repr=False, compare=False)

    def reset(self) -> None:
        self.background_color = NamedColor.DEFAULT_BACKGROUND
        self.foreground_color = NamedColor.DEFAULT_FOREGROUND
        self.attributes = 0
        self.font_index = 0
        self._cached = None

    def set_flag(self, flag: AttributeFlags, clears: AttributeFlags = AttributeFlags.NONE) -> None:
        self.attributes = (self.attributes | int(flag)) & ~int(clears)
        self._cached = None

    def clear_flags(self, flags: AttributeFlags) -> None:
        self.attributes = self.attributes & ~int(flags)
        self._cached = None

    def set_colors(self, *, fg: Optional[Color] = None, bg: Optional[Color] = None) -> None:
        if fg is not None:
            self.foreground_color = fg
        if bg is not None:
            self.background_color = bg
        self._cached = None

    def set_font(self, index: int) -> None:
        self.font_index = index
        self._cached = None

    def snapshot(self) -> Style:
        if self._cached is None:
            self._cached = Style(
                background_color=self.background_color,
                foreground_color=self.foreground_color,
                attributes=AttributeFlags(self.attributes),
                font_index=self.font_index,
            )
        return self._cached


def _arg(args: Sequence[int], i: int) -> Optional[int]:
    return args[i] if 0 <= i < len(args) else None


class StyleParser:
    """Stateful SGR interpreter (one instance per document)."""

    def __init__(self, *, double_underline: bool = False):
        # SGR 21 means "double underline" on some terminals and "bold off" on others.
        self.double_underline = bool(double_underline)
        self._state = _StyleState()

    @property
    def style(self) -> Style:
        """Style that the next character would get."""
        return self._state.snapshot()

    def reset(self) -> None:
        self._state.reset()

    def append_line(self, text: str) -> List[Span]:
        spans: List[Span] = []
        state = self._state
        n = len(text)
        text_offset = 0
        index = 0

        while index < n:
            if text[index] != ESC:
                esc_offset = text.find(ESC, index)
                if esc_offset == -1:
                    esc_offset = n
                if esc_offset > text_offset:
                    spans.append(Span(text_offset, esc_offset - text_offset, state.snapshot()))
                text_offset = esc_offset
                index = esc_offset
                continue

            # From here on `text[index]` is ESC; a malformed sequence just moves
            # `index` on and the bytes stay part of the next plain span.
            if index + 1 >= n or text[index + 1] != "[":
                index += 1
                continue

            command_offset = _find_final(text, index + 2)
            if command_offset == -1:
                index += 1
                continue

            arg_string = text[index + 2:command_offset]
            if not _ARGS_RE.fullmatch(arg_string):
                index = command_offset
                continue

            if index > text_offset:
                spans.append(Span(text_offset, index - text_offset, state.snapshot()))
            spans.append(Span(index, command_offset - index + 1, state.snapshot(), is_escape=True))

            if text[command_offset] == "m":
                args = [int(a) for a in arg_string.split(";") if a != ""]
                self._apply_codes(args or [0])

            text_offset = command_offset + 1
            index = command_offset + 1

        if index > text_offset:
            spans.append(Span(text_offset, index - text_offset, state.snapshot()))

        return spans

    def _apply_codes(self, args: Sequence[int]) -> None:
        state = self._state
        i = 0
        while i < len(args):
            code = args[i]

            if code == 0:
                state.reset()
            elif code in _EXCLUSIVE_SET:
                flag, clears = _EXCLUSIVE_SET[code]
                state.set_flag(flag, clears)
            elif code in _CLEAR:
                state.clear_flags(_CLEAR[code])
            elif 10 <= code <= 19:
                state.set_font(code - 10)
            elif code == 21:
                if self.double_underline:
                    state.set_flag(AttributeFlags.DOUBLE_UNDERLINE, AttributeFlags.UNDERLINE)
                else:
                    state.clear_flags(AttributeFlags.BOLD)
            elif 30 <= code <= 37:
                state.set_colors(fg=NamedColor.base(code - 30))
            elif code == 39:
                state.set_colors(fg=NamedColor.DEFAULT_FOREGROUND)
            elif 40 <= code <= 47:
                state.set_colors(bg=NamedColor.base(code - 40))
            elif code == 49:
                state.set_colors(bg=NamedColor.DEFAULT_BACKGROUND)
            elif 90 <= code <= 97:
                state.set_colors(fg=NamedColor.bright(code - 90))
            elif 100 <= code <= 107:
                state.set_colors(bg=NamedColor.bright(code - 100))
            elif code in (38, 48):
                color, consumed = self._extended_color(args, i)
                if color is not None:
                    if code == 38:
                        state.set_colors(fg=color)
                    else:
                        state.set_colors(bg=color)
                i += consumed
            # 58/59 (underline color) and everything else: ignored.
            i += 1

    @staticmethod
    def _extended_color(args: Sequence[int], i: int):
        """Decode `38;5;N` / `38;2;R;G;B` starting at `args[i]`.

        Returns (color or None, number of extra args consumed).
        """
        color_type = _arg(args, i + 1)
        if color_type == 5:
            n = _arg(args, i + 2)
            if n is not None and 0 <= n <= 255:
                return convert_8bit_color(n), 2
            return None, 2
        if color_type == 2:
            rgb = [_arg(args, i + 2), _arg(args, i + 3), _arg(args, i + 4)]
            if all(c is not None and 0 <= c <= 255 for c in rgb):
                return RgbColor(rgb[0], rgb[1], rgb[2]), 4
            return None, 4
        return None, 0


def _find_final(text: str, start: int) -> int:
    k = text.find("K", start)
    m = text.find("m", start)
    if k == -1:
        return m
    if m == -1:
        return k
    return min(k, m)
