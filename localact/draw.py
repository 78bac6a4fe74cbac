"""Boxes and arrows drawn with ANSI colours for terminal graphs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, NamedTuple, TextIO


class Style(IntEnum):
    DOUBLE_LINE = 0
    SINGLE_LINE = 1
    DASHED_LINE = 2
    NO_LINE = 3


class _StyleDef(NamedTuple):
    corner_tl: str
    corner_tr: str
    corner_bl: str
    corner_br: str
    line_h: str
    line_v: str


_STYLE_DEFS = {
    Style.DOUBLE_LINE: _StyleDef("\u2554", "\u2557", "\u255a", "\u255d", "\u2550", "\u2551"),
    Style.SINGLE_LINE: _StyleDef("\u256d", "\u256e", "\u2570", "\u256f", "\u2500", "\u2502"),
    Style.DASHED_LINE: _StyleDef("\u250c", "\u2510", "\u2514", "\u2518", "\u254c", "\u254e"),
    Style.NO_LINE: _StyleDef(" ", " ", " ", " ", " ", " "),
}


@dataclass
class Drawing:
    """Rendered text together with its visible width."""

    text: str
    width: int

    def draw(self, writer: TextIO, center_on_width: int) -> None:
        """Write the non-empty lines, centred within ``center_on_width``."""
        padding = " " * max((center_on_width - self.width) // 2, 0)
        for line in self.text.split("\n"):
            if line:
                writer.write(f"{padding}{line}\n")


class Pen:
    """Draws in one line style and colour; CLICOLOR=0 turns colour off."""

    def __init__(self, style: Style, color: int) -> None:
        self.style = Style(style)
        self.color = color
        self.bgcolor = 49
        if os.environ.get("CLICOLOR") == "0":
            self.color = 0
            self.bgcolor = 0

    def _row(self, labels: tuple[str, ...], render: Callable[[str], str]) -> str:
        cells = (
            f" \x1b[{self.color};{self.bgcolor}m{render(label)}\x1b[0m" for label in labels
        )
        return "".join(cells) + "\n"

    def draw_arrow(self) -> Drawing:
        """Draw a downward arrow."""
        return Drawing(f"\x1b[{self.color}m\u2b07\x1b[0m", 1)

    def draw_boxes(self, *args: str) -> Drawing:
        """Draw a row of boxes, one around each label."""
        style = _STYLE_DEFS[self.style]

        def bar(label: str) -> str:
            return style.line_h * (len(label) + 2)

        text = (
            self._row(args, lambda l: f"{style.corner_tl}{bar(l)}{style.corner_tr}")
            + self._row(args, lambda l: f"{style.line_v} {l} {style.line_v}")
            + self._row(args, lambda l: f"{style.corner_bl}{bar(l)}{style.corner_br}")
        )
        width = sum(len(label) + 5 for label in args)
        return Drawing(text, width)