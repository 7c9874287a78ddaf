from __future__ import annotations

import difflib
from dataclasses import dataclass


# SGR foreground codes accepted for left_color / right_color.
ANSI_COLORS = {
    "black": "30",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "magenta": "35",
    "cyan": "36",
    "white": "37",
}
_DIM = "2"
_RESET = "\x1b[0m"


@dataclass(frozen=True)
class DiffLine:
    left_no: int | None
    right_no: int | None
    sep: str  # "-" left only, "|" both, "+" right only
    content: str


@dataclass(frozen=True)
class DiffSettings:
    """How a manifest diff is rendered.

    `color` is None for "decide at output time" (the CLI uses isatty);
    True forces ANSI colour and False disables it.
    """

    left_name: str | None = None
    right_name: str | None = None
    left_label: str = "before"
    right_label: str = "after"
    left_marker: str = "-"
    right_marker: str = "+"
    marker_count: int = 4
    indent_spaces: int = 2
    color: bool | None = None
    left_color: str | None = "red"
    right_color: str | None = "green"

    def __post_init__(self) -> None:
        for name in ("left_marker", "right_marker"):
            if len(getattr(self, name)) != 1:
                raise ValueError(f"{name} must be a single character")
        if self.marker_count < 1:
            raise ValueError("marker_count must be >= 1")
        if self.indent_spaces < 0:
            raise ValueError("indent_spaces must be >= 0")
        for name in ("left_color", "right_color"):
            value = getattr(self, name)
            if value is not None and value not in ANSI_COLORS:
                raise ValueError(f"unknown {name} {value!r} (expected one of: {', '.join(ANSI_COLORS)})")


def line_diff(left: str, right: str) -> list[DiffLine] | None:
    """Compare `left` to `right` line by line; None when identical."""

    if left == right:
        return None

    a = left.splitlines()
    b = right.splitlines()
    out: list[DiffLine] = []
    ln_a = 0
    ln_b = 0
    matcher = difflib.SequenceMatcher(a=a, b=b, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for line in a[i1:i2]:
                ln_a += 1
                ln_b += 1
                out.append(DiffLine(ln_a, ln_b, "|", line))
            continue
        # replace = delete + insert
        for line in a[i1:i2]:
            ln_a += 1
            out.append(DiffLine(ln_a, None, "-", line))
        for line in b[j1:j2]:
            ln_b += 1
            out.append(DiffLine(None, ln_b, "+", line))

    if all(d.sep == "|" for d in out):
        # Differs only in trailing newline.
        return None
    return out


def _paint(text: str, code: str | None, enabled: bool) -> str:
    if not enabled or code is None:
        return text
    return f"\x1b[{code}m{text}{_RESET}"


def _header(marker: str, label: str, name: str | None, label_width: int, count: int) -> str:
    bar = marker * count
    if name is None:
        return f"{bar} {label}"
    # Pad the shorter label so both names line up.
    pad = " " * (label_width - len(label))
    return f"{bar} {label}:{pad} {name}"


def _num(n: int | None, width: int) -> str:
    if n is None:
        return " " * width
    return f"{n:>{width}}"


def render_line_diff(diff: list[DiffLine], settings: DiffSettings | None = None) -> str:
    s = settings or DiffSettings()
    paint = bool(s.color)
    left_code = ANSI_COLORS.get(s.left_color) if s.left_color else None
    right_code = ANSI_COLORS.get(s.right_color) if s.right_color else None

    max_no = max([d.left_no or 0 for d in diff] + [d.right_no or 0 for d in diff] + [1])
    width = len(str(max_no))
    indent = " " * s.indent_spaces

    label_w = max(len(s.left_label), len(s.right_label))
    lines = [
        _paint(_header(s.left_marker, s.left_label, s.left_name, label_w, s.marker_count), left_code, paint),
        _paint(_header(s.right_marker, s.right_label, s.right_name, label_w, s.marker_count), right_code, paint),
    ]
    for d in diff:
        line = f"{indent}{_num(d.left_no, width)}{indent}{_num(d.right_no, width)} {d.sep} {d.content}"
        code = {"-": left_code, "+": right_code}.get(d.sep, _DIM)
        lines.append(_paint(line, code, paint))
    return "\n".join(lines) + "\n"
