#!/usr/bin/env python3
"""lsystem_turtle.py

An L-system grammar parser, rewriting engine and tick-driven turtle.

Key features:
- Text grammar: axioms such as "F-F-F-F", rules such as "F => F+F-F-F+F".
- Eager rewriting: the final word is built once, one generation at a time.
- A turtle that consumes one symbol per tick and replays forever.
- Branching via push/pop.
- Built-in preset catalog (Koch variants, dragon, Sierpinski, Gosper, plants).
- SVG export of the recorded geometry.

Run:
  python lsystem_turtle.py list
  python lsystem_turtle.py show dragon
  python lsystem_turtle.py render tree_a out.svg
  python lsystem_turtle.py render --config example/dragon.json out.svg
  python lsystem_turtle.py random out.json --seed 123
  python lsystem_turtle.py --help
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import os
import random
import string
import sys
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, cast

logger = logging.getLogger(__name__)

Point = tuple[float, float]
Segment = tuple[Point, Point]


# -------------------------
# Errors / Validation
# -------------------------


class ConfigError(ValueError):
    pass


class ParseError(ConfigError):
    """Grammar text could not be parsed.

    ``line`` and ``column`` are 1-based and point at the offending text.
    """

    def __init__(self, message: str, *, line: int = 1, column: int = 1) -> None:
        super().__init__(f"line {line}, column {column}: {message}")
        self.line = line
        self.column = column


class UnknownTokenError(ParseError):
    pass


class MalformedPredecessorError(ParseError):
    pass


class UnterminatedRuleError(ParseError):
    pass


class StackUnderflowError(RuntimeError):
    """Pop reached the turtle's base frame: the word has unbalanced brackets."""


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)


def _as_float(x: Any, path: str) -> float:
    _require(
        isinstance(x, (int, float)) and not isinstance(x, bool),
        f"{path} must be a number",
    )
    return float(x)


def _as_int(x: Any, path: str) -> int:
    _require(
        isinstance(x, int) and not isinstance(x, bool), f"{path} must be an integer"
    )
    return int(x)


def _as_str(x: Any, path: str) -> str:
    _require(isinstance(x, str), f"{path} must be a string")
    return cast(str, x)


def _as_bool(x: Any, path: str) -> bool:
    _require(isinstance(x, bool), f"{path} must be a boolean")
    return cast(bool, x)


def _as_dict(x: Any, path: str) -> dict[str, Any]:
    _require(isinstance(x, dict), f"{path} must be an object")
    return cast(dict[str, Any], x)


# -------------------------
# Symbol alphabet
# -------------------------

SymbolKind = Literal[
    "forward",
    "forward_no_line",
    "turn_left",
    "turn_right",
    "push",
    "pop",
    "reset",
    "node",
]

_LABELLED_KINDS = ("forward", "node")

# Token text for the label-free kinds. "!" is never accepted by the parser;
# it only shows up when a replayed stream containing RESET is formatted.
_KIND_TOKENS: dict[str, str] = {
    "forward_no_line": "f",
    "turn_left": "+",
    "turn_right": "-",
    "push": "[",
    "pop": "]",
    "reset": "!",
}


@dataclass(frozen=True)
class Symbol:
    """One turtle instruction.

    Equality and hashing cover both ``kind`` and ``label``, so
    ``forward("F")`` and ``forward("G")`` are distinct rule keys.
    """

    kind: SymbolKind
    label: str | None = None

    def __post_init__(self) -> None:
        if self.kind in _LABELLED_KINDS:
            _require(
                isinstance(self.label, str)
                and len(self.label) == 1
                and self.label.isalpha(),
                f"{self.kind} symbol needs a single-letter label",
            )
        else:
            _require(
                self.kind in _KIND_TOKENS, f"unknown symbol kind {self.kind!r}"
            )
            _require(self.label is None, f"{self.kind} symbol takes no label")

    @property
    def draws(self) -> bool:
        return self.kind == "forward"

    @property
    def moves(self) -> bool:
        return self.kind in ("forward", "forward_no_line")

    def __str__(self) -> str:
        if self.label is not None:
            return self.label
        return _KIND_TOKENS[self.kind]


def forward(label: str) -> Symbol:
    return Symbol("forward", label)


def node(label: str) -> Symbol:
    return Symbol("node", label)


FORWARD_NO_LINE = Symbol("forward_no_line")
TURN_LEFT = Symbol("turn_left")
TURN_RIGHT = Symbol("turn_right")
PUSH = Symbol("push")
POP = Symbol("pop")
RESET = Symbol("reset")

Word = tuple[Symbol, ...]
Rules = dict[Symbol, Word]


# -------------------------
# Grammar parsing
# -------------------------

NO_LINE_LETTER = "f"
RULE_SEPARATOR = "=>"

_CONTROL_TOKENS: dict[str, Symbol] = {
    "+": TURN_LEFT,
    "-": TURN_RIGHT,
    "[": PUSH,
    "]": POP,
}


def _parse_token(ch: str, *, line: int, column: int) -> Symbol:
    sym = _CONTROL_TOKENS.get(ch)
    if sym is not None:
        return sym
    if ch == NO_LINE_LETTER:
        return FORWARD_NO_LINE
    if ch in string.ascii_uppercase:
        return forward(ch)
    if ch in string.ascii_lowercase:
        return node(ch)
    raise UnknownTokenError(f"unknown token {ch!r}", line=line, column=column)


def parse_sequence(text: str, *, line: int = 1, column: int = 1) -> Word:
    """Tokenize an axiom or replacement into symbols.

    Whitespace is skipped. ``line``/``column`` locate ``text`` inside a
    larger document so errors point at the right place.
    """
    symbols: list[Symbol] = []
    for col, ch in enumerate(text, start=column):
        if ch.isspace():
            continue
        symbols.append(_parse_token(ch, line=line, column=col))
    return tuple(symbols)


def parse_rules(text: str) -> Rules:
    """Parse newline-separated ``"<predecessor> => <replacement>"`` entries.

    Blank lines are ignored. A later entry for the same predecessor replaces
    the earlier one.
    """
    rules: Rules = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        entry = raw.strip()
        if not entry:
            continue
        lead = len(raw) - len(raw.lstrip())
        lhs, sep, rhs = entry.partition(RULE_SEPARATOR)
        if not sep:
            raise UnterminatedRuleError(
                f"rule {entry!r} is missing {RULE_SEPARATOR!r}",
                line=lineno,
                column=lead + len(entry) + 1,
            )

        predecessor = parse_sequence(lhs, line=lineno, column=lead + 1)
        if len(predecessor) != 1 or predecessor[0].kind not in (
            "forward",
            "forward_no_line",
            "node",
        ):
            raise MalformedPredecessorError(
                f"predecessor {lhs.strip()!r} must be exactly one letter",
                line=lineno,
                column=lead + 1,
            )

        rhs_column = lead + len(lhs) + len(sep) + 1
        if not rhs.strip():
            raise UnterminatedRuleError(
                f"rule {entry!r} has no replacement",
                line=lineno,
                column=rhs_column,
            )
        replacement = parse_sequence(rhs, line=lineno, column=rhs_column)

        key = predecessor[0]
        if key in rules:
            logger.debug("rule for %s redefined on line %d", key, lineno)
        rules[key] = replacement
    return rules


def format_sequence(symbols: Iterable[Symbol]) -> str:
    return "".join(str(s) for s in symbols)


def format_rules(rules: Mapping[Symbol, Sequence[Symbol]]) -> str:
    return "\n".join(
        f"{key} {RULE_SEPARATOR} {format_sequence(repl)}"
        for key, repl in rules.items()
    )


def is_balanced(symbols: Iterable[Symbol]) -> bool:
    """True when no POP ever runs past its PUSH and every PUSH is closed."""
    depth = 0
    for sym in symbols:
        if sym == PUSH:
            depth += 1
        elif sym == POP:
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


# -------------------------
# Rewriting
# -------------------------


def rewrite_once(
    word: Iterable[Symbol], rules: Mapping[Symbol, Sequence[Symbol]]
) -> Word:
    """Apply every rule in parallel once; symbols without a rule stay put."""
    out: list[Symbol] = []
    for sym in word:
        repl = rules.get(sym)
        if repl is None:
            out.append(sym)
        else:
            out.extend(repl)
    return tuple(out)


def rewrite(
    word: Iterable[Symbol],
    rules: Mapping[Symbol, Sequence[Symbol]],
    generations: int,
) -> Word:
    _require(generations >= 0, "iterations must be >= 0")
    current = tuple(word)
    for _ in range(generations):
        current = rewrite_once(current, rules)
    return current


@dataclass(frozen=True)
class Definition:
    name: str
    axiom: Word
    rules: Mapping[Symbol, Word] = field(hash=False)
    generations: int
    delta: float  # radians

    @classmethod
    def from_text(
        cls,
        name: str,
        axiom_text: str,
        rules_text: str,
        generations: int,
        delta: float,
    ) -> Definition:
        _require(generations >= 0, "iterations must be >= 0")
        axiom = parse_sequence(axiom_text)
        rules = parse_rules(rules_text)
        return cls(
            name=name,
            axiom=axiom,
            rules=MappingProxyType(rules),
            generations=generations,
            delta=float(delta),
        )


class LSystem:
    """A definition rewritten to its final generation, plus a replay cursor.

    The word is built once, here, and never changes afterwards. Only the
    cursor moves, through :meth:`next_step`.
    """

    def __init__(self, definition: Definition) -> None:
        self._definition = definition
        self._symbols = rewrite(
            definition.axiom, definition.rules, definition.generations
        )
        self._cursor = 0
        logger.debug(
            "built %s: %d generations, %d symbols",
            definition.name,
            definition.generations,
            len(self._symbols),
        )

    @property
    def definition(self) -> Definition:
        return self._definition

    @property
    def name(self) -> str:
        return self._definition.name

    @property
    def delta(self) -> float:
        return self._definition.delta

    @property
    def symbols(self) -> Word:
        return self._symbols

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._symbols)

    def peek(self) -> Symbol:
        """The symbol the next call to :meth:`next_step` will return."""
        if self._cursor >= len(self._symbols):
            return RESET
        return self._symbols[self._cursor]

    def next_step(self) -> Symbol:
        """Return the next symbol, or RESET (rewinding) at the end of the word."""
        if self._cursor >= len(self._symbols):
            self._cursor = 0
            return RESET
        sym = self._symbols[self._cursor]
        self._cursor += 1
        return sym


def construct(
    name: str, axiom_text: str, rules_text: str, n: int, delta: float
) -> LSystem:
    return LSystem(Definition.from_text(name, axiom_text, rules_text, n, delta))


# -------------------------
# Turtle interpreter
# -------------------------


@dataclass(frozen=True)
class Frame:
    position: Point
    heading: float


class Turtle:
    """Position, heading and a branch stack, advanced one symbol at a time.

    The stack always holds at least the base frame. Every applied symbol
    except RESET is recorded with the position it leaves the turtle at;
    RESET clears that record.
    """

    def __init__(
        self,
        origin: Point = (0.0, 0.0),
        heading: float = 0.0,
        *,
        step_length: float = 10.0,
    ) -> None:
        _require(step_length > 0, "turtle.step must be > 0")
        self.step_length = float(step_length)
        self.reinitialize(origin, heading)

    def reinitialize(self, origin: Point, heading: float = 0.0) -> None:
        """Discard everything and start over at ``origin``."""
        self._position: Point = (float(origin[0]), float(origin[1]))
        self._heading = float(heading)
        self._stack: list[Frame] = [Frame(self._position, self._heading)]
        self._recorded: list[tuple[Symbol, Point]] = []
        self._anchor = self._position

    @property
    def position(self) -> Point:
        return self._position

    @property
    def heading(self) -> float:
        return self._heading

    @property
    def stack(self) -> tuple[Frame, ...]:
        return tuple(self._stack)

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def anchor(self) -> Point:
        """Where the current recording started."""
        return self._anchor

    @property
    def recorded(self) -> tuple[tuple[Symbol, Point], ...]:
        return tuple(self._recorded)

    def push(self) -> Frame:
        frame = Frame(self._position, self._heading)
        self._stack.append(frame)
        return frame

    def pop(self) -> Frame:
        if len(self._stack) <= 1:
            raise StackUnderflowError(
                "pop with only the base frame left; brackets are unbalanced"
            )
        frame = self._stack.pop()
        self._position, self._heading = frame.position, frame.heading
        return frame

    def reset(self) -> None:
        self._stack.clear()
        self._stack.append(Frame(self._position, self._heading))
        self._recorded.clear()
        self._anchor = self._position
        logger.debug("turtle reset at (%.3f, %.3f)", *self._position)

    def update(self, symbol: Symbol, delta: float) -> Point:
        """Apply one symbol and return the resulting position."""
        kind = symbol.kind
        if kind == "forward" or kind == "forward_no_line":
            x, y = self._position
            self._position = (
                x + self.step_length * math.cos(self._heading),
                y + self.step_length * math.sin(self._heading),
            )
        elif kind == "turn_left":
            self._heading += delta
        elif kind == "turn_right":
            self._heading -= delta
        elif kind == "push":
            self.push()
        elif kind == "pop":
            self.pop()
        elif kind == "reset":
            self.reset()
            return self._position
        elif kind == "node":
            pass
        else:
            raise ConfigError(f"Unknown symbol kind '{kind}'")

        self._recorded.append((symbol, self._position))
        return self._position

    def advance(self, lsystem: LSystem) -> Segment | None:
        """One tick: take the next symbol from ``lsystem`` and apply it.

        Returns the drawn segment for a FORWARD step, else None. When the
        symbol cannot be applied the cursor is left where it was.
        """
        symbol = lsystem.peek()
        before = self._position
        after = self.update(symbol, lsystem.delta)
        lsystem.next_step()
        if symbol.draws:
            return (before, after)
        return None

    def segments(self) -> list[Segment]:
        """Rebuild every drawn segment since the last reset, in order."""
        out: list[Segment] = []
        prev = self._anchor
        for sym, point in self._recorded:
            if sym.draws:
                out.append((prev, point))
            prev = point
        return out


class Player:
    """The host-facing pair: one LSystem driven by its own Turtle."""

    def __init__(
        self,
        lsystem: LSystem,
        *,
        origin: Point = (0.0, 0.0),
        heading: float = 0.0,
        step_length: float = 10.0,
    ) -> None:
        self._origin = origin
        self._start_heading = heading
        self._lsystem = lsystem
        self._turtle = Turtle(origin, heading, step_length=step_length)

    @property
    def lsystem(self) -> LSystem:
        return self._lsystem

    @property
    def turtle(self) -> Turtle:
        return self._turtle

    def label(self) -> str:
        return self._lsystem.name

    def turn_angle(self) -> float:
        return self._lsystem.delta

    def tick(self) -> Segment | None:
        return self._turtle.advance(self._lsystem)

    def run(self, ticks: int) -> list[Segment]:
        _require(ticks >= 0, "ticks must be >= 0")
        out: list[Segment] = []
        for _ in range(ticks):
            seg = self.tick()
            if seg is not None:
                out.append(seg)
        return out

    def replay_once(self) -> list[Segment]:
        """Tick through the rest of the word, stopping before the RESET."""
        return self.run(len(self._lsystem) - self._lsystem.cursor)

    def recorded_segments(self) -> tuple[tuple[Symbol, Point], ...]:
        return self._turtle.recorded

    def segments(self) -> list[Segment]:
        return self._turtle.segments()

    def switch(
        self,
        lsystem: LSystem,
        *,
        origin: Point | None = None,
        heading: float | None = None,
    ) -> None:
        """Replace the running system; no turtle state carries over."""
        if origin is not None:
            self._origin = origin
        if heading is not None:
            self._start_heading = heading
        self._lsystem = lsystem
        self._turtle.reinitialize(self._origin, self._start_heading)
        logger.info("switched to %s", lsystem.name)


def tick(lsystem: LSystem, turtle: Turtle) -> Segment | None:
    return turtle.advance(lsystem)


def recorded_segments(turtle: Turtle) -> tuple[tuple[Symbol, Point], ...]:
    return turtle.recorded


def label(lsystem: LSystem) -> str:
    return lsystem.name


def turn_angle(lsystem: LSystem) -> float:
    return lsystem.delta


# -------------------------
# Preset catalog
# -------------------------


@dataclass(frozen=True)
class Preset:
    axiom: str
    rules: str
    generations: int
    delta: float  # radians


_HALF_PI = math.pi / 2
_THIRD_PI = math.pi / 3

PRESETS: Mapping[str, Preset] = MappingProxyType(
    {
        "cyclone": Preset("F-F-F-F", "F => F-F+F+FF-F-F+F", 2, _HALF_PI),
        "caret": Preset("-F", "F => F+F-F-F+F", 4, _HALF_PI),
        "islands": Preset(
            "F+F+F+F",
            "F => F+f-FF+F+FF+Ff+FF-f+FF-F-FF-Ff-FFF\nf => ffffff",
            2,
            _HALF_PI,
        ),
        "xshape": Preset("F-F-F-F", "F => FF-F-F-F-F-F+F", 4, _HALF_PI),
        "square": Preset("F-F-F-F", "F => FF-F-F-F-FF", 4, _HALF_PI),
        "grid": Preset("F-F-F-F", "F => FF-F+F-F-FF", 3, _HALF_PI),
        "sparse": Preset("F-F-F-F", "F => FF-F--F-F", 4, _HALF_PI),
        "dense": Preset("F-F-F-F", "F => F-FF--F-F", 5, _HALF_PI),
        "snowflake": Preset("F-F-F-F", "F => F-F+F-F-F", 4, _HALF_PI),
        "dragon": Preset("L", "L => L+R+\nR => -L-R", 10, _HALF_PI),
        "sierpinski": Preset("R", "L => R+L+R\nR => L-R-L", 6, _THIRD_PI),
        "hex_gosper": Preset(
            "L", "L => L+R++R-L--LL-R+\nR => -L+RR++R+L--L-R", 4, _THIRD_PI
        ),
        "quad_gosper": Preset(
            "-R",
            "L => LL-R-R+L+L-R-RL+R+LLR-L+R+LL+R-LR-R-L+L+RR-\n"
            "R => +LL-R-R+L+LR+L-RR-L-R+LRR-L-RL+L+R-R-L+L+RR",
            2,
            _HALF_PI,
        ),
        "tree_a": Preset("F", "F => F[+F]F[-F]F", 5, math.radians(25.7)),
        "tree_b": Preset("F", "F => F[+F]F[-F][F]", 5, math.radians(20.0)),
        "tree_c": Preset("F", "F => FF-[-F+F+F]+[+F-F-F]", 5, math.radians(22.5)),
        "tree_d": Preset("X", "X => F[+X]F[-X]+X\nF => FF", 7, math.radians(20.0)),
        "tree_e": Preset("X", "X => F[+X][-X]FX\nF => FF", 7, math.radians(25.7)),
        "tree_f": Preset(
            "X", "X => F-[[X]+X]+F[+FX]-X\nF => FF", 5, math.radians(22.5)
        ),
    }
)


def preset_names() -> list[str]:
    return list(PRESETS)


def random_preset(rng: random.Random) -> str:
    """Pick a preset name uniformly, drawing only from ``rng``."""
    return rng.choice(preset_names())


def preset_definition(name: str) -> Definition:
    preset = PRESETS.get(name)
    if preset is None:
        raise ConfigError(
            f"unknown preset {name!r}; choose one of: {', '.join(PRESETS)}"
        )
    return Definition.from_text(
        name, preset.axiom, preset.rules, preset.generations, preset.delta
    )


def instantiate(source: str | Definition) -> LSystem:
    """Run parse + rewrite for a preset name or an explicit definition."""
    if isinstance(source, Definition):
        return LSystem(source)
    return LSystem(preset_definition(source))


# -------------------------
# SVG writing
# -------------------------


@dataclass(frozen=True)
class SvgStyle:
    stroke: str = "#000"
    stroke_width: float = 1.0
    fill: str = "none"
    stroke_linecap: str = "round"
    stroke_linejoin: str = "round"


def _ensure_parent_dir(path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)) or ".", exist_ok=True)


def segments_to_polylines(segments: Iterable[Segment]) -> list[list[Point]]:
    """Chain segments that share endpoints into polylines."""
    polylines: list[list[Point]] = []
    for start, end in segments:
        if polylines and polylines[-1][-1] == start:
            polylines[-1].append(end)
        else:
            polylines.append([start, end])
    return polylines


def compute_bounds(polylines: list[list[Point]]) -> tuple[float, float, float, float]:
    _require(len(polylines) > 0, "No drawable geometry produced.")
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for pl in polylines:
        for x, y in pl:
            min_x = min(min_x, x)
            max_x = max(max_x, x)
            min_y = min(min_y, y)
            max_y = max(max_y, y)
    return (min_x, min_y, max_x, max_y)


def _fmt(x: float, precision: int) -> str:
    s = f"{x:.{precision}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    # Rounding can leave "-0"; never emit it.
    if s in ("-0", ""):
        s = "0"
    return s


def write_svg(
    segments: Iterable[Segment],
    *,
    out_path: str,
    margin: float,
    precision: int,
    flip_y: bool,
    width: float | None,
    height: float | None,
    style: SvgStyle,
    background: str | None,
    title: str | None = None,
) -> None:
    polylines = segments_to_polylines(segments)
    minx, miny, maxx, maxy = compute_bounds(polylines)

    minx -= margin
    miny -= margin
    maxx += margin
    maxy += margin
    w = maxx - minx
    h = maxy - miny
    _require(
        w > 0 and h > 0,
        "Degenerate bounds after margin (width or height is zero). "
        "Set svg.margin > 0 to render collinear geometry.",
    )

    svg_w_attr = f' width="{_fmt(float(width), precision)}"' if width else ""
    svg_h_attr = f' height="{_fmt(float(height), precision)}"' if height else ""
    view_box = (
        f"{_fmt(minx, precision)} {_fmt(miny, precision)} {_fmt(w, precision)} "
        f"{_fmt(h, precision)}"
    )

    lines: list[str] = []
    lines.append('<?xml version="1.0" encoding="UTF-8"?>')
    lines.append(
        "<svg xmlns=\"http://www.w3.org/2000/svg\" version=\"1.1\" "
        f"viewBox=\"{view_box}\"{svg_w_attr}{svg_h_attr}>"
    )

    if title:
        safe_title = (
            title.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        )
        lines.append(f"  <title>{safe_title}</title>")

    if background and background.lower() != "none":
        lines.append(
            f'  <rect x="{_fmt(minx, precision)}" y="{_fmt(miny, precision)}" '
            f'width="{_fmt(w, precision)}" height="{_fmt(h, precision)}" '
            f'fill="{background}" />'
        )

    style_attr = (
        f'stroke="{style.stroke}" stroke-width="{_fmt(style.stroke_width, precision)}" '
        f'fill="{style.fill}" stroke-linecap="{style.stroke_linecap}" '
        f'stroke-linejoin="{style.stroke_linejoin}"'
    )

    if flip_y:
        # Turtle math is Cartesian; flip about y = (miny + maxy) for SVG.
        flip_y_line = _fmt(miny + maxy, precision)
        lines.append(f'  <g transform="translate(0,{flip_y_line}) scale(1,-1)">')
        indent = "    "
    else:
        indent = "  "

    for pl in polylines:
        pts = " ".join(f"{_fmt(x, precision)},{_fmt(y, precision)}" for x, y in pl)
        lines.append(f'{indent}<polyline points="{pts}" {style_attr} />')

    if flip_y:
        lines.append("  </g>")

    lines.append("</svg>")

    _ensure_parent_dir(out_path)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
        f.write("\n")


# -------------------------
# Config parsing
# -------------------------


@dataclass(frozen=True)
class TurtleStart:
    x: float
    y: float
    heading_deg: float


@dataclass(frozen=True)
class RenderConfig:
    definition: Definition

    step: float
    start: TurtleStart

    # svg
    margin: float
    precision: int
    flip_y: bool
    width: float | None
    height: float | None
    style: SvgStyle
    background: str | None


def _rules_text(x: Any, path: str) -> str:
    if isinstance(x, list):
        return "\n".join(_as_str(v, f"{path}[{i}]") for i, v in enumerate(x))
    return _as_str(x, path)


def parse_config(obj: dict[str, Any]) -> RenderConfig:
    obj = _as_dict(obj, "root")

    name = _as_str(obj.get("name", "L-System"), "name")
    axiom = _as_str(obj.get("axiom", ""), "axiom")
    _require(len(axiom.strip()) > 0, "axiom must be non-empty")

    iterations = _as_int(obj.get("iterations", 0), "iterations")
    _require(iterations >= 0, "iterations must be >= 0")

    rules = _rules_text(obj.get("rules", ""), "rules")
    angle_deg = _as_float(obj.get("angle", 90), "angle")

    definition = Definition.from_text(
        name, axiom, rules, iterations, math.radians(angle_deg)
    )

    turtle = _as_dict(obj.get("turtle", {}), "turtle")
    step = _as_float(turtle.get("step", 10), "turtle.step")
    _require(step > 0, "turtle.step must be > 0")

    start_obj = _as_dict(turtle.get("start", {}), "turtle.start")
    start = TurtleStart(
        x=_as_float(start_obj.get("x", 0), "turtle.start.x"),
        y=_as_float(start_obj.get("y", 0), "turtle.start.y"),
        heading_deg=_as_float(start_obj.get("heading", 0), "turtle.start.heading"),
    )

    svg = _as_dict(obj.get("svg", {}), "svg")
    margin = _as_float(svg.get("margin", 10), "svg.margin")
    precision = _as_int(svg.get("precision", 3), "svg.precision")
    _require(0 <= precision <= 10, "svg.precision must be between 0 and 10")
    flip_y = _as_bool(svg.get("flip_y", True), "svg.flip_y")

    width = svg.get("width")
    height = svg.get("height")
    if width is not None:
        width = _as_float(width, "svg.width")
        _require(width > 0, "svg.width must be > 0")
    if height is not None:
        height = _as_float(height, "svg.height")
        _require(height > 0, "svg.height must be > 0")

    style_obj = _as_dict(svg.get("style", {}), "svg.style")
    style = SvgStyle(
        stroke=_as_str(style_obj.get("stroke", "#000"), "svg.style.stroke"),
        stroke_width=_as_float(
            style_obj.get("stroke_width", 1.0), "svg.style.stroke_width"
        ),
        fill=_as_str(style_obj.get("fill", "none"), "svg.style.fill"),
        stroke_linecap=_as_str(
            style_obj.get("stroke_linecap", "round"), "svg.style.stroke_linecap"
        ),
        stroke_linejoin=_as_str(
            style_obj.get("stroke_linejoin", "round"), "svg.style.stroke_linejoin"
        ),
    )

    background = svg.get("background")
    if background is not None:
        background = _as_str(background, "svg.background")

    return RenderConfig(
        definition=definition,
        step=step,
        start=start,
        margin=margin,
        precision=precision,
        flip_y=flip_y,
        width=width,
        height=height,
        style=style,
        background=background,
    )


def preset_config(name: str) -> dict[str, Any]:
    """A JSON-ready config for a built-in preset."""
    definition = preset_definition(name)
    return {
        "name": name,
        "axiom": format_sequence(definition.axiom),
        "iterations": definition.generations,
        "rules": format_rules(definition.rules).splitlines(),
        "angle": round(math.degrees(definition.delta), 6),
        "turtle": {"step": 4, "start": {"x": 0, "y": 0, "heading": 0}},
        "svg": {"margin": 10, "precision": 3, "flip_y": True},
    }


def load_json(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        try:
            return cast(dict[str, Any], json.load(f))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e


def dump_json(obj: dict[str, Any], path: str) -> None:
    _ensure_parent_dir(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
        f.write("\n")


# -------------------------
# CLI / Help
# -------------------------

HELP_EPILOG = r"""
GRAMMAR

  Axiom: a token string, e.g. "F-F-F-F" or "X".
  Rules: one per line, "<predecessor> => <replacement>", e.g.

      X => F[+X]F[-X]+X
      F => FF

  Tokens
      A-Z     forward, drawing a line
      f       forward without drawing
      a-z     inert marker (any other lowercase letter)
      +       turn left by the angle
      -       turn right by the angle
      [  ]    push / pop the turtle position and heading

  The predecessor must be a single letter. Symbols without a rule rewrite
  to themselves. Any other character is a parse error.

INPUT JSON SYNTAX (render --config, show --config)

  name: string (default "L-System")
  axiom: string (required)
  rules: string of newline-separated rules, or a list of rule strings
  iterations: integer >= 0 (default 0)
  angle: number, degrees (default 90)

  turtle.step: number > 0 (default 10)
  turtle.start.x / turtle.start.y: number (default 0)
  turtle.start.heading: number degrees (default 0; 0 = +X, 90 = +Y)

  svg.margin: number (default 10)
  svg.precision: integer 0..10 (default 3)
  svg.flip_y: boolean (default true)
  svg.width / svg.height: number (optional)
  svg.background: string color (optional)
  svg.style: stroke, stroke_width, fill, stroke_linecap, stroke_linejoin

Example

    {
      "name": "dragon",
      "axiom": "L",
      "iterations": 10,
      "rules": ["L => L+R+", "R => -L-R"],
      "angle": 90,
      "turtle": {"step": 4}
    }

EXIT CODES

  0 ok, 2 config / parse / file error, 3 unbalanced brackets during replay
"""


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lsystem_turtle.py",
        description="L-system grammar, rewriting and turtle playback.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
    )
    p.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("list", help="List the built-in presets.")

    ps = sub.add_parser(
        "show", help="Print a summary of a preset or a JSON config."
    )
    ps.add_argument("preset", nargs="?", help="Built-in preset name.")
    ps.add_argument("--config", help="Path to a JSON config instead of a preset.")

    pr = sub.add_parser(
        "render",
        help="Replay a preset or JSON config once and write the drawing as SVG.",
    )
    pr.add_argument(
        "source", nargs="+", help="[PRESET] OUTPUT (omit PRESET with --config)."
    )
    pr.add_argument("--config", help="Path to a JSON config instead of a preset.")

    pg = sub.add_parser(
        "random", help="Pick a random preset and write its JSON config."
    )
    pg.add_argument("output", help="Where to write the generated JSON file.")
    pg.add_argument(
        "--seed", type=int, default=None, help="Seed for repeatable choice."
    )

    return p


# -------------------------
# Commands
# -------------------------


def _load_config(preset: str | None, config_path: str | None) -> RenderConfig:
    if config_path is not None:
        _require(preset is None, "give either a preset name or --config, not both")
        return parse_config(load_json(config_path))
    _require(preset is not None, "a preset name or --config is required")
    return parse_config(preset_config(cast(str, preset)))


def _player_for(cfg: RenderConfig) -> Player:
    return Player(
        LSystem(cfg.definition),
        origin=(cfg.start.x, cfg.start.y),
        heading=math.radians(cfg.start.heading_deg),
        step_length=cfg.step,
    )


def cmd_list() -> None:
    for name, preset in PRESETS.items():
        print(
            f"{name:<12} depth={preset.generations} "
            f"angle={round(math.degrees(preset.delta), 3)}"
        )


def cmd_show(preset: str | None, config_path: str | None) -> None:
    cfg = _load_config(preset, config_path)
    d = cfg.definition
    player = _player_for(cfg)
    symbols = player.lsystem.symbols

    print(f"name: {d.name}")
    print(f"axiom: {format_sequence(d.axiom)}")
    for line in format_rules(d.rules).splitlines():
        print(f"rule: {line}")
    print(f"iterations: {d.generations}")
    print(f"angle: {round(math.degrees(d.delta), 3)} deg")
    print(f"symbols: {len(symbols)}")
    counts = Counter(s.kind for s in symbols)
    print("kinds: " + " ".join(f"{k}={counts[k]}" for k in sorted(counts)))
    print(f"balanced: {'yes' if is_balanced(symbols) else 'no'}")

    segments = player.replay_once()
    print(f"segments: {len(segments)}")
    print(f"stack depth after replay: {player.turtle.depth}")


def cmd_render(preset: str | None, config_path: str | None, output: str) -> None:
    cfg = _load_config(preset, config_path)
    player = _player_for(cfg)
    segments = player.replay_once()
    write_svg(
        segments,
        out_path=output,
        margin=cfg.margin,
        precision=cfg.precision,
        flip_y=cfg.flip_y,
        width=cfg.width,
        height=cfg.height,
        style=cfg.style,
        background=cfg.background,
        title=player.label(),
    )


def cmd_random(output_path: str, seed: int | None) -> None:
    name = random_preset(random.Random(seed))
    dump_json(preset_config(name), output_path)
    print(name)


def main(argv: list[str] | None = None) -> int:
    ap = build_argparser()
    args = ap.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s"
        )

    try:
        if args.cmd == "list":
            cmd_list()
        elif args.cmd == "show":
            cmd_show(args.preset, args.config)
        elif args.cmd == "render":
            if args.config is not None:
                _require(len(args.source) == 1, "render --config takes only OUTPUT")
                cmd_render(None, args.config, args.source[0])
            else:
                _require(len(args.source) == 2, "render takes PRESET OUTPUT")
                cmd_render(args.source[0], None, args.source[1])
        elif args.cmd == "random":
            cmd_random(args.output, args.seed)
        else:
            raise AssertionError("unreachable")
    except ParseError as e:
        print(f"Parse error: {e}", file=sys.stderr)
        return 2
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"File error: {e}", file=sys.stderr)
        return 2
    except StackUnderflowError as e:
        print(f"Malformed L-system: {e}", file=sys.stderr)
        return 3
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
