"""Nested-field marker conventions.

Two conventions have coexisted for nested fields inside doc blocks:

    DASH_PLUS      - user: User - The account
                     + email?: string - Contact address

    BRACE_TYPED    - {User} user - The account
                     + {string} email? - Contact address

Both alternate `-` at odd depths and `+` at even depths. Each convention is a
strategy that parses and renders the field part of an entry; the parser tries
the configured one first and falls back to the other, so downstream code only
ever sees normalized Tag trees.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from blockdoc.config import MarkerConvention

MARKERS = "-+"
NAME = r"[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*"
# One level of nested braces, enough for inline object types
BRACED = r"\{(?P<btype>(?:[^{}]|\{[^{}]*\})*)\}"
DESCRIPTION = r"\s+-(?:\s+(?P<desc>.*))?$"

_MARKER_LINE = re.compile(r"^(?P<marker>[-+])\s+(?P<rest>.*)$")


def expected_marker(depth: int) -> str:
    """Marker class for a nested depth (1-based)."""
    return "-" if depth % 2 else "+"


@dataclass(frozen=True)
class Entry:
    """Field part of a tag header or nested line."""

    name: str
    type: str | None
    optional: bool
    description: str


def split_marker(text: str) -> tuple[str, str] | None:
    """Split a nested line into (marker, rest), or None if it has no marker."""
    match = _MARKER_LINE.match(text.strip())
    if not match:
        return None
    return match.group("marker"), match.group("rest")


class MarkerStrategy(ABC):
    """Parses and renders the `name/type/description` part of entries."""

    convention: MarkerConvention
    pattern: re.Pattern[str]

    def parse(self, text: str) -> Entry | None:
        match = self.pattern.match(text.strip())
        if not match:
            return None
        groups = match.groupdict()
        type_ = groups.get("type") or groups.get("btype")
        return Entry(
            name=groups["name"],
            type=type_.strip() if type_ and type_.strip() else None,
            optional=bool(groups.get("opt")),
            description=(groups.get("desc") or "").strip(),
        )

    @abstractmethod
    def render(self, name: str, type_: str | None, optional: bool, description: str) -> str:
        ...

    @staticmethod
    def _tail(description: str) -> str:
        return f" - {description}" if description else " -"


class DashPlusStrategy(MarkerStrategy):
    convention = MarkerConvention.DASH_PLUS
    pattern = re.compile(
        rf"^(?P<name>{NAME})(?P<opt>\?)?(?:\s*:\s*(?P<type>.+?))?{DESCRIPTION}"
    )

    def render(self, name, type_, optional, description):
        typed = f": {type_}" if type_ else ""
        return f"{name}{'?' if optional else ''}{typed}{self._tail(description)}"


class BraceTypedStrategy(MarkerStrategy):
    convention = MarkerConvention.BRACE_TYPED
    pattern = re.compile(rf"^(?:{BRACED}\s+)?(?P<name>{NAME})(?P<opt>\?)?{DESCRIPTION}")

    def render(self, name, type_, optional, description):
        typed = f"{{{type_}}} " if type_ else ""
        return f"{typed}{name}{'?' if optional else ''}{self._tail(description)}"


STRATEGIES: dict[MarkerConvention, MarkerStrategy] = {
    MarkerConvention.DASH_PLUS: DashPlusStrategy(),
    MarkerConvention.BRACE_TYPED: BraceTypedStrategy(),
}


class EntryReader:
    """Reads entries with the configured convention first, then the other."""

    def __init__(self, convention: MarkerConvention = MarkerConvention.DASH_PLUS):
        self.primary = STRATEGIES[convention]
        self.fallbacks = [s for c, s in STRATEGIES.items() if c != convention]

    def read(self, text: str) -> Entry | None:
        for strategy in (self.primary, *self.fallbacks):
            entry = strategy.parse(text)
            if entry is not None:
                return entry
        return None

    def render(self, name: str, type_: str | None, optional: bool, description: str) -> str:
        return self.primary.render(name, type_, optional, description)
