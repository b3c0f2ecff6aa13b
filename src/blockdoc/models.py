"""Data models for doc-block validation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterator

VOID_TYPES = frozenset({"", "void", "None", "none", "undefined", "never", "unit"})


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class SymbolKind(str, Enum):
    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    TYPE = "type"
    PROPERTY = "property"


class TagKind(str, Enum):
    BRIEF = "brief"
    TEMPLATE = "template"
    PROPERTY = "property"
    PARAM = "param"
    RETURN = "return"
    THROWS = "throws"
    USAGE = "usage"
    ASYNC = "async"


class FileKind(str, Enum):
    """Kind of a test file, which selects the structural template."""

    UNIT = "unit"
    INTEGRATION = "integration"


@dataclass(frozen=True)
class TypeShape:
    """Structural description of a type as exposed by a signature."""

    text: str = ""  # As written, e.g. "User", "Address[]"
    fields: tuple[Parameter, ...] = ()  # Exposed fields, empty for opaque types
    documented: bool = False  # Has its own doc block elsewhere

    @property
    def is_void(self) -> bool:
        return not self.fields and self.text.strip() in VOID_TYPES

    @property
    def is_structured(self) -> bool:
        return bool(self.fields)

    @classmethod
    def from_value(cls, value: Any) -> TypeShape | None:
        """Build a shape from a type string or a {type, fields, documented} dict."""
        if value is None:
            return None
        if isinstance(value, TypeShape):
            return value
        if isinstance(value, str):
            return cls(text=value)
        return cls(
            text=value.get("type") or value.get("text") or "",
            fields=tuple(Parameter.from_dict(f) for f in value.get("fields") or ()),
            documented=bool(value.get("documented", False)),
        )


@dataclass(frozen=True)
class Parameter:
    """A parameter, or a field nested inside a structured type."""

    name: str
    type: TypeShape | None = None
    optional: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Parameter:
        return cls(
            name=data["name"],
            type=TypeShape.from_value(data.get("type")),
            optional=bool(data.get("optional", False)),
        )


@dataclass(frozen=True)
class Symbol:
    """A declared symbol, as described by the source indexer."""

    name: str
    declaration_line: int
    kind: SymbolKind = SymbolKind.FUNCTION
    parameters: tuple[Parameter, ...] = ()
    return_type: TypeShape | None = None  # None means no return value
    generics: tuple[str, ...] = ()
    raise_kinds: tuple[str, ...] = ()
    is_async: bool = False
    is_exported: bool = True
    needs_doc: bool = False  # Internal symbol doing validation/I/O/domain logic

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Symbol:
        """Build a symbol from the indexer's camelCase payload."""
        return cls(
            name=data["name"],
            declaration_line=int(data["declarationLine"]),
            kind=SymbolKind(data.get("kind", "function")),
            parameters=tuple(Parameter.from_dict(p) for p in data.get("parameters") or ()),
            return_type=TypeShape.from_value(data.get("returnType")),
            generics=tuple(data.get("generics") or ()),
            raise_kinds=tuple(data.get("raiseKinds") or ()),
            is_async=bool(data.get("isAsync", False)),
            is_exported=bool(data.get("isExported", True)),
            needs_doc=bool(data.get("needsDoc", False)),
        )


@dataclass(frozen=True)
class SourceUnit:
    """One file handed to the pipeline: its text plus indexed symbols."""

    path: str
    text: str
    language: str
    symbols: tuple[Symbol, ...] = ()
    mtime: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceUnit:
        return cls(
            path=data["path"],
            text=data["text"],
            language=data["language"],
            symbols=tuple(Symbol.from_dict(s) for s in data.get("symbols") or ()),
            mtime=data.get("mtime"),
        )

    def exported_functions(self) -> list[str]:
        return [
            s.name
            for s in self.symbols
            if s.is_exported and s.kind in (SymbolKind.FUNCTION, SymbolKind.METHOD)
        ]


@dataclass(frozen=True)
class BlockLine:
    """One interior line of a comment block, leader already stripped."""

    line: int  # 1-based line in the source file
    column: int  # 1-based column where `text` starts
    text: str


@dataclass
class Tag:
    """One entry of a parsed block. Nested fields live in `children`."""

    kind: TagKind
    name: str | None = None
    description: str = ""
    type: str | None = None  # None means elided
    optional: bool = False
    depth: int = 0
    children: list[Tag] = field(default_factory=list)
    language: str | None = None  # Usage fence tag
    body: str | None = None  # Usage snippet
    line: int = field(default=0, compare=False)
    column: int = field(default=0, compare=False)

    def walk(self) -> Iterator[Tag]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class CommentBlock:
    """A doc block and the tags parsed from it."""

    start_line: int
    end_line: int
    span: tuple[int, int]  # Character offsets [start, end) in the source text
    lines: list[BlockLine] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    defects: list[Any] = field(default_factory=list)  # SyntaxDefect instances

    def tags_of(self, kind: TagKind) -> list[Tag]:
        return [t for t in self.tags if t.kind == kind]

    @property
    def brief(self) -> Tag | None:
        briefs = self.tags_of(TagKind.BRIEF)
        return briefs[0] if briefs else None


@dataclass(frozen=True)
class Diagnostic:
    """One reported defect."""

    file: str
    line: int
    column: int
    code: str
    severity: Severity
    message: str
    symbol: str | None = None

    def sort_key(self) -> tuple[str, int, int, str, str]:
        return (self.file, self.line, self.column, self.code, self.symbol or "")

    def promoted(self) -> Diagnostic:
        """Return this diagnostic with warning severity raised to error."""
        if self.severity == Severity.ERROR:
            return self
        return replace(self, severity=Severity.ERROR)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "symbol": self.symbol,
        }


@dataclass
class ValidationReport:
    """Ordered diagnostics for a run plus the overall verdict."""

    diagnostics: list[Diagnostic] = field(default_factory=list)
    passed: bool = True
    strict: bool = False
    cancelled: bool = False

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    def codes(self) -> list[str]:
        return [d.code for d in self.diagnostics]

    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "strict": self.strict,
            "cancelled": self.cancelled,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
