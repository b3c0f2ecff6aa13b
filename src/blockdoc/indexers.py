"""SQL source indexer: build SourceUnits from PostgreSQL function files.

This is a collaborator of the validation pipeline, not part of it. It reads
`CREATE FUNCTION` statements with pglast and describes each function as a
Symbol so `.sql` files can be validated end to end.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import pglast
from pglast.enums import FunctionParameterMode

from blockdoc.base import BlockdocError
from blockdoc.models import Parameter, SourceUnit, Symbol, SymbolKind, TypeShape

log = logging.getLogger(__name__)

_INPUT_MODES = frozenset(
    {
        FunctionParameterMode.FUNC_PARAM_IN,
        FunctionParameterMode.FUNC_PARAM_INOUT,
        FunctionParameterMode.FUNC_PARAM_VARIADIC,
        FunctionParameterMode.FUNC_PARAM_DEFAULT,
    }
)
_OUTPUT_MODES = frozenset(
    {FunctionParameterMode.FUNC_PARAM_OUT, FunctionParameterMode.FUNC_PARAM_TABLE}
)

_CREATE = re.compile(r"^\s*CREATE\s+(?:OR\s+REPLACE\s+)?FUNCTION\b", re.IGNORECASE)
_ERRCODE = re.compile(r"ERRCODE\s*=\s*'([^']+)'", re.IGNORECASE)
_RAISE_SQLSTATE = re.compile(r"\bRAISE\s+SQLSTATE\s+'([^']+)'", re.IGNORECASE)
_SQLSTATE = re.compile(r"^(?=.*\d)[0-9A-Z]{5}$", re.IGNORECASE)
_RAISE_CONDITION = re.compile(
    r"\bRAISE\s+(?!(?:EXCEPTION|NOTICE|WARNING|INFO|LOG|DEBUG|SQLSTATE)\b)"
    r"([a-z_][a-z0-9_]*)\s*(?:USING\b|;)",
    re.IGNORECASE,
)


class IndexerError(BlockdocError):
    """Raised when a SQL file cannot be parsed."""


def _type_name_to_str(tn) -> str:
    """Convert pglast TypeName to string."""
    if tn is None:
        return "void"
    names = [n.sval for n in tn.names]
    # Skip common schema prefixes for cleaner output
    if names and names[0] in ("pg_catalog", "public"):
        names = names[1:]
    base = ".".join(names)
    if tn.arrayBounds:
        base += "[]"
    if tn.setof:
        return f"setof {base}"
    return base


def _function_body(func) -> str:
    for option in func.options or ():
        if option.defname != "as":
            continue
        arg = option.arg
        items = arg if isinstance(arg, (list, tuple)) else (arg,)
        return "\n".join(getattr(item, "sval", None) or "" for item in items)
    return ""


def _normalize_kind(kind: str) -> str:
    # SQLSTATE codes are upper case, condition names lower case
    return kind.upper() if _SQLSTATE.match(kind) else kind.lower()


def raise_kinds(body: str) -> tuple[str, ...]:
    """Best-effort list of SQLSTATE codes or condition names a body can raise."""
    found: list[str] = []
    for pattern in (_ERRCODE, _RAISE_SQLSTATE, _RAISE_CONDITION):
        found.extend(_normalize_kind(m.group(1)) for m in pattern.finditer(body))
    return tuple(dict.fromkeys(found))


def _declaration_line(lines: list[str], location: int, text: str) -> int:
    """Line of the CREATE keyword; stmt_location may include leading comments."""
    start = text[:location].count("\n")
    in_comment = False
    for index in range(start, len(lines)):
        stripped = lines[index].strip()
        if in_comment:
            in_comment = "*/" not in stripped
            continue
        if stripped.startswith("/*"):
            in_comment = "*/" not in stripped[2:]
            continue
        if _CREATE.match(lines[index]):
            return index + 1
    return start + 1


def index_sql_text(text: str, path: str, mtime: float | None = None) -> SourceUnit:
    """Describe every CREATE FUNCTION in a SQL text.

    Args:
        text: SQL source
        path: Path reported in diagnostics
        mtime: Modification time, used as part of the cache key

    Returns:
        SourceUnit with language "sql"

    Raises:
        IndexerError: If pglast cannot parse the text.
    """
    try:
        stmts = pglast.parse_sql(text)
    except pglast.Error as e:
        raise IndexerError(f"Failed to parse {path}: {e}") from e

    lines = text.splitlines()
    symbols: list[Symbol] = []
    for stmt in stmts:
        if not isinstance(stmt.stmt, pglast.ast.CreateFunctionStmt):
            continue

        func = stmt.stmt
        name = ".".join(n.sval for n in func.funcname)

        params: list[Parameter] = []
        outputs: list[Parameter] = []
        for p in func.parameters or ():
            if not p.name:
                continue
            param = Parameter(
                name=p.name,
                type=TypeShape(_type_name_to_str(p.argType)),
                optional=p.defexpr is not None,
            )
            if p.mode in _OUTPUT_MODES:
                outputs.append(Parameter(param.name, param.type))
            elif p.mode in _INPUT_MODES:
                params.append(param)

        if outputs:
            columns = ", ".join(f"{o.name}: {o.type.text}" for o in outputs)
            return_type = TypeShape(f"table({columns})", fields=tuple(outputs))
        else:
            text_type = _type_name_to_str(func.returnType)
            return_type = None if text_type == "void" else TypeShape(text_type)

        symbols.append(
            Symbol(
                name=name,
                declaration_line=_declaration_line(lines, stmt.stmt_location, text),
                kind=SymbolKind.FUNCTION,
                parameters=tuple(params),
                return_type=return_type,
                raise_kinds=raise_kinds(_function_body(func)),
                # Internal functions are prefixed with an underscore
                is_exported="._" not in name and not name.startswith("_"),
            )
        )

    symbols.sort(key=lambda s: s.declaration_line)
    log.debug("%s: indexed %d functions", path, len(symbols))
    return SourceUnit(path=path, text=text, language="sql", symbols=tuple(symbols), mtime=mtime)


def index_sql_file(path: Path, root: Path | None = None) -> SourceUnit:
    """Index one SQL file, reporting its path relative to `root`."""
    text = path.read_text()
    shown = str(path)
    if root is not None:
        try:
            shown = str(path.relative_to(root))
        except ValueError:
            pass
    return index_sql_text(text, shown, mtime=path.stat().st_mtime)


def index_sql_dir(sql_dir: Path, root: Path | None = None) -> list[SourceUnit]:
    """Index every `*.sql` file in a directory, skipping unparsable files."""
    units: list[SourceUnit] = []
    for sql_file in sorted(sql_dir.glob("*.sql")):
        try:
            units.append(index_sql_file(sql_file, root))
        except IndexerError as e:
            log.warning("%s", e)
    return units
