"""Builders for source units, symbols and doc blocks used across tests."""

from __future__ import annotations

from blockdoc.models import Diagnostic, Parameter, SourceUnit, Symbol, TypeShape


def doc(*lines: str, indent: str = "") -> str:
    """Render interior lines as a `/** ... */` block."""
    body = "".join(f"{indent} * {ln}\n" if ln else f"{indent} *\n" for ln in lines)
    return f"{indent}/**\n{body}{indent} */\n"


def line_after(text: str) -> int:
    """Line number of the first line following `text`."""
    return text.count("\n") + 1


def param(
    name: str,
    type: str | None = "string",
    optional: bool = False,
    fields: tuple[Parameter, ...] = (),
    documented: bool = False,
) -> Parameter:
    shape = None
    if type is not None or fields:
        shape = TypeShape(type or "", fields=fields, documented=documented)
    return Parameter(name, shape, optional)


def shape(
    text: str, *fields: Parameter, documented: bool = False
) -> TypeShape:
    return TypeShape(text, fields=fields, documented=documented)


def fn(name: str, line: int, *params: Parameter, **kwargs) -> Symbol:
    return Symbol(name=name, declaration_line=line, parameters=params, **kwargs)


def ts_unit(text: str, *symbols: Symbol, path: str = "src/users.ts") -> SourceUnit:
    return SourceUnit(path=path, text=text, language="typescript", symbols=symbols)


def documented_unit(
    lines: list[str], name: str, *params: Parameter, path: str = "src/users.ts", **kwargs
) -> SourceUnit:
    """A unit holding one exported function preceded by a doc block."""
    text = doc(*lines)
    decl = line_after(text)
    text += f"export function {name}() {{}}\n"
    return ts_unit(text, fn(name, decl, *params, **kwargs), path=path)


def codes(diagnostics: list[Diagnostic]) -> list[str]:
    return sorted(d.code for d in diagnostics)
