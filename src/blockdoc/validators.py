"""Schema validation: check parsed doc blocks against symbol signatures."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from blockdoc.base import ContractViolationError, StyleNotice, SyntaxDefect
from blockdoc.config import ValidatorConfig
from blockdoc.extractors import Association, extract_blocks, syntax_for
from blockdoc.models import (
    CommentBlock,
    Diagnostic,
    Parameter,
    Severity,
    SourceUnit,
    Symbol,
    Tag,
    TagKind,
)
from blockdoc.parser import TagParser

log = logging.getLogger(__name__)

MISSING_DOC = "MISSING_DOC"
BRIEF_MISSING = "BRIEF_MISSING"
ASYNC_MARKER_MISMATCH = "ASYNC_MARKER_MISMATCH"  # Warning
TEMPLATE_MISMATCH = "TEMPLATE_MISMATCH"
UNKNOWN_PARAM = "UNKNOWN_PARAM"
PARAM_MISSING = "PARAM_MISSING"
DUPLICATE_PARAM = "DUPLICATE_PARAM"
OPTIONALITY_MISMATCH = "OPTIONALITY_MISMATCH"  # Warning
REDUNDANT_TYPE = "REDUNDANT_TYPE"  # Warning
UNRESOLVED_TYPE = "UNRESOLVED_TYPE"  # Warning
RETURN_MISSING = "RETURN_MISSING"
RETURN_DUPLICATE = "RETURN_DUPLICATE"
RETURN_UNEXPECTED = "RETURN_UNEXPECTED"  # Warning
RETURN_FIELD_MISSING = "RETURN_FIELD_MISSING"
RETURN_FIELD_UNKNOWN = "RETURN_FIELD_UNKNOWN"
THROWS_MISSING = "THROWS_MISSING"  # Warning, raise-kinds are best-effort
THROWS_UNUSED = "THROWS_UNUSED"  # Warning
LANGUAGE_TAG_MISMATCH = "LANGUAGE_TAG_MISMATCH"  # Warning

ERROR = Severity.ERROR
WARNING = Severity.WARNING


@dataclass(frozen=True)
class _FieldCodes:
    unknown: str
    missing: str
    noun: str
    optional_exempt: bool = False  # Optional paths may go undocumented


_PARAM_CODES = _FieldCodes(UNKNOWN_PARAM, PARAM_MISSING, "parameter", optional_exempt=True)
_RETURN_CODES = _FieldCodes(RETURN_FIELD_UNKNOWN, RETURN_FIELD_MISSING, "return field")


def _signature_paths(
    fields: tuple[Parameter, ...], prefix: str = ""
) -> dict[str, Parameter]:
    """Flatten parameters and their exposed nested fields into dotted paths."""
    paths: dict[str, Parameter] = {}
    for param in fields:
        path = f"{prefix}{param.name}"
        paths[path] = param
        if param.type is not None and param.type.fields:
            paths.update(_signature_paths(param.type.fields, f"{path}."))
    return paths


def _tag_paths(tags: list[Tag], prefix: str = "") -> list[tuple[str, Tag]]:
    """Flatten tags and their nested children into dotted paths."""
    paths: list[tuple[str, Tag]] = []
    for tag in tags:
        path = f"{prefix}{tag.name}"
        paths.append((path, tag))
        paths.extend(_tag_paths(tag.children, f"{path}."))
    return paths


def _parent(path: str) -> str:
    return path.rpartition(".")[0]


def _under(path: str, ancestors: set[str]) -> bool:
    return any(path.startswith(f"{a}.") for a in ancestors)


class _Emitter:
    """Collects diagnostics for one symbol."""

    def __init__(self, file: str, symbol: str | None):
        self.file = file
        self.symbol = symbol
        self.diagnostics: list[Diagnostic] = []

    def emit(
        self, code: str, severity: Severity, message: str, line: int, column: int = 1
    ) -> None:
        self.diagnostics.append(
            Diagnostic(self.file, line, column, code, severity, message, self.symbol)
        )

    def at(self, tag: Tag, code: str, severity: Severity, message: str) -> None:
        self.emit(code, severity, message, tag.line, tag.column or 1)

    def defect(self, defect: SyntaxDefect) -> None:
        severity = WARNING if isinstance(defect, StyleNotice) else ERROR
        self.emit(defect.code or "", severity, str(defect), defect.line, defect.column or 1)


class SchemaValidator:
    """Validates one symbol's doc block at a time.

    Every check appends diagnostics; nothing is raised. A symbol without a
    block only receives the presence verdict.
    """

    def __init__(self, config: ValidatorConfig | None = None):
        self.config = config or ValidatorConfig()

    def validate(self, unit: SourceUnit, association: Association) -> list[Diagnostic]:
        """Check one symbol against its (possibly absent) doc block.

        Args:
            unit: The file the symbol belongs to
            association: Symbol plus its parsed block or extraction error.
                A symbol-less association only reports its extraction error.

        Returns:
            Diagnostics for this symbol, in emission order
        """
        symbol = association.symbol
        out = _Emitter(unit.path, symbol.name if symbol is not None else None)

        if association.error is not None:
            out.defect(association.error)
            return out.diagnostics

        block = association.block
        if block is None:
            self._check_presence(symbol, out)
            return out.diagnostics

        for defect in block.defects:
            out.defect(defect)
        self._check_brief(symbol, block, out)
        self._check_templates(symbol, block, out)
        self._check_params(symbol, block, out)
        self._check_return(symbol, block, out)
        self._check_throws(symbol, block, out)
        self._check_usage(unit, block, out)
        return out.diagnostics

    def _check_presence(self, symbol: Symbol, out: _Emitter) -> None:
        line = symbol.declaration_line
        kind = symbol.kind.value
        if symbol.is_exported:
            message = f"Exported {kind} {symbol.name} has no doc block"
            out.emit(MISSING_DOC, ERROR, message, line)
            return

        message = f"Internal {kind} {symbol.name} has no doc block"
        if symbol.needs_doc:
            severity = ERROR if self.config.require_internal_docs else WARNING
            out.emit(MISSING_DOC, severity, message, line)
        elif self.config.require_internal_docs:
            out.emit(MISSING_DOC, WARNING, message, line)

    def _check_brief(self, symbol: Symbol, block: CommentBlock, out: _Emitter) -> None:
        if block.brief is None or not block.brief.description:
            out.emit(
                BRIEF_MISSING,
                ERROR,
                "Doc block does not start with a brief summary",
                block.start_line,
            )

        markers = block.tags_of(TagKind.ASYNC)
        if symbol.is_async and not markers:
            out.emit(
                ASYNC_MARKER_MISMATCH,
                WARNING,
                f"{symbol.name} is async but has no @async marker",
                block.start_line,
            )
        elif markers and not symbol.is_async:
            out.at(
                markers[0],
                ASYNC_MARKER_MISMATCH,
                WARNING,
                f"{symbol.name} is not async but is marked @async",
            )

    def _check_templates(
        self, symbol: Symbol, block: CommentBlock, out: _Emitter
    ) -> None:
        seen: set[str] = set()
        for tag in block.tags_of(TagKind.TEMPLATE):
            name = tag.name or ""
            if name in seen:
                message = f"@template {name} is documented twice"
                out.at(tag, TEMPLATE_MISMATCH, ERROR, message)
            elif name not in symbol.generics:
                message = f"@template {name} is not a generic of {symbol.name}"
                out.at(tag, TEMPLATE_MISMATCH, ERROR, message)
            seen.add(name)

        for generic in symbol.generics:
            if generic not in seen:
                message = f"Generic {generic} has no @template"
                out.emit(TEMPLATE_MISMATCH, ERROR, message, block.start_line)

    def _check_params(self, symbol: Symbol, block: CommentBlock, out: _Emitter) -> None:
        tags = [t for t in block.tags if t.kind in (TagKind.PARAM, TagKind.PROPERTY)]
        self._match_fields(tags, symbol.parameters, False, _PARAM_CODES, block, out)

    def _check_return(self, symbol: Symbol, block: CommentBlock, out: _Emitter) -> None:
        returns = block.tags_of(TagKind.RETURN)
        for extra in returns[1:]:
            message = "Only one @return is allowed per block"
            out.at(extra, RETURN_DUPLICATE, ERROR, message)

        shape = symbol.return_type
        if shape is None or shape.is_void:
            if returns:
                message = f"{symbol.name} returns nothing but has @return"
                out.at(returns[0], RETURN_UNEXPECTED, WARNING, message)
            return
        if not returns:
            message = f"{symbol.name} returns {shape.text or 'a value'} but has no @return"
            out.emit(RETURN_MISSING, ERROR, message, block.start_line)
            return

        tag = returns[0]
        if tag.type is not None and shape.text:
            message = f"@return type '{tag.type}' repeats the signature"
            out.at(tag, REDUNDANT_TYPE, WARNING, message)
        self._match_fields(
            tag.children, shape.fields, shape.documented, _RETURN_CODES, block, out
        )

    def _match_fields(
        self,
        tags: list[Tag],
        fields: tuple[Parameter, ...],
        root_documented: bool,
        codes: _FieldCodes,
        block: CommentBlock,
        out: _Emitter,
    ) -> None:
        """Match documented paths to signature paths in both directions.

        A signature path is required when its parent is documented and the
        parent's type is either expanded by the tags or not documented
        elsewhere. Top-level paths have the root as parent, which counts as
        documented. Optional parameters are never required; return fields
        always are.
        """
        signature = _signature_paths(fields)
        documented: dict[str, Tag] = {}
        unknown: set[str] = set()

        for path, tag in _tag_paths(tags):
            if _under(path, unknown):
                continue
            if path in documented:
                message = f"{codes.noun.capitalize()} {path} is documented twice"
                out.at(tag, DUPLICATE_PARAM, ERROR, message)
                continue
            param = signature.get(path)
            if param is None:
                unknown.add(path)
                message = f"Documented {codes.noun} {path} is not in the signature"
                out.at(tag, codes.unknown, ERROR, message)
                if tag.type is None:
                    message = f"Type of {path} is elided and cannot be resolved"
                    out.at(tag, UNRESOLVED_TYPE, WARNING, message)
                continue
            documented[path] = tag
            self._check_field(path, tag, param, out)

        expanded = {_parent(p) for p in documented}
        for path in signature:
            if path in documented:
                continue
            if codes.optional_exempt and signature[path].optional:
                continue
            parent = _parent(path)
            if parent:
                if parent not in documented:
                    continue
                shape = signature[parent].type
                opaque = shape is not None and shape.documented
            else:
                opaque = root_documented
            if opaque and parent not in expanded:
                continue
            message = f"{codes.noun.capitalize()} {path} is not documented"
            out.emit(codes.missing, ERROR, message, block.start_line)

    @staticmethod
    def _check_field(path: str, tag: Tag, param: Parameter, out: _Emitter) -> None:
        if tag.optional != param.optional:
            expected = "optional" if param.optional else "required"
            message = f"{path} is {expected} in the signature"
            out.at(tag, OPTIONALITY_MISMATCH, WARNING, message)

        known = param.type is not None and bool(param.type.text or param.type.fields)
        if tag.type is not None and known:
            message = f"Type of {path} is already visible in the signature"
            out.at(tag, REDUNDANT_TYPE, WARNING, message)
        elif tag.type is None and not known:
            message = f"Type of {path} is elided and the signature does not declare it"
            out.at(tag, UNRESOLVED_TYPE, WARNING, message)

    def _check_throws(self, symbol: Symbol, block: CommentBlock, out: _Emitter) -> None:
        documented = {t.name: t for t in block.tags_of(TagKind.THROWS)}
        raised = list(dict.fromkeys(symbol.raise_kinds))
        for kind in raised:
            if kind not in documented:
                message = f"{symbol.name} can raise {kind} but has no @throws {{{kind}}}"
                out.emit(THROWS_MISSING, WARNING, message, block.start_line)
        for kind, tag in documented.items():
            if kind not in raised:
                message = f"@throws {{{kind}}} is not raised by {symbol.name}"
                out.at(tag, THROWS_UNUSED, WARNING, message)

    def _check_usage(self, unit: SourceUnit, block: CommentBlock, out: _Emitter) -> None:
        accepted = syntax_for(unit.language).fence_tags
        for tag in block.tags_of(TagKind.USAGE):
            if (tag.language or "").lower() not in accepted:
                message = (
                    f"Usage snippet tagged '{tag.language or ''}', "
                    f"expected {unit.language}"
                )
                out.at(tag, LANGUAGE_TAG_MISMATCH, WARNING, message)


def check_signatures(unit: SourceUnit) -> None:
    """Reject symbols whose parameter list repeats a name."""
    for symbol in unit.symbols:
        names = [p.name for p in symbol.parameters]
        if len(names) != len(set(names)):
            raise ContractViolationError(
                f"{unit.path}: symbol {symbol.name!r} repeats a parameter name"
            )


def validate_source(
    unit: SourceUnit, config: ValidatorConfig | None = None
) -> list[Diagnostic]:
    """Run extract, parse and validate over one source file.

    Args:
        unit: Source file with indexed symbols
        config: Run configuration (defaults apply when omitted)

    Returns:
        Unsorted diagnostics for every symbol in the unit

    Raises:
        ContractViolationError: If the unit's metadata is inconsistent.
    """
    config = config or ValidatorConfig()
    check_signatures(unit)
    parser = TagParser(config.marker_convention, config.max_depth)
    validator = SchemaValidator(config)

    diagnostics: list[Diagnostic] = []
    for association in extract_blocks(unit):
        if association.block is not None:
            parser.parse_block(association.block)
        diagnostics.extend(validator.validate(unit, association))
    log.debug("%s: %d diagnostics", unit.path, len(diagnostics))
    return diagnostics
