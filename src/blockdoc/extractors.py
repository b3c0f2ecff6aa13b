"""Doc-block extraction: associate each symbol with the block right above it."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from blockdoc.base import MALFORMED_DELIMITER, ContractViolationError, ExtractionError
from blockdoc.models import BlockLine, CommentBlock, SourceUnit, Symbol

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommentSyntax:
    """Comment tokens for one language."""

    opener: str = "/**"  # Doc block opener
    closer: str = "*/"
    leader: str = "*"  # Per-line marker stripped from block interiors
    block_opener: str = "/*"  # Any block comment, used when masking
    line_comment: str | None = "//"
    fence_tags: frozenset[str] = frozenset()  # Accepted usage fence tags


def _c_family(*tags: str) -> CommentSyntax:
    return CommentSyntax(fence_tags=frozenset(tags))


LANGUAGES: dict[str, CommentSyntax] = {
    "typescript": _c_family("ts", "typescript", "tsx"),
    "javascript": _c_family("js", "javascript", "jsx", "mjs", "cjs"),
    "java": _c_family("java"),
    "kotlin": _c_family("kt", "kotlin"),
    "php": CommentSyntax(line_comment="//", fence_tags=frozenset({"php"})),
    "c": _c_family("c", "h"),
    "cpp": _c_family("cpp", "c++", "cc", "hpp"),
    "csharp": _c_family("cs", "csharp", "c#"),
    "swift": _c_family("swift"),
    "scala": _c_family("scala"),
    "go": _c_family("go", "golang"),
    "sql": CommentSyntax(
        line_comment="--", fence_tags=frozenset({"sql", "plpgsql", "postgresql", "psql"})
    ),
}


def syntax_for(language: str) -> CommentSyntax:
    """Look up the comment syntax for a language id.

    Raises:
        ContractViolationError: If the indexer supplied an unknown language id.
    """
    try:
        return LANGUAGES[language.lower()]
    except KeyError:
        raise ContractViolationError(f"Unknown language id: {language!r}") from None


@dataclass
class RawBlock:
    """Location of one doc block (or of a broken opener) in a text."""

    start_line: int
    end_line: int
    start_offset: int
    end_offset: int
    close_column: int = 0  # 0-based index of the closer on end_line
    error: ExtractionError | None = None


@dataclass
class Association:
    """A symbol and whatever doc block precedes it.

    `symbol` is None for a broken block that no symbol follows.
    """

    symbol: Symbol | None
    block: CommentBlock | None = None
    error: ExtractionError | None = None


@dataclass
class _Lines:
    texts: list[str]
    offsets: list[int] = field(default_factory=list)  # Offset of each line start

    @classmethod
    def of(cls, text: str) -> _Lines:
        texts: list[str] = []
        offsets: list[int] = []
        pos = 0
        for raw in text.splitlines(keepends=True):
            offsets.append(pos)
            texts.append(raw.rstrip("\r\n"))
            pos += len(raw)
        return cls(texts, offsets)

    def __len__(self) -> int:
        return len(self.texts)

    def get(self, lineno: int) -> str:
        return self.texts[lineno - 1]

    def offset(self, lineno: int, column: int = 0) -> int:
        return self.offsets[lineno - 1] + column


def _opens_block(line: str, syntax: CommentSyntax) -> bool:
    stripped = line.lstrip()
    if not stripped.startswith(syntax.opener):
        return False
    # "/**/" is an empty comment, not a doc block
    return not stripped[len(syntax.opener) - 1 :].startswith(syntax.closer)


def scan_blocks(
    text: str, syntax: CommentSyntax, stop_lines: set[int] | frozenset[int] = frozenset()
) -> list[RawBlock]:
    """Find every doc block in a text.

    A block starts at a line whose first token is the doc opener. When no
    closer appears before end-of-file or before one of `stop_lines`, the
    block is returned with an ExtractionError and scanning resumes at the
    stop line.

    Args:
        text: Full source text
        syntax: Comment tokens for the text's language
        stop_lines: Symbol declaration lines a block may not run into

    Returns:
        Blocks in source order
    """
    lines = _Lines.of(text)
    blocks: list[RawBlock] = []
    lineno = 1
    while lineno <= len(lines):
        line = lines.get(lineno)
        if not _opens_block(line, syntax):
            lineno += 1
            continue

        start_col = line.index(syntax.opener)
        search_from = start_col + len(syntax.opener)
        end = lineno
        while True:
            close = lines.get(end).find(syntax.closer, search_from if end == lineno else 0)
            if close >= 0:
                blocks.append(
                    RawBlock(
                        start_line=lineno,
                        end_line=end,
                        start_offset=lines.offset(lineno, start_col),
                        end_offset=lines.offset(end, close + len(syntax.closer)),
                        close_column=close,
                    )
                )
                lineno = end + 1
                break
            end += 1
            if end > len(lines) or end in stop_lines:
                last = end - 1
                error = ExtractionError(
                    MALFORMED_DELIMITER,
                    f"{syntax.opener} opened on line {lineno} is never closed",
                    line=lineno,
                    column=start_col + 1,
                )
                blocks.append(
                    RawBlock(
                        start_line=lineno,
                        end_line=last,
                        start_offset=lines.offset(lineno, start_col),
                        end_offset=lines.offset(last, len(lines.get(last))),
                        error=error,
                    )
                )
                lineno = end
                break
    return blocks


def _interior(lines: _Lines, raw: RawBlock, syntax: CommentSyntax) -> list[BlockLine]:
    """Strip delimiters and comment leaders, keeping relative indentation."""
    result: list[BlockLine] = []
    for lineno in range(raw.start_line, raw.end_line + 1):
        text = lines.get(lineno)
        begin = 0
        stop = len(text)
        if lineno == raw.end_line:
            stop = raw.close_column
        if lineno == raw.start_line:
            begin = text.index(syntax.opener) + len(syntax.opener)
            # Banner blocks like "/*** ... */" carry extra leader characters
            while begin < stop and text[begin] == syntax.leader:
                begin += 1
        else:
            first = len(text) - len(text.lstrip())
            if text.startswith(syntax.leader, first):
                begin = first + len(syntax.leader)
        if begin < stop and text[begin] == " ":
            begin += 1
        content = text[begin:stop].rstrip()
        result.append(BlockLine(line=lineno, column=begin + 1, text=content))

    while result and not result[0].text.strip():
        result.pop(0)
    while result and not result[-1].text.strip():
        result.pop()
    return result


def check_declaration_lines(unit: SourceUnit, line_count: int) -> None:
    """Reject symbols whose declaration line falls outside the file."""
    for symbol in unit.symbols:
        if not 1 <= symbol.declaration_line <= max(line_count, 1):
            raise ContractViolationError(
                f"{unit.path}: symbol {symbol.name!r} declared on line "
                f"{symbol.declaration_line}, file has {line_count} lines"
            )


def extract_blocks(unit: SourceUnit) -> list[Association]:
    """Associate every symbol of a unit with its preceding doc block.

    A block belongs to a symbol only when nothing but blank lines separates
    the block's closer from the declaration line.

    Args:
        unit: Source file with indexed symbols

    Returns:
        One Association per symbol, in the unit's symbol order, followed by
        a symbol-less Association for each broken block no symbol claims

    Raises:
        ContractViolationError: If the language is unknown or a declaration
            line lies outside the file.
    """
    syntax = syntax_for(unit.language)
    lines = _Lines.of(unit.text)
    check_declaration_lines(unit, len(lines))

    decl_lines = sorted({s.declaration_line for s in unit.symbols})
    raw_blocks = scan_blocks(unit.text, syntax, frozenset(decl_lines))
    by_end = {b.end_line: b for b in raw_blocks if b.error is None}
    broken_by_stop = {b.end_line + 1: b for b in raw_blocks if b.error is not None}

    associations: list[Association] = []
    for symbol in unit.symbols:
        decl = symbol.declaration_line
        broken = broken_by_stop.get(decl)
        if broken is not None:
            associations.append(Association(symbol, error=broken.error))
            continue

        previous = max((d for d in decl_lines if d < decl), default=0)
        lineno = decl - 1
        while lineno > previous and not lines.get(lineno).strip():
            lineno -= 1
        raw = by_end.get(lineno) if lineno > previous else None
        if raw is None or raw.start_line <= previous:
            associations.append(Association(symbol))
            continue

        block = CommentBlock(
            start_line=raw.start_line,
            end_line=raw.end_line,
            span=(raw.start_offset, raw.end_offset),
            lines=_interior(lines, raw, syntax),
        )
        associations.append(Association(symbol, block=block))

    for stop, broken in sorted(broken_by_stop.items()):
        if stop not in decl_lines:
            associations.append(Association(None, error=broken.error))

    log.debug(
        "%s: %d symbols, %d blocks found",
        unit.path,
        len(unit.symbols),
        sum(1 for a in associations if a.block is not None),
    )
    return associations
