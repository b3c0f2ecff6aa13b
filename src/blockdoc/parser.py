"""Tag parser: turn a doc block's interior lines into a Tag tree."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from blockdoc.base import (
    BAD_TAG_HEADER,
    DEPTH_EXCEEDED,
    MARKER_STYLE,
    UNKNOWN_TAG,
    UNTERMINATED_FENCE,
    ParseError,
    StyleNotice,
    SyntaxDefect,
)
from blockdoc.config import MarkerConvention
from blockdoc.markers import BRACED, DESCRIPTION, EntryReader, expected_marker, split_marker
from blockdoc.models import BlockLine, CommentBlock, Tag, TagKind

log = logging.getLogger(__name__)

SIGIL = "@"
FENCE = "```"

TAG_KINDS: dict[str, TagKind] = {
    "param": TagKind.PARAM,
    "property": TagKind.PROPERTY,
    "prop": TagKind.PROPERTY,
    "return": TagKind.RETURN,
    "returns": TagKind.RETURN,
    "throws": TagKind.THROWS,
    "template": TagKind.TEMPLATE,
    "usage": TagKind.USAGE,
    "example": TagKind.USAGE,
    "async": TagKind.ASYNC,
}

_SIGIL_LINE = re.compile(r"^@(?P<kind>[A-Za-z]\w*)\b\s*(?P<rest>.*)$")
_THROWS = re.compile(r"^\{(?P<kind>[^{}]+)\}\s*(?:-\s+)?(?P<desc>.*)$")
_TEMPLATE = re.compile(rf"^<?(?P<name>[A-Za-z_]\w*)>?{DESCRIPTION}")
_UNNAMED_RETURN = re.compile(
    rf"^(?::\s*(?P<type>.+?)\s+|{BRACED}\s+)?-(?:\s+(?P<desc>.*))?$"
)


def _indent(text: str) -> int:
    return len(text) - len(text.lstrip())


def _append(tag: Tag, text: str) -> None:
    text = text.strip()
    if text:
        tag.description = f"{tag.description} {text}" if tag.description else text


@dataclass
class _Group:
    header: BlockLine
    kind: str  # Tag word after the sigil
    rest: str  # Remainder of the header line
    body: list[BlockLine] = field(default_factory=list)


class TagParser:
    """Parses block interiors with one marker convention for the whole run."""

    def __init__(
        self,
        convention: MarkerConvention = MarkerConvention.DASH_PLUS,
        max_depth: int = 8,
    ):
        self.convention = convention
        self.max_depth = max_depth
        self.reader = EntryReader(convention)

    def parse(self, lines: list[BlockLine]) -> tuple[list[Tag], list[SyntaxDefect]]:
        """Parse interior lines into top-level tags.

        Defects are scoped: a bad header drops only its own tag, a bad nested
        line drops only its own subtree.

        Args:
            lines: Block interior with comment leaders stripped

        Returns:
            (tags, defects) where tags start with the brief when one exists
        """
        tags: list[Tag] = []
        defects: list[SyntaxDefect] = []
        prose, groups = self._group(lines)

        brief = self._brief(prose)
        if brief is not None:
            tags.append(brief)

        for group in groups:
            try:
                tags.append(self._parse_group(group, defects))
            except ParseError as e:
                log.debug("dropping tag on line %d: %s", e.line, e)
                defects.append(e)
        return tags, defects

    def parse_block(self, block: CommentBlock) -> CommentBlock:
        """Fill a block's tags and defects from its interior lines."""
        block.tags, defects = self.parse(block.lines)
        block.defects.extend(defects)
        return block

    def _group(self, lines: list[BlockLine]) -> tuple[list[BlockLine], list[_Group]]:
        prose: list[BlockLine] = []
        groups: list[_Group] = []
        in_fence = False
        for line in lines:
            stripped = line.text.strip()
            if stripped.startswith(FENCE):
                in_fence = not in_fence
            elif not in_fence and (sigil := _SIGIL_LINE.match(stripped)):
                if not groups or _indent(line.text) <= _indent(groups[-1].header.text):
                    groups.append(
                        _Group(line, sigil.group("kind"), sigil.group("rest").strip())
                    )
                    continue
            if groups:
                groups[-1].body.append(line)
            else:
                prose.append(line)
        return prose, groups

    @staticmethod
    def _brief(prose: list[BlockLine]) -> Tag | None:
        first = next((i for i, ln in enumerate(prose) if ln.text.strip()), None)
        if first is None:
            return None
        parts: list[str] = []
        for line in prose[first:]:
            if not line.text.strip():
                break
            parts.append(line.text.strip())
        start = prose[first]
        return Tag(
            TagKind.BRIEF,
            description=" ".join(parts),
            line=start.line,
            column=start.column + _indent(start.text),
        )

    def _parse_group(self, group: _Group, defects: list[SyntaxDefect]) -> Tag:
        header = group.header
        column = header.column + _indent(header.text)
        word, rest = group.kind, group.rest

        kind = TAG_KINDS.get(word.lower())
        if kind is None:
            raise ParseError(UNKNOWN_TAG, f"Unknown tag @{word}", header.line, column)

        tag = self._parse_header(kind, word, rest, header.line, column)
        if kind == TagKind.USAGE:
            self._read_fence(tag, group)
        elif kind in (TagKind.PARAM, TagKind.PROPERTY, TagKind.RETURN):
            self._read_nested(tag, group, defects)
        else:
            for line in group.body:
                _append(tag, line.text)
        return tag

    def _parse_header(self, kind: TagKind, word: str, rest: str, line: int, column: int) -> Tag:
        def bad(expected: str) -> ParseError:
            return ParseError(
                BAD_TAG_HEADER, f"Malformed @{word} header, expected {expected}", line, column
            )

        if kind == TagKind.ASYNC:
            return Tag(kind, line=line, column=column)

        if kind == TagKind.USAGE:
            return Tag(kind, description=rest, line=line, column=column)

        if kind == TagKind.THROWS:
            m = _THROWS.match(rest)
            if not m:
                raise bad("'{ErrorKind} description'")
            return Tag(
                kind,
                name=m.group("kind").strip(),
                description=m.group("desc").strip(),
                line=line,
                column=column,
            )

        if kind == TagKind.TEMPLATE:
            m = _TEMPLATE.match(rest)
            if not m:
                raise bad("'T - description'")
            return Tag(
                kind,
                name=m.group("name"),
                description=(m.group("desc") or "").strip(),
                line=line,
                column=column,
            )

        if kind == TagKind.RETURN:
            m = _UNNAMED_RETURN.match(rest)
            if m:
                type_ = m.group("type") or m.group("btype")
                return Tag(
                    kind,
                    type=type_.strip() if type_ else None,
                    description=(m.group("desc") or "").strip(),
                    line=line,
                    column=column,
                )

        entry = self.reader.read(rest)
        if entry is None:
            raise bad("'name[?][: type] - description'")
        return Tag(
            kind,
            name=entry.name,
            type=entry.type,
            optional=entry.optional,
            description=entry.description,
            line=line,
            column=column,
        )

    def _read_nested(self, root: Tag, group: _Group, defects: list[SyntaxDefect]) -> None:
        stack: list[tuple[int, Tag]] = [(_indent(group.header.text), root)]
        last = root
        skip_above: int | None = None  # Indentation of a dropped subtree

        for line in group.body:
            text = line.text
            if not text.strip():
                continue
            indent = _indent(text)
            if skip_above is not None:
                if indent > skip_above:
                    continue
                skip_above = None

            marked = split_marker(text)
            if marked is None:
                _append(last, text)
                continue

            while len(stack) > 1 and stack[-1][0] >= indent:
                stack.pop()
            parent = stack[-1][1]
            depth = parent.depth + 1
            column = line.column + indent

            if depth > self.max_depth:
                defects.append(
                    ParseError(
                        DEPTH_EXCEEDED,
                        f"Nested field deeper than {self.max_depth} levels",
                        line.line,
                        column,
                    )
                )
                skip_above = indent
                continue

            marker, rest = marked
            entry = self.reader.read(rest)
            if entry is None:
                defects.append(
                    ParseError(
                        BAD_TAG_HEADER,
                        "Malformed nested field, expected "
                        "'name[?][: type] - description'",
                        line.line,
                        column,
                    )
                )
                skip_above = indent
                continue

            if marker != expected_marker(depth):
                defects.append(
                    StyleNotice(
                        MARKER_STYLE,
                        f"Depth {depth} field uses '{marker}', "
                        f"expected '{expected_marker(depth)}'",
                        line.line,
                        column,
                    )
                )

            child = Tag(
                TagKind.PROPERTY,
                name=entry.name,
                type=entry.type,
                optional=entry.optional,
                description=entry.description,
                depth=depth,
                line=line.line,
                column=column,
            )
            parent.children.append(child)
            stack.append((indent, child))
            last = child

    @staticmethod
    def _read_fence(tag: Tag, group: _Group) -> None:
        body: list[str] = []
        opened: BlockLine | None = None
        for line in group.body:
            stripped = line.text.strip()
            if opened is None:
                if stripped.startswith(FENCE):
                    opened = line
                    tag.language = stripped[len(FENCE) :].strip() or None
                else:
                    _append(tag, line.text)
                continue
            if stripped.startswith(FENCE):
                tag.body = "\n".join(body)
                return
            body.append(line.text)

        if opened is None:
            raise ParseError(
                BAD_TAG_HEADER,
                "@usage must be followed by a fenced snippet",
                tag.line,
                tag.column,
            )
        raise ParseError(
            UNTERMINATED_FENCE,
            "Fenced snippet is never closed",
            opened.line,
            opened.column + _indent(opened.text),
        )


def render_block(
    tags: list[Tag], convention: MarkerConvention = MarkerConvention.DASH_PLUS
) -> list[str]:
    """Render a Tag tree as canonical interior lines.

    Nested fields are indented two spaces per depth. Parsing the result
    yields a tree equal to `tags`.
    """
    reader = EntryReader(convention)
    lines: list[str] = []

    def entry(tag: Tag) -> str:
        return reader.render(tag.name or "", tag.type, tag.optional, tag.description)

    def nested(tag: Tag) -> None:
        for child in tag.children:
            prefix = "  " * child.depth + expected_marker(child.depth)
            lines.append(f"{prefix} {entry(child)}")
            nested(child)

    for tag in tags:
        if tag.kind == TagKind.BRIEF:
            lines.extend([tag.description, ""])
        elif tag.kind == TagKind.ASYNC:
            lines.append("@async")
        elif tag.kind == TagKind.THROWS:
            lines.append(f"@throws {{{tag.name}}} {tag.description}".rstrip())
        elif tag.kind == TagKind.TEMPLATE:
            tail = f" - {tag.description}" if tag.description else " -"
            lines.append(f"@template {tag.name}{tail}")
        elif tag.kind == TagKind.USAGE:
            lines.append(f"@usage {tag.description}".rstrip())
            lines.append(f"{FENCE}{tag.language or ''}")
            if tag.body:
                lines.extend(tag.body.split("\n"))
            lines.append(FENCE)
        elif tag.kind == TagKind.RETURN and tag.name is None:
            tail = f" - {tag.description}" if tag.description else " -"
            if tag.type is None:
                typed = ""
            elif convention == MarkerConvention.BRACE_TYPED:
                typed = f" {{{tag.type}}}"
            else:
                typed = f": {tag.type}"
            lines.append(f"@return{typed}{tail}")
            nested(tag)
        else:
            lines.append(f"@{tag.kind.value} {entry(tag)}")
            nested(tag)

    while lines and not lines[-1]:
        lines.pop()
    return lines


def parse_lines(
    texts: list[str],
    convention: MarkerConvention = MarkerConvention.DASH_PLUS,
    first_line: int = 1,
) -> tuple[list[Tag], list[SyntaxDefect]]:
    """Parse plain interior strings, numbering them from `first_line`."""
    lines = [BlockLine(line=first_line + i, column=1, text=t) for i, t in enumerate(texts)]
    return TagParser(convention).parse(lines)
