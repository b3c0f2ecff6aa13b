"""Tests for doc-block extraction and symbol association."""

import pytest

from blockdoc.base import MALFORMED_DELIMITER, ContractViolationError
from blockdoc.extractors import LANGUAGES, extract_blocks, scan_blocks, syntax_for
from blockdoc.models import Severity, SourceUnit
from blockdoc.report import build_report
from blockdoc.validators import validate_source

from tests.helpers import doc, fn, line_after, ts_unit


class TestScanBlocks:
    """Locating blocks in raw text."""

    def test_finds_blocks_in_order(self):
        text = doc("First.") + "const a = 1;\n" + doc("Second.")
        blocks = scan_blocks(text, LANGUAGES["typescript"])

        assert [(b.start_line, b.end_line) for b in blocks] == [(1, 3), (5, 7)]
        assert all(b.error is None for b in blocks)

    def test_span_covers_opener_to_closer(self):
        text = "  /** Brief. */\nfunction f() {}\n"
        (block,) = scan_blocks(text, LANGUAGES["typescript"])

        assert text[block.start_offset : block.end_offset] == "/** Brief. */"

    def test_plain_block_comments_are_not_doc_blocks(self):
        text = "/* license */\n/**/\nfunction f() {}\n"
        assert scan_blocks(text, LANGUAGES["typescript"]) == []

    def test_unclosed_block_stops_at_declaration(self):
        text = "/**\n * Brief.\nfunction f() {}\n/** Next. */\nfunction g() {}\n"
        blocks = scan_blocks(text, LANGUAGES["typescript"], frozenset({3, 5}))

        assert blocks[0].error is not None
        assert blocks[0].error.code == MALFORMED_DELIMITER
        assert blocks[0].end_line == 2
        # Scanning resumes at the stop line, so the next block is still found
        assert (blocks[1].start_line, blocks[1].error) == (4, None)

    def test_unclosed_block_at_end_of_file(self):
        (block,) = scan_blocks("/**\n * Brief.\n", LANGUAGES["typescript"])
        assert block.error.line == 1
        assert block.error.column == 1

    def test_dangling_block_at_end_of_file_is_reported(self):
        text = "function f() {}\n/**\n * Dangling doc\n"
        unit = ts_unit(text, fn("f", 1, is_exported=False))

        f, dangling = extract_blocks(unit)
        assert f.symbol.name == "f"
        assert (f.block, f.error) == (None, None)
        assert dangling.symbol is None
        assert dangling.error.code == MALFORMED_DELIMITER

        (diagnostic,) = validate_source(unit)
        assert diagnostic.code == MALFORMED_DELIMITER
        assert diagnostic.severity == Severity.ERROR
        assert (diagnostic.line, diagnostic.symbol) == (2, None)
        assert not build_report([[diagnostic]]).passed


class TestExtractBlocks:
    """Associating symbols with the block right above them."""

    def test_block_directly_above_is_associated(self):
        text = doc("Creates a user.")
        decl = line_after(text)
        text += "export function createUser() {}\n"
        (assoc,) = extract_blocks(ts_unit(text, fn("createUser", decl)))

        assert assoc.block is not None
        assert [ln.text for ln in assoc.block.lines] == ["Creates a user."]
        assert assoc.block.lines[0].line == 2
        assert assoc.block.lines[0].column == 4

    def test_blank_lines_between_block_and_symbol_are_allowed(self):
        text = doc("Brief.") + "\n\n"
        decl = line_after(text)
        text += "function f() {}\n"
        (assoc,) = extract_blocks(ts_unit(text, fn("f", decl)))

        assert assoc.block is not None

    def test_code_between_block_and_symbol_breaks_association(self):
        text = doc("Brief.") + "const x = 1;\n"
        decl = line_after(text)
        text += "function f() {}\n"
        (assoc,) = extract_blocks(ts_unit(text, fn("f", decl)))

        assert assoc.block is None
        assert assoc.error is None

    def test_block_belongs_to_at_most_one_symbol(self):
        text = doc("Brief.")
        first = line_after(text)
        text += "function f() {}\n"
        second = line_after(text)
        text += "function g() {}\n"
        f, g = extract_blocks(ts_unit(text, fn("f", first), fn("g", second)))

        assert f.block is not None
        assert g.block is None

    def test_interior_keeps_relative_indentation(self):
        text = doc("Brief.", "", "@param user - The user", "  - name - Full name")
        decl = line_after(text)
        text += "function f(user) {}\n"
        (assoc,) = extract_blocks(ts_unit(text, fn("f", decl)))

        assert [ln.text for ln in assoc.block.lines] == [
            "Brief.",
            "",
            "@param user - The user",
            "  - name - Full name",
        ]

    def test_indented_block_inside_class(self):
        text = "class Users {\n" + doc("Finds one.", indent="  ")
        decl = line_after(text)
        text += "  find() {}\n}\n"
        (assoc,) = extract_blocks(ts_unit(text, fn("find", decl)))

        assert [ln.text for ln in assoc.block.lines] == ["Finds one."]
        assert assoc.block.lines[0].column == 6

    def test_broken_block_is_reported_for_its_symbol(self):
        text = "/**\n * Brief.\n"
        decl = line_after(text)
        text += "function f() {}\n"
        (assoc,) = extract_blocks(ts_unit(text, fn("f", decl)))

        assert assoc.block is None
        assert assoc.error.code == MALFORMED_DELIMITER

    def test_sql_uses_c_style_blocks(self):
        text = doc("Checks a permission.")
        decl = line_after(text)
        text += "CREATE FUNCTION authz.check() RETURNS bool AS $$ SELECT true $$ LANGUAGE sql;\n"
        unit = SourceUnit("sql/authz.sql", text, "sql", (fn("authz.check", decl),))
        (assoc,) = extract_blocks(unit)

        assert assoc.block is not None


class TestContract:
    """Inconsistent indexer metadata."""

    def test_unknown_language(self):
        with pytest.raises(ContractViolationError):
            syntax_for("cobol")

    def test_declaration_line_outside_file(self):
        unit = ts_unit("function f() {}\n", fn("f", 10))
        with pytest.raises(ContractViolationError) as exc:
            extract_blocks(unit)
        assert exc.value.code == "CONTRACT_VIOLATION"
