"""Tests for the tag parser and canonical rendering."""

import pytest

from blockdoc.base import (
    BAD_TAG_HEADER,
    DEPTH_EXCEEDED,
    MARKER_STYLE,
    UNKNOWN_TAG,
    UNTERMINATED_FENCE,
    StyleNotice,
)
from blockdoc.config import MarkerConvention
from blockdoc.models import BlockLine, CommentBlock, Tag, TagKind
from blockdoc.parser import TagParser, parse_lines, render_block


def block_lines(*texts):
    return [BlockLine(line=i + 1, column=4, text=t) for i, t in enumerate(texts)]


def defect_codes(defects):
    return [d.code for d in defects]


class TestBrief:
    """The first prose paragraph becomes the brief."""

    def test_brief_joins_first_paragraph(self):
        tags, defects = parse_lines(
            ["Creates a user.", "Hashes the password first.", "", "Extra detail."]
        )
        assert defects == []
        assert tags == [
            Tag(TagKind.BRIEF, description="Creates a user. Hashes the password first.")
        ]

    def test_no_brief_when_block_starts_with_a_tag(self):
        tags, _ = parse_lines(["@param id - Identifier"])
        assert [t.kind for t in tags] == [TagKind.PARAM]

    def test_brief_location(self):
        tags, _ = TagParser().parse(block_lines("", "  Brief."))
        assert (tags[0].line, tags[0].column) == (2, 6)


class TestHeaders:
    """Top-level tag headers."""

    def test_param_with_type_and_optional(self):
        tags, _ = parse_lines(["@param email?: string - Contact address"])
        assert tags == [
            Tag(
                TagKind.PARAM,
                name="email",
                type="string",
                optional=True,
                description="Contact address",
            )
        ]

    def test_param_type_elided(self):
        (tag,), _ = parse_lines(["@param id - Identifier"])
        assert (tag.name, tag.type, tag.optional) == ("id", None, False)

    def test_description_continues_on_following_lines(self):
        (tag,), _ = parse_lines(["@param id - Identifier of", "  the account"])
        assert tag.description == "Identifier of the account"

    def test_aliases(self):
        tags, defects = parse_lines(
            ["@prop a - A", "@returns - Result", "@example", "```ts", "f()", "```"]
        )
        assert defects == []
        assert [t.kind for t in tags] == [TagKind.PROPERTY, TagKind.RETURN, TagKind.USAGE]

    def test_unnamed_return(self):
        (tag,), _ = parse_lines(["@return: User - The created user"])
        assert (tag.name, tag.type, tag.description) == (None, "User", "The created user")

    def test_braced_unnamed_return(self):
        (tag,), _ = parse_lines(["@return {User} - The created user"])
        assert tag.type == "User"

    def test_throws(self):
        (tag,), _ = parse_lines(["@throws {NotFoundError} When the user does not exist"])
        assert tag.kind == TagKind.THROWS
        assert tag.name == "NotFoundError"
        assert tag.description == "When the user does not exist"

    def test_template(self):
        (tag,), _ = parse_lines(["@template T - Element type"])
        assert (tag.kind, tag.name, tag.description) == (TagKind.TEMPLATE, "T", "Element type")

    def test_async_marker(self):
        tags, _ = parse_lines(["Brief.", "@async"])
        assert tags[1] == Tag(TagKind.ASYNC)

    def test_usage_fence(self):
        (tag,), defects = parse_lines(
            [
                "@usage Create then fetch",
                "```ts",
                "const u = createUser(input);",
                "  getUser(u.id);",
                "```",
            ]
        )
        assert defects == []
        assert tag.description == "Create then fetch"
        assert tag.language == "ts"
        assert tag.body == "const u = createUser(input);\n  getUser(u.id);"

    def test_sigil_inside_fence_is_not_a_tag(self):
        tags, _ = parse_lines(["@usage", "```ts", "@decorator()", "```", "@async"])
        assert [t.kind for t in tags] == [TagKind.USAGE, TagKind.ASYNC]
        assert tags[0].body == "@decorator()"


class TestHeaderDefects:
    """A bad header drops its own tag and nothing else."""

    def test_unknown_tag(self):
        tags, defects = parse_lines(["Brief.", "@frobnicate x", "@param a - A"])

        assert defect_codes(defects) == [UNKNOWN_TAG]
        assert (defects[0].line, defects[0].column) == (2, 1)
        assert [t.kind for t in tags] == [TagKind.BRIEF, TagKind.PARAM]

    @pytest.mark.parametrize(
        "header",
        ["@param", "@param : string - no name", "@throws NotFoundError", "@template - x"],
    )
    def test_bad_header(self, header):
        tags, defects = parse_lines(["Brief.", header, "@async"])

        assert defect_codes(defects) == [BAD_TAG_HEADER]
        assert [t.kind for t in tags] == [TagKind.BRIEF, TagKind.ASYNC]

    def test_usage_without_fence(self):
        tags, defects = parse_lines(["@usage just prose"])
        assert defect_codes(defects) == [BAD_TAG_HEADER]
        assert tags == []

    def test_unterminated_fence(self):
        tags, defects = parse_lines(["@usage", "```ts", "createUser()"])
        assert defect_codes(defects) == [UNTERMINATED_FENCE]
        assert defects[0].line == 2
        assert tags == []


class TestNested:
    """Nested fields under @param, @property and @return."""

    def test_nested_tree(self):
        (tag,), defects = parse_lines(
            [
                "@param user: User - The account",
                "  - email?: string - Contact",
                "    + domain - Mail domain",
                "  - name - Display name",
            ]
        )
        assert defects == []
        email, name = tag.children
        assert (email.name, email.type, email.optional, email.depth) == (
            "email",
            "string",
            True,
            1,
        )
        assert [(c.name, c.depth) for c in email.children] == [("domain", 2)]
        assert (name.name, name.depth, name.children) == ("name", 1, [])

    def test_wrong_marker_is_a_style_notice(self):
        (tag,), defects = parse_lines(["@param a - A", "  + b - B"])

        assert defect_codes(defects) == [MARKER_STYLE]
        assert isinstance(defects[0], StyleNotice)
        assert [c.name for c in tag.children] == ["b"]

    def test_bad_nested_line_drops_its_subtree(self):
        (tag,), defects = parse_lines(
            ["@param a - A", "  - !!! - broken", "    + c - C", "  - d - D"]
        )
        assert defect_codes(defects) == [BAD_TAG_HEADER]
        assert [c.name for c in tag.children] == ["d"]

    def test_depth_exceeded_drops_subtree(self):
        parser = TagParser(max_depth=2)
        (tag,), defects = parser.parse(
            block_lines(
                "@param a - A",
                "  - b - B",
                "    + c - C",
                "      - d - D",
                "        + e - E",
                "  - f - F",
            )
        )
        assert defect_codes(defects) == [DEPTH_EXCEEDED]
        assert defects[0].line == 4
        b, f = tag.children
        assert [c.name for c in b.children] == ["c"]
        assert b.children[0].children == []
        assert f.name == "f"

    def test_return_fields(self):
        (tag,), _ = parse_lines(["@return - The user", "  - id - Identifier"])
        assert tag.name is None
        assert [c.name for c in tag.children] == ["id"]


class TestConventions:
    """Both marker conventions yield the same tree."""

    DASH = [
        "@param user: User - The account",
        "  - email?: string - Contact",
    ]
    BRACE = [
        "@param {User} user - The account",
        "  - {string} email? - Contact",
    ]

    def test_same_tree(self):
        dash, _ = parse_lines(self.DASH, MarkerConvention.DASH_PLUS)
        brace, _ = parse_lines(self.BRACE, MarkerConvention.BRACE_TYPED)
        assert dash == brace

    def test_other_convention_is_still_read(self):
        tags, defects = parse_lines(self.BRACE, MarkerConvention.DASH_PLUS)
        assert defects == []
        assert tags[0].children[0].type == "string"


class TestRender:
    """Canonical rendering."""

    SOURCE = [
        "Fetches users page by page.",
        "",
        "@async",
        "@template T - Row type",
        "@param query: Query - Filter",
        "  - email?: string - Exact match",
        "    + domain - Domain only",
        "  - limit - Page size",
        "@return - The page",
        "  - rows - Matching rows",
        "@throws {TimeoutError} When the database is slow",
        "@usage Basic",
        "```ts",
        "await listUsers({ limit: 10 });",
        "```",
    ]

    def test_canonical_dash_plus(self):
        tags, _ = parse_lines(self.SOURCE)
        assert render_block(tags) == self.SOURCE

    def test_brace_typed_rendering(self):
        tags, _ = parse_lines(self.SOURCE)
        rendered = render_block(tags, MarkerConvention.BRACE_TYPED)
        assert rendered[4] == "@param {Query} query - Filter"
        assert rendered[5] == "  - {string} email? - Exact match"

    @pytest.mark.parametrize("convention", list(MarkerConvention))
    def test_render_then_parse_is_identity(self, convention):
        tags, _ = parse_lines(self.SOURCE)
        again, defects = parse_lines(render_block(tags, convention), convention)
        assert defects == []
        assert again == tags

    def test_repairs_marker_style(self):
        tags, _ = parse_lines(["@param a - A", "   + b - B"])
        assert render_block(tags) == ["@param a - A", "  - b - B"]


class TestParseBlock:
    def test_fills_tags_and_defects(self):
        block = CommentBlock(
            start_line=1,
            end_line=4,
            span=(0, 40),
            lines=block_lines("Brief.", "@bogus"),
        )
        TagParser().parse_block(block)

        assert block.brief.description == "Brief."
        assert defect_codes(block.defects) == [UNKNOWN_TAG]
