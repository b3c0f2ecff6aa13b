"""Test-file structure validation.

Unit test files follow a fixed layout:

    imports
    database setup hooks       (beforeAll / afterAll)
    file-level setup           (declarations, beforeEach / afterEach, mocks)
    one suite per exported function of the paired source file

Case titles inside a unit suite are expected to cover both
`returns {T} when ...` and `throws {E} when ...`. Integration files hold one
suite per user flow, each with at least one happy-path and one negative-path
case, and are named `<area>.flow.test.<ext>`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import PurePosixPath
from typing import Mapping

from blockdoc.base import ContractViolationError
from blockdoc.config import ValidatorConfig
from blockdoc.extractors import CommentSyntax, syntax_for
from blockdoc.models import Diagnostic, FileKind, Severity, SourceUnit

log = logging.getLogger(__name__)

SUITE_NAME_MISMATCH = "SUITE_NAME_MISMATCH"
SUITE_MISSING = "SUITE_MISSING"  # Warning
COVERAGE_GAP = "COVERAGE_GAP"  # Warning unless configured as error
ORDER_VIOLATION = "ORDER_VIOLATION"  # Warning
FLOW_NAME_MISMATCH = "FLOW_NAME_MISMATCH"  # Warning

_TEST_SUFFIX = re.compile(r"\.(?:integration\.)?(?:test|spec)(?=\.[^.]+$)")
_TEST_DIRS = frozenset({"__tests__", "test", "tests"})


class Section(IntEnum):
    """Unit-file sections, in the order they must appear."""

    IMPORTS = 0
    DB_SETUP = 1
    FILE_SETUP = 2
    SUITES = 3


@dataclass(frozen=True)
class SuiteDialect:
    """Regexes that recognize top-level statements and case titles.

    A suite title may sit on the line after `describe(`, which `suite_open`
    recognizes and `title` then reads.
    """

    imports: re.Pattern[str] = re.compile(
        r"^(?:import\b|export\s+\*\s+from\b|(?:const|let|var)\s+[\w${}, ]+=\s*require\s*\()"
    )
    db_setup: re.Pattern[str] = re.compile(r"^(?:beforeAll|afterAll)\s*\(")
    file_setup: re.Pattern[str] = re.compile(
        r"^(?:(?:export\s+)?(?:const|let|var|function|async\s+function|class|type|interface)\b"
        r"|(?:beforeEach|afterEach)\s*\("
        r"|(?:jest|vi)\.(?:mock|spyOn|useFakeTimers)\s*\()"
    )
    suite: re.Pattern[str] = re.compile(
        r"^describe(?:\.(?:only|skip))?\s*\(\s*(?P<q>['\"`])(?P<title>.*?)(?P=q)"
    )
    suite_open: re.Pattern[str] = re.compile(r"^describe(?:\.(?:only|skip))?\s*\(\s*$")
    title: re.Pattern[str] = re.compile(r"^\s*(?P<q>['\"`])(?P<title>.*?)(?P=q)")
    case: re.Pattern[str] = re.compile(
        r"\b(?:it|test)(?:\.(?:only|skip|todo|concurrent))?"
        r"\s*\(\s*(?P<q>['\"`])(?P<title>.*?)(?P=q)"
    )
    returns_case: re.Pattern[str] = re.compile(r"^returns \{[^{}]+\} when \S")
    throws_case: re.Pattern[str] = re.compile(r"^throws \{[^{}]+\} when \S")
    negative_case: re.Pattern[str] = re.compile(
        r"\b(?:fail|fails|failed|reject|rejects|rejected|error|errors|invalid|"
        r"denied|denies|throws|cannot|unauthori[sz]ed|forbidden|not|missing|expired)\b",
        re.IGNORECASE,
    )
    flow_filename: re.Pattern[str] = re.compile(
        r"^[a-z0-9]+(?:-[a-z0-9]+)*\.flow\.(?:test|spec)\.[A-Za-z]+$"
    )


DEFAULT_DIALECT = SuiteDialect()


@dataclass
class Case:
    title: str
    line: int


@dataclass
class Suite:
    title: str
    line: int
    column: int
    cases: list[Case] = field(default_factory=list)


@dataclass
class Statement:
    section: Section
    line: int
    column: int
    suite: Suite | None = None


def infer_kind(test_path: str, source_path: str | None = None) -> FileKind:
    """Infer whether a test file is a unit or an integration test.

    Files under an `integration` directory or named `*.integration.test.*`
    are integration tests. Otherwise, when the under-test source is known,
    a test that does not sit beside it is an integration test.
    """
    path = PurePosixPath(test_path.replace("\\", "/"))
    if "integration" in path.parts[:-1] or ".integration." in path.name:
        return FileKind.INTEGRATION
    if source_path is not None:
        source = PurePosixPath(source_path.replace("\\", "/"))
        if PurePosixPath(paired_source_path(test_path)) != source:
            return FileKind.INTEGRATION
    return FileKind.UNIT


def paired_source_path(test_path: str) -> str:
    """Path of the source file a unit test covers.

    `src/users/__tests__/users.test.ts` pairs with `src/users/users.ts`,
    `src/users.spec.ts` with `src/users.ts`.
    """
    path = PurePosixPath(test_path.replace("\\", "/"))
    name = _TEST_SUFFIX.sub("", path.name)
    parent = path.parent
    if parent.name in _TEST_DIRS:
        parent = parent.parent
    return str(parent / name)


def _mask(text: str, syntax: CommentSyntax) -> tuple[list[str], list[int]]:
    """Blank out comments and track bracket depth at the start of each line.

    String literals are kept so titles can still be read, but brackets inside
    them never change the depth.
    """
    lines: list[str] = []
    depths: list[int] = []
    current: list[str] = []
    depth = 0
    line_start_depth = 0
    state = "code"
    quote = ""
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if ch == "\n":
            lines.append("".join(current))
            depths.append(line_start_depth)
            current = []
            line_start_depth = depth
            if state == "line" or (state == "string" and quote != "`"):
                state = "code"
            i += 1
            continue

        if state == "line":
            current.append(" ")
        elif state == "block":
            if text.startswith(syntax.closer, i):
                current.append(" " * len(syntax.closer))
                i += len(syntax.closer)
                state = "code"
                continue
            current.append(" ")
        elif state == "string":
            current.append(ch)
            if ch == "\\" and i + 1 < n and text[i + 1] != "\n":
                current.append(text[i + 1])
                i += 2
                continue
            if ch == quote:
                state = "code"
        elif syntax.line_comment and text.startswith(syntax.line_comment, i):
            state = "line"
            current.append(" ")
        elif text.startswith(syntax.block_opener, i):
            state = "block"
            current.append(" " * len(syntax.block_opener))
            i += len(syntax.block_opener)
            continue
        else:
            current.append(ch)
            if ch in "'\"`":
                state = "string"
                quote = ch
            elif ch in "{([":
                depth += 1
            elif ch in "})]":
                depth = max(depth - 1, 0)
        i += 1

    if current:
        lines.append("".join(current))
        depths.append(line_start_depth)
    return lines, depths


def scan_statements(
    text: str, syntax: CommentSyntax, dialect: SuiteDialect = DEFAULT_DIALECT
) -> list[Statement]:
    """Classify the top-level statements of a test file.

    Unrecognized top-level lines are skipped. Each suite collects the case
    titles found anywhere inside its body.
    """
    lines, depths = _mask(text, syntax)
    statements: list[Statement] = []
    current: Suite | None = None
    awaiting_title = False

    for index, line in enumerate(lines):
        lineno = index + 1
        stripped = line.strip()
        if depths[index] > 0:
            if current is not None and awaiting_title and stripped:
                awaiting_title = False
                title_match = dialect.title.match(line)
                if title_match:
                    current.title = title_match.group("title")
                    line = line[title_match.end() :]
            if current is not None:
                current.cases.extend(
                    Case(m.group("title"), lineno) for m in dialect.case.finditer(line)
                )
            continue
        current = None
        awaiting_title = False
        if not stripped:
            continue

        column = len(line) - len(line.lstrip()) + 1
        suite_match = dialect.suite.match(stripped)
        if suite_match:
            current = Suite(suite_match.group("title"), lineno, column)
            rest = stripped[suite_match.end() :]
            current.cases.extend(
                Case(m.group("title"), lineno) for m in dialect.case.finditer(rest)
            )
            statements.append(Statement(Section.SUITES, lineno, column, current))
        elif dialect.suite_open.match(stripped):
            current = Suite("", lineno, column)
            awaiting_title = True
            statements.append(Statement(Section.SUITES, lineno, column, current))
        elif dialect.imports.match(stripped):
            statements.append(Statement(Section.IMPORTS, lineno, column))
        elif dialect.db_setup.match(stripped):
            statements.append(Statement(Section.DB_SETUP, lineno, column))
        elif dialect.file_setup.match(stripped):
            statements.append(Statement(Section.FILE_SETUP, lineno, column))
    return statements


_SECTION_NAMES = {
    Section.IMPORTS: "import",
    Section.DB_SETUP: "database setup",
    Section.FILE_SETUP: "file setup",
    Section.SUITES: "suite",
}


class TestStructureValidator:
    """Checks one test file against the unit or integration template."""

    __test__ = False  # Not a pytest class

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        dialect: SuiteDialect = DEFAULT_DIALECT,
    ):
        self.config = config or ValidatorConfig()
        self.dialect = dialect

    @property
    def gap_severity(self) -> Severity:
        if self.config.test_coverage_gap_is_error:
            return Severity.ERROR
        return Severity.WARNING

    def validate(
        self,
        unit: SourceUnit,
        kind: FileKind,
        exported_functions: list[str] | None = None,
    ) -> list[Diagnostic]:
        """Validate a test file's layout.

        Args:
            unit: The test file
            kind: Unit or integration template
            exported_functions: Exported function names of the paired source,
                required for unit files

        Returns:
            Diagnostics for the file
        """
        statements = scan_statements(unit.text, syntax_for(unit.language), self.dialect)
        suites = [s.suite for s in statements if s.suite is not None]
        log.debug("%s: %s file with %d suites", unit.path, kind.value, len(suites))

        diagnostics: list[Diagnostic] = []
        if kind == FileKind.UNIT:
            diagnostics.extend(self._check_order(unit, statements))
            diagnostics.extend(self._check_unit_suites(unit, suites, exported_functions or []))
        else:
            diagnostics.extend(self._check_setup_first(unit, statements))
            diagnostics.extend(self._check_flows(unit, suites))
        return diagnostics

    def _diag(
        self,
        unit: SourceUnit,
        line: int,
        column: int,
        code: str,
        severity: Severity,
        message: str,
        subject: str | None = None,
    ) -> Diagnostic:
        return Diagnostic(unit.path, line, column, code, severity, message, subject)

    def _check_order(self, unit: SourceUnit, statements: list[Statement]) -> list[Diagnostic]:
        diagnostics = []
        reached = Section.IMPORTS
        for stmt in statements:
            if stmt.section < reached:
                diagnostics.append(
                    self._diag(
                        unit,
                        stmt.line,
                        stmt.column,
                        ORDER_VIOLATION,
                        Severity.WARNING,
                        f"{_SECTION_NAMES[stmt.section].capitalize()} appears after "
                        f"{_SECTION_NAMES[reached]}",
                    )
                )
            else:
                reached = stmt.section
        return diagnostics

    def _check_setup_first(
        self, unit: SourceUnit, statements: list[Statement]
    ) -> list[Diagnostic]:
        diagnostics = []
        seen_suite = False
        for stmt in statements:
            if stmt.section == Section.SUITES:
                seen_suite = True
            elif seen_suite and stmt.section in (Section.DB_SETUP, Section.FILE_SETUP):
                diagnostics.append(
                    self._diag(
                        unit,
                        stmt.line,
                        stmt.column,
                        ORDER_VIOLATION,
                        Severity.WARNING,
                        f"{_SECTION_NAMES[stmt.section].capitalize()} appears after a flow suite",
                    )
                )
        return diagnostics

    def _check_unit_suites(
        self, unit: SourceUnit, suites: list[Suite], exported: list[str]
    ) -> list[Diagnostic]:
        diagnostics = []
        names = set(exported)
        for suite in suites:
            if suite.title not in names:
                diagnostics.append(
                    self._diag(
                        unit,
                        suite.line,
                        suite.column,
                        SUITE_NAME_MISMATCH,
                        Severity.ERROR,
                        f"Suite '{suite.title}' does not name an exported function",
                        suite.title,
                    )
                )
            missing = []
            titles = [c.title for c in suite.cases]
            if not any(self.dialect.returns_case.match(t) for t in titles):
                missing.append("'returns {T} when ...'")
            if not any(self.dialect.throws_case.match(t) for t in titles):
                missing.append("'throws {E} when ...'")
            if missing:
                diagnostics.append(
                    self._diag(
                        unit,
                        suite.line,
                        suite.column,
                        COVERAGE_GAP,
                        self.gap_severity,
                        f"Suite '{suite.title}' has no {' or '.join(missing)} case",
                        suite.title,
                    )
                )

        covered = {s.title for s in suites}
        for name in exported:
            if name not in covered:
                diagnostics.append(
                    self._diag(
                        unit,
                        1,
                        1,
                        SUITE_MISSING,
                        Severity.WARNING,
                        f"Exported function {name} has no test suite",
                        name,
                    )
                )
        return diagnostics

    def _check_flows(self, unit: SourceUnit, suites: list[Suite]) -> list[Diagnostic]:
        diagnostics = []
        filename = PurePosixPath(unit.path.replace("\\", "/")).name
        if not self.dialect.flow_filename.match(filename):
            diagnostics.append(
                self._diag(
                    unit,
                    1,
                    1,
                    FLOW_NAME_MISMATCH,
                    Severity.WARNING,
                    f"Integration file {filename} should be named <area>.flow.test.<ext>",
                )
            )

        for suite in suites:
            negative = [c for c in suite.cases if self.dialect.negative_case.search(c.title)]
            missing = []
            if len(negative) == len(suite.cases):
                missing.append("happy-path")
            if not negative:
                missing.append("negative-path")
            if missing:
                diagnostics.append(
                    self._diag(
                        unit,
                        suite.line,
                        suite.column,
                        COVERAGE_GAP,
                        self.gap_severity,
                        f"Flow '{suite.title}' has no {' or '.join(missing)} case",
                        suite.title,
                    )
                )
        return diagnostics


def validate_test_source(
    unit: SourceUnit,
    sources: Mapping[str, SourceUnit],
    config: ValidatorConfig | None = None,
    dialect: SuiteDialect = DEFAULT_DIALECT,
) -> list[Diagnostic]:
    """Validate a test file, pairing unit tests with their source file.

    Args:
        unit: The test file
        sources: Source units keyed by path
        config: Run configuration

    Raises:
        ContractViolationError: If a unit test's paired source was not supplied.
    """
    kind = infer_kind(unit.path)
    exported: list[str] = []
    if kind == FileKind.UNIT:
        paired = paired_source_path(unit.path)
        source = sources.get(paired)
        if source is None:
            raise ContractViolationError(
                f"{unit.path}: paired source {paired} was not supplied"
            )
        exported = source.exported_functions()
    return TestStructureValidator(config, dialect).validate(unit, kind, exported)
