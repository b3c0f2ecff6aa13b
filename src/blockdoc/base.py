"""Exception hierarchy for blockdoc.

Syntactic defects found inside a single block (ExtractionError, ParseError)
are raised by the extractor and parser and caught at block or tag scope,
where they are turned into diagnostics. ContractViolationError is the only
exception that escapes to the caller: it signals that the source indexer
supplied inconsistent metadata.
"""

from __future__ import annotations

# Tier 1 codes
MALFORMED_DELIMITER = "MALFORMED_DELIMITER"
BAD_TAG_HEADER = "BAD_TAG_HEADER"
UNKNOWN_TAG = "UNKNOWN_TAG"
UNTERMINATED_FENCE = "UNTERMINATED_FENCE"
DEPTH_EXCEEDED = "DEPTH_EXCEEDED"
MARKER_STYLE = "MARKER_STYLE"  # Warning

CONTRACT_VIOLATION = "CONTRACT_VIOLATION"


class BlockdocError(Exception):
    """Base exception for blockdoc operations."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class SyntaxDefect(BlockdocError):
    """A located defect in comment text, scoped to one block or tag."""

    def __init__(self, code: str, message: str, line: int = 0, column: int = 0):
        super().__init__(message, code)
        self.line = line
        self.column = column


class ExtractionError(SyntaxDefect):
    """Raised when a comment block's delimiters are malformed."""


class ParseError(SyntaxDefect):
    """Raised when a tag header or nested entry cannot be parsed."""


class StyleNotice(SyntaxDefect):
    """Recoverable style defect; recorded as a warning, never raised."""


class ContractViolationError(BlockdocError):
    """Raised when collaborator-supplied metadata is inconsistent."""

    def __init__(self, message: str):
        super().__init__(message, CONTRACT_VIOLATION)
