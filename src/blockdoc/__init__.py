"""blockdoc - doc-block parser, schema validator and test-layout checker.

This package provides:
- extract_blocks / TagParser: find and parse doc blocks above symbols
- SchemaValidator / validate_source: check blocks against signatures
- TestStructureValidator / validate_test_source: check test-file layout
- Runner / build_report: run files concurrently into one sorted report
"""

from blockdoc.base import (
    BlockdocError,
    ContractViolationError,
    ExtractionError,
    ParseError,
)
from blockdoc.config import MarkerConvention, ValidatorConfig
from blockdoc.extractors import extract_blocks
from blockdoc.models import (
    CommentBlock,
    Diagnostic,
    FileKind,
    Parameter,
    Severity,
    SourceUnit,
    Symbol,
    SymbolKind,
    Tag,
    TagKind,
    TypeShape,
    ValidationReport,
)
from blockdoc.parser import TagParser, render_block
from blockdoc.report import build_report
from blockdoc.runner import ResultCache, Runner, validate_all
from blockdoc.testfiles import TestStructureValidator, validate_test_source
from blockdoc.validators import SchemaValidator, validate_source

__all__ = [
    "BlockdocError",
    "CommentBlock",
    "ContractViolationError",
    "Diagnostic",
    "ExtractionError",
    "FileKind",
    "MarkerConvention",
    "Parameter",
    "ParseError",
    "ResultCache",
    "Runner",
    "SchemaValidator",
    "Severity",
    "SourceUnit",
    "Symbol",
    "SymbolKind",
    "Tag",
    "TagKind",
    "TagParser",
    "TestStructureValidator",
    "TypeShape",
    "ValidationReport",
    "ValidatorConfig",
    "build_report",
    "extract_blocks",
    "render_block",
    "validate_all",
    "validate_source",
    "validate_test_source",
]
