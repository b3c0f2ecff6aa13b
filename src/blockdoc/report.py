"""Diagnostic reporting: merge per-file results into one ordered report."""

from __future__ import annotations

from typing import Iterable

from blockdoc.models import Diagnostic, Severity, ValidationReport


def build_report(
    results: Iterable[Iterable[Diagnostic]],
    strict: bool = False,
    cancelled: bool = False,
) -> ValidationReport:
    """Merge diagnostics from any number of files.

    The merge is order-independent: the report is sorted by file, line,
    column, code and symbol, so worker completion order never shows.

    Args:
        results: Diagnostics per file, in any order
        strict: If True, warnings are promoted to errors
        cancelled: Whether the run stopped before every unit was validated

    Returns:
        ValidationReport that passes iff it holds no error-severity diagnostic
        and the run was not cancelled
    """
    merged = [d for diagnostics in results for d in diagnostics]
    if strict:
        merged = [d.promoted() for d in merged]
    merged.sort(key=Diagnostic.sort_key)

    passed = not cancelled and not any(d.severity == Severity.ERROR for d in merged)
    return ValidationReport(
        diagnostics=merged, passed=passed, strict=strict, cancelled=cancelled
    )


def format_diagnostic(diagnostic: Diagnostic) -> str:
    """Format one diagnostic as `file:line:col: severity CODE message`."""
    subject = f" [{diagnostic.symbol}]" if diagnostic.symbol else ""
    return (
        f"{diagnostic.file}:{diagnostic.line}:{diagnostic.column}: "
        f"{diagnostic.severity.value} {diagnostic.code} {diagnostic.message}{subject}"
    )


def summarize(report: ValidationReport) -> str:
    """One-line summary of a report."""
    verdict = "passed" if report.passed else "failed"
    if report.cancelled:
        verdict = "cancelled"
    return (
        f"{len(report.errors)} errors, {len(report.warnings)} warnings: {verdict}"
    )
