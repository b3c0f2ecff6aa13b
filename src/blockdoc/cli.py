"""Command line entry point.

Indexes `.sql` files, validates their doc blocks and prints one line per
diagnostic. Exits 0 iff the report passes.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from blockdoc.base import BlockdocError
from blockdoc.config import MarkerConvention, ValidatorConfig
from blockdoc.indexers import IndexerError, index_sql_dir, index_sql_file
from blockdoc.models import SourceUnit
from blockdoc.report import format_diagnostic, summarize
from blockdoc.runner import Runner

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blockdoc", description="Validate doc blocks in SQL function files."
    )
    parser.add_argument("paths", nargs="+", type=Path, help="SQL files or directories")
    parser.add_argument("--strict", action="store_true", help="treat warnings as errors")
    parser.add_argument(
        "--require-internal-docs",
        action="store_true",
        help="require doc blocks on internal functions too",
    )
    parser.add_argument(
        "--convention",
        choices=[c.value for c in MarkerConvention],
        help="nested-field marker convention",
    )
    parser.add_argument("--workers", type=int, help="worker threads")
    parser.add_argument("--json", action="store_true", help="print the report as JSON")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def _load(paths: list[Path]) -> list[SourceUnit]:
    units: list[SourceUnit] = []
    root = Path.cwd()
    for path in paths:
        if path.is_dir():
            units.extend(index_sql_dir(path, root))
            continue
        try:
            units.append(index_sql_file(path, root))
        except IndexerError as e:
            log.warning("%s", e)
    return units


def main(argv: list[str] | None = None) -> int:
    """Run the validator over the given paths."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = ValidatorConfig.from_env()
        overrides = {}
        if args.strict:
            overrides["strict_mode"] = True
        if args.require_internal_docs:
            overrides["require_internal_docs"] = True
        if args.convention:
            overrides["marker_convention"] = MarkerConvention(args.convention)
        if args.workers:
            overrides["workers"] = args.workers
        config = dataclasses.replace(config, **overrides)

        report = Runner(config).run(_load(args.paths))
    except BlockdocError as e:
        print(f"blockdoc: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(report.to_json())
    else:
        for diagnostic in report.diagnostics:
            print(format_diagnostic(diagnostic))
        print(summarize(report))
    return report.exit_code()


if __name__ == "__main__":
    sys.exit(main())
