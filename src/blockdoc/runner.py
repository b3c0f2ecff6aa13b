"""Run the per-file pipelines on a worker pool."""

from __future__ import annotations

import hashlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable

from blockdoc.config import ValidatorConfig
from blockdoc.models import Diagnostic, SourceUnit, ValidationReport
from blockdoc.report import build_report, summarize
from blockdoc.testfiles import validate_test_source
from blockdoc.validators import validate_source

log = logging.getLogger(__name__)

CacheKey = tuple[str, float | None]


class ResultCache:
    """In-memory diagnostics cache keyed by (text hash, mtime) per path.

    Safe to share between worker threads. Results depend on the run
    configuration, so use one cache per configuration.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[CacheKey, list[Diagnostic]]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(unit: SourceUnit) -> CacheKey:
        digest = hashlib.sha256(unit.text.encode("utf-8")).hexdigest()
        return digest, unit.mtime

    def get(self, unit: SourceUnit) -> list[Diagnostic] | None:
        key = self.key(unit)
        with self._lock:
            entry = self._entries.get(unit.path)
            if entry is not None and entry[0] == key:
                self.hits += 1
                return list(entry[1])
            self.misses += 1
            return None

    def put(self, unit: SourceUnit, diagnostics: list[Diagnostic]) -> None:
        with self._lock:
            self._entries[unit.path] = (self.key(unit), list(diagnostics))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class Runner:
    """Validates source and test files concurrently.

    Example:
        runner = Runner(ValidatorConfig(workers=8), cache=ResultCache())
        report = runner.run(source_units, test_units)
        sys.exit(report.exit_code())
    """

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        cache: ResultCache | None = None,
        cancel: threading.Event | None = None,
    ):
        self.config = config or ValidatorConfig()
        self.cache = cache
        self.cancel = cancel or threading.Event()

    def _source_job(self, unit: SourceUnit) -> list[Diagnostic]:
        if self.cache is not None:
            cached = self.cache.get(unit)
            if cached is not None:
                log.debug("%s: unchanged, using cached diagnostics", unit.path)
                return cached
        diagnostics = validate_source(unit, self.config)
        if self.cache is not None:
            self.cache.put(unit, diagnostics)
        return diagnostics

    def _guarded(
        self, job: Callable[[], list[Diagnostic]], stop: threading.Event
    ) -> list[Diagnostic] | None:
        # Cancellation is checked between units only
        if self.cancel.is_set() or stop.is_set():
            return None
        return job()

    def run(
        self,
        sources: Iterable[SourceUnit],
        tests: Iterable[SourceUnit] = (),
    ) -> ValidationReport:
        """Validate every unit and merge the results.

        Args:
            sources: Source files with indexed symbols
            tests: Test files; unit tests are paired with `sources` by path

        Returns:
            Sorted report. A cancelled run reports the finished units and
            never passes.

        Raises:
            ContractViolationError: If any unit carries inconsistent metadata.
                Remaining units are cancelled first.
        """
        sources = list(sources)
        tests = list(tests)
        by_path = {u.path: u for u in sources}

        jobs: list[Callable[[], list[Diagnostic]]] = [
            (lambda u=u: self._source_job(u)) for u in sources
        ]
        jobs.extend(
            (lambda t=t: validate_test_source(t, by_path, self.config)) for t in tests
        )

        stop = threading.Event()
        results: list[list[Diagnostic]] = []
        skipped = 0
        with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
            futures = [pool.submit(self._guarded, job, stop) for job in jobs]
            try:
                for future in as_completed(futures):
                    result = future.result()
                    if result is None:
                        skipped += 1
                    else:
                        results.append(result)
            except Exception:
                stop.set()
                raise

        report = build_report(
            results, strict=self.config.strict_mode, cancelled=skipped > 0
        )
        log.info(
            "validated %d source and %d test files (%d skipped): %s",
            len(sources),
            len(tests),
            skipped,
            summarize(report),
        )
        return report


def validate_all(
    sources: Iterable[SourceUnit],
    tests: Iterable[SourceUnit] = (),
    config: ValidatorConfig | None = None,
) -> ValidationReport:
    """Validate files with a fresh Runner."""
    return Runner(config).run(sources, tests)
