"""Run configuration for blockdoc."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from blockdoc.base import BlockdocError


class MarkerConvention(str, Enum):
    """Nested-field marker convention expected in doc blocks.

    DASH_PLUS:   `- name: type - description`
    BRACE_TYPED: `- {type} name - description`

    Both alternate `-` (odd depth) and `+` (even depth).
    """

    DASH_PLUS = "DASH_PLUS"
    BRACE_TYPED = "BRACE_TYPED"


_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise BlockdocError(f"Invalid boolean for {name}: {value!r}")


@dataclass(frozen=True)
class ValidatorConfig:
    """Options consumed by the pipeline. Selected once per run."""

    strict_mode: bool = False  # Warnings count as errors
    require_internal_docs: bool = False
    marker_convention: MarkerConvention = MarkerConvention.DASH_PLUS
    test_coverage_gap_is_error: bool = False
    max_depth: int = 8  # Deepest nested-field level accepted by the parser
    workers: int = 4

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise BlockdocError(f"max_depth must be positive, got {self.max_depth}")
        if self.workers < 1:
            raise BlockdocError(f"workers must be positive, got {self.workers}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ValidatorConfig:
        """Build a config from the externally owned camelCase settings.

        Args:
            data: Mapping with any of strictMode, requireInternalDocs,
                markerConvention, testCoverageGapIsError, maxDepth, workers

        Raises:
            BlockdocError: If markerConvention names an unknown convention or
                maxDepth/workers is not an integer.
        """
        kwargs: dict[str, Any] = {}
        if "strictMode" in data:
            kwargs["strict_mode"] = bool(data["strictMode"])
        if "requireInternalDocs" in data:
            kwargs["require_internal_docs"] = bool(data["requireInternalDocs"])
        if "testCoverageGapIsError" in data:
            kwargs["test_coverage_gap_is_error"] = bool(data["testCoverageGapIsError"])
        if "markerConvention" in data:
            try:
                kwargs["marker_convention"] = MarkerConvention(data["markerConvention"])
            except ValueError as e:
                raise BlockdocError(
                    f"Unknown marker convention: {data['markerConvention']!r}"
                ) from e
        for key, name in (("maxDepth", "max_depth"), ("workers", "workers")):
            if key not in data:
                continue
            try:
                kwargs[name] = int(data[key])
            except (TypeError, ValueError) as e:
                raise BlockdocError(f"Invalid integer for {key}: {data[key]!r}") from e
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ValidatorConfig:
        """Build a config from BLOCKDOC_* environment variables."""
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for key, var in (
            ("strictMode", "BLOCKDOC_STRICT"),
            ("requireInternalDocs", "BLOCKDOC_REQUIRE_INTERNAL_DOCS"),
            ("testCoverageGapIsError", "BLOCKDOC_COVERAGE_GAP_IS_ERROR"),
        ):
            if var in env:
                data[key] = _parse_bool(var, env[var])
        if "BLOCKDOC_MARKER_CONVENTION" in env:
            data["markerConvention"] = env["BLOCKDOC_MARKER_CONVENTION"].strip().upper()
        if "BLOCKDOC_MAX_DEPTH" in env:
            data["maxDepth"] = env["BLOCKDOC_MAX_DEPTH"]
        if "BLOCKDOC_WORKERS" in env:
            data["workers"] = env["BLOCKDOC_WORKERS"]
        return cls.from_mapping(data)
