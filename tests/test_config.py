"""Tests for run configuration."""

import pytest

from blockdoc.base import BlockdocError
from blockdoc.config import MarkerConvention, ValidatorConfig


class TestValidatorConfig:
    def test_defaults(self):
        config = ValidatorConfig()
        assert not config.strict_mode
        assert not config.require_internal_docs
        assert not config.test_coverage_gap_is_error
        assert config.marker_convention == MarkerConvention.DASH_PLUS

    def test_from_mapping(self):
        config = ValidatorConfig.from_mapping(
            {
                "strictMode": True,
                "requireInternalDocs": True,
                "markerConvention": "BRACE_TYPED",
                "testCoverageGapIsError": True,
                "workers": 2,
            }
        )
        assert config == ValidatorConfig(
            strict_mode=True,
            require_internal_docs=True,
            marker_convention=MarkerConvention.BRACE_TYPED,
            test_coverage_gap_is_error=True,
            workers=2,
        )

    def test_non_integer_workers(self):
        with pytest.raises(BlockdocError):
            ValidatorConfig.from_mapping({"workers": None})

    def test_unknown_convention(self):
        with pytest.raises(BlockdocError):
            ValidatorConfig.from_mapping({"markerConvention": "STARS"})

    @pytest.mark.parametrize("field", ["max_depth", "workers"])
    def test_positive_limits(self, field):
        with pytest.raises(BlockdocError):
            ValidatorConfig(**{field: 0})


class TestFromEnv:
    def test_reads_variables(self):
        config = ValidatorConfig.from_env(
            {
                "BLOCKDOC_STRICT": "yes",
                "BLOCKDOC_REQUIRE_INTERNAL_DOCS": "0",
                "BLOCKDOC_MARKER_CONVENTION": "brace_typed",
                "BLOCKDOC_MAX_DEPTH": "3",
                "BLOCKDOC_WORKERS": "6",
            }
        )
        assert config.strict_mode
        assert not config.require_internal_docs
        assert config.marker_convention == MarkerConvention.BRACE_TYPED
        assert (config.max_depth, config.workers) == (3, 6)

    def test_empty_environment(self):
        assert ValidatorConfig.from_env({}) == ValidatorConfig()

    @pytest.mark.parametrize(
        "var,value", [("BLOCKDOC_WORKERS", "many"), ("BLOCKDOC_MAX_DEPTH", "3.5")]
    )
    def test_invalid_integer(self, var, value):
        with pytest.raises(BlockdocError) as exc:
            ValidatorConfig.from_env({var: value})
        assert value in str(exc.value)

    def test_invalid_boolean(self):
        with pytest.raises(BlockdocError):
            ValidatorConfig.from_env({"BLOCKDOC_STRICT": "maybe"})

    def test_process_environment(self, monkeypatch):
        monkeypatch.setenv("BLOCKDOC_COVERAGE_GAP_IS_ERROR", "true")
        assert ValidatorConfig.from_env().test_coverage_gap_is_error
