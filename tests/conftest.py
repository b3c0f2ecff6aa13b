"""Shared pytest fixtures for blockdoc tests."""

import pytest

from blockdoc.config import ValidatorConfig
from blockdoc.testfiles import TestStructureValidator
from blockdoc.validators import SchemaValidator


@pytest.fixture
def config():
    """Default run configuration."""
    return ValidatorConfig()


@pytest.fixture
def validator(config):
    return SchemaValidator(config)


@pytest.fixture
def structure(config):
    return TestStructureValidator(config)
