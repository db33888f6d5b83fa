"""Marks everything under tests/integration as a integration test."""

import pytest


def pytest_collection_modifyitems(items):
    """Apply integration marker to all tests in this directory."""
    for item in items:
        if "integration" in item.path.parts:
            item.add_marker(pytest.mark.integration)
