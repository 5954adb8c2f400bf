# tests/conftest.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Test configuration and shared fixtures for pytest

"""Test configuration and shared fixtures for Horizon tests.

This module provides pytest configuration, fixtures, and utilities for testing
the rule evaluator. It ensures proper module path setup and provides common
signatures and monitors for all test modules.
"""

import sys
from pathlib import Path

import pytest

# Ensure project modules can be imported
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Verify the project packages are importable before any test runs.

    Raises:
        pytest.skip: If required modules cannot be imported
    """
    try:
        import formula
        import logic
        import model
        import replay
    except ImportError as e:
        pytest.skip(f"Cannot import required modules: {e}")

    yield


@pytest.fixture
def simple_signature():
    """Signature with one unary and one binary relation, plus a numeric one.

    Returns:
        Signature: p(x:int), q(x:int, y:int), r(name:string, v:float)
    """
    from model import RelationSchema, Signature, ValueType

    return Signature.of(
        RelationSchema.of("p", x=ValueType.INT),
        RelationSchema.of("q", x=ValueType.INT, y=ValueType.INT),
        RelationSchema.of("r", name=ValueType.STRING, v=ValueType.FLOAT),
    )


@pytest.fixture
def anomaly_signature():
    """Signature of the block proposal anomaly policy."""
    from policies.anomaly import SIGNATURE

    return SIGNATURE


@pytest.fixture
def delivery_signature():
    """Signature of the proposal delivery policy."""
    from policies.delivery import SIGNATURE

    return SIGNATURE
