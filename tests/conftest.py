"""Pytest configuration for all tests."""

from datetime import datetime

import pytest
from prometheus_client import CollectorRegistry

from src.staleness.metrics import StalenessMetrics
from tests.staleness.factories import NOW


@pytest.fixture
def now() -> datetime:
    """Fixed time source for classification passes."""
    return NOW


@pytest.fixture
def metrics() -> StalenessMetrics:
    """Metrics bound to an isolated registry."""
    return StalenessMetrics(registry=CollectorRegistry())
