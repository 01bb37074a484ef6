"""Global test fixtures."""

import pytest

from tests.helpers import NOW


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW
