"""Pytest fixtures."""

import pytest

from atomic_reflector import Reflector
from tests import models


@pytest.fixture
def reflector() -> Reflector:
    """Engine with every sample type and function of ``tests.models`` catalogued."""
    return Reflector(modules=[models])
