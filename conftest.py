# conftest.py
import numpy as np
import pytest

@pytest.fixture
def rng():
    """Seeded generator for random nodal states."""
    return np.random.default_rng(1234)
