"""Pytest configuration and fixtures."""

import numpy as np
import pytest
import torch

from tangentcore import config


@pytest.fixture(autouse=True)
def restore_config():
    """Reset global configuration after every test."""
    debug, int2float = config.debug_mode(), config.int2float()
    yield
    config.set_debug_mode(debug)
    config.set_int2float(int2float)


@pytest.fixture
def rng():
    """Seeded numpy generator for reproducibility."""
    return np.random.default_rng(42)


@pytest.fixture
def random_seed():
    """Set torch random seed for reproducibility."""
    torch.manual_seed(42)
    return 42


@pytest.fixture
def matrix():
    """Non-symmetric 3x3 gradient candidate."""
    return np.array([[1.0, 4.0, 7.0], [2.0, 5.0, 8.0], [3.0, 6.0, 9.0]])


@pytest.fixture(params=['zero', 'no'])
def zero_like(request):
    """Fixture that parametrizes over both zero-like tangents."""
    from tangentcore import NoTangent, ZeroTangent
    return ZeroTangent() if request.param == 'zero' else NoTangent()
