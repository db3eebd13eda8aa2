"""
Runtime configuration for tangentcore.

Settings live in module state, seeded from environment variables at import
time and changed with the setter functions below:

    TANGENTCORE_DEBUG       enable extra consistency checks (1/true/yes/on)
    TANGENTCORE_INT2FLOAT   float dtype for the tangents of integer primals
                            (float64, float32 or float16; default float64)

Usage:
    from tangentcore import config

    config.set_int2float('float32')
    with config.debug():
        add_into(x, ithunk)
"""

import logging
import os
from contextlib import contextmanager
from typing import Iterator

import numpy as np

log = logging.getLogger(__name__)

INT2FLOAT_CHOICES = ('float64', 'float32', 'float16')


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').strip().lower() in ('1', 'true', 'yes', 'on')


_DEBUG_MODE = _env_flag('TANGENTCORE_DEBUG')
_INT2FLOAT = os.environ.get('TANGENTCORE_INT2FLOAT', 'float64').strip().lower()

if _INT2FLOAT not in INT2FLOAT_CHOICES:
    log.warning(
        "Ignoring TANGENTCORE_INT2FLOAT=%r, expected one of %s", _INT2FLOAT, INT2FLOAT_CHOICES
    )
    _INT2FLOAT = 'float64'


# =============================================================================
# Debug mode
# =============================================================================

def debug_mode() -> bool:
    """Whether the extra (slower) consistency checks are enabled."""
    return _DEBUG_MODE


def set_debug_mode(enabled: bool):
    """
    Enable or disable debug mode.

    In debug mode `add_into` verifies that in-place functions return their
    destination and poisons destinations of the out-of-place path, so code
    relying on mutation instead of the returned value fails loudly.
    """
    global _DEBUG_MODE
    _DEBUG_MODE = bool(enabled)
    log.info("tangentcore debug mode %s", "enabled" if _DEBUG_MODE else "disabled")


@contextmanager
def debug(enabled: bool = True) -> Iterator[None]:
    """Temporarily switch debug mode."""
    previous = _DEBUG_MODE
    set_debug_mode(enabled)
    try:
        yield
    finally:
        set_debug_mode(previous)


# =============================================================================
# Integer -> float promotion
# =============================================================================

def int2float() -> str:
    """Name of the float dtype used for tangents of integer primals."""
    return _INT2FLOAT


def int2float_dtype() -> np.dtype:
    """Numpy dtype used for tangents of integer primals."""
    return np.dtype(_INT2FLOAT)


def set_int2float(name: str):
    """
    Set the float dtype used for tangents of integer primals.

    Only projectors built after the call are affected.

    Args:
        name: One of 'float64', 'float32', 'float16'
    """
    global _INT2FLOAT
    if name not in INT2FLOAT_CHOICES:
        raise ValueError(f"Invalid int2float type: {name!r}, expected one of {INT2FLOAT_CHOICES}")
    _INT2FLOAT = name
    log.info("int2float set to %s", name)
