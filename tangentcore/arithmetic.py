"""
Tangent arithmetic.

Every binary operation between tangents goes through `combine(op, a, b)`,
a single table over the precedence lattice

    NotImplementedTangent > NoTangent > ZeroTangent > thunk > structural > value

The higher-precedence kind of the two operands decides the result; two
plain values use their own operators. The operator overloads on
`AbstractTangent` and the functions below (`add`, `sub`, `mul`, `div`,
`dot`) are thin wrappers around it.

Example:
    >>> add(ZeroTangent(), np.ones(2))
    array([1., 1.])
    >>> mul(NoTangent(), ZeroTangent())
    ZeroTangent()
    >>> add(NoTangent(), ZeroTangent())
    NoTangent()
"""

from enum import IntEnum
from typing import Any

import numpy as np

from . import _array
from .errors import NotImplementedEvaluated
from .tangents.notimplemented import NotImplementedTangent
from .tangents.structural import (
    StructuralTangent,
    add_structural,
    add_to_primal,
    dot_structural,
)
from .tangents.thunks import AbstractThunk, unthunk
from .tangents.zero import NoTangent, ZeroTangent

OPS = ('add', 'sub', 'mul', 'div', 'dot')


class Kind(IntEnum):
    """Tangent kinds, lowest value wins."""
    NOT_IMPLEMENTED = 0
    NO_TANGENT = 1
    ZERO = 2
    THUNK = 3
    STRUCTURAL = 4
    VALUE = 5


_ZERO_LIKE = (Kind.NO_TANGENT, Kind.ZERO)


def kind_of(x: Any) -> Kind:
    """Classify any value into one of the tangent kinds."""
    if isinstance(x, NotImplementedTangent):
        return Kind.NOT_IMPLEMENTED
    if isinstance(x, NoTangent):
        return Kind.NO_TANGENT
    if isinstance(x, ZeroTangent):
        return Kind.ZERO
    if isinstance(x, AbstractThunk):
        return Kind.THUNK
    if isinstance(x, StructuralTangent):
        return Kind.STRUCTURAL
    return Kind.VALUE


def combine(op: str, a: Any, b: Any) -> Any:
    """
    Apply binary operation `op` to two tangents.

    Args:
        op: One of 'add', 'sub', 'mul', 'div', 'dot'
        a: Left operand, any tangent kind or plain value
        b: Right operand, any tangent kind or plain value

    Returns:
        The combined tangent

    Raises:
        NotImplementedEvaluated: if a not-implemented tangent is really used
        ZeroDivisionError: when dividing by a zero-like tangent
        TypeError: for combinations without meaning (tangent times tangent)
    """
    if op not in OPS:
        raise ValueError(f"Unknown tangent operation {op!r}, expected one of {OPS}")
    ka, kb = kind_of(a), kind_of(b)
    top = min(ka, kb)
    if top == Kind.NOT_IMPLEMENTED:
        return _combine_not_implemented(op, a, b, ka, kb)
    if top == Kind.NO_TANGENT:
        return _combine_no_tangent(op, a, b, ka, kb)
    if top == Kind.ZERO:
        return _combine_zero(op, a, b, ka, kb)
    if top == Kind.THUNK:
        return combine(op, unthunk(a), unthunk(b))
    if top == Kind.STRUCTURAL:
        return _combine_structural(op, a, b, ka, kb)
    return _combine_values(op, a, b)


def _combine_not_implemented(op, a, b, ka, kb):
    marker = a if ka == Kind.NOT_IMPLEMENTED else b
    other = b if ka == Kind.NOT_IMPLEMENTED else a
    kother = kind_of(other)
    if op == 'add':
        return marker
    if op in ('mul', 'dot'):
        if kother in _ZERO_LIKE:
            return other
        return marker
    if op == 'div' and kb == Kind.NOT_IMPLEMENTED and ka in _ZERO_LIKE:
        return a
    raise NotImplementedEvaluated.from_tangent(marker)


def _combine_no_tangent(op, a, b, ka, kb):
    if op == 'add':
        if ka in _ZERO_LIKE and kb in _ZERO_LIKE:
            return NoTangent()
        return b if ka == Kind.NO_TANGENT else a
    if op == 'sub':
        if ka in _ZERO_LIKE and kb in _ZERO_LIKE:
            return NoTangent()
        return neg(b) if ka == Kind.NO_TANGENT else a
    if op in ('mul', 'dot'):
        if ka == Kind.ZERO or kb == Kind.ZERO:
            return ZeroTangent()
        return NoTangent()
    # div
    if kb in _ZERO_LIKE:
        raise ZeroDivisionError(f"division of {a!r} by {b!r}")
    return NoTangent()


def _combine_zero(op, a, b, ka, kb):
    if op == 'add':
        return b if ka == Kind.ZERO else a
    if op == 'sub':
        if ka == Kind.ZERO:
            return a if kb == Kind.ZERO else neg(b)
        return a
    if op in ('mul', 'dot'):
        return ZeroTangent()
    # div
    if kb == Kind.ZERO:
        raise ZeroDivisionError(f"division of {a!r} by ZeroTangent()")
    return ZeroTangent()


def _combine_structural(op, a, b, ka, kb):
    if ka == Kind.STRUCTURAL and kb == Kind.STRUCTURAL:
        if op == 'add':
            return add_structural(a, b)
        if op == 'sub':
            return add_structural(a, neg(b))
        if op == 'dot':
            return dot_structural(a, b)
        raise TypeError(f"Cannot {op} two structural tangents")

    if ka == Kind.STRUCTURAL:
        tangent, value = a, b
        if op == 'add':
            return add_to_primal(value, tangent)
        if op in ('mul', 'div') and _array.is_scalar(value):
            return tangent.map(lambda v: combine(op, v, value))
    else:
        value, tangent = a, b
        if op == 'add':
            return add_to_primal(value, tangent)
        if op == 'sub':
            return add_to_primal(value, neg(tangent))
        if op == 'mul' and _array.is_scalar(value):
            return tangent.map(lambda v: combine('mul', value, v))
    raise TypeError(
        f"Cannot {op} {type(a).__name__} and {type(b).__name__}: "
        f"structural tangents only add to primals and scale by scalars"
    )


def _combine_values(op, a, b):
    if op == 'add':
        return a + b
    if op == 'sub':
        return a - b
    if op == 'mul':
        return a * b
    if op == 'div':
        return a / b
    return _array.vdot(a, b)


# =============================================================================
# Functional API
# =============================================================================

def add(a: Any, b: Any) -> Any:
    return combine('add', a, b)


def sub(a: Any, b: Any) -> Any:
    return combine('sub', a, b)


def mul(a: Any, b: Any) -> Any:
    return combine('mul', a, b)


def div(a: Any, b: Any) -> Any:
    return combine('div', a, b)


def dot(a: Any, b: Any) -> Any:
    """Inner product, conjugating `a`."""
    return combine('dot', a, b)


def neg(x: Any) -> Any:
    """Additive inverse; zeros and not-implemented tangents are returned as-is."""
    kind = kind_of(x)
    if kind in (Kind.NOT_IMPLEMENTED, Kind.NO_TANGENT, Kind.ZERO):
        return x
    if kind == Kind.THUNK:
        return neg(unthunk(x))
    if kind == Kind.STRUCTURAL:
        return x.map(neg)
    return -x


def muladd(x: Any, y: Any, z: Any) -> Any:
    """
    Fused `x * y + z`.

    A ZeroTangent factor returns `z` without forming the product, and a
    ZeroTangent addend returns the bare product.
    """
    if isinstance(x, ZeroTangent) or isinstance(y, ZeroTangent):
        return z
    if isinstance(z, ZeroTangent):
        return mul(x, y)
    return add(mul(x, y), z)


def is_zero(x: Any) -> bool:
    """
    Whether `x` is a zero tangent.

    Zero-likes are zero, thunks are forced, structural tangents are zero
    when every field is, and numbers and arrays are compared numerically.
    """
    kind = kind_of(x)
    if kind in _ZERO_LIKE:
        return True
    if kind == Kind.NOT_IMPLEMENTED:
        return False
    if kind == Kind.THUNK:
        return is_zero(unthunk(x))
    if kind == Kind.STRUCTURAL:
        return x.is_zero()
    if _array.is_array_like(x):
        return not np.any(_array.to_numpy(x))
    if _array.is_scalar(x):
        return bool(x == 0)
    return False
