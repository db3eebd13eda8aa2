"""
Deferred tangents.

A `Thunk` wraps a zero-argument callable that computes a tangent only when
someone actually needs it. Adding a thunk to a zero, or multiplying it by
one, never runs the computation.

Thunks are not memoized: every `unthunk` calls the closure again. Cache the
forced value yourself if you need it more than once, and do not rely on
repeated forcing of a closure with side effects.

Usage:
    @thunk
    def dA():
        return expensive_gradient(A)

    total = ZeroTangent() * dA     # dA never runs
    value = unthunk(dA)            # runs now, and again on every unthunk
"""

from typing import Any, Callable, Union

import numpy as np

from .. import _array
from ..errors import MutateBeforeForcing
from ..tangent import AbstractTangent


class AbstractThunk(AbstractTangent):
    """
    Base class for deferred tangents.

    Reading a thunk (iteration, indexing, comparison, conversion to an
    array or number) forces it. Linear maps that do not need the value
    (conj, transpose, adjoint) return new thunks. Writing into a thunk is
    an error: unthunk it first.
    """

    def _evaluate(self):
        raise NotImplementedError

    # Forcing operations

    def __iter__(self):
        return iter(unthunk(self))

    def __len__(self):
        return len(unthunk(self))

    def __getitem__(self, key):
        return unthunk(self)[key]

    def __eq__(self, other):
        return unthunk(self) == unthunk(other)

    __hash__ = None

    def __bool__(self):
        return bool(unthunk(self))

    def __array__(self, dtype=None, copy=None):
        return np.asarray(unthunk(self), dtype=dtype)

    def __float__(self):
        return float(unthunk(self))

    def __int__(self):
        return int(unthunk(self))

    def __complex__(self):
        return complex(unthunk(self))

    @property
    def real(self):
        return unthunk(self).real

    @property
    def imag(self):
        return unthunk(self).imag

    def sum(self, *args, **kwargs):
        value = unthunk(self)
        if hasattr(value, 'sum'):
            return value.sum(*args, **kwargs)
        return np.sum(value, *args, **kwargs)

    def reshape(self, *shape):
        value = unthunk(self)
        if hasattr(value, 'reshape'):
            return value.reshape(*shape)
        return np.reshape(value, *shape)

    # Mutation is not allowed before forcing

    def __setitem__(self, key, value):
        raise MutateBeforeForcing()

    def __delitem__(self, key):
        raise MutateBeforeForcing()

    # Lazy linear maps

    def conj(self) -> 'Thunk':
        return Thunk(lambda: _array.conj(unthunk(self)))

    def transpose(self) -> 'Thunk':
        return Thunk(lambda: _array.transpose(unthunk(self)))

    @property
    def T(self) -> 'Thunk':
        return self.transpose()

    def adjoint(self) -> 'Thunk':
        return Thunk(lambda: _array.adjoint(unthunk(self)))


class Thunk(AbstractThunk):
    """
    A tangent computed on demand by calling `f()`.

    Args:
        f: Zero-argument callable returning the tangent

    Example:
        >>> t = Thunk(lambda: np.ones(3))
        >>> unthunk(t)
        array([1., 1., 1.])
    """

    def __init__(self, f: Callable[[], Any]):
        if not callable(f):
            raise TypeError(f"Thunk expects a zero-argument callable, got {type(f).__name__}")
        self.f = f

    def _evaluate(self):
        return self.f()

    def __repr__(self):
        return f"Thunk({self.f!r})"


class InplaceableThunk(AbstractThunk):
    """
    A deferred tangent that can also be accumulated in place.

    Behaves exactly like `val` everywhere, except in `add_into(dst, ithunk)`
    where `add_(dst)` is called instead when `dst` is a mutable buffer.

    Args:
        val: Thunk (or zero-argument callable) computing the tangent
        add_: Function `add_(dx)` adding the tangent into `dx` in place and
            returning `dx`

    Example:
        >>> ithunk = InplaceableThunk(
        ...     lambda: A @ dy,
        ...     lambda dx: np.add(dx, A @ dy, out=dx),
        ... )
    """

    def __init__(self, val: Union[AbstractThunk, Callable[[], Any]], add_: Callable[[Any], Any]):
        if not isinstance(val, AbstractThunk):
            val = Thunk(val)
        if not callable(add_):
            raise TypeError(f"add_ must be callable, got {type(add_).__name__}")
        self.val = val
        self.add_ = add_

    def _evaluate(self):
        return self.val

    def __repr__(self):
        return f"InplaceableThunk({self.val!r}, {self.add_!r})"


def thunk(f: Callable[[], Any]) -> Thunk:
    """Decorator turning a zero-argument function into a `Thunk`."""
    return Thunk(f)


def unthunk(x: Any) -> Any:
    """
    Force a deferred tangent.

    Non-thunks are returned unchanged. A thunk whose closure returns another
    thunk is forced recursively.
    """
    while isinstance(x, AbstractThunk):
        x = x._evaluate()
    return x
