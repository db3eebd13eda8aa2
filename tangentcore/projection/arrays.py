"""Projectors for numbers and dense numpy arrays."""

import numbers
from typing import Any, Sequence, Tuple

import numpy as np

from .. import _array
from ..arithmetic import Kind, kind_of
from ..config import int2float_dtype
from ..errors import projection_mismatch
from ..tangents.zero import NoTangent
from .base import Projector, ZeroProjector, collapse, projector


def tangent_dtype(dtype: np.dtype) -> np.dtype:
    """
    Element dtype of the tangent of an array with elements of `dtype`.

    Integers map to the configured int2float dtype; floats and complex
    numbers are their own tangent.
    """
    dtype = np.dtype(dtype)
    if dtype.kind in 'iu':
        return int2float_dtype()
    return dtype


def check_reshape(shape: Tuple[int, ...], dx_shape: Tuple[int, ...]):
    """
    Raise unless `dx_shape` differs from `shape` only by trailing axes of length 1.

    `(4,)` accepts `(4, 1)` and `(4, 1)` accepts `(4,)`, but `(4,)` rejects
    `(1, 4)`.
    """
    ndim = max(len(shape), len(dx_shape))
    for d in range(ndim):
        expected = shape[d] if d < len(shape) else 1
        actual = dx_shape[d] if d < len(dx_shape) else 1
        if expected != actual:
            raise projection_mismatch(shape, dx_shape)


def narrow(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    """Cast `values` to `dtype`, keeping only the real part for real dtypes."""
    if dtype.kind != 'c' and np.iscomplexobj(values):
        values = values.real
    return np.asarray(values).astype(dtype, copy=False)


def _dense(dx: Any) -> np.ndarray:
    if kind_of(dx) == Kind.STRUCTURAL:
        raise TypeError(f"Cannot project a {type(dx).__name__} onto an array")
    if isinstance(dx, (list, tuple)):
        return np.asarray(dx)
    return _array.to_numpy(dx)


class NumberProjector(Projector):
    """
    Projector for scalar primals.

    Args:
        dtype: Tangent dtype (already promoted for integer primals)
    """

    def __init__(self, dtype: np.dtype):
        self.dtype = np.dtype(dtype)

    def project(self, dx: Any) -> Any:
        if _array.is_scalar(dx) and not isinstance(dx, np.ndarray) and not _array.is_tensor(dx):
            value = dx
        else:
            arr = _dense(dx)
            if arr.size != 1:
                raise projection_mismatch((), arr.shape)
            value = arr.reshape(())[()]
        if self.dtype.kind != 'c' and np.iscomplexobj(value):
            value = np.real(value)
        return self.dtype.type(value)

    def __repr__(self):
        return f"NumberProjector({self.dtype})"


class ArrayProjector(Projector):
    """
    Projector for dense numeric arrays.

    Candidates may differ from the primal only by axes of length 1, and are
    cast to the element dtype of the primal's tangent.

    Args:
        dtype: Tangent element dtype
        shape: Primal shape

    Example:
        >>> p = projector(np.zeros(4))
        >>> p(np.ones((4, 1))).shape
        (4,)
        >>> p(np.ones((1, 4)))
        Traceback (most recent call last):
        DimensionMismatch: variable with shape(x) == (4,) cannot have a gradient with shape(dx) == (1, 4)
    """

    def __init__(self, dtype: np.dtype, shape: Sequence[int]):
        self.dtype = np.dtype(dtype)
        self.shape = tuple(shape)

    def project(self, dx: Any) -> np.ndarray:
        arr = _dense(dx)
        if arr.shape != self.shape:
            check_reshape(self.shape, arr.shape)
            arr = arr.reshape(self.shape)
        return narrow(arr, self.dtype)

    def __repr__(self):
        return f"ArrayProjector({self.dtype}, {self.shape})"


class ObjectArrayProjector(Projector):
    """Projector for object arrays: one projector per element."""

    def __init__(self, elements: Sequence[Projector], shape: Sequence[int]):
        self.elements = list(elements)
        self.shape = tuple(shape)

    def project(self, dx: Any) -> np.ndarray:
        if isinstance(dx, (list, tuple)) and len(self.shape) == 1:
            # np.asarray would stack equal-length entries into a numeric array
            arr = np.empty(len(dx), dtype=object)
            for i, d in enumerate(dx):
                arr[i] = d
        else:
            arr = _dense(dx)
        if arr.shape != self.shape:
            check_reshape(self.shape, arr.shape)
            arr = arr.reshape(self.shape)
        out = np.empty(self.shape, dtype=object)
        for i, (p, d) in enumerate(zip(self.elements, arr.flat)):
            # A full integer index stores the tangent as a single object
            out[np.unravel_index(i, self.shape)] = p(d)
        return out

    def __repr__(self):
        return f"ObjectArrayProjector({len(self.elements)} elements, {self.shape})"


@projector.register(numbers.Number)
@projector.register(np.generic)
def _(x) -> Projector:
    if isinstance(x, np.generic):
        if x.dtype.kind not in 'iufc':
            return ZeroProjector(NoTangent())
        return NumberProjector(tangent_dtype(x.dtype))
    if isinstance(x, numbers.Complex) and not isinstance(x, numbers.Real):
        return NumberProjector(np.complex128)
    if isinstance(x, numbers.Integral):
        return NumberProjector(int2float_dtype())
    return NumberProjector(np.float64)


@projector.register(bool)
@projector.register(np.bool_)
def _(x) -> Projector:
    return ZeroProjector(NoTangent())


@projector.register(np.ndarray)
def _(x: np.ndarray) -> Projector:
    if x.dtype == object:
        elements = [projector(e) for e in x.flat]
        collapsed = collapse(elements)
        if collapsed is not None:
            return collapsed
        return ObjectArrayProjector(elements, x.shape)
    if x.dtype.kind not in 'iufc':
        return ZeroProjector(NoTangent())
    return ArrayProjector(tangent_dtype(x.dtype), x.shape)
