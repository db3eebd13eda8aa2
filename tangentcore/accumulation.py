"""
In-place accumulation.

`add_into(x, y)` returns `x + y`, reusing the storage of `x` when it is safe
to do so. Callers must always use the returned value:

    acc = add_into(acc, dx)

Whether `x` may be mutated is decided by `is_inplaceable_destination`, a
`functools.singledispatch` function that other libraries can extend for
their own buffer types:

    @is_inplaceable_destination.register(MyBuffer)
    def _(x):
        return not x.frozen

The caller must hold exclusive write access to `x` for the duration of the
call. Nothing here takes a lock.
"""

import logging
from functools import singledispatch
from typing import Any

import numpy as np
import scipy.sparse as sp
import torch

from . import _array
from .arithmetic import Kind, add, kind_of
from .config import debug_mode
from .errors import BadInplaceError, projection_mismatch
from .linalg import (
    Adjoint,
    Diagonal,
    Hermitian,
    LowerTriangular,
    StructuredMatrix,
    Symmetric,
    Transpose,
    UpperTriangular,
)
from .tangents.structural import MutableTangent, StructuralTangent
from .tangents.thunks import AbstractThunk, InplaceableThunk, unthunk

log = logging.getLogger(__name__)

_SPARSE_INPLACE_TYPES = (sp.csr_matrix, sp.csc_matrix, sp.csr_array, sp.csc_array)


# =============================================================================
# Destination predicate
# =============================================================================

@singledispatch
def is_inplaceable_destination(x: Any) -> bool:
    """
    Whether `x` is an owned, writeable buffer that `add_into` may mutate.

    Defaults to False: anything not registered takes the out-of-place path.
    """
    return False


@is_inplaceable_destination.register(np.ndarray)
def _(x: np.ndarray) -> bool:
    # Subclasses (np.matrix, masked arrays) may not support += the same way
    return type(x) is np.ndarray and x.flags.writeable and x.dtype.kind in 'fc'


@is_inplaceable_destination.register(torch.Tensor)
def _(x: torch.Tensor) -> bool:
    if x.requires_grad:
        return False
    return (x.is_floating_point() or x.is_complex()) and x.is_contiguous()


def _sparse_destination(x) -> bool:
    return x.data.flags.writeable and x.dtype.kind in 'fc'


for _sparse_type in _SPARSE_INPLACE_TYPES:
    is_inplaceable_destination.register(_sparse_type)(_sparse_destination)


@is_inplaceable_destination.register(Diagonal)
@is_inplaceable_destination.register(UpperTriangular)
@is_inplaceable_destination.register(LowerTriangular)
@is_inplaceable_destination.register(Adjoint)
@is_inplaceable_destination.register(Transpose)
def _(x: StructuredMatrix) -> bool:
    return is_inplaceable_destination(x.parent)


@is_inplaceable_destination.register(Symmetric)
@is_inplaceable_destination.register(Hermitian)
def _(x: StructuredMatrix) -> bool:
    # Storage covers one triangle only, an in-place sum would drop the other
    return False


@is_inplaceable_destination.register(MutableTangent)
def _(x: MutableTangent) -> bool:
    return True


# =============================================================================
# add_into
# =============================================================================

def add_into(x: Any, y: Any) -> Any:
    """
    Accumulate `y` into `x`, mutating `x` when it is safe.

    Args:
        x: Accumulator; mutated only if `is_inplaceable_destination(x)`
        y: Tangent to add, any kind

    Returns:
        `x + y`, which is `x` itself when the in-place path was taken

    Raises:
        BadInplaceError: in debug mode, if an InplaceableThunk's `add_` did
            not return its argument
        DimensionMismatch: if dense shapes differ
    """
    if isinstance(y, InplaceableThunk):
        if is_inplaceable_destination(x):
            if debug_mode():
                return _debug_add(x, y)
            return y.add_(x)
        log.debug("add_into: %s is not an in-place destination, forcing thunk", type(x).__name__)
        return add(x, unthunk(y))

    if isinstance(y, AbstractThunk):
        y = unthunk(y)

    kind = kind_of(y)
    if kind in (Kind.NO_TANGENT, Kind.ZERO):
        return x
    if kind == Kind.NOT_IMPLEMENTED:
        return add(x, y)

    if is_inplaceable_destination(x):
        return _accumulate(x, y)

    log.debug("add_into: out-of-place sum for %s", type(x).__name__)
    return add(x, y)


def _debug_add(x, ithunk: InplaceableThunk):
    returned = ithunk.add_(x)
    if returned is not x:
        raise BadInplaceError(ithunk, x, returned)
    return returned


@singledispatch
def _accumulate(x, y):
    return add(x, y)


@_accumulate.register(np.ndarray)
def _(x: np.ndarray, y):
    if kind_of(y) != Kind.VALUE:
        return add(x, y)
    if _array.is_scalar(y):
        other = y
    else:
        other = _array.to_numpy(y)
        if other.shape != x.shape:
            raise projection_mismatch(x.shape, other.shape)
    if not np.can_cast(np.result_type(x, other), x.dtype, casting='same_kind'):
        log.debug("add_into: %s does not fit into %s, out-of-place", np.result_type(other), x.dtype)
        return x + other
    if debug_mode():
        result = x + other
        x.fill(np.nan)
        return result
    x += other
    return x


@_accumulate.register(torch.Tensor)
def _(x: torch.Tensor, y):
    if kind_of(y) != Kind.VALUE:
        return add(x, y)
    if _array.is_scalar(y) and not isinstance(y, torch.Tensor):
        other = y
    else:
        other = y if isinstance(y, torch.Tensor) else torch.as_tensor(_array.to_numpy(y), device=x.device)
        if other.ndim > 0 and tuple(other.shape) != tuple(x.shape):
            raise projection_mismatch(tuple(x.shape), tuple(other.shape))
        if other.is_complex() and not x.is_complex():
            log.debug("add_into: complex update into real tensor, out-of-place")
            return x + other
    if debug_mode():
        result = x + other
        x.fill_(float('nan'))
        return result
    x.add_(other)
    return x


def _same_pattern(x, y) -> bool:
    if not sp.issparse(y) or y.format != x.format or y.shape != x.shape:
        return False
    if not (x.has_canonical_format and y.has_canonical_format):
        return False
    return np.array_equal(x.indptr, y.indptr) and np.array_equal(x.indices, y.indices)


def _accumulate_sparse(x, y):
    if _same_pattern(x, y) and np.can_cast(y.dtype, x.dtype, casting='same_kind'):
        x.data += y.data
        return x
    log.debug("add_into: sparse patterns differ, out-of-place")
    return add(x, y)


for _sparse_type in _SPARSE_INPLACE_TYPES:
    _accumulate.register(_sparse_type)(_accumulate_sparse)


@_accumulate.register(StructuredMatrix)
def _(x: StructuredMatrix, y):
    if not x._same_structure(y):
        return add(x, y)
    fields = {}
    inplace = True
    for name in x.__tangent_fields__:
        dst = getattr(x, name)
        if isinstance(dst, np.ndarray):
            fields[name] = add_into(dst, getattr(y, name))
            inplace = inplace and fields[name] is dst
        else:
            fields[name] = dst
    return x if inplace else type(x)(**fields)


@_accumulate.register(MutableTangent)
def _(x: MutableTangent, y):
    if not isinstance(y, StructuralTangent):
        return add(x, y)
    if y.primal_type is not None and y.primal_type is not x.primal_type:
        raise TypeError(
            f"Cannot accumulate a tangent of {y.primal_type.__qualname__} "
            f"into a MutableTangent of {x.primal_type.__qualname__}"
        )
    for name, value in y.items():
        x[name] = add_into(x[name], value)
    return x
