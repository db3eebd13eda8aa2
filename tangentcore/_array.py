"""
Array helpers
=============

Backend-agnostic helpers for the concrete tangent types tangentcore meets:
numpy arrays and scalars, torch tensors, scipy sparse matrices and the
structured matrices of `tangentcore.linalg`.

    xp-style dispatch keeps the rest of the library free of isinstance
    ladders:
        y = to_numpy(dx)        # dense ndarray whatever dx was
        c = conj(dx)            # same container type as dx
"""

import numbers
from typing import Any, Tuple

import numpy as np
import scipy.sparse as sp
import torch

from .linalg import StructuredMatrix


def is_tensor(x: Any) -> bool:
    return isinstance(x, torch.Tensor)


def is_sparse(x: Any) -> bool:
    return sp.issparse(x)


def is_structured(x: Any) -> bool:
    return isinstance(x, StructuredMatrix)


def is_array_like(x: Any) -> bool:
    """Anything with a shape that projectors and accumulators understand."""
    return isinstance(x, (np.ndarray, torch.Tensor, StructuredMatrix)) or sp.issparse(x)


def is_scalar(x: Any) -> bool:
    """Python/numpy numbers and zero-dimensional arrays or tensors."""
    if isinstance(x, (numbers.Number, np.generic)):
        return True
    if isinstance(x, (np.ndarray, torch.Tensor)):
        return x.ndim == 0
    return False


def shape_of(x: Any) -> Tuple[int, ...]:
    if isinstance(x, torch.Tensor):
        return tuple(x.shape)
    return tuple(np.shape(x))


def to_numpy(x: Any) -> np.ndarray:
    """Convert any supported array to a dense numpy array."""
    if isinstance(x, np.ndarray):
        return x
    if isinstance(x, StructuredMatrix):
        return x.to_dense()
    if sp.issparse(x):
        return x.toarray()
    if isinstance(x, torch.Tensor):
        return x.detach().cpu().numpy()
    return np.asarray(x)


def conj(x: Any) -> Any:
    """Complex conjugate, keeping the container type."""
    if isinstance(x, torch.Tensor):
        return x.conj()
    if isinstance(x, StructuredMatrix) or sp.issparse(x):
        return x.conj()
    if hasattr(x, 'conj') and not isinstance(x, (np.ndarray, np.generic, numbers.Number)):
        return x.conj()
    return np.conj(x)


def transpose(x: Any) -> Any:
    """Reverse the axes of an array (identity for scalars)."""
    if is_scalar(x):
        return x
    if isinstance(x, torch.Tensor):
        return x.permute(*reversed(range(x.ndim)))
    return x.T


def adjoint(x: Any) -> Any:
    return conj(transpose(x))


def values_equal(a: Any, b: Any) -> bool:
    """Exact equality as a single bool, for arrays as well as scalars."""
    if a is b:
        return True
    if isinstance(a, torch.Tensor) or isinstance(b, torch.Tensor):
        if not (isinstance(a, torch.Tensor) and isinstance(b, torch.Tensor)):
            return False
        return a.shape == b.shape and bool(torch.equal(a, b))
    if sp.issparse(a) or sp.issparse(b):
        if shape_of(a) != shape_of(b):
            return False
        return bool(np.array_equal(to_numpy(a), to_numpy(b)))
    if is_array_like(a) or is_array_like(b):
        return bool(np.array_equal(to_numpy(a), to_numpy(b)))
    result = a == b
    if isinstance(result, np.ndarray):
        return bool(result.all())
    return bool(result)


def vdot(a: Any, b: Any) -> Any:
    """Inner product conjugating the first argument."""
    if isinstance(a, torch.Tensor) or isinstance(b, torch.Tensor):
        a_t = a if isinstance(a, torch.Tensor) else torch.as_tensor(to_numpy(a))
        b_t = b if isinstance(b, torch.Tensor) else torch.as_tensor(to_numpy(b))
        return torch.sum(a_t.conj() * b_t)
    if sp.issparse(a) and sp.issparse(b):
        return a.conj().multiply(b).sum()
    if is_scalar(a) and is_scalar(b):
        return np.conj(a) * b
    return np.vdot(to_numpy(a), to_numpy(b))
