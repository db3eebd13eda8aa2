"""Projector for torch tensors."""

from typing import Any, Sequence

import numpy as np
import torch

from .. import _array
from ..arithmetic import Kind, kind_of
from ..config import int2float
from ..tangents.zero import NoTangent
from .arrays import check_reshape
from .base import Projector, ZeroProjector, projector

_TORCH_FLOATS = {
    'float64': torch.float64,
    'float32': torch.float32,
    'float16': torch.float16,
}


def tangent_torch_dtype(dtype: torch.dtype) -> torch.dtype:
    """Integer dtypes map to the configured int2float dtype."""
    if dtype.is_floating_point or dtype.is_complex:
        return dtype
    return _TORCH_FLOATS[int2float()]


class TensorProjector(Projector):
    """
    Projector for dense tensors.

    Same rules as for numpy arrays: only axes of length 1 may be added or
    removed, and elements are cast to the primal's tangent dtype. The result
    lives on the primal's device. Tensor candidates are not detached, so
    autograd history is kept.

    Args:
        dtype: Tangent dtype
        shape: Primal shape
        device: Primal device
    """

    def __init__(self, dtype: torch.dtype, shape: Sequence[int], device: torch.device):
        self.dtype = dtype
        self.shape = tuple(shape)
        self.device = device

    def project(self, dx: Any) -> torch.Tensor:
        if kind_of(dx) == Kind.STRUCTURAL:
            raise TypeError(f"Cannot project a {type(dx).__name__} onto a tensor")
        if isinstance(dx, torch.Tensor):
            t = dx
        else:
            arr = np.asarray(dx) if isinstance(dx, (list, tuple)) else _array.to_numpy(dx)
            t = torch.as_tensor(arr)
        if tuple(t.shape) != self.shape:
            check_reshape(self.shape, tuple(t.shape))
            t = t.reshape(self.shape)
        if t.is_complex() and not self.dtype.is_complex:
            t = t.real
        return t.to(dtype=self.dtype, device=self.device)

    def __repr__(self):
        return f"TensorProjector({self.dtype}, {self.shape}, device={self.device})"


@projector.register(torch.Tensor)
def _(x: torch.Tensor) -> Projector:
    if x.dtype == torch.bool:
        return ZeroProjector(NoTangent())
    return TensorProjector(tangent_torch_dtype(x.dtype), tuple(x.shape), x.device)
