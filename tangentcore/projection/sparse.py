"""
Projector for scipy.sparse primals.

The tangent of a sparse matrix lives on its stored pattern: entries that are
not stored are structural zeros, and a gradient must not fill them in. The
projector captures the pattern once and reads only those entries from every
candidate, dense or sparse.
"""

from typing import Any

import numpy as np
import scipy.sparse as sp

from .. import _array
from ..arithmetic import Kind, kind_of
from ..errors import projection_mismatch
from ..tangents.zero import NoTangent
from .arrays import narrow, tangent_dtype
from .base import Projector, ZeroProjector, projector


class SparseProjector(Projector):
    """
    Keeps the stored entries of a sparse primal.

    The result has the primal's format ('csr', 'csc', 'coo', ...) and
    flavour (`*_array` or `*_matrix`).

    Args:
        x: Sparse primal

    Example:
        >>> x = sp.csr_array(np.eye(3))
        >>> p = projector(x)
        >>> p(np.ones((3, 3))).toarray()
        array([[1., 0., 0.],
               [0., 1., 0.],
               [0., 0., 1.]])
    """

    def __init__(self, x):
        pattern = x.tocsc(copy=True)
        pattern.sum_duplicates()
        coo = pattern.tocoo()
        self.rows = np.asarray(coo.row, dtype=np.intp)
        self.cols = np.asarray(coo.col, dtype=np.intp)
        self.shape = tuple(x.shape)
        self.format = x.format
        self.is_array = not isinstance(x, sp.spmatrix)
        self.dtype = tangent_dtype(x.dtype)

    @property
    def nnz(self) -> int:
        return len(self.rows)

    def _gather(self, dx: Any) -> np.ndarray:
        if sp.issparse(dx):
            if self.nnz == 0:
                return np.zeros(0, dtype=dx.dtype)
            # spmatrix fancy indexing gives a (1, nnz) np.matrix
            return np.asarray(sp.csr_matrix(dx)[self.rows, self.cols]).reshape(-1)
        m = np.asarray(dx) if isinstance(dx, (list, tuple)) else _array.to_numpy(dx)
        return m[self.rows, self.cols]

    def project(self, dx: Any):
        if kind_of(dx) == Kind.STRUCTURAL:
            raise TypeError(f"Cannot project a {type(dx).__name__} onto a sparse matrix")
        shape = _array.shape_of(dx)
        if shape != self.shape:
            raise projection_mismatch(self.shape, shape)
        values = narrow(self._gather(dx), self.dtype)
        container = sp.csc_array if self.is_array else sp.csc_matrix
        out = container((values, (self.rows, self.cols)), shape=self.shape)
        return out.asformat(self.format)

    def __repr__(self):
        return f"SparseProjector({self.format}, {self.shape}, nnz={self.nnz})"


@projector.register(sp.spmatrix)
@projector.register(sp.sparray)
def _(x) -> Projector:
    if x.dtype.kind not in 'iufc':
        return ZeroProjector(NoTangent())
    return SparseProjector(x)
