"""
Projectors for structured matrices.

Each projector keeps only the entries its primal can address: a Diagonal
drops off-diagonal entries, a Symmetric averages the candidate with its
transpose, a triangular matrix zeroes the other triangle, and so on.
Candidates may be dense arrays, other structured matrices, sparse matrices
or tensors; they are densified first unless the structure already matches.
Structural tangents of the primal type (`Tangent(Diagonal, diag=...)`) are
projected field by field.

Structured matrices of booleans have no tangent space and get a
ZeroProjector.
"""

from typing import Any, Dict, Tuple

import numpy as np

from .. import _array
from ..arithmetic import Kind, kind_of
from ..linalg import (
    Adjoint,
    Bidiagonal,
    Diagonal,
    Hermitian,
    LowerTriangular,
    StructuredMatrix,
    SymTridiagonal,
    Symmetric,
    Transpose,
    Tridiagonal,
    UnitLowerTriangular,
    UnitUpperTriangular,
    UpperTriangular,
)
from ..errors import projection_mismatch
from ..tangents.structural import StructuralTangent
from ..tangents.zero import NoTangent
from .arrays import ArrayProjector, tangent_dtype
from .base import Projector, ZeroProjector, projector


def _square(dx: Any, n: int) -> np.ndarray:
    """Dense (n, n) view of a candidate, or DimensionMismatch."""
    m = np.asarray(dx) if isinstance(dx, (list, tuple)) else _array.to_numpy(dx)
    if m.shape != (n, n):
        raise projection_mismatch((n, n), m.shape)
    return m


class StructuredProjector(Projector):
    """
    Base class for projectors onto structured matrices.

    Concrete candidates go to `project_dense`. Structural tangents must
    belong to `primal_type`; each array field is projected through the
    matching entry of `fields` (absent and zero fields become zeros of the
    primal's storage shape), the result is rebuilt with `_rebuild` and then
    projected like any other candidate.
    """

    primal_type: type = StructuredMatrix

    @property
    def fields(self) -> Dict[str, ArrayProjector]:
        raise NotImplementedError

    def _rebuild(self, values: Dict[str, np.ndarray]) -> Any:
        raise NotImplementedError

    def project_dense(self, dx: Any) -> Any:
        raise NotImplementedError

    def _project_fields(self, dx: StructuralTangent) -> Any:
        P = dx.primal_type
        if P is not None and P is not self.primal_type:
            raise TypeError(
                f"Cannot project a tangent of {P.__qualname__} onto {self.primal_type.__qualname__}"
            )
        values = {}
        for name, p in self.fields.items():
            value = dx[name] if name in dx.keys() else None
            kind = kind_of(value) if value is not None else Kind.ZERO
            if kind == Kind.NOT_IMPLEMENTED:
                return value
            if kind in (Kind.NO_TANGENT, Kind.ZERO):
                value = np.zeros(p.shape, dtype=p.dtype)
            values[name] = p(value)
        return self._rebuild(values)

    def project(self, dx: Any) -> Any:
        if kind_of(dx) == Kind.STRUCTURAL:
            dx = self._project_fields(dx)
            if kind_of(dx) == Kind.NOT_IMPLEMENTED:
                return dx
        return self.project_dense(dx)


class DiagonalProjector(StructuredProjector):
    """Keeps the main diagonal of the candidate."""

    primal_type = Diagonal

    def __init__(self, diag: ArrayProjector):
        self.diag = diag

    @property
    def n(self) -> int:
        return self.diag.shape[0]

    @property
    def fields(self):
        return {'diag': self.diag}

    def _rebuild(self, values):
        return Diagonal(values['diag'])

    def project_dense(self, dx: Any) -> Diagonal:
        if isinstance(dx, Diagonal):
            return Diagonal(self.diag(dx.diag))
        m = _square(dx, self.n)
        return Diagonal(self.diag(np.diagonal(m).copy()))

    def __repr__(self):
        return f"DiagonalProjector({self.diag!r})"


class SymmetricProjector(StructuredProjector):
    """
    Symmetrizes the candidate: `(dx + dx.T) / 2`, or `(dx + dx^H) / 2` when
    hermitian. Already symmetric candidates are kept as they are, and a
    Diagonal candidate stays Diagonal.

    A structural tangent's `data` field is read through the primal's
    triangle, the same way the primal reads its storage.

    Args:
        parent: Projector for the dense (n, n) storage
        uplo: Triangle of the primal's storage, 'U' or 'L'
        hermitian: Whether the primal is Hermitian
    """

    def __init__(self, parent: ArrayProjector, uplo: str = 'U', hermitian: bool = False):
        self.parent = parent
        self.uplo = uplo
        self.hermitian = hermitian

    @property
    def wrapper(self):
        return Hermitian if self.hermitian else Symmetric

    @property
    def primal_type(self):
        return self.wrapper

    @property
    def fields(self):
        return {'data': self.parent}

    def _rebuild(self, values):
        return self.wrapper(values['data'], self.uplo)

    def project_dense(self, dx: Any):
        n = self.parent.shape[0]
        if isinstance(dx, Diagonal):
            diag = ArrayProjector(self.parent.dtype, (n,))
            d = dx.diag.real if self.hermitian and np.iscomplexobj(dx.diag) else dx.diag
            return Diagonal(diag(d))
        m = _square(dx, n)
        other = m.conj().T if self.hermitian else m.T
        if not np.array_equal(m, other):
            m = (m + other) / 2
        return self.wrapper(self.parent(m), self.uplo)

    def __repr__(self):
        return f"{self.wrapper.__name__}Projector({self.parent!r}, uplo={self.uplo!r})"


_TRIANGULAR_TYPES = {
    (True, False): UpperTriangular,
    (False, False): LowerTriangular,
    (True, True): UnitUpperTriangular,
    (False, True): UnitLowerTriangular,
}


class TriangularProjector(StructuredProjector):
    """
    Keeps one triangle of the candidate.

    The tangent of a unit triangular matrix has a zero diagonal, so it is
    returned as a plain triangular matrix with the diagonal cleared.
    """

    def __init__(self, parent: ArrayProjector, upper: bool, unit: bool = False):
        self.parent = parent
        self.upper = upper
        self.unit = unit

    @property
    def primal_type(self):
        return _TRIANGULAR_TYPES[(self.upper, self.unit)]

    @property
    def fields(self):
        return {'data': self.parent}

    def _rebuild(self, values):
        # project_dense keeps the addressable triangle of the storage
        return values['data']

    def project_dense(self, dx: Any):
        m = _square(dx, self.parent.shape[0])
        k = 1 if self.unit else 0
        if self.upper:
            return UpperTriangular(self.parent(np.triu(m, k)))
        return LowerTriangular(self.parent(np.tril(m, -k)))

    def __repr__(self):
        return f"TriangularProjector({self.primal_type.__name__}, {self.parent!r})"


class BidiagonalProjector(StructuredProjector):
    """Keeps the main diagonal and the off-diagonal selected by `uplo`."""

    primal_type = Bidiagonal

    def __init__(self, dv: ArrayProjector, ev: ArrayProjector, uplo: str):
        self.dv = dv
        self.ev = ev
        self.uplo = uplo

    @property
    def fields(self):
        return {'dv': self.dv, 'ev': self.ev}

    def _rebuild(self, values):
        return Bidiagonal(values['dv'], values['ev'], self.uplo)

    def project_dense(self, dx: Any) -> Bidiagonal:
        if isinstance(dx, Bidiagonal) and dx.uplo == self.uplo:
            return Bidiagonal(self.dv(dx.dv), self.ev(dx.ev), self.uplo)
        m = _square(dx, self.dv.shape[0])
        k = 1 if self.uplo == 'U' else -1
        return Bidiagonal(self.dv(np.diagonal(m).copy()), self.ev(np.diagonal(m, k).copy()), self.uplo)


class SymTridiagonalProjector(StructuredProjector):
    """Keeps the tridiagonal band, averaging the two off-diagonals."""

    primal_type = SymTridiagonal

    def __init__(self, dv: ArrayProjector, ev: ArrayProjector):
        self.dv = dv
        self.ev = ev

    @property
    def fields(self):
        return {'dv': self.dv, 'ev': self.ev}

    def _rebuild(self, values):
        return SymTridiagonal(values['dv'], values['ev'])

    def project_dense(self, dx: Any) -> SymTridiagonal:
        if isinstance(dx, SymTridiagonal):
            return SymTridiagonal(self.dv(dx.dv), self.ev(dx.ev))
        m = _square(dx, self.dv.shape[0])
        upper, lower = np.diagonal(m, 1), np.diagonal(m, -1)
        ev = upper.copy() if np.array_equal(upper, lower) else (upper + lower) / 2
        return SymTridiagonal(self.dv(np.diagonal(m).copy()), self.ev(ev))


class TridiagonalProjector(StructuredProjector):
    """Keeps the tridiagonal band."""

    primal_type = Tridiagonal

    def __init__(self, dl: ArrayProjector, d: ArrayProjector, du: ArrayProjector):
        self.dl = dl
        self.d = d
        self.du = du

    @property
    def fields(self):
        return {'dl': self.dl, 'd': self.d, 'du': self.du}

    def _rebuild(self, values):
        return Tridiagonal(values['dl'], values['d'], values['du'])

    def project_dense(self, dx: Any) -> Tridiagonal:
        if isinstance(dx, Tridiagonal):
            return Tridiagonal(self.dl(dx.dl), self.d(dx.d), self.du(dx.du))
        m = _square(dx, self.d.shape[0])
        t = Tridiagonal.from_dense(m)
        return Tridiagonal(self.dl(t.dl), self.d(t.d), self.du(t.du))


class _LazyTransposeProjector(StructuredProjector):
    """Shared rules for Adjoint and Transpose primals."""

    wrapper = None

    def __init__(self, parent: ArrayProjector, shape: Tuple[int, ...]):
        self.parent = parent
        self.shape = tuple(shape)

    @property
    def primal_type(self):
        return self.wrapper

    @property
    def fields(self):
        return {'parent': self.parent}

    def _rebuild(self, values):
        return self.wrapper(values['parent'])

    def _unwrap(self, m: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def project_dense(self, dx: Any):
        if isinstance(dx, self.wrapper):
            return self.wrapper(self.parent(dx.parent))
        m = np.asarray(dx) if isinstance(dx, (list, tuple)) else _array.to_numpy(dx)
        if m.shape != self.shape:
            raise projection_mismatch(self.shape, m.shape)
        parent = self._unwrap(m)
        if len(self.parent.shape) == 1:
            parent = parent.reshape(-1)
        return self.wrapper(self.parent(parent))

    def __repr__(self):
        return f"{type(self).__name__}({self.parent!r})"


class AdjointProjector(_LazyTransposeProjector):
    """Projector for `Adjoint(v)`; row vector candidates have shape (1, n)."""

    wrapper = Adjoint

    def _unwrap(self, m):
        return m.conj().T


class TransposeProjector(_LazyTransposeProjector):
    """Projector for `Transpose(v)`; row vector candidates have shape (1, n)."""

    wrapper = Transpose

    def _unwrap(self, m):
        return m.T


def _array_projector(a: np.ndarray) -> ArrayProjector:
    return ArrayProjector(tangent_dtype(a.dtype), a.shape)


def _is_discrete(x: StructuredMatrix) -> bool:
    return np.dtype(x.dtype).kind not in 'iufc'


@projector.register(Diagonal)
def _(x: Diagonal) -> Projector:
    if _is_discrete(x):
        return ZeroProjector(NoTangent())
    return DiagonalProjector(_array_projector(x.diag))


@projector.register(Symmetric)
def _(x: Symmetric) -> Projector:
    if _is_discrete(x):
        return ZeroProjector(NoTangent())
    return SymmetricProjector(_array_projector(x.data), x.uplo)


@projector.register(Hermitian)
def _(x: Hermitian) -> Projector:
    if _is_discrete(x):
        return ZeroProjector(NoTangent())
    return SymmetricProjector(_array_projector(x.data), x.uplo, hermitian=True)


@projector.register(UpperTriangular)
@projector.register(LowerTriangular)
@projector.register(UnitUpperTriangular)
@projector.register(UnitLowerTriangular)
def _(x) -> Projector:
    if _is_discrete(x):
        return ZeroProjector(NoTangent())
    upper = isinstance(x, (UpperTriangular, UnitUpperTriangular))
    unit = isinstance(x, (UnitUpperTriangular, UnitLowerTriangular))
    return TriangularProjector(_array_projector(x.data), upper=upper, unit=unit)


@projector.register(Bidiagonal)
def _(x: Bidiagonal) -> Projector:
    if _is_discrete(x):
        return ZeroProjector(NoTangent())
    return BidiagonalProjector(_array_projector(x.dv), _array_projector(x.ev), x.uplo)


@projector.register(SymTridiagonal)
def _(x: SymTridiagonal) -> Projector:
    if _is_discrete(x):
        return ZeroProjector(NoTangent())
    return SymTridiagonalProjector(_array_projector(x.dv), _array_projector(x.ev))


@projector.register(Tridiagonal)
def _(x: Tridiagonal) -> Projector:
    if _is_discrete(x):
        return ZeroProjector(NoTangent())
    return TridiagonalProjector(_array_projector(x.dl), _array_projector(x.d), _array_projector(x.du))


@projector.register(Adjoint)
@projector.register(Transpose)
def _(x) -> Projector:
    if _is_discrete(x):
        return ZeroProjector(NoTangent())
    cls = AdjointProjector if isinstance(x, Adjoint) else TransposeProjector
    return cls(_array_projector(x.parent), x.shape)
