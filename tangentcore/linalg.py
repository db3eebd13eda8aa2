"""
Structured matrices.

Thin numpy-backed wrappers that declare which entries of a square matrix are
free. They are the primal types whose tangents must stay inside the declared
structure: a gradient for a `Diagonal` must be diagonal, a gradient for a
`Symmetric` must be symmetric, and so on.

Every wrapper can be densified (`to_dense()` or `np.asarray(m)`), compares
equal to any array with the same dense value, and lists its storage fields
in `__tangent_fields__` so that `Tangent(Diagonal, diag=...)` is a valid
structural tangent and `Diagonal + Tangent(Diagonal, ...)` rebuilds a
`Diagonal`.
"""

from numbers import Number
from typing import Tuple

import numpy as np


def _check_uplo(uplo: str) -> str:
    if uplo not in ('U', 'L'):
        raise ValueError(f"uplo must be 'U' or 'L', got {uplo!r}")
    return uplo


def _is_scalar(s) -> bool:
    return isinstance(s, (Number, np.generic)) or (isinstance(s, np.ndarray) and s.ndim == 0)


class StructuredMatrix:
    """
    Base class for matrices with a declared sparsity or symmetry structure.

    Subclasses implement `to_dense`, `_fields` and `_rebuild`; arithmetic
    between two matrices of the same structure stays in that structure,
    anything else falls back to dense numpy arrays.
    """

    __tangent_fields__: Tuple[str, ...] = ()
    __tangent_mutable__ = False

    # Let numpy defer to the reflected operators below
    __array_ufunc__ = None
    __array_priority__ = 100

    def to_dense(self) -> np.ndarray:
        raise NotImplementedError(f"{self.__class__.__name__} does not implement to_dense")

    @property
    def parent(self) -> np.ndarray:
        """The array holding the free entries."""
        return getattr(self, self.__tangent_fields__[0])

    def _fields(self) -> dict:
        return {name: getattr(self, name) for name in self.__tangent_fields__}

    def _map_arrays(self, f) -> 'StructuredMatrix':
        """Apply a linear function to every stored array, keeping the structure."""
        fields = {
            name: (f(value) if isinstance(value, np.ndarray) else value)
            for name, value in self._fields().items()
        }
        return type(self)(**fields)

    def _same_structure(self, other) -> bool:
        if type(other) is not type(self):
            return False
        return all(
            getattr(self, name) == getattr(other, name)
            for name in self.__tangent_fields__
            if isinstance(getattr(self, name), str)
        )

    @property
    def shape(self) -> Tuple[int, int]:
        n = self.parent.shape[0]
        return (n, n)

    @property
    def ndim(self) -> int:
        return 2

    @property
    def size(self) -> int:
        m, n = self.shape
        return m * n

    @property
    def dtype(self) -> np.dtype:
        return self.parent.dtype

    def __array__(self, dtype=None, copy=None):
        dense = self.to_dense()
        if dtype is not None:
            dense = dense.astype(dtype)
        return dense

    def __eq__(self, other):
        if isinstance(other, (StructuredMatrix, np.ndarray)):
            other = np.asarray(other)
            dense = self.to_dense()
            return dense.shape == other.shape and bool(np.array_equal(dense, other))
        return NotImplemented

    __hash__ = None

    def __add__(self, other):
        if self._same_structure(other):
            fields = self._fields()
            for name, value in other._fields().items():
                if isinstance(value, np.ndarray):
                    fields[name] = fields[name] + value
            return type(self)(**fields)
        if isinstance(other, (StructuredMatrix, np.ndarray)):
            return self.to_dense() + np.asarray(other)
        return NotImplemented

    def __radd__(self, other):
        if isinstance(other, np.ndarray):
            return other + self.to_dense()
        return NotImplemented

    def __sub__(self, other):
        if isinstance(other, (StructuredMatrix, np.ndarray)):
            return self + (-other)
        return NotImplemented

    def __rsub__(self, other):
        if isinstance(other, np.ndarray):
            return other - self.to_dense()
        return NotImplemented

    def __neg__(self):
        return self._map_arrays(np.negative)

    def __mul__(self, other):
        if _is_scalar(other):
            return self._map_arrays(lambda a: a * other)
        return NotImplemented

    def __rmul__(self, other):
        if _is_scalar(other):
            return self._map_arrays(lambda a: other * a)
        return NotImplemented

    def __truediv__(self, other):
        if _is_scalar(other):
            return self._map_arrays(lambda a: a / other)
        return NotImplemented

    def conj(self) -> 'StructuredMatrix':
        return self._map_arrays(np.conj)

    def transpose(self):
        return Transpose(self.to_dense())

    @property
    def T(self):
        return self.transpose()

    def adjoint(self):
        return self.conj().transpose()

    @property
    def H(self):
        return self.adjoint()

    def __repr__(self):
        args = ", ".join(f"{name}={value!r}" for name, value in self._fields().items())
        return f"{self.__class__.__name__}({args})"


class Diagonal(StructuredMatrix):
    """
    Square matrix with only the main diagonal stored.

    Example:
        >>> D = Diagonal(np.array([1.0, 2.0, 3.0]))
        >>> np.asarray(D)[0, 1]
        0.0
    """

    __tangent_fields__ = ('diag',)

    def __init__(self, diag):
        self.diag = np.asarray(diag)
        if self.diag.ndim != 1:
            raise ValueError(f"Diagonal expects a vector, got shape {self.diag.shape}")

    def to_dense(self) -> np.ndarray:
        return np.diag(self.diag)

    def transpose(self) -> 'Diagonal':
        return Diagonal(self.diag)


class _SymmetricBase(StructuredMatrix):
    """Square matrix defined by one triangle of `data` (selected by `uplo`)."""

    __tangent_fields__ = ('data', 'uplo')
    _hermitian = False

    def __init__(self, data, uplo: str = 'U'):
        self.data = np.asarray(data)
        if self.data.ndim != 2 or self.data.shape[0] != self.data.shape[1]:
            raise ValueError(f"{self.__class__.__name__} expects a square matrix, got shape {self.data.shape}")
        self.uplo = _check_uplo(uplo)

    def to_dense(self) -> np.ndarray:
        tri = np.triu(self.data) if self.uplo == 'U' else np.tril(self.data)
        strict = np.triu(self.data, 1) if self.uplo == 'U' else np.tril(self.data, -1)
        other = strict.conj().T if self._hermitian else strict.T
        dense = tri + other
        if self._hermitian and np.iscomplexobj(dense):
            dense[np.diag_indices_from(dense)] = dense.diagonal().real
        return dense

    def __add__(self, other):
        if type(other) is type(self) and other.uplo != self.uplo:
            return type(self)(self.to_dense() + other.to_dense(), self.uplo)
        return super().__add__(other)

    def transpose(self):
        if self._hermitian:
            return type(self)(self.to_dense().T, self.uplo)
        return self


class Symmetric(_SymmetricBase):
    """Real or complex symmetric matrix, `A == A.T`."""
    pass


class Hermitian(_SymmetricBase):
    """Hermitian matrix, `A == A.conj().T`."""

    _hermitian = True

    def adjoint(self) -> 'Hermitian':
        return self


class UpperTriangular(StructuredMatrix):
    """Upper triangle of `data`; entries below the diagonal are structural zeros."""

    __tangent_fields__ = ('data',)

    def __init__(self, data):
        self.data = np.asarray(data)

    def to_dense(self) -> np.ndarray:
        return np.triu(self.data)

    def transpose(self) -> 'LowerTriangular':
        return LowerTriangular(self.data.T)


class LowerTriangular(StructuredMatrix):
    """Lower triangle of `data`; entries above the diagonal are structural zeros."""

    __tangent_fields__ = ('data',)

    def __init__(self, data):
        self.data = np.asarray(data)

    def to_dense(self) -> np.ndarray:
        return np.tril(self.data)

    def transpose(self) -> UpperTriangular:
        return UpperTriangular(self.data.T)


class UnitUpperTriangular(StructuredMatrix):
    """Upper triangular with an implicit unit diagonal."""

    __tangent_fields__ = ('data',)

    def __init__(self, data):
        self.data = np.asarray(data)

    def to_dense(self) -> np.ndarray:
        return np.triu(self.data, 1) + np.eye(self.data.shape[0], dtype=self.data.dtype)

    def __add__(self, other):
        if isinstance(other, (UnitUpperTriangular, UpperTriangular)):
            return UpperTriangular(self.to_dense() + other.to_dense())
        return super().__add__(other)

    def _map_arrays(self, f):
        return UpperTriangular(f(self.to_dense()))


class UnitLowerTriangular(StructuredMatrix):
    """Lower triangular with an implicit unit diagonal."""

    __tangent_fields__ = ('data',)

    def __init__(self, data):
        self.data = np.asarray(data)

    def to_dense(self) -> np.ndarray:
        return np.tril(self.data, -1) + np.eye(self.data.shape[0], dtype=self.data.dtype)

    def __add__(self, other):
        if isinstance(other, (UnitLowerTriangular, LowerTriangular)):
            return LowerTriangular(self.to_dense() + other.to_dense())
        return super().__add__(other)

    def _map_arrays(self, f):
        return LowerTriangular(f(self.to_dense()))


class Bidiagonal(StructuredMatrix):
    """Main diagonal `dv` plus one off-diagonal `ev`, above ('U') or below ('L')."""

    __tangent_fields__ = ('dv', 'ev', 'uplo')

    def __init__(self, dv, ev, uplo: str = 'U'):
        self.dv = np.asarray(dv)
        self.ev = np.asarray(ev)
        if self.ev.shape[0] != max(self.dv.shape[0] - 1, 0):
            raise ValueError(f"Bidiagonal needs len(ev) == len(dv) - 1, got {len(self.ev)} and {len(self.dv)}")
        self.uplo = _check_uplo(uplo)

    def to_dense(self) -> np.ndarray:
        k = 1 if self.uplo == 'U' else -1
        dtype = np.result_type(self.dv, self.ev)
        return np.diag(self.dv).astype(dtype) + np.diag(self.ev, k)

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self.dv, self.ev)

    def __add__(self, other):
        if type(other) is Bidiagonal and other.uplo != self.uplo:
            return self.to_dense() + other.to_dense()
        return super().__add__(other)

    def transpose(self) -> 'Bidiagonal':
        return Bidiagonal(self.dv, self.ev, 'L' if self.uplo == 'U' else 'U')


class SymTridiagonal(StructuredMatrix):
    """Symmetric tridiagonal matrix: diagonal `dv`, both off-diagonals `ev`."""

    __tangent_fields__ = ('dv', 'ev')

    def __init__(self, dv, ev):
        self.dv = np.asarray(dv)
        self.ev = np.asarray(ev)
        if self.ev.shape[0] != max(self.dv.shape[0] - 1, 0):
            raise ValueError(f"SymTridiagonal needs len(ev) == len(dv) - 1, got {len(self.ev)} and {len(self.dv)}")

    def to_dense(self) -> np.ndarray:
        dtype = np.result_type(self.dv, self.ev)
        return np.diag(self.dv).astype(dtype) + np.diag(self.ev, 1) + np.diag(self.ev, -1)

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self.dv, self.ev)

    def transpose(self) -> 'SymTridiagonal':
        return self


class Tridiagonal(StructuredMatrix):
    """Tridiagonal matrix with sub-diagonal `dl`, diagonal `d`, super-diagonal `du`."""

    __tangent_fields__ = ('dl', 'd', 'du')

    def __init__(self, dl, d, du):
        self.dl = np.asarray(dl)
        self.d = np.asarray(d)
        self.du = np.asarray(du)
        n = self.d.shape[0]
        if self.dl.shape[0] != max(n - 1, 0) or self.du.shape[0] != max(n - 1, 0):
            raise ValueError("Tridiagonal needs len(dl) == len(du) == len(d) - 1")

    @property
    def parent(self) -> np.ndarray:
        return self.d

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self.dl, self.d, self.du)

    def to_dense(self) -> np.ndarray:
        return np.diag(self.d).astype(self.dtype) + np.diag(self.dl, -1) + np.diag(self.du, 1)

    @classmethod
    def from_dense(cls, m: np.ndarray) -> 'Tridiagonal':
        return cls(np.diagonal(m, -1).copy(), np.diagonal(m).copy(), np.diagonal(m, 1).copy())

    def transpose(self) -> 'Tridiagonal':
        return Tridiagonal(self.du, self.d, self.dl)


class _LazyTranspose(StructuredMatrix):
    """Transposed view of `parent`; a vector parent reads as a 1 x n row."""

    __tangent_fields__ = ('parent',)
    _conjugate = False

    def __init__(self, parent):
        object.__setattr__(self, '_parent', np.asarray(parent))

    @property
    def parent(self) -> np.ndarray:
        return self._parent

    @property
    def shape(self) -> Tuple[int, int]:
        if self._parent.ndim == 1:
            return (1, self._parent.shape[0])
        return (self._parent.shape[1], self._parent.shape[0])

    def to_dense(self) -> np.ndarray:
        p = np.conj(self._parent) if self._conjugate else self._parent
        if p.ndim == 1:
            return p[np.newaxis, :]
        return p.T

    def transpose(self):
        return np.conj(self._parent) if self._conjugate else self._parent


class Adjoint(_LazyTranspose):
    """Conjugate transpose of `parent`."""

    _conjugate = True

    def adjoint(self) -> np.ndarray:
        return self._parent


class Transpose(_LazyTranspose):
    """Transpose of `parent`."""
    pass


__all__ = [
    'StructuredMatrix',
    'Diagonal',
    'Symmetric',
    'Hermitian',
    'UpperTriangular',
    'LowerTriangular',
    'UnitUpperTriangular',
    'UnitLowerTriangular',
    'Bidiagonal',
    'SymTridiagonal',
    'Tridiagonal',
    'Adjoint',
    'Transpose',
]
