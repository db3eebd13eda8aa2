"""
Projector base class and factory.

A projector is built once from a primal and then applied to candidate
tangents, mapping each one onto the tangent space of that primal: right
shape, right dtype, right structure. Propagators typically build gradients
with dense linear algebra that knows nothing about the caller's storage;
projecting restores it.

    p = projector(x)       # capture shape/structure of x
    dx = p(candidate)      # e.g. keep only the diagonal for a Diagonal x

New primal types opt in by registering a factory:

    @projector.register(MyMatrix)
    def _(x):
        return MyMatrixProjector(x.shape)
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from functools import singledispatch
from typing import Any, Iterable, Optional

from ..arithmetic import Kind, kind_of
from ..tangents.structural import has_fields
from ..tangents.thunks import AbstractThunk, InplaceableThunk, Thunk, unthunk
from ..tangents.zero import AbstractZero, NoTangent, ZeroTangent

log = logging.getLogger(__name__)


class Projector(ABC):
    """
    Abstract base class for projectors.

    `__call__` handles the cases shared by every primal type: zero-likes and
    not-implemented tangents pass through, a `Thunk` gets the projection
    inserted inside a new `Thunk` (nothing is forced), an
    `InplaceableThunk` is projected through its `val`. Everything else goes
    to `project`, which subclasses implement.
    """

    def __call__(self, dx: Any) -> Any:
        kind = kind_of(dx)
        if kind in (Kind.NOT_IMPLEMENTED, Kind.NO_TANGENT, Kind.ZERO):
            return dx
        if isinstance(dx, InplaceableThunk):
            return self(dx.val)
        if isinstance(dx, Thunk):
            return Thunk(lambda: self(unthunk(dx)))
        if isinstance(dx, AbstractThunk):
            return self(unthunk(dx))
        return self.project(dx)

    @abstractmethod
    def project(self, dx: Any) -> Any:
        """
        Project a concrete candidate.

        Args:
            dx: Candidate tangent (a plain value or a structural tangent)

        Returns:
            Tangent in the primal's tangent space

        Raises:
            DimensionMismatch: if the candidate has an incompatible shape
        """
        pass

    def __repr__(self):
        return f"{type(self).__name__}()"


class IdentityProjector(Projector):
    """Projector for primals without a declared structure: returns `dx` unchanged."""

    def project(self, dx: Any) -> Any:
        return dx


class ZeroProjector(Projector):
    """
    Projector for primals whose tangent is always a zero.

    Used for primals without a tangent space (booleans, strings, None,
    types, functions) and for composites whose parts are all of that kind.
    """

    def __init__(self, zero: AbstractZero = None):
        self.zero = NoTangent() if zero is None else zero

    def __call__(self, dx: Any) -> AbstractZero:
        return self.zero

    def project(self, dx: Any) -> AbstractZero:
        return self.zero

    def __repr__(self):
        return f"ZeroProjector({self.zero!r})"


def collapse(projectors: Iterable[Projector]) -> Optional[ZeroProjector]:
    """
    Single ZeroProjector standing in for a composite, if every part is one.

    The result produces NoTangent() when every part does, ZeroTangent()
    otherwise. Returns None when some part has a real tangent space.
    """
    projectors = list(projectors)
    if not all(isinstance(p, ZeroProjector) for p in projectors):
        return None
    if all(isinstance(p.zero, NoTangent) for p in projectors):
        zero = NoTangent()
    else:
        zero = ZeroTangent()
    log.debug("Collapsing %d zero sub-projectors into %r", len(projectors), zero)
    return ZeroProjector(zero)


@singledispatch
def projector(x: Any) -> Projector:
    """
    Build the projector for primal `x`.

    Types are handled by registered factories; the fallback gives a
    ZeroProjector for values without a tangent space, a struct projector
    for types declaring their fields, and the identity otherwise.
    """
    if x is None or isinstance(x, (str, bytes, type, Enum)) or callable(x):
        return ZeroProjector(NoTangent())
    if has_fields(type(x)):
        from .structs import struct_projector
        return struct_projector(x)
    return IdentityProjector()


@projector.register(AbstractZero)
def _(x: AbstractZero) -> Projector:
    return ZeroProjector(x)


def project(x: Any, dx: Any) -> Any:
    """Project `dx` onto the tangent space of `x`; shorthand for `projector(x)(dx)`."""
    return projector(x)(dx)
