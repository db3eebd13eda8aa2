"""
Projector for aggregate primals: tuples, namedtuples, dicts, dataclasses and
any type declaring its fields.

One sub-projector is built per field. When every sub-projector is a
ZeroProjector the whole projector collapses to one at construction time, so
applying it never visits the fields.
"""

from typing import Any, Dict, Tuple, Union

from ..errors import projection_mismatch
from ..tangents.structural import (
    StructuralTangent,
    backing,
    canonicalize,
    tangent_from_backing,
)
from ..tangents.zero import ZeroTangent
from .base import Projector, collapse, projector


class StructProjector(Projector):
    """
    Projects every field through its own sub-projector.

    Accepts structural tangents (missing fields are ZeroTangent()), primal
    instances and, for dict primals, plain dicts. Returns a structural
    tangent of the primal type (a MutableTangent for mutable primals).

    Args:
        primal_type: Type of the primal
        fields: Sub-projectors, a tuple for plain tuples, a dict otherwise
    """

    def __init__(self, primal_type: type, fields: Union[Tuple[Projector, ...], Dict[Any, Projector]]):
        self.primal_type = primal_type
        self.fields = fields

    def _candidate_backing(self, dx: Any):
        if isinstance(dx, StructuralTangent):
            P = dx.primal_type
            if P is not None and P is not self.primal_type:
                raise TypeError(
                    f"Cannot project a tangent of {P.__qualname__} onto {self.primal_type.__qualname__}"
                )
            if P is not None:
                dx = canonicalize(dx)
            return backing(dx)
        if isinstance(dx, self.primal_type) or (isinstance(self.fields, dict) and isinstance(dx, dict)):
            return backing(dx)
        raise TypeError(
            f"Cannot project a {type(dx).__name__} onto the tangent space of {self.primal_type.__qualname__}"
        )

    def project(self, dx: Any) -> StructuralTangent:
        b = self._candidate_backing(dx)
        if isinstance(self.fields, tuple):
            if not isinstance(b, tuple) or len(b) != len(self.fields):
                got = (len(b),) if isinstance(b, (tuple, dict)) else ()
                raise projection_mismatch((len(self.fields),), got)
            projected = tuple(p(v) for p, v in zip(self.fields, b))
        else:
            if isinstance(b, tuple):
                raise TypeError(f"Cannot project a positional tangent onto {self.primal_type.__qualname__}")
            unknown = [k for k in b if k not in self.fields]
            if unknown:
                raise ValueError(f"{self.primal_type.__qualname__} has no fields {tuple(unknown)}")
            projected = {k: p(b.get(k, ZeroTangent())) for k, p in self.fields.items()}
        return tangent_from_backing(self.primal_type, projected)

    def __repr__(self):
        return f"StructProjector({self.primal_type.__qualname__}, {self.fields!r})"


def struct_projector(x: Any) -> Projector:
    """Projector for an aggregate primal, collapsed when no field has a tangent."""
    b = backing(x)
    if isinstance(b, tuple):
        fields = tuple(projector(v) for v in b)
        parts = fields
    else:
        fields = {k: projector(v) for k, v in b.items()}
        parts = fields.values()
    collapsed = collapse(parts)
    if collapsed is not None:
        return collapsed
    return StructProjector(type(x), fields)


@projector.register(tuple)
@projector.register(dict)
def _(x) -> Projector:
    return struct_projector(x)
