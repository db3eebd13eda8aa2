"""Projectors: map candidate tangents onto the tangent space of a primal."""

from .base import Projector, IdentityProjector, ZeroProjector, projector, project
from .arrays import NumberProjector, ArrayProjector, ObjectArrayProjector
from .structured import (
    StructuredProjector,
    DiagonalProjector,
    SymmetricProjector,
    TriangularProjector,
    BidiagonalProjector,
    SymTridiagonalProjector,
    TridiagonalProjector,
    AdjointProjector,
    TransposeProjector,
)
from .sparse import SparseProjector
from .tensors import TensorProjector
from .structs import StructProjector

__all__ = [
    'Projector',
    'IdentityProjector',
    'ZeroProjector',
    'projector',
    'project',
    # Dense
    'NumberProjector',
    'ArrayProjector',
    'ObjectArrayProjector',
    'TensorProjector',
    # Structured
    'StructuredProjector',
    'DiagonalProjector',
    'SymmetricProjector',
    'TriangularProjector',
    'BidiagonalProjector',
    'SymTridiagonalProjector',
    'TridiagonalProjector',
    'AdjointProjector',
    'TransposeProjector',
    'SparseProjector',
    # Aggregates
    'StructProjector',
]
