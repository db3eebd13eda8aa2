"""tangentcore: tangent algebra, thunks and projection for automatic differentiation engines."""

from .errors import (
    TangentError,
    DimensionMismatch,
    NotImplementedEvaluated,
    MutateBeforeForcing,
    PrimalReconstructionFailed,
    BadInplaceError,
)
from . import config
from .tangent import AbstractTangent

# Tangent kinds
from . import tangents
from .tangents import (
    AbstractZero,
    ZeroTangent,
    NoTangent,
    NotImplementedTangent,
    not_implemented,
    AbstractThunk,
    Thunk,
    InplaceableThunk,
    thunk,
    unthunk,
    StructuralTangent,
    Tangent,
    MutableTangent,
    structural_tangent,
    canonicalize,
    backing,
    construct,
    fieldnames,
    register_fields,
    register_construct,
)

# Algebra
from .arithmetic import Kind, kind_of, combine, add, sub, mul, div, dot, neg, muladd, is_zero
from .accumulation import add_into, is_inplaceable_destination

# Structured matrices
from . import linalg

# Projection
from . import projection
from .projection import Projector, projector, project

__version__ = "0.1.0"

__all__ = [
    # Errors
    'TangentError',
    'DimensionMismatch',
    'NotImplementedEvaluated',
    'MutateBeforeForcing',
    'PrimalReconstructionFailed',
    'BadInplaceError',
    # Configuration
    'config',
    # Tangent kinds
    'AbstractTangent',
    'tangents',
    'AbstractZero',
    'ZeroTangent',
    'NoTangent',
    'NotImplementedTangent',
    'not_implemented',
    'AbstractThunk',
    'Thunk',
    'InplaceableThunk',
    'thunk',
    'unthunk',
    'StructuralTangent',
    'Tangent',
    'MutableTangent',
    'structural_tangent',
    'canonicalize',
    'backing',
    'construct',
    'fieldnames',
    'register_fields',
    'register_construct',
    # Algebra
    'Kind',
    'kind_of',
    'combine',
    'add',
    'sub',
    'mul',
    'div',
    'dot',
    'neg',
    'muladd',
    'is_zero',
    'add_into',
    'is_inplaceable_destination',
    # Structured matrices
    'linalg',
    # Projection
    'projection',
    'Projector',
    'projector',
    'project',
]
