"""Tangent kinds: zeros, not-implemented markers, thunks and structural tangents."""

from .zero import AbstractZero, ZeroTangent, NoTangent
from .notimplemented import NotImplementedTangent, not_implemented
from .thunks import AbstractThunk, Thunk, InplaceableThunk, thunk, unthunk
from .structural import (
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

__all__ = [
    # Zeros
    'AbstractZero',
    'ZeroTangent',
    'NoTangent',
    # Not implemented
    'NotImplementedTangent',
    'not_implemented',
    # Thunks
    'AbstractThunk',
    'Thunk',
    'InplaceableThunk',
    'thunk',
    'unthunk',
    # Structural
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
]
