"""Marker for derivatives that have deliberately not been written yet."""

import inspect
from typing import Optional

from ..errors import NotImplementedEvaluated
from ..tangent import AbstractTangent


class NotImplementedTangent(AbstractTangent):
    """
    A derivative that is not implemented.

    It may flow through addition and through multiplication by zero-likes,
    so a rule can return it for an input whose derivative is rarely needed.
    Using it in any other way raises `NotImplementedEvaluated` carrying
    where it was created.

    Args:
        module: Name of the module that declared the missing derivative
        source: "file:line" of the declaration
        info: Optional free-text hint for whoever writes the rule
    """

    def __init__(self, module: str, source: str, info: Optional[str] = None):
        self.module = module
        self.source = source
        self.info = info

    def _evaluated(self, *args, **kwargs):
        raise NotImplementedEvaluated.from_tangent(self)

    __iter__ = _evaluated
    __len__ = _evaluated
    __getitem__ = _evaluated
    __bool__ = _evaluated
    __float__ = _evaluated
    __int__ = _evaluated
    __complex__ = _evaluated
    __array__ = _evaluated
    conj = _evaluated
    transpose = _evaluated
    adjoint = _evaluated
    zero = _evaluated

    @property
    def T(self):
        raise NotImplementedEvaluated.from_tangent(self)

    def __eq__(self, other):
        if not isinstance(other, NotImplementedTangent):
            return NotImplemented
        return (self.module, self.source, self.info) == (other.module, other.source, other.info)

    def __hash__(self):
        return hash((NotImplementedTangent, self.module, self.source, self.info))

    def __repr__(self):
        return f"NotImplementedTangent({self.module!r}, {self.source!r}, {self.info!r})"


def not_implemented(info: Optional[str] = None) -> NotImplementedTangent:
    """
    Declare a missing derivative at the call site.

    Example:
        >>> def pullback(dy):
        ...     return dy * cos(x), not_implemented("derivative w.r.t. the seed")
    """
    frame = inspect.currentframe().f_back
    try:
        module = frame.f_globals.get('__name__', '<unknown>')
        source = f"{frame.f_code.co_filename}:{frame.f_lineno}"
    finally:
        del frame
    return NotImplementedTangent(module, source, info)
