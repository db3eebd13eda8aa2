"""Base class shared by every tangent kind."""


class AbstractTangent:
    """
    Base class for the tangent kinds defined by tangentcore.

    Arithmetic on any subclass is routed through `tangentcore.arithmetic`,
    which implements the combination rules between every pair of kinds
    (zero-likes, not-implemented markers, thunks, structural tangents and
    plain values) in one place.

    numpy arrays and scalars on the left-hand side defer to the reflected
    operators below because `__array_ufunc__` is None, so `arr + ZeroTangent()`
    behaves exactly like `ZeroTangent() + arr`.

    Example:
        >>> dx = ZeroTangent()
        >>> np.ones(3) + dx        # additive identity
        array([1., 1., 1.])
        >>> 2.0 * dx is dx         # absorbing for multiplication
        True
    """

    __array_ufunc__ = None
    __array_priority__ = 1000

    def __add__(self, other):
        from . import arithmetic
        return arithmetic.add(self, other)

    def __radd__(self, other):
        from . import arithmetic
        return arithmetic.add(other, self)

    def __sub__(self, other):
        from . import arithmetic
        return arithmetic.sub(self, other)

    def __rsub__(self, other):
        from . import arithmetic
        return arithmetic.sub(other, self)

    def __mul__(self, other):
        from . import arithmetic
        return arithmetic.mul(self, other)

    def __rmul__(self, other):
        from . import arithmetic
        return arithmetic.mul(other, self)

    def __truediv__(self, other):
        from . import arithmetic
        return arithmetic.div(self, other)

    def __rtruediv__(self, other):
        from . import arithmetic
        return arithmetic.div(other, self)

    def __neg__(self):
        from . import arithmetic
        return arithmetic.neg(self)

    def __pos__(self):
        return self

    def zero(self):
        """The additive identity for this tangent."""
        from .tangents.zero import ZeroTangent
        return ZeroTangent()
