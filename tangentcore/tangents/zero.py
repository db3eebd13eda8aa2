"""
Zero-like tangents.

`ZeroTangent` says the derivative is numerically zero, `NoTangent` says there
is no tangent space at all (an integer used as an index, a boolean flag, a
string). Both are process-wide singletons and behave as the additive
identity; they differ only when combined with each other:

    NoTangent() + ZeroTangent()  ->  NoTangent()
    NoTangent() * ZeroTangent()  ->  ZeroTangent()
"""

from ..tangent import AbstractTangent


class AbstractZero(AbstractTangent):
    """
    Base class for zero-like tangents.

    A zero is falsy, iterates as a single element (itself), and every linear
    operation on it (indexing, conj, transpose, reshape, sum, ...) returns
    the zero unchanged.
    """

    _instances = {}

    def __new__(cls):
        instance = AbstractZero._instances.get(cls)
        if instance is None:
            instance = super().__new__(cls)
            AbstractZero._instances[cls] = instance
        return instance

    def __reduce__(self):
        return (type(self), ())

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __bool__(self):
        return False

    def __iter__(self):
        yield self

    def __getitem__(self, key):
        return self

    def __float__(self):
        return 0.0

    def __int__(self):
        return 0

    def __complex__(self):
        return 0j

    def conj(self):
        return self

    def transpose(self, *axes):
        return self

    @property
    def T(self):
        return self

    def adjoint(self):
        return self

    @property
    def real(self):
        return self

    @property
    def imag(self):
        return self

    def reshape(self, *shape):
        return self

    def sum(self, *args, **kwargs):
        return self

    def __repr__(self):
        return f"{type(self).__name__}()"


class ZeroTangent(AbstractZero):
    """The derivative exists and is zero."""
    pass


class NoTangent(AbstractZero):
    """There is no tangent space for this primal (e.g. an index or a flag)."""
    pass
