"""Exceptions raised by tangentcore."""

from typing import Any, Optional, Sequence, Tuple


class TangentError(Exception):
    """Base class for all errors raised while combining or projecting tangents."""
    pass


class DimensionMismatch(TangentError, ValueError):
    """A tangent candidate has a shape incompatible with its primal."""
    pass


def projection_mismatch(shape_x: Sequence[int], shape_dx: Sequence[int]) -> DimensionMismatch:
    """
    Build the error for projecting a gradient of the wrong shape.

    Args:
        shape_x: Shape of the primal
        shape_dx: Shape of the offending candidate

    Returns:
        DimensionMismatch naming both shapes
    """
    return DimensionMismatch(
        f"variable with shape(x) == {tuple(shape_x)} cannot have a gradient "
        f"with shape(dx) == {tuple(shape_dx)}"
    )


class NotImplementedEvaluated(TangentError, NotImplementedError):
    """
    A tangent marked as not implemented was actually used.

    Carries where the missing derivative was declared so the failure can be
    traced back to the rule that needs writing.
    """

    def __init__(self, module: str, source: str, info: Optional[str]):
        self.module = module
        self.source = source
        self.info = info
        message = f"tangent not implemented @ {module} {source}"
        if info is not None:
            message += f"\nInfo: {info}"
        super().__init__(message)

    @classmethod
    def from_tangent(cls, tangent) -> 'NotImplementedEvaluated':
        return cls(tangent.module, tangent.source, tangent.info)


class MutateBeforeForcing(TangentError, TypeError):
    """Attempted to write into a thunk that has not been unthunked."""

    def __init__(self):
        super().__init__("Tried to mutate a thunk, this is not supported. `unthunk` it first.")


class PrimalReconstructionFailed(TangentError, TypeError):
    """
    Adding a structural tangent to a primal could not rebuild the primal.

    The message always names the hooks an implementer can define to make
    the reconstruction work.
    """

    def __init__(self, primal_type: type, field_names: Tuple[Any, ...], original: BaseException):
        self.primal_type = primal_type
        self.field_names = tuple(field_names)
        self.original = original
        name = getattr(primal_type, '__qualname__', repr(primal_type))
        args = ", ".join(f"{f}=..." for f in self.field_names)
        super().__init__(
            f"Could not construct {name} after addition.\n"
            f"This probably means no default constructor is defined.\n"
            f"Either define a default constructor\n"
            f"    {name}({args})\n"
            f"or register a reconstruction hook\n"
            f"    @tangentcore.register_construct({name})\n"
            f"    def _construct(primal_type, fields): ...\n"
            f"or overload\n"
            f"    {name}.__add__(self, tangent)\n"
            f"Original exception: {type(original).__name__}: {original}"
        )


class BadInplaceError(TangentError, RuntimeError):
    """An InplaceableThunk's in-place function did not return the updated destination."""

    def __init__(self, ithunk, accumuland, returned_value):
        self.ithunk = ithunk
        self.accumuland = accumuland
        self.returned_value = returned_value
        super().__init__(
            "`add_into(accumuland, ithunk)` did not return an updated accumuland.\n"
            f"ithunk = {ithunk!r}\n"
            f"accumuland = {accumuland!r}\n"
            f"returned_value = {returned_value!r}"
        )
