"""
Structural tangents.

The tangent of an aggregate primal (a dataclass, namedtuple, tuple, dict or
any class declaring its fields) is a sparse mapping from field to tangent.
Fields that are not stored are implicitly `ZeroTangent()`.

Field reflection is explicit: a type takes part if it is a dataclass or a
namedtuple, carries a `__tangent_fields__` tuple, or has been registered
with `register_fields`. Nothing is scraped from instance dictionaries.

Example:
    >>> @dataclass(frozen=True)
    ... class Point:
    ...     x: float
    ...     y: float
    >>> Tangent(Point, x=1.0) + Tangent(Point, y=2.0)
    Tangent{Point}(x=1.0, y=2.0)
    >>> Point(1.0, 1.0) + Tangent(Point, y=2.0)
    Point(x=1.0, y=3.0)
"""

import dataclasses
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from .. import _array
from ..errors import PrimalReconstructionFailed
from ..tangent import AbstractTangent
from .thunks import unthunk
from .zero import AbstractZero, ZeroTangent

_FIELD_REGISTRY: Dict[type, Tuple[str, ...]] = {}
_CONSTRUCTORS: Dict[type, Callable[[type, Any], Any]] = {}


# =============================================================================
# Field reflection
# =============================================================================

def register_fields(primal_type: type, names) -> type:
    """
    Declare the tangent fields of a type that cannot declare them itself.

    Args:
        primal_type: The primal class
        names: Field names, in constructor order

    Returns:
        primal_type, unchanged
    """
    _FIELD_REGISTRY[primal_type] = tuple(names)
    return primal_type


def register_construct(primal_type: type):
    """
    Register how to rebuild `primal_type` from a dict of field values.

    Example:
        >>> @register_construct(Interval)
        ... def _construct(primal_type, fields):
        ...     return Interval.from_bounds(fields['lo'], fields['hi'])
    """
    def decorator(fn):
        _CONSTRUCTORS[primal_type] = fn
        return fn
    return decorator


def _is_namedtuple_type(P) -> bool:
    return isinstance(P, type) and issubclass(P, tuple) and hasattr(P, '_fields')


def _is_plain_tuple_type(P) -> bool:
    return isinstance(P, type) and issubclass(P, tuple) and not hasattr(P, '_fields')


def _is_dict_type(P) -> bool:
    return isinstance(P, type) and issubclass(P, dict)


def _lookup(registry: dict, P):
    for klass in getattr(P, '__mro__', (P,)):
        if klass in registry:
            return registry[klass]
    return None


def fieldnames(P: type) -> Tuple[str, ...]:
    """
    Names of the tangent fields of `P`.

    Raises:
        TypeError: if `P` does not declare its fields in any supported way
    """
    registered = _lookup(_FIELD_REGISTRY, P)
    if registered is not None:
        return registered
    if dataclasses.is_dataclass(P):
        return tuple(f.name for f in dataclasses.fields(P))
    if _is_namedtuple_type(P):
        return tuple(P._fields)
    declared = getattr(P, '__tangent_fields__', None)
    if declared is not None:
        return tuple(declared)
    name = getattr(P, '__qualname__', repr(P))
    raise TypeError(
        f"Cannot reflect the fields of {name}. Make it a dataclass or a namedtuple, "
        f"set `__tangent_fields__`, or call `tangentcore.register_fields({name}, names)`."
    )


def has_fields(P) -> bool:
    """Whether `P` declares tangent fields."""
    if P is None or not isinstance(P, type):
        return False
    try:
        fieldnames(P)
    except TypeError:
        return False
    return True


def has_mutable_tangent(P) -> bool:
    """Whether tangents of `P` should be `MutableTangent`s."""
    declared = getattr(P, '__tangent_mutable__', None)
    if declared is not None:
        return bool(declared)
    if isinstance(P, type) and dataclasses.is_dataclass(P):
        return not P.__dataclass_params__.frozen
    return False


def _known_fields(P) -> Optional[Tuple[str, ...]]:
    """Field names that constrain a tangent of `P`, or None if any key goes."""
    if P is None or _is_plain_tuple_type(P) or _is_dict_type(P):
        return None
    return fieldnames(P)


def backing(x: Any) -> Union[dict, tuple]:
    """
    The raw field storage of `x`.

    A structural tangent gives its backing dict or tuple, a struct instance
    gives `{field: value}`, and plain tuples and dicts are returned as-is.
    """
    if isinstance(x, StructuralTangent):
        return x._backing
    if isinstance(x, dict):
        return x
    if isinstance(x, tuple) and not hasattr(x, '_fields'):
        return x
    return {name: getattr(x, name) for name in fieldnames(type(x))}


def construct(P: type, fields: Union[dict, tuple]) -> Any:
    """
    Rebuild a primal of type `P` from its field values.

    Hooks registered with `register_construct` take precedence. Plain
    tuples and dicts are rebuilt directly, namedtuples positionally, and
    every other type with `P(**fields)`.

    Raises:
        ValueError: if the field names do not match those of `P`
    """
    hook = _lookup(_CONSTRUCTORS, P)
    if hook is not None:
        return hook(P, fields)
    if _is_plain_tuple_type(P):
        return P(fields)
    if _is_dict_type(P):
        return P(fields)
    names = fieldnames(P)
    if set(fields) != set(names):
        raise ValueError(
            f"{P.__qualname__} has fields {names}, cannot construct it from fields {tuple(fields)}"
        )
    if _is_namedtuple_type(P):
        return P(*(fields[name] for name in names))
    return P(**fields)


def add_to_primal(primal: Any, tangent: 'StructuralTangent') -> Any:
    """
    Apply a structural tangent to a primal, returning a new primal.

    Raises:
        TypeError: if the tangent belongs to a different primal type
        PrimalReconstructionFailed: if the result cannot be constructed
    """
    from ..arithmetic import add

    P = type(primal)
    T = tangent.primal_type
    if T is not None and not isinstance(primal, T):
        raise TypeError(f"Cannot add a tangent of {T.__qualname__} to a {P.__qualname__}")

    updates = tangent._backing
    if isinstance(primal, dict):
        if not isinstance(updates, dict):
            raise TypeError(f"Cannot add a positional tangent to a {P.__qualname__}")
        merged = P(primal)
        for key, value in updates.items():
            merged[key] = add(merged[key], value) if key in merged else value
        return merged

    if isinstance(primal, tuple) and not hasattr(primal, '_fields'):
        if not isinstance(updates, tuple) or len(updates) != len(primal):
            raise TypeError(f"Cannot add a tangent with {len(updates)} entries to a tuple of length {len(primal)}")
        return P(add(p, t) for p, t in zip(primal, updates))

    fields = backing(primal)
    if isinstance(updates, tuple):
        updates = dict(zip(fields, updates))
    unknown = [name for name in updates if name not in fields]
    if unknown:
        raise ValueError(f"{P.__qualname__} has no fields {tuple(unknown)}")
    for name, value in updates.items():
        fields[name] = add(fields[name], value)
    try:
        return construct(P, fields)
    except Exception as err:
        raise PrimalReconstructionFailed(P, tuple(fields), err) from err


# =============================================================================
# Tangent types
# =============================================================================

def _type_name(P) -> str:
    if P is None:
        return 'Any'
    return getattr(P, '__qualname__', repr(P))


def _merge_primal_types(P, Q):
    if P is None:
        return Q
    if Q is None or P is Q:
        return P
    raise TypeError(f"Cannot combine tangents of {_type_name(P)} and {_type_name(Q)}")


def _field_equal(a, b) -> bool:
    a, b = unthunk(a), unthunk(b)
    if isinstance(a, AbstractZero) or isinstance(b, AbstractZero):
        from ..arithmetic import is_zero
        return is_zero(a) and is_zero(b)
    return _array.values_equal(a, b)


class StructuralTangent(AbstractTangent):
    """
    Base class for tangents of aggregate primals.

    Subclasses store their fields in `_backing`, a tuple (plain tuple
    primals) or a dict (everything else), and rebuild themselves with
    `_from_backing`.
    """

    _primal = None

    @classmethod
    def _from_backing(cls, primal_type, backing):
        raise NotImplementedError

    @property
    def primal_type(self) -> Optional[type]:
        """The primal type this tangent belongs to (None: any)."""
        return self._primal

    def _get(self, key):
        """Raw stored value, ZeroTangent() when absent."""
        b = self._backing
        if isinstance(b, tuple):
            return b[key] if 0 <= key < len(b) else ZeroTangent()
        return b.get(key, ZeroTangent())

    def keys(self):
        b = self._backing
        if isinstance(b, tuple):
            return range(len(b))
        return b.keys()

    def items(self) -> Iterator[Tuple[Any, Any]]:
        b = self._backing
        if isinstance(b, tuple):
            return iter(enumerate(b))
        return iter(b.items())

    def __len__(self):
        return len(self._backing)

    def __iter__(self):
        b = self._backing
        if _is_dict_type(self._primal):
            return iter(b.items())
        if isinstance(b, tuple):
            return iter(b)
        return iter(b.values())

    def __getitem__(self, key):
        b = self._backing
        if isinstance(b, tuple):
            return unthunk(b[key])
        if key in b:
            return unthunk(b[key])
        known = _known_fields(self._primal)
        if known is not None and key in known:
            return ZeroTangent()
        raise KeyError(key)

    def map(self, f: Callable[[Any], Any]) -> 'StructuralTangent':
        """Apply `f` to every stored field, keeping the primal type."""
        b = self._backing
        if isinstance(b, tuple):
            new = tuple(f(v) for v in b)
        else:
            new = {k: f(v) for k, v in b.items()}
        return type(self)._from_backing(self._primal, new)

    def conj(self) -> 'StructuralTangent':
        return self.map(_array.conj)

    def is_zero(self) -> bool:
        from ..arithmetic import is_zero
        return all(is_zero(v) for _, v in self.items())

    def canonicalize(self) -> 'StructuralTangent':
        return canonicalize(self)

    def __eq__(self, other):
        if isinstance(other, AbstractZero):
            return self.is_zero()
        if not isinstance(other, StructuralTangent):
            return NotImplemented
        P, Q = self._primal, other._primal
        if P is not None and Q is not None and P is not Q:
            return False
        mine, theirs = self._backing, other._backing
        if isinstance(mine, tuple) != isinstance(theirs, tuple):
            return False
        if isinstance(mine, tuple):
            keys = range(max(len(mine), len(theirs)))
        else:
            keys = list(mine) + [k for k in theirs if k not in mine]
        return all(_field_equal(self._get(k), other._get(k)) for k in keys)

    __hash__ = None

    def __repr__(self):
        name = f"{type(self).__name__}{{{_type_name(self._primal)}}}"
        b = self._backing
        if isinstance(b, tuple):
            return f"{name}({', '.join(repr(v) for v in b)})"
        if _is_dict_type(self._primal) or not all(isinstance(k, str) for k in b):
            return f"{name}({b!r})"
        return f"{name}({', '.join(f'{k}={v!r}' for k, v in b.items())})"


class Tangent(StructuralTangent):
    """
    Immutable structural tangent.

    Args:
        primal_type: Type of the primal (None when it is not known)
        *args: Positional entries, for plain-tuple primals; or a single
            dict, for dict primals with non-string keys
        **fields: Field tangents; omitted fields are ZeroTangent()

    Example:
        >>> t = Tangent(Point, x=1.0)
        >>> t.x, t.y
        (1.0, ZeroTangent())
        >>> Tangent(tuple, 1.0, ZeroTangent())[0]
        1.0
    """

    def __init__(self, primal_type=None, *args, **fields):
        if args and fields:
            raise ValueError("Tangent takes positional or keyword fields, not both")
        if len(args) == 1 and isinstance(args[0], dict):
            backing_ = dict(args[0])
        elif args:
            if primal_type is not None and not _is_plain_tuple_type(primal_type):
                raise ValueError(f"Positional fields are only valid for tuples, not {_type_name(primal_type)}")
            backing_ = tuple(args)
        elif _is_plain_tuple_type(primal_type):
            if fields:
                raise ValueError("Tangents of plain tuples take positional entries")
            backing_ = ()
        else:
            backing_ = dict(fields)

        known = _known_fields(primal_type)
        if known is not None:
            unknown = [k for k in backing_ if k not in known]
            if unknown:
                raise ValueError(
                    f"Tangent for {_type_name(primal_type)} has unknown fields {tuple(unknown)}; "
                    f"valid fields are {known}"
                )
        object.__setattr__(self, '_primal', primal_type)
        object.__setattr__(self, '_backing', backing_)

    @classmethod
    def _from_backing(cls, primal_type, backing):
        obj = cls.__new__(cls)
        object.__setattr__(obj, '_primal', primal_type)
        object.__setattr__(obj, '_backing', backing)
        return obj

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        b = self.__dict__.get('_backing')
        if isinstance(b, dict):
            if name in b:
                return unthunk(b[name])
            known = _known_fields(self.__dict__.get('_primal'))
            if known is not None and name in known:
                return ZeroTangent()
        raise AttributeError(f"{type(self).__name__}{{{_type_name(self.__dict__.get('_primal'))}}} has no field {name!r}")

    def __setattr__(self, name, value):
        raise AttributeError("Tangent is immutable, use MutableTangent for in-place updates")


class _Cell:
    """Mutable box holding one field of a MutableTangent."""

    __slots__ = ('value',)

    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"_Cell({self.value!r})"


class MutableTangent(StructuralTangent):
    """
    Structural tangent whose fields can be updated in place.

    Always holds every field of the primal (absent ones start as
    ZeroTangent()). Assigning a MutableTangent to two places aliases it:
    updates through one are seen through the other. Use `copy()` when an
    independent tangent is needed.

    Example:
        >>> t = MutableTangent(Particle, x=1.0)
        >>> t.x = t.x + 2.0
        >>> t.x
        3.0
    """

    def __init__(self, primal_type: type, **fields):
        names = fieldnames(primal_type)
        unknown = [k for k in fields if k not in names]
        if unknown:
            raise ValueError(
                f"MutableTangent for {_type_name(primal_type)} has unknown fields {tuple(unknown)}; "
                f"valid fields are {names}"
            )
        object.__setattr__(self, '_primal', primal_type)
        object.__setattr__(self, '_cells', {n: _Cell(fields.get(n, ZeroTangent())) for n in names})

    @classmethod
    def _from_backing(cls, primal_type, backing):
        if isinstance(backing, tuple):
            raise TypeError("MutableTangent needs named fields")
        return cls(primal_type, **backing)

    @property
    def _backing(self) -> dict:
        return {name: cell.value for name, cell in self._cells.items()}

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        cells = self.__dict__.get('_cells', {})
        if name in cells:
            return unthunk(cells[name].value)
        raise AttributeError(f"MutableTangent{{{_type_name(self.__dict__.get('_primal'))}}} has no field {name!r}")

    def __setattr__(self, name, value):
        cells = self.__dict__.get('_cells', {})
        if name not in cells:
            raise AttributeError(f"MutableTangent{{{_type_name(self._primal)}}} has no field {name!r}")
        cells[name].value = value

    def __setitem__(self, name, value):
        if name not in self._cells:
            raise KeyError(name)
        self._cells[name].value = value

    def copy(self) -> 'MutableTangent':
        """A new MutableTangent with fresh cells holding the same values."""
        return MutableTangent(self._primal, **self._backing)

    def canonicalize(self) -> 'MutableTangent':
        return self


def structural_tangent(primal_type, *args, **fields) -> StructuralTangent:
    """`MutableTangent` for mutable primal types, `Tangent` otherwise."""
    if has_mutable_tangent(primal_type) and not args:
        return MutableTangent(primal_type, **fields)
    return Tangent(primal_type, *args, **fields)


def tangent_from_backing(primal_type, backing, mutable: Optional[bool] = None) -> StructuralTangent:
    """Build a structural tangent directly from a tuple or dict backing."""
    if mutable is None:
        mutable = has_mutable_tangent(primal_type)
    if mutable and isinstance(backing, dict) and primal_type is not None:
        return MutableTangent._from_backing(primal_type, backing)
    return Tangent._from_backing(primal_type, backing)


def canonicalize(tangent: StructuralTangent) -> StructuralTangent:
    """
    Copy of `tangent` holding every field of its primal, in primal order.

    Absent fields are filled with ZeroTangent(). Tangents of plain tuples,
    dicts and unknown primals are returned unchanged.

    Raises:
        ValueError: if the tangent holds a field the primal does not have
    """
    if isinstance(tangent, MutableTangent):
        return tangent
    known = _known_fields(tangent.primal_type)
    if known is None:
        return tangent
    b = tangent._backing
    extra = [k for k in b if k not in known]
    if extra:
        raise ValueError(f"{_type_name(tangent.primal_type)} has no fields {tuple(extra)}")
    return type(tangent)._from_backing(
        tangent.primal_type, {name: b.get(name, ZeroTangent()) for name in known}
    )


# =============================================================================
# Combination helpers used by tangentcore.arithmetic
# =============================================================================

def add_structural(a: StructuralTangent, b: StructuralTangent) -> StructuralTangent:
    """Field-wise sum; fields present on one side pass through unchanged."""
    from ..arithmetic import add

    P = _merge_primal_types(a.primal_type, b.primal_type)
    ba, bb = a._backing, b._backing
    if isinstance(ba, tuple) and isinstance(bb, tuple):
        if len(ba) != len(bb):
            raise ValueError(f"Cannot add tuple tangents of lengths {len(ba)} and {len(bb)}")
        merged = tuple(add(x, y) for x, y in zip(ba, bb))
    elif isinstance(ba, dict) and isinstance(bb, dict):
        merged = dict(ba)
        for key, value in bb.items():
            merged[key] = add(merged[key], value) if key in merged else value
    else:
        raise TypeError("Cannot add a positional tangent to a named tangent")
    mutable = isinstance(a, MutableTangent) or isinstance(b, MutableTangent)
    return tangent_from_backing(P, merged, mutable=mutable)


def dot_structural(a: StructuralTangent, b: StructuralTangent) -> Any:
    """Sum of field-wise inner products over the fields both sides store."""
    from ..arithmetic import add, dot

    _merge_primal_types(a.primal_type, b.primal_type)
    ba, bb = a._backing, b._backing
    if isinstance(ba, tuple) != isinstance(bb, tuple):
        raise TypeError("Cannot take the inner product of a positional and a named tangent")
    keys = range(min(len(ba), len(bb))) if isinstance(ba, tuple) else [k for k in ba if k in bb]
    total = ZeroTangent()
    for key in keys:
        total = add(total, dot(ba[key], bb[key]))
    return total
