"""Tests for structural tangents."""

from collections import namedtuple
from dataclasses import dataclass

import numpy as np
import pytest

from tangentcore import (
    MutableTangent,
    PrimalReconstructionFailed,
    Tangent,
    Thunk,
    ZeroTangent,
    backing,
    canonicalize,
    construct,
    fieldnames,
    register_construct,
    register_fields,
    structural_tangent,
)
from tangentcore.linalg import Diagonal


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass
class Particle:
    position: float
    velocity: float


Pair = namedtuple('Pair', ['first', 'second'])


class Interval:
    """Primal whose constructor does not take its fields as keywords."""

    __tangent_fields__ = ('lo', 'hi')

    def __init__(self, bounds):
        self.lo, self.hi = bounds


class Polar:
    """Primal declared through register_fields and rebuilt through a hook."""

    def __init__(self, r, theta):
        self.r = r
        self.theta = theta


register_fields(Polar, ('r', 'theta'))


@register_construct(Polar)
def _construct_polar(primal_type, fields):
    return Polar(fields['r'], fields['theta'])


class TestReflection:
    """Tests for field reflection and construction."""

    def test_fieldnames(self):
        """Test every supported way of declaring fields"""
        assert fieldnames(Point) == ('x', 'y')
        assert fieldnames(Pair) == ('first', 'second')
        assert fieldnames(Interval) == ('lo', 'hi')
        assert fieldnames(Polar) == ('r', 'theta')
        assert fieldnames(Diagonal) == ('diag',)

    def test_fieldnames_unknown_type(self):
        """Test undeclared types name register_fields in the error"""
        class Opaque:
            pass

        with pytest.raises(TypeError, match="register_fields"):
            fieldnames(Opaque)

    def test_backing(self):
        """Test backing of tangents, structs, tuples and dicts"""
        assert backing(Tangent(Point, x=1.0)) == {'x': 1.0}
        assert backing(Point(1.0, 2.0)) == {'x': 1.0, 'y': 2.0}
        assert backing(Pair(1, 2)) == {'first': 1, 'second': 2}
        assert backing((1, 2)) == (1, 2)
        d = {'a': 1}
        assert backing(d) is d

    def test_construct(self):
        """Test construct rebuilds each kind of primal"""
        assert construct(Point, {'x': 1.0, 'y': 2.0}) == Point(1.0, 2.0)
        assert construct(Pair, {'second': 2, 'first': 1}) == Pair(1, 2)
        assert construct(tuple, (1, 2)) == (1, 2)
        assert construct(dict, {'a': 1}) == {'a': 1}
        p = construct(Polar, {'r': 1.0, 'theta': 0.5})
        assert (p.r, p.theta) == (1.0, 0.5)

    def test_construct_field_mismatch(self):
        """Test mismatched field sets name both lists"""
        with pytest.raises(ValueError, match="'x', 'y'"):
            construct(Point, {'x': 1.0})


class TestTangent:
    """Tests for the immutable Tangent."""

    def test_field_access(self):
        """Test present fields unthunk and absent declared fields are zero"""
        t = Tangent(Point, x=Thunk(lambda: 3.0))
        assert t.x == 3.0
        assert t.y is ZeroTangent()
        assert t['x'] == 3.0
        assert t['y'] is ZeroTangent()

    def test_unknown_field_rejected(self):
        """Test fields the primal lacks are rejected at construction"""
        with pytest.raises(ValueError, match="unknown fields"):
            Tangent(Point, z=1.0)

    def test_unknown_attribute(self):
        """Test reading a non-field raises AttributeError"""
        with pytest.raises(AttributeError):
            Tangent(Point, x=1.0).z

    def test_immutable(self):
        """Test Tangent rejects attribute assignment"""
        t = Tangent(Point, x=1.0)
        with pytest.raises(AttributeError):
            t.x = 2.0

    def test_tuple_backing(self):
        """Test tangents of plain tuples are positional"""
        t = Tangent(tuple, 1.0, 2.0)
        assert t[0] == 1.0
        assert len(t) == 2
        assert list(t) == [1.0, 2.0]
        assert list(t.keys()) == [0, 1]

    def test_dict_backing(self):
        """Test tangents of dicts iterate as key-value pairs"""
        t = Tangent(dict, {'a': 1.0, 'b': 2.0})
        assert t['a'] == 1.0
        assert dict(iter(t)) == {'a': 1.0, 'b': 2.0}
        with pytest.raises(KeyError):
            t['c']

    def test_any_primal(self):
        """Test Tangent(None, ...) accepts any field names"""
        t = Tangent(None, anything=1.0)
        assert t.anything == 1.0
        assert t.primal_type is None

    def test_map_and_conj(self):
        """Test map applies to every field and conj conjugates"""
        t = Tangent(Point, x=1.0 + 1.0j)
        assert t.map(lambda v: v * 2) == Tangent(Point, x=2.0 + 2.0j)
        assert t.conj() == Tangent(Point, x=1.0 - 1.0j)

    def test_equality_absent_is_zero(self):
        """Test equality treats absent fields as zero"""
        assert Tangent(Point, x=1.0) == Tangent(Point, x=1.0, y=ZeroTangent())
        assert Tangent(Point, x=1.0) == Tangent(Point, x=1.0, y=0.0)
        assert Tangent(Point, x=1.0) != Tangent(Point, x=1.0, y=1.0)
        assert Tangent(Point) == ZeroTangent()

    def test_equality_arrays(self):
        """Test equality compares array fields by value"""
        a = Tangent(Point, x=np.array([1.0, 2.0]))
        b = Tangent(Point, x=np.array([1.0, 2.0]))
        assert a == b

    def test_repr(self):
        """Test repr shows the primal type and fields"""
        assert repr(Tangent(Point, x=1.0)) == "Tangent{Point}(x=1.0)"
        assert repr(Tangent(tuple, 1.0)) == "Tangent{tuple}(1.0)"


class TestMergeAndCanonicalize:
    """Tests for structural addition and canonicalization."""

    def test_merge_keeps_one_sided_fields(self):
        """Test Tangent(a=1) + Tangent(b=2) == Tangent(a=1, b=2)"""
        assert Tangent(Point, x=1.0) + Tangent(Point, y=2.0) == Tangent(Point, x=1.0, y=2.0)

    def test_merge_adds_shared_fields(self):
        """Test fields on both sides are added"""
        t = Tangent(Point, x=1.0, y=1.0) + Tangent(Point, y=2.0)
        assert t.x == 1.0
        assert t.y == 3.0

    def test_merge_tuples_and_dicts(self):
        """Test tuple and dict tangents merge"""
        assert Tangent(tuple, 1.0, 2.0) + Tangent(tuple, 3.0, 4.0) == Tangent(tuple, 4.0, 6.0)
        merged = Tangent(dict, {'a': 1.0}) + Tangent(dict, {'b': 2.0})
        assert merged == Tangent(dict, {'a': 1.0, 'b': 2.0})

    def test_merge_incompatible_primals(self):
        """Test tangents of different primal types do not add"""
        with pytest.raises(TypeError):
            Tangent(Point, x=1.0) + Tangent(Pair, first=1.0)

    def test_canonicalize(self):
        """Test canonicalize fills every field in primal order"""
        t = canonicalize(Tangent(Point, y=2.0))
        assert list(t.keys()) == ['x', 'y']
        assert backing(t) == {'x': ZeroTangent(), 'y': 2.0}
        assert t.canonicalize() == t

    def test_canonicalize_identity_for_tuples(self):
        """Test canonicalize leaves tuple tangents alone"""
        t = Tangent(tuple, 1.0)
        assert canonicalize(t) is t


class TestPrimalAddition:
    """Tests for primal + structural tangent."""

    def test_rebuilds_dataclass(self):
        """Test adding to a dataclass rebuilds it"""
        assert Point(1.0, 1.0) + Tangent(Point, y=2.0) == Point(1.0, 3.0)
        assert Tangent(Point, x=1.0) + Point(1.0, 1.0) == Point(2.0, 1.0)

    def test_subtract_from_primal(self):
        """Test primal - tangent adds the negated tangent"""
        assert Point(1.0, 1.0) - Tangent(Point, x=0.5) == Point(0.5, 1.0)

    def test_namedtuple_tuple_and_dict(self):
        """Test namedtuple, tuple and dict primals"""
        assert Pair(1.0, 2.0) + Tangent(Pair, second=1.0) == Pair(1.0, 3.0)
        assert (1.0, 2.0) + Tangent(tuple, 1.0, ZeroTangent()) == (2.0, 2.0)
        assert {'a': 1.0} + Tangent(dict, {'a': 2.0, 'b': 1.0}) == {'a': 3.0, 'b': 1.0}

    def test_registered_hook(self):
        """Test the register_construct hook is used"""
        p = Polar(1.0, 0.5) + Tangent(Polar, r=1.0)
        assert (p.r, p.theta) == (2.0, 0.5)

    def test_structured_matrix(self):
        """Test structured matrices are rebuilt from their fields"""
        D = Diagonal(np.array([1.0, 2.0])) + Tangent(Diagonal, diag=np.array([1.0, 1.0]))
        assert isinstance(D, Diagonal)
        np.testing.assert_array_equal(D.diag, [2.0, 3.0])

    def test_reconstruction_failure_names_hooks(self):
        """Test a failed reconstruction explains which hook to define"""
        with pytest.raises(PrimalReconstructionFailed) as excinfo:
            Interval((0.0, 1.0)) + Tangent(Interval, hi=1.0)
        message = str(excinfo.value)
        assert "register_construct(Interval)" in message
        assert "Interval.__add__" in message
        assert "Interval(lo=..., hi=...)" in message
        assert isinstance(excinfo.value.__cause__, TypeError)

    def test_wrong_primal_type(self):
        """Test adding a tangent to the wrong primal type fails"""
        with pytest.raises(TypeError):
            Pair(1.0, 2.0) + Tangent(Point, x=1.0)


class TestMutableTangent:
    """Tests for MutableTangent."""

    def test_always_canonical(self):
        """Test every field is present from the start"""
        t = MutableTangent(Particle, position=1.0)
        assert t.position == 1.0
        assert t.velocity is ZeroTangent()
        assert len(t) == 2

    def test_field_assignment(self):
        """Test fields can be updated in place"""
        t = MutableTangent(Particle)
        t.velocity = 2.0
        t['position'] = 1.0
        assert t.velocity == 2.0
        assert t.position == 1.0

    def test_unknown_field(self):
        """Test assigning a non-field raises AttributeError"""
        t = MutableTangent(Particle)
        with pytest.raises(AttributeError):
            t.mass = 1.0

    def test_aliasing(self):
        """Test two references to one MutableTangent share updates"""
        t = MutableTangent(Particle, position=1.0)
        alias = t
        alias.position = 5.0
        assert t.position == 5.0

    def test_copy_breaks_aliasing(self):
        """Test copy makes independent cells"""
        t = MutableTangent(Particle, position=1.0)
        c = t.copy()
        c.position = 5.0
        assert t.position == 1.0
        assert c == Tangent(Particle, position=5.0)

    def test_structural_tangent_factory(self):
        """Test mutable primals get MutableTangent, frozen ones Tangent"""
        assert isinstance(structural_tangent(Particle, position=1.0), MutableTangent)
        assert isinstance(structural_tangent(Point, x=1.0), Tangent)

    def test_addition_keeps_mutability(self):
        """Test adding to a MutableTangent yields a MutableTangent"""
        total = MutableTangent(Particle, position=1.0) + Tangent(Particle, velocity=2.0)
        assert isinstance(total, MutableTangent)
        assert total == Tangent(Particle, position=1.0, velocity=2.0)
        plain = Tangent(Particle, position=1.0) + Tangent(Particle, velocity=2.0)
        assert type(plain) is Tangent

    def test_primal_addition(self):
        """Test a mutable dataclass primal is rebuilt"""
        assert Particle(1.0, 0.0) + MutableTangent(Particle, velocity=1.0) == Particle(1.0, 1.0)
