"""Tests for zero-like and not-implemented tangents."""

import copy
import pickle

import numpy as np
import pytest

from tangentcore import (
    NoTangent,
    NotImplementedEvaluated,
    NotImplementedTangent,
    ZeroTangent,
    not_implemented,
)


class TestZeroTangent:
    """Tests for ZeroTangent and NoTangent."""

    def test_singleton(self, zero_like):
        """Test every construction returns the same instance"""
        assert type(zero_like)() is zero_like
        assert copy.copy(zero_like) is zero_like
        assert copy.deepcopy(zero_like) is zero_like
        assert pickle.loads(pickle.dumps(zero_like)) is zero_like

    def test_distinct_kinds(self):
        """Test ZeroTangent and NoTangent are different singletons"""
        assert ZeroTangent() is not NoTangent()

    def test_falsy(self, zero_like):
        """Test zeros are falsy"""
        assert not zero_like

    def test_iterates_as_itself(self, zero_like):
        """Test iteration yields the zero once"""
        assert list(zero_like) == [zero_like]

    def test_linear_maps_return_self(self, zero_like):
        """Test indexing, conj, transpose and friends return the zero"""
        assert zero_like[3] is zero_like
        assert zero_like['a'] is zero_like
        assert zero_like.conj() is zero_like
        assert zero_like.T is zero_like
        assert zero_like.transpose() is zero_like
        assert zero_like.adjoint() is zero_like
        assert zero_like.real is zero_like
        assert zero_like.imag is zero_like
        assert zero_like.reshape(2, 3) is zero_like
        assert zero_like.sum() is zero_like

    def test_numeric_conversion(self, zero_like):
        """Test conversion to numbers gives zero"""
        assert float(zero_like) == 0.0
        assert int(zero_like) == 0
        assert complex(zero_like) == 0j

    def test_zero_method(self, zero_like):
        """Test zero() gives ZeroTangent"""
        assert zero_like.zero() is ZeroTangent()

    def test_repr(self):
        """Test repr names the kind"""
        assert repr(ZeroTangent()) == "ZeroTangent()"
        assert repr(NoTangent()) == "NoTangent()"

    def test_numpy_on_the_left(self):
        """Test numpy arrays defer to the tangent's reflected operators"""
        x = np.arange(3.0)
        assert (x + ZeroTangent()) is x
        assert (x * ZeroTangent()) is ZeroTangent()
        assert (np.float64(2.0) * ZeroTangent()) is ZeroTangent()


class TestNotImplementedTangent:
    """Tests for NotImplementedTangent."""

    def test_captures_call_site(self):
        """Test not_implemented records the calling module and line"""
        t = not_implemented("missing rule")
        assert t.module == __name__
        assert "test_zero.py:" in t.source
        assert t.info == "missing rule"

    def test_error_carries_origin(self):
        """Test evaluating it raises with module, source and info"""
        t = NotImplementedTangent("mymodule", "file.py:12", "todo")
        with pytest.raises(NotImplementedEvaluated) as excinfo:
            float(t)
        assert excinfo.value.module == "mymodule"
        assert excinfo.value.source == "file.py:12"
        assert excinfo.value.info == "todo"
        assert "file.py:12" in str(excinfo.value)

    @pytest.mark.parametrize('operation', [
        iter,
        len,
        bool,
        float,
        int,
        complex,
        np.asarray,
        lambda t: t[0],
        lambda t: t.conj(),
        lambda t: t.T,
        lambda t: t.transpose(),
        lambda t: t.adjoint(),
        lambda t: t.zero(),
    ])
    def test_evaluation_raises(self, operation):
        """Test every evaluating operation raises NotImplementedEvaluated"""
        t = not_implemented()
        with pytest.raises(NotImplementedEvaluated):
            operation(t)

    def test_is_a_not_implemented_error(self):
        """Test the error is catchable as NotImplementedError"""
        with pytest.raises(NotImplementedError):
            bool(not_implemented())

    def test_negation_passes_through(self):
        """Test unary minus returns the marker"""
        t = not_implemented()
        assert -t is t

    def test_equality(self):
        """Test equality compares origin and info"""
        a = NotImplementedTangent("m", "f.py:1", "x")
        b = NotImplementedTangent("m", "f.py:1", "x")
        c = NotImplementedTangent("m", "f.py:2", "x")
        assert a == b
        assert hash(a) == hash(b)
        assert a != c
