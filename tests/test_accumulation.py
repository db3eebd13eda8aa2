"""Tests for in-place accumulation."""

from dataclasses import dataclass

import numpy as np
import pytest
import scipy.sparse as sp
import torch

from tangentcore import (
    BadInplaceError,
    DimensionMismatch,
    InplaceableThunk,
    MutableTangent,
    NoTangent,
    Tangent,
    Thunk,
    ZeroTangent,
    add_into,
    config,
    is_inplaceable_destination,
    not_implemented,
)
from tangentcore.linalg import Diagonal, Symmetric, UpperTriangular


@dataclass
class Particle:
    position: float
    velocity: float


def _add_ones(dx):
    dx += 1.0
    return dx


class TestDestinationPredicate:
    """Tests for is_inplaceable_destination."""

    def test_arrays(self):
        """Test writeable float arrays are destinations, others are not"""
        assert is_inplaceable_destination(np.zeros(3))
        assert is_inplaceable_destination(np.zeros(3, dtype=complex))
        assert not is_inplaceable_destination(np.zeros(3, dtype=int))
        frozen = np.zeros(3)
        frozen.flags.writeable = False
        assert not is_inplaceable_destination(frozen)
        assert not is_inplaceable_destination(np.asmatrix(np.zeros((2, 2))))

    def test_scalars_and_tuples(self):
        """Test immutable values are never destinations"""
        assert not is_inplaceable_destination(1.0)
        assert not is_inplaceable_destination((1.0, 2.0))
        assert not is_inplaceable_destination(ZeroTangent())

    def test_tensors(self):
        """Test plain float tensors are destinations, leaves requiring grad are not"""
        assert is_inplaceable_destination(torch.zeros(3))
        assert not is_inplaceable_destination(torch.zeros(3, requires_grad=True))
        assert not is_inplaceable_destination(torch.zeros(3, dtype=torch.int64))
        assert not is_inplaceable_destination(torch.zeros(3, 4).T)

    def test_sparse(self):
        """Test CSR and CSC storage are destinations"""
        assert is_inplaceable_destination(sp.csr_matrix(np.eye(2)))
        assert is_inplaceable_destination(sp.csc_array(np.eye(2)))
        assert not is_inplaceable_destination(sp.coo_matrix(np.eye(2)))

    def test_structured(self):
        """Test wrappers delegate to their parent except symmetric ones"""
        assert is_inplaceable_destination(Diagonal(np.ones(2)))
        assert is_inplaceable_destination(UpperTriangular(np.ones((2, 2))))
        assert not is_inplaceable_destination(Symmetric(np.ones((2, 2))))

    def test_extensible(self):
        """Test new buffer types can be registered"""
        class Buffer:
            pass

        assert not is_inplaceable_destination(Buffer())
        is_inplaceable_destination.register(Buffer)(lambda x: True)
        assert is_inplaceable_destination(Buffer())


class TestAddInto:
    """Tests for add_into."""

    def test_array_in_place(self):
        """Test arrays are accumulated in place"""
        x = np.zeros(3)
        result = add_into(x, np.ones(3))
        assert result is x
        np.testing.assert_array_equal(x, np.ones(3))

    def test_immutable_out_of_place(self):
        """Test read-only destinations get a new value"""
        x = np.zeros(3)
        x.flags.writeable = False
        result = add_into(x, np.ones(3))
        assert result is not x
        np.testing.assert_array_equal(result, np.ones(3))
        assert add_into(1.0, 2.0) == 3.0

    def test_zeros_return_destination(self):
        """Test adding a zero-like returns x unchanged"""
        x = np.ones(2)
        assert add_into(x, ZeroTangent()) is x
        assert add_into(x, NoTangent()) is x

    def test_zero_accumulator(self):
        """Test accumulating into ZeroTangent returns the tangent"""
        y = np.ones(2)
        assert add_into(ZeroTangent(), y) is y

    def test_not_implemented_passes_through(self):
        """Test NotImplemented wins the sum"""
        ni = not_implemented()
        assert add_into(np.ones(2), ni) is ni

    def test_thunk_is_forced(self):
        """Test plain thunks are forced and added"""
        x = np.zeros(2)
        assert add_into(x, Thunk(lambda: np.ones(2))) is x
        np.testing.assert_array_equal(x, [1.0, 1.0])

    def test_inplaceable_thunk_uses_add(self):
        """Test InplaceableThunk's add_ is used for mutable destinations"""
        x = np.zeros(2)
        ithunk = InplaceableThunk(lambda: pytest.fail("val should not run"), _add_ones)
        assert add_into(x, ithunk) is x
        np.testing.assert_array_equal(x, [1.0, 1.0])

    def test_inplaceable_thunk_falls_back(self):
        """Test InplaceableThunk uses val for immutable destinations"""
        ithunk = InplaceableThunk(lambda: 2.0, lambda dx: pytest.fail("add_ should not run"))
        assert add_into(1.0, ithunk) == 3.0

    def test_shape_mismatch(self):
        """Test dense shapes must match exactly"""
        with pytest.raises(DimensionMismatch):
            add_into(np.zeros(3), np.ones(4))

    def test_structured_candidate_densified(self):
        """Test structured updates are densified into dense destinations"""
        x = np.zeros((2, 2))
        add_into(x, Diagonal(np.array([1.0, 2.0])))
        np.testing.assert_array_equal(x, [[1.0, 0.0], [0.0, 2.0]])

    def test_complex_into_real(self):
        """Test an update that does not fit the dtype goes out of place"""
        x = np.zeros(2)
        result = add_into(x, np.array([1j, 1j]))
        assert result is not x
        np.testing.assert_array_equal(x, [0.0, 0.0])

    def test_tensor(self):
        """Test tensors are accumulated with add_"""
        x = torch.zeros(3)
        assert add_into(x, torch.ones(3)) is x
        assert torch.equal(x, torch.ones(3))

    def test_tensor_requiring_grad(self):
        """Test tensors that require grad are never mutated"""
        x = torch.zeros(3, requires_grad=True)
        result = add_into(x, torch.ones(3))
        assert result is not x
        assert torch.equal(x.detach(), torch.zeros(3))

    def test_sparse_same_pattern(self):
        """Test sparse matrices with equal patterns add their data in place"""
        x = sp.csr_matrix(np.eye(3))
        y = sp.csr_matrix(2 * np.eye(3))
        assert add_into(x, y) is x
        np.testing.assert_array_equal(x.toarray(), 3 * np.eye(3))

    def test_sparse_different_pattern(self):
        """Test sparse matrices with different patterns add out of place"""
        x = sp.csr_matrix(np.eye(2))
        y = sp.csr_matrix(np.array([[0.0, 1.0], [0.0, 0.0]]))
        result = add_into(x, y)
        assert result is not x
        np.testing.assert_array_equal(result.toarray(), [[1.0, 1.0], [0.0, 1.0]])

    def test_structured_destination(self):
        """Test same-structure matrices accumulate into the parent storage"""
        x = Diagonal(np.zeros(2))
        parent = x.diag
        assert add_into(x, Diagonal(np.array([1.0, 2.0]))) is x
        assert x.diag is parent
        np.testing.assert_array_equal(parent, [1.0, 2.0])

    def test_symmetric_out_of_place(self):
        """Test symmetric matrices are never mutated"""
        x = Symmetric(np.zeros((2, 2)))
        result = add_into(x, Symmetric(np.ones((2, 2))))
        assert result is not x
        np.testing.assert_array_equal(np.asarray(result), np.ones((2, 2)))

    def test_mutable_tangent(self):
        """Test MutableTangent accumulates field by field"""
        x = MutableTangent(Particle, position=np.zeros(2))
        cell_value = x.position
        result = add_into(x, Tangent(Particle, position=np.ones(2), velocity=1.0))
        assert result is x
        assert x.position is cell_value
        np.testing.assert_array_equal(x.position, [1.0, 1.0])
        assert x.velocity == 1.0


class TestDebugMode:
    """Tests for the extra checks of debug mode."""

    def test_bad_inplace_function(self):
        """Test add_ returning a new value is caught"""
        ithunk = InplaceableThunk(lambda: np.ones(2), lambda dx: dx + 1.0)
        with config.debug():
            with pytest.raises(BadInplaceError):
                add_into(np.zeros(2), ithunk)

    def test_bad_inplace_unnoticed_without_debug(self):
        """Test the returned value is trusted outside debug mode"""
        ithunk = InplaceableThunk(lambda: np.ones(2), lambda dx: dx + 1.0)
        result = add_into(np.zeros(2), ithunk)
        np.testing.assert_array_equal(result, [1.0, 1.0])

    def test_poisons_destination(self):
        """Test debug mode returns a fresh sum and poisons the destination"""
        x = np.zeros(2)
        with config.debug():
            result = add_into(x, np.ones(2))
        assert result is not x
        np.testing.assert_array_equal(result, [1.0, 1.0])
        assert np.all(np.isnan(x))
