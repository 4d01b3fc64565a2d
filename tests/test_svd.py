"""
Test the Jacobi eigen-decomposition and the pseudoinverse solver.
"""

import pytest
import numpy as np

from regcore._core.matrix import Matrix
from regcore._core.svd import jacobi_eigen, pseudo_inverse_solve, pseudo_inverse
from regcore.exceptions import DimensionMismatchError


EIG_TOL = 1e-9


class TestJacobiEigen:
    """Symmetric eigen-decomposition by rotations."""

    def test_matches_numpy(self):
        rng = np.random.default_rng(0)
        B = rng.standard_normal((5, 5))
        S = B.T @ B
        values, V = jacobi_eigen(S)
        np.testing.assert_allclose(np.sort(values), np.linalg.eigvalsh(S), rtol=EIG_TOL)

    def test_reconstruction(self):
        S = np.array([[4.0, 1.0, 0.5],
                      [1.0, 3.0, 0.2],
                      [0.5, 0.2, 2.0]])
        values, V = jacobi_eigen(S)
        np.testing.assert_allclose(V @ np.diag(values) @ V.T, S, atol=1e-10)
        np.testing.assert_allclose(V.T @ V, np.eye(3), atol=1e-10)

    def test_input_untouched(self):
        S = np.array([[2.0, 1.0], [1.0, 2.0]])
        jacobi_eigen(S)
        np.testing.assert_array_equal(S, [[2.0, 1.0], [1.0, 2.0]])

    def test_diagonal_input(self):
        values, V = jacobi_eigen(np.diag([3.0, 1.0]))
        np.testing.assert_array_equal(values, [3.0, 1.0])
        np.testing.assert_array_equal(V, np.eye(2))

    def test_non_square(self):
        with pytest.raises(DimensionMismatchError):
            jacobi_eigen(np.ones((2, 3)))


class TestPseudoInverse:
    """Minimum-norm least squares."""

    def test_full_rank_matches_lstsq(self):
        rng = np.random.default_rng(3)
        A = rng.standard_normal((15, 3))
        b = rng.standard_normal(15)
        expected, *_ = np.linalg.lstsq(A, b, rcond=None)
        np.testing.assert_allclose(
            pseudo_inverse_solve(Matrix.from_array(A), b), expected, rtol=1e-8
        )

    def test_rank_deficient_matches_pinv(self):
        x = np.arange(1.0, 7.0)
        A = np.column_stack([np.ones(6), x, 2 * x])
        b = np.array([1.0, 3.0, 2.0, 5.0, 4.0, 6.0])
        np.testing.assert_allclose(
            pseudo_inverse_solve(Matrix.from_array(A), b), np.linalg.pinv(A) @ b,
            atol=1e-8
        )

    def test_zero_matrix(self):
        x = pseudo_inverse_solve(Matrix(4, 2), np.ones(4))
        np.testing.assert_array_equal(x, [0.0, 0.0])

    def test_pseudo_inverse_matrix(self):
        A = np.array([[1.0, 2.0], [2.0, 4.0], [0.0, 0.0]])
        P = pseudo_inverse(Matrix.from_array(A))
        assert P.shape == (2, 3)
        np.testing.assert_allclose(P.to_numpy(), np.linalg.pinv(A), atol=1e-10)

    def test_length_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            pseudo_inverse_solve(Matrix(3, 2), np.ones(2))
