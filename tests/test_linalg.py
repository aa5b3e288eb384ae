"""Tests for the SVD least-squares solve."""

import numpy as np
import pytest
from quantopt.linalg import svd_solve, svd_rank


class TestSVDSolve:
    def test_full_rank_matches_direct_solve(self):
        A = np.array([[4.0, 1.0], [1.0, 3.0]])
        b = np.array([1.0, 2.0])
        np.testing.assert_allclose(svd_solve(A, b), np.linalg.solve(A, b), atol=1e-12)

    def test_singular_gives_minimum_norm(self):
        # duplicated column: x0 + x1 = 2 has minimum-norm solution (1, 1)
        A = np.array([[1.0, 1.0], [1.0, 1.0]])
        b = np.array([2.0, 2.0])
        np.testing.assert_allclose(svd_solve(A, b), [1.0, 1.0], atol=1e-12)

    def test_zero_matrix_gives_zero(self):
        x = svd_solve(np.zeros((3, 3)), np.ones(3))
        np.testing.assert_array_equal(x, np.zeros(3))

    def test_overdetermined_least_squares(self):
        rng = np.random.default_rng(0)
        A = rng.normal(size=(20, 3))
        b = rng.normal(size=20)
        expected = np.linalg.lstsq(A, b, rcond=None)[0]
        np.testing.assert_allclose(svd_solve(A, b), expected, atol=1e-10)

    def test_rhs_shape_checked(self):
        with pytest.raises(ValueError):
            svd_solve(np.eye(2), np.ones(3))


class TestSVDRank:
    def test_rank(self):
        assert svd_rank(np.eye(3)) == 3
        assert svd_rank(np.ones((3, 3))) == 1
        assert svd_rank(np.zeros((2, 2))) == 0
