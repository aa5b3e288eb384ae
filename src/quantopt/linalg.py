# linalg.py
# SVD-based least-squares solve, tolerant of rank-deficient systems.

from __future__ import annotations

import numpy as np
from scipy import linalg


__all__ = ["svd_solve", "svd_rank"]


def _threshold(s: np.ndarray, shape: tuple[int, int]) -> float:
    if s.size == 0:
        return 0.0
    return max(shape) * float(s[0]) * np.finfo(float).eps


def svd_solve(A, b) -> np.ndarray:
    """Minimum-norm least-squares solution of ``A x = b``.

    Singular values below ``max(m, n) * s_max * eps`` are treated as zero,
    so singular or near-singular ``A`` yields the pseudo-inverse solution
    instead of an error.

    Parameters
    ----------
    A : array-like, shape (m, n)
    b : array-like, shape (m,)

    Returns
    -------
    np.ndarray, shape (n,)
    """
    A = np.atleast_2d(np.asarray(A, dtype=float))
    b = np.asarray(b, dtype=float)
    if b.shape != (A.shape[0],):
        raise ValueError(
            f"rhs has shape {b.shape}, expected ({A.shape[0]},)"
        )

    U, s, Vt = linalg.svd(A, full_matrices=False)
    keep = s > _threshold(s, A.shape)
    # x = V diag(1/s) U^T b over the retained singular triplets
    coeffs = (U[:, keep].T @ b) / s[keep]
    return Vt[keep].T @ coeffs


def svd_rank(A) -> int:
    """Numerical rank with the same cut-off as :func:`svd_solve`."""
    A = np.atleast_2d(np.asarray(A, dtype=float))
    s = linalg.svd(A, compute_uv=False)
    return int(np.sum(s > _threshold(s, A.shape)))
