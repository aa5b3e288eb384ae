# basis.py
# Regression basis systems for Longstaff-Schwartz continuation values.
# Each system is a list of scalar callables f_0 .. f_order that broadcast
# over NumPy arrays.

from __future__ import annotations

from enum import Enum
from typing import Callable

import numpy as np
from numpy.polynomial import chebyshev, hermite, laguerre, legendre, polynomial

from .errors import ConfigurationError, UnknownVariantError


__all__ = [
    "PolynomialFamily",
    "path_basis_system",
    "evaluate_basis",
]


class PolynomialFamily(Enum):
    MONOMIAL = "monomial"
    LAGUERRE = "laguerre"
    HERMITE = "hermite"
    LEGENDRE = "legendre"
    CHEBYSHEV = "chebyshev"


_SERIES = {
    PolynomialFamily.MONOMIAL: polynomial.Polynomial,
    PolynomialFamily.LAGUERRE: laguerre.Laguerre,
    PolynomialFamily.HERMITE: hermite.Hermite,
    PolynomialFamily.LEGENDRE: legendre.Legendre,
    PolynomialFamily.CHEBYSHEV: chebyshev.Chebyshev,
}


def _weighted_laguerre(p) -> Callable[[np.ndarray], np.ndarray]:
    def f(x):
        x = np.asarray(x, dtype=float)
        return np.exp(-0.5 * x) * p(x)
    return f


def path_basis_system(
    order: int,
    family: PolynomialFamily | str = PolynomialFamily.MONOMIAL,
) -> list[Callable[[np.ndarray], np.ndarray]]:
    """Return ``order + 1`` one-dimensional basis functions.

    Laguerre functions carry the ``exp(-x/2)`` weight used by
    Longstaff & Schwartz (2001); the other families are plain
    polynomials of increasing degree.

    Parameters
    ----------
    order : int
        Highest polynomial degree (>= 0).
    family : PolynomialFamily or str
        Polynomial family.
    """
    if order < 0:
        raise ConfigurationError(f"order must be non-negative, got {order}")
    try:
        family = PolynomialFamily(family)
    except ValueError:
        raise UnknownVariantError(f"unknown polynomial family: {family!r}") from None

    series = _SERIES[family]
    funcs = [series.basis(k) for k in range(order + 1)]
    if family is PolynomialFamily.LAGUERRE:
        return [_weighted_laguerre(p) for p in funcs]
    return funcs


def evaluate_basis(functions, x) -> np.ndarray:
    """Evaluate every basis function on ``x``.

    Returns
    -------
    np.ndarray, shape (len(x), len(functions))
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    cols = [np.broadcast_to(np.asarray(f(x), dtype=float), x.shape)
            for f in functions]
    return np.column_stack(cols)
