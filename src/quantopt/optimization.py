"""Optimization problem plumbing shared by the optimizers.

A :class:`Problem` bundles a cost function, a :class:`Constraint` and the
current point.  :class:`EndCriteria` decides when an iterative optimizer
stops and reports why through :class:`EndCriteriaType`.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

from .errors import ConfigurationError

__all__ = [
    "Constraint",
    "NoConstraint",
    "PositiveConstraint",
    "BoundaryConstraint",
    "NonhomogeneousBoundaryConstraint",
    "Problem",
    "EndCriteriaType",
    "EndCriteriaState",
    "EndCriteria",
]

_MAX = sys.float_info.max


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------
class Constraint:
    """Base constraint: every point is admissible, bounds are +/- max float."""

    def test(self, params: np.ndarray) -> bool:
        return True

    def upper_bound(self, params: np.ndarray) -> np.ndarray:
        return np.full(np.shape(params), _MAX)

    def lower_bound(self, params: np.ndarray) -> np.ndarray:
        return np.full(np.shape(params), -_MAX)

    def update(self, params, direction, beta: float,
               max_halvings: int = 200) -> tuple[np.ndarray, float]:
        """Move ``params`` along ``direction``, halving ``beta`` until admissible.

        Returns
        -------
        (new_params, step)
            The admissible point and the step actually taken.
        """
        params = np.asarray(params, dtype=float)
        direction = np.asarray(direction, dtype=float)
        step = beta
        for _ in range(max_halvings + 1):
            candidate = params + step * direction
            if self.test(candidate):
                return candidate, step
            step *= 0.5
        raise ValueError("can't update parameter vector")


class NoConstraint(Constraint):
    pass


class PositiveConstraint(Constraint):
    def test(self, params):
        return bool(np.all(np.asarray(params) > 0.0))

    def lower_bound(self, params):
        return np.zeros(np.shape(params))


class BoundaryConstraint(Constraint):
    """Same ``[low, high]`` box on every coordinate."""

    def __init__(self, low: float, high: float):
        if low > high:
            raise ConfigurationError(f"low ({low}) must not exceed high ({high})")
        self.low, self.high = float(low), float(high)

    def test(self, params):
        p = np.asarray(params)
        return bool(np.all((p >= self.low) & (p <= self.high)))

    def upper_bound(self, params):
        return np.full(np.shape(params), self.high)

    def lower_bound(self, params):
        return np.full(np.shape(params), self.low)


class NonhomogeneousBoundaryConstraint(Constraint):
    """Coordinate-wise box ``low[i] <= x[i] <= high[i]``."""

    def __init__(self, low, high):
        low = np.asarray(low, dtype=float)
        high = np.asarray(high, dtype=float)
        if low.shape != high.shape:
            raise ConfigurationError(
                f"bound shapes differ: {low.shape} vs {high.shape}"
            )
        if np.any(low > high):
            raise ConfigurationError("every low bound must not exceed its high bound")
        self.low, self.high = low, high

    def _check(self, params):
        if np.shape(params) != self.low.shape:
            raise ConfigurationError(
                f"params shape {np.shape(params)} does not match bounds {self.low.shape}"
            )

    def test(self, params):
        self._check(params)
        p = np.asarray(params)
        return bool(np.all((p >= self.low) & (p <= self.high)))

    def upper_bound(self, params):
        self._check(params)
        return self.high.copy()

    def lower_bound(self, params):
        self._check(params)
        return self.low.copy()


# ---------------------------------------------------------------------------
# Problem
# ---------------------------------------------------------------------------
class Problem:
    """Cost function + constraint + current point.

    Parameters
    ----------
    cost_function : callable
        ``cost_function(x: np.ndarray) -> float``; may raise.
    constraint : Constraint
    initial_value : array-like
        Starting point; also fixes the problem dimension.
    """

    def __init__(self, cost_function: Callable[[np.ndarray], float],
                 constraint: Constraint, initial_value):
        self.cost_function = cost_function
        self.constraint = constraint
        self.current_value = np.array(initial_value, dtype=float)
        if self.current_value.ndim != 1 or self.current_value.size == 0:
            raise ConfigurationError(
                f"initial value must be a non-empty vector, got shape "
                f"{self.current_value.shape}"
            )
        self.function_value: Optional[float] = None
        self.function_evaluation = 0

    def value(self, x) -> float:
        """Evaluate the cost function, counting the call."""
        self.function_evaluation += 1
        return self.cost_function(np.asarray(x, dtype=float))

    def set_current_value(self, x) -> None:
        self.current_value = np.array(x, dtype=float)

    def set_function_value(self, f: float) -> None:
        self.function_value = float(f)

    def reset(self) -> None:
        self.function_evaluation = 0
        self.function_value = None


# ---------------------------------------------------------------------------
# End criteria
# ---------------------------------------------------------------------------
class EndCriteriaType(Enum):
    NONE = "none"
    MAX_ITERATIONS = "max_iterations"
    STATIONARY_POINT = "stationary_point"
    STATIONARY_FUNCTION_VALUE = "stationary_function_value"
    STATIONARY_FUNCTION_ACCURACY = "stationary_function_accuracy"
    ZERO_GRADIENT_NORM = "zero_gradient_norm"
    UNKNOWN = "unknown"


@dataclass
class EndCriteriaState:
    """Mutable bookkeeping owned by one optimizer run."""
    stationary_iterations: int = 0
    type: EndCriteriaType = EndCriteriaType.NONE


@dataclass(frozen=True)
class EndCriteria:
    """Stopping rules for iterative optimizers.

    Parameters
    ----------
    max_iterations : int
        Hard cap on iterations (generations).
    max_stationary_state_iterations : int, optional
        Consecutive stationary iterations tolerated before stopping.
        Defaults to ``min(max_iterations // 2, 100)``.
    root_epsilon : float
        Threshold on parameter changes.
    function_epsilon : float
        Threshold on cost changes (and on the cost itself for accuracy checks).
    gradient_norm_epsilon : float, optional
        Defaults to ``function_epsilon``.
    """
    max_iterations: int
    max_stationary_state_iterations: Optional[int] = None
    root_epsilon: float = 1e-8
    function_epsilon: float = 1e-9
    gradient_norm_epsilon: Optional[float] = None

    def __post_init__(self):
        if self.max_iterations <= 0:
            raise ConfigurationError(
                f"max_iterations ({self.max_iterations}) must be positive"
            )
        if self.max_stationary_state_iterations is None:
            object.__setattr__(self, "max_stationary_state_iterations",
                               min(self.max_iterations // 2, 100))
        if self.max_stationary_state_iterations <= 1:
            raise ConfigurationError(
                f"max_stationary_state_iterations "
                f"({self.max_stationary_state_iterations}) must be greater than one"
            )
        if self.max_stationary_state_iterations >= self.max_iterations:
            raise ConfigurationError(
                f"max_stationary_state_iterations "
                f"({self.max_stationary_state_iterations}) must be less than "
                f"max_iterations ({self.max_iterations})"
            )
        if self.gradient_norm_epsilon is None:
            object.__setattr__(self, "gradient_norm_epsilon", self.function_epsilon)

    def check_max_iterations(self, iteration: int,
                             state: EndCriteriaState) -> bool:
        if iteration < self.max_iterations:
            return False
        state.type = EndCriteriaType.MAX_ITERATIONS
        return True

    def _check_stationary(self, old: float, new: float, eps: float,
                          state: EndCriteriaState,
                          kind: EndCriteriaType) -> bool:
        if abs(new - old) >= eps:
            state.stationary_iterations = 0
            return False
        state.stationary_iterations += 1
        if state.stationary_iterations <= self.max_stationary_state_iterations:
            return False
        state.type = kind
        return True

    def check_stationary_point(self, x_old: float, x_new: float,
                               state: EndCriteriaState) -> bool:
        return self._check_stationary(x_old, x_new, self.root_epsilon, state,
                                      EndCriteriaType.STATIONARY_POINT)

    def check_stationary_function_value(self, fx_old: float, fx_new: float,
                                        state: EndCriteriaState) -> bool:
        return self._check_stationary(fx_old, fx_new, self.function_epsilon,
                                      state,
                                      EndCriteriaType.STATIONARY_FUNCTION_VALUE)

    def check_stationary_function_accuracy(self, f: float,
                                           positive_optimization: bool,
                                           state: EndCriteriaState) -> bool:
        if not positive_optimization or f >= self.function_epsilon:
            return False
        state.type = EndCriteriaType.STATIONARY_FUNCTION_ACCURACY
        return True

    def check_zero_gradient_norm(self, gradient_norm: float,
                                 state: EndCriteriaState) -> bool:
        if gradient_norm >= self.gradient_norm_epsilon:
            return False
        state.type = EndCriteriaType.ZERO_GRADIENT_NORM
        return True
