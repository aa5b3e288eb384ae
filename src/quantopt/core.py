# core.py
# Data shared by the regression and the optimizers: simulation-grid nodes,
# optimizer candidates and fault-tolerant cost evaluation.

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)

__all__ = [
    "WORST_COST",
    "NodeData",
    "Candidate",
    "CostResult",
    "evaluate_cost",
]

#: Cost assigned to a candidate whose cost function failed.
WORST_COST = sys.float_info.max


# ---------------------------------------------------------------------------
# Monte-Carlo regression data model
# ---------------------------------------------------------------------------
@dataclass
class NodeData:
    """State of one simulated path at one exercise date.

    Parameters
    ----------
    values : np.ndarray
        Basis-function evaluations at this node (the regressors).
    cumulated_cash_flows : float
        Deflated cash flows accumulated from later exercise dates.
    control_value : float
        Control-variate value; zero when no control variate is used.
    exercise_value : float
        Deflated payoff received if the path exercises here.
    is_valid : bool
        False once the path has terminated (or is excluded from regression).
    """
    values: np.ndarray = field(default_factory=lambda: np.zeros(0))
    cumulated_cash_flows: float = 0.0
    control_value: float = 0.0
    exercise_value: float = 0.0
    is_valid: bool = True

    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=float)
        if self.values.ndim != 1:
            raise ValueError(
                f"values must be one-dimensional, got shape {self.values.shape}"
            )


# ---------------------------------------------------------------------------
# Optimizer data model
# ---------------------------------------------------------------------------
@dataclass
class Candidate:
    """A point in parameter space together with its cost."""
    values: np.ndarray
    cost: float = 0.0

    def __post_init__(self):
        self.values = np.array(self.values, dtype=float)

    def copy(self) -> "Candidate":
        return Candidate(self.values.copy(), self.cost)


@dataclass(frozen=True)
class CostResult:
    """Outcome of one cost-function evaluation.

    ``ok`` is False when the function raised or returned a non-finite
    number; ``error`` then carries the exception (if any).
    """
    ok: bool
    value: float
    error: Optional[BaseException] = None

    def or_worst(self) -> float:
        """Cost to rank the candidate with: the value, or ``WORST_COST``."""
        return self.value if self.ok else WORST_COST


def evaluate_cost(cost_function: Callable[[np.ndarray], float],
                  x: np.ndarray) -> CostResult:
    """Evaluate ``cost_function(x)`` and capture failure as a ``CostResult``."""
    try:
        value = float(cost_function(x))
    except Exception as exc:
        logger.debug("cost function failed at %s: %r", x, exc)
        return CostResult(ok=False, value=math.nan, error=exc)
    if math.isnan(value):
        logger.debug("cost function returned NaN at %s", x)
        return CostResult(ok=False, value=value)
    return CostResult(ok=True, value=value)
