"""Generic Longstaff-Schwartz least-squares regression.

The simulation grid is a list of layers, one list of :class:`NodeData` per
layer, one node per path:

* ``grid[0][j]``      cash flows of path ``j`` before the first exercise date
  (only ``cumulated_cash_flows`` is used);
* ``grid[i + 1][j]``  path ``j`` at the ``i``-th exercise date.

All cash flows and exercise values are expected to be deflated to a common
date by the caller.  With ``n`` exercise dates the grid has ``n + 1``
layers and the regression yields ``n`` coefficient vectors.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional, Sequence

import numpy as np

from .core import NodeData
from .errors import InsufficientDataError
from .linalg import svd_solve
from .statistics import GeneralStatistics, SequenceStatistics

logger = logging.getLogger(__name__)

__all__ = [
    "LongstaffSchwartzResult",
    "longstaff_schwartz_regression",
    "apply_exercise_strategy",
    "simulation_data_from_paths",
]


class LongstaffSchwartzResult(NamedTuple):
    """Regression output; unpacks as ``coefficients, estimate``.

    ``coefficients[i]`` belongs to the ``i``-th exercise date, i.e. to
    layer ``i + 1`` of the grid it was fitted on.
    """
    coefficients: list[np.ndarray]
    estimate: float

    def continuation_value(self, exercise_index: int, values,
                           control_value: float = 0.0) -> float:
        """Regression estimate of the continuation value at an exercise date."""
        alpha = self.coefficients[exercise_index]
        return float(np.dot(np.asarray(values, dtype=float), alpha) + control_value)

    def should_exercise(self, exercise_index: int, node: NodeData) -> bool:
        return _exercises(node, self.coefficients[exercise_index])


def _exercises(node: NodeData, alpha: np.ndarray) -> bool:
    estimated = float(np.dot(node.values, alpha)) + node.control_value
    return estimated <= node.exercise_value


def _check_grid(simulation_data: Sequence[Sequence[NodeData]]) -> int:
    if len(simulation_data) == 0:
        raise InsufficientDataError("simulation data has no layers")
    n_paths = len(simulation_data[0])
    for i, layer in enumerate(simulation_data):
        if len(layer) != n_paths:
            raise ValueError(
                f"layer {i} has {len(layer)} paths, layer 0 has {n_paths}"
            )
    return n_paths


def longstaff_schwartz_regression(
    simulation_data: list[list[NodeData]],
) -> LongstaffSchwartzResult:
    """Backward-induction regression over a simulation grid.

    For each exercise layer, from the last to the first, the deflated
    continuation cash flows (less the control value) of the valid paths are
    regressed on the basis-function values.  A valid path exercises when the
    estimated continuation value does not exceed its exercise value; the
    chosen amount is added to the same path's cash flows in the previous
    layer.  Invalid nodes are skipped.

    ``simulation_data`` is modified in place: after the call
    ``simulation_data[0][j].cumulated_cash_flows`` holds the value of path
    ``j``.

    Returns
    -------
    LongstaffSchwartzResult
        ``(coefficients, estimate)`` where ``estimate`` is the mean of the
        layer-0 cash flows.  The estimate is biased high because the same
        paths fit and apply the exercise rule.

    Raises
    ------
    InsufficientDataError
        If a layer has fewer than two valid paths.
    """
    _check_grid(simulation_data)
    steps = len(simulation_data)
    coefficients: list[Optional[np.ndarray]] = [None] * (steps - 1)

    for i in range(steps - 1, 0, -1):
        layer = simulation_data[i]
        valid = [node for node in layer if node.is_valid]
        if not valid:
            raise InsufficientDataError(
                f"exercise date {i - 1} (layer {i}) has no valid paths"
            )

        # 1) moments of the basis values and the deflated cash flows
        N = valid[0].values.size
        stats = SequenceStatistics(N + 1)
        sample = np.empty(N + 1)
        for node in valid:
            sample[:N] = node.values
            sample[N] = node.cumulated_cash_flows - node.control_value
            stats.add(sample)

        means = stats.mean()
        covariance = stats.covariance()
        C = covariance[:N, :N] + np.outer(means[:N], means[:N])
        target = covariance[:N, N] + means[:N] * means[N]

        # 2) least-squares coefficients
        alpha = svd_solve(C, target)
        coefficients[i - 1] = alpha
        logger.debug("layer %d: %d valid paths, coefficients %s",
                     i, len(valid), alpha)

        # 3) roll exercise or continuation value into the previous layer
        previous = simulation_data[i - 1]
        for j, node in enumerate(layer):
            if not node.is_valid:
                continue
            if _exercises(node, alpha):
                value = node.exercise_value
            else:
                value = node.cumulated_cash_flows
            previous[j].cumulated_cash_flows += value

    estimate = GeneralStatistics()
    estimate.add_sequence(node.cumulated_cash_flows for node in simulation_data[0])
    result = LongstaffSchwartzResult(coefficients, estimate.mean())
    logger.info("Longstaff-Schwartz estimate %.6g over %d paths, %d exercise dates",
                result.estimate, estimate.samples(), steps - 1)
    return result


def apply_exercise_strategy(
    simulation_data: Sequence[Sequence[NodeData]],
    coefficients: Sequence[np.ndarray],
) -> float:
    """Value an independent grid with previously fitted coefficients.

    Each path collects its layer-0 cash flows, then walks forward through the
    exercise dates: it stops at the first date where the fitted rule says
    exercise (collecting the exercise value) and otherwise collects that
    date's cash flows.  An invalid node ends the path.  The grid is not
    modified.

    Returns
    -------
    float
        Mean path value; biased low, since the rule is sub-optimal on fresh
        paths.
    """
    _check_grid(simulation_data)
    steps = len(simulation_data)
    if len(coefficients) != steps - 1:
        raise ValueError(
            f"{len(coefficients)} coefficient vectors for {steps - 1} exercise dates"
        )

    stats = GeneralStatistics()
    for j in range(len(simulation_data[0])):
        value = simulation_data[0][j].cumulated_cash_flows
        for i in range(1, steps):
            node = simulation_data[i][j]
            if not node.is_valid:
                break
            if _exercises(node, np.asarray(coefficients[i - 1])):
                value += node.exercise_value
                break
            value += node.cumulated_cash_flows
        stats.add(value)
    return stats.mean()


def simulation_data_from_paths(
    basis_values,
    exercise_values,
    discount_factors,
    *,
    cash_flows=None,
    control_values=None,
    alive=None,
) -> list[list[NodeData]]:
    """Assemble a simulation grid from per-date arrays.

    Parameters
    ----------
    basis_values : array, shape (n_exercises, n_paths, n_basis)
        Regressors at each exercise date.
    exercise_values : array, shape (n_exercises, n_paths)
        Undiscounted exercise payoffs.
    discount_factors : array, shape (n_exercises,)
        Deflator from each exercise date to the valuation date.
    cash_flows : array, shape (n_exercises + 1, n_paths), optional
        Already deflated non-exercise cash flows; row 0 accrues before the
        first exercise date, row ``i + 1`` between dates ``i`` and ``i + 1``.
        Defaults to zero.
    control_values : array, shape (n_exercises, n_paths), optional
        Deflated control-variate values.  Defaults to zero.
    alive : bool array, shape (n_exercises, n_paths), optional
        False where the path has terminated.  Defaults to all True.

    Returns
    -------
    list[list[NodeData]]
        ``n_exercises + 1`` layers of ``n_paths`` nodes.
    """
    basis = np.asarray(basis_values, dtype=float)
    if basis.ndim != 3:
        raise ValueError(
            f"basis_values must have shape (n_exercises, n_paths, n_basis), "
            f"got {basis.shape}"
        )
    n_ex, n_paths, _ = basis.shape
    df = np.asarray(discount_factors, dtype=float)
    ex = np.asarray(exercise_values, dtype=float) * df[:, np.newaxis]
    if ex.shape != (n_ex, n_paths):
        raise ValueError(
            f"exercise_values shape {ex.shape} does not match ({n_ex}, {n_paths})"
        )

    cf = (np.zeros((n_ex + 1, n_paths)) if cash_flows is None
          else np.asarray(cash_flows, dtype=float))
    ctrl = (np.zeros((n_ex, n_paths)) if control_values is None
            else np.asarray(control_values, dtype=float))
    live = (np.ones((n_ex, n_paths), dtype=bool) if alive is None
            else np.asarray(alive, dtype=bool))
    if cf.shape != (n_ex + 1, n_paths):
        raise ValueError(f"cash_flows shape {cf.shape} != ({n_ex + 1}, {n_paths})")
    if ctrl.shape != (n_ex, n_paths) or live.shape != (n_ex, n_paths):
        raise ValueError("control_values and alive must have shape (n_exercises, n_paths)")

    grid = [[NodeData(cumulated_cash_flows=cf[0, j]) for j in range(n_paths)]]
    for i in range(n_ex):
        grid.append([
            NodeData(values=basis[i, j],
                     cumulated_cash_flows=cf[i + 1, j],
                     control_value=ctrl[i, j],
                     exercise_value=ex[i, j],
                     is_valid=bool(live[i, j]))
            for j in range(n_paths)
        ])
    return grid
