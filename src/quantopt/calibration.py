# calibration.py
# Calibration helpers: liquid instruments quoted in volatility whose model
# prices are matched by an optimizer.

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np
from scipy.optimize import brentq

from .differential_evolution import Configuration, DifferentialEvolution
from .errors import UnknownVariantError
from .optimization import Constraint, EndCriteria, EndCriteriaType, Problem

logger = logging.getLogger(__name__)

__all__ = [
    "CalibrationErrorType",
    "VolatilityType",
    "CalibrationHelper",
    "calibration_problem",
    "calibrate",
]


class CalibrationErrorType(Enum):
    RELATIVE_PRICE_ERROR = "relative_price_error"
    PRICE_ERROR = "price_error"
    IMPLIED_VOL_ERROR = "implied_vol_error"


class VolatilityType(Enum):
    SHIFTED_LOGNORMAL = "shifted_lognormal"
    NORMAL = "normal"


# search ranges for the implied-vol error, per volatility type
_VOL_RANGE = {
    VolatilityType.SHIFTED_LOGNORMAL: (0.0010, 10.0),
    VolatilityType.NORMAL: (0.00005, 0.50),
}


class CalibrationHelper(ABC):
    """Instrument quoted by a volatility, priced by both market and model.

    Subclasses supply :meth:`model_value` (price under the model being
    calibrated) and :meth:`black_price` (price implied by a quoted vol).

    Parameters
    ----------
    volatility : float
        Market quote.
    error_type : CalibrationErrorType
        How :meth:`calibration_error` compares market and model.
    volatility_type : VolatilityType
        Quote convention; picks the implied-vol search range.
    shift : float
        Displacement for shifted-lognormal quotes.
    """

    def __init__(self, volatility: float,
                 error_type: CalibrationErrorType = CalibrationErrorType.RELATIVE_PRICE_ERROR,
                 volatility_type: VolatilityType = VolatilityType.SHIFTED_LOGNORMAL,
                 shift: float = 0.0):
        if volatility <= 0:
            raise ValueError(f"volatility must be positive, got {volatility}")
        try:
            self.error_type = CalibrationErrorType(error_type)
            self.volatility_type = VolatilityType(volatility_type)
        except ValueError as exc:
            raise UnknownVariantError(str(exc)) from None
        self.volatility = float(volatility)
        self.shift = float(shift)

    @abstractmethod
    def model_value(self) -> float:
        """Price under the model being calibrated."""

    @abstractmethod
    def black_price(self, volatility: float) -> float:
        """Price implied by ``volatility`` under the quote convention."""

    def market_value(self) -> float:
        return self.black_price(self.volatility)

    def implied_volatility(self, target_value: float, accuracy: float,
                           max_evaluations: int, min_vol: float,
                           max_vol: float) -> float:
        """Brent root find of ``black_price(vol) == target_value`` on ``[min_vol, max_vol]``."""
        return float(brentq(lambda v: self.black_price(v) - target_value,
                            min_vol, max_vol, xtol=accuracy,
                            maxiter=max_evaluations))

    def calibration_error(self) -> float:
        if self.error_type is CalibrationErrorType.RELATIVE_PRICE_ERROR:
            market = self.market_value()
            return abs(market - self.model_value()) / market
        if self.error_type is CalibrationErrorType.PRICE_ERROR:
            return self.market_value() - self.model_value()
        if self.error_type is CalibrationErrorType.IMPLIED_VOL_ERROR:
            min_vol, max_vol = _VOL_RANGE[self.volatility_type]
            lower_price = self.black_price(min_vol)
            upper_price = self.black_price(max_vol)
            model_price = self.model_value()
            if model_price <= lower_price:
                logger.debug("model price %.6g below vol range, clamped", model_price)
                implied = min_vol
            elif model_price >= upper_price:
                logger.debug("model price %.6g above vol range, clamped", model_price)
                implied = max_vol
            else:
                implied = self.implied_volatility(model_price, 1e-12, 5000,
                                                  min_vol, max_vol)
            return implied - self.volatility
        raise UnknownVariantError(f"unknown calibration error type: {self.error_type!r}")


def calibration_problem(
    helpers: Sequence[CalibrationHelper],
    set_params: Callable[[np.ndarray], None],
    constraint: Constraint,
    initial_value,
    *,
    weights: Optional[Sequence[float]] = None,
) -> Problem:
    """Problem whose cost is ``sqrt(sum_i w_i * error_i^2)``.

    ``set_params(x)`` must push the trial parameters into whatever model the
    helpers price with before their errors are read.
    """
    if len(helpers) == 0:
        raise ValueError("at least one calibration helper is required")
    w = np.ones(len(helpers)) if weights is None else np.asarray(weights, dtype=float)
    if w.shape != (len(helpers),):
        raise ValueError(f"{w.size} weights for {len(helpers)} helpers")

    def cost(x: np.ndarray) -> float:
        set_params(x)
        errors = np.array([h.calibration_error() for h in helpers])
        return math.sqrt(float(np.sum(w * errors * errors)))

    return Problem(cost, constraint, initial_value)


def calibrate(
    helpers: Sequence[CalibrationHelper],
    set_params: Callable[[np.ndarray], None],
    constraint: Constraint,
    initial_value,
    end_criteria: EndCriteria,
    *,
    configuration: Optional[Configuration] = None,
    weights: Optional[Sequence[float]] = None,
) -> tuple[EndCriteriaType, np.ndarray, float]:
    """Calibrate with Differential Evolution.

    Returns
    -------
    (reason, params, cost)
        Termination reason, best parameters (also pushed through
        ``set_params``) and their cost.
    """
    problem = calibration_problem(helpers, set_params, constraint,
                                  initial_value, weights=weights)
    reason = DifferentialEvolution(configuration).minimize(problem, end_criteria)
    set_params(problem.current_value)
    return reason, problem.current_value.copy(), problem.function_value
