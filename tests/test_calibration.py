"""Tests for calibration helpers and Differential Evolution calibration."""

import math

import numpy as np
import pytest
from scipy.stats import norm
from quantopt.calibration import (
    CalibrationErrorType, CalibrationHelper, VolatilityType,
    calibrate, calibration_problem,
)
from quantopt.differential_evolution import Configuration
from quantopt.errors import UnknownVariantError
from quantopt.optimization import BoundaryConstraint, EndCriteria, EndCriteriaType


def bs_call(S, K, T, r, vol):
    d1 = (math.log(S / K) + (r + 0.5 * vol * vol) * T) / (vol * math.sqrt(T))
    d2 = d1 - vol * math.sqrt(T)
    return S * norm.cdf(d1) - K * math.exp(-r * T) * norm.cdf(d2)


class FlatVolModel:
    def __init__(self, sigma):
        self.sigma = sigma


class CallHelper(CalibrationHelper):
    """European call quoted in Black vol, priced by a flat-vol model."""

    def __init__(self, model, K, T, vol, error_type=CalibrationErrorType.RELATIVE_PRICE_ERROR):
        super().__init__(vol, error_type)
        self.model, self.K, self.T = model, K, T

    def model_value(self):
        return bs_call(100.0, self.K, self.T, 0.02, self.model.sigma)

    def black_price(self, volatility):
        return bs_call(100.0, self.K, self.T, 0.02, volatility)


# ---------------------------------------------------------------------------
# Helper errors
# ---------------------------------------------------------------------------
class TestCalibrationHelper:
    def test_zero_error_when_model_matches_quote(self):
        model = FlatVolModel(0.3)
        for et in CalibrationErrorType:
            h = CallHelper(model, 100.0, 1.0, 0.3, et)
            assert abs(h.calibration_error()) < 1e-8

    def test_relative_price_error(self):
        h = CallHelper(FlatVolModel(0.25), 100.0, 1.0, 0.2)
        market = h.market_value()
        model = h.model_value()
        assert h.calibration_error() == pytest.approx(abs(market - model) / market)

    def test_price_error_is_signed(self):
        h = CallHelper(FlatVolModel(0.25), 100.0, 1.0, 0.2, CalibrationErrorType.PRICE_ERROR)
        assert h.calibration_error() < 0.0

    def test_implied_vol_error(self):
        h = CallHelper(FlatVolModel(0.25), 110.0, 0.5, 0.2, CalibrationErrorType.IMPLIED_VOL_ERROR)
        assert h.calibration_error() == pytest.approx(0.05, abs=1e-8)

    def test_implied_vol_round_trip(self):
        h = CallHelper(FlatVolModel(0.2), 95.0, 2.0, 0.2)
        price = h.black_price(0.37)
        assert h.implied_volatility(price, 1e-12, 100, 0.001, 10.0) == pytest.approx(0.37, abs=1e-9)

    def test_implied_vol_error_clamped_to_range(self):
        # price below the min-vol price: intrinsic minus a little
        h = CallHelper(FlatVolModel(0.2), 50.0, 1.0, 0.2, CalibrationErrorType.IMPLIED_VOL_ERROR)
        h.model_value = lambda: 0.0
        assert h.calibration_error() == pytest.approx(0.001 - 0.2)

    def test_validation(self):
        with pytest.raises(ValueError):
            CallHelper(FlatVolModel(0.2), 100.0, 1.0, 0.0)
        with pytest.raises(UnknownVariantError):
            CallHelper(FlatVolModel(0.2), 100.0, 1.0, 0.2, "vega_weighted")
        assert CallHelper(FlatVolModel(0.2), 100.0, 1.0, 0.2).volatility_type \
            is VolatilityType.SHIFTED_LOGNORMAL


# ---------------------------------------------------------------------------
# Calibration
# ---------------------------------------------------------------------------
class TestCalibrate:
    def _helpers(self, model, vol=0.25, error_type=CalibrationErrorType.IMPLIED_VOL_ERROR):
        return [CallHelper(model, K, T, vol, error_type)
                for K in (90.0, 100.0, 110.0) for T in (0.5, 1.0)]

    def test_problem_cost_is_weighted_norm(self):
        model = FlatVolModel(0.3)
        helpers = self._helpers(model)

        def set_params(x):
            model.sigma = x[0]

        problem = calibration_problem(helpers, set_params, BoundaryConstraint(0.01, 1.0),
                                      [0.3], weights=np.full(6, 4.0))
        cost = problem.value(np.array([0.3]))
        assert cost == pytest.approx(math.sqrt(6 * 4.0 * 0.05 ** 2), abs=1e-7)

    def test_recovers_flat_vol(self):
        model = FlatVolModel(0.5)

        def set_params(x):
            model.sigma = x[0]

        cfg = Configuration(population_members=20, seed=5)
        reason, params, cost = calibrate(
            self._helpers(model, error_type=CalibrationErrorType.RELATIVE_PRICE_ERROR),
            set_params, BoundaryConstraint(0.01, 1.0), [0.5],
            EndCriteria(max_iterations=150, max_stationary_state_iterations=30),
            configuration=cfg,
        )
        assert isinstance(reason, EndCriteriaType)
        assert params[0] == pytest.approx(0.25, abs=1e-4)
        assert cost < 1e-4
        assert model.sigma == params[0]

    def test_bad_weights(self):
        with pytest.raises(ValueError):
            calibration_problem(self._helpers(FlatVolModel(0.2)), lambda x: None,
                                BoundaryConstraint(0.0, 1.0), [0.2], weights=[1.0])
        with pytest.raises(ValueError):
            calibration_problem([], lambda x: None, BoundaryConstraint(0.0, 1.0), [0.2])
