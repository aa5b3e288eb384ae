"""Tests for constraints, problems and end criteria."""

import sys

import numpy as np
import pytest
from quantopt.errors import ConfigurationError
from quantopt.optimization import (
    NoConstraint, PositiveConstraint, BoundaryConstraint,
    NonhomogeneousBoundaryConstraint, Problem,
    EndCriteria, EndCriteriaState, EndCriteriaType,
)


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------
class TestConstraints:
    def test_no_constraint_bounds_are_infinite_width(self):
        c = NoConstraint()
        x = np.zeros(2)
        assert c.test(x)
        assert np.all(c.upper_bound(x) == sys.float_info.max)
        assert np.all(c.lower_bound(x) == -sys.float_info.max)

    def test_positive(self):
        c = PositiveConstraint()
        assert c.test(np.array([1.0, 2.0]))
        assert not c.test(np.array([1.0, 0.0]))
        np.testing.assert_array_equal(c.lower_bound(np.ones(3)), np.zeros(3))

    def test_boundary(self):
        c = BoundaryConstraint(-1.0, 2.0)
        assert c.test(np.array([-1.0, 2.0]))
        assert not c.test(np.array([2.5]))
        np.testing.assert_array_equal(c.upper_bound(np.zeros(2)), [2.0, 2.0])
        with pytest.raises(ConfigurationError):
            BoundaryConstraint(1.0, 0.0)

    def test_nonhomogeneous(self):
        c = NonhomogeneousBoundaryConstraint([0.0, -1.0], [1.0, 1.0])
        assert c.test(np.array([0.5, -0.5]))
        assert not c.test(np.array([-0.5, 0.0]))
        np.testing.assert_array_equal(c.lower_bound(np.zeros(2)), [0.0, -1.0])
        with pytest.raises(ConfigurationError):
            c.test(np.zeros(3))
        with pytest.raises(ConfigurationError):
            NonhomogeneousBoundaryConstraint([0.0], [1.0, 2.0])

    def test_update_halves_step(self):
        c = BoundaryConstraint(0.0, 1.0)
        x, step = c.update(np.array([0.5]), np.array([1.0]), 1.0)
        assert step == 0.5
        np.testing.assert_allclose(x, [1.0])

    def test_update_gives_up(self):
        c = BoundaryConstraint(0.0, 1.0)
        with pytest.raises(ValueError):
            c.update(np.array([2.0]), np.array([1.0]), 1.0, max_halvings=5)


# ---------------------------------------------------------------------------
# Problem
# ---------------------------------------------------------------------------
class TestProblem:
    def test_counts_evaluations(self):
        p = Problem(lambda x: float(np.sum(x ** 2)), NoConstraint(), [1.0, 2.0])
        assert p.value(np.array([1.0, 1.0])) == 2.0
        p.value(np.zeros(2))
        assert p.function_evaluation == 2
        assert p.function_value is None
        p.reset()
        assert p.function_evaluation == 0

    def test_current_value_copied(self):
        x0 = np.array([1.0, 2.0])
        p = Problem(sum, NoConstraint(), x0)
        x0[0] = 5.0
        assert p.current_value[0] == 1.0

    def test_rejects_empty_initial_value(self):
        with pytest.raises(ConfigurationError):
            Problem(sum, NoConstraint(), [])


# ---------------------------------------------------------------------------
# End criteria
# ---------------------------------------------------------------------------
class TestEndCriteria:
    def test_defaults(self):
        ec = EndCriteria(max_iterations=1000)
        assert ec.max_stationary_state_iterations == 100
        assert EndCriteria(max_iterations=50).max_stationary_state_iterations == 25
        assert ec.gradient_norm_epsilon == ec.function_epsilon

    @pytest.mark.parametrize("kwargs", [
        dict(max_iterations=0),
        dict(max_iterations=10, max_stationary_state_iterations=1),
        dict(max_iterations=10, max_stationary_state_iterations=10),
        dict(max_iterations=3),
    ])
    def test_validation(self, kwargs):
        with pytest.raises(ConfigurationError):
            EndCriteria(**kwargs)

    def test_max_iterations(self):
        ec = EndCriteria(max_iterations=10, max_stationary_state_iterations=5)
        state = EndCriteriaState()
        assert not ec.check_max_iterations(9, state)
        assert ec.check_max_iterations(10, state)
        assert state.type is EndCriteriaType.MAX_ITERATIONS

    def test_stationary_function_value_fires_after_max_plus_one(self):
        ec = EndCriteria(max_iterations=100, max_stationary_state_iterations=3,
                         function_epsilon=1e-6)
        state = EndCriteriaState()
        results = [ec.check_stationary_function_value(1.0, 1.0, state) for _ in range(4)]
        assert results == [False, False, False, True]
        assert state.type is EndCriteriaType.STATIONARY_FUNCTION_VALUE

    def test_stationary_counter_resets(self):
        ec = EndCriteria(max_iterations=100, max_stationary_state_iterations=2)
        state = EndCriteriaState()
        ec.check_stationary_function_value(1.0, 1.0, state)
        ec.check_stationary_function_value(1.0, 1.0, state)
        assert state.stationary_iterations == 2
        assert not ec.check_stationary_function_value(1.0, 2.0, state)
        assert state.stationary_iterations == 0

    def test_stationary_point(self):
        ec = EndCriteria(max_iterations=100, max_stationary_state_iterations=2,
                         root_epsilon=1e-3)
        state = EndCriteriaState()
        fired = [ec.check_stationary_point(0.0, 1e-4, state) for _ in range(3)]
        assert fired[-1]
        assert state.type is EndCriteriaType.STATIONARY_POINT

    def test_function_accuracy_and_gradient(self):
        ec = EndCriteria(max_iterations=10, max_stationary_state_iterations=5,
                         function_epsilon=1e-6)
        state = EndCriteriaState()
        assert not ec.check_stationary_function_accuracy(1e-8, False, state)
        assert ec.check_stationary_function_accuracy(1e-8, True, state)
        assert state.type is EndCriteriaType.STATIONARY_FUNCTION_ACCURACY
        assert ec.check_zero_gradient_norm(1e-9, state)
        assert state.type is EndCriteriaType.ZERO_GRADIENT_NORM
