"""Tests for the shared data model and fault-tolerant cost evaluation."""

import math

import numpy as np
import pytest
from quantopt.core import NodeData, Candidate, CostResult, evaluate_cost, WORST_COST


class TestNodeData:
    def test_defaults(self):
        node = NodeData()
        assert node.values.shape == (0,)
        assert node.cumulated_cash_flows == 0.0
        assert node.control_value == 0.0
        assert node.exercise_value == 0.0
        assert node.is_valid

    def test_values_coerced_to_float_array(self):
        node = NodeData(values=[1, 2, 3])
        assert node.values.dtype == float
        np.testing.assert_array_equal(node.values, [1.0, 2.0, 3.0])

    def test_rejects_matrix_values(self):
        with pytest.raises(ValueError):
            NodeData(values=np.ones((2, 2)))


class TestCandidate:
    def test_copy_is_independent(self):
        c = Candidate([1.0, 2.0], cost=3.0)
        d = c.copy()
        d.values[0] = 99.0
        assert c.values[0] == 1.0
        assert d.cost == 3.0

    def test_constructor_copies_input(self):
        x = np.array([1.0, 2.0])
        c = Candidate(x, 0.0)
        x[0] = -1.0
        assert c.values[0] == 1.0


class TestEvaluateCost:
    def test_success(self):
        res = evaluate_cost(lambda x: float(np.sum(x)), np.array([1.0, 2.0]))
        assert res.ok
        assert res.value == 3.0
        assert res.error is None
        assert res.or_worst() == 3.0

    def test_exception_is_captured(self):
        def boom(x):
            raise ZeroDivisionError("bad point")

        res = evaluate_cost(boom, np.zeros(2))
        assert not res.ok
        assert isinstance(res.error, ZeroDivisionError)
        assert res.or_worst() == WORST_COST

    def test_nan_counts_as_failure(self):
        res = evaluate_cost(lambda x: math.nan, np.zeros(1))
        assert not res.ok
        assert res.or_worst() == WORST_COST

    def test_infinite_cost_is_a_value(self):
        res = evaluate_cost(lambda x: math.inf, np.zeros(1))
        assert res.ok
        assert res.or_worst() == math.inf

    def test_cost_result_is_frozen(self):
        res = CostResult(ok=True, value=1.0)
        with pytest.raises(AttributeError):
            res.value = 2.0
