"""
Tests for cost and constraint evaluation over the decision vector.
"""

import casadi as cs
import numpy as np
import pytest

from trackmpc.evaluator import HorizonEvaluator
from trackmpc.layout import ActuationIndex, StateIndex
from trackmpc.types import Actuation, VehicleState


def _rollout(evaluator, initial, actuations, polynomial):
    """Decision vector whose states follow the model exactly."""
    layout = evaluator.layout
    dt = evaluator.config.horizon.timestep
    vars = np.zeros(layout.n_vars)

    state = initial
    for t in range(layout.horizon):
        for c in StateIndex:
            vars[layout.index(c, t)] = state.to_array()[c]
        if t < layout.num_actuation_steps:
            act = actuations[t]
            vars[layout.index(ActuationIndex.DELTA, t)] = act.delta
            vars[layout.index(ActuationIndex.A, t)] = act.a
            state = evaluator.model.propagate(state, act, dt, polynomial)
    return vars


class TestCost:

    @pytest.fixture
    def evaluator(self, test_config):
        """Pairwise distinct weights, so a swapped or dropped term shows up."""
        return HorizonEvaluator(test_config.replace(cost={
            "cte_weight": 1000.0,
            "epsi_weight": 700.0,
            "speed_weight": 3.0,
            "steering_weight": 100.0,
            "acceleration_weight": 20.0,
            "steering_rate_weight": 13.0,
            "acceleration_rate_weight": 7.0,
        }))

    @pytest.fixture
    def on_target(self, evaluator):
        """Zero errors, target speed everywhere, no actuation."""
        layout = evaluator.layout
        vars = np.zeros(layout.n_vars)
        vars[layout.slice(StateIndex.V)] = evaluator.config.cost.target_speed
        return vars

    def test_zero_at_target(self, evaluator, on_target):
        assert evaluator.cost(on_target) == pytest.approx(0.0)

    def test_non_negative(self, evaluator):
        rng = np.random.default_rng(0)
        for _ in range(5):
            vars = rng.normal(size=evaluator.layout.n_vars)
            assert evaluator.cost(vars) >= 0.0

    @pytest.mark.parametrize(
        "component, step, weight",
        [
            (StateIndex.CTE, 4, "cte_weight"),
            (StateIndex.EPSI, 0, "epsi_weight"),
            (StateIndex.V, 7, "speed_weight"),
        ],
    )
    def test_tracking_terms(self, evaluator, on_target, component, step, weight):
        """A unit error costs exactly its weight."""
        vars = on_target.copy()
        vars[evaluator.layout.index(component, step)] += 1.0
        assert evaluator.cost(vars) == pytest.approx(getattr(evaluator.config.cost, weight))

    def test_effort_and_rate_terms(self, evaluator, on_target):
        """Steering at one interior step pays effort plus two rate terms."""
        w = evaluator.config.cost
        vars = on_target.copy()
        vars[evaluator.layout.index(ActuationIndex.DELTA, 3)] = 0.1
        expected = w.steering_weight * 0.01 + 2 * w.steering_rate_weight * 0.01
        assert evaluator.cost(vars) == pytest.approx(expected)

    def test_acceleration_effort_and_rate_terms(self, evaluator, on_target):
        """Acceleration at one interior step pays effort plus two rate terms."""
        w = evaluator.config.cost
        vars = on_target.copy()
        vars[evaluator.layout.index(ActuationIndex.A, 5)] = 0.4
        expected = w.acceleration_weight * 0.16 + 2 * w.acceleration_rate_weight * 0.16
        assert evaluator.cost(vars) == pytest.approx(expected)

    def test_rate_terms_increase_cost(self, evaluator, on_target):
        """Changing the step-to-step difference alone raises the cost."""
        layout = evaluator.layout
        for component in ActuationIndex:
            flat = on_target.copy()
            flat[layout.slice(component)] = 0.2
            stepped = flat.copy()
            stepped[layout.index(component, 6):layout.start(component) + layout.length(component)] = -0.2
            assert evaluator.cost(stepped) > evaluator.cost(flat)

    def test_constant_acceleration_has_no_rate_cost(self, evaluator, on_target):
        w = evaluator.config.cost
        vars = on_target.copy()
        vars[evaluator.layout.slice(ActuationIndex.A)] = 0.5
        steps = evaluator.layout.num_actuation_steps
        assert evaluator.cost(vars) == pytest.approx(steps * w.acceleration_weight * 0.25)

    def test_smoother_sequence_is_cheaper(self, evaluator, on_target):
        layout = evaluator.layout
        steps = layout.num_actuation_steps
        smooth = on_target.copy()
        jumpy = on_target.copy()
        smooth[layout.slice(ActuationIndex.DELTA)] = 0.1
        jumpy[layout.slice(ActuationIndex.DELTA)] = [0.1 * ((-1) ** t) for t in range(steps)]
        assert evaluator.cost(jumpy) > evaluator.cost(smooth)


class TestConstraints:

    @pytest.fixture
    def evaluator(self, test_config):
        return HorizonEvaluator(test_config)

    def test_length(self, evaluator, straight_polynomial):
        residuals = evaluator.constraints(np.zeros(evaluator.layout.n_vars), straight_polynomial)
        assert residuals.shape == (evaluator.layout.n_constraints,)

    def test_initial_slots_hold_initial_state(self, evaluator, straight_polynomial):
        layout = evaluator.layout
        vars = np.arange(layout.n_vars, dtype=float)
        residuals = evaluator.constraints(vars, straight_polynomial)
        for index in layout.initial_indices():
            assert residuals[index] == vars[index]

    def test_consistent_rollout(self, evaluator, left_curve_polynomial):
        """States produced by the model leave zero dynamics residual."""
        layout = evaluator.layout
        initial = VehicleState(0.0, 0.0, 0.0, 10.0, cte=0.3, epsi=-0.05)
        actuations = [Actuation(0.02 * np.sin(t), 0.1) for t in range(layout.num_actuation_steps)]
        vars = _rollout(evaluator, initial, actuations, left_curve_polynomial)

        residuals = evaluator.constraints(vars, left_curve_polynomial)
        mask = np.ones(layout.n_constraints, dtype=bool)
        mask[layout.initial_indices()] = False
        assert np.allclose(residuals[mask], 0.0, atol=1e-12)
        assert np.allclose(residuals[layout.initial_indices()], initial.to_array())

    def test_residual_sign(self, evaluator, straight_polynomial):
        """Residual is predicted minus actual, in the slot of the later step."""
        layout = evaluator.layout
        initial = VehicleState(0.0, 0.0, 0.0, 10.0)
        actuations = [Actuation(0.0, 0.0)] * layout.num_actuation_steps
        vars = _rollout(evaluator, initial, actuations, straight_polynomial)
        vars[layout.index(StateIndex.X, 2)] += 0.5

        residuals = evaluator.constraints(vars, straight_polynomial)
        assert residuals[layout.index(StateIndex.X, 2)] == pytest.approx(-0.5)

    def test_symbolic_residuals(self, evaluator, straight_polynomial):
        """Symbolic input returns a CasADi column of the same length."""
        vars = cs.SX.sym("vars", evaluator.layout.n_vars)
        residuals = evaluator.constraints(vars, straight_polynomial)
        assert isinstance(residuals, cs.SX)
        assert residuals.shape == (evaluator.layout.n_constraints, 1)

    def test_evaluate_returns_both(self, evaluator, straight_polynomial):
        vars = np.zeros(evaluator.layout.n_vars)
        cost, residuals = evaluator.evaluate(vars, straight_polynomial)
        assert cost == pytest.approx(evaluator.cost(vars))
        assert np.array_equal(residuals, evaluator.constraints(vars, straight_polynomial))
