"""
Cost and constraint evaluation over the flat decision vector.

Formulates, for a horizon of N steps:

    min  sum_t   w_cte cte_t^2 + w_epsi epsi_t^2 + w_v (v_t - v_ref)^2
       + sum_t   w_delta delta_t^2 + w_a a_t^2                 (N-1 steps)
       + sum_t   w_ddelta (delta_{t+1} - delta_t)^2
               + w_da (a_{t+1} - a_t)^2                        (N-2 pairs)

    s.t. g_0        = s_0                       (pinned by matching bounds)
         g_{t+1}    = f(s_t, u_t) - s_{t+1}     (t = 0..N-2)

Everything is plain arithmetic on vector elements, so the same code evaluates
numpy arrays and CasADi SX vectors (which CasADi differentiates).
"""

from typing import Any, List, Tuple

import casadi as cs
import numpy as np

from .config import ControllerConfig
from .dynamics import KinematicModel
from .layout import ActuationIndex, DecisionLayout, StateIndex
from .polynomial import ReferencePolynomial


class HorizonEvaluator:
    """Pure objective/constraint function for one horizon."""

    def __init__(self, config: ControllerConfig):
        self.config = config
        self.layout: DecisionLayout = config.layout
        self.model = KinematicModel(config.vehicle.lf)

    def _state(self, vars: Any, step: int) -> Tuple[Any, ...]:
        return tuple(vars[self.layout.index(c, step)] for c in StateIndex)

    def _actuation(self, vars: Any, step: int) -> Tuple[Any, Any]:
        return (
            vars[self.layout.index(ActuationIndex.DELTA, step)],
            vars[self.layout.index(ActuationIndex.A, step)],
        )

    def cost(self, vars: Any) -> Any:
        """Scalar objective for decision vector ``vars``."""
        w = self.config.cost
        layout = self.layout
        N = layout.horizon

        cost = 0
        for t in range(N):
            cte = vars[layout.index(StateIndex.CTE, t)]
            epsi = vars[layout.index(StateIndex.EPSI, t)]
            v = vars[layout.index(StateIndex.V, t)]
            cost += w.cte_weight * cte**2
            cost += w.epsi_weight * epsi**2
            cost += w.speed_weight * (v - w.target_speed)**2

        for t in range(N - 1):
            delta, a = self._actuation(vars, t)
            cost += w.steering_weight * delta**2
            cost += w.acceleration_weight * a**2

        for t in range(N - 2):
            delta0, a0 = self._actuation(vars, t)
            delta1, a1 = self._actuation(vars, t + 1)
            cost += w.steering_rate_weight * (delta1 - delta0)**2
            cost += w.acceleration_rate_weight * (a1 - a0)**2

        return cost

    def constraints(self, vars: Any, polynomial: ReferencePolynomial) -> Any:
        """Residual vector of length 6N, laid out like the state blocks."""
        layout = self.layout
        dt = self.config.horizon.timestep
        residuals: List[Any] = [None] * layout.n_constraints

        for c in StateIndex:
            residuals[layout.index(c, 0)] = vars[layout.index(c, 0)]

        for t in range(layout.horizon - 1):
            predicted = self.model.step(
                self._state(vars, t), self._actuation(vars, t), dt, polynomial
            )
            actual = self._state(vars, t + 1)
            for c in StateIndex:
                residuals[layout.index(c, t + 1)] = predicted[c] - actual[c]

        if isinstance(vars, (cs.SX, cs.MX)):
            return cs.vertcat(*residuals)
        return np.array(residuals, dtype=float)

    def evaluate(self, vars: Any, polynomial: ReferencePolynomial) -> Tuple[Any, Any]:
        """Return (cost, constraint residuals)."""
        return self.cost(vars), self.constraints(vars, polynomial)
