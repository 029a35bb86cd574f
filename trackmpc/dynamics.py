"""
Kinematic bicycle model.

State: [x, y, psi, v, cte, epsi]
Input: [delta, a] (steering angle, acceleration)

Discrete dynamics over one step dt:
    x'    = x + v cos(psi) dt
    y'    = y + v sin(psi) dt
    psi'  = psi + v delta / Lf dt
    v'    = v + a dt
    cte'  = (f(x) - y) + v sin(epsi) dt
    epsi' = (atan(f'(x)) - psi) - v delta / Lf dt

where f is the reference polynomial. Works on floats and on CasADi symbols.
"""

from typing import Any, Tuple

import casadi as cs
import numpy as np

from .polynomial import ReferencePolynomial
from .types import Actuation, VehicleState


def _is_symbolic(*values: Any) -> bool:
    return any(isinstance(v, (cs.SX, cs.MX)) for v in values)


class KinematicModel:
    """
    Kinematic bicycle model with cross-track and heading error states.

    Positive steering turns the vehicle towards +y (counter-clockwise).
    """

    state_dim = 6
    input_dim = 2

    def __init__(self, lf: float = 2.67):
        """
        Args:
            lf: Distance between the front axle and the center of gravity [m]
        """
        self.lf = lf

    def step(
        self,
        state: Tuple[Any, ...],
        actuation: Tuple[Any, Any],
        dt: float,
        polynomial: ReferencePolynomial,
    ) -> Tuple[Any, ...]:
        """
        Advance raw state components by one step.

        Args:
            state: (x, y, psi, v, cte, epsi), numbers or symbols
            actuation: (delta, a)
            dt: Step length [s]
            polynomial: Reference path in the same frame as the state

        Returns:
            Next (x, y, psi, v, cte, epsi)
        """
        x, y, psi, v, cte, epsi = state
        delta, a = actuation

        if _is_symbolic(x, y, psi, v, cte, epsi, delta, a):
            sin, cos = cs.sin, cs.cos
        else:
            sin, cos = np.sin, np.cos

        yaw_step = v * delta / self.lf * dt
        path_y = polynomial.evaluate(x)
        path_psi = polynomial.tangent_angle(x)

        return (
            x + v * cos(psi) * dt,
            y + v * sin(psi) * dt,
            psi + yaw_step,
            v + a * dt,
            (path_y - y) + v * sin(epsi) * dt,
            (path_psi - psi) - yaw_step,
        )

    def propagate(
        self,
        state: VehicleState,
        actuation: Actuation,
        dt: float,
        polynomial: ReferencePolynomial,
    ) -> VehicleState:
        """Propagate a VehicleState forward by ``dt``."""
        next_state = self.step(
            (state.x, state.y, state.psi, state.v, state.cte, state.epsi),
            (actuation.delta, actuation.a),
            dt,
            polynomial,
        )
        return VehicleState(*(float(value) for value in next_state))
