"""
Receding-horizon control loop.

Per telemetry sample:
1. Transform waypoints into the vehicle frame (origin at the vehicle, x axis
   along its heading) and fit the reference polynomial there.
2. Measure cross-track error f(0) and heading error atan(f'(0)).
3. Advance that state by the actuation latency with the kinematic model,
   driven by the previous command.
4. Solve the horizon and turn the first actuation into a command.

Only the previous command survives between cycles (for the "hold" fallback).
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import ControllerConfig
from .dynamics import KinematicModel
from .exceptions import InsufficientWaypointsError, InvalidTelemetryError, SolverFailedError
from .logging import get_logger, profile_scope
from .polynomial import ReferencePolynomial, fit_polynomial
from .solver import HorizonSolver
from .types import Actuation, ControlCommand, HorizonSolution, Telemetry, VehicleState

logger = get_logger("controller")


def to_vehicle_frame(
    xs: Sequence[float],
    ys: Sequence[float],
    px: float,
    py: float,
    psi: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Express world-frame points in the frame of a vehicle at (px, py, psi)."""
    dx = np.asarray(xs, dtype=float) - px
    dy = np.asarray(ys, dtype=float) - py
    cos_psi = np.cos(-psi)
    sin_psi = np.sin(-psi)
    return dx * cos_psi - dy * sin_psi, dx * sin_psi + dy * cos_psi


class MPCController:
    """
    Tracking controller producing one ControlCommand per Telemetry sample.

    Example:
        controller = MPCController(load_config("controller.yml"))
        command = controller.step(Telemetry.from_dict(message))
    """

    def __init__(self, config: Optional[ControllerConfig] = None):
        self.config = config or ControllerConfig()
        self.solver = HorizonSolver(self.config)
        self.model = KinematicModel(self.config.vehicle.lf)
        self._last_command: Optional[ControlCommand] = None
        self.last_solution: Optional[HorizonSolution] = None

    def reset(self) -> None:
        """Forget the previous command and any warm start."""
        self._last_command = None
        self.last_solution = None
        self.solver.reset_warmstart()

    def step(self, telemetry: Telemetry) -> ControlCommand:
        """
        Run one control cycle.

        Raises:
            InvalidTelemetryError: malformed telemetry
            InsufficientWaypointsError / DegenerateFitError: no usable path
            SolverFailedError: solve did not converge and fallback is "raise"
        """
        with profile_scope("control cycle"):
            self._validate(telemetry)

            local_x, local_y = to_vehicle_frame(
                telemetry.ptsx, telemetry.ptsy, telemetry.x, telemetry.y, telemetry.psi
            )
            polynomial = fit_polynomial(local_x, local_y, self.config.reference.polynomial_degree)

            state = self.compensate_latency(telemetry, polynomial)
            solution = self.solver.solve(state, polynomial)
            self.last_solution = solution

            command = self._command(solution, polynomial)
            if not solution.success:
                command = self._fallback(command, solution)

        self._last_command = command
        return command

    def initial_state(self, telemetry: Telemetry, polynomial: ReferencePolynomial) -> VehicleState:
        """Measured state in vehicle frame: at the origin, zero heading."""
        return VehicleState(
            x=0.0,
            y=0.0,
            psi=0.0,
            v=telemetry.speed,
            cte=float(polynomial.evaluate(0.0)),
            epsi=float(polynomial.tangent_angle(0.0)),
        )

    def compensate_latency(self, telemetry: Telemetry, polynomial: ReferencePolynomial) -> VehicleState:
        """Predict where the vehicle will be when the next command takes effect."""
        state = self.initial_state(telemetry, polynomial)
        interval = self.config.latency.interval
        if interval <= 0:
            return state

        # Telemetry reports steering positive to the right.
        previous = Actuation(delta=-telemetry.steering_angle, a=telemetry.throttle)
        return self.model.propagate(state, previous, interval, polynomial)

    def reference_points(self, polynomial: ReferencePolynomial) -> Tuple[List[float], List[float]]:
        """Points along the reference polynomial for display."""
        ref = self.config.reference
        xs = [ref.display_spacing * i for i in range(1, ref.display_points + 1)]
        return xs, [float(polynomial.evaluate(x)) for x in xs]

    def _validate(self, telemetry: Telemetry) -> None:
        if len(telemetry.ptsx) != len(telemetry.ptsy):
            raise InvalidTelemetryError(
                "ptsy", f"length {len(telemetry.ptsy)} does not match ptsx length {len(telemetry.ptsx)}"
            )
        for name in ("x", "y", "psi", "speed", "steering_angle", "throttle"):
            if not np.isfinite(getattr(telemetry, name)):
                raise InvalidTelemetryError(name, "must be finite")
        degree = self.config.reference.polynomial_degree
        if len(telemetry.ptsx) < degree + 1:
            raise InsufficientWaypointsError(len(telemetry.ptsx), degree)

    def _command(self, solution: HorizonSolution, polynomial: ReferencePolynomial) -> ControlCommand:
        max_steering = self.config.vehicle.max_steering
        # Solver steering is positive to the left, the vehicle expects the opposite.
        steering = -solution.actuation.delta
        next_x, next_y = self.reference_points(polynomial)

        return ControlCommand(
            steering_angle=float(np.clip(steering / max_steering, -1.0, 1.0)),
            throttle=solution.actuation.a,
            next_x=next_x,
            next_y=next_y,
            mpc_x=solution.predicted_x,
            mpc_y=solution.predicted_y,
            status=solution.return_status,
            converged=solution.success,
            cost=solution.cost,
        )

    def _fallback(self, command: ControlCommand, solution: HorizonSolution) -> ControlCommand:
        policy = self.config.controller.fallback

        if policy == "raise":
            raise SolverFailedError(solution.return_status, iterations=solution.iterations)

        if policy == "hold":
            previous = self._last_command
            command.steering_angle = previous.steering_angle if previous else 0.0
            command.throttle = previous.throttle if previous else 0.0
        elif policy == "brake":
            command.steering_angle = 0.0
            command.throttle = self.config.controller.brake_throttle

        command.fallback = policy
        logger.warning(
            f"Using '{policy}' fallback after solver status {solution.return_status}: "
            f"steering={command.steering_angle:.3f}, throttle={command.throttle:.3f}"
        )
        return command
