"""
Horizon solver.

Builds the nonlinear program once per solver instance, with the reference
polynomial coefficients as NLP parameters, and solves it with IPOPT through
CasADi's ``nlpsol``:

    min  J(z)
    s.t. lbx <= z <= ubx           (actuator bounds, states free)
         lbg <= g(z, c) <= ubg     (dynamics == 0, initial slots == s_0)

Derivatives come from CasADi's AD over SX expressions, which keeps the
Jacobian and Hessian sparse.
"""

import time
from typing import Optional

import casadi as cs
import numpy as np

from .config import ControllerConfig
from .evaluator import HorizonEvaluator
from .exceptions import PolynomialFitError
from .layout import ActuationIndex, StateIndex
from .logging import get_logger, timed
from .polynomial import ReferencePolynomial
from .types import Actuation, HorizonSolution, VehicleState

logger = get_logger("solver")

# IPOPT treats bounds beyond 1e19 as infinite.
UNBOUNDED = 1.0e19


class HorizonSolver:
    """
    Receding-horizon NLP solver.

    Each call to ``solve`` starts from a zero-seeded decision vector with only
    the initial state filled in, unless ``solver.warm_start`` is enabled, in
    which case the previous actuation sequence is shifted forward one step.
    """

    def __init__(self, config: ControllerConfig):
        """
        Args:
            config: Controller configuration (validated)
        """
        config.validate()
        self.config = config
        self.layout = config.layout
        self.evaluator = HorizonEvaluator(config)
        self.num_coefficients = config.reference.polynomial_degree + 1

        self._lbx, self._ubx = self._variable_bounds()
        self._solver = self._build()
        self._previous: Optional[np.ndarray] = None

    def _variable_bounds(self):
        layout = self.layout
        vehicle = self.config.vehicle

        lbx = np.full(layout.n_vars, -UNBOUNDED)
        ubx = np.full(layout.n_vars, UNBOUNDED)

        steering = layout.slice(ActuationIndex.DELTA)
        lbx[steering] = -vehicle.max_steering
        ubx[steering] = vehicle.max_steering

        acceleration = layout.slice(ActuationIndex.A)
        lbx[acceleration] = -vehicle.max_acceleration
        ubx[acceleration] = vehicle.max_acceleration

        return lbx, ubx

    @timed
    def _build(self):
        """Create the symbolic problem and the IPOPT solver function."""
        vars = cs.SX.sym("vars", self.layout.n_vars)
        coeffs = cs.SX.sym("coeffs", self.num_coefficients)

        cost, residuals = self.evaluator.evaluate(vars, ReferencePolynomial(coeffs))
        nlp = {"x": vars, "p": coeffs, "f": cost, "g": residuals}

        options = self.config.solver
        opts = {
            "ipopt.print_level": options.print_level,
            "ipopt.sb": "yes",
            "ipopt.max_wall_time": options.max_wall_time,
            "ipopt.max_iter": options.max_iterations,
            "ipopt.tol": options.tolerance,
            "print_time": False,
            "error_on_fail": False,
        }
        logger.debug(
            f"Building NLP: {self.layout.n_vars} variables, "
            f"{self.layout.n_constraints} constraints"
        )
        return cs.nlpsol("horizon", "ipopt", nlp, opts)

    def _coefficients(self, polynomial: ReferencePolynomial) -> np.ndarray:
        coeffs = np.asarray(polynomial.coefficients, dtype=float).ravel()
        if coeffs.size > self.num_coefficients:
            raise PolynomialFitError(
                f"Reference polynomial has degree {coeffs.size - 1}, "
                f"solver was built for degree {self.num_coefficients - 1}",
                details={"degree": coeffs.size - 1, "max_degree": self.num_coefficients - 1},
            )
        padded = np.zeros(self.num_coefficients)
        padded[:coeffs.size] = coeffs
        return padded

    def _initial_guess(self, initial: np.ndarray) -> np.ndarray:
        layout = self.layout
        x0 = np.zeros(layout.n_vars)

        if self.config.solver.warm_start and self._previous is not None:
            for c in ActuationIndex:
                block = layout.slice(c)
                previous = self._previous[block]
                x0[block][:-1] = previous[1:]
                x0[block][-1] = previous[-1]

        x0[layout.initial_indices()] = initial
        return x0

    def solve(self, initial_state: VehicleState, polynomial: ReferencePolynomial) -> HorizonSolution:
        """
        Solve one horizon.

        Args:
            initial_state: Measured (latency-compensated) state, local frame
            polynomial: Reference path in the same frame

        Returns:
            HorizonSolution; ``success`` is False when IPOPT did not converge,
            in which case the solution holds the last iterate.
        """
        layout = self.layout
        initial = initial_state.to_array()

        lbg = np.zeros(layout.n_constraints)
        ubg = np.zeros(layout.n_constraints)
        lbg[layout.initial_indices()] = initial
        ubg[layout.initial_indices()] = initial

        start = time.perf_counter()
        result = self._solver(
            x0=self._initial_guess(initial),
            lbx=self._lbx,
            ubx=self._ubx,
            lbg=lbg,
            ubg=ubg,
            p=self._coefficients(polynomial),
        )
        solve_time = time.perf_counter() - start

        stats = self._solver.stats()
        success = bool(stats.get("success", False))
        status = str(stats.get("return_status", "unknown"))
        iterations = int(stats.get("iter_count", 0))

        z = np.asarray(result["x"].full(), dtype=float).ravel()
        cost = float(result["f"])

        if not (np.all(np.isfinite(z)) and np.isfinite(cost)):
            success = False
            status = f"{status} (non-finite iterate)"

        if success:
            logger.debug(
                f"Solve converged: status={status}, cost={cost:.4f}, "
                f"iterations={iterations}, time={solve_time * 1000:.1f}ms"
            )
            self._previous = z
        else:
            logger.warning(
                f"Solve did not converge: status={status}, iterations={iterations}, "
                f"time={solve_time * 1000:.1f}ms"
            )
            self._previous = None

        return self._extract(z, success, status, cost, iterations, solve_time)

    def _extract(self, z, success, status, cost, iterations, solve_time) -> HorizonSolution:
        layout = self.layout
        N = layout.horizon

        states = [
            VehicleState.from_array([z[layout.index(c, t)] for c in StateIndex])
            for t in range(N)
        ]
        actuations = [
            Actuation.from_array([z[layout.index(c, t)] for c in ActuationIndex])
            for t in range(layout.num_actuation_steps)
        ]
        trajectory = [(s.x, s.y) for s in states[1:]]

        return HorizonSolution(
            actuation=actuations[0],
            trajectory=trajectory,
            states=states,
            actuations=actuations,
            decision_vector=z,
            success=success,
            return_status=status,
            cost=cost,
            iterations=iterations,
            solve_time=solve_time,
        )

    def check_dynamics(self, solution: HorizonSolution, polynomial: ReferencePolynomial) -> float:
        """Largest absolute dynamics residual of a solution (steps 1..N-1)."""
        residuals = self.evaluator.constraints(solution.decision_vector, polynomial)
        mask = np.ones(self.layout.n_constraints, dtype=bool)
        mask[self.layout.initial_indices()] = False
        return float(np.max(np.abs(residuals[mask])))

    def reset_warmstart(self) -> None:
        """Forget the previous solution."""
        self._previous = None
