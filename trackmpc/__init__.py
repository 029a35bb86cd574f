"""
trackmpc - Receding-horizon path tracking for ground vehicles.

A kinematic bicycle model MPC: each telemetry sample is transformed into the
vehicle frame, the waypoints are fitted with a cubic, the state is advanced
by the actuation latency, and a nonlinear program over a short horizon is
solved with IPOPT (via CasADi). Only the first actuation is applied.

Basic Usage:
    from trackmpc import MPCController, Telemetry

    controller = MPCController()
    command = controller.step(Telemetry.from_dict(message))

For more control:
    from trackmpc.config import ControllerConfig, load_config
    from trackmpc.solver import HorizonSolver
    from trackmpc.exceptions import InsufficientWaypointsError
"""

from __future__ import annotations

__version__ = "0.1.0"

# =============================================================================
# Core API
# =============================================================================

from trackmpc.config import (
    ConfigManager,
    ControllerConfig,
    create_default_config,
    load_config,
)
from trackmpc.layout import ActuationIndex, DecisionLayout, StateIndex
from trackmpc.types import (
    Actuation,
    ControlCommand,
    HorizonSolution,
    Telemetry,
    VehicleState,
)
from trackmpc.polynomial import ReferencePolynomial, fit_polynomial, polyeval
from trackmpc.dynamics import KinematicModel
from trackmpc.evaluator import HorizonEvaluator
from trackmpc.solver import HorizonSolver
from trackmpc.controller import MPCController, to_vehicle_frame

# =============================================================================
# Logging
# =============================================================================

from trackmpc.logging import (
    LOG_DEBUG,
    LOG_ERROR,
    LOG_INFO,
    LOG_WARN,
    TimeTracker,
    get_logger,
    profile_scope,
    setup_logging,
    timed,
)

# =============================================================================
# Exceptions
# =============================================================================

from trackmpc.exceptions import (
    ConfigNotFoundError,
    ConfigurationError,
    ConfigValidationError,
    DegenerateFitError,
    InputError,
    InsufficientWaypointsError,
    InvalidTelemetryError,
    PolynomialFitError,
    SolverError,
    SolverFailedError,
    TrackMPCError,
)

__all__ = [
    "__version__",
    # Config
    "ConfigManager",
    "ControllerConfig",
    "create_default_config",
    "load_config",
    # Layout
    "ActuationIndex",
    "DecisionLayout",
    "StateIndex",
    # Types
    "Actuation",
    "ControlCommand",
    "HorizonSolution",
    "Telemetry",
    "VehicleState",
    # Core
    "ReferencePolynomial",
    "fit_polynomial",
    "polyeval",
    "KinematicModel",
    "HorizonEvaluator",
    "HorizonSolver",
    "MPCController",
    "to_vehicle_frame",
    # Logging
    "LOG_DEBUG",
    "LOG_ERROR",
    "LOG_INFO",
    "LOG_WARN",
    "TimeTracker",
    "get_logger",
    "profile_scope",
    "setup_logging",
    "timed",
    # Exceptions
    "ConfigNotFoundError",
    "ConfigurationError",
    "ConfigValidationError",
    "DegenerateFitError",
    "InputError",
    "InsufficientWaypointsError",
    "InvalidTelemetryError",
    "PolynomialFitError",
    "SolverError",
    "SolverFailedError",
    "TrackMPCError",
]
