"""
trackmpc Exception Hierarchy.

All errors raised by the controller derive from TrackMPCError so that a
caller driving the control loop can refuse a cycle with a single except
clause while still telling input problems apart from solver problems.
"""

from typing import Any, Optional


class TrackMPCError(Exception):
    """Base exception for all trackmpc errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(TrackMPCError):
    """Error in configuration loading or validation."""

    pass


class ConfigNotFoundError(ConfigurationError):
    """Configuration file not found."""

    def __init__(self, config_path: str):
        super().__init__(
            f"Configuration file not found: {config_path}",
            details={"path": config_path},
        )


class ConfigValidationError(ConfigurationError):
    """Configuration validation failed."""

    def __init__(self, key: str, reason: str, value: Any = None):
        details = {"key": key, "reason": reason}
        if value is not None:
            details["value"] = str(value)
        super().__init__(
            f"Invalid configuration for '{key}': {reason}",
            details=details,
        )


# =============================================================================
# Solver Errors
# =============================================================================


class SolverError(TrackMPCError):
    """Base class for solver-related errors."""

    pass


class SolverFailedError(SolverError):
    """Solver did not converge to an acceptable solution."""

    def __init__(self, reason: str = "Unknown", iterations: Optional[int] = None):
        details = {"reason": reason}
        if iterations is not None:
            details["iterations"] = iterations
        super().__init__(
            f"Solver failed to find a solution: {reason}",
            details=details,
        )


# =============================================================================
# Input Errors
# =============================================================================


class InputError(TrackMPCError):
    """Base class for errors in per-cycle input data."""

    pass


class InvalidTelemetryError(InputError):
    """Telemetry record is malformed."""

    def __init__(self, field_name: str, reason: str):
        super().__init__(
            f"Invalid telemetry field '{field_name}': {reason}",
            details={"field": field_name, "reason": reason},
        )


class PolynomialFitError(InputError):
    """Reference polynomial could not be fitted or does not match the solver."""

    pass


class InsufficientWaypointsError(PolynomialFitError):
    """Too few waypoints for the requested polynomial degree."""

    def __init__(self, num_points: int, degree: int):
        super().__init__(
            f"Need at least {degree + 1} waypoints to fit a degree {degree} "
            f"polynomial, got {num_points}",
            details={"points": num_points, "degree": degree},
        )


class DegenerateFitError(PolynomialFitError):
    """Fit matrix is rank deficient or produced non-finite coefficients."""

    def __init__(self, reason: str):
        super().__init__(
            f"Degenerate polynomial fit: {reason}",
            details={"reason": reason},
        )
