"""
Tests for exception hierarchy.
"""

from __future__ import annotations

import pytest

from trackmpc.exceptions import (
    TrackMPCError,
    ConfigurationError,
    ConfigNotFoundError,
    ConfigValidationError,
    SolverError,
    SolverFailedError,
    InputError,
    InvalidTelemetryError,
    PolynomialFitError,
    InsufficientWaypointsError,
    DegenerateFitError,
)


class TestTrackMPCError:
    """Tests for base TrackMPCError."""

    def test_basic_message(self):
        """Should store and return message."""
        error = TrackMPCError("Test error")
        assert str(error) == "Test error"
        assert error.message == "Test error"

    def test_message_with_details(self):
        """Should include details in string representation."""
        error = TrackMPCError("Test error", details={"key": "value"})
        assert "key=value" in str(error)
        assert error.details == {"key": "value"}

    def test_is_exception(self):
        """Should be an Exception subclass."""
        assert isinstance(TrackMPCError("Test"), Exception)


class TestConfigurationErrors:
    """Tests for configuration-related errors."""

    def test_config_not_found(self):
        """ConfigNotFoundError should include path."""
        error = ConfigNotFoundError("/path/to/config.yml")
        assert "/path/to/config.yml" in str(error)
        assert error.details["path"] == "/path/to/config.yml"

    def test_config_validation_error(self):
        """ConfigValidationError should include key and reason."""
        error = ConfigValidationError("horizon.horizon", "must be >= 2", value=1)
        assert "horizon.horizon" in str(error)
        assert "must be >= 2" in str(error)
        assert error.details["value"] == "1"

    def test_inheritance(self):
        """Configuration errors should inherit from ConfigurationError."""
        assert issubclass(ConfigNotFoundError, ConfigurationError)
        assert issubclass(ConfigValidationError, ConfigurationError)
        assert issubclass(ConfigurationError, TrackMPCError)


class TestSolverErrors:
    """Tests for solver-related errors."""

    def test_solver_failed_error(self):
        """SolverFailedError should include the solver status."""
        error = SolverFailedError("Maximum_WallTime_Exceeded", iterations=3)
        assert "Maximum_WallTime_Exceeded" in str(error)
        assert error.details["iterations"] == 3

    def test_inheritance(self):
        assert issubclass(SolverFailedError, SolverError)
        assert issubclass(SolverError, TrackMPCError)


class TestInputErrors:
    """Tests for telemetry and fitting errors."""

    def test_insufficient_waypoints(self):
        """InsufficientWaypointsError should say how many points are needed."""
        error = InsufficientWaypointsError(num_points=3, degree=3)
        assert "at least 4" in str(error)
        assert error.details == {"points": 3, "degree": 3}

    def test_invalid_telemetry(self):
        error = InvalidTelemetryError("speed", "must be finite")
        assert "speed" in str(error)
        assert "must be finite" in str(error)

    def test_degenerate_fit(self):
        error = DegenerateFitError("rank 2")
        assert "rank 2" in str(error)

    def test_inheritance(self):
        """Fit errors are input errors, so a caller can refuse the cycle."""
        assert issubclass(InsufficientWaypointsError, PolynomialFitError)
        assert issubclass(DegenerateFitError, PolynomialFitError)
        assert issubclass(PolynomialFitError, InputError)
        assert issubclass(InvalidTelemetryError, InputError)
        assert issubclass(InputError, TrackMPCError)


class TestExceptionCatching:
    """Tests for exception hierarchy catching."""

    def test_catch_all_trackmpc_errors(self):
        """Should be able to catch all errors with the base class."""
        errors = [
            ConfigNotFoundError("/path"),
            SolverFailedError("test"),
            InvalidTelemetryError("x", "test"),
            InsufficientWaypointsError(1, 3),
            DegenerateFitError("test"),
        ]

        for error in errors:
            with pytest.raises(TrackMPCError):
                raise error
