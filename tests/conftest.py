"""
Pytest configuration and fixtures for trackmpc tests.

This module provides shared fixtures for testing:
- Configuration fixtures
- Reference path and telemetry fixtures
- Solver and controller fixtures
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import numpy as np
import pytest


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def default_config():
    """Create default controller configuration."""
    from trackmpc.config import ControllerConfig

    return ControllerConfig()


@pytest.fixture
def test_config(default_config):
    """Configuration for solver tests.

    Moderate target speed, and a generous wall-time cap so slow machines do
    not turn converging solves into timeouts.
    """
    return default_config.replace(
        cost={"target_speed": 20.0},
        solver={"max_wall_time": 10.0},
    )


# =============================================================================
# Reference Path Fixtures
# =============================================================================


def _waypoints(curvature: float = 0.0, count: int = 8, spacing: float = 5.0) -> Tuple[List[float], List[float]]:
    xs = [spacing * i for i in range(-1, count - 1)]
    ys = [curvature * x * x for x in xs]
    return xs, ys


@pytest.fixture
def straight_polynomial():
    """Local-frame path along the x axis."""
    from trackmpc.polynomial import fit_polynomial

    xs, ys = _waypoints()
    return fit_polynomial(xs, ys, 3)


@pytest.fixture
def left_curve_polynomial():
    """Local-frame path bending towards +y."""
    from trackmpc.polynomial import fit_polynomial

    xs, ys = _waypoints(curvature=0.01)
    return fit_polynomial(xs, ys, 3)


@pytest.fixture
def straight_telemetry():
    """Straight waypoints ahead of a vehicle at the origin heading along +x."""
    from trackmpc.types import Telemetry

    xs, ys = _waypoints()
    return Telemetry(ptsx=xs, ptsy=ys, x=0.0, y=0.0, psi=0.0, speed=10.0)


@pytest.fixture
def rotated_telemetry():
    """Straight waypoints along a 45 degree line, vehicle on it at (10, 10)."""
    from trackmpc.types import Telemetry

    distances = np.arange(-5.0, 35.0, 5.0)
    heading = np.pi / 4
    xs = (10.0 + distances * np.cos(heading)).tolist()
    ys = (10.0 + distances * np.sin(heading)).tolist()
    return Telemetry(ptsx=xs, ptsy=ys, x=10.0, y=10.0, psi=heading, speed=10.0)


@pytest.fixture
def left_curve_telemetry():
    """Waypoints curving left ahead of a vehicle at the origin."""
    from trackmpc.types import Telemetry

    xs, ys = _waypoints(curvature=0.01)
    return Telemetry(ptsx=xs, ptsy=ys, x=0.0, y=0.0, psi=0.0, speed=10.0)


# =============================================================================
# Solver Fixtures
# =============================================================================


@pytest.fixture
def solver(test_config):
    """Horizon solver built from the test configuration."""
    from trackmpc.solver import HorizonSolver

    return HorizonSolver(test_config)


@pytest.fixture
def controller(test_config):
    """Controller built from the test configuration."""
    from trackmpc.controller import MPCController

    return MPCController(test_config)


# =============================================================================
# Temporary Files Fixtures
# =============================================================================


@pytest.fixture
def temp_config_file(tmp_path) -> Path:
    """Create a temporary configuration file."""
    import yaml

    config = {
        "horizon": {
            "horizon": 10,
            "timestep": 0.2,
        },
        "cost": {
            "target_speed": 30.0,
        },
    }

    config_path = tmp_path / "test_config.yml"
    with open(config_path, "w") as f:
        yaml.dump(config, f)

    return config_path


# =============================================================================
# Marker Registrations
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
