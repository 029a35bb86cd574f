"""
Core data structures for the tracking controller.

- VehicleState / Actuation: one time instant of the horizon
- HorizonSolution: what one solve produced
- Telemetry / ControlCommand: per-cycle input and output records
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np


# =============================================================================
# Horizon Elements
# =============================================================================

@dataclass(frozen=True)
class VehicleState:
    """
    Vehicle state: (x, y, psi, v, cte, epsi)

    Attributes:
        x: Position x-coordinate [m]
        y: Position y-coordinate [m]
        psi: Heading [rad]
        v: Speed
        cte: Cross-track error, path y minus vehicle y [m]
        epsi: Heading error, path tangent angle minus heading [rad]
    """
    x: float
    y: float
    psi: float
    v: float
    cte: float = 0.0
    epsi: float = 0.0

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y, psi, v, cte, epsi]."""
        return np.array([self.x, self.y, self.psi, self.v, self.cte, self.epsi], dtype=float)

    @classmethod
    def from_array(cls, arr: Sequence[float]) -> "VehicleState":
        """Create from array in StateIndex order."""
        return cls(*(float(value) for value in arr[:6]))


@dataclass(frozen=True)
class Actuation:
    """
    Control input: (delta, a)

    Attributes:
        delta: Steering angle [rad], positive turns towards +y (left)
        a: Acceleration / throttle in [-1, 1]
    """
    delta: float
    a: float

    def to_array(self) -> np.ndarray:
        return np.array([self.delta, self.a], dtype=float)

    @classmethod
    def from_array(cls, arr: Sequence[float]) -> "Actuation":
        return cls(delta=float(arr[0]), a=float(arr[1]))


@dataclass
class HorizonSolution:
    """
    Result of one horizon solve.

    ``success`` is only True when IPOPT reports convergence. When it is False
    the remaining fields hold the solver's last iterate.
    """
    actuation: Actuation
    trajectory: List[Tuple[float, float]]
    states: List[VehicleState]
    actuations: List[Actuation]
    decision_vector: np.ndarray
    success: bool
    return_status: str
    cost: float
    iterations: int = 0
    solve_time: float = 0.0

    @property
    def predicted_x(self) -> List[float]:
        return [p[0] for p in self.trajectory]

    @property
    def predicted_y(self) -> List[float]:
        return [p[1] for p in self.trajectory]


# =============================================================================
# Control Cycle I/O
# =============================================================================

@dataclass
class Telemetry:
    """
    One telemetry sample in world frame.

    ``steering_angle`` and ``throttle`` are the previous command as reported by
    the vehicle; the steering angle is in radians, simulator convention
    (positive turns right).
    """
    ptsx: List[float]
    ptsy: List[float]
    x: float
    y: float
    psi: float
    speed: float
    steering_angle: float = 0.0
    throttle: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Telemetry":
        """Build from a decoded telemetry message.

        Raises:
            KeyError: if a required field is missing.
        """
        return cls(
            ptsx=[float(v) for v in data["ptsx"]],
            ptsy=[float(v) for v in data["ptsy"]],
            x=float(data["x"]),
            y=float(data["y"]),
            psi=float(data["psi"]),
            speed=float(data["speed"]),
            steering_angle=float(data.get("steering_angle", 0.0)),
            throttle=float(data.get("throttle", 0.0)),
        )


@dataclass
class ControlCommand:
    """
    One control cycle's output.

    ``steering_angle`` is normalized to [-1, 1] in simulator convention.
    ``next_x/next_y`` trace the reference polynomial and ``mpc_x/mpc_y`` the
    predicted trajectory, both in vehicle-local frame.
    """
    steering_angle: float
    throttle: float
    next_x: List[float] = field(default_factory=list)
    next_y: List[float] = field(default_factory=list)
    mpc_x: List[float] = field(default_factory=list)
    mpc_y: List[float] = field(default_factory=list)
    status: str = ""
    converged: bool = True
    cost: float = float("nan")
    fallback: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Message fields expected by the simulator."""
        return {
            "steering_angle": self.steering_angle,
            "throttle": self.throttle,
            "next_x": list(self.next_x),
            "next_y": list(self.next_y),
            "mpc_x": list(self.mpc_x),
            "mpc_y": list(self.mpc_y),
        }
