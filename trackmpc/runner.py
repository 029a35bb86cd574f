"""
Closed-loop execution against a simulated vehicle.

The plant is the same kinematic model the controller uses. Commands take
effect ``latency.interval`` seconds after the telemetry they were computed
from, which is what the controller's latency compensation accounts for.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .controller import MPCController
from .dynamics import KinematicModel
from .logging import LOG_DEBUG, LOG_INFO, LOG_WARN, TimeTracker
from .polynomial import ReferencePolynomial
from .types import Actuation, ControlCommand, Telemetry, VehicleState

TRACK_TYPES = ("oval", "straight", "s-curve")

# Plant states carry no path, cte/epsi are ignored.
_NO_PATH = ReferencePolynomial(np.zeros(1))


@dataclass
class Track:
    """Waypoints of a reference path in world frame."""
    x: np.ndarray
    y: np.ndarray
    closed: bool = False

    def __len__(self) -> int:
        return len(self.x)


def make_track(kind: str = "oval", spacing: float = 5.0) -> Track:
    """
    Create a synthetic track.

    Args:
        kind: "oval" (closed, 100 m straights, 50 m radius turns),
            "straight" (300 m along +x) or "s-curve" (sinusoid along +x)
        spacing: Approximate distance between waypoints [m]
    """
    if kind == "straight":
        x = np.arange(0.0, 300.0 + spacing, spacing)
        return Track(x=x, y=np.zeros_like(x))

    if kind == "s-curve":
        x = np.arange(0.0, 400.0 + spacing, spacing)
        return Track(x=x, y=15.0 * np.sin(2 * np.pi * x / 200.0))

    if kind == "oval":
        length, radius = 100.0, 50.0
        straight = np.arange(0.0, length, spacing)
        arc = np.arange(0.0, np.pi, spacing / radius)
        xs = [straight]
        ys = [np.zeros_like(straight)]
        xs.append(length + radius * np.sin(arc))
        ys.append(radius - radius * np.cos(arc))
        xs.append(length - straight)
        ys.append(np.full_like(straight, 2 * radius))
        xs.append(-radius * np.sin(arc))
        ys.append(radius + radius * np.cos(arc))
        return Track(x=np.concatenate(xs), y=np.concatenate(ys), closed=True)

    raise ValueError(f"Unknown track type '{kind}', expected one of {TRACK_TYPES}")


@dataclass
class RunResult:
    """Everything recorded during a closed-loop run."""
    positions: List[Tuple[float, float]] = field(default_factory=list)
    telemetry_poses: List[Tuple[float, float, float]] = field(default_factory=list)
    speeds: List[float] = field(default_factory=list)
    cross_track_errors: List[float] = field(default_factory=list)
    commands: List[ControlCommand] = field(default_factory=list)
    solve_times_ms: List[float] = field(default_factory=list)
    completed: bool = False

    @property
    def steps(self) -> int:
        return len(self.commands)

    @property
    def converged_ratio(self) -> float:
        if not self.commands:
            return 0.0
        return sum(c.converged for c in self.commands) / len(self.commands)

    @property
    def max_cross_track_error(self) -> float:
        return max(self.cross_track_errors, default=0.0)

    def to_dict(self) -> Dict:
        return {
            "steps": self.steps,
            "completed": self.completed,
            "converged_ratio": self.converged_ratio,
            "max_cross_track_error": self.max_cross_track_error,
            "trajectory": [list(p) for p in self.positions],
            "speeds": self.speeds,
            "statuses": [c.status for c in self.commands],
            "solve_times_ms": self.solve_times_ms,
        }


def nearest_waypoint(track: Track, x: float, y: float) -> int:
    return int(np.argmin(np.hypot(track.x - x, track.y - y)))


def waypoints_ahead(track: Track, index: int, count: int) -> Tuple[List[float], List[float]]:
    """``count`` waypoints starting one behind ``index`` (wrapping on closed tracks)."""
    indices = np.arange(index - 1, index - 1 + count)
    if track.closed:
        indices = indices % len(track)
    else:
        indices = indices[(indices >= 0) & (indices < len(track))]
    return track.x[indices].tolist(), track.y[indices].tolist()


def distance_to_track(track: Track, x: float, y: float) -> float:
    """Distance from (x, y) to the track polyline."""
    px, py = track.x, track.y
    if track.closed:
        px, py = np.append(px, px[0]), np.append(py, py[0])
    ax, ay = px[:-1], py[:-1]
    dx, dy = px[1:] - ax, py[1:] - ay
    seg_len2 = np.maximum(dx * dx + dy * dy, 1e-12)
    t = np.clip(((x - ax) * dx + (y - ay) * dy) / seg_len2, 0.0, 1.0)
    return float(np.min(np.hypot(ax + t * dx - x, ay + t * dy - y)))


def run_closed_loop(
    controller: MPCController,
    track: Track,
    max_steps: int = 200,
    cycle_time: float = 0.1,
    initial_speed: float = 5.0,
    lookahead: int = 8,
    initial_pose: Optional[Tuple[float, float, float]] = None,
) -> RunResult:
    """
    Drive the simulated vehicle along ``track`` with ``controller``.

    Args:
        controller: Controller to run
        track: Reference path
        max_steps: Maximum number of control cycles
        cycle_time: Time between telemetry samples [s]
        initial_speed: Starting speed
        lookahead: Waypoints per telemetry sample
        initial_pose: (x, y, psi); defaults to the first track waypoint,
            heading towards the second

    Returns:
        RunResult. ``completed`` is True when an open track ran out of
        waypoints ahead of the vehicle (end reached).
    """
    config = controller.config
    latency = min(config.latency.interval, cycle_time)
    max_steering = config.vehicle.max_steering
    model = KinematicModel(config.vehicle.lf)

    if initial_pose is None:
        heading = np.arctan2(track.y[1] - track.y[0], track.x[1] - track.x[0])
        initial_pose = (float(track.x[0]), float(track.y[0]), float(heading))
    state = VehicleState(*initial_pose, v=initial_speed)
    applied = Actuation(delta=0.0, a=0.0)

    result = RunResult()
    tracker = TimeTracker("control cycle")
    degree = config.reference.polynomial_degree

    LOG_INFO(f"Starting closed-loop run: {len(track)} waypoints, max {max_steps} steps")

    for _ in range(max_steps):
        index = nearest_waypoint(track, state.x, state.y)
        ptsx, ptsy = waypoints_ahead(track, index, lookahead)
        if len(ptsx) < degree + 2:
            result.completed = True
            break

        telemetry = Telemetry(
            ptsx=ptsx,
            ptsy=ptsy,
            x=state.x,
            y=state.y,
            psi=state.psi,
            speed=state.v,
            steering_angle=-applied.delta,
            throttle=applied.a,
        )

        start = time.perf_counter()
        command = controller.step(telemetry)
        elapsed_ms = (time.perf_counter() - start) * 1000
        tracker.add(elapsed_ms)
        result.solve_times_ms.append(elapsed_ms)

        if config.latency.simulate_delay and latency > 0:
            time.sleep(latency)

        # The previous command stays active until the new one arrives.
        if latency > 0:
            state = model.propagate(state, applied, latency, _NO_PATH)
        applied = Actuation(delta=-command.steering_angle * max_steering, a=command.throttle)
        state = model.propagate(state, applied, cycle_time - latency, _NO_PATH)

        if command.fallback:
            LOG_WARN(f"Step {result.steps}: applied '{command.fallback}' fallback ({command.status})")
        else:
            LOG_DEBUG(
                f"Step {result.steps}: steering={command.steering_angle:.3f}, "
                f"throttle={command.throttle:.3f}, cost={command.cost:.2f}"
            )
        result.commands.append(command)
        result.telemetry_poses.append((telemetry.x, telemetry.y, telemetry.psi))
        result.positions.append((state.x, state.y))
        result.speeds.append(state.v)
        result.cross_track_errors.append(distance_to_track(track, state.x, state.y))

    tracker.print_stats()
    LOG_INFO(
        f"Run finished after {result.steps} steps, converged {result.converged_ratio:.0%}, "
        f"max cross-track error {result.max_cross_track_error:.2f} m"
    )
    return result
