"""
Plot a closed-loop run: track, driven path and the last predicted horizon.
"""

from pathlib import Path
from typing import Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np

from .runner import RunResult, Track


def _to_world(xs, ys, px, py, psi):
    cos_psi, sin_psi = np.cos(psi), np.sin(psi)
    xs, ys = np.asarray(xs), np.asarray(ys)
    return px + xs * cos_psi - ys * sin_psi, py + xs * sin_psi + ys * cos_psi


def plot_run(result: RunResult, track: Track, path: Union[str, Path]) -> Path:
    """Save a two-panel figure (path on top, speed / cross-track below)."""
    path = Path(path)
    fig, (ax_path, ax_err) = plt.subplots(2, 1, figsize=(8, 10), gridspec_kw={"height_ratios": [3, 1]})

    track_x, track_y = track.x, track.y
    if track.closed:
        track_x, track_y = np.append(track_x, track_x[0]), np.append(track_y, track_y[0])
    ax_path.plot(track_x, track_y, "y-", linewidth=2, label="reference")

    if result.positions:
        pos = np.asarray(result.positions)
        ax_path.plot(pos[:, 0], pos[:, 1], "b-", linewidth=1.5, label="driven")

        # Predictions are in the vehicle frame of the telemetry they came from.
        last = result.commands[-1]
        if last.mpc_x:
            px, py, psi = result.telemetry_poses[-1]
            mx, my = _to_world(last.mpc_x, last.mpc_y, px, py, psi)
            ax_path.plot(mx, my, "g.-", label="last prediction")

    ax_path.set_aspect("equal", adjustable="datalim")
    ax_path.set_xlabel("x [m]")
    ax_path.set_ylabel("y [m]")
    ax_path.legend(loc="best")
    ax_path.grid(True, alpha=0.3)

    steps = np.arange(result.steps)
    ax_err.plot(steps, result.cross_track_errors, "r-", label="cross-track error [m]")
    ax_err.plot(steps, result.speeds, "k--", label="speed")
    ax_err.set_xlabel("step")
    ax_err.legend(loc="best")
    ax_err.grid(True, alpha=0.3)

    fig.tight_layout()
    fig.savefig(path, dpi=100)
    plt.close(fig)
    return path
