"""
Decision vector layout.

The solver works on one flat vector::

    [x_0..x_{N-1}, y_*, psi_*, v_*, cte_*, epsi_*, delta_0..delta_{N-2}, a_*]

i.e. six state blocks of length N followed by two actuation blocks of length
N-1. The constraint residual vector reuses the six state blocks. All offsets
come from DecisionLayout; nothing else computes them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Union


class StateIndex(IntEnum):
    """Position of each state block in the decision vector."""
    X = 0
    Y = 1
    PSI = 2
    V = 3
    CTE = 4
    EPSI = 5


class ActuationIndex(IntEnum):
    """Position of each actuation block after the state blocks."""
    DELTA = 0
    A = 1


NUM_STATES = len(StateIndex)
NUM_ACTUATIONS = len(ActuationIndex)

Component = Union[StateIndex, ActuationIndex]


@dataclass(frozen=True)
class DecisionLayout:
    """Block offsets of the decision vector for a horizon of ``horizon`` steps."""

    horizon: int

    def __post_init__(self):
        if self.horizon < 2:
            raise ValueError(f"horizon must be >= 2, got {self.horizon}")

    @property
    def num_actuation_steps(self) -> int:
        return self.horizon - 1

    @property
    def n_vars(self) -> int:
        return NUM_STATES * self.horizon + NUM_ACTUATIONS * self.num_actuation_steps

    @property
    def n_constraints(self) -> int:
        return NUM_STATES * self.horizon

    @property
    def actuation_start(self) -> int:
        """Index of the first actuation slot (everything before is state)."""
        return NUM_STATES * self.horizon

    def start(self, component: Component) -> int:
        """First index of a component's block."""
        if isinstance(component, StateIndex):
            return int(component) * self.horizon
        if isinstance(component, ActuationIndex):
            return self.actuation_start + int(component) * self.num_actuation_steps
        raise TypeError(f"not a layout component: {component!r}")

    def length(self, component: Component) -> int:
        if isinstance(component, StateIndex):
            return self.horizon
        return self.num_actuation_steps

    def slice(self, component: Component) -> slice:
        start = self.start(component)
        return slice(start, start + self.length(component))

    def index(self, component: Component, step: int) -> int:
        """Flat index of ``component`` at time ``step``."""
        if not 0 <= step < self.length(component):
            raise IndexError(
                f"step {step} out of range for {component.name} "
                f"(0..{self.length(component) - 1})"
            )
        return self.start(component) + step

    def initial_indices(self):
        """Flat indices of the six step-0 state slots, in StateIndex order."""
        return [self.start(c) for c in StateIndex]
