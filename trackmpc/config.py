"""
Configuration management for trackmpc.

This module provides:
- ControllerConfig: immutable, typed configuration built once per controller
- ConfigManager: layered loading (defaults <- YAML file <- environment)
- create_default_config: default configuration as a plain dictionary
- load_config: load and validate a YAML configuration file
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from trackmpc.exceptions import ConfigNotFoundError, ConfigValidationError
from trackmpc.layout import DecisionLayout


# =============================================================================
# Configuration Sections
# =============================================================================


@dataclass(frozen=True)
class HorizonConfig:
    """Prediction horizon: ``horizon`` steps spaced ``timestep`` seconds apart."""

    horizon: int = 15
    timestep: float = 0.15

    def validate(self) -> None:
        if self.horizon < 2:
            raise ConfigValidationError("horizon.horizon", "must be >= 2", self.horizon)
        if self.timestep <= 0:
            raise ConfigValidationError("horizon.timestep", "must be > 0", self.timestep)


@dataclass(frozen=True)
class VehicleConfig:
    """Vehicle constants and actuator limits.

    ``lf`` is the distance from the front axle to the center of gravity; it
    plays the role of the wheelbase in the kinematic bicycle model.
    """

    lf: float = 2.67
    max_steering: float = 0.436332
    max_acceleration: float = 1.0

    def validate(self) -> None:
        if self.lf <= 0:
            raise ConfigValidationError("vehicle.lf", "must be > 0", self.lf)
        if self.max_steering <= 0:
            raise ConfigValidationError("vehicle.max_steering", "must be > 0", self.max_steering)
        if self.max_acceleration <= 0:
            raise ConfigValidationError(
                "vehicle.max_acceleration", "must be > 0", self.max_acceleration
            )


@dataclass(frozen=True)
class CostConfig:
    """Target speed and cost weights.

    Tracking weights dominate, rate weights damp oscillation, magnitude
    weights penalize control effort.
    """

    target_speed: float = 80.0
    cte_weight: float = 1000.0
    epsi_weight: float = 1000.0
    speed_weight: float = 1.0
    steering_weight: float = 100.0
    acceleration_weight: float = 10.0
    steering_rate_weight: float = 10.0
    acceleration_rate_weight: float = 10.0

    def validate(self) -> None:
        for f in dataclasses.fields(self):
            if f.name.endswith("_weight") and getattr(self, f.name) < 0:
                raise ConfigValidationError(f"cost.{f.name}", "must be >= 0", getattr(self, f.name))


@dataclass(frozen=True)
class SolverConfig:
    """IPOPT options."""

    max_wall_time: float = 0.5
    print_level: int = 0
    max_iterations: int = 3000
    tolerance: float = 1e-8
    warm_start: bool = False

    def validate(self) -> None:
        if self.max_wall_time <= 0:
            raise ConfigValidationError("solver.max_wall_time", "must be > 0", self.max_wall_time)
        if not 0 <= self.print_level <= 12:
            raise ConfigValidationError("solver.print_level", "must be in [0, 12]", self.print_level)
        if self.max_iterations < 1:
            raise ConfigValidationError("solver.max_iterations", "must be >= 1", self.max_iterations)
        if self.tolerance <= 0:
            raise ConfigValidationError("solver.tolerance", "must be > 0", self.tolerance)


@dataclass(frozen=True)
class LatencyConfig:
    """Actuation latency compensation.

    ``interval`` is how far the measured state is advanced before solving.
    With ``simulate_delay`` the runner also waits that long before applying
    each command.
    """

    interval: float = 0.1
    simulate_delay: bool = False

    def validate(self) -> None:
        if self.interval < 0:
            raise ConfigValidationError("latency.interval", "must be >= 0", self.interval)


@dataclass(frozen=True)
class ReferenceConfig:
    """Reference polynomial fit and display-only forward projection."""

    polynomial_degree: int = 3
    display_points: int = 11
    display_spacing: float = 5.0

    def validate(self) -> None:
        if self.polynomial_degree < 1:
            raise ConfigValidationError(
                "reference.polynomial_degree", "must be >= 1", self.polynomial_degree
            )
        if self.display_points < 0:
            raise ConfigValidationError(
                "reference.display_points", "must be >= 0", self.display_points
            )
        if self.display_spacing <= 0:
            raise ConfigValidationError(
                "reference.display_spacing", "must be > 0", self.display_spacing
            )


FALLBACK_POLICIES = ("iterate", "hold", "brake", "raise")


@dataclass(frozen=True)
class ControllerSection:
    """What the control loop does when a solve does not converge."""

    fallback: str = "hold"
    brake_throttle: float = -1.0

    def validate(self) -> None:
        if self.fallback not in FALLBACK_POLICIES:
            raise ConfigValidationError(
                "controller.fallback", f"must be one of {FALLBACK_POLICIES}", self.fallback
            )
        if not -1.0 <= self.brake_throttle <= 0.0:
            raise ConfigValidationError(
                "controller.brake_throttle", "must be in [-1, 0]", self.brake_throttle
            )


_SECTIONS = {
    "horizon": HorizonConfig,
    "vehicle": VehicleConfig,
    "cost": CostConfig,
    "solver": SolverConfig,
    "latency": LatencyConfig,
    "reference": ReferenceConfig,
    "controller": ControllerSection,
}


@dataclass(frozen=True)
class ControllerConfig:
    """Complete controller configuration."""

    horizon: HorizonConfig = field(default_factory=HorizonConfig)
    vehicle: VehicleConfig = field(default_factory=VehicleConfig)
    cost: CostConfig = field(default_factory=CostConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    latency: LatencyConfig = field(default_factory=LatencyConfig)
    reference: ReferenceConfig = field(default_factory=ReferenceConfig)
    controller: ControllerSection = field(default_factory=ControllerSection)

    @property
    def layout(self) -> DecisionLayout:
        """Decision vector layout derived from the horizon length."""
        return DecisionLayout(self.horizon.horizon)

    def validate(self) -> None:
        """Validate all configuration sections."""
        for name in _SECTIONS:
            getattr(self, name).validate()

    def replace(self, **sections: Any) -> "ControllerConfig":
        """Return a copy with some fields of some sections replaced.

        Example:
            config.replace(solver={"max_wall_time": 1e-6})
        """
        updated = {}
        for name, changes in sections.items():
            if name not in _SECTIONS:
                raise ConfigValidationError(name, "unknown configuration section")
            current = getattr(self, name)
            if isinstance(changes, _SECTIONS[name]):
                updated[name] = changes
            else:
                updated[name] = _build_section(name, {**dataclasses.asdict(current), **changes})
        return dataclasses.replace(self, **updated)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to nested dictionary format."""
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ControllerConfig":
        """Create ControllerConfig from a nested dictionary.

        Missing sections and keys take their defaults; unknown ones are
        rejected.
        """
        unknown = set(data) - set(_SECTIONS)
        if unknown:
            raise ConfigValidationError(
                sorted(unknown)[0], f"unknown configuration section, expected one of {list(_SECTIONS)}"
            )
        return cls(**{name: _build_section(name, data.get(name) or {}) for name in _SECTIONS})


def _build_section(name: str, values: Dict[str, Any]) -> Any:
    section_cls = _SECTIONS[name]
    fields = {f.name: f for f in dataclasses.fields(section_cls)}
    kwargs = {}
    for key, value in values.items():
        if key not in fields:
            raise ConfigValidationError(f"{name}.{key}", "unknown configuration key")
        kwargs[key] = _coerce(f"{name}.{key}", type(fields[key].default), value)
    return section_cls(**kwargs)


def _coerce(key: str, target: type, value: Any) -> Any:
    """Convert a loaded value to the type of the field default.

    Booleans accept 0/1 (environment variables arrive as strings) but never
    stand in for numbers.
    """
    if target is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise ConfigValidationError(key, "must be a boolean", value)
    if isinstance(value, bool):
        raise ConfigValidationError(key, f"must be of type {target.__name__}", value)
    if isinstance(value, target):
        return value
    try:
        if target is int:
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(value)
        return target(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(key, f"must be of type {target.__name__}", value) from None


# =============================================================================
# Configuration Manager
# =============================================================================


class ConfigManager:
    """Layered configuration loading.

    Environment variables take precedence over config files.
    Config files take precedence over defaults.

    Environment variable format: TRACKMPC_<SECTION>_<KEY>
    Example: TRACKMPC_HORIZON_TIMESTEP=0.1
    """

    ENV_PREFIX = "TRACKMPC"

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self._config: Optional[ControllerConfig] = None
        self._config_path = Path(config_path) if config_path else None
        self._raw_config: Dict[str, Any] = {}

    def load(self, validate: bool = True) -> ControllerConfig:
        """Load and return configuration.

        Args:
            validate: Whether to validate configuration after loading.
        """
        self._raw_config = create_default_config()

        if self._config_path:
            self._load_from_file(self._config_path)

        self._load_from_env()

        self._config = ControllerConfig.from_dict(self._raw_config)

        if validate:
            self._config.validate()

        return self._config

    def _load_from_file(self, path: Path) -> None:
        if not path.exists():
            raise ConfigNotFoundError(str(path))

        with open(path, "r") as f:
            file_config = yaml.safe_load(f)

        if file_config:
            if not isinstance(file_config, dict):
                raise ConfigValidationError(str(path), "top level must be a mapping")
            self._deep_update(self._raw_config, file_config)

    def _load_from_env(self) -> None:
        """Apply TRACKMPC_<SECTION>_<KEY> overrides.

        Variables whose section is unknown (TRACKMPC_LOG_LEVEL and friends)
        belong to other subsystems and are skipped.
        """
        prefix = f"{self.ENV_PREFIX}_"
        for key, value in os.environ.items():
            if not key.startswith(prefix):
                continue
            section, _, option = key[len(prefix):].lower().partition("_")
            if section in _SECTIONS and option:
                self._raw_config.setdefault(section, {})[option] = self._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string value to appropriate Python type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    @staticmethod
    def _deep_update(base: dict, update: dict) -> dict:
        """Deep merge update into base dictionary."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                ConfigManager._deep_update(base[key], value)
            else:
                base[key] = value
        return base

    @property
    def config(self) -> ControllerConfig:
        """Get current configuration (loads if not already loaded)."""
        if self._config is None:
            self.load()
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dotted key path, e.g. "cost.target_speed"."""
        parts = key.split(".")
        value = self._raw_config

        for part in parts:
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return value


# =============================================================================
# Factory Functions
# =============================================================================


def create_default_config() -> Dict[str, Any]:
    """Create the default configuration dictionary."""
    return ControllerConfig().to_dict()


def load_config(path: Union[str, Path], validate: bool = True) -> ControllerConfig:
    """Load configuration from a YAML file (with environment overrides)."""
    return ConfigManager(path).load(validate=validate)
