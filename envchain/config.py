"""
Configuration for building wrapper chains.

This module provides:
- ChainConfig: which environment to make and which wrappers to apply
- Preset chains for common environments
- JSON (de)serialization of configs

The chain itself is built by ``envchain.wrappers.make_env``.
"""

from dataclasses import dataclass, fields, replace
from typing import Dict, Any, Optional, List, Tuple
import json
import math

from envchain.errors import InvalidConfiguration


@dataclass
class ChainConfig:
    """
    Configuration of one wrapper chain.

    Wrappers are applied in a fixed order by ``make_env``: time limit,
    ClipAction, RescaleAction, FilterObservation, FlattenObservation.
    """
    # Environment id passed to the backend
    env_name: str

    # Time limit (None keeps the environment's native default cap only)
    max_episode_steps: Optional[int] = None
    # Replace the native default cap instead of stacking a second one
    alter_default_time_limit: bool = False

    # Action wrappers
    clip_action: bool = False
    rescale_action: Optional[Tuple[float, float]] = None

    # Observation wrappers
    filter_keys: Optional[List[str]] = None
    flatten_observation: bool = False

    seed: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.env_name, str) or not self.env_name:
            raise InvalidConfiguration(f"env_name must be a non-empty string, got {self.env_name!r}", field="env_name")

        if self.max_episode_steps is not None:
            if isinstance(self.max_episode_steps, bool) or not isinstance(self.max_episode_steps, int):
                raise InvalidConfiguration(
                    f"max_episode_steps must be an integer, got {self.max_episode_steps!r}",
                    field="max_episode_steps",
                )
            if self.max_episode_steps <= 0:
                raise InvalidConfiguration(
                    f"max_episode_steps must be positive, got {self.max_episode_steps}",
                    field="max_episode_steps",
                )

        if self.alter_default_time_limit and self.max_episode_steps is None:
            raise InvalidConfiguration(
                "alter_default_time_limit requires max_episode_steps",
                field="alter_default_time_limit",
            )

        if self.rescale_action is not None:
            if not isinstance(self.rescale_action, (list, tuple)) or len(self.rescale_action) != 2:
                raise InvalidConfiguration(
                    f"rescale_action must be a pair (a, b), got {self.rescale_action!r}",
                    field="rescale_action",
                )
            a, b = (float(x) for x in self.rescale_action)
            if not (math.isfinite(a) and math.isfinite(b)) or a >= b:
                raise InvalidConfiguration(
                    f"rescale_action requires finite a < b, got a={a}, b={b}",
                    field="rescale_action",
                )
            self.rescale_action = (a, b)

        if self.filter_keys is not None:
            if isinstance(self.filter_keys, str):
                self.filter_keys = [self.filter_keys]
            self.filter_keys = list(self.filter_keys)
            if not self.filter_keys:
                raise InvalidConfiguration("filter_keys must name at least one key", field="filter_keys")

        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise InvalidConfiguration(f"seed must be an integer, got {self.seed!r}", field="seed")

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            'env_name': self.env_name,
            'max_episode_steps': self.max_episode_steps,
            'alter_default_time_limit': self.alter_default_time_limit,
            'clip_action': self.clip_action,
            'rescale_action': list(self.rescale_action) if self.rescale_action is not None else None,
            'filter_keys': list(self.filter_keys) if self.filter_keys is not None else None,
            'flatten_observation': self.flatten_observation,
            'seed': self.seed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainConfig":
        """Create config from dictionary."""
        # Filter to only valid fields
        valid_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered)

    def to_json(self) -> str:
        """Convert config to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "ChainConfig":
        """Create config from JSON string."""
        data = json.loads(json_str)
        return cls.from_dict(data)

    def save(self, filepath: str) -> None:
        """Save config to JSON file."""
        with open(filepath, 'w') as f:
            f.write(self.to_json())

    @classmethod
    def load(cls, filepath: str) -> "ChainConfig":
        """Load config from JSON file."""
        with open(filepath, 'r') as f:
            return cls.from_json(f.read())


# -----------------------------------------------------------------------------
# Preset Configurations
# -----------------------------------------------------------------------------

PRESET_CONFIGS: Dict[str, ChainConfig] = {
    # Classic control, native caps
    "cartpole": ChainConfig(env_name="CartPole-v1"),
    "mountain_car": ChainConfig(env_name="MountainCarContinuous-v0", clip_action=True),

    # Longer episodes than the registered default (999 steps)
    "mountain_car_long": ChainConfig(
        env_name="MountainCarContinuous-v0",
        max_episode_steps=2000,
        alter_default_time_limit=True,
        clip_action=True,
    ),

    # Pendulum driven by actions in [-1, 1]
    "pendulum_unit": ChainConfig(
        env_name="Pendulum-v1",
        clip_action=True,
        rescale_action=(-1.0, 1.0),
    ),

    # Short episodes for smoke runs
    "pendulum_short": ChainConfig(
        env_name="Pendulum-v1",
        max_episode_steps=50,
        rescale_action=(-1.0, 1.0),
    ),
}


def get_preset(name: str) -> ChainConfig:
    """
    Get a preset configuration by name.

    Args:
        name: Preset name (e.g., "cartpole", "pendulum_unit")

    Returns:
        A copy of the preset's ChainConfig

    Raises:
        KeyError: If preset name is not found
    """
    if name not in PRESET_CONFIGS:
        available = ", ".join(PRESET_CONFIGS.keys())
        raise KeyError(f"Unknown preset '{name}'. Available: {available}")
    config = PRESET_CONFIGS[name]
    return replace(
        config,
        filter_keys=list(config.filter_keys) if config.filter_keys is not None else None,
    )


def list_presets() -> List[str]:
    """List available preset names."""
    return list(PRESET_CONFIGS.keys())
