"""
envchain

Typed action/observation spaces for reinforcement learning environments and a
chain of single-purpose wrappers over them:
- Box, Discrete, Dict and Tuple spaces with sampling, membership and bounds
- Flattening of nested spaces and values into flat vectors
- Base environments created through an explicit Context over a backend
- Wrappers: ClipAction, RescaleAction, FilterObservation, FlattenObservation,
  TimeLimit

Quick Start:
    >>> from envchain import Context, GymnasiumBackend, TimeLimit, ClipAction
    >>> with Context(GymnasiumBackend()) as ctx:
    ...     env = ctx.make("MountainCarContinuous-v0")
    ...     env = ClipAction(TimeLimit.alter_default(env, 2000))
    ...     obs = env.reset()
    ...     obs, reward, done = env.step(env.action_space.sample())

Quick Start (config):
    >>> from envchain import Context, GymnasiumBackend, get_preset, make_env
    >>> with Context(GymnasiumBackend()) as ctx:
    ...     env = make_env(ctx, get_preset("pendulum_unit"))
"""

__version__ = "0.1.0"

# Errors
from envchain.errors import (
    EnvChainError,
    DomainMismatch,
    UnsupportedSpace,
    ShapeMismatch,
    WrapperPrecondition,
    InvalidConfiguration,
)

# Spaces
from envchain.spaces import (
    SpaceKind,
    Space,
    Box,
    Discrete,
    Dict,
    Tuple,
    from_description,
    to_description,
)
from envchain.flatten import (
    flat_dim,
    flatten,
    unflatten,
    flatten_space,
)

# Environments
from envchain.backend import (
    Backend,
    Session,
    GymnasiumBackend,
    GymnasiumSession,
)
from envchain.env import Environment, GymEnv, Context

# Configuration
from envchain.config import (
    ChainConfig,
    get_preset,
    list_presets,
    PRESET_CONFIGS,
)

# Wrappers
from envchain.wrappers import (
    Wrapper,
    ClipAction,
    RescaleAction,
    FilterObservation,
    FlattenObservation,
    TimeLimit,
    make_env,
)

__all__ = [
    # Version
    "__version__",

    # Errors
    "EnvChainError",
    "DomainMismatch",
    "UnsupportedSpace",
    "ShapeMismatch",
    "WrapperPrecondition",
    "InvalidConfiguration",

    # Spaces
    "SpaceKind",
    "Space",
    "Box",
    "Discrete",
    "Dict",
    "Tuple",
    "from_description",
    "to_description",
    "flat_dim",
    "flatten",
    "unflatten",
    "flatten_space",

    # Environments
    "Backend",
    "Session",
    "GymnasiumBackend",
    "GymnasiumSession",
    "Environment",
    "GymEnv",
    "Context",

    # Configuration
    "ChainConfig",
    "get_preset",
    "list_presets",
    "PRESET_CONFIGS",

    # Wrappers
    "Wrapper",
    "ClipAction",
    "RescaleAction",
    "FilterObservation",
    "FlattenObservation",
    "TimeLimit",
    "make_env",
]
