"""
Environment wrappers.

Each wrapper owns exactly one inner environment and changes one capability,
forwarding everything else unchanged:

- ClipAction: clamps actions into the inner Box bounds
- RescaleAction: exposes a Box [a, b] and maps actions affinely into the
  inner bounds
- FilterObservation: keeps a subset of the keys of a Dict observation
- FlattenObservation: flattens (possibly nested) observations into one vector
- TimeLimit: caps the number of steps per episode

Wrappers form a singly-linked chain. Closing the outermost wrapper closes
every layer below it exactly once, down to the backend session.

Example:
    >>> env = ctx.make("MountainCarContinuous-v0")
    >>> env = TimeLimit.alter_default(env, 1000)
    >>> env = RescaleAction(ClipAction(env), -0.5, 0.5)
    >>> env.close()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np

from envchain.config import ChainConfig
from envchain.env import Context, Environment, GymEnv
from envchain.errors import InvalidConfiguration, ShapeMismatch, WrapperPrecondition
from envchain.flatten import flatten, flatten_space
from envchain.spaces import Box, Dict, Space, SpaceKind

logger = logging.getLogger(__name__)


class Wrapper(Environment):
    """Base class for environment wrappers."""

    def __init__(self, env: Environment):
        self.env = env
        self._closed = False

    @property
    def name(self) -> str:
        return f"{type(self).__name__}({self.env.name})"

    @property
    def continuous_action(self) -> bool:
        return self.env.continuous_action

    @property
    def action_space(self) -> Space:
        return self.env.action_space

    @property
    def observation_space(self) -> Space:
        return self.env.observation_space

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def unwrapped(self) -> Environment:
        return self.env.unwrapped

    def reset(self) -> Any:
        return self.env.reset()

    def step(self, action: Any) -> Tuple[Any, float, bool]:
        return self.env.step(action)

    def seed(self, seed: int) -> List[int]:
        return self.env.seed(seed)

    def close(self) -> None:
        if self._closed:
            return
        self.env.close()
        self._closed = True

    def __getattr__(self, name: str) -> Any:
        if name == "env" or name.startswith("_"):
            raise AttributeError(name)
        return getattr(self.env, name)


class ClipAction(Wrapper):
    """
    Wrapper that clips continuous actions to the valid bounds.

    Example:
        >>> env = ClipAction(env)
        >>> env.step([5.0])  # forwarded as the inner upper bound
    """

    def __init__(self, env: Environment):
        space = env.action_space
        if space.kind is not SpaceKind.BOX:
            raise WrapperPrecondition(f"ClipAction requires a Box action space, got {space!r}")
        super().__init__(env)
        self._low = space.low()
        self._high = space.high()

    def action(self, action: Any) -> np.ndarray:
        """Clamp ``action`` component-wise into the inner bounds."""
        x = np.asarray(action, dtype=np.float64).ravel()
        if x.size != self._low.size:
            raise ShapeMismatch("Action has the wrong length", expected=self._low.size, observed=x.size)
        return np.clip(x, self._low, self._high)

    def step(self, action: Any) -> Tuple[Any, float, bool]:
        return self.env.step(self.action(action))


class RescaleAction(Wrapper):
    """
    Wrapper that rescales continuous actions from [a, b] to the inner bounds.

    The wrapper's action space is Box(a, b). A caller action x is mapped to
    ``low + (x - a) * (high - low) / (b - a)`` before being forwarded.
    """

    def __init__(
        self,
        env: Environment,
        a: Union[float, Sequence[float], np.ndarray],
        b: Union[float, Sequence[float], np.ndarray],
    ):
        """
        Initialize wrapper.

        Args:
            env: Environment to wrap; its action space must be a bounded Box
            a: Lower bound of the exposed range (scalar or per dimension)
            b: Upper bound of the exposed range (scalar or per dimension)

        Raises:
            WrapperPrecondition: If the inner action space is not a bounded Box
            InvalidConfiguration: If a and b are not finite with a < b
        """
        space = env.action_space
        if space.kind is not SpaceKind.BOX:
            raise WrapperPrecondition(f"RescaleAction requires a Box action space, got {space!r}")
        if not space.is_bounded():
            raise WrapperPrecondition(f"RescaleAction requires a bounded action space, got {space!r}")

        try:
            a_arr = np.broadcast_to(np.asarray(a, dtype=np.float64), (space.dim,)).copy()
            b_arr = np.broadcast_to(np.asarray(b, dtype=np.float64), (space.dim,)).copy()
        except (TypeError, ValueError):
            raise InvalidConfiguration(
                f"RescaleAction range must be scalars or {space.dim} values, got a={a!r}, b={b!r}",
                field="rescale_action",
            ) from None

        if not (np.all(np.isfinite(a_arr)) and np.all(np.isfinite(b_arr))):
            raise InvalidConfiguration("RescaleAction range must be finite", field="rescale_action")
        if np.any(a_arr >= b_arr):
            raise InvalidConfiguration(
                f"RescaleAction requires a < b, got a={a_arr.tolist()}, b={b_arr.tolist()}",
                field="rescale_action",
            )

        super().__init__(env)
        self.a = a_arr
        self.b = b_arr
        self._low = space.low()
        self._high = space.high()
        self._action_space = Box(a_arr, b_arr)

    @property
    def action_space(self) -> Space:
        return self._action_space

    def action(self, action: Any) -> np.ndarray:
        """Map an action from [a, b] into the inner environment's bounds."""
        x = np.asarray(action, dtype=np.float64).ravel()
        if x.size != self.a.size:
            raise ShapeMismatch("Action has the wrong length", expected=self.a.size, observed=x.size)
        return self._low + (x - self.a) * (self._high - self._low) / (self.b - self.a)

    def step(self, action: Any) -> Tuple[Any, float, bool]:
        return self.env.step(self.action(action))


class FilterObservation(Wrapper):
    """
    Wrapper that keeps only some keys of a Dict observation.

    The filtered keys keep the order they were given in.
    """

    def __init__(self, env: Environment, keys: Optional[Sequence[str]] = None):
        """
        Initialize wrapper.

        Args:
            env: Environment to wrap; its observation space must be a Dict
            keys: Keys to keep, in order (None keeps every key)

        Raises:
            WrapperPrecondition: If the observation space is not a Dict or a
                key is not in it
            InvalidConfiguration: If a key is repeated
        """
        space = env.observation_space
        if space.kind is not SpaceKind.DICT:
            raise WrapperPrecondition(f"FilterObservation requires a Dict observation space, got {space!r}")

        if keys is None:
            keys = space.keys()
        elif isinstance(keys, str):
            keys = [keys]
        keys = list(keys)

        if not keys:
            raise InvalidConfiguration("FilterObservation needs at least one key", field="filter_keys")
        if len(set(keys)) != len(keys):
            raise InvalidConfiguration(f"FilterObservation keys must be unique, got {keys}", field="filter_keys")
        missing = [key for key in keys if key not in space.keys()]
        if missing:
            raise WrapperPrecondition(
                f"FilterObservation keys {missing} are not in the observation space (keys: {space.keys()})"
            )

        super().__init__(env)
        self.keys = keys
        self._observation_space = Dict([(key, space[key]) for key in keys])

    @property
    def observation_space(self) -> Space:
        return self._observation_space

    def observation(self, record: Any) -> "dict[str, Any]":
        """Project ``record`` onto the filtered keys."""
        if not isinstance(record, Mapping):
            raise WrapperPrecondition(f"FilterObservation expected a dict observation, got {type(record).__name__}")
        for key in self.keys:
            if key not in record:
                raise WrapperPrecondition(f"Observation is missing filtered key '{key}'")
        return {key: record[key] for key in self.keys}

    def reset(self) -> Any:
        return self.observation(self.env.reset())

    def step(self, action: Any) -> Tuple[Any, float, bool]:
        obs, reward, done = self.env.step(action)
        return self.observation(obs), reward, done


class FlattenObservation(Wrapper):
    """
    Wrapper that flattens observations into one vector.

    The observation space is always a Box whose bounds are the flattened
    bounds of the inner observation space.
    """

    def __init__(self, env: Environment):
        super().__init__(env)
        self._observation_space = flatten_space(env.observation_space)

    @property
    def observation_space(self) -> Space:
        return self._observation_space

    def observation(self, value: Any) -> np.ndarray:
        """Flatten a value of the inner observation space."""
        return flatten(self.env.observation_space, value)

    def reset(self) -> Any:
        return self.observation(self.env.reset())

    def step(self, action: Any) -> Tuple[Any, float, bool]:
        obs, reward, done = self.env.step(action)
        return self.observation(obs), reward, done


def _check_max_episode_steps(max_episode_steps: Any) -> int:
    if isinstance(max_episode_steps, bool) or not isinstance(max_episode_steps, (int, np.integer)):
        raise InvalidConfiguration(
            f"max_episode_steps must be an integer, got {max_episode_steps!r}",
            field="max_episode_steps",
        )
    if max_episode_steps <= 0:
        raise InvalidConfiguration(
            f"max_episode_steps must be positive, got {max_episode_steps}",
            field="max_episode_steps",
        )
    return int(max_episode_steps)


class TimeLimit(Wrapper):
    """
    Wrapper that enforces a time limit on episodes.

    Base environments carry a native default step cap, and a cap further
    down the chain cannot be lifted by this wrapper, so the effective limit
    is the lowest of all caps. To replace the default cap instead, use
    ``TimeLimit.alter_default`` on the base environment before any other
    wrapper.

    Once the cap is reached the wrapper is exhausted: further steps return
    ``done=True`` without reaching the inner environment, until ``reset``.
    """

    def __init__(self, env: Environment, max_episode_steps: int):
        """
        Initialize wrapper.

        Args:
            env: Environment to wrap
            max_episode_steps: Maximum steps per episode

        Raises:
            InvalidConfiguration: If max_episode_steps is not a positive int
        """
        max_episode_steps = _check_max_episode_steps(max_episode_steps)
        super().__init__(env)
        self.max_episode_steps = max_episode_steps
        self._elapsed_steps = 0
        self._exhausted = False
        self._last_observation: Any = None

    @classmethod
    def alter_default(cls, env: Environment, max_episode_steps: int) -> "TimeLimit":
        """
        Replace the default step cap of a base environment.

        This must be the first wrapper applied to the base environment.
        The returned wrapper owns the session; ``env`` is detached.

        Raises:
            InvalidConfiguration: If max_episode_steps is not a positive int
            WrapperPrecondition: If ``env`` is not a base environment
        """
        max_episode_steps = _check_max_episode_steps(max_episode_steps)
        if not isinstance(env, GymEnv):
            raise WrapperPrecondition(
                f"Cannot alter the default time limit of {env.name}: it has already been "
                "wrapped. Apply alter_default before any other wrapper."
            )
        return cls(env.without_default_limit(), max_episode_steps)

    @property
    def name(self) -> str:
        return f"TimeLimit(steps: {self.max_episode_steps})({self.env.name})"

    @property
    def elapsed_steps(self) -> int:
        return self._elapsed_steps

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def reset(self) -> Any:
        self._elapsed_steps = 0
        self._exhausted = False
        self._last_observation = self.env.reset()
        return self._last_observation

    def step(self, action: Any) -> Tuple[Any, float, bool]:
        if self._exhausted:
            return self._last_observation, 0.0, True

        obs, reward, done = self.env.step(action)
        self._elapsed_steps += 1
        self._last_observation = obs

        if self._elapsed_steps >= self.max_episode_steps:
            self._exhausted = True
            done = True
            logger.debug("%s reached its limit of %d steps", self.env.name, self.max_episode_steps)

        return obs, reward, done


# -----------------------------------------------------------------------------
# Factory functions
# -----------------------------------------------------------------------------

def make_env(ctx: Context, config: ChainConfig) -> Environment:
    """
    Create an environment wrapped as described by ``config``.

    Wrappers are applied in a fixed order: time limit (altering the default
    one first when requested), ClipAction, RescaleAction, FilterObservation,
    FlattenObservation. If any wrapper fails, the partially built chain is
    closed before the error propagates.

    Args:
        ctx: Open context to create the base environment in
        config: Chain configuration

    Returns:
        Wrapped environment
    """
    env: Environment = ctx.make(config.env_name)

    try:
        if config.alter_default_time_limit:
            env = TimeLimit.alter_default(env, config.max_episode_steps)
        elif config.max_episode_steps is not None:
            env = TimeLimit(env, config.max_episode_steps)

        if config.clip_action:
            env = ClipAction(env)

        if config.rescale_action is not None:
            a, b = config.rescale_action
            env = RescaleAction(env, a, b)

        if config.filter_keys is not None:
            env = FilterObservation(env, config.filter_keys)

        if config.flatten_observation:
            env = FlattenObservation(env)

        if config.seed is not None:
            env.seed(config.seed)
    except Exception:
        env.close()
        raise

    logger.debug("Built %s", env.name)
    return env
