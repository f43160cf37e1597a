"""
Backend collaborator contract.

A backend executes the environment physics. envchain only talks to it
through two small interfaces:

- ``Backend.make(name)`` opens a ``Session`` for a named environment.
- A ``Session`` exposes raw domain descriptions for its action and
  observation spaces, the backend's native default step cap, and
  ``reset``/``step``/``seed``/``close``.

Raw domain descriptions are mappings tagged with ``"type"`` (see
``envchain.spaces.from_description``). Sessions report their native default
step cap but never enforce it; ``envchain.env.GymEnv`` does.

``GymnasiumBackend`` adapts Gymnasium environments to this contract.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class Session(ABC):
    """
    One open environment inside a backend.

    Attributes:
        action_space: Raw description of the action domain
        observation_space: Raw description of the observation domain
        max_episode_steps: Native default step cap, or None when uncapped
    """

    action_space: Any
    observation_space: Any
    max_episode_steps: Optional[int] = None

    @abstractmethod
    def reset(self) -> Any:
        """Start an episode and return the raw first observation."""
        pass

    @abstractmethod
    def step(self, action: Any) -> Tuple[Any, float, bool]:
        """Apply a raw action; return (raw observation, reward, done)."""
        pass

    @abstractmethod
    def seed(self, seed: int) -> List[int]:
        """Seed the backend; return the seeds actually used."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the backend resources held by the session."""
        pass


class Backend(ABC):
    """Factory of sessions, keyed by environment name."""

    @abstractmethod
    def make(self, name: str) -> Session:
        """Open a session for the environment called ``name``."""
        pass


# -----------------------------------------------------------------------------
# Gymnasium adapter
# -----------------------------------------------------------------------------

def _import_gymnasium():
    try:
        import gymnasium
    except ImportError:
        raise ImportError("gymnasium is required for GymnasiumBackend. "
                          "Install with: pip install gymnasium")
    return gymnasium


def gymnasium_space_description(space: Any) -> Dict[str, Any]:
    """
    Describe a Gymnasium space as a raw domain description.

    Spaces without an envchain counterpart (and Discrete spaces that do not
    start at 0) are described by their class name alone, so translating the
    description raises ``UnsupportedSpace``.
    """
    gymnasium = _import_gymnasium()
    spaces = gymnasium.spaces

    if isinstance(space, spaces.Box):
        return {
            "type": "Box",
            "low": np.asarray(space.low, dtype=np.float64).tolist(),
            "high": np.asarray(space.high, dtype=np.float64).tolist(),
        }
    elif isinstance(space, spaces.Discrete):
        if int(space.start) != 0:
            return {"type": f"Discrete(start={int(space.start)})"}
        return {"type": "Discrete", "n": int(space.n)}
    elif isinstance(space, spaces.Dict):
        return {
            "type": "Dict",
            "spaces": [(key, gymnasium_space_description(child)) for key, child in space.spaces.items()],
        }
    elif isinstance(space, spaces.Tuple):
        return {"type": "Tuple", "spaces": [gymnasium_space_description(child) for child in space.spaces]}

    return {"type": type(space).__name__}


class GymnasiumSession(Session):
    """Session over one Gymnasium environment (without its TimeLimit)."""

    def __init__(self, env: Any, max_episode_steps: Optional[int] = None):
        """
        Initialize session.

        Args:
            env: Unwrapped Gymnasium environment
            max_episode_steps: Native default cap registered for the env
        """
        self._env = env
        self.action_space = gymnasium_space_description(env.action_space)
        self.observation_space = gymnasium_space_description(env.observation_space)
        self.max_episode_steps = max_episode_steps
        self._pending_seed: Optional[int] = None

    def reset(self) -> Any:
        # Gymnasium seeds through reset(); apply the last seed() once.
        obs, _ = self._env.reset(seed=self._pending_seed)
        self._pending_seed = None
        return obs

    def step(self, action: Any) -> Tuple[Any, float, bool]:
        gymnasium = _import_gymnasium()
        space = self._env.action_space
        if isinstance(space, gymnasium.spaces.Box):
            action = np.asarray(action, dtype=space.dtype).reshape(space.shape)

        obs, reward, terminated, truncated, _ = self._env.step(action)
        return obs, float(reward), bool(terminated or truncated)

    def seed(self, seed: int) -> List[int]:
        self._pending_seed = int(seed)
        return [int(seed)]

    def close(self) -> None:
        self._env.close()


class GymnasiumBackend(Backend):
    """
    Backend that opens Gymnasium environments by id.

    Example:
        >>> from envchain import Context, GymnasiumBackend
        >>> with Context(GymnasiumBackend()) as ctx:
        ...     env = ctx.make("CartPole-v1")
        ...     obs = env.reset()
    """

    def __init__(self, **make_kwargs: Any):
        """
        Initialize backend.

        Args:
            **make_kwargs: Extra keyword arguments for ``gymnasium.make``
        """
        self.make_kwargs = make_kwargs

    def make(self, name: str) -> GymnasiumSession:
        gymnasium = _import_gymnasium()
        env = gymnasium.make(name, **self.make_kwargs)

        max_episode_steps = None
        if env.spec is not None:
            max_episode_steps = env.spec.max_episode_steps

        logger.debug("Opened gymnasium env %s (default cap: %s)", name, max_episode_steps)
        return GymnasiumSession(env.unwrapped, max_episode_steps)
