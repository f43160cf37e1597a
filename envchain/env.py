"""
Environment contract, base environment, and the context that owns them.

An ``Environment`` exposes its action and observation spaces and the
``reset``/``step``/``seed``/``close`` capabilities. ``GymEnv`` is the base
environment built over a backend ``Session``; wrappers in
``envchain.wrappers`` stack on top of it.

A ``Context`` is the explicit owner of a backend: environments are created
through it, and closing it closes whatever environments are still open.

Example:
    >>> with Context(backend) as ctx:
    ...     env = ctx.make("MountainCarContinuous-v0")
    ...     obs = env.reset()
    ...     obs, reward, done = env.step(env.action_space.sample())
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

import numpy as np

from envchain.backend import Backend, Session
from envchain.errors import InvalidConfiguration, WrapperPrecondition
from envchain.flatten import structure
from envchain.spaces import Space, SpaceKind, from_description

logger = logging.getLogger(__name__)


class Environment(ABC):
    """
    Capability set of an environment.

    ``step`` returns ``(observation, reward, done)``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def continuous_action(self) -> bool:
        pass

    @property
    @abstractmethod
    def action_space(self) -> Space:
        pass

    @property
    @abstractmethod
    def observation_space(self) -> Space:
        pass

    @abstractmethod
    def reset(self) -> Any:
        """Start a new episode and return the first observation."""
        pass

    @abstractmethod
    def step(self, action: Any) -> Tuple[Any, float, bool]:
        """Take one step; return (observation, reward, done)."""
        pass

    @abstractmethod
    def seed(self, seed: int) -> List[int]:
        """Seed the environment; return the seeds actually used."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the environment (and everything it wraps)."""
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass

    @property
    def unwrapped(self) -> "Environment":
        """The base environment at the bottom of a wrapper chain."""
        return self

    def __enter__(self) -> "Environment":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class GymEnv(Environment):
    """
    Base environment over a backend session.

    Besides translating between envchain values and raw backend values, the
    base environment enforces the backend's native default step cap: once
    ``max_episode_steps`` steps have been taken since the last reset, ``done``
    is reported as True. ``TimeLimit.alter_default`` replaces this cap.
    """

    def __init__(
        self,
        session: Session,
        name: str,
        continuous_action: bool,
        action_space: Space,
        observation_space: Space,
        max_episode_steps: Optional[int] = None,
        context: Optional["Context"] = None,
    ):
        """
        Initialize environment.

        Args:
            session: Backend session; owned by this environment from now on
            name: Environment name
            continuous_action: Whether actions are real vectors (Box)
            action_space: Action space
            observation_space: Observation space
            max_episode_steps: Native default step cap (None for no cap)
            context: Context that tracks this environment, if any
        """
        if max_episode_steps is not None and (
            isinstance(max_episode_steps, bool) or int(max_episode_steps) <= 0
        ):
            raise InvalidConfiguration(
                f"max_episode_steps must be positive, got {max_episode_steps}",
                field="max_episode_steps",
            )

        self.session = session
        self._name = name
        self._continuous_action = continuous_action
        self._action_space = action_space
        self._observation_space = observation_space
        self.max_episode_steps = None if max_episode_steps is None else int(max_episode_steps)

        self._context = context
        self._elapsed_steps = 0
        self._closed = False
        self._detached = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def continuous_action(self) -> bool:
        return self._continuous_action

    @property
    def action_space(self) -> Space:
        return self._action_space

    @property
    def observation_space(self) -> Space:
        return self._observation_space

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def elapsed_steps(self) -> int:
        return self._elapsed_steps

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Environment {self._name} is closed.")

    def _raw_action(self, action: Any) -> Any:
        v = np.asarray(action, dtype=np.float64).ravel()
        if self._continuous_action:
            return v.tolist()
        return int(v[0])

    def reset(self) -> Any:
        self._check_open()
        self._elapsed_steps = 0
        raw = self.session.reset()
        return structure(self._observation_space, raw)

    def step(self, action: Any) -> Tuple[Any, float, bool]:
        self._check_open()
        raw_obs, reward, done = self.session.step(self._raw_action(action))
        self._elapsed_steps += 1

        if self.max_episode_steps is not None and self._elapsed_steps >= self.max_episode_steps:
            done = True

        return structure(self._observation_space, raw_obs), float(reward), bool(done)

    def seed(self, seed: int) -> List[int]:
        self._check_open()
        used = [int(s) for s in self.session.seed(seed)]
        logger.debug("Seeded %s with %s", self._name, used)
        return used

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if not self._detached:
            self.session.close()
            logger.info("Closed environment %s", self._name)

        if self._context is not None:
            self._context._forget(self)

    def without_default_limit(self) -> "GymEnv":
        """
        Hand the session to a new base environment with no default cap.

        This environment is detached afterwards: it is marked closed and
        closing it again does not touch the session.

        Raises:
            WrapperPrecondition: If this environment is already closed
        """
        if self._closed:
            raise WrapperPrecondition(f"Cannot alter the default time limit of closed environment {self._name}")

        replacement = GymEnv(
            self.session,
            self._name,
            self._continuous_action,
            self._action_space,
            self._observation_space,
            max_episode_steps=None,
            context=self._context,
        )

        self._detached = True
        self._closed = True
        if self._context is not None:
            self._context._replace(self, replacement)

        logger.debug("Removed default step cap %s from %s", self.max_episode_steps, self._name)
        return replacement


class Context:
    """
    Explicit owner of a backend and of the environments made from it.

    Usage:
        >>> ctx = Context(backend).open()
        >>> env = ctx.make("Pendulum-v1")
        >>> ...
        >>> ctx.close()  # closes env too if it is still open
    """

    def __init__(self, backend: Backend):
        self.backend = backend
        self._open_envs: List[GymEnv] = []
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    @property
    def open_environments(self) -> List[GymEnv]:
        return list(self._open_envs)

    def open(self) -> "Context":
        """Open the context; returns self for chaining."""
        if self._closed:
            raise InvalidConfiguration("Context has already been closed")
        if not self._opened:
            self._opened = True
            logger.info("Opened context over %s", type(self.backend).__name__)
        return self

    def make(self, name: str) -> GymEnv:
        """
        Create the base environment called ``name``.

        Raises:
            InvalidConfiguration: If the context is not open
            DomainMismatch, UnsupportedSpace: If the backend's domain
                descriptions cannot be translated. The session is closed
                before the error propagates.
        """
        if not self.is_open:
            raise InvalidConfiguration("Context is not open; call open() first")

        session = self.backend.make(name)
        try:
            action_space = from_description(session.action_space)
            observation_space = from_description(session.observation_space)
            env = GymEnv(
                session,
                name,
                continuous_action=action_space.kind is SpaceKind.BOX,
                action_space=action_space,
                observation_space=observation_space,
                max_episode_steps=getattr(session, "max_episode_steps", None),
                context=self,
            )
        except Exception:
            session.close()
            raise

        self._open_envs.append(env)
        logger.info("Created environment %s", name)
        return env

    def _forget(self, env: GymEnv) -> None:
        if env in self._open_envs:
            self._open_envs.remove(env)

    def _replace(self, old: GymEnv, new: GymEnv) -> None:
        if old in self._open_envs:
            self._open_envs[self._open_envs.index(old)] = new
        else:
            self._open_envs.append(new)

    def close(self) -> None:
        """Close all environments still open, then the context itself."""
        if self._closed:
            return

        leftovers = list(self._open_envs)
        if leftovers:
            logger.warning("Closing %d environment(s) left open", len(leftovers))
        for env in leftovers:
            env.close()

        self._closed = True
        logger.info("Closed context")

    def __enter__(self) -> "Context":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()
