"""
Shared fixtures: an in-memory backend that records every call it receives.

The stub backend never enforces a step cap itself. It only reports one, the
way a real backend's registry would.
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from envchain.backend import Backend, Session
from envchain.env import Context
from envchain.flatten import flat_dim, unflatten
from envchain.spaces import from_description


BOX_1 = {"type": "Box", "low": [-1.0], "high": [1.0]}

STUB_ENVS: Dict[str, Dict[str, Any]] = {
    "MountainCar-v0": {
        "action_space": {"type": "Discrete", "n": 3},
        "observation_space": {"type": "Box", "low": [-1.2, -0.07], "high": [0.6, 0.07]},
        "max_episode_steps": 200,
    },
    "MountainCarContinuous-v0": {
        "action_space": BOX_1,
        "observation_space": {"type": "Box", "low": [-1.2, -0.07], "high": [0.6, 0.07]},
        "max_episode_steps": 999,
    },
    "Pendulum-v1": {
        "action_space": {"type": "Box", "low": [-2.0], "high": [2.0]},
        "observation_space": {"type": "Box", "low": [-1.0, -1.0, -8.0], "high": [1.0, 1.0, 8.0]},
        "max_episode_steps": 200,
    },
    "CartPole-v1": {
        "action_space": {"type": "Discrete", "n": 2},
        "observation_space": {
            "type": "Box",
            "low": [-4.8, -np.inf, -0.42, -np.inf],
            "high": [4.8, np.inf, 0.42, np.inf],
        },
        "max_episode_steps": 500,
    },
    "Robot-v0": {
        "action_space": {"type": "Box", "low": [-1.0, -3.0], "high": [1.0, 3.0]},
        "observation_space": {
            "type": "Dict",
            "spaces": [
                ("position", {"type": "Box", "low": [-10.0, -10.0], "high": [10.0, 10.0]}),
                ("velocity", {"type": "Box", "low": [-1.0, -1.0], "high": [1.0, 1.0]}),
                ("gear", {"type": "Discrete", "n": 3}),
            ],
        },
        "max_episode_steps": None,
    },
    "Nested-v0": {
        "action_space": {"type": "Discrete", "n": 4},
        "observation_space": {
            "type": "Tuple",
            "spaces": [
                BOX_1,
                {"type": "Dict", "spaces": {"a": {"type": "Discrete", "n": 2}, "b": BOX_1}},
            ],
        },
        "max_episode_steps": None,
    },
    "Unbounded-v0": {
        "action_space": {"type": "Box", "low": [-np.inf], "high": [np.inf]},
        "observation_space": BOX_1,
        "max_episode_steps": None,
    },
    "Pixels-v0": {
        "action_space": {"type": "Discrete", "n": 2},
        "observation_space": {"type": "MultiBinary"},
        "max_episode_steps": None,
    },
}


class StubSession(Session):
    """
    Session that produces deterministic observations.

    The observation after k steps has every flattened component equal to k,
    clipped into the observation bounds. The session reports ``done`` only
    when ``terminal_after`` steps have been taken since the last reset.
    """

    def __init__(
        self,
        action_space: Any,
        observation_space: Any,
        max_episode_steps: Optional[int] = None,
        terminal_after: Optional[int] = None,
        reward: float = 1.0,
    ):
        self.action_space = action_space
        self.observation_space = observation_space
        self.max_episode_steps = max_episode_steps
        self.terminal_after = terminal_after
        self.reward = reward

        self.actions: List[Any] = []
        self.seeds: List[int] = []
        self.reset_calls = 0
        self.step_calls = 0
        self.close_calls = 0
        self._steps_since_reset = 0

    def _observation(self) -> Any:
        space = from_description(self.observation_space)
        low, high = space.low(), space.high()
        values = np.clip(np.full(flat_dim(space), float(self._steps_since_reset)), low, high)
        return unflatten(space, values)

    def reset(self) -> Any:
        self.reset_calls += 1
        self._steps_since_reset = 0
        return self._observation()

    def step(self, action: Any):
        self.actions.append(action)
        self.step_calls += 1
        self._steps_since_reset += 1
        done = self.terminal_after is not None and self._steps_since_reset >= self.terminal_after
        return self._observation(), self.reward, done

    def seed(self, seed: int) -> List[int]:
        self.seeds.append(seed)
        return [seed]

    def close(self) -> None:
        self.close_calls += 1


class StubBackend(Backend):
    """Backend over ``STUB_ENVS`` that keeps every session it opens."""

    def __init__(self, **overrides: Any):
        self.overrides = overrides
        self.sessions: List[StubSession] = []

    def make(self, name: str) -> StubSession:
        if name not in STUB_ENVS:
            raise KeyError(f"No stub environment named '{name}'")
        kwargs = dict(STUB_ENVS[name])
        kwargs.update(self.overrides)
        session = StubSession(**kwargs)
        self.sessions.append(session)
        return session


@pytest.fixture
def backend():
    """Stub backend with no overrides."""
    return StubBackend()


@pytest.fixture
def ctx(backend):
    """Open context over the stub backend; closed after the test."""
    context = Context(backend).open()
    yield context
    context.close()
