"""
Action and observation space definitions.

This module provides the typed description of the legal action/observation
domains of an environment. Four space variants exist:

1. Box:
   - Cartesian product of real intervals, one per dimension
   - Bounds may be infinite on either side
   - Values are 1-D float vectors

2. Discrete:
   - The integers {0, 1, ..., n-1}
   - Values are one-element vectors holding an integral value

3. Dict:
   - Ordered (key, space) pairs
   - Values are dicts keyed by the declared keys

4. Tuple:
   - Ordered sequence of spaces
   - Values are tuples with one entry per child

Every space answers the same queries: ``sample()``, ``contains(x)``,
``seed(s)``, ``low()`` and ``high()``. For composite spaces, ``sample()``,
``low()`` and ``high()`` return one flat vector that concatenates the
children's results depth-first, in declaration order. That order is the same
one used by ``envchain.flatten``.

Spaces are usually built from a raw domain description, a mapping with a
``"type"`` tag:

>>> from envchain.spaces import from_description
>>> space = from_description({
...     "type": "Dict",
...     "spaces": [
...         ("position", {"type": "Box", "low": [-1, -1], "high": [1, 1]}),
...         ("gear", {"type": "Discrete", "n": 3}),
...     ],
... })
>>> space.seed(0)
[0]
>>> space.sample().shape
(3,)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import Any, Iterator, List, Optional, Sequence, Union

import numpy as np

from envchain.errors import DomainMismatch, UnsupportedSpace

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class SpaceKind(str, Enum):
    """Tag identifying a space variant."""
    BOX = "Box"
    DISCRETE = "Discrete"
    DICT = "Dict"
    TUPLE = "Tuple"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _concat(parts: List[np.ndarray]) -> np.ndarray:
    if not parts:
        return np.empty(0, dtype=np.float64)
    return np.concatenate(parts)


def _seed_value(seed: Optional[int]) -> int:
    """Resolve a seed, drawing fresh entropy when ``seed`` is None."""
    return int(np.random.SeedSequence(seed).entropy)


# -----------------------------------------------------------------------------
# Space variants
# -----------------------------------------------------------------------------

class Space(ABC):
    """
    Common capability set shared by all space variants.

    Subclasses set ``kind`` to their ``SpaceKind`` tag. Code that needs to
    treat variants differently switches on ``kind``.
    """

    kind: SpaceKind

    @abstractmethod
    def sample(self) -> np.ndarray:
        """Draw a random element, returned as one flat vector."""

    @abstractmethod
    def contains(self, x: Any) -> bool:
        """Whether ``x`` is a member of the space."""

    @abstractmethod
    def seed(self, seed: Optional[int] = None) -> List[int]:
        """Reseed the sampler(s) and return the seed actually used."""

    @abstractmethod
    def low(self) -> np.ndarray:
        """Lower bounds, flattened in declaration order."""

    @abstractmethod
    def high(self) -> np.ndarray:
        """Upper bounds, flattened in declaration order."""

    def __contains__(self, x: Any) -> bool:
        return self.contains(x)

    def describe(self) -> str:
        """Get a human-readable description of the space."""
        lines = ["Space Description", "=" * 40, ""]
        lines.extend(_describe_lines(self, indent=0))
        return "\n".join(lines)


class Box(Space):
    """
    A (possibly unbounded) box in R^n.

    Each dimension is one of [a, b], (-inf, b], [a, inf) or (-inf, inf).
    Scalar bounds are broadcast against ``shape``; multi-dimensional bounds
    are flattened in C order.

    Example:
        >>> box = Box(low=[-1.0, 0.0], high=[1.0, 2.0], seed=3)
        >>> box.contains(box.sample())
        True
    """

    kind = SpaceKind.BOX

    def __init__(
        self,
        low: Union[float, Sequence[float], np.ndarray],
        high: Union[float, Sequence[float], np.ndarray],
        shape: Optional[Sequence[int]] = None,
        seed: Optional[int] = None,
    ):
        """
        Initialize the box.

        Args:
            low: Lower bound per dimension (or a scalar with ``shape``)
            high: Upper bound per dimension (or a scalar with ``shape``)
            shape: Optional shape to broadcast scalar bounds against
            seed: Optional seed for the sampler

        Raises:
            DomainMismatch: If the bounds are not numeric, have different
                lengths, are empty, contain NaN, or have low > high.
        """
        low_arr = self._as_bounds(low, "low")
        high_arr = self._as_bounds(high, "high")

        if shape is not None:
            try:
                shape = tuple(int(d) for d in shape)
                low_arr = np.broadcast_to(low_arr, shape)
                high_arr = np.broadcast_to(high_arr, shape)
            except (TypeError, ValueError):
                raise DomainMismatch(
                    "Box bounds do not fit the declared shape",
                    expected=shape,
                    observed=(np.shape(low), np.shape(high)),
                ) from None

        low_arr = np.array(low_arr, dtype=np.float64).ravel()
        high_arr = np.array(high_arr, dtype=np.float64).ravel()

        if low_arr.shape != high_arr.shape:
            raise DomainMismatch(
                "Box bounds have different lengths",
                expected=f"len(high) == {low_arr.size}",
                observed=high_arr.size,
            )
        if low_arr.size == 0:
            raise DomainMismatch("Box must have at least one dimension", expected=">= 1", observed=0)
        if np.any(np.isnan(low_arr)) or np.any(np.isnan(high_arr)):
            raise DomainMismatch("Box bounds contain NaN", expected="finite or infinite bounds", observed="NaN")
        if np.any(low_arr > high_arr):
            bad = int(np.argmax(low_arr > high_arr))
            raise DomainMismatch(
                f"Box interval {bad} is empty",
                expected="low <= high",
                observed=(low_arr[bad], high_arr[bad]),
            )

        self._low = low_arr
        self._high = high_arr
        self._low.flags.writeable = False
        self._high.flags.writeable = False
        self._rng = np.random.default_rng(seed)

    @staticmethod
    def _as_bounds(bound: Any, name: str) -> np.ndarray:
        try:
            return np.asarray(bound, dtype=np.float64)
        except (TypeError, ValueError):
            raise DomainMismatch(
                f"Box {name} bound is not numeric",
                expected="sequence of floats",
                observed=type(bound).__name__,
            ) from None

    @property
    def dim(self) -> int:
        """Number of dimensions."""
        return int(self._low.size)

    @property
    def bounded_below(self) -> np.ndarray:
        """Per-dimension flag: lower bound is finite."""
        return np.isfinite(self._low)

    @property
    def bounded_above(self) -> np.ndarray:
        """Per-dimension flag: upper bound is finite."""
        return np.isfinite(self._high)

    def is_bounded(self) -> bool:
        """Whether every dimension is bounded on both sides."""
        return bool(np.all(self.bounded_below) and np.all(self.bounded_above))

    def sample(self) -> np.ndarray:
        # Unbounded dimensions are the caller's problem.
        with np.errstate(over="ignore"):
            width = self._high - self._low
        if np.all(np.isfinite(width)):
            return self._rng.uniform(self._low, self._high)

        # Finite bounds wider than the float range: draw at half scale.
        u = self._rng.random(self.dim)
        half_low = self._low / 2
        sample = 2.0 * (half_low + u * (self._high / 2 - half_low))
        return np.clip(sample, self._low, self._high)

    def contains(self, x: Any) -> bool:
        if isinstance(x, (str, bytes)):
            return False
        try:
            v = np.asarray(x, dtype=np.float64)
        except (TypeError, ValueError):
            return False
        v = v.ravel()
        if v.shape != self._low.shape:
            return False
        return bool(np.all(v >= self._low) and np.all(v <= self._high))

    def seed(self, seed: Optional[int] = None) -> List[int]:
        value = _seed_value(seed)
        self._rng = np.random.default_rng(value)
        return [value]

    def low(self) -> np.ndarray:
        return self._low.copy()

    def high(self) -> np.ndarray:
        return self._high.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Box):
            return NotImplemented
        return bool(np.array_equal(self._low, other._low) and np.array_equal(self._high, other._high))

    def __repr__(self) -> str:
        return f"Box(low={self._low.tolist()}, high={self._high.tolist()})"


class Discrete(Space):
    """
    The integers {0, 1, ..., n-1}.

    Samples are drawn from a categorical distribution with uniform weights.
    """

    kind = SpaceKind.DISCRETE

    def __init__(self, n: int, seed: Optional[int] = None):
        if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
            raise DomainMismatch("Discrete size must be an integer", expected="int", observed=type(n).__name__)
        if n <= 0:
            raise DomainMismatch("Discrete size must be positive", expected="n > 0", observed=n)

        self.n = int(n)
        self._rng = np.random.default_rng(seed)

    def sample(self) -> np.ndarray:
        return np.array([float(self._rng.integers(self.n))])

    def contains(self, x: Any) -> bool:
        if isinstance(x, (bool, str, bytes)):
            return False
        try:
            v = np.asarray(x, dtype=np.float64).ravel()
        except (TypeError, ValueError):
            return False
        if v.size != 1:
            return False

        value = v[0]
        if not np.isfinite(value) or value != np.floor(value):
            return False
        return bool(0 <= value <= self.n - 1)

    def seed(self, seed: Optional[int] = None) -> List[int]:
        value = _seed_value(seed)
        self._rng = np.random.default_rng(value)
        return [value]

    def low(self) -> np.ndarray:
        return np.array([0.0])

    def high(self) -> np.ndarray:
        return np.array([float(self.n - 1)])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Discrete):
            return NotImplemented
        return self.n == other.n

    def __repr__(self) -> str:
        return f"Discrete({self.n})"


class Dict(Space):
    """
    Ordered mapping of keys to sub-spaces.

    Declaration order matters: it fixes the order of ``sample()``, ``low()``,
    ``high()`` and flattening, whatever order a caller later iterates a value
    in.

    Example:
        >>> space = Dict([("a", Box([0, 0], [1, 1])), ("b", Discrete(3))])
        >>> list(space.keys())
        ['a', 'b']
    """

    kind = SpaceKind.DICT

    def __init__(
        self,
        spaces: Union[Mapping, Sequence],
        seed: Optional[int] = None,
    ):
        """
        Initialize the dict space.

        Args:
            spaces: Mapping of key to Space, or a sequence of (key, Space)
                pairs. Keys must be unique strings.
            seed: Optional seed propagated to every child

        Raises:
            DomainMismatch: If no key is given, keys are not unique strings
                or a child is not a Space.
        """
        if isinstance(spaces, Mapping):
            pairs = list(spaces.items())
        elif isinstance(spaces, (list, tuple)):
            pairs = []
            for item in spaces:
                if not isinstance(item, (list, tuple)) or len(item) != 2:
                    raise DomainMismatch("Dict entries must be (key, space) pairs", expected="pair", observed=item)
                pairs.append((item[0], item[1]))
        else:
            raise DomainMismatch(
                "Dict spaces must be a mapping or a sequence of pairs",
                expected="mapping",
                observed=type(spaces).__name__,
            )

        self._spaces: "dict[str, Space]" = {}
        for key, space in pairs:
            if not isinstance(key, str):
                raise DomainMismatch("Dict keys must be strings", expected="str", observed=type(key).__name__)
            if key in self._spaces:
                raise DomainMismatch(f"Duplicate Dict key '{key}'", expected="unique keys", observed=key)
            if not isinstance(space, Space):
                raise DomainMismatch(
                    f"Dict entry '{key}' is not a space",
                    expected="Space",
                    observed=type(space).__name__,
                )
            self._spaces[key] = space

        if not self._spaces:
            raise DomainMismatch("Dict must declare at least one key", expected=">= 1 entries", observed=0)

        if seed is not None:
            self.seed(seed)

    def keys(self) -> List[str]:
        return list(self._spaces.keys())

    def items(self) -> List[tuple]:
        return list(self._spaces.items())

    def values(self) -> List[Space]:
        return list(self._spaces.values())

    def __getitem__(self, key: str) -> Space:
        return self._spaces[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._spaces)

    def __len__(self) -> int:
        return len(self._spaces)

    def __contains__(self, x: Any) -> bool:
        # `key in space` for keys, membership test otherwise
        if isinstance(x, str):
            return x in self._spaces
        return self.contains(x)

    def sample(self) -> np.ndarray:
        return _concat([space.sample() for space in self._spaces.values()])

    def contains(self, x: Any) -> bool:
        if not isinstance(x, Mapping):
            return False
        if len(x) != len(self._spaces):
            return False
        for key, space in self._spaces.items():
            if key not in x:
                return False
            if not space.contains(x[key]):
                return False
        return True

    def seed(self, seed: Optional[int] = None) -> List[int]:
        # Every child receives the same seed; no per-child derivation.
        value = _seed_value(seed)
        for space in self._spaces.values():
            space.seed(value)
        return [value]

    def low(self) -> np.ndarray:
        return _concat([space.low() for space in self._spaces.values()])

    def high(self) -> np.ndarray:
        return _concat([space.high() for space in self._spaces.values()])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dict):
            return NotImplemented
        return list(self._spaces.items()) == list(other._spaces.items())

    def __repr__(self) -> str:
        inner = ", ".join(f"{key}: {space!r}" for key, space in self._spaces.items())
        return f"Dict({inner})"


class Tuple(Space):
    """Ordered product of sub-spaces; position is significant."""

    kind = SpaceKind.TUPLE

    def __init__(self, spaces: Sequence[Space], seed: Optional[int] = None):
        if isinstance(spaces, (str, bytes, Mapping)) or not isinstance(spaces, Sequence):
            raise DomainMismatch("Tuple spaces must be a sequence", expected="sequence", observed=type(spaces).__name__)
        for i, space in enumerate(spaces):
            if not isinstance(space, Space):
                raise DomainMismatch(
                    f"Tuple entry {i} is not a space",
                    expected="Space",
                    observed=type(space).__name__,
                )

        self._spaces = tuple(spaces)
        if not self._spaces:
            raise DomainMismatch("Tuple must declare at least one space", expected=">= 1 entries", observed=0)

        if seed is not None:
            self.seed(seed)

    @property
    def spaces(self) -> tuple:
        return self._spaces

    def __getitem__(self, index: int) -> Space:
        return self._spaces[index]

    def __iter__(self) -> Iterator[Space]:
        return iter(self._spaces)

    def __len__(self) -> int:
        return len(self._spaces)

    def sample(self) -> np.ndarray:
        return _concat([space.sample() for space in self._spaces])

    def contains(self, x: Any) -> bool:
        if not isinstance(x, (list, tuple)):
            return False
        if len(x) != len(self._spaces):
            return False
        return all(space.contains(item) for space, item in zip(self._spaces, x))

    def seed(self, seed: Optional[int] = None) -> List[int]:
        value = _seed_value(seed)
        for space in self._spaces:
            space.seed(value)
        return [value]

    def low(self) -> np.ndarray:
        return _concat([space.low() for space in self._spaces])

    def high(self) -> np.ndarray:
        return _concat([space.high() for space in self._spaces])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tuple):
            return NotImplemented
        return self._spaces == other._spaces

    def __repr__(self) -> str:
        return f"Tuple({', '.join(repr(space) for space in self._spaces)})"


def _describe_lines(space: Space, indent: int) -> List[str]:
    pad = "  " * indent
    if space.kind is SpaceKind.BOX:
        return [f"{pad}Box ({space.dim} dims): low={space.low().tolist()}, high={space.high().tolist()}"]
    elif space.kind is SpaceKind.DISCRETE:
        return [f"{pad}Discrete: n={space.n}"]
    elif space.kind is SpaceKind.DICT:
        lines = [f"{pad}Dict ({len(space)} keys)"]
        for key, child in space.items():
            lines.append(f"{pad}  [{key}]")
            lines.extend(_describe_lines(child, indent + 2))
        return lines
    elif space.kind is SpaceKind.TUPLE:
        lines = [f"{pad}Tuple ({len(space)} entries)"]
        for i, child in enumerate(space):
            lines.append(f"{pad}  [{i}]")
            lines.extend(_describe_lines(child, indent + 2))
        return lines
    raise UnsupportedSpace(space.kind)


# -----------------------------------------------------------------------------
# Translation from raw domain descriptions
# -----------------------------------------------------------------------------

def _require(desc: Mapping, field: str, kind: SpaceKind) -> Any:
    if field not in desc:
        raise DomainMismatch(
            f"{kind.value} description is missing '{field}'",
            expected=field,
            observed=sorted(str(k) for k in desc.keys()),
        )
    return desc[field]


def _as_count(value: Any) -> int:
    """Accept integral floats (e.g. from JSON) as a Discrete size."""
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return int(value)
    return value


def from_description(desc: Any) -> Space:
    """
    Translate a raw domain description into a Space.

    Args:
        desc: A Space (returned unchanged) or a mapping with a ``"type"`` tag
            of "Box", "Discrete", "Dict" or "Tuple" and the fields of that
            variant.

    Returns:
        The translated Space

    Raises:
        UnsupportedSpace: If the tag is not one of the known variants
        DomainMismatch: If the description is malformed
    """
    if isinstance(desc, Space):
        return desc
    if not isinstance(desc, Mapping):
        raise DomainMismatch(
            "Space description must be a mapping",
            expected="mapping with a 'type' tag",
            observed=type(desc).__name__,
        )
    if "type" not in desc:
        raise DomainMismatch("Space description has no 'type' tag", expected="type", observed=sorted(desc.keys()))

    tag = desc["type"]
    try:
        kind = SpaceKind(tag)
    except (ValueError, TypeError):
        raise UnsupportedSpace(tag) from None

    logger.debug("Translating %s space description", kind.value)

    if kind is SpaceKind.BOX:
        return Box(
            _require(desc, "low", kind),
            _require(desc, "high", kind),
            shape=desc.get("shape"),
        )

    elif kind is SpaceKind.DISCRETE:
        return Discrete(_as_count(_require(desc, "n", kind)))

    elif kind is SpaceKind.DICT:
        children = _require(desc, "spaces", kind)
        if isinstance(children, Mapping):
            children = list(children.items())
        elif not isinstance(children, (list, tuple)):
            raise DomainMismatch(
                "Dict description 'spaces' must be a mapping or pairs",
                expected="mapping",
                observed=type(children).__name__,
            )
        pairs = []
        for item in children:
            if not isinstance(item, (list, tuple)) or len(item) != 2:
                raise DomainMismatch("Dict entries must be (key, description) pairs", expected="pair", observed=item)
            pairs.append((item[0], from_description(item[1])))
        return Dict(pairs)

    elif kind is SpaceKind.TUPLE:
        children = _require(desc, "spaces", kind)
        if isinstance(children, (str, bytes, Mapping)) or not isinstance(children, (list, tuple)):
            raise DomainMismatch(
                "Tuple description 'spaces' must be a list",
                expected="list",
                observed=type(children).__name__,
            )
        return Tuple([from_description(child) for child in children])

    raise UnsupportedSpace(tag)


def to_description(space: Space) -> "dict[str, Any]":
    """Inverse of ``from_description``: a JSON-friendly raw description."""
    if space.kind is SpaceKind.BOX:
        return {"type": "Box", "low": space.low().tolist(), "high": space.high().tolist()}
    elif space.kind is SpaceKind.DISCRETE:
        return {"type": "Discrete", "n": space.n}
    elif space.kind is SpaceKind.DICT:
        return {"type": "Dict", "spaces": [[key, to_description(child)] for key, child in space.items()]}
    elif space.kind is SpaceKind.TUPLE:
        return {"type": "Tuple", "spaces": [to_description(child) for child in space]}
    raise UnsupportedSpace(space.kind)
