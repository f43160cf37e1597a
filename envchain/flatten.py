"""
Structural conversion between nested space values and flat vectors.

``flatten`` lowers a value of any (possibly nested) space to one float vector,
visiting leaves depth-first in declaration order. This is the same order
``Space.sample()``, ``Space.low()`` and ``Space.high()`` use, so the bounds of
``flatten_space(space)`` line up element-wise with ``flatten(space, value)``.

``unflatten`` is the inverse:

>>> from envchain.spaces import Box, Dict, Discrete
>>> space = Dict({"a": Box([0, 0], [1, 1]), "b": Discrete(3)})
>>> flatten(space, {"a": [0.5, 0.25], "b": 2})
array([0.5 , 0.25, 2.  ])
>>> unflatten(space, [0.5, 0.25, 2.0])["b"]
array([2.])
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, List

import numpy as np

from envchain.errors import ShapeMismatch, UnsupportedSpace
from envchain.spaces import Box, Space, SpaceKind


def flat_dim(space: Space) -> int:
    """Total length of a flattened value of ``space``."""
    if space.kind is SpaceKind.BOX:
        return space.dim
    elif space.kind is SpaceKind.DISCRETE:
        return 1
    elif space.kind is SpaceKind.DICT:
        return sum(flat_dim(child) for child in space.values())
    elif space.kind is SpaceKind.TUPLE:
        return sum(flat_dim(child) for child in space)
    raise UnsupportedSpace(space.kind)


def flatten_space(space: Space) -> Box:
    """Box whose bounds are the flattened bounds of ``space``."""
    return Box(space.low(), space.high())


# -----------------------------------------------------------------------------
# Flatten
# -----------------------------------------------------------------------------

def _leaf(value: Any, size: int, path: str) -> np.ndarray:
    try:
        v = np.asarray(value, dtype=np.float64).ravel()
    except (TypeError, ValueError):
        raise ShapeMismatch(
            f"Value at {path} is not numeric",
            expected=f"{size} floats",
            observed=type(value).__name__,
        ) from None
    if v.size != size:
        raise ShapeMismatch(f"Value at {path} has the wrong length", expected=size, observed=v.size)
    return v


def _flatten(space: Space, value: Any, path: str, out: List[np.ndarray]) -> None:
    if space.kind is SpaceKind.BOX:
        out.append(_leaf(value, space.dim, path))

    elif space.kind is SpaceKind.DISCRETE:
        out.append(_leaf(value, 1, path))

    elif space.kind is SpaceKind.DICT:
        if not isinstance(value, Mapping):
            raise ShapeMismatch(f"Value at {path} is not a mapping", expected="mapping", observed=type(value).__name__)
        extra = [key for key in value if key not in space]
        if extra:
            raise ShapeMismatch(f"Value at {path} has undeclared keys", expected=space.keys(), observed=extra)
        for key, child in space.items():
            if key not in value:
                raise ShapeMismatch(f"Value at {path} is missing key '{key}'", expected=space.keys(), observed=list(value))
            _flatten(child, value[key], f"{path}[{key!r}]", out)

    elif space.kind is SpaceKind.TUPLE:
        if not isinstance(value, (list, tuple)):
            raise ShapeMismatch(f"Value at {path} is not a sequence", expected="tuple", observed=type(value).__name__)
        if len(value) != len(space):
            raise ShapeMismatch(f"Value at {path} has the wrong arity", expected=len(space), observed=len(value))
        for i, (child, item) in enumerate(zip(space, value)):
            _flatten(child, item, f"{path}[{i}]", out)

    else:
        raise UnsupportedSpace(space.kind)


def flatten(space: Space, value: Any) -> np.ndarray:
    """
    Flatten a value of ``space`` into one float vector.

    Args:
        space: The space the value belongs to
        value: A conforming value (array for Box, scalar or one-element
            array for Discrete, dict for Dict, tuple/list for Tuple)

    Returns:
        1-D float64 array of length ``flat_dim(space)``

    Raises:
        ShapeMismatch: If the value's structure or leaf lengths do not
            match the space
    """
    parts: List[np.ndarray] = []
    _flatten(space, value, "value", parts)
    if not parts:
        return np.empty(0, dtype=np.float64)
    return np.concatenate(parts)


# -----------------------------------------------------------------------------
# Unflatten
# -----------------------------------------------------------------------------

def _unflatten(space: Space, vector: np.ndarray, offset: int):
    if space.kind is SpaceKind.BOX:
        end = offset + space.dim
        return vector[offset:end].copy(), end

    elif space.kind is SpaceKind.DISCRETE:
        return vector[offset:offset + 1].copy(), offset + 1

    elif space.kind is SpaceKind.DICT:
        record = {}
        for key, child in space.items():
            record[key], offset = _unflatten(child, vector, offset)
        return record, offset

    elif space.kind is SpaceKind.TUPLE:
        items = []
        for child in space:
            item, offset = _unflatten(child, vector, offset)
            items.append(item)
        return tuple(items), offset

    raise UnsupportedSpace(space.kind)


def unflatten(space: Space, vector: Any) -> Any:
    """
    Rebuild a structured value of ``space`` from a flat vector.

    Raises:
        ShapeMismatch: If ``vector`` is not 1-D or its length differs from
            ``flat_dim(space)``
    """
    try:
        v = np.asarray(vector, dtype=np.float64)
    except (TypeError, ValueError):
        raise ShapeMismatch("Flat vector is not numeric", expected="1-D floats", observed=type(vector).__name__) from None
    if v.ndim != 1:
        raise ShapeMismatch("Flat vector must be 1-D", expected=1, observed=v.ndim)

    expected = flat_dim(space)
    if v.size != expected:
        raise ShapeMismatch("Flat vector length does not match the space", expected=expected, observed=v.size)

    value, _ = _unflatten(space, v, 0)
    return value


# -----------------------------------------------------------------------------
# Raw backend values
# -----------------------------------------------------------------------------

def structure(space: Space, raw: Any) -> Any:
    """
    Convert a raw backend value into the structured form of ``space``.

    Leaves become float64 vectors (one element for Discrete). Dict records
    keep the declared keys that are present, in declaration order; keys the
    space does not declare are dropped.

    Raises:
        ShapeMismatch: If a leaf has the wrong length or a composite has the
            wrong container type
    """
    return _structure(space, raw, "observation")


def _structure(space: Space, raw: Any, path: str) -> Any:
    if space.kind is SpaceKind.BOX:
        return _leaf(raw, space.dim, path)

    elif space.kind is SpaceKind.DISCRETE:
        return _leaf(raw, 1, path)

    elif space.kind is SpaceKind.DICT:
        if not isinstance(raw, Mapping):
            raise ShapeMismatch(f"Value at {path} is not a mapping", expected="mapping", observed=type(raw).__name__)
        return {
            key: _structure(child, raw[key], f"{path}[{key!r}]")
            for key, child in space.items()
            if key in raw
        }

    elif space.kind is SpaceKind.TUPLE:
        if not isinstance(raw, (list, tuple)):
            raise ShapeMismatch(f"Value at {path} is not a sequence", expected="tuple", observed=type(raw).__name__)
        if len(raw) != len(space):
            raise ShapeMismatch(f"Value at {path} has the wrong arity", expected=len(space), observed=len(raw))
        return tuple(_structure(child, item, f"{path}[{i}]") for i, (child, item) in enumerate(zip(space, raw)))

    raise UnsupportedSpace(space.kind)
