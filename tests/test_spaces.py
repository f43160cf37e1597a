"""
Tests for the space algebra.

This module tests:
- Construction and validation of Box, Discrete, Dict and Tuple
- Sampling, membership and bounds
- Seeding (including seed propagation to children)
- Translation from and to raw domain descriptions
"""

import numpy as np
import pytest

from envchain.errors import DomainMismatch, UnsupportedSpace
from envchain.spaces import (
    Box,
    Discrete,
    Dict,
    Tuple,
    SpaceKind,
    from_description,
    to_description,
)


class TestBox:
    """Tests for Box spaces."""

    def test_creation(self):
        """Test basic box creation."""
        box = Box([-1.0, 0.0], [1.0, 2.0])
        assert box.kind is SpaceKind.BOX
        assert box.dim == 2
        np.testing.assert_array_equal(box.low(), [-1.0, 0.0])
        np.testing.assert_array_equal(box.high(), [1.0, 2.0])

    def test_scalar_bounds_with_shape(self):
        """Test scalar bounds broadcast against a shape."""
        box = Box(-1.0, 1.0, shape=(3,))
        assert box.dim == 3
        np.testing.assert_array_equal(box.low(), [-1.0, -1.0, -1.0])

    def test_multidimensional_bounds_are_flattened(self):
        """Test that 2-D bounds become one flat vector."""
        box = Box(np.zeros((2, 2)), np.ones((2, 2)))
        assert box.dim == 4

    def test_mismatched_lengths_rejected(self):
        """Test that bounds of different lengths are rejected."""
        with pytest.raises(DomainMismatch) as exc_info:
            Box([0.0, 0.0], [1.0])
        assert exc_info.value.observed == 1

    def test_low_above_high_rejected(self):
        """Test that an empty interval is rejected."""
        with pytest.raises(DomainMismatch):
            Box([0.0, 2.0], [1.0, 1.0])

    def test_nan_rejected(self):
        """Test that NaN bounds are rejected."""
        with pytest.raises(DomainMismatch):
            Box([np.nan], [1.0])

    def test_non_numeric_rejected(self):
        """Test that non-numeric bounds are rejected."""
        with pytest.raises(DomainMismatch):
            Box(["a"], [1.0])

    def test_empty_rejected(self):
        """Test that a zero-dimensional box is rejected."""
        with pytest.raises(DomainMismatch):
            Box([], [])

    def test_domain_mismatch_is_value_error(self):
        """Test that callers catching ValueError still catch domain errors."""
        with pytest.raises(ValueError):
            Box([1.0], [0.0])

    def test_bounded_flags(self):
        """Test per-dimension boundedness."""
        box = Box([-np.inf, 0.0, -1.0], [0.0, np.inf, 1.0])
        np.testing.assert_array_equal(box.bounded_below, [False, True, True])
        np.testing.assert_array_equal(box.bounded_above, [True, False, True])
        assert not box.is_bounded()
        assert Box([-1.0], [1.0]).is_bounded()

    def test_sample_within_bounds(self):
        """Test that samples lie inside the box."""
        box = Box([-1.0, 10.0], [1.0, 20.0], seed=0)
        for _ in range(100):
            s = box.sample()
            assert s.shape == (2,)
            assert box.contains(s)

    def test_sample_very_wide_bounds(self):
        """Test sampling when high - low overflows the float range."""
        box = Box([-1e308], [1e308], seed=0)
        for _ in range(100):
            s = box.sample()
            assert np.all(np.isfinite(s))
            assert box.contains(s)

    def test_sample_mixed_wide_and_narrow_bounds(self):
        """Test that a narrow dimension stays in range next to a very wide one."""
        box = Box([-1e308, 0.0], [1e308, 1.0], seed=0)
        for _ in range(100):
            s = box.sample()
            assert box.contains(s)
            assert 0.0 <= s[1] <= 1.0

    def test_degenerate_interval(self):
        """Test that low == high samples exactly that value."""
        box = Box([3.0], [3.0], seed=0)
        np.testing.assert_array_equal(box.sample(), [3.0])

    def test_contains(self):
        """Test membership."""
        box = Box([-1.0, -1.0], [1.0, 1.0])
        assert box.contains([0.0, 1.0])
        assert [0.5, -0.5] in box
        assert not box.contains([0.0, 1.5])
        assert not box.contains([0.0])
        assert not box.contains("ab")
        assert not box.contains(None)

    def test_seed_reproducible(self):
        """Test that reseeding reproduces the same draws."""
        box = Box([0.0, 0.0], [1.0, 1.0])
        assert box.seed(7) == [7]
        first = [box.sample() for _ in range(3)]
        box.seed(7)
        second = [box.sample() for _ in range(3)]
        np.testing.assert_array_equal(first, second)

    def test_bounds_are_copies(self):
        """Test that mutating returned bounds does not change the box."""
        box = Box([0.0], [1.0])
        low = box.low()
        low[0] = 5.0
        np.testing.assert_array_equal(box.low(), [0.0])

    def test_equality(self):
        """Test structural equality."""
        assert Box([0.0], [1.0]) == Box([0.0], [1.0], seed=3)
        assert Box([0.0], [1.0]) != Box([0.0], [2.0])
        assert Box([0.0], [1.0]) != Discrete(2)


class TestDiscrete:
    """Tests for Discrete spaces."""

    def test_creation(self):
        """Test basic discrete creation."""
        space = Discrete(3)
        assert space.kind is SpaceKind.DISCRETE
        assert space.n == 3

    def test_invalid_n(self):
        """Test that non-positive or non-integer sizes are rejected."""
        for n in (0, -1, 2.5, True, "3"):
            with pytest.raises(DomainMismatch):
                Discrete(n)

    def test_bounds(self):
        """Test that bounds are 0 and n-1."""
        space = Discrete(5)
        np.testing.assert_array_equal(space.low(), [0.0])
        np.testing.assert_array_equal(space.high(), [4.0])

    def test_sample(self):
        """Test that samples are one-element integral vectors in range."""
        space = Discrete(4, seed=1)
        seen = set()
        for _ in range(200):
            s = space.sample()
            assert s.shape == (1,)
            assert s[0] == np.floor(s[0])
            assert space.contains(s)
            seen.add(int(s[0]))
        assert seen == {0, 1, 2, 3}

    def test_single_element(self):
        """Test that Discrete(1) always samples 0."""
        space = Discrete(1, seed=0)
        for _ in range(10):
            np.testing.assert_array_equal(space.sample(), [0.0])

    def test_contains(self):
        """Test membership."""
        space = Discrete(3)
        assert space.contains(0)
        assert space.contains(np.int64(2))
        assert space.contains([1.0])
        assert not space.contains(3)
        assert not space.contains(-1)
        assert not space.contains(1.5)
        assert not space.contains([0, 1])
        assert not space.contains(True)
        assert not space.contains("1")

    def test_seed_reproducible(self):
        """Test that reseeding reproduces the same draws."""
        space = Discrete(10)
        space.seed(3)
        first = [space.sample()[0] for _ in range(5)]
        space.seed(3)
        second = [space.sample()[0] for _ in range(5)]
        assert first == second


class TestDict:
    """Tests for Dict spaces."""

    @pytest.fixture
    def space(self):
        return Dict([("a", Box([0.0, 0.0], [1.0, 1.0])), ("b", Discrete(3))])

    def test_keys_in_declaration_order(self):
        """Test that declaration order is kept."""
        space = Dict([("z", Discrete(2)), ("a", Discrete(2)), ("m", Discrete(2))])
        assert space.keys() == ["z", "a", "m"]
        assert list(space) == ["z", "a", "m"]

    def test_from_mapping(self):
        """Test construction from a mapping."""
        space = Dict({"x": Discrete(2), "y": Box([0.0], [1.0])})
        assert len(space) == 2
        assert space["x"] == Discrete(2)
        assert "y" in space

    def test_sample_is_flat_concatenation(self, space):
        """Test that sample() concatenates children in declaration order."""
        space.seed(0)
        s = space.sample()
        assert s.shape == (3,)
        assert 0.0 <= s[0] <= 1.0
        assert 0.0 <= s[1] <= 1.0
        assert s[2] in (0.0, 1.0, 2.0)

    def test_bounds(self, space):
        """Test that bounds are concatenated in declaration order."""
        np.testing.assert_array_equal(space.low(), [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(space.high(), [1.0, 1.0, 2.0])

    def test_contains(self, space):
        """Test record membership."""
        assert space.contains({"a": [0.5, 0.5], "b": 2})
        assert space.contains({"b": 0, "a": [0.0, 1.0]})
        assert not space.contains({"a": [0.5, 0.5]})
        assert not space.contains({"a": [0.5, 0.5], "b": 1, "c": 0})
        assert not space.contains({"a": [0.5, 0.5], "b": 3})
        assert not space.contains([0.5, 0.5, 1.0])

    def test_duplicate_keys_rejected(self):
        """Test that duplicate keys are rejected."""
        with pytest.raises(DomainMismatch):
            Dict([("a", Discrete(2)), ("a", Discrete(3))])

    def test_non_space_child_rejected(self):
        """Test that children must be spaces."""
        with pytest.raises(DomainMismatch):
            Dict({"a": 3})

    def test_empty_rejected(self):
        """Test that a Dict needs at least one key."""
        with pytest.raises(DomainMismatch) as exc_info:
            Dict([])
        assert exc_info.value.observed == 0
        with pytest.raises(DomainMismatch):
            Dict({})

    def test_non_string_key_rejected(self):
        """Test that keys must be strings."""
        with pytest.raises(DomainMismatch):
            Dict([(1, Discrete(2))])

    def test_seed_propagates_identical_value(self):
        """Test that every child receives the same seed."""
        space = Dict([("left", Box([0.0], [1.0])), ("right", Box([0.0], [1.0]))])
        assert space.seed(42) == [42]
        s = space.sample()
        assert s[0] == s[1]

    def test_equality(self, space):
        """Test structural equality, including order."""
        same = Dict([("a", Box([0.0, 0.0], [1.0, 1.0])), ("b", Discrete(3))])
        reordered = Dict([("b", Discrete(3)), ("a", Box([0.0, 0.0], [1.0, 1.0]))])
        assert space == same
        assert space != reordered


class TestTuple:
    """Tests for Tuple spaces."""

    def test_indexing(self):
        """Test positional access and length."""
        space = Tuple([Discrete(2), Box([0.0], [1.0])])
        assert len(space) == 2
        assert space[0] == Discrete(2)
        assert space[1].kind is SpaceKind.BOX

    def test_sample_and_bounds(self):
        """Test flat concatenation for tuples."""
        space = Tuple([Box([-1.0], [1.0]), Discrete(4)], seed=5)
        assert space.sample().shape == (2,)
        np.testing.assert_array_equal(space.low(), [-1.0, 0.0])
        np.testing.assert_array_equal(space.high(), [1.0, 3.0])

    def test_contains(self):
        """Test positional membership."""
        space = Tuple([Discrete(2), Box([0.0], [1.0])])
        assert space.contains((1, [0.5]))
        assert space.contains([0, [1.0]])
        assert not space.contains((1,))
        assert not space.contains((2, [0.5]))
        assert not space.contains({"0": 1})

    def test_non_space_child_rejected(self):
        """Test that children must be spaces."""
        with pytest.raises(DomainMismatch):
            Tuple([Discrete(2), "box"])

    def test_empty_rejected(self):
        """Test that a Tuple needs at least one space."""
        with pytest.raises(DomainMismatch) as exc_info:
            Tuple([])
        assert exc_info.value.observed == 0

    def test_seed_propagates_identical_value(self):
        """Test that identical children sample identically after seeding."""
        space = Tuple([Discrete(100), Discrete(100)])
        space.seed(9)
        for _ in range(5):
            s = space.sample()
            assert s[0] == s[1]

    def test_nested(self):
        """Test nested composites."""
        space = Tuple([Dict({"a": Discrete(2), "b": Box([0.0, 0.0], [1.0, 1.0])}), Discrete(3)])
        np.testing.assert_array_equal(space.high(), [1.0, 1.0, 1.0, 2.0])

    def test_describe(self):
        """Test human-readable description."""
        space = Tuple([Dict({"a": Discrete(2)}), Box([0.0], [1.0])])
        text = space.describe()
        assert "Tuple (2 entries)" in text
        assert "[a]" in text
        assert "Discrete: n=2" in text


class TestDescriptions:
    """Tests for translation from raw domain descriptions."""

    def test_box(self):
        """Test Box translation."""
        space = from_description({"type": "Box", "low": [-1, -2], "high": [1, 2]})
        assert space == Box([-1.0, -2.0], [1.0, 2.0])

    def test_box_with_shape(self):
        """Test Box translation with scalar bounds and a shape."""
        space = from_description({"type": "Box", "low": 0, "high": 1, "shape": [3]})
        assert space.dim == 3

    def test_discrete(self):
        """Test Discrete translation, including integral floats."""
        assert from_description({"type": "Discrete", "n": 4}) == Discrete(4)
        assert from_description({"type": "Discrete", "n": 4.0}) == Discrete(4)

    def test_nested(self):
        """Test recursive translation of composites."""
        desc = {
            "type": "Dict",
            "spaces": [
                ("pos", {"type": "Box", "low": [0, 0], "high": [1, 1]}),
                ("parts", {"type": "Tuple", "spaces": [{"type": "Discrete", "n": 2}]}),
            ],
        }
        space = from_description(desc)
        assert space.keys() == ["pos", "parts"]
        assert space["parts"][0] == Discrete(2)

    def test_empty_composites_rejected(self):
        """Test that empty composite descriptions are malformed."""
        with pytest.raises(DomainMismatch):
            from_description({"type": "Dict", "spaces": []})
        with pytest.raises(DomainMismatch):
            from_description({"type": "Tuple", "spaces": []})
        with pytest.raises(DomainMismatch):
            from_description({"type": "Tuple", "spaces": [{"type": "Dict", "spaces": {}}]})

    def test_space_passthrough(self):
        """Test that a Space is returned unchanged."""
        box = Box([0.0], [1.0])
        assert from_description(box) is box

    def test_unknown_tag(self):
        """Test that an unknown tag names the tag."""
        with pytest.raises(UnsupportedSpace) as exc_info:
            from_description({"type": "MultiBinary", "n": 4})
        assert exc_info.value.tag == "MultiBinary"
        assert "MultiBinary" in str(exc_info.value)

    def test_unknown_nested_tag(self):
        """Test that an unknown tag inside a composite still raises."""
        with pytest.raises(UnsupportedSpace):
            from_description({"type": "Tuple", "spaces": [{"type": "Graph"}]})

    def test_missing_tag(self):
        """Test that a description without a tag is malformed."""
        with pytest.raises(DomainMismatch):
            from_description({"low": [0], "high": [1]})

    def test_missing_field(self):
        """Test that a missing field is malformed."""
        with pytest.raises(DomainMismatch) as exc_info:
            from_description({"type": "Box", "low": [0]})
        assert exc_info.value.expected == "high"

    def test_not_a_mapping(self):
        """Test that a non-mapping is malformed."""
        with pytest.raises(DomainMismatch):
            from_description([0, 1])

    def test_to_description_inverts(self):
        """Test that to_description produces a translatable description."""
        space = Dict([("a", Box([0.0], [1.0])), ("b", Tuple([Discrete(2), Discrete(5)]))])
        desc = to_description(space)
        assert desc["type"] == "Dict"
        assert from_description(desc) == space


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
