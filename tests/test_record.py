"""
lootspot/tests/test_record.py

Tests for location keys and reward records.
"""

import pytest

from lootspot.config import DEFAULT_CATEGORY
from lootspot.data.record import (
    LocationKey,
    LocationKeyError,
    RewardRecord,
    make_record,
)


class TestLocationKey:
    """Test LocationKey."""

    def test_to_string(self):
        """Test key string encoding."""
        assert LocationKey("overworld", 1, -2, 3).to_string() == "overworld|1|-2|3"

    def test_from_string(self):
        """Test parsing a key string."""
        key = LocationKey.from_string("overworld|1|-2|3")
        assert key == LocationKey("overworld", 1, -2, 3)

    def test_world_containing_separator(self):
        """Test that coordinates are taken from the right."""
        key = LocationKey.from_string("mod|realm|10|20|30")
        assert key.world == "mod|realm"
        assert (key.x, key.y, key.z) == (10, 20, 30)

    @pytest.mark.parametrize("value", ["", "overworld|1|2", "|1|2|3", "w|a|2|3", "w|1.5|2|3"])
    def test_invalid_strings(self, value):
        """Test that malformed keys raise LocationKeyError."""
        with pytest.raises(LocationKeyError):
            LocationKey.from_string(value)

    def test_error_is_value_error(self):
        """Test LocationKeyError is a ValueError."""
        assert issubclass(LocationKeyError, ValueError)

    def test_hashable(self):
        """Test keys work as dict keys."""
        table = {LocationKey("w", 1, 2, 3): "a"}
        assert table[LocationKey("w", 1, 2, 3)] == "a"

    def test_squared_distance(self):
        """Test squared block distance."""
        a = LocationKey("w", 0, 0, 0)
        b = LocationKey("w", 3, 4, 0)
        assert a.squared_distance(b) == 25


class TestRewardRecord:
    """Test RewardRecord."""

    def test_defaults(self):
        """Test default claimants and category."""
        record = RewardRecord(LocationKey("w", 1, 2, 3), {"item": "diamond"})
        assert record.claimants == set()
        assert record.category == DEFAULT_CATEGORY
        assert record.key == "w|1|2|3"
        assert record.world == "w"

    def test_tuple_location_normalized(self):
        """Test a plain tuple becomes a LocationKey."""
        record = RewardRecord(("w", 1, 2, 3), "payload", ["p1", "p1"])
        assert isinstance(record.location, LocationKey)
        assert record.claimants == {"p1"}

    def test_claim_once(self):
        """Test an actor can claim once."""
        record = make_record("w", 0, 0, 0, "payload")
        assert record.claim("p1") is True
        assert record.claim("p1") is False
        assert record.claimants == {"p1"}
        assert record.has_claimed("p1")

    def test_reset_claim(self):
        """Test removing a claim."""
        record = make_record("w", 0, 0, 0, "payload", claimants=["p1"])
        assert record.reset_claim("p1") is True
        assert record.reset_claim("p1") is False
        assert not record.has_claimed("p1")

    def test_copy_is_independent(self):
        """Test copies do not share the claimant set."""
        record = make_record("w", 0, 0, 0, "payload", claimants=["p1"], category="gems")
        copy = record.copy()
        copy.claim("p2")
        assert record.claimants == {"p1"}
        assert copy.category == "gems"
        assert copy == make_record("w", 0, 0, 0, "payload", claimants=["p1", "p2"], category="gems")

    def test_empty_payload(self):
        """Test is_empty for a None payload."""
        assert make_record("w", 0, 0, 0, None).is_empty
        assert not make_record("w", 0, 0, 0, "x").is_empty

    def test_summary(self):
        """Test summary dict."""
        record = make_record("w", 1, 2, 3, "x", claimants=["a", "b"])
        summary = record.to_summary()
        assert summary["location"] == "w|1|2|3"
        assert summary["claimed_count"] == 2
        assert summary["empty"] is False
