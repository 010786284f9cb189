from datetime import date

import pytest
from pydantic import ValidationError

from railfare.routes import (
    ALL_DIRECTIONS,
    DEFAULT_DIRECTION,
    MOW,
    SPB,
    direction_from_key,
    direction_towards,
    to_moscow,
    to_spb,
)
from railfare.types import QueryConstraint, TimeBand


def test_direction_reverse_and_key():
    d = to_moscow()
    assert d.origin == SPB and d.destination == MOW
    assert d.key == "spb-mow"
    assert d.reverse() == to_spb()
    assert d.reverse().reverse() == d


def test_unknown_alias_goes_to_spb():
    assert direction_towards("xyz") == to_spb()


def test_direction_from_key_roundtrip():
    for d in ALL_DIRECTIONS:
        assert direction_from_key(d.key) == d


@pytest.mark.parametrize("key", ["mow-mow", "spb", "ekb-mow", ""])
def test_direction_from_key_rejects_bad_keys(key):
    with pytest.raises(ValueError):
        direction_from_key(key)


def test_default_direction_is_towards_moscow():
    assert DEFAULT_DIRECTION == to_moscow()


def test_directions_are_hashable_grid_keys():
    grid = {(date(2024, 3, 16), to_moscow(), TimeBand.MORNING): 1}
    assert grid[(date(2024, 3, 16), direction_from_key("spb-mow"), TimeBand.MORNING)] == 1


class TestQueryConstraint:
    def test_accepts_key_or_alias(self):
        assert QueryConstraint(direction="spb-mow").direction == to_moscow()
        assert QueryConstraint(direction="SPB").direction == to_spb()

    def test_date_and_month_are_exclusive(self):
        with pytest.raises(ValidationError):
            QueryConstraint(date=date(2024, 3, 16), month=3)

    def test_month_range(self):
        with pytest.raises(ValidationError):
            QueryConstraint(month=13)

    def test_defaults(self):
        c = QueryConstraint()
        assert c.direction is None
        assert c.segment == 0 and c.more is False
