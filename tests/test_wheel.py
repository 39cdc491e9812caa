import dataclasses
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from wheel import (  # noqa: E402
    SEGMENT_BANKRUPT,
    SEGMENT_LOSE_TURN,
    SEGMENT_MONEY,
    SEGMENT_TYPES,
    WHEEL_SEGMENTS,
    WheelSegment,
    draw_index,
)


class TestCatalog:
    def test_catalog_size(self):
        assert len(WHEEL_SEGMENTS) == 8

    def test_segment_types_are_known(self):
        for seg in WHEEL_SEGMENTS:
            assert seg.type in SEGMENT_TYPES
            assert seg.value >= 0
            assert seg.label

    def test_has_one_bankrupt_and_one_lose_turn(self):
        types = [s.type for s in WHEEL_SEGMENTS]
        assert types.count(SEGMENT_BANKRUPT) == 1
        assert types.count(SEGMENT_LOSE_TURN) == 1

    def test_money_values(self):
        values = [s.value for s in WHEEL_SEGMENTS if s.type == SEGMENT_MONEY]
        assert values == [100, 200, 300, 400, 500, 1000]

    def test_special_segments_are_worth_nothing(self):
        for seg in WHEEL_SEGMENTS:
            if seg.type != SEGMENT_MONEY:
                assert seg.value == 0

    def test_segments_are_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            WHEEL_SEGMENTS[0].value = 5000

    def test_to_dict(self):
        seg = WheelSegment(SEGMENT_MONEY, 300, "+$300")
        assert seg.to_dict() == {"type": "money", "value": 300, "label": "+$300"}


class TestDrawIndex:
    def test_draw_in_range(self):
        for _ in range(200):
            assert 0 <= draw_index() < len(WHEEL_SEGMENTS)

    def test_draw_uses_given_source(self):
        class Fixed:
            def randrange(self, n):
                assert n == len(WHEEL_SEGMENTS)
                return 5

        assert draw_index(Fixed()) == 5
        assert WHEEL_SEGMENTS[draw_index(Fixed())].type == SEGMENT_BANKRUPT
