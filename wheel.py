"""Wheel catalog for the room server."""

import random
from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple

SEGMENT_MONEY = "money"
SEGMENT_LOSE_TURN = "loseTurn"
SEGMENT_BANKRUPT = "bankrupt"

SEGMENT_TYPES = (SEGMENT_MONEY, SEGMENT_LOSE_TURN, SEGMENT_BANKRUPT)


@dataclass(frozen=True)
class WheelSegment:
    type: str
    value: int
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


WHEEL_SEGMENTS: Tuple[WheelSegment, ...] = (
    WheelSegment(SEGMENT_MONEY, 100, "+$100"),
    WheelSegment(SEGMENT_MONEY, 200, "+$200"),
    WheelSegment(SEGMENT_MONEY, 300, "+$300"),
    WheelSegment(SEGMENT_LOSE_TURN, 0, "LOSE TURN"),
    WheelSegment(SEGMENT_MONEY, 400, "+$400"),
    WheelSegment(SEGMENT_BANKRUPT, 0, "BANKRUPT"),
    WheelSegment(SEGMENT_MONEY, 500, "+$500"),
    WheelSegment(SEGMENT_MONEY, 1000, "JACKPOT"),
)


def draw_index(rng: Any = random) -> int:
    """Pick a segment index uniformly at random."""
    return rng.randrange(len(WHEEL_SEGMENTS))
