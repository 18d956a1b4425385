"""GeoThinkr scoring: guess point + target point + difficulty -> tier and points."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Tuple

SPOT_ON = "Spot-on!"
CLOSE_ENOUGH = "Close enough"
NOPE = "Nope"

SPOT_ON_POINTS = 500
CLOSE_ENOUGH_POINTS = 200
HINT_COST = 100


class Radii(NamedTuple):
    spot_on: float
    close: float


DIFFICULTY_RADII: dict[str, Radii] = {
    "easy": Radii(100, 300),
    "medium": Radii(75, 200),
    "hard": Radii(50, 150),
}
DEFAULT_RADII = Radii(100, 300)

Point = Tuple[float, float]


@dataclass(frozen=True)
class ScoreResult:
    distance: float
    tier: str
    base_points: int
    final_points: int


def radii_for(difficulty: str | None) -> Radii:
    """Unknown or missing difficulties score like "easy"."""
    if not difficulty:
        return DEFAULT_RADII
    return DIFFICULTY_RADII.get(difficulty.strip().lower(), DEFAULT_RADII)


def map_distance(guess: Point, target: Point) -> float:
    # Flat pixel space of the campus map image, not geodetic.
    return math.hypot(target[0] - guess[0], target[1] - guess[1])


def tier_for(distance: float, difficulty: str | None) -> tuple[str, int]:
    radii = radii_for(difficulty)
    if distance <= radii.spot_on:
        return SPOT_ON, SPOT_ON_POINTS
    if distance <= radii.close:
        return CLOSE_ENOUGH, CLOSE_ENOUGH_POINTS
    return NOPE, 0


def apply_hint_penalty(points: int, hints_used: int) -> int:
    """
    Deduct a flat HINT_COST per hint.
    Never go below zero.
    """
    if hints_used < 0:
        raise ValueError("hints_used must be non-negative")
    return max(points - HINT_COST * hints_used, 0)


def score(guess: Point, target: Point, difficulty: str | None = None, hints_used: int = 0) -> ScoreResult:
    distance = map_distance(guess, target)
    tier, base_points = tier_for(distance, difficulty)
    return ScoreResult(
        distance=distance,
        tier=tier,
        base_points=base_points,
        final_points=apply_hint_penalty(base_points, hints_used),
    )
