import pytest

from app.scoring import (
    CLOSE_ENOUGH,
    NOPE,
    SPOT_ON,
    apply_hint_penalty,
    map_distance,
    radii_for,
    score,
    tier_for,
)


def test_distance_is_euclidean_in_pixels():
    assert map_distance((0, 0), (30, 40)) == 50
    assert map_distance((100, 100), (100, 100)) == 0


@pytest.mark.parametrize(
    "difficulty, distance, tier, points",
    [
        ("easy", 100, SPOT_ON, 500),
        ("easy", 100.01, CLOSE_ENOUGH, 200),
        ("easy", 300, CLOSE_ENOUGH, 200),
        ("easy", 300.5, NOPE, 0),
        ("medium", 75, SPOT_ON, 500),
        ("medium", 75.01, CLOSE_ENOUGH, 200),
        ("medium", 200, CLOSE_ENOUGH, 200),
        ("medium", 201, NOPE, 0),
        ("hard", 50, SPOT_ON, 500),
        ("hard", 51, CLOSE_ENOUGH, 200),
        ("hard", 150, CLOSE_ENOUGH, 200),
        ("hard", 150.01, NOPE, 0),
    ],
)
def test_tier_boundaries_are_inclusive(difficulty, distance, tier, points):
    assert tier_for(distance, difficulty) == (tier, points)


def test_unknown_or_missing_difficulty_scores_like_easy():
    assert radii_for("legendary") == radii_for("easy")
    assert radii_for(None) == radii_for("easy")
    assert radii_for("  HARD ") == radii_for("hard")


def test_points_never_increase_with_distance():
    for difficulty in ("easy", "medium", "hard", None):
        previous = None
        for distance in range(0, 400, 5):
            _, points = tier_for(distance, difficulty)
            if previous is not None:
                assert points <= previous
            previous = points


def test_hint_penalty_clamps_at_zero():
    assert apply_hint_penalty(500, 0) == 500
    assert apply_hint_penalty(500, 1) == 400
    assert apply_hint_penalty(200, 2) == 0
    assert apply_hint_penalty(200, 5) == 0
    assert apply_hint_penalty(0, 3) == 0


def test_negative_hints_are_rejected():
    with pytest.raises(ValueError):
        apply_hint_penalty(500, -1)


def test_hard_guess_forty_pixels_off_with_one_hint():
    result = score((100, 100), (100, 140), "hard", hints_used=1)

    assert result.distance == 40
    assert result.tier == SPOT_ON
    assert result.base_points == 500
    assert result.final_points == 400


def test_far_guess_scores_nothing_even_without_hints():
    result = score((0, 0), (600, 800), "easy")

    assert result.distance == 1000
    assert result.tier == NOPE
    assert result.final_points == 0
