import math
import sys
from itertools import combinations
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from aircraft_factory import Aircraft, horizontal_distance_px, too_close
from airspace import MIN_ALT, MIN_SPEED, IncompatibleKinematics, altitude_matches_heading
from catalog import AIRCRAFT_TYPES
from radar_config import RadarConfig
from scenarios import (
    DIFFICULTIES,
    DIFFICULTY_LIMITS,
    FRAME_COLUMNS,
    STEP_CONFLICT,
    STEP_IN_TRAIL,
    STEP_KINDS,
    STEP_RANDOM,
    STEP_TRAFFIC,
    PlacementExhausted,
    ScenarioStep,
    Scene,
    build_sequence,
    conflict_speed,
    construct_conflict_pair,
    describe_objectives,
    generate_scene,
    place_conflict_pairs,
    place_in_trail,
    place_random,
    place_traffic,
    position_at,
    run_sequence,
    scene_to_frame,
)


def make_aircraft(x, y, altitude=31, heading=90.0, speed=40, model="A320"):
    return Aircraft(
        id=f"seed-{x}-{y}",
        callsign="BAW123",
        model=AIRCRAFT_TYPES[model],
        x=x,
        y=y,
        heading=heading,
        altitude=altitude,
        speed=speed,
    )


def test_place_random_keeps_separation():
    config = RadarConfig()
    result = place_random(np.random.default_rng(5), config, 5)
    assert result.kind == STEP_RANDOM
    assert result.placed_count <= 5
    assert result.shortfall == 5 - result.placed_count
    for a, b in combinations(result.placed, 2):
        assert not too_close(a, b, config)
    for aircraft in result.placed:
        assert config.in_bounds(aircraft.x, aircraft.y)


def test_place_random_keeps_clear_of_existing_traffic():
    config = RadarConfig()
    existing = [make_aircraft(400.0, 400.0, altitude=altitude, heading=90 if altitude % 2 else 270)
                for altitude in range(MIN_ALT, 42)]
    result = place_random(np.random.default_rng(17), config, 8, existing)
    for candidate in result.placed:
        assert all(not too_close(other, candidate, config) for other in existing)


def test_place_random_stops_when_retries_run_out():
    with patch("scenarios.too_close", return_value=True):
        result = place_random(np.random.default_rng(0), RadarConfig(), 3)
    # the first aircraft has nothing to be too close to
    assert result.placed_count == 1
    assert result.exhausted
    assert result.shortfall == 2


def test_conflict_speed_outside_band_is_kept():
    assert conflict_speed(45, 30, 90, 6) == (30, False)
    assert conflict_speed(30, 40, 0, 6) == (40, False)


def test_conflict_speed_inside_band_is_lifted():
    # in-trail, 6 minutes out: band is [25, 35]
    speed, forced = conflict_speed(30, 30, 0, 6)
    assert forced
    assert speed == 35.0
    assert abs(speed - 30) * 6 / 6.0 >= 5.0


def test_conflict_pair_meets_at_conflict_point():
    config = RadarConfig()
    for seed in range(10):
        pair = construct_conflict_pair(np.random.default_rng(seed), config)
        first, second = pair.first, pair.second
        assert first.altitude == second.altitude
        assert config.in_bounds(first.x, first.y)
        assert config.in_bounds(second.x, second.y)
        assert 1.0 <= pair.minutes_to_conflict < 6.0
        for aircraft in (first, second):
            assert 0 < aircraft.heading <= 360
            assert altitude_matches_heading(aircraft.altitude, aircraft.heading)
            assert MIN_SPEED <= aircraft.speed <= aircraft.model.max_speed
            x, y = position_at(aircraft, pair.minutes_to_conflict, config)
            assert x == pytest.approx(pair.conflict_x, abs=1e-6)
            assert y == pytest.approx(pair.conflict_y, abs=1e-6)
        xa, ya = position_at(first, pair.minutes_to_conflict, config)
        xb, yb = position_at(second, pair.minutes_to_conflict, config)
        assert math.hypot(xa - xb, ya - yb) <= config.nm_to_px(5.0)
        # they start at the same level but outside the separation ring
        assert horizontal_distance_px(first, second) >= config.nm_to_px(5.0) - 1e-6


def test_conflict_pair_raises_when_exhausted():
    with patch("scenarios.create_aircraft", side_effect=IncompatibleKinematics(90, 30)):
        with pytest.raises(PlacementExhausted) as excinfo:
            construct_conflict_pair(np.random.default_rng(1), RadarConfig(), max_attempts=20)
    assert excinfo.value.attempts == 20
    assert excinfo.value.kind == STEP_CONFLICT


def test_place_conflict_pairs_counts():
    config = RadarConfig()
    result = place_conflict_pairs(np.random.default_rng(3), config, 4)
    assert result.placed_count == 4
    assert len(result.pairs) == 2
    assert not result.exhausted

    odd = place_conflict_pairs(np.random.default_rng(3), config, 3)
    assert odd.placed_count == 2
    assert odd.shortfall == 1

    single = place_conflict_pairs(np.random.default_rng(3), config, 1)
    assert single.placed_count == 2
    assert single.requested == 2
    assert single.shortfall == 0
    for result in (odd, single):
        assert result.placed_count <= result.requested
    assert place_conflict_pairs(np.random.default_rng(3), config, 0).placed_count == 0


def test_place_conflict_pairs_reports_shortfall_when_exhausted():
    with patch("scenarios.create_aircraft", side_effect=IncompatibleKinematics(90, 30)):
        result = place_conflict_pairs(np.random.default_rng(2), RadarConfig(), 4, max_attempts=10)
    assert result.exhausted
    assert result.placed_count == 0
    assert result.shortfall == 4


def test_in_trail_and_traffic_need_existing_aircraft():
    config = RadarConfig()
    assert place_in_trail(np.random.default_rng(0), config, 3, []).placed_count == 0
    assert place_traffic(np.random.default_rng(0), config, 3, []).placed_count == 0


def test_in_trail_follows_target_track():
    config = RadarConfig()
    target = make_aircraft(400.0, 400.0, altitude=31, heading=90.0, speed=40)
    result = place_in_trail(np.random.default_rng(11), config, 8, [target])
    assert result.kind == STEP_IN_TRAIL
    assert result.placed_count > 0
    for aircraft in result.placed:
        assert aircraft.heading == 90.0
        assert aircraft.altitude == 31
        assert aircraft.type_name == "A320"
        assert MIN_SPEED <= aircraft.speed <= AIRCRAFT_TYPES["A320"].max_speed
        assert config.in_bounds(aircraft.x, aircraft.y)
    for a, b in combinations([target] + result.placed, 2):
        assert not too_close(a, b, config)


def test_traffic_is_one_level_off_existing_aircraft():
    config = RadarConfig()
    target = make_aircraft(400.0, 400.0, altitude=35, heading=90.0)
    result = place_traffic(np.random.default_rng(21), config, 5, [target])
    assert result.kind == STEP_TRAFFIC
    assert result.placed_count > 0
    earlier = [target]
    min_px = config.nm_to_px(2.0)
    for aircraft in result.placed:
        assert any(abs(aircraft.altitude - other.altitude) == 1 for other in earlier)
        assert altitude_matches_heading(aircraft.altitude, aircraft.heading)
        assert all(horizontal_distance_px(aircraft, other) >= min_px for other in earlier)
        earlier.append(aircraft)


def test_traffic_never_drops_below_minimum_level():
    target = make_aircraft(400.0, 400.0, altitude=MIN_ALT, heading=90.0)
    result = place_traffic(np.random.default_rng(4), RadarConfig(), 6, [target])
    assert all(aircraft.altitude >= MIN_ALT for aircraft in result.placed)


@pytest.mark.parametrize("difficulty", DIFFICULTIES)
def test_build_sequence_shape(difficulty):
    lo, hi = DIFFICULTY_LIMITS[difficulty]
    rng = np.random.default_rng(31)
    for _ in range(200):
        conflict, random_fill = build_sequence(rng, difficulty)
        assert conflict.kind == STEP_CONFLICT
        assert random_fill.kind == STEP_RANDOM
        assert conflict.count % 2 == 0
        assert 2 <= conflict.count <= hi - lo + 2
        assert 0 <= random_fill.count < max(1, hi - conflict.count)
        assert conflict.count + random_fill.count <= hi


def test_build_sequence_follow_up_steps():
    steps = build_sequence(np.random.default_rng(2), "hard", follow_up_steps=3)
    assert len(steps) == 5
    lo, hi = DIFFICULTY_LIMITS["hard"]
    for step in steps[2:]:
        assert step.kind in STEP_KINDS
        assert lo <= step.count <= hi


def test_build_sequence_rejects_unknown_difficulty():
    with pytest.raises(ValueError):
        build_sequence(np.random.default_rng(0), "extreme")


def test_scenario_step_validation():
    with pytest.raises(ValueError):
        ScenarioStep("holding", 2)
    with pytest.raises(ValueError):
        ScenarioStep(STEP_RANDOM, -1)


def test_run_sequence_collects_every_step():
    config = RadarConfig()
    steps = [
        ScenarioStep(STEP_CONFLICT, 2),
        ScenarioStep(STEP_RANDOM, 3),
        ScenarioStep(STEP_IN_TRAIL, 2),
        ScenarioStep(STEP_TRAFFIC, 2),
    ]
    scene = run_sequence(np.random.default_rng(42), config, steps)
    assert len(scene.results) == len(steps)
    placed = [a for result in scene.results for a in result.placed]
    assert [a.id for a in scene.aircraft] == [a.id for a in placed]
    assert scene.shortfall == sum(r.shortfall for r in scene.results)

    conflict_ids = {a.id for a in scene.results[0].placed}
    for candidate in scene.results[1].placed:
        earlier = [a for a in scene.aircraft if a.id in conflict_ids]
        assert all(not too_close(other, candidate, config) for other in earlier)


def test_generate_scene_is_reproducible_with_seed():
    config = RadarConfig()
    first = generate_scene(config, "medium", seed=7, follow_up_steps=2)
    second = generate_scene(config, "medium", seed=7, follow_up_steps=2)
    assert first.steps == second.steps
    pd.testing.assert_frame_equal(
        first.frame().drop(columns=["id"]),
        second.frame().drop(columns=["id"]),
    )


def test_describe_objectives():
    assert describe_objectives([ScenarioStep(STEP_RANDOM, 3)]) == ["Random Traffic"]
    assert describe_objectives([]) == ["Random Traffic"]
    assert describe_objectives(
        [ScenarioStep(STEP_CONFLICT, 2), ScenarioStep(STEP_RANDOM, 1), ScenarioStep(STEP_IN_TRAIL, 2)]
    ) == ["Potential Conflict", "In-Trail Spacing"]


def test_scene_to_frame():
    empty = scene_to_frame([])
    assert list(empty.columns) == FRAME_COLUMNS
    assert empty.empty

    scene = Scene(aircraft=[make_aircraft(100.0, 200.0), make_aircraft(300.0, 400.0, altitude=33)])
    frame = scene.frame()
    assert list(frame.columns) == FRAME_COLUMNS
    assert len(frame) == 2
    assert frame["altitude"].tolist() == [31, 33]


def test_scene_keeps_the_config_it_was_built_with():
    config = RadarConfig(display_px=1000.0, nm_per_px=0.2)
    scene = generate_scene(config, "easy", seed=9)
    assert scene.config is config
    for aircraft in scene.aircraft:
        assert config.in_bounds(aircraft.x, aircraft.y)
    assert Scene().config is None
