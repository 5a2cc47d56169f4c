"""Scenario generators that populate the radar with batches of aircraft.

A scene is built from an ordered list of ``ScenarioStep`` directives.  Each
step calls the aircraft factory repeatedly and reports what it managed to
place; a step that runs out of retries is a shortfall, not a failure of the
whole scene.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from aircraft_factory import (
    Aircraft,
    center_biased,
    create_aircraft,
    heading_unit_vector,
    horizontal_distance_px,
    too_close,
)
from airspace import (
    CONFLICT_SPEED_SPAN,
    MIN_ALT,
    MIN_SPEED,
    IncompatibleKinematics,
    normalise_heading,
)
from catalog import AIRCRAFT_TYPES, AircraftType, NoCompatibleAircraft
from radar_config import RadarConfig

logger = logging.getLogger(__name__)

# ---------------------------- Constants ----------------------------

MAX_RANDOM_ATTEMPTS = 100      # per aircraft
MAX_CONFLICT_ATTEMPTS = 500    # per pair

# Conflict geometry
CONFLICT_TIME_MIN = 1.0        # minutes
CONFLICT_TIME_MAX = 6.0
CONFLICT_RING_NM = 5.0
IN_TRAIL_THRESHOLD_DEG = 15.0

# In-trail and crossing traffic
TRAIL_DISTANCE_NM = (3.0, 10.0)
TRAIL_SPEED_VARIATION = 4.0    # full width, i.e. +/-2
TRAFFIC_OFFSET_NM = (5.0, 8.0)
TRAFFIC_MIN_HORIZONTAL_NM = 2.0

STEP_RANDOM = "random"
STEP_CONFLICT = "conflict"
STEP_IN_TRAIL = "in_trail"
STEP_TRAFFIC = "traffic"
STEP_KINDS = (STEP_RANDOM, STEP_CONFLICT, STEP_IN_TRAIL, STEP_TRAFFIC)

# Relative weights when follow-up steps are drawn for a sequence
STEP_WEIGHTS = {
    STEP_RANDOM: 1.0,
    STEP_IN_TRAIL: 2.0,
    STEP_TRAFFIC: 1.0,
    STEP_CONFLICT: 3.0,
}

OBJECTIVE_LABELS = {
    STEP_CONFLICT: "Potential Conflict",
    STEP_IN_TRAIL: "In-Trail Spacing",
    STEP_TRAFFIC: "Crossing Traffic",
}

DIFFICULTIES = ("easy", "medium", "hard")
DIFFICULTY_LIMITS = {
    "easy": (3, 6),
    "medium": (4, 6),
    "hard": (8, 12),
}

FRAME_COLUMNS = ["id", "callsign", "type", "x", "y", "heading", "altitude", "speed", "climb"]


class PlacementExhausted(RuntimeError):
    """Raised when the retry budget runs out before a valid placement is found."""

    def __init__(self, kind: str, attempts: int):
        self.kind = kind
        self.attempts = attempts
        super().__init__(f"Could not place {kind} aircraft after {attempts} attempts")


@dataclass(frozen=True)
class ScenarioStep:
    kind: str
    count: int

    def __post_init__(self) -> None:
        if self.kind not in STEP_KINDS:
            raise ValueError(f"Unknown scenario step '{self.kind}'; expected one of {STEP_KINDS}")
        if self.count < 0:
            raise ValueError("Scenario step count must not be negative")


@dataclass(frozen=True)
class ConflictPair:
    """Two aircraft constructed to reach the same point at the same time."""

    first: Aircraft
    second: Aircraft
    conflict_x: float
    conflict_y: float
    minutes_to_conflict: float
    speed_forced: bool


@dataclass
class PlacementResult:
    kind: str
    requested: int
    placed: List[Aircraft] = field(default_factory=list)
    pairs: List[ConflictPair] = field(default_factory=list)
    exhausted: bool = False

    @property
    def placed_count(self) -> int:
        return len(self.placed)

    @property
    def shortfall(self) -> int:
        return max(0, self.requested - self.placed_count)


@dataclass
class Scene:
    """The current scenario: owned outright and replaced on regeneration."""

    steps: List[ScenarioStep] = field(default_factory=list)
    results: List[PlacementResult] = field(default_factory=list)
    aircraft: List[Aircraft] = field(default_factory=list)
    config: Optional[RadarConfig] = None

    @property
    def shortfall(self) -> int:
        return sum(r.shortfall for r in self.results)

    def objectives(self) -> List[str]:
        return describe_objectives(self.steps)

    def frame(self) -> pd.DataFrame:
        return scene_to_frame(self.aircraft)


# ------------------------ Geometry helpers ------------------------


def back_project(x: float, y: float, bearing_deg: float, distance_px: float) -> Tuple[float, float]:
    """Point ``distance_px`` away from (x, y) along ``bearing_deg``."""

    vx, vy = heading_unit_vector(bearing_deg)
    return x + distance_px * vx, y + distance_px * vy


def conflict_speed(
    speed_a: float,
    speed_b: float,
    bearing_delta_deg: float,
    minutes: float,
    ring_nm: float = CONFLICT_RING_NM,
) -> Tuple[float, bool]:
    """Return (speed for B, whether it was forced) for a pair meeting in ``minutes``.

    With both aircraft arriving at the conflict point together, their start
    separation is ``|v_a - v_b| * minutes / 6`` nm.  B speeds inside
    ``[L, U]`` start B within ``ring_nm`` of A; those are lifted to ``ceil(U)``.
    When the discriminant is not positive no B speed can start inside the ring
    and B keeps its speed.
    """

    delta = math.radians(bearing_delta_deg)
    c = (6.0 * ring_nm / minutes) ** 2 - (speed_a * math.sin(delta)) ** 2
    if c <= 0.0:
        return speed_b, False
    root = math.sqrt(c)
    lower = speed_a * math.cos(delta) - root
    upper = lower + 2.0 * root
    if speed_b < lower or speed_b > upper:
        return speed_b, False
    return float(math.ceil(upper)), True


def position_at(aircraft: Aircraft, minutes: float, config: RadarConfig) -> Tuple[float, float]:
    """Straight-line position after ``minutes`` at constant heading and speed."""

    distance_px = config.nm_to_px(aircraft.speed * minutes / 6.0)
    return back_project(aircraft.x, aircraft.y, aircraft.heading, distance_px)


# --------------------------- Generators ---------------------------


def place_random(
    rng: np.random.Generator,
    config: RadarConfig,
    count: int,
    scene: Sequence[Aircraft] = (),
    catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES,
) -> PlacementResult:
    """Scatter ``count`` aircraft that keep clear of everything already placed."""

    result = PlacementResult(STEP_RANDOM, int(count))
    working = list(scene)

    for i in range(int(count)):
        for attempt in range(1, MAX_RANDOM_ATTEMPTS + 1):
            candidate = create_aircraft(rng, config, catalog=catalog)
            if all(not too_close(other, candidate, config) for other in working):
                break
            logger.debug(f"Random aircraft {i + 1}: attempt {attempt} too close to traffic")
        else:
            logger.warning(
                f"Could not place aircraft {i + 1} safely in random scenario "
                f"after {MAX_RANDOM_ATTEMPTS} attempts"
            )
            result.exhausted = True
            return result

        working.append(candidate)
        result.placed.append(candidate)

    return result


def construct_conflict_pair(
    rng: np.random.Generator,
    config: RadarConfig,
    max_attempts: int = MAX_CONFLICT_ATTEMPTS,
    catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES,
) -> ConflictPair:
    """Build two same-level aircraft that reach one point at the same time.

    Raises
    ------
    PlacementExhausted
        When no attempt produced an in-bounds pair the factory accepted.
    """

    for attempt in range(1, int(max_attempts) + 1):
        minutes = float(rng.uniform(CONFLICT_TIME_MIN, CONFLICT_TIME_MAX))
        conflict_x = float(round(center_biased(rng) * config.display_px))
        conflict_y = float(round(center_biased(rng) * config.display_px))

        bearing_a = int(round(rng.uniform(0.0, 360.0)))
        bearing_b = int(round(rng.uniform(0.0, 180.0) + (180.0 if bearing_a > 180 else 0.0)))
        if abs(bearing_b - bearing_a) < IN_TRAIL_THRESHOLD_DEG:
            bearing_b = bearing_a

        heading_a = normalise_heading(bearing_a + 180)
        heading_b = normalise_heading(bearing_b + 180)

        speed_a = int(rng.integers(MIN_SPEED, MIN_SPEED + CONFLICT_SPEED_SPAN + 1))
        speed_b = int(rng.integers(MIN_SPEED, MIN_SPEED + CONFLICT_SPEED_SPAN + 1))
        speed_b_eff, forced = conflict_speed(speed_a, speed_b, bearing_a - bearing_b, minutes)
        speed_b_eff = int(speed_b_eff)

        x_a, y_a = back_project(conflict_x, conflict_y, bearing_a, config.nm_to_px(speed_a * minutes / 6.0))
        x_b, y_b = back_project(conflict_x, conflict_y, bearing_b, config.nm_to_px(speed_b_eff * minutes / 6.0))

        if not (config.in_bounds(x_a, y_a) and config.in_bounds(x_b, y_b)):
            logger.debug(f"Conflict attempt {attempt}: aircraft would be out of bounds")
            continue

        try:
            first = create_aircraft(
                rng, config, x=x_a, y=y_a, heading=heading_a, speed=speed_a, catalog=catalog
            )
            second = create_aircraft(
                rng,
                config,
                x=x_b,
                y=y_b,
                heading=heading_b,
                speed=speed_b_eff,
                altitude=first.altitude,
                catalog=catalog,
            )
        except (NoCompatibleAircraft, IncompatibleKinematics) as exc:
            logger.debug(f"Conflict attempt {attempt}: {exc}")
            continue

        return ConflictPair(
            first=first,
            second=second,
            conflict_x=conflict_x,
            conflict_y=conflict_y,
            minutes_to_conflict=minutes,
            speed_forced=forced,
        )

    raise PlacementExhausted(STEP_CONFLICT, int(max_attempts))


def place_conflict_pairs(
    rng: np.random.Generator,
    config: RadarConfig,
    count: int,
    catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES,
    max_attempts: int = MAX_CONFLICT_ATTEMPTS,
) -> PlacementResult:
    """Place ``count // 2`` converging pairs, at least one for a non-zero count.

    A count of 1 is a request for one pair, so the result records 2 requested.
    """

    pairs = max(1, int(count) // 2) if count > 0 else 0
    result = PlacementResult(STEP_CONFLICT, max(int(count), 2 * pairs))
    if count % 2:
        logger.info(f"Conflict step count {count} is odd; placing {pairs} pair(s)")

    for i in range(pairs):
        try:
            pair = construct_conflict_pair(rng, config, max_attempts=max_attempts, catalog=catalog)
        except PlacementExhausted as exc:
            logger.warning(f"Conflict pair {i + 1}: {exc}")
            result.exhausted = True
            return result
        result.pairs.append(pair)
        result.placed.extend((pair.first, pair.second))

    return result


def place_in_trail(
    rng: np.random.Generator,
    config: RadarConfig,
    count: int,
    scene: Sequence[Aircraft],
    catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES,
) -> PlacementResult:
    """Put aircraft ahead of or behind existing traffic on the same track and level."""

    result = PlacementResult(STEP_IN_TRAIL, int(count))
    working = list(scene)
    if not working:
        logger.info("No existing aircraft for in-trail step")
        return result

    for i in range(int(count)):
        target = working[int(rng.integers(0, len(working)))]
        trail_px = config.nm_to_px(float(rng.uniform(*TRAIL_DISTANCE_NM)))

        ahead = back_project(target.x, target.y, target.heading, trail_px)
        behind = back_project(target.x, target.y, target.heading, -trail_px)
        if config.in_bounds(*ahead):
            x, y = ahead
        elif config.in_bounds(*behind):
            x, y = behind
        else:
            logger.debug(f"In-trail aircraft {i + 1} would be out of bounds")
            continue

        variation = (float(rng.uniform()) - 0.5) * TRAIL_SPEED_VARIATION
        speed = int(np.clip(round(target.speed + variation), MIN_SPEED, target.model.max_speed))

        candidate = create_aircraft(
            rng,
            config,
            model=target.type_name,
            x=x,
            y=y,
            heading=target.heading,
            speed=speed,
            altitude=target.altitude,
            catalog=catalog,
        )

        if any(too_close(other, candidate, config) for other in working):
            logger.debug(f"In-trail aircraft {i + 1} too close to existing aircraft")
            continue

        working.append(candidate)
        result.placed.append(candidate)

    return result


def place_traffic(
    rng: np.random.Generator,
    config: RadarConfig,
    count: int,
    scene: Sequence[Aircraft],
    catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES,
) -> PlacementResult:
    """Put aircraft one level above or below existing traffic, a few miles off."""

    result = PlacementResult(STEP_TRAFFIC, int(count))
    working = list(scene)
    if not working:
        logger.info("No existing aircraft for traffic step")
        return result

    min_horizontal_px = config.nm_to_px(TRAFFIC_MIN_HORIZONTAL_NM)

    for i in range(int(count)):
        target = working[int(rng.integers(0, len(working)))]
        level_step = 1 if rng.uniform() < 0.5 else -1
        altitude = target.altitude + level_step
        if altitude < MIN_ALT:
            altitude = target.altitude + 1

        offset_px = config.nm_to_px(float(rng.uniform(*TRAFFIC_OFFSET_NM)))
        x, y = back_project(target.x, target.y, float(rng.uniform(0.0, 360.0)), offset_px)
        if not config.in_bounds(x, y):
            logger.debug(f"Traffic aircraft {i + 1} would be out of bounds")
            continue

        try:
            candidate = create_aircraft(rng, config, x=x, y=y, altitude=altitude, catalog=catalog)
        except NoCompatibleAircraft as exc:
            logger.debug(f"Traffic aircraft {i + 1}: {exc}")
            continue

        if any(horizontal_distance_px(other, candidate) < min_horizontal_px for other in working):
            logger.debug(f"Traffic aircraft {i + 1} too close horizontally")
            continue

        working.append(candidate)
        result.placed.append(candidate)

    return result


# ---------------------------- Sequences ----------------------------


def _weighted_kind(rng: np.random.Generator) -> str:
    kinds = list(STEP_WEIGHTS)
    weights = np.array([STEP_WEIGHTS[k] for k in kinds], dtype=float)
    return kinds[int(rng.choice(len(kinds), p=weights / weights.sum()))]


def build_sequence(
    rng: np.random.Generator,
    difficulty: str,
    follow_up_steps: int = 0,
) -> List[ScenarioStep]:
    """Return the generation directives for a difficulty level.

    A conflict step (even count) comes first, then random fill up to the
    difficulty's maximum.  ``follow_up_steps`` extra steps are drawn by weight.
    """

    if difficulty not in DIFFICULTY_LIMITS:
        raise ValueError(f"Unknown difficulty '{difficulty}'; expected one of {DIFFICULTIES}")
    lo, hi = DIFFICULTY_LIMITS[difficulty]

    conflict_count = int(rng.integers(1, hi - lo + 2))
    if conflict_count % 2:
        conflict_count += 1

    room = hi - conflict_count
    random_count = int(rng.integers(0, room)) if room > 0 else 0

    steps = [
        ScenarioStep(STEP_CONFLICT, conflict_count),
        ScenarioStep(STEP_RANDOM, random_count),
    ]
    for _ in range(int(follow_up_steps)):
        steps.append(ScenarioStep(_weighted_kind(rng), int(rng.integers(lo, hi + 1))))
    return steps


def run_step(
    rng: np.random.Generator,
    config: RadarConfig,
    step: ScenarioStep,
    scene: Sequence[Aircraft],
    catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES,
) -> PlacementResult:
    runners: Dict[str, Callable[[], PlacementResult]] = {
        STEP_RANDOM: lambda: place_random(rng, config, step.count, scene, catalog=catalog),
        STEP_CONFLICT: lambda: place_conflict_pairs(rng, config, step.count, catalog=catalog),
        STEP_IN_TRAIL: lambda: place_in_trail(rng, config, step.count, scene, catalog=catalog),
        STEP_TRAFFIC: lambda: place_traffic(rng, config, step.count, scene, catalog=catalog),
    }
    return runners[step.kind]()


def run_sequence(
    rng: np.random.Generator,
    config: RadarConfig,
    steps: Sequence[ScenarioStep],
    catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES,
) -> Scene:
    """Execute ``steps`` in order against a fresh scene."""

    scene = Scene(steps=list(steps), config=config)
    logger.info(f"Generating scenario: {[(s.kind, s.count) for s in steps]}")

    for step in steps:
        result = run_step(rng, config, step, scene.aircraft, catalog=catalog)
        scene.results.append(result)
        scene.aircraft.extend(result.placed)
        logger.info(f"  {step.kind}({step.count}) -> placed {result.placed_count} aircraft")
        if result.shortfall:
            logger.warning(f"  {step.kind}({step.count}) fell short by {result.shortfall}")

    logger.info(f"Total aircraft: {len(scene.aircraft)}")
    return scene


def generate_scene(
    config: RadarConfig,
    difficulty: str = "easy",
    seed: Optional[int] = None,
    follow_up_steps: int = 0,
) -> Scene:
    rng = np.random.default_rng(seed)
    steps = build_sequence(rng, difficulty, follow_up_steps=follow_up_steps)
    return run_sequence(rng, config, steps)


def describe_objectives(steps: Sequence[ScenarioStep]) -> List[str]:
    objectives = [OBJECTIVE_LABELS[s.kind] for s in steps if s.kind != STEP_RANDOM]
    if not objectives:
        return ["Random Traffic"]
    return objectives


def scene_to_frame(aircraft: Sequence[Aircraft]) -> pd.DataFrame:
    if not aircraft:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    return pd.DataFrame([a.to_dict() for a in aircraft], columns=FRAME_COLUMNS)
