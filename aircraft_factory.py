"""Aircraft records and the factory that builds them from partial constraints.

``create_aircraft`` accepts any subset of type, heading, altitude, speed,
position and vertical rate and randomises the rest inside the bounds set by
``catalog`` and ``airspace``.  Contradictory constraints are reported through
``NoCompatibleAircraft`` or ``IncompatibleKinematics``; nothing is coerced.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

import numpy as np

from airspace import MIN_SPEED, resolve_heading_and_altitude
from catalog import AIRCRAFT_TYPES, AircraftType, compatible_types, get_type
from radar_config import RadarConfig

CALLSIGN_OPERATORS = ("AAL", "ACA", "BAW", "DLH", "JAL", "UPS", "FDX", "WJA", "MAL")

# Vertical-rate policy. Descents draw twice the climb magnitude.
CLIMB_EVENT_PROB = 0.10
CLIMB_UP_PROB = 0.50
DESCENT_RATE_FACTOR = 2.0


@dataclass(frozen=True)
class Aircraft:
    """One synthetic radar target.

    ``x``/``y`` are display units with y growing southwards; ``heading`` is in
    (0, 360] with north at 360; ``speed`` is in tens of knots; ``altitude`` is a
    flight level in thousands of feet.
    """

    id: str
    callsign: str
    model: AircraftType
    x: float
    y: float
    heading: float
    altitude: int
    speed: int
    climb: int = 0

    @property
    def type_name(self) -> str:
        return self.model.name

    @property
    def climb_indicator(self) -> Optional[str]:
        if self.climb > 0:
            return "up"
        if self.climb < 0:
            return "down"
        return None

    def position(self) -> Tuple[float, float]:
        return self.x, self.y

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "callsign": self.callsign,
            "type": self.model.name,
            "x": float(self.x),
            "y": float(self.y),
            "heading": float(self.heading),
            "altitude": int(self.altitude),
            "speed": int(self.speed),
            "climb": int(self.climb),
        }


# ------------------------ Utility functions ------------------------


def center_biased(rng: np.random.Generator) -> float:
    """Mean of two uniform draws: triangular on [0, 1] peaking at 0.5."""

    return float((rng.uniform() + rng.uniform()) / 2.0)


def heading_unit_vector(heading_deg: float) -> Tuple[float, float]:
    """Screen-space unit vector for a compass heading (y grows downwards)."""

    rad = math.radians(heading_deg)
    return math.sin(rad), -math.cos(rad)


def generate_callsign(rng: np.random.Generator) -> str:
    prefix = CALLSIGN_OPERATORS[int(rng.integers(0, len(CALLSIGN_OPERATORS)))]
    number = int(rng.integers(100, 1000))
    return f"{prefix}{number}"


def random_speed(rng: np.random.Generator, model: AircraftType) -> int:
    return int(rng.integers(MIN_SPEED, model.max_speed + 1))


def random_coordinate(rng: np.random.Generator, config: RadarConfig) -> float:
    span = config.display_px - 2.0 * config.edge_pad_px
    return float(round(center_biased(rng) * span) + config.edge_pad_px)


def vertical_rate(rng: np.random.Generator, model: AircraftType) -> int:
    direction_up = rng.uniform() < CLIMB_UP_PROB
    event = rng.uniform() < CLIMB_EVENT_PROB
    if not event or not model.climb:
        return 0
    magnitude = center_biased(rng) * model.climb
    if direction_up:
        return int(round(magnitude))
    return int(round(-DESCENT_RATE_FACTOR * magnitude))


# ------------------------------ Factory ------------------------------


def create_aircraft(
    rng: np.random.Generator,
    config: RadarConfig,
    *,
    model: Optional[str] = None,
    heading: Optional[float] = None,
    altitude: Optional[int] = None,
    speed: Optional[int] = None,
    x: Optional[float] = None,
    y: Optional[float] = None,
    climb: Optional[int] = None,
    catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES,
) -> Aircraft:
    """Build a fully specified aircraft from the given overrides.

    Parameters
    ----------
    rng:
        Source of every random draw.
    config:
        Display size and padding used for randomised positions.  Forced
        positions are taken as given.
    model, heading, altitude, speed, x, y, climb:
        Optional overrides.  Unset values are randomised.

    Raises
    ------
    NoCompatibleAircraft
        When no catalog type can fly the requested speed/altitude, or
        ``model`` is unknown.
    IncompatibleKinematics
        When ``heading`` and ``altitude`` are both forced and break the
        parity rule.
    """

    candidates = compatible_types(speed=speed, altitude=altitude, model=model, catalog=catalog)
    model_name = candidates[int(rng.integers(0, len(candidates)))]
    model_data = get_type(model_name, catalog)

    heading_res, altitude_res = resolve_heading_and_altitude(rng, model_data, heading, altitude)

    speed_res = int(speed) if speed is not None else random_speed(rng, model_data)
    x_res = float(x) if x is not None else random_coordinate(rng, config)
    y_res = float(y) if y is not None else random_coordinate(rng, config)
    climb_res = int(climb) if climb is not None else vertical_rate(rng, model_data)

    return Aircraft(
        id=uuid.uuid4().hex,
        callsign=generate_callsign(rng),
        model=model_data,
        x=x_res,
        y=y_res,
        heading=heading_res,
        altitude=altitude_res,
        speed=speed_res,
        climb=climb_res,
    )


# -------------------------- Proximity guard --------------------------


def horizontal_distance_px(a: Aircraft, b: Aircraft) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def too_close(
    a: Aircraft,
    b: Aircraft,
    config: RadarConfig,
    min_separation_nm: Optional[float] = None,
) -> bool:
    """True when ``a`` and ``b`` share a level and sit inside the separation ring.

    Aircraft at different levels are always treated as separated.
    """

    if a.altitude != b.altitude:
        return False
    sep_nm = config.min_separation_nm if min_separation_nm is None else float(min_separation_nm)
    return horizontal_distance_px(a, b) < config.nm_to_px(sep_nm)
