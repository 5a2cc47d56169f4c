"""Airspace rules linking heading, altitude and speed.

Flight levels follow the simplified semicircular convention used by the
trainer: eastbound traffic (heading below 180 degrees) holds odd levels and
westbound traffic holds even levels.  Helpers here either validate a
heading/altitude pair or derive the missing half of it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

import numpy as np

if TYPE_CHECKING:
    from catalog import AircraftType

# ---------------------------- Constants ----------------------------

MIN_SPEED = 25  # tens of knots
MIN_ALT = 29    # flight level, thousands of feet

# Width of the speed band sampled for conflict pairs (above MIN_SPEED)
CONFLICT_SPEED_SPAN = 20


class IncompatibleKinematics(ValueError):
    """Raised when a forced heading and altitude break the parity rule."""

    def __init__(self, heading: float, altitude: int):
        self.heading = heading
        self.altitude = altitude
        direction = "Eastbound" if is_eastbound(heading) else "Westbound"
        parity = "odd" if is_eastbound(heading) else "even"
        super().__init__(
            f"Incompatible heading ({heading}°) and altitude (FL{altitude}): "
            f"{direction} flights must use {parity} altitudes; change the altitude "
            f"or supply only one of heading/altitude"
        )


def is_eastbound(heading: float) -> bool:
    return heading < 180


def altitude_matches_heading(altitude: int, heading: float) -> bool:
    return (int(altitude) % 2 != 0) == is_eastbound(heading)


def normalise_heading(heading_deg: float) -> float:
    """Return ``heading_deg`` wrapped into (0, 360] with north as 360."""

    wrapped = float(heading_deg) % 360.0
    return 360.0 if wrapped == 0.0 else wrapped


def random_heading(rng: np.random.Generator) -> int:
    return int(rng.integers(1, 361))


def derive_heading_from_altitude(rng: np.random.Generator, altitude: int) -> int:
    """Draw a heading on the side of the compass the altitude parity implies."""

    if int(altitude) % 2 != 0:
        return int(rng.integers(1, 180))
    return int(rng.integers(180, 360))


def derive_altitude_from_heading(
    rng: np.random.Generator, model: "AircraftType", heading: float
) -> int:
    """Rejection-sample a level in [MIN_ALT, model.max_alt] with matching parity.

    Terminates because the catalog guarantees both parities inside every band.
    """

    eastbound = is_eastbound(heading)
    while True:
        altitude = int(rng.integers(MIN_ALT, model.max_alt + 1))
        if (altitude % 2 != 0) == eastbound:
            return altitude


def resolve_heading_and_altitude(
    rng: np.random.Generator,
    model: "AircraftType",
    heading: Optional[float] = None,
    altitude: Optional[int] = None,
) -> Tuple[float, int]:
    """Return a parity-consistent (heading, altitude) pair.

    Four cases, keyed on which values the caller forced:

    ============  ============  ==========================================
    heading       altitude      result
    ============  ============  ==========================================
    given         given         validated, ``IncompatibleKinematics`` on
                                a parity mismatch
    given         missing       altitude derived from heading
    missing       given         heading derived from altitude
    missing       missing       random heading, altitude derived from it
    ============  ============  ==========================================

    A forced heading is normalised into (0, 360] before the parity check.
    """

    if heading is not None:
        heading = normalise_heading(heading)
    forced = (heading is not None, altitude is not None)

    if forced == (True, True):
        if not altitude_matches_heading(altitude, heading):
            raise IncompatibleKinematics(heading, altitude)
        return heading, int(altitude)

    if forced == (True, False):
        return heading, derive_altitude_from_heading(rng, model, heading)

    if forced == (False, True):
        return derive_heading_from_altitude(rng, altitude), int(altitude)

    drawn = random_heading(rng)
    return drawn, derive_altitude_from_heading(rng, model, drawn)
