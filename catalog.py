"""Static aircraft type table used to bound randomised attributes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Tuple

from airspace import MIN_ALT, MIN_SPEED


class NoCompatibleAircraft(ValueError):
    """Raised when no catalog entry satisfies the requested constraints."""

    def __init__(
        self,
        speed: Optional[float] = None,
        altitude: Optional[int] = None,
        model: Optional[str] = None,
    ):
        self.speed = speed
        self.altitude = altitude
        self.model = model
        if model is not None:
            message = f"Unknown aircraft type '{model}'"
        else:
            message = (
                f"No aircraft can satisfy the given constraints (speed={speed}, altitude={altitude}); "
                "relax the requested speed or altitude"
            )
        super().__init__(message)


@dataclass(frozen=True)
class AircraftType:
    name: str
    max_speed: int
    max_alt: int
    climb: Optional[int] = None


def build_catalog(entries: Iterable[AircraftType]) -> Dict[str, AircraftType]:
    """Validate ``entries`` and index them by name.

    Every type needs a speed band starting at ``MIN_SPEED`` and an altitude band
    wide enough to hold both an odd and an even level, otherwise altitude
    derivation could never terminate for one of the two directions.
    """

    catalog: Dict[str, AircraftType] = {}
    for entry in entries:
        if entry.name in catalog:
            raise ValueError(f"Duplicate aircraft type '{entry.name}'")
        if entry.max_speed < MIN_SPEED:
            raise ValueError(
                f"{entry.name}: max_speed {entry.max_speed} is below the global minimum {MIN_SPEED}"
            )
        if entry.max_alt < MIN_ALT + 1:
            raise ValueError(
                f"{entry.name}: altitude band [{MIN_ALT}, {entry.max_alt}] must contain both parities"
            )
        if entry.climb is not None and entry.climb < 0:
            raise ValueError(f"{entry.name}: climb capability must not be negative")
        catalog[entry.name] = entry
    return catalog


AIRCRAFT_TYPES: Dict[str, AircraftType] = build_catalog(
    (
        AircraftType("A320", max_speed=46, max_alt=41, climb=25),
        AircraftType("B744", max_speed=51, max_alt=45, climb=20),
        AircraftType("B738", max_speed=48, max_alt=41, climb=25),
        AircraftType("G5", max_speed=55, max_alt=51, climb=40),
    )
)


def get_type(name: str, catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES) -> AircraftType:
    try:
        return catalog[name]
    except KeyError:
        raise NoCompatibleAircraft(model=name) from None


def compatible_types(
    speed: Optional[float] = None,
    altitude: Optional[int] = None,
    model: Optional[str] = None,
    catalog: Mapping[str, AircraftType] = AIRCRAFT_TYPES,
) -> Tuple[str, ...]:
    """Return the names of every type able to fly ``speed`` at ``altitude``.

    An explicit ``model`` wins over the numeric bounds.
    """

    if model is not None:
        if model not in catalog:
            raise NoCompatibleAircraft(model=model)
        return (model,)

    names = tuple(
        name
        for name, entry in catalog.items()
        if (speed is None or speed <= entry.max_speed)
        and (altitude is None or altitude <= entry.max_alt)
    )
    if not names:
        raise NoCompatibleAircraft(speed=speed, altitude=altitude)
    return names
