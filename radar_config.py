"""Display geometry and unit conversions for the radar trainer.

The scale between display pixels and nautical miles is configuration, not a
property of the generation core.  Every core function receives a
``RadarConfig`` so that scenes can be produced for any display resolution.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_PX = 800.0
DEFAULT_EDGE_PAD_PX = 50.0
DEFAULT_NM_PER_PX = 0.1
DEFAULT_MIN_SEPARATION_NM = 5.0

CONFIG_PATH = Path(__file__).parent / "radar_config.json"


def px_to_nm(px: float, nm_per_px: float) -> float:
    return px * nm_per_px


def nm_to_px(nm: float, nm_per_px: float) -> float:
    return nm / nm_per_px


@dataclass(frozen=True)
class RadarConfig:
    """Usable square radar area and its scale."""

    display_px: float = DEFAULT_DISPLAY_PX
    edge_pad_px: float = DEFAULT_EDGE_PAD_PX
    nm_per_px: float = DEFAULT_NM_PER_PX
    min_separation_nm: float = DEFAULT_MIN_SEPARATION_NM

    def __post_init__(self) -> None:
        if self.nm_per_px <= 0.0:
            raise ValueError("nm_per_px must be positive")
        if self.edge_pad_px < 0.0:
            raise ValueError("edge_pad_px must not be negative")
        if self.display_px <= 2.0 * self.edge_pad_px:
            raise ValueError(
                f"display_px ({self.display_px}) must exceed twice the edge padding ({self.edge_pad_px})"
            )
        if self.min_separation_nm < 0.0:
            raise ValueError("min_separation_nm must not be negative")

    @property
    def low(self) -> float:
        return self.edge_pad_px

    @property
    def high(self) -> float:
        return self.display_px - self.edge_pad_px

    def px_to_nm(self, px: float) -> float:
        return px_to_nm(px, self.nm_per_px)

    def nm_to_px(self, nm: float) -> float:
        return nm_to_px(nm, self.nm_per_px)

    def in_bounds(self, x: float, y: float) -> bool:
        """Return True when (x, y) lies inside the padded display area."""

        return self.low <= x <= self.high and self.low <= y <= self.high

    def with_overrides(self, **values: float) -> "RadarConfig":
        return replace(self, **{k: float(v) for k, v in values.items() if v is not None})


def load_radar_config(path: Optional[Union[str, Path]] = None) -> RadarConfig:
    """Load a ``RadarConfig`` from JSON, falling back to the defaults.

    Unknown keys are ignored.  A missing or unreadable file is not an error;
    values that violate the config invariants are.
    """

    config_path = Path(path) if path is not None else CONFIG_PATH
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        logger.debug(f"No radar config at {config_path}; using defaults")
        return RadarConfig()
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(f"Could not read radar config {config_path}: {exc}; using defaults")
        return RadarConfig()

    if not isinstance(raw, dict):
        logger.warning(f"Radar config {config_path} is not a JSON object; using defaults")
        return RadarConfig()

    known = {f.name for f in fields(RadarConfig)}
    values = {}
    for key, value in raw.items():
        if key not in known:
            logger.debug(f"Ignoring unknown radar config key '{key}'")
            continue
        try:
            values[key] = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Radar config value for '{key}' must be numeric") from exc

    return RadarConfig(**values)
