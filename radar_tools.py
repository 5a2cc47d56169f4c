"""Trainee measurement tools: range/bearing lines, predicted tracks and halos.

The geometry helpers are pure.  ``ToolState`` is the single owner of the
interactive tool overlays; the UI keeps one instance per session and passes
it to its handlers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from aircraft_factory import Aircraft, heading_unit_vector
from radar_config import RadarConfig

TOOL_RANGE_BEARING = "rbl"
TOOL_PREDICTED_TRACK = "ptl"
TOOL_HALO = "halo"
TOOLS = (TOOL_RANGE_BEARING, TOOL_PREDICTED_TRACK, TOOL_HALO)

PTL_DEFAULT_MINUTES = 1
PTL_MIN_MINUTES = 1
HALO_DEFAULT_RADIUS_PX = 50.0
HALO_MIN_RADIUS_PX = 10.0
HALO_STEP_PX = 10.0
TRAIL_DOTS = 4


def range_bearing(x1: float, y1: float, x2: float, y2: float, config: RadarConfig) -> Tuple[int, int]:
    """Return (range nm, bearing deg) from point 1 to point 2, rounded for display."""

    dx = x2 - x1
    dy = y2 - y1
    distance_nm = int(round(config.px_to_nm(math.hypot(dx, dy))))
    bearing = int(round((math.degrees(math.atan2(dx, -dy)) + 360.0) % 360.0))
    return distance_nm, bearing


@dataclass(frozen=True)
class PredictedTrack:
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    distance_px: float
    minutes: int

    def label(self, config: RadarConfig) -> str:
        return f"{round(config.px_to_nm(self.distance_px))} / {self.minutes}min"


def predicted_track(aircraft: Aircraft, minutes: int, config: RadarConfig) -> PredictedTrack:
    vx, vy = heading_unit_vector(aircraft.heading)
    distance_px = config.nm_to_px(aircraft.speed / 6.0) * minutes
    return PredictedTrack(
        start_x=aircraft.x,
        start_y=aircraft.y,
        end_x=aircraft.x + vx * distance_px,
        end_y=aircraft.y + vy * distance_px,
        distance_px=distance_px,
        minutes=int(minutes),
    )


def halo_label(radius_px: float, config: RadarConfig) -> str:
    return f"{config.px_to_nm(radius_px):g}"


def trail_points(aircraft: Aircraft, config: RadarConfig, dots: int = TRAIL_DOTS) -> List[Tuple[float, float]]:
    """History dots behind the aircraft, spaced by its speed."""

    vx, vy = heading_unit_vector(aircraft.heading)
    spacing = config.nm_to_px(aircraft.speed / 120.0)
    return [(aircraft.x - vx * spacing * i, aircraft.y - vy * spacing * i) for i in range(1, dots + 1)]


def data_tag_text(aircraft: Aircraft) -> str:
    """Three-line data tag: callsign, level (+ vertical trend) and speed, type."""

    indicator = aircraft.climb_indicator
    if indicator is None:
        level = f"{aircraft.altitude}"
    else:
        arrow = "↑" if indicator == "up" else "↓"
        level = f"{aircraft.altitude}{arrow}{abs(aircraft.climb)}"
    return f"{aircraft.callsign}\n{level} {aircraft.speed}\n{aircraft.type_name}"


@dataclass
class ToolState:
    """Overlay tools keyed by aircraft id."""

    selected_tool: Optional[str] = None
    pending_anchor: Optional[str] = None
    range_lines: List[Tuple[str, str]] = field(default_factory=list)
    predicted_tracks: Dict[str, int] = field(default_factory=dict)
    halos: Dict[str, float] = field(default_factory=dict)

    def select_tool(self, tool: Optional[str]) -> Optional[str]:
        """Toggle ``tool``; selecting the active tool deselects it."""

        if tool is not None and tool not in TOOLS:
            raise ValueError(f"Unknown tool '{tool}'")
        self.pending_anchor = None
        self.selected_tool = None if tool == self.selected_tool else tool
        return self.selected_tool

    def click(self, aircraft_id: str) -> None:
        if self.selected_tool == TOOL_RANGE_BEARING:
            if self.pending_anchor is None:
                self.pending_anchor = aircraft_id
            elif self.pending_anchor != aircraft_id:
                self.range_lines.append((self.pending_anchor, aircraft_id))
                self.pending_anchor = None
        elif self.selected_tool == TOOL_PREDICTED_TRACK:
            self.halos.pop(aircraft_id, None)
            self.predicted_tracks.setdefault(aircraft_id, PTL_DEFAULT_MINUTES)
        elif self.selected_tool == TOOL_HALO:
            self.predicted_tracks.pop(aircraft_id, None)
            self.halos.setdefault(aircraft_id, HALO_DEFAULT_RADIUS_PX)

    def scroll(self, aircraft_id: str, delta: float) -> None:
        """Positive ``delta`` shrinks, negative grows (wheel convention)."""

        if aircraft_id in self.predicted_tracks:
            step = -1 if delta > 0 else 1
            self.predicted_tracks[aircraft_id] = max(PTL_MIN_MINUTES, self.predicted_tracks[aircraft_id] + step)
        elif aircraft_id in self.halos:
            step = -HALO_STEP_PX if delta > 0 else HALO_STEP_PX
            self.halos[aircraft_id] = max(HALO_MIN_RADIUS_PX, self.halos[aircraft_id] + step)

    def remove_all_for(self, aircraft_id: str) -> None:
        self.range_lines = [pair for pair in self.range_lines if aircraft_id not in pair]
        self.predicted_tracks.pop(aircraft_id, None)
        self.halos.pop(aircraft_id, None)
        if self.pending_anchor == aircraft_id:
            self.pending_anchor = None

    def clear(self, tool: Optional[str] = None) -> None:
        if tool in (None, TOOL_RANGE_BEARING):
            self.range_lines.clear()
            self.pending_anchor = None
        if tool in (None, TOOL_PREDICTED_TRACK):
            self.predicted_tracks.clear()
        if tool in (None, TOOL_HALO):
            self.halos.clear()
