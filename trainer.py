#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Radar Scenario Trainer — Streamlit app
Generates a static radar picture for each scenario and lets the trainee measure it:
 A) Difficulty presets (conflict pair(s) + random fill, optional weighted follow-up steps)
 B) Range/bearing lines between two targets
 C) Predicted track lines (minutes ahead, adjustable)
 D) Halos (radius adjustable in 10 px steps)
 E) Objectives, scene table and CSV export
"""
from __future__ import annotations

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.patches import Circle
import numpy as np
import streamlit as st

from aircraft_factory import Aircraft
from radar_config import RadarConfig, load_radar_config
from radar_tools import (
    TOOL_HALO,
    TOOL_PREDICTED_TRACK,
    TOOL_RANGE_BEARING,
    ToolState,
    data_tag_text,
    halo_label,
    predicted_track,
    range_bearing,
    trail_points,
)
from scenarios import DIFFICULTIES, Scene, generate_scene

SCENE_KEY = "scene"
TOOLS_KEY = "tool_state"
CONFIG_KEY = "radar_config"

TOOL_LABELS = {
    "Range / bearing line": TOOL_RANGE_BEARING,
    "Predicted track line": TOOL_PREDICTED_TRACK,
    "Halo": TOOL_HALO,
}

RADAR_BG = "#0b1a12"
TARGET_COLOR = "#7CFC00"
TOOL_COLOR = "#ff00ff"
TAG_OFFSET_PX = (40.0, -20.0)


def aircraft_by_id(scene: Scene) -> dict[str, Aircraft]:
    return {a.id: a for a in scene.aircraft}


def render_scene(scene: Scene, tools: ToolState, config: RadarConfig):
    fig, ax = plt.subplots(figsize=(8, 8))
    fig.patch.set_facecolor(RADAR_BG)
    ax.set_facecolor(RADAR_BG)
    ax.set_xlim(0.0, config.display_px)
    ax.set_ylim(config.display_px, 0.0)
    ax.set_aspect('equal')
    ax.set_xticks([])
    ax.set_yticks([])

    lookup = aircraft_by_id(scene)

    for aircraft in scene.aircraft:
        trail = trail_points(aircraft, config)
        ax.scatter([p[0] for p in trail], [p[1] for p in trail], s=4, color=TARGET_COLOR, alpha=0.5)
        ax.scatter([aircraft.x], [aircraft.y], s=30, marker='s', facecolors='none', edgecolors=TARGET_COLOR)
        tag_x = float(np.clip(aircraft.x + TAG_OFFSET_PX[0], 10.0, config.display_px - 100.0))
        tag_y = float(np.clip(aircraft.y + TAG_OFFSET_PX[1], 10.0, config.display_px - 50.0))
        ax.annotate(
            data_tag_text(aircraft),
            xy=(aircraft.x, aircraft.y),
            xytext=(tag_x, tag_y),
            color=TARGET_COLOR,
            fontsize=7,
            family='monospace',
            arrowprops=dict(arrowstyle='-', color=TARGET_COLOR, lw=0.6),
        )

    for first_id, second_id in tools.range_lines:
        a, b = lookup.get(first_id), lookup.get(second_id)
        if a is None or b is None:
            continue
        rng_nm, brg = range_bearing(a.x, a.y, b.x, b.y, config)
        ax.plot([a.x, b.x], [a.y, b.y], color=TOOL_COLOR, lw=1)
        ax.text((a.x + b.x) / 2.0, (a.y + b.y) / 2.0 - 5.0, f"{rng_nm} / {brg}", color=TOOL_COLOR, fontsize=8)

    for aircraft_id, minutes in tools.predicted_tracks.items():
        aircraft = lookup.get(aircraft_id)
        if aircraft is None:
            continue
        ptl = predicted_track(aircraft, minutes, config)
        ax.plot([ptl.start_x, ptl.end_x], [ptl.start_y, ptl.end_y], color=TOOL_COLOR, lw=1)
        ax.text(
            (ptl.start_x + ptl.end_x) / 2.0,
            (ptl.start_y + ptl.end_y) / 2.0 - 5.0,
            ptl.label(config),
            color=TOOL_COLOR,
            fontsize=8,
        )

    for aircraft_id, radius in tools.halos.items():
        aircraft = lookup.get(aircraft_id)
        if aircraft is None:
            continue
        ax.add_patch(Circle((aircraft.x, aircraft.y), radius, fill=False, edgecolor=TOOL_COLOR, lw=1.5))
        ax.text(aircraft.x, aircraft.y - radius - 5.0, halo_label(radius, config),
                color=TOOL_COLOR, fontsize=8, ha='center')

    return fig


# ------------------------------- Streamlit UI -------------------------------

st.set_page_config(page_title="Radar Scenario Trainer", layout="wide")
st.title("Radar Scenario Trainer")

if CONFIG_KEY not in st.session_state:
    st.session_state[CONFIG_KEY] = load_radar_config()
base_config: RadarConfig = st.session_state[CONFIG_KEY]

with st.sidebar:
    st.header("Scenario Controls")

    with st.expander("Scenario", expanded=True):
        difficulty = st.selectbox(
            "Difficulty",
            list(DIFFICULTIES),
            help="Sets how many aircraft are generated and how many of them form conflict pairs."
        )
        use_seed = st.checkbox(
            "Fixed seed",
            value=False,
            help="Use a fixed seed to reproduce a scenario exactly."
        )
        seed = int(st.number_input("Random seed", value=26, step=1)) if use_seed else None
        follow_up_steps = st.slider(
            "Extra scenario steps",
            0,
            3,
            0,
            help="Additional weighted steps (random, in-trail, crossing traffic or conflict) after the preset."
        )

    with st.expander("Display", expanded=False):
        display_px = st.number_input("Radar size (px)", value=float(base_config.display_px), step=50.0, min_value=200.0)
        edge_pad_px = st.number_input("Edge padding (px)", value=float(base_config.edge_pad_px), step=5.0, min_value=0.0)
        nm_per_px = st.number_input(
            "Scale (NM per px)",
            value=float(base_config.nm_per_px),
            step=0.01,
            min_value=0.01,
            format="%.2f",
            help="Linear scale used for every distance shown on the scope."
        )

    try:
        config = base_config.with_overrides(display_px=display_px, edge_pad_px=edge_pad_px, nm_per_px=nm_per_px)
    except ValueError as exc:
        st.warning(f"Invalid display settings: {exc}")
        config = base_config

    if st.button("Next scenario") or SCENE_KEY not in st.session_state:
        st.session_state[SCENE_KEY] = generate_scene(
            config, difficulty, seed=seed, follow_up_steps=int(follow_up_steps)
        )
        st.session_state[TOOLS_KEY] = ToolState()

scene: Scene = st.session_state[SCENE_KEY]
tools: ToolState = st.session_state[TOOLS_KEY]
view_config = scene.config or config
if view_config != config:
    st.sidebar.caption("Display changes apply from the next scenario.")

radar_col, side_col = st.columns([3, 1])

with side_col:
    st.subheader("Objectives")
    for objective in scene.objectives():
        st.markdown(f"- {objective}")
    if scene.shortfall:
        st.caption(f"{scene.shortfall} requested aircraft could not be placed.")

    st.subheader("Tools")
    callsigns = {a.callsign: a.id for a in scene.aircraft}
    tool_label = st.radio("Tool", list(TOOL_LABELS), horizontal=False)
    if tools.selected_tool != TOOL_LABELS[tool_label]:
        tools.select_tool(TOOL_LABELS[tool_label])

    if callsigns:
        target = st.selectbox("Aircraft", sorted(callsigns))
        c1, c2, c3 = st.columns(3)
        if c1.button("Apply"):
            tools.click(callsigns[target])
        if c2.button("＋"):
            tools.scroll(callsigns[target], -1.0)
        if c3.button("－"):
            tools.scroll(callsigns[target], 1.0)
        if st.button("Remove tools on aircraft"):
            tools.remove_all_for(callsigns[target])
        if tools.pending_anchor is not None:
            anchor = next((a.callsign for a in scene.aircraft if a.id == tools.pending_anchor), None)
            st.caption(f"Range line anchored at {anchor}; pick a second aircraft.")

    if st.button("Clear all tools"):
        tools.clear()

with radar_col:
    fig = render_scene(scene, tools, view_config)
    st.pyplot(fig)
    plt.close(fig)
    st.caption(
        f"Scale: {view_config.nm_per_px:g} NM per px. Speeds in tens of knots, levels in thousands of feet."
    )

frame = scene.frame()
st.dataframe(frame.drop(columns=["id"]), use_container_width=True)
st.download_button(
    "Download CSV",
    frame.to_csv(index=False).encode('utf-8'),
    file_name="radar_scenario.csv",
    mime="text/csv",
)
