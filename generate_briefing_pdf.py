"""Generate a printable trainee briefing for a radar scenario using ReportLab.

The briefing lists the scenario objectives and every aircraft on the scope
(callsign, type, level, speed, heading, vertical trend) so that an instructor
can hand it out alongside the radar page.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from reportlab.lib import colors, pagesizes
from reportlab.lib.styles import ParagraphStyle, StyleSheet1, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from radar_config import RadarConfig, load_radar_config
from radar_tools import range_bearing
from scenarios import DIFFICULTIES, Scene, generate_scene

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent
OUTPUT_PDF_PATH = PROJECT_ROOT / "SCENARIO_BRIEFING.pdf"

TABLE_HEADER = ["Callsign", "Type", "FL", "Speed", "Heading", "Vertical", "Range/Brg from centre"]


def load_styles() -> StyleSheet1:
    """Return a stylesheet with the briefing title, headings and body text."""

    styles = getSampleStyleSheet()
    styles.add(
        ParagraphStyle(
            name="BriefingTitle",
            parent=styles["Heading1"],
            fontSize=20,
            leading=24,
            spaceAfter=12,
        )
    )
    styles.add(
        ParagraphStyle(
            name="BriefingHeading",
            parent=styles["Heading2"],
            fontSize=14,
            leading=18,
            spaceBefore=12,
            spaceAfter=6,
        )
    )
    styles.add(
        ParagraphStyle(
            name="Objective",
            parent=styles["BodyText"],
            leftIndent=18,
            bulletIndent=10,
            spaceAfter=4,
            leading=15,
        )
    )
    return styles


def vertical_label(climb: int) -> str:
    if climb > 0:
        return f"climbing {climb}"
    if climb < 0:
        return f"descending {abs(climb)}"
    return "level"


def aircraft_rows(scene: Scene, config: RadarConfig) -> List[List[str]]:
    centre = config.display_px / 2.0
    rows = [list(TABLE_HEADER)]
    for aircraft in sorted(scene.aircraft, key=lambda a: a.callsign):
        rng_nm, brg = range_bearing(centre, centre, aircraft.x, aircraft.y, config)
        rows.append(
            [
                aircraft.callsign,
                aircraft.type_name,
                f"{aircraft.altitude}",
                f"{aircraft.speed * 10} kt",
                f"{aircraft.heading:03.0f}",
                vertical_label(aircraft.climb),
                f"{rng_nm} nm / {brg:03d}",
            ]
        )
    return rows


def build_flowables(
    scene: Scene,
    config: RadarConfig,
    styles: StyleSheet1,
    title: str = "Radar Scenario Briefing",
) -> List:
    """Convert a scene into a list of ReportLab flowables."""

    flowables: List = [Paragraph(f"<b>{title}</b>", styles["BriefingTitle"])]

    flowables.append(Paragraph("Objectives", styles["BriefingHeading"]))
    for objective in scene.objectives():
        flowables.append(Paragraph(f"<bullet>&bull;</bullet> {objective}", styles["Objective"]))

    if scene.shortfall:
        flowables.append(
            Paragraph(
                f"{scene.shortfall} requested aircraft could not be placed.",
                styles["BodyText"],
            )
        )

    flowables.append(Paragraph(f"Traffic ({len(scene.aircraft)} aircraft)", styles["BriefingHeading"]))
    if not scene.aircraft:
        flowables.append(Paragraph("No traffic.", styles["BodyText"]))
        return flowables

    table = Table(aircraft_rows(scene, config), repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
            ]
        )
    )
    flowables.append(Spacer(1, 0.1 * inch))
    flowables.append(table)
    return flowables


def build_pdf(flowables: Iterable, output_path: Path = OUTPUT_PDF_PATH) -> Path:
    """Create the PDF document from the flowables."""

    doc = SimpleDocTemplate(
        str(output_path),
        pagesize=pagesizes.LETTER,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
    )
    doc.build(list(flowables))
    return output_path


def write_briefing(scene: Scene, config: RadarConfig, output_path: Path = OUTPUT_PDF_PATH) -> Path:
    flowables = build_flowables(scene, config, load_styles())
    return build_pdf(flowables, output_path)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--difficulty", choices=DIFFICULTIES, default="easy")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="Optional radar_config.json")
    parser.add_argument("--output", type=Path, default=OUTPUT_PDF_PATH)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    config = load_radar_config(args.config)
    scene = generate_scene(config, args.difficulty, seed=args.seed)
    path = write_briefing(scene, config, args.output)
    logger.info(f"Wrote briefing with {len(scene.aircraft)} aircraft to {path}")


if __name__ == "__main__":
    main()
