import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from radar_config import RadarConfig, load_radar_config, nm_to_px, px_to_nm


def test_unit_conversions():
    assert px_to_nm(50.0, 0.1) == pytest.approx(5.0)
    assert nm_to_px(5.0, 0.1) == pytest.approx(50.0)
    config = RadarConfig(nm_per_px=0.25)
    for px in (0.0, 4.0, 123.0):
        assert config.nm_to_px(config.px_to_nm(px)) == pytest.approx(px)


def test_bounds_use_edge_padding():
    config = RadarConfig()
    assert (config.low, config.high) == (50.0, 750.0)
    assert config.in_bounds(50.0, 750.0)
    assert not config.in_bounds(49.9, 400.0)
    assert not config.in_bounds(400.0, 750.1)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"nm_per_px": 0.0},
        {"edge_pad_px": -1.0},
        {"display_px": 100.0, "edge_pad_px": 50.0},
        {"min_separation_nm": -5.0},
    ],
)
def test_invalid_config_rejected(kwargs):
    with pytest.raises(ValueError):
        RadarConfig(**kwargs)


def test_with_overrides_skips_none():
    config = RadarConfig().with_overrides(nm_per_px=0.2, display_px=None)
    assert config.nm_per_px == 0.2
    assert config.display_px == 800.0


def test_load_missing_file_gives_defaults(tmp_path):
    assert load_radar_config(tmp_path / "missing.json") == RadarConfig()


def test_load_reads_known_keys(tmp_path):
    path = tmp_path / "radar_config.json"
    path.write_text(json.dumps({"nm_per_px": 0.2, "display_px": 1000, "colour": "green"}), encoding="utf-8")
    config = load_radar_config(path)
    assert config.nm_per_px == 0.2
    assert config.display_px == 1000.0
    assert config.edge_pad_px == 50.0


@pytest.mark.parametrize("payload", ["{not json", "[1, 2, 3]"])
def test_load_unreadable_file_falls_back(tmp_path, payload):
    path = tmp_path / "radar_config.json"
    path.write_text(payload, encoding="utf-8")
    assert load_radar_config(path) == RadarConfig()


@pytest.mark.parametrize("payload", [{"nm_per_px": "fine"}, {"nm_per_px": -1}])
def test_load_bad_values_raise(tmp_path, payload):
    path = tmp_path / "radar_config.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ValueError):
        load_radar_config(path)
