"""
===============================================================================
TRAJPROP - Configuration Test Suite
===============================================================================
Tests for YAML loading and the builders that turn configuration sections
into orbits, vehicles and ready-to-run missions, including the shipped
mission files.
===============================================================================
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

from trajprop.core.config import (
    build_export, build_mission, build_orbit, build_spacecraft, load_config,
    setup_logging,
)
from trajprop.core.constants import DEG2RAD, EARTH_RADIUS
from trajprop.core.data_structures import Propagator
from trajprop.core.exceptions import ConfigError
from trajprop.dynamics.celestial import EARTH, MARS, SUN
from trajprop.dynamics.propulsion import FiniteEPS, HPHET12k5
from trajprop.dynamics.spacecraft import Spacecraft
from trajprop.guidance.waypoints import Loiter, OrbitTarget, WaypointKind

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def falcon9():
    """Return a minimal spiral mission dropped off by a Falcon 9."""
    return {
        "mission": {"start": "2016-03-01T00:00:00Z", "end": None},
        "spacecraft": {
            "name": "IT1",
            "dry_mass": 1000.0,
            "fuel_mass": 500.0,
            "thrusters": [{"type": "hphet12k5", "count": 2}],
            "waypoints": [{
                "type": "outward_spiral", "body": "Earth",
                "action": {"type": "frame_switch", "body": "Sun"},
            }],
        },
        "orbit": {
            "body": "Earth",
            "altitudes": {"apoapsis": 350.0, "periapsis": 250.0},
            "i": 24.68,
        },
    }


# =============================================================================
# Tests
# =============================================================================

class TestBuildOrbit:
    """Orbit sections."""

    def test_from_altitudes(self, falcon9):
        orbit = build_orbit(falcon9)
        oe = orbit.elements()
        assert orbit.origin == EARTH
        assert oe.a == pytest.approx(EARTH_RADIUS + 300.0)
        assert oe.e == pytest.approx(100.0 / (2 * EARTH_RADIUS + 600.0))
        assert oe.i == pytest.approx(24.68 * DEG2RAD)

    def test_from_elements_section_only(self):
        orbit = build_orbit({"body": "Mars", "a": 5000.0, "e": 0.1, "i": 10.0, "nu": 45.0})
        assert orbit.origin == MARS
        assert orbit.elements().nu == pytest.approx(45.0 * DEG2RAD)

    def test_from_state_vectors(self):
        orbit = build_orbit({"r": [7000.0, 0.0, 0.0], "v": [0.0, 7.5, 0.0]})
        assert orbit.r_norm() == pytest.approx(7000.0)

    def test_bad_vectors(self):
        with pytest.raises(ConfigError):
            build_orbit({"r": [7000.0, 0.0], "v": [0.0, 7.5, 0.0]})

    def test_inverted_radii(self):
        with pytest.raises(ConfigError):
            build_orbit({"radii": {"apoapsis": 7000.0, "periapsis": 8000.0}})

    def test_unknown_body(self):
        with pytest.raises(ConfigError):
            build_orbit({"body": "Vulcan", "a": 7000.0})


class TestBuildSpacecraft:
    """Vehicle sections."""

    def test_falcon9_vehicle(self, falcon9):
        sc = build_spacecraft(falcon9)
        assert sc.name == "IT1"
        assert sc.mass() == pytest.approx(1500.0)
        assert len(sc.thrusters) == 2
        assert all(isinstance(t, HPHET12k5) for t in sc.thrusters)
        wp = sc.waypoints[0]
        assert wp.kind == WaypointKind.REACH_DISTANCE
        assert wp.distance == EARTH.soi
        assert wp.on_clear.body == SUN

    def test_from_config_classmethod(self, falcon9):
        sc = Spacecraft.from_config(falcon9)
        assert sc.fuel_mass == 500.0

    def test_loiter_units_add_up(self):
        sc = build_spacecraft({
            "dry_mass": 1.0, "fuel_mass": 0.0,
            "waypoints": [{"type": "loiter", "days": 1, "hours": 2, "duration": 30}],
        })
        assert isinstance(sc.waypoints[0], Loiter)
        assert sc.waypoints[0].duration == timedelta(days=1, hours=2, seconds=30)

    def test_orbit_target_tolerances_in_degrees(self):
        sc = build_spacecraft({
            "dry_mass": 1.0, "fuel_mass": 0.0, "eps": {"max_power": 25000.0},
            "cargo": [{"name": "lander", "dry_mass": 300.0}],
            "waypoints": [
                {"type": "orbit_target", "law": "ruggiero",
                 "target": {"body": "Sun", "a": 2.28e8, "e": 0.09},
                 "tolerances": {"a": 1e6, "i": 1.0, "raan": None}},
                {"type": "loiter", "days": 2, "action": {"type": "drop_cargo", "name": "lander"}},
            ],
        })
        assert isinstance(sc.eps, FiniteEPS)
        wp = sc.waypoints[0]
        assert isinstance(wp, OrbitTarget)
        assert wp.tolerances["a"] == 1e6
        assert wp.tolerances["i"] == pytest.approx(DEG2RAD)
        assert wp.tolerances["raan"] is None

    def test_unknown_waypoint(self):
        with pytest.raises(ConfigError):
            build_spacecraft({"dry_mass": 1.0, "fuel_mass": 0.0, "waypoints": [{"type": "warp"}]})

    def test_unknown_thruster(self):
        with pytest.raises(ConfigError):
            build_spacecraft({"dry_mass": 1.0, "fuel_mass": 0.0, "thrusters": [{"type": "ion9000"}]})

    def test_drop_unknown_cargo(self):
        with pytest.raises(ConfigError):
            build_spacecraft({
                "dry_mass": 1.0, "fuel_mass": 0.0,
                "waypoints": [{"type": "loiter", "action": {"type": "drop_cargo", "name": "ghost"}}],
            })

    def test_missing_mass(self):
        with pytest.raises(ConfigError):
            build_spacecraft({"fuel_mass": 0.0})


class TestBuildMission:
    """Whole-file builder."""

    def test_null_end_runs_until_cleared(self, falcon9):
        mission = build_mission(falcon9)
        assert mission.until_waypoints_cleared
        assert mission.start == datetime(2016, 3, 1, tzinfo=timezone.utc)
        assert mission.propagator == Propagator.CARTESIAN
        assert mission.history is None

    def test_duration_and_propagator(self, falcon9):
        falcon9["mission"].update({"duration_days": 2, "propagator": "gaussian_vop", "include_j2": True})
        mission = build_mission(falcon9)
        assert mission.end - mission.start == timedelta(days=2)
        assert mission.propagator == Propagator.GAUSSIAN_VOP
        assert mission.include_j2

    def test_unknown_propagator(self, falcon9):
        falcon9["mission"]["propagator"] = "euler"
        with pytest.raises(ConfigError):
            build_mission(falcon9)

    def test_bad_date(self, falcon9):
        falcon9["mission"]["start"] = "yesterday"
        with pytest.raises(ConfigError):
            build_mission(falcon9)

    def test_export_section(self):
        export = build_export({"export": {"filename": "run", "csv": True}})
        assert not export.is_useless()
        with pytest.raises(ConfigError):
            build_export({"export": {"format": "xlsx"}})


class TestFiles:
    """YAML loading and the shipped mission files."""

    def test_load_round_trip(self, tmp_path, falcon9):
        path = tmp_path / "mission.yaml"
        path.write_text(yaml.safe_dump(falcon9))
        assert load_config(path)["spacecraft"]["name"] == "IT1"

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError):
            load_config(path)

    @pytest.mark.parametrize("name", ["spiral.yaml", "thesis.yaml"])
    def test_shipped_files_build(self, name):
        cfg = load_config(CONFIG_DIR / name)
        vehicle = build_spacecraft(cfg)
        orbit = build_orbit(cfg)
        assert vehicle.waypoints
        assert orbit.origin == EARTH

    def test_setup_logging_to_file(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / "logs" / "run.log"
        try:
            setup_logging(logging.DEBUG, str(log_file))
            logging.getLogger("trajprop.test").info("hello from the test")
            for handler in root.handlers:
                handler.flush()
            assert "hello from the test" in log_file.read_text()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)
