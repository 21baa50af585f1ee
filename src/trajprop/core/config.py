"""
===============================================================================
TRAJPROP - Configuration Loading
===============================================================================
YAML mission files to runtime objects.

A mission file has up to five sections, each optional except ``spacecraft``
and ``orbit``:

    mission:
        start: 2016-03-01T00:00:00Z
        end: null                    # null -> run until waypoints cleared
        propagator: cartesian        # or gaussian_vop
        include_j2: false
    spacecraft:
        name: IT1
        dry_mass: 1000.0
        fuel_mass: 500.0
        thrusters: [{type: hphet12k5, count: 2}]
        waypoints:
            - {type: outward_spiral, body: Earth,
               action: {type: frame_switch, body: Sun}}
    orbit:
        body: Earth
        altitudes: {apoapsis: 350.0, periapsis: 250.0}
        i: 24.68                     # degrees
    perturbations:
        bodies: [Sun]
    export:
        filename: spiral
        csv: true

Every ``build_*`` function accepts either the whole file or just its own
section.  Malformed input raises ``ConfigError``.
===============================================================================
"""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import yaml

from trajprop.core.constants import DEG2RAD, STEP_SIZE
from trajprop.core.data_structures import Propagator
from trajprop.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# =============================================================================
# LOGGING / FILES
# =============================================================================

def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> None:
    """Log to stdout (and optionally to *log_file*) with the project format."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="w"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a mission configuration from a YAML file.

    Raises
    ------
    ConfigError
        If the file does not hold a mapping.
    """
    logger.info("Loading configuration from: %s", config_path)
    with open(config_path, "r") as f:
        config = yaml.safe_load(f)
    if not isinstance(config, dict):
        raise ConfigError(f"{config_path}: expected a mapping at top level")
    return config


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = cfg.get(name, cfg)
    if not isinstance(section, dict):
        raise ConfigError(f"section '{name}' must be a mapping, got {type(section).__name__}")
    return section


def _require(cfg: Dict[str, Any], key: str, where: str) -> Any:
    if key not in cfg:
        raise ConfigError(f"{where}: missing '{key}'")
    return cfg[key]


def _body(name: str):
    from trajprop.dynamics.celestial import get_body
    try:
        return get_body(str(name))
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _datetime(value: Any, where: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ConfigError(f"{where}: invalid date {value!r}") from exc


# =============================================================================
# ORBIT
# =============================================================================

def build_orbit(cfg: Dict[str, Any]):
    """
    Build an ``Orbit`` from a configuration section.

    Three forms are accepted, angles in degrees:

        {body, a, e, i, raan, argp, nu}
        {body, radii: {apoapsis, periapsis} | altitudes: {...}, i, raan, argp, nu}
        {body, r: [x, y, z], v: [vx, vy, vz]}
    """
    from trajprop.dynamics.orbital_mechanics import Orbit, radii_to_ae

    section = _section(cfg, "orbit")
    body = _body(section.get("body", "Earth"))

    if "r" in section or "v" in section:
        r = np.asarray(_require(section, "r", "orbit"), dtype=np.float64)
        v = np.asarray(_require(section, "v", "orbit"), dtype=np.float64)
        if r.shape != (3,) or v.shape != (3,):
            raise ConfigError("orbit: r and v must have three components")
        return Orbit(r, v, body)

    if "radii" in section or "altitudes" in section:
        offset = body.radius if "altitudes" in section else 0.0
        radii = section.get("altitudes") or section.get("radii")
        r_apo = float(_require(radii, "apoapsis", "orbit radii")) + offset
        r_peri = float(_require(radii, "periapsis", "orbit radii")) + offset
        try:
            a, e = radii_to_ae(r_apo, r_peri)
        except ValueError as exc:
            raise ConfigError(f"orbit: {exc}") from exc
    else:
        a = float(_require(section, "a", "orbit"))
        e = float(section.get("e", 0.0))

    return Orbit.from_elements_deg(
        a, e,
        float(section.get("i", 0.0)),
        float(section.get("raan", 0.0)),
        float(section.get("argp", 0.0)),
        float(section.get("nu", 1.0)),
        body,
    )


# =============================================================================
# SPACECRAFT
# =============================================================================

def _build_thrusters(items: List[Dict[str, Any]]):
    from trajprop.dynamics.propulsion import THRUSTER_TYPES

    thrusters = []
    for item in items:
        kind = str(item.get("type", "")).lower()
        if kind not in THRUSTER_TYPES:
            raise ConfigError(f"Unknown thruster type: {kind!r}. Valid: {list(THRUSTER_TYPES)}")
        cls = THRUSTER_TYPES[kind]
        for _ in range(int(item.get("count", 1))):
            if kind == "generic":
                try:
                    thrusters.append(cls(
                        float(_require(item, "thrust", "generic thruster")),
                        float(_require(item, "isp", "generic thruster")),
                    ))
                except ValueError as exc:
                    raise ConfigError(str(exc)) from exc
            else:
                thrusters.append(cls())
    return thrusters


def _build_action(item: Optional[Dict[str, Any]], cargo: Dict[str, Any]):
    from trajprop.dynamics.spacecraft import Cargo
    from trajprop.guidance.waypoints import add_cargo, drop_cargo, ref_to

    if item is None:
        return None
    kind = str(item.get("type", "")).lower()
    if kind == "frame_switch":
        return ref_to(_body(_require(item, "body", "frame_switch action")))
    if kind == "add_cargo":
        name = str(_require(item, "name", "add_cargo action"))
        return add_cargo(Cargo(name, float(_require(item, "dry_mass", "add_cargo action"))))
    if kind == "drop_cargo":
        name = str(_require(item, "name", "drop_cargo action"))
        if name not in cargo:
            raise ConfigError(f"drop_cargo: no cargo named {name!r}")
        return drop_cargo(cargo[name])
    raise ConfigError(f"Unknown waypoint action: {kind!r}")


def _build_waypoint(item: Dict[str, Any], cargo: Dict[str, Any]):
    from trajprop.guidance import waypoints as wps
    from trajprop.guidance.control_laws import ControlLaw

    kind = str(item.get("type", "")).lower()
    action = _build_action(item.get("action"), cargo)

    if kind == "loiter":
        seconds = float(item.get("duration", 0.0))
        seconds += float(item.get("hours", 0.0)) * 3600.0
        seconds += float(item.get("days", 0.0)) * 86400.0
        return wps.Loiter(timedelta(seconds=seconds), on_clear=action)
    if kind == "reach_distance":
        return wps.ReachDistance(float(_require(item, "distance", kind)), on_clear=action)
    if kind == "outward_spiral":
        return wps.outward_spiral(_body(_require(item, "body", kind)), action)
    if kind == "reach_velocity":
        return wps.ReachVelocity(
            float(_require(item, "velocity", kind)),
            float(item.get("epsilon", 5.0)),
            on_clear=action,
        )
    if kind == "to_hyperbolic":
        return wps.ToHyperbolic(on_clear=action)
    if kind == "to_elliptical":
        return wps.ToElliptical(on_clear=action)
    if kind == "orbit_target":
        target = build_orbit(_require(item, "target", kind))
        try:
            law = ControlLaw(str(item.get("law", "naasz")).lower())
        except ValueError as exc:
            raise ConfigError(f"orbit_target: {exc}") from exc
        tolerances = {}
        for name, tol in (item.get("tolerances") or {}).items():
            if tol is None or name in ("a", "e"):
                tolerances[name] = tol
            else:
                tolerances[name] = float(tol) * DEG2RAD
        return wps.OrbitTarget(target, law, tolerances, on_clear=action)
    raise ConfigError(f"Unknown waypoint type: {kind!r}")


def build_spacecraft(cfg: Dict[str, Any]):
    """Build a ``Spacecraft`` from the ``spacecraft`` section."""
    from trajprop.dynamics.propulsion import FiniteEPS, UnlimitedEPS
    from trajprop.dynamics.spacecraft import Cargo, Spacecraft

    section = _section(cfg, "spacecraft")
    eps_cfg = section.get("eps")
    eps = FiniteEPS(float(eps_cfg["max_power"])) if eps_cfg else UnlimitedEPS()

    cargo = [
        Cargo(str(_require(c, "name", "cargo")), float(_require(c, "dry_mass", "cargo")))
        for c in section.get("cargo", [])
    ]
    by_name = {c.name: c for c in cargo}
    waypoints = [_build_waypoint(w, by_name) for w in section.get("waypoints", [])]

    return Spacecraft(
        name=str(section.get("name", "spacecraft")),
        dry_mass=float(_require(section, "dry_mass", "spacecraft")),
        fuel_mass=float(_require(section, "fuel_mass", "spacecraft")),
        eps=eps,
        thrusters=_build_thrusters(section.get("thrusters", [])),
        cargo=cargo,
        waypoints=waypoints,
    )


# =============================================================================
# MISSION
# =============================================================================

def build_perturbations(cfg: Dict[str, Any]):
    from trajprop.dynamics.perturbations import Perturbations

    section = cfg.get("perturbations") or {}
    return Perturbations(perturbing_bodies=[_body(b) for b in section.get("bodies", [])])


def build_export(cfg: Dict[str, Any]):
    from trajprop.simulation.history import ExportConfig

    section = cfg.get("export") or {}
    try:
        return ExportConfig(**section)
    except TypeError as exc:
        raise ConfigError(f"export: {exc}") from exc


def build_mission(cfg: Dict[str, Any]):
    """
    Build a ready-to-run ``Mission`` from a full configuration.

    A missing or null ``end`` (and no ``duration_days``) selects the
    "until all waypoints are cleared" mode.
    """
    from trajprop.simulation.mission import Mission

    section = cfg.get("mission") or {}
    start = _datetime(_require(section, "start", "mission"), "mission.start")
    if section.get("end") is not None:
        end = _datetime(section["end"], "mission.end")
    elif section.get("duration_days") is not None:
        end = start + timedelta(days=float(section["duration_days"]))
    else:
        end = start - timedelta(seconds=1)

    name = str(section.get("propagator", "cartesian")).upper()
    if name not in Propagator.__members__:
        raise ConfigError(f"Unknown propagator: {name!r}. Valid: {list(Propagator.__members__)}")

    return Mission(
        build_spacecraft(cfg),
        build_orbit(cfg),
        start,
        end,
        propagator=Propagator[name],
        perturbations=build_perturbations(cfg),
        include_j2=bool(section.get("include_j2", False)),
        export=build_export(cfg),
        step=float(section.get("step", STEP_SIZE)),
        status_thread=bool(section.get("status_thread", False)),
    )
