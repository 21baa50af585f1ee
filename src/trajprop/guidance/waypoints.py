"""
===============================================================================
TRAJPROP - Waypoint State Machine
===============================================================================
A mission is a FIFO of waypoints.  Each waypoint is a small state machine
with its own clearing condition and thrust law; the head of the queue is the
active one and it is popped only after it reports cleared.

Waypoints are plain tagged dataclasses (``kind`` identifies the variant and
each carries its own payload).  A single entry point dispatches on the tag:

    direction, cleared_now = allocate_thrust(waypoint, orbit, dt)

``direction`` is a thrust direction in the orbit's inertial frame (unit
length, or zero to coast).  Once a waypoint clears it stays cleared, and its
optional ``WaypointAction`` (frame switch or cargo event) becomes available
through ``waypoint.action()``.

    Variant          Clears when                    Thrust
    ---------------  -----------------------------  ---------------------------
    Loiter           duration elapsed               none
    ReachDistance    |r| >= distance                along velocity
    ReachVelocity    ||v| - target| < epsilon       +/- along velocity
    ToHyperbolic     e >= 1                         along velocity
    ToElliptical     e < 1                          against velocity
    OrbitTarget      elements within tolerance      Naasz / Ruggiero blend
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from trajprop.core.constants import DEG2RAD
from trajprop.core.data_structures import ActionType
from trajprop.core.frames import (
    cartesian_to_spherical, spherical_to_cartesian, rsw_to_inertial, unit,
)
from trajprop.dynamics.celestial import CelestialBody
from trajprop.dynamics.orbital_mechanics import Orbit, OrbitalElements
from trajprop.guidance.control_laws import (
    ControlLaw, ELEMENTS, combined_direction, element_errors,
)

ZERO = np.zeros(3)


# =============================================================================
# ACTIONS
# =============================================================================

@dataclass
class WaypointAction:
    """
    What happens once a waypoint clears.

    Attributes
    ----------
    kind : ActionType
        FRAME_SWITCH, ADD_CARGO or DROP_CARGO.
    body : CelestialBody, optional
        New origin for a frame switch.
    cargo : Cargo, optional
        Cargo item to pick up or drop.
    """
    kind: ActionType
    body: Optional[CelestialBody] = None
    cargo: Optional[Any] = None

    def __str__(self) -> str:
        if self.kind == ActionType.FRAME_SWITCH:
            return f"switch to {self.body}-centric frame"
        return f"{self.kind.name.lower()} {self.cargo}"


def ref_to(body: CelestialBody) -> WaypointAction:
    """Frame switch to *body* (REFSUN, REFEARTH, REFMARS, ...)."""
    return WaypointAction(ActionType.FRAME_SWITCH, body=body)


def add_cargo(cargo) -> WaypointAction:
    return WaypointAction(ActionType.ADD_CARGO, cargo=cargo)


def drop_cargo(cargo) -> WaypointAction:
    return WaypointAction(ActionType.DROP_CARGO, cargo=cargo)


# =============================================================================
# VARIANTS
# =============================================================================

class WaypointKind(Enum):
    LOITER = "loiter"
    REACH_DISTANCE = "reach_distance"
    REACH_VELOCITY = "reach_velocity"
    TO_HYPERBOLIC = "to_hyperbolic"
    TO_ELLIPTICAL = "to_elliptical"
    ORBIT_TARGET = "orbit_target"


@dataclass
class Waypoint:
    """Fields shared by every variant.  ``cleared`` only ever goes True."""
    on_clear: Optional[WaypointAction] = field(default=None, kw_only=True)
    cleared: bool = field(default=False, kw_only=True)

    kind = None

    def action(self) -> Optional[WaypointAction]:
        """The completion action, available only once cleared."""
        if self.cleared:
            return self.on_clear
        return None

    def describe(self) -> str:
        return self.kind.value

    def __str__(self) -> str:
        return self.describe()


@dataclass
class Loiter(Waypoint):
    """Coast for a fixed duration, timed from the first evaluation."""
    duration: timedelta
    start_dt: Optional[datetime] = None
    end_dt: Optional[datetime] = None

    kind = WaypointKind.LOITER

    def __post_init__(self):
        if not isinstance(self.duration, timedelta):
            self.duration = timedelta(seconds=float(self.duration))

    def describe(self) -> str:
        return f"Coasting for {self.duration}."


@dataclass
class ReachDistance(Waypoint):
    """Thrust along the velocity until the radius reaches *distance* (km)."""
    distance: float

    kind = WaypointKind.REACH_DISTANCE

    def describe(self) -> str:
        return f"Reach distance of {self.distance:.1f} km."


@dataclass
class ReachVelocity(Waypoint):
    """Thrust along or against the velocity until |v| is within epsilon of target."""
    velocity: float
    epsilon: float = 5.0

    kind = WaypointKind.REACH_VELOCITY

    def describe(self) -> str:
        return f"Reach velocity of {self.velocity:.1f} km/s."


@dataclass
class ToHyperbolic(Waypoint):
    """Thrust prograde until the orbit is open (e >= 1)."""

    kind = WaypointKind.TO_HYPERBOLIC

    def describe(self) -> str:
        return "Thrust until hyperbolic."


@dataclass
class ToElliptical(Waypoint):
    """Thrust retrograde until the orbit is closed (e < 1)."""

    kind = WaypointKind.TO_ELLIPTICAL

    def describe(self) -> str:
        return "Thrust until elliptical."


@dataclass
class OrbitTarget(Waypoint):
    """
    Steer the classical elements toward a target orbit.

    Attributes
    ----------
    target : Orbit
        Target orbit; only its elements and origin are used.
    law : ControlLaw
        Combination scheme of the per-element laws.
    tolerances : dict
        Absolute tolerance per element ('a' km, 'e', angles rad).  An
        element mapped to None is not controlled.  A missing 'a' defaults
        to 0.1 % of the target semi-major axis.
    """
    target: Orbit
    law: ControlLaw = ControlLaw.NAASZ
    tolerances: Dict[str, Optional[float]] = field(default_factory=dict)

    kind = WaypointKind.ORBIT_TARGET

    def __post_init__(self):
        self.target_elements: OrbitalElements = self.target.elements()
        defaults = {
            "a": 1e-3 * abs(self.target_elements.a),
            "e": 1e-3,
            "i": 0.5 * DEG2RAD,
            "raan": 0.5 * DEG2RAD,
            "argp": 0.5 * DEG2RAD,
        }
        defaults.update(self.tolerances)
        self.tolerances = defaults

    def describe(self) -> str:
        return f"Orbit target ({self.law.value}): {self.target}."


def outward_spiral(body: CelestialBody, action: Optional[WaypointAction] = None) -> ReachDistance:
    """Spiral out to *body*'s sphere of influence."""
    return ReachDistance(body.soi, on_clear=action)


# =============================================================================
# THRUST ALLOCATION
# =============================================================================

def _clear(wp: Waypoint) -> Tuple[np.ndarray, bool]:
    wp.cleared = True
    return ZERO.copy(), True


def _along_velocity(orbit: Orbit, magnitude: float = 1.0) -> np.ndarray:
    velocity_polar = cartesian_to_spherical(orbit.v)
    return spherical_to_cartesian([magnitude, velocity_polar[1], velocity_polar[2]])


def _loiter(wp: Loiter, orbit: Orbit, dt: datetime):
    if wp.start_dt is None:
        # First evaluation starts the timer.
        wp.start_dt = dt
        wp.end_dt = dt + wp.duration
        return ZERO.copy(), False
    if dt < wp.end_dt:
        return ZERO.copy(), False
    return _clear(wp)


def _reach_distance(wp: ReachDistance, orbit: Orbit, dt: datetime):
    if orbit.r_norm() >= wp.distance:
        return _clear(wp)
    return _along_velocity(orbit), False


def _reach_velocity(wp: ReachVelocity, orbit: Orbit, dt: datetime):
    velocity = orbit.v_norm()
    if abs(velocity - wp.velocity) < wp.epsilon:
        return _clear(wp)
    if velocity < wp.velocity:
        return _along_velocity(orbit, 1.0), False
    return _along_velocity(orbit, -1.0), False


def _to_hyperbolic(wp: ToHyperbolic, orbit: Orbit, dt: datetime):
    if orbit.eccentricity() >= 1.0:
        return _clear(wp)
    return unit(orbit.v), False


def _to_elliptical(wp: ToElliptical, orbit: Orbit, dt: datetime):
    if orbit.eccentricity() < 1.0:
        return _clear(wp)
    return -unit(orbit.v), False


def _orbit_target(wp: OrbitTarget, orbit: Orbit, dt: datetime):
    if orbit.origin != wp.target.origin:
        # Elements are only comparable about the same body; coast meanwhile.
        return ZERO.copy(), False
    current = orbit.elements()
    errors = element_errors(wp.target_elements, current)
    active = {
        name: wp.tolerances.get(name) is not None and abs(errors[name]) > wp.tolerances[name]
        for name in ELEMENTS
    }
    if not any(active.values()):
        return _clear(wp)
    direction = combined_direction(wp.target_elements, current, active, wp.law)
    return rsw_to_inertial(direction, orbit.r, orbit.v), False


_DISPATCH: Dict[WaypointKind, Callable] = {
    WaypointKind.LOITER: _loiter,
    WaypointKind.REACH_DISTANCE: _reach_distance,
    WaypointKind.REACH_VELOCITY: _reach_velocity,
    WaypointKind.TO_HYPERBOLIC: _to_hyperbolic,
    WaypointKind.TO_ELLIPTICAL: _to_elliptical,
    WaypointKind.ORBIT_TARGET: _orbit_target,
}


def allocate_thrust(
    waypoint: Waypoint, orbit: Orbit, dt: datetime
) -> Tuple[np.ndarray, bool]:
    """
    Evaluate a waypoint against the current orbit.

    Parameters
    ----------
    waypoint : Waypoint
        Any variant.
    orbit : Orbit
        Committed orbit.
    dt : datetime
        Current simulated time.

    Returns
    -------
    direction : np.ndarray
        Inertial thrust direction (3,); zeros to coast.
    cleared_now : bool
        True on the evaluation that clears the waypoint.
    """
    if waypoint.cleared:
        return ZERO.copy(), False
    return _DISPATCH[waypoint.kind](waypoint, orbit, dt)

