"""
===============================================================================
TRAJPROP - Spacecraft Model
===============================================================================
Vehicle model used by the propagation engine:

    - Dry mass, fuel mass, cargo manifest, total mass
    - Electric thrusters fed by an electrical power subsystem (EPS)
    - FIFO of mission waypoints; the head is the active leg
    - Deferred-action queue (frame switches, cargo events) executed once
      after each committed integration step

The single contract the engine relies on is ``accelerate(dt, orbit)``:
"given the committed orbit at this instant, what acceleration does the
propulsion system deliver and how fast is fuel being used?"

Conventions
-----------
    - Thrust in N, Isp in s, mass in kg, acceleration in km/s^2.
    - Fuel mass is never clamped.  Going negative is a reportable fault,
      handled by the engine.

Usage
-----
    config = yaml.safe_load(open("mission.yaml"))
    sc = Spacecraft.from_config(config)
    accel, fuel_rate = sc.accelerate(now, orbit)
===============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from trajprop.core.data_structures import ActionQueue, ActionType
from trajprop.dynamics.celestial import CelestialBody
from trajprop.dynamics.orbital_mechanics import Orbit
from trajprop.dynamics.propulsion import UnlimitedEPS, Thruster
from trajprop.guidance.waypoints import Waypoint, WaypointAction, allocate_thrust

logger = logging.getLogger(__name__)


# ============================================================================
#  CARGO
# ============================================================================

@dataclass
class Cargo:
    """A payload item carried (and possibly dropped) along the way."""
    name: str
    dry_mass: float   # kg

    def __str__(self) -> str:
        return f"{self.name} ({self.dry_mass:.1f} kg)"


# ============================================================================
#  SPACECRAFT
# ============================================================================

class Spacecraft:
    """
    Low-thrust spacecraft.

    Parameters
    ----------
    name : str
        Vehicle identifier used in log records.
    dry_mass : float
        Structure mass without fuel or cargo (kg).
    fuel_mass : float
        Propellant mass (kg).
    eps : UnlimitedEPS or FiniteEPS, optional
        Power subsystem; unlimited by default.
    thrusters : list of Thruster, optional
        Thrusters fired together at their maximum operating point.
    cargo : list of Cargo, optional
        Initial cargo manifest.
    waypoints : list of Waypoint, optional
        Mission legs, in order.
    """

    def __init__(
        self,
        name: str,
        dry_mass: float,
        fuel_mass: float,
        eps=None,
        thrusters: Optional[List[Thruster]] = None,
        cargo: Optional[List[Cargo]] = None,
        waypoints: Optional[List[Waypoint]] = None,
    ) -> None:
        self.name = name
        self.dry_mass = float(dry_mass)
        self.fuel_mass = float(fuel_mass)
        self.eps = eps if eps is not None else UnlimitedEPS()
        self.thrusters: List[Thruster] = list(thrusters or [])
        self.cargo: List[Cargo] = list(cargo or [])
        self.waypoints: List[Waypoint] = list(waypoints or [])
        self.func_q = ActionQueue()

    # ------------------------------------------------------------------ #
    #  Construction from configuration
    # ------------------------------------------------------------------ #
    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "Spacecraft":
        """
        Build a vehicle from a configuration dictionary::

            spacecraft:
                name: IT1
                dry_mass: 1000.0
                fuel_mass: 500.0
                eps: {max_power: 25000.0}     # omit for unlimited
                thrusters:
                    - {type: hphet12k5, count: 2}
                    - {type: generic, thrust: 5.0, isp: 5000.0}
                cargo:
                    - {name: lander, dry_mass: 300.0}
                waypoints:
                    - {type: outward_spiral, body: Earth}

        Delegates to ``core.config.build_spacecraft``.
        """
        from trajprop.core.config import build_spacecraft
        return build_spacecraft(config)

    # ------------------------------------------------------------------ #
    #  Mass properties
    # ------------------------------------------------------------------ #
    def mass(self) -> float:
        """Total mass: dry + fuel + cargo (kg)."""
        return self.dry_mass + self.fuel_mass + sum(c.dry_mass for c in self.cargo)

    # ------------------------------------------------------------------ #
    #  Propulsion
    # ------------------------------------------------------------------ #
    def active_waypoint(self) -> Optional[Waypoint]:
        """
        Head of the waypoint queue, or None when the queue is empty or its
        head has cleared and awaits removal at the next step boundary.
        """
        if not self.waypoints or self.waypoints[0].cleared:
            return None
        return self.waypoints[0]

    def all_waypoints_cleared(self) -> bool:
        return all(wp.cleared for wp in self.waypoints)

    def accelerate(self, dt: datetime, orbit: Orbit) -> Tuple[np.ndarray, float]:
        """
        Thrust acceleration and fuel usage at this instant.

        The active waypoint decides the thrust direction.  On the evaluation
        where a waypoint clears, its action is staged on the deferred-action
        queue and no thrust is produced until the step boundary removes it;
        the next waypoint takes over from the following step.

        Parameters
        ----------
        dt : datetime
            Current simulated time.
        orbit : Orbit
            Committed orbit (not an integrator trial state).

        Returns
        -------
        accel : np.ndarray
            Thrust acceleration in the orbit's inertial frame (km/s^2) (3,).
        fuel_rate : float
            Propellant mass flow (kg/s), non-negative.
        """
        wp = self.active_waypoint()
        if wp is None:
            return np.zeros(3), 0.0

        direction, cleared_now = allocate_thrust(wp, orbit, dt)
        if cleared_now:
            logger.info("[%s] waypoint reached: %s @ %s", self.name, wp.describe(), dt)
            self.stage_action(wp.action(), orbit)
            return np.zeros(3), 0.0

        if not np.any(direction):
            return np.zeros(3), 0.0

        self.eps.reset()
        thrust = 0.0
        fuel_rate = 0.0
        for thruster in self.thrusters:
            voltage, power = thruster.max_power()
            if not self.eps.drain(voltage, power):
                continue
            t, isp = thruster.thrust(voltage, power)
            thrust += t
            fuel_rate += Thruster.mass_flow(t, isp)

        # N -> kg km/s^2
        thrust /= 1e3
        return thrust * np.asarray(direction) / self.mass(), fuel_rate

    # ------------------------------------------------------------------ #
    #  Deferred actions
    # ------------------------------------------------------------------ #
    def stage_action(self, action: Optional[WaypointAction], orbit: Orbit) -> None:
        """Queue a waypoint action for execution after the current step."""
        if action is None:
            return
        if action.kind == ActionType.FRAME_SWITCH:
            self.stage_frame_switch(orbit, action.body)
        elif action.kind == ActionType.ADD_CARGO:
            self.func_q.push(
                lambda when, c=action.cargo: self._add_cargo(c, when),
                ActionType.ADD_CARGO, label=f"add cargo {action.cargo}",
            )
        elif action.kind == ActionType.DROP_CARGO:
            self.func_q.push(
                lambda when, c=action.cargo: self._drop_cargo(c, when),
                ActionType.DROP_CARGO, label=f"drop cargo {action.cargo}",
            )
        else:
            raise ValueError(f"Unsupported waypoint action: {action.kind}")

    def stage_frame_switch(self, orbit: Orbit, body: CelestialBody) -> bool:
        """
        Queue a switch of *orbit* to *body*'s frame.  Requests for the same
        body staged within one step collapse into one.
        """
        return self.func_q.push(
            lambda when: self._switch_frame(orbit, body, when),
            ActionType.FRAME_SWITCH,
            key=("frame", body.name),
            label=f"switch to {body.name}",
        )

    def _switch_frame(self, orbit: Orbit, body: CelestialBody, when: datetime) -> None:
        if orbit.origin == body:
            # A previous step already performed this switch.
            logger.info("[%s] already centred on %s, switch skipped", self.name, body.name)
            return
        orbit.to_x_centric(body, when)
        logger.info(
            "[%s] now %s-centric @ %s fuel=%.3f kg orbit: %s",
            self.name, body.name, when, self.fuel_mass, orbit,
        )

    def _add_cargo(self, cargo: Cargo, when: datetime) -> None:
        self.cargo.append(cargo)
        logger.info("[%s] cargo added: %s @ %s", self.name, cargo, when)

    def _drop_cargo(self, cargo: Cargo, when: datetime) -> None:
        if cargo in self.cargo:
            self.cargo.remove(cargo)
            logger.info("[%s] cargo dropped: %s @ %s", self.name, cargo, when)
        else:
            logger.warning("[%s] cannot drop %s: not on board", self.name, cargo)

    def pop_cleared_waypoints(self) -> int:
        """Remove cleared waypoints from the head of the queue (step boundary only)."""
        popped = 0
        while self.waypoints and self.waypoints[0].cleared:
            self.waypoints.pop(0)
            popped += 1
        if popped and self.waypoints:
            logger.info("[%s] next waypoint: %s", self.name, self.waypoints[0].describe())
        return popped

    # ------------------------------------------------------------------ #
    #  Reporting
    # ------------------------------------------------------------------ #
    def log_info(self) -> None:
        """Log the vehicle configuration."""
        logger.info(
            "[%s] dry=%.1f kg fuel=%.1f kg cargo=%d thrusters=%s eps=%r",
            self.name, self.dry_mass, self.fuel_mass, len(self.cargo),
            self.thrusters, self.eps,
        )
        for i, wp in enumerate(self.waypoints):
            logger.info("[%s] waypoint #%d: %s", self.name, i, wp.describe())

    def snapshot(self) -> Dict[str, Any]:
        """Flat dictionary for telemetry records."""
        wp = self.active_waypoint()
        return {
            "name": self.name,
            "fuel_mass": self.fuel_mass,
            "mass": self.mass(),
            "cargo": len(self.cargo),
            "waypoint": wp.describe() if wp is not None else "",
        }

    def __repr__(self) -> str:
        return (
            f"Spacecraft({self.name!r}, mass={self.mass():.1f} kg, "
            f"fuel={self.fuel_mass:.3f} kg, waypoints={len(self.waypoints)})"
        )
