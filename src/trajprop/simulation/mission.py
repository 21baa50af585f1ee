"""
===============================================================================
TRAJPROP - Propagation Engine
===============================================================================
Couples a spacecraft, its orbit and a perturbation model to a fixed-step RK4
integrator.  The engine implements the integrator contract:

    get_state()          -> [6 orbital numbers, fuel mass]
    derivative(t, s)     -> equations of motion at a trial state
    set_state(t, s)      -> commit a step, run the step-boundary logic
    stop(t)              -> cancellation / end-of-mission test

Two state formulations are supported (see ``Propagator``):

    CARTESIAN     [x, y, z, vx, vy, vz, fuel]
                  r_dot = v,  v_dot = -mu r / |r|^3 + f_pert + f_thrust

    GAUSSIAN_VOP  [a, e, i, RAAN, argp, nu, fuel]
                  Gauss variational equations with RSW forcing (Vallado,
                  Sec. 9.3; Ruggiero et al. 2011), optional J2 secular rates.

Step-boundary logic (``set_state``), in order:
    1. Snapshot the pre-update state to the history sink.
    2. Commit the state and advance the mission clock.
    3. Collision / revival reports; otherwise stage a frame switch to the
       parent body when outside the sphere of influence or parabolic.
    4. Fuel exhaustion report (never clamped).
    5. Run the deferred actions staged during the step, exactly once.
    6. Pop cleared waypoints.

Usage
-----
    mission = Mission(sc, orbit, start, end, propagator=Propagator.CARTESIAN)
    mission.propagate()
===============================================================================
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from trajprop.core.constants import (
    COLLISION_RECOVERY_FACTOR, ECCENTRICITY_EPS, STATUS_PERIOD, STEP_SIZE,
)
from trajprop.core.data_structures import Propagator
from trajprop.core.exceptions import NonFiniteDerivative
from trajprop.core.frames import inertial_to_rsw, normalize_angle
from trajprop.dynamics.celestial import as_utc, parent_of
from trajprop.dynamics.orbital_mechanics import (
    Orbit, elements_to_cartesian, two_body_acceleration,
)
from trajprop.dynamics.perturbations import Perturbations
from trajprop.dynamics.spacecraft import Spacecraft
from trajprop.simulation.history import ExportConfig, HistorySink, MissionState
from trajprop.simulation.integrator import RK4

logger = logging.getLogger(__name__)

__all__ = ["Mission", "Propagator"]


class Mission:
    """
    A propagation run: one vehicle, one orbit, one time window.

    Parameters
    ----------
    vehicle : Spacecraft
        Vehicle whose waypoints drive the thrust.
    orbit : Orbit
        Initial orbit.  Updated in place as the run progresses.
    start : datetime
        Mission start (UTC; naive values are taken as UTC).
    end : datetime
        Mission end.  An end before *start* means "run until every
        waypoint has cleared".
    propagator : Propagator
        State formulation.
    perturbations : Perturbations, optional
        Perturbing accelerations; none by default.
    include_j2 : bool
        Add J2 secular rates on RAAN and argp (element formulation only).
    export : ExportConfig, optional
        History files to write.  A sink is only created when this requests
        some output or when *history* is given.
    history : HistorySink, optional
        Explicit sink (e.g. in-memory, for analysis).
    step : float
        Integration step (s).
    status_thread : bool
        Log a status line every ``STATUS_PERIOD`` wall-clock seconds.
    """

    def __init__(
        self,
        vehicle: Spacecraft,
        orbit: Orbit,
        start: datetime,
        end: datetime,
        propagator: Propagator = Propagator.CARTESIAN,
        perturbations: Optional[Perturbations] = None,
        include_j2: bool = False,
        export: Optional[ExportConfig] = None,
        history: Optional[HistorySink] = None,
        step: float = STEP_SIZE,
        status_thread: bool = False,
    ) -> None:
        self.vehicle = vehicle
        self.orbit = orbit
        self.start = as_utc(start)
        self.end = as_utc(end)
        self.current_time = self.start
        self.propagator = propagator
        self.perturbations = perturbations if perturbations is not None else Perturbations()
        self.include_j2 = include_j2
        self.step = float(step)
        self.status_thread = status_thread

        self.collided = False
        self.done = False
        self.frame_switches: List[Tuple[datetime, str, str]] = []
        self.n_steps = 0
        self._cancel = threading.Event()
        self._finished = threading.Event()
        self._initial_fuel = vehicle.fuel_mass

        if history is None and export is not None and not export.is_useless():
            history = HistorySink(export)
        self.history = history
        if self.history is not None:
            if self.history.propagator is None:
                self.history.propagator = propagator.name
            self.history.start()
            self.history.put(self._mission_state())

        if self.until_waypoints_cleared:
            logger.warning("No end date: propagating until all waypoints are cleared")

        logger.info(
            "Mission created.  %s, propagator=%s, step=%.1f s, %s",
            vehicle.name, propagator.name, self.step, self.perturbations,
        )

    # =========================================================================
    # INTEGRATOR CONTRACT
    # =========================================================================

    @property
    def until_waypoints_cleared(self) -> bool:
        return self.end < self.start

    def get_state(self) -> np.ndarray:
        """Committed state: six orbital numbers then fuel mass."""
        state = np.empty(7)
        if self.propagator == Propagator.GAUSSIAN_VOP:
            state[0:6] = self.orbit.elements().as_array()
        else:
            state[0:3] = self.orbit.r
            state[3:6] = self.orbit.v
        state[6] = self.vehicle.fuel_mass
        return state

    def derivative(self, t: float, state: np.ndarray) -> np.ndarray:
        """
        Equations of motion at a trial state.

        The waypoint logic (thrust) is evaluated on the committed orbit and
        mission clock; gravity and perturbations on the trial state, with
        ephemerides sampled at the stage epoch ``start + t``.

        Perturbation slots 0..2 are accelerations (inertial, or RSW for the
        element formulation); slots 3..5 are added as-is to the rates of
        state components 3..5.

        Raises
        ------
        NonFiniteDerivative
            If any component is NaN or infinite.
        """
        origin = self.orbit.origin
        thrust, fuel_rate = self.vehicle.accelerate(self.current_time, self.orbit)
        epoch = self.start + timedelta(seconds=float(t))

        if self.propagator == Propagator.GAUSSIAN_VOP:
            f_dot = self._gauss_vop(state, thrust, epoch)
        else:
            r, v = state[0:3], state[3:6]
            trial = Orbit(r, v, origin)
            pert = self.perturbations.perturb(trial, epoch, self.propagator)
            f_dot = np.empty(7)
            f_dot[0:3] = v
            f_dot[3:6] = two_body_acceleration(r, origin.mu) + pert[0:3] + thrust + pert[3:6]
        f_dot[6] = -fuel_rate

        bad = np.flatnonzero(~np.isfinite(f_dot))
        if bad.size:
            i = int(bad[0])
            raise NonFiniteDerivative(i, f_dot[i], self.current_time, self.orbit)
        return f_dot

    def _gauss_vop(self, state: np.ndarray, thrust: np.ndarray, epoch: datetime) -> np.ndarray:
        # Angles are only wrapped in set_state.
        a, e, i, raan, argp, nu = state[0:6]
        origin = self.orbit.origin
        mu = origin.mu

        with np.errstate(divide="ignore", invalid="ignore"):
            r_vec, v_vec = elements_to_cartesian(a, e, i, raan, argp, nu, mu)
            trial = Orbit(r_vec, v_vec, origin)
            p = a * (1.0 - e * e)
            h = np.sqrt(mu * p)
            r = p / (1.0 + e * np.cos(nu))

            force = inertial_to_rsw(thrust, r_vec, v_vec) if np.any(thrust) else np.zeros(3)
            pert = self.perturbations.perturb(trial, epoch, self.propagator)
            force = force + pert[0:3]
            f_r, f_s, f_w = force

            sin_i, cos_i = np.sin(i), np.cos(i)
            sin_nu, cos_nu = np.sin(nu), np.cos(nu)
            zeta = argp + nu

            f_dot = np.zeros(7)
            f_dot[0] = (2.0 * a * a / h) * (e * sin_nu * f_r + (p / r) * f_s)
            f_dot[1] = (p * sin_nu * f_r + f_s * ((p + r) * cos_nu + r * e)) / h
            f_dot[2] = f_w * r * np.cos(zeta) / h
            f_dot[3] = f_w * r * np.sin(zeta) / (h * sin_i)
            f_dot[4] = (-p * cos_nu * f_r + (p + r) * sin_nu * f_s) / (h * e) - f_dot[3] * cos_i
            f_dot[5] = h / (r * r) + (p * cos_nu * f_r - (p + r) * sin_nu * f_s) / (e * h)

            if self.include_j2 and origin.j2 > 0:
                # Secular rates, Vallado Eq. 9-41.
                k = np.sqrt(mu / a ** 3) * origin.j2 * (origin.radius / p) ** 2
                f_dot[3] += -1.5 * k * cos_i
                f_dot[4] += 0.75 * k * (5.0 * cos_i ** 2 - 1.0)
            f_dot[3:6] += pert[3:6]
        return f_dot

    def set_state(self, t: float, state: np.ndarray) -> None:
        """Commit the state reached at *t* seconds after start."""
        if self.history is not None:
            self.history.put(self._mission_state())

        state = np.array(state, dtype=np.float64)
        if self.propagator == Propagator.GAUSSIAN_VOP:
            state[2:6] = [normalize_angle(x) for x in state[2:6]]
            state[1] = abs(state[1])
            self.orbit.set_elements(*state[0:6], check=False)
        else:
            self.orbit.set_rv(state[0:3], state[3:6])
        self.current_time = self.start + timedelta(seconds=float(t))
        self.n_steps += 1

        self._check_orbit()

        fuel = float(state[6])
        if self.vehicle.fuel_mass > 0.0 >= fuel:
            logger.critical("[%s] out of fuel: %.3f kg @ %s", self.vehicle.name, fuel, self.current_time)
        self.vehicle.fuel_mass = fuel

        origin = self.orbit.origin
        self.vehicle.func_q.drain(self.current_time)
        if self.orbit.origin != origin:
            self.frame_switches.append((self.current_time, origin.name, self.orbit.origin.name))
        self.vehicle.pop_cleared_waypoints()

    def _check_orbit(self) -> None:
        origin = self.orbit.origin
        r = self.orbit.r_norm()
        if not self.collided and r < origin.radius:
            self.collided = True
            logger.critical(
                "[%s] collided with %s @ %s", self.vehicle.name, origin.name, self.current_time
            )
        elif self.collided and r > origin.radius * COLLISION_RECOVERY_FACTOR:
            self.collided = False
            logger.critical(
                "[%s] revived from %s @ %s", self.vehicle.name, origin.name, self.current_time
            )
        elif not origin.is_heliocentric and (
            r > origin.soi or abs(self.orbit.eccentricity() - 1.0) < ECCENTRICITY_EPS
        ):
            self.vehicle.stage_frame_switch(self.orbit, parent_of(origin))

    def stop(self, t: float) -> bool:
        """True once the run must end; closes the history sink when it does."""
        if self._cancel.is_set():
            logger.info("Propagation cancelled @ %s", self.current_time)
            return self._finish()
        if self.until_waypoints_cleared:
            if self.vehicle.all_waypoints_cleared():
                return self._finish()
            return False
        if self.current_time > self.end:
            return self._finish()
        return False

    def _finish(self) -> bool:
        if self.history is not None:
            self.history.close()
        return True

    # =========================================================================
    # RUN CONTROL
    # =========================================================================

    def stop_propagation(self) -> None:
        """Request the run to end at the next step boundary.  Thread-safe."""
        self._cancel.set()

    def propagate(self) -> int:
        """
        Run the mission to completion.  Blocking.

        Returns
        -------
        int
            Number of integration steps.
        """
        self.log_status()
        self.vehicle.log_info()
        ticker = None
        if self.status_thread:
            ticker = threading.Thread(target=self._status_loop, name="mission-status", daemon=True)
            ticker.start()

        v_init = self.orbit.v_norm()
        wall_start = time.time()
        try:
            n_steps = RK4(0.0, self.step, self).solve()
        finally:
            self.done = True
            self._finished.set()
            if self.history is not None:
                self.history.close()
                self.history.join()
            if ticker is not None:
                ticker.join()
        v_final = self.orbit.v_norm()

        duration = self.current_time - self.start
        dur_str = str(duration)
        if duration > timedelta(hours=24):
            dur_str += " (~%.1fd)" % (duration.total_seconds() / 86400.0)
        logger.info(
            "Propagation finished.  %d steps in %.2f s wall time.  duration=%s  dv=%.6f km/s",
            n_steps, time.time() - wall_start, dur_str, abs(v_final - v_init),
        )
        self.log_status()
        if self.vehicle.fuel_mass < 0:
            logger.critical("[%s] fuel mass is negative: %.3f kg", self.vehicle.name, self.vehicle.fuel_mass)
        return n_steps

    def _status_loop(self) -> None:
        while not self._finished.wait(STATUS_PERIOD):
            self.log_status()

    def log_status(self) -> None:
        logger.info(
            "[%s] %s fuel=%.3f kg orbit: %s",
            self.vehicle.name, self.current_time, self.vehicle.fuel_mass, self.orbit,
        )

    # =========================================================================
    # REPORTING
    # =========================================================================

    def _mission_state(self) -> MissionState:
        return MissionState(self.current_time, self.vehicle.snapshot(), self.orbit.snapshot())

    def get_mission_summary(self) -> Dict[str, Any]:
        """
        Summary of the completed (or current) run.

        Returns
        -------
        dict
            duration_s, steps, fuel_consumed, final_mass, origin,
            frame_switches, collided, waypoints_left.
        """
        summary = {
            "duration_s": (self.current_time - self.start).total_seconds(),
            "steps": self.n_steps,
            "fuel_consumed": self._initial_fuel - self.vehicle.fuel_mass,
            "final_mass": self.vehicle.mass(),
            "origin": self.orbit.origin.name,
            "frame_switches": len(self.frame_switches),
            "collided": self.collided,
            "waypoints_left": sum(not wp.cleared for wp in self.vehicle.waypoints),
        }
        logger.info("Mission Summary:")
        for key, value in summary.items():
            if isinstance(value, float):
                logger.info("  %-20s: %.4f", key, value)
            else:
                logger.info("  %-20s: %s", key, value)
        return summary

    def __repr__(self) -> str:
        return (
            f"Mission({self.vehicle.name!r}, t={self.current_time.isoformat()}, "
            f"propagator={self.propagator.name}, origin={self.orbit.origin.name})"
        )
