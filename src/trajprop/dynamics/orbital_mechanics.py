"""
===============================================================================
TRAJPROP - Orbit Representation and Conversions
===============================================================================
The Orbit class bundles a body-centred Cartesian state with a reference to
the celestial body it is centred on, and converts to and from classical
orbital elements on demand.

    1. **State representation** -- Position and velocity (km, km/s) are
       always available.  When the element formulation drives the run the
       exact elements it last set are cached, so the integrator reads back
       what it wrote instead of a round-tripped approximation.

    2. **Conversions** -- Keplerian <-> Cartesian.  The Cartesian -> element
       direction reproduces the quadrant checks of Vallado Algorithm 9:
       RAAN from the node vector's Y component, argument of periapsis from
       the eccentricity vector's Z component, true anomaly from the radial
       rate.

    3. **Patched-conic frame switching** -- Re-express the state about a
       different body using that body's heliocentric ephemeris.

Supported regime: elliptical orbits (0 <= e < 1) with a non-zero true
anomaly at construction.

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.
    [2] Bate, Mueller & White, "Fundamentals of Astrodynamics", Dover.
===============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

import numpy as np

from trajprop.core.constants import TWO_PI, DEG2RAD, RAD2DEG, NU_SINGULAR_LIMIT
from trajprop.core.exceptions import InvalidOrbit, InvalidFrameTransition
from trajprop.core.frames import pqw_to_eci
from trajprop.dynamics.celestial import CelestialBody, SUN

logger = logging.getLogger(__name__)


# =============================================================================
# ORBITAL ELEMENTS
# =============================================================================

@dataclass
class OrbitalElements:
    """
    Classical orbital elements.

    Attributes
    ----------
    a : float
        Semi-major axis (km).
    e : float
        Eccentricity.
    i : float
        Inclination (rad).
    raan : float
        Right ascension of the ascending node (rad).
    argp : float
        Argument of periapsis (rad).
    nu : float
        True anomaly (rad).
    """
    a: float
    e: float
    i: float
    raan: float
    argp: float
    nu: float

    def as_array(self) -> np.ndarray:
        """Elements in integrator order [a, e, i, raan, argp, nu]."""
        return np.array([self.a, self.e, self.i, self.raan, self.argp, self.nu])

    def __str__(self) -> str:
        return (
            f"a={self.a:.5f} e={self.e:.5f} i={self.i * RAD2DEG:.5f} "
            f"Ω={self.raan * RAD2DEG:.5f} ω={self.argp * RAD2DEG:.5f} "
            f"ν={self.nu * RAD2DEG:.5f}"
        )


# =============================================================================
# CONVERSIONS
# =============================================================================

def elements_to_cartesian(
    a: float, e: float, i: float, raan: float, argp: float, nu: float, mu: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert Keplerian elements to an inertial Cartesian state.

    The state is built in the perifocal frame:

        p     = a (1 - e^2)
        r_pqw = p / (1 + e cos nu) [cos nu, sin nu, 0]
        v_pqw = sqrt(mu / p) [-sin nu, e + cos nu, 0]

    then rotated to the inertial frame with the 3-1-3 sequence.

    Parameters
    ----------
    a, e, i, raan, argp, nu : float
        Elements (km, -, rad, rad, rad, rad).
    mu : float
        Gravitational parameter (km^3/s^2).

    Returns
    -------
    r : np.ndarray
        Position (km) (3,).
    v : np.ndarray
        Velocity (km/s) (3,).
    """
    p = a * (1.0 - e * e)
    cos_nu, sin_nu = np.cos(nu), np.sin(nu)
    r_pqw = np.array([p * cos_nu, p * sin_nu, 0.0]) / (1.0 + e * cos_nu)
    v_pqw = np.sqrt(mu / p) * np.array([-sin_nu, e + cos_nu, 0.0])
    return pqw_to_eci(i, argp, raan, r_pqw), pqw_to_eci(i, argp, raan, v_pqw)


def cartesian_to_elements(r: np.ndarray, v: np.ndarray, mu: float) -> OrbitalElements:
    """
    Convert an inertial Cartesian state to classical elements.

    The algorithm computes:
        h     = r x v
        N     = [-h_y, h_x, 0]              (node vector)
        e_vec = ((v^2 - mu/r) r - (r . v) v) / mu
        a     = -mu / (2 (v^2/2 - mu/r))
        i     = arccos(h_z / |h|)
        RAAN  = arccos(N_x / |N|),   flipped when N_y < 0
        argp  = arccos(N . e / |N| e), flipped when e_z < 0
        nu    = arccos(e . r / e r), flipped when r . v < 0

    Circular or equatorial states leave argp/RAAN/nu undefined; those
    components come back as NaN rather than an arbitrary convention, which
    makes the element formulation fail loudly on them.
    """
    r = np.asarray(r, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    r_mag = np.linalg.norm(r)
    v_mag = np.linalg.norm(v)

    h = np.cross(r, v)
    h_mag = np.linalg.norm(h)
    N = np.array([-h[1], h[0], 0.0])
    N_mag = np.linalg.norm(N)

    e_vec = ((v_mag ** 2 - mu / r_mag) * r - np.dot(r, v) * v) / mu
    e = np.linalg.norm(e_vec)

    a = -mu / (2.0 * (0.5 * v_mag ** 2 - mu / r_mag))
    i = np.arccos(np.clip(h[2] / h_mag, -1.0, 1.0))

    with np.errstate(divide="ignore", invalid="ignore"):
        raan = np.arccos(np.clip(N[0] / N_mag, -1.0, 1.0))
        if N[1] < 0:  # quadrant check
            raan = TWO_PI - raan

        argp = np.arccos(np.clip(np.dot(N, e_vec) / (N_mag * e), -1.0, 1.0))
        if e_vec[2] < 0:  # quadrant check
            argp = TWO_PI - argp

        nu = np.arccos(np.clip(np.dot(e_vec, r) / (e * r_mag), -1.0, 1.0))
        if np.dot(r, v) < 0:
            nu = TWO_PI - nu

    return OrbitalElements(float(a), float(e), float(i), float(raan), float(argp), float(nu))


def radii_to_ae(r_apo: float, r_peri: float) -> Tuple[float, float]:
    """
    Semi-major axis and eccentricity from apoapsis and periapsis radii.

    Raises
    ------
    ValueError
        If the periapsis is above the apoapsis.
    """
    if r_apo < r_peri:
        raise ValueError("periapsis cannot be greater than apoapsis")
    a = (r_peri + r_apo) / 2.0
    e = (r_apo - r_peri) / (r_apo + r_peri)
    return a, e


def two_body_acceleration(r: np.ndarray, mu: float) -> np.ndarray:
    """Point-mass gravity: a = -mu r / |r|^3 (km/s^2)."""
    r_mag = np.linalg.norm(r)
    return -mu * np.asarray(r) / r_mag ** 3


def vis_viva(r: float, a: float, mu: float) -> float:
    """Orbital speed at radius r on an orbit of semi-major axis a (km/s)."""
    return float(np.sqrt(mu * (2.0 / r - 1.0 / a)))


def orbital_period(a: float, mu: float) -> float:
    """
    Keplerian period T = 2 pi sqrt(a^3 / mu) (s).

    Raises
    ------
    ValueError
        If a <= 0 (open orbit).
    """
    if a <= 0.0:
        raise ValueError(f"Semi-major axis must be positive for a closed orbit, got {a}")
    return float(TWO_PI * np.sqrt(a ** 3 / mu))


def _check_elements(e: float, nu: float) -> None:
    if nu < NU_SINGULAR_LIMIT:
        raise InvalidOrbit(f"true anomaly ν={nu} ~= 0 is not supported")
    if e < 0.0 or e >= 1.0:
        raise InvalidOrbit(f"only circular and elliptical orbits supported (e={e})")


# =============================================================================
# ORBIT
# =============================================================================

class Orbit:
    """
    Body-centred orbit.

    Parameters
    ----------
    r : array_like
        Position (km) (3,), in the origin's equatorial frame (the ecliptic
        for heliocentric orbits).
    v : array_like
        Velocity (km/s) (3,).
    origin : CelestialBody
        Body the state is centred on.  Held by reference.
    """

    def __init__(self, r, v, origin: CelestialBody) -> None:
        self._r = np.array(r, dtype=np.float64)
        self._v = np.array(v, dtype=np.float64)
        self.origin = origin
        self._elements: Optional[OrbitalElements] = None

    # ------------------------------------------------------------------ #
    #  Construction
    # ------------------------------------------------------------------ #
    @classmethod
    def from_elements(
        cls, a: float, e: float, i: float, raan: float, argp: float, nu: float,
        origin: CelestialBody,
    ) -> "Orbit":
        """
        Build an orbit from classical elements (radians).

        Raises
        ------
        InvalidOrbit
            If nu ~ 0 or e is outside [0, 1).
        """
        orbit = cls(np.zeros(3), np.zeros(3), origin)
        orbit.set_elements(a, e, i, raan, argp, nu)
        return orbit

    @classmethod
    def from_elements_deg(
        cls, a: float, e: float, i: float, raan: float, argp: float, nu: float,
        origin: CelestialBody,
    ) -> "Orbit":
        """Same as ``from_elements`` with the four angles in degrees."""
        return cls.from_elements(
            a, e, i * DEG2RAD, raan * DEG2RAD, argp * DEG2RAD, nu * DEG2RAD, origin
        )

    # ------------------------------------------------------------------ #
    #  Cartesian access
    # ------------------------------------------------------------------ #
    @property
    def r(self) -> np.ndarray:
        """Position vector (km)."""
        return self._r

    @property
    def v(self) -> np.ndarray:
        """Velocity vector (km/s)."""
        return self._v

    def set_rv(self, r, v) -> None:
        """Replace the Cartesian state; invalidates the element cache."""
        self._r = np.array(r, dtype=np.float64)
        self._v = np.array(v, dtype=np.float64)
        self._elements = None

    def r_norm(self) -> float:
        return float(np.linalg.norm(self._r))

    def v_norm(self) -> float:
        return float(np.linalg.norm(self._v))

    def h_vec(self) -> np.ndarray:
        """Specific angular momentum vector (km^2/s)."""
        return np.cross(self._r, self._v)

    def h_norm(self) -> float:
        return float(np.linalg.norm(self.h_vec()))

    def energy(self) -> float:
        """Specific mechanical energy (km^2/s^2)."""
        return 0.5 * self.v_norm() ** 2 - self.origin.mu / self.r_norm()

    def eccentricity(self) -> float:
        """Eccentricity magnitude, valid for any conic."""
        if self._elements is not None:
            return self._elements.e
        mu = self.origin.mu
        r, v = self._r, self._v
        e_vec = ((np.dot(v, v) - mu / np.linalg.norm(r)) * r - np.dot(r, v) * v) / mu
        return float(np.linalg.norm(e_vec))

    # ------------------------------------------------------------------ #
    #  Element access
    # ------------------------------------------------------------------ #
    def elements(self) -> OrbitalElements:
        """Classical elements of the current state."""
        if self._elements is not None:
            return self._elements
        return cartesian_to_elements(self._r, self._v, self.origin.mu)

    def set_elements(
        self, a: float, e: float, i: float, raan: float, argp: float, nu: float,
        check: bool = True,
    ) -> None:
        """
        Replace the state from classical elements (radians) and cache them.

        *check* is disabled by the propagator, which lets the equations of
        motion report an unrepresentable state instead.

        Raises
        ------
        InvalidOrbit
            If *check* and nu ~ 0 or e is outside [0, 1).
        """
        if check:
            _check_elements(e, nu)
        self._r, self._v = elements_to_cartesian(a, e, i, raan, argp, nu, self.origin.mu)
        self._elements = OrbitalElements(a, e, i, raan, argp, nu)

    def semi_parameter(self) -> float:
        """Semi-latus rectum p = a (1 - e^2) (km)."""
        oe = self.elements()
        return oe.a * (1.0 - oe.e ** 2)

    def period(self) -> float:
        return orbital_period(self.elements().a, self.origin.mu)

    # ------------------------------------------------------------------ #
    #  Frame switching
    # ------------------------------------------------------------------ #
    def to_x_centric(self, body: CelestialBody, dt: datetime) -> None:
        """
        Re-express this orbit about *body* (patched-conic frame switch).

        Outward to the heliocentric frame the state is rotated from the
        origin's equator to the ecliptic and the origin's heliocentric state
        is added.  Inward to a planet the planet's heliocentric state is
        subtracted and the result rotated onto the planet's equator.  A
        planet-to-planet switch goes through the heliocentric frame.

        Parameters
        ----------
        body : CelestialBody
            New origin.
        dt : datetime
            Epoch at which the ephemerides are sampled.

        Raises
        ------
        InvalidFrameTransition
            If the orbit is already centred on *body*.
        """
        if self.origin == body:
            raise InvalidFrameTransition(f"already in orbit around {body.name}")
        logger.info("Switching to orbit around %s (from %s)", body.name, self.origin.name)

        if not self.origin.is_heliocentric:
            rel_r, rel_v = self.origin.helio_orbit(dt)
            r = self.origin.to_ecliptic(self._r) + rel_r
            v = self.origin.to_ecliptic(self._v) + rel_v
            self.set_rv(r, v)
            self.origin = SUN
            if body == SUN:
                return

        rel_r, rel_v = body.helio_orbit(dt)
        r = body.from_ecliptic(self._r - rel_r)
        v = body.from_ecliptic(self._v - rel_v)
        self.set_rv(r, v)
        self.origin = body

    # ------------------------------------------------------------------ #
    #  Snapshots
    # ------------------------------------------------------------------ #
    def copy(self) -> "Orbit":
        """Deep copy sharing the same origin record."""
        other = Orbit(self._r.copy(), self._v.copy(), self.origin)
        if self._elements is not None:
            oe = self._elements
            other._elements = OrbitalElements(oe.a, oe.e, oe.i, oe.raan, oe.argp, oe.nu)
        return other

    def snapshot(self) -> dict:
        """Flat dictionary for telemetry records."""
        oe = self.elements()
        return {
            "origin": self.origin.name,
            "x": self._r[0], "y": self._r[1], "z": self._r[2],
            "vx": self._v[0], "vy": self._v[1], "vz": self._v[2],
            "a": oe.a, "e": oe.e, "i": oe.i,
            "raan": oe.raan, "argp": oe.argp, "nu": oe.nu,
        }

    def __str__(self) -> str:
        return f"{self.elements()} ({self.origin.name})"

    def __repr__(self) -> str:
        return (
            f"Orbit(r={np.array2string(self._r, precision=3)}, "
            f"v={np.array2string(self._v, precision=6)}, origin={self.origin.name})"
        )
