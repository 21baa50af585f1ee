"""
===============================================================================
TRAJPROP - Celestial Body Registry
===============================================================================
Immutable descriptors for the bodies a trajectory can be centred on, plus
their approximate heliocentric ephemerides.

Each planet carries the JPL "approximate positions of the planets" mean
elements (Standish, valid 1800 AD - 2050 AD) and their secular rates.  At a
query time the elements are advanced, Kepler's equation is solved for the
eccentric anomaly, and the state is rotated from the perifocal frame into
the J2000 heliocentric ecliptic frame.  Accuracy is at the 1e-3 AU level,
more than enough for patched-conic frame switching.

Bodies are shared by reference: every Orbit centred on Earth points to the
same EARTH record, which is never mutated.

References
----------
    [1] Standish, "Keplerian Elements for Approximate Positions of the
        Major Planets", JPL Solar System Dynamics.
    [2] Curtis, "Orbital Mechanics for Engineering Students", Ch. 8.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import numpy as np
from scipy.optimize import newton

from trajprop.core.constants import (
    AU, DEG2RAD, TWO_PI, PI, SECONDS_PER_DAY, DAYS_PER_CENTURY, J2000_JD,
    SUN_MU, SUN_RADIUS,
    VENUS_MU, VENUS_RADIUS, VENUS_TILT, VENUS_SOI, VENUS_J2,
    EARTH_MU, EARTH_RADIUS, EARTH_TILT, EARTH_SOI, EARTH_J2,
    MARS_MU, MARS_RADIUS, MARS_TILT, MARS_SOI, MARS_J2,
    JUPITER_MU, JUPITER_RADIUS, JUPITER_TILT, JUPITER_SOI, JUPITER_J2,
    VENUS_MEAN_ELEMENTS, EARTH_MEAN_ELEMENTS, MARS_MEAN_ELEMENTS,
    JUPITER_MEAN_ELEMENTS,
)
from trajprop.core.frames import R1, pqw_to_eci

J2000_EPOCH = datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Return *dt* as an aware UTC datetime (naive input is taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def julian_date(dt: datetime) -> float:
    """Julian date of a datetime (UTC, leap seconds ignored)."""
    return J2000_JD + (as_utc(dt) - J2000_EPOCH).total_seconds() / SECONDS_PER_DAY


# =============================================================================
# CELESTIAL BODY
# =============================================================================

@dataclass(frozen=True, eq=False)
class CelestialBody:
    """
    Immutable description of a gravitating body.

    Attributes
    ----------
    name : str
        Unique identifier, also the registry key.
    mu : float
        Gravitational parameter (km^3/s^2).
    radius : float
        Equatorial radius (km), the collision threshold.
    soi : float or None
        Sphere-of-influence radius (km).  None for the central body of the
        system (the Sun), which has no parent frame to switch to.
    tilt : float
        Axial tilt of the equator to the ecliptic (deg).
    j2 : float
        Oblateness coefficient (0 when not modelled).
    elements : tuple or None
        Mean elements and rates, see ``core.constants``.
    parent : str or None
        Name of the body whose frame an orbit switches to when it leaves
        this body's sphere of influence.
    """
    name: str
    mu: float
    radius: float
    soi: Optional[float]
    tilt: float = 0.0
    j2: float = 0.0
    elements: Optional[Tuple[Tuple[float, float], ...]] = None
    parent: Optional[str] = None

    @property
    def is_heliocentric(self) -> bool:
        """True for the central body of the system."""
        return self.soi is None

    # ------------------------------------------------------------------ #
    #  Ephemeris
    # ------------------------------------------------------------------ #
    def helio_orbit(self, dt: datetime) -> Tuple[np.ndarray, np.ndarray]:
        """
        Heliocentric position and velocity at *dt*.

        Parameters
        ----------
        dt : datetime
            Query time (UTC).

        Returns
        -------
        r : np.ndarray
            Position in the J2000 ecliptic frame (km) (3,).
        v : np.ndarray
            Velocity in the J2000 ecliptic frame (km/s) (3,).
        """
        if self.elements is None:
            return np.zeros(3), np.zeros(3)

        T = (julian_date(dt) - J2000_JD) / DAYS_PER_CENTURY
        a, e, inc, L, lon_peri, raan = (x0 + rate * T for x0, rate in self.elements)
        a *= AU
        inc *= DEG2RAD
        raan *= DEG2RAD
        argp = (lon_peri * DEG2RAD - raan) % TWO_PI
        M = (L - lon_peri) * DEG2RAD
        M = (M + PI) % TWO_PI - PI

        E = newton(
            lambda E: E - e * np.sin(E) - M,
            M,
            fprime=lambda E: 1.0 - e * np.cos(E),
            tol=1e-12,
            maxiter=50,
        )
        cos_E, sin_E = np.cos(E), np.sin(E)
        sqrt_1me2 = np.sqrt(1.0 - e * e)
        n = np.sqrt(SUN_MU / a ** 3)
        E_dot = n / (1.0 - e * cos_E)

        r_pqw = np.array([a * (cos_E - e), a * sqrt_1me2 * sin_E, 0.0])
        v_pqw = np.array([-a * sin_E * E_dot, a * sqrt_1me2 * cos_E * E_dot, 0.0])
        return pqw_to_eci(inc, argp, raan, r_pqw), pqw_to_eci(inc, argp, raan, v_pqw)

    # ------------------------------------------------------------------ #
    #  Equator <-> ecliptic
    # ------------------------------------------------------------------ #
    def to_ecliptic(self, vec: np.ndarray) -> np.ndarray:
        """Rotate a vector from this body's equatorial frame to the ecliptic."""
        return R1(self.tilt * DEG2RAD) @ np.asarray(vec, dtype=np.float64)

    def from_ecliptic(self, vec: np.ndarray) -> np.ndarray:
        """Rotate a vector from the ecliptic to this body's equatorial frame."""
        return R1(-self.tilt * DEG2RAD) @ np.asarray(vec, dtype=np.float64)

    # ------------------------------------------------------------------ #
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CelestialBody):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return self.name


# =============================================================================
# REGISTRY
# =============================================================================

SUN = CelestialBody("Sun", SUN_MU, SUN_RADIUS, None)

VENUS = CelestialBody(
    "Venus", VENUS_MU, VENUS_RADIUS, VENUS_SOI, VENUS_TILT, VENUS_J2,
    VENUS_MEAN_ELEMENTS, "Sun",
)

EARTH = CelestialBody(
    "Earth", EARTH_MU, EARTH_RADIUS, EARTH_SOI, EARTH_TILT, EARTH_J2,
    EARTH_MEAN_ELEMENTS, "Sun",
)

MARS = CelestialBody(
    "Mars", MARS_MU, MARS_RADIUS, MARS_SOI, MARS_TILT, MARS_J2,
    MARS_MEAN_ELEMENTS, "Sun",
)

JUPITER = CelestialBody(
    "Jupiter", JUPITER_MU, JUPITER_RADIUS, JUPITER_SOI, JUPITER_TILT,
    JUPITER_J2, JUPITER_MEAN_ELEMENTS, "Sun",
)

CELESTIAL_BODIES: Dict[str, CelestialBody] = {
    body.name.lower(): body for body in (SUN, VENUS, EARTH, MARS, JUPITER)
}


def get_body(name: str) -> CelestialBody:
    """
    Look up a registered body by name (case-insensitive).

    Raises
    ------
    ValueError
        If the name is not registered.
    """
    key = name.lower()
    if key not in CELESTIAL_BODIES:
        raise ValueError(f"Unknown body: {name}. Valid: {list(CELESTIAL_BODIES.keys())}")
    return CELESTIAL_BODIES[key]


def parent_of(body: CelestialBody) -> CelestialBody:
    """Body whose frame an orbit enters when leaving *body*'s sphere of influence."""
    if body.parent is None:
        raise ValueError(f"{body.name} has no parent body")
    return get_body(body.parent)
