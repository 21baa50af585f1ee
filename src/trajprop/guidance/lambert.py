"""
===============================================================================
TRAJPROP - Lambert Solver (planning time)
===============================================================================
Two-point boundary value problem of the two-body problem: given departure and
arrival positions and a time of flight, find the departure and arrival
velocities.  Used when designing transfers (e.g. scanning departure and
arrival dates), never inside the propagation loop.

Universal-variable formulation (Bate, Mueller & White; Curtis Algorithm 5.2):

    A    = sin(dnu) sqrt(r1 r2 / (1 - cos dnu))
    y(z) = r1 + r2 + A (z S(z) - 1) / sqrt(C(z))
    F(z) = (y / C)^1.5 S + A sqrt(y) - sqrt(mu) tof = 0

F is monotonic in z over a single revolution, so the root is bracketed and
refined with ``scipy.optimize.brentq``.  Lagrange coefficients then give

    v1 = (r2 - f r1) / g
    v2 = (g_dot r2 - r1) / g

Failures are typed: ``LambertSingular`` for a 0 or 180 degree transfer
(transfer plane undefined), ``LambertNoSolution`` otherwise.  Both carry the
inputs so a grid scan can log and skip the sample.
===============================================================================
"""

import logging
from typing import Tuple

import numpy as np
from scipy.optimize import brentq

from trajprop.core.constants import TWO_PI
from trajprop.core.exceptions import LambertNoSolution, LambertSingular

logger = logging.getLogger(__name__)

Z_MAX = TWO_PI ** 2       # single-revolution upper bound on z
Z_MIN = -1e4              # hyperbolic search floor


# =============================================================================
# STUMPFF FUNCTIONS
# =============================================================================

def stumpff_c(z: float) -> float:
    """C(z) = (1 - cos sqrt z) / z, with its hyperbolic and limit branches."""
    if z > 1e-6:
        sz = np.sqrt(z)
        return (1.0 - np.cos(sz)) / z
    if z < -1e-6:
        sz = np.sqrt(-z)
        return (np.cosh(sz) - 1.0) / (-z)
    return 0.5


def stumpff_s(z: float) -> float:
    """S(z) = (sqrt z - sin sqrt z) / z^1.5, with its hyperbolic and limit branches."""
    if z > 1e-6:
        sz = np.sqrt(z)
        return (sz - np.sin(sz)) / (z * sz)
    if z < -1e-6:
        sz = np.sqrt(-z)
        return (np.sinh(sz) - sz) / ((-z) * sz)
    return 1.0 / 6.0


# =============================================================================
# SOLVER
# =============================================================================

def lambert(
    r1: np.ndarray, r2: np.ndarray, tof: float, mu: float,
    direction: str = "prograde",
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve Lambert's problem for a single-revolution transfer.

    Parameters
    ----------
    r1 : np.ndarray
        Departure position (km) (3,).
    r2 : np.ndarray
        Arrival position (km) (3,).
    tof : float
        Time of flight (s).  Must be positive.
    mu : float
        Gravitational parameter (km^3/s^2).
    direction : str
        'prograde' (angular momentum along +Z) or 'retrograde'.

    Returns
    -------
    v1 : np.ndarray
        Departure velocity (km/s) (3,).
    v2 : np.ndarray
        Arrival velocity (km/s) (3,).

    Raises
    ------
    LambertSingular
        If r1 and r2 are (anti-)parallel.
    LambertNoSolution
        If tof <= 0 or no root exists on a single revolution.
    ValueError
        If *direction* is not recognised.
    """
    if direction not in ("prograde", "retrograde"):
        raise ValueError(f"direction must be 'prograde' or 'retrograde', got {direction!r}")

    r1_vec = np.asarray(r1, dtype=np.float64)
    r2_vec = np.asarray(r2, dtype=np.float64)
    if tof <= 0.0:
        raise LambertNoSolution("time of flight must be positive", r1_vec, r2_vec, tof, mu)

    r1_mag = np.linalg.norm(r1_vec)
    r2_mag = np.linalg.norm(r2_vec)
    cross = np.cross(r1_vec, r2_vec)
    if np.linalg.norm(cross) < 1e-10 * r1_mag * r2_mag:
        raise LambertSingular("transfer angle is 0 or 180 deg", r1_vec, r2_vec, tof, mu)

    # --- Transfer angle ---
    cos_dnu = np.clip(np.dot(r1_vec, r2_vec) / (r1_mag * r2_mag), -1.0, 1.0)
    dnu = np.arccos(cos_dnu)
    if (direction == "prograde") == (cross[2] < 0.0):
        dnu = TWO_PI - dnu

    A = np.sin(dnu) * np.sqrt(r1_mag * r2_mag / (1.0 - cos_dnu))
    sqrt_mu_t = np.sqrt(mu) * tof

    def y_of(z):
        return r1_mag + r2_mag + A * (z * stumpff_s(z) - 1.0) / np.sqrt(stumpff_c(z))

    def tof_residual(z):
        y = y_of(z)
        if y < 0.0:
            # Continuous extension: at y = 0 the residual is -sqrt(mu) tof.
            return -sqrt_mu_t
        C = stumpff_c(z)
        return (y / C) ** 1.5 * stumpff_s(z) + A * np.sqrt(y) - sqrt_mu_t

    # --- Bracket the root ---
    z_hi = Z_MAX * (1.0 - 1e-6)
    if tof_residual(z_hi) <= 0.0:
        raise LambertNoSolution("time of flight exceeds single revolution", r1_vec, r2_vec, tof, mu)
    z_lo = 0.0
    while tof_residual(z_lo) > 0.0:
        if z_lo <= Z_MIN:
            raise LambertNoSolution("time of flight too short", r1_vec, r2_vec, tof, mu)
        z_lo = max(2.0 * z_lo - 1.0, Z_MIN)

    try:
        z = brentq(tof_residual, z_lo, z_hi, xtol=1e-12, maxiter=200)
    except RuntimeError as exc:
        raise LambertNoSolution(f"root finding failed: {exc}", r1_vec, r2_vec, tof, mu) from exc

    y = y_of(z)
    if y <= 0.0:
        raise LambertNoSolution("converged to a degenerate transfer", r1_vec, r2_vec, tof, mu)

    # --- Lagrange coefficients ---
    f = 1.0 - y / r1_mag
    g = A * np.sqrt(y / mu)
    g_dot = 1.0 - y / r2_mag

    v1 = (r2_vec - f * r1_vec) / g
    v2 = (g_dot * r2_vec - r1_vec) / g
    logger.debug("Lambert converged: z=%.6e dnu=%.3f rad", z, dnu)
    return v1, v2
