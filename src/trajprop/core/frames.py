"""
===============================================================================
TRAJPROP - Reference Frame Transformations
===============================================================================
Rotation matrices and coordinate conversions used by the propagator.

A low-thrust mission hops between body-centred frames:

    Planetocentric equatorial  -> spiral out of the parking orbit
    Heliocentric ecliptic      -> cruise between spheres of influence
    Radial / transverse / normal (RSW) -> thrust and perturbation inputs
                                          of the Gauss variational equations

All functions operate on NumPy arrays and return NumPy arrays.  Angles are
in radians unless noted otherwise.  The elementary rotations are *passive*
(they rotate the frame, not the vector), the usual astrodynamics convention.

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.
    [2] Ruggiero, Pergola, Marcuccio & Andrenucci, "Low-thrust maneuvers for
        the efficient correction of orbital elements", IEPC-2011-102.

===============================================================================
"""

import numpy as np

from trajprop.core.constants import TWO_PI, DEG2RAD, RAD2DEG


# =============================================================================
# ELEMENTARY ROTATION MATRICES
# =============================================================================

def R1(angle: float) -> np.ndarray:
    """
    Elementary rotation matrix about the X-axis.

        R1(a) = | 1    0       0     |
                | 0   cos(a)  sin(a)  |
                | 0  -sin(a)  cos(a)  |

    Parameters
    ----------
    angle : float
        Rotation angle in radians.

    Returns
    -------
    np.ndarray
        3x3 rotation matrix.
    """
    c = np.cos(angle)
    s = np.sin(angle)
    return np.array([
        [1.0,  0.0,  0.0],
        [0.0,    c,    s],
        [0.0,   -s,    c],
    ], dtype=np.float64)


def R2(angle: float) -> np.ndarray:
    """
    Elementary rotation matrix about the Y-axis.

        R2(a) = | cos(a)  0  -sin(a) |
                |   0     1     0     |
                | sin(a)  0   cos(a)  |
    """
    c = np.cos(angle)
    s = np.sin(angle)
    return np.array([
        [  c,  0.0,   -s],
        [0.0,  1.0,  0.0],
        [  s,  0.0,    c],
    ], dtype=np.float64)


def R3(angle: float) -> np.ndarray:
    """
    Elementary rotation matrix about the Z-axis.

        R3(a) = |  cos(a)  sin(a)  0 |
                | -sin(a)  cos(a)  0 |
                |    0       0     1 |
    """
    c = np.cos(angle)
    s = np.sin(angle)
    return np.array([
        [  c,    s,  0.0],
        [ -s,    c,  0.0],
        [0.0,  0.0,  1.0],
    ], dtype=np.float64)


# =============================================================================
# PERIFOCAL <-> INERTIAL
# =============================================================================

def pqw_to_eci(i: float, argp: float, raan: float, vec: np.ndarray) -> np.ndarray:
    """
    Rotate a perifocal (PQW) vector into the body-centred inertial frame
    with the 3-1-3 sequence R3(-RAAN) R1(-i) R3(-argp).

    Parameters
    ----------
    i : float
        Inclination (rad).
    argp : float
        Argument of periapsis (rad).
    raan : float
        Right ascension of the ascending node (rad).
    vec : np.ndarray
        Vector expressed in PQW (3,).

    Returns
    -------
    np.ndarray
        Vector expressed in the inertial frame (3,).
    """
    rot = R3(-raan) @ R1(-i) @ R3(-argp)
    return rot @ np.asarray(vec, dtype=np.float64)


# =============================================================================
# RADIAL / TRANSVERSE / NORMAL FRAME
# =============================================================================

def rsw_frame(r: np.ndarray, v: np.ndarray) -> np.ndarray:
    """
    Build the RSW (radial, transverse, normal) rotation matrix.

    Rows are the unit vectors of the local frame expressed in inertial
    coordinates:

        R_hat = r / |r|
        W_hat = (r x v) / |r x v|
        S_hat = W_hat x R_hat

    so ``rsw_frame(r, v) @ x_inertial`` gives the RSW components of x.

    Parameters
    ----------
    r : np.ndarray
        Position (km) (3,).
    v : np.ndarray
        Velocity (km/s) (3,).

    Returns
    -------
    np.ndarray
        3x3 rotation matrix.
    """
    r_hat = unit(r)
    w_hat = unit(np.cross(r, v))
    s_hat = np.cross(w_hat, r_hat)
    return np.vstack((r_hat, s_hat, w_hat))


def inertial_to_rsw(vec: np.ndarray, r: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Express an inertial vector in the RSW frame of the state (r, v)."""
    return rsw_frame(r, v) @ np.asarray(vec, dtype=np.float64)


def rsw_to_inertial(vec: np.ndarray, r: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Express an RSW vector in the inertial frame of the state (r, v)."""
    return rsw_frame(r, v).T @ np.asarray(vec, dtype=np.float64)


# =============================================================================
# SPHERICAL COORDINATES
# =============================================================================

def cartesian_to_spherical(vec: np.ndarray) -> np.ndarray:
    """
    Convert a Cartesian vector to spherical coordinates [r, theta, phi].

    theta is the polar angle from +Z in [0, pi], phi the azimuth from +X in
    [0, 2*pi).  A zero vector maps to all zeros.
    """
    vec = np.asarray(vec, dtype=np.float64)
    r = np.linalg.norm(vec)
    if r == 0.0:
        return np.zeros(3)
    theta = np.arccos(np.clip(vec[2] / r, -1.0, 1.0))
    phi = np.arctan2(vec[1], vec[0]) % TWO_PI
    return np.array([r, theta, phi])


def spherical_to_cartesian(sph: np.ndarray) -> np.ndarray:
    """Convert [r, theta, phi] back to a Cartesian vector."""
    r, theta, phi = sph
    if r == 0.0:
        return np.zeros(3)
    sin_t = np.sin(theta)
    return np.array([
        r * sin_t * np.cos(phi),
        r * sin_t * np.sin(phi),
        r * np.cos(theta),
    ])


# =============================================================================
# VECTOR AND ANGLE HELPERS
# =============================================================================

def unit(vec: np.ndarray) -> np.ndarray:
    """Unit vector of *vec*; the zero vector is returned unchanged."""
    vec = np.asarray(vec, dtype=np.float64)
    n = np.linalg.norm(vec)
    if n == 0.0:
        return np.zeros_like(vec)
    return vec / n


def sign(x: float) -> float:
    """Sign of x, with sign(0) = +1."""
    return -1.0 if x < 0 else 1.0


def normalize_angle(angle: float) -> float:
    """Wrap an angle into [0, 2*pi)."""
    wrapped = angle % TWO_PI
    # float modulo can round up to exactly 2*pi for tiny negative inputs
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped


def deg2rad(angle_deg: float) -> float:
    """Degrees to radians, wrapped into [0, 2*pi)."""
    return normalize_angle(angle_deg * DEG2RAD)


def rad2deg(angle_rad: float) -> float:
    """Radians to degrees, wrapped into [0, 360)."""
    return normalize_angle(angle_rad) * RAD2DEG


def rad2deg180(angle_rad: float) -> float:
    """Radians to degrees, wrapped into (-180, 180]."""
    deg = rad2deg(angle_rad)
    if deg > 180.0:
        deg -= 360.0
    return deg
