"""
===============================================================================
TRAJPROP - Locally Optimal Low-Thrust Control Laws
===============================================================================
Thrust directions that maximise the instantaneous rate of change of a single
orbital element, from the Gauss variational equations (Ruggiero et al.,
IEPC-2011-102).  Each law returns a unit vector in the radial / transverse /
normal (RSW) frame, built from an in-plane angle alpha and an out-of-plane
angle beta:

    u = [sin(alpha) cos(beta), cos(alpha) cos(beta), sin(beta)]

    a    : alpha = atan2(e sin nu, 1 + e cos nu)
    e    : alpha = atan2(sin nu, cos nu + cos E)
    i    : beta  = sign(cos(argp + nu)) pi/2
    RAAN : beta  = sign(sin(argp + nu)) pi/2
    argp : alpha = atan2(-(1 + e cos nu) cos nu, (2 + e cos nu) sin nu)

Combination of several laws (Naasz, 2002) weights each direction by the
signed, normalised error of its element.
===============================================================================
"""

from enum import Enum

import numpy as np

from trajprop.core.constants import PI, TWO_PI
from trajprop.core.frames import sign
from trajprop.dynamics.orbital_mechanics import OrbitalElements


class ControlLaw(Enum):
    """How per-element thrust directions are combined."""
    NAASZ = "naasz"          # weighted by normalised element error
    RUGGIERO = "ruggiero"    # weighted by error sign only


ELEMENTS = ("a", "e", "i", "raan", "argp")


def _direction(alpha: float, beta: float) -> np.ndarray:
    cos_b = np.cos(beta)
    return np.array([np.sin(alpha) * cos_b, np.cos(alpha) * cos_b, np.sin(beta)])


def optimal_direction(element: str, oe: OrbitalElements) -> np.ndarray:
    """
    Unit RSW thrust direction that increases *element* fastest.

    Parameters
    ----------
    element : str
        One of 'a', 'e', 'i', 'raan', 'argp'.
    oe : OrbitalElements
        Current elements.

    Returns
    -------
    np.ndarray
        Unit vector (3,) in RSW.
    """
    e, nu = oe.e, oe.nu
    sin_nu, cos_nu = np.sin(nu), np.cos(nu)
    zeta = oe.argp + nu

    if element == "a":
        return _direction(np.arctan2(e * sin_nu, 1.0 + e * cos_nu), 0.0)
    if element == "e":
        cos_E = (e + cos_nu) / (1.0 + e * cos_nu)
        return _direction(np.arctan2(sin_nu, cos_nu + cos_E), 0.0)
    if element == "i":
        return _direction(0.0, sign(np.cos(zeta)) * PI / 2.0)
    if element == "raan":
        return _direction(0.0, sign(np.sin(zeta)) * PI / 2.0)
    if element == "argp":
        alpha = np.arctan2(-(1.0 + e * cos_nu) * cos_nu, (2.0 + e * cos_nu) * sin_nu)
        return _direction(alpha, 0.0)
    raise ValueError(f"Unknown element: {element}. Valid: {list(ELEMENTS)}")


def angle_error(target: float, current: float) -> float:
    """Signed shortest angular difference target - current, in (-pi, pi]."""
    diff = (target - current) % TWO_PI
    if diff > PI:
        diff -= TWO_PI
    return diff


def element_errors(target: OrbitalElements, current: OrbitalElements) -> dict:
    """Signed error (target - current) for each controlled element."""
    return {
        "a": target.a - current.a,
        "e": target.e - current.e,
        "i": target.i - current.i,
        "raan": angle_error(target.raan, current.raan),
        "argp": angle_error(target.argp, current.argp),
    }


def combined_direction(
    target: OrbitalElements,
    current: OrbitalElements,
    active: dict,
    law: ControlLaw = ControlLaw.NAASZ,
) -> np.ndarray:
    """
    Blend the per-element optimal directions into one RSW thrust direction.

    Parameters
    ----------
    target, current : OrbitalElements
        Target and current elements.
    active : dict
        ``{element: bool}`` - which elements still need correcting.
    law : ControlLaw
        Weighting scheme.

    Returns
    -------
    np.ndarray
        Unit RSW vector, or zeros when no element is active.
    """
    errors = element_errors(target, current)
    scale = {"a": max(abs(target.a), 1.0), "e": 1.0, "i": PI, "raan": PI, "argp": PI}

    total = np.zeros(3)
    for name in ELEMENTS:
        if not active.get(name, False):
            continue
        if law == ControlLaw.NAASZ:
            weight = errors[name] / scale[name]
        else:
            weight = sign(errors[name])
        total += weight * optimal_direction(name, current)

    norm = np.linalg.norm(total)
    if norm == 0.0:
        return np.zeros(3)
    return total / norm
