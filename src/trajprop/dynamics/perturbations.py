"""
===============================================================================
TRAJPROP - Perturbation Model
===============================================================================
Additive perturbing accelerations applied on top of the two-body term.

    - Third-body point-mass gravity from any registered body other than the
      orbit's own origin (direct + indirect term).
    - An arbitrary user function, for extensibility and testing.

``Perturbations.perturb`` returns a 7-component vector laid out like the
integrator state (6 state slots + fuel).  Slots 0..2 carry the perturbing
acceleration, expressed in the inertial frame for the Cartesian formulation
and in the radial / transverse / normal frame for the element formulation.
Perturbations never consume fuel, so slot 6 is always zero.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

import numpy as np

from trajprop.core.data_structures import Propagator
from trajprop.core.frames import inertial_to_rsw
from trajprop.dynamics.celestial import CelestialBody


# ============================================================================
#  THIRD-BODY ACCELERATION
# ============================================================================

def third_body_acceleration(
    r_sc: np.ndarray, r_third: np.ndarray, mu_third: float
) -> np.ndarray:
    """
    Perturbing acceleration of a third body on a spacecraft, in the frame
    centred on the primary (Battin, 1999):

        a_pert = mu_3 * ( (r_3 - r_sc) / |r_3 - r_sc|^3  -  r_3 / |r_3|^3 )

    The first term is the direct attraction of the third body on the
    spacecraft, the second subtracts its attraction on the primary.

    Parameters
    ----------
    r_sc : np.ndarray
        Spacecraft position relative to the primary (km) (3,).
    r_third : np.ndarray
        Third-body position relative to the primary (km) (3,).
    mu_third : float
        Gravitational parameter of the third body (km^3/s^2).

    Returns
    -------
    np.ndarray
        Perturbing acceleration (km/s^2) (3,).
    """
    r_sc_to_3 = r_third - r_sc
    d_sc_to_3 = np.linalg.norm(r_sc_to_3)
    d_3 = np.linalg.norm(r_third)
    if d_3 == 0.0:
        return np.zeros(3)
    return mu_third * (r_sc_to_3 / d_sc_to_3 ** 3 - r_third / d_3 ** 3)


def relative_position(body: CelestialBody, origin: CelestialBody, dt: datetime) -> np.ndarray:
    """Position of *body* relative to *origin*, in the origin's frame (km)."""
    r_body, _ = body.helio_orbit(dt)
    r_origin, _ = origin.helio_orbit(dt)
    return origin.from_ecliptic(r_body - r_origin)


# ============================================================================
#  PERTURBATIONS
# ============================================================================

class Perturbations:
    """
    Combination of perturbation sources, summed component-wise.

    Parameters
    ----------
    perturbing_bodies : sequence of CelestialBody, optional
        Third bodies to include.  A body equal to the orbit's origin
        contributes exactly zero.
    arbitrary : callable, optional
        ``arbitrary(orbit, mode) -> 7 numbers`` added as-is (fuel slot
        forced to zero).  Slots 0..2 are accelerations in the frame of the
        active formulation; slots 3..5 are direct rates on state components
        3..5.
    """

    def __init__(
        self,
        perturbing_bodies: Optional[Iterable[CelestialBody]] = None,
        arbitrary: Optional[Callable[..., Sequence[float]]] = None,
    ) -> None:
        self.perturbing_bodies = list(perturbing_bodies or [])
        self.arbitrary = arbitrary

    @property
    def is_empty(self) -> bool:
        return not self.perturbing_bodies and self.arbitrary is None

    def perturb(self, orbit, dt: datetime, mode) -> np.ndarray:
        """
        Total perturbation for the given state.

        Parameters
        ----------
        orbit : Orbit
            State at which the perturbation is evaluated.
        dt : datetime
            Epoch used for the ephemerides.
        mode : Propagator
            Active formulation; selects the frame of slots 0..2.

        Returns
        -------
        np.ndarray
            Seven components, fuel slot always 0.
        """
        pert = np.zeros(7)
        accel = np.zeros(3)
        for body in self.perturbing_bodies:
            if body == orbit.origin:
                continue
            r_third = relative_position(body, orbit.origin, dt)
            accel += third_body_acceleration(orbit.r, r_third, body.mu)

        if mode == Propagator.GAUSSIAN_VOP and np.any(accel):
            accel = inertial_to_rsw(accel, orbit.r, orbit.v)
        pert[0:3] = accel

        if self.arbitrary is not None:
            pert += np.asarray(self.arbitrary(orbit, mode), dtype=np.float64)
        pert[6] = 0.0
        return pert

    def __repr__(self) -> str:
        names = ", ".join(b.name for b in self.perturbing_bodies)
        return f"Perturbations(bodies=[{names}], arbitrary={self.arbitrary is not None})"
