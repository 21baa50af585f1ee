"""
===============================================================================
TRAJPROP - Electric Propulsion and Power Models
===============================================================================
Thruster and electrical power subsystem (EPS) models for low-thrust
trajectory work.

    Thrusters
    ---------
    GenericEP   -- constant thrust / Isp, no power envelope
    PPS1350     -- Snecma PPS-1350 Hall thruster (SMART-1)
    HPHET12k5   -- 12.5 kW high-power Hall effect thruster

    EPS
    ---
    UnlimitedEPS -- grants every power draw
    FiniteEPS    -- grants draws while the instantaneous budget allows

Every thruster has a minimum and a maximum operating point expressed as
(voltage V, power W) and maps an operating point to (thrust N, Isp s).
Only the tabulated operating points are valid; anything else raises
ValueError.
===============================================================================
"""

from typing import Dict, Tuple

import numpy as np

from trajprop.core.constants import STANDARD_GRAVITY


# =============================================================================
# THRUSTER BASE
# =============================================================================

class Thruster:
    """
    Electric thruster with a table of valid operating points.

    Subclasses fill ``OPERATING_POINTS`` as
    ``{(voltage, power): (thrust, isp)}``.
    """

    name = "thruster"
    OPERATING_POINTS: Dict[Tuple[float, float], Tuple[float, float]] = {}

    def min_power(self) -> Tuple[float, float]:
        """Lowest operating point as (voltage V, power W)."""
        return min(self.OPERATING_POINTS, key=lambda vp: vp[1])

    def max_power(self) -> Tuple[float, float]:
        """Highest operating point as (voltage V, power W)."""
        return max(self.OPERATING_POINTS, key=lambda vp: vp[1])

    def thrust(self, voltage: float, power: float) -> Tuple[float, float]:
        """
        Thrust and specific impulse at an operating point.

        Parameters
        ----------
        voltage : float
            Discharge voltage (V).
        power : float
            Input power (W).

        Returns
        -------
        thrust : float
            Thrust (N).
        isp : float
            Specific impulse (s).

        Raises
        ------
        ValueError
            If the operating point is not supported.
        """
        try:
            return self.OPERATING_POINTS[(voltage, power)]
        except KeyError:
            raise ValueError(
                f"{self.name}: unsupported operating point {voltage} V / {power} W"
            ) from None

    @staticmethod
    def mass_flow(thrust: float, isp: float) -> float:
        """Propellant mass flow rate mdot = T / (Isp g0) (kg/s)."""
        return thrust / (isp * STANDARD_GRAVITY)

    def __repr__(self) -> str:
        v, p = self.max_power()
        t, isp = self.thrust(v, p)
        return f"{type(self).__name__}(T={t:.3f} N, Isp={isp:.0f} s)"


class PPS1350(Thruster):
    """Snecma PPS-1350-G Hall thruster."""
    name = "PPS1350"
    OPERATING_POINTS = {
        (350.0, 1500.0): (89e-3, 1660.0),
        (350.0, 2500.0): (140e-3, 1800.0),
    }


class HPHET12k5(Thruster):
    """12.5 kW high-power Hall effect thruster."""
    name = "HPHET12k5"
    OPERATING_POINTS = {
        (400.0, 4000.0): (0.228, 2050.0),
        (800.0, 12500.0): (0.680, 2650.0),
    }


class GenericEP(Thruster):
    """
    Idealised thruster with fixed thrust and Isp and no power needs.

    Parameters
    ----------
    thrust : float
        Thrust (N).
    isp : float
        Specific impulse (s).
    """

    name = "GenericEP"

    def __init__(self, thrust: float, isp: float) -> None:
        if thrust < 0 or isp <= 0:
            raise ValueError(f"invalid thruster: T={thrust} N, Isp={isp} s")
        self._thrust = float(thrust)
        self._isp = float(isp)

    def min_power(self) -> Tuple[float, float]:
        return 0.0, 0.0

    def max_power(self) -> Tuple[float, float]:
        return 0.0, 0.0

    def thrust(self, voltage: float, power: float) -> Tuple[float, float]:
        return self._thrust, self._isp


THRUSTER_TYPES = {
    "generic": GenericEP,
    "pps1350": PPS1350,
    "hphet12k5": HPHET12k5,
}


# =============================================================================
# ELECTRICAL POWER SUBSYSTEM
# =============================================================================

class UnlimitedEPS:
    """EPS that grants every draw."""

    def reset(self) -> None:
        """Start a new instant (nothing to track)."""

    def drain(self, voltage: float, power: float) -> bool:
        return True

    def __repr__(self) -> str:
        return "UnlimitedEPS()"


class FiniteEPS:
    """
    EPS with a fixed instantaneous power budget.

    Draws are granted in request order until the budget for the current
    instant is exhausted; ``reset`` starts a new instant.

    Parameters
    ----------
    max_power : float
        Available power (W).
    """

    def __init__(self, max_power: float) -> None:
        if max_power < 0:
            raise ValueError(f"max_power must be non-negative, got {max_power}")
        self.max_power = float(max_power)
        self._drawn = 0.0

    def reset(self) -> None:
        self._drawn = 0.0

    def drain(self, voltage: float, power: float) -> bool:
        if self._drawn + power > self.max_power + 1e-9:
            return False
        self._drawn += power
        return True

    @property
    def available(self) -> float:
        return float(np.maximum(self.max_power - self._drawn, 0.0))

    def __repr__(self) -> str:
        return f"FiniteEPS(max_power={self.max_power:.1f} W)"
