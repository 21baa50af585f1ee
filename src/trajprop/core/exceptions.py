"""
===============================================================================
TRAJPROP - Exception Types
===============================================================================
Typed failures raised by the propagator.  Each one also derives from the
built-in exception the rest of the code base would otherwise raise
(ValueError for bad inputs, RuntimeError for numerical breakdowns), so
callers that already catch the built-ins keep working.

    Fatal (abort the run):
        NonFiniteDerivative, InvalidFrameTransition, InvalidOrbit
    Planning-time (caller decides):
        LambertNoSolution, LambertSingular
===============================================================================
"""


class TrajpropError(Exception):
    """Base class for all propagator errors."""


class InvalidOrbit(TrajpropError, ValueError):
    """Orbit cannot be represented (e outside [0, 1) or true anomaly ~ 0)."""


class InvalidFrameTransition(TrajpropError, ValueError):
    """Requested frame switch to the frame the orbit is already in."""


class ConfigError(TrajpropError, ValueError):
    """Malformed mission configuration."""


class NonFiniteDerivative(TrajpropError, RuntimeError):
    """
    The equations of motion produced NaN or inf.

    This signals a configuration the active formulation cannot represent,
    e.g. a circular or equatorial orbit under the element formulation.

    Parameters
    ----------
    index : int
        Offending state component.
    value : float
        The non-finite value.
    when : datetime
        Simulated time of the evaluation.
    orbit : Orbit
        Orbit committed at the time of failure.
    """

    def __init__(self, index, value, when, orbit):
        self.index = index
        self.value = value
        self.when = when
        self.orbit = orbit
        super().__init__(
            f"derivative[{index}]={value} @ {when}: {orbit}"
        )


class LambertError(TrajpropError, RuntimeError):
    """
    Base class for Lambert failures.  Carries the offending inputs so a
    caller scanning a grid of dates can log and skip the sample.
    """

    def __init__(self, message, r1, r2, tof, mu):
        self.r1 = r1
        self.r2 = r2
        self.tof = tof
        self.mu = mu
        super().__init__(f"{message} (tof={tof} s, mu={mu})")


class LambertNoSolution(LambertError):
    """No transfer exists for the given inputs, or the iteration diverged."""


class LambertSingular(LambertError):
    """Transfer plane undefined (transfer angle of 0 or 180 degrees)."""
