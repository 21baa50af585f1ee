"""
===============================================================================
TRAJPROP - Fixed-Step Integrator
===============================================================================
Classical 4th-order Runge-Kutta driver for anything implementing the
``Integrable`` contract:

    get_state()              -> current state vector
    derivative(t, state)     -> time derivative of a (trial) state
    set_state(t, state)      -> commit the state reached at time t
    stop(t)                  -> True to end the integration

The integrator owns no physics.  It reads the committed state at the start
of every step, so an Integrable may re-parameterise its state inside
``set_state`` (e.g. a frame switch) without corrupting the next step.

    k1 = f(t_n,          y_n)
    k2 = f(t_n + h/2,    y_n + h/2 k1)
    k3 = f(t_n + h/2,    y_n + h/2 k2)
    k4 = f(t_n + h,      y_n + h k3)

    y_{n+1} = y_n + (h/6) (k1 + 2 k2 + 2 k3 + k4)
===============================================================================
"""

from typing import Protocol

import numpy as np


class Integrable(Protocol):
    """Contract between an integrator and the system it drives."""

    def get_state(self) -> np.ndarray: ...

    def derivative(self, t: float, state: np.ndarray) -> np.ndarray: ...

    def set_state(self, t: float, state: np.ndarray) -> None: ...

    def stop(self, t: float) -> bool: ...


class RK4:
    """
    Fixed-step RK4 integrator.

    Parameters
    ----------
    x0 : float
        Initial value of the independent variable (s).
    step : float
        Step size (s).  Must be positive.
    integrable : Integrable
        System to integrate.
    """

    def __init__(self, x0: float, step: float, integrable: Integrable) -> None:
        if step <= 0:
            raise ValueError(f"step must be positive, got {step}")
        self.x = float(x0)
        self.step = float(step)
        self.integrable = integrable

    def solve(self) -> int:
        """
        Integrate until ``stop`` returns True.  Blocking.

        Returns
        -------
        int
            Number of accepted steps.
        """
        h = self.step
        half = 0.5 * h
        system = self.integrable
        n_steps = 0

        while not system.stop(self.x):
            y = np.asarray(system.get_state(), dtype=np.float64)
            k1 = np.asarray(system.derivative(self.x, y))
            k2 = np.asarray(system.derivative(self.x + half, y + half * k1))
            k3 = np.asarray(system.derivative(self.x + half, y + half * k2))
            k4 = np.asarray(system.derivative(self.x + h, y + h * k3))

            self.x += h
            system.set_state(self.x, y + (h / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4))
            n_steps += 1

        return n_steps
