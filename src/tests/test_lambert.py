"""
===============================================================================
TRAJPROP - Lambert Solver Test Suite
===============================================================================
Tests for the universal-variable Lambert solver: a textbook case, two-body
consistency of the returned velocities, transfer direction, and the typed
failures for degenerate inputs.
===============================================================================
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from trajprop.core.constants import EARTH_MU
from trajprop.core.exceptions import LambertNoSolution, LambertSingular
from trajprop.guidance.lambert import lambert, stumpff_c, stumpff_s


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def curtis():
    """Curtis, Orbital Mechanics for Engineering Students, Example 5.2."""
    r1 = np.array([5000.0, 10000.0, 2100.0])
    r2 = np.array([-14600.0, 2500.0, 7000.0])
    return r1, r2, 3600.0, 398600.0


def energy(r, v, mu):
    return 0.5 * np.dot(v, v) - mu / np.linalg.norm(r)


# =============================================================================
# Tests
# =============================================================================

class TestStumpff:
    """Stumpff functions and their series limits."""

    def test_limits_at_zero(self):
        assert stumpff_c(0.0) == 0.5
        assert stumpff_s(0.0) == pytest.approx(1.0 / 6.0)

    def test_continuous_across_branches(self):
        for z in (-1e-5, 1e-5):
            assert stumpff_c(z) == pytest.approx(0.5, abs=1e-6)
            assert stumpff_s(z) == pytest.approx(1.0 / 6.0, abs=1e-6)

    def test_elliptic_and_hyperbolic_values(self):
        assert stumpff_c(np.pi ** 2) == pytest.approx(2.0 / np.pi ** 2)
        assert stumpff_c(-1.0) == pytest.approx(np.cosh(1.0) - 1.0)
        assert stumpff_s(-1.0) == pytest.approx(np.sinh(1.0) - 1.0)


class TestLambert:
    """Single-revolution transfers."""

    def test_textbook_case(self, curtis):
        v1, v2 = lambert(*curtis)
        assert_allclose(v1, [-5.9925, 1.9254, 3.2456], atol=2e-3)
        assert_allclose(v2, [-3.3125, -4.1966, -0.38529], atol=2e-3)

    def test_same_conic_at_both_ends(self, curtis):
        r1, r2, _, mu = curtis
        v1, v2 = lambert(*curtis)
        assert energy(r1, v1, mu) == pytest.approx(energy(r2, v2, mu), rel=1e-8)
        assert_allclose(np.cross(r1, v1), np.cross(r2, v2), rtol=1e-8)

    def test_direction(self, curtis):
        r1, r2, tof, mu = curtis
        v_pro, _ = lambert(r1, r2, tof, mu)
        v_retro, _ = lambert(r1, r2, tof, mu, direction="retrograde")
        assert np.cross(r1, v_pro)[2] > 0.0
        assert np.cross(r1, v_retro)[2] < 0.0

    def test_quarter_circle(self):
        """Quarter of a circular orbit recovers the circular speed."""
        a = 7000.0
        period = 2 * np.pi * np.sqrt(a ** 3 / EARTH_MU)
        v1, v2 = lambert([a, 0.0, 0.0], [0.0, a, 0.0], period / 4, EARTH_MU)
        v_circ = np.sqrt(EARTH_MU / a)
        assert_allclose(v1, [0.0, v_circ, 0.0], atol=1e-6)
        assert_allclose(v2, [-v_circ, 0.0, 0.0], atol=1e-6)

    def test_hyperbolic_transfer(self):
        """A very short flight needs more than escape speed."""
        r1 = np.array([7000.0, 0.0, 0.0])
        r2 = np.array([0.0, 20000.0, 0.0])
        v1, _ = lambert(r1, r2, 600.0, EARTH_MU)
        assert energy(r1, v1, EARTH_MU) > 0.0


class TestLambertFailures:
    """Typed failures."""

    def test_opposite_positions_are_singular(self, curtis):
        r1, _, tof, mu = curtis
        with pytest.raises(LambertSingular) as info:
            lambert(r1, -r1, tof, mu)
        assert info.value.tof == tof

    def test_non_positive_tof(self, curtis):
        r1, r2, _, mu = curtis
        with pytest.raises(LambertNoSolution):
            lambert(r1, r2, 0.0, mu)

    def test_unknown_direction(self, curtis):
        with pytest.raises(ValueError):
            lambert(*curtis, direction="sideways")
