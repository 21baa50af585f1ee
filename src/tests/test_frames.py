"""
===============================================================================
TRAJPROP - Frame Math Test Suite
===============================================================================
Tests for the elementary rotations, the perifocal and RSW frames, spherical
coordinates and angle wrapping helpers.
===============================================================================
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from trajprop.core.constants import PI, TWO_PI
from trajprop.core.frames import (
    R1, R2, R3, cartesian_to_spherical, deg2rad, inertial_to_rsw,
    normalize_angle, pqw_to_eci, rad2deg, rad2deg180, rsw_frame,
    rsw_to_inertial, sign, spherical_to_cartesian, unit,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def oblique_state():
    """Return an arbitrary non-degenerate (r, v) pair."""
    r = np.array([7000.0, -1200.0, 350.0])
    v = np.array([0.8, 7.2, 1.1])
    return r, v


# =============================================================================
# Rotations
# =============================================================================

class TestRotations:
    """Elementary rotation matrices."""

    @pytest.mark.parametrize("rot", [R1, R2, R3])
    def test_orthonormal(self, rot):
        m = rot(0.7)
        assert_allclose(m @ m.T, np.eye(3), atol=1e-15)
        assert np.linalg.det(m) == pytest.approx(1.0)

    @pytest.mark.parametrize("rot", [R1, R2, R3])
    def test_inverse_is_negative_angle(self, rot):
        assert_allclose(rot(0.3) @ rot(-0.3), np.eye(3), atol=1e-15)

    def test_r3_rotates_frame_not_vector(self):
        """A passive rotation of +90 deg about Z maps X onto -Y."""
        assert_allclose(R3(PI / 2) @ np.array([1.0, 0.0, 0.0]), [0.0, -1.0, 0.0], atol=1e-15)

    def test_pqw_identity_for_zero_angles(self):
        vec = np.array([1.0, 2.0, 3.0])
        assert_allclose(pqw_to_eci(0.0, 0.0, 0.0, vec), vec)

    def test_pqw_inclination_tilts_out_of_plane(self):
        """Along the line of nodes the tilt has no effect; 90 deg away it does."""
        i = 0.5
        assert_allclose(pqw_to_eci(i, 0.0, 0.0, [1.0, 0.0, 0.0]), [1.0, 0.0, 0.0], atol=1e-15)
        assert_allclose(
            pqw_to_eci(i, 0.0, 0.0, [0.0, 1.0, 0.0]),
            [0.0, np.cos(i), np.sin(i)], atol=1e-15,
        )


# =============================================================================
# RSW frame
# =============================================================================

class TestRSWFrame:
    """Radial / transverse / normal frame."""

    def test_equatorial_circular_is_identity(self):
        m = rsw_frame(np.array([7000.0, 0.0, 0.0]), np.array([0.0, 7.5, 0.0]))
        assert_allclose(m, np.eye(3), atol=1e-15)

    def test_round_trip(self, oblique_state):
        r, v = oblique_state
        vec = np.array([1e-6, -3e-6, 2e-6])
        assert_allclose(rsw_to_inertial(inertial_to_rsw(vec, r, v), r, v), vec, atol=1e-20)

    def test_radial_component(self, oblique_state):
        r, v = oblique_state
        rsw = inertial_to_rsw(r, r, v)
        assert_allclose(rsw, [np.linalg.norm(r), 0.0, 0.0], atol=1e-9)

    def test_velocity_has_no_normal_component(self, oblique_state):
        r, v = oblique_state
        assert inertial_to_rsw(v, r, v)[2] == pytest.approx(0.0, abs=1e-12)


# =============================================================================
# Spherical coordinates and helpers
# =============================================================================

class TestSpherical:
    """Cartesian <-> spherical conversions."""

    @pytest.mark.parametrize("vec", [
        [1.0, 0.0, 0.0],
        [0.0, -2.0, 0.0],
        [3.0, 4.0, 5.0],
        [-1.0, -1.0, -1.0],
    ])
    def test_round_trip(self, vec):
        assert_allclose(spherical_to_cartesian(cartesian_to_spherical(vec)), vec, atol=1e-12)

    def test_zero_vector(self):
        assert_allclose(cartesian_to_spherical(np.zeros(3)), np.zeros(3))
        assert_allclose(spherical_to_cartesian(np.zeros(3)), np.zeros(3))

    def test_azimuth_in_range(self):
        sph = cartesian_to_spherical([0.0, -1.0, 0.0])
        assert sph[2] == pytest.approx(1.5 * PI)
        assert sph[1] == pytest.approx(PI / 2)


class TestAngleHelpers:
    """Angle wrapping, conversions and small helpers."""

    def test_normalize_negative(self):
        assert normalize_angle(-0.1) == pytest.approx(TWO_PI - 0.1)

    def test_normalize_never_returns_two_pi(self):
        wrapped = normalize_angle(-1e-20)
        assert 0.0 <= wrapped < TWO_PI

    def test_normalize_large(self):
        assert normalize_angle(5 * TWO_PI + 0.25) == pytest.approx(0.25)

    def test_deg2rad_wraps(self):
        assert deg2rad(370.0) == pytest.approx(10.0 * PI / 180.0)
        assert deg2rad(-90.0) == pytest.approx(1.5 * PI)

    def test_rad2deg(self):
        assert rad2deg(-PI / 2) == pytest.approx(270.0)

    @pytest.mark.parametrize("angle, expected", [
        (1.5 * PI, -90.0),
        (PI / 2, 90.0),
        (PI, 180.0),
        (0.0, 0.0),
    ])
    def test_rad2deg180(self, angle, expected):
        assert rad2deg180(angle) == pytest.approx(expected)

    def test_sign_of_zero_is_positive(self):
        assert sign(0.0) == 1.0
        assert sign(-2.0) == -1.0

    def test_unit(self):
        assert_allclose(unit([3.0, 0.0, 4.0]), [0.6, 0.0, 0.8])
        assert_allclose(unit(np.zeros(3)), np.zeros(3))
