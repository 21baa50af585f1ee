"""
===============================================================================
TRAJPROP - Spacecraft and Propulsion Test Suite
===============================================================================
Tests for the vehicle mass model, thrust allocation through the power
subsystem, fuel usage, deferred actions (frame switches and cargo events)
and the action queue itself.
===============================================================================
"""

from datetime import datetime, timezone

import numpy as np
import pytest
from numpy.testing import assert_allclose

from trajprop.core.constants import DEG2RAD, STANDARD_GRAVITY
from trajprop.core.data_structures import ActionQueue, ActionType
from trajprop.core.frames import unit
from trajprop.dynamics.celestial import EARTH, SUN
from trajprop.dynamics.orbital_mechanics import Orbit
from trajprop.dynamics.propulsion import (
    FiniteEPS, GenericEP, HPHET12k5, PPS1350, UnlimitedEPS,
)
from trajprop.dynamics.spacecraft import Cargo, Spacecraft
from trajprop.guidance.waypoints import (
    Loiter, ReachDistance, add_cargo, drop_cargo, ref_to,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def now():
    """Return a fixed UTC epoch."""
    return datetime(2016, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def leo():
    """Return an Earth orbit at 7000 km."""
    return Orbit.from_elements(7000.0, 0.01, 28.0 * DEG2RAD, 0.1, 0.2, 0.3, EARTH)


@pytest.fixture
def lander():
    """Return a 300 kg cargo item."""
    return Cargo("lander", 300.0)


def make_vehicle(waypoints=None, thrusters=None, eps=None, cargo=None):
    return Spacecraft(
        "test", 1000.0, 500.0, eps=eps,
        thrusters=thrusters if thrusters is not None else [GenericEP(0.5, 2000.0)],
        cargo=cargo, waypoints=waypoints,
    )


# =============================================================================
# Propulsion
# =============================================================================

class TestThrusters:
    """Thruster operating points and power subsystems."""

    def test_operating_points(self):
        assert PPS1350().max_power() == (350.0, 2500.0)
        assert PPS1350().min_power() == (350.0, 1500.0)
        assert HPHET12k5().thrust(800.0, 12500.0) == (0.680, 2650.0)

    def test_unsupported_point(self):
        with pytest.raises(ValueError):
            HPHET12k5().thrust(500.0, 5000.0)

    def test_generic_validation(self):
        with pytest.raises(ValueError):
            GenericEP(-1.0, 1000.0)
        with pytest.raises(ValueError):
            GenericEP(1.0, 0.0)

    def test_mass_flow(self):
        assert GenericEP.mass_flow(1.0, 1000.0) == pytest.approx(1.0 / (1000.0 * STANDARD_GRAVITY))

    def test_finite_eps_budget(self):
        eps = FiniteEPS(15000.0)
        assert eps.drain(800.0, 12500.0)
        assert not eps.drain(800.0, 12500.0)
        assert eps.available == pytest.approx(2500.0)
        eps.reset()
        assert eps.drain(800.0, 12500.0)

    def test_unlimited_eps(self):
        eps = UnlimitedEPS()
        assert all(eps.drain(800.0, 1e9) for _ in range(5))


# =============================================================================
# Spacecraft
# =============================================================================

class TestMassAndThrust:
    """Mass model and ``accelerate``."""

    def test_mass_includes_cargo(self, lander):
        sc = make_vehicle(cargo=[lander])
        assert sc.mass() == pytest.approx(1800.0)

    def test_no_waypoint_no_thrust(self, leo, now):
        accel, fuel_rate = make_vehicle().accelerate(now, leo)
        assert not np.any(accel) and fuel_rate == 0.0

    def test_loiter_no_thrust(self, leo, now):
        accel, fuel_rate = make_vehicle([Loiter(600.0)]).accelerate(now, leo)
        assert not np.any(accel) and fuel_rate == 0.0

    def test_thrust_along_velocity(self, leo, now):
        sc = make_vehicle([ReachDistance(1e6)])
        accel, fuel_rate = sc.accelerate(now, leo)
        assert_allclose(unit(accel), unit(leo.v), atol=1e-12)
        assert np.linalg.norm(accel) == pytest.approx(0.5 / 1e3 / 1500.0)
        assert fuel_rate == pytest.approx(0.5 / (2000.0 * STANDARD_GRAVITY))

    def test_power_limited(self, leo, now):
        sc = make_vehicle(
            [ReachDistance(1e6)], thrusters=[HPHET12k5(), HPHET12k5()], eps=FiniteEPS(20000.0)
        )
        accel, fuel_rate = sc.accelerate(now, leo)
        assert np.linalg.norm(accel) == pytest.approx(0.680 / 1e3 / 1500.0)
        assert fuel_rate == pytest.approx(0.680 / (2650.0 * STANDARD_GRAVITY))

    def test_eps_budget_renewed_each_evaluation(self, leo, now):
        sc = make_vehicle([ReachDistance(1e6)], thrusters=[HPHET12k5()], eps=FiniteEPS(12500.0))
        first = sc.accelerate(now, leo)[1]
        second = sc.accelerate(now, leo)[1]
        assert first == second > 0.0

    def test_clearing_evaluation_has_no_thrust(self, leo, now):
        sc = make_vehicle([ReachDistance(1.0), ReachDistance(1e6)])
        accel, fuel_rate = sc.accelerate(now, leo)
        assert not np.any(accel) and fuel_rate == 0.0
        accel, fuel_rate = sc.accelerate(now, leo)
        assert not np.any(accel) and fuel_rate == 0.0
        sc.pop_cleared_waypoints()
        accel, fuel_rate = sc.accelerate(now, leo)
        assert np.any(accel) and fuel_rate > 0.0

    def test_next_waypoint_waits_for_boundary(self, leo, now):
        loiter = Loiter(100.0)
        sc = make_vehicle([ReachDistance(1.0), loiter])
        for _ in range(4):
            sc.accelerate(now, leo)
        assert loiter.start_dt is None
        assert sc.active_waypoint() is None
        sc.pop_cleared_waypoints()
        assert sc.active_waypoint() is loiter

    def test_waypoints_popped_at_boundary_only(self, leo, now):
        sc = make_vehicle([ReachDistance(1.0), ReachDistance(1e6)])
        sc.accelerate(now, leo)
        assert len(sc.waypoints) == 2
        assert sc.pop_cleared_waypoints() == 1
        assert len(sc.waypoints) == 1
        assert not sc.all_waypoints_cleared()

    def test_snapshot(self, lander):
        snap = make_vehicle([Loiter(60.0)], cargo=[lander]).snapshot()
        assert snap["fuel_mass"] == 500.0
        assert snap["cargo"] == 1
        assert snap["waypoint"].startswith("Coasting")


class TestDeferredActions:
    """Actions staged on clearing and run at the step boundary."""

    def test_frame_switch_staged_then_executed(self, leo, now):
        sc = make_vehicle([ReachDistance(1.0, on_clear=ref_to(SUN))])
        sc.accelerate(now, leo)
        assert leo.origin == EARTH
        assert len(sc.func_q) == 1
        assert sc.func_q.drain(now) == 1
        assert leo.origin == SUN
        assert len(sc.func_q) == 0

    def test_duplicate_frame_switch_collapses(self, leo):
        sc = make_vehicle()
        assert sc.stage_frame_switch(leo, SUN)
        assert not sc.stage_frame_switch(leo, SUN)
        assert len(sc.func_q) == 1

    def test_switch_skipped_when_already_centred(self, leo, now):
        sc = make_vehicle()
        sc.stage_frame_switch(leo, SUN)
        leo.to_x_centric(SUN, now)
        sc.func_q.drain(now)
        assert leo.origin == SUN

    def test_add_and_drop_cargo(self, leo, now, lander):
        sc = make_vehicle([
            ReachDistance(1.0, on_clear=add_cargo(lander)),
            ReachDistance(2.0, on_clear=drop_cargo(lander)),
        ])
        sc.accelerate(now, leo)
        sc.func_q.drain(now)
        assert sc.mass() == pytest.approx(1800.0)
        sc.pop_cleared_waypoints()
        sc.accelerate(now, leo)
        sc.func_q.drain(now)
        assert sc.mass() == pytest.approx(1500.0)
        assert sc.cargo == []

    def test_drop_missing_cargo_is_reported(self, leo, now, lander, caplog):
        sc = make_vehicle([ReachDistance(1.0, on_clear=drop_cargo(lander))])
        sc.accelerate(now, leo)
        sc.func_q.drain(now)
        assert "not on board" in caplog.text
        assert sc.mass() == pytest.approx(1500.0)


class TestActionQueue:
    """Deferred-action queue semantics."""

    def test_runs_once_in_order(self, now):
        q = ActionQueue()
        calls = []
        q.push(lambda when: calls.append(("a", when)), ActionType.ADD_CARGO)
        q.push(lambda when: calls.append(("b", when)), ActionType.DROP_CARGO)
        assert q.drain(now) == 2
        assert calls == [("a", now), ("b", now)]
        assert q.drain(now) == 0
        assert len(calls) == 2

    def test_dedup_by_key(self):
        q = ActionQueue()
        assert q.push(lambda when: None, ActionType.FRAME_SWITCH, key=("frame", "Sun"))
        assert not q.push(lambda when: None, ActionType.FRAME_SWITCH, key=("frame", "Sun"))
        assert q.push(lambda when: None, ActionType.FRAME_SWITCH, key=("frame", "Mars"))
        assert len(q) == 2

    def test_cleared_even_when_action_fails(self, now):
        q = ActionQueue()

        def boom(when):
            raise RuntimeError("boom")

        q.push(boom, ActionType.FRAME_SWITCH)
        with pytest.raises(RuntimeError):
            q.drain(now)
        assert not q

    def test_empty_drain(self, now):
        assert ActionQueue().drain(now) == 0
