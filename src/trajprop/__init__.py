"""
===============================================================================
TRAJPROP - Low-Thrust Trajectory Propagation
===============================================================================
Fixed-step propagation of spacecraft trajectories under point-mass gravity,
third-body perturbations and waypoint-driven electric propulsion, with
automatic patched-conic frame switches at sphere-of-influence crossings.

Subpackages:
    core        -- Constants, frames, exceptions, action queue, configuration
    dynamics    -- Celestial bodies, orbits, perturbations, propulsion, vehicle
    guidance    -- Waypoint state machine, control laws, Lambert solver
    simulation  -- RK4 integrator, mission engine, history sink
    database    -- SQLite storage of mission histories
===============================================================================
"""

__version__ = "0.1.0"
