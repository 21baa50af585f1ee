"""
===============================================================================
TRAJPROP - Dynamics Module
===============================================================================
Models of the bodies, the orbit and the vehicle.

Submodules:
    celestial         -- Body registry and analytic heliocentric ephemerides
    orbital_mechanics -- Element conversions and the Orbit type (frame switches)
    perturbations     -- Third-body and user-supplied perturbing accelerations
    propulsion        -- Electric thrusters and power subsystems
    spacecraft        -- Vehicle mass, cargo, waypoints and thrust allocation
===============================================================================
"""
