"""
===============================================================================
TRAJPROP - Guidance Package
===============================================================================
Where to thrust, and when a mission leg is complete.

Modules:
    waypoints     : Waypoint variants and their clearing conditions
    control_laws  : Locally optimal element-targeting thrust directions
    lambert       : Planning-time Lambert solver
===============================================================================
"""
