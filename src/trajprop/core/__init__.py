"""
===============================================================================
TRAJPROP - Core Package
===============================================================================
Shared building blocks with no physics of their own.

Modules:
    constants        : Physical constants, body data, engine tuning values
    frames           : Rotation matrices, RSW and spherical conversions
    exceptions       : Error taxonomy
    data_structures  : Propagator selector and the deferred-action queue
    config           : YAML loading, logging setup, object builders
===============================================================================
"""
