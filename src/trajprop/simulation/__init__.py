"""
===============================================================================
TRAJPROP - Simulation Package
===============================================================================
Modules:
    integrator  : Fixed-step RK4 over the Integrable contract
    mission     : Propagation engine (Mission)
    history     : Asynchronous, bounded mission-history sink
===============================================================================
"""
