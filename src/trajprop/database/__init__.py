"""
===============================================================================
TRAJPROP - Database Module
===============================================================================
SQLite-backed storage of mission histories with a pandas interface.

Submodules:
    telemetry_db -- TelemetryDatabase class for all database operations
===============================================================================
"""
