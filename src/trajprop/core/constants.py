"""
===============================================================================
TRAJPROP - Physical and Astronomical Constants
===============================================================================
Central repository for the constants used by the propagation engine.

Unlike most GNC tooling, the propagator works in kilometres, seconds and
kilograms (km, km/s, km^3/s^2) because interplanetary distances overflow
comfortable double-precision ranges in metres far less often than they
under-resolve in kilometres.  Thruster data sheets are in newtons and
seconds of specific impulse; conversions happen at the spacecraft boundary.

Body data follow the JPL planetary fact sheets and the approximate
Keplerian elements of Standish (JPL, 1800 AD - 2050 AD).
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
TWO_PI = 2.0 * np.pi
DEG2RAD = PI / 180.0
RAD2DEG = 180.0 / PI

# =============================================================================
# FUNDAMENTAL CONSTANTS
# =============================================================================
AU = 149597870.7                       # Astronomical Unit (km)
STANDARD_GRAVITY = 9.80665             # g0 for Isp conversion (m/s^2)
SECONDS_PER_DAY = 86400.0
DAYS_PER_CENTURY = 36525.0
J2000_JD = 2451545.0                   # Julian date of 2000-01-01 12:00 TT

# =============================================================================
# PROPAGATION DEFAULTS
# =============================================================================
STEP_SIZE = 10.0                       # Integration step (s)
ECCENTRICITY_EPS = 5e-5                # |e - 1| below which an orbit is parabolic
NU_SINGULAR_LIMIT = 1e-10              # true anomaly treated as exactly zero (rad)
COLLISION_RECOVERY_FACTOR = 1.01       # radius factor to report a revival
HISTORY_QUEUE_SIZE = 1000              # snapshot buffer between engine and sink
STATUS_PERIOD = 10.0                   # wall-clock status report period (s)

# =============================================================================
# SUN
# =============================================================================
SUN_MU = 1.32712440017987e11           # km^3/s^2
SUN_RADIUS = 695700.0                  # km

# =============================================================================
# VENUS
# =============================================================================
VENUS_MU = 3.24858599e5                # km^3/s^2
VENUS_RADIUS = 6051.8                  # km
VENUS_TILT = 117.36                    # deg
VENUS_SOI = 616000.0                   # km
VENUS_J2 = 4.458e-6

# =============================================================================
# EARTH
# =============================================================================
EARTH_MU = 3.98600433e5                # km^3/s^2
EARTH_RADIUS = 6378.1363               # equatorial radius (km)
EARTH_TILT = 23.4                      # obliquity of the ecliptic (deg)
EARTH_SOI = 924645.0                   # km
EARTH_J2 = 1.0826269e-3

# =============================================================================
# MARS
# =============================================================================
MARS_MU = 4.28283100e4                 # km^3/s^2
MARS_RADIUS = 3396.19                  # km
MARS_TILT = 25.19                      # deg
MARS_SOI = 576000.0                    # km
MARS_J2 = 1964e-6

# =============================================================================
# JUPITER
# =============================================================================
JUPITER_MU = 1.266865361e8             # km^3/s^2
JUPITER_RADIUS = 71492.0               # km
JUPITER_TILT = 3.13                    # deg
JUPITER_SOI = 4.82e7                   # km
JUPITER_J2 = 0.01475

# =============================================================================
# MEAN ORBITAL ELEMENTS (J2000 ecliptic, Standish 1800-2050)
# =============================================================================
# Each row: value at J2000, rate per Julian century.
# Columns: a (AU), e, I (deg), L (deg), long. perihelion (deg), long. node (deg)
VENUS_MEAN_ELEMENTS = (
    (0.72333566, 0.00000390),
    (0.00677672, -0.00004107),
    (3.39467605, -0.00078890),
    (181.97909950, 58517.81538729),
    (131.60246718, 0.00268329),
    (76.67984255, -0.27769418),
)

EARTH_MEAN_ELEMENTS = (
    (1.00000261, 0.00000562),
    (0.01671123, -0.00004392),
    (-0.00001531, -0.01294668),
    (100.46457166, 35999.37244981),
    (102.93768193, 0.32327364),
    (0.0, 0.0),
)

MARS_MEAN_ELEMENTS = (
    (1.52371034, 0.00001847),
    (0.09339410, 0.00007882),
    (1.84969142, -0.00813131),
    (-4.55343205, 19140.30268499),
    (-23.94362959, 0.44441088),
    (49.55953891, -0.29257343),
)

JUPITER_MEAN_ELEMENTS = (
    (5.20288700, -0.00011607),
    (0.04838624, -0.00013253),
    (1.30439695, -0.00183714),
    (34.39644051, 3034.74612775),
    (14.72847983, 0.21252668),
    (100.47390909, 0.20469106),
)
