"""Physical constants in CGS: single source of truth for the codebase.

Values sourced from ``scipy.constants`` (CODATA 2018) and converted from SI.
"""

import scipy.constants as _sc

c = _sc.c * 1e2                         # Speed of light [cm/s]
LIGHT_SPEED = c

m_p = _sc.m_p * 1e3                     # Proton mass [g]
kpc = _sc.parsec * 1e3 * 1e2            # Kiloparsec [cm]
k_B = _sc.k * 1e7                       # Boltzmann constant [erg/K]
