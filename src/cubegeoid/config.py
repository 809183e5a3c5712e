"""Tuneable parameters for building and querying geoid cube maps.

Usage
-----
>>> from cubegeoid.config import GeoidConfig, DEFAULT
>>> cfg = GeoidConfig(spacing=5e4)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple


EARTH_RADIUS = 6371e3
"""Mean radius of the spherical earth, in metres."""

ARABIAN_SEA = (15.0, 65.0)
"""Default centre (lat, lon in degrees) of the flattening projection."""


# ═══════════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GeoidConfig:
    """All tuneable parameters for geoid conversion and boundary tests.

    Attributes
    ----------
    tolerance : float
        Conversion tolerance in metres, recorded in the file header.
    sublimit : float
        Subdivision limit in metres.  A geoquad that is partly with data
        and partly without is not subdivided once its approximate area
        is below ``sublimit ** 2``.
    spacing : float
        Size in metres of the smallest island or lacuna of data that
        interrogation should not miss.
    radius : float
        Radius of the sphere directions are scaled to.
    projection_center : tuple[float, float]
        (lat, lon) in degrees of the stereographic projection used to
        flatten boundaries for membership tests.
    fit_samples : int
        Points per side of the grid used when fitting a leaf's
        biquadratic surface.
    max_lattice_points : int
        Cap on interrogation points per geoquad.
    """

    tolerance: float = 0.01
    sublimit: float = 1e5
    spacing: float = 1e5
    radius: float = EARTH_RADIUS
    projection_center: Tuple[float, float] = ARABIAN_SEA
    fit_samples: int = 16
    max_lattice_points: int = 65536

    def __post_init__(self) -> None:
        if self.sublimit <= 0 or self.spacing <= 0:
            raise ValueError("sublimit and spacing must be positive")
        if self.fit_samples < 3:
            raise ValueError("fit_samples must be >= 3 to fit six coefficients")

    def with_overrides(self, **changes) -> "GeoidConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


# ═══════════════════════════════════════════════════════════════════
# Preset configs
# ═══════════════════════════════════════════════════════════════════

COARSE = GeoidConfig(tolerance=0.1, sublimit=1e6, spacing=5e5, fit_samples=8)
"""Fast, low-resolution conversion suitable for tests and previews."""

DEFAULT = GeoidConfig()
"""Values suited to whole-earth models."""

FINE = GeoidConfig(tolerance=0.001, sublimit=2e4, spacing=1e4)
"""Resolution suitable for regional geoid models."""
