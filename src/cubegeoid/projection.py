"""Stereographic projection used to flatten boundary loops.

The projection is conformal and keeps orientation, so a loop that runs
counter-clockwise on the sphere (seen from outside) stays
counter-clockwise in the plane as long as it does not surround the
antipode of the projection centre.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

from .config import ARABIAN_SEA, EARTH_RADIUS
from .cubesphere import latlong_to_geocentric


@dataclass(frozen=True)
class StereographicProjection:
    """Sphere-to-plane projection centred on *center* = (lat, lon) in degrees.

    Plane axes point east and north at the centre; distances are in the
    units of *radius*.
    """

    center: Tuple[float, float] = ARABIAN_SEA
    radius: float = EARTH_RADIUS
    _basis: Tuple[np.ndarray, np.ndarray, np.ndarray] = field(
        init=False, repr=False, compare=False,
    )

    def __post_init__(self) -> None:
        up = latlong_to_geocentric(self.center[0], self.center[1], 1.0)
        pole = np.array([0.0, 0.0, 1.0])
        east = np.cross(pole, up)
        if np.linalg.norm(east) < 1e-12:
            east = np.array([0.0, 1.0, 0.0])
        east = east / np.linalg.norm(east)
        north = np.cross(up, east)
        object.__setattr__(self, "_basis", (up, east, north))

    def project(self, point: Sequence[float]) -> Tuple[float, float]:
        """Project a geocentric point (any distance from the centre)."""
        up, east, north = self._basis
        p = np.asarray(point, dtype=float)
        p = p / np.linalg.norm(p)
        denominator = 1 + float(np.dot(p, up))
        if denominator <= 0:
            return (math.inf, math.inf)
        scale = 2 * self.radius / denominator
        return (scale * float(np.dot(p, east)), scale * float(np.dot(p, north)))

    def project_many(self, points: np.ndarray) -> List[Tuple[float, float]]:
        return [self.project(p) for p in points]
