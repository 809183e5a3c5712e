"""Geometry helper functions used across the package.

Planar helpers work on sequences of ``(x, y)`` pairs; spherical helpers
work on ``(N, 3)`` arrays of geocentric points.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

import numpy as np


def pairwise_sum(values: Iterable[float]) -> float:
    """Sum floats with pairwise (cascade) summation."""
    arr = np.fromiter(values, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.sum(arr))


# ═══════════════════════════════════════════════════════════════════
# Planar polygons
# ═══════════════════════════════════════════════════════════════════

def signed_area_2d(points: Sequence[Tuple[float, float]]) -> float:
    """Signed area via the shoelace formula; positive when counter-clockwise."""
    if len(points) < 3:
        return 0.0
    xy = np.asarray(points, dtype=float)
    x = xy[:, 0]
    y = xy[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - y * np.roll(x, -1)))


def winding_number(point: Tuple[float, float], polygon: Sequence[Tuple[float, float]]) -> int:
    """Number of times *polygon* winds counter-clockwise around *point*."""
    px, py = point
    wn = 0
    n = len(polygon)
    for i in range(n):
        x1, y1 = polygon[i]
        x2, y2 = polygon[(i + 1) % n]
        is_left = (x2 - x1) * (py - y1) - (px - x1) * (y2 - y1)
        if y1 <= py:
            if y2 > py and is_left > 0:
                wn += 1
        elif y2 <= py and is_left < 0:
            wn -= 1
    return wn


# ═══════════════════════════════════════════════════════════════════
# Spherical polygons
# ═══════════════════════════════════════════════════════════════════

def great_circle_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Arc length between two points on a sphere centred at the origin."""
    radius = 0.5 * (np.linalg.norm(a) + np.linalg.norm(b))
    angle = math.atan2(float(np.linalg.norm(np.cross(a, b))), float(np.dot(a, b)))
    return float(radius * angle)


def densify_arc(a: np.ndarray, b: np.ndarray, max_angle: float) -> np.ndarray:
    """Points along the great-circle arc from *a* towards *b*, *b* excluded.

    Consecutive points are at most *max_angle* radians apart.
    """
    angle = math.atan2(float(np.linalg.norm(np.cross(a, b))), float(np.dot(a, b)))
    pieces = max(1, int(math.ceil(angle / max_angle)))
    radius = float(np.linalg.norm(a))
    t = np.arange(pieces)[:, None] / pieces
    chord = (1 - t) * a + t * b
    norms = np.linalg.norm(chord, axis=1, keepdims=True)
    return chord * (radius / np.where(norms == 0, 1.0, norms))


def surface_perimeter(points: np.ndarray) -> float:
    """Length of the closed great-circle path through *points*."""
    n = len(points)
    if n < 2:
        return 0.0
    return pairwise_sum(
        great_circle_distance(points[i], points[(i + 1) % n]) for i in range(n)
    )


def turning_angles(points: np.ndarray) -> np.ndarray:
    """Signed turn at each vertex of a closed great-circle path.

    Left turns, seen from outside the sphere, are positive.
    Zero-length edges contribute no turn.
    """
    unit = points / np.linalg.norm(points, axis=1, keepdims=True)
    prev = np.roll(unit, 1, axis=0)
    nxt = np.roll(unit, -1, axis=0)
    n1 = np.cross(prev, unit)
    n2 = np.cross(unit, nxt)
    sin_part = np.einsum("ij,ij->i", unit, np.cross(n1, n2))
    cos_part = np.einsum("ij,ij->i", n1, n2)
    return np.arctan2(sin_part, cos_part)


def spherical_polygon_area(points: np.ndarray) -> float:
    """Signed area of the region to the left of a closed great-circle path.

    By Gauss–Bonnet the area is ``R² (2π − Σ turns)``.  The result is
    reduced to ``(−2πR², 2πR²]`` so that a clockwise loop around a small
    hole comes out as a small negative area rather than almost the whole
    sphere.
    """
    n = len(points)
    if n < 3:
        return 0.0
    radius = float(np.mean(np.linalg.norm(points, axis=1)))
    sphere = 4 * math.pi * radius ** 2
    area = radius ** 2 * (2 * math.pi - pairwise_sum(turning_angles(points)))
    if area > sphere / 2:
        area -= sphere
    return area
