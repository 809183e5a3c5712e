"""Cube-sphere coordinates: encoding directions as (face, x, y).

A direction is projected from the centre of the sphere onto the
circumscribed cube.  The axis with the largest magnitude picks the face,
and the other two components divided by that magnitude are the face
coordinates:

======  =======  ======  ======  =====================
face    through  x       y       nickname
======  =======  ======  ======  =====================
1       +X       +Y      +Z      Benin
2       +Y       +Z      +X      Bengal
3       +Z       +X      +Y      Arctic
4       −Z       +X      −Y      Antarctic
5       −Y       +Z      −X      Galápagos
6       −X       +Y      −Z      Howland
======  =======  ======  ======  =====================

Face 0 is the centre of the sphere and face 7 an undefined direction.

Points on the edge between two faces have two encodings.  The
:class:`EdgeRelation` of a pair of faces says which edge they share and
how the coordinate along that edge maps from one face to the other;
:func:`same_point`, :func:`same_edge` and :func:`move_to_face` are built
on it.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence, Tuple

import numpy as np

from .config import EARTH_RADIUS
from .exceptions import FaceAdjacencyError
from .models import Vball


VB_TOLERANCE = 20 * sys.float_info.epsilon
"""Same-face coordinate tolerance.  One epsilon is 0.7 nm at a face centre."""


# ═══════════════════════════════════════════════════════════════════
# Encoding and decoding directions
# ═══════════════════════════════════════════════════════════════════

def encode_dir(direction: Sequence[float]) -> Vball:
    """Encode a 3-D direction as a :class:`Vball`.

    The zero vector encodes as face 0.  A vector with a NaN component,
    or with more than one infinite component, encodes as face 7 with NaN
    coordinates.  Ties between axes go to z, then y.
    """
    dx, dy, dz = (float(c) for c in direction)
    absx, absy, absz = abs(dx), abs(dy), abs(dz)
    if absx == 0 and absy == 0 and absz == 0:
        return Vball(0, 0.0, 0.0)
    if (
        math.isnan(absx) or math.isnan(absy) or math.isnan(absz)
        or math.isinf(absx) + math.isinf(absy) + math.isinf(absz) > 1
    ):
        return Vball(7, math.nan, math.nan)

    if absz >= absx and absz >= absy:
        return Vball(3 if dz > 0 else 4, dx / absz, dy / dz)
    if absy >= absx:
        return Vball(2 if dy > 0 else 5, dz / absy, dx / dy)
    return Vball(1 if dx > 0 else 6, dy / absx, dz / dx)


def decode_dir(code: Vball, radius: float = EARTH_RADIUS) -> np.ndarray:
    """Return the point at *radius* in the direction encoded by *code*."""
    face = code.face & 7
    x, y = code.x, code.y
    if face == 0:
        return np.zeros(3)
    if face == 7:
        return np.full(3, np.nan)
    if face == 1:
        ret = np.array([1.0, x, y])
    elif face == 2:
        ret = np.array([y, 1.0, x])
    elif face == 3:
        ret = np.array([x, y, 1.0])
    elif face == 4:
        ret = np.array([x, -y, -1.0])
    elif face == 5:
        ret = np.array([-y, -1.0, x])
    else:
        ret = np.array([-1.0, x, -y])
    return ret * (radius / np.linalg.norm(ret))


def latlong_to_geocentric(lat: float, lon: float, radius: float = EARTH_RADIUS) -> np.ndarray:
    """Point on the spherical earth at latitude/longitude in degrees."""
    phi = math.radians(lat)
    lam = math.radians(lon)
    return radius * np.array([
        math.cos(phi) * math.cos(lam),
        math.cos(phi) * math.sin(lam),
        math.sin(phi),
    ])


def geocentric_to_latlong(point: Sequence[float]) -> Tuple[float, float]:
    """Latitude and longitude in degrees of a geocentric point."""
    x, y, z = (float(c) for c in point)
    return (math.degrees(math.atan2(z, math.hypot(x, y))), math.degrees(math.atan2(y, x)))


def encode_latlong(lat: float, lon: float) -> Vball:
    return encode_dir(latlong_to_geocentric(lat, lon, 1.0))


# ═══════════════════════════════════════════════════════════════════
# Face adjacency
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EdgeRule:
    """How a shared edge appears on two faces *a* and *b*.

    On face *a* the edge is where coordinate ``a_axis`` (0 = x, 1 = y)
    equals ``a_value``; likewise on *b*.  The other coordinate runs
    along the edge, and ``a_along == sign * b_along``.
    """

    a_axis: int
    a_value: float
    b_axis: int
    b_value: float
    sign: float


class EdgeRelation(Enum):
    """Relationship between the faces of two vballs."""

    CENTER = 0
    SAME_FACE = 66
    INCOMPATIBLE = 77
    E12 = 12
    E21 = 21
    E14 = 14
    E41 = 41
    E36 = 36
    E63 = 63
    E45 = 45
    E54 = 54

    @property
    def is_edge(self) -> bool:
        return self.value in _EDGE_RULES

    @property
    def rule(self) -> EdgeRule:
        return _EDGE_RULES[self.value]


_EDGE_RULES: Dict[int, EdgeRule] = {
    12: EdgeRule(0, 1.0, 1, 1.0, 1.0),
    21: EdgeRule(1, 1.0, 0, 1.0, 1.0),
    14: EdgeRule(1, -1.0, 0, 1.0, -1.0),
    41: EdgeRule(0, 1.0, 1, -1.0, -1.0),
    36: EdgeRule(0, -1.0, 1, -1.0, 1.0),
    63: EdgeRule(1, -1.0, 0, -1.0, 1.0),
    45: EdgeRule(1, 1.0, 0, -1.0, -1.0),
    54: EdgeRule(0, -1.0, 1, 1.0, -1.0),
}

_FACE_TABLE: Tuple[Tuple[int, ...], ...] = (
    (0, 77, 77, 77, 77, 77, 77, 77),
    (77, 66, 12, 21, 14, 36, 77, 77),
    (77, 21, 66, 12, 36, 77, 14, 77),
    (77, 12, 21, 66, 77, 14, 36, 77),
    (77, 41, 63, 77, 66, 45, 54, 77),
    (77, 63, 77, 41, 54, 66, 45, 77),
    (77, 77, 41, 63, 45, 54, 66, 77),
    (77, 77, 77, 77, 77, 77, 77, 77),
)


def face_adjacency(face_a: int, face_b: int) -> EdgeRelation:
    """Return the :class:`EdgeRelation` between two faces (0–7)."""
    return EdgeRelation(_FACE_TABLE[face_a & 7][face_b & 7])


def _coord(v: Vball, axis: int) -> float:
    return v.y if axis else v.x


def same_point(a: Vball, b: Vball) -> bool:
    """True if *a* and *b* encode the same direction.

    Points on one face compare within :data:`VB_TOLERANCE`.  Points on
    two adjacent faces must both lie exactly on the shared edge.
    """
    relation = face_adjacency(a.face, b.face)
    if relation is EdgeRelation.CENTER:
        return True
    if relation is EdgeRelation.SAME_FACE:
        return abs(a.x - b.x) < VB_TOLERANCE and abs(a.y - b.y) < VB_TOLERANCE
    if relation is EdgeRelation.INCOMPATIBLE:
        return False
    rule = relation.rule
    return (
        _coord(a, rule.a_axis) == rule.a_value
        and _coord(b, rule.b_axis) == rule.b_value
        and _coord(a, 1 - rule.a_axis) == rule.sign * _coord(b, 1 - rule.b_axis)
    )


def same_edge(a: Vball, b: Vball) -> bool:
    """True if *a* and *b* lie on a common line of the face grid.

    On one face that means they share an x or a y coordinate; on two
    adjacent faces it means both are on the edge the faces share.
    """
    relation = face_adjacency(a.face, b.face)
    if relation is EdgeRelation.CENTER:
        return True
    if relation is EdgeRelation.SAME_FACE:
        return a.x == b.x or a.y == b.y
    if relation is EdgeRelation.INCOMPATIBLE:
        return False
    rule = relation.rule
    return _coord(a, rule.a_axis) == rule.a_value and _coord(b, rule.b_axis) == rule.b_value


def move_to_face(v: Vball, face: int) -> Vball:
    """Re-express *v* on *face*.

    *v* must already be on *face* or on the edge *face* shares with
    ``v.face``; the result is only meaningful in those cases.
    """
    relation = face_adjacency(v.face, face)
    if relation is EdgeRelation.SAME_FACE:
        return v
    if not relation.is_edge:
        raise FaceAdjacencyError(v.face, face)
    rule = relation.rule
    along = rule.sign * _coord(v, 1 - rule.a_axis)
    if rule.b_axis == 0:
        return Vball(face, rule.b_value, along)
    return Vball(face, along, rule.b_value)


def switch_face(v: Vball) -> Vball:
    """Move a point on a face edge to the neighbouring face.

    A point not on any edge is returned unchanged.  At a corner the
    first matching neighbour in face order is used.
    """
    for face in range(1, 7):
        relation = face_adjacency(v.face, face)
        if relation.is_edge and _coord(v, relation.rule.a_axis) == relation.rule.a_value:
            return move_to_face(v, face)
    return v


# ═══════════════════════════════════════════════════════════════════
# Split levels
# ═══════════════════════════════════════════════════════════════════

def split_level(coord: float) -> int:
    """Number of times a face must be quartered to put *coord* on a grid line.

    ±1 are face edges (level 0) and 0 is the first split (level 1);
    otherwise a coordinate with *k* binary fraction digits is at level
    *k* + 1.  Non-finite coordinates return -1.
    """
    coord = float(coord)
    if not math.isfinite(coord):
        return -1
    if coord.is_integer():
        return int(coord == 0)
    _, denominator = abs(coord).as_integer_ratio()
    return denominator.bit_length()


def vball_split_level(v: Vball) -> int:
    return min(split_level(v.x), split_level(v.y))
