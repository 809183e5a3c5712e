from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True, eq=False)
class Vball:
    """A direction encoded as a cube face and a point on that face.

    *face* is 1–6 for the cube faces, 0 for the centre of the sphere and
    7 for an undefined direction.  *x* and *y* lie in [-1, 1].

    Equality follows the face-adjacency rules of :mod:`cubesphere`: a
    point on the edge of one face equals the same point expressed on the
    neighbouring face.  That relation is not compatible with hashing, so
    vballs are unhashable.
    """

    face: int
    x: float = 0.0
    y: float = 0.0

    def xy(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def diag(self) -> float:
        """Coordinate along a face edge; one of x, y is ±1 there."""
        return self.x + self.y

    def is_defined(self) -> bool:
        return 1 <= self.face <= 6 and math.isfinite(self.x) and math.isfinite(self.y)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vball):
            return NotImplemented
        from .cubesphere import same_point
        return same_point(self, other)

    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class VSegment:
    """One edge of a boundary loop.  May cross from one face to another."""

    start: Vball
    end: Vball

    __hash__ = None  # type: ignore[assignment]

    def reversed(self) -> "VSegment":
        return VSegment(self.end, self.start)

    def crosses_faces(self) -> bool:
        return self.start.face != self.end.face

    def midpoint(self) -> Vball:
        """A point on the great-circle arc between the ends.

        Within one face this is the average of the face coordinates,
        which is on the arc but not exactly half way.  Across faces the
        ends are moved onto a common face when they lie on its edge;
        failing that the exact midpoint is computed in 3-D.
        """
        from .cubesphere import decode_dir, encode_dir, switch_face

        start, end = self.start, self.end
        for i in range(9):
            if start.face == end.face:
                break
            if i % 3:
                start = switch_face(start)
            else:
                end = switch_face(end)
        if start.face == end.face:
            return Vball(start.face, (start.x + end.x) / 2, (start.y + end.y) / 2)
        return encode_dir(decode_dir(start) + decode_dir(end))
