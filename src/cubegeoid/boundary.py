"""Region boundaries on the cube-sphere.

A :class:`G1Boundary` is one closed loop of vertices.  A loop built from
a geoquad runs counter-clockwise seen from outside the sphere; a
clockwise loop is the boundary of a hole.  A :class:`GBoundary` is a
set of loops that together bound a region.

The boundary of a cubemap's data region starts as one square loop per
leaf with data.  :meth:`GBoundary.simplify` merges squares that share
an edge, splits off pieces that touch themselves and removes the
redundant vertices left behind, working from the finest grid level to
the face edges.
"""

from __future__ import annotations

import math
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .config import EARTH_RADIUS, GeoidConfig
from .cubesphere import (
    decode_dir,
    face_adjacency,
    latlong_to_geocentric,
    move_to_face,
    same_edge,
    split_level,
)
from .exceptions import BoundaryError, ConvergenceError
from .geometry import (
    densify_arc,
    pairwise_sum,
    signed_area_2d,
    spherical_polygon_area,
    surface_perimeter,
    winding_number,
)
from .logging_config import get_logger
from .models import Vball, VSegment
from .projection import StereographicProjection

logger = get_logger("boundary")

MAX_LOOPS = 32
"""Loops beyond this cannot be reported in a membership bitmask."""

FLATTEN_STEP = math.radians(1.0)
"""Longest great-circle step between flattened vertices."""


# ═══════════════════════════════════════════════════════════════════
# Segments
# ═══════════════════════════════════════════════════════════════════

def segment_split_level(seg: VSegment) -> int:
    """Grid level of the line *seg* lies on, or -1 if it is on no grid line.

    A segment within one face lies on the line of its common x (checked
    first) or common y coordinate.  A segment between two faces lies on
    a face edge (level 0) if both ends are on the shared edge.
    """
    start, end = seg.start, seg.end
    if start.face == end.face:
        if start.x == end.x:
            return split_level(start.x)
        if start.y == end.y:
            return split_level(start.y)
        return -1
    if same_edge(start, end):
        return 0
    return -1


def overlap(a: VSegment, b: VSegment) -> bool:
    """True if *a* and *b* lie on one grid line, run opposite ways and overlap.

    Segments that merely touch at an end do not overlap.  Two segments
    that are exact reverses of each other always do, which also makes a
    null segment overlap another null segment at the same point.
    """
    result = False
    if (
        same_edge(a.start, b.start)
        and same_edge(a.start, b.end)
        and same_edge(a.end, b.start)
        and same_edge(a.end, b.end)
        and _all_on_face(a.start.face, (a.end, b.start, b.end))
    ):
        face = a.start.face
        a0 = a.start.diag()
        a1 = move_to_face(a.end, face).diag()
        b0 = move_to_face(b.start, face).diag()
        b1 = move_to_face(b.end, face).diag()
        result = abs(a0 - a1) + abs(b0 - b1) > abs(a0 - b1) + abs(b0 - a1)
    return result or (a.start == b.end and b.start == a.end)


def _all_on_face(face: int, points: Iterable[Vball]) -> bool:
    """True if every point can be re-expressed on *face*."""
    for v in points:
        relation = face_adjacency(v.face, face)
        if not (relation.is_edge or v.face == face):
            return False
    return True


# ═══════════════════════════════════════════════════════════════════
# One loop
# ═══════════════════════════════════════════════════════════════════

class G1Boundary:
    """A closed loop of vertices; segment *i* runs from vertex *i* to *i* + 1.

    Vertex and segment indices wrap around, so ``loop[-1]`` is the last
    vertex and ``loop.seg(-1)`` the segment that closes the loop.
    """

    def __init__(self, vertices: Iterable[Vball] = (), inner: bool = False) -> None:
        self._bdy: List[Vball] = list(vertices)
        self.inner = inner

    # ── container protocol ─────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._bdy)

    def __iter__(self) -> Iterator[Vball]:
        return iter(self._bdy)

    def __getitem__(self, n: int) -> Vball:
        if not self._bdy:
            raise IndexError("vertex index into an empty loop")
        return self._bdy[n % len(self._bdy)]

    def __eq__(self, other: object) -> bool:
        """Vertex-by-vertex equality; a rotated copy of a loop is not equal."""
        if not isinstance(other, G1Boundary):
            return NotImplemented
        return len(self._bdy) == len(other._bdy) and all(
            a == b for a, b in zip(self._bdy, other._bdy)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"G1Boundary({len(self._bdy)} vertices, inner={self.inner})"

    @property
    def vertices(self) -> List[Vball]:
        return list(self._bdy)

    def is_empty(self) -> bool:
        return not self._bdy

    def append(self, v: Vball) -> None:
        self._bdy.append(v)

    def clear(self) -> None:
        self._bdy = []

    def copy(self) -> "G1Boundary":
        return G1Boundary(self._bdy, self.inner)

    # ── segments ───────────────────────────────────────────────────

    def seg(self, n: int) -> VSegment:
        if not self._bdy:
            raise IndexError("segment index into an empty loop")
        size = len(self._bdy)
        n %= size
        return VSegment(self._bdy[n], self._bdy[(n + 1) % size])

    def segments(self) -> List[VSegment]:
        return [self.seg(i) for i in range(len(self._bdy))]

    def segments_at_level(self, level: int) -> List[int]:
        """Indices of segments on grid lines of *level*; all of them if negative."""
        return [
            i for i in range(len(self._bdy))
            if level < 0 or segment_split_level(self.seg(i)) == level
        ]

    def null_segments(self) -> List[int]:
        """Indices of segments whose ends are the same point."""
        ret = []
        for i in range(len(self._bdy)):
            s = self.seg(i)
            if s.start == s.end:
                ret.append(i)
        return ret

    # ── surgery ────────────────────────────────────────────────────

    def position_segment(self, n: int) -> None:
        """Rotate the loop so segment *n* becomes the closing segment.

        Vertex *n* ends up last and vertex *n* + 1 first; the cyclic
        order is unchanged.
        """
        if not self._bdy:
            return
        m = (n + 1) % len(self._bdy)
        self._bdy = self._bdy[m:] + self._bdy[:m]

    def split(self, n: int, other: "G1Boundary") -> None:
        """Move vertices *n* to the end into *other*, replacing its contents."""
        if not self._bdy:
            other._bdy = []
            return
        n %= len(self._bdy)
        other._bdy = self._bdy[n:]
        self._bdy = self._bdy[:n]

    def split_at(self, m: int, n: int, other: "G1Boundary") -> None:
        """Cut the loop at segments *m* and *n*, leaving two closed loops.

        The vertices from *m* + 1 around to *n* stay here; the rest go
        to *other*.
        """
        self.position_segment(m)
        self.split(n - m, other)

    def splice(self, other: "G1Boundary") -> None:
        """Append the vertices of *other* to this loop and empty *other*."""
        if other is self:
            raise BoundaryError("cannot splice a loop into itself")
        self._bdy.extend(other._bdy)
        other._bdy = []

    def splice_at(self, m: int, other: "G1Boundary", n: int) -> None:
        """Join *other* into this loop by cutting segment *m* here and *n* there.

        When the two segments are the same line traversed in opposite
        directions, the joined loop encloses the union of both regions.
        """
        self.position_segment(m)
        other.position_segment(n)
        self.splice(other)

    def halve(self, n: int) -> None:
        """Insert the midpoint of segment *n* between its ends."""
        self.position_segment(n)
        self._bdy.append(self.seg(-1).midpoint())

    # ── cleanup ────────────────────────────────────────────────────

    def _delete_middles(self, redundant) -> None:
        found = True
        while found:
            found = False
            size = len(self._bdy)
            for i in range(size):
                a = self._bdy[i]
                b = self._bdy[(i + 1) % size]
                c = self._bdy[(i + 2) % size]
                if redundant(a, b, c):
                    del self._bdy[(i + 1) % size]
                    found = True
                    break

    def delete_collinear(self) -> None:
        """Remove vertices in the middle of a straight run along a grid line.

        A loop whose vertices all lie on one grid line shrinks to nothing.
        """
        self._delete_middles(
            lambda a, b, c: same_edge(a, b) and same_edge(b, c) and same_edge(c, a)
        )

    def delete_retrace(self) -> None:
        """Remove spikes where the loop doubles back on itself, and repeats."""
        self._delete_middles(lambda a, b, c: a == c or a == b or b == c)

    def delete_null_segments(self) -> None:
        scratch = G1Boundary()
        while True:
            nulls = self.null_segments()
            if not nulls:
                break
            self.split_at(nulls[0] + 1, nulls[0], scratch)

    # ── measurement ────────────────────────────────────────────────

    def surface_corners(self, radius: float = EARTH_RADIUS) -> np.ndarray:
        """Geocentric points of the vertices, shape (N, 3)."""
        if not self._bdy:
            return np.zeros((0, 3))
        return np.array([decode_dir(v, radius) for v in self._bdy])

    def surface_midpoints(self, radius: float = EARTH_RADIUS) -> np.ndarray:
        """Geocentric points half way along each segment."""
        corners = self.surface_corners(radius)
        if len(corners) == 0:
            return corners
        sums = corners + np.roll(corners, -1, axis=0)
        norms = np.linalg.norm(sums, axis=1, keepdims=True)
        return sums * (radius / norms)

    def area(self, radius: float = EARTH_RADIUS) -> float:
        """Signed area on the sphere; negative for a clockwise loop."""
        return spherical_polygon_area(self.surface_corners(radius))

    def perimeter(self, midpoints: bool = False, radius: float = EARTH_RADIUS) -> float:
        points = self.surface_midpoints(radius) if midpoints else self.surface_corners(radius)
        return surface_perimeter(points)

    def cube_area(self) -> float:
        """Signed area in face coordinates, ignoring faces.  Meaningful for
        loops that stay on one face.
        """
        return signed_area_2d([v.xy() for v in self._bdy])


# ═══════════════════════════════════════════════════════════════════
# A region
# ═══════════════════════════════════════════════════════════════════

class GBoundary:
    """The boundary of a region: a list of loops.

    Point membership is answered against a flattened copy of the loops
    made with a stereographic projection.  The flattened copy is rebuilt
    after any change made through this class; call :meth:`invalidate`
    after editing a loop obtained by indexing.
    """

    def __init__(
        self,
        loops: Iterable[G1Boundary] = (),
        projection: Optional[StereographicProjection] = None,
        config: Optional[GeoidConfig] = None,
    ) -> None:
        self._loops: List[G1Boundary] = list(loops)
        if projection is None:
            if config is not None:
                projection = StereographicProjection(config.projection_center, config.radius)
            else:
                projection = StereographicProjection()
        self.projection = projection
        self._flat: Optional[List[List[Tuple[float, float]]]] = None
        self._area_sign: List[int] = []

    # ── container protocol ─────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._loops)

    def __iter__(self) -> Iterator[G1Boundary]:
        return iter(self._loops)

    def __getitem__(self, n: int) -> G1Boundary:
        return self._loops[n]

    def __add__(self, other: "GBoundary") -> "GBoundary":
        ret = GBoundary((loop.copy() for loop in self._loops), self.projection)
        ret.extend(loop.copy() for loop in other)
        return ret

    def __repr__(self) -> str:
        return f"GBoundary({len(self._loops)} loops, {self.total_segments()} segments)"

    def invalidate(self) -> None:
        self._flat = None

    def append(self, loop: G1Boundary) -> None:
        self._loops.append(loop)
        self.invalidate()

    def extend(self, loops: Iterable[G1Boundary]) -> None:
        self._loops.extend(loops)
        self.invalidate()

    def clear(self) -> None:
        self._loops = []
        self.invalidate()

    def erase(self, n: int) -> None:
        """Remove loop *n* by moving the last loop into its place."""
        last = len(self._loops) - 1
        if not 0 <= n <= last:
            raise IndexError(f"loop index {n} out of range")
        self._loops[n] = self._loops[last]
        self._loops.pop()
        self.invalidate()

    def set_inner(self, n: int, inner: bool) -> None:
        self._loops[n].inner = inner

    def total_segments(self) -> int:
        return sum(len(loop) for loop in self._loops)

    def seg(self, n: int) -> VSegment:
        """Segment *n* counting through all loops in order."""
        if n >= 0:
            for loop in self._loops:
                if n < len(loop):
                    return loop.seg(n)
                n -= len(loop)
        raise IndexError("segment index out of range")

    # ── simplification ─────────────────────────────────────────────

    @staticmethod
    def _find_overlap(
        a: G1Boundary, asegs: List[int], b: G1Boundary, level: int,
    ) -> Optional[Tuple[int, int]]:
        bsegs = b.segments_at_level(level)
        if not bsegs:
            return None
        for m in asegs:
            sa = a.seg(m)
            for n in bsegs:
                if overlap(sa, b.seg(n)):
                    return (m, n)
        return None

    def consolidate(self, level: int) -> None:
        """Merge loops that share a stretch of a grid line at *level*.

        Passes over all loop pairs repeat until one finds nothing to
        merge.  Each merge empties one loop, so no more than one pass
        per loop can merge anything; running past that raises
        :class:`ConvergenceError`.  Emptied loops stay in place until
        :meth:`delete_empty`.
        """
        budget = len(self._loops)
        merges = 0
        passes = 0
        changed = True
        while changed:
            changed = False
            if passes > budget:
                raise ConvergenceError("consolidate", level, budget)
            passes += 1
            for i, a in enumerate(self._loops):
                if a.is_empty():
                    continue
                asegs = a.segments_at_level(level)
                for b in self._loops[i + 1:]:
                    if b.is_empty():
                        continue
                    found = self._find_overlap(a, asegs, b, level)
                    if found is None:
                        continue
                    a.splice_at(found[0], b, found[1])
                    asegs = a.segments_at_level(level)
                    merges += 1
                    changed = True
        if merges:
            logger.debug("consolidate level %d: %d merges in %d passes", level, merges, passes)
            self.invalidate()

    def splitoff(self, level: int) -> None:
        """Split loops that touch themselves along a grid line at *level*.

        The pieces are appended as new loops.  Each split leaves two
        non-empty loops, so there are fewer splits than vertices.
        """
        budget = self.total_segments()
        splits = 0
        i = 0
        while i < len(self._loops):
            loop = self._loops[i]
            while True:
                found = self._find_self_overlap(loop, level)
                if found is None:
                    break
                piece = G1Boundary(inner=loop.inner)
                loop.split_at(found[0], found[1], piece)
                self._loops.append(piece)
                splits += 1
                if splits > budget:
                    raise ConvergenceError("splitoff", level, budget)
            i += 1
        if splits:
            logger.debug("splitoff level %d: %d splits", level, splits)
            self.invalidate()

    @staticmethod
    def _find_self_overlap(loop: G1Boundary, level: int) -> Optional[Tuple[int, int]]:
        indices = loop.segments_at_level(level)
        for j in range(len(indices)):
            sj = loop.seg(indices[j])
            for k in range(j):
                if overlap(sj, loop.seg(indices[k])):
                    return (indices[j], indices[k])
        return None

    def delete_collinear(self) -> None:
        for loop in self._loops:
            loop.delete_collinear()
        self.invalidate()

    def delete_retrace(self) -> None:
        for loop in self._loops:
            loop.delete_retrace()
        self.invalidate()

    def delete_null_segments(self) -> None:
        for loop in self._loops:
            loop.delete_null_segments()
        self.invalidate()

    def delete_empty(self) -> None:
        """Drop empty loops.  Non-empty loops may change order."""
        i, j = 0, len(self._loops) - 1
        while i <= j:
            while i < len(self._loops) and not self._loops[i].is_empty():
                i += 1
            while j >= 0 and self._loops[j].is_empty():
                j -= 1
            if i < j:
                self._loops[i], self._loops[j] = self._loops[j], self._loops[i]
        del self._loops[i:]
        self.invalidate()

    def simplify(self, max_level: int) -> None:
        """Reduce the boundary level by level, from *max_level* down to 0."""
        before = len(self._loops)
        for level in range(max_level, -1, -1):
            self.consolidate(level)
            self.splitoff(level)
            self.delete_collinear()
            self.delete_retrace()
            self.delete_null_segments()
            self.delete_empty()
        logger.debug(
            "simplified %d loops to %d (%d segments)",
            before, len(self._loops), self.total_segments(),
        )
        if len(self._loops) > MAX_LOOPS:
            logger.warning(
                "boundary has %d loops; membership tests need at most %d",
                len(self._loops), MAX_LOOPS,
            )

    # ── measurement ────────────────────────────────────────────────

    def area(self, radius: float = EARTH_RADIUS) -> float:
        """Area of the region; holes count negative."""
        return pairwise_sum(loop.area(radius) for loop in self._loops)

    def perimeter(self, midpoints: bool = False, radius: float = EARTH_RADIUS) -> float:
        return pairwise_sum(loop.perimeter(midpoints, radius) for loop in self._loops)

    def cube_area(self) -> float:
        return pairwise_sum(loop.cube_area() for loop in self._loops)

    # ── membership ─────────────────────────────────────────────────

    def _flatten_loop(self, loop: G1Boundary) -> List[Tuple[float, float]]:
        corners = loop.surface_corners(1.0)
        n = len(corners)
        if n == 0:
            return []
        pieces = [densify_arc(corners[i], corners[(i + 1) % n], FLATTEN_STEP) for i in range(n)]
        return self.projection.project_many(np.concatenate(pieces))

    def flatten(self) -> List[List[Tuple[float, float]]]:
        """Plane polygons for the loops, rebuilding them if out of date."""
        if self._flat is None or len(self._flat) != len(self._loops):
            self._flat = [self._flatten_loop(loop) for loop in self._loops]
            self._area_sign = [1 if signed_area_2d(poly) < 0 else 0 for poly in self._flat]
        return self._flat

    def contains(self, point: Sequence[float]) -> int:
        """Bitmask of the loops that contain a geocentric *point*.

        Bit *i* is set if the point is inside loop *i*; for a clockwise
        loop (a hole) that means outside the hole.  See :meth:`in_region`
        for combining the bits.
        """
        if len(self._loops) > MAX_LOOPS:
            raise BoundaryError(
                f"membership is limited to {MAX_LOOPS} loops, boundary has {len(self._loops)}"
            )
        flat = self.flatten()
        p = self.projection.project(point)
        ret = 0
        for i, (poly, sign) in enumerate(zip(flat, self._area_sign)):
            if winding_number(p, poly) + sign > 0.5:
                ret |= 1 << i
        return ret

    def contains_latlong(self, lat: float, lon: float) -> int:
        return self.contains(latlong_to_geocentric(lat, lon, 1.0))

    def contains_vball(self, v: Vball) -> int:
        return self.contains(decode_dir(v, 1.0))

    def in_region(self, point: Sequence[float]) -> bool:
        """True if *point* is inside some outer loop and outside every hole.

        An empty boundary has no region, so nothing is inside it.
        """
        if not self._loops:
            return False
        mask = self.contains(point)
        holes = 0
        for i, loop in enumerate(self._loops):
            if loop.area(1.0) < 0:
                holes |= 1 << i
        return bool(mask & ~holes) and mask & holes == holes
