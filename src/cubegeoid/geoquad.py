"""Quadtree of geoid undulation over the faces of the cube.

Each :class:`Geoquad` covers a square of one cube face.  A node is
either a *leaf*, holding a biquadratic surface (or nothing, when the
undulation there is unknown), or *internal*, owning exactly four
children that tile its square:

    u(x, y) = (und0 + und1·x + und2·y + und3·x² + und4·x·y + und5·y²) / 65536

with *x*, *y* normalised to [-1, 1] across the node.  Children are
indexed by quadrant: bit 0 is set for the east half, bit 1 for the
north half.

A :class:`Cubemap` holds the six face roots.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import EARTH_RADIUS
from .cubesphere import decode_dir, encode_dir, latlong_to_geocentric
from .exceptions import GeoquadStateError
from .logging_config import get_logger
from .models import Vball

if TYPE_CHECKING:
    from .boundary import GBoundary


logger = get_logger("geoquad")

UND_SCALE = 65536
"""Coefficients are fixed-point with 16 fraction bits: one unit is 1/65536 m."""

MIN_UNDULATION = -11000.0
MAX_UNDULATION = 8850.0
"""Undulations outside this range (metres) mean "no data"."""

UNKNOWN_SENTINEL = -0x80000000
"""Out-of-range coefficient that stands for an unknown leaf on disk."""

HashPair = Tuple[int, int]
Point = Tuple[float, float]


class QuadState(Enum):
    UNKNOWN = "unknown"
    VALUE = "value"
    SUBDIVIDED = "subdivided"


@dataclass
class Leaf:
    """Leaf body.  *und* is ``None`` when the undulation is unknown."""

    und: Optional[Tuple[int, ...]] = None


@dataclass
class Internal:
    children: Tuple["Geoquad", "Geoquad", "Geoquad", "Geoquad"]


def _byteswap(n: int) -> int:
    return int.from_bytes((n & 0xFFFFFFFF).to_bytes(4, "big"), "little")


def _combine(words: Sequence[int], mul0: int, mul1: int) -> HashPair:
    h0 = h1 = 0
    n = len(words)
    for i in range(n):
        h0 = _byteswap(((h0 ^ (words[i] & 0xFFFFFFFF)) * mul0) & 0xFFFFFFFF)
        h1 = _byteswap(((h1 ^ (words[n - 1 - i] & 0xFFFFFFFF)) * mul1) & 0xFFFFFFFF)
    return (h0, h1)


def _check_coefficients(und: Sequence[int]) -> Tuple[int, ...]:
    if len(und) != 6:
        raise ValueError(f"A geoquad leaf has 6 coefficients, got {len(und)}")
    values = tuple(int(u) for u in und)
    for u in values:
        if not -0x80000000 < u <= 0x7FFFFFFF:
            raise ValueError(f"Coefficient {u} does not fit in 32 bits")
    return values


# ═══════════════════════════════════════════════════════════════════
# Geoquad
# ═══════════════════════════════════════════════════════════════════

class Geoquad:
    """A square of one cube face, as a quadtree node.

    *center* is in face coordinates and *scale* is the half-width, so
    the root of a face has center (0, 0) and scale 1.

    ``nums`` and ``nans`` hold face points found to have, or to lack,
    geoid data while the tree is being built.  They are moved to the
    children by :meth:`subdivide`.
    """

    def __init__(self, face: int = 0, center: Point = (0.0, 0.0), scale: float = 1.0) -> None:
        self.face = face
        self.center: Point = (float(center[0]), float(center[1]))
        self.scale = float(scale)
        self.nums: List[Point] = []
        self.nans: List[Point] = []
        self._body: Union[Leaf, Internal] = Leaf()

    # ── state ───────────────────────────────────────────────────────

    @property
    def state(self) -> QuadState:
        if isinstance(self._body, Internal):
            return QuadState.SUBDIVIDED
        return QuadState.UNKNOWN if self._body.und is None else QuadState.VALUE

    def is_subdivided(self) -> bool:
        return isinstance(self._body, Internal)

    def is_unknown(self) -> bool:
        """True for a leaf whose undulation is unknown."""
        return isinstance(self._body, Leaf) and self._body.und is None

    @property
    def children(self) -> Tuple["Geoquad", ...]:
        """The four children, or an empty tuple for a leaf."""
        if isinstance(self._body, Internal):
            return self._body.children
        return ()

    def child(self, quadrant: int) -> "Geoquad":
        if not isinstance(self._body, Internal):
            raise GeoquadStateError("take a child of", "a leaf")
        return self._body.children[quadrant]

    @property
    def und(self) -> Optional[Tuple[int, ...]]:
        """Leaf coefficients, or ``None`` if unknown or subdivided."""
        if isinstance(self._body, Leaf):
            return self._body.und
        return None

    @und.setter
    def und(self, value: Optional[Sequence[int]]) -> None:
        if value is None:
            self.mark_unknown()
        else:
            self.set_coefficients(value)

    def set_coefficients(self, und: Sequence[int]) -> None:
        """Give this leaf a biquadratic surface."""
        if isinstance(self._body, Internal):
            raise GeoquadStateError("set coefficients of", "subdivided")
        self._body = Leaf(_check_coefficients(und))

    def mark_unknown(self) -> None:
        if isinstance(self._body, Internal):
            raise GeoquadStateError("mark unknown", "subdivided")
        self._body = Leaf()

    # ── lifecycle ───────────────────────────────────────────────────

    def subdivide(self) -> None:
        """Split into four unknown leaves, handing samples to the children.

        No surface is fitted to the children.
        """
        if isinstance(self._body, Internal):
            raise GeoquadStateError("subdivide", "already subdivided")
        half = self.scale / 2
        cx, cy = self.center
        children = []
        for i in range(4):
            sub = Geoquad(
                self.face,
                (cx + (half if i & 1 else -half), cy + (half if i & 2 else -half)),
                half,
            )
            sub.nans = [p for p in self.nans if sub.contains(p)]
            sub.nums = [p for p in self.nums if sub.contains(p)]
            children.append(sub)
        self._body = Internal(tuple(children))
        self.nans = []
        self.nums = []

    def clear(self) -> None:
        """Drop children and samples, leaving an unknown leaf."""
        self._body = Leaf()
        self.nans = []
        self.nums = []

    # ── queries ─────────────────────────────────────────────────────

    def contains(self, point: Union[Vball, Point]) -> bool:
        """True if *point* is in ``[center - scale, center + scale)`` on both axes.

        The square is closed below and open above, so a point on the
        line between two siblings belongs to exactly one of them.  A
        :class:`Vball` must also be on this node's face.
        """
        if isinstance(point, Vball):
            if point.face != self.face:
                return False
            px, py = point.x, point.y
        else:
            px, py = point
        cx, cy = self.center
        return (
            cx - self.scale <= px < cx + self.scale
            and cy - self.scale <= py < cy + self.scale
        )

    __contains__ = contains

    def undulation(self, x: float, y: float) -> float:
        """Undulation in metres at (*x*, *y*) normalised to this node.

        Returns NaN where the undulation is unknown or out of range.
        """
        node = self
        while isinstance(node._body, Internal):
            xbit = 1 if x >= 0 else 0
            ybit = 1 if y >= 0 else 0
            x = 2 * (x - (xbit - 0.5))
            y = 2 * (y - (ybit - 0.5))
            node = node._body.children[(ybit << 1) | xbit]
        und = node._body.und
        if und is None:
            return math.nan
        u = (und[0] + und[1] * x + und[2] * y + und[3] * x * x + und[4] * x * y + und[5] * y * y) / UND_SCALE
        if u > MAX_UNDULATION or u < MIN_UNDULATION or math.isnan(u):
            return math.nan
        return u

    def isfull(self) -> int:
        """Classify the samples taken so far.

        Returns 1 if every sampled point has data, -1 if none has, and 0
        if the samples are mixed or there are none.
        """
        return (len(self.nums) > 0) - (len(self.nans) > 0)

    def hash(self) -> HashPair:
        """Order-sensitive fingerprint of the subtree, as two 32-bit words."""
        if isinstance(self._body, Internal):
            words: List[int] = []
            for sub in self._body.children:
                words.extend(sub.hash())
            return _combine(words, 1657, 6371)
        und = self._body.und
        if und is None:
            und = (UNKNOWN_SENTINEL, 0, 0, 0, 0, 0)
        return _combine(und, 99421, 47935)

    def depth(self) -> int:
        if isinstance(self._body, Internal):
            return 1 + max(sub.depth() for sub in self._body.children)
        return 0

    def leaves(self) -> Iterator["Geoquad"]:
        if isinstance(self._body, Internal):
            for sub in self._body.children:
                yield from sub.leaves()
        else:
            yield self

    def leaf_count(self) -> int:
        return sum(1 for _ in self.leaves())

    # ── geometry ────────────────────────────────────────────────────

    def vcenter(self) -> Vball:
        return Vball(self.face, self.center[0], self.center[1])

    def center_on_earth(self, radius: float = EARTH_RADIUS) -> np.ndarray:
        return decode_dir(self.vcenter(), radius)

    def _center_distance(self) -> float:
        return math.sqrt(self.center[0] ** 2 + self.center[1] ** 2 + 1)

    def length(self, radius: float = EARTH_RADIUS) -> float:
        """Approximate side length on the sphere, in metres."""
        return radius * 2 * self.scale / self._center_distance()

    def width(self, radius: float = EARTH_RADIUS) -> float:
        """Approximate size across the direction away from the face centre."""
        return radius * 2 * self.scale / self._center_distance() ** 2

    def apx_area(self, radius: float = EARTH_RADIUS) -> float:
        """Approximate area: 1.91× too big for a whole face, within 1% for small squares."""
        return self.length(radius) * self.width(radius)

    def area(self, radius: float = EARTH_RADIUS) -> float:
        """Exact area on the sphere, in square metres."""
        cx, cy = self.center
        s = self.scale

        def angle(x: float, y: float) -> float:
            return math.asin(x / math.sqrt(x * x + 1) * y / math.sqrt(y * y + 1))

        return (
            (angle(cx + s, cy + s) + angle(cx - s, cy - s))
            - (angle(cx - s, cy + s) + angle(cx + s, cy - s))
        ) * radius ** 2

    def gbounds(self) -> "GBoundary":
        """Boundary of the known part of this subtree.

        Every leaf whose centre undulation is in range contributes its
        square as a counter-clockwise loop; nothing is merged here.
        """
        from .boundary import G1Boundary, GBoundary

        ret = GBoundary()
        if isinstance(self._body, Internal):
            for sub in self._body.children:
                ret.extend(sub.gbounds())
        elif not math.isnan(self.undulation(0.0, 0.0)):
            cx, cy = self.center
            s = self.scale
            ret.append(G1Boundary([
                Vball(self.face, cx - s, cy - s),
                Vball(self.face, cx + s, cy - s),
                Vball(self.face, cx + s, cy + s),
                Vball(self.face, cx - s, cy + s),
            ]))
        return ret

    def __repr__(self) -> str:
        return (
            f"Geoquad(face={self.face}, center={self.center}, "
            f"scale={self.scale}, state={self.state.value})"
        )


# ═══════════════════════════════════════════════════════════════════
# Cube map
# ═══════════════════════════════════════════════════════════════════

class Cubemap:
    """The six geoquad roots, one per cube face."""

    def __init__(self, faces: Optional[Sequence[Geoquad]] = None) -> None:
        if faces is None:
            faces = [Geoquad(i + 1) for i in range(6)]
        if len(faces) != 6:
            raise ValueError(f"A cube map has 6 faces, got {len(faces)}")
        for i, quad in enumerate(faces):
            if quad.face != i + 1:
                raise ValueError(f"Face root {i} has face number {quad.face}, expected {i + 1}")
        self.faces: List[Geoquad] = list(faces)

    def face(self, number: int) -> Geoquad:
        """Root of face *number* (1–6)."""
        if not 1 <= number <= 6:
            raise KeyError(f"No cube face {number!r}")
        return self.faces[number - 1]

    def undulation(self, direction: Sequence[float]) -> float:
        """Undulation in the geocentric *direction*, NaN if unknown."""
        v = encode_dir(direction)
        if not v.is_defined():
            return math.nan
        return self.faces[v.face - 1].undulation(v.x, v.y)

    def undulation_latlong(self, lat: float, lon: float) -> float:
        return self.undulation(latlong_to_geocentric(lat, lon, 1.0))

    def hash(self) -> HashPair:
        words: List[int] = []
        for quad in self.faces:
            words.extend(quad.hash())
        return _combine(words, 1657, 6371)

    def depth(self) -> int:
        return max(quad.depth() for quad in self.faces)

    def leaf_count(self) -> int:
        return sum(quad.leaf_count() for quad in self.faces)

    def gbounds(self) -> "GBoundary":
        """Simplified boundary of the region where undulation is known."""
        from .boundary import GBoundary

        ret = GBoundary()
        for quad in self.faces:
            ret.extend(quad.gbounds())
        logger.debug("Simplifying %d leaf loops down from level %d", len(ret), self.depth())
        ret.simplify(self.depth())
        return ret

    def __repr__(self) -> str:
        return f"Cubemap(leaves={self.leaf_count()}, depth={self.depth()})"
