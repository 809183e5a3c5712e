"""Building a cubemap from a geoid data source.

A data source is two callables of (lat, lon) in degrees:

* ``has_data(lat, lon) -> bool`` says whether the source covers a point.
* ``undulation_fn(lat, lon) -> float`` gives the undulation in metres,
  NaN where there is no data.

Each face is *interrogated* on a lattice of points to find where the
source has data.  Squares that are partly covered are subdivided until
they are too small to be worth splitting, and each leaf is then given a
least-squares biquadratic fit of the undulation.

Usage
-----
>>> import math
>>> from cubegeoid.refine import build_cubemap
>>> from cubegeoid.config import COARSE
>>> cube = build_cubemap(lambda lat, lon: 30.0 * math.sin(math.radians(lat)), config=COARSE)
"""

from __future__ import annotations

import math
from typing import Callable, Optional

import numpy as np

from .config import DEFAULT, GeoidConfig
from .cubesphere import decode_dir, geocentric_to_latlong
from .geoquad import UND_SCALE, Cubemap, Geoquad
from .logging_config import get_logger
from .models import Vball

logger = get_logger("refine")

HasData = Callable[[float, float], bool]
UndulationFn = Callable[[float, float], float]


def _latlong(face: int, x: float, y: float):
    return geocentric_to_latlong(decode_dir(Vball(face, x, y), 1.0))


def _lattice_order(n: int) -> int:
    """A stride coprime with *n*, so stepping by it visits every index once
    while spreading early samples over the whole square.
    """
    stride = max(1, int(n * 0.6180339887))
    while math.gcd(stride, n) != 1:
        stride += 1
    return stride


# ═══════════════════════════════════════════════════════════════════
# Interrogation
# ═══════════════════════════════════════════════════════════════════

def interrogate(
    quad: Geoquad,
    has_data: HasData,
    spacing: float,
    config: GeoidConfig = DEFAULT,
) -> None:
    """Sample *quad* for the presence of data, filling ``nums`` and ``nans``.

    The lattice has one point per cell of roughly *spacing* metres.
    Sampling stops once at least one point with data and one without
    have been found; use :meth:`Geoquad.isfull` to read the result.
    """
    spacing = max(spacing, 1.0)
    per_side = max(1, int(math.ceil(quad.length(config.radius) / spacing)))
    per_side = min(per_side, int(math.isqrt(config.max_lattice_points)))
    total = per_side * per_side
    stride = _lattice_order(total)
    cell = 2 * quad.scale / per_side
    x0 = quad.center[0] - quad.scale
    y0 = quad.center[1] - quad.scale

    n = 0
    for _ in range(total):
        if quad.nums and quad.nans:
            break
        row, col = divmod(n, per_side)
        point = (x0 + (col + 0.5) * cell, y0 + (row + 0.5) * cell)
        if quad.contains(point):
            lat, lon = _latlong(quad.face, *point)
            if has_data(lat, lon):
                quad.nums.append(point)
            else:
                quad.nans.append(point)
        n = (n + stride) % total


# ═══════════════════════════════════════════════════════════════════
# Subdivision
# ═══════════════════════════════════════════════════════════════════

def refine(quad: Geoquad, has_data: HasData, config: GeoidConfig = DEFAULT) -> None:
    """Subdivide *quad* where it is partly covered by data.

    A square is interrogated if it has no samples yet, or if it looks
    uniform but has fewer samples than one per ``spacing ** 2``.  Mixed
    squares are split until their approximate area falls below
    ``sublimit ** 2``.
    """
    area = quad.apx_area(config.radius)
    if area < config.sublimit ** 2:
        return
    samples = len(quad.nums) + len(quad.nans)
    if samples == 0 or (quad.isfull() and area / samples > config.spacing ** 2):
        interrogate(quad, has_data, config.spacing, config)
    if quad.isfull() == 0:
        logger.debug("Subdividing %r", quad)
        quad.subdivide()
        for sub in quad.children:
            refine(sub, has_data, config)


# ═══════════════════════════════════════════════════════════════════
# Fitting
# ═══════════════════════════════════════════════════════════════════

def fit_biquadratic(quad: Geoquad, undulation_fn: UndulationFn, samples: int = 16) -> bool:
    """Least-squares fit of a leaf's six coefficients.

    The undulation is sampled on a *samples* × *samples* grid of cell
    centres.  If any sample is NaN the leaf is marked unknown.  Returns
    True if coefficients were set.
    """
    t = (np.arange(samples) + 0.5) / samples * 2 - 1
    u, v = np.meshgrid(t, t)
    u = u.ravel()
    v = v.ravel()
    cx, cy = quad.center
    values = np.array([
        undulation_fn(*_latlong(quad.face, cx + a * quad.scale, cy + b * quad.scale))
        for a, b in zip(u, v)
    ], dtype=float)
    if np.isnan(values).any():
        quad.mark_unknown()
        return False
    design = np.column_stack([np.ones_like(u), u, v, u * u, u * v, v * v])
    coefficients, *_ = np.linalg.lstsq(design, values * UND_SCALE, rcond=None)
    quad.set_coefficients([int(round(c)) for c in coefficients])
    return True


def fit_leaves(quad: Geoquad, undulation_fn: UndulationFn, config: GeoidConfig = DEFAULT) -> int:
    """Fit every leaf under *quad* that has data; returns how many were fitted."""
    fitted = 0
    for leaf in quad.leaves():
        if leaf.isfull() < 0:
            leaf.mark_unknown()
        elif fit_biquadratic(leaf, undulation_fn, config.fit_samples):
            fitted += 1
    return fitted


def build_cubemap(
    undulation_fn: UndulationFn,
    has_data: Optional[HasData] = None,
    config: GeoidConfig = DEFAULT,
) -> Cubemap:
    """Build a complete cubemap from a data source.

    When *has_data* is omitted a point has data if *undulation_fn* is
    finite there.
    """
    if has_data is None:
        def has_data(lat: float, lon: float) -> bool:
            return math.isfinite(undulation_fn(lat, lon))

    cube = Cubemap()
    for quad in cube.faces:
        interrogate(quad, has_data, config.spacing, config)
        logger.info("Face %d %s", quad.face, "has data" if quad.isfull() >= 0 else "is empty")
        refine(quad, has_data, config)
        fitted = fit_leaves(quad, undulation_fn, config)
        logger.debug("Face %d: %d leaves, %d fitted", quad.face, quad.leaf_count(), fitted)
    logger.info("Built cubemap: %d leaves, depth %d", cube.leaf_count(), cube.depth())
    return cube
