"""cubegeoid — geoid undulation stored as quadtrees on the faces of a cube.

Public API is organised into layers:

- **Core** — cube-sphere codec, geoquad trees, cube maps
- **Boundaries** — loops and regions on the cube-sphere, membership tests
- **Conversion** — building a cube map from a data source
- **I/O** — the ``boldatni`` binary geoid format
"""

# ── Core ────────────────────────────────────────────────────────────
from .models import Vball, VSegment
from .cubesphere import (
    EdgeRelation,
    decode_dir,
    encode_dir,
    encode_latlong,
    face_adjacency,
    geocentric_to_latlong,
    latlong_to_geocentric,
    move_to_face,
    same_edge,
    same_point,
    split_level,
    switch_face,
)
from .geoquad import Cubemap, Geoquad, QuadState

# ── Boundaries ──────────────────────────────────────────────────────
from .boundary import G1Boundary, GBoundary, overlap, segment_split_level
from .projection import StereographicProjection

# ── Conversion ──────────────────────────────────────────────────────
from .config import COARSE, DEFAULT, FINE, GeoidConfig
from .refine import build_cubemap, fit_biquadratic, interrogate, refine

# ── I/O ─────────────────────────────────────────────────────────────
from .io import GeoidHeader, dumps, loads, read_geoid, write_geoid

# ── Errors and logging ──────────────────────────────────────────────
from .exceptions import (
    BoundaryError,
    ConvergenceError,
    CubeGeoidError,
    FaceAdjacencyError,
    GeoidFormatError,
    GeoquadStateError,
)
from .logging_config import get_logger, set_log_level, setup_logging

__all__ = [
    # Core
    "Vball",
    "VSegment",
    "EdgeRelation",
    "decode_dir",
    "encode_dir",
    "encode_latlong",
    "face_adjacency",
    "geocentric_to_latlong",
    "latlong_to_geocentric",
    "move_to_face",
    "same_edge",
    "same_point",
    "split_level",
    "switch_face",
    "Cubemap",
    "Geoquad",
    "QuadState",
    # Boundaries
    "G1Boundary",
    "GBoundary",
    "overlap",
    "segment_split_level",
    "StereographicProjection",
    # Conversion
    "GeoidConfig",
    "COARSE",
    "DEFAULT",
    "FINE",
    "build_cubemap",
    "fit_biquadratic",
    "interrogate",
    "refine",
    # I/O
    "GeoidHeader",
    "dumps",
    "loads",
    "read_geoid",
    "write_geoid",
    # Errors and logging
    "CubeGeoidError",
    "GeoquadStateError",
    "FaceAdjacencyError",
    "BoundaryError",
    "ConvergenceError",
    "GeoidFormatError",
    "setup_logging",
    "get_logger",
    "set_log_level",
]
