"""Exception classes for cubegeoid.

Geometric degeneracy and missing data are *not* errors here: they travel
as face-0 / face-7 vballs and NaN undulations.  The classes below cover
the remaining cases: broken invariants, merges that fail to converge
and malformed geoid files.
"""

from __future__ import annotations

from typing import Optional


# ═══════════════════════════════════════════════════════════════════
# Base exception
# ═══════════════════════════════════════════════════════════════════

class CubeGeoidError(Exception):
    """Base class for all cubegeoid errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        full_message = f"{message}\nDetails: {details}" if details else message
        super().__init__(full_message)


# ═══════════════════════════════════════════════════════════════════
# Structural errors
# ═══════════════════════════════════════════════════════════════════

class GeoquadStateError(CubeGeoidError):
    """A geoquad operation was called on a node in the wrong state."""

    def __init__(self, operation: str, state: str):
        super().__init__(f"Cannot {operation} a geoquad that is {state}")
        self.operation = operation
        self.state = state


class FaceAdjacencyError(CubeGeoidError):
    """Two faces have no shared edge, so a point cannot be moved between them."""

    def __init__(self, from_face: int, to_face: int):
        super().__init__(
            f"Face {from_face} does not share an edge with face {to_face}"
        )
        self.from_face = from_face
        self.to_face = to_face


class BoundaryError(CubeGeoidError):
    """A boundary operation was given an unusable loop collection."""


class ConvergenceError(CubeGeoidError):
    """A boundary merge or split kept finding work past its iteration budget."""

    def __init__(self, operation: str, level: int, budget: int):
        super().__init__(
            f"{operation} at level {level} did not converge",
            f"Exceeded budget of {budget} steps",
        )
        self.operation = operation
        self.level = level
        self.budget = budget


# ═══════════════════════════════════════════════════════════════════
# File format errors
# ═══════════════════════════════════════════════════════════════════

class GeoidFormatError(CubeGeoidError):
    """A geoid file failed one of the checks made while parsing it."""

    def __init__(self, check: str, offset: int, reason: Optional[str] = None):
        super().__init__(f"Geoid file failed check '{check}' at offset {offset:#x}", reason)
        self.check = check
        self.offset = offset
