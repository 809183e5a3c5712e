"""Tests for the region membership bitmask on GBoundary."""

from __future__ import annotations

import pytest

from cubegeoid.boundary import G1Boundary, GBoundary
from cubegeoid.config import GeoidConfig
from cubegeoid.cubesphere import latlong_to_geocentric
from cubegeoid.exceptions import BoundaryError
from cubegeoid.geoquad import UND_SCALE, Cubemap
from cubegeoid.models import Vball
from cubegeoid.projection import StereographicProjection


def _square(scale, face=3, ccw=True):
    corners = [
        Vball(face, -scale, -scale),
        Vball(face, scale, -scale),
        Vball(face, scale, scale),
        Vball(face, -scale, scale),
    ]
    return G1Boundary(corners if ccw else corners[::-1])


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def polar_cap():
    return GBoundary([_square(0.5)])


@pytest.fixture
def annulus():
    """Face 3 with a square hole around the pole."""
    return GBoundary([_square(1.0), _square(0.25, ccw=False)])


# ═══════════════════════════════════════════════════════════════════
# Single loops
# ═══════════════════════════════════════════════════════════════════


class TestSingleLoop:
    def test_inside(self, polar_cap):
        assert polar_cap.contains_latlong(89, 0) == 1

    def test_outside(self, polar_cap):
        assert polar_cap.contains_latlong(0, 0) == 0
        assert polar_cap.contains_latlong(-80, 20) == 0

    def test_vball_and_xyz(self, polar_cap):
        assert polar_cap.contains_vball(Vball(3, 0.0, 0.0)) == 1
        assert polar_cap.contains((0.0, 0.0, 6371e3)) == 1
        assert polar_cap.contains_vball(Vball(1, 0.0, 0.0)) == 0

    def test_hole_inverts(self):
        hole = GBoundary([_square(0.5, ccw=False)])
        assert hole.contains_latlong(89, 0) == 0
        assert hole.contains_latlong(0, 0) == 1

    def test_flatten_area_signs(self, annulus):
        flat = annulus.flatten()
        assert len(flat) == 2
        assert annulus._area_sign == [0, 1]


class TestLoopsAndHoles:
    def test_pole_is_in_the_hole(self, annulus):
        assert annulus.contains_latlong(90, 0) == 0b01
        assert not annulus.in_region((0.0, 0.0, 1.0))

    def test_ring_is_in_the_region(self, annulus):
        assert annulus.contains_latlong(60, 45) == 0b11
        assert annulus.in_region((0.35, 0.35, 0.87))

    def test_far_point(self, annulus):
        assert annulus.contains_latlong(0, 0) == 0b10


class TestCache:
    def test_append_invalidates(self, polar_cap):
        assert polar_cap.contains_latlong(0, 0) == 0
        polar_cap.append(_square(0.5, face=1))
        assert polar_cap.contains_latlong(0, 0) == 0b10

    def test_explicit_invalidate(self, polar_cap):
        polar_cap.flatten()
        polar_cap[0].clear()
        for v in _square(0.5, face=1):
            polar_cap[0].append(v)
        polar_cap.invalidate()
        assert polar_cap.contains_latlong(0, 0) == 1


class TestLimits:
    def test_too_many_loops(self):
        loops = []
        for i in range(33):
            c = -0.9 + i * 0.05
            loops.append(G1Boundary([
                Vball(3, c, 0.0), Vball(3, c + 0.01, 0.0),
                Vball(3, c + 0.01, 0.01), Vball(3, c, 0.01),
            ]))
        bdy = GBoundary(loops)
        with pytest.raises(BoundaryError):
            bdy.contains_latlong(90, 0)

    def test_thirty_two_loops_allowed(self):
        loops = [_square(0.5, face=(i % 3) + 1) for i in range(32)]
        bdy = GBoundary(loops)
        assert bdy.contains_latlong(90, 0) == sum(1 << i for i in range(32) if i % 3 == 2)


class TestProjectionChoice:
    def test_config_sets_projection(self):
        cfg = GeoidConfig(projection_center=(-30.0, 150.0))
        bdy = GBoundary([_square(0.5)], config=cfg)
        assert bdy.projection.center == (-30.0, 150.0)
        assert bdy.contains_latlong(89, 0) == 1

    def test_explicit_projection(self):
        proj = StereographicProjection((45.0, 0.0))
        bdy = GBoundary([_square(0.5)], projection=proj)
        assert bdy.projection is proj
        assert bdy.contains_latlong(89, 0) == 1

    def test_projection_centre_maps_to_origin(self):
        proj = StereographicProjection()
        x, y = proj.project(latlong_to_geocentric(*proj.center))
        assert x == pytest.approx(0, abs=1e-6)
        assert y == pytest.approx(0, abs=1e-6)


class TestCubemapRegion:
    def test_known_face(self):
        cube = Cubemap()
        cube.face(3).set_coefficients((UND_SCALE, 0, 0, 0, 0, 0))
        bdy = cube.gbounds()
        assert bdy.contains_latlong(80, 30) == 1
        assert bdy.contains_latlong(-80, 30) == 0

    @staticmethod
    def _region(*faces):
        cube = Cubemap()
        for face in faces:
            cube.face(face).set_coefficients((UND_SCALE, 0, 0, 0, 0, 0))
        return cube.gbounds()

    def test_merged_faces(self):
        bdy = self._region(3, 1)
        assert len(bdy) == 1
        for lat, lon in [(80, 30), (40, 0), (0, 0), (-30, 10)]:
            assert bdy.contains_latlong(lat, lon) == 1
            assert bdy.in_region(latlong_to_geocentric(lat, lon))
        for lat, lon in [(0, 90), (0, 180), (-80, 0)]:
            assert bdy.contains_latlong(lat, lon) == 0
            assert not bdy.in_region(latlong_to_geocentric(lat, lon))

    def test_two_islands(self):
        bdy = self._region(3, 4)
        assert len(bdy) == 2
        assert bdy.in_region(latlong_to_geocentric(80, 0))
        assert bdy.in_region(latlong_to_geocentric(-80, 0))
        assert not bdy.in_region(latlong_to_geocentric(0, 0))

    def test_empty_cube_has_no_region(self):
        bdy = Cubemap().gbounds()
        assert not bdy.in_region(latlong_to_geocentric(0, 0))
        assert not bdy.in_region((0.0, 0.0, 1.0))
