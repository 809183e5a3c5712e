"""Tests for geoquad.py — quadtree nodes and the six-face cube map."""

from __future__ import annotations

import math

import numpy as np
import pytest

from cubegeoid.config import EARTH_RADIUS
from cubegeoid.exceptions import GeoquadStateError
from cubegeoid.geoquad import UND_SCALE, Cubemap, Geoquad, QuadState
from cubegeoid.models import Vball


def _const(metres: float):
    return (int(metres * UND_SCALE), 0, 0, 0, 0, 0)


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def root():
    return Geoquad(3)


@pytest.fixture
def split_root():
    quad = Geoquad(3)
    quad.subdivide()
    return quad


# ═══════════════════════════════════════════════════════════════════
# State
# ═══════════════════════════════════════════════════════════════════


class TestUnknownRoot:
    def test_state(self, root):
        assert root.state is QuadState.UNKNOWN
        assert root.is_unknown()
        assert not root.is_subdivided()
        assert root.und is None

    def test_isfull_without_samples(self, root):
        assert root.isfull() == 0

    def test_undulation_is_nan(self, root):
        assert math.isnan(root.undulation(0.0, 0.0))

    def test_no_boundary(self, root):
        assert len(root.gbounds()) == 0


class TestCoefficients:
    def test_centre_undulation_is_first_coefficient(self, root):
        root.set_coefficients((123456, 7, -8, 9, 10, -11))
        assert root.undulation(0.0, 0.0) == 123456 / UND_SCALE
        assert root.state is QuadState.VALUE

    def test_linear_term(self, root):
        root.set_coefficients((0, UND_SCALE, 0, 0, 0, 0))
        assert root.undulation(0.5, 0.0) == pytest.approx(0.5)
        assert root.undulation(-1.0, 0.7) == pytest.approx(-1.0)

    def test_out_of_range_is_nan(self, root):
        root.set_coefficients(_const(9000))
        assert math.isnan(root.undulation(0.0, 0.0))
        root.set_coefficients(_const(-11500))
        assert math.isnan(root.undulation(0.0, 0.0))

    def test_wrong_length_rejected(self, root):
        with pytest.raises(ValueError):
            root.set_coefficients((1, 2, 3))

    def test_sentinel_value_rejected(self, root):
        with pytest.raises(ValueError):
            root.set_coefficients((-0x80000000, 0, 0, 0, 0, 0))

    def test_und_property(self, root):
        root.und = _const(4)
        assert root.und == _const(4)
        root.und = None
        assert root.is_unknown()


# ═══════════════════════════════════════════════════════════════════
# Subdivision
# ═══════════════════════════════════════════════════════════════════


class TestSubdivide:
    def test_four_children(self, split_root):
        assert split_root.is_subdivided()
        assert split_root.state is QuadState.SUBDIVIDED
        assert len(split_root.children) == 4
        for child in split_root.children:
            assert child.scale == 0.5
            assert child.face == 3
            assert child.is_unknown()

    def test_child_quadrants(self, split_root):
        assert split_root.child(0).center == (-0.5, -0.5)
        assert split_root.child(1).center == (0.5, -0.5)
        assert split_root.child(2).center == (-0.5, 0.5)
        assert split_root.child(3).center == (0.5, 0.5)

    def test_children_tile_parent(self, split_root):
        coords = [-1.0, -0.75, -0.5, 0.0, 0.25, 0.5, 0.999]
        for x in coords:
            for y in coords:
                owners = [c for c in split_root.children if c.contains((x, y))]
                assert len(owners) == 1

    def test_subdivide_twice_raises(self, split_root):
        with pytest.raises(GeoquadStateError):
            split_root.subdivide()

    def test_set_coefficients_on_internal_raises(self, split_root):
        with pytest.raises(GeoquadStateError):
            split_root.set_coefficients(_const(1))
        with pytest.raises(GeoquadStateError):
            split_root.mark_unknown()

    def test_child_of_leaf_raises(self, root):
        with pytest.raises(GeoquadStateError):
            root.child(0)

    def test_samples_move_to_children(self, root):
        root.nums = [(0.5, 0.5), (-0.5, -0.5)]
        root.nans = [(0.5, -0.5)]
        assert root.isfull() == 0
        root.subdivide()
        assert root.nums == [] and root.nans == []
        assert root.child(3).isfull() == 1
        assert root.child(0).isfull() == 1
        assert root.child(1).isfull() == -1
        assert root.child(2).isfull() == 0

    def test_undulation_descends(self, split_root):
        split_root.child(3).set_coefficients(_const(5))
        assert split_root.undulation(0.5, 0.5) == 5.0
        assert math.isnan(split_root.undulation(-0.5, -0.5))

    def test_descent_normalises_coordinates(self, split_root):
        split_root.child(1).set_coefficients((0, UND_SCALE, 0, 0, 0, 0))
        # x = 0.75 on the parent is x = 0.5 on child 1
        assert split_root.undulation(0.75, -0.5) == pytest.approx(0.5)

    def test_clear(self, split_root):
        split_root.clear()
        assert split_root.is_unknown()
        assert split_root.children == ()

    def test_depth_and_leaves(self, split_root):
        split_root.child(2).subdivide()
        assert split_root.depth() == 2
        assert split_root.leaf_count() == 7


class TestContains:
    def test_centre(self):
        quad = Geoquad(2, (0.25, -0.75), 0.25)
        assert quad.contains(quad.center)
        assert quad.vcenter() in quad

    def test_half_open(self, root):
        assert root.contains((-1.0, -1.0))
        assert not root.contains((1.0, 0.0))
        assert not root.contains((0.0, 1.0))

    def test_vball_face_must_match(self, root):
        assert root.contains(Vball(3, 0.1, 0.1))
        assert not root.contains(Vball(4, 0.1, 0.1))


# ═══════════════════════════════════════════════════════════════════
# Hashing and geometry
# ═══════════════════════════════════════════════════════════════════


class TestHash:
    def test_equal_trees_hash_equal(self):
        a, b = Geoquad(1), Geoquad(1)
        for quad in (a, b):
            quad.subdivide()
            quad.child(2).set_coefficients((1, 2, 3, 4, 5, 6))
        assert a.hash() == b.hash()

    def test_hash_sees_coefficients_and_order(self):
        a, b = Geoquad(1), Geoquad(1)
        a.set_coefficients((1, 2, 3, 4, 5, 6))
        b.set_coefficients((6, 5, 4, 3, 2, 1))
        assert a.hash() != b.hash()

    def test_unknown_differs_from_zero(self):
        a, b = Geoquad(1), Geoquad(1)
        b.set_coefficients((0, 0, 0, 0, 0, 0))
        assert a.hash() != b.hash()

    def test_words_are_32_bit(self):
        quad = Geoquad(1)
        quad.set_coefficients((-5, 2 ** 31 - 1, 0, 0, 0, 0))
        for word in quad.hash():
            assert 0 <= word < 2 ** 32


class TestGeometry:
    def test_faces_cover_sphere(self):
        cube = Cubemap()
        total = sum(quad.area() for quad in cube.faces)
        assert total == pytest.approx(4 * math.pi * EARTH_RADIUS ** 2, rel=1e-12)

    def test_children_areas_sum_to_parent(self):
        quad = Geoquad(5, (0.5, -0.5), 0.5)
        parent = quad.area()
        quad.subdivide()
        assert sum(c.area() for c in quad.children) == pytest.approx(parent, rel=1e-12)

    def test_apx_area_close_for_small_squares(self):
        quad = Geoquad(1, (0.3, 0.2), 1 / 1024)
        assert quad.apx_area() == pytest.approx(quad.area(), rel=0.01)

    def test_apx_area_whole_face(self, root):
        assert root.apx_area() / root.area() == pytest.approx(6 / math.pi, rel=1e-12)

    def test_center_on_earth(self):
        quad = Geoquad(6, (0.5, 0.5), 0.5)
        assert np.linalg.norm(quad.center_on_earth()) == pytest.approx(EARTH_RADIUS)

    def test_leaf_boundary_is_ccw_square(self):
        quad = Geoquad(3, (0.5, 0.5), 0.5)
        quad.set_coefficients(_const(1))
        bdy = quad.gbounds()
        assert len(bdy) == 1
        assert len(bdy[0]) == 4
        assert bdy[0].cube_area() == pytest.approx(1.0)


# ═══════════════════════════════════════════════════════════════════
# Cube map
# ═══════════════════════════════════════════════════════════════════


class TestCubemap:
    def test_default_faces(self):
        cube = Cubemap()
        assert [q.face for q in cube.faces] == [1, 2, 3, 4, 5, 6]
        assert cube.leaf_count() == 6
        assert cube.depth() == 0

    def test_face_lookup(self):
        cube = Cubemap()
        assert cube.face(4) is cube.faces[3]
        with pytest.raises(KeyError):
            cube.face(0)

    def test_face_count_validated(self):
        with pytest.raises(ValueError):
            Cubemap([Geoquad(i + 1) for i in range(5)])

    def test_face_order_validated(self):
        faces = [Geoquad(i + 1) for i in range(6)]
        faces[0], faces[1] = faces[1], faces[0]
        with pytest.raises(ValueError):
            Cubemap(faces)

    def test_undulation_by_direction(self):
        cube = Cubemap()
        cube.face(3).set_coefficients(_const(7))
        assert cube.undulation_latlong(90, 0) == 7.0
        assert cube.undulation((0.1, 0.2, 1.0)) == 7.0
        assert math.isnan(cube.undulation_latlong(0, 0))

    def test_undefined_direction_is_nan(self):
        cube = Cubemap()
        assert math.isnan(cube.undulation((0, 0, 0)))

    def test_hash_changes_with_content(self):
        a, b = Cubemap(), Cubemap()
        assert a.hash() == b.hash()
        b.face(6).set_coefficients(_const(1))
        assert a.hash() != b.hash()
