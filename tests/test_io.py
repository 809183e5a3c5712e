"""Tests for io.py — the boldatni geoid file format."""

from __future__ import annotations

import math

import pytest

from cubegeoid.exceptions import CubeGeoidError, GeoidFormatError
from cubegeoid.geoquad import UND_SCALE, Cubemap
from cubegeoid.io import (
    ENCODING_FIXED,
    ENCODING_VARIABLE,
    HEADER_SIZE,
    GeoidHeader,
    _encode_int,
    dumps,
    loads,
    read_geoid,
    write_geoid,
)

SAMPLE_POINTS = [(90, 0), (45, 10), (50, 100), (-10, -60), (0, 0), (-89, 0), (30, 170)]


def _undulations(cube):
    return [cube.undulation_latlong(lat, lon) for lat, lon in SAMPLE_POINTS]


def _assert_same_undulations(a, b):
    for x, y in zip(_undulations(a), _undulations(b)):
        if math.isnan(x):
            assert math.isnan(y)
        else:
            assert x == y


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def cube():
    """A cube map mixing small, large, negative and unknown leaves."""
    cm = Cubemap()
    cm.face(1).set_coefficients((12 * UND_SCALE, 3, -4, 5, -6, 7))
    top = cm.face(3)
    top.subdivide()
    top.child(0).set_coefficients((-30 * UND_SCALE, 2 ** 22, -(2 ** 22), 2 ** 22 - 1, 2 ** 30, -(2 ** 31) + 1))
    top.child(1).subdivide()
    top.child(1).child(2).set_coefficients((UND_SCALE, 0, 0, 0, 0, 0))
    top.child(3).set_coefficients((0, 0, 0, 0, 0, 0))
    cm.face(5).set_coefficients((-(2 ** 22) - 1, 1, 1, 1, 1, 1))
    return cm


@pytest.fixture
def header():
    return GeoidHeader(
        tolerance=0.005,
        sublimit=2e4,
        spacing=3e4,
        sources=[("g2012bu0.bin", "usngsbin"), ("g2012ba0.bin", "usngsbin")],
    )


# ═══════════════════════════════════════════════════════════════════
# Integer encodings
# ═══════════════════════════════════════════════════════════════════


class TestIntegerEncoding:
    @pytest.mark.parametrize("value, encoded", [
        (0, b"\x00\x00\x00"),
        (5, b"\x00\x00\x05"),
        (-1, b"\xff\xff\xff"),
        (2 ** 22 - 1, b"\x3f\xff\xff"),
        (-(2 ** 22), b"\xc0\x00\x00"),
        (2 ** 22, b"\x40\x00\x40\x00\x00"),
        (-(2 ** 22) - 1, b"\x40\xff\xbf\xff\xff"),
        (-0x80000000, b"\x80\x00"),
    ])
    def test_variable(self, value, encoded):
        assert _encode_int(value, ENCODING_VARIABLE) == encoded

    def test_fixed(self):
        assert _encode_int(-0x80000000, ENCODING_FIXED) == b"\x80\x00\x00\x00"
        assert _encode_int(-2, ENCODING_FIXED) == b"\xff\xff\xff\xfe"


# ═══════════════════════════════════════════════════════════════════
# Round trips
# ═══════════════════════════════════════════════════════════════════


class TestRoundTrip:
    @pytest.mark.parametrize("encoding", [ENCODING_FIXED, ENCODING_VARIABLE])
    def test_hash_preserved(self, cube, header, encoding):
        header.encoding = encoding
        loaded_header, loaded = loads(dumps(cube, header))
        assert loaded.hash() == cube.hash()
        assert loaded_header.hash == cube.hash()
        assert loaded.leaf_count() == cube.leaf_count()
        _assert_same_undulations(cube, loaded)

    def test_header_fields_preserved(self, cube, header):
        loaded_header, _ = loads(dumps(cube, header))
        assert loaded_header.encoding == ENCODING_VARIABLE
        assert loaded_header.tolerance == 0.005
        assert loaded_header.sublimit == 2e4
        assert loaded_header.spacing == 3e4
        assert loaded_header.sources == header.sources
        assert loaded_header.scale_exponent == -16

    def test_coefficients_preserved(self, cube):
        _, loaded = loads(dumps(cube))
        assert loaded.face(3).child(0).und == cube.face(3).child(0).und
        assert loaded.face(3).child(2).is_unknown()
        assert loaded.face(3).child(1).child(2).und == (UND_SCALE, 0, 0, 0, 0, 0)

    def test_file_round_trip(self, cube, header, tmp_path):
        path = tmp_path / "test.geoid"
        written = write_geoid(cube, path, header)
        assert written.hash == cube.hash()
        loaded_header, loaded = read_geoid(path)
        assert loaded.hash() == cube.hash()
        assert loaded_header.sources == header.sources

    def test_default_header(self, cube):
        _, loaded = loads(dumps(cube))
        assert loaded.hash() == cube.hash()

    def test_caller_header_untouched(self, cube, header, tmp_path):
        dumps(cube, header)
        written = write_geoid(cube, tmp_path / "h.geoid", header)
        assert header.hash == (0, 0)
        assert written.hash == cube.hash()
        assert written is not header


class TestLayout:
    def test_header_bytes(self, cube, header):
        data = dumps(cube, header)
        assert data[:8] == b"boldatni"
        assert data[0x10:0x12] == b"\x00\x00"
        assert data[0x13] == ENCODING_VARIABLE
        assert data[0x14] == 1
        assert data[0x15:0x17] == b"\xff\xf0"
        assert data[0x2F:0x31] == b"\x00\x04"
        assert data[0x31:0x3E] == b"g2012bu0.bin\x00"

    def test_unknown_faces_variable(self):
        data = dumps(Cubemap())
        assert len(data) == HEADER_SIZE + 6 * 3
        assert data[HEADER_SIZE:] == b"\x00\x80\x00" * 6

    def test_unknown_faces_fixed(self):
        data = dumps(Cubemap(), GeoidHeader(encoding=ENCODING_FIXED))
        assert data[HEADER_SIZE:] == b"\x00\x80\x00\x00\x00" * 6

    def test_variable_is_smaller(self, cube):
        fixed = dumps(cube, GeoidHeader(encoding=ENCODING_FIXED))
        variable = dumps(cube, GeoidHeader(encoding=ENCODING_VARIABLE))
        assert len(variable) < len(fixed)

    def test_unknown_encoding_rejected(self, cube):
        with pytest.raises(ValueError):
            dumps(cube, GeoidHeader(encoding=3))


# ═══════════════════════════════════════════════════════════════════
# Malformed input
# ═══════════════════════════════════════════════════════════════════


def _check(data) -> str:
    with pytest.raises(GeoidFormatError) as info:
        loads(bytes(data))
    return info.value.check


class TestMalformed:
    @pytest.fixture
    def empty(self):
        return bytearray(dumps(Cubemap()))

    def test_bad_magic(self, empty):
        empty[0:8] = b"notgeoid"
        assert _check(empty) == "magic"

    def test_short_header(self, empty):
        assert _check(empty[:20]) == "header"

    def test_truncated_tree(self, empty):
        assert _check(empty[:-1]) == "coefficient"
        assert _check(empty[:-3]) == "node"

    def test_trailing_bytes(self, empty):
        assert _check(empty + b"\x00") == "trailing"

    def test_bad_flag(self, empty):
        empty[HEADER_SIZE] = 2
        assert _check(empty) == "node"

    def test_bad_lead_byte(self, empty):
        empty[HEADER_SIZE + 1] = 0x41
        assert _check(empty) == "coefficient"

    def test_bad_sentinel_continuation(self, empty):
        empty[HEADER_SIZE + 2] = 0x01
        assert _check(empty) == "coefficient"

    @pytest.mark.parametrize("offset, value, check", [
        (0x10, 1, "body"),
        (0x12, 1, "kind"),
        (0x13, 5, "encoding"),
        (0x14, 3, "arrangement"),
        (0x16, 0xF1, "scale"),
    ])
    def test_unsupported_fields(self, empty, offset, value, check):
        empty[offset] = value
        assert _check(empty) == check

    def test_odd_source_count(self, empty):
        empty[0x30] = 1
        assert _check(empty) == "sources"

    def test_unterminated_source(self, empty):
        empty[0x30] = 2
        empty[HEADER_SIZE:] = b"name"
        assert _check(empty) == "sources"

    @pytest.mark.parametrize("encoding, start, marker", [
        (ENCODING_FIXED, HEADER_SIZE + 5, b"\x80\x00\x00\x00"),
        (ENCODING_VARIABLE, HEADER_SIZE + 4, b"\x40\x80\x00\x00\x00"),
    ])
    def test_unknown_marker_inside_leaf(self, encoding, start, marker):
        cm = Cubemap()
        cm.face(1).set_coefficients((UND_SCALE, 0, 0, 0, 0, 0))
        data = bytearray(dumps(cm, GeoidHeader(encoding=encoding)))
        width = 4 if encoding == ENCODING_FIXED else 3
        data[start:start + width] = marker
        with pytest.raises(GeoidFormatError) as info:
            loads(bytes(data))
        assert info.value.check == "coefficient"
        assert info.value.offset == start

    def test_hash_mismatch(self, empty):
        empty[8] ^= 0xFF
        assert _check(empty) == "hash"

    def test_error_reports_offset(self, empty):
        empty[HEADER_SIZE + 1] = 0x41
        with pytest.raises(CubeGeoidError) as info:
            loads(bytes(empty))
        assert info.value.offset == HEADER_SIZE + 1
        assert "coefficient" in str(info.value)
