"""cubegeoid command-line interface."""

from __future__ import annotations

import argparse
import logging
import math
from typing import List, Optional

from .config import COARSE, DEFAULT, FINE
from .exceptions import CubeGeoidError
from .io import ENCODING_FIXED, ENCODING_VARIABLE, GeoidHeader, read_geoid, write_geoid
from .logging_config import setup_logging

PRESETS = {"coarse": COARSE, "default": DEFAULT, "fine": FINE}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cube-sphere geoid tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug messages")
    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="Show the header and tree statistics of a geoid file")
    info.add_argument("--in", dest="input_path", required=True)

    lookup = sub.add_parser("lookup", help="Undulation at a latitude and longitude")
    lookup.add_argument("--in", dest="input_path", required=True)
    lookup.add_argument("--lat", type=float, required=True)
    lookup.add_argument("--lon", type=float, required=True)

    boundary = sub.add_parser("boundary", help="Summarise the boundary of the data region")
    boundary.add_argument("--in", dest="input_path", required=True)

    demo = sub.add_parser("demo", help="Convert a synthetic geoid and write it to a file")
    demo.add_argument("--out", dest="output_path", required=True)
    demo.add_argument("--preset", choices=sorted(PRESETS), default="coarse")
    demo.add_argument("--encoding", choices=["fixed", "variable"], default="variable")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        if args.command == "info":
            _cmd_info(args)
        elif args.command == "lookup":
            _cmd_lookup(args)
        elif args.command == "boundary":
            _cmd_boundary(args)
        elif args.command == "demo":
            _cmd_demo(args)
    except (CubeGeoidError, OSError) as exc:
        print(exc)
        raise SystemExit(1)


def _cmd_info(args) -> None:
    header, cube = read_geoid(args.input_path)
    encoding = "fixed" if header.encoding == ENCODING_FIXED else "variable"
    print(f"Hash:        {header.hash[0]:08x}{header.hash[1]:08x}")
    print(f"Encoding:    {encoding}")
    print(f"Tolerance:   {header.tolerance:g} m")
    print(f"Sublimit:    {header.sublimit:g} m")
    print(f"Spacing:     {header.spacing:g} m")
    for name, fmt in header.sources:
        print(f"Source:      {name} ({fmt})")
    print(f"Depth:       {cube.depth()}")
    print(f"Leaves:      {cube.leaf_count()}")
    for quad in cube.faces:
        known = sum(1 for leaf in quad.leaves() if not leaf.is_unknown())
        print(f"  face {quad.face}: {quad.leaf_count()} leaves, {known} with data")


def _cmd_lookup(args) -> None:
    _, cube = read_geoid(args.input_path)
    und = cube.undulation_latlong(args.lat, args.lon)
    if math.isnan(und):
        print(f"No geoid data at {args.lat}, {args.lon}")
        raise SystemExit(1)
    print(f"{und:.3f}")


def _cmd_boundary(args) -> None:
    _, cube = read_geoid(args.input_path)
    bdy = cube.gbounds()
    print(f"Loops:       {len(bdy)}")
    print(f"Segments:    {bdy.total_segments()}")
    print(f"Area:        {bdy.area() / 1e6:.0f} km²")
    print(f"Perimeter:   {bdy.perimeter() / 1e3:.0f} km")
    for i, loop in enumerate(bdy):
        kind = "hole" if loop.area() < 0 else "outer"
        print(f"  loop {i}: {len(loop)} vertices, {kind}")


def demo_undulation(lat: float, lon: float) -> float:
    """Smooth synthetic geoid with no data south of 60°S."""
    if lat < -60:
        return math.nan
    phi = math.radians(lat)
    lam = math.radians(lon)
    return 30.0 * math.sin(2 * phi) * math.cos(lam) - 10.0 * math.cos(phi) ** 2


def _cmd_demo(args) -> None:
    from .refine import build_cubemap

    config = PRESETS[args.preset]
    cube = build_cubemap(demo_undulation, config=config)
    encoding = ENCODING_FIXED if args.encoding == "fixed" else ENCODING_VARIABLE
    header = GeoidHeader.from_config(config, encoding, [("synthetic", "demo")])
    write_geoid(cube, args.output_path, header)
    print(f"Saved {args.output_path} ({cube.leaf_count()} leaves)")
