import sys
from pathlib import Path

ROOT = Path(__file__).parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from cubegeoid.cli import demo_undulation
from cubegeoid.config import COARSE
from cubegeoid.io import dumps, loads
from cubegeoid.refine import build_cubemap


def main() -> None:
    cube = build_cubemap(demo_undulation, config=COARSE)
    header, loaded = loads(dumps(cube))
    if loaded.hash() != cube.hash():
        raise SystemExit("hash changed on round trip")

    print("Leaves:", cube.leaf_count())
    print("Depth:", cube.depth())
    print("Hash:", f"{header.hash[0]:08x}{header.hash[1]:08x}")

    bdy = cube.gbounds()
    print("Boundary loops:", len(bdy))
    print("Boundary segments:", bdy.total_segments())
    print("London in region:", bdy.in_region((3978e3, -10e3, 4968e3)))
    print("Undulation at 51.5N 0E:", cube.undulation_latlong(51.5, 0.0))


if __name__ == "__main__":
    main()
