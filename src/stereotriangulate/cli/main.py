from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from stereotriangulate.api import StereoTriangulation
from stereotriangulate.core.calibration import INTRINSIC_NAMES, load_calibration
from stereotriangulate.core.correspondences import PROJECTION_POINTS_FILE, load_correspondences
from stereotriangulate.core.homography import EstimationSettings, ProjectiveTransformEstimator
from stereotriangulate.core.image_io import Image
from stereotriangulate.errors import StereoTriangulateError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="stereotriangulate")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    tri = sub.add_parser("triangulate", help="Triangulate stereo correspondences (x0 y0 x1 y1 per line).")
    tri.add_argument("calibration", type=Path, help="Calibration file (.xml vic3D or .txt generic).")
    tri.add_argument("points", type=Path)
    tri.add_argument("--distortion", action="store_true", help="Apply radial lens distortion correction first.")
    tri.add_argument("--out", type=Path, default=None, help="Output file (default: stdout).")

    est = sub.add_parser(
        "estimate-projection",
        help="Estimate the left-to-right homography from point correspondences and an image pair.",
    )
    est.add_argument("points", type=Path, nargs="?", default=Path(PROJECTION_POINTS_FILE))
    est.add_argument("--left", type=Path, default=None)
    est.add_argument("--right", type=Path, default=None)
    est.add_argument("--out-dir", type=Path, default=Path("."), help="Directory for the report and images.")
    est.add_argument("--output-images", action="store_true", help="Write projected and difference images.")
    est.add_argument("--no-refine", action="store_true", help="Skip the simplex refinement.")
    est.add_argument("--max-iterations", type=int, default=200)
    est.add_argument("--sample-stride", type=int, default=1, help="Pixel stride of the photometric residual.")

    show = sub.add_parser("show-calibration", help="Print the parameters of a calibration file.")
    show.add_argument("calibration", type=Path)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.cmd == "triangulate":
            st = StereoTriangulation.from_calibration_file(args.calibration)
            xyz = st.triangulate_many(load_correspondences(args.points), apply_distortion=args.distortion)
            header = "xc yc zc xw yw zw"
            if args.out is None:
                np.savetxt(sys.stdout, xyz, fmt="%.9g", header=header)
            else:
                np.savetxt(args.out, xyz, fmt="%.9g", header=header)
                print(f"Wrote {args.out}")
            return 0

        if args.cmd == "estimate-projection":
            if (args.left is None) != (args.right is None):
                parser.error("--left and --right must be given together")
            left = Image.load(args.left) if args.left is not None else None
            right = Image.load(args.right) if args.right is not None else None
            settings = EstimationSettings(
                refine=not args.no_refine,
                max_iterations=args.max_iterations,
                sample_stride=args.sample_stride,
            )
            h = ProjectiveTransformEstimator(settings).estimate(
                load_correspondences(args.points),
                left_image=left,
                right_image=right,
                output_projected_image=args.output_images,
                output_dir=args.out_dir,
            )
            for c in h.coeffs:
                print(f"{c:e}")
            return 0

        if args.cmd == "show-calibration":
            cal = load_calibration(args.calibration)
            for i, cam in enumerate(cal.intrinsics):
                print(f"camera {i}: " + " ".join(f"{n}={v:g}" for n, v in zip(INTRINSIC_NAMES, cam.as_tuple())))
            print("extrinsics (camera 0 -> camera 1):")
            print(np.array2string(cal.extrinsics, precision=6, suppress_small=True))
            print("world transform (camera 0 -> world):")
            print(np.array2string(cal.world_transform, precision=6, suppress_small=True))
            return 0
    except StereoTriangulateError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    raise AssertionError(f"Unhandled cmd: {args.cmd}")
