from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from stereotriangulate.core.calibration import CalibrationData
from stereotriangulate.core.distortion import correct_lens_distortion_radial
from stereotriangulate.core.linalg import solve_normal_equations
from stereotriangulate.errors import NumericalError

logger = logging.getLogger(__name__)


def _design_matrix(
    cal: CalibrationData, x0: float, y0: float, x1: float, y1: float
) -> tuple[np.ndarray, np.ndarray]:
    """
    Linearized projection equations M @ (X, Y, Z) = r of both cameras for a
    point expressed in the camera 0 frame.
    """
    c0, c1 = cal.intrinsics
    E = cal.extrinsics
    cmx = c1.cx - x1
    cmy = c1.cy - y1

    M = np.zeros((4, 3), dtype=np.float64)
    r = np.zeros((4,), dtype=np.float64)
    M[0] = [c0.fx, c0.fs, c0.cx - x0]
    M[1] = [0.0, c0.fy, c0.cy - y0]
    M[2] = cmx * E[2, :3] + c1.fx * E[0, :3] + c1.fs * E[1, :3]
    M[3] = cmy * E[2, :3] + c1.fy * E[1, :3]
    r[2] = -c1.fx * E[0, 3] - c1.fs * E[1, 3] - cmx * E[2, 3]
    r[3] = -c1.fy * E[1, 3] - cmy * E[2, 3]
    return M, r


@dataclass(frozen=True)
class Triangulator:
    """
    Linear triangulation of stereo correspondences.

    Sensor points of camera 0 and camera 1 are turned into a 3D point in the
    camera 0 frame by least squares on the two pinhole projection equations,
    then mapped to world coordinates with the calibration's world transform.
    """

    calibration: CalibrationData

    def triangulate(
        self,
        x0: float,
        y0: float,
        x1: float,
        y1: float,
        apply_distortion: bool = False,
    ) -> tuple[float, float, float, float, float, float]:
        """
        Returns (xc, yc, zc, xw, yw, zw): camera 0 coordinates then world coordinates.

        Raises NumericalError when the normal matrix is singular; the
        calibration itself stays valid.
        """
        cal = self.calibration
        logger.debug("camera 0 sensor coords %g %g camera 1 sensor coords %g %g", x0, y0, x1, y1)
        if apply_distortion:
            x0, y0 = correct_lens_distortion_radial(cal.intrinsics[0], x0, y0)
            x1, y1 = correct_lens_distortion_radial(cal.intrinsics[1], x1, y1)
            logger.debug("distortion corrected sensor coords %g %g / %g %g", x0, y0, x1, y1)

        M, r = _design_matrix(cal, float(x0), float(y0), float(x1), float(y1))
        try:
            xyz = solve_normal_equations(M, r)
        except NumericalError as e:
            raise NumericalError(f"could not invert the M matrix in triangulation: {e}") from e

        XYZc = np.array([xyz[0], xyz[1], xyz[2], 1.0], dtype=np.float64)
        XYZw = cal.world_transform @ XYZc
        logger.debug("camera 0 coordinates %s world coordinates %s", XYZc[:3], XYZw[:3])
        return (
            float(XYZc[0]),
            float(XYZc[1]),
            float(XYZc[2]),
            float(XYZw[0]),
            float(XYZw[1]),
            float(XYZw[2]),
        )

    def triangulate_many(self, points: np.ndarray, apply_distortion: bool = False) -> np.ndarray:
        """
        Triangulate an (N,4) array of (x0, y0, x1, y1) rows.

        Returns an (N,6) array; rows whose solve fails are NaN.
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 4)
        out = np.full((points.shape[0], 6), np.nan, dtype=np.float64)
        for i, (x0, y0, x1, y1) in enumerate(points):
            try:
                out[i] = self.triangulate(x0, y0, x1, y1, apply_distortion=apply_distortion)
            except NumericalError as e:
                logger.warning("point %d (%g, %g, %g, %g) not triangulated: %s", i, x0, y0, x1, y1, e)
        return out
