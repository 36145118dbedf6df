from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, replace

import numpy as np

from stereotriangulate.core.calibration import CalibrationData
from stereotriangulate.core.homography import HomographyCoefficients
from stereotriangulate.errors import GeometryWarning, NumericalError, StateError

logger = logging.getLogger(__name__)

# Allowed deviation of the recovered homogeneous scale from 1.
SCALE_TOLERANCE = 0.1


@dataclass(frozen=True)
class ProjectionMapper:
    """
    Maps points between the two cameras: through the calibrated extrinsics for
    3D points, or through the fitted left-to-right homography for sensor points.
    """

    calibration: CalibrationData
    homography: HomographyCoefficients | None = None

    def with_homography(self, homography: HomographyCoefficients) -> "ProjectionMapper":
        return replace(self, homography=homography)

    def project_camera0_to_sensor1(self, xc: float, yc: float, zc: float) -> tuple[float, float]:
        E = self.calibration.extrinsics
        F2_T = self.calibration.intrinsics[1].projection_matrix() @ E
        p = np.array([xc, yc, zc, 1.0], dtype=np.float64)

        psi = float(E[2] @ p)
        if psi == 0.0:
            raise NumericalError(f"point ({xc}, {yc}, {zc}) has zero depth in camera 1")
        xs, ys, z2 = (F2_T @ p) / psi
        if abs(z2 - 1.0) >= SCALE_TOLERANCE:
            msg = f"homogeneous scale {z2:g} of projected point ({xc}, {yc}, {zc}) deviates from 1"
            logger.warning(msg)
            warnings.warn(msg, GeometryWarning, stacklevel=2)
        return float(xs), float(ys)

    def project_left_to_right_sensor(self, xl: float, yl: float) -> tuple[float, float]:
        if self.homography is None:
            raise StateError("projective transform has not been estimated")
        xr, yr = self.homography.apply(xl, yl)
        return float(xr), float(yr)
