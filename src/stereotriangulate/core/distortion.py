from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from stereotriangulate.core.calibration import CalibrationData, Intrinsics


def correct_lens_distortion_radial(
    intrinsics: Intrinsics, x: np.ndarray, y: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """
    One-pass radial correction of sensor coordinates.

    Coordinates are normalized by the principal point (r = (x - c) / c) and
    shifted by the radial factor k1*rho^2 + k2*rho^4 + k3*rho^6 evaluated at
    the observed position. This approximates the inverse of the distortion
    model; it is not iterated. Accepts scalars or arrays.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    cx, cy = intrinsics.cx, intrinsics.cy
    r1 = (x - cx) / cx
    r2 = (y - cy) / cy
    rho2 = r1 * r1 + r2 * r2
    factor = intrinsics.k1 * rho2 + intrinsics.k2 * rho2 * rho2 + intrinsics.k3 * rho2 * rho2 * rho2
    x_out = x - factor * r1 * cx
    y_out = y - factor * r2 * cy
    if x_out.ndim == 0:
        return float(x_out), float(y_out)
    return x_out, y_out


@dataclass(frozen=True)
class LensDistortionCorrector:
    calibration: CalibrationData

    def correct(self, x: np.ndarray, y: np.ndarray, camera_id: int) -> tuple[np.ndarray, np.ndarray]:
        if camera_id not in (0, 1):
            raise ValueError(f"camera_id must be 0 or 1, got {camera_id}")
        return correct_lens_distortion_radial(self.calibration.intrinsics[camera_id], x, y)
