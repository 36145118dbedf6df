from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np

from stereotriangulate.core.correspondences import write_projection_report
from stereotriangulate.core.image_io import Image, save_gray
from stereotriangulate.core.linalg import solve_normal_equations
from stereotriangulate.core.simplex import Minimizer, minimize
from stereotriangulate.errors import OptimizationError, ValidationError

logger = logging.getLogger(__name__)

NUM_COEFFS = 8


@dataclass(frozen=True)
class HomographyCoefficients:
    """
    Planar projective map from left to right sensor coordinates:

      xr = (h0*xl + h1*yl + h2) / (h6*xl + h7*yl + 1)
      yr = (h3*xl + h4*yl + h5) / (h6*xl + h7*yl + 1)
    """

    coeffs: tuple[float, ...]

    def __post_init__(self) -> None:
        values = tuple(float(c) for c in np.asarray(self.coeffs, dtype=np.float64).reshape(-1))
        if len(values) != NUM_COEFFS:
            raise ValueError(f"expected {NUM_COEFFS} homography coefficients, got {len(values)}")
        object.__setattr__(self, "coeffs", values)

    def as_array(self) -> np.ndarray:
        return np.asarray(self.coeffs, dtype=np.float64)

    def apply(self, xl: np.ndarray, yl: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        return _apply(self.coeffs, xl, yl)


def _apply(h: Sequence[float], xl: np.ndarray, yl: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    xl = np.asarray(xl, dtype=np.float64)
    yl = np.asarray(yl, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        denom = h[6] * xl + h[7] * yl + 1.0
        xr = (h[0] * xl + h[1] * yl + h[2]) / denom
        yr = (h[3] * xl + h[4] * yl + h[5]) / denom
    return xr, yr


def fit_homography_linear(correspondences: np.ndarray) -> np.ndarray:
    """
    Least-squares estimate of the 8 coefficients from (N,4) rows (xl, yl, xr, yr).

    Each correspondence contributes the two rows of the linearized model
    (denominator multiplied through); the system is solved with the normal
    equations.
    """
    pts = np.asarray(correspondences, dtype=np.float64).reshape(-1, 4)
    xl, yl, xr, yr = pts[:, 0], pts[:, 1], pts[:, 2], pts[:, 3]
    n = pts.shape[0]

    K = np.zeros((2 * n, NUM_COEFFS), dtype=np.float64)
    F = np.zeros((2 * n,), dtype=np.float64)
    K[0::2, 0] = xl
    K[0::2, 1] = yl
    K[0::2, 2] = 1.0
    K[0::2, 6] = -xl * xr
    K[0::2, 7] = -yl * xr
    K[1::2, 3] = xl
    K[1::2, 4] = yl
    K[1::2, 5] = 1.0
    K[1::2, 6] = -xl * yr
    K[1::2, 7] = -yl * yr
    F[0::2] = xr
    F[1::2] = yr
    return solve_normal_equations(K, F)


@dataclass(frozen=True)
class EstimationSettings:
    min_correspondences: int = 4
    max_iterations: int = 200
    tolerance: float = 1e-5
    step_sizes: tuple[float, ...] = (0.001, 0.001, 1.0, 0.001, 0.001, 1.0, 0.0001, 0.0001)
    refine: bool = True
    border_fraction: float = 0.05  # excluded on each side of the frame
    sample_stride: int = 1  # pixels between samples of the photometric residual
    intensity_scale: float = 255.0
    report_file: str = "projection_out.dat"
    projected_image_file: str = "right_projected_to_left.tif"
    diff_image_file: str = "projection_diff.tif"


def central_region(width: int, height: int, border_fraction: float = 0.05, stride: int = 1) -> tuple[np.ndarray, np.ndarray]:
    """Integer pixel grid (xx, yy) of the frame without a border_fraction margin on each side."""
    xs = np.arange(int(border_fraction * width), (1.0 - border_fraction) * width, max(1, int(stride))).astype(np.int64)
    ys = np.arange(int(border_fraction * height), (1.0 - border_fraction) * height, max(1, int(stride))).astype(np.int64)
    xx, yy = np.meshgrid(xs, ys)
    return xx, yy


def photometric_residual(
    h: Sequence[float], left_image: Image, right_image: Image, xx: np.ndarray, yy: np.ndarray, intensity_scale: float = 255.0
) -> float:
    """Mean squared intensity difference between left pixels and the right image sampled through h."""
    xr, yr = _apply(h, xx, yy)
    if not (np.all(np.isfinite(xr)) and np.all(np.isfinite(yr))):
        return float("inf")
    left = left_image.intensities[yy, xx]
    right = right_image.interpolate(xr, yr)
    diff = (left - right) / float(intensity_scale)
    return float(np.mean(diff * diff))


class ProjectiveTransformEstimator:
    """
    Fits the left-to-right homography from point correspondences, then refines
    it against the image content with a simplex search.
    """

    def __init__(self, settings: EstimationSettings | None = None, minimizer: Minimizer | None = None):
        self.settings = settings if settings is not None else EstimationSettings()
        self.minimizer = minimizer if minimizer is not None else minimize

    def estimate(
        self,
        correspondences: np.ndarray,
        left_image: Image | None = None,
        right_image: Image | None = None,
        output_projected_image: bool = False,
        output_dir: str | Path | None = None,
    ) -> HomographyCoefficients:
        """
        Raises ValidationError with fewer than `min_correspondences` points and
        OptimizationError when the refinement does not converge.

        Refinement runs only when both images are given. When `output_dir` is
        set, the coefficients before and after refinement are written to
        `settings.report_file` there; projected and difference images go to
        `output_dir` (or the working directory) when `output_projected_image`.
        """
        s = self.settings
        pts = np.asarray(correspondences, dtype=np.float64).reshape(-1, 4)
        n = pts.shape[0]
        if n < s.min_correspondences:
            raise ValidationError(
                f"not enough sets of coordinates to estimate projection (needs at least {s.min_correspondences}, got {n})"
            )

        if output_projected_image and (left_image is None or right_image is None):
            raise ValidationError("projected image output requires both left and right images")

        h = fit_homography_linear(pts)
        logger.debug("projection parameters from point matching: %s", h)
        report_path = Path(output_dir) / s.report_file if output_dir is not None else None
        if report_path is not None:
            write_projection_report(report_path, "Projection parameters from point matching", h)

        if s.refine and left_image is not None and right_image is not None:
            h = self._refine(h, left_image, right_image, report_path)

        homography = HomographyCoefficients(tuple(h))
        if output_projected_image:
            self.write_projected_images(homography, left_image, right_image, Path(output_dir) if output_dir is not None else Path.cwd())
        return homography

    def _refine(self, h0: np.ndarray, left_image: Image, right_image: Image, report_path: Path | None) -> np.ndarray:
        s = self.settings
        xx, yy = central_region(left_image.width(), left_image.height(), s.border_fraction, s.sample_stride)
        if xx.size == 0:
            raise ValidationError("image too small for the photometric refinement region")

        def objective(p: np.ndarray) -> float:
            return photometric_residual(p, left_image, right_image, xx, yy, s.intensity_scale)

        result = self.minimizer(h0, s.step_sizes, objective, s.max_iterations, s.tolerance)
        if not result.converged:
            raise OptimizationError(
                f"could not determine projective transform: simplex did not converge in {s.max_iterations} iterations"
            )
        logger.debug("projection parameters after simplex optimization (%d iterations): %s", result.iterations, result.params)
        if report_path is not None:
            write_projection_report(
                report_path,
                "Projection parameters after simplex optimization",
                result.params,
                iterations=result.iterations,
                append=True,
            )
        return np.asarray(result.params, dtype=np.float64)

    def write_projected_images(
        self, homography: HomographyCoefficients, left_image: Image, right_image: Image, output_dir: Path
    ) -> tuple[Path, Path]:
        """Write the right image warped onto the left frame and the left-minus-warped difference."""
        s = self.settings
        w, h = left_image.width(), left_image.height()
        xx, yy = central_region(w, h, s.border_fraction)
        projected = np.zeros((h, w), dtype=np.float64)
        diff = np.zeros((h, w), dtype=np.float64)
        xr, yr = homography.apply(xx, yy)
        sampled = right_image.interpolate(xr, yr)
        projected[yy, xx] = sampled
        diff[yy, xx] = left_image.intensities[yy, xx] - sampled

        output_dir.mkdir(parents=True, exist_ok=True)
        projected_path = output_dir / s.projected_image_file
        diff_path = output_dir / s.diff_image_file
        save_gray(diff_path, diff)
        save_gray(projected_path, projected)
        return projected_path, diff_path
