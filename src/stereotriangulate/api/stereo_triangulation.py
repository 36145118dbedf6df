from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from stereotriangulate.core.calibration import CalibrationData, load_calibration
from stereotriangulate.core.correspondences import load_correspondences
from stereotriangulate.core.distortion import LensDistortionCorrector
from stereotriangulate.core.homography import EstimationSettings, HomographyCoefficients, ProjectiveTransformEstimator
from stereotriangulate.core.image_io import Image
from stereotriangulate.core.projection import ProjectionMapper
from stereotriangulate.core.simplex import Minimizer
from stereotriangulate.core.triangulation import Triangulator
from stereotriangulate.errors import StateError

logger = logging.getLogger(__name__)


class StereoTriangulation:
    """
    Stereo rig with loaded calibration and, once estimated, a left-to-right homography.

    Typical use:

      st = StereoTriangulation.from_calibration_file("cal.xml")
      xc, yc, zc, xw, yw, zw = st.triangulate(x0, y0, x1, y1)

    The calibration is fixed at construction and the homography can be
    estimated once; all other methods only read this state.
    """

    def __init__(self, calibration: CalibrationData):
        self._calibration = calibration
        self._triangulator = Triangulator(calibration)
        self._corrector = LensDistortionCorrector(calibration)
        self._mapper = ProjectionMapper(calibration)

    @classmethod
    def from_calibration_file(cls, path: str | Path) -> "StereoTriangulation":
        return cls(load_calibration(path))

    @property
    def calibration(self) -> CalibrationData:
        return self._calibration

    @property
    def homography(self) -> HomographyCoefficients | None:
        return self._mapper.homography

    @property
    def has_projective_transform(self) -> bool:
        return self._mapper.homography is not None

    def triangulate(
        self, x0: float, y0: float, x1: float, y1: float, apply_distortion: bool = False
    ) -> tuple[float, float, float, float, float, float]:
        return self._triangulator.triangulate(x0, y0, x1, y1, apply_distortion=apply_distortion)

    def triangulate_many(self, points: np.ndarray, apply_distortion: bool = False) -> np.ndarray:
        return self._triangulator.triangulate_many(points, apply_distortion=apply_distortion)

    def correct_lens_distortion(self, x: float, y: float, camera_id: int) -> tuple[float, float]:
        return self._corrector.correct(x, y, camera_id)

    def project_camera0_to_sensor1(self, xc: float, yc: float, zc: float) -> tuple[float, float]:
        return self._mapper.project_camera0_to_sensor1(xc, yc, zc)

    def estimate_projective_transform(
        self,
        correspondences: np.ndarray | str | Path,
        left_image: Image | None = None,
        right_image: Image | None = None,
        output_projected_image: bool = False,
        output_dir: str | Path | None = None,
        settings: EstimationSettings | None = None,
        minimizer: Minimizer | None = None,
    ) -> HomographyCoefficients:
        """
        Estimate the left-to-right homography.

        `correspondences` is an (N,4) array or the path of a file with
        `x_left y_left x_right y_right` records.
        """
        if self.has_projective_transform:
            raise StateError("projective transform has already been estimated")
        if isinstance(correspondences, (str, Path)):
            correspondences = load_correspondences(correspondences)
        estimator = ProjectiveTransformEstimator(settings=settings, minimizer=minimizer)
        homography = estimator.estimate(
            correspondences,
            left_image=left_image,
            right_image=right_image,
            output_projected_image=output_projected_image,
            output_dir=output_dir,
        )
        self._mapper = self._mapper.with_homography(homography)
        logger.debug("projective transform set: %s", homography.coeffs)
        return homography

    def project_left_to_right_sensor(self, xl: float, yl: float) -> tuple[float, float]:
        return self._mapper.project_left_to_right_sensor(xl, yl)
