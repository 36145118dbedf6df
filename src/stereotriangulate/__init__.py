from stereotriangulate import errors
from stereotriangulate.api import StereoTriangulation
from stereotriangulate.core.calibration import CalibrationData, Intrinsics, load_calibration
from stereotriangulate.core.homography import (
    EstimationSettings,
    HomographyCoefficients,
    ProjectiveTransformEstimator,
    fit_homography_linear,
)
from stereotriangulate.core.image_io import Image
from stereotriangulate.core.linalg import invert
from stereotriangulate.core.projection import ProjectionMapper
from stereotriangulate.core.transforms import cardan_bryan_to_transform
from stereotriangulate.core.triangulation import Triangulator

__all__ = [
    "errors",
    "StereoTriangulation",
    "CalibrationData",
    "Intrinsics",
    "load_calibration",
    "EstimationSettings",
    "HomographyCoefficients",
    "ProjectiveTransformEstimator",
    "fit_homography_linear",
    "Image",
    "invert",
    "ProjectionMapper",
    "cardan_bryan_to_transform",
    "Triangulator",
]
