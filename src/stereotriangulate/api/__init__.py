from stereotriangulate.api.stereo_triangulation import StereoTriangulation

__all__ = [
    "StereoTriangulation",
]
