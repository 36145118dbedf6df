from __future__ import annotations


def test_public_api_exports() -> None:
    import stereotriangulate as st

    assert hasattr(st, "StereoTriangulation")
    assert hasattr(st, "load_calibration")
    assert hasattr(st, "Triangulator")
    assert hasattr(st, "ProjectiveTransformEstimator")
    assert hasattr(st, "Image")
    assert issubclass(st.errors.ParseError, st.errors.StereoTriangulateError)
