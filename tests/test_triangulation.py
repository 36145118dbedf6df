from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import numpy as np
import pytest

from stereotriangulate.core.calibration import CalibrationData, Intrinsics, load_calibration
from stereotriangulate.core.distortion import correct_lens_distortion_radial
from stereotriangulate.core.transforms import cardan_bryan_to_transform
from stereotriangulate.core.triangulation import Triangulator
from stereotriangulate.errors import NumericalError


def _project(cam: Intrinsics, XYZ: np.ndarray) -> tuple[float, float]:
    X, Y, Z = (float(v) for v in XYZ[:3])
    return (cam.fx * X + cam.fs * Y) / Z + cam.cx, cam.fy * Y / Z + cam.cy


def _rig() -> CalibrationData:
    cam0 = Intrinsics(cx=1012.3, cy=760.8, fx=4200.0, fy=4195.0, fs=1.5)
    cam1 = Intrinsics(cx=1030.1, cy=748.2, fx=4180.0, fy=4188.0, fs=-0.8)
    return CalibrationData(
        intrinsics=(cam0, cam1),
        extrinsics=cardan_bryan_to_transform(0.8, -18.0, 0.3, 210.0, 4.0, 35.0),
        world_transform=cardan_bryan_to_transform(5.0, -3.0, 12.0, 10.0, -20.0, 30.0),
    )


def test_end_to_end_parallel_rig(generic_calibration_file):
    cal = load_calibration(generic_calibration_file())
    P = np.array([0.0, 0.0, 500.0, 1.0])
    x0, y0 = _project(cal.intrinsics[0], P)
    x1, y1 = _project(cal.intrinsics[1], cal.extrinsics @ P)
    assert (x0, y0) == pytest.approx((320.0, 240.0))
    assert (x1, y1) == pytest.approx((120.0, 240.0))

    xc, yc, zc, xw, yw, zw = Triangulator(cal).triangulate(x0, y0, x1, y1)
    assert xc == pytest.approx(0.0, abs=1e-3)
    assert yc == pytest.approx(0.0, abs=1e-3)
    assert zc == pytest.approx(500.0, abs=1e-3)
    assert (xw, yw, zw) == pytest.approx((xc, yc, zc))


def test_round_trip_recovers_known_points():
    cal = _rig()
    tri = Triangulator(cal)
    rng = np.random.default_rng(0)
    for _ in range(25):
        P = np.array([*rng.uniform(-80.0, 80.0, size=2), rng.uniform(400.0, 900.0), 1.0])
        x0, y0 = _project(cal.intrinsics[0], P)
        x1, y1 = _project(cal.intrinsics[1], cal.extrinsics @ P)
        out = tri.triangulate(x0, y0, x1, y1, apply_distortion=False)
        assert np.allclose(out[:3], P[:3], atol=1e-6)
        assert np.allclose(out[3:], (cal.world_transform @ P)[:3], atol=1e-6)


def test_distortion_is_applied_before_solving():
    base = _rig()
    cam0 = replace(base.intrinsics[0], k1=0.05, k2=-0.01)
    cam1 = replace(base.intrinsics[1], k1=-0.03)
    cal = CalibrationData(intrinsics=(cam0, cam1), extrinsics=base.extrinsics, world_transform=base.world_transform)
    tri = Triangulator(cal)

    x0, y0, x1, y1 = 1500.0, 300.0, 900.0, 310.0
    cx0, cy0 = correct_lens_distortion_radial(cam0, x0, y0)
    cx1, cy1 = correct_lens_distortion_radial(cam1, x1, y1)
    assert tri.triangulate(x0, y0, x1, y1, apply_distortion=True) == pytest.approx(tri.triangulate(cx0, cy0, cx1, cy1))
    assert tri.triangulate(x0, y0, x1, y1, apply_distortion=True) != pytest.approx(tri.triangulate(x0, y0, x1, y1))


def test_distortion_flag_without_coefficients_changes_nothing():
    tri = Triangulator(_rig())
    assert tri.triangulate(1100.0, 700.0, 950.0, 720.0, apply_distortion=True) == tri.triangulate(
        1100.0, 700.0, 950.0, 720.0
    )


def test_singular_system_fails_only_the_call():
    cam = Intrinsics(cx=320.0, cy=240.0, fx=0.0, fy=0.0)
    cal = CalibrationData(intrinsics=(cam, cam), extrinsics=np.eye(4))
    tri = Triangulator(cal)
    with pytest.raises(NumericalError):
        tri.triangulate(100.0, 100.0, 120.0, 100.0)
    assert np.array_equal(cal.extrinsics, np.eye(4))


def test_triangulate_many_marks_failed_rows(caplog):
    cal = _rig()
    P = np.array([10.0, -5.0, 600.0, 1.0])
    x0, y0 = _project(cal.intrinsics[0], P)
    x1, y1 = _project(cal.intrinsics[1], cal.extrinsics @ P)
    points = np.array([[x0, y0, x1, y1], [np.nan, y0, x1, y1]])

    with caplog.at_level("WARNING"):
        out = Triangulator(cal).triangulate_many(points)
    assert out.shape == (2, 6)
    assert np.allclose(out[0, :3], P[:3], atol=1e-6)
    assert np.all(np.isnan(out[1]))
    assert "not triangulated" in caplog.text


def test_concurrent_calls_match_serial_results():
    cal = _rig()
    tri = Triangulator(cal)
    rng = np.random.default_rng(1)
    points = []
    for _ in range(200):
        P = np.array([*rng.uniform(-50.0, 50.0, size=2), rng.uniform(500.0, 800.0), 1.0])
        points.append((*_project(cal.intrinsics[0], P), *_project(cal.intrinsics[1], cal.extrinsics @ P)))

    serial = [tri.triangulate(*p) for p in points]
    with ThreadPoolExecutor(max_workers=8) as pool:
        parallel = list(pool.map(lambda p: tri.triangulate(*p), points))
    assert parallel == serial
