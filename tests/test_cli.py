from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from stereotriangulate.cli.main import main


def test_show_calibration(generic_calibration_file, capsys) -> None:
    assert main(["show-calibration", str(generic_calibration_file())]) == 0
    out = capsys.readouterr().out
    assert "camera 0: cx=320 cy=240 fx=1000 fy=1000" in out
    assert "extrinsics (camera 0 -> camera 1):" in out


def test_triangulate_writes_table(tmp_path: Path, generic_calibration_file) -> None:
    points = tmp_path / "points.dat"
    points.write_text("320 240 120 240\n420 240 220 240\n", encoding="utf-8")
    out = tmp_path / "xyz.txt"

    assert main(["triangulate", str(generic_calibration_file()), str(points), "--out", str(out)]) == 0
    xyz = np.loadtxt(out)
    assert xyz.shape == (2, 6)
    assert np.allclose(xyz[0, :3], [0.0, 0.0, 500.0], atol=1e-3)
    assert np.allclose(xyz[1, :3], [50.0, 0.0, 500.0], atol=1e-3)
    assert out.read_text(encoding="utf-8").startswith("# xc yc zc xw yw zw")


def test_library_errors_exit_with_code_2(tmp_path: Path, capsys) -> None:
    cal = tmp_path / "cal.yaml"
    cal.write_text("", encoding="utf-8")
    assert main(["show-calibration", str(cal)]) == 2
    assert capsys.readouterr().err.startswith("error: ")


def test_estimate_projection_without_refinement(tmp_path: Path, capsys) -> None:
    xs, ys = np.meshgrid([5.0, 50.0, 95.0], [5.0, 60.0])
    pts = np.column_stack([xs.ravel(), ys.ravel(), xs.ravel() + 3.0, ys.ravel() - 2.0])
    points = tmp_path / "projection_points.dat"
    np.savetxt(points, pts)

    assert main(["estimate-projection", str(points), "--no-refine", "--out-dir", str(tmp_path)]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 8
    assert np.allclose([float(v) for v in lines], [1.0, 0.0, 3.0, 0.0, 1.0, -2.0, 0.0, 0.0], atol=1e-6)
    assert (tmp_path / "projection_out.dat").is_file()


def test_estimate_projection_requires_both_images(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        main(["estimate-projection", "--left", str(tmp_path / "l.png"), "--out-dir", str(tmp_path)])


def test_undecodable_points_file_exits_with_code_2(tmp_path: Path, generic_calibration_file, capsys) -> None:
    points = tmp_path / "points.dat"
    points.write_bytes(b"320 240 120 \xff\n")
    assert main(["triangulate", str(generic_calibration_file()), str(points)]) == 2
    assert capsys.readouterr().err.startswith("error: ")
