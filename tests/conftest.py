from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

import pytest

from stereotriangulate.core.calibration import INTRINSIC_NAMES

DEFAULT_CAM = (320.0, 240.0, 1000.0, 1000.0, 0.0, 0.0, 0.0, 0.0)
# Camera 1 sits 100 units along +x of camera 0, same orientation.
DEFAULT_POSE = (0.0, 0.0, 0.0, -100.0, 0.0, 0.0)


def generic_calibration_text(
    cam0: Sequence[float] = DEFAULT_CAM,
    cam1: Sequence[float] = DEFAULT_CAM,
    pose: Sequence[float] = DEFAULT_POSE,
    world_pose: Sequence[float] | None = None,
) -> str:
    lines = ["# generic stereo calibration", "", "# camera 0 intrinsics"]
    lines += [f"{float(v)!r} # {name}" for name, v in zip(INTRINSIC_NAMES, cam0)]
    lines += ["# camera 1 intrinsics"]
    lines += [f"{float(v)!r} # {name}" for name, v in zip(INTRINSIC_NAMES, cam1)]
    lines += ["# camera 0 to camera 1: alpha beta gamma tx ty tz"]
    lines += [repr(float(v)) for v in pose]
    if world_pose is not None:
        lines += ["# world to camera 0"]
        lines += [repr(float(v)) for v in world_pose]
    return "\n".join(lines) + "\n"


@pytest.fixture
def generic_calibration_file(tmp_path: Path) -> Callable[..., Path]:
    def _write(name: str = "cal.txt", **kwargs) -> Path:
        path = tmp_path / name
        path.write_text(generic_calibration_text(**kwargs), encoding="utf-8")
        return path

    return _write
