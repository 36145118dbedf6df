from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import numpy as np

from stereotriangulate.core.linalg import compose, invert
from stereotriangulate.core.transforms import cardan_bryan_to_transform
from stereotriangulate.errors import FileFormatError, ParseError, ValidationError, _require

logger = logging.getLogger(__name__)

# Intrinsic parameter order shared by both file formats.
INTRINSIC_NAMES = ("cx", "cy", "fx", "fy", "fs", "k1", "k2", "k3")

NUM_VALUES_EXPECTED = 22
NUM_VALUES_WITH_CUSTOM_TRANSFORM = 28

_TOKEN_SPLIT = re.compile(r"[\s<>]+")


@dataclass(frozen=True)
class Intrinsics:
    cx: float
    cy: float
    fx: float
    fy: float
    fs: float = 0.0
    k1: float = 0.0
    k2: float = 0.0
    k3: float = 0.0

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "Intrinsics":
        if len(values) != len(INTRINSIC_NAMES):
            raise ValueError(f"expected {len(INTRINSIC_NAMES)} intrinsic values, got {len(values)}")
        return cls(**{name: float(v) for name, v in zip(INTRINSIC_NAMES, values)})

    def as_tuple(self) -> tuple[float, ...]:
        return tuple(float(getattr(self, name)) for name in INTRINSIC_NAMES)

    def projection_matrix(self) -> np.ndarray:
        """3x4 pinhole projection [[fx, fs, cx, 0], [0, fy, cy, 0], [0, 0, 1, 0]]."""
        return np.array(
            [
                [self.fx, self.fs, self.cx, 0.0],
                [0.0, self.fy, self.cy, 0.0],
                [0.0, 0.0, 1.0, 0.0],
            ],
            dtype=np.float64,
        )


def _readonly_transform(T: np.ndarray) -> np.ndarray:
    T = np.array(T, dtype=np.float64).reshape(4, 4)
    T.setflags(write=False)
    return T


@dataclass(frozen=True, eq=False)
class CalibrationData:
    """
    Calibration of a two-camera rig.

    Convention:
    - `extrinsics` maps camera-0 coordinates to camera-1 coordinates
    - `world_transform` maps camera-0 coordinates to world coordinates
    Both are 4x4 homogeneous transforms stored as read-only arrays.
    """

    intrinsics: tuple[Intrinsics, Intrinsics]
    extrinsics: np.ndarray
    world_transform: np.ndarray = field(default_factory=lambda: np.eye(4, dtype=np.float64))

    def __post_init__(self) -> None:
        if len(self.intrinsics) != 2:
            raise ValueError("exactly two cameras are supported")
        object.__setattr__(self, "intrinsics", tuple(self.intrinsics))
        object.__setattr__(self, "extrinsics", _readonly_transform(self.extrinsics))
        object.__setattr__(self, "world_transform", _readonly_transform(self.world_transform))

    def validate(self) -> None:
        for i, cam in enumerate(self.intrinsics):
            _require(cam.cx > 0.0, f"invalid cx for camera {i}: {cam.cx}")
            _require(cam.cy > 0.0, f"invalid cy for camera {i}: {cam.cy}")


def tokenize_line(line: str) -> list[str]:
    """Split a line on whitespace and angle brackets, dropping empty tokens."""
    return [t for t in _TOKEN_SPLIT.split(line) if t]


def _to_float(token: str, path: Path, line_no: int) -> float:
    try:
        return float(token)
    except ValueError as e:
        raise ParseError(f"{path}:{line_no}: expected a number, found {token!r}") from e


def load_calibration(path: str | Path) -> CalibrationData:
    """
    Load stereo calibration parameters.

    The format is chosen from the file suffix: `.xml` for vic3D calibration
    files, `.txt` for the generic one-value-per-line format.
    """
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".xml":
        logger.debug("calibration file %s is vic3D xml format", p)
        cal = _load_vic3d(p)
    elif suffix == ".txt":
        logger.debug("calibration file %s is generic txt format", p)
        cal = _load_generic_txt(p)
    else:
        raise FileFormatError(f"unrecognized calibration parameters file format: {p}")

    cal.validate()
    _log_calibration(cal)
    return cal


def _load_vic3d(path: Path) -> CalibrationData:
    """
    vic3D `cal.xml` reader.

    The file carries a !DOCTYPE, so it is scanned line by line instead of being
    handed to an XML parser; bytes are decoded as Latin-1 since only ASCII
    tokens are read. Each `CAMERA` record holds the intrinsics at tokens
    2..9 and the world-to-camera orientation (alpha beta gamma tx ty tz) at
    tokens 11..16.
    """
    intrinsics: list[Intrinsics] = []
    Ts: list[np.ndarray] = []
    text = path.read_text(encoding="latin-1")
    for line_no, line in enumerate(text.splitlines(), start=1):
        tokens = tokenize_line(line)
        if not tokens or tokens[0] != "CAMERA":
            continue
        if len(Ts) >= 2:
            raise ParseError(f"{path}:{line_no}: more than two CAMERA records")
        if len(tokens) < 18:
            raise ParseError(f"{path}:{line_no}: CAMERA record has {len(tokens)} tokens, expected at least 18")
        values = [_to_float(t, path, line_no) for t in tokens[2:10]]
        pose = [_to_float(t, path, line_no) for t in tokens[11:17]]
        logger.debug("camera %d orientation %s", len(Ts), pose)
        intrinsics.append(Intrinsics.from_values(values))
        Ts.append(cardan_bryan_to_transform(*pose))

    if len(Ts) != 2:
        raise ParseError(f"{path}: expected 2 CAMERA records, found {len(Ts)}")

    T0_inv = invert(Ts[0])
    return CalibrationData(
        intrinsics=(intrinsics[0], intrinsics[1]),
        extrinsics=compose(Ts[1], T0_inv),
        world_transform=T0_inv,
    )


def _load_generic_txt(path: Path) -> CalibrationData:
    """
    Generic text reader: one scalar per line, `#` starts a comment.

    Values 0-7 are the camera 0 intrinsics, 8-15 the camera 1 intrinsics,
    16-21 the camera 0 to camera 1 pose and, optionally, 22-27 the world to
    camera 0 pose.
    """
    values: list[float] = []
    text = path.read_text(encoding="latin-1")
    for line_no, line in enumerate(text.splitlines(), start=1):
        tokens = tokenize_line(line)
        if not tokens or tokens[0].startswith("#"):
            continue
        if len(tokens) > 1 and not tokens[1].startswith("#"):
            raise ParseError(f"{path}:{line_no}: only one value per line is allowed (plus a # comment)")
        values.append(_to_float(tokens[0], path, line_no))

    n = len(values)
    if n not in (NUM_VALUES_EXPECTED, NUM_VALUES_WITH_CUSTOM_TRANSFORM):
        raise ValidationError(
            f"error reading calibration text file {path}: found {n} values, "
            f"expected {NUM_VALUES_EXPECTED} or {NUM_VALUES_WITH_CUSTOM_TRANSFORM}"
        )

    world_transform = np.eye(4, dtype=np.float64)
    if n == NUM_VALUES_WITH_CUSTOM_TRANSFORM:
        logger.debug("loading custom transform from camera 0 to world coordinates")
        world_transform = invert(cardan_bryan_to_transform(*values[22:28]))

    return CalibrationData(
        intrinsics=(Intrinsics.from_values(values[0:8]), Intrinsics.from_values(values[8:16])),
        extrinsics=cardan_bryan_to_transform(*values[16:22]),
        world_transform=world_transform,
    )


def _log_calibration(cal: CalibrationData) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    for i, cam in enumerate(cal.intrinsics):
        logger.debug(
            "camera %d intrinsics: %s",
            i,
            " ".join(f"{name}={v:g}" for name, v in zip(INTRINSIC_NAMES, cam.as_tuple())),
        )
    logger.debug("extrinsic transform from camera 0 to camera 1:\n%s", cal.extrinsics)
    logger.debug("transform from camera 0 to world:\n%s", cal.world_transform)
