from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import numpy as np

from stereotriangulate.errors import ParseError

logger = logging.getLogger(__name__)

PROJECTION_POINTS_FILE = "projection_points.dat"


def load_correspondences(path: str | Path) -> np.ndarray:
    """
    Read point correspondences, one `x_left y_left x_right y_right` record per line.

    Returns an (N,4) float array. Blank lines are skipped.
    """
    p = Path(path)
    rows: list[list[float]] = []
    for line_no, line in enumerate(p.read_text(encoding="latin-1").splitlines(), start=1):
        tokens = line.split()
        if not tokens:
            continue
        if len(tokens) != 4:
            raise ParseError(
                f"{p}:{line_no}: should be 4 values per line (x_left y_left x_right y_right), "
                f"but found {len(tokens)} values"
            )
        try:
            rows.append([float(t) for t in tokens])
        except ValueError as e:
            raise ParseError(f"{p}:{line_no}: {e}") from e
    logger.debug("read %d point correspondences from %s", len(rows), p)
    return np.asarray(rows, dtype=np.float64).reshape(-1, 4)


def write_projection_report(path: str | Path, title: str, coeffs: Sequence[float], iterations: int | None = None, append: bool = False) -> None:
    """Write one block of the projection diagnostics file."""
    lines = [f"{title}: "]
    lines.extend(f"{float(c):e}" for c in coeffs)
    if iterations is not None:
        lines.append(f"Optimization took {int(iterations)} iterations")
    with open(Path(path), "a" if append else "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
