from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image as PILImage
from scipy import ndimage


def load_gray(path: str | Path) -> np.ndarray:
    """Load an image as a grayscale float64 array (H,W)."""
    with PILImage.open(Path(path)) as im:
        if im.mode not in ("L", "I", "I;16", "F"):
            im = im.convert("L")
        arr = np.asarray(im, dtype=np.float64)
    return arr


def save_gray(path: str | Path, intensities: np.ndarray) -> None:
    """
    Save a grayscale array.

    TIFF files keep the values as 32-bit floats (difference images are signed);
    other formats are clipped to 8 bits.
    """
    p = Path(path)
    arr = np.asarray(intensities, dtype=np.float64)
    if p.suffix.lower() in (".tif", ".tiff"):
        PILImage.fromarray(arr.astype(np.float32)).save(p)
        return
    u8 = np.clip(arr + 0.5, 0.0, 255.0).astype(np.uint8)
    PILImage.fromarray(u8).save(p)


class Image:
    """
    Grayscale image with integer and sub-pixel intensity access.

    Sub-pixel reads use cubic spline interpolation; the spline coefficients are
    computed once at construction. Samples outside the frame take the nearest
    border value.
    """

    def __init__(self, intensities: np.ndarray, spline_order: int = 3):
        arr = np.array(intensities, dtype=np.float64)
        if arr.ndim != 2:
            raise ValueError(f"expected a 2D intensity array, got shape {arr.shape}")
        arr.setflags(write=False)
        self._intensities = arr
        self._spline_order = int(spline_order)
        if self._spline_order > 1:
            self._coeffs = ndimage.spline_filter(arr, order=self._spline_order, mode="nearest")
        else:
            self._coeffs = arr

    @classmethod
    def load(cls, path: str | Path) -> "Image":
        return cls(load_gray(path))

    @classmethod
    def zeros(cls, width: int, height: int) -> "Image":
        return cls(np.zeros((int(height), int(width)), dtype=np.float64))

    @property
    def intensities(self) -> np.ndarray:
        return self._intensities

    def width(self) -> int:
        return int(self._intensities.shape[1])

    def height(self) -> int:
        return int(self._intensities.shape[0])

    def __call__(self, x: int, y: int) -> float:
        return float(self._intensities[int(y), int(x)])

    def interpolate(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Intensity at real-valued (x, y); accepts scalars or arrays."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        x, y = np.broadcast_arrays(x, y)
        coords = np.stack([y.reshape(-1), x.reshape(-1)], axis=0)
        out = ndimage.map_coordinates(
            self._coeffs,
            coords,
            order=self._spline_order,
            mode="nearest",
            prefilter=False,
        ).reshape(x.shape)
        if out.ndim == 0:
            return float(out)
        return out

    def write(self, path: str | Path) -> None:
        save_gray(path, self._intensities)
