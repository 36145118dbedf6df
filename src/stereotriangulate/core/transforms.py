from __future__ import annotations

import math

import numpy as np


def cardan_bryan_to_transform(
    alpha: float, beta: float, gamma: float, tx: float, ty: float, tz: float
) -> np.ndarray:
    """
    4x4 homogeneous transform from Cardan-Bryan angles (degrees) and a translation.

    Rotation convention: Z then Y then X (yaw-pitch-roll), alpha about x,
    beta about y, gamma about z.
    """
    a = math.radians(float(alpha))
    b = math.radians(float(beta))
    g = math.radians(float(gamma))
    cx, sx = math.cos(a), math.sin(a)
    cy, sy = math.cos(b), math.sin(b)
    cz, sz = math.cos(g), math.sin(g)

    T = np.zeros((4, 4), dtype=np.float64)
    T[0, 0] = cy * cz
    T[0, 1] = sx * sy * cz - cx * sz
    T[0, 2] = cx * sy * cz + sx * sz
    T[1, 0] = cy * sz
    T[1, 1] = sx * sy * sz + cx * cz
    T[1, 2] = cx * sy * sz - sx * cz
    T[2, 0] = -sy
    T[2, 1] = sx * cy
    T[2, 2] = cx * cy
    T[0, 3] = float(tx)
    T[1, 3] = float(ty)
    T[2, 3] = float(tz)
    T[3, 3] = 1.0
    return T
