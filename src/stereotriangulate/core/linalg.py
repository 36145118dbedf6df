from __future__ import annotations

import warnings

import numpy as np
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve

from stereotriangulate.errors import NumericalError


def _equilibrate(M: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Row and column scale factors (r, c) such that diag(r) @ M @ diag(c) has
    entries of magnitude <= 1 with a unit entry in every row and column.
    """
    row_max = np.max(np.abs(M), axis=1)
    if np.any(row_max == 0.0):
        raise NumericalError("singular matrix")
    r = 1.0 / row_max
    col_max = np.max(np.abs(M * r[:, None]), axis=0)
    if np.any(col_max == 0.0):
        raise NumericalError("singular matrix")
    c = 1.0 / col_max
    return r, c


def invert(M: np.ndarray) -> np.ndarray:
    """
    Invert a small dense square matrix (3x3, 4x4, 8x8) by LU with partial pivoting.

    The matrix is equilibrated first so that normal matrices built from pixel
    coordinates (columns spanning many orders of magnitude) are judged on their
    structure rather than their units. Raises NumericalError("singular matrix")
    on a zero or negligible pivot.
    """
    M = np.asarray(M, dtype=np.float64)
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ValueError(f"expected a square matrix, got shape {M.shape}")
    if not np.all(np.isfinite(M)):
        raise NumericalError("singular matrix")

    n = M.shape[0]
    r, c = _equilibrate(M)
    Ms = M * r[:, None] * c[None, :]
    with warnings.catch_warnings():
        # Exactly-zero pivots are reported below as NumericalError.
        warnings.simplefilter("ignore", LinAlgWarning)
        lu, piv = lu_factor(Ms)

    if float(np.min(np.abs(np.diag(lu)))) <= n * np.finfo(np.float64).eps:
        raise NumericalError("singular matrix")
    Ms_inv = lu_solve((lu, piv), np.eye(n, dtype=np.float64))
    # M = diag(1/r) Ms diag(1/c)  =>  M^-1 = diag(c) Ms^-1 diag(r)
    inv = Ms_inv * c[:, None] * r[None, :]
    if not np.all(np.isfinite(inv)):
        raise NumericalError("singular matrix")
    return inv


def solve_normal_equations(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Least-squares solution (A^T A)^-1 A^T b of an overdetermined system."""
    A = np.asarray(A, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    if A.shape[0] != b.shape[0]:
        raise ValueError("A and b must have the same number of rows")
    AtA_inv = invert(A.T @ A)
    return AtA_inv @ (A.T @ b)


def compose(*Ts: np.ndarray) -> np.ndarray:
    """Matrix product T0 @ T1 @ ... (left to right)."""
    out = np.asarray(Ts[0], dtype=np.float64)
    for T in Ts[1:]:
        out = out @ np.asarray(T, dtype=np.float64)
    return out
