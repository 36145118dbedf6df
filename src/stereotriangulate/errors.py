from __future__ import annotations


class StereoTriangulateError(Exception):
    pass


class FileFormatError(StereoTriangulateError, ValueError):
    """Unrecognized calibration file suffix."""


class ParseError(StereoTriangulateError, ValueError):
    """Malformed or incomplete record in an input file."""


class ValidationError(StereoTriangulateError, ValueError):
    pass


class NumericalError(StereoTriangulateError, ArithmeticError):
    pass


class OptimizationError(StereoTriangulateError, RuntimeError):
    pass


class StateError(StereoTriangulateError, RuntimeError):
    """An operation was requested before the data it needs was produced."""


class GeometryWarning(UserWarning):
    pass


def _require(cond: bool, msg: str, exc: type[StereoTriangulateError] = ValidationError) -> None:
    if not cond:
        raise exc(msg)
