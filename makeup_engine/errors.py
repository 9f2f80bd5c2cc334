from __future__ import annotations


class MakeupError(ValueError):
    """Base class for every checked failure raised by the engine."""


class InvalidInputError(MakeupError):
    """Wrong landmark count, out-of-range amount, mismatched images."""


class UnsupportedFormatError(MakeupError):
    """Pixel format or channel layout not handled by the operation."""


class DegenerateGeometryError(MakeupError):
    """Zero-area moments, empty masks or other geometry without a solution."""
