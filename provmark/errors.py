"""
Error taxonomy for mark construction and decoding.

Shape and range problems are caller mistakes and raise immediately.
Chain-level validation never raises; it returns False.
"""


class MarkError(ValueError):
    """A mark could not be constructed or decoded."""


class ShapeError(MarkError):
    """A field or message has the wrong length for its resolution."""


class RangeError(MarkError):
    """A sequence number or date is outside the resolution's range."""


class InfoError(MarkError):
    """The info payload is not well-formed structured data."""


class ResolutionError(ValueError):
    """Unknown resolution tag."""
