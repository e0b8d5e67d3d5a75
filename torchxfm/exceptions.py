"""
Exceptions raised by torchxfm transforms.
"""


class TransformError(Exception):
    """Base class for all transform errors."""


class ConstructionError(TransformError, ValueError):
    """Raised when a transform is built from malformed input."""


class SingularMatrixError(TransformError, ValueError):
    """Raised when an affine transform cannot be inverted."""
