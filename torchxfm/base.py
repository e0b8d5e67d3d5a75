"""
Base transform class and the identity transform.

Every transform maps 3D points between coordinate frames and can produce
its own inverse. Transforms are immutable once constructed.
"""

from abc import ABC, abstractmethod
from typing import Any

import torch

from .utils import as_points, restore_points


class BaseTransform(ABC):
    """
    Base class for all spatial transforms.

    Subclasses implement apply() for a single point [3] or a batch of
    points [N, 3], and invert() returning a new transform. Options that a
    transform does not understand (e.g. max_iter for an affine) are
    accepted and ignored, so a chain can forward one option set to every
    element.
    """

    @abstractmethod
    def apply(self, points: Any, **options: Any) -> torch.Tensor:
        """
        Map points through the transform.

        To be implemented by subclasses.
        """
        pass

    @abstractmethod
    def invert(self) -> "BaseTransform":
        """
        Return the inverse transform.

        To be implemented by subclasses.
        """
        pass

    def __call__(self, points: Any, **options: Any) -> torch.Tensor:
        """Make the transform callable."""
        return self.apply(points, **options)


class IdentityTransform(BaseTransform):
    """Neutral transform: returns points unchanged."""

    def apply(self, points: Any, **options: Any) -> torch.Tensor:
        tensor, single = as_points(points)
        return restore_points(tensor, single)

    def invert(self) -> "IdentityTransform":
        return self

    def __eq__(self, other: object) -> bool:
        return isinstance(other, IdentityTransform)

    def __hash__(self) -> int:
        return hash(IdentityTransform)

    def __repr__(self) -> str:
        return "IdentityTransform()"
