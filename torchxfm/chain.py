"""
Ordered composition of transforms and the generic apply/invert entry points.
"""

import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any

import torch

from .base import BaseTransform
from .exceptions import ConstructionError
from .utils import as_points, restore_points

log = logging.getLogger(__name__)


class TransformChain(BaseTransform):
    """
    Sequence of transforms applied left to right.

    An empty chain behaves as the identity. Chains may be nested.
    """

    def __init__(self, transforms: Iterable[BaseTransform] = ()):
        """
        Args:
            transforms: Transforms in the order they are applied
        """
        self._transforms = tuple(transforms)
        for index, transform in enumerate(self._transforms):
            if not isinstance(transform, BaseTransform):
                raise ConstructionError(
                    f"Chain element {index} is not a transform: {type(transform).__name__}"
                )
        log.debug("Built transform chain of %d elements", len(self._transforms))

    def apply(self, points: Any, **options: Any) -> torch.Tensor:
        """
        Fold points through every element in order.

        Args:
            points: Single point [3] or batch [N, 3]
            **options: Iteration options (max_iter, ftol, ...) forwarded
                unchanged to every element

        Returns:
            Transformed points with the same shape as the input
        """
        tensor, single = as_points(points)
        for transform in self._transforms:
            tensor = transform.apply(tensor, **options)
        return restore_points(tensor, single)

    def invert(self) -> "TransformChain":
        """Reverse the order and invert each element."""
        return TransformChain([t.invert() for t in reversed(self._transforms)])

    def __len__(self) -> int:
        return len(self._transforms)

    def __iter__(self) -> Iterator[BaseTransform]:
        return iter(self._transforms)

    def __getitem__(self, index: int) -> BaseTransform:
        return self._transforms[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (list, tuple)):
            if not all(isinstance(t, BaseTransform) for t in other):
                return NotImplemented
            other = TransformChain(other)
        if not isinstance(other, TransformChain):
            return NotImplemented
        return len(self) == len(other) and all(
            a == b for a, b in zip(self._transforms, other._transforms, strict=True)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        inner = ", ".join(repr(t) for t in self._transforms)
        return f"TransformChain([{inner}])"


def _as_transform(transform: BaseTransform | Sequence[BaseTransform]) -> BaseTransform:
    if isinstance(transform, BaseTransform):
        return transform
    if isinstance(transform, (list, tuple)):
        return TransformChain(transform)
    raise TypeError(
        f"Expected a transform or a sequence of transforms, got {type(transform).__name__}"
    )


def apply(
    transform: BaseTransform | Sequence[BaseTransform], points: Any, **options: Any
) -> torch.Tensor:
    """
    Map points through a transform.

    Args:
        transform: Any transform, or a list/tuple of transforms applied in order
        points: Single point [3] or batch [N, 3]
        **options: Iteration options for inverse grid transforms
            (max_iter, ftol, legacy_threshold)

    Returns:
        Transformed points with the same shape as the input
    """
    return _as_transform(transform).apply(points, **options)


def invert(transform: BaseTransform | Sequence[BaseTransform]) -> BaseTransform:
    """
    Return the inverse of a transform. Lists and tuples are inverted as chains.

    The original transform is never modified.
    """
    return _as_transform(transform).invert()
