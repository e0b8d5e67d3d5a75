"""
Affine transforms and their decomposition into sampling metadata.

An affine transform maps a point p to R @ p + t where R is the 3x3 linear
part and t the translation. Only the leading 3x3 block and the first three
translation entries of the supplied matrices are used.
"""

from typing import Any

import torch

from .base import BaseTransform
from .exceptions import ConstructionError, SingularMatrixError
from .utils import DEFAULT_DTYPE, as_matrix, as_points, restore_points


class AffineTransform(BaseTransform):
    """
    Linear map plus translation with an exact closed-form inverse.

    Can be built from a combined homogeneous matrix ([4, 4] or [3, 4]) or
    from a separate linear part [3, 3] and translation [3]. With no
    arguments the identity affine is created.
    """

    def __init__(
        self,
        matrix: Any = None,
        translation: Any = None,
        dtype: torch.dtype = DEFAULT_DTYPE,
    ):
        """
        Args:
            matrix: Homogeneous matrix [4, 4] / [3, 4] if translation is None,
                otherwise the linear part [3, 3]. Extra rows and columns are
                ignored.
            translation: Translation vector [3] (optional)
            dtype: Floating point precision of the transform
        """
        self._dtype = dtype

        if matrix is None:
            if translation is not None:
                raise ConstructionError(
                    "A translation was given without a linear part"
                )
            matrix = torch.eye(3, dtype=dtype)
            translation = torch.zeros(3, dtype=dtype)

        matrix = as_matrix(matrix, dtype)
        if matrix.ndim != 2:
            raise ConstructionError(
                f"Affine matrix must be 2D, got shape {tuple(matrix.shape)}"
            )

        if translation is None:
            # Combined form: translation lives in the fourth column
            if matrix.shape[0] < 3 or matrix.shape[1] < 4:
                raise ConstructionError(
                    f"Homogeneous matrix must be at least [3, 4], got {tuple(matrix.shape)}"
                )
            translation = matrix[:3, 3]
        else:
            translation = as_matrix(translation, dtype).reshape(-1)
            if matrix.shape[0] < 3 or matrix.shape[1] < 3:
                raise ConstructionError(
                    f"Linear part must be at least [3, 3], got {tuple(matrix.shape)}"
                )
            if translation.shape[0] < 3:
                raise ConstructionError(
                    f"Translation must have at least 3 entries, got {translation.shape[0]}"
                )

        self._matrix = matrix[:3, :3].clone()
        self._translation = translation[:3].clone()

        if not (
            torch.isfinite(self._matrix).all() and torch.isfinite(self._translation).all()
        ):
            raise ConstructionError("Affine parameters must be finite")

    @property
    def dtype(self) -> torch.dtype:
        return self._dtype

    @property
    def matrix(self) -> torch.Tensor:
        """Linear part R [3, 3]."""
        return self._matrix.clone()

    @property
    def translation(self) -> torch.Tensor:
        """Translation t [3]."""
        return self._translation.clone()

    @property
    def homogeneous(self) -> torch.Tensor:
        """Homogeneous matrix [[R, t], [0, 0, 0, 1]] of shape [4, 4]."""
        homo = torch.eye(4, dtype=self._dtype, device=self._matrix.device)
        homo[:3, :3] = self._matrix
        homo[:3, 3] = self._translation
        return homo

    def apply(self, points: Any, **options: Any) -> torch.Tensor:
        """
        Apply R @ p + t to continuous points.

        Args:
            points: Single point [3] or batch [N, 3]

        Returns:
            Transformed points with the same shape as the input
        """
        tensor, single = as_points(points, self._dtype, self._matrix.device)
        transformed = torch.matmul(tensor, self._matrix.T) + self._translation
        return restore_points(transformed, single)

    def apply_index(self, indices: Any, index_base: int = 0) -> torch.Tensor:
        """
        Apply the transform to discrete grid indices.

        Args:
            indices: Single index [3] or batch [N, 3] (integers)
            index_base: Index of the first voxel in the caller's convention.
                Storage here is zero-based; pass 1 for one-based indices.

        Returns:
            World coordinates of the voxels
        """
        tensor, single = as_points(indices, self._dtype, self._matrix.device)
        transformed = self.apply(tensor - index_base)
        return restore_points(transformed, single)

    def invert(self) -> "AffineTransform":
        """
        Invert via the homogeneous matrix.

        Raises:
            SingularMatrixError: If the homogeneous matrix is not invertible
        """
        inverse, info = torch.linalg.inv_ex(self.homogeneous)
        if info.item() != 0 or not torch.isfinite(inverse).all():
            raise SingularMatrixError(
                f"Affine transform is not invertible:\n{self.homogeneous}"
            )
        return AffineTransform(inverse, dtype=self._dtype)

    def decompose(self) -> tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        """Decompose into (start, step, direction_cosines), see decompose()."""
        return decompose(self._matrix, self._translation)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AffineTransform):
            return NotImplemented
        return torch.equal(self._matrix, other._matrix) and torch.equal(
            self._translation, other._translation
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"AffineTransform(matrix={self._matrix.tolist()}, "
            f"translation={self._translation.tolist()})"
        )


def decompose(
    transform: Any, translation: Any = None
) -> tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """
    Decompose an affine transform into start, step and direction cosines.

    The direction cosines C = U @ Vt are taken from the SVD R = U @ S @ Vt,
    which removes scaling. The per-axis step is diag(R @ inv(C)) and the
    start is t @ inv(C).

    Args:
        transform: AffineTransform, homogeneous matrix [4, 4] / [3, 4], or the
            linear part [3, 3] when translation is given
        translation: Translation vector [3] (optional)

    Returns:
        Tuple of (start [3], step [3], direction_cosines [3, 3])
    """
    if not isinstance(transform, AffineTransform):
        dtype = (
            transform.dtype
            if isinstance(transform, torch.Tensor) and transform.is_floating_point()
            else DEFAULT_DTYPE
        )
        transform = AffineTransform(transform, translation, dtype=dtype)

    rot = transform._matrix
    shift = transform._translation

    U, _, Vt = torch.linalg.svd(rot)

    # Remove scaling
    dir_cos = torch.matmul(U, Vt)
    inv_dir_cos = torch.linalg.inv(dir_cos)

    step = torch.diagonal(torch.matmul(rot, inv_dir_cos))
    start = torch.matmul(shift, inv_dir_cos)

    return start, step, dir_cos
