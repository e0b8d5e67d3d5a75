"""
Trilinear interpolation of dense displacement fields.
"""

import logging

import torch
import torch.nn.functional as F

from .exceptions import ConstructionError

log = logging.getLogger(__name__)


class FieldInterpolator:
    """
    Trilinear interpolator over a displacement field with flat extrapolation.

    The field has shape [3, nx, ny, nz]: three displacement channels over a
    voxel grid. Each channel is interpolated independently at the same
    spatial location, the channel axis itself is never interpolated.
    Outside the sampled domain values clamp to the nearest boundary sample.

    The sampling volume and index normalisation are prepared once here and
    reused by every lookup.
    """

    def __init__(self, field: torch.Tensor):
        """
        Args:
            field: Displacement field tensor [3, nx, ny, nz]
        """
        if field.ndim != 4 or field.shape[0] != 3:
            raise ConstructionError(
                f"Displacement field must have shape [3, nx, ny, nz], got {tuple(field.shape)}"
            )
        if min(field.shape[1:]) < 1:
            raise ConstructionError(
                f"Displacement field has an empty spatial axis: {tuple(field.shape)}"
            )

        # grid_sample input [N, C, D, H, W] with D=nx, H=ny, W=nz
        self._volume = field.unsqueeze(0).contiguous()

        # Map zero-based voxel coordinates to [-1, 1] (align_corners=True).
        # Axes with a single sample map everything to that sample.
        size = torch.tensor(field.shape[1:], dtype=field.dtype, device=field.device)
        self._scale = torch.where(
            size > 1, 2.0 / (size - 1).clamp(min=1), torch.zeros_like(size)
        )

        log.debug("Built field interpolator for field of shape %s", tuple(field.shape))

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of the wrapped field [3, nx, ny, nz]."""
        return tuple(self._volume.shape[1:])

    @property
    def dtype(self) -> torch.dtype:
        return self._volume.dtype

    def __call__(self, voxels: torch.Tensor) -> torch.Tensor:
        """
        Sample the field at continuous voxel coordinates.

        Args:
            voxels: Zero-based voxel coordinates [N, 3] ordered (i, j, k)

        Returns:
            Displacement vectors [N, 3]
        """
        num_points = voxels.shape[0]
        voxels = voxels.to(dtype=self._volume.dtype, device=self._volume.device)
        if num_points == 0:
            return torch.empty_like(voxels)

        normalized = voxels * self._scale - 1.0

        # grid_sample expects coordinates ordered (x, y, z) = (W, H, D)
        grid = normalized.flip(-1).reshape(1, num_points, 1, 1, 3)

        sampled = F.grid_sample(
            self._volume,
            grid,
            mode="bilinear",
            padding_mode="border",
            align_corners=True,
        )

        # [1, 3, N, 1, 1] -> [N, 3]
        return sampled.reshape(3, num_points).T
