"""
Utility functions for coercing points and raw matrices into tensors.
"""

from typing import Any

import torch

DEFAULT_DTYPE = torch.float64


def as_points(
    points: Any,
    dtype: torch.dtype | None = None,
    device: torch.device | None = None,
) -> tuple[torch.Tensor, bool]:
    """
    Convert input points to a [N, 3] floating point tensor.

    Args:
        points: A single point [3] or a batch of points [N, 3]
            (tensor, numpy array or nested sequence)
        dtype: Target dtype. If None, floating point tensors keep their
            dtype and everything else becomes DEFAULT_DTYPE
        device: Target device

    Returns:
        Tuple of (points [N, 3], single) where single tells whether the
        input was a single point
    """
    if dtype is None:
        if isinstance(points, torch.Tensor) and points.is_floating_point():
            dtype = points.dtype
        else:
            dtype = DEFAULT_DTYPE

    tensor = torch.as_tensor(points, dtype=dtype, device=device)

    if tensor.ndim == 1 and tensor.shape[0] == 3:
        return tensor.unsqueeze(0), True
    if tensor.ndim == 2 and tensor.shape[1] == 3:
        return tensor, False

    raise ValueError(
        f"Points must have shape [3] or [N, 3], got {tuple(tensor.shape)}"
    )


def restore_points(points: torch.Tensor, single: bool) -> torch.Tensor:
    """Undo the batching done by as_points."""
    if single:
        return points.squeeze(0)
    return points


def as_matrix(
    values: Any, dtype: torch.dtype, device: torch.device | None = None
) -> torch.Tensor:
    """Convert a raw matrix or vector to a tensor of the requested dtype."""
    if isinstance(values, torch.Tensor):
        return values.detach().to(dtype=dtype, device=device)
    return torch.as_tensor(values, dtype=dtype, device=device)
