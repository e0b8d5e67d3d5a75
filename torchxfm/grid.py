"""
Dense displacement field (grid) transforms.

GridTransform maps a world point p to p + d(p), where d is looked up in a
sampled displacement field. InverseGridTransform represents the inverse
map without resampling a new field: it solves x + d(x) = p by damped
fixed-point iteration at query time.
"""

import logging
from dataclasses import dataclass
from typing import Any

import torch

from .affine import AffineTransform
from .base import BaseTransform
from .interpolation import FieldInterpolator
from .utils import DEFAULT_DTYPE, as_matrix, as_points, restore_points

log = logging.getLogger(__name__)

DEFAULT_MAX_ITER = 10
DEFAULT_FTOL = 1.0 / 80
DAMPING = 0.95


@dataclass(frozen=True)
class InversionResult:
    """
    Outcome of an inverse grid solve.

    Attributes:
        points: Best inverse estimates, same shape as the query points
        residual: L1 norm of p - (x + d(x)) at each returned estimate
        iterations: Number of iterations used per point, the initial
            guess counting as the first
    """

    points: torch.Tensor
    residual: torch.Tensor
    iterations: torch.Tensor
    ftol: float = DEFAULT_FTOL

    @property
    def converged(self) -> torch.Tensor:
        """Mask of points whose residual reached ftol."""
        return self.residual <= self.ftol


class _DisplacementFieldTransform(BaseTransform):
    """State and field lookup shared by the forward and inverse grid transforms."""

    def __init__(
        self,
        voxel_to_world: Any = None,
        field: Any = None,
        dtype: torch.dtype = DEFAULT_DTYPE,
    ):
        """
        Args:
            voxel_to_world: AffineTransform or homogeneous matrix from voxel
                indices to world coordinates (identity if None)
            field: World-space displacement field [3, nx, ny, nz]
                (zero [3, 3, 3, 3] field if None)
            dtype: Floating point precision of the transform
        """
        if voxel_to_world is None:
            voxel_to_world = AffineTransform(dtype=dtype)
        if field is None:
            field = torch.zeros(3, 3, 3, 3, dtype=dtype)

        if isinstance(voxel_to_world, AffineTransform):
            voxel_to_world = AffineTransform(
                voxel_to_world._matrix, voxel_to_world._translation, dtype=dtype
            )
        else:
            voxel_to_world = AffineTransform(voxel_to_world, dtype=dtype)
        self._dtype = dtype
        self._voxel_to_world = voxel_to_world
        self._world_to_voxel = voxel_to_world.invert()
        self._field = as_matrix(field, dtype)
        self._interpolator = FieldInterpolator(self._field)

    @classmethod
    def _from_parts(cls, other: "_DisplacementFieldTransform") -> Any:
        # Share affines, field and interpolator; nothing is rebuilt
        transform = cls.__new__(cls)
        transform._dtype = other._dtype
        transform._voxel_to_world = other._voxel_to_world
        transform._world_to_voxel = other._world_to_voxel
        transform._field = other._field
        transform._interpolator = other._interpolator
        return transform

    @property
    def dtype(self) -> torch.dtype:
        return self._dtype

    @property
    def voxel_to_world(self) -> AffineTransform:
        """Affine from voxel indices to world coordinates."""
        return self._voxel_to_world

    @property
    def world_to_voxel(self) -> AffineTransform:
        """Exact inverse of voxel_to_world, computed once at construction."""
        return self._world_to_voxel

    @property
    def field(self) -> torch.Tensor:
        """Displacement field [3, nx, ny, nz], shared with the inverse transform."""
        return self._field

    def _displacement(self, points: torch.Tensor) -> torch.Tensor:
        # points [N, 3] in world space -> displacement [N, 3]
        voxels = self._world_to_voxel.apply(points)
        return self._interpolator(voxels)

    def displacement(self, points: Any) -> torch.Tensor:
        """
        Look up the world-space displacement at world points.

        Args:
            points: Single point [3] or batch [N, 3]

        Returns:
            Displacement vectors with the same shape as the input
        """
        tensor, single = as_points(points, self._dtype, self._field.device)
        return restore_points(self._displacement(tensor), single)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        same_field = other.field is self.field or (
            other.field.shape == self.field.shape and torch.equal(other.field, self.field)
        )
        return same_field and self.voxel_to_world == other.voxel_to_world

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        dtype = str(self.dtype).replace("torch.", "")
        return f"{self.__class__.__name__}({dtype}, field={tuple(self.field.shape)})"


class GridTransform(_DisplacementFieldTransform):
    """Forward dense displacement field transform: p -> p + d(p)."""

    def apply(self, points: Any, **options: Any) -> torch.Tensor:
        tensor, single = as_points(points, self._dtype, self._field.device)
        return restore_points(tensor + self._displacement(tensor), single)

    def invert(self) -> "InverseGridTransform":
        return InverseGridTransform._from_parts(self)


class InverseGridTransform(_DisplacementFieldTransform):
    """
    Functional inverse of a GridTransform built on the same field.

    apply() finds x such that x + d(x) = p by successive approximation:
    starting from x = p - d(p), the estimate is moved by DAMPING times the
    residual until the L1 residual drops to ftol or max_iter iterations
    have been used. The estimate with the smallest residual seen is
    returned. Not converging is not an error; use solve() to obtain the
    achieved residual and iteration count.
    """

    def apply(
        self,
        points: Any,
        max_iter: int = DEFAULT_MAX_ITER,
        ftol: float = DEFAULT_FTOL,
        legacy_threshold: bool = False,
        **options: Any,
    ) -> torch.Tensor:
        return self.solve(
            points, max_iter=max_iter, ftol=ftol, legacy_threshold=legacy_threshold
        ).points

    def solve(
        self,
        points: Any,
        max_iter: int = DEFAULT_MAX_ITER,
        ftol: float = DEFAULT_FTOL,
        legacy_threshold: bool = False,
    ) -> InversionResult:
        """
        Invert the displacement field at the given points.

        Args:
            points: Single target point [3] or batch [N, 3]
            max_iter: Maximum number of iterations, including the initial guess
            ftol: Stop once the L1 residual is at or below this value
            legacy_threshold: Keep comparing against the initial residual
                instead of the best residual so far. This reproduces
                the output of older implementations and usually runs all
                max_iter iterations.

        Returns:
            InversionResult with the estimates and convergence diagnostics
        """
        target, single = as_points(points, self._dtype, self._field.device)

        estimate = target - self._displacement(target)
        err = target - (estimate + self._displacement(estimate))
        err_mag = err.abs().sum(dim=-1)

        best = estimate
        best_mag = err_mag
        threshold = err_mag
        iterations = torch.ones(target.shape[0], dtype=torch.long, device=target.device)

        for _ in range(1, max_iter):
            active = threshold > ftol
            if not active.any():
                break

            estimate = torch.where(active[:, None], estimate + DAMPING * err, estimate)
            err = target - (estimate + self._displacement(estimate))
            err_mag = err.abs().sum(dim=-1)

            improved = active & (err_mag < threshold)
            best = torch.where(improved[:, None], estimate, best)
            best_mag = torch.where(improved, err_mag, best_mag)
            if not legacy_threshold:
                threshold = best_mag
            iterations = iterations + active.long()

        unconverged = int((best_mag > ftol).sum())
        if unconverged:
            log.debug(
                "Grid inversion: %d of %d points above ftol=%g after %d iterations",
                unconverged,
                target.shape[0],
                ftol,
                int(iterations.max()),
            )

        return InversionResult(
            points=restore_points(best, single),
            residual=restore_points(best_mag, single),
            iterations=restore_points(iterations, single),
            ftol=ftol,
        )

    def invert(self) -> GridTransform:
        return GridTransform._from_parts(self)
