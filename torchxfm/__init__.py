"""
TorchXfm: 3D coordinate transforms for volumetric image processing

Maps points between coordinate frames with affine and dense displacement
field transforms, composes them into chains and inverts them, including
iterative inversion of displacement fields.

Key Features:
- Affine transforms with exact inverse and start/step/direction decomposition
- Displacement field transforms with trilinear interpolation
- Inverse field transforms solved per point, no resampled inverse field
- SimpleITK integration

Quick Example:
    >>> import torch
    >>> import torchxfm
    >>>
    >>> voxel_to_world = torchxfm.AffineTransform(torch.eye(3) * 2.0, [-10.0, -10.0, -10.0])
    >>> field = torch.zeros(3, 11, 11, 11)  # [C, nx, ny, nz] displacements
    >>> field[0] = 0.5
    >>>
    >>> forward = torchxfm.GridTransform(voxel_to_world, field)
    >>> chain = torchxfm.TransformChain([forward, torchxfm.AffineTransform()])
    >>>
    >>> moved = torchxfm.apply(chain, [[0.0, 0.0, 0.0]])
    >>> restored = torchxfm.apply(torchxfm.invert(chain), moved)
"""

__version__ = "0.1.0"

# Import submodules to make them available as torchxfm.submodule
from . import affine, base, chain, conversion, exceptions, grid, interpolation, utils

from .affine import AffineTransform, decompose
from .base import BaseTransform, IdentityTransform
from .chain import TransformChain, apply, invert
from .exceptions import ConstructionError, SingularMatrixError, TransformError
from .grid import (
    DAMPING,
    DEFAULT_FTOL,
    DEFAULT_MAX_ITER,
    GridTransform,
    InverseGridTransform,
    InversionResult,
)
from .interpolation import FieldInterpolator

__all__ = [
    # Transforms
    "AffineTransform",
    "BaseTransform",
    "GridTransform",
    "IdentityTransform",
    "InverseGridTransform",
    "TransformChain",
    # Operations
    "apply",
    "decompose",
    "invert",
    # Supporting types
    "FieldInterpolator",
    "InversionResult",
    # Errors
    "ConstructionError",
    "SingularMatrixError",
    "TransformError",
    # Defaults of the inverse solver
    "DAMPING",
    "DEFAULT_FTOL",
    "DEFAULT_MAX_ITER",
    # Submodules
    "affine",
    "base",
    "chain",
    "conversion",
    "exceptions",
    "grid",
    "interpolation",
    "utils",
]
