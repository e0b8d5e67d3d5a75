"""
Utility functions for converting SimpleITK objects to torchxfm transforms.

Only in-memory objects are converted; reading and writing files is left to
SimpleITK itself.
"""

import numpy as np
import SimpleITK as sitk
import torch

from .affine import AffineTransform
from .exceptions import ConstructionError
from .grid import GridTransform
from .utils import DEFAULT_DTYPE


def affine_from_sitk(
    transform: sitk.Transform, dtype: torch.dtype = DEFAULT_DTYPE
) -> AffineTransform:
    """
    Convert a 3D SimpleITK matrix-offset transform to an AffineTransform.

    Args:
        transform: SimpleITK AffineTransform, Euler3DTransform,
            Similarity3DTransform or any transform exposing GetMatrix,
            GetTranslation and GetCenter
        dtype: Desired precision of the result

    Returns:
        AffineTransform mapping the same points

    Note:
        SimpleITK applies A @ (x - c) + c + t. The centre c is folded into
        the translation: t' = t + c - A @ c.
    """
    if transform.GetDimension() != 3:
        raise ConstructionError(
            f"Only 3D transforms are supported, got {transform.GetDimension()}D"
        )
    if not hasattr(transform, "GetMatrix"):
        raise ConstructionError(
            f"{transform.GetName()} has no matrix representation"
        )

    matrix = np.array(transform.GetMatrix(), dtype=np.float64).reshape(3, 3)
    translation = np.array(transform.GetTranslation(), dtype=np.float64)
    center = np.array(transform.GetCenter(), dtype=np.float64)

    offset = translation + center - matrix @ center

    return AffineTransform(matrix, offset, dtype=dtype)


def affine_to_sitk(affine: AffineTransform) -> sitk.AffineTransform:
    """
    Convert an AffineTransform to a SimpleITK AffineTransform (centre at origin).

    Args:
        affine: Affine transform to convert

    Returns:
        SimpleITK AffineTransform
    """
    matrix = affine.matrix.detach().cpu().numpy().astype(np.float64)
    translation = affine.translation.detach().cpu().numpy().astype(np.float64)

    transform = sitk.AffineTransform(3)
    transform.SetMatrix(matrix.flatten().tolist())
    transform.SetTranslation(translation.tolist())

    return transform


def voxel_to_world_from_image(
    image: sitk.Image, dtype: torch.dtype = DEFAULT_DTYPE
) -> AffineTransform:
    """
    Build the voxel-to-world affine of a 3D SimpleITK image.

    Args:
        image: SimpleITK image (scalar or vector)
        dtype: Desired precision of the result

    Returns:
        AffineTransform with linear part direction @ diag(spacing) and the
        image origin as translation
    """
    if image.GetDimension() != 3:
        raise ConstructionError(
            f"Only 3D images are supported, got {image.GetDimension()}D"
        )

    direction = np.array(image.GetDirection(), dtype=np.float64).reshape(3, 3)
    spacing = np.array(image.GetSpacing(), dtype=np.float64)
    origin = np.array(image.GetOrigin(), dtype=np.float64)

    return AffineTransform(direction @ np.diag(spacing), origin, dtype=dtype)


def grid_from_sitk_field(
    field_image: sitk.Image, dtype: torch.dtype = DEFAULT_DTYPE
) -> GridTransform:
    """
    Convert a SimpleITK displacement field image to a GridTransform.

    Args:
        field_image: 3D vector image with 3 components per voxel holding
            world-space displacements
        dtype: Desired precision of the result

    Returns:
        GridTransform over the same field and geometry

    Note:
        SimpleITK arrays are ordered (z, y, x, component). They are
        reordered to (component, x, y, z) so that voxel (i, j, k) matches
        the image index.
    """
    if field_image.GetDimension() != 3:
        raise ConstructionError(
            f"Only 3D displacement fields are supported, got {field_image.GetDimension()}D"
        )
    if field_image.GetNumberOfComponentsPerPixel() != 3:
        raise ConstructionError(
            "Displacement field must have 3 components per voxel, "
            f"got {field_image.GetNumberOfComponentsPerPixel()}"
        )

    array = sitk.GetArrayFromImage(field_image)
    field = np.ascontiguousarray(np.transpose(array, (3, 2, 1, 0)))

    return GridTransform(
        voxel_to_world_from_image(field_image, dtype=dtype),
        torch.from_numpy(field),
        dtype=dtype,
    )


def grid_from_sitk_transform(
    transform: sitk.DisplacementFieldTransform, dtype: torch.dtype = DEFAULT_DTYPE
) -> GridTransform:
    """Convert a SimpleITK DisplacementFieldTransform to a GridTransform."""
    return grid_from_sitk_field(transform.GetDisplacementField(), dtype=dtype)
