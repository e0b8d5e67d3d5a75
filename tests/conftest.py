"""
Test configuration and fixtures for torchxfm tests.
"""

import math

import numpy as np
import pytest
import torch

from torchxfm import AffineTransform


@pytest.fixture
def random_seed():
    """Set random seed for reproducible tests."""
    seed = 42
    torch.manual_seed(seed)
    np.random.seed(seed)
    return seed


@pytest.fixture
def random_points(random_seed):
    """Random world points in [-5, 5]^3."""

    def _create_points(num_points=16):
        return torch.rand(num_points, 3, dtype=torch.float64) * 10.0 - 5.0

    return _create_points


@pytest.fixture
def create_rotation():
    """Create 3D rotation matrices from Euler angles."""

    def _create_rotation(rotation_x=0.0, rotation_y=0.0, rotation_z=0.0):
        cos_x, sin_x = math.cos(rotation_x), math.sin(rotation_x)
        cos_y, sin_y = math.cos(rotation_y), math.sin(rotation_y)
        cos_z, sin_z = math.cos(rotation_z), math.sin(rotation_z)

        R_x = torch.tensor(
            [[1, 0, 0], [0, cos_x, -sin_x], [0, sin_x, cos_x]], dtype=torch.float64
        )
        R_y = torch.tensor(
            [[cos_y, 0, sin_y], [0, 1, 0], [-sin_y, 0, cos_y]], dtype=torch.float64
        )
        R_z = torch.tensor(
            [[cos_z, -sin_z, 0], [sin_z, cos_z, 0], [0, 0, 1]], dtype=torch.float64
        )

        return R_z @ R_y @ R_x

    return _create_rotation


@pytest.fixture
def constant_field():
    """Displacement field with the same vector in every voxel."""

    def _create_field(value=(1.0, 1.0, 1.0), shape=(5, 5, 5)):
        field = torch.empty(3, *shape, dtype=torch.float64)
        for c in range(3):
            field[c] = value[c]
        return field

    return _create_field


@pytest.fixture
def linear_field():
    """
    Displacement field growing linearly with the voxel index.

    Component c equals slope * index along axis c, so with an identity
    voxel-to-world map the forward transform is x -> (1 + slope) * x inside
    the sampled domain.
    """

    def _create_field(slope=0.2, size=21):
        index = torch.arange(size, dtype=torch.float64)
        i, j, k = torch.meshgrid(index, index, index, indexing="ij")
        return torch.stack([slope * i, slope * j, slope * k], dim=0)

    return _create_field


@pytest.fixture
def smooth_field():
    """Smooth sub-voxel displacement field with a 2 mm voxel geometry."""

    def _create_field(amplitude=0.3, size=24, spacing=2.0):
        index = torch.arange(size, dtype=torch.float64)
        i, j, k = torch.meshgrid(index, index, index, indexing="ij")
        phase = 2.0 * math.pi / 12.0
        field = torch.stack(
            [
                amplitude * torch.sin(phase * j),
                amplitude * torch.cos(phase * k),
                amplitude * torch.sin(phase * i + 1.0),
            ],
            dim=0,
        )
        origin = -spacing * (size - 1) / 2.0
        voxel_to_world = AffineTransform(
            torch.eye(3, dtype=torch.float64) * spacing, [origin] * 3
        )
        return voxel_to_world, field

    return _create_field


@pytest.fixture
def tolerance():
    """Default tolerance for numerical comparisons."""
    return {"rtol": 1e-10, "atol": 1e-10}
