"""
Tests for the displacement field interpolator.
"""

import pytest
import torch

from torchxfm import ConstructionError, FieldInterpolator


class TestFieldInterpolator:
    """Test trilinear interpolation with flat extrapolation."""

    def test_exact_at_grid_nodes(self, random_seed):
        """Test that sampling at voxel centres returns the stored vectors."""
        field = torch.rand(3, 4, 5, 6, dtype=torch.float64)
        interpolator = FieldInterpolator(field)

        voxels = torch.tensor(
            [[0, 0, 0], [1, 2, 3], [3, 4, 5], [2, 0, 4]], dtype=torch.float64
        )
        result = interpolator(voxels)

        expected = torch.stack([field[:, i, j, k] for i, j, k in voxels.long().tolist()])
        torch.testing.assert_close(result, expected)

    def test_axis_order(self):
        """Test that voxel coordinates are ordered like the field axes."""
        field = torch.zeros(3, 2, 3, 4, dtype=torch.float64)
        field[0, 1, 0, 0] = 1.0
        field[1, 0, 2, 0] = 2.0
        field[2, 0, 0, 3] = 3.0
        interpolator = FieldInterpolator(field)

        result = interpolator(
            torch.tensor([[1, 0, 0], [0, 2, 0], [0, 0, 3]], dtype=torch.float64)
        )

        expected = torch.tensor(
            [[1.0, 0.0, 0.0], [0.0, 2.0, 0.0], [0.0, 0.0, 3.0]], dtype=torch.float64
        )
        torch.testing.assert_close(result, expected)

    def test_trilinear_midpoint(self, linear_field):
        """Test that a linear field is reproduced exactly between nodes."""
        interpolator = FieldInterpolator(linear_field(slope=0.5, size=5))

        result = interpolator(torch.tensor([[1.5, 2.25, 0.75]], dtype=torch.float64))

        torch.testing.assert_close(
            result, torch.tensor([[0.75, 1.125, 0.375]], dtype=torch.float64)
        )

    def test_channels_interpolated_independently(self):
        """Test that each component is interpolated on its own."""
        field = torch.zeros(3, 2, 2, 2, dtype=torch.float64)
        field[0, 1] = 4.0
        field[2, :, :, 1] = -2.0
        interpolator = FieldInterpolator(field)

        result = interpolator(torch.tensor([[0.25, 0.5, 0.5]], dtype=torch.float64))

        torch.testing.assert_close(
            result, torch.tensor([[1.0, 0.0, -1.0]], dtype=torch.float64)
        )

    def test_flat_extrapolation(self, linear_field):
        """Test that points outside the grid take the nearest boundary value."""
        interpolator = FieldInterpolator(linear_field(slope=0.2, size=21))

        result = interpolator(
            torch.tensor(
                [[-5.0, 10.0, 10.0], [30.0, 10.0, 10.0], [-1.0, 25.0, -100.0]],
                dtype=torch.float64,
            )
        )

        expected = torch.tensor(
            [[0.0, 2.0, 2.0], [4.0, 2.0, 2.0], [0.0, 4.0, 0.0]], dtype=torch.float64
        )
        torch.testing.assert_close(result, expected)

    def test_single_sample_axis(self):
        """Test a field with only one sample along an axis."""
        field = torch.zeros(3, 1, 3, 3, dtype=torch.float64)
        field[0] = 7.0
        interpolator = FieldInterpolator(field)

        result = interpolator(torch.tensor([[0.0, 1.0, 1.0], [3.5, 1.0, 1.0]], dtype=torch.float64))

        torch.testing.assert_close(result[:, 0], torch.tensor([7.0, 7.0], dtype=torch.float64))

    def test_empty_query(self):
        """Test that an empty batch returns an empty result."""
        interpolator = FieldInterpolator(torch.zeros(3, 2, 2, 2))

        result = interpolator(torch.zeros(0, 3))

        assert result.shape == (0, 3)

    def test_shape(self):
        """Test the reported field shape and dtype."""
        interpolator = FieldInterpolator(torch.zeros(3, 4, 5, 6, dtype=torch.float32))

        assert interpolator.shape == (3, 4, 5, 6)
        assert interpolator.dtype == torch.float32

    def test_invalid_field(self):
        """Test error handling for malformed fields."""
        with pytest.raises(ConstructionError, match="3, nx, ny, nz"):
            FieldInterpolator(torch.zeros(2, 4, 4, 4))

        with pytest.raises(ConstructionError, match="3, nx, ny, nz"):
            FieldInterpolator(torch.zeros(3, 4, 4))

        with pytest.raises(ConstructionError, match="empty"):
            FieldInterpolator(torch.zeros(3, 0, 4, 4))
