"""
Tests for the convolution filter primer
"""

import pytest
import torch

from cnn_tutorial.filters import (
    KERNELS,
    apply_filter,
    conv_output_size,
    get_kernel,
    max_pool,
    relu,
)


def step_image(size=6):
    """Dark left half, bright right half."""
    image = torch.zeros(size, size)
    image[:, size // 2:] = 1.0
    return image


class TestKernels:
    """Tests for the named kernels."""

    def test_all_kernels_are_3x3(self):
        for name in KERNELS:
            assert get_kernel(name).shape == (3, 3)

    def test_blur_kernels_sum_to_one(self):
        assert get_kernel("box_blur").sum().item() == pytest.approx(1.0)
        assert get_kernel("gaussian_blur").sum().item() == pytest.approx(1.0)

    def test_unknown_kernel(self):
        with pytest.raises(ValueError):
            get_kernel("emboss_3d")


class TestOutputSize:
    """Tests for the convolution size formula."""

    def test_valid_convolution(self):
        assert conv_output_size(28, 3) == 26

    def test_same_padding(self):
        assert conv_output_size(28, 3, padding=1) == 28

    def test_stride(self):
        assert conv_output_size(28, 3, stride=2) == 13

    def test_pooling(self):
        assert conv_output_size(24, 2, stride=2) == 12

    def test_kernel_too_large(self):
        with pytest.raises(ValueError):
            conv_output_size(2, 3)

    def test_invalid_stride(self):
        with pytest.raises(ValueError):
            conv_output_size(28, 3, stride=0)


class TestApplyFilter:
    """Tests for applying kernels to images."""

    def test_identity_with_padding(self):
        """Identity kernel with padding 1 leaves the image unchanged."""
        image = torch.rand(5, 7)
        out = apply_filter(image, "identity", padding=1)
        assert torch.allclose(out, image)

    def test_output_shape_without_padding(self):
        out = apply_filter(torch.rand(10, 12), "sharpen")
        assert out.shape == (8, 10)

    def test_vertical_edge_response(self):
        """Vertical edge kernel fires on the boundary and nowhere else."""
        out = apply_filter(step_image(6), "vertical_edge")
        # valid conv of a 6x6 image: columns 1 and 2 of the output straddle the step
        assert torch.all(out[:, 0] == 0)
        assert torch.all(out[:, 1:3] > 0)
        assert torch.all(out[:, 3] == 0)

    def test_horizontal_edge_ignores_vertical_step(self):
        out = apply_filter(step_image(6), "horizontal_edge")
        assert torch.allclose(out, torch.zeros_like(out))

    def test_channels_filtered_independently(self):
        image = torch.rand(3, 6, 6)
        out = apply_filter(image, "box_blur")
        assert out.shape == (3, 4, 4)
        assert torch.allclose(out[1], apply_filter(image[1], "box_blur"))

    def test_custom_kernel_tensor(self):
        kernel = torch.ones(2, 2)
        out = apply_filter(torch.ones(4, 4), kernel, stride=2)
        assert out.shape == (2, 2)
        assert torch.allclose(out, torch.full((2, 2), 4.0))

    def test_rejects_bad_image_rank(self):
        with pytest.raises(ValueError):
            apply_filter(torch.rand(1, 1, 4, 4), "identity")


class TestReluAndPool:
    """Tests for the rectify and pool steps."""

    def test_relu(self):
        out = relu(torch.tensor([[-1.0, 2.0], [0.0, -3.0]]))
        assert out.tolist() == [[0.0, 2.0], [0.0, 0.0]]

    def test_max_pool(self):
        image = torch.arange(16, dtype=torch.float32).reshape(4, 4)
        out = max_pool(image, pool_size=2)
        assert out.tolist() == [[5.0, 7.0], [13.0, 15.0]]

    def test_max_pool_multichannel(self):
        assert max_pool(torch.rand(2, 6, 6), pool_size=3).shape == (2, 2, 2)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
