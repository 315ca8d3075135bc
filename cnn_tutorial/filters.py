"""
Convolution Filter Primer

Hand-made 3x3 kernels and the three operations a convolutional block is made
of: filter (convolution), rectify (ReLU) and pool. Learned CNN filters do the
same thing as these kernels, only their weights come from training.

Images are tensors of shape [H, W] (grayscale) or [C, H, W]; every channel is
filtered independently with the same kernel.
"""

from typing import Dict, Optional, Union

import torch
import torch.nn.functional as F

KernelLike = Union[str, torch.Tensor]


KERNELS: Dict[str, list] = {
    "identity": [
        [0.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 0.0],
    ],
    # Sobel: responds to intensity changes along the vertical axis
    "horizontal_edge": [
        [-1.0, -2.0, -1.0],
        [0.0, 0.0, 0.0],
        [1.0, 2.0, 1.0],
    ],
    "vertical_edge": [
        [-1.0, 0.0, 1.0],
        [-2.0, 0.0, 2.0],
        [-1.0, 0.0, 1.0],
    ],
    "sharpen": [
        [0.0, -1.0, 0.0],
        [-1.0, 5.0, -1.0],
        [0.0, -1.0, 0.0],
    ],
    "box_blur": [[1.0 / 9.0] * 3 for _ in range(3)],
    "gaussian_blur": [
        [1.0 / 16.0, 2.0 / 16.0, 1.0 / 16.0],
        [2.0 / 16.0, 4.0 / 16.0, 2.0 / 16.0],
        [1.0 / 16.0, 2.0 / 16.0, 1.0 / 16.0],
    ],
    "outline": [
        [-1.0, -1.0, -1.0],
        [-1.0, 8.0, -1.0],
        [-1.0, -1.0, -1.0],
    ],
}


def get_kernel(name: str) -> torch.Tensor:
    """
    Return one of the predefined kernels as a float32 tensor.

    Args:
        name (str): Kernel identifier (see KERNELS).

    Returns:
        torch.Tensor: Kernel of shape [3, 3].
    """
    key = name.lower()
    if key not in KERNELS:
        raise ValueError(
            f"Unknown kernel: {name}. Available options: {list(KERNELS.keys())}"
        )
    return torch.tensor(KERNELS[key], dtype=torch.float32)


def conv_output_size(size: int, kernel_size: int, stride: int = 1, padding: int = 0) -> int:
    """
    Spatial size of a convolution (or pooling) output along one axis.

        out = floor((size + 2 * padding - kernel_size) / stride) + 1
    """
    if stride < 1:
        raise ValueError(f"Stride must be >= 1, got {stride}")
    if kernel_size < 1:
        raise ValueError(f"Kernel size must be >= 1, got {kernel_size}")

    out = (size + 2 * padding - kernel_size) // stride + 1
    if out < 1:
        raise ValueError(
            f"Kernel {kernel_size} with padding {padding} does not fit an input of size {size}"
        )
    return out


def _as_batch(image: torch.Tensor) -> torch.Tensor:
    # [H, W] or [C, H, W] -> [C, 1, H, W] so each channel is filtered on its own
    if image.dim() == 2:
        return image.float().unsqueeze(0).unsqueeze(0)
    if image.dim() == 3:
        return image.float().unsqueeze(1)
    raise ValueError(f"Expected an image of shape [H, W] or [C, H, W], got {tuple(image.shape)}")


def _restore(out: torch.Tensor, ndim: int) -> torch.Tensor:
    out = out.squeeze(1)
    if ndim == 2:
        return out.squeeze(0)
    return out


def apply_filter(
    image: torch.Tensor,
    kernel: KernelLike,
    stride: int = 1,
    padding: int = 0,
) -> torch.Tensor:
    """
    Convolve an image with a single 2-D kernel.

    Args:
        image (torch.Tensor): Image of shape [H, W] or [C, H, W].
        kernel (str or torch.Tensor): Kernel name or a [kH, kW] tensor.
        stride (int): Step between kernel positions.
        padding (int): Zero padding added on every side.

    Returns:
        torch.Tensor: Filtered image with the same rank as the input.
    """
    if isinstance(kernel, str):
        kernel = get_kernel(kernel)
    if kernel.dim() != 2:
        raise ValueError(f"Kernel must be 2-D, got shape {tuple(kernel.shape)}")

    # fail early with a readable message instead of a conv2d shape error
    conv_output_size(image.shape[-2], kernel.shape[0], stride, padding)
    conv_output_size(image.shape[-1], kernel.shape[1], stride, padding)

    batch = _as_batch(image)
    weight = kernel.float().to(batch.device).unsqueeze(0).unsqueeze(0)
    out = F.conv2d(batch, weight, stride=stride, padding=padding)
    return _restore(out, image.dim())


def relu(image: torch.Tensor) -> torch.Tensor:
    """Zero out negative responses."""
    return torch.clamp(image, min=0.0)


def max_pool(image: torch.Tensor, pool_size: int = 2, stride: Optional[int] = None) -> torch.Tensor:
    """
    Downsample an image by keeping the maximum of each pooling window.

    Args:
        image (torch.Tensor): Image of shape [H, W] or [C, H, W].
        pool_size (int): Window size.
        stride (int, optional): Window step, defaults to ``pool_size``.
    """
    stride = stride or pool_size
    conv_output_size(image.shape[-2], pool_size, stride)
    conv_output_size(image.shape[-1], pool_size, stride)

    out = F.max_pool2d(_as_batch(image), kernel_size=pool_size, stride=stride)
    return _restore(out, image.dim())
