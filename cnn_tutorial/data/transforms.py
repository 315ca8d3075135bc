"""
Image Transforms

Training-time augmentation (random shear, zoom, rotation, horizontal flip) and
the deterministic evaluation pipeline. Both end with ToTensor, which rescales
pixel values to [0, 1].
"""

from typing import Sequence

from torchvision import transforms

COLOR_MODES = ("rgb", "grayscale")


def _check_color_mode(color_mode: str) -> str:
    mode = color_mode.lower()
    if mode not in COLOR_MODES:
        raise ValueError(f"Unknown color mode: {color_mode}. Available options: {list(COLOR_MODES)}")
    return mode


def _color_steps(color_mode: str) -> list:
    if _check_color_mode(color_mode) == "grayscale":
        return [transforms.Grayscale(num_output_channels=1)]
    return []


def build_train_transform(
    image_size: Sequence[int] = (150, 150),
    color_mode: str = "rgb",
    horizontal_flip: bool = True,
    shear_degrees: float = 0.0,
    zoom_range: float = 0.0,
    rotation_degrees: float = 0.0,
) -> transforms.Compose:
    """
    Augmenting transform for training images.

    Args:
        image_size: Target (height, width).
        color_mode (str): 'rgb' or 'grayscale'.
        horizontal_flip (bool): Randomly mirror images left-right.
        shear_degrees (float): Maximum shear angle.
        zoom_range (float): Random scale drawn from [1 - zoom_range, 1 + zoom_range].
        rotation_degrees (float): Maximum rotation angle.
    """
    if not 0.0 <= zoom_range < 1.0:
        raise ValueError(f"zoom_range must be in [0, 1), got {zoom_range}")

    steps = _color_steps(color_mode)
    steps.append(transforms.Resize(tuple(image_size)))

    if shear_degrees or zoom_range or rotation_degrees:
        steps.append(
            transforms.RandomAffine(
                degrees=rotation_degrees,
                shear=shear_degrees or None,
                scale=(1.0 - zoom_range, 1.0 + zoom_range) if zoom_range else None,
            )
        )
    if horizontal_flip:
        steps.append(transforms.RandomHorizontalFlip())

    steps.append(transforms.ToTensor())
    return transforms.Compose(steps)


def build_eval_transform(
    image_size: Sequence[int] = (150, 150),
    color_mode: str = "rgb",
) -> transforms.Compose:
    """Resize and rescale, no randomness."""
    steps = _color_steps(color_mode)
    steps.append(transforms.Resize(tuple(image_size)))
    steps.append(transforms.ToTensor())
    return transforms.Compose(steps)
