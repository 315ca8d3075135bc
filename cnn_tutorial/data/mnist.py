"""
MNIST Loading Utilities

Downloads the handwritten digit dataset through torchvision and turns it into
CNN-ready tensors: float32 images of shape (N, 1, 28, 28) scaled to [0, 1] and
integer labels 0-9.
"""

import os
from typing import Dict, Optional

import torch
from torch.utils.data import DataLoader, TensorDataset
from torchvision import datasets

MNIST_CLASSES = [str(i) for i in range(10)]


def normalize_images(images: torch.Tensor) -> torch.Tensor:
    """
    Scale uint8 pixel values to [0, 1] and add the channel dimension.

    Args:
        images (torch.Tensor): Tensor of shape (N, H, W) with values 0-255.

    Returns:
        torch.Tensor: float32 tensor of shape (N, 1, H, W).
    """
    if images.dim() != 3:
        raise ValueError(f"Expected images of shape (N, H, W), got {tuple(images.shape)}")
    return images.float().div(255.0).unsqueeze(1)


def split_validation(
    images: torch.Tensor,
    labels: torch.Tensor,
    validation_split: float,
):
    """
    Hold out the last ``validation_split`` fraction of the samples.

    The split is taken from the end of the arrays, before any shuffling,
    so the same samples are held out on every run.
    """
    if not 0.0 <= validation_split < 1.0:
        raise ValueError(f"validation_split must be in [0, 1), got {validation_split}")

    num_val = int(len(images) * validation_split)
    split_at = len(images) - num_val
    return (images[:split_at], labels[:split_at]), (images[split_at:], labels[split_at:])


def load_mnist(
    root: str = "data/mnist",
    download: bool = True,
    validation_split: float = 0.1,
    limit: Optional[int] = None,
) -> Dict[str, TensorDataset]:
    """
    Load MNIST as train / validation / test TensorDatasets.

    Args:
        root (str): Directory where torchvision stores the raw files.
        download (bool): Download the files if they are missing.
        validation_split (float): Fraction of the training set held out for validation.
        limit (int, optional): Cap on the number of training and test samples.

    Returns:
        Dict[str, TensorDataset]: Keys 'train', 'val' and 'test'.
    """
    if not 0.0 <= validation_split < 1.0:
        raise ValueError(f"validation_split must be in [0, 1), got {validation_split}")

    os.makedirs(root, exist_ok=True)
    print(f"[INFO] Loading MNIST from: {root}")

    train_raw = datasets.MNIST(root=root, train=True, download=download)
    test_raw = datasets.MNIST(root=root, train=False, download=download)

    x_train, y_train = train_raw.data, train_raw.targets.long()
    x_test, y_test = test_raw.data, test_raw.targets.long()

    if limit is not None:
        x_train, y_train = x_train[:limit], y_train[:limit]
        x_test, y_test = x_test[:limit], y_test[:limit]

    x_train = normalize_images(x_train)
    x_test = normalize_images(x_test)

    (x_fit, y_fit), (x_val, y_val) = split_validation(x_train, y_train, validation_split)

    print(f"[INFO] x_train shape: {tuple(x_fit.shape)}")
    print(f"[INFO] Train samples: {len(x_fit)}")
    print(f"[INFO] Val samples  : {len(x_val)}")
    print(f"[INFO] Test samples : {len(x_test)}")

    return {
        "train": TensorDataset(x_fit, y_fit),
        "val": TensorDataset(x_val, y_val),
        "test": TensorDataset(x_test, y_test),
    }


def create_mnist_loaders(
    root: str = "data/mnist",
    batch_size: int = 128,
    download: bool = True,
    validation_split: float = 0.1,
    limit: Optional[int] = None,
    num_workers: int = 0,
) -> Dict[str, DataLoader]:
    """
    Wrap the MNIST splits in DataLoaders.

    The validation loader is omitted when ``validation_split`` is 0.
    """
    splits = load_mnist(root, download=download, validation_split=validation_split, limit=limit)

    loaders: Dict[str, DataLoader] = {
        "train": DataLoader(
            splits["train"], batch_size=batch_size, shuffle=True, num_workers=num_workers
        ),
        "test": DataLoader(
            splits["test"], batch_size=batch_size, shuffle=False, num_workers=num_workers
        ),
    }
    if len(splits["val"]) > 0:
        loaders["val"] = DataLoader(
            splits["val"], batch_size=batch_size, shuffle=False, num_workers=num_workers
        )
    return loaders
