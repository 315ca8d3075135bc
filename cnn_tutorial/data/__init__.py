"""
Data Loading Module

This package provides:
1. MNIST digits as normalized (N, 1, 28, 28) tensors
2. Directory-structured image datasets (one folder per class)
3. Augmenting / evaluation transforms for image folders
"""

from .image_folder import ImageDataset, create_image_loaders, organize_by_label
from .mnist import create_mnist_loaders, load_mnist, normalize_images
from .transforms import build_eval_transform, build_train_transform

__all__ = [
    "ImageDataset",
    "create_image_loaders",
    "organize_by_label",
    "create_mnist_loaders",
    "load_mnist",
    "normalize_images",
    "build_eval_transform",
    "build_train_transform",
]
