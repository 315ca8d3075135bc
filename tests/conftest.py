"""
Shared fixtures: a tiny layer list, synthetic tensors and image folders.
"""

import os

import matplotlib

matplotlib.use("Agg")

import pytest
import torch
from PIL import Image
from torch.utils.data import DataLoader, TensorDataset


TINY_LAYERS = [
    {"type": "conv2d", "filters": 4, "kernel_size": 3},
    {"type": "relu"},
    {"type": "maxpool2d", "pool_size": 2},
    {"type": "flatten"},
    {"type": "dense", "units": 3},
    {"type": "softmax"},
]

TINY_BINARY_LAYERS = [
    {"type": "conv2d", "filters": 4, "kernel_size": 3, "activation": "relu"},
    {"type": "maxpool2d", "pool_size": 2},
    {"type": "flatten"},
    {"type": "dense", "units": 1, "activation": "sigmoid"},
]


@pytest.fixture
def tiny_layers():
    return [dict(layer) for layer in TINY_LAYERS]


@pytest.fixture
def tiny_binary_layers():
    return [dict(layer) for layer in TINY_BINARY_LAYERS]


@pytest.fixture
def tiny_loader():
    """16 random 1x8x8 images over 3 classes."""
    torch.manual_seed(0)
    x = torch.rand(16, 1, 8, 8)
    y = torch.arange(16) % 3
    return DataLoader(TensorDataset(x, y), batch_size=4, shuffle=False)


@pytest.fixture
def binary_loader():
    """16 random 1x8x8 images with 0/1 labels."""
    torch.manual_seed(0)
    x = torch.rand(16, 1, 8, 8)
    y = torch.arange(16) % 2
    return DataLoader(TensorDataset(x, y), batch_size=4, shuffle=False)


def make_image(path, color, size=(20, 20)):
    Image.new("RGB", size, color).save(path)


@pytest.fixture
def image_folder(tmp_path):
    """root/<class>/<n>.jpg with 5 images for each of two classes."""
    root = tmp_path / "train"
    for class_name, color in (("invasive", (0, 160, 0)), ("non_invasive", (120, 120, 200))):
        class_dir = root / class_name
        class_dir.mkdir(parents=True)
        for i in range(5):
            make_image(os.path.join(class_dir, f"{i}.jpg"), color)
    return str(root)
