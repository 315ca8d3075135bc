"""
Experiment Configuration

YAML files under configs/ describe one experiment each (data, model layers,
training hyper-parameters, checkpoint directory). Missing sections fall back
to the defaults defined here. The default ``model`` sections only name an
architecture, so a file that sets ``name`` / ``num_classes`` without a
``layers`` list gets the named architecture.
"""

import copy
import os
from typing import Any, Dict, Optional

import yaml


MNIST_LAYERS = [
    {"type": "conv2d", "filters": 32, "kernel_size": 3},
    {"type": "relu"},
    {"type": "conv2d", "filters": 64, "kernel_size": 3},
    {"type": "relu"},
    {"type": "maxpool2d", "pool_size": 2},
    {"type": "dropout", "rate": 0.25},
    {"type": "flatten"},
    {"type": "dense", "units": 128},
    {"type": "relu"},
    {"type": "dropout", "rate": 0.5},
    {"type": "dense", "units": 10},
    {"type": "softmax"},
]

SPECIES_LAYERS = [
    {"type": "conv2d", "filters": 32, "kernel_size": 3},
    {"type": "relu"},
    {"type": "maxpool2d", "pool_size": 2},
    {"type": "conv2d", "filters": 32, "kernel_size": 3},
    {"type": "relu"},
    {"type": "maxpool2d", "pool_size": 2},
    {"type": "conv2d", "filters": 64, "kernel_size": 3},
    {"type": "relu"},
    {"type": "maxpool2d", "pool_size": 2},
    {"type": "flatten"},
    {"type": "dense", "units": 64},
    {"type": "relu"},
    {"type": "dropout", "rate": 0.5},
    {"type": "dense", "units": 1},
    {"type": "sigmoid"},
]


DEFAULT_MNIST_CONFIG: Dict[str, Any] = {
    "seed": 42,
    "data": {
        "root": "data/mnist",
        "download": True,
        "validation_split": 0.1,
        "limit": None,
        "num_workers": 0,
    },
    "model": {
        "name": "mnist",
        "input_shape": [1, 28, 28],
    },
    "training": {
        "epochs": 12,
        "batch_size": 128,
        "optimizer": "adadelta",
        "learning_rate": 1.0,
        "weight_decay": 0.0,
        "loss": "cross_entropy",
        "scheduler": "none",
        "early_stopping_patience": None,
    },
    "checkpoint": {"save_dir": "models/checkpoints/mnist"},
    "logging": {"verbose": True},
}

DEFAULT_SPECIES_CONFIG: Dict[str, Any] = {
    "seed": 42,
    "data": {
        "train_dir": "data/invasive_species/train",
        "val_dir": None,
        "test_dir": None,
        "val_fraction": 0.2,
        "image_size": [150, 150],
        "color_mode": "rgb",
        "num_workers": 0,
        "augmentation": {
            "horizontal_flip": True,
            "shear_degrees": 11.5,
            "zoom_range": 0.2,
            "rotation_degrees": 0.0,
        },
    },
    "model": {
        "name": "species",
        "input_shape": [3, 150, 150],
    },
    "training": {
        "epochs": 50,
        "batch_size": 16,
        "optimizer": "rmsprop",
        "learning_rate": 0.001,
        "weight_decay": 0.0,
        "loss": "binary_cross_entropy",
        "scheduler": "none",
        "early_stopping_patience": 10,
    },
    "checkpoint": {"save_dir": "models/checkpoints/species"},
    "logging": {"verbose": True},
}


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two dictionaries.

    Values from ``override`` win; nested dictionaries are merged key by key.
    Neither input is modified.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: str, defaults: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        config_path (str): Path to the YAML config file.
        defaults (dict, optional): Configuration the file is merged onto.

    Returns:
        dict: Parsed configuration dictionary.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    if defaults is None:
        return loaded
    return merge_dicts(defaults, loaded)
