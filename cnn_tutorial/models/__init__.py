"""
Models Module

Exports:
    - SequentialCNN: Layer-list driven CNN
    - create_model: Factory for the lesson architectures ('mnist', 'species')
    - model_from_config: Build a model from an experiment config section
"""

from .cnn_model import SequentialCNN, build_layers, create_model, model_from_config

__all__ = [
    "SequentialCNN",
    "build_layers",
    "create_model",
    "model_from_config",
]
