"""
Model Persistence and Prediction

Two ways of storing a trained network:
- weights only (state dict), reloaded into a model built with the same layers
- a bundle holding the layer list, input shape, weights, class names and
  training history, from which the model can be rebuilt on its own
"""

import os
from typing import Any, Dict, List, Optional, Tuple

import torch
import torch.nn as nn

from cnn_tutorial.models.cnn_model import SequentialCNN

BUNDLE_FORMAT_VERSION = 1


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def save_weights(model: nn.Module, path: str) -> str:
    """
    Write the model's state dict to ``path``.

    Returns:
        str: The path written.
    """
    _ensure_parent(path)
    torch.save(model.state_dict(), path)
    print(f"[INFO] Weights saved to: {path}")
    return path


def load_weights(model: nn.Module, path: str, device: Optional[torch.device] = None) -> nn.Module:
    """
    Load a state dict into an already-built model.

    Accepts both plain state dicts and bundles written by save_model.
    Loading weights of a different architecture raises RuntimeError.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Weights file not found: {path}")

    device = device or torch.device("cpu")
    checkpoint = torch.load(path, map_location=device)
    state_dict = checkpoint.get("model_state_dict", checkpoint) if isinstance(checkpoint, dict) else checkpoint

    model.load_state_dict(state_dict)
    model.to(device)
    model.eval()
    return model


def save_model(
    model: SequentialCNN,
    path: str,
    class_names: Optional[List[str]] = None,
    history: Optional[Dict[str, List[float]]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Write a self-describing bundle: architecture, weights and metadata.

    Args:
        model (SequentialCNN): Trained model.
        path (str): Output file (.pth).
        class_names (List[str], optional): Names indexed by class id.
        history (dict, optional): Training history from Trainer.train.
        extra (dict, optional): Any other picklable metadata (config, test results).
    """
    bundle = {
        "format_version": BUNDLE_FORMAT_VERSION,
        "input_shape": list(model.input_shape),
        "layer_specs": model.layer_specs,
        "model_state_dict": model.state_dict(),
        "class_names": class_names,
        "history": history,
    }
    if extra:
        bundle.update(extra)

    _ensure_parent(path)
    torch.save(bundle, path)
    print(f"[INFO] Model bundle saved to: {path}")
    return path


def load_model(path: str, device: Optional[torch.device] = None) -> Tuple[SequentialCNN, Dict[str, Any]]:
    """
    Rebuild a SequentialCNN from a bundle written by save_model.

    Returns:
        (model, bundle): the model in eval mode on ``device`` and the raw bundle.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Model bundle not found: {path}")

    device = device or torch.device("cpu")
    bundle = torch.load(path, map_location=device)

    if not isinstance(bundle, dict) or "layer_specs" not in bundle:
        raise ValueError(
            f"{path} holds weights only; build the model and use load_weights instead"
        )

    model = SequentialCNN(bundle["input_shape"], bundle["layer_specs"])
    model.load_state_dict(bundle["model_state_dict"])
    model.to(device)
    model.eval()
    return model, bundle


def predict_proba(
    model: SequentialCNN,
    inputs: torch.Tensor,
    device: Optional[torch.device] = None,
    batch_size: int = 256,
) -> torch.Tensor:
    """
    Class probabilities for a batch of inputs.

    Returns:
        torch.Tensor: [N, C] softmax probabilities, or [N] positive-class
        probabilities for single-output (sigmoid) models.
    """
    device = device or next(model.parameters()).device
    model.eval()

    outputs = []
    with torch.no_grad():
        for i in range(0, len(inputs), batch_size):
            batch = inputs[i:i + batch_size].to(device)
            outputs.append(model.predict_proba(batch).cpu())

    probs = torch.cat(outputs)
    if model.num_outputs == 1:
        probs = probs.reshape(-1)
    return probs


def predict(
    model: SequentialCNN,
    inputs: torch.Tensor,
    device: Optional[torch.device] = None,
    batch_size: int = 256,
) -> torch.Tensor:
    """Predicted class indices for a batch of inputs."""
    probs = predict_proba(model, inputs, device=device, batch_size=batch_size)
    if probs.dim() == 1:
        return (probs >= 0.5).long()
    return probs.argmax(dim=1)
