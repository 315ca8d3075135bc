"""
Visualization Utilities

Included visualizations:
- Training and validation loss / accuracy curves
- Learning rate evolution across epochs
- Confusion matrix visualization (raw or normalized)
- Hand-made kernels applied to an image (filter primer)
- Learned filters of a convolution layer
- Feature maps produced by selected layers for one image
- A grid of dataset samples with their labels
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import torch
import torch.nn as nn

from cnn_tutorial.filters import apply_filter


def _finish(fig, save_path: Optional[str], label: str) -> None:
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"[INFO] {label} saved to: {save_path}")
    plt.close(fig)


def _to_image(tensor: torch.Tensor) -> np.ndarray:
    """[C, H, W] or [H, W] tensor -> array imshow understands."""
    array = tensor.detach().cpu().float().numpy()
    if array.ndim == 3:
        if array.shape[0] == 1:
            return array[0]
        return np.transpose(array, (1, 2, 0))
    return array


def _grid(n: int, max_cols: int = 8) -> Tuple[int, int]:
    cols = min(n, max_cols)
    rows = int(math.ceil(n / cols))
    return rows, cols


def plot_training_history(
    history: Dict[str, List[float]],
    save_path: Optional[str] = None,
    figsize: Tuple[int, int] = (12, 4),
) -> None:
    """
    Plot training and validation performance curves.

    Args:
        history (Dict[str, List[float]]): Dictionary containing metric history
            (e.g., 'train_loss', 'val_loss', 'train_acc', 'val_acc').
        save_path (str, optional): File path to save the plot image.
        figsize (Tuple[int, int]): Size of the matplotlib figure.
    """
    fig, axes = plt.subplots(1, 2, figsize=figsize)

    # Loss curves
    axes[0].plot(history.get("train_loss", []), label="Train Loss")
    if history.get("val_loss"):
        axes[0].plot(history["val_loss"], label="Validation Loss")
    axes[0].set_xlabel("Epoch")
    axes[0].set_ylabel("Loss")
    axes[0].set_title("Training vs Validation Loss")
    axes[0].legend()
    axes[0].grid(True)

    # Accuracy curves
    axes[1].plot(history.get("train_acc", []), label="Train Accuracy")
    if history.get("val_acc"):
        axes[1].plot(history["val_acc"], label="Validation Accuracy")
    axes[1].set_xlabel("Epoch")
    axes[1].set_ylabel("Accuracy (%)")
    axes[1].set_title("Training vs Validation Accuracy")
    axes[1].legend()
    axes[1].grid(True)

    _finish(fig, save_path, "Training history")


def plot_learning_rate(
    history: Dict[str, List[float]],
    save_path: Optional[str] = None,
    figsize: Tuple[int, int] = (10, 4),
) -> None:
    """Plot the learning rate evolution over training epochs."""
    if not history.get("lr"):
        print("[WARNING] No learning rate history found")
        return

    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(history["lr"])
    ax.set_xlabel("Epoch")
    ax.set_ylabel("Learning Rate")
    ax.set_title("Learning Rate Schedule")
    ax.grid(True)

    _finish(fig, save_path, "Learning rate plot")


def plot_confusion_matrix(
    cm: np.ndarray,
    class_names: Optional[List[str]] = None,
    save_path: Optional[str] = None,
    figsize: Tuple[int, int] = (8, 6),
    cmap: str = "Blues",
    normalize: bool = False,
    show_percent: bool = False,
) -> None:
    """
    Visualize a confusion matrix as a heatmap.

    Args:
        cm (np.ndarray): Confusion matrix of shape [N, N].
        class_names (List[str], optional): Names of the classes.
        save_path (str, optional): File path to save the figure.
        figsize (Tuple[int, int]): Size of the matplotlib figure.
        cmap (str): Colormap used for visualization.
        normalize (bool): If True, normalize rows to sum to 1.
        show_percent (bool): If True and normalize=True, display values as percentages.
    """
    num_classes = cm.shape[0]

    if class_names is None:
        class_names = [str(i) for i in range(num_classes)]

    if normalize:
        cm_float = cm.astype(float) / (cm.sum(axis=1, keepdims=True) + 1e-9)
        title = "Normalized Confusion Matrix"
        fmt = ".1f" if show_percent else ".2f"
        if show_percent:
            cm_float = cm_float * 100.0
    else:
        cm_float = cm
        title = "Confusion Matrix"
        fmt = "d"

    fig, ax = plt.subplots(figsize=figsize)
    im = ax.imshow(cm_float, interpolation="nearest", cmap=cmap)

    if normalize:
        im.set_clim(0.0, 100.0 if show_percent else 1.0)

    ax.figure.colorbar(im, ax=ax)

    ax.set(
        xticks=np.arange(num_classes),
        yticks=np.arange(num_classes),
        xticklabels=class_names,
        yticklabels=class_names,
        ylabel="True Label",
        xlabel="Predicted Label",
        title=title,
    )

    plt.setp(
        ax.get_xticklabels(),
        rotation=45,
        ha="right",
        rotation_mode="anchor",
    )

    # Annotate each cell with its value
    thresh = cm_float.max() / 2.0
    for i in range(num_classes):
        for j in range(num_classes):
            ax.text(
                j,
                i,
                format(cm_float[i, j], fmt),
                ha="center",
                va="center",
                color="white" if cm_float[i, j] > thresh else "black",
                fontsize=10,
            )

    _finish(fig, save_path, "Confusion matrix")


def plot_kernel_demo(
    image: torch.Tensor,
    kernel_names: Sequence[str] = ("identity", "horizontal_edge", "vertical_edge", "sharpen", "gaussian_blur"),
    save_path: Optional[str] = None,
) -> None:
    """
    Show one image filtered by several hand-made kernels, side by side.

    Args:
        image (torch.Tensor): Grayscale image [H, W] or [1, H, W].
        kernel_names: Names from cnn_tutorial.filters.KERNELS.
    """
    if image.dim() == 3:
        image = image[0]

    fig, axes = plt.subplots(1, len(kernel_names), figsize=(3 * len(kernel_names), 3))
    axes = np.atleast_1d(axes)
    for ax, name in zip(axes, kernel_names):
        filtered = apply_filter(image, name, padding=1)
        ax.imshow(_to_image(filtered), cmap="gray")
        ax.set_title(name)
        ax.axis("off")

    _finish(fig, save_path, "Kernel demo")


def plot_filters(
    model: nn.Module,
    layer_index: int = 0,
    max_filters: int = 32,
    save_path: Optional[str] = None,
) -> None:
    """
    Plot the learned kernels of one convolution layer.

    Args:
        model (nn.Module): Model exposing conv_layers().
        layer_index (int): Which convolution layer (0 = first).
        max_filters (int): Upper bound on the number of kernels drawn.
    """
    conv_layers = model.conv_layers()
    if not conv_layers:
        raise ValueError("Model has no convolution layers")
    if not 0 <= layer_index < len(conv_layers):
        raise ValueError(f"layer_index must be in [0, {len(conv_layers) - 1}], got {layer_index}")

    weights = conv_layers[layer_index].weight.detach().cpu()
    n = min(weights.shape[0], max_filters)
    rows, cols = _grid(n)

    fig, axes = plt.subplots(rows, cols, figsize=(1.5 * cols, 1.5 * rows))
    axes = np.atleast_1d(axes).flatten()
    for i, ax in enumerate(axes):
        ax.axis("off")
        if i >= n:
            continue
        kernel = weights[i]
        # RGB kernels are shown in colour, everything else channel 0 in gray
        if kernel.shape[0] == 3:
            kernel = (kernel - kernel.mean()) / (kernel.std() + 1e-9)
            kernel = torch.clamp(kernel + 0.5, 0.0, 1.0)
            ax.imshow(_to_image(kernel))
        else:
            ax.imshow(_to_image(kernel[0]), cmap="gray")
        ax.set_title(str(i), fontsize=8)

    _finish(fig, save_path, "Filters")


def capture_feature_maps(
    model: nn.Module,
    image: torch.Tensor,
    layer_indices: Sequence[int],
) -> Dict[int, torch.Tensor]:
    """
    Run one image through the model and record the outputs of some layers.

    Args:
        model (nn.Module): Model with a ``features`` nn.Sequential.
        image (torch.Tensor): Single sample [C, H, W].
        layer_indices: Positions in ``model.features``.

    Returns:
        Dict[int, torch.Tensor]: Layer index -> activation of shape [C', H', W'].
    """
    captured: Dict[int, torch.Tensor] = {}
    handles = []

    for idx in layer_indices:
        if not 0 <= idx < len(model.features):
            raise ValueError(f"Layer index {idx} out of range (model has {len(model.features)} layers)")

        def hook(module, inputs, output, idx=idx):
            captured[idx] = output.detach().cpu()[0]

        handles.append(model.features[idx].register_forward_hook(hook))

    device = next(model.parameters()).device
    model.eval()
    try:
        with torch.no_grad():
            model(image.unsqueeze(0).to(device))
    finally:
        for handle in handles:
            handle.remove()

    return captured


def plot_feature_maps(
    model: nn.Module,
    image: torch.Tensor,
    layer_indices: Optional[Sequence[int]] = None,
    max_maps: int = 16,
    save_dir: Optional[str] = None,
) -> Dict[int, torch.Tensor]:
    """
    Plot the activations of selected layers for one image.

    Defaults to the output of every convolution layer. One figure per layer
    is written to ``save_dir`` as feature_maps_layer<idx>.png.
    """
    if layer_indices is None:
        layer_indices = [i for i, m in enumerate(model.features) if isinstance(m, nn.Conv2d)]

    maps = capture_feature_maps(model, image, layer_indices)

    for idx, activation in maps.items():
        if activation.dim() != 3:
            print(f"[WARNING] Layer {idx} output is not spatial, skipping")
            continue

        n = min(activation.shape[0], max_maps)
        rows, cols = _grid(n)
        fig, axes = plt.subplots(rows, cols, figsize=(2 * cols, 2 * rows))
        axes = np.atleast_1d(axes).flatten()
        for i, ax in enumerate(axes):
            ax.axis("off")
            if i < n:
                ax.imshow(activation[i].numpy(), cmap="gray")
                ax.set_title(str(i), fontsize=8)
        fig.suptitle(f"Layer {idx}: {type(model.features[idx]).__name__}")

        save_path = None
        if save_dir:
            save_path = f"{save_dir.rstrip('/')}/feature_maps_layer{idx}.png"
        _finish(fig, save_path, f"Feature maps of layer {idx}")

    return maps


def plot_samples(
    dataset,
    class_names: Optional[List[str]] = None,
    n: int = 16,
    save_path: Optional[str] = None,
) -> None:
    """Show the first ``n`` samples of a dataset with their labels."""
    n = min(n, len(dataset))
    if n == 0:
        print("[WARNING] Dataset is empty, nothing to plot")
        return

    rows, cols = _grid(n)
    fig, axes = plt.subplots(rows, cols, figsize=(2 * cols, 2 * rows))
    axes = np.atleast_1d(axes).flatten()
    for i, ax in enumerate(axes):
        ax.axis("off")
        if i >= n:
            continue
        image, label = dataset[i]
        label = int(label)
        ax.imshow(_to_image(image), cmap="gray" if image.shape[0] == 1 else None)
        ax.set_title(class_names[label] if class_names else str(label), fontsize=8)

    _finish(fig, save_path, "Sample grid")
