"""
Sequential CNN built from a declarative layer list.

Each layer is a mapping with a ``type`` key, for example::

    [
        {"type": "conv2d", "filters": 32, "kernel_size": 3, "activation": "relu"},
        {"type": "maxpool2d", "pool_size": 2},
        {"type": "flatten"},
        {"type": "dense", "units": 10},
        {"type": "softmax"},
    ]

Input channels of conv layers and input features of dense layers are inferred
by tracking the tensor shape through the stack, so only output sizes are given.
A trailing softmax / sigmoid is the output activation: it shows up in the
summary, but forward() returns logits and predict_proba() applies it.
"""

import copy
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
import torch
import torch.nn as nn

from cnn_tutorial.config import MNIST_LAYERS, SPECIES_LAYERS
from cnn_tutorial.filters import conv_output_size

LayerSpec = Dict[str, Any]
Shape = Tuple[int, ...]

ACTIVATIONS = ("relu", "sigmoid", "softmax", "tanh")
OUTPUT_ACTIVATIONS = ("softmax", "sigmoid")
LAYER_TYPES = ACTIVATIONS + (
    "conv2d",
    "maxpool2d",
    "avgpool2d",
    "dropout",
    "flatten",
    "dense",
    "batchnorm",
)


def _require(spec: LayerSpec, key: str, index: int) -> Any:
    if key not in spec or spec[key] is None:
        raise ValueError(f"Layer {index} ({spec['type']}) is missing required key '{key}'")
    return spec[key]


def _positive_int(value: Any, name: str, index: int) -> int:
    if isinstance(value, (list, tuple)):
        if len(set(value)) != 1:
            raise ValueError(f"Layer {index}: only square {name} values are supported, got {value}")
        value = value[0]
    value = int(value)
    if value < 1:
        raise ValueError(f"Layer {index}: {name} must be >= 1, got {value}")
    return value


def expand_layer_specs(layer_specs: Sequence[LayerSpec]) -> List[LayerSpec]:
    """
    Normalize a layer list: lower-case types and split inline
    ``activation`` keys of conv / dense layers into their own entries.
    """
    expanded: List[LayerSpec] = []
    for index, raw in enumerate(layer_specs):
        if not isinstance(raw, dict) or "type" not in raw:
            raise ValueError(f"Layer {index} must be a mapping with a 'type' key, got {raw!r}")

        spec = copy.deepcopy(raw)
        spec["type"] = str(spec["type"]).lower()
        if spec["type"] not in LAYER_TYPES:
            raise ValueError(
                f"Unknown layer type: {spec['type']}. Available options: {list(LAYER_TYPES)}"
            )

        activation = spec.pop("activation", None)
        expanded.append(spec)
        if activation is not None:
            activation = str(activation).lower()
            if activation == "linear":
                continue
            if activation not in ACTIVATIONS:
                raise ValueError(f"Layer {index}: unknown activation '{activation}'")
            expanded.append({"type": activation})

    return expanded


def build_layers(
    input_shape: Sequence[int],
    layer_specs: Sequence[LayerSpec],
) -> Tuple[List[nn.Module], List[Shape], Optional[str]]:
    """
    Instantiate the modules of a layer list.

    Args:
        input_shape: Shape of one sample, (C, H, W).
        layer_specs: Declarative layer list.

    Returns:
        (modules, output_shapes, output_activation) where output_shapes[i] is the
        per-sample shape after modules[i], and output_activation is the name of
        the trailing softmax / sigmoid (None if there is none).
    """
    shape: Shape = tuple(int(s) for s in input_shape)
    if len(shape) != 3 or min(shape) < 1:
        raise ValueError(f"Input shape must be (channels, height, width), got {tuple(input_shape)}")

    specs = expand_layer_specs(layer_specs)
    if not specs:
        raise ValueError("A model needs at least one layer")

    output_activation = None
    if specs[-1]["type"] in OUTPUT_ACTIVATIONS:
        output_activation = specs[-1]["type"]
        specs = specs[:-1]

    modules: List[nn.Module] = []
    shapes: List[Shape] = []

    for index, spec in enumerate(specs):
        kind = spec["type"]
        spatial = len(shape) == 3

        if kind == "conv2d":
            if not spatial:
                raise ValueError(f"Layer {index}: conv2d needs a (C, H, W) input, got {shape}")
            filters = _positive_int(_require(spec, "filters", index), "filters", index)
            kernel = _positive_int(_require(spec, "kernel_size", index), "kernel_size", index)
            stride = _positive_int(spec.get("stride", 1), "stride", index)
            padding = spec.get("padding", 0)
            if padding == "same":
                if stride != 1:
                    raise ValueError(f"Layer {index}: 'same' padding requires stride 1")
                padding = kernel // 2
            elif padding == "valid":
                padding = 0
            padding = int(padding)

            module = nn.Conv2d(shape[0], filters, kernel_size=kernel, stride=stride, padding=padding)
            shape = (
                filters,
                conv_output_size(shape[1], kernel, stride, padding),
                conv_output_size(shape[2], kernel, stride, padding),
            )

        elif kind in ("maxpool2d", "avgpool2d"):
            if not spatial:
                raise ValueError(f"Layer {index}: {kind} needs a (C, H, W) input, got {shape}")
            pool = _positive_int(spec.get("pool_size", 2), "pool_size", index)
            stride = _positive_int(spec.get("stride") or pool, "stride", index)
            pool_cls = nn.MaxPool2d if kind == "maxpool2d" else nn.AvgPool2d
            module = pool_cls(kernel_size=pool, stride=stride)
            shape = (
                shape[0],
                conv_output_size(shape[1], pool, stride),
                conv_output_size(shape[2], pool, stride),
            )

        elif kind == "dropout":
            rate = float(spec.get("rate", 0.5))
            if not 0.0 <= rate < 1.0:
                raise ValueError(f"Layer {index}: dropout rate must be in [0, 1), got {rate}")
            module = nn.Dropout(rate)

        elif kind == "flatten":
            module = nn.Flatten()
            size = 1
            for dim in shape:
                size *= dim
            shape = (size,)

        elif kind == "dense":
            if spatial:
                raise ValueError(
                    f"Layer {index}: dense needs a flat input, add a flatten layer before it"
                )
            units = _positive_int(_require(spec, "units", index), "units", index)
            module = nn.Linear(shape[0], units)
            shape = (units,)

        elif kind == "batchnorm":
            module = nn.BatchNorm2d(shape[0]) if spatial else nn.BatchNorm1d(shape[0])

        elif kind == "relu":
            module = nn.ReLU()
        elif kind == "tanh":
            module = nn.Tanh()
        elif kind == "sigmoid":
            module = nn.Sigmoid()
        else:  # softmax in the middle of the stack
            module = nn.Softmax(dim=1)

        modules.append(module)
        shapes.append(shape)

    return modules, shapes, output_activation


class SequentialCNN(nn.Module):
    """
    A stack of layers applied one after the other.

    Args:
        input_shape: Shape of one sample, (C, H, W).
        layer_specs: Declarative layer list (see module docstring).
    """

    def __init__(self, input_shape: Sequence[int], layer_specs: Sequence[LayerSpec]):
        super().__init__()
        self.input_shape: Shape = tuple(int(s) for s in input_shape)
        self.layer_specs: List[LayerSpec] = [copy.deepcopy(dict(s)) for s in layer_specs]

        modules, shapes, self.output_activation = build_layers(self.input_shape, self.layer_specs)
        if not shapes:
            raise ValueError("The layer list has no layers besides the output activation")
        if len(shapes[-1]) != 1:
            raise ValueError(
                f"The last layer must produce class scores of shape (N,), got {shapes[-1]}"
            )

        self.features = nn.Sequential(*modules)
        self.output_shapes: List[Shape] = shapes
        self.num_outputs: int = shapes[-1][0]

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        # [B, H, W] grayscale batches get their channel axis
        if x.dim() == 3 and self.input_shape[0] == 1:
            x = x.unsqueeze(1)
        return self.features(x)

    def predict_proba(self, x: torch.Tensor) -> torch.Tensor:
        """Class probabilities (softmax) or positive-class probability (sigmoid)."""
        logits = self(x)
        activation = self.output_activation
        if activation is None:
            activation = "sigmoid" if self.num_outputs == 1 else "softmax"
        if activation == "sigmoid":
            return torch.sigmoid(logits)
        return torch.softmax(logits, dim=1)

    def count_parameters(self) -> int:
        return sum(p.numel() for p in self.parameters() if p.requires_grad)

    def conv_layers(self) -> List[nn.Conv2d]:
        return [m for m in self.features if isinstance(m, nn.Conv2d)]

    def summary(self) -> pd.DataFrame:
        """
        Layer table with output shapes and parameter counts.

        Returns:
            pd.DataFrame: Columns "Layer", "Output Shape", "Param #".
        """
        rows = []
        counters: Dict[str, int] = {}
        entries = list(zip(self.features, self.output_shapes))
        for module, shape in entries:
            kind = type(module).__name__
            counters[kind] = counters.get(kind, 0) + 1
            params = sum(p.numel() for p in module.parameters())
            rows.append(
                (f"{kind.lower()}_{counters[kind]} ({kind})", str((None,) + shape), params)
            )

        if self.output_activation is not None:
            kind = "Softmax" if self.output_activation == "softmax" else "Sigmoid"
            rows.append((f"output ({kind})", str((None, self.num_outputs)), 0))

        return pd.DataFrame(rows, columns=["Layer", "Output Shape", "Param #"])

    def print_summary(self) -> None:
        table = self.summary()
        print("=" * 60)
        print(table.to_string(index=False))
        print("=" * 60)
        print(f"Total params: {int(table['Param #'].sum()):,}")
        print(f"Trainable params: {self.count_parameters():,}")


ARCHITECTURES = {
    "mnist": ((1, 28, 28), MNIST_LAYERS),
    "species": ((3, 150, 150), SPECIES_LAYERS),
}


def _with_outputs(layer_specs: List[LayerSpec], num_classes: int) -> List[LayerSpec]:
    """Resize the last dense layer and pick the matching output activation."""
    specs = copy.deepcopy(layer_specs)
    dense_indices = [i for i, s in enumerate(specs) if s["type"] == "dense"]
    if not dense_indices:
        raise ValueError("Cannot set num_classes on a model without a dense layer")

    last = dense_indices[-1]
    specs[last]["units"] = num_classes
    specs = specs[: last + 1]
    specs.append({"type": "sigmoid" if num_classes == 1 else "softmax"})
    return specs


def create_model(
    name: str = "mnist",
    num_classes: Optional[int] = None,
    input_shape: Optional[Sequence[int]] = None,
) -> SequentialCNN:
    """
    Factory function for the architectures used in the lessons.

    Args:
        name (str): 'mnist' or 'species'.
        num_classes (int, optional): Override the number of outputs
            (1 means a single sigmoid output).
        input_shape (sequence, optional): Override the (C, H, W) input shape.

    Returns:
        SequentialCNN: Freshly initialized model.
    """
    key = name.lower()
    if key not in ARCHITECTURES:
        raise ValueError(
            f"Unknown model: {name}. Available options: {list(ARCHITECTURES.keys())}"
        )

    default_shape, layers = ARCHITECTURES[key]
    if num_classes is not None:
        layers = _with_outputs(layers, num_classes)

    print(f"[FACTORY] SequentialCNN '{key}' init")
    return SequentialCNN(input_shape or default_shape, layers)


def model_from_config(model_cfg: Dict[str, Any]) -> SequentialCNN:
    """
    Build a model from the ``model`` section of an experiment config.

    An explicit ``layers`` list wins over the named architecture.
    """
    if model_cfg.get("layers"):
        input_shape = model_cfg.get("input_shape")
        if input_shape is None:
            raise ValueError("model.input_shape is required when model.layers is given")
        return SequentialCNN(input_shape, model_cfg["layers"])

    return create_model(
        name=model_cfg.get("name", "mnist"),
        num_classes=model_cfg.get("num_classes"),
        input_shape=model_cfg.get("input_shape"),
    )
