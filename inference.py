"""
Single-Image Inference

Loads a model bundle written by train_mnist.py / train_species.py and
classifies one image file.

Usage:
    python inference.py --model models/checkpoints/species/final_model_species.pth \
        --image data/invasive_species/test/1.jpg
"""

import argparse
import os
from typing import List, Tuple

import torch
from PIL import Image

from cnn_tutorial.data.transforms import build_eval_transform
from cnn_tutorial.models.cnn_model import SequentialCNN
from cnn_tutorial.utils.helpers import get_device
from cnn_tutorial.utils.persistence import load_model, predict_proba


def load_image(path: str, input_shape) -> torch.Tensor:
    """Read an image and turn it into a model-ready [C, H, W] tensor."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Image not found: {path}")

    color_mode = "grayscale" if input_shape[0] == 1 else "rgb"
    transform = build_eval_transform(tuple(input_shape[1:]), color_mode)
    with Image.open(path) as img:
        return transform(img.convert("L" if color_mode == "grayscale" else "RGB"))


def classify(
    model: SequentialCNN,
    image: torch.Tensor,
    class_names: List[str],
    device: torch.device,
    top_k: int = 3,
) -> List[Tuple[str, float]]:
    """
    Returns:
        List of (class name, confidence %) pairs, most likely first.
    """
    probs = predict_proba(model, image.unsqueeze(0), device=device)[0]

    if probs.dim() == 0:
        # single sigmoid output: probability of class 1
        p = float(probs)
        ranked = [(class_names[1], p * 100.0), (class_names[0], (1.0 - p) * 100.0)]
        ranked.sort(key=lambda x: x[1], reverse=True)
        return ranked[:top_k]

    conf, idx = probs.topk(min(top_k, probs.numel()))
    return [(class_names[i], c * 100.0) for i, c in zip(idx.tolist(), conf.tolist())]


def main(argv=None):
    parser = argparse.ArgumentParser(description="Classify one image with a saved model")
    parser.add_argument("--model", type=str, required=True, help="Model bundle (.pth)")
    parser.add_argument("--image", type=str, required=True, help="Image file")
    parser.add_argument("--top-k", type=int, default=3)
    args = parser.parse_args(argv)

    device = get_device()
    model, bundle = load_model(args.model, device)
    class_names = bundle.get("class_names") or [str(i) for i in range(max(2, model.num_outputs))]

    image = load_image(args.image, model.input_shape)
    results = classify(model, image, class_names, device, top_k=args.top_k)

    label, conf = results[0]
    print(f"Prediction → {label} | Confidence: {conf:.2f}%")
    for name, c in results[1:]:
        print(f"             {name} | {c:.2f}%")
    return results


if __name__ == "__main__":
    main()
