"""
Filter and Feature Map Visualizer.
----------------------------------
1. Applies the hand-made kernels (edges, sharpen, blur) to an MNIST digit
2. With --model: draws the learned kernels of the first convolution layer
   and the feature maps every convolution layer produces for that digit

Usage:
    python scripts/visualize_filters.py
    python scripts/visualize_filters.py --model models/checkpoints/mnist/final_model_mnist.pth
"""

import argparse
import os
import sys

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.abspath(os.path.join(current_dir, ".."))
if project_root not in sys.path:
    sys.path.append(project_root)

from cnn_tutorial.data.mnist import load_mnist
from cnn_tutorial.utils.helpers import get_device
from cnn_tutorial.utils.persistence import load_model
from cnn_tutorial.utils.visualization import (
    plot_feature_maps,
    plot_filters,
    plot_kernel_demo,
    plot_samples,
)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Visualize convolution filters")
    parser.add_argument("--model", type=str, default=None, help="Optional MNIST model bundle")
    parser.add_argument("--mnist-root", type=str, default="data/mnist")
    parser.add_argument("--index", type=int, default=0, help="Test image to use")
    parser.add_argument("--output-dir", type=str, default="outputs/filters")
    args = parser.parse_args(argv)

    os.makedirs(args.output_dir, exist_ok=True)

    test_set = load_mnist(args.mnist_root, validation_split=0.0)["test"]
    image, label = test_set[args.index]
    print(f"[INFO] Using test image {args.index} (label {int(label)})")

    plot_samples(test_set, n=16, save_path=os.path.join(args.output_dir, "samples.png"))
    plot_kernel_demo(image, save_path=os.path.join(args.output_dir, "kernel_demo.png"))

    if args.model:
        model, _ = load_model(args.model, get_device())
        plot_filters(model, layer_index=0, save_path=os.path.join(args.output_dir, "first_layer_filters.png"))
        plot_feature_maps(model, image, save_dir=args.output_dir)

    print(f"[SUCCESS] Figures written to: {args.output_dir}")


if __name__ == "__main__":
    main()
