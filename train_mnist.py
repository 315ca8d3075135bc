"""
MNIST Convnet Training Script

Fits the lesson's digit classifier:

    Conv(32, 3x3) → ReLU → Conv(64, 3x3) → ReLU → MaxPool(2) → Dropout(0.25)
    → Flatten → Dense(128) → ReLU → Dropout(0.5) → Dense(10) → Softmax

Pipeline:
1. Load MNIST (scaled to [0, 1], shape (N, 1, 28, 28)), hold out a validation split
2. Build and compile the model from the YAML config
3. Train, evaluate the best checkpoint on the test set
4. Save weights, reload them into a fresh model, check predictions agree
5. Save metrics, model bundle and plots

Usage:
    python train_mnist.py --config configs/mnist.yaml
    python train_mnist.py --epochs 1 --limit 2000     # quick smoke run
"""

import argparse
import os

import pandas as pd
import yaml

from cnn_tutorial.config import DEFAULT_MNIST_CONFIG, load_config
from cnn_tutorial.data.mnist import MNIST_CLASSES, create_mnist_loaders
from cnn_tutorial.training.workflow import run_experiment
from cnn_tutorial.utils.helpers import prepare_for_training, to_native


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Train the MNIST convnet")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/mnist.yaml",
        help="Path to training config file",
    )
    parser.add_argument("--epochs", type=int, default=None, help="Override training.epochs")
    parser.add_argument("--batch-size", type=int, default=None, help="Override training.batch_size")
    parser.add_argument("--limit", type=int, default=None, help="Use only the first N train/test images")
    parser.add_argument("--no-plots", action="store_true", help="Skip writing figures")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    # --------------------------------------------------------
    # Load config and initialize environment
    # --------------------------------------------------------
    if not os.path.exists(args.config):
        print(f"[WARNING] Config file not found at {args.config}. Make sure the path is correct.")

    try:
        config = load_config(args.config, defaults=DEFAULT_MNIST_CONFIG)
    except (OSError, ValueError, yaml.YAMLError) as e:
        # Missing or unreadable config falls back to the defaults
        print(f"[WARNING] Could not read {args.config}: {e}")
        print("[INFO] Loading fallback default configuration.")
        config = to_native(DEFAULT_MNIST_CONFIG)

    if args.epochs is not None:
        config["training"]["epochs"] = args.epochs
    if args.batch_size is not None:
        config["training"]["batch_size"] = args.batch_size
    if args.limit is not None:
        config["data"]["limit"] = args.limit

    device = prepare_for_training(config.get("seed", 42))
    print(f"[INFO] Using device: {device}")

    # --------------------------------------------------------
    # Load data
    # --------------------------------------------------------
    data_cfg = config["data"]
    loaders = create_mnist_loaders(
        root=data_cfg["root"],
        batch_size=config["training"]["batch_size"],
        download=data_cfg.get("download", True),
        validation_split=data_cfg.get("validation_split", 0.1),
        limit=data_cfg.get("limit"),
        num_workers=data_cfg.get("num_workers", 0),
    )

    # --------------------------------------------------------
    # Save class distribution (for reporting)
    # --------------------------------------------------------
    save_dir = config["checkpoint"]["save_dir"]
    os.makedirs(save_dir, exist_ok=True)
    dist = {
        split: dict(pd.Series(loader.dataset.tensors[1].numpy()).value_counts().sort_index())
        for split, loader in loaders.items()
    }
    with open(os.path.join(save_dir, "class_distribution.yaml"), "w") as f:
        yaml.safe_dump(to_native(dist), f)

    # --------------------------------------------------------
    # Train / evaluate / save / reload
    # --------------------------------------------------------
    return run_experiment(
        config=config,
        loaders=loaders,
        class_names=MNIST_CLASSES,
        device=device,
        tag="mnist",
        make_plots=not args.no_plots,
    )


if __name__ == "__main__":
    main()
