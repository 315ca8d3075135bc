"""
Invasive Species Training Script (directory-structured images)

Fits a small convnet that tells images with invasive hydrangea apart from
images without it. The data is expected one folder per class:

    data/invasive_species/
        train/invasive/*.jpg
        train/non_invasive/*.jpg
        val/invasive/*.jpg          (optional, otherwise split from train)
        val/non_invasive/*.jpg

Use scripts/organize_species.py to build this layout from the Kaggle
train/ folder and train_labels.csv.

Pipeline:
1. Create augmented train loader and plain validation / test loaders
2. Build and compile the model (single sigmoid output, binary cross entropy)
3. Train with early stopping, evaluate the best checkpoint
4. Save weights, reload them into a fresh model, check predictions agree
5. Save metrics, model bundle and plots
"""

import argparse
import os

import yaml

from cnn_tutorial.config import DEFAULT_SPECIES_CONFIG, load_config
from cnn_tutorial.data.image_folder import create_image_loaders
from cnn_tutorial.training.workflow import run_experiment
from cnn_tutorial.utils.helpers import prepare_for_training, to_native


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Train the invasive species convnet")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/species.yaml",
        help="Path to training config file",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Folder holding train/ (and optionally val/, test/) class directories",
    )
    parser.add_argument("--epochs", type=int, default=None, help="Override training.epochs")
    parser.add_argument("--batch-size", type=int, default=None, help="Override training.batch_size")
    parser.add_argument("--no-plots", action="store_true", help="Skip writing figures")
    return parser.parse_args(argv)


def _optional_dir(path):
    # val/ and test/ folders are optional
    if path and os.path.isdir(path):
        return path
    if path:
        print(f"[INFO] {path} not found, skipping")
    return None


def main(argv=None):
    args = parse_args(argv)

    if not os.path.exists(args.config):
        print(f"[WARNING] Config file not found at {args.config}. Make sure the path is correct.")

    try:
        config = load_config(args.config, defaults=DEFAULT_SPECIES_CONFIG)
    except (OSError, ValueError, yaml.YAMLError) as e:
        # Missing or unreadable config falls back to the defaults
        print(f"[WARNING] Could not read {args.config}: {e}")
        print("[INFO] Loading fallback default configuration.")
        config = to_native(DEFAULT_SPECIES_CONFIG)

    data_cfg = config["data"]
    if args.data_dir is not None:
        data_cfg["train_dir"] = os.path.join(args.data_dir, "train")
        data_cfg["val_dir"] = os.path.join(args.data_dir, "val")
        data_cfg["test_dir"] = os.path.join(args.data_dir, "test")
    if args.epochs is not None:
        config["training"]["epochs"] = args.epochs
    if args.batch_size is not None:
        config["training"]["batch_size"] = args.batch_size

    seed = config.get("seed", 42)
    device = prepare_for_training(seed)
    print(f"[INFO] Using device: {device}")

    if not os.path.isdir(data_cfg["train_dir"]):
        raise FileNotFoundError(
            f"Training images not found at {data_cfg['train_dir']}. "
            f"Please run scripts/organize_species.py first."
        )

    # Image size follows the model's input shape
    input_shape = config["model"]["input_shape"]
    image_size = data_cfg.get("image_size") or input_shape[1:]
    if list(image_size) != list(input_shape[1:]):
        raise ValueError(
            f"data.image_size {list(image_size)} does not match model.input_shape {list(input_shape)}"
        )

    loaders = create_image_loaders(
        train_dir=data_cfg["train_dir"],
        val_dir=_optional_dir(data_cfg.get("val_dir")),
        test_dir=_optional_dir(data_cfg.get("test_dir")),
        image_size=image_size,
        color_mode=data_cfg.get("color_mode", "rgb"),
        augmentation=data_cfg.get("augmentation"),
        val_fraction=data_cfg.get("val_fraction", 0.2),
        batch_size=config["training"]["batch_size"],
        num_workers=data_cfg.get("num_workers", 0),
        seed=seed,
    )
    class_names = loaders["train"].dataset.classes

    return run_experiment(
        config=config,
        loaders=loaders,
        class_names=class_names,
        device=device,
        tag="species",
        make_plots=not args.no_plots,
    )


if __name__ == "__main__":
    main()
