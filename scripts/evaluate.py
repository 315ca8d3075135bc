"""
Saved Model Evaluation
----------------------
- Loads a model bundle (final_model_*.pth)
- Evaluates it on the MNIST test split or on an image directory
- Writes the metrics (YAML) and a normalized confusion matrix

Usage:
    python scripts/evaluate.py --model models/checkpoints/mnist/final_model_mnist.pth --mnist
    python scripts/evaluate.py --model models/checkpoints/species/final_model_species.pth \
        --image-dir data/invasive_species/val
"""

import argparse
import os
import sys

import yaml
from torch.utils.data import DataLoader

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.abspath(os.path.join(current_dir, ".."))
if project_root not in sys.path:
    sys.path.append(project_root)

from cnn_tutorial.data.image_folder import ImageDataset
from cnn_tutorial.data.mnist import load_mnist
from cnn_tutorial.data.transforms import build_eval_transform
from cnn_tutorial.training.losses import get_criterion
from cnn_tutorial.training.metrics import confusion_matrix
from cnn_tutorial.training.trainer import Trainer
from cnn_tutorial.utils.helpers import get_device, get_optimizer, to_native
from cnn_tutorial.utils.persistence import load_model
from cnn_tutorial.utils.visualization import plot_confusion_matrix


def main(argv=None):
    parser = argparse.ArgumentParser(description="Evaluate a saved model bundle")
    parser.add_argument("--model", type=str, required=True)
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--mnist", action="store_true", help="Use the MNIST test split")
    source.add_argument("--image-dir", type=str, help="Directory with one folder per class")
    parser.add_argument("--mnist-root", type=str, default="data/mnist")
    parser.add_argument("--batch-size", type=int, default=256)
    parser.add_argument("--output-dir", type=str, default="outputs/evaluation")
    args = parser.parse_args(argv)

    device = get_device()
    model, bundle = load_model(args.model, device)
    print(f"[INFO] Loaded {args.model} ({model.count_parameters():,} parameters)")

    if args.mnist:
        dataset = load_mnist(args.mnist_root, validation_split=0.0)["test"]
        class_names = bundle.get("class_names") or [str(i) for i in range(10)]
    else:
        color_mode = "grayscale" if model.input_shape[0] == 1 else "rgb"
        dataset = ImageDataset(
            args.image_dir,
            transform=build_eval_transform(model.input_shape[1:], color_mode),
            color_mode=color_mode,
        )
        class_names = bundle.get("class_names") or dataset.classes
        if list(class_names) != list(dataset.classes):
            print(f"[WARNING] Class folders {dataset.classes} differ from trained classes {class_names}")

    loader = DataLoader(dataset, batch_size=args.batch_size, shuffle=False)
    loss_name = "binary_cross_entropy" if model.num_outputs == 1 else "cross_entropy"

    os.makedirs(args.output_dir, exist_ok=True)
    trainer = Trainer(
        model=model,
        criterion=get_criterion(loss_name),
        optimizer=get_optimizer(model),
        device=device,
        checkpoint_dir=args.output_dir,
    )
    results = trainer.evaluate(loader)

    with open(os.path.join(args.output_dir, "metrics.yaml"), "w") as f:
        yaml.safe_dump(to_native(results), f)

    preds, targets = trainer.predict_loader(loader)
    cm = confusion_matrix(preds, targets, num_classes=len(class_names))
    plot_confusion_matrix(
        cm=cm,
        class_names=list(class_names),
        save_path=os.path.join(args.output_dir, "confusion_matrix.png"),
        normalize=True,
    )

    print(f"[SUCCESS] Evaluation written to: {args.output_dir}")
    return results


if __name__ == "__main__":
    main()
