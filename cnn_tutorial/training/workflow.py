"""
End-to-end experiment: build → compile → fit → evaluate → save → reload.

Shared by train_mnist.py and train_species.py, which only differ in how
their data loaders are created.

Pipeline:
1. Build the model from the config's layer list and print its summary
2. Compile: pick loss, optimizer and scheduler
3. Fit with optional early stopping, keeping the best checkpoint
4. Evaluate the best checkpoint on the test (or validation) loader
5. Save the weights, reload them into a freshly built model and check that
   the reloaded model makes the same predictions
6. Save the model bundle, metrics, history plot and confusion matrix
"""

import os
from typing import Any, Dict, List, Optional

import torch
import yaml
from torch.utils.data import DataLoader

from cnn_tutorial.models.cnn_model import SequentialCNN, model_from_config
from cnn_tutorial.training.losses import BinaryCrossEntropyLoss, get_criterion
from cnn_tutorial.training.metrics import confusion_matrix
from cnn_tutorial.training.trainer import Trainer
from cnn_tutorial.utils.helpers import get_optimizer, get_scheduler, to_native
from cnn_tutorial.utils.persistence import load_weights, save_model, save_weights
from cnn_tutorial.utils.visualization import plot_confusion_matrix, plot_training_history


def compile_model(model: SequentialCNN, training_cfg: Dict[str, Any]):
    """
    Choose loss, optimizer and learning-rate schedule for a model.

    Returns:
        (criterion, optimizer, scheduler)
    """
    criterion = get_criterion(training_cfg.get("loss", "cross_entropy"))

    binary_loss = isinstance(criterion, BinaryCrossEntropyLoss)
    if model.num_outputs == 1 and not binary_loss:
        raise ValueError("A single-output model needs the 'binary_cross_entropy' loss")
    if model.num_outputs > 1 and binary_loss:
        raise ValueError(
            f"'binary_cross_entropy' needs a single output, the model has {model.num_outputs}"
        )

    optimizer = get_optimizer(
        model=model,
        optimizer_name=training_cfg.get("optimizer", "adam"),
        learning_rate=training_cfg.get("learning_rate", 0.001),
        weight_decay=training_cfg.get("weight_decay", 0.0),
    )
    scheduler = get_scheduler(
        optimizer=optimizer,
        scheduler_name=training_cfg.get("scheduler", "none"),
        epochs=training_cfg.get("epochs", 10),
        patience=training_cfg.get("scheduler_patience", 3),
    )
    return criterion, optimizer, scheduler


def _dump_yaml(data: Dict[str, Any], path: str) -> None:
    with open(path, "w") as f:
        yaml.safe_dump(to_native(data), f)


def _ordered(loader: DataLoader) -> DataLoader:
    """Same dataset and batch size, fixed sample order."""
    return DataLoader(
        loader.dataset,
        batch_size=loader.batch_size,
        shuffle=False,
        num_workers=loader.num_workers,
        pin_memory=loader.pin_memory,
    )


def run_experiment(
    config: Dict[str, Any],
    loaders: Dict[str, DataLoader],
    class_names: List[str],
    device: torch.device,
    tag: str = "model",
    make_plots: bool = True,
) -> Dict[str, Any]:
    """
    Train and evaluate one model as described by ``config``.

    Args:
        config (dict): Experiment configuration (see cnn_tutorial.config).
        loaders (dict): 'train' and optionally 'val' / 'test' DataLoaders.
        class_names (List[str]): Names indexed by class id.
        device (torch.device): Where to train.
        tag (str): Suffix of the output file names.
        make_plots (bool): Write the history / confusion matrix figures.

    Returns:
        dict: history, test_results, reload_results, reload_agreement and
        the paths written.
    """
    if "train" not in loaders:
        raise ValueError("A 'train' loader is required")

    save_dir = config["checkpoint"]["save_dir"]
    os.makedirs(save_dir, exist_ok=True)
    training_cfg = config["training"]
    verbose = config.get("logging", {}).get("verbose", True)

    # --------------------------------------------------------
    # Build
    # --------------------------------------------------------
    model = model_from_config(config["model"]).to(device)
    expected = 1 if len(class_names) == 2 and model.num_outputs == 1 else len(class_names)
    if model.num_outputs != expected:
        raise ValueError(
            f"Model has {model.num_outputs} outputs but the data has {len(class_names)} classes"
        )

    print(f"\n[INFO] Model: {model.__class__.__name__}")
    model.print_summary()

    _dump_yaml(
        {
            "model_name": model.__class__.__name__,
            "num_parameters": model.count_parameters(),
            "input_shape": list(model.input_shape),
            "layers": model.summary().to_dict(orient="records"),
        },
        os.path.join(save_dir, "model_info.yaml"),
    )

    # --------------------------------------------------------
    # Compile & fit
    # --------------------------------------------------------
    criterion, optimizer, scheduler = compile_model(model, training_cfg)

    trainer = Trainer(
        model=model,
        criterion=criterion,
        optimizer=optimizer,
        device=device,
        scheduler=scheduler,
        checkpoint_dir=save_dir,
    )

    print("\n" + "=" * 40)
    print(f"STARTING TRAINING ({tag})")
    print("=" * 40)

    history = trainer.train(
        train_loader=loaders["train"],
        val_loader=loaders.get("val"),
        epochs=training_cfg["epochs"],
        early_stopping_patience=training_cfg.get("early_stopping_patience"),
        verbose=verbose,
    )

    if trainer.load_best():
        print(f"\n[INFO] Restored best checkpoint (epoch {trainer.best_epoch})")

    # --------------------------------------------------------
    # Evaluate
    # --------------------------------------------------------
    eval_loader: Optional[DataLoader] = loaders.get("test")
    if eval_loader is None:
        eval_loader = loaders.get("val")
    if eval_loader is None:
        print("[WARNING] No test or validation loader, evaluating on the training data")
        eval_loader = loaders.get("train_eval", loaders["train"])
    # both models must see the same samples in the same order
    eval_loader = _ordered(eval_loader)

    print("\n[INFO] Running final evaluation...")
    test_results = trainer.evaluate(eval_loader, verbose=verbose)

    metrics_path = os.path.join(save_dir, f"test_metrics_{tag}.yaml")
    _dump_yaml(test_results, metrics_path)
    print(f"[INFO] Test metrics saved to: {metrics_path}")

    # --------------------------------------------------------
    # Save weights, reload into a fresh model, compare
    # --------------------------------------------------------
    weights_path = save_weights(model, os.path.join(save_dir, f"weights_{tag}.pth"))

    reloaded = load_weights(SequentialCNN(model.input_shape, model.layer_specs), weights_path, device)
    reload_trainer = Trainer(
        model=reloaded,
        criterion=criterion,
        optimizer=get_optimizer(reloaded, training_cfg.get("optimizer", "adam")),
        device=device,
        checkpoint_dir=save_dir,
    )
    reload_results = reload_trainer.evaluate(eval_loader, verbose=False)

    preds, targets = trainer.predict_loader(eval_loader)
    reload_preds, _ = reload_trainer.predict_loader(eval_loader)
    agreement = float(preds.eq(reload_preds).float().mean().item() * 100.0) if len(preds) else 100.0

    print(f"[INFO] Reloaded weights accuracy: {reload_results['accuracy']:.2f}%")
    print(f"[INFO] Prediction agreement after reload: {agreement:.2f}%")

    # --------------------------------------------------------
    # Bundle and plots
    # --------------------------------------------------------
    bundle_path = save_model(
        model,
        os.path.join(save_dir, f"final_model_{tag}.pth"),
        class_names=class_names,
        history=history,
        extra={"config": to_native(config), "test_results": test_results},
    )

    paths = {
        "save_dir": save_dir,
        "best_model": trainer.best_model_path,
        "weights": weights_path,
        "bundle": bundle_path,
        "metrics": metrics_path,
    }

    if make_plots:
        paths["history_plot"] = os.path.join(save_dir, f"training_history_{tag}.png")
        plot_training_history(history=history, save_path=paths["history_plot"])

        paths["confusion_matrix"] = os.path.join(save_dir, f"confusion_matrix_{tag}.png")
        cm = confusion_matrix(preds, targets, num_classes=len(class_names))
        plot_confusion_matrix(
            cm=cm,
            class_names=class_names,
            save_path=paths["confusion_matrix"],
            normalize=True,
        )

    print(f"[DONE] Final model saved to: {bundle_path}")
    monitored = "validation" if loaders.get("val") is not None else "training"
    print(f"[DONE] Best {monitored} accuracy: {trainer.best_val_acc:.2f}%")

    return {
        "model": model,
        "history": history,
        "test_results": test_results,
        "reload_results": reload_results,
        "reload_agreement": agreement,
        "paths": paths,
    }
