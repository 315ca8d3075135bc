"""
CNN Model Trainer

✓ Train / Validation loops
✓ Epoch-level timing (train & val)
✓ Optional early stopping
✓ LR scheduler support (incl. ReduceLROnPlateau)
✓ Best-checkpoint saving
✓ Training history storage
✓ Final evaluation with latency metrics

Works for multi-class heads (C logits) and single-logit binary heads.
"""

import os
import time
from typing import Dict, List, Optional, Tuple

import torch
import torch.nn as nn
from torch.optim import Optimizer
from torch.optim.lr_scheduler import ReduceLROnPlateau
from torch.utils.data import DataLoader

from cnn_tutorial.training.metrics import (
    accuracy,
    f1_score,
    get_predictions_from_logits,
    precision,
    recall,
)

BEST_MODEL_FILENAME = "best_model.pth"


class Trainer:
    def __init__(
        self,
        model: nn.Module,
        criterion: nn.Module,
        optimizer: Optimizer,
        device: torch.device,
        scheduler: Optional[object] = None,
        checkpoint_dir: str = "models/checkpoints",
    ):
        self.model = model.to(device)
        self.criterion = criterion
        self.optimizer = optimizer
        self.device = device
        self.scheduler = scheduler
        self.checkpoint_dir = checkpoint_dir

        os.makedirs(checkpoint_dir, exist_ok=True)

        self.history: Dict[str, List[float]] = {
            "train_loss": [],
            "train_acc": [],
            "val_loss": [],
            "val_acc": [],
            "precision": [],
            "recall": [],
            "f1_score": [],
            "lr": [],
            "train_time": [],
            "val_time": [],
        }

        self.best_loss = float("inf")
        self.best_val_acc = 0.0
        self.best_epoch = 0

    @property
    def best_model_path(self) -> str:
        return os.path.join(self.checkpoint_dir, BEST_MODEL_FILENAME)

    # =====================================================
    # TRAIN ONE EPOCH
    # =====================================================
    def train_epoch(self, train_loader: DataLoader) -> Dict[str, float]:
        self.model.train()
        start_time = time.time()

        running_loss, correct, total = 0.0, 0, 0

        for inputs, targets in train_loader:
            inputs = inputs.to(self.device)
            targets = targets.to(self.device)

            self.optimizer.zero_grad(set_to_none=True)

            logits = self.model(inputs)
            loss = self.criterion(logits, targets)

            loss.backward()
            self.optimizer.step()

            running_loss += float(loss.item())
            preds = get_predictions_from_logits(logits.detach())
            correct += preds.eq(targets.long().reshape(-1)).sum().item()
            total += targets.size(0)

        return {
            "loss": running_loss / max(1, len(train_loader)),
            "acc": 100.0 * correct / max(1, total),
            "time": time.time() - start_time,
        }

    # =====================================================
    # PREDICTION PASS
    # =====================================================
    def _run_inference(self, loader: DataLoader) -> Tuple[float, torch.Tensor, torch.Tensor]:
        """Returns (mean batch loss, predictions, targets) without tracking gradients."""
        self.model.eval()
        running_loss = 0.0
        preds_all, targets_all = [], []

        with torch.no_grad():
            for inputs, targets in loader:
                inputs = inputs.to(self.device)
                targets = targets.to(self.device)

                logits = self.model(inputs)
                running_loss += float(self.criterion(logits, targets).item())

                preds_all.append(get_predictions_from_logits(logits).cpu())
                targets_all.append(targets.long().reshape(-1).cpu())

        preds = torch.cat(preds_all) if preds_all else torch.empty(0, dtype=torch.long)
        targets = torch.cat(targets_all) if targets_all else torch.empty(0, dtype=torch.long)
        return running_loss / max(1, len(loader)), preds, targets

    def predict_loader(self, loader: DataLoader) -> Tuple[torch.Tensor, torch.Tensor]:
        """Predicted and true class indices for every sample of a loader."""
        _, preds, targets = self._run_inference(loader)
        return preds, targets

    # =====================================================
    # VALIDATION
    # =====================================================
    def validate(self, val_loader: DataLoader) -> Dict[str, float]:
        start_time = time.time()
        loss, preds_all, targets_all = self._run_inference(val_loader)
        has_samples = len(targets_all) > 0

        return {
            "loss": loss,
            "acc": accuracy(preds_all, targets_all) if has_samples else 0.0,
            "precision": precision(preds_all, targets_all) if has_samples else 0.0,
            "recall": recall(preds_all, targets_all) if has_samples else 0.0,
            "f1_score": f1_score(preds_all, targets_all) if has_samples else 0.0,
            "time": time.time() - start_time,
        }

    # =====================================================
    # TRAIN LOOP
    # =====================================================
    def train(
        self,
        train_loader: DataLoader,
        val_loader: Optional[DataLoader] = None,
        epochs: int = 10,
        early_stopping_patience: Optional[int] = None,
        verbose: bool = True,
    ) -> Dict[str, List[float]]:
        """
        Fit the model.

        The monitored quantity is the validation loss, or the training loss
        when no validation loader is given. Whenever it improves the weights
        are written to ``checkpoint_dir/best_model.pth``.

        Args:
            train_loader: Training batches.
            val_loader: Optional validation batches.
            epochs: Maximum number of epochs.
            early_stopping_patience: Epochs without improvement before
                stopping; None trains for all epochs.
            verbose: Print one block of metrics per epoch.

        Returns:
            Training history.
        """
        if epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {epochs}")

        patience_counter = 0

        for epoch in range(1, epochs + 1):
            train_stats = self.train_epoch(train_loader)
            val_stats = self.validate(val_loader) if val_loader is not None else None

            self.history["train_loss"].append(train_stats["loss"])
            self.history["train_acc"].append(train_stats["acc"])
            self.history["train_time"].append(train_stats["time"])
            if val_stats is not None:
                self.history["val_loss"].append(val_stats["loss"])
                self.history["val_acc"].append(val_stats["acc"])
                self.history["precision"].append(val_stats["precision"])
                self.history["recall"].append(val_stats["recall"])
                self.history["f1_score"].append(val_stats["f1_score"])
                self.history["val_time"].append(val_stats["time"])

            monitored = val_stats["loss"] if val_stats is not None else train_stats["loss"]

            # Scheduler
            current_lr = self.optimizer.param_groups[0]["lr"]
            if self.scheduler:
                if isinstance(self.scheduler, ReduceLROnPlateau):
                    self.scheduler.step(monitored)
                else:
                    self.scheduler.step()
                current_lr = self.optimizer.param_groups[0]["lr"]

            self.history["lr"].append(current_lr)

            if verbose:
                print(f"\nEpoch [{epoch}/{epochs}]")
                print(f"  Train Loss : {train_stats['loss']:.4f} | Train Acc : {train_stats['acc']:.2f}%")
                if val_stats is not None:
                    print(f"  Val Loss   : {val_stats['loss']:.4f} | Val Acc   : {val_stats['acc']:.2f}%")
                    print(f"  Precision  : {val_stats['precision']:.4f}")
                    print(f"  Recall     : {val_stats['recall']:.4f}")
                    print(f"  F1 Score   : {val_stats['f1_score']:.4f}")
                    print(f"  Train Time : {train_stats['time']:.2f}s | Val Time : {val_stats['time']:.2f}s")
                else:
                    print(f"  Train Time : {train_stats['time']:.2f}s")
                print(f"  LR         : {current_lr:.6f}")

            if monitored < self.best_loss:
                self.best_loss = monitored
                self.best_val_acc = val_stats["acc"] if val_stats is not None else train_stats["acc"]
                self.best_epoch = epoch
                patience_counter = 0

                torch.save(self.model.state_dict(), self.best_model_path)
            else:
                patience_counter += 1
                if early_stopping_patience is not None and patience_counter >= early_stopping_patience:
                    print(f"\nEarly stopping at epoch {epoch} (best epoch {self.best_epoch})")
                    break

        return self.history

    def load_best(self) -> bool:
        """Restore the best checkpoint, if one was written. Returns True on success."""
        if not os.path.exists(self.best_model_path):
            return False
        state = torch.load(self.best_model_path, map_location=self.device)
        self.model.load_state_dict(state)
        return True

    # =====================================================
    # FINAL EVALUATION (LATENCY BENCHMARK)
    # =====================================================
    def evaluate(self, test_loader: DataLoader, verbose: bool = True) -> Dict[str, float]:
        start_time = time.time()
        loss, preds_all, targets_all = self._run_inference(test_loader)
        total_time = time.time() - start_time

        total_samples = len(targets_all)
        time_per_sample = total_time / max(1, total_samples)
        has_samples = total_samples > 0

        results = {
            "loss": float(loss),
            "accuracy": float(accuracy(preds_all, targets_all)) if has_samples else 0.0,
            "precision": float(precision(preds_all, targets_all)) if has_samples else 0.0,
            "recall": float(recall(preds_all, targets_all)) if has_samples else 0.0,
            "f1_score": float(f1_score(preds_all, targets_all)) if has_samples else 0.0,
            "test_time_sec": float(total_time),
            "samples": int(total_samples),
            "time_per_sample_ms": float(time_per_sample * 1000),
            "samples_per_sec": float(total_samples / total_time) if total_time > 0 else 0.0,
        }

        if verbose:
            print("\n" + "=" * 40)
            print("EVALUATION RESULTS")
            print("=" * 40)
            for k, v in results.items():
                print(f"{k:20s}: {v}")

        return results
