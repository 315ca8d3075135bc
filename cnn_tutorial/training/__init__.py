"""
Training Module

Exports:
    - Trainer: Main class to handle the fit / evaluate loop
    - run_experiment: build → compile → fit → evaluate → save → reload
    - get_criterion: Loss selector ('cross_entropy', 'binary_cross_entropy')
    - Metrics: Accuracy, Precision, Recall, F1, Confusion Matrix
"""

from .losses import BinaryCrossEntropyLoss, get_criterion
from .metrics import (
    accuracy,
    confusion_matrix,
    f1_score,
    get_predictions_from_logits,
    precision,
    recall,
)
from .trainer import Trainer
from .workflow import compile_model, run_experiment

__all__ = [
    "Trainer",
    "compile_model",
    "run_experiment",
    "BinaryCrossEntropyLoss",
    "get_criterion",
    "accuracy",
    "precision",
    "recall",
    "f1_score",
    "confusion_matrix",
    "get_predictions_from_logits",
]
