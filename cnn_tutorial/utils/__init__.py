"""
Utility Module

Provides:
    - Visualization tools (training curves, confusion matrix, filters, feature maps)
    - Reproducibility helpers (seed, device)
    - Optimizer / scheduler factories
    - Model IO (weights, bundles) and prediction
"""

from .helpers import (
    get_device,
    get_optimizer,
    get_scheduler,
    prepare_for_training,
    set_seed,
    to_native,
)
from .persistence import (
    load_model,
    load_weights,
    predict,
    predict_proba,
    save_model,
    save_weights,
)
from .visualization import (
    plot_confusion_matrix,
    plot_feature_maps,
    plot_filters,
    plot_kernel_demo,
    plot_learning_rate,
    plot_samples,
    plot_training_history,
)

__all__ = [
    # Visualization
    "plot_training_history",
    "plot_confusion_matrix",
    "plot_learning_rate",
    "plot_kernel_demo",
    "plot_filters",
    "plot_feature_maps",
    "plot_samples",

    # Helpers
    "set_seed",
    "get_device",
    "get_optimizer",
    "get_scheduler",
    "prepare_for_training",
    "to_native",

    # Persistence
    "save_weights",
    "load_weights",
    "save_model",
    "load_model",
    "predict",
    "predict_proba",
]
