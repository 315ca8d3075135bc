"""
CNN Tutorial Framework

This package provides the runnable pieces behind the convolutional network lessons:
    • Convolution filter primer (kernels, output sizes, pooling)
    • Sequential CNNs built from a declarative layer list
    • MNIST and directory-structured image loaders (with augmentation)
    • Training utilities (compile, fit, evaluate, early stopping)
    • Weight / model persistence and prediction helpers
    • Visualization (training curves, filters, feature maps)

Structure:
    cnn_tutorial/
    ├─ config.py      → YAML experiment configuration
    ├─ filters.py     → hand-made kernels applied to images
    ├─ data/          → MNIST & image-folder loaders, transforms
    ├─ models/        → SequentialCNN and named architectures
    ├─ training/      → trainer, metrics, loss selector
    ├─ utils/         → reproducibility, persistence & visualization utilities
"""

__version__ = "0.1.0"
