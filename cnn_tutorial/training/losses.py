import torch
import torch.nn as nn


class BinaryCrossEntropyLoss(nn.Module):
    """
    Binary cross entropy on a single raw logit per sample.

    Accepts logits of shape [N] or [N, 1] and integer or float 0/1 targets,
    which is what an image folder loader yields for a two-class problem.
    """

    def __init__(self, pos_weight=None):
        super().__init__()
        self.loss = nn.BCEWithLogitsLoss(pos_weight=pos_weight)

    def forward(self, inputs: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
        return self.loss(inputs.reshape(-1), targets.float().reshape(-1))


LOSSES = {
    "cross_entropy": nn.CrossEntropyLoss,
    "categorical_crossentropy": nn.CrossEntropyLoss,
    "binary_cross_entropy": BinaryCrossEntropyLoss,
    "binary_crossentropy": BinaryCrossEntropyLoss,
}


def get_criterion(name: str = "cross_entropy") -> nn.Module:
    """
    Create the loss for a classification head.

    - 'cross_entropy': C logits, integer labels (multi-class)
    - 'binary_cross_entropy': 1 logit, 0/1 labels
    """
    key = name.lower()
    if key not in LOSSES:
        raise ValueError(f"Unknown loss: {name}. Available options: {list(LOSSES.keys())}")
    return LOSSES[key]()
