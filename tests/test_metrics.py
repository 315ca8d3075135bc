"""
Tests for Training Metrics
"""

import pytest
import torch

from cnn_tutorial.training.metrics import (
    accuracy,
    confusion_matrix,
    f1_score,
    get_predictions_from_logits,
    precision,
    recall,
)


class TestAccuracy:
    """Tests for accuracy metric."""

    def test_perfect_accuracy(self):
        """Test accuracy with perfect predictions."""
        predictions = torch.tensor([0, 1, 2, 3, 4])
        targets = torch.tensor([0, 1, 2, 3, 4])
        assert accuracy(predictions, targets) == 100.0

    def test_zero_accuracy(self):
        """Test accuracy with all wrong predictions."""
        predictions = torch.tensor([1, 2, 3, 4, 0])
        targets = torch.tensor([0, 1, 2, 3, 4])
        assert accuracy(predictions, targets) == 0.0

    def test_partial_accuracy(self):
        """Test accuracy with partial correct predictions."""
        predictions = torch.tensor([0, 1, 0, 1])
        targets = torch.tensor([0, 1, 1, 0])
        assert accuracy(predictions, targets) == 50.0

    def test_accuracy_with_logits(self):
        """Test accuracy with logit inputs."""
        predictions = torch.tensor([[0.9, 0.1], [0.2, 0.8]])
        targets = torch.tensor([0, 1])
        assert accuracy(predictions, targets) == 100.0

    def test_accuracy_with_single_logit(self):
        """Single-column logits are thresholded at probability 0.5."""
        predictions = torch.tensor([[-2.0], [3.0], [0.5]])
        targets = torch.tensor([0, 1, 0])
        assert accuracy(predictions, targets) == pytest.approx(200.0 / 3.0)


class TestPrecisionRecall:
    """Tests for precision and recall metrics."""

    def test_precision_perfect(self):
        predictions = torch.tensor([0, 1, 2])
        targets = torch.tensor([0, 1, 2])
        assert precision(predictions, targets) == 1.0

    def test_recall_perfect(self):
        predictions = torch.tensor([0, 1, 2])
        targets = torch.tensor([0, 1, 2])
        assert recall(predictions, targets) == 1.0

    def test_precision_never_predicted_class(self):
        """Classes never predicted count as zero precision, without warnings."""
        predictions = torch.tensor([0, 0, 0, 0])
        targets = torch.tensor([0, 0, 1, 1])
        assert precision(predictions, targets) == pytest.approx(0.25)


class TestF1Score:
    """Tests for F1 score metric."""

    def test_f1_perfect(self):
        predictions = torch.tensor([0, 1, 2])
        targets = torch.tensor([0, 1, 2])
        assert f1_score(predictions, targets) == 1.0


class TestConfusionMatrix:
    """Tests for confusion matrix."""

    def test_confusion_matrix_shape(self):
        predictions = torch.tensor([0, 1, 2, 0, 1, 2])
        targets = torch.tensor([0, 1, 2, 0, 1, 2])
        cm = confusion_matrix(predictions, targets, num_classes=3)
        assert cm.shape == (3, 3)

    def test_confusion_matrix_diagonal(self):
        predictions = torch.tensor([0, 1, 2])
        targets = torch.tensor([0, 1, 2])
        cm = confusion_matrix(predictions, targets, num_classes=3)
        assert cm[0, 0] == 1
        assert cm[1, 1] == 1
        assert cm[2, 2] == 1

    def test_confusion_matrix_absent_class(self):
        """num_classes keeps rows for classes missing from the batch."""
        predictions = torch.tensor([0, 0])
        targets = torch.tensor([0, 1])
        cm = confusion_matrix(predictions, targets, num_classes=4)
        assert cm.shape == (4, 4)
        assert cm[1, 0] == 1


class TestPredictionsFromLogits:
    """Tests for logits → class indices."""

    def test_multiclass_argmax(self):
        logits = torch.tensor([[0.1, 2.0, -1.0], [3.0, 0.0, 0.0]])
        assert get_predictions_from_logits(logits).tolist() == [1, 0]

    def test_binary_is_flat(self):
        """Single-logit output gives a 1-D tensor."""
        preds = get_predictions_from_logits(torch.tensor([[-1.0], [1.0]]))
        assert preds.shape == (2,)
        assert preds.tolist() == [0, 1]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
