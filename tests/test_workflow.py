"""
Tests for the end-to-end experiment and the command-line entry points
"""

import os

import pytest
import torch
import yaml
from torch.utils.data import DataLoader, TensorDataset

import inference
import train_species
from cnn_tutorial.config import DEFAULT_MNIST_CONFIG, merge_dicts
from cnn_tutorial.models.cnn_model import SequentialCNN
from cnn_tutorial.training.workflow import compile_model, run_experiment
from cnn_tutorial.utils.persistence import load_model

from tests.conftest import TINY_LAYERS, make_image


def tiny_config(save_dir, layers=None, loss="cross_entropy"):
    return merge_dicts(
        DEFAULT_MNIST_CONFIG,
        {
            "model": {"input_shape": [1, 8, 8], "layers": layers or TINY_LAYERS},
            "training": {
                "epochs": 2,
                "batch_size": 4,
                "optimizer": "adam",
                "learning_rate": 0.01,
                "loss": loss,
            },
            "checkpoint": {"save_dir": str(save_dir)},
            "logging": {"verbose": False},
        },
    )


class TestCompileModel:
    """Tests for loss / head compatibility checks."""

    def test_single_output_needs_binary_loss(self, tiny_binary_layers):
        model = SequentialCNN((1, 8, 8), tiny_binary_layers)
        with pytest.raises(ValueError):
            compile_model(model, {"loss": "cross_entropy"})

    def test_binary_loss_needs_single_output(self, tiny_layers):
        model = SequentialCNN((1, 8, 8), tiny_layers)
        with pytest.raises(ValueError):
            compile_model(model, {"loss": "binary_cross_entropy"})

    def test_returns_components(self, tiny_layers):
        model = SequentialCNN((1, 8, 8), tiny_layers)
        criterion, optimizer, scheduler = compile_model(
            model, {"loss": "cross_entropy", "optimizer": "sgd", "scheduler": "step"}
        )
        assert isinstance(criterion, torch.nn.CrossEntropyLoss)
        assert isinstance(optimizer, torch.optim.SGD)
        assert scheduler is not None


class TestRunExperiment:
    """Tests for build → fit → evaluate → save → reload."""

    def test_outputs_written(self, tiny_loader, tmp_path):
        config = tiny_config(tmp_path / "run")
        result = run_experiment(
            config,
            {"train": tiny_loader, "val": tiny_loader, "test": tiny_loader},
            class_names=["a", "b", "c"],
            device=torch.device("cpu"),
            tag="tiny",
        )

        for key in ("best_model", "weights", "bundle", "metrics", "history_plot", "confusion_matrix"):
            assert os.path.exists(result["paths"][key]), key
        assert os.path.exists(tmp_path / "run" / "model_info.yaml")

        assert result["reload_agreement"] == 100.0
        assert result["reload_results"]["accuracy"] == result["test_results"]["accuracy"]
        assert len(result["history"]["train_loss"]) == 2

        with open(result["paths"]["metrics"]) as f:
            metrics = yaml.safe_load(f)
        assert metrics["samples"] == 16

        model, bundle = load_model(result["paths"]["bundle"])
        assert bundle["class_names"] == ["a", "b", "c"]
        assert bundle["config"]["training"]["epochs"] == 2

    def test_class_count_mismatch(self, tiny_loader, tmp_path):
        with pytest.raises(ValueError):
            run_experiment(
                tiny_config(tmp_path / "run"),
                {"train": tiny_loader},
                class_names=["a", "b"],
                device=torch.device("cpu"),
                make_plots=False,
            )

    def test_requires_train_loader(self, tiny_loader, tmp_path):
        with pytest.raises(ValueError):
            run_experiment(
                tiny_config(tmp_path / "run"),
                {"val": tiny_loader},
                class_names=["a", "b", "c"],
                device=torch.device("cpu"),
            )

    def test_binary_without_eval_loader(self, binary_loader, tiny_binary_layers, tmp_path):
        config = tiny_config(tmp_path / "bin", layers=tiny_binary_layers, loss="binary_cross_entropy")
        result = run_experiment(
            config,
            {"train": binary_loader},
            class_names=["invasive", "non_invasive"],
            device=torch.device("cpu"),
            make_plots=False,
        )
        assert result["test_results"]["samples"] == 16
        assert result["reload_agreement"] == 100.0

    def test_shuffled_train_only_loader(self, tmp_path, capsys):
        """Reload agreement compares the same samples even when training shuffles."""
        torch.manual_seed(0)
        dataset = TensorDataset(torch.rand(64, 1, 8, 8), torch.arange(64) % 3)
        loader = DataLoader(dataset, batch_size=8, shuffle=True)

        result = run_experiment(
            tiny_config(tmp_path / "shuffled"),
            {"train": loader},
            class_names=["a", "b", "c"],
            device=torch.device("cpu"),
            make_plots=False,
        )
        assert result["test_results"]["samples"] == 64
        assert result["reload_agreement"] == 100.0
        assert result["reload_results"]["accuracy"] == result["test_results"]["accuracy"]

        out = capsys.readouterr().out
        assert "Best training accuracy" in out
        assert "Best validation accuracy" not in out

    def test_reports_validation_accuracy(self, tiny_loader, tmp_path, capsys):
        run_experiment(
            tiny_config(tmp_path / "run"),
            {"train": tiny_loader, "val": tiny_loader},
            class_names=["a", "b", "c"],
            device=torch.device("cpu"),
            make_plots=False,
        )
        assert "Best validation accuracy" in capsys.readouterr().out


SMALL_SPECIES_LAYERS = [
    {"type": "conv2d", "filters": 4, "kernel_size": 3, "activation": "relu"},
    {"type": "maxpool2d", "pool_size": 2},
    {"type": "flatten"},
    {"type": "dense", "units": 1},
    {"type": "sigmoid"},
]


class TestEntryPoints:
    """Tests for the species training script and single-image inference."""

    @pytest.fixture
    def species_run(self, image_folder, tmp_path):
        config = {
            "data": {"image_size": [16, 16], "val_fraction": 0.2, "augmentation": {"shear_degrees": 5.0}},
            "model": {"input_shape": [3, 16, 16], "layers": SMALL_SPECIES_LAYERS},
            "training": {"epochs": 1, "batch_size": 4},
            "checkpoint": {"save_dir": str(tmp_path / "species_out")},
            "logging": {"verbose": False},
        }
        config_path = tmp_path / "species.yaml"
        config_path.write_text(yaml.safe_dump(config))

        data_dir = os.path.dirname(image_folder)
        train_species.main(["--config", str(config_path), "--data-dir", data_dir, "--no-plots"])
        return tmp_path / "species_out"

    def test_train_species(self, species_run):
        assert (species_run / "final_model_species.pth").exists()
        assert (species_run / "weights_species.pth").exists()
        assert (species_run / "test_metrics_species.yaml").exists()

    def test_inference_on_saved_bundle(self, species_run, tmp_path):
        image_path = str(tmp_path / "query.jpg")
        make_image(image_path, (0, 160, 0), size=(30, 30))

        results = inference.main(
            ["--model", str(species_run / "final_model_species.pth"), "--image", image_path]
        )
        assert {name for name, _ in results} == {"invasive", "non_invasive"}
        assert sum(conf for _, conf in results) == pytest.approx(100.0)

    def test_species_augmented_train_only(self, image_folder, tmp_path):
        """With no validation data, evaluation uses the un-augmented training images."""
        config = {
            "data": {
                "image_size": [16, 16],
                "val_fraction": 0.0,
                "augmentation": {"horizontal_flip": True, "shear_degrees": 20.0, "zoom_range": 0.3},
            },
            "model": {"input_shape": [3, 16, 16], "layers": SMALL_SPECIES_LAYERS},
            "training": {"epochs": 1, "batch_size": 4},
            "checkpoint": {"save_dir": str(tmp_path / "train_only")},
            "logging": {"verbose": False},
        }
        config_path = tmp_path / "species.yaml"
        config_path.write_text(yaml.safe_dump(config))

        result = train_species.main(
            ["--config", str(config_path), "--data-dir", os.path.dirname(image_folder), "--no-plots"]
        )
        assert result["test_results"]["samples"] == 10
        assert result["reload_agreement"] == 100.0

    def test_malformed_config_falls_back(self, tmp_path, capsys):
        """An unparsable config is replaced by the defaults instead of crashing."""
        config_path = tmp_path / "broken.yaml"
        config_path.write_text("model: [unclosed\n")
        with pytest.raises(FileNotFoundError, match="Training images not found"):
            train_species.main(["--config", str(config_path), "--data-dir", str(tmp_path / "nothing")])
        assert "Loading fallback default configuration" in capsys.readouterr().out

    def test_species_missing_data(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            train_species.main(["--config", str(tmp_path / "none.yaml"), "--data-dir", str(tmp_path / "nothing")])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
