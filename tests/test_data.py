"""
Tests for MNIST preparation, image folders and transforms
"""

import os

import pandas as pd
import pytest
import torch
from PIL import Image

from cnn_tutorial.data.image_folder import (
    ImageDataset,
    create_image_loaders,
    organize_by_label,
)
from cnn_tutorial.data.mnist import load_mnist, normalize_images, split_validation
from cnn_tutorial.data.transforms import build_eval_transform, build_train_transform

from tests.conftest import make_image


class TestMnistPreparation:
    """Tests for MNIST tensor preparation (no download)."""

    def test_normalize_images(self):
        images = torch.full((2, 28, 28), 255, dtype=torch.uint8)
        images[1] = 0
        out = normalize_images(images)
        assert out.shape == (2, 1, 28, 28)
        assert out.dtype == torch.float32
        assert out[0].max().item() == 1.0
        assert out[1].max().item() == 0.0

    def test_normalize_rejects_wrong_rank(self):
        with pytest.raises(ValueError):
            normalize_images(torch.zeros(2, 1, 28, 28, dtype=torch.uint8))

    def test_split_validation_takes_tail(self):
        x = torch.arange(10)
        y = torch.arange(10) * 2
        (x_fit, y_fit), (x_val, y_val) = split_validation(x, y, 0.2)
        assert x_fit.tolist() == list(range(8))
        assert x_val.tolist() == [8, 9]
        assert y_val.tolist() == [16, 18]

    def test_split_validation_zero(self):
        (x_fit, _), (x_val, _) = split_validation(torch.arange(5), torch.arange(5), 0.0)
        assert len(x_fit) == 5
        assert len(x_val) == 0

    def test_invalid_validation_split(self, tmp_path):
        with pytest.raises(ValueError):
            load_mnist(str(tmp_path), download=False, validation_split=1.0)


class TestImageDataset:
    """Tests for class-folder datasets."""

    def test_classes_sorted(self, image_folder):
        dataset = ImageDataset(image_folder)
        assert dataset.classes == ["invasive", "non_invasive"]
        assert dataset.class_to_idx == {"invasive": 0, "non_invasive": 1}
        assert len(dataset) == 10
        assert dataset.targets.count(1) == 5

    def test_getitem_with_transform(self, image_folder):
        dataset = ImageDataset(image_folder, transform=build_eval_transform((16, 16)))
        image, label = dataset[0]
        assert image.shape == (3, 16, 16)
        assert label == 0

    def test_grayscale(self, image_folder):
        dataset = ImageDataset(
            image_folder,
            transform=build_eval_transform((16, 16), "grayscale"),
            color_mode="grayscale",
        )
        assert dataset[0][0].shape == (1, 16, 16)

    def test_ignores_non_images(self, image_folder):
        with open(os.path.join(image_folder, "invasive", "notes.txt"), "w") as f:
            f.write("not an image")
        assert len(ImageDataset(image_folder)) == 10

    def test_subset(self, image_folder):
        dataset = ImageDataset(image_folder)
        view = dataset.subset([0, 9], transform=build_eval_transform((8, 8)))
        assert len(view) == 2
        assert view.classes == dataset.classes
        assert view.targets == [0, 1]
        assert view[1][0].shape == (3, 8, 8)

    def test_missing_root(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ImageDataset(str(tmp_path / "nope"))

    def test_no_class_dirs(self, tmp_path):
        with pytest.raises(ValueError):
            ImageDataset(str(tmp_path))

    def test_no_images(self, tmp_path):
        (tmp_path / "empty_class").mkdir()
        with pytest.raises(ValueError):
            ImageDataset(str(tmp_path))


class TestOrganizeByLabel:
    """Tests for converting the flat Kaggle layout."""

    @pytest.fixture
    def flat_layout(self, tmp_path):
        image_dir = tmp_path / "raw"
        image_dir.mkdir()
        for name in range(1, 11):
            make_image(str(image_dir / f"{name}.jpg"), (name * 20, 0, 0))
        labels = pd.DataFrame({"name": list(range(1, 11)), "invasive": [0, 1] * 5})
        labels_csv = tmp_path / "train_labels.csv"
        labels.to_csv(labels_csv, index=False)
        return str(image_dir), str(labels_csv)

    def test_train_only(self, flat_layout, tmp_path):
        image_dir, labels_csv = flat_layout
        out = tmp_path / "organized"
        counts = organize_by_label(image_dir, labels_csv, str(out))
        assert counts == {"train": {"non_invasive": 5, "invasive": 5}}
        assert (out / "train" / "invasive" / "2.jpg").exists()
        assert (out / "train" / "non_invasive" / "1.jpg").exists()
        # copies by default
        assert os.path.exists(os.path.join(image_dir, "1.jpg"))

    def test_stratified_val_split(self, flat_layout, tmp_path):
        image_dir, labels_csv = flat_layout
        counts = organize_by_label(image_dir, labels_csv, str(tmp_path / "o"), val_fraction=0.2)
        assert counts["train"] == {"non_invasive": 4, "invasive": 4}
        assert counts["val"] == {"non_invasive": 1, "invasive": 1}

    def test_missing_images_skipped(self, flat_layout, tmp_path):
        image_dir, labels_csv = flat_layout
        os.remove(os.path.join(image_dir, "3.jpg"))
        counts = organize_by_label(image_dir, labels_csv, str(tmp_path / "o"))
        assert counts["train"]["non_invasive"] == 4

    def test_move(self, flat_layout, tmp_path):
        image_dir, labels_csv = flat_layout
        organize_by_label(image_dir, labels_csv, str(tmp_path / "o"), copy=False)
        assert not os.listdir(image_dir)

    def test_missing_column(self, flat_layout, tmp_path):
        image_dir, labels_csv = flat_layout
        with pytest.raises(ValueError):
            organize_by_label(image_dir, labels_csv, str(tmp_path / "o"), label_column="label")

    def test_unknown_label(self, flat_layout, tmp_path):
        image_dir, labels_csv = flat_layout
        with pytest.raises(ValueError):
            organize_by_label(image_dir, labels_csv, str(tmp_path / "o"), class_names={0: "only_one"})

    def test_missing_label_file(self, flat_layout, tmp_path):
        image_dir, _ = flat_layout
        with pytest.raises(FileNotFoundError):
            organize_by_label(image_dir, str(tmp_path / "none.csv"), str(tmp_path / "o"))


class TestImageLoaders:
    """Tests for loader creation."""

    def test_split_from_train_dir(self, image_folder):
        loaders = create_image_loaders(
            image_folder, image_size=(16, 16), val_fraction=0.2, batch_size=4
        )
        assert len(loaders["train"].dataset) == 8
        assert len(loaders["val"].dataset) == 2
        assert sorted(loaders["val"].dataset.targets) == [0, 1]
        images, labels = next(iter(loaders["train"]))
        assert images.shape == (4, 3, 16, 16)
        assert labels.dtype == torch.long

    def test_explicit_val_dir(self, image_folder):
        loaders = create_image_loaders(
            image_folder, val_dir=image_folder, test_dir=image_folder, image_size=(16, 16)
        )
        assert len(loaders["train"].dataset) == 10
        assert len(loaders["val"].dataset) == 10
        assert "test" in loaders

    def test_no_validation(self, image_folder):
        loaders = create_image_loaders(image_folder, image_size=(16, 16), val_fraction=0.0)
        assert set(loaders) == {"train", "train_eval"}
        assert len(loaders["train_eval"].dataset) == 10

    def test_train_eval_is_repeatable(self, image_folder):
        """The un-augmented training copy yields identical batches on every pass."""
        loaders = create_image_loaders(
            image_folder,
            image_size=(16, 16),
            val_fraction=0.0,
            augmentation={"horizontal_flip": True, "shear_degrees": 20.0, "zoom_range": 0.3},
            batch_size=10,
        )
        first_images, first_labels = next(iter(loaders["train_eval"]))
        second_images, second_labels = next(iter(loaders["train_eval"]))
        assert torch.equal(first_images, second_images)
        assert first_labels.tolist() == sorted(first_labels.tolist())


class TestTransforms:
    """Tests for augmentation pipelines."""

    def test_train_transform_output(self):
        transform = build_train_transform(
            (32, 32), shear_degrees=10.0, zoom_range=0.2, rotation_degrees=15.0
        )
        out = transform(Image.new("RGB", (50, 40), (255, 255, 255)))
        assert out.shape == (3, 32, 32)
        assert 0.0 <= out.min().item() and out.max().item() <= 1.0

    def test_eval_transform_rescales(self):
        out = build_eval_transform((10, 10))(Image.new("RGB", (10, 10), (255, 0, 0)))
        assert out[0].mean().item() == pytest.approx(1.0)
        assert out[1].mean().item() == pytest.approx(0.0)

    def test_invalid_zoom(self):
        with pytest.raises(ValueError):
            build_train_transform((32, 32), zoom_range=1.5)

    def test_invalid_color_mode(self):
        with pytest.raises(ValueError):
            build_eval_transform((32, 32), "cmyk")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
