"""
Directory-Structured Image Datasets

Loads image classification data laid out as one sub-directory per class, and
converts the flat Kaggle invasive species layout (images + label CSV) into it.
"""

import os
import shutil
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd
import torch
from PIL import Image
from sklearn.model_selection import train_test_split
from torch.utils.data import DataLoader, Dataset

from cnn_tutorial.data.transforms import build_eval_transform, build_train_transform

VALID_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".gif"}
SPECIES_CLASSES = {0: "non_invasive", 1: "invasive"}


class ImageDataset(Dataset):
    """
    Dataset for images stored in class folders.

    Expected directory structure:
        root/
            invasive/
                1.jpg
                4.jpg
            non_invasive/
                2.jpg
                3.jpg

    Class indices follow the alphabetical order of the folder names.

    Args:
        root_dir: Path to the root directory containing class folders
        transform: Optional transform to apply to images
        target_transform: Optional transform to apply to labels
        color_mode: 'rgb' or 'grayscale'
    """

    def __init__(
        self,
        root_dir: str,
        transform: Optional[Callable] = None,
        target_transform: Optional[Callable] = None,
        color_mode: str = "rgb",
    ):
        self.root_dir = root_dir
        self.transform = transform
        self.target_transform = target_transform
        self.color_mode = color_mode

        self.classes: List[str] = []
        self.class_to_idx: Dict[str, int] = {}
        self.samples: List[Tuple[str, int]] = []

        self._load_dataset()

    def _load_dataset(self) -> None:
        """Load dataset from directory structure."""
        if not os.path.isdir(self.root_dir):
            raise FileNotFoundError(f"Root directory not found: {self.root_dir}")

        self.classes = sorted(
            [d for d in os.listdir(self.root_dir)
             if os.path.isdir(os.path.join(self.root_dir, d))]
        )
        if not self.classes:
            raise ValueError(f"No class directories found in {self.root_dir}")

        self.class_to_idx = {cls: idx for idx, cls in enumerate(self.classes)}

        for class_name in self.classes:
            class_dir = os.path.join(self.root_dir, class_name)
            class_idx = self.class_to_idx[class_name]

            for filename in sorted(os.listdir(class_dir)):
                if os.path.splitext(filename)[1].lower() in VALID_EXTENSIONS:
                    img_path = os.path.join(class_dir, filename)
                    self.samples.append((img_path, class_idx))

        if not self.samples:
            raise ValueError(f"No images found under {self.root_dir}")

    @property
    def targets(self) -> List[int]:
        return [label for _, label in self.samples]

    def subset(self, indices: Sequence[int], transform: Optional[Callable] = None) -> "ImageDataset":
        """
        Return a view on some of the samples with its own transform.

        Class names and indices are shared with this dataset.
        """
        view = ImageDataset.__new__(ImageDataset)
        view.root_dir = self.root_dir
        view.transform = transform
        view.target_transform = self.target_transform
        view.color_mode = self.color_mode
        view.classes = list(self.classes)
        view.class_to_idx = dict(self.class_to_idx)
        view.samples = [self.samples[i] for i in indices]
        return view

    def __len__(self) -> int:
        """Return the total number of samples."""
        return len(self.samples)

    def __getitem__(self, idx: int) -> Tuple[torch.Tensor, int]:
        """
        Get a sample from the dataset.

        Args:
            idx: Index of the sample

        Returns:
            Tuple of (image, label)
        """
        img_path, label = self.samples[idx]

        mode = "L" if self.color_mode == "grayscale" else "RGB"
        with Image.open(img_path) as img:
            image = img.convert(mode)

        if self.transform:
            image = self.transform(image)

        if self.target_transform:
            label = self.target_transform(label)

        return image, label


def _copy_or_move(src: str, dst: str, copy: bool) -> None:
    if copy:
        shutil.copy2(src, dst)
    else:
        shutil.move(src, dst)


def organize_by_label(
    image_dir: str,
    labels_csv: str,
    output_dir: str,
    name_column: str = "name",
    label_column: str = "invasive",
    class_names: Optional[Dict[int, str]] = None,
    extension: str = ".jpg",
    val_fraction: float = 0.0,
    seed: int = 42,
    copy: bool = True,
) -> Dict[str, Dict[str, int]]:
    """
    Sort a flat folder of images into class sub-directories.

    The Kaggle invasive species data ships as ``train/<name>.jpg`` plus a
    ``train_labels.csv`` with columns ``name`` and ``invasive``. This produces
    ``output_dir/train/<class>/`` and, when ``val_fraction > 0``, a stratified
    ``output_dir/val/<class>/``.

    Returns:
        Dict[str, Dict[str, int]]: Number of images per split and class.
    """
    if not os.path.isdir(image_dir):
        raise FileNotFoundError(f"Image directory not found: {image_dir}")
    if not os.path.exists(labels_csv):
        raise FileNotFoundError(f"Label file not found: {labels_csv}")
    if not 0.0 <= val_fraction < 1.0:
        raise ValueError(f"val_fraction must be in [0, 1), got {val_fraction}")

    class_names = class_names or SPECIES_CLASSES
    df = pd.read_csv(labels_csv)

    missing_cols = {name_column, label_column} - set(df.columns)
    if missing_cols:
        raise ValueError(f"Label file is missing columns: {sorted(missing_cols)}")

    unknown = set(df[label_column].unique()) - set(class_names.keys())
    if unknown:
        raise ValueError(f"Labels without a class name: {sorted(unknown)}")

    df["filename"] = df[name_column].astype(str) + extension
    exists = df["filename"].map(lambda f: os.path.exists(os.path.join(image_dir, f)))
    if not exists.all():
        print(f"[WARNING] {int((~exists).sum())} images listed in {labels_csv} were not found, skipping")
        df = df[exists]

    splits = {"train": df}
    if val_fraction > 0:
        train_df, val_df = train_test_split(
            df,
            test_size=val_fraction,
            random_state=seed,
            stratify=df[label_column],
        )
        splits = {"train": train_df, "val": val_df}

    counts: Dict[str, Dict[str, int]] = {}
    for split, split_df in splits.items():
        counts[split] = {}
        for label, class_name in class_names.items():
            os.makedirs(os.path.join(output_dir, split, class_name), exist_ok=True)
            counts[split][class_name] = 0

        for filename, label in zip(split_df["filename"], split_df[label_column]):
            class_name = class_names[label]
            _copy_or_move(
                os.path.join(image_dir, filename),
                os.path.join(output_dir, split, class_name, filename),
                copy,
            )
            counts[split][class_name] += 1

        print(f"[INFO] {split}: {counts[split]}")

    return counts


def create_image_loaders(
    train_dir: str,
    val_dir: Optional[str] = None,
    test_dir: Optional[str] = None,
    image_size: Sequence[int] = (150, 150),
    color_mode: str = "rgb",
    augmentation: Optional[Dict] = None,
    val_fraction: float = 0.2,
    batch_size: int = 32,
    num_workers: int = 0,
    seed: int = 42,
    pin_memory: bool = False,
) -> Dict[str, DataLoader]:
    """
    Create data loaders for training, validation, and testing.

    When no ``val_dir`` is given and ``val_fraction > 0``, a stratified part of
    the training directory is held out for validation. Augmentation is only
    applied to the training samples. Without any validation data a
    'train_eval' loader (training images, eval transform, fixed order) is
    added for the final evaluation.

    Args:
        train_dir: Path to training data directory
        val_dir: Path to validation data directory (optional)
        test_dir: Path to test data directory (optional)
        image_size: Target (height, width)
        color_mode: 'rgb' or 'grayscale'
        augmentation: Keyword arguments for build_train_transform
        val_fraction: Held-out fraction when val_dir is missing
        batch_size: Batch size for data loaders
        num_workers: Number of worker processes for data loading
        seed: Seed of the stratified split
        pin_memory: Whether to pin memory for faster GPU transfer

    Returns:
        Dictionary containing data loaders
    """
    train_transform = build_train_transform(image_size, color_mode, **(augmentation or {}))
    eval_transform = build_eval_transform(image_size, color_mode)

    def _loader(dataset: Dataset, shuffle: bool) -> DataLoader:
        return DataLoader(
            dataset,
            batch_size=batch_size,
            shuffle=shuffle,
            num_workers=num_workers,
            pin_memory=pin_memory,
        )

    loaders: Dict[str, DataLoader] = {}
    full_train = ImageDataset(train_dir, color_mode=color_mode)

    if val_dir:
        loaders["train"] = _loader(full_train.subset(range(len(full_train)), train_transform), True)
        val_dataset = ImageDataset(val_dir, transform=eval_transform, color_mode=color_mode)
        if val_dataset.classes != full_train.classes:
            raise ValueError(
                f"Class folders differ: train {full_train.classes} vs val {val_dataset.classes}"
            )
        loaders["val"] = _loader(val_dataset, False)
    elif val_fraction > 0:
        indices = list(range(len(full_train)))
        train_idx, val_idx = train_test_split(
            indices,
            test_size=val_fraction,
            random_state=seed,
            stratify=full_train.targets,
        )
        loaders["train"] = _loader(full_train.subset(train_idx, train_transform), True)
        loaders["val"] = _loader(full_train.subset(val_idx, eval_transform), False)
    else:
        all_idx = range(len(full_train))
        loaders["train"] = _loader(full_train.subset(all_idx, train_transform), True)
        # Un-augmented, ordered copy used when nothing else can be evaluated
        loaders["train_eval"] = _loader(full_train.subset(all_idx, eval_transform), False)

    if test_dir:
        test_dataset = ImageDataset(test_dir, transform=eval_transform, color_mode=color_mode)
        loaders["test"] = _loader(test_dataset, False)

    print(f"[INFO] Classes: {full_train.class_to_idx}")
    for split, loader in loaders.items():
        print(f"[INFO] {split.capitalize():10s} samples: {len(loader.dataset)}")

    return loaders
