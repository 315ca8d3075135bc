"""
Invasive Species Folder Organizer
---------------------------------
The Kaggle data ships as a flat train/ folder plus train_labels.csv
(columns: name, invasive). Training from a directory needs one folder per
class, so this script copies (or moves) every image into

    <output>/train/invasive/, <output>/train/non_invasive/
    <output>/val/invasive/,   <output>/val/non_invasive/   (with --val-fraction)

Usage:
    python scripts/organize_species.py --images raw/train --labels raw/train_labels.csv \
        --output data/invasive_species --val-fraction 0.2
"""

import argparse
import os
import sys

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.abspath(os.path.join(current_dir, ".."))
if project_root not in sys.path:
    sys.path.append(project_root)

from cnn_tutorial.data.image_folder import organize_by_label


def main(argv=None):
    parser = argparse.ArgumentParser(description="Sort species images into class folders")
    parser.add_argument("--images", type=str, required=True, help="Flat folder of images")
    parser.add_argument("--labels", type=str, required=True, help="CSV with image names and labels")
    parser.add_argument("--output", type=str, default="data/invasive_species")
    parser.add_argument("--name-column", type=str, default="name")
    parser.add_argument("--label-column", type=str, default="invasive")
    parser.add_argument("--extension", type=str, default=".jpg")
    parser.add_argument("--val-fraction", type=float, default=0.0)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--move", action="store_true", help="Move files instead of copying")
    args = parser.parse_args(argv)

    counts = organize_by_label(
        image_dir=args.images,
        labels_csv=args.labels,
        output_dir=args.output,
        name_column=args.name_column,
        label_column=args.label_column,
        extension=args.extension,
        val_fraction=args.val_fraction,
        seed=args.seed,
        copy=not args.move,
    )

    total = sum(sum(c.values()) for c in counts.values())
    print(f"[SUCCESS] {total} images organized under {args.output}")
    return counts


if __name__ == "__main__":
    main()
