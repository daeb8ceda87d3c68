"""
Import vocabulary items from a CSV file into the review database.

Expected columns: id, word, meaning
Optional columns: pronunciation, example_sentence, difficulty_level, list_name

Rows are upserted by id, so re-running the import refreshes existing items
without touching anyone's learning progress.

Usage:
    python -m scripts.data.import_vocabulary_csv data/vocabulary.csv
    python -m scripts.data.import_vocabulary_csv data/vocabulary.csv --dry-run
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import pandas as pd

from vocab_review import sm2
from vocab_review.schemas import VocabularyItem
from vocab_review.store import SqlProgressStore

REQUIRED_COLUMNS = ["id", "word", "meaning"]
OPTIONAL_COLUMNS = ["pronunciation", "example_sentence", "difficulty_level", "list_name"]


def load_items(csv_path: Path) -> list[VocabularyItem]:
    """
    Read and validate vocabulary rows.
    """
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"{csv_path} is missing required columns: {', '.join(missing)}")

    for col in REQUIRED_COLUMNS + OPTIONAL_COLUMNS:
        if col in df.columns:
            df[col] = df[col].str.strip()

    df = df[df["id"] != ""].drop_duplicates(subset="id", keep="last")

    items = []
    for row in df.to_dict(orient="records"):
        optional = {col: (row.get(col) or None) for col in OPTIONAL_COLUMNS}
        if optional["difficulty_level"]:
            optional["difficulty_level"] = optional["difficulty_level"].lower()
        items.append(VocabularyItem(id=row["id"], word=row["word"], meaning=row["meaning"], **optional))
    return items


def main():
    parser = argparse.ArgumentParser(
        description="Import vocabulary items from CSV into the review database"
    )
    parser.add_argument("csv_path", type=Path, help="CSV file to import")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the file without writing to the database"
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    items = load_items(args.csv_path)
    print(f"Loaded {len(items)} vocabulary items from {args.csv_path}")

    if args.dry_run:
        print("\n⚠ DRY RUN MODE - No changes were made to the database")
        return

    sm2.init_db()
    SqlProgressStore().add_items(items)
    print(f"✓ Imported {len(items)} items")


if __name__ == "__main__":
    main()
