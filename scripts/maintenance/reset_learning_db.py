"""
Reset the learning database.

DANGEROUS: This deletes all review history!
Only use when you want to start fresh for testing.

Usage:
    python -m scripts.maintenance.reset_learning_db
    python -m scripts.maintenance.reset_learning_db --init-only
"""

import argparse
import logging

from vocab_review import sm2


def main():
    parser = argparse.ArgumentParser(
        description="Create or reset the review database tables"
    )
    parser.add_argument(
        "--init-only",
        action="store_true",
        help="Only create missing tables; never drop data"
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.init_only:
        sm2.init_db()
        print("✓ Review tables are in place.")
        return

    print("=" * 60)
    print("WARNING: Reset Learning Database")
    print("=" * 60)
    print()
    print("This will DELETE all review history:")
    print("  - All learning progress (repetitions, easiness, intervals)")
    print("  - All review events (logs of past reviews)")
    print("  - All user learning stats and daily goals")
    print("  - All vocabulary items in the review database")
    print()

    response = input("Are you sure you want to reset? (type 'yes' to confirm): ")

    if response.lower() == "yes":
        print("\nResetting database...")
        sm2.reset_db()
        print("✓ Database reset complete!")
        print("\nThe database now has empty tables ready for new reviews.")
    else:
        print("\nCancelled. No changes made.")


if __name__ == "__main__":
    main()
