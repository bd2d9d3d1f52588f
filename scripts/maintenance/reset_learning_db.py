"""
Reset the card engine database.

DANGEROUS: This deletes all item stats, frame stats and the review log!
The item and frame catalogs are dropped as well.

Usage:
    python -m scripts.maintenance.reset_learning_db
    python -m scripts.maintenance.reset_learning_db --url sqlite:///learning_db.sqlite
"""

import argparse

from cardengine.config import get_database_url, is_test_mode
from cardengine.memory.database import get_engine, reset_db


def main(argv=None):
    parser = argparse.ArgumentParser(description="Drop and recreate the card engine tables.")
    parser.add_argument("--url", help="Connection string (defaults to DATABASE_URL)")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    args = parser.parse_args(argv)

    url = args.url or get_database_url()

    print("=" * 60)
    print("WARNING: Reset Card Engine Database")
    print("=" * 60)
    print()
    print(f"Target: {url}{' (test mode)' if is_test_mode() else ''}")
    print("This will DELETE:")
    print("  - All item stats (stage, per-mode stability and accuracy)")
    print("  - All frame stats")
    print("  - The review log")
    print()

    if not args.yes:
        response = input("Are you sure you want to reset? (type 'yes' to confirm): ")
        if response.lower() != "yes":
            print("\nCancelled. No changes made.")
            return

    print("\nResetting database...")
    reset_db(get_engine(url))
    print("✓ Database reset complete!")


if __name__ == "__main__":
    main()
