#!/usr/bin/env python3
"""
Load the configured matrix store and report what was loaded and skipped.
Useful after out-of-band changes to a storage root.
"""

import sys
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from cipherdeck.core import config
from cipherdeck.core.errors import StorageIOError


def main():
    store = config.get_record_store()
    print(f"Storage roots: {store.storage.describe()}")

    try:
        count = store.open()
        print(f"Loaded {count} matrices")
        if store.skipped:
            print(f"Skipped {len(store.skipped)} unreadable files:")
            for path, reason in store.skipped:
                print(f"  {path}: {reason}")
    except StorageIOError as e:
        print(f"ERROR: {e.message}")
        return 1
    finally:
        store.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
