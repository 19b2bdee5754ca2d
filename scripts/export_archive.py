#!/usr/bin/env python3
"""
Command-line export of the configured matrix store to a zip bundle.
"""

import argparse
import sys
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from cipherdeck.core import config
from cipherdeck.core.archive import ArchiveBuilder, ArchiveSelector
from cipherdeck.core.errors import CipherDeckError


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Export matrices to a zip bundle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s core-matrix-pack.zip            # Export every matrix
  %(prog)s first-ten.zip --limit 10        # Export the ten oldest matrices

Environment variables:
- RECORDS_DIR / VAULT_DIR (storage roots; the vault is read when set)
- ARCHIVE_COMPRESSION_LEVEL (0-9, default 9)
        """
    )
    parser.add_argument("output", help="Path of the zip file to write")
    parser.add_argument("--limit", type=int, default=None,
                        help="Export only the first N matrices")
    args = parser.parse_args(argv)

    store = config.get_record_store()
    try:
        store.open()
        selector = ArchiveSelector.all() if args.limit is None else ArchiveSelector.first(args.limit)
        builder = ArchiveBuilder(store, audit=store.audit,
                                 compression_level=config.get_archive_compression_level())
        count = builder.build_to_file(selector, args.output)
    except CipherDeckError as e:
        print(f"ERROR: {e.message}")
        return 1
    finally:
        store.close()

    print(f"Exported {count} matrices to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
