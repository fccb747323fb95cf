#!/usr/bin/env python3
"""
Simple import wrapper script - runs all three phases.
Usage: python import_groups.py IMPORT_DIR [--preview] [--prefix P] [--suffix S]
"""

import sys
import subprocess
from pathlib import Path


def main():
    if len(sys.argv) < 2:
        print("Usage: python import_groups.py IMPORT_DIR [--preview] [--prefix P] [--suffix S]")
        print("Example: python import_groups.py exports --preview")
        sys.exit(1)

    # Remaining arguments are passed straight through to the CLI
    cmd = [
        sys.executable, "-m", "gcch_migration.cli.app",
        "import", "--import-dir", sys.argv[1], "--all",
    ] + sys.argv[2:]

    preview = "--preview" in sys.argv[2:]
    print(f"Running import from {sys.argv[1]} {'(PREVIEW)' if preview else '(PRODUCTION)'}")
    print(f"Command: {' '.join(cmd)}")
    print()

    try:
        result = subprocess.run(cmd, cwd=Path(__file__).parent.parent)
        sys.exit(result.returncode)
    except KeyboardInterrupt:
        print("\nImport cancelled by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
