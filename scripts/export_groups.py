#!/usr/bin/env python3
"""
Simple export wrapper script.
Usage: python export_groups.py OUTPUT_DIR [--include-mail-enabled]
"""

import sys
import subprocess
from pathlib import Path


def main():
    if len(sys.argv) < 2:
        print("Usage: python export_groups.py OUTPUT_DIR [--include-mail-enabled]")
        print("Example: python export_groups.py exports")
        sys.exit(1)

    cmd = [
        sys.executable, "-m", "gcch_migration.cli.app",
        "export", "--output-dir", sys.argv[1],
    ]
    if "--include-mail-enabled" in sys.argv[2:]:
        cmd.append("--include-mail-enabled")

    print(f"Command: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, cwd=Path(__file__).parent.parent)
        sys.exit(result.returncode)
    except KeyboardInterrupt:
        print("\nExport cancelled by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
