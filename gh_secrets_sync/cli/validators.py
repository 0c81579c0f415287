"""Input validation for CLI arguments."""
import sys
from pathlib import Path
from typing import List


def validate_sync_files(paths: List[str]) -> None:
    """
    Check that every sync file given on the command line exists.

    Args:
        paths: Paths from --file (or the default)

    Raises:
        SystemExit with code 2 if any file is missing
    """
    missing = [p for p in paths if not Path(p).is_file()]
    if not missing:
        return

    for path in missing:
        print(f"Error: Sync file not found: {path}", file=sys.stderr)
    print("\nPass one or more files with --file, e.g.:", file=sys.stderr)
    print("  secrets-sync sync --file secrets.yml --file org-secrets.yml", file=sys.stderr)
    sys.exit(2)
