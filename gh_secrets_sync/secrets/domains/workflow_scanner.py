"""Find which secrets workflow definitions reference."""
import re
from typing import Dict, Mapping, Set, Union

from .models import canonical_name

# ${{ secrets.NAME }} with optional whitespace inside the braces
SECRET_REFERENCE_PATTERN = re.compile(r"\$\{\{\s*secrets\.([^}\s]+)\s*\}\}")

WORKFLOW_SUFFIXES = (".yml", ".yaml")


def is_workflow_file(filename: str) -> bool:
    return filename.endswith(WORKFLOW_SUFFIXES)


def scan_references(files: Mapping[str, Union[str, bytes]]) -> Dict[str, Set[str]]:
    """
    Map each referenced secret name to the files that reference it.

    Args:
        files: Workflow file name -> file content (text or raw bytes)

    Returns:
        Canonical secret name -> set of file names. Files without references contribute nothing.
    """
    files_by_secret: Dict[str, Set[str]] = {}

    for filename, content in files.items():
        if isinstance(content, bytes):
            content = content.decode("utf-8", errors="replace")

        for match in SECRET_REFERENCE_PATTERN.finditer(content):
            files_by_secret.setdefault(canonical_name(match.group(1)), set()).add(filename)

    return files_by_secret
