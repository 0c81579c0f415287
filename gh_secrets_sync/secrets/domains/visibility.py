"""Resolve organization secret visibility into repository ids."""
from typing import List, Mapping, Optional, Sequence

from .models import Visibility, VisibilitySpec


class VisibilityResolutionError(Exception):
    """A selected repository does not exist in the organization."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(
            "Selected repositories not found in organization: " + ", ".join(self.missing)
        )


def resolve_repository_ids(selected: Sequence[str], repo_ids_by_name: Mapping[str, int]) -> List[int]:
    """
    Look up each selected repository's id, keeping declaration order and duplicates.

    Raises:
        VisibilityResolutionError: Listing every name that has no id
    """
    missing = [name for name in selected if name not in repo_ids_by_name]
    if missing:
        raise VisibilityResolutionError(missing)
    return [repo_ids_by_name[name] for name in selected]


def resolve_visibility(spec: VisibilitySpec, repo_ids_by_name: Mapping[str, int]) -> Optional[List[int]]:
    """Return the repository id list for `selected` visibility, None otherwise."""
    if spec.visibility != Visibility.SELECTED:
        return None
    return resolve_repository_ids(spec.repositories, repo_ids_by_name)
