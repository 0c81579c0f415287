"""Classify desired secrets against the remote inventory."""
from typing import Iterable, List

from .models import ChangeAction, SecretChange, canonical_name


def diff_secrets(desired: Iterable[str], observed: Iterable[str], delete_unspecified: bool) -> List[SecretChange]:
    """
    Compute the create/update/delete changes for one target.

    Names are compared case-insensitively. Creates and updates carry the
    canonical (upper-case) name; deletes carry the name as the remote lists it.

    Args:
        desired: Declared secret names, in declaration order
        observed: Secret names currently registered remotely
        delete_unspecified: Whether observed secrets that are not declared get deleted

    Returns:
        Creates and updates in declaration order, followed by deletes sorted by name.
        Delete changes only appear when delete_unspecified is True.
    """
    # Snapshot of the remote inventory, taken before any classification
    existing = {canonical_name(name): name for name in observed}
    desired_names = list(dict.fromkeys(canonical_name(name) for name in desired))

    changes = [
        SecretChange(ChangeAction.UPDATE if name in existing else ChangeAction.CREATE, name)
        for name in desired_names
    ]

    if delete_unspecified:
        unspecified = set(existing).difference(desired_names)
        changes.extend(SecretChange(ChangeAction.DELETE, existing[name]) for name in sorted(unspecified))

    return changes
