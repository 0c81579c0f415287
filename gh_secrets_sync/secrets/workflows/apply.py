"""Apply reconciliation plans against the remote API."""
import logging
from typing import Iterable, List, Sequence

import requests

from ..domains.github_client import GitHubAPIError
from ..domains.models import ApplyResult, ReconciliationPlan, SecretOperation

logger = logging.getLogger(__name__)


class UnsafeDeletionError(Exception):
    """Plans would delete secrets that workflows still reference."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f"{count} secret(s) used in workflows are set for deletion. "
            f"Nothing was applied; resolve this and run again."
        )


def count_unsafe_deletions(plans: Iterable[ReconciliationPlan]) -> int:
    return sum(plan.unsafe_deletion_count for plan in plans)


def _flatten(plan: ReconciliationPlan) -> List[ReconciliationPlan]:
    flat = [plan]
    for env_plan in plan.environments.values():
        flat.extend(_flatten(env_plan))
    return flat


def ordered_for_apply(plans: Sequence[ReconciliationPlan]) -> List[ReconciliationPlan]:
    """Organization plans first, then repositories each followed by their environments."""
    orgs = [plan for plan in plans if plan.target.is_organization]
    repos = [plan for plan in plans if not plan.target.is_organization]
    ordered: List[ReconciliationPlan] = []
    for plan in orgs + repos:
        ordered.extend(_flatten(plan))
    return ordered


def _apply_operation(plan: ReconciliationPlan, operation: SecretOperation, api) -> ApplyResult:
    target = plan.target
    try:
        if operation.is_delete:
            api.delete_secret(target, operation.name)
        else:
            api.put_secret(
                target,
                operation.name,
                plan.key_id,
                operation.encrypted_value,
                visibility=operation.visibility,
                selected_repository_ids=operation.selected_repository_ids,
            )
    except (GitHubAPIError, requests.RequestException) as e:
        logger.error(f"Error applying {operation.action.value} of {target.label}/{operation.name}: {e}")
        return ApplyResult(target.label, operation.action, operation.name, error=str(e))

    logger.info(f"Applied {operation.action.value} of {target.label}/{operation.name}")
    return ApplyResult(target.label, operation.action, operation.name)


def apply_plans(plans: Sequence[ReconciliationPlan], api) -> List[ApplyResult]:
    """
    Issue every planned operation, best effort.

    Writes go before deletes within each plan. A failed call is recorded and the
    remaining operations are still attempted.

    Raises:
        UnsafeDeletionError: Before any call, if any plan deletes a secret in use
    """
    unsafe = count_unsafe_deletions(plans)
    if unsafe:
        raise UnsafeDeletionError(unsafe)

    results: List[ApplyResult] = []
    for plan in ordered_for_apply(plans):
        for operation in plan.writes + plan.deletes:
            results.append(_apply_operation(plan, operation, api))
    return results
