"""Assemble per-target reconciliation plans."""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

import requests

from ..domains.differ import diff_secrets
from ..domains.github_client import GitHubAPIError
from ..domains.models import (
    ChangeAction,
    PlanIssue,
    PublicKey,
    ReconciliationPlan,
    SecretOperation,
    SecretValueError,
    SyncTarget,
    Visibility,
    canonical_name,
)
from ..domains.sealer import InvalidPublicKeyError, SealError, decode_public_key, seal_to_base64
from ..domains.values import ValueRealizer
from ..domains.visibility import VisibilityResolutionError, resolve_visibility
from ..domains.workflow_scanner import scan_references

logger = logging.getLogger(__name__)

# Failures that cost a target its plan but never the whole run
TARGET_ERRORS = (GitHubAPIError, requests.RequestException, InvalidPublicKeyError)


def assemble_plan(
    target: SyncTarget,
    observed: Iterable[str],
    public_key: PublicKey,
    used_secrets: Mapping[str, Set[str]],
    realizer: ValueRealizer,
    repo_ids_by_name: Optional[Mapping[str, int]] = None,
) -> ReconciliationPlan:
    """
    Build the plan for one target from already fetched remote state.

    Args:
        target: Target whose declared secrets are reconciled
        observed: Secret names currently registered at the target
        public_key: The target's sealing key
        used_secrets: Secret name -> workflow files referencing it
        realizer: Resolves declared value sources to plaintext
        repo_ids_by_name: Organization repository ids, needed for `selected` visibility

    Returns:
        The plan. Secrets whose value cannot be realized, sealed or scoped are
        left out and reported in `plan.issues`.

    Raises:
        InvalidPublicKeyError: If the key is malformed; no partial plan is returned
    """
    recipient_key = decode_public_key(public_key.key)
    plan = ReconciliationPlan(
        target=target,
        key_id=public_key.key_id,
    )
    for name, files in used_secrets.items():
        plan.used_secrets.setdefault(canonical_name(name), set()).update(files)

    value_specs = target.value_specs()
    declared = {canonical_name(name): name for name in value_specs}
    for change in diff_secrets(value_specs, observed, target.delete_unspecified):
        if change.action == ChangeAction.DELETE:
            plan.operations.append(SecretOperation(ChangeAction.DELETE, change.name))
            continue

        try:
            operation = SecretOperation(
                change.action,
                change.name,
                encrypted_value=seal_to_base64(recipient_key, realizer.realize(value_specs[declared[change.name]])),
            )
            if target.is_organization:
                scope = target.org_secrets[declared[change.name]].visibility
                operation.visibility = scope.visibility
                operation.selected_repository_ids = resolve_visibility(scope, repo_ids_by_name or {})
        except (SecretValueError, SealError, VisibilityResolutionError) as e:
            logger.warning(f"Skipping secret {target.label}/{change.name}: {e}")
            plan.issues.append(PlanIssue(target.label, change.name, str(e)))
            continue

        plan.operations.append(operation)

    if plan.unsafe_deletions:
        logger.warning(
            f"{target.label}: {len(plan.unsafe_deletions)} secret(s) used in workflows are set for deletion"
        )
    return plan


def _needs_repository_ids(target: SyncTarget) -> bool:
    return any(
        spec.visibility.visibility == Visibility.SELECTED for spec in target.org_secrets.values()
    )


def build_plan(target: SyncTarget, api, realizer: ValueRealizer,
               used_secrets: Optional[Dict[str, Set[str]]] = None) -> ReconciliationPlan:
    """
    Fetch the remote state for one target and assemble its plan.

    Repository targets also scan their workflow files and build a nested plan for
    each declared environment. An environment whose plan cannot be built is
    recorded as an issue on the repository plan.

    Raises:
        GitHubAPIError, requests.RequestException, InvalidPublicKeyError
    """
    logger.info(f"Planning {target.label}")
    observed = api.fetch_secret_names(target)
    public_key = api.fetch_public_key(target)

    repo_ids = None
    if target.is_organization:
        used_secrets = {}
        if _needs_repository_ids(target):
            repo_ids = api.list_repository_ids(target.name)
    elif used_secrets is None:
        used_secrets = scan_references(api.fetch_workflow_files(target.owner, target.name))

    plan = assemble_plan(target, observed, public_key, used_secrets, realizer, repo_ids)

    for env_target in target.environments:
        try:
            plan.environments[env_target.environment] = build_plan(env_target, api, realizer, used_secrets)
        except TARGET_ERRORS as e:
            logger.warning(f"Failed to plan {env_target.label}: {e}")
            plan.issues.append(PlanIssue(env_target.label, None, str(e)))

    return plan


def build_plans(targets: Iterable[SyncTarget], api,
                realizer: ValueRealizer) -> Tuple[List[ReconciliationPlan], List[PlanIssue]]:
    """
    Plan every target in order.

    Returns:
        (plans, target-level issues for targets that produced no plan)
    """
    plans: List[ReconciliationPlan] = []
    issues: List[PlanIssue] = []

    for target in targets:
        try:
            plans.append(build_plan(target, api, realizer))
        except TARGET_ERRORS as e:
            logger.warning(f"Failed to plan {target.label}, skipping it: {e}")
            issues.append(PlanIssue(target.label, None, str(e)))

    return plans, issues
