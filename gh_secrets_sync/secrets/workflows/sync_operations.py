"""Workflow for a full sync run: plan every target, gate, then apply."""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from ..domains.models import ApplyResult, PlanIssue, ReconciliationPlan, SyncTarget
from ..domains.values import ValueRealizer
from .apply import UnsafeDeletionError, apply_plans, count_unsafe_deletions
from .plan_assembler import build_plans

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Everything a sync run produced, for reporting and exit status."""
    plans: List[ReconciliationPlan] = field(default_factory=list)
    target_issues: List[PlanIssue] = field(default_factory=list)
    applied: List[ApplyResult] = field(default_factory=list)
    dry_run: bool = False
    blocked: bool = False

    @property
    def unsafe_deletion_count(self) -> int:
        return count_unsafe_deletions(self.plans)

    @property
    def issues(self) -> List[PlanIssue]:
        issues = list(self.target_issues)
        for plan in self.plans:
            issues.extend(plan.all_issues())
        return issues

    @property
    def failed(self) -> List[ApplyResult]:
        return [result for result in self.applied if not result.ok]

    @property
    def ok(self) -> bool:
        return not (self.blocked or self.issues or self.failed)


def run_sync(targets: Iterable[SyncTarget], api, realizer: ValueRealizer, dry_run: bool = False) -> SyncResult:
    """
    Reconcile every target.

    Args:
        targets: Targets in input order
        api: Remote secrets API client
        realizer: Resolves declared value sources
        dry_run: Plan only, never mutate

    Returns:
        SyncResult. When any plan would delete a secret still referenced by a
        workflow, the run is blocked and nothing is applied for any target.
    """
    plans, target_issues = build_plans(targets, api, realizer)
    result = SyncResult(plans=plans, target_issues=target_issues, dry_run=dry_run)

    if dry_run:
        # Reported the same way a real run would refuse
        result.blocked = result.unsafe_deletion_count > 0
        logger.info("Dry run, not applying anything")
        return result

    try:
        result.applied = apply_plans(plans, api)
    except UnsafeDeletionError as e:
        logger.error(str(e))
        result.blocked = True
        return result

    if result.failed:
        logger.warning(f"{len(result.failed)} of {len(result.applied)} operations failed")
    return result
