"""Console rendering of sync plans and results."""
from typing import Iterable, List, Optional

from rich.console import Console
from rich.markup import escape

from gh_secrets_sync.secrets.domains.models import (
    ApplyResult,
    ChangeAction,
    PlanIssue,
    ReconciliationPlan,
    canonical_name,
)
from gh_secrets_sync.secrets.workflows.sync_operations import SyncResult

ACTION_STYLES = {
    ChangeAction.CREATE: ("created", "green"),
    ChangeAction.UPDATE: ("updated", "blue"),
    ChangeAction.DELETE: ("deleted", "red"),
}


def _operation_lines(plan: ReconciliationPlan, indent: str) -> List[str]:
    lines = []
    for operation in plan.writes + plan.deletes:
        verb, style = ACTION_STYLES[operation.action]
        line = f"{indent}[{style}]{verb}\t{escape(operation.name)}[/{style}]"
        used_in = plan.used_secrets.get(canonical_name(operation.name))
        if operation.is_delete and used_in:
            files = ", ".join(f"'{escape(f)}'" for f in sorted(used_in))
            line += f" [bold reverse red](used in {files})[/bold reverse red]"
        elif operation.selected_repository_ids is not None:
            line += f" [dim]({len(operation.selected_repository_ids)} selected repositories)[/dim]"
        elif operation.visibility is not None:
            line += f" [dim]({operation.visibility.value})[/dim]"
        lines.append(line)
    return lines


def render_plan(plan: ReconciliationPlan, console: Console) -> None:
    console.print(f"[bold]{escape(plan.target.label)}[/bold]")

    lines = _operation_lines(plan, "\t")
    for env_name, env_plan in plan.environments.items():
        lines.append(f"\t[bold]environment {escape(env_name)}[/bold]")
        lines.extend(_operation_lines(env_plan, "\t\t"))

    if not plan.operations and not any(env.operations for env in plan.environments.values()):
        lines.append("\t[dim]no changes[/dim]")

    for name in plan.missing_secrets:
        lines.append(f"\t[yellow]missing\t{escape(name)}[/yellow]")

    for line in lines:
        console.print(line, highlight=False)
    console.print()


def render_issues(issues: Iterable[PlanIssue], console: Console) -> None:
    for issue in issues:
        where = issue.target if issue.secret is None else f"{issue.target}/{issue.secret}"
        console.print(f"[red]error[/red]\t{escape(where)}: {escape(issue.error)}", highlight=False)


def render_apply_results(results: Iterable[ApplyResult], console: Console) -> None:
    results = list(results)
    failed = [r for r in results if not r.ok]
    for result in failed:
        console.print(
            f"[red]failed[/red]\t{result.action.value} {escape(result.target)}/{escape(result.secret)}: "
            f"{escape(result.error)}",
            highlight=False,
        )
    console.print(f"Applied {len(results) - len(failed)} of {len(results)} operations.")


def render_sync_result(result: SyncResult, console: Optional[Console] = None) -> None:
    """Print the full report of a sync run."""
    console = console or Console(soft_wrap=True)

    if result.dry_run:
        console.print("\n[bold red]***    Dry run    ***[/bold red]\n")

    for plan in result.plans:
        render_plan(plan, console)

    render_issues(result.issues, console)

    if result.unsafe_deletion_count:
        console.print(
            "[red]Some secrets that are used in workflows are set for deletion. "
            "Exiting without doing anything. Please review above output, resolve this and run again.[/red]"
        )

    if result.dry_run:
        console.print("[red]Not applying anything, since this is a dry run.[/red]")
    elif not result.blocked:
        render_apply_results(result.applied, console)
