"""Domain models for secret reconciliation."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

# Provided by the platform to every workflow run, never declared by users.
BUILTIN_SECRETS = frozenset({"GITHUB_TOKEN"})


def canonical_name(name: str) -> str:
    """Secret names are case-insensitive on the platform, which stores them upper-cased."""
    return name.upper()


class SecretValueError(Exception):
    """A secret's value source is malformed or cannot be realized."""
    pass


@dataclass
class SecretValueSpec:
    """Declared source of a secret's value.

    Exactly one of ``value``, ``from_env`` or ``from_gcp`` must be set.
    """
    name: str
    value: Optional[str] = None
    from_env: Optional[str] = None
    from_gcp: Optional[str] = None

    @property
    def source(self) -> str:
        self.validate()
        if self.value is not None:
            return "value"
        if self.from_env is not None:
            return "fromEnv"
        return "fromGcp"

    def validate(self) -> None:
        supplied = [s for s in (self.value, self.from_env, self.from_gcp) if s is not None]
        if len(supplied) != 1:
            raise SecretValueError(
                f"Secret '{self.name}' must declare exactly one value source "
                f"(value, fromEnv or fromGcp), got {len(supplied)}"
            )


class Visibility(str, Enum):
    """Access scope of an organization secret."""
    ALL = "all"
    PRIVATE = "private"
    SELECTED = "selected"


@dataclass
class VisibilitySpec:
    visibility: Visibility = Visibility.PRIVATE
    repositories: List[str] = field(default_factory=list)


@dataclass
class OrgSecretSpec:
    value: SecretValueSpec
    visibility: VisibilitySpec = field(default_factory=VisibilitySpec)


class TargetKind(str, Enum):
    REPOSITORY = "repository"
    ENVIRONMENT = "environment"
    ORGANIZATION = "organization"


@dataclass
class SyncTarget:
    """A reconciliation unit: a repository, a repository environment or an organization.

    For organizations ``name`` is the organization login and ``owner`` is unused.
    Repository targets carry their environments as nested targets.
    """
    kind: TargetKind
    name: str
    owner: Optional[str] = None
    environment: Optional[str] = None
    delete_unspecified: bool = False
    secrets: Dict[str, SecretValueSpec] = field(default_factory=dict)
    org_secrets: Dict[str, OrgSecretSpec] = field(default_factory=dict)
    environments: List["SyncTarget"] = field(default_factory=list)

    @classmethod
    def repository(cls, owner: str, name: str, secrets=None, delete_unspecified: bool = False,
                   environments=None) -> "SyncTarget":
        return cls(
            kind=TargetKind.REPOSITORY,
            owner=owner,
            name=name,
            delete_unspecified=delete_unspecified,
            secrets=dict(secrets or {}),
            environments=list(environments or []),
        )

    @classmethod
    def environment_of(cls, owner: str, name: str, environment: str, secrets=None,
                       delete_unspecified: bool = False) -> "SyncTarget":
        return cls(
            kind=TargetKind.ENVIRONMENT,
            owner=owner,
            name=name,
            environment=environment,
            delete_unspecified=delete_unspecified,
            secrets=dict(secrets or {}),
        )

    @classmethod
    def organization(cls, name: str, secrets=None, delete_unspecified: bool = False) -> "SyncTarget":
        return cls(
            kind=TargetKind.ORGANIZATION,
            name=name,
            delete_unspecified=delete_unspecified,
            org_secrets=dict(secrets or {}),
        )

    @property
    def is_organization(self) -> bool:
        return self.kind == TargetKind.ORGANIZATION

    @property
    def full_repo_name(self) -> Optional[str]:
        if self.is_organization:
            return None
        return f"{self.owner}/{self.name}"

    @property
    def label(self) -> str:
        if self.kind == TargetKind.ORGANIZATION:
            return f"org:{self.name}"
        if self.kind == TargetKind.ENVIRONMENT:
            return f"{self.owner}/{self.name} [{self.environment}]"
        return f"{self.owner}/{self.name}"

    def value_specs(self) -> Dict[str, SecretValueSpec]:
        """Desired secrets as value specs, regardless of target kind."""
        if self.is_organization:
            return {name: spec.value for name, spec in self.org_secrets.items()}
        return dict(self.secrets)


@dataclass
class PublicKey:
    """Recipient key as served by the platform (base64 text)."""
    key_id: str
    key: str


class ChangeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class SecretChange:
    """Classification of one secret, before any value is sealed."""
    action: ChangeAction
    name: str


@dataclass
class SecretOperation:
    action: ChangeAction
    name: str
    encrypted_value: Optional[str] = None
    visibility: Optional[Visibility] = None
    selected_repository_ids: Optional[List[int]] = None

    @property
    def is_delete(self) -> bool:
        return self.action == ChangeAction.DELETE


@dataclass
class PlanIssue:
    """A failure collected while planning; ``secret`` is None for target-level failures."""
    target: str
    secret: Optional[str]
    error: str


@dataclass
class ReconciliationPlan:
    target: SyncTarget
    key_id: Optional[str] = None
    operations: List[SecretOperation] = field(default_factory=list)
    used_secrets: Dict[str, Set[str]] = field(default_factory=dict)
    issues: List[PlanIssue] = field(default_factory=list)
    environments: Dict[str, "ReconciliationPlan"] = field(default_factory=dict)

    @property
    def writes(self) -> List[SecretOperation]:
        return [op for op in self.operations if not op.is_delete]

    @property
    def deletes(self) -> List[SecretOperation]:
        return [op for op in self.operations if op.is_delete]

    @property
    def unsafe_deletions(self) -> List[SecretOperation]:
        """Deletes of secrets that workflows still reference."""
        return [op for op in self.deletes if canonical_name(op.name) in self.used_secrets]

    @property
    def unsafe_deletion_count(self) -> int:
        count = len(self.unsafe_deletions)
        for env_plan in self.environments.values():
            count += env_plan.unsafe_deletion_count
        return count

    @property
    def missing_secrets(self) -> List[str]:
        """Secrets referenced by workflows that this plan (or its environments) does not write."""
        specified = {canonical_name(op.name) for op in self.writes}
        for env_plan in self.environments.values():
            specified.update(canonical_name(op.name) for op in env_plan.writes)
        return sorted(
            name for name in self.used_secrets
            if name not in specified and name not in BUILTIN_SECRETS
        )

    def all_issues(self) -> List[PlanIssue]:
        issues = list(self.issues)
        for env_plan in self.environments.values():
            issues.extend(env_plan.all_issues())
        return issues


@dataclass
class ApplyResult:
    target: str
    action: ChangeAction
    secret: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
