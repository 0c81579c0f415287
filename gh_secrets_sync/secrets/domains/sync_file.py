"""Parse YAML sync files into reconciliation targets.

File layout::

    vars: ...                  # free-form, for YAML anchors only
    repos:
      - owner: acme
        name: api
        deleteUnspecified: true
        secrets:
          PLAIN: some value
          FROM_ENV: {fromEnv: ENV_VAR}
          FROM_GCP: {fromGcp: gcp-secret-name}
        environments:
          production:
            deleteUnspecified: false
            secrets: {...}
    orgs:
      - name: acme
        secrets:
          SHARED:
            fromEnv: SHARED
            visibility: selected     # all | public | private | selected
            repos: [api, web]

Secret names are case-insensitive; they are stored upper-cased and two
names differing only in case are rejected.
"""
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List

import yaml

from .models import OrgSecretSpec, SecretValueSpec, SyncTarget, Visibility, VisibilitySpec, canonical_name

logger = logging.getLogger(__name__)

SECRET_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
RESERVED_PREFIX = "GITHUB_"

TOP_LEVEL_KEYS = {"vars", "repos", "orgs"}
REPO_KEYS = {"owner", "name", "deleteUnspecified", "secrets", "environments"}
ENVIRONMENT_KEYS = {"deleteUnspecified", "secrets"}
ORG_KEYS = {"name", "deleteUnspecified", "secrets"}
VALUE_KEYS = {"value", "fromEnv", "fromGcp"}
ORG_SECRET_KEYS = VALUE_KEYS | {"visibility", "repos"}

VISIBILITY_ALIASES = {
    "all": Visibility.ALL,
    "public": Visibility.ALL,
    "private": Visibility.PRIVATE,
    "selected": Visibility.SELECTED,
}


class SyncFileError(Exception):
    """A sync file is unreadable or does not match the expected layout."""
    pass


def is_valid_secret_name(name: Any) -> bool:
    """GitHub secret names: letters, digits and underscores, no leading digit, no GITHUB_ prefix."""
    return (
        isinstance(name, str)
        and bool(SECRET_NAME_PATTERN.match(name))
        and not name.upper().startswith(RESERVED_PREFIX)
    )


class _Parser:
    def __init__(self, source: str):
        self.source = source

    def fail(self, where: str, message: str) -> SyncFileError:
        return SyncFileError(f"{self.source}: {where}: {message}")

    def mapping(self, value: Any, where: str, allowed: Iterable[str]) -> Dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise self.fail(where, "expected a mapping")
        unknown = set(value) - set(allowed)
        if unknown:
            raise self.fail(where, f"unknown key(s): {', '.join(sorted(map(str, unknown)))}")
        return value

    def flag(self, value: Any, where: str) -> bool:
        if value is None:
            return False
        if not isinstance(value, bool):
            raise self.fail(where, "'deleteUnspecified' must be true or false")
        return value

    def text(self, value: Any, where: str, key: str) -> str:
        if not isinstance(value, str) or not value:
            raise self.fail(where, f"'{key}' must be a non-empty string")
        return value

    def secret_name(self, name: Any, where: str) -> str:
        if not is_valid_secret_name(name):
            raise self.fail(
                where,
                f"invalid secret name '{name}' (use letters, digits and underscores, "
                f"not starting with a digit or '{RESERVED_PREFIX}')",
            )
        return canonical_name(name)

    def value_spec(self, name: str, raw: Any, where: str, allowed: Iterable[str] = VALUE_KEYS) -> SecretValueSpec:
        if isinstance(raw, (str, int, float)) and not isinstance(raw, bool):
            return SecretValueSpec(name=name, value=str(raw))

        data = self.mapping(raw, where, allowed)
        sources = [key for key in VALUE_KEYS if key in data]
        if len(sources) != 1:
            raise self.fail(where, "exactly one of 'value', 'fromEnv' or 'fromGcp' is required")

        key = sources[0]
        if key == "value":
            if not isinstance(data[key], (str, int, float)) or isinstance(data[key], bool):
                raise self.fail(where, "'value' must be a scalar")
            return SecretValueSpec(name=name, value=str(data[key]))
        if key == "fromEnv":
            return SecretValueSpec(name=name, from_env=self.text(data[key], where, key))
        return SecretValueSpec(name=name, from_gcp=self.text(data[key], where, key))

    def named_secrets(self, raw: Any, where: str, build: Callable[[str, Any, str], Any]) -> Dict[str, Any]:
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise self.fail(where, "'secrets' must be a mapping")

        result: Dict[str, Any] = {}
        for name, value in raw.items():
            canonical = self.secret_name(name, where)
            if canonical in result:
                raise self.fail(where, f"secret '{name}' is declared twice (names are case-insensitive)")
            result[canonical] = build(canonical, value, f"{where} secret {canonical}")
        return result

    def secrets(self, raw: Any, where: str) -> Dict[str, SecretValueSpec]:
        return self.named_secrets(raw, where, self.value_spec)

    def org_secret(self, name: str, raw: Any, where: str) -> OrgSecretSpec:
        value = self.value_spec(name, raw, where, allowed=ORG_SECRET_KEYS)
        data = raw if isinstance(raw, dict) else {}

        visibility_name = data.get("visibility", "private")
        if visibility_name not in VISIBILITY_ALIASES:
            raise self.fail(
                where, f"invalid visibility '{visibility_name}' (use all, public, private or selected)"
            )
        visibility = VISIBILITY_ALIASES[visibility_name]

        repos = data.get("repos")
        if visibility == Visibility.SELECTED:
            if not isinstance(repos, list) or not all(isinstance(r, str) and r for r in repos):
                raise self.fail(where, "'selected' visibility requires a 'repos' list of repository names")
        elif repos is not None:
            raise self.fail(where, "'repos' is only allowed with 'selected' visibility")

        return OrgSecretSpec(value=value, visibility=VisibilitySpec(visibility, list(repos or [])))

    def repository(self, raw: Any, index: int) -> SyncTarget:
        where = f"repos[{index}]"
        data = self.mapping(raw, where, REPO_KEYS)
        owner = self.text(data.get("owner"), where, "owner")
        name = self.text(data.get("name"), where, "name")
        where = f"repo {owner}/{name}"

        environments_raw = data.get("environments")
        if environments_raw is None:
            environments_raw = {}
        if not isinstance(environments_raw, dict):
            raise self.fail(where, "'environments' must be a mapping")

        environments = []
        for env_name, env_raw in environments_raw.items():
            env_where = f"{where} environment {env_name}"
            env_name = self.text(env_name, env_where, "environment name")
            env_data = self.mapping(env_raw, env_where, ENVIRONMENT_KEYS)
            environments.append(SyncTarget.environment_of(
                owner, name, env_name,
                secrets=self.secrets(env_data.get("secrets"), env_where),
                delete_unspecified=self.flag(env_data.get("deleteUnspecified"), env_where),
            ))

        return SyncTarget.repository(
            owner, name,
            secrets=self.secrets(data.get("secrets"), where),
            delete_unspecified=self.flag(data.get("deleteUnspecified"), where),
            environments=environments,
        )

    def organization(self, raw: Any, index: int) -> SyncTarget:
        where = f"orgs[{index}]"
        data = self.mapping(raw, where, ORG_KEYS)
        name = self.text(data.get("name"), where, "name")
        where = f"org {name}"

        return SyncTarget.organization(
            name,
            secrets=self.named_secrets(data.get("secrets"), where, self.org_secret),
            delete_unspecified=self.flag(data.get("deleteUnspecified"), where),
        )

    def document(self, data: Any) -> List[SyncTarget]:
        data = self.mapping(data, "top level", TOP_LEVEL_KEYS)

        targets = []
        for key, build in (("orgs", self.organization), ("repos", self.repository)):
            entries = data.get(key)
            if entries is None:
                entries = []
            if not isinstance(entries, list):
                raise self.fail("top level", f"'{key}' must be a list")
            targets.extend(build(entry, i) for i, entry in enumerate(entries))
        return targets


def parse_sync_document(text: str, source: str = "<string>") -> List[SyncTarget]:
    """
    Parse sync file content.

    Returns:
        Organization targets first, then repository targets, each in file order

    Raises:
        SyncFileError: On YAML syntax errors or layout violations
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SyncFileError(f"{source}: failed to parse YAML: {e}")
    return _Parser(source).document(data)


def load_sync_file(path) -> List[SyncTarget]:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SyncFileError(f"Failed to read sync file {path}: {e}")

    targets = parse_sync_document(text, source=str(path))
    logger.info(f"Loaded {len(targets)} targets from {path}")
    return targets


def load_sync_files(paths: Iterable) -> List[SyncTarget]:
    """Load several sync files, keeping file order."""
    targets: List[SyncTarget] = []
    for path in paths:
        targets.extend(load_sync_file(path))
    return targets
