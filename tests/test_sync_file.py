"""Tests for parsing YAML sync files."""
import textwrap

import pytest

from gh_secrets_sync.secrets.domains.models import TargetKind, Visibility
from gh_secrets_sync.secrets.domains.sync_file import (
    SyncFileError,
    is_valid_secret_name,
    load_sync_files,
    parse_sync_document,
)


def parse(text):
    return parse_sync_document(textwrap.dedent(text), source="secrets.yml")


FULL_DOCUMENT = """
vars:
  shared: &shared
    fromEnv: SHARED_TOKEN
repos:
  - owner: acme
    name: api
    deleteUnspecified: true
    secrets:
      LITERAL: plain value
      NUMBER: 42
      FROM_ENV: *shared
      FROM_GCP: {fromGcp: gcp-secret}
    environments:
      production:
        deleteUnspecified: true
        secrets:
          DEPLOY_KEY: {value: abc}
      staging: {}
orgs:
  - name: acme
    secrets:
      EVERYWHERE:
        value: x
        visibility: public
      SOME:
        fromEnv: SOME
        visibility: selected
        repos: [api, web, api]
      DEFAULTED: y
"""


class TestParseDocument:

    def test_full_document(self):
        org, repo = parse(FULL_DOCUMENT)

        assert repo.kind == TargetKind.REPOSITORY
        assert (repo.owner, repo.name, repo.delete_unspecified) == ("acme", "api", True)
        assert repo.secrets["LITERAL"].value == "plain value"
        assert repo.secrets["NUMBER"].value == "42"
        assert repo.secrets["FROM_ENV"].from_env == "SHARED_TOKEN"
        assert repo.secrets["FROM_GCP"].from_gcp == "gcp-secret"

        production, staging = repo.environments
        assert production.label == "acme/api [production]"
        assert production.delete_unspecified is True
        assert production.secrets["DEPLOY_KEY"].value == "abc"
        assert staging.secrets == {}
        assert staging.delete_unspecified is False

        assert org.kind == TargetKind.ORGANIZATION
        assert org.org_secrets["EVERYWHERE"].visibility.visibility == Visibility.ALL
        assert org.org_secrets["SOME"].visibility.visibility == Visibility.SELECTED
        assert org.org_secrets["SOME"].visibility.repositories == ["api", "web", "api"]
        assert org.org_secrets["SOME"].value.from_env == "SOME"
        assert org.org_secrets["DEFAULTED"].visibility.visibility == Visibility.PRIVATE

    def test_empty_document_has_no_targets(self):
        assert parse("") == []
        assert parse("repos: []") == []

    def test_delete_unspecified_defaults_to_false(self):
        (repo,) = parse("""
        repos:
          - owner: acme
            name: api
        """)
        assert repo.delete_unspecified is False
        assert repo.secrets == {}


class TestParseErrors:

    @pytest.mark.parametrize("text,message", [
        ("repos: {}", "'repos' must be a list"),
        ("unknown: 1", "unknown key"),
        ("repos:\n  - name: api", "'owner'"),
        ("repos:\n  - owner: acme\n    name: api\n    extra: 1", "unknown key"),
        ("repos:\n  - owner: acme\n    name: api\n    deleteUnspecified: maybe", "deleteUnspecified"),
        ("repos:\n  - owner: acme\n    name: api\n    secrets:\n      A: {}", "exactly one"),
        ("repos:\n  - owner: acme\n    name: api\n    secrets:\n      A: {value: x, fromEnv: Y}", "exactly one"),
        ("repos:\n  - owner: acme\n    name: api\n    secrets:\n      A: {fromVault: x}", "unknown key"),
        ("repos:\n  - owner: acme\n    name: api\n    secrets:\n      1BAD: x", "invalid secret name"),
        ("orgs:\n  - name: acme\n    secrets:\n      A: {value: x, visibility: internal}", "invalid visibility"),
        ("orgs:\n  - name: acme\n    secrets:\n      A: {value: x, visibility: selected}", "'repos' list"),
        ("orgs:\n  - name: acme\n    secrets:\n      A: {value: x, repos: [api]}", "only allowed"),
        ("repos: [", "failed to parse YAML"),
    ])
    def test_invalid_documents(self, text, message):
        with pytest.raises(SyncFileError) as exc_info:
            parse_sync_document(text, source="secrets.yml")
        assert message in str(exc_info.value)
        assert "secrets.yml" in str(exc_info.value)

    def test_visibility_is_rejected_on_repository_secrets(self):
        with pytest.raises(SyncFileError):
            parse("""
            repos:
              - owner: acme
                name: api
                secrets:
                  A: {value: x, visibility: all}
            """)


@pytest.mark.parametrize("name,valid", [
    ("API_TOKEN", True),
    ("_private", True),
    ("token2", True),
    ("2TOKEN", False),
    ("WITH-DASH", False),
    ("with.dot", False),
    ("GITHUB_TOKEN", False),
    ("github_anything", False),
    ("", False),
    (12, False),
])
def test_secret_name_rules(name, valid):
    assert is_valid_secret_name(name) is valid


def test_load_sync_files_keeps_file_order(tmp_path):
    first = tmp_path / "one.yml"
    second = tmp_path / "two.yml"
    first.write_text("repos:\n  - owner: acme\n    name: first\n")
    second.write_text("repos:\n  - owner: acme\n    name: second\n")

    targets = load_sync_files([first, second])
    assert [t.name for t in targets] == ["first", "second"]


def test_load_missing_file(tmp_path):
    with pytest.raises(SyncFileError) as exc_info:
        load_sync_files([tmp_path / "missing.yml"])
    assert "Failed to read" in str(exc_info.value)


class TestSecretNameCase:

    def test_names_are_stored_upper_case(self):
        org, repo = parse("""
        repos:
          - owner: acme
            name: api
            secrets:
              db_pass: {fromEnv: DB_PASS}
        orgs:
          - name: acme
            secrets:
              shared: {value: x, visibility: all}
        """)
        assert list(repo.secrets) == ["DB_PASS"]
        assert repo.secrets["DB_PASS"].name == "DB_PASS"
        assert list(org.org_secrets) == ["SHARED"]
        assert org.org_secrets["SHARED"].value.name == "SHARED"

    @pytest.mark.parametrize("text", [
        "repos:\n  - owner: acme\n    name: api\n    secrets:\n      db_pass: a\n      DB_PASS: b",
        "orgs:\n  - name: acme\n    secrets:\n      Token: a\n      TOKEN: b",
    ])
    def test_names_differing_only_in_case_are_rejected(self, text):
        with pytest.raises(SyncFileError) as exc_info:
            parse_sync_document(text, source="secrets.yml")
        assert "declared twice" in str(exc_info.value)
