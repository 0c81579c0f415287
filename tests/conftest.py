"""Shared fixtures: an in-memory GitHub secrets API and a synthetic keypair."""
import base64

import pytest
from nacl.public import PrivateKey, SealedBox

from gh_secrets_sync.secrets.domains.github_client import GitHubAPIError
from gh_secrets_sync.secrets.domains.models import PublicKey
from gh_secrets_sync.secrets.domains.values import ValueRealizer


class FakeSecretsAPI:
    """Stands in for GitHubSecretsClient, keyed by target label."""

    def __init__(self):
        self.private_key = PrivateKey.generate()
        self.public_key = PublicKey(
            key_id="key-1",
            key=base64.b64encode(bytes(self.private_key.public_key)).decode("ascii"),
        )
        self.secrets = {}
        self.workflows = {}
        self.repo_ids = {}
        self.bad_keys = {}
        self.fail_fetch = set()
        self.fail_writes = set()
        self.mutations = []
        self.repo_id_requests = []
        self.workflow_requests = []

    def decrypt(self, encrypted_value: str) -> str:
        return SealedBox(self.private_key).decrypt(base64.b64decode(encrypted_value)).decode("utf-8")

    def fetch_secret_names(self, target):
        if target.label in self.fail_fetch:
            raise GitHubAPIError(500, "boom", target.label)
        return sorted(self.secrets.get(target.label, set()))

    def fetch_public_key(self, target):
        if target.label in self.bad_keys:
            return PublicKey(key_id="bad", key=self.bad_keys[target.label])
        return self.public_key

    def put_secret(self, target, name, key_id, encrypted_value, visibility=None, selected_repository_ids=None):
        self.mutations.append(("put", target.label, name, key_id, encrypted_value, visibility, selected_repository_ids))
        if (target.label, name) in self.fail_writes:
            raise GitHubAPIError(422, "rejected", f"{target.label}/{name}")
        self.secrets.setdefault(target.label, set()).add(name)

    def delete_secret(self, target, name):
        self.mutations.append(("delete", target.label, name))
        if (target.label, name) in self.fail_writes:
            raise GitHubAPIError(404, "not found", f"{target.label}/{name}")
        self.secrets.get(target.label, set()).discard(name)

    def list_repository_ids(self, org):
        self.repo_id_requests.append(org)
        return dict(self.repo_ids.get(org, {}))

    def fetch_workflow_files(self, owner, repo):
        self.workflow_requests.append(f"{owner}/{repo}")
        return dict(self.workflows.get(f"{owner}/{repo}", {}))


@pytest.fixture
def api():
    return FakeSecretsAPI()


@pytest.fixture
def realizer():
    return ValueRealizer(env={"DB_PASS": "hunter2", "EMPTY": ""})
