"""GitHub Actions secrets REST API client."""
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import requests

from .models import PublicKey, SyncTarget, TargetKind, Visibility
from .workflow_scanner import is_workflow_file

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30
PAGE_SIZE = 100
WORKFLOWS_PATH = ".github/workflows"


class GitHubAPIError(Exception):
    """The API answered with a non-success status."""

    def __init__(self, status: int, message: str, path: str = ""):
        self.status = status
        self.message = message
        self.path = path
        super().__init__(f"GitHub API error {status} for {path}: {message}")


def _secrets_path(target: SyncTarget) -> str:
    if target.kind == TargetKind.ORGANIZATION:
        return f"orgs/{quote(target.name)}/actions/secrets"
    repo = f"repos/{quote(target.owner)}/{quote(target.name)}"
    if target.kind == TargetKind.ENVIRONMENT:
        return f"{repo}/environments/{quote(target.environment, safe='')}/secrets"
    return f"{repo}/actions/secrets"


def _records(response: requests.Response, data: Any, path: str,
             required: Sequence[str]) -> List[Dict[str, Any]]:
    """Check a response body is a list of objects carrying the required fields."""
    if not isinstance(data, list) or not all(
        isinstance(item, dict) and all(key in item for key in required) for item in data
    ):
        raise GitHubAPIError(
            response.status_code,
            f"Unexpected response body, expected objects with: {', '.join(required)}",
            path,
        )
    return data


class GitHubSecretsClient:
    """Thin wrapper around the GitHub REST endpoints used for secret reconciliation.

    Every call is a single bounded request; failures raise GitHubAPIError (or a
    requests exception for transport problems) and are never retried here.
    """

    def __init__(self, token: str, api_url: str = DEFAULT_API_URL, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = session

    @property
    def session(self) -> requests.Session:
        """Lazy-initialize the HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self.token}",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "gh-secrets-sync",
            })
        return self._session

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None,
                 params: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = f"{self.api_url}/{path.lstrip('/')}"
        response = self.session.request(method, url, json=body, params=params, timeout=self.timeout)
        if not 200 <= response.status_code < 300:
            raise GitHubAPIError(response.status_code, response.text[:2000], path)
        return response

    def _paginate(self, path: str, items_key: str, required: Sequence[str]) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            response = self._request("GET", path, params={"per_page": PAGE_SIZE, "page": page})
            data = response.json()
            batch = data.get(items_key) if isinstance(data, dict) else data
            items.extend(_records(response, batch, path, required))
            if len(batch) < PAGE_SIZE:
                return items
            page += 1

    def fetch_secret_names(self, target: SyncTarget) -> List[str]:
        """List the names of secrets currently registered at the target."""
        secrets = self._paginate(_secrets_path(target), "secrets", ("name",))
        names = [secret["name"] for secret in secrets]
        logger.info(f"Found {len(names)} existing secrets for {target.label}")
        return names

    def fetch_public_key(self, target: SyncTarget) -> PublicKey:
        path = f"{_secrets_path(target)}/public-key"
        response = self._request("GET", path)
        (data,) = _records(response, [response.json()], path, ("key_id", "key"))
        return PublicKey(key_id=str(data["key_id"]), key=data["key"])

    def put_secret(self, target: SyncTarget, name: str, key_id: str, encrypted_value: str,
                   visibility: Optional[Visibility] = None,
                   selected_repository_ids: Optional[List[int]] = None) -> None:
        """Create or update one secret with an already sealed value."""
        body: Dict[str, Any] = {"encrypted_value": encrypted_value, "key_id": key_id}
        if target.kind == TargetKind.ORGANIZATION:
            body["visibility"] = (visibility or Visibility.PRIVATE).value
            if selected_repository_ids is not None:
                body["selected_repository_ids"] = selected_repository_ids
        self._request("PUT", f"{_secrets_path(target)}/{quote(name)}", body=body)

    def delete_secret(self, target: SyncTarget, name: str) -> None:
        self._request("DELETE", f"{_secrets_path(target)}/{quote(name)}")

    def list_repository_ids(self, org: str) -> Dict[str, int]:
        """Map every repository name in the organization to its numeric id."""
        repos = self._paginate(f"orgs/{quote(org)}/repos", "repositories", ("name", "id"))
        return {repo["name"]: repo["id"] for repo in repos}

    def fetch_workflow_files(self, owner: str, repo: str) -> Dict[str, bytes]:
        """
        Download every workflow definition of a repository.

        Returns:
            File name -> raw content. A repository without a workflows directory
            yields an empty mapping.
        """
        path = f"repos/{quote(owner)}/{quote(repo)}/contents/{WORKFLOWS_PATH}"
        try:
            response = self._request("GET", path)
        except GitHubAPIError as e:
            if e.status == 404:
                logger.info(f"No workflows directory in {owner}/{repo}")
                return {}
            raise
        # A file at the workflows path comes back as a single object
        items = _records(response, response.json(), path, ("name",))

        files: Dict[str, bytes] = {}
        for item in items:
            if item.get("type", "file") != "file" or not is_workflow_file(item["name"]):
                continue
            response = self.session.get(item["download_url"], timeout=self.timeout)
            if not 200 <= response.status_code < 300:
                raise GitHubAPIError(response.status_code, response.text[:2000], item["download_url"])
            files[item["name"]] = response.content
        return files
