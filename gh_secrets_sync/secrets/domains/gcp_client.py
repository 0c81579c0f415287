"""GCP Secret Manager as a source of secret values."""
import logging
import os
from typing import Any, Dict, Optional

from google.cloud import secretmanager

logger = logging.getLogger(__name__)


class GCPSecretClient:
    """Wrapper around GCP Secret Manager client.

    Values are cached per process, so a GCP secret shared by several
    targets is fetched once per run.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._client = None
        self._cache: Dict[str, str] = {}

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def get_project_id(self) -> Optional[str]:
        """
        Get GCP project ID.

        Priority order:
        1. GCP_PROJECT environment variable (allows override)
        2. `gcp.project_id` from the config file

        Returns:
            Project ID string, or None if not configured
        """
        gcp_project_env = os.getenv("GCP_PROJECT")
        if gcp_project_env:
            logger.debug(f"Using GCP_PROJECT from environment: {gcp_project_env}")
            return gcp_project_env

        project_id = self.config.get("gcp", {}).get("project_id")
        if project_id:
            logger.debug(f"Using project_id from config: {project_id}")
            return project_id

        logger.error("GCP project ID not found. Set GCP_PROJECT or gcp.project_id in the config file")
        return None

    def fetch_secret(self, secret_name: str, project_id: Optional[str] = None) -> Optional[str]:
        """
        Fetch the latest version of a secret.

        Args:
            secret_name: Name of the secret in Secret Manager
            project_id: GCP project ID (auto-detected if not provided)

        Returns:
            Secret value or None if the fetch fails
        """
        project_id = project_id or self.get_project_id()
        if not project_id:
            return None

        cache_key = f"{project_id}:{secret_name}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        try:
            name = f"projects/{project_id}/secrets/{secret_name}/versions/latest"
            response = self.client.access_secret_version(request={"name": name})
            value = response.payload.data.decode("UTF-8")
        except Exception as e:
            logger.warning(f"GCP fetch failed for {secret_name}: {e}")
            return None

        self._cache[cache_key] = value
        return value

    def __call__(self, secret_name: str) -> Optional[str]:
        return self.fetch_secret(secret_name)
