"""Turn declared value sources into plaintext values."""
import logging
import os
from typing import Callable, Mapping, Optional

from .models import SecretValueError, SecretValueSpec

logger = logging.getLogger(__name__)

GCPLookup = Callable[[str], Optional[str]]


class ValueRealizer:
    """Realizes secret values from literals, environment variables or GCP Secret Manager.

    The environment and the GCP lookup are injected so callers (and tests) control
    exactly what is visible.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None, gcp_lookup: Optional[GCPLookup] = None):
        self.env = os.environ if env is None else env
        self.gcp_lookup = gcp_lookup

    def realize(self, spec: SecretValueSpec) -> str:
        """
        Resolve the plaintext value of a secret.

        Raises:
            SecretValueError: If the value source is malformed or yields no value
        """
        source = spec.source

        if source == "value":
            return spec.value

        if source == "fromEnv":
            value = self.env.get(spec.from_env)
            if value is None:
                raise SecretValueError(
                    f"Environment variable '{spec.from_env}' for secret '{spec.name}' is not set"
                )
            return value

        if self.gcp_lookup is None:
            raise SecretValueError(
                f"Secret '{spec.name}' reads from GCP Secret Manager but no GCP lookup is configured"
            )
        value = self.gcp_lookup(spec.from_gcp)
        if value is None:
            raise SecretValueError(
                f"GCP secret '{spec.from_gcp}' for secret '{spec.name}' could not be fetched"
            )
        logger.debug(f"Realized '{spec.name}' from GCP secret '{spec.from_gcp}'")
        return value
