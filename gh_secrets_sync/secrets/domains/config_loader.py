"""Configuration loader for gh-secrets-sync."""
import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .preferences import get_preference

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_ENV = "GITHUB_API_TOKEN"

DEFAULT_CONFIG: Dict[str, Any] = {
    "github": {
        "api_url": "https://api.github.com",
        "token_env": DEFAULT_TOKEN_ENV,
        "timeout": 30,
    },
    "gcp": {
        "project_id": None,
    },
}


class ConfigError(Exception):
    """Configuration error exception."""
    pass


def default_config_path() -> Path:
    return Path.home() / ".config" / "gh-secrets-sync" / "config.yml"


def _get_config_path() -> Optional[str]:
    """
    Locate the config file.

    Priority order:
    1. User preference `config_path` (set with `secrets-sync config set-path`)
    2. ~/.config/gh-secrets-sync/config.yml

    Returns:
        Absolute path to the config file, or None when no file exists
        (built-in defaults apply)
    """
    config_path_pref = get_preference("config_path")
    if config_path_pref:
        config_path = Path(config_path_pref)
        if config_path.exists():
            logger.info(f"Using config from preference: {config_path}")
            return str(config_path)
        logger.warning(f"Config path from preference doesn't exist: {config_path}")

    default_config = default_config_path()
    if default_config.exists():
        logger.info(f"Using default config location: {default_config}")
        return str(default_config)

    logger.debug("No config file found, using built-in defaults")
    return None


def _validate(config: Dict[str, Any], config_path: str) -> None:
    github = config["github"]

    if not isinstance(github.get("api_url"), str) or not github["api_url"].startswith(("http://", "https://")):
        raise ConfigError(f"'github.api_url' in {config_path} must be an http(s) URL")

    if not isinstance(github.get("token_env"), str) or not github["token_env"]:
        raise ConfigError(f"'github.token_env' in {config_path} must name an environment variable")

    timeout = github.get("timeout")
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"'github.timeout' in {config_path} must be a positive number of seconds")

    project_id = config["gcp"].get("project_id")
    if project_id is not None and not isinstance(project_id, str):
        raise ConfigError(f"'gcp.project_id' in {config_path} must be a string")


def load_config() -> Dict[str, Any]:
    """
    Load configuration, layering the YAML file over the built-in defaults.

    Returns:
        Dict with keys:
        - github: api_url, token_env, timeout
        - gcp: project_id

    Raises:
        ConfigError: If the file cannot be read or parsed, or holds invalid values
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    config_path = _get_config_path()
    if config_path is None:
        return config

    try:
        with open(config_path, "r") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}")

    if loaded is None:
        raise ConfigError(f"Config file at {config_path} is empty")
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file at {config_path} must contain a mapping")

    unknown = set(loaded) - set(DEFAULT_CONFIG)
    if unknown:
        raise ConfigError(
            f"Unknown section(s) in config at {config_path}: {', '.join(sorted(unknown))}\n"
            f"Supported sections: github, gcp"
        )

    for section, values in loaded.items():
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"Section '{section}' in config at {config_path} must be a mapping")
        config[section].update(values)

    _validate(config, config_path)

    logger.info(f"Configuration loaded successfully from {config_path}")
    logger.debug(f"Using GitHub API at: {config['github']['api_url']}")
    return config


def get_token(config: Dict[str, Any], env: Optional[Mapping[str, str]] = None) -> str:
    """
    Read the GitHub token from the environment variable named in the config.

    Raises:
        ConfigError: If the variable is unset or empty
    """
    env = os.environ if env is None else env
    token_env = config["github"]["token_env"]
    token = env.get(token_env)
    if not token:
        raise ConfigError(
            f"GitHub token not found. Please set the {token_env} environment variable\n"
            f"to a token allowed to manage Actions secrets."
        )
    return token
