"""CLI entrypoint for gh-secrets-sync."""
import sys
import argparse
import logging
from pathlib import Path

from .validators import validate_sync_files

VERSION = "0.1.0"
DEFAULT_SYNC_FILE = "secrets.yml"

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr
    )


def _uses_gcp(targets) -> bool:
    for target in targets:
        specs = list(target.value_specs().values())
        for env_target in target.environments:
            specs.extend(env_target.value_specs().values())
        if any(spec.from_gcp is not None for spec in specs):
            return True
    return False


def cmd_version(args):
    """Show version information."""
    print(f"gh-secrets-sync {VERSION}")


def cmd_sync(args):
    """Reconcile declared secrets with GitHub."""
    from rich.console import Console

    from gh_secrets_sync.secrets.domains.config_loader import get_token, load_config
    from gh_secrets_sync.secrets.domains.github_client import GitHubSecretsClient
    from gh_secrets_sync.secrets.domains.sync_file import SyncFileError, load_sync_files
    from gh_secrets_sync.secrets.domains.values import ValueRealizer
    from gh_secrets_sync.secrets.workflows.sync_operations import run_sync
    from .report import render_sync_result

    files = args.files or [DEFAULT_SYNC_FILE]
    validate_sync_files(files)

    try:
        targets = load_sync_files(files)
    except SyncFileError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    config = load_config()
    client = GitHubSecretsClient(
        get_token(config),
        api_url=config["github"]["api_url"],
        timeout=config["github"]["timeout"],
    )

    gcp_lookup = None
    if _uses_gcp(targets):
        from gh_secrets_sync.secrets.domains.gcp_client import GCPSecretClient
        gcp_lookup = GCPSecretClient(config)

    result = run_sync(targets, client, ValueRealizer(gcp_lookup=gcp_lookup), dry_run=args.dry)
    render_sync_result(result, Console(soft_wrap=True))
    sys.exit(0 if result.ok else 1)


def cmd_config_set_path(args):
    """Set config file path preference."""
    from gh_secrets_sync.secrets.domains.preferences import set_preference

    config_path = Path(args.path).resolve()

    if not config_path.is_file():
        print(f"Error: Config file does not exist: {config_path}", file=sys.stderr)
        sys.exit(1)

    set_preference("config_path", str(config_path))
    print(f"Config path set to: {config_path}")


def cmd_config_show(args):
    """Show current config file path and effective settings."""
    from gh_secrets_sync.secrets.domains.config_loader import default_config_path, load_config
    from gh_secrets_sync.secrets.domains.preferences import get_preference

    config_path_pref = get_preference("config_path")
    if config_path_pref and Path(config_path_pref).exists():
        print(f"Config path: {config_path_pref}")
        print("Source: preference")
    elif config_path_pref:
        print(f"Config path (from preference, but file not found): {config_path_pref}")
        print("Source: preference")
    else:
        default_config = default_config_path()
        print(f"Config path: {default_config}")
        print("Source: default" if default_config.exists() else "Source: built-in defaults (file not found)")

    config = load_config()
    print(f"GitHub API: {config['github']['api_url']}")
    print(f"Token variable: {config['github']['token_env']}")


def cmd_config_clear(args):
    """Clear config path preference."""
    from gh_secrets_sync.secrets.domains.config_loader import default_config_path
    from gh_secrets_sync.secrets.domains.preferences import clear_preference

    clear_preference("config_path")
    print(f"Config path preference cleared. Will use default: {default_config_path()}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secrets-sync",
        description="Sync GitHub Actions secrets for repositories, environments and organizations from YAML files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (API failure, skipped secret, blocked deletion, etc.)
  2 - Usage error (invalid arguments, missing or malformed sync file)

Environment variables:
  GITHUB_API_TOKEN - GitHub token (variable name configurable as github.token_env)
  GCP_PROJECT - GCP project for fromGcp secrets (overrides config file)

Configuration:
  Default location: ~/.config/gh-secrets-sync/config.yml
  Custom path: Set with 'secrets-sync config set-path <path>'
        """
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "version",
        help="Show version information"
    )

    sync_parser = subparsers.add_parser(
        "sync",
        help="Reconcile secrets with GitHub",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Compare the secrets declared in the sync file(s) with the secrets registered
on GitHub, print the plan, and apply it.

Secrets still referenced by a workflow are never deleted: if any plan would
do so, nothing at all is applied.
        """
    )
    sync_parser.add_argument(
        "--file",
        dest="files",
        action="append",
        metavar="PATH",
        help=f"Sync file to read (repeatable, default: {DEFAULT_SYNC_FILE})"
    )
    sync_parser.add_argument(
        "--dry",
        action="store_true",
        help="Show the plan without changing anything"
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    set_path_parser = config_subparsers.add_parser(
        "set-path",
        help="Set config file path"
    )
    set_path_parser.add_argument("path", help="Path to config file")
    config_subparsers.add_parser("show", help="Show current config path and settings")
    config_subparsers.add_parser("clear", help="Clear config path preference")

    return parser


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors
        2 - Usage errors
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "sync":
            cmd_sync(args)
        elif args.command == "config":
            if args.config_command == "set-path":
                cmd_config_set_path(args)
            elif args.config_command == "show":
                cmd_config_show(args)
            elif args.config_command == "clear":
                cmd_config_clear(args)
            else:
                print("Error: choose a config command: set-path, show, clear", file=sys.stderr)
                sys.exit(2)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
