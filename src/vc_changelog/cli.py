"""
Command line interface for the vc_changelog tool.

This module defines the ``main`` function which is used as the entry
point when executing the ``vcchangelog`` command. It locates the
repository, loads the configuration, collects commits either from Git
or from a JSON input file, and writes the rendered changelog. Status
messages go to stderr so the changelog can be piped from stdout.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from vc_changelog import __version__
from vc_changelog.changelog import ReleaseInput, count_commits, generate_changelog, load_release_inputs
from vc_changelog.config.loader import load_config
from vc_changelog.errors import ConfigError, InputError
from vc_changelog.vcs.git_client import GitClient, GitError

# Create a module-level logger. Attach a null handler and disable
# propagation to avoid logging errors when the root logger's stream is
# closed (such as during unit tests). When logging is configured by
# the CLI, root handlers will be added and messages will propagate.
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NO_REPO = 3
EXIT_NO_COMMITS = 4
EXIT_CONFIG_ERROR = 5
EXIT_VCS_FAILURE = 6
EXIT_INPUT_ERROR = 7


# ---------------------------------------------------------------------------
# Status display utilities
# ---------------------------------------------------------------------------

def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}", err=True)


def print_success(message: str, indent: int = 0):
    """Print a success message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✓ {message}", err=True)


def print_warning(message: str, indent: int = 0):
    """Print a warning message."""
    prefix = "  " * indent
    click.echo(f"{prefix}⚠ {message}", err=True)


def print_error(message: str, indent: int = 0):
    """Print an error message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✗ {message}", err=True)


# ---------------------------------------------------------------------------
# Core functionality
# ---------------------------------------------------------------------------

def collect_from_git(repo_root: Path, tag: Optional[str]) -> List[ReleaseInput]:
    """Collect tag-delimited releases from the repository at ``repo_root``."""
    client = GitClient(repo_root)
    releases = client.collect_releases(unreleased_version=tag)
    print_success(f"Collected {len(releases)} release{'s' if len(releases) != 1 else ''} from Git")
    for release in releases:
        print_info(f"{release.version or 'unreleased'}: {len(release.commits)} commit(s)", indent=1)
    return releases


@click.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Path to the JSON configuration file.")
@click.option("--input", "input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Read commit records from a JSON file instead of Git.")
@click.option("--repo", "repo_path", type=click.Path(file_okay=False, path_type=Path),
              help="Repository directory (defaults to the current directory).")
@click.option("--tag", help="Version name for commits that are not tagged yet.")
@click.option("--repo-url", help="Repository URL used for release and pull request links.")
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Write the changelog to this file instead of stdout.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="vcchangelog")
def main(
    config_path: Optional[Path],
    input_path: Optional[Path],
    repo_path: Optional[Path],
    tag: Optional[str],
    repo_url: Optional[str],
    output_path: Optional[Path],
    verbose: bool,
) -> None:
    """Generate a changelog from conventional commits."""
    # Use force=True so handlers are reconfigured on every invocation
    # (important for tests).
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        force=True,
    )

    try:
        start = repo_path or Path.cwd()
        repo_root = GitClient.find_repo_root(start)
        if repo_root is None and input_path is None:
            print_error(f"No Git repository found at or above: {start}")
            raise click.exceptions.Exit(EXIT_NO_REPO)
        logger.debug("Repository root: %s", repo_root)

        overrides: Dict[str, Any] = {}
        if repo_url:
            overrides["extra"] = {"repo_url": repo_url.rstrip("/")}

        try:
            config = load_config(config_path, repo_root=repo_root or start, overrides=overrides)
        except ConfigError as exc:
            print_error(f"Configuration error: {exc}")
            raise click.exceptions.Exit(EXIT_CONFIG_ERROR)
        if config.source is not None:
            print_success(f"Loaded configuration from {config.source}")
        else:
            print_info("Using built-in configuration")

        if input_path is not None:
            try:
                releases = load_release_inputs(input_path, version=tag)
            except InputError as exc:
                print_error(f"Input error: {exc}")
                raise click.exceptions.Exit(EXIT_INPUT_ERROR)
            print_success(f"Read {len(releases)} release{'s' if len(releases) != 1 else ''} from {input_path}")
        else:
            try:
                releases = collect_from_git(repo_root, tag)
            except GitError as exc:
                print_error(f"Git error: {exc}")
                raise click.exceptions.Exit(EXIT_VCS_FAILURE)

        if count_commits(releases) == 0:
            print_warning("No commits found; nothing to write.")
            raise click.exceptions.Exit(EXIT_NO_COMMITS)

        text = generate_changelog(releases, config)

        if output_path is not None:
            output_path.write_text(text + "\n", encoding="utf-8")
            print_success(f"Changelog written to {output_path}")
        else:
            click.echo(text)

        raise click.exceptions.Exit(EXIT_SUCCESS)

    except click.exceptions.Exit:
        # Click uses its own Exit exception; re-raise to let Click handle it
        raise
    except Exception as exc:
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
