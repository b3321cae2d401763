"""
publish.py

Responsibility: Commit a built site to a branch and push it.

The built destination directory becomes its own throwaway git repository;
each publish is a single commit force-pushed to the pages branch, so the
branch never accumulates history from the source repository.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

log = logging.getLogger(__name__)

NOJEKYLL = ".nojekyll"


class PublishError(RuntimeError):
    pass


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> None:
    """
    Run a subprocess command, raising a PublishError on failure.
    """
    log.debug("Running %s", " ".join(cmd))
    try:
        subprocess.run(cmd, cwd=str(cwd), env=env, check=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
    except subprocess.CalledProcessError as e:
        raise PublishError(f"Command failed: {' '.join(cmd)}\n\n{e.stdout}") from e
    except FileNotFoundError as e:
        raise PublishError(f"Command not found: {cmd[0]}") from e


def git_env_deterministic(base_env: dict[str, str]) -> dict[str, str]:
    """
    Deterministic git commit metadata so identical sites give identical commits.
    """
    env = dict(base_env)
    env.setdefault("GIT_AUTHOR_NAME", "sitepress")
    env.setdefault("GIT_AUTHOR_EMAIL", "sitepress@example.invalid")
    env.setdefault("GIT_COMMITTER_NAME", "sitepress")
    env.setdefault("GIT_COMMITTER_EMAIL", "sitepress@example.invalid")
    env.setdefault("GIT_AUTHOR_DATE", "1970-01-01T00:00:00Z")
    env.setdefault("GIT_COMMITTER_DATE", "1970-01-01T00:00:00Z")
    return env


def tokenized_https_remote(clone_url: str, token: str) -> str:
    """
    Convert https://github.com/owner/name.git into an HTTPS URL containing a token.

    The token ends up in the destination's `.git/config`, which is deleted
    again once the push is done.
    """
    # GitHub supports x-access-token in the username position.
    return clone_url.replace("https://", f"https://x-access-token:{token}@", 1)


def publish_site(
    destination: str | Path,
    *,
    remote_url: str | None,
    branch: str = "gh-pages",
    message: str = "Publish site",
    push: bool = True,
    deterministic_git: bool = True,
) -> None:
    """
    Commit the contents of `destination` as the single commit of `branch`
    and force-push it to `remote_url`. Without `push` the commit stays
    local and no remote is configured.
    """
    workdir = Path(destination).resolve()
    if not workdir.is_dir() or not any(workdir.iterdir()):
        raise PublishError(f"Nothing to publish in {workdir}; run `sitepress build` first.")
    if push and not remote_url:
        raise PublishError("A remote is required to push (use --remote or --github-owner/--github-repo).")

    base_env = os.environ.copy()
    env = git_env_deterministic(base_env) if deterministic_git else base_env

    # Hosted Pages would otherwise run its own Jekyll build over our output.
    (workdir / NOJEKYLL).touch()

    git_dir = workdir / ".git"
    if git_dir.exists():
        shutil.rmtree(git_dir)

    _run(["git", "init", "--quiet"], cwd=workdir, env=env)
    _run(["git", "checkout", "--quiet", "-B", branch], cwd=workdir, env=env)
    _run(["git", "add", "-A"], cwd=workdir, env=env)
    _run(["git", "commit", "--quiet", "-m", message], cwd=workdir, env=env)
    if not push:
        log.info("Committed %s on branch %s without pushing", workdir, branch)
        return

    try:
        _run(["git", "remote", "add", "origin", remote_url], cwd=workdir, env=env)
        _run(["git", "push", "--force", "origin", f"{branch}:{branch}"], cwd=workdir, env=env)
        log.info("Pushed %s to branch %s", workdir, branch)
    finally:
        # The remote URL may carry a token.
        shutil.rmtree(git_dir, ignore_errors=True)
