"""
cli.py

Responsibility: CLI entrypoint for sitepress.

Commands:
- `build`:   load `_config.yml`, render every page, write the destination
- `check`:   run the content-integrity checks without writing anything
- `new`:     create a starter site
- `post`:    create a dated post under `_posts/`
- `publish`: commit the built site to a pages branch and push it
             (optionally creating the GitHub repo and enabling Pages)

This module should orchestrate behavior but keep concerns isolated:
- Configuration: `config.py`
- Loading/rendering/writing: `content.py`, `renderer.py`, `builder.py`
- Checks: `checks.py`
- Scaffolding: `scaffold.py`
- GitHub API: `github_client.py`, git operations: `publish.py`
"""

from __future__ import annotations

import argparse
import datetime as dt
import logging
import os
import sys
from pathlib import Path

from sitepress import __version__
from sitepress.builder import BuildError, build_site
from sitepress.checks import check_site
from sitepress.config import ConfigError, SiteConfig, load_site_config
from sitepress.content import ContentError
from sitepress.frontmatter import FrontMatterError
from sitepress.github_client import GitHubClient, GitHubError, RepoInfo
from sitepress.publish import PublishError, publish_site, tokenized_https_remote
from sitepress.renderer import RenderError
from sitepress.scaffold import ScaffoldError, new_post, new_site
from sitepress.urls import URLError

log = logging.getLogger("sitepress")

_REPORTED_ERRORS = (
    BuildError,
    ConfigError,
    ContentError,
    FrontMatterError,
    GitHubError,
    PublishError,
    RenderError,
    ScaffoldError,
    URLError,
)


class CLIError(RuntimeError):
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load_config(args: argparse.Namespace) -> SiteConfig:
    overrides = {
        "url": getattr(args, "url", None),
        "baseurl": getattr(args, "baseurl", None),
        "destination": str(Path(args.destination).resolve()) if getattr(args, "destination", None) else None,
    }
    return load_site_config(args.source, overrides=overrides)


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from e


def build_cmd(args: argparse.Namespace) -> int:
    config = _load_config(args)
    build_site(
        config,
        overwrite=bool(args.overwrite),
        drafts=bool(args.drafts),
        unpublished=bool(args.unpublished),
    )
    return 0


def check_cmd(args: argparse.Namespace) -> int:
    config = _load_config(args)
    problems = check_site(config, drafts=bool(args.drafts), unpublished=bool(args.unpublished))
    for problem in problems:
        print(problem, file=sys.stderr)
    if problems:
        print(f"{len(problems)} problem(s) found", file=sys.stderr)
        return 1
    print("ok")
    return 0


def new_cmd(args: argparse.Namespace) -> int:
    title = args.title or Path(args.directory).resolve().name
    new_site(
        args.directory,
        title=title,
        description=args.description,
        author=args.author,
        overwrite=bool(args.overwrite),
    )
    return 0


def post_cmd(args: argparse.Namespace) -> int:
    path = new_post(
        args.source,
        args.title,
        date=args.date or dt.date.today(),
        categories=args.categories,
        layout=args.layout,
    )
    print(path)
    return 0


def _resolve_remote(
    args: argparse.Namespace, config: SiteConfig
) -> tuple[str | None, tuple[GitHubClient, RepoInfo] | None]:
    """Return (remote_url, (client, repo) when GitHub was used)."""
    if args.remote:
        return args.remote, None
    if not args.github_owner:
        if args.skip_push:
            return None, None
        raise CLIError("--remote or --github-owner is required unless --skip-push is set")

    token = args.github_token or os.environ.get("GITHUB_TOKEN") or ""
    if not token:
        raise CLIError("GitHub token is required (use --github-token or set GITHUB_TOKEN)")
    repo_name = args.github_repo or config.source.name
    gh = GitHubClient(token)

    repo = gh.get_repo(args.github_owner, repo_name)
    if repo is None:
        if not args.create_repo:
            raise CLIError(f"Repository {args.github_owner}/{repo_name} not found (use --create-repo)")
        repo = gh.create_repo(
            owner=args.github_owner,
            name=repo_name,
            private=bool(args.private),
            description=config.description,
        )
    return tokenized_https_remote(repo.clone_url, token), (gh, repo)


def publish_cmd(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if args.build:
        build_site(config, overwrite=True)

    remote_url, github = _resolve_remote(args, config)
    publish_site(
        config.destination_dir,
        remote_url=remote_url,
        branch=args.branch,
        message=args.message,
        push=not bool(args.skip_push),
        deterministic_git=bool(args.deterministic_git),
    )

    if args.enable_pages and github is not None:
        gh, repo = github
        pages = gh.enable_pages(repo.owner, repo.name, branch=args.branch)
        if pages.html_url:
            print(pages.html_url)
    return 0


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("source", nargs="?", default=".", help="Site source directory (default: .)")
    p.add_argument("--destination", "-d", default=None, help="Output directory (default: <source>/_site)")
    p.add_argument("--url", default=None, help="Override the site url (scheme and host)")
    p.add_argument("--baseurl", default=None, help="Override the site baseurl (path prefix)")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sitepress", description="sitepress - deterministic static site publisher")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("build", help="Render the site into its destination directory")
    _add_source_args(b)
    b.add_argument("--overwrite", action="store_true", help="Replace a non-empty destination")
    b.add_argument("--drafts", action="store_true", help="Render posts from _drafts/")
    b.add_argument("--unpublished", action="store_true", help="Render documents marked `published: false`")
    b.set_defaults(func=build_cmd)

    c = sub.add_parser("check", help="Validate front matter, layouts, includes, permalinks and determinism")
    _add_source_args(c)
    c.add_argument("--drafts", action="store_true", help="Also check posts from _drafts/")
    c.add_argument("--unpublished", action="store_true", help="Also check documents marked `published: false`")
    c.set_defaults(func=check_cmd)

    n = sub.add_parser("new", help="Create a starter site")
    n.add_argument("directory", help="Directory to create the site in")
    n.add_argument("--title", default=None, help="Site title (default: directory name)")
    n.add_argument("--description", default="", help="Site description")
    n.add_argument("--author", default="", help="Author name")
    n.add_argument("--overwrite", action="store_true", help="Allow a non-empty directory")
    n.set_defaults(func=new_cmd)

    po = sub.add_parser("post", help="Create a new post in _posts/")
    po.add_argument("title", help="Post title")
    po.add_argument("--source", default=".", help="Site source directory (default: .)")
    po.add_argument("--date", type=_parse_date, default=None, help="Post date, YYYY-MM-DD (default: today)")
    po.add_argument("--categories", nargs="*", default=None, help="Post categories")
    po.add_argument("--layout", default=None, help="Layout name for the post")
    po.set_defaults(func=post_cmd)

    pu = sub.add_parser("publish", help="Commit the built site to a pages branch and push it")
    _add_source_args(pu)
    pu.add_argument("--build", action="store_true", help="Rebuild (with --overwrite) before publishing")
    pu.add_argument("--branch", default="gh-pages", help="Branch to publish to (default: gh-pages)")
    pu.add_argument("--message", default="Publish site", help="Commit message")
    pu.add_argument("--remote", default=None, help="Git remote URL to push to")
    pu.add_argument("--skip-push", action="store_true", help="Commit locally but do not push")

    pu.add_argument("--github-owner", default=None, help="GitHub owner (user or org)")
    pu.add_argument("--github-repo", default=None, help="GitHub repository name (default: source directory name)")
    pu.add_argument("--github-token", default=None, help="GitHub token (or set env GITHUB_TOKEN)")
    pu.add_argument("--create-repo", action="store_true", help="Create the GitHub repository if it does not exist")
    pu.add_argument("--private", dest="private", action="store_true", default=False, help="Create a private repo")
    pu.add_argument("--public", dest="private", action="store_false", help="Create a public repo (default)")
    pu.add_argument("--enable-pages", action="store_true", help="Serve the branch with GitHub Pages")

    pu.add_argument(
        "--deterministic-git",
        action="store_true",
        default=True,
        help="Use deterministic git author/commit timestamps (default: enabled)",
    )
    pu.add_argument(
        "--no-deterministic-git",
        dest="deterministic_git",
        action="store_false",
        help="Disable deterministic git commit timestamps",
    )
    pu.set_defaults(func=publish_cmd)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(bool(args.verbose))
    try:
        return int(args.func(args))
    except (CLIError, *_REPORTED_ERRORS) as e:
        log.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
