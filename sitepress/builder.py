"""
builder.py

Responsibility: Build a whole site into its destination directory.

Rules:
- Every output path is claimed exactly once; conflicts are reported before
  anything is written.
- Pages are rendered and written in sorted output-path order.
- Rendered output is written with `\\n` newlines; static files are copied
  byte-for-byte.
"""

from __future__ import annotations

import dataclasses
import logging
import shutil
from pathlib import Path, PurePosixPath

from sitepress.config import SiteConfig
from sitepress.content import Document, Site, StaticFile, load_site
from sitepress.renderer import Renderer

log = logging.getLogger(__name__)


class BuildError(RuntimeError):
    pass


class PermalinkConflictError(BuildError):
    def __init__(self, conflicts: dict[str, list[str]]) -> None:
        self.conflicts = conflicts
        lines = [f"  {path}: {', '.join(sources)}" for path, sources in conflicts.items()]
        super().__init__("Multiple sources claim the same output path:\n" + "\n".join(lines))


@dataclasses.dataclass(frozen=True)
class BuildResult:
    destination: Path
    pages_written: int
    static_copied: int


def find_permalink_conflicts(site: Site) -> dict[str, list[str]]:
    """
    Return {output_path: [source, ...]} for every path claimed more than once.

    A path is also in conflict when another output needs it as a directory
    (`a.html` next to `a.html/b/index.html`); the nested sources are listed
    under the file path they collide with.
    """
    claims: dict[str, list[str]] = {}
    items: list[Document | StaticFile] = [*site.documents, *site.static_files]
    for item in items:
        claims.setdefault(item.output_path, []).append(item.rel_path)

    conflicts = {path: list(sources) for path, sources in claims.items() if len(sources) > 1}
    for path, sources in claims.items():
        parts = PurePosixPath(path).parts
        for i in range(1, len(parts)):
            parent = "/".join(parts[:i])
            if parent not in claims:
                continue
            merged = conflicts.setdefault(parent, list(claims[parent]))
            merged.extend(s for s in sources if s not in merged)
    return {path: sorted(sources) for path, sources in sorted(conflicts.items())}


def render_site(site: Site, renderer: Renderer | None = None) -> dict[str, str]:
    """
    Render every document of `site` in memory.

    Returns {output_path: html} in sorted path order.
    """
    conflicts = find_permalink_conflicts(site)
    if conflicts:
        raise PermalinkConflictError(conflicts)
    renderer = renderer or Renderer(site)
    outputs = {doc.output_path: renderer.render(doc) for doc in site.documents}
    return dict(sorted(outputs.items()))


def _ensure_empty_dir(path: Path, *, overwrite: bool) -> None:
    path.mkdir(parents=True, exist_ok=True)
    children = sorted(path.iterdir())
    if not children:
        return
    if not overwrite:
        raise BuildError(f"Destination is not empty: {path} (use --overwrite to replace it)")
    # Clear it so output from removed pages does not survive the rebuild.
    for child in children:
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def write_site(site: Site, outputs: dict[str, str], destination: Path) -> BuildResult:
    try:
        for rel, html in outputs.items():
            dst_path = destination / rel
            dst_path.parent.mkdir(parents=True, exist_ok=True)
            dst_path.write_text(html, encoding="utf-8", newline="\n")
            log.debug("Wrote %s", rel)

        for static in site.static_files:
            dst_path = destination / static.output_path
            dst_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(static.source, dst_path)
    except OSError as e:
        raise BuildError(f"Failed writing into {destination}: {e}") from e

    return BuildResult(destination=destination, pages_written=len(outputs), static_copied=len(site.static_files))


def build_site(
    config: SiteConfig,
    *,
    destination: str | Path | None = None,
    overwrite: bool = False,
    drafts: bool = False,
    unpublished: bool = False,
) -> BuildResult:
    """
    Load, render and write the site described by `config`.
    """
    if destination is not None:
        config = dataclasses.replace(config, destination=Path(destination).resolve())
    dest = config.destination_dir
    # Clearing the destination must never reach the source.
    if config.source.is_relative_to(dest):
        raise BuildError(f"Destination {dest} must not be the site source directory or contain it.")

    site = load_site(config, drafts=drafts, unpublished=unpublished)
    # Render everything first so a failing page never leaves a half-written site.
    outputs = render_site(site)

    _ensure_empty_dir(dest, overwrite=overwrite)
    result = write_site(site, outputs, dest)
    log.info(
        "Built %d pages and copied %d static files into %s",
        result.pages_written,
        result.static_copied,
        dest,
    )
    return result
