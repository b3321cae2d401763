"""
checks.py

Responsibility: Validate a site source without writing anything.

Checks, in order:
- every document's front matter parses and validates
- every document names a layout the renderer knows
- every document renders (includes resolve, templates are valid)
- no two sources claim the same output path
- rendering twice produces byte-identical output
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sitepress.builder import find_permalink_conflicts
from sitepress.config import SiteConfig
from sitepress.content import ContentError, Site, load_site
from sitepress.frontmatter import FrontMatterError
from sitepress.renderer import RenderError, Renderer

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Problem:
    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"


def _layout_problems(site: Site, renderer: Renderer) -> list[Problem]:
    problems = []
    for doc in site.documents:
        if doc.layout is not None and doc.layout not in renderer.layouts:
            problems.append(
                Problem(doc.rel_path, f"unknown layout {doc.layout!r} (known: {', '.join(renderer.known_layouts)})")
            )
    return problems


def check_site(config: SiteConfig, *, drafts: bool = False, unpublished: bool = False) -> list[Problem]:
    """
    Run every content-integrity check and return the problems found.

    Loading errors stop the check early since nothing else can be inspected.
    """
    try:
        site = load_site(config, drafts=drafts, unpublished=unpublished)
    except (FrontMatterError, ContentError) as e:
        return [Problem("<load>", str(e))]

    try:
        renderer = Renderer(site)
    except RenderError as e:
        return [Problem("<theme>", str(e))]

    problems = _layout_problems(site, renderer)
    bad_layouts = {p.source for p in problems}

    first: dict[str, str] = {}
    for doc in site.documents:
        if doc.rel_path in bad_layouts:
            continue
        try:
            first[doc.rel_path] = renderer.render(doc)
        except RenderError as e:
            problems.append(Problem(doc.rel_path, str(e)))

    for path, sources in find_permalink_conflicts(site).items():
        problems.append(Problem(", ".join(sources), f"conflicting claims on output path {path}"))

    # A fresh renderer so no state carries over between the two passes.
    second = Renderer(site)
    for doc in site.documents:
        if doc.rel_path not in first:
            continue
        if second.render(doc) != first[doc.rel_path]:
            problems.append(Problem(doc.rel_path, "rendering is not deterministic"))

    log.info("Checked %d documents, %d problem(s)", len(site.documents), len(problems))
    return problems
