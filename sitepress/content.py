"""
content.py

Responsibility: Discover the documents, static files and data files of a site
source directory and load them into a `Site`.

Rules:
- Walk the source tree in sorted order so every later stage is deterministic.
- Names starting with `_` or `.` are private (layouts, includes, posts, data)
  and never copied, unless listed in the site's `include` setting.
- Markdown files are pages; HTML files are pages only when they carry front
  matter. Everything else is a static file.

This module does not render anything.
"""

from __future__ import annotations

import datetime as dt
import fnmatch
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from sitepress.config import SiteConfig
from sitepress.frontmatter import FrontMatter, FrontMatterError, has_front_matter, parse_front_matter, split_front_matter
from sitepress.urls import URLError, expand_permalink, output_path_for, page_url, permalink_template, slugify

log = logging.getLogger(__name__)

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"
DATA_DIR = "_data"

_POST_NAME_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.+)$")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n[ \t]*\n")
_HAS_PLACEHOLDER_RE = re.compile(r":[a-z_]+")
_TEMPLATE_MARKER_RE = re.compile(r"\{[{%#]")


class ContentError(RuntimeError):
    pass


@dataclass(frozen=True)
class Document:
    """A page or post: front matter, raw body and its resolved URL."""

    rel_path: str
    source: Path
    kind: str  # "pages" or "posts"
    front_matter: FrontMatter
    body: str
    url: str
    slug: str
    title: str | None
    date: dt.datetime | None
    layout: str | None
    is_markdown: bool
    excerpt_source: str = ""
    draft: bool = False

    @property
    def output_path(self) -> str:
        return output_path_for(self.url)


@dataclass(frozen=True)
class StaticFile:
    rel_path: str
    source: Path

    @property
    def url(self) -> str:
        return "/" + self.rel_path

    @property
    def output_path(self) -> str:
        return self.rel_path


@dataclass(frozen=True)
class Site:
    config: SiteConfig
    pages: tuple[Document, ...] = ()
    posts: tuple[Document, ...] = ()
    static_files: tuple[StaticFile, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def documents(self) -> tuple[Document, ...]:
        return self.pages + self.posts

    @property
    def visible_posts(self) -> tuple[Document, ...]:
        return tuple(p for p in self.posts if not p.front_matter.hidden)

    def categories(self) -> dict[str, tuple[Document, ...]]:
        """Visible posts grouped by category, categories sorted by name."""
        grouped: dict[str, list[Document]] = {}
        for post in self.visible_posts:
            for cat in post.front_matter.categories:
                grouped.setdefault(cat, []).append(post)
        return {k: tuple(grouped[k]) for k in sorted(grouped)}

    def tags(self) -> dict[str, tuple[Document, ...]]:
        grouped: dict[str, list[Document]] = {}
        for post in self.visible_posts:
            for tag in post.front_matter.tags:
                grouped.setdefault(tag, []).append(post)
        return {k: tuple(grouped[k]) for k in sorted(grouped)}


def _rel(path: Path, root: Path) -> str:
    return str(path.relative_to(root)).replace(os.sep, "/")


def _is_listed(rel_path: str, patterns: tuple[str, ...]) -> bool:
    for pattern in patterns:
        pattern = pattern.strip("/")
        if rel_path == pattern or rel_path.startswith(pattern + "/") or fnmatch.fnmatch(rel_path, pattern):
            return True
    return False


def _is_private(rel_path: str) -> bool:
    return any(part.startswith(("_", ".")) for part in rel_path.split("/"))


def _iter_public_files(config: SiteConfig) -> list[Path]:
    """
    Return all publishable files under the source, in deterministic
    lexicographic order (relative path ordering).
    """
    root = config.source
    dest = config.destination_dir.resolve()
    files: list[Path] = []
    for current, dirs, filenames in os.walk(root):
        current_path = Path(current)
        kept = []
        for name in sorted(dirs):
            d = current_path / name
            rel = _rel(d, root)
            if d.resolve() == dest:
                continue
            if _is_listed(rel, config.exclude):
                continue
            if _is_private(rel) and not _is_listed(rel, config.include):
                continue
            kept.append(name)
        dirs[:] = kept
        for name in filenames:
            f = current_path / name
            rel = _rel(f, root)
            if _is_listed(rel, config.exclude):
                continue
            if _is_private(rel) and not _is_listed(rel, config.include):
                continue
            files.append(f)
    files.sort(key=lambda p: _rel(p, root))
    return files


def _iter_dir(root: Path) -> list[Path]:
    if not root.is_dir():
        return []
    out = [p for p in root.rglob("*") if p.is_file() and not any(part.startswith(".") for part in p.relative_to(root).parts)]
    out.sort(key=lambda p: _rel(p, root))
    return out


def _read_text(path: Path, rel: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ContentError(f"{rel}: documents must be UTF-8 text") from e


def _default_excerpt(body: str) -> str:
    """First plain paragraph of the body; template and markup paragraphs are skipped."""
    for chunk in _PARAGRAPH_SPLIT_RE.split(body.strip()):
        chunk = chunk.strip()
        if not chunk or chunk.startswith(("<", "#")):
            continue
        if _TEMPLATE_MARKER_RE.search(chunk):
            continue
        return chunk
    return ""


def _title_from_slug(slug: str) -> str:
    return " ".join(w.capitalize() for w in slug.replace("_", "-").split("-") if w)


def _load_front_matter(config: SiteConfig, text: str, rel: str, kind: str) -> tuple[FrontMatter, str]:
    try:
        raw, body = split_front_matter(text)
    except FrontMatterError as e:
        raise FrontMatterError(f"{rel}: {e}") from e
    merged = {**config.defaults_for(rel, kind), **(raw or {})}
    return parse_front_matter(merged, source=rel), body


def _resolve_url(fm: FrontMatter, default: str, *, title: str, slug: str, date: dt.datetime | None, rel: str) -> str:
    url = fm.permalink or default
    if fm.permalink and _HAS_PLACEHOLDER_RE.search(fm.permalink):
        try:
            url = expand_permalink(fm.permalink, title=title, slug=slug, date=date, categories=fm.categories)
        except URLError as e:
            raise ContentError(f"{rel}: {e}") from e
    try:
        output_path_for(url)
    except URLError as e:
        raise ContentError(f"{rel}: {e}") from e
    return url


def load_page(config: SiteConfig, path: Path) -> Document:
    rel = _rel(path, config.source)
    pure = PurePosixPath(rel)
    fm, body = _load_front_matter(config, _read_text(path, rel), rel, "pages")
    slug = slugify(pure.stem)
    default = page_url(rel, style=config.permalink)
    url = _resolve_url(fm, default, title=slug, slug=slug, date=fm.date, rel=rel)
    return Document(
        rel_path=rel,
        source=path,
        kind="pages",
        front_matter=fm,
        body=body,
        url=url,
        slug=slug,
        title=fm.title,
        date=fm.date,
        layout=fm.layout if fm.layout_set else "default",
        is_markdown=pure.suffix.lstrip(".").lower() in config.markdown_ext,
        excerpt_source=fm.excerpt or _default_excerpt(body),
    )


def load_post(config: SiteConfig, path: Path, *, draft: bool = False) -> Document:
    rel = _rel(path, config.source)
    pure = PurePosixPath(rel)
    m = _POST_NAME_RE.match(pure.stem)
    if m is None and not draft:
        raise ContentError(f"{rel}: post filenames must look like YYYY-MM-DD-title{pure.suffix}")

    fm, body = _load_front_matter(config, _read_text(path, rel), rel, "posts")

    if m is not None:
        file_slug = m.group(4)
        try:
            file_date: dt.datetime | None = dt.datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError as e:
            raise ContentError(f"{rel}: invalid date in filename") from e
    else:
        file_slug, file_date = pure.stem, None

    slug = slugify(file_slug)
    date = fm.date or file_date
    style = config.permalink
    if date is None and style in ("date", "pretty"):
        style = "none"
    try:
        default = expand_permalink(permalink_template(style), title=slug, slug=slug, date=date, categories=fm.categories)
    except URLError as e:
        raise ContentError(f"{rel}: {e}") from e

    return Document(
        rel_path=rel,
        source=path,
        kind="posts",
        front_matter=fm,
        body=body,
        url=_resolve_url(fm, default, title=slug, slug=slug, date=date, rel=rel),
        slug=slug,
        title=fm.title or _title_from_slug(file_slug),
        date=date,
        layout=fm.layout if fm.layout_set else "single",
        is_markdown=pure.suffix.lstrip(".").lower() in config.markdown_ext,
        excerpt_source=fm.excerpt or _default_excerpt(body),
        draft=draft,
    )


def load_data(config: SiteConfig) -> dict[str, Any]:
    """Load `_data/**/*.{yml,yaml,json}` into a nested mapping keyed by path stem."""
    root = config.source / DATA_DIR
    data: dict[str, Any] = {}
    for path in _iter_dir(root):
        suffix = path.suffix.lower()
        if suffix not in (".yml", ".yaml", ".json"):
            continue
        rel = _rel(path, root)
        try:
            text = path.read_text(encoding="utf-8")
            value = json.loads(text) if suffix == ".json" else yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as e:
            raise ContentError(f"{DATA_DIR}/{rel}: could not parse data file: {e}") from e
        node = data
        *parents, _name = PurePosixPath(rel).parts
        for part in parents:
            node = node.setdefault(part, {})
        node[PurePosixPath(rel).stem] = value
    return data


def _post_sort_key(doc: Document) -> tuple[dt.datetime, str]:
    return (doc.date or dt.datetime.min, doc.rel_path)


def _is_post_source(config: SiteConfig, path: Path) -> bool:
    return path.suffix.lstrip(".").lower() in config.markdown_ext or path.suffix.lower() == ".html"


def load_site(config: SiteConfig, *, drafts: bool = False, unpublished: bool = False) -> Site:
    """
    Discover and load everything under `config.source`.
    """
    pages: list[Document] = []
    static: list[StaticFile] = []
    for path in _iter_public_files(config):
        rel = _rel(path, config.source)
        suffix = path.suffix.lstrip(".").lower()
        if suffix in config.markdown_ext:
            pages.append(load_page(config, path))
        elif suffix == "html" and has_front_matter(_read_text(path, rel)):
            pages.append(load_page(config, path))
        else:
            static.append(StaticFile(rel_path=rel, source=path))

    posts = [load_post(config, p) for p in _iter_dir(config.source / POSTS_DIR) if _is_post_source(config, p)]
    if drafts:
        posts.extend(load_post(config, p, draft=True) for p in _iter_dir(config.source / DRAFTS_DIR) if _is_post_source(config, p))

    if not unpublished:
        skipped = [d.rel_path for d in pages + posts if not d.front_matter.published]
        for rel in skipped:
            log.info("Skipping unpublished document %s", rel)
        pages = [d for d in pages if d.front_matter.published]
        posts = [d for d in posts if d.front_matter.published]

    posts.sort(key=_post_sort_key, reverse=True)
    log.debug("Loaded %d pages, %d posts, %d static files", len(pages), len(posts), len(static))

    return Site(
        config=config,
        pages=tuple(pages),
        posts=tuple(posts),
        static_files=tuple(static),
        data=load_data(config),
    )
