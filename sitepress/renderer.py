"""
renderer.py

Responsibility: Turn loaded documents into final HTML.

Pipeline per document:
1) Translate Liquid-style `{% include name key=value %}` directives to Jinja2
2) Render the body as a Jinja2 template (only when template markers are present)
3) Convert markdown to HTML (markdown documents only)
4) Wrap the result in its layout, then in that layout's parent, and so on

Rendering is pure: the same `Site` always produces the same bytes. Nothing
here reads the clock or depends on iteration order other than source order.

This module intentionally does NOT write files.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import markdown
from jinja2 import ChoiceLoader, Environment, FileSystemLoader, StrictUndefined, Template, TemplateError

from sitepress.content import Document, Site
from sitepress.frontmatter import FEATURE_KEYS, FrontMatterError, split_front_matter
from sitepress.urls import slugify

log = logging.getLogger(__name__)

THEME_DIR = Path(__file__).resolve().parent / "themes" / "default"
LAYOUTS_DIR = "_layouts"
INCLUDES_DIR = "_includes"

MARKDOWN_EXTENSIONS = ["extra", "sane_lists", "toc"]

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_INCLUDE_RE = re.compile(r"\{%(-?)\s*include\s+([A-Za-z0-9_./-]+)((?:\s+[A-Za-z0-9_-]+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s%]+))*)\s*(-?)%\}")
_PARAM_RE = re.compile(r"([A-Za-z0-9_-]+)\s*=\s*(\"[^\"]*\"|'[^']*'|[^\s%]+)")
_EXTERNAL_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|//|#)", re.IGNORECASE)


class RenderError(RuntimeError):
    pass


@dataclass(frozen=True)
class Layout:
    name: str
    parent: str | None
    template: Template
    data: dict[str, Any]
    origin: Path


def _has_template_markers(text: str) -> bool:
    return ("{{" in text) or ("{%" in text) or ("{#" in text)


def date_to_string(value: dt.date | None) -> str:
    """`18 Oct 2026`, independent of the process locale."""
    if value is None:
        return ""
    return f"{value.day:02d} {_MONTHS[value.month - 1]} {value.year:04d}"


def date_to_xmlschema(value: dt.date | None) -> str:
    if value is None:
        return ""
    return value.isoformat()


def _fail(message: str) -> None:
    raise RenderError(message)


def feature_card(entry: Any) -> dict[str, Any]:
    """Fill in every feature row field so templates can test them directly."""
    if not isinstance(entry, dict):
        raise RenderError(f"feature row entries must be mappings, got {entry!r}")
    return {**dict.fromkeys(FEATURE_KEYS), **entry}


class Renderer:
    """
    Render documents of a single `Site`.

    Layouts and includes are looked up in the site's `_layouts`/`_includes`
    first and in the bundled default theme second, so a site can override any
    theme file by name.
    """

    def __init__(self, site: Site, *, theme_dir: Path = THEME_DIR) -> None:
        self.site = site
        self._md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, output_format="html")

        include_dirs = [d for d in (site.config.source / INCLUDES_DIR, theme_dir / INCLUDES_DIR) if d.is_dir()]
        self.env = Environment(
            loader=ChoiceLoader([FileSystemLoader(str(d)) for d in include_dirs]),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.env.filters.update(
            relative_url=self.relative_url,
            absolute_url=self.absolute_url,
            markdownify=self.markdownify,
            slugify=slugify,
            date_to_string=date_to_string,
            date_to_xmlschema=date_to_xmlschema,
            feature_card=feature_card,
        )
        self.env.globals["fail"] = _fail
        self._includes = frozenset(self.env.list_templates())

        self.layouts = self._load_layouts([theme_dir / LAYOUTS_DIR, site.config.source / LAYOUTS_DIR])
        self._page_dicts = {doc.rel_path: self._page_dict(doc) for doc in site.documents}
        self._site_dict = self._build_site_dict()

    # -- filters -------------------------------------------------------------

    def relative_url(self, path: str | None) -> str:
        if path is None:
            return ""
        path = str(path)
        if _EXTERNAL_RE.match(path):
            return path
        return f"{self.site.config.baseurl}/{path.lstrip('/')}"

    def absolute_url(self, path: str | None) -> str:
        rel = self.relative_url(path)
        if _EXTERNAL_RE.match(rel):
            return rel
        return f"{self.site.config.url}{rel}"

    def markdownify(self, text: str | None) -> str:
        if not text:
            return ""
        return self._md.reset().convert(str(text))

    # -- layouts and includes ------------------------------------------------

    @property
    def known_layouts(self) -> list[str]:
        return sorted(self.layouts)

    def _load_layouts(self, dirs: list[Path]) -> dict[str, Layout]:
        layouts: dict[str, Layout] = {}
        for layout_dir in dirs:
            if not layout_dir.is_dir():
                continue
            for path in sorted(layout_dir.glob("*.html")):
                text = path.read_text(encoding="utf-8")
                try:
                    data, body = split_front_matter(text)
                except FrontMatterError as e:
                    raise RenderError(f"Layout {path.name}: {e}") from e
                data = data or {}
                parent = data.get("layout")
                try:
                    template = self.env.from_string(self.translate_includes(body, source=path.name))
                except TemplateError as e:
                    raise RenderError(f"Layout {path.name}: {e}") from e
                layouts[path.stem] = Layout(
                    name=path.stem,
                    parent=str(parent) if parent else None,
                    template=template,
                    data=data,
                    origin=path,
                )
        return layouts

    def resolve_include(self, name: str) -> str | None:
        candidates = [name] if PurePosixPath(name).suffix else [name, f"{name}.html"]
        for candidate in candidates:
            if candidate in self._includes:
                return candidate
        return None

    def translate_includes(self, text: str, *, source: str = "<string>") -> str:
        """
        Rewrite `{% include name a="x" b=page.y %}` into
        `{% with params = {"a": "x", "b": page.y} %}{% include "name.html" %}{% endwith %}`.

        Already-quoted Jinja2 includes are left untouched.
        """

        def sub(m: re.Match[str]) -> str:
            lstrip, name, raw_params, rstrip = m.groups()
            resolved = self.resolve_include(name)
            if resolved is None:
                raise RenderError(f"{source}: unknown include {name!r}")
            pairs = ", ".join(f"{json.dumps(k)}: {v}" for k, v in _PARAM_RE.findall(raw_params or ""))
            return (
                f"{{%{lstrip} with params = {{{pairs}}} %}}"
                f"{{% include {json.dumps(resolved)} %}}"
                f"{{% endwith {rstrip}%}}"
            )

        return _INCLUDE_RE.sub(sub, text)

    # -- template context ----------------------------------------------------

    def _page_dict(self, doc: Document) -> dict[str, Any]:
        fm = doc.front_matter
        page: dict[str, Any] = dict(fm.extra)
        for key, items in fm.feature_rows.items():
            page[key] = [item.as_dict() for item in items]
        page.update(
            title=doc.title,
            url=doc.url,
            permalink=fm.permalink,
            path=doc.rel_path,
            slug=doc.slug,
            date=doc.date,
            layout=doc.layout,
            hidden=fm.hidden,
            draft=doc.draft,
            categories=list(fm.categories),
            tags=list(fm.tags),
            header=fm.header.as_dict(),
            excerpt=self.markdownify(doc.excerpt_source),
            content="",
        )
        return page

    def _build_site_dict(self) -> dict[str, Any]:
        site = self.site
        posts = [self._page_dicts[p.rel_path] for p in site.visible_posts]
        return {
            **site.config.as_template_dict(),
            "posts": posts,
            "pages": [self._page_dicts[p.rel_path] for p in site.pages],
            "categories": {k: [self._page_dicts[p.rel_path] for p in v] for k, v in site.categories().items()},
            "tags": {k: [self._page_dicts[p.rel_path] for p in v] for k, v in site.tags().items()},
            "static_files": [{"path": f.url} for f in site.static_files],
            "data": site.data,
        }

    def page_context(self, doc: Document) -> dict[str, Any]:
        # Fresh copy; listings in `site.posts` must never see rendered content.
        return dict(self._page_dicts[doc.rel_path])

    # -- rendering -----------------------------------------------------------

    def render_body(self, doc: Document) -> str:
        """Steps 1-3: templating and markdown, without layouts."""
        page = self.page_context(doc)
        text = doc.body
        if _has_template_markers(text):
            translated = self.translate_includes(text, source=doc.rel_path)
            try:
                template = self.env.from_string(translated)
                text = template.render(site=self._site_dict, page=page)
            except RenderError as e:
                raise RenderError(f"{doc.rel_path}: {e}") from e
            except TemplateError as e:
                raise RenderError(f"Failed rendering {doc.rel_path}: {e}") from e
        if doc.is_markdown:
            text = self.markdownify(text)
        return text

    def render(self, doc: Document) -> str:
        """Render a document to its final HTML."""
        content = self.render_body(doc)
        page = self.page_context(doc)
        page["content"] = content

        seen: list[str] = []
        name = doc.layout
        while name:
            if name in seen:
                raise RenderError(f"{doc.rel_path}: layout cycle {' -> '.join(seen + [name])}")
            layout = self.layouts.get(name)
            if layout is None:
                raise RenderError(
                    f"{doc.rel_path}: unknown layout {name!r} (known: {', '.join(self.known_layouts)})"
                )
            seen.append(name)
            try:
                content = layout.template.render(site=self._site_dict, page=page, layout=layout.data, content=content)
            except RenderError as e:
                raise RenderError(f"{doc.rel_path} (layout {name}): {e}") from e
            except TemplateError as e:
                raise RenderError(f"Failed rendering {doc.rel_path} with layout {name!r}: {e}") from e
            name = layout.parent

        log.debug("Rendered %s via %s", doc.rel_path, " -> ".join(seen) or "no layout")
        return content
