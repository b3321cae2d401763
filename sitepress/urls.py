"""
urls.py

Responsibility: Turn permalink styles and templates into page URLs, and
page URLs into output paths under the destination.

Rules:
- `/x/` is written as `x/index.html`; `/x.html` as `x.html`.
- URLs must be absolute and may not contain `.` or `..` segments.
"""

from __future__ import annotations

import datetime as dt
import posixpath
import re
from pathlib import PurePosixPath

PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "none": "/:categories/:title:output_ext",
}

OUTPUT_EXT = ".html"

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_PLACEHOLDER_RE = re.compile(r":(categories|year|month|day|title|slug|output_ext)")


class URLError(ValueError):
    pass


def slugify(text: str) -> str:
    return _SLUG_RE.sub("-", str(text).lower()).strip("-")


def permalink_template(style: str) -> str:
    template = PERMALINK_STYLES.get(style, style)
    if not template.startswith("/"):
        raise URLError(f"Unknown permalink style or template: {style!r}")
    return template


def _collapse(url: str) -> str:
    collapsed = re.sub(r"/{2,}", "/", url)
    return collapsed if collapsed.startswith("/") else "/" + collapsed


def expand_permalink(
    template: str,
    *,
    title: str,
    slug: str,
    date: dt.datetime | None,
    categories: tuple[str, ...] = (),
) -> str:
    """
    Fill a permalink template. Date placeholders require a date.
    """
    values = {
        "categories": "/".join(slugify(c) for c in categories if slugify(c)),
        "title": title,
        "slug": slug,
        "output_ext": OUTPUT_EXT,
    }
    if date is not None:
        values.update(year=f"{date.year:04d}", month=f"{date.month:02d}", day=f"{date.day:02d}")

    def sub(m: re.Match[str]) -> str:
        key = m.group(1)
        if key not in values:
            raise URLError(f"Permalink {template!r} uses :{key} but the document has no date.")
        return values[key]

    return _collapse(_PLACEHOLDER_RE.sub(sub, template))


def page_url(rel_path: str, *, style: str) -> str:
    """
    Default URL for a non-post page from its source path.

    `index.md` -> `/`, `docs/index.md` -> `/docs/`, `about.md` -> `/about.html`
    (or `/about/` when the site uses the `pretty` style).
    """
    path = PurePosixPath(rel_path)
    parent = "" if str(path.parent) == "." else str(path.parent)
    if path.stem == "index":
        return _collapse(f"/{parent}/")
    if style == "pretty":
        return _collapse(f"/{parent}/{path.stem}/")
    return _collapse(f"/{parent}/{path.stem}{OUTPUT_EXT}")


def output_path_for(url: str) -> str:
    """
    Map a URL to a destination-relative file path.

    `/` -> `index.html`, `/x/` -> `x/index.html`, `/x.html` -> `x.html`,
    `/x` -> `x/index.html`.
    """
    if not url.startswith("/"):
        raise URLError(f"URL must start with '/': {url!r}")
    parts = [p for p in url.split("/") if p]
    if any(p in (".", "..") for p in parts):
        raise URLError(f"URL must not contain '.' or '..' segments: {url!r}")
    if not parts or url.endswith("/"):
        return posixpath.join(*parts, "index.html") if parts else "index.html"
    if "." in parts[-1]:
        return "/".join(parts)
    return posixpath.join(*parts, "index.html")
