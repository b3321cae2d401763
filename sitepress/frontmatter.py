"""
frontmatter.py

Responsibility: Split markdown/HTML documents into YAML front matter and body,
and parse the front matter into a typed, immutable model.

Known keys are validated strictly; unknown keys are kept in `FrontMatter.extra`
so templates can still reach them.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from typing import Any

import yaml


class FrontMatterError(ValueError):
    pass


_OPEN = "---"
_CLOSERS = ("---", "...")
_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[ T](\d{2}):(\d{2})(?::(\d{2}))?)?$")

_HEADER_KEYS = ("overlay_color", "overlay_image", "image", "teaser", "caption")
FEATURE_KEYS = ("image_path", "alt", "title", "excerpt", "url", "btn_class", "btn_label", "image_caption")
_KNOWN_KEYS = frozenset(
    {"layout", "permalink", "title", "excerpt", "hidden", "published", "date", "categories", "category", "tags", "header"}
)


@dataclass(frozen=True)
class HeaderSpec:
    """Page header imagery (hero overlay, teaser image)."""

    overlay_color: str | None = None
    overlay_image: str | None = None
    image: str | None = None
    teaser: str | None = None
    caption: str | None = None

    def as_dict(self) -> dict[str, str]:
        return {k: getattr(self, k) for k in _HEADER_KEYS if getattr(self, k) is not None}


@dataclass(frozen=True)
class FeatureRowItem:
    """One promotional card of a feature row."""

    image_path: str | None = None
    alt: str | None = None
    title: str | None = None
    excerpt: str | None = None
    url: str | None = None
    btn_class: str | None = None
    btn_label: str | None = None
    image_caption: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {k: getattr(self, k) for k in FEATURE_KEYS}


@dataclass(frozen=True)
class FrontMatter:
    layout: str | None = None
    layout_set: bool = False
    permalink: str | None = None
    title: str | None = None
    excerpt: str | None = None
    hidden: bool = False
    published: bool = True
    date: dt.datetime | None = None
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    header: HeaderSpec = field(default_factory=HeaderSpec)
    feature_rows: dict[str, tuple[FeatureRowItem, ...]] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)


def split_front_matter(text: str) -> tuple[dict[str, Any] | None, str]:
    """
    If the document begins with YAML front matter delimited by '---', parse it.
    Returns (front_matter_dict_or_none, body).
    """
    text = text.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n").rstrip() != _OPEN:
        return None, text

    for idx in range(1, len(lines)):
        if lines[idx].rstrip("\r\n").rstrip() in _CLOSERS:
            fm_text = "".join(lines[1:idx])
            body = "".join(lines[idx + 1 :])
            break
    else:
        raise FrontMatterError("Front matter starts with '---' but no closing '---' was found.")

    try:
        data = yaml.safe_load(fm_text)
    except yaml.YAMLError as e:
        raise FrontMatterError(f"Front matter is not valid YAML: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError("Front matter must be a mapping/object at the top level.")
    return data, body


def has_front_matter(text: str) -> bool:
    first = text.lstrip("\ufeff").split("\n", 1)[0]
    return first.rstrip("\r").rstrip() == _OPEN


def parse_date(value: Any) -> dt.datetime | None:
    """Accept YAML dates/datetimes or `YYYY-MM-DD[ HH:MM[:SS]]` strings."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        m = _DATE_RE.match(value.strip())
        if m:
            parts = [int(p) if p else 0 for p in m.groups()]
            try:
                return dt.datetime(*parts)
            except ValueError:
                pass
    raise ValueError(f"unrecognised date: {value!r}")


def _opt_str(data: dict[str, Any], key: str, where: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise FrontMatterError(f"{where}: `{key}` must be a string.")
    return str(value)


def _bool(data: dict[str, Any], key: str, default: bool, where: str) -> bool:
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise FrontMatterError(f"{where}: `{key}` must be true or false.")
    return value


def _str_list(value: Any, key: str, where: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    if isinstance(value, list):
        out = []
        for item in value:
            if isinstance(item, (dict, list)) or item is None:
                raise FrontMatterError(f"{where}: `{key}` entries must be strings.")
            out.append(str(item))
        return tuple(out)
    raise FrontMatterError(f"{where}: `{key}` must be a list or a space-separated string.")


def _parse_header(raw: Any, where: str) -> HeaderSpec:
    if raw is None:
        return HeaderSpec()
    if not isinstance(raw, dict):
        raise FrontMatterError(f"{where}: `header` must be an object/mapping when provided.")
    return HeaderSpec(**{k: _opt_str(raw, k, f"{where} header") for k in _HEADER_KEYS})


def _parse_feature_row(key: str, raw: Any, where: str) -> tuple[FeatureRowItem, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise FrontMatterError(f"{where}: `{key}` must be a list of entries.")
    items = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise FrontMatterError(f"{where}: `{key}[{i}]` must be an object/mapping.")
        items.append(FeatureRowItem(**{k: _opt_str(entry, k, f"{where} {key}[{i}]") for k in FEATURE_KEYS}))
    return tuple(items)


def parse_front_matter(data: dict[str, Any], *, source: str = "<string>") -> FrontMatter:
    """
    Validate a front matter mapping and return a `FrontMatter`.

    `layout: null` (or `none`) disables layouts for the document; a missing
    `layout` leaves `layout_set` false so site defaults can fill it in.
    """
    where = str(source)

    layout_set = "layout" in data
    layout = _opt_str(data, "layout", where)
    if layout is not None and layout.strip().lower() in ("", "none", "null"):
        layout = None

    permalink = _opt_str(data, "permalink", where)
    if permalink is not None and not permalink.startswith("/"):
        raise FrontMatterError(f"{where}: `permalink` must start with '/': {permalink!r}")

    try:
        date = parse_date(data.get("date"))
    except ValueError as e:
        raise FrontMatterError(f"{where}: `date` {e}") from e

    categories = _str_list(data.get("categories"), "categories", where)
    if not categories and data.get("category") is not None:
        categories = _str_list(data.get("category"), "category", where)

    feature_rows: dict[str, tuple[FeatureRowItem, ...]] = {}
    extra: dict[str, Any] = {}
    for key, value in data.items():
        key = str(key)
        if key.startswith("feature_row"):
            feature_rows[key] = _parse_feature_row(key, value, where)
        elif key not in _KNOWN_KEYS:
            extra[key] = value

    return FrontMatter(
        layout=layout,
        layout_set=layout_set,
        permalink=permalink,
        title=_opt_str(data, "title", where),
        excerpt=_opt_str(data, "excerpt", where),
        hidden=_bool(data, "hidden", False, where),
        published=_bool(data, "published", True, where),
        date=date,
        categories=categories,
        tags=_str_list(data.get("tags"), "tags", where),
        header=_parse_header(data.get("header"), where),
        feature_rows=feature_rows,
        extra=extra,
    )
