"""
config.py

Responsibility: Load `_config.yml` into a typed `SiteConfig`.

CLI and environment overrides are applied here so the rest of the pipeline
only ever sees one resolved configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "_config.yml"
ENV_VAR = "SITEPRESS_ENV"

_RESERVED = frozenset(
    {
        "title",
        "description",
        "url",
        "baseurl",
        "permalink",
        "markdown_ext",
        "exclude",
        "include",
        "destination",
        "defaults",
        "author",
    }
)


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class DefaultScope:
    """A `defaults` entry: front matter values applied to matching documents."""

    path: str = ""
    kind: str | None = None
    values: dict[str, Any] = field(default_factory=dict)

    def matches(self, rel_path: str, kind: str) -> bool:
        if self.kind is not None and self.kind != kind:
            return False
        prefix = self.path.strip("/")
        if not prefix:
            return True
        return rel_path == prefix or rel_path.startswith(prefix + "/")


@dataclass(frozen=True)
class SiteConfig:
    source: Path
    title: str = ""
    description: str = ""
    url: str = ""
    baseurl: str = ""
    permalink: str = "date"
    markdown_ext: tuple[str, ...] = ("md", "markdown")
    exclude: tuple[str, ...] = ()
    include: tuple[str, ...] = ()
    destination: Path | None = None
    defaults: tuple[DefaultScope, ...] = ()
    author: dict[str, Any] = field(default_factory=dict)
    environment: str = "development"
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def destination_dir(self) -> Path:
        return self.destination if self.destination is not None else self.source / "_site"

    def defaults_for(self, rel_path: str, kind: str) -> dict[str, Any]:
        """Merge every matching default scope, later scopes winning."""
        merged: dict[str, Any] = {}
        for scope in self.defaults:
            if scope.matches(rel_path, kind):
                merged.update(scope.values)
        return merged

    def as_template_dict(self) -> dict[str, Any]:
        # Deterministic keys; templates reference these as `site.*`.
        return {
            **self.extra,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "baseurl": self.baseurl,
            "permalink": self.permalink,
            "author": self.author,
            "environment": self.environment,
        }


def _str_tuple(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    if isinstance(value, list):
        return tuple(str(v) for v in value)
    raise ConfigError(f"`{key}` must be a list or a comma-separated string.")


def _str_value(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None or value == "":
        return default
    # Bare YAML numbers such as `title: 2024` are accepted as text.
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigError(f"`{key}` must be a string, got {type(value).__name__}.")
    return str(value)


def _parse_defaults(raw: Any) -> tuple[DefaultScope, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigError("`defaults` must be a list of {scope, values} entries.")
    scopes = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigError(f"`defaults[{i}]` must be an object/mapping.")
        scope = entry.get("scope") or {}
        values = entry.get("values") or {}
        if not isinstance(scope, dict) or not isinstance(values, dict):
            raise ConfigError(f"`defaults[{i}]` scope and values must be objects/mappings.")
        kind = scope.get("type")
        scopes.append(
            DefaultScope(
                path=str(scope.get("path") or ""),
                kind=str(kind) if kind is not None else None,
                values=dict(values),
            )
        )
    return tuple(scopes)


def load_site_config(source: str | Path, *, overrides: dict[str, Any] | None = None) -> SiteConfig:
    """
    Load `<source>/_config.yml` (optional) and apply overrides.

    Overrides with a value of None are ignored, so CLI flags can be passed
    through unconditionally.
    """
    src = Path(source).resolve()
    if not src.is_dir():
        raise ConfigError(f"Site source directory not found: {src}")

    data: dict[str, Any] = {}
    path = src / CONFIG_FILENAME
    if path.exists():
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"{path} is not valid YAML: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{path} must be a mapping/object at the top level.")
        data.update(loaded)

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    author = data.get("author") or {}
    if isinstance(author, str):
        author = {"name": author}
    if not isinstance(author, dict):
        raise ConfigError("`author` must be a string or an object/mapping.")

    destination = _str_value(data, "destination")
    dest_path = None
    if destination:
        dest_path = Path(destination)
        if not dest_path.is_absolute():
            dest_path = src / dest_path
        dest_path = dest_path.resolve()

    markdown_ext = tuple(e.lstrip(".").lower() for e in _str_tuple(data.get("markdown_ext"), "markdown_ext"))

    # Sorted so `site.*` extras never depend on YAML key order.
    extra = {str(k): data[k] for k in sorted(data, key=str) if k not in _RESERVED}

    return SiteConfig(
        source=src,
        title=_str_value(data, "title"),
        description=_str_value(data, "description"),
        url=_str_value(data, "url").rstrip("/"),
        baseurl=_str_value(data, "baseurl").rstrip("/"),
        permalink=_str_value(data, "permalink", "date"),
        markdown_ext=markdown_ext or ("md", "markdown"),
        exclude=_str_tuple(data.get("exclude"), "exclude"),
        include=_str_tuple(data.get("include"), "include"),
        destination=dest_path,
        defaults=_parse_defaults(data.get("defaults")),
        author=dict(author),
        environment=os.environ.get(ENV_VAR) or "development",
        extra=extra,
    )
