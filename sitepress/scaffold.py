"""
scaffold.py

Responsibility: Create new sites and new posts on disk.

Rules for the starter site template:
- Walk template files in sorted order to ensure deterministic output.
- Files ending in `.j2` are rendered with Jinja2 and written without the suffix.
- All other files are copied byte-for-byte (their own template markers are
  site content, not scaffold variables).
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined, TemplateError

from sitepress.content import POSTS_DIR
from sitepress.urls import slugify

log = logging.getLogger(__name__)

STARTER_DIR = Path(__file__).resolve().parent / "starter"
TEMPLATE_SUFFIX = ".j2"


class ScaffoldError(RuntimeError):
    pass


@dataclass(frozen=True)
class RenderResult:
    rendered_files: int
    copied_files: int


def _iter_template_files(template_dir: Path) -> list[Path]:
    """
    Return all files under template_dir, in deterministic lexicographic order
    (relative path ordering).
    """
    files: list[Path] = []
    for root, _dirs, filenames in os.walk(template_dir):
        root_path = Path(root)
        for name in filenames:
            files.append(root_path / name)
    files.sort(key=lambda p: str(p.relative_to(template_dir)).replace(os.sep, "/"))
    return files


def render_template_dir(
    *,
    template_dir: str | Path,
    destination_dir: str | Path,
    context: dict[str, Any],
) -> RenderResult:
    """
    Render/copy a template directory into destination_dir.

    - Creates destination directories as needed.
    - Copies file permissions from template files.
    """
    tpl_dir = Path(template_dir).resolve()
    dst_dir = Path(destination_dir).resolve()

    if not tpl_dir.exists() or not tpl_dir.is_dir():
        raise ScaffoldError(f"Template directory not found: {tpl_dir}")

    env = Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )

    rendered = 0
    copied = 0

    for src_path in _iter_template_files(tpl_dir):
        rel = src_path.relative_to(tpl_dir)
        if src_path.name.endswith(TEMPLATE_SUFFIX):
            dst_path = dst_dir / rel.parent / src_path.name[: -len(TEMPLATE_SUFFIX)]
            dst_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                out = env.from_string(src_path.read_text(encoding="utf-8")).render(**context)
            except TemplateError as e:
                raise ScaffoldError(f"Failed rendering template file: {rel}") from e
            dst_path.write_text(out, encoding="utf-8", newline="\n")
            shutil.copymode(src_path, dst_path)
            rendered += 1
        else:
            dst_path = dst_dir / rel
            dst_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src_path, dst_path)
            shutil.copymode(src_path, dst_path)
            copied += 1

    return RenderResult(rendered_files=rendered, copied_files=copied)


def new_site(
    directory: str | Path,
    *,
    title: str,
    description: str = "",
    author: str = "",
    today: dt.date | None = None,
    overwrite: bool = False,
) -> RenderResult:
    """
    Write the starter site into `directory` plus a first post dated `today`.
    """
    dest = Path(directory).resolve()
    dest.mkdir(parents=True, exist_ok=True)
    if any(dest.iterdir()) and not overwrite:
        raise ScaffoldError(f"Directory is not empty: {dest} (use --overwrite to allow)")

    # JSON strings are valid YAML scalars; these land inside `_config.yml`.
    context = {
        "title": json.dumps(title, ensure_ascii=False),
        "description": json.dumps(description, ensure_ascii=False),
        "author": json.dumps(author, ensure_ascii=False),
    }
    result = render_template_dir(template_dir=STARTER_DIR, destination_dir=dest, context=context)
    new_post(
        dest,
        "Welcome",
        date=today or dt.date.today(),
        categories=["blog"],
        body="This is the first post of your new site. Edit or delete it, then run `sitepress build`.\n",
    )
    log.info("Created site %r in %s", title, dest)
    return result


def new_post(
    source: str | Path,
    title: str,
    *,
    date: dt.date,
    categories: list[str] | None = None,
    layout: str | None = None,
    body: str = "",
) -> Path:
    """
    Create `_posts/<date>-<slug>.md` under `source`. Refuses to overwrite.
    """
    slug = slugify(title)
    if not slug:
        raise ScaffoldError(f"Cannot derive a filename from title {title!r}")
    path = Path(source) / POSTS_DIR / f"{date.isoformat()}-{slug}.md"
    if path.exists():
        raise ScaffoldError(f"Post already exists: {path}")

    front_matter: dict[str, Any] = {"title": title, "date": date.isoformat()}
    if layout:
        front_matter["layout"] = layout
    if categories:
        front_matter["categories"] = list(categories)

    path.parent.mkdir(parents=True, exist_ok=True)
    text = "---\n" + yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True) + "---\n\n" + body
    path.write_text(text, encoding="utf-8", newline="\n")
    log.info("Created post %s", path)
    return path
