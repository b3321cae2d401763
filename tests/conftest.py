from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Keep runtime deterministic regardless of the caller's shell
    monkeypatch.delenv("SITEPRESS_ENV", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture()
def make_site(tmp_path):
    """Write {relative_path: text} under a fresh site directory and return it."""

    def _make(files: dict[str, str], name: str = "site") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, text in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return root

    return _make


HOME_PAGE = """---
layout: splash
permalink: /
hidden: true
header:
  overlay_color: "#5e616c"
  overlay_image: /assets/images/header.jpg
feature_row:
  - image_path: /assets/images/rust.png
    alt: "rust"
    title: "Rust to C"
    excerpt: "Wrapping a **codec** behind a C ABI."
    url: "/rust/ffi/2020/01/05/rust-to-c.html"
    btn_class: "btn--primary"
    btn_label: "Read"
  - title: "About"
    excerpt: "Who writes here."
    url: "https://example.org/about"
  - title: "Archive"
    url: "/posts/"
---

{% include feature_row %}
"""

POST = """---
title: "Rust to C"
categories: [rust, ffi]
---

Install a C code generator first.

## Build script

Write a `build.rs`.
"""


@pytest.fixture()
def blog(make_site):
    """A small blog resembling the original site: a splash home page and two articles."""
    return make_site(
        {
            "_config.yml": "title: Test Blog\nurl: https://blog.example.org\npermalink: date\n"
            "defaults:\n  - scope: {path: '', type: posts}\n    values: {layout: single}\n",
            "index.md": HOME_PAGE,
            "about.md": "---\ntitle: About\nlayout: single\npermalink: /about/\n---\n\nHello.\n",
            "_posts/2020-01-05-rust-to-c.md": POST,
            "_posts/2020-01-06-rust-to-c-again.md": POST.replace('title: "Rust to C"', 'title: "Rust to C, again"\nhidden: true'),
            "assets/images/rust.png": "not really a png",
        }
    )
