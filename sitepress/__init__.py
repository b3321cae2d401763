"""
sitepress package

This package implements a deterministic static site publisher: markdown pages
and posts with YAML front matter, rendered through named layouts and includes
into plain HTML files.

Key responsibilities are split across modules:
- `config.py`: load `_config.yml` and apply CLI/environment overrides
- `frontmatter.py`: split documents and validate their front matter
- `urls.py`: permalink styles and URL -> output path mapping
- `content.py`: discover pages, posts, static and data files
- `renderer.py`: Jinja2 templating, markdown conversion and layouts
- `builder.py`: render the whole site and write it out
- `checks.py`: content-integrity checks without writing
- `scaffold.py`: starter sites and new posts
- `github_client.py` / `publish.py`: deploy to GitHub Pages
- `cli.py`: CLI entrypoint and orchestration
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
