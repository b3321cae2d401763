from __future__ import annotations

from pathlib import Path

import pytest

from sitepress.builder import BuildError, PermalinkConflictError, build_site, find_permalink_conflicts
from sitepress.config import load_site_config
from sitepress.content import load_site
from sitepress.renderer import RenderError


def _snapshot(root: Path) -> dict[str, bytes]:
    return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


def test_build_writes_pages_posts_and_static_files(blog, tmp_path) -> None:
    out = tmp_path / "out"
    result = build_site(load_site_config(blog), destination=out)
    assert result.pages_written == 4
    assert result.static_copied == 1
    assert sorted(_snapshot(out)) == [
        "about/index.html",
        "assets/images/rust.png",
        "index.html",
        "rust/ffi/2020/01/05/rust-to-c.html",
        "rust/ffi/2020/01/06/rust-to-c-again.html",
    ]
    assert (out / "assets/images/rust.png").read_bytes() == (blog / "assets/images/rust.png").read_bytes()


def test_build_defaults_to_site_dir(blog) -> None:
    result = build_site(load_site_config(blog))
    assert result.destination == (blog / "_site").resolve()
    assert (blog / "_site" / "index.html").exists()
    # The previous output is never picked up as content.
    assert build_site(load_site_config(blog), overwrite=True).pages_written == 4


def test_rebuilding_is_byte_identical(blog, tmp_path) -> None:
    config = load_site_config(blog)
    build_site(config, destination=tmp_path / "one")
    build_site(config, destination=tmp_path / "two")
    assert _snapshot(tmp_path / "one") == _snapshot(tmp_path / "two")


def test_permalink_conflicts_are_reported_before_writing(make_site, tmp_path) -> None:
    root = make_site(
        {
            "a.md": "---\npermalink: /same/\n---\nA\n",
            "b.md": "---\npermalink: /same/\n---\nB\n",
            "c.md": "C\n",
        }
    )
    config = load_site_config(root)
    assert find_permalink_conflicts(load_site(config)) == {"same/index.html": ["a.md", "b.md"]}

    out = tmp_path / "out"
    with pytest.raises(PermalinkConflictError) as exc:
        build_site(config, destination=out)
    assert exc.value.conflicts == {"same/index.html": ["a.md", "b.md"]}
    assert not out.exists()


def test_page_and_static_file_conflict(make_site) -> None:
    root = make_site({"about.md": "x\n", "about.html": "<p>static</p>\n"})
    assert find_permalink_conflicts(load_site(load_site_config(root))) == {"about.html": ["about.html", "about.md"]}


def test_non_empty_destination_needs_overwrite(blog, tmp_path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "stale.html").write_text("old", encoding="utf-8")
    with pytest.raises(BuildError, match="not empty"):
        build_site(load_site_config(blog), destination=out)

    build_site(load_site_config(blog), destination=out, overwrite=True)
    assert not (out / "stale.html").exists()
    assert (out / "index.html").exists()


def test_render_failure_writes_nothing(make_site, tmp_path) -> None:
    root = make_site({"good.md": "fine\n", "bad.md": "---\nlayout: missing\n---\nx\n"})
    out = tmp_path / "out"
    with pytest.raises(RenderError, match="missing"):
        build_site(load_site_config(root), destination=out)
    assert not out.exists()


def test_destination_cannot_be_source(blog) -> None:
    with pytest.raises(BuildError, match="source"):
        build_site(load_site_config(blog), destination=blog)


def test_destination_cannot_contain_source(make_site, tmp_path) -> None:
    root = make_site({"index.md": "hi\n"}, name="work/site")
    notes = tmp_path / "work" / "notes.txt"
    notes.write_text("keep me", encoding="utf-8")
    with pytest.raises(BuildError, match="contain"):
        build_site(load_site_config(root), destination=tmp_path / "work", overwrite=True)
    assert (root / "index.md").exists()
    assert notes.read_text(encoding="utf-8") == "keep me"


def test_output_nested_under_another_output_conflicts(make_site, tmp_path) -> None:
    root = make_site(
        {
            "a.md": "---\npermalink: /a.html\n---\nA\n",
            "b.md": "---\npermalink: /a.html/b/\n---\nB\n",
            "robots": "User-agent: *\n",
            "robots.md": "---\npermalink: /robots/\n---\nR\n",
        }
    )
    config = load_site_config(root)
    assert find_permalink_conflicts(load_site(config)) == {
        "a.html": ["a.md", "b.md"],
        "robots": ["robots", "robots.md"],
    }

    out = tmp_path / "out"
    with pytest.raises(PermalinkConflictError):
        build_site(config, destination=out)
    assert not out.exists()
