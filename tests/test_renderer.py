from __future__ import annotations

import datetime as dt
import re

import pytest

from sitepress.config import load_site_config
from sitepress.content import load_site
from sitepress.renderer import RenderError, Renderer, date_to_string


def _renderer(root, **overrides) -> Renderer:
    return Renderer(load_site(load_site_config(root, overrides=overrides)))


def _doc(renderer: Renderer, rel_path: str):
    return next(d for d in renderer.site.documents if d.rel_path == rel_path)


def _buttons(html: str) -> list[str]:
    return re.findall(r'<a href="([^"]*)" class="btn ', html)


def test_feature_row_renders_one_card_per_entry_in_order(blog) -> None:
    renderer = _renderer(blog)
    html = renderer.render(_doc(renderer, "index.md"))
    assert html.count('class="feature__item"') == 3
    assert _buttons(html) == [
        "/rust/ffi/2020/01/05/rust-to-c.html",
        "https://example.org/about",
        "/posts/",
    ]
    assert html.index("Rust to C") < html.index("About") < html.index("Archive")
    assert 'class="btn btn--primary">Read</a>' in html
    assert "Learn more</a>" in html
    assert "<strong>codec</strong>" in html
    assert '<img src="/assets/images/rust.png" alt="rust">' in html


def test_feature_row_cards_survive_markdown_as_raw_html(blog) -> None:
    renderer = _renderer(blog)
    body = renderer.render_body(_doc(renderer, "index.md"))
    assert body.strip().startswith('<div class="feature__wrapper">')
    assert "<p><div" not in body


def test_feature_row_links_follow_baseurl(blog) -> None:
    renderer = _renderer(blog, baseurl="/blog")
    html = renderer.render(_doc(renderer, "index.md"))
    assert _buttons(html) == [
        "/blog/rust/ffi/2020/01/05/rust-to-c.html",
        "https://example.org/about",
        "/blog/posts/",
    ]


def test_feature_row_id_and_type_parameters(make_site) -> None:
    root = make_site(
        {
            "index.md": """---
layout: null
intro:
  - title: Only
    url: /only/
---

{% include feature_row id="intro" type="center" %}
""",
        }
    )
    renderer = _renderer(root)
    html = renderer.render(_doc(renderer, "index.md"))
    assert 'class="feature__item--center"' in html
    assert _buttons(html) == ["/only/"]


def test_feature_row_without_front_matter_key_fails(make_site) -> None:
    root = make_site({"index.md": "---\nlayout: null\n---\n\n{% include feature_row %}\n"})
    renderer = _renderer(root)
    with pytest.raises(RenderError, match="feature_row"):
        renderer.render(_doc(renderer, "index.md"))


def test_unknown_include_fails(make_site) -> None:
    root = make_site({"index.md": "{% include nothing_here %}\n"})
    renderer = _renderer(root)
    with pytest.raises(RenderError, match="unknown include 'nothing_here'"):
        renderer.render(_doc(renderer, "index.md"))


def test_translate_includes(make_site) -> None:
    renderer = _renderer(make_site({}))
    out = renderer.translate_includes('{% include feature_row id="intro" n=page.count %}')
    assert out == (
        '{% with params = {"id": "intro", "n": page.count} %}'
        '{% include "feature_row.html" %}'
        "{% endwith %}"
    )
    quoted = '{% include "feature_row.html" %}'
    assert renderer.translate_includes(quoted) == quoted


def test_site_includes_override_theme(make_site) -> None:
    root = make_site(
        {
            "_includes/feature_row.html": "CARDS:{{ page.feature_row | length }}",
            "index.md": "---\nlayout: null\nfeature_row: [{title: a}, {title: b}]\n---\n{% include feature_row %}\n",
        }
    )
    renderer = _renderer(root)
    assert renderer.render(_doc(renderer, "index.md")) == "<p>CARDS:2</p>"


def test_markdown_and_default_layout(make_site) -> None:
    root = make_site(
        {
            "_config.yml": "title: Site\nurl: https://example.org\n",
            "about.md": "---\ntitle: About\n---\n# Hello\n\nSome *text*.\n",
        }
    )
    renderer = _renderer(root)
    html = renderer.render(_doc(renderer, "about.md"))
    assert '<h1 id="hello">Hello</h1>' in html
    assert "<em>text</em>" in html
    assert "<title>About | Site</title>" in html
    assert '<link rel="canonical" href="https://example.org/about.html">' in html
    assert '<body class="layout--default">' in html


def test_layout_chain_and_user_layouts(make_site) -> None:
    root = make_site(
        {
            "_layouts/outer.html": "<outer>{{ content }}</outer>",
            "_layouts/inner.html": "---\nlayout: outer\nkind: inner\n---\n<inner data-kind=\"{{ layout.kind }}\">{{ content }}</inner>",
            "page.html": "---\nlayout: inner\n---\nbody",
        }
    )
    renderer = _renderer(root)
    assert renderer.render(_doc(renderer, "page.html")) == '<outer><inner data-kind="inner">body</inner></outer>'
    assert {"default", "home", "inner", "outer", "single", "splash"} <= set(renderer.known_layouts)


def test_unknown_layout_fails(make_site) -> None:
    root = make_site({"page.md": "---\nlayout: nope\n---\nx\n"})
    renderer = _renderer(root)
    with pytest.raises(RenderError, match="unknown layout 'nope'"):
        renderer.render(_doc(renderer, "page.md"))


def test_layout_cycle_fails(make_site) -> None:
    root = make_site(
        {
            "_layouts/a.html": "---\nlayout: b\n---\n{{ content }}",
            "_layouts/b.html": "---\nlayout: a\n---\n{{ content }}",
            "page.md": "---\nlayout: a\n---\nx\n",
        }
    )
    renderer = _renderer(root)
    with pytest.raises(RenderError, match="layout cycle a -> b -> a"):
        renderer.render(_doc(renderer, "page.md"))


def test_undefined_variables_fail(make_site) -> None:
    root = make_site({"page.md": "---\nlayout: null\n---\n{{ page.nope.deeper }}\n"})
    renderer = _renderer(root)
    with pytest.raises(RenderError, match="page.md"):
        renderer.render(_doc(renderer, "page.md"))


def test_splash_hero_uses_overlay(blog) -> None:
    renderer = _renderer(blog)
    html = renderer.render(_doc(renderer, "index.md"))
    assert "background-color: #5e616c;" in html
    assert "background-image: url('/assets/images/header.jpg');" in html


def test_single_layout_shows_date_and_categories(blog) -> None:
    renderer = _renderer(blog)
    html = renderer.render(_doc(renderer, "_posts/2020-01-05-rust-to-c.md"))
    assert '<h1 class="page__title">Rust to C</h1>' in html
    assert '<time datetime="2020-01-05T00:00:00">05 Jan 2020</time>' in html
    assert '<span class="page__taxonomy-item">ffi</span>' in html
    assert '<h2 id="build-script">Build script</h2>' in html


def test_home_layout_lists_visible_posts(blog) -> None:
    root = blog
    (root / "posts.md").write_text("---\ntitle: Posts\nlayout: home\npermalink: /posts/\n---\n", encoding="utf-8")
    renderer = _renderer(root)
    html = renderer.render(_doc(renderer, "posts.md"))
    assert 'href="/rust/ffi/2020/01/05/rust-to-c.html"' in html
    assert "rust-to-c-again" not in html
    assert "Install a C code generator first." in html


def test_url_filters(make_site) -> None:
    renderer = _renderer(make_site({"_config.yml": "url: https://example.org\nbaseurl: /blog\n"}))
    assert renderer.relative_url("/about/") == "/blog/about/"
    assert renderer.relative_url("about/") == "/blog/about/"
    assert renderer.relative_url("mailto:me@example.org") == "mailto:me@example.org"
    assert renderer.absolute_url("/about/") == "https://example.org/blog/about/"
    assert renderer.absolute_url("https://other.org/") == "https://other.org/"


def test_date_to_string_is_locale_independent() -> None:
    assert date_to_string(dt.datetime(2026, 10, 18)) == "18 Oct 2026"
    assert date_to_string(None) == ""


def test_templated_first_paragraph_is_not_the_excerpt(make_site) -> None:
    root = make_site(
        {
            "_config.yml": "title: Notes\n",
            "index.md": "Welcome to {{ site.title }}\n\nShort notes on systems code.\n",
        }
    )
    renderer = _renderer(root)
    html = renderer.render(_doc(renderer, "index.md"))
    assert '<meta name="description" content="Short notes on systems code.">' in html
    assert "<p>Welcome to Notes</p>" in html
    assert "{{" not in html


def test_footer_falls_back_to_site_title_for_empty_author(make_site) -> None:
    root = make_site({"_config.yml": 'title: Notes\nauthor:\n  name: ""\n', "about.md": "Hi.\n"})
    renderer = _renderer(root)
    assert "<p>&copy; Notes</p>" in renderer.render(_doc(renderer, "about.md"))
