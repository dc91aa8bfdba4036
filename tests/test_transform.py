# File: tests/test_transform.py
import pytest
from bs4 import BeautifulSoup

from site_render.errors import CssInlineError
from site_render.transform import filter_css, find_bundle, inject_hydration_script, inline_critical_css

PAGE = (
    '<html><head><link rel="stylesheet" href="/static/app.css"></head>'
    '<body><div id="root"><h1 class="title">Hi</h1></div></body></html>'
)


def test_filter_css_keeps_used_rules():
    soup = BeautifulSoup('<div id="root"><a class="x" href="#">x</a></div>', "html.parser")
    css = """
    /* comment */
    .x:hover { color: red; }
    .y { color: blue; }
    #root > a, .nope { margin: 0; }
    @media (max-width: 600px) { .x { padding: 0; } .y { padding: 1px; } }
    @media print { .y { display: none; } }
    @font-face { font-family: "F"; src: url("f.woff2"); }
    @import url("other.css");
    """
    result = filter_css(css, soup)
    assert ".x:hover{color: red;}" in result
    assert ".y" not in result.replace("@media", "")
    assert "#root > a, .nope{margin: 0;}" in result
    assert "@media (max-width: 600px){.x{padding: 0;}}" in result
    assert "@media print" not in result
    assert "@font-face" in result
    assert '@import url("other.css");' in result


def test_filter_css_rejects_unbalanced():
    soup = BeautifulSoup("<p></p>", "html.parser")
    with pytest.raises(ValueError):
        filter_css("p { color: red; ", soup)


def test_inline_critical_css(build_dir):
    html = inline_critical_css(PAGE, build_dir)
    soup = BeautifulSoup(html, "html.parser")

    style = soup.find("style")
    assert style is not None
    assert ".title{color: red;}" in style.string
    assert ".unused" not in style.string

    link = soup.find("head").find("link", rel="stylesheet", recursive=False)
    assert link["media"] == "print"
    assert link["onload"] == "this.media='all'"
    assert soup.find("noscript").find("link")["href"] == "/static/app.css"


def test_inline_critical_css_strips_base_path(build_dir):
    page = PAGE.replace('href="/static/app.css"', 'href="/app/static/app.css"')
    assert "<style>" in inline_critical_css(page, build_dir, "/app")


def test_inline_critical_css_leaves_remote_sheets(build_dir):
    page = PAGE.replace("/static/app.css", "https://cdn.example.com/app.css")
    html = inline_critical_css(page, build_dir)
    assert "<style>" not in html
    assert 'media="print"' not in html


def test_inline_critical_css_wraps_errors(build_dir):
    (build_dir / "static" / "app.css").write_text(".title { color: red;", encoding="utf-8")
    with pytest.raises(CssInlineError):
        inline_critical_css(PAGE, build_dir)


@pytest.mark.parametrize(
    "html,base_path,expected",
    [
        ("<html><body><p>x</p></body></html>", "",
         '<html><body><p>x</p><script src="/static/main.js" defer></script></body></html>'),
        ("<html><BODY>x</BODY></html>", "/app",
         '<html><BODY>x<script src="/app/static/main.js" defer></script></BODY></html>'),
        ("<p>no body</p>", "", '<p>no body</p><script src="/static/main.js" defer></script>'),
    ],
)
def test_inject_hydration_script(html, base_path, expected):
    assert inject_hydration_script(html, "static/main.js", base_path) == expected


def test_find_bundle_prefers_index_script(build_dir):
    (build_dir / "static" / "aaa.js").write_text("", encoding="utf-8")
    assert find_bundle(build_dir) == "static/main.js"


def test_find_bundle_falls_back_to_tree(tmp_path):
    root = tmp_path / "dist"
    (root / "assets").mkdir(parents=True)
    (root / "index.html").write_text('<script src="/gone.js"></script>', encoding="utf-8")
    (root / "assets" / "chunk-1.js").write_text("", encoding="utf-8")
    (root / "assets" / "vendor.js").write_text("", encoding="utf-8")
    (root / "assets" / "index-abc.js").write_text("", encoding="utf-8")
    assert find_bundle(root) == "assets/index-abc.js"


def test_find_bundle_none(tmp_path):
    (tmp_path / "index.html").write_text("<html></html>", encoding="utf-8")
    assert find_bundle(tmp_path) is None
