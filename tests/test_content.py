"""Tests for content extraction and HTML to Markdown conversion."""

from link_crawler.content import (
    detect_spec_kind,
    extract_content,
    extract_metadata,
    is_hypertext,
    spec_filename,
)
from link_crawler.convert.html_to_md import html_to_markdown


def test_is_hypertext():
    assert is_hypertext("text/html; charset=utf-8")
    assert is_hypertext("application/xhtml+xml")
    assert not is_hypertext("application/json")
    assert not is_hypertext("")
    assert not is_hypertext(None)


def test_detect_spec_kind():
    assert detect_spec_kind("https://example.com/api/openapi.json") == "openapi"
    assert detect_spec_kind("https://example.com/swagger.yaml") == "openapi"
    assert detect_spec_kind("https://example.com/user.schema.json") == "jsonSchema"
    assert detect_spec_kind("https://example.com/schema.graphql") == "graphql"
    assert detect_spec_kind("https://example.com/data.json") is None
    assert spec_filename("https://example.com/api/openapi.json") == "openapi.json"


def test_extract_metadata():
    html = """
    <html><head>
      <title>Install Guide</title>
      <meta property="og:description" content="From OG">
      <meta name="keywords" content="install, setup">
      <meta property="og:title" content="Install">
      <meta property="og:type" content="article">
    </head><body></body></html>
    """

    meta = extract_metadata(html)

    assert meta.title == "Install Guide"
    assert meta.description == "From OG"
    assert meta.keywords == "install, setup"
    assert meta.og_title == "Install"
    assert meta.og_type == "article"
    assert meta.author is None


def test_extract_content_prefers_main_and_drops_chrome():
    html = """
    <html><head><title>Site - Page</title></head><body>
      <header>Site header</header>
      <nav><a href="/x">Menu</a></nav>
      <main><h1>Page Heading</h1><p>Real content.</p><script>x()</script></main>
      <footer>Copyright</footer>
    </body></html>
    """

    extracted = extract_content(html)

    assert extracted.title == "Page Heading"
    assert "Real content." in extracted.html
    assert "Menu" not in extracted.html
    assert "x()" not in extracted.html


def test_extract_content_empty_page():
    extracted = extract_content("<html><head><title>Empty</title></head><body></body></html>")

    assert extracted.title == "Empty"
    assert extracted.html is None


def test_html_to_markdown_headings_lists_and_code():
    html = """
    <h1>Title</h1>
    <p>Intro with <a href="/link">a link</a>.</p>
    <ul><li>one</li><li>two</li></ul>
    <pre class="language-python"><code>print("hi")</code></pre>
    """

    md = html_to_markdown(html)

    assert md.startswith("# Title")
    assert "[a link](/link)" in md
    assert "- one" in md
    assert '```python\nprint("hi")' in md
    assert "\n\n\n" not in md


def test_html_to_markdown_drops_empty_links_and_line_numbers():
    html = """
    <p><a href="#anchor"></a>Text</p>
    <pre><code><span class="line-number">1</span>x = 1</code></pre>
    """

    md = html_to_markdown(html)

    assert "](#anchor)" not in md
    assert "x = 1" in md
    assert "1x = 1" not in md
