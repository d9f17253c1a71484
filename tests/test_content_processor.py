"""Unit tests for HTML to Markdown conversion and link extraction."""

from datetime import datetime

import pytest

from docmirror import content_processor
from docmirror.content_processor import (
    MarkdownConverter,
    detect_code_language,
    extract_links_from_html,
    normalize_url,
)
from docmirror.models import Link

PAGE = "https://help.aliyun.com/document_detail/1.html"


@pytest.fixture
def converter():
    return MarkdownConverter()


class TestToMarkdown:
    def test_headings_and_resolved_links(self, converter):
        html = '<h2>Setup</h2><p>Read <a href="/document_detail/2.html">this</a></p>'
        md = converter.to_markdown(html, PAGE)
        assert "## Setup" in md
        assert "[this](https://help.aliyun.com/document_detail/2.html)" in md

    def test_images_are_resolved(self, converter):
        md = converter.to_markdown('<p><img src="/img/a.png" alt="diagram"></p>', PAGE)
        assert "![diagram](https://help.aliyun.com/img/a.png)" in md

    def test_absolute_and_data_images_are_kept(self, converter):
        html = '<img src="https://cdn.example.com/x.png" alt="x"><img src="data:image/png;base64,AAA" alt="y">'
        md = converter.to_markdown(html, PAGE)
        assert "https://cdn.example.com/x.png" in md
        assert "data:image/png;base64,AAA" in md

    def test_page_chrome_and_scripts_are_removed(self, converter):
        html = "<nav>menu</nav><header>top</header><p>body</p><script>x()</script><footer>bottom</footer>"
        md = converter.to_markdown(html, PAGE)
        assert "body" in md
        for removed in ("menu", "top", "x()", "bottom"):
            assert removed not in md

    def test_comments_are_removed(self, converter):
        md = converter.to_markdown("<p>kept<!-- hidden --></p>", PAGE)
        assert "hidden" not in md

    def test_empty_anchor_keeps_text_only(self, converter):
        md = converter.to_markdown('<p><a href="#">Top</a> of page</p>', PAGE)
        assert "Top of page" in md
        assert "](" not in md

    def test_code_language_from_class(self, converter):
        md = converter.to_markdown('<pre><code class="language-python">print(1)</code></pre>', PAGE)
        assert "```python" in md
        assert "print(1)" in md

    def test_list_bullets(self, converter):
        md = converter.to_markdown("<ul><li>one</li><li>two</li></ul>", PAGE)
        assert "- one" in md
        assert "- two" in md

    def test_output_is_tidy(self, converter):
        md = converter.to_markdown("<p>a</p><br><br><br><p>b</p>", PAGE)
        assert "\n\n\n" not in md
        assert md.endswith("\n")
        assert not md.endswith("\n\n")

    def test_empty_input(self, converter):
        assert converter.to_markdown("", PAGE) == ""
        assert converter.to_markdown(None, PAGE) == ""

    def test_failure_falls_back_to_raw_html(self, converter, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("parser exploded")

        monkeypatch.setattr(content_processor, "md_convert", boom)
        md = converter.to_markdown("<p>raw</p>", PAGE)
        assert md.startswith("<!-- conversion failed: parser exploded -->")
        assert md.endswith("<p>raw</p>")


class TestCreateDocument:
    def test_header_and_body(self, converter):
        doc = converter.create_document("Install", PAGE, "Body text\n", updated=datetime(2026, 3, 4, 5, 6, 7))
        assert doc == (
            "# Install\n\n"
            f"> Source: {PAGE}\n"
            "> Updated: 2026-03-04 05:06:07\n\n"
            "Body text\n"
        )

    def test_untitled_document_has_no_heading(self, converter):
        doc = converter.create_document("", PAGE, "Body\n")
        assert doc.startswith("> Source: ")


class TestLinks:
    def test_extract_links_resolves_relative_urls(self):
        html = '<a href="/document_detail/2.html"> Two </a><a href="#local">Local</a><a>no href</a>'
        assert extract_links_from_html(html, PAGE) == [
            Link(text="Two", href="https://help.aliyun.com/document_detail/2.html"),
            Link(text="Local", href="#local"),
        ]

    def test_normalize_url_drops_fragment(self):
        assert normalize_url("2.html#section", PAGE) == "https://help.aliyun.com/document_detail/2.html"

    def test_normalize_url_keeps_absolute(self):
        assert normalize_url("https://other.example/a?b=1", PAGE) == "https://other.example/a?b=1"

    @pytest.mark.parametrize(
        "class_name, expected",
        [
            ("language-js", "javascript"),
            ("hljs lang-go", "go"),
            ("sh", "bash"),
            ("language-kotlin", "kotlin"),
            ("plain", ""),
            ("", ""),
        ],
    )
    def test_detect_code_language(self, class_name, expected):
        assert detect_code_language(class_name) == expected
