"""Tests for HTML to Markdown conversion."""

import pytest

from doc_export.export.converter import DocumentConverter


@pytest.fixture
def converter():
    return DocumentConverter()


@pytest.mark.unit
class TestDocumentConverter:

    def test_scripts_styles_and_comments_are_removed(self, converter):
        html = """
        <html><head><title>T</title><style>body { color: red }</style></head>
        <body>
          <script>alert('x')</script>
          <noscript>Enable JavaScript</noscript>
          <!-- hidden note -->
          <p>Visible text</p>
        </body></html>
        """
        markdown = converter.convert_to_markdown(html)

        assert "Visible text" in markdown
        for hidden in ("alert", "color: red", "Enable JavaScript", "hidden note"):
            assert hidden not in markdown

    def test_clean_html_keeps_only_body(self, converter):
        cleaned = converter.clean_html("<html><head><title>Head title</title></head><body><p>x</p></body></html>")

        assert "Head title" not in cleaned
        assert "<p>x</p>" in cleaned

    def test_headings_use_atx_style(self, converter):
        markdown = converter.convert_to_markdown("<h1>Install</h1><h2>Requirements</h2>")

        assert "# Install" in markdown
        assert "## Requirements" in markdown
        assert "===" not in markdown

    def test_code_blocks_are_fenced(self, converter):
        markdown = converter.convert_to_markdown("<pre><code>pip install doc-export</code></pre>")

        assert "```" in markdown
        assert "pip install doc-export" in markdown

    def test_tables_become_pipe_tables(self, converter):
        html = """
        <table>
          <tr><th>Flag</th><th>Default</th></tr>
          <tr><td>--max-urls</td><td>200</td></tr>
        </table>
        """
        markdown = converter.convert_to_markdown(html)

        assert "| Flag | Default |" in markdown
        assert "| --max-urls | 200 |" in markdown

    def test_lists_use_dash_bullets(self, converter):
        markdown = converter.convert_to_markdown("<ul><li>one</li><li>two</li></ul>")

        assert "- one" in markdown
        assert "- two" in markdown

    def test_images_are_dropped_and_links_kept(self, converter):
        html = '<p><img src="logo.png" alt="logo">See <a href="https://ex.com/guide">the guide</a></p>'
        markdown = converter.convert_to_markdown(html)

        assert "logo.png" not in markdown
        assert "[the guide](https://ex.com/guide)" in markdown

    def test_blank_line_runs_are_collapsed(self, converter):
        markdown = converter.convert_to_markdown("<p>a</p><p>b</p><p>c</p>")

        assert markdown == "a\n\nb\n\nc"
