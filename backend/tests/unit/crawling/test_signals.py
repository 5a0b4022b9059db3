"""
Unit tests for markup signal extraction.
"""

from app.crawling.signals import count_words, extract_headings, extract_links, extract_signals


class TestExtractSignals:
    """Tests for extract_signals."""

    def test_empty_markup_gives_defaults(self):
        signals = extract_signals("")

        assert signals.images_count == 0
        assert signals.images_without_alt == 0
        assert signals.has_canonical is False
        assert signals.meta_robots is None
        assert signals.has_schema_markup is False
        assert signals.html_size_bytes == 0

    def test_images_without_alt_attribute_are_counted(self):
        html = (
            "<html><body>"
            '<img src="a.png">'
            '<img src="b.png" alt="">'
            '<img src="c.png" alt="A chart">'
            '<IMG SRC="d.png">'
            "</body></html>"
        )
        signals = extract_signals(html)

        assert signals.images_count == 4
        # An empty alt marks a decorative image and counts as present
        assert signals.images_without_alt == 2

    def test_canonical_requires_href(self):
        with_href = extract_signals(
            '<html><head><link rel="canonical" href="https://example.com/"></head></html>'
        )
        empty_href = extract_signals(
            '<html><head><link rel="canonical" href=""></head></html>'
        )

        assert with_href.has_canonical is True
        assert with_href.canonical_url == "https://example.com/"
        assert empty_href.has_canonical is False

    def test_canonical_rel_is_case_insensitive(self):
        signals = extract_signals(
            '<html><head><link rel="Canonical" href="/page"></head></html>'
        )

        assert signals.canonical_url == "/page"

    def test_meta_robots_content(self):
        signals = extract_signals(
            '<html><head><meta name="ROBOTS" content="noindex, nofollow"></head></html>'
        )

        assert signals.meta_robots == "noindex, nofollow"

    def test_schema_markup_detected_by_marker(self):
        json_ld = extract_signals(
            '<script type="application/ld+json">{"@type": "Organization"}</script>'
        )
        microdata = extract_signals('<div itemscope itemtype="https://schema.org/Product"></div>')
        plain = extract_signals("<p>No structured data here</p>")

        assert json_ld.has_schema_markup is True
        assert microdata.has_schema_markup is True
        assert plain.has_schema_markup is False

    def test_html_size_counts_utf8_bytes(self):
        signals = extract_signals("<p>café</p>")

        assert signals.html_size_bytes == len("<p>café</p>") + 1


class TestExtractHeadings:
    """Tests for the markup fallback of title, description and H1."""

    def test_reads_first_values(self):
        html = (
            "<html><head><title>  Home   page </title>"
            '<meta name="description" content="About us">'
            "</head><body><h1>Welcome</h1><h1>Second</h1></body></html>"
        )

        assert extract_headings(html) == {
            "title": "Home page",
            "description": "About us",
            "h1": "Welcome",
        }

    def test_missing_values_are_empty_strings(self):
        assert extract_headings("<html><body><p>x</p></body></html>") == {
            "title": "",
            "description": "",
            "h1": "",
        }


class TestCountWords:
    def test_whitespace_tokenized(self):
        assert count_words("one  two\nthree\tfour") == 4

    def test_empty_or_none(self):
        assert count_words("") == 0
        assert count_words(None) == 0


class TestExtractLinks:
    def test_anchor_hrefs_in_document_order(self):
        html = '<a href="/b">B</a><p><a href="https://x.com/">X</a></p><a href="/b">again</a>'

        assert extract_links(html) == ["/b", "https://x.com/", "/b"]

    def test_blank_and_missing_hrefs_are_skipped(self):
        assert extract_links('<a href="  ">x</a><a name="top">y</a>') == []

    def test_empty_markup(self):
        assert extract_links("") == []
