"""
SEO signal extraction from raw page markup.

Uses parsel (lxml XPath) rather than regular expressions, keeping the same
presence semantics:

- an ``<img>`` with no ``alt`` attribute counts as missing alt text
  (an empty ``alt=""`` is present, marking a decorative image),
- a canonical link needs ``rel="canonical"`` and a non-empty ``href``,
- meta robots is the first non-empty ``content`` of ``<meta name="robots">``,
- structured data is a substring check for ``application/ld+json`` or
  ``schema.org`` anywhere in the markup.
"""

from dataclasses import dataclass

from parsel import Selector

# Case-insensitive attribute comparison in XPath 1.0
_LOWER = "translate({attr}, 'ABCDEFGHIJKLMNOPQRSTUVWXYZ', 'abcdefghijklmnopqrstuvwxyz')"

SCHEMA_MARKERS = ("application/ld+json", "schema.org")


@dataclass(frozen=True)
class HtmlSignals:
    """Signals derived from one page's markup."""

    images_count: int = 0
    images_without_alt: int = 0
    canonical_url: str | None = None
    meta_robots: str | None = None
    has_schema_markup: bool = False
    html_size_bytes: int = 0

    @property
    def has_canonical(self) -> bool:
        return bool(self.canonical_url)


def _first_non_empty(values: list[str]) -> str | None:
    for value in values:
        value = value.strip()
        if value:
            return value
    return None


def extract_signals(html: str) -> HtmlSignals:
    """
    Compute image, canonical, robots and structured-data signals.

    Args:
        html: Raw markup (may be empty)

    Returns:
        HtmlSignals for the page
    """
    if not html:
        return HtmlSignals()

    selector = Selector(text=html)
    rel = _LOWER.format(attr="@rel")
    name = _LOWER.format(attr="@name")

    images = selector.xpath("//img")
    images_without_alt = selector.xpath("//img[not(@alt)]")
    canonical = _first_non_empty(
        selector.xpath(f"//link[{rel}='canonical']/@href").getall()
    )
    robots = _first_non_empty(
        selector.xpath(f"//meta[{name}='robots']/@content").getall()
    )

    return HtmlSignals(
        images_count=len(images),
        images_without_alt=len(images_without_alt),
        canonical_url=canonical,
        meta_robots=robots,
        has_schema_markup=any(marker in html for marker in SCHEMA_MARKERS),
        html_size_bytes=len(html.encode("utf-8")),
    )


def extract_headings(html: str) -> dict[str, str]:
    """
    Read title, meta description and first H1 from markup.

    Used as a fallback when the fetch service's metadata omits them.
    Missing values are returned as empty strings.
    """
    if not html:
        return {"title": "", "description": "", "h1": ""}

    selector = Selector(text=html)
    name = _LOWER.format(attr="@name")
    title = selector.xpath("normalize-space(//title)").get() or ""
    description = _first_non_empty(
        selector.xpath(f"//meta[{name}='description']/@content").getall()
    )
    h1 = selector.xpath("normalize-space((//h1)[1])").get() or ""
    return {"title": title, "description": description or "", "h1": h1}


def count_words(text: str | None) -> int:
    """Whitespace-tokenized word count."""
    return len(text.split()) if text else 0


def extract_links(html: str) -> list[str]:
    """
    Anchor hrefs in document order.

    Used when the fetch service response carries no ``links`` list.
    """
    if not html:
        return []
    selector = Selector(text=html)
    return [href.strip() for href in selector.xpath("//a/@href").getall() if href.strip()]
