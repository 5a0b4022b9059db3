"""
URL helpers for the crawl frontier.

URLs are compared as exact strings: no trailing-slash, case or fragment
normalization is applied beyond resolving root-relative links, so
``https://x.com/a`` and ``https://x.com/a/`` are distinct pages.
"""

from dataclasses import dataclass, field
from urllib.parse import urljoin, urlsplit

from app.core.exceptions import ValidationError


def normalize_domain(domain: str) -> str:
    """
    Turn user input into the absolute seed URL of a crawl.

    Args:
        domain: Bare domain ("example.com") or URL ("https://example.com")

    Returns:
        The input unchanged if it already starts with "http", otherwise
        the input prefixed with "https://"

    Raises:
        ValidationError: If the input is empty or has no host
    """
    domain = (domain or "").strip()
    if not domain:
        raise ValidationError("Domain is required")

    normalized = domain if domain.startswith("http") else f"https://{domain}"
    parts = urlsplit(normalized)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValidationError(f"Invalid domain: {domain}")
    return normalized


@dataclass
class ClassifiedLinks:
    """Outbound links of one page, split by destination."""

    internal: list[str] = field(default_factory=list)
    external: list[str] = field(default_factory=list)


def classify_links(links: list[str], origin: str) -> ClassifiedLinks:
    """
    Split outbound links into internal and external.

    A link is internal when it has the same scheme and host as the crawl's
    origin URL, or is root-relative ("/path"); root-relative links are
    resolved against the origin. Other absolute http(s) links are external,
    including lookalike hosts such as ``example.com.evil.net``. Everything
    else (fragments, mailto:, javascript:, relative paths) is ignored.

    Args:
        links: Links as reported by the fetch service
        origin: Normalized seed URL of the crawl

    Returns:
        ClassifiedLinks preserving the input order
    """
    origin_key = _origin_key(origin)
    classified = ClassifiedLinks()
    for link in links:
        if not isinstance(link, str) or not link:
            continue
        if link.startswith("//"):
            # Protocol-relative: resolve the scheme, then classify as absolute
            link = urljoin(origin, link)
        if link.startswith("/"):
            classified.internal.append(urljoin(origin, link))
        elif link.startswith(("http://", "https://")):
            if _origin_key(link) == origin_key:
                classified.internal.append(link)
            else:
                classified.external.append(link)
    return classified


def _origin_key(url: str) -> tuple[str, str]:
    """Scheme and lower-cased host[:port] of an absolute URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return ("", "")
    return (parts.scheme.lower(), parts.netloc.lower())
