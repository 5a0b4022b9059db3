"""
Per-page SEO rule checks.

Rules run in a fixed order; each one is independent and yields at most one
finding per page. A finding names the score category it deducts from and
how many points.
"""

from dataclasses import dataclass
from typing import Protocol

from app.analysis.scoring import round_half_up
from app.models.audit import IssueCategory, IssueSeverity

TITLE_MIN_LENGTH = 30
TITLE_MAX_LENGTH = 60
META_DESCRIPTION_MIN_LENGTH = 120
META_DESCRIPTION_MAX_LENGTH = 160
THIN_CONTENT_WORDS = 300
SLOW_LOAD_MS = 3000
VERY_SLOW_LOAD_MS = 5000
MAX_LOAD_TIME_DEDUCTION = 15
MAX_ALT_DEDUCTION = 5
MANY_IMAGES_WITHOUT_ALT = 3
MIN_INTERNAL_LINKS = 3
LARGE_HTML_BYTES = 100000
EXCERPT_LENGTH = 50


class PageFacts(Protocol):
    """Attributes of a crawled page that the rules read."""

    title: str | None
    meta_description: str | None
    h1: str | None
    word_count: int
    images_count: int
    images_without_alt: int
    status_code: int
    has_canonical: bool
    has_schema_markup: bool
    load_time_ms: int | None
    internal_links_count: int
    html_size_bytes: int | None


@dataclass(frozen=True)
class Finding:
    """One issue detected on one page, with its score deduction."""

    issue_type: str
    category: IssueCategory
    severity: IssueSeverity
    title: str
    description: str
    recommendation: str
    score_category: str
    deduction: int
    affected_element: str | None = None


def _excerpt(text: str) -> str:
    return text[:EXCERPT_LENGTH] + "..."


def check_title(page: PageFacts) -> Finding | None:
    title = page.title or ""
    if not title:
        return Finding(
            issue_type="missing_title",
            category=IssueCategory.ON_PAGE,
            severity=IssueSeverity.CRITICAL,
            title="Missing Title Tag",
            description="This page does not have a title tag, which is critical for SEO.",
            recommendation=(
                "Add a unique, descriptive title tag between 30-60 characters "
                "that includes your primary keyword."
            ),
            score_category="onpage",
            deduction=5,
        )
    if len(title) < TITLE_MIN_LENGTH:
        return Finding(
            issue_type="short_title",
            category=IssueCategory.ON_PAGE,
            severity=IssueSeverity.MEDIUM,
            title="Title Tag Too Short",
            description=(
                f"Title is only {len(title)} characters. "
                "Optimal length is 30-60 characters."
            ),
            recommendation=(
                "Expand your title tag to include more descriptive keywords "
                "and reach 30-60 characters."
            ),
            score_category="onpage",
            deduction=2,
            affected_element=title,
        )
    if len(title) > TITLE_MAX_LENGTH:
        return Finding(
            issue_type="long_title",
            category=IssueCategory.ON_PAGE,
            severity=IssueSeverity.LOW,
            title="Title Tag Too Long",
            description=(
                f"Title is {len(title)} characters. May be truncated in search results."
            ),
            recommendation=(
                "Shorten your title tag to 30-60 characters to prevent truncation in SERPs."
            ),
            score_category="onpage",
            deduction=1,
            affected_element=title,
        )
    return None


def check_meta_description(page: PageFacts) -> Finding | None:
    description = page.meta_description or ""
    if not description:
        return Finding(
            issue_type="missing_meta_description",
            category=IssueCategory.ON_PAGE,
            severity=IssueSeverity.HIGH,
            title="Missing Meta Description",
            description=(
                "This page lacks a meta description, reducing click-through "
                "rates from search results."
            ),
            recommendation=(
                "Add a compelling meta description between 120-160 characters "
                "that summarizes the page content."
            ),
            score_category="onpage",
            deduction=4,
        )
    if len(description) < META_DESCRIPTION_MIN_LENGTH:
        return Finding(
            issue_type="short_meta_description",
            category=IssueCategory.ON_PAGE,
            severity=IssueSeverity.MEDIUM,
            title="Meta Description Too Short",
            description=f"Meta description is only {len(description)} characters.",
            recommendation="Expand to 120-160 characters to maximize visibility in search results.",
            score_category="onpage",
            deduction=2,
            affected_element=_excerpt(description),
        )
    if len(description) > META_DESCRIPTION_MAX_LENGTH:
        return Finding(
            issue_type="long_meta_description",
            category=IssueCategory.ON_PAGE,
            severity=IssueSeverity.LOW,
            title="Meta Description Too Long",
            description=(
                f"Meta description is {len(description)} characters and may be truncated."
            ),
            recommendation="Shorten to 120-160 characters to prevent truncation.",
            score_category="onpage",
            deduction=1,
            affected_element=_excerpt(description),
        )
    return None


def check_h1(page: PageFacts) -> Finding | None:
    if page.h1:
        return None
    return Finding(
        issue_type="missing_h1",
        category=IssueCategory.ON_PAGE,
        severity=IssueSeverity.HIGH,
        title="Missing H1 Tag",
        description=(
            "Page is missing an H1 heading, which is important for content "
            "hierarchy and SEO."
        ),
        recommendation="Add a single, descriptive H1 tag that includes your primary keyword.",
        score_category="onpage",
        deduction=4,
    )


def check_content_length(page: PageFacts) -> Finding | None:
    if page.word_count >= THIN_CONTENT_WORDS:
        return None
    return Finding(
        issue_type="thin_content",
        category=IssueCategory.CONTENT,
        severity=IssueSeverity.MEDIUM,
        title="Thin Content",
        description=(
            f"Page has only {page.word_count} words. "
            "Search engines prefer comprehensive content."
        ),
        recommendation="Expand content to at least 300 words with valuable, relevant information.",
        score_category="content",
        deduction=3,
    )


def check_image_alt(page: PageFacts) -> Finding | None:
    missing = page.images_without_alt
    if missing <= 0:
        return None
    return Finding(
        issue_type="images_without_alt",
        category=IssueCategory.ON_PAGE,
        severity=IssueSeverity.HIGH if missing > MANY_IMAGES_WITHOUT_ALT else IssueSeverity.MEDIUM,
        title="Images Missing Alt Text",
        description=f"{missing} of {page.images_count} images lack alt attributes.",
        recommendation=(
            "Add descriptive alt text to all images for accessibility and image SEO. "
            "Include keywords naturally."
        ),
        score_category="onpage",
        deduction=min(missing, MAX_ALT_DEDUCTION),
    )


def check_status_code(page: PageFacts) -> Finding | None:
    code = page.status_code
    if code == 200:
        return None
    if code == 404:
        recommendation = (
            "Fix or remove broken links pointing to this page. "
            "Implement proper redirects if the page moved."
        )
    else:
        recommendation = "Investigate and resolve server errors. Check server logs for details."
    return Finding(
        issue_type="http_error",
        category=IssueCategory.TECHNICAL,
        severity=IssueSeverity.CRITICAL,
        title=f"HTTP {code} Error",
        description=f"Page returned a {code} status code.",
        recommendation=recommendation,
        score_category="technical",
        deduction=10,
    )


def check_canonical(page: PageFacts, total_pages: int) -> Finding | None:
    # Single-page crawls cannot have duplicate content
    if page.has_canonical or total_pages <= 1:
        return None
    return Finding(
        issue_type="missing_canonical",
        category=IssueCategory.TECHNICAL,
        severity=IssueSeverity.MEDIUM,
        title="Missing Canonical Tag",
        description="Page lacks a canonical tag, which can lead to duplicate content issues.",
        recommendation="Add a canonical tag pointing to the preferred version of this URL.",
        score_category="technical",
        deduction=2,
    )


def check_schema(page: PageFacts) -> Finding | None:
    if page.has_schema_markup:
        return None
    return Finding(
        issue_type="missing_schema",
        category=IssueCategory.TECHNICAL,
        severity=IssueSeverity.LOW,
        title="No Structured Data",
        description=(
            "Page lacks schema markup (JSON-LD), missing opportunities for rich snippets."
        ),
        recommendation=(
            "Implement appropriate schema.org markup (Article, Product, Organization, etc.) "
            "for enhanced SERP display."
        ),
        score_category="technical",
        deduction=1,
    )


def check_load_time(page: PageFacts) -> Finding | None:
    load_time = page.load_time_ms
    if not load_time or load_time <= SLOW_LOAD_MS:
        return None
    return Finding(
        issue_type="slow_load_time",
        category=IssueCategory.PERFORMANCE,
        severity=IssueSeverity.HIGH if load_time > VERY_SLOW_LOAD_MS else IssueSeverity.MEDIUM,
        title="Slow Page Load Time",
        description=(
            f"Page took {round_half_up(load_time / 1000)}s to load. "
            "Target is under 3 seconds."
        ),
        recommendation=(
            "Optimize images, minify CSS/JS, enable compression, use CDN, "
            "and implement browser caching."
        ),
        score_category="performance",
        deduction=min(load_time // 1000, MAX_LOAD_TIME_DEDUCTION),
    )


def check_internal_links(page: PageFacts) -> Finding | None:
    if page.internal_links_count >= MIN_INTERNAL_LINKS:
        return None
    return Finding(
        issue_type="low_internal_links",
        category=IssueCategory.ON_PAGE,
        severity=IssueSeverity.LOW,
        title="Few Internal Links",
        description=f"Page has only {page.internal_links_count} internal links.",
        recommendation=(
            "Add more contextual internal links to improve site navigation "
            "and distribute link equity."
        ),
        score_category="onpage",
        deduction=1,
    )


def check_html_size(page: PageFacts) -> Finding | None:
    size = page.html_size_bytes
    if not size or size <= LARGE_HTML_BYTES:
        return None
    return Finding(
        issue_type="large_html",
        category=IssueCategory.PERFORMANCE,
        severity=IssueSeverity.LOW,
        title="Large HTML Size",
        description=f"HTML size is {round_half_up(size / 1024)}KB. Consider optimization.",
        recommendation=(
            "Minify HTML, remove unnecessary code, and consider lazy loading "
            "for below-fold content."
        ),
        score_category="performance",
        deduction=1,
    )


def evaluate_page(page: PageFacts, total_pages: int) -> list[Finding]:
    """
    Run every rule against one page, in order.

    Args:
        page: Crawled page (or anything exposing the same attributes)
        total_pages: Number of pages in the crawl (gates the canonical rule)

    Returns:
        Findings in rule order; empty for a clean page
    """
    checks = (
        check_title(page),
        check_meta_description(page),
        check_h1(page),
        check_content_length(page),
        check_image_alt(page),
        check_status_code(page),
        check_canonical(page, total_pages),
        check_schema(page),
        check_load_time(page),
        check_internal_links(page),
        check_html_size(page),
    )
    return [finding for finding in checks if finding is not None]
