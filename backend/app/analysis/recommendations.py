"""
Recommendation synthesis.

Recommendations are templated from aggregated issue counts, not computed
from scores. Each template fires when its issue type is frequent enough
and cites the exact number of affected pages.
"""

from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from app.models.audit import RecommendationPriority


@dataclass(frozen=True)
class RecommendationTemplate:
    issue_type: str
    priority: RecommendationPriority
    category: str
    title: str
    description: str  # formatted with {count}
    impact: str
    effort: str
    estimated_improvement: str
    implementation_guide: str
    applies: Callable[[int, int], bool] = lambda count, total_pages: count > 0


@dataclass(frozen=True)
class RecommendationDraft:
    """A recommendation ready to be persisted."""

    priority: RecommendationPriority
    category: str
    title: str
    description: str
    impact: str
    effort: str
    affected_pages_count: int
    estimated_improvement: str
    implementation_guide: str


def _steps(*steps: str) -> str:
    return "\n".join(f"{number}. {step}" for number, step in enumerate(steps, start=1))


TEMPLATES: tuple[RecommendationTemplate, ...] = (
    RecommendationTemplate(
        issue_type="missing_title",
        priority=RecommendationPriority.QUICK_WIN,
        category="On-Page SEO",
        title="Add Missing Title Tags",
        description="{count} pages are missing title tags, severely impacting SEO performance.",
        impact="high",
        effort="low",
        estimated_improvement="+15-20% increase in organic visibility",
        implementation_guide=_steps(
            "Identify all pages without title tags",
            "Create unique, keyword-rich titles (30-60 chars)",
            "Include primary keyword near the beginning",
            "Make each title unique and descriptive",
        ),
    ),
    RecommendationTemplate(
        issue_type="missing_meta_description",
        priority=RecommendationPriority.QUICK_WIN,
        category="On-Page SEO",
        title="Add Meta Descriptions",
        description="{count} pages lack meta descriptions, reducing CTR from search results.",
        impact="high",
        effort="low",
        estimated_improvement="+10-15% increase in click-through rate",
        implementation_guide=_steps(
            "Write unique descriptions for each page (120-160 chars)",
            "Include primary keyword and call-to-action",
            "Make it compelling and relevant to page content",
            "Avoid duplicate descriptions across pages",
        ),
    ),
    RecommendationTemplate(
        issue_type="thin_content",
        priority=RecommendationPriority.HIGH_IMPACT,
        category="Content Quality",
        title="Expand Thin Content Pages",
        description="{count} pages have insufficient content (under 300 words).",
        impact="high",
        effort="medium",
        estimated_improvement="+25-30% improvement in rankings",
        implementation_guide=_steps(
            "Identify pages with under 300 words",
            "Research competitor content length",
            "Add valuable, relevant information",
            "Include related keywords naturally",
            "Consider adding FAQs, examples, or case studies",
        ),
    ),
    RecommendationTemplate(
        issue_type="images_without_alt",
        priority=RecommendationPriority.QUICK_WIN,
        category="On-Page SEO",
        title="Add Image Alt Text",
        description=(
            "Multiple images are missing alt attributes, impacting accessibility "
            "and image SEO."
        ),
        impact="medium",
        effort="low",
        estimated_improvement="+5-10% improvement in image search traffic",
        implementation_guide=_steps(
            "Audit all images without alt text",
            "Write descriptive alt text for each image",
            "Include relevant keywords naturally",
            "Keep alt text concise (under 125 characters)",
            "Describe what the image shows",
        ),
    ),
    RecommendationTemplate(
        issue_type="slow_load_time",
        priority=RecommendationPriority.HIGH_IMPACT,
        category="Performance",
        title="Improve Page Load Speed",
        description=(
            "{count} pages have slow load times, negatively impacting user "
            "experience and rankings."
        ),
        impact="high",
        effort="high",
        estimated_improvement="+20-25% improvement in Core Web Vitals score",
        implementation_guide=_steps(
            "Optimize and compress images",
            "Minify CSS, JavaScript, and HTML",
            "Enable browser caching",
            "Use a Content Delivery Network (CDN)",
            "Implement lazy loading for images",
            "Remove render-blocking resources",
            "Upgrade hosting if necessary",
        ),
    ),
    RecommendationTemplate(
        issue_type="missing_schema",
        priority=RecommendationPriority.LONG_TERM,
        category="Technical SEO",
        title="Implement Structured Data",
        description="Most pages lack schema markup, missing opportunities for rich snippets.",
        impact="medium",
        effort="medium",
        estimated_improvement="+15-20% chance of earning rich snippets",
        implementation_guide=_steps(
            "Choose appropriate schema types (Article, Product, FAQ, etc.)",
            "Implement JSON-LD structured data",
            "Test with Google's Rich Results Test",
            "Add to all relevant page types",
            "Monitor rich snippet appearances in GSC",
        ),
        # Only worth a site-wide project when most pages lack it
        applies=lambda count, total_pages: count > total_pages * 0.5,
    ),
)


def generate_recommendations(
    issue_types: Iterable[str], total_pages: int
) -> list[RecommendationDraft]:
    """
    Build recommendations from the issue types found in a crawl.

    Args:
        issue_types: issue_type of every finding (one entry per finding)
        total_pages: Number of pages analyzed

    Returns:
        Drafts in template order
    """
    counts = Counter(issue_types)
    drafts = []
    for template in TEMPLATES:
        count = counts.get(template.issue_type, 0)
        if not template.applies(count, total_pages):
            continue
        drafts.append(
            RecommendationDraft(
                priority=template.priority,
                category=template.category,
                title=template.title,
                description=template.description.format(count=count),
                impact=template.impact,
                effort=template.effort,
                affected_pages_count=count,
                estimated_improvement=template.estimated_improvement,
                implementation_guide=template.implementation_guide,
            )
        )
    return drafts
