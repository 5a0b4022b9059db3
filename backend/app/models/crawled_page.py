"""
Crawled page and link models.

A CrawledPage is written once per unique URL per crawl and never updated.
Its outbound links are stored as InternalLink / ExternalLink child rows.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, JSONType

if TYPE_CHECKING:
    from app.models.crawl_job import CrawlJob


class CrawledPage(Base):
    """
    Represents one fetched URL within a crawl.

    Attributes:
        id: UUID primary key
        crawl_job_id: Parent crawl (unique together with url)
        url: Exact URL as taken from the frontier
        status_code: HTTP status reported by the fetch service
        title: Page title
        meta_description: Meta description content
        h1: First H1 heading
        content: Plain-text (markdown) content
        word_count: Whitespace-separated token count of content
        load_time_ms: Wall-clock fetch duration
        internal_links_count: Same-origin or root-relative outbound links
        external_links_count: Other absolute outbound links
        images_count: Number of <img> elements
        images_without_alt: <img> elements without an alt attribute
        html_size_bytes: Length of the raw markup
        has_canonical: Whether a rel=canonical link with href is present
        canonical_url: Canonical href
        meta_robots: Content of <meta name="robots">
        has_schema_markup: Whether structured data markers are present
        fetch_metadata: Metadata dictionary returned by the fetch service
    """

    __tablename__ = "crawled_pages"

    __table_args__ = (
        UniqueConstraint("crawl_job_id", "url", name="uq_crawled_pages_crawl_job_url"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="UUID primary key",
    )

    crawl_job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("crawl_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Crawl that fetched this page",
    )

    url: Mapped[str] = mapped_column(String(2048), nullable=False, comment="Fetched URL")

    status_code: Mapped[int] = mapped_column(
        Integer, nullable=False, default=200, comment="HTTP status code"
    )

    title: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Page title")

    meta_description: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Meta description content"
    )

    h1: Mapped[str | None] = mapped_column(Text, nullable=True, comment="First H1 heading")

    content: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Plain-text content"
    )

    word_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Whitespace-tokenized word count"
    )

    load_time_ms: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Fetch duration in milliseconds"
    )

    internal_links_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Internal outbound links"
    )

    external_links_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="External outbound links"
    )

    images_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Number of <img> elements"
    )

    images_without_alt: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="<img> elements lacking alt"
    )

    html_size_bytes: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Length of the raw markup"
    )

    has_canonical: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, comment="rel=canonical present"
    )

    canonical_url: Mapped[str | None] = mapped_column(
        String(2048), nullable=True, comment="Canonical href"
    )

    meta_robots: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Meta robots directive"
    )

    has_schema_markup: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, comment="Structured data present"
    )

    fetch_metadata: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Metadata returned by the fetch service",
    )

    crawl_job: Mapped["CrawlJob"] = relationship("CrawlJob", back_populates="pages")

    internal_links: Mapped[list["InternalLink"]] = relationship(
        "InternalLink",
        back_populates="source_page",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    external_links: Mapped[list["ExternalLink"]] = relationship(
        "ExternalLink",
        back_populates="source_page",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __init__(self, **kwargs):
        if "id" not in kwargs:
            kwargs["id"] = uuid.uuid4()
        kwargs.setdefault("fetch_metadata", {})
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<CrawledPage {self.url} ({self.status_code})>"


class _LinkMixin:
    """Columns shared by internal and external link rows."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    target_url: Mapped[str] = mapped_column(
        String(2048), nullable=False, comment="Link target as found in the page"
    )

    is_broken: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, comment="Target known to be broken"
    )


class InternalLink(_LinkMixin, Base):
    """Outbound link that stays on the crawled site."""

    __tablename__ = "internal_links"

    crawl_job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crawl_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )

    source_page_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crawled_pages.id", ondelete="CASCADE"), nullable=False, index=True
    )

    source_page: Mapped["CrawledPage"] = relationship(
        "CrawledPage", back_populates="internal_links"
    )


class ExternalLink(_LinkMixin, Base):
    """Outbound link to another site."""

    __tablename__ = "external_links"

    crawl_job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crawl_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )

    source_page_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crawled_pages.id", ondelete="CASCADE"), nullable=False, index=True
    )

    source_page: Mapped["CrawledPage"] = relationship(
        "CrawledPage", back_populates="external_links"
    )
