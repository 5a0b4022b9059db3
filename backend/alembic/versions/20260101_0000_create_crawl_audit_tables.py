"""Create crawl-and-audit pipeline tables

Revision ID: a1c2e3f4a5b6
Revises:
Create Date: 2026-01-01 00:00:00.000000

Creates tables for:
- profiles, projects: credit balance and audited websites
- jobs: generic deferred work with status and progress
- crawl_jobs, crawled_pages, internal_links, external_links: crawl state
- page_issues, audit_scores, audit_recommendations: analysis results
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1c2e3f4a5b6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    "job_status": ("pending", "processing", "completed", "failed", "cancelled"),
    "crawl_status": ("crawling", "analyzing", "completed", "failed"),
    "issue_category": ("technical", "on-page", "content", "performance"),
    "issue_severity": ("critical", "high", "medium", "low"),
    "recommendation_priority": ("quick-win", "high-impact", "long-term"),
}


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    """
    Create pipeline tables.
    """
    # Create enum types using raw SQL (asyncpg has issues with ENUM.create() checkfirst=True)
    for name, values in ENUMS.items():
        labels = ", ".join(f"'{value}'" for value in values)
        op.execute(f"""
            DO $$
            BEGIN
                IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = '{name}') THEN
                    CREATE TYPE {name} AS ENUM ({labels});
                END IF;
            END
            $$;
        """)

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("plan_type", sa.String(50), nullable=False, server_default="free"),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "owner_id", sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("domain", sa.String(2048), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_projects_owner_id", "projects", ["owner_id"])

    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "profile_id", sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column("job_type", sa.String(50), nullable=False),
        sa.Column("status", _enum("job_status"), nullable=False, server_default="pending"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("input_data", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("result_data", postgresql.JSONB(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("celery_task_id", sa.String(255), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("progress >= 0", name="ck_jobs_progress_non_negative"),
        sa.CheckConstraint("total_items >= 0", name="ck_jobs_total_items_non_negative"),
    )
    op.create_index("ix_jobs_profile_id", "jobs", ["profile_id"])
    op.create_index("ix_jobs_job_type", "jobs", ["job_type"])
    op.create_index("ix_jobs_status", "jobs", ["status"])

    op.create_table(
        "crawl_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "project_id", sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("start_url", sa.String(2048), nullable=False),
        sa.Column("status", _enum("crawl_status"), nullable=False, server_default="crawling"),
        sa.Column("max_pages", sa.Integer(), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pages_crawled", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pages_discovered", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("credits_charged", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("celery_task_id", sa.String(255), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("max_pages > 0", name="ck_crawl_jobs_max_pages_positive"),
        sa.CheckConstraint(
            "progress >= 0 AND progress <= 100", name="ck_crawl_jobs_progress_range"
        ),
        sa.CheckConstraint(
            "pages_crawled <= max_pages", name="ck_crawl_jobs_pages_within_budget"
        ),
    )
    op.create_index("ix_crawl_jobs_project_id", "crawl_jobs", ["project_id"])
    op.create_index("ix_crawl_jobs_status", "crawl_jobs", ["status"])

    op.create_table(
        "crawled_pages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "crawl_job_id", sa.Uuid(),
            sa.ForeignKey("crawl_jobs.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False, server_default="200"),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("meta_description", sa.Text(), nullable=True),
        sa.Column("h1", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("word_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("load_time_ms", sa.Integer(), nullable=True),
        sa.Column("internal_links_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("external_links_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("images_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("images_without_alt", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("html_size_bytes", sa.Integer(), nullable=True),
        sa.Column("has_canonical", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("canonical_url", sa.String(2048), nullable=True),
        sa.Column("meta_robots", sa.String(255), nullable=True),
        sa.Column("has_schema_markup", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("fetch_metadata", postgresql.JSONB(), nullable=False, server_default="{}"),
        *_timestamps(),
        sa.UniqueConstraint("crawl_job_id", "url", name="uq_crawled_pages_crawl_job_url"),
    )
    op.create_index("ix_crawled_pages_crawl_job_id", "crawled_pages", ["crawl_job_id"])

    for table in ("internal_links", "external_links"):
        op.create_table(
            table,
            sa.Column("id", sa.Uuid(), primary_key=True),
            sa.Column(
                "crawl_job_id", sa.Uuid(),
                sa.ForeignKey("crawl_jobs.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column(
                "source_page_id", sa.Uuid(),
                sa.ForeignKey("crawled_pages.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("target_url", sa.String(2048), nullable=False),
            sa.Column("is_broken", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
        )
        op.create_index(f"ix_{table}_crawl_job_id", table, ["crawl_job_id"])
        op.create_index(f"ix_{table}_source_page_id", table, ["source_page_id"])

    op.create_table(
        "page_issues",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "crawl_job_id", sa.Uuid(),
            sa.ForeignKey("crawl_jobs.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "page_id", sa.Uuid(),
            sa.ForeignKey("crawled_pages.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("issue_type", sa.String(50), nullable=False),
        sa.Column("category", _enum("issue_category"), nullable=False),
        sa.Column("severity", _enum("issue_severity"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("recommendation", sa.Text(), nullable=False),
        sa.Column("affected_element", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_page_issues_crawl_job_id", "page_issues", ["crawl_job_id"])
    op.create_index("ix_page_issues_page_id", "page_issues", ["page_id"])
    op.create_index("ix_page_issues_issue_type", "page_issues", ["issue_type"])
    op.create_index("ix_page_issues_severity", "page_issues", ["severity"])

    op.create_table(
        "audit_scores",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "crawl_job_id", sa.Uuid(),
            sa.ForeignKey("crawl_jobs.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "project_id", sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("overall_score", sa.Integer(), nullable=False),
        sa.Column("technical_score", sa.Integer(), nullable=False),
        sa.Column("onpage_score", sa.Integer(), nullable=False),
        sa.Column("content_score", sa.Integer(), nullable=False),
        sa.Column("performance_score", sa.Integer(), nullable=False),
        sa.Column("mobile_score", sa.Integer(), nullable=False),
        sa.Column("total_issues", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("critical_issues", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("high_issues", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("medium_issues", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("low_issues", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pages_analyzed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("score_breakdown", postgresql.JSONB(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("crawl_job_id", name="uq_audit_scores_crawl_job"),
    )
    op.create_index("ix_audit_scores_project_id", "audit_scores", ["project_id"])

    op.create_table(
        "audit_recommendations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "crawl_job_id", sa.Uuid(),
            sa.ForeignKey("crawl_jobs.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "project_id", sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("priority", _enum("recommendation_priority"), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("impact", sa.String(20), nullable=False),
        sa.Column("effort", sa.String(20), nullable=False),
        sa.Column("affected_pages_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("estimated_improvement", sa.String(255), nullable=False),
        sa.Column("implementation_guide", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_audit_recommendations_crawl_job_id", "audit_recommendations", ["crawl_job_id"]
    )
    op.create_index(
        "ix_audit_recommendations_project_id", "audit_recommendations", ["project_id"]
    )


def downgrade() -> None:
    """
    Drop pipeline tables and enum types.
    """
    for table in (
        "audit_recommendations",
        "audit_scores",
        "page_issues",
        "external_links",
        "internal_links",
        "crawled_pages",
        "crawl_jobs",
        "jobs",
        "projects",
        "profiles",
    ):
        op.drop_table(table)

    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
