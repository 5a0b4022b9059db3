"""
Project model.

A Project groups the crawls and audit scores of one website for one profile.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.crawl_job import CrawlJob
    from app.models.profile import Profile


class Project(Base):
    """
    Represents a website tracked by a profile.

    Attributes:
        id: UUID primary key
        owner_id: Profile that owns this project (charged for its crawls)
        name: Human-readable project name
        domain: Website domain as entered by the user
    """

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="UUID primary key",
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Profile that owns this project",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Human-readable project name",
    )

    domain: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
        comment="Website domain as entered by the user",
    )

    owner: Mapped["Profile"] = relationship("Profile", back_populates="projects")

    crawl_jobs: Mapped[list["CrawlJob"]] = relationship(
        "CrawlJob",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __init__(self, **kwargs):
        if "id" not in kwargs:
            kwargs["id"] = uuid.uuid4()
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<Project {self.id} '{self.name}' ({self.domain})>"
