"""
Profile model for credit accounting.

A Profile is the caller identity that owns projects and jobs and carries the
credit balance consumed by crawls. Authentication itself is handled outside
this service; profiles are referenced by id only.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.project import Project


class Profile(Base):
    """
    Represents an account that owns projects and spends credits.

    Attributes:
        id: UUID primary key
        email: Contact email (optional)
        full_name: Display name (optional)
        plan_type: Subscription plan ("free", "pro", "agency", ...)
        credits: Remaining credit balance for metered plans
        created_at: Timestamp of creation (inherited)
        updated_at: Timestamp of last update (inherited)
    """

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="UUID primary key",
    )

    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Contact email",
    )

    full_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Display name",
    )

    plan_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="free",
        comment="Subscription plan; unmetered plans skip credit checks",
    )

    credits: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Remaining credit balance",
    )

    projects: Mapped[list["Project"]] = relationship(
        "Project",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    def __init__(self, **kwargs):
        """Initialize profile with default values for optional fields."""
        if "id" not in kwargs:
            kwargs["id"] = uuid.uuid4()
        kwargs.setdefault("plan_type", "free")
        kwargs.setdefault("credits", 0)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<Profile {self.id} plan={self.plan_type} credits={self.credits}>"
