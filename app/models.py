from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
class MembershipStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class MemberRole(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


# Roles above MEMBER are only meaningful for approved members.
PRIVILEGED_ROLES: frozenset[MemberRole] = frozenset({MemberRole.OWNER, MemberRole.ADMIN})


def is_valid_combination(status: MembershipStatus, role: MemberRole) -> bool:
    """Return True when *role* may be held with *status*."""
    return role not in PRIVILEGED_ROLES or status == MembershipStatus.APPROVED


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_superuser: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # lazy="noload" everywhere: services load what they need explicitly
    memberships: Mapped[List["PlanetMembership"]] = relationship(
        "PlanetMembership", back_populates="user", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Planet
# ---------------------------------------------------------------------------
class Planet(Base):
    __tablename__ = "planets"
    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        # Public planet listing (homepage)
        Index("ix_planets_published_created_at", "published", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # Written only through planet_service.set_owner / create_planet.
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    owner: Mapped["User"] = relationship("User", lazy="noload")
    members: Mapped[List["PlanetMembership"]] = relationship(
        "PlanetMembership", back_populates="planet", lazy="noload", passive_deletes=True
    )
    articles: Mapped[List["Article"]] = relationship(
        "Article", back_populates="planet", lazy="noload", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# PlanetMembership
# ---------------------------------------------------------------------------
class PlanetMembership(Base):
    __tablename__ = "planet_memberships"
    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("role = 'MEMBER' OR status = 'APPROVED'", name="role_status"),
        # Pending-application lookups per planet
        Index("ix_planet_memberships_planet_id_status", "planet_id", "status"),
    )

    # The composite primary key is the uniqueness guarantee for (planet, user).
    planet_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("planets.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    status: Mapped[MembershipStatus] = mapped_column(
        Enum(MembershipStatus, native_enum=False, length=16),
        default=MembershipStatus.PENDING,
        nullable=False,
    )
    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, native_enum=False, length=16),
        default=MemberRole.MEMBER,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    planet: Mapped["Planet"] = relationship("Planet", back_populates="members", lazy="noload")
    user: Mapped["User"] = relationship("User", back_populates="memberships", lazy="noload")


# ---------------------------------------------------------------------------
# PlanetBookmark
# ---------------------------------------------------------------------------
class PlanetBookmark(Base):
    __tablename__ = "planet_bookmarks"
    __mapper_args__ = {"eager_defaults": True}

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    planet_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("planets.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    planet: Mapped["Planet"] = relationship("Planet", lazy="noload")


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------
class Article(Base):
    __tablename__ = "articles"
    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        # Planet feed sorted by date
        Index("ix_articles_planet_id_created_at", "planet_id", "created_at"),
        Index("ix_articles_user_id_created_at", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    slug: Mapped[str] = mapped_column(String(350), unique=True, nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    planet_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("planets.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    planet: Mapped["Planet"] = relationship("Planet", back_populates="articles", lazy="noload")
    author: Mapped["User"] = relationship("User", lazy="noload")
