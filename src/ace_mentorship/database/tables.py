"""
Relational schema: identities, pairings and pairing mentee associations.

Pure schema only. Family documents live in the document store, so `family_id` columns are
plain strings without a foreign key.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return uuid4().hex


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )


class UserRow(Base, TimestampMixin):
    """
    Local identity record.

    - external_uid: identity provider subject (null until first sign-in for imported users)
    - role: ADMIN | MENTOR | MENTEE
    """

    __tablename__ = "users"
    __table_args__ = (Index("ix_users_family_id", "family_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    external_uid: Mapped[Optional[str]] = mapped_column(String(128), unique=True, nullable=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="MENTEE")
    family_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)


class PairingRow(Base, TimestampMixin):
    """One mentor plus one or two mentees, optionally inside a family."""

    __tablename__ = "pairings"
    __table_args__ = (Index("ix_pairings_family_id", "family_id"),)

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    family_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    mentor_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    mentor: Mapped[UserRow] = relationship(UserRow, foreign_keys=[mentor_id])
    mentee_links: Mapped[List["PairingMenteeRow"]] = relationship(
        back_populates="pairing",
        cascade="all, delete-orphan",
        order_by="PairingMenteeRow.position",
    )

    @property
    def mentee_ids(self) -> List[str]:
        return [link.mentee_id for link in self.mentee_links]


class PairingMenteeRow(Base):
    __tablename__ = "pairing_mentees"

    pairing_id: Mapped[str] = mapped_column(ForeignKey("pairings.id", ondelete="CASCADE"), primary_key=True)
    mentee_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    position: Mapped[int] = mapped_column(default=0, nullable=False)

    pairing: Mapped[PairingRow] = relationship(back_populates="mentee_links")
    mentee: Mapped[UserRow] = relationship(UserRow, foreign_keys=[mentee_id])
