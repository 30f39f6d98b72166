"""SQLModel table/entity definitions. Postgres 16+ only (JSONB)."""

from datetime import date, datetime, timezone

from sqlalchemy import Column, DateTime, Index, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

FINGERPRINT_INDEX_NAME = "ux_tree_submission_fingerprint"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TreeSubmission(SQLModel, table=True):
    """An accepted tree submission. Only accepted images are stored; fingerprint is unique."""

    __tablename__ = "tree_submission"
    __table_args__ = (
        Index(FINGERPRINT_INDEX_NAME, "fingerprint", unique=True),
        Index("ix_tree_submission_user_id", "user_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    fingerprint: str = Field(nullable=False, max_length=64)
    user_id: str = Field(nullable=False)
    user_email: str | None = Field(default=None)
    species: str | None = Field(default=None)
    planted_on: date | None = Field(default=None)
    latitude: float | None = Field(default=None)
    longitude: float | None = Field(default=None)
    image_url: str | None = Field(default=None)
    labels: list[str] | None = Field(default=None, sa_column=Column(JSONB))
    matched_keywords: list[str] | None = Field(default=None, sa_column=Column(JSONB))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("now()")),
    )
