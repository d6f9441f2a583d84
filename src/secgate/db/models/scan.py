"""Scan table, one row per orchestrator run."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from secgate.db.base import Base, TimestampMixin


class ScanRow(Base, TimestampMixin):
    __tablename__ = "scans"

    scan_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    repository_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("repositories.repository_id"),
        nullable=False,
        index=True,
    )
    branch: Mapped[str | None] = mapped_column(String(200), nullable=True)
    commit_sha: Mapped[str | None] = mapped_column(String(100), nullable=True)
    triggered_by: Mapped[str] = mapped_column(String(100), nullable=False, default="manual")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="running", index=True)
    gate_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    gate_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_findings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    critical_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    high_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    medium_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    info_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    by_tool: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
