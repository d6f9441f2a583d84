"""Compliance mapping table."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from secgate.db.base import Base, TimestampMixin


class ComplianceMappingRow(Base, TimestampMixin):
    __tablename__ = "compliance_mappings"

    mapping_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    finding_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("findings.finding_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    framework: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "finding_id", "framework", "category",
            name="uq_compliance_mapping_finding_framework_category",
        ),
    )
