"""Repository table (a scannable source)."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from secgate.db.base import Base, TimestampMixin


class RepositoryRow(Base, TimestampMixin):
    __tablename__ = "repositories"

    repository_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False, unique=True)
    url: Mapped[str] = mapped_column(String(2000), nullable=False)
    default_branch: Mapped[str] = mapped_column(String(200), nullable=False, default="main")
