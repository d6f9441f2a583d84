"""Repository (scan source) repository."""

from sqlalchemy import or_, select

from secgate.db.models.repository import RepositoryRow
from secgate.repositories.base import BaseRepository


class RepositoryRepository(BaseRepository[RepositoryRow]):
    model = RepositoryRow
    id_column = "repository_id"
    id_prefix = "repo_"

    async def get_by_name_or_url(self, ref: str) -> RepositoryRow | None:
        stmt = select(RepositoryRow).where(
            or_(RepositoryRow.name == ref, RepositoryRow.url == ref)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_or_create(self, name: str, url: str, default_branch: str = "main") -> RepositoryRow:
        """Find a repository by name, registering it on first sight."""
        existing = await self.get_by_name_or_url(name)
        if existing:
            return existing
        return await self.create(
            name=name,
            url=url,
            default_branch=default_branch,
        )
