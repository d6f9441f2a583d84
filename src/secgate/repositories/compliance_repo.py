"""Compliance mapping repository."""

from sqlalchemy import select

from secgate.db.models.compliance import ComplianceMappingRow
from secgate.models.compliance import ComplianceCategoryMapping
from secgate.repositories.base import BaseRepository
from secgate.services.id_generator import generate_id


class ComplianceMappingRepository(BaseRepository[ComplianceMappingRow]):
    model = ComplianceMappingRow
    id_column = "mapping_id"
    id_prefix = "map_"

    async def list_for_findings(self, finding_ids: list[str]) -> list[ComplianceCategoryMapping]:
        if not finding_ids:
            return []
        stmt = select(ComplianceMappingRow).where(ComplianceMappingRow.finding_id.in_(finding_ids))
        result = await self.session.execute(stmt)
        return [
            ComplianceCategoryMapping(
                finding_id=row.finding_id, framework=row.framework, category=row.category
            )
            for row in result.scalars().all()
        ]

    async def add_many(self, mappings: list[ComplianceCategoryMapping]) -> int:
        """Insert mappings, skipping any (finding, framework, category) already present.

        Returns the number of rows inserted.
        """
        unique: dict[tuple[str, str, str], ComplianceCategoryMapping] = {}
        for mapping in mappings:
            unique.setdefault((mapping.finding_id, str(mapping.framework), mapping.category), mapping)
        if not unique:
            return 0

        finding_ids = sorted({key[0] for key in unique})
        stmt = select(
            ComplianceMappingRow.finding_id,
            ComplianceMappingRow.framework,
            ComplianceMappingRow.category,
        ).where(ComplianceMappingRow.finding_id.in_(finding_ids))
        existing = {tuple(row) for row in (await self.session.execute(stmt)).all()}

        inserted = 0
        for key, mapping in unique.items():
            if key in existing:
                continue
            self.session.add(ComplianceMappingRow(
                mapping_id=generate_id(self.id_prefix),
                finding_id=mapping.finding_id,
                framework=str(mapping.framework),
                category=mapping.category,
            ))
            inserted += 1
        await self.session.flush()
        return inserted
