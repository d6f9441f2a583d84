"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from secgate.db.models.repository import RepositoryRow
from secgate.db.models.scan import ScanRow
from secgate.db.models.finding import FindingRow
from secgate.db.models.compliance import ComplianceMappingRow
from secgate.db.models.schedule import ScheduledScanRow
from secgate.db.models.trend import ScanTrendRow

__all__ = [
    "RepositoryRow",
    "ScanRow",
    "FindingRow",
    "ComplianceMappingRow",
    "ScheduledScanRow",
    "ScanTrendRow",
]
