"""Services for TrendLedger."""

from trendledger.services.metadata_store import MetadataStore
from trendledger.services.metadata_updater import MetadataUpdater
from trendledger.services.points_ledger import PointsLedger
from trendledger.services.withdrawal import WithdrawalCoordinator

__all__ = [
    "MetadataStore",
    "MetadataUpdater",
    "PointsLedger",
    "WithdrawalCoordinator",
]
