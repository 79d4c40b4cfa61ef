"""
Services.

Business logic layer.
"""

from compensation.services.admin_service import CompensationAdminService
from compensation.services.base_service import BaseService, BatchResult, transaction
from compensation.services.ledger import LedgerService, Posting, PostResult, PostStatus
from compensation.services.runs import CommissionRunOrchestrator, RunPreview
from compensation.services.settings_service import SettingsService, VersionedSettings


__all__ = [
    # Base
    "BaseService",
    "BatchResult",
    "transaction",
    # Ledger
    "LedgerService",
    "Posting",
    "PostResult",
    "PostStatus",
    # Runs
    "CommissionRunOrchestrator",
    "RunPreview",
    # Settings
    "SettingsService",
    "VersionedSettings",
    # Facade
    "CompensationAdminService",
]
