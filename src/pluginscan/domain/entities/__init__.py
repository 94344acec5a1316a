"""Domain entities for plugin audits."""
from pluginscan.domain.entities.component import (
    REPORT_FIELDS,
    AllowEntry,
    ChecksumDiscrepancy,
    ComponentStatus,
    ComponentType,
    DiscrepancyReason,
    HiddenComponent,
    InstalledComponent,
    ReportRecord,
    allowed_slugs,
    derive_slug,
)

__all__ = [
    "REPORT_FIELDS",
    "AllowEntry",
    "ChecksumDiscrepancy",
    "ComponentStatus",
    "ComponentType",
    "DiscrepancyReason",
    "HiddenComponent",
    "InstalledComponent",
    "ReportRecord",
    "allowed_slugs",
    "derive_slug",
]
