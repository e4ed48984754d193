"""
Document completeness for a passport.

The score is an unweighted count over a fixed checklist of fifteen optional
fields spread across the three phases (6 procurement, 4 installation,
5 enrichment). Phases are not weighted; the installation group therefore
contributes 4/15 of the total.

Compliance is a separate flag owned by the enrichment transition and is
never derived from this score.
"""
from typing import Any, List, Optional, Sequence, Tuple

from app.models.dpp import EnrichmentData, InstallationData, ProcurementData


PROCUREMENT_CHECKS: Tuple[str, ...] = (
    "supplier_name",
    "supplier_address",
    "batch_number",
    "delivery_date",
    "delivery_location",
    "delivery_photo_cid",
)

INSTALLATION_CHECKS: Tuple[str, ...] = (
    "installation_location",
    "installation_date",
    "installer_name",
)

# Satisfied when either list is non-empty; counts as a single check.
INSTALLATION_MEDIA_CHECK: Tuple[str, ...] = (
    "installation_photo_cids",
    "commissioning_doc_cids",
)

ENRICHMENT_CHECKS: Tuple[str, ...] = (
    "epd_document_cid",
    "fire_rating_cert_cid",
    "technical_specs_cid",
    "warranty_doc_cid",
    "maintenance_manual_cid",
)

TOTAL_CHECKS = len(PROCUREMENT_CHECKS) + len(INSTALLATION_CHECKS) + 1 + len(ENRICHMENT_CHECKS)


def is_present(value: Any) -> bool:
    """A field counts when it holds something other than None, blank text or an empty list."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def round_half_up(value: float) -> int:
    return int(value + 0.5)


def _field_checks(data: Optional[Any], fields: Sequence[str]) -> List[bool]:
    if data is None:
        return [False] * len(fields)
    return [is_present(getattr(data, field, None)) for field in fields]


def completeness_checks(
    procurement: Optional[ProcurementData],
    installation: Optional[InstallationData],
    enrichment: Optional[EnrichmentData],
) -> List[bool]:
    """Ordered pass/fail results of the fifteen checks."""
    checks = _field_checks(procurement, PROCUREMENT_CHECKS)
    checks += _field_checks(installation, INSTALLATION_CHECKS)
    checks.append(any(_field_checks(installation, INSTALLATION_MEDIA_CHECK)))
    checks += _field_checks(enrichment, ENRICHMENT_CHECKS)
    return checks


def calculate_completeness(
    procurement: Optional[ProcurementData],
    installation: Optional[InstallationData],
    enrichment: Optional[EnrichmentData],
) -> int:
    checks = completeness_checks(procurement, installation, enrichment)
    return round_half_up(100 * sum(checks) / TOTAL_CHECKS)
