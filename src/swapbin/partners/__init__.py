"""Exchange partner connectors.

Each connector turns one partner's paginated transaction endpoint into
canonical transactions plus a resumption cursor.
"""

from .base import (
    PaginationEngine,
    PartnerConnector,
    PartnerSyncResult,
    SchemaViolation,
    SyncOutcome,
    SyncState,
)
from .changenow import ChangeNowConnector
from .godex import GodexConnector

PARTNERS: dict[str, type[PartnerConnector]] = {
    ChangeNowConnector.partner_id: ChangeNowConnector,
    GodexConnector.partner_id: GodexConnector,
}


def get_connector_class(partner_id: str) -> type[PartnerConnector]:
    """Look up a connector class by partner id.

    Raises:
        KeyError: If no connector is registered under ``partner_id``
    """
    try:
        return PARTNERS[partner_id]
    except KeyError:
        raise KeyError(
            f"Unknown partner '{partner_id}'. Available: {', '.join(sorted(PARTNERS))}"
        ) from None


__all__ = [
    "PARTNERS",
    "ChangeNowConnector",
    "GodexConnector",
    "PaginationEngine",
    "PartnerConnector",
    "PartnerSyncResult",
    "SchemaViolation",
    "SyncOutcome",
    "SyncState",
    "get_connector_class",
]
