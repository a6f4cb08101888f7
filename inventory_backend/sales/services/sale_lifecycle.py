# sales/services/sale_lifecycle.py

"""
SALE STATUS RULES

    DRAFT -> POSTED | CANCELLED
    POSTED, CANCELLED are final

Pure checks only. Stock effects of POSTED live in sale_posting.
"""

from core.exceptions import Conflict
from sales.models import Sale


class InvalidSaleTransitionError(Conflict):
    """Raised when a sale status change is not allowed."""


FINAL_STATES = frozenset({Sale.STATUS_POSTED, Sale.STATUS_CANCELLED})

NEXT_STATES = {
    Sale.STATUS_DRAFT: frozenset({Sale.STATUS_POSTED, Sale.STATUS_CANCELLED}),
}


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in FINAL_STATES:
        return False
    return to_status in NEXT_STATES.get(from_status, frozenset())


def validate_transition(*, sale: Sale, target_status: str) -> None:
    if can_transition(from_status=sale.status, to_status=target_status):
        return

    raise InvalidSaleTransitionError(
        f"Sale {sale.number} cannot go from {sale.status} to {target_status}",
        details={
            "sale_id": str(sale.id),
            "from": sale.status,
            "to": target_status,
            "allowed": sorted(NEXT_STATES.get(sale.status, frozenset())),
        },
    )
