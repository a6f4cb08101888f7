# deliveries/services/deliveries.py

"""
DELIVERY NOTE SERVICES (stock-facing subset)

- create_delivery_for_transfer: open a DRAFT delivery backed by a transfer
- get_delivery / list_events: read the timeline written by the transfer workflow
"""

from __future__ import annotations

import logging

from django.db import transaction

from core.exceptions import Conflict
from core.lookups import get_or_not_found
from core.numbering import DIGITS, DocumentNumber, create_with_unique_number
from core.validation import clean_text
from deliveries.models import Delivery, DeliveryEvent
from stock.models import StockTransfer

logger = logging.getLogger(__name__)

default_delivery_number = DocumentNumber("DL", length=4, alphabet=DIGITS)


@transaction.atomic
def create_delivery_for_transfer(*, transfer_id, note: str | None = None, number_factory=None) -> Delivery:
    transfer = get_or_not_found(
        StockTransfer.objects.all(), transfer_id, label="Transfer", for_update=True
    )

    if Delivery.objects.filter(transfer=transfer).exists():
        raise Conflict(
            "Transfer already has a delivery",
            details={"transfer_id": str(transfer.id)},
        )

    delivery = create_with_unique_number(
        create=lambda number: Delivery.objects.create(
            number=number,
            transfer=transfer,
            note=clean_text(note),
        ),
        number_factory=number_factory or default_delivery_number,
        label="delivery",
    )

    logger.info(
        "Delivery created",
        extra={"delivery_id": str(delivery.id), "transfer_id": str(transfer.id)},
    )
    return delivery


def get_delivery(delivery_id) -> Delivery:
    return get_or_not_found(
        Delivery.objects.select_related("transfer"), delivery_id, label="Delivery"
    )


def list_events(delivery_id) -> list[DeliveryEvent]:
    delivery = get_delivery(delivery_id)
    return list(delivery.events.order_by("created_at"))
