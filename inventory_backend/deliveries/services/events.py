# deliveries/services/events.py

"""
DELIVERY EVENT SINK

Called by the transfer workflow inside its own transaction.

Rules:
- No linked delivery -> nothing to do
- The event is written inside a savepoint; a failure is logged and rolled
  back to the savepoint so the stock operation itself still commits
- Events therefore commit iff the stock transition commits (at most once
  per committed transition)
"""

from __future__ import annotations

import logging

from django.db import DatabaseError, transaction

from deliveries.models import Delivery, DeliveryEvent

logger = logging.getLogger(__name__)


def record_transfer_event(transfer, *, type: str, message: str, meta: dict | None = None):
    delivery = Delivery.objects.filter(transfer_id=transfer.id).only("id", "status").first()
    if delivery is None:
        return None

    try:
        with transaction.atomic():
            return DeliveryEvent.objects.create(
                delivery=delivery,
                type=type,
                status=delivery.status,
                message=message,
                meta=meta,
            )
    except DatabaseError:
        logger.exception(
            "Failed to record delivery event",
            extra={
                "delivery_id": str(delivery.id),
                "transfer_id": str(transfer.id),
                "event_type": type,
            },
        )
        return None
