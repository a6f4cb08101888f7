# core/numbering.py

"""
DOCUMENT NUMBERS

Human-readable, unique-per-table document numbers:

    <PREFIX>-<YYYYMMDD>-<RANDOM>

Examples:
- INVSTK-20260105-7K2QD   (stocktake)
- PO-20260105-A81XQZ      (purchase order)
- SA-20260105-4821        (sale)
- DL-20260105-1093        (delivery)

Rules:
- The date part comes from an injectable clock (timezone.now by default).
- Collisions are possible (random suffix); creation is retried a bounded
  number of times, each attempt inside its own savepoint so a unique
  violation does not poison the outer transaction.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from typing import Callable

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.exceptions import Conflict

logger = logging.getLogger(__name__)

ALPHANUMERIC = string.digits + string.ascii_uppercase
DIGITS = string.digits


@dataclass(frozen=True)
class DocumentNumber:
    """
    Callable number factory.

    number_factory = DocumentNumber("PO", length=6)
    number_factory()  ->  "PO-20260105-A81XQZ"
    """

    prefix: str
    length: int = 5
    alphabet: str = ALPHANUMERIC
    clock: Callable = timezone.now

    def __call__(self) -> str:
        now = self.clock()
        if timezone.is_aware(now):
            now = timezone.localtime(now)
        stamp = now.strftime("%Y%m%d")
        suffix = "".join(secrets.choice(self.alphabet) for _ in range(self.length))
        return f"{self.prefix}-{stamp}-{suffix}"


def _max_attempts() -> int:
    return max(1, int(getattr(settings, "DOCUMENT_NUMBER_MAX_ATTEMPTS", 5)))


def create_with_unique_number(
    *,
    create: Callable[[str], object],
    number_factory: Callable[[], str],
    label: str,
    max_attempts: int | None = None,
):
    """
    Call create(number) until it succeeds without a unique violation.

    Raises Conflict once the attempt budget is exhausted.
    """
    attempts = max_attempts or _max_attempts()

    for attempt in range(1, attempts + 1):
        number = number_factory()
        try:
            with transaction.atomic():
                return create(number)
        except IntegrityError:
            logger.warning(
                "Document number collision",
                extra={"label": label, "number": number, "attempt": attempt},
            )

    raise Conflict(
        f"Could not allocate a unique {label} number",
        details={"attempts": attempts},
    )
