# core/lookups.py

"""
LOOKUP HELPERS

Fetch-or-raise for UUID-keyed models. A malformed id is treated the same as
an unknown id (NotFound) so callers never see ORM-level errors.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError

from core.exceptions import NotFound


def get_or_not_found(
    queryset,
    pk,
    *,
    label: str,
    for_update: bool = False,
    alive_only: bool = False,
):
    """
    Return queryset.get(pk=pk) or raise NotFound.

    alive_only=True additionally rejects soft-deleted rows (deleted_at set).
    for_update=True takes a row lock (select_for_update) for the rest of the
    surrounding transaction.
    """
    model = queryset.model
    qs = queryset.select_for_update() if for_update else queryset
    if alive_only:
        qs = qs.filter(deleted_at__isnull=True)

    if pk is None or str(pk).strip() == "":
        raise NotFound(f"{label} not found", details={"id": None})

    try:
        return qs.get(pk=pk)
    except (model.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(f"{label} not found", details={"id": str(pk)})
