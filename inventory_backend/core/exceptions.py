# core/exceptions.py

"""
STOCK ENGINE SERVICE ERRORS

Centralized domain errors raised by every service in the project.

Each error carries:
- code:    stable machine identifier (callers switch on it)
- status:  HTTP status hint for the API gateway that maps errors to responses
- details: structured context (ids, quantities) for logs and clients

Services validate BEFORE mutating; any of these raised inside a
transaction.atomic block rolls back every write of the operation.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base exception for all stock engine failures."""

    code = "INVENTORY_ERROR"
    status = 500

    def __init__(self, message: str = "", *, details: dict | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = dict(details or {})

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFound(InventoryError):
    """Raised when a referenced entity is absent or soft-deleted."""

    code = "NOT_FOUND"
    status = 404


class ValidationError(InventoryError):
    """Raised when caller input is malformed or violates a business rule."""

    code = "VALIDATION_ERROR"
    status = 400


class InvalidMovement(ValidationError):
    """Raised when a movement's kind/sign or warehouse policy is violated."""

    code = "INVALID_MOVEMENT"


class InsufficientStock(InventoryError):
    """Raised when a movement would drive a balance below zero."""

    code = "INSUFFICIENT_STOCK"
    status = 409

    def __init__(
        self,
        message: str = "",
        *,
        available: int,
        requested: int,
        product_id=None,
        warehouse_id=None,
        details: dict | None = None,
    ):
        self.available = int(available)
        self.requested = int(requested)
        self.product_id = product_id
        self.warehouse_id = warehouse_id

        merged = {
            "available": self.available,
            "requested": self.requested,
        }
        if product_id is not None:
            merged["product_id"] = str(product_id)
        if warehouse_id is not None:
            merged["warehouse_id"] = str(warehouse_id)
        merged.update(details or {})

        super().__init__(message or "Insufficient stock", details=merged)


class Conflict(InventoryError):
    """Raised when an operation is invalid in the entity's current state."""

    code = "CONFLICT"
    status = 409


class ConfigurationError(InventoryError):
    """Raised when required system data (e.g. the TRANSIT warehouse) is missing."""

    code = "CONFIGURATION_ERROR"
    status = 500
