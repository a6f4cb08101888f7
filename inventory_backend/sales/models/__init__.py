# sales/models/__init__.py

"""
SALES MODELS PACKAGE EXPORTS

Purpose:
- Central export surface for sales app models.
"""

from .sale import Sale
from .sale_line import SaleLine

__all__ = [
    "Sale",
    "SaleLine",
]
