# core/apps.py

"""
CORE APP CONFIG

Shared building blocks for the stock engine apps:
- Domain error taxonomy (exceptions.py)
- Input coercion helpers (validation.py)
- Lookup helpers that raise NotFound (lookups.py)
- Human-readable document numbers (numbering.py)

No models live here.
"""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Core"
