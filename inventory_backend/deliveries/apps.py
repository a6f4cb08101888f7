# deliveries/apps.py

"""
DELIVERIES APP CONFIG

Delivery notes (BL) linked one-to-one to a stock transfer, plus their
append-only event log. The transfer workflow writes TRANSFER_* events here.

Trip planning / driver dispatch is owned by another service.
"""

from django.apps import AppConfig


class DeliveriesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "deliveries"
    verbose_name = "Deliveries"
