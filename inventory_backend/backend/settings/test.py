# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS

- In-memory SQLite (fast, isolated)
- Fast password hashing
- Quiet logging (only errors reach the console)
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING

DEBUG = False
TESTING = True

SECRET_KEY = "test-insecure-key"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

TRANSIT_WAREHOUSE_CODE = "TRANSIT"
DOCUMENT_NUMBER_MAX_ATTEMPTS = 5

for _logger in LOGGING["loggers"].values():
    _logger["level"] = "ERROR"
