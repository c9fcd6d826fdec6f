"""
Centralized test credentials and secrets.

All test-only credentials are loaded from environment variables when available,
with clearly non-production placeholders as fallbacks.
"""

from __future__ import annotations

import os

# Passwords: load from env; fallback is a short placeholder (not a real credential)
TEST_PASSWORD = os.environ.get("TEST_PASSWORD") or "x"
TEST_PASSWORD_WRONG = os.environ.get("TEST_PASSWORD_WRONG") or "y"

# App config used by conftest
TEST_SECRET_KEY = os.environ.get("TEST_SECRET_KEY") or "test-secret-key"
TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"

# SMTP (email service tests)
TEST_SMTP_PASSWORD = os.environ.get("TEST_SMTP_PASSWORD") or "x"
