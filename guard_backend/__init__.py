"""
Backend package: Flask HTTP API over guard_core.

Exposes codes, account management and confirmations as JSON so a
frontend (or curl) can drive the companion.
"""

from .app import create_app

__all__ = ['create_app']
