"""This module re-exports the ORM models the auth handler reads and writes.
"""

from database.models import Account, User, UserCredential  # noqa: F401

__all__ = ["Account", "User", "UserCredential"]
