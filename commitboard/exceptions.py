"""
commitboard.exceptions — Error types raised by the dashboard core
==================================================================

External chat-platform failures are *not* exceptions: the resolver reports
them as :class:`~commitboard.services.discord_service.Unavailable`.  Only
failures that must abort a whole response are raised.
"""

from __future__ import annotations


class CommitboardError(Exception):
    """Base class for all Commitboard errors."""


class RowStoreError(CommitboardError):
    """A row-store query failed (bad SQL, database unavailable, …)."""

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


class ConfigError(CommitboardError):
    """``config.yaml`` contains a value that cannot be used."""
