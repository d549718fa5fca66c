"""ORM models."""

from creditgate.db.models.core import UsageLogEntry, UserAccount

__all__ = ["UsageLogEntry", "UserAccount"]
