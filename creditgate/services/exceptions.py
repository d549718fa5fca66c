"""Domain-specific exceptions."""


class ServiceError(Exception):
    pass


class UserNotFound(ServiceError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found.")
        self.user_id = user_id


class QuotaExceeded(ServiceError):
    def __init__(self, message: str, window: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.window = window


class InvalidCost(ServiceError, ValueError):
    pass


class UnknownTool(ServiceError):
    def __init__(self, tool_type: str) -> None:
        super().__init__(f"Unknown tool: {tool_type}")
        self.tool_type = tool_type


class LedgerWriteFailure(ServiceError):
    pass


class TransientLedgerFailure(LedgerWriteFailure):
    """Connection-level storage error worth retrying."""
