# fflogs/errors.py

from typing import List, Optional


class FFLogsError(Exception):
    """Base exception for FFLogs errors."""
    pass


class AuthError(FFLogsError):
    """Raised when the client-credentials exchange fails."""
    pass


class ApiError(FFLogsError):
    """Transport failure, non-2xx status or unparsable GraphQL response."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class QueryError(ApiError):
    """The GraphQL endpoint answered but rejected the query."""

    def __init__(self, messages: List[str], status: Optional[int] = None):
        super().__init__(f"GraphQL errors: {'; '.join(messages) or 'unknown'}", status=status)
        self.messages = messages


class PartialDataError(FFLogsError):
    """One aliased sub-query of a batch is missing or malformed."""
    pass
