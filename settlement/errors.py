from __future__ import annotations

from typing import Optional


class SettlementError(Exception):
    """Base class for every error raised by the settlement core."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SettlementError):
    """Bad input detected locally; no request has been sent."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class RequestError(SettlementError):
    """The server answered with a non-2xx status or ``success: false``."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(SettlementError):
    """Network failure, non-JSON body or a payload that cannot be trusted."""


class ActionInProgressError(SettlementError):
    """A request for the same action is still in flight."""
