"""Exception hierarchy for deal-board."""

from typing import Any


class DealBoardError(Exception):
    """Base exception for all deal-board errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


class FilterConfigError(DealBoardError):
    """Malformed investor filter configuration; rejected before it is stored."""

    def __init__(self, message: str, rule: str | None = None, context: dict[str, Any] | None = None):
        super().__init__(message, context)
        self.rule = rule


class InvalidTransitionError(DealBoardError):
    """Deal status change that the lifecycle does not allow."""


class DealNotFoundError(DealBoardError):
    """Deal id is not in the catalog."""


class SourceError(DealBoardError):
    """Deal source could not be read."""
