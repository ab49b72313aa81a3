"""Error types raised by the search core and its HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(slots=True, frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class ChatSearchError(Exception):
    """Base class for errors surfaced by the chat search service."""


class InvalidArgumentError(ChatSearchError):
    """One or more request parameters failed validation."""

    def __init__(self, errors: Sequence[FieldError]) -> None:
        self.errors = list(errors)
        summary = "; ".join(f"{item.field}: {item.message}" for item in self.errors)
        super().__init__(summary or "invalid arguments")


class StoreUnavailableError(ChatSearchError):
    """The chat store failed or timed out; callers may retry."""

    retryable = True


class UnauthenticatedError(ChatSearchError):
    """No acting user could be resolved for the request."""
