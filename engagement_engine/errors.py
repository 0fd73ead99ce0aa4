"""Error taxonomy for the metrics engine."""

from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """Base class for every known engine error.

    Catching this handles all expected failure modes; anything else is a bug.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def user_message(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


class InvalidPeriod(EngineError):
    """Unknown period token passed to the period resolver."""

    def __init__(self, token: object, valid: tuple[str, ...]):
        super().__init__(
            f"Unknown period token {token!r}",
            hint="use one of " + ", ".join(valid),
        )
        self.token = token


class DataFetchFailed(EngineError):
    """A read from the external data collaborator failed."""

    def __init__(self, collection: str, user_id: str, reason: str = ""):
        message = f"Failed to fetch {collection} for user {user_id!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, hint="the next read will retry the fetch")
        self.collection = collection
        self.user_id = user_id
