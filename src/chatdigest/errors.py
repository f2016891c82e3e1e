"""Exception taxonomy for report generation.

Every failure carries enough context (chat id, route, page index, attempt
count) to be diagnosed from the message alone.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chatdigest.messaging.models import Route


class ChatDigestError(Exception):
    """Base class for all chatdigest errors."""


class ConfigError(ChatDigestError):
    """Configuration is missing or invalid, or report parameters are bad."""


class UpstreamHTTPError(ChatDigestError):
    """Non-2xx response from the messaging API."""

    def __init__(self, status: int, method: str, path: str, message: str = "") -> None:
        self.status = status
        self.method = method
        self.path = path
        detail = f": {message}" if message else ""
        super().__init__(f"{method} {path} returned HTTP {status}{detail}")

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class LoginFailure(ChatDigestError):
    """Could not obtain an access token from the messaging API."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"RingCentral login failed: {cause}")


class ResolutionFailure(ChatDigestError):
    """Neither route variant could be confirmed for a conversation."""

    def __init__(self, chat_id: str, cause: BaseException) -> None:
        self.chat_id = chat_id
        self.cause = cause
        super().__init__(f"Failed to determine endpoint for chat {chat_id}: {cause}")


class FetchFailure(ChatDigestError):
    """A page request failed; results gathered so far are discarded."""

    def __init__(self, route: "Route", page_index: int, cause: BaseException) -> None:
        self.route = route
        self.page_index = page_index
        self.cause = cause
        super().__init__(
            f"Failed to fetch page {page_index} from {route.path} "
            f"(chat {route.chat_id}): {cause}"
        )


class RangeIncomplete(UserWarning):
    """Page cap reached before the date window closed.

    Never raised. Used as the warning category when a fetch returns partial
    results.
    """


class OverloadFailure(ChatDigestError):
    """The summarization service stayed overloaded for every attempt."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Gemini API is overloaded after {attempts} attempts.")


class UpstreamFailure(ChatDigestError):
    """Non-transient summarization error; never retried."""

    def __init__(self, cause: BaseException, status: int | None = None) -> None:
        self.cause = cause
        self.status = status
        super().__init__(f"Gemini API error: {cause}")


class ReportNotFound(ChatDigestError):
    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"Report not found: {filename}")
