"""Error taxonomy shared by clients, aggregator and routes."""
from dataclasses import dataclass
from typing import List, Optional


class MediaHubError(Exception):
    """Base class for errors raised by Media Hub."""


class ConfigIncomplete(MediaHubError):
    """A client was requested or built without its host or credential."""

    def __init__(self, service: str, missing: Optional[List[str]] = None):
        self.service = service
        self.missing = missing or []
        detail = f" (missing: {', '.join(self.missing)})" if self.missing else ""
        super().__init__(f"{service} configuration is incomplete{detail}")


class RequestFailed(MediaHubError):
    """Non-2xx answer or transport failure from an external service."""

    def __init__(self, service: str, message: str, status: Optional[int] = None):
        self.service = service
        self.status = status
        self.message = message
        prefix = f"{service} API error"
        if status is not None:
            prefix += f" {status}"
        super().__init__(f"{prefix}: {message}")


@dataclass
class SourceFailure:
    """One source that failed while aggregating from several."""
    source: str
    message: str
    status: Optional[int] = None

    @classmethod
    def from_exception(cls, source: str, exc: Exception) -> "SourceFailure":
        if isinstance(exc, RequestFailed):
            return cls(source=source, message=exc.message, status=exc.status)
        return cls(source=source, message=str(exc) or exc.__class__.__name__)
