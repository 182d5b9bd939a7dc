from __future__ import annotations

from .status import StatusFamily


class StreamGuardError(Exception):
    pass


class UnexpectedStatusError(StreamGuardError):
    """Raised when a response is not in the 2xx family and the caller needs a body."""

    def __init__(self, url: str, status_code: int | None) -> None:
        self.url = url
        self.status_code = status_code
        self.family = StatusFamily.of(status_code)
        super().__init__(f"unexpected status {status_code} ({self.family.value}) from {url}")


class StreamNotReleasedError(StreamGuardError, AssertionError):
    pass
