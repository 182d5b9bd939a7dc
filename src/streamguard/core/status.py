from __future__ import annotations

from enum import Enum


class StatusFamily(str, Enum):
    INFORMATIONAL = "informational"
    SUCCESSFUL = "successful"
    REDIRECTION = "redirection"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    OTHER = "other"

    @classmethod
    def of(cls, status_code: int | None) -> StatusFamily:
        if status_code is None:
            return cls.OTHER
        return _FAMILIES.get(int(status_code) // 100, cls.OTHER)


_FAMILIES = {
    1: StatusFamily.INFORMATIONAL,
    2: StatusFamily.SUCCESSFUL,
    3: StatusFamily.REDIRECTION,
    4: StatusFamily.CLIENT_ERROR,
    5: StatusFamily.SERVER_ERROR,
}
