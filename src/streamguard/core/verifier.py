from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from streamguard.utils.logging import get_logger

from .errors import StreamNotReleasedError


logger = get_logger(__name__)


@dataclass
class ProbeResult:
    index: int
    released: bool
    detail: str


def _probe(handle: Any) -> tuple[bool, str]:
    try:
        data = handle.read(1)
    except (ValueError, OSError) as e:
        return True, f"{type(e).__name__}: {e}"
    return False, f"read returned {data!r}"


def probe(handle: Any) -> bool:
    """
    Attempt one read on a stream handle.

    True means the read was rejected with a closed-resource error. Any
    returned value, including end-of-data, means the handle is still open.
    """
    released, _ = _probe(handle)
    return released


def assert_released(handle: Any) -> None:
    if not probe(handle):
        raise StreamNotReleasedError("stream is not closed")


def verify_all(handles: Iterable[Any]) -> list[ProbeResult]:
    results: list[ProbeResult] = []
    for i, handle in enumerate(handles):
        released, detail = _probe(handle)
        if not released:
            logger.warning("stream #%d is not closed (%s)", i, detail)
        results.append(ProbeResult(index=i, released=released, detail=detail))
    return results


def assert_all_released(handles: Iterable[Any]) -> None:
    open_indexes = [r.index for r in verify_all(handles) if not r.released]
    if open_indexes:
        raise StreamNotReleasedError(
            f"stream is not closed: {len(open_indexes)} open handle(s) at index {open_indexes}"
        )
