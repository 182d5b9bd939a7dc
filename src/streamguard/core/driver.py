from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, cast

from streamguard.utils.logging import get_logger

from .errors import UnexpectedStatusError
from .http_client import HttpClient, HttpResponse
from .registry import StreamRegistry
from .status import StatusFamily
from .verifier import verify_all


logger = get_logger(__name__)

DriveFn = Callable[..., int]


@dataclass
class RequestResult:
    response: HttpResponse

    @property
    def family(self) -> StatusFamily:
        return self.response.status_family

    @property
    def ok(self) -> bool:
        return self.family is StatusFamily.SUCCESSFUL

    def unwrap(self) -> HttpResponse:
        if not self.ok:
            self.response.close()
            raise UnexpectedStatusError(self.response.url, self.response.status_code)
        return self.response


def fetch(client: HttpClient, url: str) -> RequestResult:
    return RequestResult(response=client.get(url))


def drain(stream: Any, chunk_size: int = 1) -> int:
    total = 0
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            return total
        total += len(chunk)


def drain_direct_stream(client: HttpClient, url: str, chunk_size: int = 1) -> int:
    with client.get_stream(url) as stream:
        return drain(stream, chunk_size)


def drain_envelope(client: HttpClient, url: str, chunk_size: int = 1) -> int:
    with fetch(client, url).unwrap() as response:
        return drain(response.stream(), chunk_size)


def drain_envelope_close_stream(client: HttpClient, url: str, chunk_size: int = 1) -> int:
    response = fetch(client, url).unwrap()
    stream = response.stream()
    try:
        return drain(stream, chunk_size)
    finally:
        stream.close()


def drain_envelope_cast_entity(client: HttpClient, url: str, chunk_size: int = 1) -> int:
    response = fetch(client, url).unwrap()
    stream = cast(BinaryIO, response.entity)
    try:
        return drain(stream, chunk_size)
    finally:
        stream.close()


VARIANTS: dict[str, DriveFn] = {
    "direct-stream": drain_direct_stream,
    "envelope": drain_envelope,
    "envelope-close-stream": drain_envelope_close_stream,
    "envelope-cast-entity": drain_envelope_cast_entity,
}

VARIANT_DESCRIPTIONS: dict[str, str] = {
    "direct-stream": "body requested as a stream, stream closed",
    "envelope": "response envelope, status checked, envelope closed",
    "envelope-close-stream": "response envelope, status checked, stream closed",
    "envelope-cast-entity": "response envelope, entity cast to a stream, stream closed",
}


@dataclass
class VariantOutcome:
    variant: str
    ok: bool
    bytes_read: int | None
    handles: int
    released: int
    error: str | None = None
    open_handles: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "variant": self.variant,
            "ok": self.ok,
            "bytes_read": self.bytes_read,
            "handles": self.handles,
            "released": self.released,
            "open_handles": list(self.open_handles),
            "error": self.error,
        }


def run_variant(
    name: str,
    url: str,
    *,
    client_factory: Callable[[], HttpClient] = HttpClient,
    chunk_size: int = io.DEFAULT_BUFFER_SIZE,
) -> VariantOutcome:
    """
    Drive one variant with a fresh client and registry, then probe every
    recorded stream.

    A failed status check is reported in `error`; the probe still runs so a
    leak on the error path is caught as well. Transport errors propagate.
    """
    drive = VARIANTS[name]
    registry = StreamRegistry()
    bytes_read: int | None = None
    error: str | None = None

    logger.info("variant start: %s url=%s", name, url)
    with client_factory() as client:
        client.register(registry)
        try:
            bytes_read = drive(client, url, chunk_size)
        except UnexpectedStatusError as e:
            error = f"{type(e).__name__}: {e}"

        results = verify_all(registry)

    open_handles = [r.index for r in results if not r.released]
    outcome = VariantOutcome(
        variant=name,
        ok=error is None and not open_handles,
        bytes_read=bytes_read,
        handles=len(results),
        released=len(results) - len(open_handles),
        error=error,
        open_handles=open_handles,
    )
    logger.info(
        "variant done: %s ok=%s handles=%d released=%d",
        name,
        outcome.ok,
        outcome.handles,
        outcome.released,
    )
    return outcome
