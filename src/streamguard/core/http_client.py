from __future__ import annotations

import io
import time
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Union

import requests

from streamguard.utils.logging import get_logger

from .errors import UnexpectedStatusError
from .status import StatusFamily


_DEFAULT_UA = "streamguard/0.1 (+stream release checks)"

logger = get_logger(__name__)

BodyStream = Union["EntityStream", io.BytesIO]


class EntityStream(io.RawIOBase):
    """
    Readable view over one response body.

    Closing it releases the transport connection. Reads after close raise
    ValueError instead of returning end-of-data.
    """

    def __init__(self, response: requests.Response) -> None:
        super().__init__()
        self._response = response

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed entity stream")
        data = self._response.raw.read(len(buffer), decode_content=True)
        n = len(data)
        buffer[:n] = data
        return n

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._response.close()
        finally:
            super().close()


@dataclass(frozen=True)
class ResponseContext:
    method: str
    url: str
    status_code: int
    headers: dict[str, str]
    entity_stream: EntityStream


class ResponseListener(Protocol):
    def on_response_received(self, context: ResponseContext) -> None:
        ...


class HttpResponse:
    """
    Envelope around one response: status, headers and the entity.
    Closing the envelope closes its entity stream.
    """

    def __init__(
        self,
        *,
        url: str,
        status_code: int,
        headers: dict[str, str],
        response_time_ms: int | None,
        stream: EntityStream,
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.headers = headers
        self.response_time_ms = response_time_ms
        self._stream = stream
        self._body: bytes | None = None

    @property
    def status_family(self) -> StatusFamily:
        return StatusFamily.of(self.status_code)

    @property
    def ok(self) -> bool:
        return self.status_family is StatusFamily.SUCCESSFUL

    @property
    def entity(self) -> object:
        return self.stream()

    def stream(self) -> BodyStream:
        if self._body is not None:
            return io.BytesIO(self._body)
        return self._stream

    def read_bytes(self) -> bytes:
        if self._body is None:
            try:
                self._body = self._stream.readall()
            finally:
                self._stream.close()
        return self._body

    def text(self) -> str:
        body = self.read_bytes()
        if not body:
            return ""
        return body.decode("utf-8", errors="ignore")

    def content_type(self) -> str:
        return (self.headers.get("Content-Type") or self.headers.get("content-type") or "").strip()

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> HttpResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        self.close()
        return False


def _headers_to_dict(h: Mapping[str, Any] | None) -> dict[str, str]:
    out: dict[str, str] = {}
    if not h:
        return out
    for k, v in h.items():
        out[str(k)] = str(v)
    return out


class HttpClient:
    """
    Streaming HTTP client:
    - bodies are never preloaded; each response owns one EntityStream
    - registered listeners see every response before the caller does
    - no retries
    """

    def __init__(
        self,
        timeout: float = 3.0,
        verify_tls: bool = True,
        allow_redirects: bool = False,
        headers: Mapping[str, str] | None = None,
        proxy: str | None = None,
    ) -> None:
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.allow_redirects = allow_redirects

        self._session = requests.Session()
        base_headers = {"User-Agent": _DEFAULT_UA, "Accept": "*/*"}
        if headers:
            base_headers.update(dict(headers))
        self._headers = base_headers

        self._proxies: dict[str, str] | None = None
        if proxy:
            self._proxies = {"http": proxy, "https": proxy}

        self._listeners: list[ResponseListener] = []

    def register(self, listener: ResponseListener) -> HttpClient:
        self._listeners.append(listener)
        return self

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        self.close()
        return False

    def request(
        self,
        method: str,
        url: str,
        *,
        timeout: float | None = None,
        allow_redirects: bool | None = None,
        verify_tls: bool | None = None,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        data: Any | None = None,
        json_data: Any | None = None,
    ) -> HttpResponse:
        method = (method or "GET").upper().strip()
        timeout = float(timeout if timeout is not None else self.timeout)
        allow_redirects = bool(self.allow_redirects if allow_redirects is None else allow_redirects)
        verify_tls = bool(self.verify_tls if verify_tls is None else verify_tls)

        merged_headers = dict(self._headers)
        if headers:
            merged_headers.update(dict(headers))

        start = time.perf_counter()
        r = self._session.request(
            method=method,
            url=url,
            timeout=timeout,
            allow_redirects=allow_redirects,
            verify=verify_tls,
            headers=merged_headers,
            proxies=self._proxies,
            stream=True,
            params=dict(params) if params else None,
            data=data,
            json=json_data,
        )
        elapsed_ms = int(round((time.perf_counter() - start) * 1000))

        stream = EntityStream(r)
        response = HttpResponse(
            url=str(getattr(r, "url", None) or url),
            status_code=int(getattr(r, "status_code", 0) or 0),
            headers=_headers_to_dict(getattr(r, "headers", {})),
            response_time_ms=elapsed_ms,
            stream=stream,
        )
        logger.debug("%s %s -> %s (%d ms)", method, response.url, response.status_code, elapsed_ms)

        context = ResponseContext(
            method=method,
            url=response.url,
            status_code=response.status_code,
            headers=response.headers,
            entity_stream=stream,
        )
        try:
            for listener in self._listeners:
                listener.on_response_received(context)
        except Exception:
            response.close()
            raise
        return response

    def get(self, url: str, **kwargs: Any) -> HttpResponse:
        return self.request("GET", url, **kwargs)

    def get_stream(self, url: str, **kwargs: Any) -> BodyStream:
        """
        GET with the body already coerced to a stream.
        Non-2xx responses are closed and raise UnexpectedStatusError.
        """
        response = self.get(url, **kwargs)
        if not response.ok:
            response.close()
            raise UnexpectedStatusError(response.url, response.status_code)
        return response.stream()
