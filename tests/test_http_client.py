import io

import pytest

from streamguard.core.errors import UnexpectedStatusError
from streamguard.core.http_client import HttpClient


class _FakeRaw:
    def __init__(self, data: bytes) -> None:
        self._buf = io.BytesIO(data)

    def read(self, amt=None, decode_content=None):
        self.decode_content = decode_content
        return self._buf.read(amt)


class _FakeResponse:
    def __init__(self, data: bytes, status_code: int = 200) -> None:
        self.status_code = status_code
        self.headers = {"Content-Type": "text/plain"}
        self.url = "http://example.test/foo"
        self.raw = _FakeRaw(data)
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def close(self) -> None:
        self.close_calls += 1


class _Recorder:
    def __init__(self, name: str, seen: list) -> None:
        self.name = name
        self.seen = seen

    def on_response_received(self, context) -> None:
        self.seen.append((self.name, context))


def _client_returning(monkeypatch, fake: _FakeResponse, calls: list | None = None) -> HttpClient:
    client = HttpClient(timeout=1.0, headers={"X-Test": "1"})

    def _fake_request(**kwargs):
        if calls is not None:
            calls.append(kwargs)
        return fake

    monkeypatch.setattr(client._session, "request", _fake_request)
    return client


def test_request_streams_and_merges_headers(monkeypatch):
    calls: list = []
    client = _client_returning(monkeypatch, _FakeResponse(b"abc"), calls)

    res = client.get("http://example.test/foo")
    client.close()

    assert res.ok is True
    assert res.status_code == 200
    assert res.content_type() == "text/plain"
    assert calls[0]["stream"] is True
    assert calls[0]["allow_redirects"] is False
    assert calls[0]["headers"]["X-Test"] == "1"
    assert "User-Agent" in calls[0]["headers"]


def test_listeners_see_the_same_stream_in_registration_order(monkeypatch):
    seen: list = []
    client = _client_returning(monkeypatch, _FakeResponse(b"abc"))
    client.register(_Recorder("first", seen)).register(_Recorder("second", seen))

    res = client.get("http://example.test/foo")

    assert [name for name, _ in seen] == ["first", "second"]
    assert seen[0][1].entity_stream is res.stream()
    assert seen[0][1].status_code == 200
    assert seen[0][1].method == "GET"


def test_closing_entity_stream_releases_response_once(monkeypatch):
    fake = _FakeResponse(b"abcdef")
    client = _client_returning(monkeypatch, fake)

    stream = client.get_stream("http://example.test/foo")
    assert stream.read(4) == b"abcd"
    stream.close()
    stream.close()

    assert fake.close_calls == 1
    with pytest.raises(ValueError, match="closed"):
        stream.read(1)


def test_closing_envelope_closes_stream(monkeypatch):
    fake = _FakeResponse(b"abc")
    client = _client_returning(monkeypatch, fake)

    with client.get("http://example.test/foo") as res:
        stream = res.stream()

    assert stream.closed is True
    assert fake.closed is True


def test_get_stream_rejects_non_2xx_and_closes(monkeypatch):
    fake = _FakeResponse(b"gone", status_code=410)
    client = _client_returning(monkeypatch, fake)

    with pytest.raises(UnexpectedStatusError) as exc:
        client.get_stream("http://example.test/foo")

    assert exc.value.status_code == 410
    assert fake.closed is True


def test_failing_listener_closes_response(monkeypatch):
    fake = _FakeResponse(b"abc")
    client = _client_returning(monkeypatch, fake)

    class _Broken:
        def on_response_received(self, context):
            raise RuntimeError("listener broke")

    client.register(_Broken())
    with pytest.raises(RuntimeError, match="listener broke"):
        client.get("http://example.test/foo")

    assert fake.closed is True


def test_entity_stream_reads_decoded_and_ends_with_empty_bytes(monkeypatch):
    fake = _FakeResponse(b"ab")
    client = _client_returning(monkeypatch, fake)

    stream = client.get_stream("http://example.test/foo")

    assert stream.read(8) == b"ab"
    assert stream.read(8) == b""
    assert fake.raw.decode_content is True
