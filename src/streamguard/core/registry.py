from __future__ import annotations

from typing import Iterator

from streamguard.utils.logging import get_logger

from .http_client import EntityStream, ResponseContext


logger = get_logger(__name__)


class StreamRegistry:
    """
    Records the entity stream of every response a client receives,
    in arrival order. Register one fresh instance per client.
    """

    def __init__(self) -> None:
        self._handles: list[EntityStream] = []

    def on_response_received(self, context: ResponseContext) -> None:
        self._handles.append(context.entity_stream)
        logger.debug("registered stream #%d for %s %s", len(self._handles) - 1, context.method, context.url)

    @property
    def handles(self) -> tuple[EntityStream, ...]:
        return tuple(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[EntityStream]:
        return iter(tuple(self._handles))
