"""Host a peer service on its own event loop thread for synchronous callers."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

from network.peer_service import PeerService

logger = logging.getLogger("mw.peer")

T = TypeVar("T")


class PeerServiceThread:
    """Runs ``PeerService`` on a private event loop in a daemon thread."""

    def __init__(self, service: PeerService) -> None:
        self.service = service
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="mw-peer-loop", daemon=True)

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()
        self.loop.close()

    def call(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run a coroutine on the service loop and wait for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def start(self) -> bool:
        self._thread.start()
        return self.call(self.service.start())

    def connect(self, host: str, port: int) -> bool:
        return self.call(self.service.connect(host, port)) is not None

    def describe_peers(self) -> list[dict[str, Any]]:
        async def _describe() -> list[dict[str, Any]]:
            return self.service.describe_peers()

        return self.call(_describe())

    def stop(self) -> None:
        if not self._thread.is_alive():
            return
        try:
            self.call(self.service.stop())
        finally:
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._thread.join()
        logger.info("Peer service stopped")
