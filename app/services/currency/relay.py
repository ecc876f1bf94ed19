"""
Currency rate relay.

Every connected viewer gets its own RateViewer: an async context manager that
owns the viewer's refresh task. Leaving the context, for whatever reason,
cancels the task and waits for it, so no timer outlives its connection.
"""

import asyncio
from contextlib import suppress
from typing import Any, Optional, Protocol, Set

from loguru import logger
from starlette.websockets import WebSocketState

from app.core.config import settings
from app.services.currency.provider import RateProvider, RateProviderError


class ViewerSocket(Protocol):
    client_state: WebSocketState

    async def send_json(self, data: Any) -> None:
        ...


class RelayHub:
    """Keeps track of live viewers"""

    def __init__(self):
        self.viewers: Set["RateViewer"] = set()

    @property
    def active_count(self) -> int:
        return len(self.viewers)

    def register(self, viewer: "RateViewer"):
        self.viewers.add(viewer)
        logger.info(f"Currency viewer connected ({self.active_count} active)")

    def unregister(self, viewer: "RateViewer"):
        self.viewers.discard(viewer)
        logger.info(f"Currency viewer disconnected ({self.active_count} active)")


class RateViewer:
    def __init__(
        self,
        websocket: ViewerSocket,
        provider: RateProvider,
        hub: RelayHub,
        interval: Optional[float] = None,
        base: Optional[str] = None,
    ):
        self.websocket = websocket
        self.provider = provider
        self.hub = hub
        self.interval = interval if interval is not None else settings.rates_refresh_seconds
        self.base = (base or settings.default_base_currency).upper()
        self._task: Optional[asyncio.Task] = None
        self._send_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def __aenter__(self) -> "RateViewer":
        self.hub.register(self)
        try:
            await self.push()
        except BaseException:
            self.hub.unregister(self)
            raise
        self._task = asyncio.create_task(self._refresh_loop())
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self.hub.unregister(self)

    async def _refresh_loop(self):
        while True:
            await asyncio.sleep(self.interval)
            await self.push()

    async def change_base(self, currency: str):
        self.base = currency.strip().upper()
        await self.push()

    async def push(self):
        """Fetch rates for the current base and send them to the viewer"""
        base = self.base
        try:
            rates = await self.provider.fetch(base)
            message = {
                "type": "exchange_rates",
                "data": rates.rates,
                "base": base,
                "date": rates.date,
            }
        except RateProviderError:
            message = {"type": "error", "message": "Failed to fetch exchange rates"}
        await self.send(message)

    async def send(self, message: dict):
        if self.websocket.client_state != WebSocketState.CONNECTED:
            return
        async with self._send_lock:
            try:
                await self.websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error sending to currency websocket: {e}")


relay_hub = RelayHub()
