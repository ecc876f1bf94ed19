import json

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from loguru import logger

from app.api.dependencies import get_rate_provider, get_relay_hub
from app.services.currency.provider import RateProvider
from app.services.currency.relay import RateViewer, RelayHub

router = APIRouter()


@router.websocket("/ws/currency")
async def currency_websocket(
    websocket: WebSocket,
    provider: RateProvider = Depends(get_rate_provider),
    hub: RelayHub = Depends(get_relay_hub),
):
    """
    Live exchange rates.

    The server pushes rates on connect and then periodically.

    Message types from client:
    - change_base: {"type": "change_base", "currency": "EUR"}
    - ping: {"type": "ping"}

    Message types from server:
    - exchange_rates: {"type": "exchange_rates", "data": {...}, "base": "USD", "date": "..."}
    - error: {"type": "error", "message": "..."}
    - pong: response to ping
    """
    await websocket.accept()
    logger.info("Client connected to currency websocket")

    async with RateViewer(websocket, provider, hub) as viewer:
        try:
            while True:
                data = await websocket.receive_text()

                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await viewer.send({"type": "error", "message": "Invalid JSON message"})
                    continue

                message_type = message.get("type") if isinstance(message, dict) else None

                if message_type == "change_base" and message.get("currency"):
                    await viewer.change_base(str(message["currency"]))

                elif message_type == "ping":
                    await viewer.send({"type": "pong"})

                else:
                    await viewer.send({
                        "type": "error",
                        "message": f"Unknown message type: {message_type}"
                    })

        except WebSocketDisconnect:
            logger.info("Client disconnected from currency websocket")
