import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from gateway.services.realtime_fanout import RealtimeFanout, get_realtime_fanout

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/realtime")
async def realtime_feed(
    websocket: WebSocket, fanout: RealtimeFanout = Depends(get_realtime_fanout)
):
    await websocket.accept()
    fanout.add(websocket)

    try:
        while True:
            # Inbound frames carry nothing; reading detects the close.
            await websocket.receive_text()
    except WebSocketDisconnect as e:
        logger.debug(f"Real-time subscriber closed the connection (code {e.code})")
    finally:
        fanout.remove(websocket)
