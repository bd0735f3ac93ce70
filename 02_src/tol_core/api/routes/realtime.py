"""WebSocket route for real-time event delivery."""

from fastapi import APIRouter, WebSocket

from ...app import Application


def create_realtime_router(app: Application) -> APIRouter:
    """Create realtime router."""
    router = APIRouter(tags=["realtime"])

    @router.websocket("/ws")
    async def events_socket(websocket: WebSocket) -> None:
        """Authenticate, replay recent events, then relay new ones."""
        await app.hub.serve(websocket)

    return router
