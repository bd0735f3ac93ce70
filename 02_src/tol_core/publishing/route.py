"""APIRoute subclass that runs response hooks after the handler."""

from typing import Callable

from fastapi.routing import APIRoute
from starlette.requests import Request
from starlette.responses import Response

from ..logging_config import get_logger
from .context import PublishContext, pending_hooks

logger = get_logger(__name__)


class EventPublishingRoute(APIRoute):
    """Route class for routers whose endpoints carry ResponseHook dependencies.

    Hooks run after the endpoint returned and before the response is sent.
    An endpoint that raises never reaches them. The broadcaster is looked
    up on ``request.app.state.broadcaster``.
    """

    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()

        async def publishing_route_handler(request: Request) -> Response:
            # cache the body so projections can still read it afterwards
            await request.body()
            response = await original_route_handler(request)

            hooks = pending_hooks(request)
            if not hooks:
                return response

            broadcaster = getattr(request.app.state, "broadcaster", None)
            if broadcaster is None:
                logger.warning("No broadcaster on app state; dropping %d hook(s)", len(hooks))
                return response

            ctx = await PublishContext.from_request(request, response.status_code)
            for hook in hooks:
                hook.after_handler(broadcaster, ctx, response)
            return response

        return publishing_route_handler
