"""HTTP surface built from the merged endpoint table."""

from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, FastAPI

from billing_core.logging import get_logger
from billing_core.plugins.types import Endpoint

from .errors import setup_error_handlers

logger = get_logger("api")


def create_billing_router(
    endpoints: Mapping[str, Endpoint],
    base_path: str = "/api/billing",
    title: str = "Billing API",
) -> FastAPI:
    """Create a FastAPI application exposing plugin endpoints.

    Args:
        endpoints: Endpoint name -> endpoint, already merged (last wins)
        base_path: Prefix for every endpoint path
        title: OpenAPI title

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title=title)
    setup_error_handlers(app)

    router = APIRouter()
    for name, endpoint in endpoints.items():
        router.add_api_route(
            endpoint.path,
            endpoint.handler,
            methods=[endpoint.method],
            name=name,
        )
        logger.debug(
            "Endpoint mounted",
            endpoint=name,
            method=endpoint.method,
            path=f"{base_path.rstrip('/')}{endpoint.path}",
        )

    app.include_router(router, prefix=base_path.rstrip("/"))
    return app


class BillingAPI:
    """Request handler delegate exposed as ``billing.api``.

    ``handler`` is the ASGI application; mount it in a host app or serve it
    directly. The FastAPI app is built on first access.
    """

    def __init__(self, endpoints: Mapping[str, Endpoint], base_path: str = "/api/billing"):
        self._endpoints = dict(endpoints)
        self._base_path = base_path
        self._app: FastAPI | None = None

    @property
    def endpoints(self) -> dict[str, Endpoint]:
        return dict(self._endpoints)

    @property
    def base_path(self) -> str:
        return self._base_path

    @property
    def handler(self) -> FastAPI:
        """ASGI callable serving every endpoint."""
        if self._app is None:
            self._app = create_billing_router(self._endpoints, self._base_path)
        return self._app

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        await self.handler(scope, receive, send)
