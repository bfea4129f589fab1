"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from download_gateway.services.gateway import DownloadGateway


def get_gateway(request: Request) -> DownloadGateway:
    """Return the gateway wired into the running application."""
    return request.app.state.gateway


# Type alias for gateway dependency
GatewayDep = Annotated[DownloadGateway, Depends(get_gateway)]
