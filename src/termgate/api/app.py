"""FastAPI application factory for the terminal gateway."""

from __future__ import annotations

import functools
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from termgate.api.middleware import setup_cors
from termgate.api.routes import ports_router, router
from termgate.config import Settings, get_settings
from termgate.gateway.hub import SessionHub
from termgate.gateway.policy import OriginPolicy
from termgate.transport.registry import RemoteShellManager, SerialPortManager
from termgate.transport.remote_shell import RemoteShellTransport

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Close every session and transport on shutdown."""
    try:
        yield
    finally:
        hub: SessionHub = app.state.hub
        await hub.close_all()
        await app.state.serial_ports.close_all()
        await app.state.remote_shells.close_all()
        logger.info("termgate shut down")


def create_app(
    settings: Settings | None = None,
    *,
    serial_ports: SerialPortManager | None = None,
    remote_shells: RemoteShellManager | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    if serial_ports is None:
        serial_ports = SerialPortManager()
    if remote_shells is None:
        remote_shells = RemoteShellManager(
            functools.partial(
                RemoteShellTransport.connect,
                host_key_policy=settings.remote_host_key_policy,
                known_hosts_file=settings.remote_known_hosts_file,
            )
        )

    app = FastAPI(title="termgate", lifespan=lifespan)
    app.state.settings = settings
    app.state.serial_ports = serial_ports
    app.state.remote_shells = remote_shells
    app.state.hub = SessionHub(serial_ports, remote_shells, settings)
    app.state.origin_policy = OriginPolicy.from_settings(settings)
    setup_cors(app, settings.origins)
    app.include_router(router)
    app.include_router(ports_router)
    return app
