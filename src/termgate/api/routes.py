"""API routes: health, the session WebSocket and serial port management."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request, WebSocket
from pydantic import BaseModel, ValidationError

from termgate.gateway.connection import WebSocketConnection
from termgate.gateway.hub import SessionHub
from termgate.gateway.policy import OriginPolicy
from termgate.shared.exceptions import TransportError
from termgate.transport.models import SerialConfig
from termgate.transport.registry import SerialPortManager
from termgate.transport.serial_port import SerialTransport

logger = logging.getLogger(__name__)

router = APIRouter()
ports_router = APIRouter(prefix="/api/v1/ports", tags=["ports"])

POLICY_VIOLATION = 1008


class LineState(BaseModel):
    """Body of the DTR/RTS endpoints."""

    value: bool


def _serial_ports(request: Request) -> SerialPortManager:
    return request.app.state.serial_ports


def _open_port(request: Request, name: str) -> SerialTransport:
    transport = _serial_ports(request).get(name)
    if transport is None:
        raise HTTPException(status_code=404, detail=f"port {name} is not open")
    return transport


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        Status dictionary
    """
    return {"status": "ok", "app": "termgate"}


@router.websocket("/ws")
async def session_channel(websocket: WebSocket) -> None:
    """Upgrade to a session channel once the origin policy approves it."""
    policy: OriginPolicy = websocket.app.state.origin_policy
    if not policy.is_allowed(websocket.headers.get("origin")):
        await websocket.close(code=POLICY_VIOLATION)
        return

    await websocket.accept()
    hub: SessionHub = websocket.app.state.hub
    await hub.serve(WebSocketConnection(websocket))


@ports_router.get("")
async def list_ports(request: Request) -> dict[str, Any]:
    """List serial devices visible to the host."""
    try:
        ports = await _serial_ports(request).list_ports()
    except TransportError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"ports": [port.model_dump() for port in ports]}


@ports_router.get("/open")
async def list_open_ports(request: Request) -> dict[str, list[str]]:
    return {"ports": _serial_ports(request).list_open()}


@ports_router.post("/open")
async def open_port(request: Request, body: dict[str, Any] = Body(...)) -> dict[str, Any]:
    """Open (or take over) a serial device."""
    try:
        config = SerialConfig.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"invalid port configuration: {exc.errors()[0]['msg']}") from exc

    try:
        await _serial_ports(request).open(config)
    except TransportError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"message": f"port {config.port} opened", "config": config.model_dump(mode="json")}


@ports_router.post("/{name:path}/close")
async def close_port(name: str, request: Request) -> dict[str, str]:
    try:
        await _serial_ports(request).close(name)
    except TransportError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"message": f"port {name} closed"}


@ports_router.get("/{name:path}/status")
async def port_status(name: str, request: Request) -> dict[str, Any]:
    transport = _open_port(request, name)
    return {"name": name, "open": not transport.closed, "config": transport.config.model_dump(mode="json")}


@ports_router.post("/{name:path}/dtr")
async def set_dtr(name: str, state: LineState, request: Request) -> dict[str, Any]:
    """Assert or release DTR on an open port."""
    transport = _open_port(request, name)
    try:
        await transport.set_dtr(state.value)
    except TransportError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"name": name, "dtr": state.value}


@ports_router.post("/{name:path}/rts")
async def set_rts(name: str, state: LineState, request: Request) -> dict[str, Any]:
    """Assert or release RTS on an open port."""
    transport = _open_port(request, name)
    try:
        await transport.set_rts(state.value)
    except TransportError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"name": name, "rts": state.value}
