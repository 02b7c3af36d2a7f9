"""Background file transfers over a session's bound transport."""

from __future__ import annotations

import base64
import logging

from termgate.gateway.session import Binding, Session
from termgate.shared.enums import TransferAction
from termgate.shared.exceptions import TransferError, TransportError
from termgate.shared.models import FileTransferPayload, ReceiveFileParams, SendFileParams
from termgate.xmodem.receiver import XmodemReceiver
from termgate.xmodem.sender import XmodemSender

logger = logging.getLogger(__name__)


async def send_file(session: Session, binding: Binding, params: SendFileParams, data: bytes) -> None:
    """Send ``data`` with XMODEM and report start, progress and the outcome."""
    name = params.file_name
    total = len(data)
    session.send_transfer(
        FileTransferPayload(
            action=TransferAction.START, file_name=name, file_size=total, message="starting file transfer"
        )
    )

    def progress(sent: int, size: int) -> None:
        session.send_transfer(
            FileTransferPayload(action=TransferAction.PROGRESS, file_name=name, file_size=size, sent=sent)
        )

    logger.info("session %s: sending %s (%d bytes, %s)", session.id, name, total, params.protocol.value)
    async with session.exclusive(binding) as transport:
        sender = XmodemSender(transport, use_1k=params.protocol.uses_1k_blocks, progress=progress)
        try:
            await sender.send(data)
        except (TransferError, TransportError) as exc:
            logger.warning("session %s: send of %s failed: %s", session.id, name, exc)
            session.send_transfer(FileTransferPayload(action=TransferAction.ERROR, file_name=name, error=str(exc)))
            return

    session.send_transfer(
        FileTransferPayload(
            action=TransferAction.COMPLETE,
            file_name=name,
            file_size=total,
            sent=total,
            message="file transfer completed successfully",
        )
    )


async def receive_file(session: Session, binding: Binding, params: ReceiveFileParams) -> None:
    """Receive a file with XMODEM; the completion report carries its bytes base64 encoded."""
    name = params.file_name
    session.send_transfer(
        FileTransferPayload(action=TransferAction.START, file_name=name, message="starting file receive")
    )

    def progress(received: int, _total: int) -> None:
        session.send_transfer(FileTransferPayload(action=TransferAction.PROGRESS, file_name=name, received=received))

    logger.info("session %s: receiving %s (%s)", session.id, name, "crc" if params.use_crc else "checksum")
    async with session.exclusive(binding) as transport:
        receiver = XmodemReceiver(transport, use_crc=params.use_crc, progress=progress)
        try:
            data = await receiver.receive()
        except (TransferError, TransportError) as exc:
            logger.warning("session %s: receive of %s failed: %s", session.id, name, exc)
            session.send_transfer(FileTransferPayload(action=TransferAction.ERROR, file_name=name, error=str(exc)))
            return

    session.send_transfer(
        FileTransferPayload(
            action=TransferAction.COMPLETE,
            file_name=name,
            file_size=len(data),
            received=len(data),
            message=base64.b64encode(data).decode("ascii"),
        )
    )
