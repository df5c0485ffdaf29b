"""Live-room server: lobby push, room entry and chat broadcast."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import itertools
import logging
from collections.abc import Callable, Hashable

from .protocol import (
    AudioStream,
    MsgType,
    Packet,
    PacketBuffer,
    ProtocolError,
    RoomCard,
    RoomInResponse,
    SendEmoji,
    SendWord,
    UserInfo,
    VideoStream,
    encode_packet,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9999
READ_CHUNK = 4096

LOBBY_ROOM_ID = -1
LOBBY_USER_ID = 1

_DEMO_OWNER_ID = 233
_DEMO_OWNER_NAME = "xiaoxiaodefangjian"
_DEMO_VIEWERS = (
    UserInfo(13, False, "小易"),
    UserInfo(14, False, "小ba"),
    UserInfo(15, False, "小黑"),
)

Sender = Callable[[bytes], object]


def lobby_cards() -> list[RoomCard]:
    """Room cards pushed to every newly connected client."""
    return [
        RoomCard(333, 1, "小紫", "C++硬核直播间"),
        RoomCard(344, 2, "坦坦", "手撕Epoll实战"),
    ]


class RoomServer:
    """Transport-independent server state.

    Clients are identified by any hashable key and written to through the
    callable given to :meth:`connect`.
    """

    def __init__(self) -> None:
        self._senders: dict[Hashable, Sender] = {}
        self._buffers: dict[Hashable, PacketBuffer] = {}
        self._rooms: dict[int, list[Hashable]] = {}

    def connect(self, client: Hashable, send: Sender) -> None:
        """Register a client and push the lobby cards to it."""
        self._senders[client] = send
        self._buffers[client] = PacketBuffer()
        body = b"".join(card.pack() for card in lobby_cards())
        send(encode_packet(MsgType.ROOMCARD, body, LOBBY_ROOM_ID, LOBBY_USER_ID))
        logger.info("client %s connected, lobby pushed", client)

    def disconnect(self, client: Hashable) -> None:
        """Forget a client, its buffered bytes and its room memberships."""
        self._senders.pop(client, None)
        self._buffers.pop(client, None)
        for members in self._rooms.values():
            if client in members:
                members.remove(client)
        logger.info("client %s disconnected", client)

    def members(self, room_id: int) -> list[Hashable]:
        """Clients currently in a room, in the order they entered."""
        return list(self._rooms.get(room_id, ()))

    def handle_data(self, client: Hashable, data: bytes) -> None:
        """Buffer bytes from a client and handle every complete packet."""
        buffer = self._buffers.setdefault(client, PacketBuffer())
        for packet in buffer.feed(data):
            try:
                self.handle_packet(client, packet)
            except ProtocolError as exc:
                logger.warning("bad packet from %s: %s", client, exc)

    def handle_packet(self, client: Hashable, packet: Packet) -> None:
        """Act on one complete packet from a client."""
        if packet.msg_type == MsgType.ROOM_OUT:
            logger.info("client %s left a room", client)
        elif packet.msg_type == MsgType.ROOMIN_RQ:
            self._enter_room(client, packet)
        elif packet.msg_type == MsgType.VIDEO_STREAM:
            VideoStream.unpack(packet.body)
        elif packet.msg_type == MsgType.AUDIO_STREAM:
            AudioStream.unpack(packet.body)
        elif packet.msg_type == MsgType.SEND_WORD:
            self._broadcast_word(packet)
        elif packet.msg_type == MsgType.SEND_EMOJI:
            SendEmoji.unpack(packet.body)
        elif packet.msg_type == MsgType.GET_ROOMLIST_RQ:
            pass
        else:
            logger.warning("unknown packet type %s from %s", packet.msg_type, client)

    def _enter_room(self, client: Hashable, packet: Packet) -> None:
        logger.info("client %s asks to enter room %s", client, packet.room_id)
        members = self._rooms.setdefault(packet.room_id, [])
        if client not in members:
            members.append(client)
        response = RoomInResponse(
            result=True,
            room_id=packet.room_id,
            owner_id=_DEMO_OWNER_ID,
            owner_name=_DEMO_OWNER_NAME,
            users=_DEMO_VIEWERS,
        )
        self._senders[client](
            encode_packet(
                MsgType.ROOMIN_RS, response.pack(), packet.room_id, packet.user_id
            )
        )

    def _broadcast_word(self, packet: Packet) -> None:
        word = SendWord.unpack(packet.body)
        logger.info(
            "room %s: %s says %s", packet.room_id, word.sender_name, word.text
        )
        raw = packet.encode()
        for member in self._rooms.get(packet.room_id, ()):
            self._senders[member](raw)


async def serve(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    server: RoomServer | None = None,
) -> asyncio.AbstractServer:
    """Start listening and return the running asyncio server."""
    state = server if server is not None else RoomServer()
    ids = itertools.count(1)

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        client = next(ids)
        state.connect(client, writer.write)
        try:
            while data := await reader.read(READ_CHUNK):
                state.handle_data(client, data)
                await writer.drain()
        except ConnectionError as exc:
            logger.warning("connection %s failed: %s", client, exc)
        finally:
            state.disconnect(client)
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    return await asyncio.start_server(handle, host, port, reuse_address=True)


async def _run(host: str, port: int) -> None:
    listener = await serve(host, port)
    logger.info("server started on port %s", port)
    async with listener:
        await listener.serve_forever()


def main(argv: list[str] | None = None) -> int:
    """Run the server until interrupted."""
    parser = argparse.ArgumentParser(description="Run the live-room server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run(args.host, args.port))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())