"""Client-side connection to the live-room server."""

from __future__ import annotations

import contextlib
import logging
import socket
from collections.abc import Callable

from .protocol import (
    MsgType,
    Packet,
    PacketBuffer,
    ProtocolError,
    RoomCard,
    RoomInResponse,
    SendWord,
    UserInfo,
    encode_packet,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = 1
READ_CHUNK = 4096

RoomCardListener = Callable[[RoomCard], object]
RoomInListener = Callable[[int, RoomInResponse, "list[UserInfo]"], object]
WordListener = Callable[[int, str, str], object]


class NetworkManager:
    """Owns the TCP connection, reassembles packets and notifies listeners.

    Listeners are plain callables appended to ``on_room_card``,
    ``on_room_in`` and ``on_word``.
    """

    def __init__(self, user_id: int = DEFAULT_USER_ID) -> None:
        self.user_id = user_id
        self.on_room_card: list[RoomCardListener] = []
        self.on_room_in: list[RoomInListener] = []
        self.on_word: list[WordListener] = []
        self._sock: socket.socket | None = None
        self._buffer = PacketBuffer()

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def __enter__(self) -> NetworkManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def connect(self, host: str, port: int) -> None:
        """Connect to the server unless a connection is already open."""
        if self._sock is None:
            self._sock = socket.create_connection((host, port))
            logger.info("connected to %s:%s", host, port)

    def close(self) -> None:
        """Close the connection if one is open."""
        sock, self._sock = self._sock, None
        if sock is not None:
            with contextlib.suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            sock.close()

    def _send(self, data: bytes) -> None:
        if self._sock is None:
            raise ConnectionError("not connected")
        self._sock.sendall(data)

    def request_room_in(self, room_id: int) -> None:
        """Ask the server to let this client enter a room."""
        self._send(encode_packet(MsgType.ROOMIN_RQ, b"", room_id, self.user_id))
        logger.info("requested entry to room %s", room_id)

    def send_word(self, room_id: int, sender: str, text: str) -> None:
        """Send a chat line to everyone in a room."""
        body = SendWord(sender, text).pack()
        self._send(encode_packet(MsgType.SEND_WORD, body, room_id, self.user_id))

    def handle_data(self, data: bytes) -> list[Packet]:
        """Buffer received bytes, dispatch complete packets and return them."""
        packets = self._buffer.feed(data)
        for packet in packets:
            try:
                self._dispatch(packet)
            except ProtocolError as exc:
                logger.warning("dropping malformed packet: %s", exc)
        return packets

    def receive(self) -> list[Packet]:
        """Read one chunk from the server and handle it."""
        if self._sock is None:
            raise ConnectionError("not connected")
        data = self._sock.recv(READ_CHUNK)
        if not data:
            raise ConnectionError("connection closed by peer")
        return self.handle_data(data)

    def _dispatch(self, packet: Packet) -> None:
        if packet.msg_type == MsgType.ROOMCARD:
            count = len(packet.body) // RoomCard.SIZE
            cards = [
                RoomCard.unpack(packet.body[i * RoomCard.SIZE:(i + 1) * RoomCard.SIZE])
                for i in range(count)
            ]
            for card in cards:
                for listener in list(self.on_room_card):
                    listener(card)
        elif packet.msg_type == MsgType.ROOMIN_RS:
            response = RoomInResponse.unpack(packet.body)
            for listener in list(self.on_room_in):
                listener(response.room_id, response, list(response.users))
        elif packet.msg_type == MsgType.SEND_WORD:
            word = SendWord.unpack(packet.body)
            for listener in list(self.on_word):
                listener(packet.room_id, word.sender_name, word.text)
        else:
            logger.debug("ignoring packet type %s", packet.msg_type)