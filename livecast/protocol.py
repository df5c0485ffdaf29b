"""Wire format shared by the live-room server and its clients.

Every packet is a 16-byte header followed by a body. All structures are
packed without padding and stored little-endian.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

NAME_MAX = 10
USER_COUNT_MAX = 100_000
WORD_SEND_MAX = 100
PAGE_SIZE_DEFAULT = 20
ROOM_TITLE_MAX = 30

ROOMIN_RS_NO = 0
ROOMIN_RS_YES = 1
GETROOM_RS_NO = 0
GETROOM_RS_YES = 1

_UINT32_MASK = 0xFFFFFFFF


class MsgType(IntEnum):
    """Packet kinds carried in the header's message-type field."""

    ROOMIN_RQ = 0
    ROOMIN_RS = 1
    ROOMCARD = 2
    ROOM_OUT = 3
    VIDEO_STREAM = 4
    AUDIO_STREAM = 5
    SEND_WORD = 6
    SEND_EMOJI = 7
    GET_ROOMLIST_RQ = 8
    GET_ROOMLIST_RS = 9


class ProtocolError(ValueError):
    """Raised when bytes cannot be decoded as the expected structure."""


def encode_fixed_string(text: str, size: int) -> bytes:
    """Encode text as UTF-8 into a NUL-terminated field of exactly ``size`` bytes.

    Text that does not fit is cut at a character boundary so that a
    terminating NUL always remains.
    """
    if size < 1:
        raise ValueError("field size must be at least 1")
    raw = text.encode("utf-8")
    limit = size - 1
    if len(raw) > limit:
        raw = raw[:limit].decode("utf-8", errors="ignore").encode("utf-8")
    return raw.ljust(size, b"\0")


def decode_fixed_string(raw: bytes) -> str:
    """Decode a NUL-terminated UTF-8 field, ignoring anything after the NUL."""
    return bytes(raw).split(b"\0", 1)[0].decode("utf-8", errors="replace")


def _unpack_from(layout: struct.Struct, data: bytes, what: str) -> tuple:
    if len(data) < layout.size:
        raise ProtocolError(
            f"{what} needs {layout.size} bytes, got {len(data)}"
        )
    return layout.unpack_from(data)


@dataclass(frozen=True)
class Header:
    """Fixed packet header: body size, message type, room and sender."""

    body_size: int
    msg_type: int
    room_id: int = 0
    user_id: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<IIII")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(
            self.body_size & _UINT32_MASK,
            int(self.msg_type) & _UINT32_MASK,
            self.room_id & _UINT32_MASK,
            self.user_id & _UINT32_MASK,
        )

    @classmethod
    def unpack(cls, data: bytes) -> Header:
        return cls(*_unpack_from(cls._STRUCT, data, "header"))


HEADER_SIZE = Header.SIZE


@dataclass(frozen=True)
class Packet:
    """A complete packet: header fields plus the raw body."""

    msg_type: int
    body: bytes = b""
    room_id: int = 0
    user_id: int = 0

    @property
    def header(self) -> Header:
        return Header(len(self.body), self.msg_type, self.room_id, self.user_id)

    def encode(self) -> bytes:
        return self.header.pack() + bytes(self.body)


def encode_packet(
    msg_type: int, body: bytes = b"", room_id: int = 0, user_id: int = 0
) -> bytes:
    """Build the wire bytes of one packet."""
    return Packet(msg_type, bytes(body), room_id, user_id).encode()


@dataclass(frozen=True)
class RoomCard:
    """Lobby card describing one live room."""

    room_id: int
    pic_id: int
    owner_name: str
    room_title: str

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(
        f"<II{NAME_MAX}s{ROOM_TITLE_MAX}s"
    )
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(
            self.room_id & _UINT32_MASK,
            self.pic_id & _UINT32_MASK,
            encode_fixed_string(self.owner_name, NAME_MAX),
            encode_fixed_string(self.room_title, ROOM_TITLE_MAX),
        )

    @classmethod
    def unpack(cls, data: bytes) -> RoomCard:
        room_id, pic_id, owner, title = _unpack_from(cls._STRUCT, data, "room card")
        return cls(room_id, pic_id, decode_fixed_string(owner), decode_fixed_string(title))


@dataclass(frozen=True)
class UserInfo:
    """One viewer of a room."""

    user_id: int
    is_owner: bool
    name: str

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(f"<II{NAME_MAX}s")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(
            self.user_id & _UINT32_MASK,
            int(bool(self.is_owner)),
            encode_fixed_string(self.name, NAME_MAX),
        )

    @classmethod
    def _from_fields(cls, user_id: int, is_owner: int, name: bytes) -> UserInfo:
        return cls(user_id, bool(is_owner), decode_fixed_string(name))

    @classmethod
    def unpack(cls, data: bytes) -> UserInfo:
        return cls._from_fields(*_unpack_from(cls._STRUCT, data, "user info"))


@dataclass(frozen=True)
class RoomInResponse:
    """Reply to a room-entry request, followed on the wire by its users."""

    result: bool
    room_id: int
    owner_id: int
    owner_name: str
    room_title: str = ""
    state: int = 0
    users: tuple[UserInfo, ...] = field(default_factory=tuple)

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(
        f"<?II{NAME_MAX}s{ROOM_TITLE_MAX}sII"
    )
    SIZE: ClassVar[int] = _STRUCT.size

    @property
    def user_count(self) -> int:
        return len(self.users)

    def pack(self) -> bytes:
        fixed = self._STRUCT.pack(
            bool(self.result),
            self.room_id & _UINT32_MASK,
            self.owner_id & _UINT32_MASK,
            encode_fixed_string(self.owner_name, NAME_MAX),
            encode_fixed_string(self.room_title, ROOM_TITLE_MAX),
            len(self.users),
            self.state & _UINT32_MASK,
        )
        return fixed + b"".join(user.pack() for user in self.users)

    @classmethod
    def unpack(cls, data: bytes) -> RoomInResponse:
        result, room_id, owner_id, owner, title, count, state = _unpack_from(
            cls._STRUCT, data, "room-in response"
        )
        end = cls.SIZE + count * UserInfo.SIZE
        if len(data) < end:
            raise ProtocolError(
                f"room-in response announces {count} users but carries "
                f"{len(data) - cls.SIZE} bytes of them"
            )
        users = tuple(
            UserInfo._from_fields(*fields)
            for fields in UserInfo._STRUCT.iter_unpack(bytes(data[cls.SIZE:end]))
        )
        return cls(
            result,
            room_id,
            owner_id,
            decode_fixed_string(owner),
            decode_fixed_string(title),
            state,
            users,
        )


@dataclass(frozen=True)
class VideoStream:
    """Video frame descriptor followed by the encoded frame data."""

    timestamp: int
    is_key_frame: bool
    width: int
    height: int
    payload: bytes = b""

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<qiii")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return (
            self._STRUCT.pack(
                self.timestamp, int(bool(self.is_key_frame)), self.width, self.height
            )
            + bytes(self.payload)
        )

    @classmethod
    def unpack(cls, data: bytes) -> VideoStream:
        timestamp, key, width, height = _unpack_from(cls._STRUCT, data, "video stream")
        return cls(timestamp, bool(key), width, height, bytes(data[cls.SIZE:]))


@dataclass(frozen=True)
class AudioStream:
    """Audio frame descriptor followed by the raw audio data."""

    timestamp: int
    sample_rate: int
    channels: int
    sample_size: int
    payload: bytes = b""

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<qiii")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return (
            self._STRUCT.pack(
                self.timestamp, self.sample_rate, self.channels, self.sample_size
            )
            + bytes(self.payload)
        )

    @classmethod
    def unpack(cls, data: bytes) -> AudioStream:
        fields = _unpack_from(cls._STRUCT, data, "audio stream")
        return cls(*fields, bytes(data[cls.SIZE:]))


@dataclass(frozen=True)
class SendWord:
    """A chat line broadcast to everyone in a room."""

    sender_name: str
    text: str

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(f"<{NAME_MAX}s{WORD_SEND_MAX}s")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(
            encode_fixed_string(self.sender_name, NAME_MAX),
            encode_fixed_string(self.text, WORD_SEND_MAX),
        )

    @classmethod
    def unpack(cls, data: bytes) -> SendWord:
        sender, text = _unpack_from(cls._STRUCT, data, "chat word")
        return cls(decode_fixed_string(sender), decode_fixed_string(text))


@dataclass(frozen=True)
class SendEmoji:
    """A predefined emoji sent to a room."""

    emoji_id: int

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<i")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(self.emoji_id)

    @classmethod
    def unpack(cls, data: bytes) -> SendEmoji:
        return cls(*_unpack_from(cls._STRUCT, data, "emoji"))


class PacketBuffer:
    """Reassembles packets from a byte stream that may split or merge them."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete packet."""
        return len(self._buffer)

    def feed(self, data: bytes) -> list[Packet]:
        """Add received bytes and return every packet now complete."""
        self._buffer += data
        packets = []
        while len(self._buffer) >= HEADER_SIZE:
            header = Header.unpack(self._buffer)
            total = HEADER_SIZE + header.body_size
            if len(self._buffer) < total:
                break
            body = bytes(self._buffer[HEADER_SIZE:total])
            del self._buffer[:total]
            packets.append(Packet(header.msg_type, body, header.room_id, header.user_id))
        return packets