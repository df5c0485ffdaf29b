import asyncio

import pytest

from livecast.protocol import (
    HEADER_SIZE,
    NAME_MAX,
    Header,
    MsgType,
    PacketBuffer,
    RoomCard,
    RoomInResponse,
    SendWord,
    VideoStream,
    encode_packet,
)
from livecast.server import RoomServer, lobby_cards, serve


class Outbox:
    def __init__(self):
        self.chunks = []

    def __call__(self, data):
        self.chunks.append(bytes(data))

    def packets(self):
        return PacketBuffer().feed(b"".join(self.chunks))


def connected(server, client):
    outbox = Outbox()
    server.connect(client, outbox)
    outbox.chunks.clear()
    return outbox


def room_in(room_id, user_id=1):
    return encode_packet(MsgType.ROOMIN_RQ, b"", room_id, user_id)


def word(room_id, sender, text):
    return encode_packet(MsgType.SEND_WORD, SendWord(sender, text).pack(), room_id, 1)


def test_lobby_cards_from_source():
    cards = lobby_cards()
    assert [c.room_id for c in cards] == [333, 344]
    assert [c.pic_id for c in cards] == [1, 2]
    assert cards[0].owner_name == "小紫"
    assert cards[1].room_title == "手撕Epoll实战"


def test_connect_pushes_lobby():
    server = RoomServer()
    outbox = Outbox()
    server.connect("a", outbox)
    (packet,) = outbox.packets()
    assert packet.msg_type == MsgType.ROOMCARD
    assert packet.user_id == 1
    assert packet.room_id == 2**32 - 1
    assert len(packet.body) == 2 * RoomCard.SIZE
    decoded = [
        RoomCard.unpack(packet.body[:RoomCard.SIZE]),
        RoomCard.unpack(packet.body[RoomCard.SIZE:]),
    ]
    assert decoded == lobby_cards()


def test_room_in_replies_and_joins():
    server = RoomServer()
    outbox = connected(server, "a")
    server.handle_data("a", room_in(333, user_id=5))
    (packet,) = outbox.packets()
    assert packet.msg_type == MsgType.ROOMIN_RS
    assert packet.room_id == 333
    assert packet.user_id == 5
    response = RoomInResponse.unpack(packet.body)
    assert response.result is True
    assert response.room_id == 333
    assert response.owner_id == 233
    assert "xiaoxiaodefangjian".startswith(response.owner_name)
    assert len(response.owner_name.encode()) < NAME_MAX
    assert [u.name for u in response.users] == ["小易", "小ba", "小黑"]
    assert [u.user_id for u in response.users] == [13, 14, 15]
    assert not any(u.is_owner for u in response.users)
    assert server.members(333) == ["a"]


def test_room_in_twice_does_not_duplicate_member():
    server = RoomServer()
    connected(server, "a")
    server.handle_data("a", room_in(333) + room_in(333))
    assert server.members(333) == ["a"]


def test_split_request_answered_when_complete():
    server = RoomServer()
    outbox = connected(server, "a")
    raw = room_in(344)
    server.handle_data("a", raw[:7])
    assert outbox.chunks == []
    server.handle_data("a", raw[7:])
    assert [p.msg_type for p in outbox.packets()] == [MsgType.ROOMIN_RS]


def test_word_broadcast_to_room_members_only():
    server = RoomServer()
    a = connected(server, "a")
    b = connected(server, "b")
    c = connected(server, "c")
    server.handle_data("a", room_in(333))
    server.handle_data("b", room_in(333))
    server.handle_data("c", room_in(344))
    for outbox in (a, b, c):
        outbox.chunks.clear()
    raw = word(333, "tan", "hello")
    server.handle_data("a", raw)
    assert a.chunks == [raw]
    assert b.chunks == [raw]
    assert c.chunks == []


def test_word_to_empty_room_sends_nothing():
    server = RoomServer()
    a = connected(server, "a")
    server.handle_data("a", word(999, "tan", "hi"))
    assert a.chunks == []


def test_disconnect_leaves_rooms():
    server = RoomServer()
    connected(server, "a")
    b = connected(server, "b")
    server.handle_data("a", room_in(333))
    server.handle_data("b", room_in(333))
    server.disconnect("a")
    assert server.members(333) == ["b"]
    b.chunks.clear()
    raw = word(333, "x", "y")
    server.handle_data("b", raw)
    assert b.chunks == [raw]


def test_unknown_and_bad_packets_do_not_stop_processing():
    server = RoomServer()
    outbox = connected(server, "a")
    unknown = encode_packet(77, b"abc", 1, 1)
    short_video = encode_packet(MsgType.VIDEO_STREAM, b"\x01\x02", 1, 1)
    server.handle_data("a", unknown + short_video + room_in(333))
    assert [p.msg_type for p in outbox.packets()] == [MsgType.ROOMIN_RS]


def test_stream_packets_produce_no_reply():
    server = RoomServer()
    outbox = connected(server, "a")
    frame = VideoStream(1, True, 640, 480, b"data").pack()
    server.handle_data("a", encode_packet(MsgType.VIDEO_STREAM, frame, 333, 1))
    assert outbox.chunks == []


async def _read_packet(reader):
    head = await reader.readexactly(HEADER_SIZE)
    header = Header.unpack(head)
    body = await reader.readexactly(header.body_size)
    return header, body


@pytest.mark.asyncio
async def test_serve_over_tcp():
    state = RoomServer()
    listener = await serve("127.0.0.1", 0, state)
    port = listener.sockets[0].getsockname()[1]
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    try:
        header, body = await asyncio.wait_for(_read_packet(reader), 5)
        assert header.msg_type == MsgType.ROOMCARD
        assert RoomCard.unpack(body).room_id == 333

        writer.write(room_in(344, user_id=2))
        await writer.drain()
        header, body = await asyncio.wait_for(_read_packet(reader), 5)
        assert header.msg_type == MsgType.ROOMIN_RS
        assert RoomInResponse.unpack(body).room_id == 344
        assert len(state.members(344)) == 1
    finally:
        writer.close()
        await writer.wait_closed()
        listener.close()
        await listener.wait_closed()