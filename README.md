# livecast

A small live-room service. The server pushes the lobby's room cards to every
client that connects. It answers room-entry requests and relays chat lines to
every member of a room. The console client keeps the lobby, the rooms opened
from it and their chat up to date.

Every message on the wire is a fixed 16-byte header followed by a packed,
little-endian body. The header holds the body size, the message type, the
room id and the id of the sending user.

## Installing

```
pip install .
```

To install the test suite's requirements as well and run the tests:

```
pip install ".[test]"
pytest
```

## Running

Start the server:

```
livecast-server
```

By default it listens on `0.0.0.0`, port 9999. You can change this with
`--host` and `--port`.

Start the console client:

```
livecast-lobby --host 127.0.0.1
```

The client's options are:

- `--host`: the server address. The default is `192.168.43.14`.
- `--port`: the server port. The default is 9999.
- `--name`: the sender name used in chat. The default is `tan`.

When the client connects, it prints the rooms the server announces. It then
reads commands from standard input:

- `rooms` lists the lobby.
- `open <n>` opens the room at position `n` and asks the server to let you in.
- `say <text>` sends a chat line to the room you opened last.
- `leave` closes that room.
- `quit` exits.

## Using the library

### `livecast.protocol`

This module describes the wire format.

- `MsgType` lists the message types: `ROOMIN_RQ`, `ROOMIN_RS`, `ROOMCARD`,
  `ROOM_OUT`, `VIDEO_STREAM`, `AUDIO_STREAM`, `SEND_WORD`, `SEND_EMOJI`,
  `GET_ROOMLIST_RQ` and `GET_ROOMLIST_RS`.
- `Header` is the packet header and `Packet` is a whole framed message.
  `encode_packet()` builds the wire bytes of one packet.
- The message bodies are `RoomCard`, `UserInfo`, `RoomInResponse`,
  `VideoStream`, `AudioStream`, `SendWord` and `SendEmoji`. Each one has
  `pack()` and `unpack()`.
- Text fields have a fixed size and end in a NUL byte. UTF-8 text that does not
  fit is cut at a character boundary. `encode_fixed_string()` and
  `decode_fixed_string()` handle these fields.
- `PacketBuffer.feed()` adds received bytes and returns every packet that is
  now complete. A partial packet stays in the buffer until the rest of it
  arrives.
- Input that is too short for a structure raises `ProtocolError`, which is a
  subclass of `ValueError`.

```python
from livecast.protocol import MsgType, PacketBuffer, SendWord, encode_packet

wire = encode_packet(MsgType.SEND_WORD, SendWord("tan", "hello").pack(), 333, 1)
packets = PacketBuffer().feed(wire)
print(SendWord.unpack(packets[0].body).text)  # hello
```

### `livecast.server`

- `RoomServer` holds the clients, their buffers and the room members. It does
  no network I/O itself. You register a client with `connect(client, send)`,
  pass it received bytes with `handle_data()`, and remove it with
  `disconnect()`. `members(room_id)` lists the clients in a room.
- `lobby_cards()` returns the cards pushed to each new client.
- `serve(host, port, server)` runs a `RoomServer` on asyncio streams and
  returns the listening server.

### `livecast.client`

`NetworkManager` is the client connection. It has these methods:

- `connect()` and `close()` open and close the connection. The class can also
  be used as a context manager.
- `request_room_in()` asks the server to let you into a room.
- `send_word()` sends a chat line.
- `receive()` reads from the socket. `handle_data()` takes bytes you already
  have.

Both `receive()` and `handle_data()` pass each complete packet to the
callables in `on_room_card`, `on_room_in` and `on_word`.

### `livecast.lobby`

This module holds the client-side model.

- `Lobby` collects the announced rooms as `RoomItem`s. `open_room()` opens a
  room and `open_rooms()` lists the rooms that are open.
- `RoomItem.image_path()` gives the path of a room's cover picture.
- `PlayerRoom` keeps a room's title, its viewers and its chat, and sends chat
  lines with `send()`.

## What it does not do

- There is no audio or video. The protocol defines `VideoStream` and
  `AudioStream`. The server decodes these packets and then drops them, and the
  client ignores them.
- The rooms are not real. Every client gets the same two lobby cards. Every
  room-entry request is accepted, and the reply always names the same owner
  and the same three viewers.
- `RoomItem.image_path()` only builds a path. Nothing loads or shows the
  picture.
- There is no graphical interface. The client runs in the console only.
- Leaving a room with `leave` or `PlayerRoom.close()` does not tell the server.
  The server keeps a client in its rooms until the client disconnects.
- The server accepts emoji and room-list requests but does not act on them.
- The server keeps nothing once it stops. There are no user accounts and no
  storage.