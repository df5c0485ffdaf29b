"""Lobby and player rooms of the live-room client, with a console front end."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass

from .client import NetworkManager
from .protocol import RoomCard, RoomInResponse, UserInfo

logger = logging.getLogger(__name__)

DEFAULT_HOST = "192.168.43.14"
DEFAULT_PORT = 9999
DEFAULT_SENDER = "tan"
DEFAULT_IMAGE_DIR = "src/image"


@dataclass(frozen=True)
class RoomItem:
    """A room card as shown in the lobby."""

    room_id: int
    pic_id: int
    owner_name: str
    title: str
    image_dir: str = DEFAULT_IMAGE_DIR

    @classmethod
    def from_card(cls, card: RoomCard, image_dir: str = DEFAULT_IMAGE_DIR) -> RoomItem:
        return cls(card.room_id, card.pic_id, card.owner_name, card.room_title, image_dir)

    def image_path(self) -> str:
        """Path of the cover picture chosen by the card's picture id."""
        return f"{self.image_dir}/{self.pic_id}.jpg"


class PlayerRoom:
    """One open live room: title, viewer list and chat."""

    def __init__(
        self,
        room_id: int,
        network: NetworkManager,
        sender_name: str = DEFAULT_SENDER,
        on_close: Callable[[PlayerRoom], object] | None = None,
    ) -> None:
        self.room_id = room_id
        self.sender_name = sender_name
        self.title = ""
        self.users: list[str] = []
        self.chat: list[str] = []
        self._network = network
        self._on_close = on_close
        self._closed = False
        network.on_room_in.append(self.on_room_in)
        network.on_word.append(self.on_word)

    @property
    def closed(self) -> bool:
        return self._closed

    def on_room_in(
        self, room_id: int, response: RoomInResponse, users: list[UserInfo]
    ) -> bool:
        """Show the room's details if they belong to this room."""
        if room_id != self.room_id:
            logger.debug("room %s ignores details for room %s", self.room_id, room_id)
            return False
        self.title = f"{response.owner_name}的直播间"
        self.users = [user.name for user in users]
        return True

    def on_word(self, room_id: int, sender: str, text: str) -> bool:
        """Append a chat line if it was sent to this room."""
        if room_id != self.room_id:
            return False
        self.chat.append(f"【{sender}】: {text}")
        return True

    def send(self, text: str) -> None:
        """Send a chat line; empty text is not sent."""
        if not text:
            return
        self._network.send_word(self.room_id, self.sender_name, text)

    def close(self) -> None:
        """Stop listening to the network and tell the owner."""
        if self._closed:
            return
        self._closed = True
        for listeners, handler in (
            (self._network.on_room_in, self.on_room_in),
            (self._network.on_word, self.on_word),
        ):
            if handler in listeners:
                listeners.remove(handler)
        if self._on_close is not None:
            self._on_close(self)


class Lobby:
    """The list of rooms announced by the server and the rooms opened from it."""

    def __init__(
        self,
        network: NetworkManager,
        sender_name: str = DEFAULT_SENDER,
        image_dir: str = DEFAULT_IMAGE_DIR,
    ) -> None:
        self.rooms: list[RoomItem] = []
        self.sender_name = sender_name
        self.image_dir = image_dir
        self._network = network
        self._players: dict[int, PlayerRoom] = {}
        network.on_room_card.append(self.on_room_card)

    def on_room_card(self, card: RoomCard) -> RoomItem:
        """Add a room announced by the server."""
        item = RoomItem.from_card(card, self.image_dir)
        self.rooms.append(item)
        return item

    def open_room(self, index: int) -> PlayerRoom:
        """Open the room at a lobby position and ask the server to enter it."""
        item = self.rooms[index]
        player = self._players.get(item.room_id)
        if player is not None:
            return player
        player = PlayerRoom(
            item.room_id, self._network, self.sender_name, on_close=self._forget
        )
        self._players[item.room_id] = player
        self._network.request_room_in(item.room_id)
        return player

    def open_rooms(self) -> dict[int, PlayerRoom]:
        """Rooms currently open, by room id."""
        return dict(self._players)

    def _forget(self, player: PlayerRoom) -> None:
        if self._players.get(player.room_id) is player:
            del self._players[player.room_id]


def _pump(network: NetworkManager) -> None:
    while True:
        try:
            network.receive()
        except OSError:
            print("disconnected from server")
            return


_HELP = "commands: rooms | open <n> | say <text> | leave | quit"


def main(argv: list[str] | None = None) -> int:
    """Run the console client."""
    parser = argparse.ArgumentParser(description="Join live rooms from the console.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--name", default=DEFAULT_SENDER)
    args = parser.parse_args(argv)

    network = NetworkManager()
    lobby = Lobby(network, sender_name=args.name)
    network.on_room_card.append(
        lambda card: print(
            f"[{len(lobby.rooms) - 1}] {card.room_title} ({card.owner_name})"
        )
    )
    network.on_room_in.append(
        lambda room_id, response, users: print(
            f"room {room_id}: {response.owner_name}的直播间, viewers: "
            + ", ".join(user.name for user in users)
        )
    )
    network.on_word.append(
        lambda room_id, sender, text: print(f"room {room_id} 【{sender}】: {text}")
    )

    try:
        network.connect(args.host, args.port)
    except OSError as exc:
        print(f"cannot connect to {args.host}:{args.port}: {exc}", file=sys.stderr)
        return 1

    threading.Thread(target=_pump, args=(network,), daemon=True).start()
    print(_HELP)
    current: PlayerRoom | None = None
    try:
        for line in sys.stdin:
            command, _, rest = line.strip().partition(" ")
            if command == "quit":
                break
            if command == "rooms":
                for index, item in enumerate(lobby.rooms):
                    print(f"[{index}] {item.title} ({item.owner_name})")
            elif command == "open":
                try:
                    current = lobby.open_room(int(rest))
                except (ValueError, IndexError):
                    print("no such room")
            elif command == "say":
                if current is None:
                    print("open a room first")
                else:
                    current.send(rest)
            elif command == "leave":
                if current is not None:
                    current.close()
                    current = None
            elif command:
                print(_HELP)
    finally:
        network.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())