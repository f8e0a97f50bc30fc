import logging
import random
import string
import threading
from collections import namedtuple

from errors import RoomAlreadyStarted, RoomNotFound
from models import Room, RoomState, parse_settings

logger = logging.getLogger(__name__)

CODE_LENGTH = 5
CODE_ALPHABET = string.ascii_uppercase + string.digits

# room: the Room that was left, destroyed: True when it was deleted as a result
Departure = namedtuple('Departure', ['room', 'destroyed'])


class RoomRegistry:
    def __init__(self, code_length=CODE_LENGTH):
        self.code_length = code_length
        self._rooms = {}
        self._player_rooms = {}  # {socket_id: room_code}
        self._lock = threading.RLock()

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, code):
        return code in self._rooms

    def get(self, code):
        if not isinstance(code, str):
            return None
        return self._rooms.get(code.upper())

    def room_of(self, identity):
        with self._lock:
            code = self._player_rooms.get(identity)
            return self._rooms.get(code) if code else None

    def is_current(self, room):
        return self._rooms.get(room.code) is room

    def _new_code(self):
        while True:
            code = ''.join(random.choices(CODE_ALPHABET, k=self.code_length))
            if code not in self._rooms:
                return code

    def create_room(self, identity, host_name, settings=None):
        map_type, duration = parse_settings(settings)
        with self._lock:
            self.remove_connection(identity)
            code = self._new_code()
            room = Room(code, identity, map_type=map_type, duration=duration)
            room.add_player(identity, host_name)
            self._rooms[code] = room
            self._player_rooms[identity] = code
        logger.info('Room %s created by %s (map=%s, duration=%ss)', code, identity, map_type, duration)
        return room

    def join_room(self, code, identity, player_name):
        with self._lock:
            room = self.get(code)
            if room is None:
                raise RoomNotFound()
            if room.state is not RoomState.LOBBY:
                raise RoomAlreadyStarted()
            if self._player_rooms.get(identity) == room.code:
                return room
            self.remove_connection(identity)
            room.add_player(identity, player_name)
            self._player_rooms[identity] = room.code
        logger.info('%s joined room %s', identity, room.code)
        return room

    def remove_connection(self, identity):
        with self._lock:
            code = self._player_rooms.pop(identity, None)
            room = self._rooms.get(code) if code else None
            if room is None:
                return None

            destroyed = room.remove_player(identity)
            if destroyed:
                self._rooms.pop(code, None)
                logger.info('Room %s is empty, deleting it', code)
            else:
                logger.info('%s left room %s, leader is now %s', identity, code, room.leader_id)
            return Departure(room, destroyed)

    def close(self):
        with self._lock:
            for room in self._rooms.values():
                room.stop_loop()
            self._rooms.clear()
            self._player_rooms.clear()
