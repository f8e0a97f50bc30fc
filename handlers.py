import logging
from enum import Enum

from errors import RoomAlreadyStarted, RoomError, RoomNotFound
from models import RoomState
from simulation import CollisionMode, SimulationLoop

logger = logging.getLogger(__name__)


class Command(str, Enum):
    CREATE_ROOM = 'createRoom'
    JOIN_ROOM = 'joinRoom'
    UPDATE_SETTINGS = 'updateSettings'
    START_GAME = 'startGame'
    RESTART_GAME = 'restartGame'
    PLAYER_INPUT = 'playerInput'
    DISCONNECT = 'disconnect'


def _payload(data):
    return data if isinstance(data, dict) else {}


class ArenaServer:
    """Turns inbound commands into registry and room operations.

    ``transport`` needs ``emit(event, data, to)``, ``enter_room(sid, code)``
    and ``leave_room(sid, code)``. ``scheduler`` drives the per-room
    simulation loops.
    """

    def __init__(self, registry, transport, scheduler, collision_mode=CollisionMode.ORDERED_PAIRS):
        self.registry = registry
        self.transport = transport
        self.scheduler = scheduler
        self.collision_mode = CollisionMode(collision_mode)
        self._handlers = {
            Command.CREATE_ROOM: self.on_create_room,
            Command.JOIN_ROOM: self.on_join_room,
            Command.UPDATE_SETTINGS: self.on_update_settings,
            Command.START_GAME: self.on_start_game,
            Command.RESTART_GAME: self.on_restart_game,
            Command.PLAYER_INPUT: self.on_player_input,
            Command.DISCONNECT: self.on_disconnect,
        }

    def dispatch(self, command, sid, data=None):
        handler = self._handlers[Command(command)]
        try:
            handler(sid, data)
        except RoomError as e:
            logger.info('Rejected %s from %s: %s', Command(command).value, sid, e)
            self.transport.emit('roomError', e.to_dict(), to=sid)

    def _room_for(self, sid):
        room = self.registry.room_of(sid)
        if room is None:
            raise RoomNotFound('You are not in a room')
        return room

    def _leave_current_room(self, sid):
        departure = self.registry.remove_connection(sid)
        if departure is None:
            return
        self.transport.leave_room(sid, departure.room.code)
        if not departure.destroyed:
            self.update_lobby(departure.room)

    def update_lobby(self, room):
        self.transport.emit('lobbyUpdate', room.lobby_roster(), to=room.code)

    def on_create_room(self, sid, data):
        data = _payload(data)
        self._leave_current_room(sid)
        room = self.registry.create_room(sid, data.get('playerName'), data.get('settings'))
        self.transport.enter_room(sid, room.code)
        self.transport.emit('roomCreated', {
            'roomCode': room.code,
            'playerName': room.players[sid].name,
        }, to=sid)
        self.update_lobby(room)

    def on_join_room(self, sid, data):
        data = _payload(data)
        code = data.get('roomCode')
        if not isinstance(code, str) or not code.strip():
            raise RoomNotFound('Room code required')

        target = self.registry.get(code.strip())
        if target is None:
            raise RoomNotFound()
        if target.state is not RoomState.LOBBY:
            raise RoomAlreadyStarted()
        current = self.registry.room_of(sid)
        if current is not None and current is not target:
            self._leave_current_room(sid)

        room = self.registry.join_room(target.code, sid, data.get('playerName'))
        self.transport.enter_room(sid, room.code)
        self.transport.emit('roomJoined', {
            'roomCode': room.code,
            'playerName': room.players[sid].name,
        }, to=sid)
        self.update_lobby(room)

    def on_update_settings(self, sid, data):
        room = self._room_for(sid)
        settings = room.update_settings(sid, data)
        self.transport.emit('settingsUpdated', settings, to=room.code)

    def on_start_game(self, sid, data=None):
        room = self._room_for(sid)
        room.start(sid)
        logger.info('Starting game in room %s with %d players', room.code, len(room.players))
        self.transport.emit('gameStarted', {'mapType': room.map_type}, to=room.code)

        loop = SimulationLoop(room, self.registry, self.scheduler, self.transport.emit,
                              collision_mode=self.collision_mode)
        room.attach_loop(loop)
        loop.start()

    def on_restart_game(self, sid, data=None):
        room = self._room_for(sid)
        if room.restart(sid):
            self.transport.emit('roomReset', to=room.code)
            self.update_lobby(room)

    def on_player_input(self, sid, data):
        room = self.registry.room_of(sid)
        if room is not None:
            room.set_player_input(sid, data)

    def on_disconnect(self, sid, data=None):
        departure = self.registry.remove_connection(sid)
        if departure is not None and not departure.destroyed:
            self.update_lobby(departure.room)
