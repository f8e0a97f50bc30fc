import math
import random
import threading
from dataclasses import dataclass, field
from enum import Enum

from errors import InvalidSettings, NotLeader, RoomAlreadyStarted

TICK_RATE = 60
ARENA_FLOOR = 100
SPAWN_RADIUS = 100
SPAWN_GRACE_TICKS = 180  # 3 seconds of invulnerability

DEFAULT_MAP = 'neon_void'
DEFAULT_DURATION = 60


@dataclass(frozen=True)
class MapConfig:
    name: str
    starting_arena_radius: float


MAP_CONFIGS = {
    'neon_void': MapConfig('neon_void', 800),
    'lava_pit': MapConfig('lava_pit', 700),
    'deep_ocean': MapConfig('deep_ocean', 900),
    'enchanted_forest': MapConfig('enchanted_forest', 750),
    'galactic_core': MapConfig('galactic_core', 1100),
}


def map_config(map_type):
    return MAP_CONFIGS.get(map_type, MAP_CONFIGS[DEFAULT_MAP])


def parse_settings(raw, strict=False):
    """Return ``(map_type, duration)`` from a client settings payload.

    Lenient parsing replaces anything missing or unusable with the defaults.
    Strict parsing raises InvalidSettings instead.
    """
    if not isinstance(raw, dict):
        raw = {}

    map_type = raw.get('mapType')
    if map_type not in MAP_CONFIGS:
        if strict:
            raise InvalidSettings(f'Unknown map type: {map_type!r}')
        map_type = DEFAULT_MAP

    try:
        duration = int(raw.get('duration'))
    except (TypeError, ValueError):
        duration = 0
    if duration <= 0:
        if strict:
            raise InvalidSettings(f"Invalid duration: {raw.get('duration')!r}")
        duration = DEFAULT_DURATION

    return map_type, duration


class RoomState(str, Enum):
    LOBBY = 'lobby'
    IN_PROGRESS = 'in_progress'
    ENDED = 'ended'


@dataclass
class PlayerInput:
    up: bool = False
    down: bool = False
    left: bool = False
    right: bool = False
    dash: bool = False

    @classmethod
    def from_payload(cls, data):
        if not isinstance(data, dict):
            return None
        return cls(
            up=bool(data.get('up')),
            down=bool(data.get('down')),
            left=bool(data.get('left')),
            right=bool(data.get('right')),
            dash=bool(data.get('dash')),
        )


@dataclass
class Player:
    id: str
    name: str
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    alive: bool = True
    dash_cooldown: int = 0
    spawn_timer: int = 0
    input: PlayerInput = field(default_factory=PlayerInput)

    def respawn(self, x, y):
        self.x = x
        self.y = y
        self.vx = 0.0
        self.vy = 0.0
        self.alive = True
        self.dash_cooldown = 0
        self.spawn_timer = SPAWN_GRACE_TICKS
        self.input = PlayerInput()

    @property
    def distance_from_center(self):
        return math.hypot(self.x, self.y)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'x': self.x,
            'y': self.y,
            'vx': self.vx,
            'vy': self.vy,
            'alive': self.alive,
            'dashCooldown': self.dash_cooldown,
            'spawnTimer': self.spawn_timer,
        }


class GameState:
    def __init__(self, arena_radius):
        self.players = {}  # {socket_id: Player}
        self.arena_radius = float(arena_radius)
        self.is_game_over = False
        self.winner = None

    def alive_players(self):
        return [p for p in self.players.values() if p.alive]

    def to_dict(self):
        return {
            'players': {pid: p.to_dict() for pid, p in self.players.items()},
            'arenaRadius': self.arena_radius,
            'isGameOver': self.is_game_over,
            'winner': self.winner,
        }


class Room:
    def __init__(self, code, leader_id, map_type=DEFAULT_MAP, duration=DEFAULT_DURATION):
        self.code = code
        self.leader_id = leader_id
        self.state = RoomState.LOBBY
        self.map_type = map_type
        self.duration = duration
        self.time_left = float(duration)
        self.ticks = 0
        self.shrink_per_tick = 0.0
        self.game_state = GameState(map_config(map_type).starting_arena_radius)
        self.loop = None
        # Guards every mutation: socket handlers and the tick task run on different threads
        self.lock = threading.RLock()

    @property
    def players(self):
        return self.game_state.players

    @property
    def starting_arena_radius(self):
        return map_config(self.map_type).starting_arena_radius

    @property
    def total_ticks(self):
        return self.duration * TICK_RATE

    def is_leader(self, identity):
        return identity == self.leader_id

    def _require_leader(self, identity):
        if not self.is_leader(identity):
            raise NotLeader()

    # Membership

    def _unique_name(self, base):
        taken = {p.name for p in self.players.values()}
        while True:
            name = f'{base}#{random.randint(1000, 9999)}'
            if name not in taken:
                return name

    def add_player(self, identity, player_name):
        with self.lock:
            player = Player(id=identity, name=self._unique_name(player_name or 'Player'))
            self.players[identity] = player
            return player

    def remove_player(self, identity):
        """Drop a member, handing leadership on if needed. Returns True once the room is empty."""
        with self.lock:
            self.players.pop(identity, None)
            if not self.players:
                self.stop_loop()
                return True
            if self.leader_id == identity:
                self.leader_id = next(iter(self.players))
            return False

    def lobby_roster(self):
        return [
            {'name': p.name, 'isLeader': self.is_leader(pid)}
            for pid, p in self.players.items()
        ]

    # Lobby

    def update_settings(self, requester, settings):
        with self.lock:
            self._require_leader(requester)
            if self.state is not RoomState.LOBBY:
                raise RoomAlreadyStarted()
            self.map_type, self.duration = parse_settings(settings, strict=True)
            self.time_left = float(self.duration)
            self.game_state.arena_radius = float(self.starting_arena_radius)
            return {'mapType': self.map_type, 'duration': self.duration}

    def set_player_input(self, identity, data):
        player_input = PlayerInput.from_payload(data)
        if player_input is None:
            return
        with self.lock:
            player = self.players.get(identity)
            if player is not None:
                player.input = player_input

    # Match lifecycle

    def start(self, requester):
        with self.lock:
            self._require_leader(requester)
            if self.state is RoomState.IN_PROGRESS:
                raise RoomAlreadyStarted()
            self.stop_loop()

            start_radius = self.starting_arena_radius
            self.state = RoomState.IN_PROGRESS
            self.ticks = 0
            self.time_left = float(self.duration)
            self.shrink_per_tick = (start_radius - ARENA_FLOOR) / self.total_ticks
            self.game_state.arena_radius = float(start_radius)
            self.game_state.is_game_over = False
            self.game_state.winner = None

            # Spread spawns on a small circle so nobody starts overlapping
            players = list(self.players.values())
            for i, player in enumerate(players):
                angle = (i / len(players)) * math.pi * 2
                player.respawn(math.cos(angle) * SPAWN_RADIUS, math.sin(angle) * SPAWN_RADIUS)

    def end_match(self, winner):
        with self.lock:
            self.game_state.is_game_over = True
            self.game_state.winner = winner
            self.state = RoomState.ENDED

    def restart(self, requester):
        """Return the room to the lobby. Returns False when it is already there."""
        with self.lock:
            self._require_leader(requester)
            if self.state is RoomState.LOBBY:
                return False
            self.stop_loop()
            self.state = RoomState.LOBBY
            self.ticks = 0
            self.time_left = float(self.duration)
            self.game_state.is_game_over = False
            self.game_state.winner = None
            self.game_state.arena_radius = float(self.starting_arena_radius)
            return True

    def attach_loop(self, loop):
        with self.lock:
            self.stop_loop()
            self.loop = loop

    def stop_loop(self):
        loop, self.loop = self.loop, None
        if loop is not None:
            loop.stop()

    def snapshot(self):
        with self.lock:
            state = self.game_state.to_dict()
            state['timeLeft'] = max(0, math.ceil(self.time_left))
            return state
