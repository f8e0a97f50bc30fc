import logging
import math
import threading
from enum import Enum

from models import ARENA_FLOOR, TICK_RATE, RoomState

logger = logging.getLogger(__name__)

# Movement, in arena units per tick
ACCELERATION = 0.7
DASH_ACCELERATION = 4.0
DRAG = 0.94
DASH_COOLDOWN_TICKS = 90  # 1.5 seconds

# Knockback
COLLISION_DISTANCE = 40
PUSH_FORCE = 5
DASH_PUSH_FORCE = 16
RECOIL_FACTOR = 0.5

DRAW = 'Draw'
SOLO_GAME_OVER = 'Game Over (Solo)'


class CollisionMode(str, Enum):
    # Every contact is resolved from both players' side, as the game always has
    ORDERED_PAIRS = 'ordered'
    # Every contact is resolved once, from the dashing player's side when there is one
    UNORDERED_PAIRS = 'unordered'


def _advance_clock(room):
    room.ticks += 1
    room.time_left = room.duration - room.ticks / TICK_RATE
    if room.ticks >= room.total_ticks:
        radius = ARENA_FLOOR
    else:
        radius = room.starting_arena_radius - room.shrink_per_tick * room.ticks
    room.game_state.arena_radius = max(float(ARENA_FLOOR), radius)


def _decay_timers(players):
    for p in players:
        if p.dash_cooldown > 0:
            p.dash_cooldown -= 1
        if p.spawn_timer > 0:
            p.spawn_timer -= 1


def _integrate(player):
    """Apply this tick's input, drag and velocity. Returns whether the player dashed."""
    controls = player.input
    dashing = controls.dash and player.dash_cooldown == 0
    if dashing:
        player.dash_cooldown = DASH_COOLDOWN_TICKS

    accel = DASH_ACCELERATION if dashing else ACCELERATION
    if controls.up:
        player.vy -= accel
    if controls.down:
        player.vy += accel
    if controls.left:
        player.vx -= accel
    if controls.right:
        player.vx += accel

    player.vx *= DRAG
    player.vy *= DRAG
    player.x += player.vx
    player.y += player.vy
    return dashing


def _push(attacker, target, dashing):
    angle = math.atan2(target.y - attacker.y, target.x - attacker.x)
    force = DASH_PUSH_FORCE if dashing else PUSH_FORCE
    target.vx += math.cos(angle) * force
    target.vy += math.sin(angle) * force
    attacker.vx -= math.cos(angle) * force * RECOIL_FACTOR
    attacker.vy -= math.sin(angle) * force * RECOIL_FACTOR
    return {'x': (attacker.x + target.x) / 2, 'y': (attacker.y + target.y) / 2}


def _resolve_collisions(players, dashing, mode):
    # Still spawning players neither push nor get pushed
    active = [p for p in players if p.alive and p.spawn_timer == 0]
    hits = []
    for i, first in enumerate(active):
        for j, second in enumerate(active):
            if i == j:
                continue
            if mode is CollisionMode.UNORDERED_PAIRS and j < i:
                continue
            if math.hypot(second.x - first.x, second.y - first.y) >= COLLISION_DISTANCE:
                continue

            attacker, target = first, second
            if mode is CollisionMode.UNORDERED_PAIRS and dashing[second.id] and not dashing[first.id]:
                attacker, target = second, first
            hits.append(_push(attacker, target, dashing[attacker.id]))
    return hits


def _eliminate_out_of_bounds(players, arena_radius):
    survivors = []
    for p in players:
        if not p.alive:
            continue
        if p.distance_from_center > arena_radius:
            p.alive = False
        else:
            survivors.append(p)
    return survivors


def evaluate_winner(room, survivors):
    """Return the winner label once the match is decided, otherwise None."""
    participants = len(room.players)
    if participants > 1 and len(survivors) <= 1:
        return survivors[0].name if survivors else DRAW
    if participants == 1 and not survivors:
        return SOLO_GAME_OVER
    if participants > 1 and room.ticks >= room.total_ticks:
        return DRAW
    return None


def advance(room, collision_mode=CollisionMode.ORDERED_PAIRS):
    """Run one simulation tick for ``room`` and return the events to broadcast.

    Events are ``(name, payload)`` tuples in emission order: any number of
    ``playerHit``, then ``matchEnded`` if the match was decided this tick,
    and always a final ``gameStateUpdate``.
    """
    events = []
    with room.lock:
        _advance_clock(room)

        players = room.game_state.alive_players()
        _decay_timers(players)
        dashing = {p.id: _integrate(p) for p in players}

        for hit in _resolve_collisions(players, dashing, collision_mode):
            events.append(('playerHit', hit))

        survivors = _eliminate_out_of_bounds(players, room.game_state.arena_radius)

        winner = evaluate_winner(room, survivors)
        if winner is not None:
            room.end_match(winner)
            events.append(('matchEnded', {'winner': winner}))

        events.append(('gameStateUpdate', room.snapshot()))
    return events


class SimulationLoop:
    """Fixed-rate tick driver for one room.

    ``scheduler`` provides ``start_background_task(fn)`` and ``sleep(seconds)``;
    a Flask-SocketIO instance fits. ``emit(event, data, to=room_code)``
    delivers the tick's events.
    """

    def __init__(self, room, registry, scheduler, emit,
                 collision_mode=CollisionMode.ORDERED_PAIRS, tick_rate=TICK_RATE):
        self.room = room
        self.registry = registry
        self.scheduler = scheduler
        self.emit = emit
        self.collision_mode = collision_mode
        self.tick_rate = tick_rate
        self.task = None
        self._stopped = threading.Event()

    @property
    def interval(self):
        return 1.0 / self.tick_rate

    @property
    def stopped(self):
        return self._stopped.is_set()

    def start(self):
        if self.task is None and not self.stopped:
            self.task = self.scheduler.start_background_task(self._run)
        return self.task

    def stop(self):
        self._stopped.set()

    def _should_stop(self):
        room = self.room
        return (
            self.stopped
            or not self.registry.is_current(room)
            or room.game_state.is_game_over
            or room.state is not RoomState.IN_PROGRESS
        )

    def tick(self):
        """Advance the room by one tick. Returns False once the loop should end."""
        with self.room.lock:
            if self._should_stop():
                self.stop()
                return False
            try:
                events = advance(self.room, self.collision_mode)
            except Exception:
                logger.exception('Tick failed in room %s, stopping its loop', self.room.code)
                self.stop()
                return False

        for name, payload in events:
            self.emit(name, payload, to=self.room.code)

        if self.room.game_state.is_game_over:
            logger.info('Match in room %s ended, winner: %s', self.room.code, self.room.game_state.winner)
            self.stop()
            return False
        return True

    def _run(self):
        logger.info('Game loop start for room %s', self.room.code)
        while not self.stopped:
            self.scheduler.sleep(self.interval)
            if not self.tick():
                break
        logger.info('Game loop stopped for room %s', self.room.code)
