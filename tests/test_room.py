import math

import pytest

from errors import InvalidSettings, NotLeader, RoomAlreadyStarted
from models import (
    SPAWN_GRACE_TICKS,
    SPAWN_RADIUS,
    PlayerInput,
    Room,
    RoomState,
    map_config,
    parse_settings,
)


class StubLoop:
    def __init__(self):
        self.stop_calls = 0

    def stop(self):
        self.stop_calls += 1


def test_map_config_unknown_map_uses_default():
    assert map_config('nowhere').starting_arena_radius == 800
    assert map_config('galactic_core').starting_arena_radius == 1100


@pytest.mark.parametrize('raw', [None, 'lava_pit', {'mapType': 'x', 'duration': 10},
                                 {'mapType': 'lava_pit', 'duration': 0},
                                 {'mapType': 'lava_pit'}])
def test_strict_settings_reject_bad_input(raw):
    with pytest.raises(InvalidSettings):
        parse_settings(raw, strict=True)


def test_settings_accept_numeric_strings():
    assert parse_settings({'mapType': 'deep_ocean', 'duration': '90'}, strict=True) == ('deep_ocean', 90)


def test_update_settings_changes_lobby_preview(make_room):
    room = make_room(2)

    applied = room.update_settings('p0', {'mapType': 'galactic_core', 'duration': 120})

    assert applied == {'mapType': 'galactic_core', 'duration': 120}
    assert room.game_state.arena_radius == 1100
    assert room.snapshot()['timeLeft'] == 120


def test_update_settings_requires_leader(make_room):
    room = make_room(2)

    with pytest.raises(NotLeader):
        room.update_settings('p1', {'mapType': 'lava_pit', 'duration': 30})
    assert room.map_type == 'neon_void'


def test_update_settings_only_in_lobby(make_room):
    room = make_room(2)
    room.start('p0')

    with pytest.raises(RoomAlreadyStarted):
        room.update_settings('p0', {'mapType': 'lava_pit', 'duration': 30})


def test_invalid_settings_leave_room_unchanged(make_room):
    room = make_room(2, map_type='deep_ocean', duration=45)

    with pytest.raises(InvalidSettings):
        room.update_settings('p0', {'mapType': 'moon_base', 'duration': 30})

    assert (room.map_type, room.duration) == ('deep_ocean', 45)
    assert room.game_state.arena_radius == 900


def test_start_spawns_players_on_circle(make_room):
    room = make_room(4)
    for p in room.players.values():
        p.alive = False
        p.vx = 3.0
        p.input.up = True

    room.start('p0')

    assert room.state is RoomState.IN_PROGRESS
    for i, p in enumerate(room.players.values()):
        angle = i / 4 * 2 * math.pi
        assert p.x == pytest.approx(math.cos(angle) * SPAWN_RADIUS)
        assert p.y == pytest.approx(math.sin(angle) * SPAWN_RADIUS)
        assert (p.vx, p.vy) == (0, 0)
        assert p.alive
        assert p.spawn_timer == SPAWN_GRACE_TICKS
        assert p.dash_cooldown == 0
        assert p.input == PlayerInput()


def test_start_precomputes_shrink(make_room):
    room = make_room(2, map_type='lava_pit', duration=10)

    room.start('p0')

    assert room.shrink_per_tick == pytest.approx(1.0)
    assert room.game_state.arena_radius == 700
    assert room.time_left == 10


def test_start_requires_leader(make_room):
    room = make_room(2)

    with pytest.raises(NotLeader):
        room.start('p1')
    assert room.state is RoomState.LOBBY


def test_cannot_start_twice(make_room):
    room = make_room(2)
    room.start('p0')

    with pytest.raises(RoomAlreadyStarted):
        room.start('p0')


def test_rematch_from_ended_room(make_room):
    room = make_room(2)
    room.start('p0')
    room.end_match('Draw')

    room.start('p0')

    assert room.state is RoomState.IN_PROGRESS
    assert not room.game_state.is_game_over
    assert room.game_state.winner is None


def test_restart_returns_to_lobby_once(make_room):
    room = make_room(2)
    room.start('p0')
    loop = StubLoop()
    room.attach_loop(loop)
    room.end_match('Draw')

    assert room.restart('p0') is True
    assert room.restart('p0') is False

    assert room.state is RoomState.LOBBY
    assert not room.game_state.is_game_over
    assert room.game_state.winner is None
    assert room.game_state.arena_radius == 800
    assert loop.stop_calls == 1
    assert room.loop is None


def test_restart_requires_leader(make_room):
    room = make_room(2)
    room.start('p0')

    with pytest.raises(NotLeader):
        room.restart('p1')
    assert room.state is RoomState.IN_PROGRESS


def test_attaching_a_loop_stops_the_previous_one(make_room):
    room = make_room(1)
    first, second = StubLoop(), StubLoop()

    room.attach_loop(first)
    room.attach_loop(second)

    assert first.stop_calls == 1
    assert room.loop is second


def test_set_player_input(make_room):
    room = make_room(2)

    room.set_player_input('p1', {'up': True, 'dash': 1, 'extra': 'ignored'})

    assert room.players['p1'].input == PlayerInput(up=True, dash=True)


def test_set_player_input_ignores_strangers_and_garbage(make_room):
    room = make_room(2)
    room.set_player_input('p1', {'left': True})

    room.set_player_input('nobody', {'up': True})
    room.set_player_input('p1', 'left')

    assert 'nobody' not in room.players
    assert room.players['p1'].input == PlayerInput(left=True)


def test_lobby_roster(make_room):
    room = make_room(3)

    roster = room.lobby_roster()

    assert [entry['isLeader'] for entry in roster] == [True, False, False]
    assert [entry['name'] for entry in roster] == [p.name for p in room.players.values()]


def test_duplicate_names_get_distinct_suffixes(monkeypatch):
    rolls = iter([1234, 1234, 5678])
    monkeypatch.setattr('models.random.randint', lambda a, b: next(rolls))
    room = Room('ABCDE', 'a')

    room.add_player('a', 'Sam')
    room.add_player('b', 'Sam')

    assert room.players['a'].name == 'Sam#1234'
    assert room.players['b'].name == 'Sam#5678'


def test_snapshot_shape(make_room):
    room = make_room(2)
    room.start('p0')

    state = room.snapshot()

    assert set(state) == {'players', 'arenaRadius', 'isGameOver', 'winner', 'timeLeft'}
    assert set(state['players']['p0']) == {
        'id', 'name', 'x', 'y', 'vx', 'vy', 'alive', 'dashCooldown', 'spawnTimer',
    }
