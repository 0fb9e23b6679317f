import pytest

from conftest import ALICE, BOB, FixedDice
from gamehub.config import RoomSettings
from gamehub.errors import RoomNotFound, StoreUnavailable
from gamehub.game.models import Room
from gamehub.game.sync import GameSynchronizer
from gamehub.game.transitions import DELETE, apply_transition


def _room(store, code):
    return Room.from_doc(store.get(code))


@pytest.fixture()
def shut_room(lifecycle, sync):
    code = lifecycle.create_room('shut-the-box', ALICE)
    lifecycle.join_room(code, BOB)
    assert sync.start_game(code, ALICE.id)
    return code


@pytest.fixture()
def guess_room(lifecycle, sync):
    code = lifecycle.create_room('guess-number', ALICE)
    lifecycle.join_room(code, BOB)
    assert sync.start_game(code, ALICE.id)
    return code


def _finish_guess_game(sync, code):
    sync.set_secret(code, ALICE.id, 42)
    sync.set_secret(code, BOB.id, 17)
    sync.guess(code, ALICE.id, 17)


def test_only_host_starts_a_full_room(lifecycle, sync, store):
    code = lifecycle.create_room('shut-the-box', ALICE)
    assert not sync.start_game(code, ALICE.id)
    lifecycle.join_room(code, BOB)
    assert not sync.start_game(code, BOB.id)
    assert sync.start_game(code, ALICE.id)
    assert not sync.start_game(code, ALICE.id)

    room = _room(store, code)
    assert room.status == 'playing'
    assert room.game_data.current_turn == ALICE.id
    assert set(room.game_data.players) == {ALICE.id, BOB.id}
    assert all(p.score == 78 for p in room.game_data.players.values())


def test_guess_number_initial_state(guess_room, store):
    data = _room(store, guess_room).game_data
    assert data.phase == 'setup'
    assert data.current_turn == ALICE.id
    assert all(p.secret_number is None and not p.has_set_number for p in data.players.values())


def test_shut_the_box_scenario(store, clock, shut_room):
    sync = GameSynchronizer(store, RoomSettings(), clock, rng=FixedDice(4, 5))
    clock.advance(3)
    assert sync.roll(shut_room, ALICE.id) == 9
    assert _room(store, shut_room).game_data.last_roll == 9

    assert sync.submit_move(shut_room, ALICE.id, [4, 5])
    room = _room(store, shut_room)
    alice = room.game_data.players[ALICE.id]
    assert alice.numbers == [1, 2, 3, 6, 7, 8, 9, 10, 11, 12]
    assert store.get(shut_room)['gameData']['players'][ALICE.id]['score'] == 69
    assert room.game_data.current_turn == BOB.id
    assert room.last_activity == clock.now


def test_out_of_turn_roll_writes_nothing(store, clock, shut_room):
    sync = GameSynchronizer(store, RoomSettings(), clock, rng=FixedDice(1, 1))
    before = store.get(shut_room)
    assert sync.roll(shut_room, BOB.id) is None
    assert store.get(shut_room) == before


def test_wrong_sum_writes_nothing(store, clock, shut_room):
    sync = GameSynchronizer(store, RoomSettings(), clock, rng=FixedDice(3, 4))
    sync.roll(shut_room, ALICE.id)
    before = store.get(shut_room)
    assert not sync.submit_move(shut_room, ALICE.id, [1, 2])
    assert not sync.end_turn(shut_room, ALICE.id)
    assert store.get(shut_room) == before


def test_both_players_stuck_finishes_game(store, clock, shut_room):
    store.update(shut_room, {
        f'gameData/players/{ALICE.id}/numbers': [11, 12],
        f'gameData/players/{BOB.id}/numbers': [12],
    })
    sync = GameSynchronizer(store, RoomSettings(), clock, rng=FixedDice(1, 1, 1, 1))

    assert sync.roll(shut_room, ALICE.id) == 2
    assert sync.end_turn(shut_room, ALICE.id)
    room = _room(store, shut_room)
    assert room.game_data.players[ALICE.id].is_finished
    assert room.game_data.current_turn == BOB.id
    assert room.status == 'playing'

    assert sync.roll(shut_room, BOB.id) == 2
    assert sync.end_turn(shut_room, BOB.id)
    room = _room(store, shut_room)
    assert room.status == 'finished'
    assert room.game_data.winner == BOB.id


def test_guess_number_scenario(sync, store, guess_room):
    assert sync.set_secret(guess_room, ALICE.id, 42)
    assert not sync.set_secret(guess_room, ALICE.id, 50)
    assert sync.set_secret(guess_room, BOB.id, 17)
    assert _room(store, guess_room).game_data.phase == 'playing'

    assert sync.guess(guess_room, BOB.id, 42) is None
    assert sync.guess(guess_room, ALICE.id, 50) == 'lower'
    room = _room(store, guess_room)
    assert room.game_data.current_turn == BOB.id
    assert room.status == 'playing'

    assert sync.guess(guess_room, BOB.id, 42) == 'correct'
    room = _room(store, guess_room)
    assert room.game_data.winner == BOB.id
    assert room.status == 'finished'


def test_rematch_needs_two_votes(sync, store, clock, guess_room):
    _finish_guess_game(sync, guess_room)
    assert _room(store, guess_room).status == 'finished'

    clock.advance(20)
    assert sync.vote_rematch(guess_room, ALICE.id)
    room = _room(store, guess_room)
    assert room.status == 'finished'
    assert room.game_data.play_again_votes == {ALICE.id}
    assert room.last_activity == clock.now

    assert not sync.vote_rematch(guess_room, ALICE.id)

    assert sync.vote_rematch(guess_room, BOB.id)
    room = _room(store, guess_room)
    assert room.status == 'waiting'
    assert room.game_data is None


def test_rematch_disabled_when_opponent_left(lifecycle, sync, store, guess_room):
    _finish_guess_game(sync, guess_room)
    lifecycle.leave_room(guess_room, BOB.id)
    assert not sync.vote_rematch(guess_room, ALICE.id)
    assert _room(store, guess_room).game_data.play_again_votes == set()


def test_moves_against_missing_room(sync):
    with pytest.raises(RoomNotFound):
        sync.guess('NOROOM', ALICE.id, 5)


def test_transition_retries_after_concurrent_write(lifecycle, store):
    code = lifecycle.create_room('guess-number', ALICE)
    calls = []

    def bump_activity(room):
        calls.append(room.last_activity)
        if len(calls) == 1:
            # Another client lands a versioned write between our read and write.
            store.update(code, {'lastActivity': room.last_activity + 5}, expected_version=room.version)
        return {'lastActivity': room.last_activity + 1}

    room = apply_transition(store, code, bump_activity)
    assert len(calls) == 2
    assert calls[1] == calls[0] + 5
    assert room.last_activity == calls[0] + 6
    assert room.version == 2


def test_last_leave_retries_when_someone_joins(lifecycle, store, monkeypatch):
    code = lifecycle.create_room('guess-number', ALICE)
    real_get = store.get
    raced = []

    def get_then_join(c):
        doc = real_get(c)
        if not raced:
            raced.append(c)
            # Bob gets in after Alice read the room as hers alone.
            lifecycle.join_room(code, BOB)
        return doc

    monkeypatch.setattr(store, 'get', get_then_join)
    lifecycle.leave_room(code, ALICE.id)

    doc = real_get(code)
    assert doc is not None
    assert [p['id'] for p in doc['players']] == [BOB.id]
    assert ALICE.id not in doc['pings']


def test_unversioned_delete_ignores_concurrent_write(lifecycle, store):
    code = lifecycle.create_room('guess-number', ALICE)

    def delete_anyway(room):
        store.update(code, {'lastActivity': 1}, expected_version=room.version)
        return DELETE

    assert apply_transition(store, code, delete_anyway, versioned=False) is None
    assert store.get(code) is None


def test_transition_gives_up_after_retries(lifecycle, store):
    code = lifecycle.create_room('guess-number', ALICE)

    def always_contended(room):
        store.update(code, {'lastActivity': room.last_activity + 1}, expected_version=room.version)
        return {'status': 'finished'}

    with pytest.raises(StoreUnavailable):
        apply_transition(store, code, always_contended, retries=2)


def test_unversioned_transition_is_last_write_wins(lifecycle, store):
    code = lifecycle.create_room('guess-number', ALICE)

    def overwrite(room):
        store.update(code, {'lastActivity': 1}, expected_version=room.version)
        return {'lastActivity': 2}

    room = apply_transition(store, code, overwrite, versioned=False)
    assert room.last_activity == 2


def test_secret_can_be_taken_back_during_setup(sync, store, clock, guess_room):
    assert sync.set_secret(guess_room, ALICE.id, 42)
    clock.advance(5)
    assert sync.clear_secret(guess_room, ALICE.id)
    room = _room(store, guess_room)
    alice = room.game_data.players[ALICE.id]
    assert alice.secret_number is None and not alice.has_set_number
    assert room.last_activity == clock.now

    assert sync.set_secret(guess_room, ALICE.id, 7)
    assert sync.set_secret(guess_room, BOB.id, 17)
    assert not sync.clear_secret(guess_room, ALICE.id)
    assert _room(store, guess_room).game_data.players[ALICE.id].secret_number == 7
