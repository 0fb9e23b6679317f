from itertools import combinations

import pytest

from gamehub.game import shut_the_box
from gamehub.game.models import TIE, Player, ShutTheBoxData

ALL = list(range(1, 13))


def _game():
    return shut_the_box.initial_state([Player('a', 'A'), Player('b', 'B')])


def _brute_force(target, numbers):
    return any(
        sum(combo) == target
        for size in range(1, len(numbers) + 1)
        for combo in combinations(numbers, size)
    )


def test_initial_state():
    data = _game()
    assert data.current_turn == 'a'
    assert data.players['a'].numbers == ALL
    assert data.players['a'].score == 78
    assert data.last_roll is None
    assert data.winner is None


@pytest.mark.parametrize('target,numbers,expected', [
    (7, ALL, True),
    (1, [2, 3, 4], False),
    (12, [5, 7], True),
    (13, [1, 2, 3], False),
    (10, [1, 2, 3, 4], True),
    (0, ALL, False),
    (5, [], False),
])
def test_can_make_move(target, numbers, expected):
    assert shut_the_box.can_make_move(target, numbers) is expected


@pytest.mark.parametrize('numbers', [[1, 3, 8], [2, 5, 9, 11], [4, 6], [1, 2, 3, 10, 12]])
def test_can_make_move_matches_brute_force(numbers):
    for target in range(2, 13):
        assert shut_the_box.can_make_move(target, numbers) == _brute_force(target, numbers)


def test_roll_dice_range():
    for _ in range(50):
        d1, d2 = shut_the_box.roll_dice()
        assert 1 <= d1 <= 6 and 1 <= d2 <= 6


def test_move_removes_numbers_and_passes_turn():
    data = _game()
    assert shut_the_box.apply_roll(data, 'a', 9)
    assert shut_the_box.apply_move(data, 'a', [4, 5])
    assert data.players['a'].numbers == [1, 2, 3, 6, 7, 8, 9, 10, 11, 12]
    assert data.players['a'].score == 69
    assert data.current_turn == 'b'
    assert data.last_roll is None


@pytest.mark.parametrize('selection', [[], [4, 4, 1], [3, 5], [13], [2, 7, 0]])
def test_illegal_selection_is_rejected(selection):
    data = _game()
    shut_the_box.apply_roll(data, 'a', 9)
    assert not shut_the_box.apply_move(data, 'a', selection)
    assert data.players['a'].numbers == ALL
    assert data.last_roll == 9


def test_out_of_turn_actions_are_rejected():
    data = _game()
    assert not shut_the_box.apply_roll(data, 'b', 7)
    shut_the_box.apply_roll(data, 'a', 7)
    assert not shut_the_box.apply_roll(data, 'a', 8)
    assert not shut_the_box.apply_move(data, 'b', [7])


def test_end_turn_only_when_stuck():
    data = _game()
    shut_the_box.apply_roll(data, 'a', 7)
    assert not shut_the_box.apply_end_turn(data, 'a')

    data.players['a'].numbers = [9, 10]
    assert shut_the_box.apply_end_turn(data, 'a')
    assert data.players['a'].is_finished
    assert data.current_turn == 'b'
    assert data.winner is None


def test_remaining_player_keeps_rolling_after_opponent_finishes():
    data = _game()
    data.players['a'].is_finished = True
    data.current_turn = 'a'
    assert shut_the_box.may_act(data, 'b')
    assert not shut_the_box.may_act(data, 'a')
    shut_the_box.apply_roll(data, 'b', 3)
    shut_the_box.apply_move(data, 'b', [3])
    assert data.current_turn == 'b'


def test_emptying_the_board_wins():
    data = _game()
    data.players['a'].numbers = [3, 4]
    shut_the_box.apply_roll(data, 'a', 7)
    assert shut_the_box.apply_move(data, 'a', [3, 4])
    assert data.winner == 'a'
    assert data.players['a'].score == 0


def test_both_finished_lower_score_wins():
    data = _game()
    data.players['a'].numbers = [12]
    data.players['b'].numbers = [11]
    data.players['b'].is_finished = True
    shut_the_box.apply_roll(data, 'a', 2)
    assert shut_the_box.apply_end_turn(data, 'a')
    assert data.winner == 'b'


def test_both_finished_equal_scores_tie():
    data = _game()
    data.players['a'].numbers = [10]
    data.players['b'].numbers = [4, 6]
    data.players['b'].is_finished = True
    shut_the_box.apply_roll(data, 'a', 2)
    assert shut_the_box.apply_end_turn(data, 'a')
    assert data.winner == TIE


def test_score_is_always_sum_of_numbers():
    data = _game()
    data.players['a'].numbers = [1, 5, 12]
    doc = data.to_doc()
    assert doc['players']['a']['score'] == 18
    doc['players']['a']['score'] = 999
    restored = ShutTheBoxData.from_doc(doc)
    assert restored.players['a'].score == 18
