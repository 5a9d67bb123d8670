import random

import pytest

from party.logic.enums import SessionStatus, TurnActionType, Variant
from party.logic.exceptions import InvalidActionError
from party.logic.rules.charades import CharadesRule, next_guesser
from party.logic.state import Session, TurnAction
from party.tests.conftest import create_session, single_item_library


def _rule(seed: int = 5) -> CharadesRule:
    return CharadesRule(single_item_library(), random.Random(seed))


def _at(showing: int, guesser: int, *, capacity: int = 5, status: SessionStatus = SessionStatus.ACTIVE) -> Session:
    session = create_session(Variant.CHARADES, capacity, content=single_item_library(), status=status)
    return session.model_copy(
        update={
            "content": session.content.model_copy(update={"odd_seat": showing}),
            "turn": session.turn.model_copy(update={"guesser_seat": guesser}),
        }
    )


class TestNextGuesser:
    @pytest.mark.parametrize(
        ("guesser", "showing", "capacity", "expected"),
        [(3, 2, 5, 4), (1, 2, 5, 3), (4, 2, 5, 0), (4, 0, 5, 1), (0, 1, 2, 0)],
    )
    def test_skips_showing_seat(self, guesser, showing, capacity, expected):
        assert next_guesser(guesser, showing, capacity) == expected


class TestCharadesAssignment:
    def test_first_guesser_follows_showing_seat(self):
        session = create_session(Variant.CHARADES, 5)

        assert session.turn.guesser_seat == (session.content.odd_seat + 1) % 5

    def test_only_showing_seat_sees_word(self):
        session = _at(showing=2, guesser=3)
        rule = _rule()

        for seat in range(5):
            view = rule.seat_view(session, seat)
            if seat == 2:
                assert (view.value, view.category, view.is_odd) == ("juggling", "actions", True)
            else:
                assert (view.value, view.category, view.is_odd) == (None, None, False)
            assert view.guesser_seat == 3

    def test_starts_waiting_without_turn(self):
        session = create_session(Variant.CHARADES, 4)

        assert session.status == SessionStatus.WAITING
        assert _rule().turn_pointer(session) is None


class TestCharadesTurns:
    def test_start_activates_once(self):
        rule = _rule()
        session = _at(showing=0, guesser=1, status=SessionStatus.WAITING)

        started = rule.transition(session, TurnAction(type=TurnActionType.START))

        assert started.status == SessionStatus.ACTIVE
        assert rule.turn_pointer(started) == 1
        with pytest.raises(InvalidActionError, match="already started"):
            rule.transition(started, TurnAction(type=TurnActionType.START))

    def test_not_guessed_passes_to_next_seat(self):
        updated = _rule().transition(_at(2, 3), TurnAction(type=TurnActionType.NOT_GUESSED, seat=3))

        assert updated.turn.guesser_seat == 4
        assert updated.content == _at(2, 3).content

    def test_not_guessed_skips_showing_seat(self):
        updated = _rule().transition(_at(2, 1), TurnAction(type=TurnActionType.NOT_GUESSED, seat=1))

        assert updated.turn.guesser_seat == 3

    def test_guessed_hands_showing_role_to_guesser(self):
        session = _at(2, 3)

        updated = _rule().transition(session, TurnAction(type=TurnActionType.GUESSED, seat=3))

        assert updated.content.odd_seat == 3
        assert updated.turn.guesser_seat == 4
        assert updated.turn.round_number == session.turn.round_number + 1
        assert updated.content.round_id != session.content.round_id

    def test_guessed_wraps_around_table(self):
        updated = _rule().transition(_at(3, 4), TurnAction(type=TurnActionType.GUESSED, seat=4))

        assert (updated.content.odd_seat, updated.turn.guesser_seat) == (4, 0)

    def test_only_guesser_may_act(self):
        with pytest.raises(InvalidActionError, match="not the current guesser"):
            _rule().transition(_at(2, 3), TurnAction(type=TurnActionType.GUESSED, seat=0))

    def test_host_acts_without_seat(self):
        updated = _rule().transition(_at(2, 3), TurnAction(type=TurnActionType.NOT_GUESSED))

        assert updated.turn.guesser_seat == 4

    def test_guess_before_start_rejected(self):
        session = _at(2, 3, status=SessionStatus.WAITING)

        with pytest.raises(InvalidActionError, match="before the game has started"):
            _rule().transition(session, TurnAction(type=TurnActionType.GUESSED, seat=3))


class TestCharadesNewRound:
    def test_keeps_status_and_moves_showing_seat(self):
        rule = _rule(seed=9)
        session = _at(2, 3)

        for _ in range(20):
            updated = rule.new_round(session)
            assert updated.status == SessionStatus.ACTIVE
            assert updated.content.odd_seat != session.content.odd_seat
            assert updated.turn.guesser_seat == (updated.content.odd_seat + 1) % 5
            session = updated
