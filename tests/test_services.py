from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from core.exceptions import InvalidStateError, GameNotFound, StoreUnavailableError
from core.state_machine import GameStateMachine
from database import transactional, settings
from models import Game, Player, GameStatus
from services.naming_service import generate_invite_code, normalize_invite_code, INVITE_CODE_ALPHABET
from services.payout_service import calculate_pot_total, all_players_deposited, calculate_payouts


def _player(player_id, deposited, amount="100"):
    return Player(player_id=player_id, deposit_amount=Decimal(amount), has_deposited=deposited)


def test_invite_codes():
    code = generate_invite_code(10)
    assert len(code) == 10
    assert set(code) <= set(INVITE_CODE_ALPHABET)
    assert normalize_invite_code(" ab12cd ") == "AB12CD"


def test_pot_total_counts_only_deposited_players():
    players = [_player(1, True), _player(2, False), _player(3, True, "50")]
    assert calculate_pot_total(players) == Decimal(150)
    assert calculate_pot_total([]) == Decimal(0)


def test_all_players_deposited():
    assert all_players_deposited([_player(1, True)])
    assert not all_players_deposited([_player(1, True), _player(2, False)])
    assert not all_players_deposited([])


def test_payouts_give_winner_the_yield():
    game = Game(id="G1", winner_id=2, current_yield=Decimal("7.25"))
    game.players.extend([_player(1, True), _player(2, True)])

    payouts = calculate_payouts(game)
    assert [p['total'] for p in payouts] == [Decimal(100), Decimal("107.25")]
    assert [p['is_winner'] for p in payouts] == [False, True]


def test_state_machine_transitions():
    assert GameStateMachine.can_transition(GameStatus.PENDING, GameStatus.ACTIVE)
    assert GameStateMachine.can_transition(GameStatus.ACTIVE, GameStatus.COMPLETED)
    assert not GameStateMachine.can_transition(GameStatus.PENDING, GameStatus.COMPLETED)
    assert not GameStateMachine.can_transition(GameStatus.COMPLETED, GameStatus.ACTIVE)

    game = Game(id="G1", status=GameStatus.COMPLETED)
    with pytest.raises(InvalidStateError):
        GameStateMachine.ensure_status(game, GameStatus.PENDING, "join")


def test_transactional_retries_then_raises_store_unavailable(db):
    calls = []

    @transactional
    def flaky(db):
        calls.append(1)
        raise OperationalError("UPDATE games", {}, Exception("server closed the connection"))

    with pytest.raises(StoreUnavailableError):
        flaky(db)
    assert len(calls) == settings.store_retry_attempts


def test_transactional_recovers_after_transient_error(db):
    calls = []

    @transactional
    def flaky(db):
        calls.append(1)
        if len(calls) < 2:
            raise OperationalError("UPDATE games", {}, Exception("database is locked"))
        return "ok"

    assert flaky(db) == "ok"
    assert len(calls) == 2


def test_transactional_does_not_retry_domain_errors(db):
    calls = []

    @transactional
    def missing(db):
        calls.append(1)
        raise GameNotFound("X")

    with pytest.raises(GameNotFound):
        missing(db)
    assert calls == [1]


def test_transactional_requires_session():
    @transactional
    def no_session(value):
        return value

    with pytest.raises(ValueError):
        no_session(1)
