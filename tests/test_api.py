from datetime import datetime

from sqlalchemy.exc import OperationalError

from core.game_manager import GameManager
from database import settings, store_read


def _create(client, creator_id=1, **overrides):
    payload = {'name': 'Weekend Warriors', 'duration_days': 7, 'deposit_amount': 100, 'creator_id': creator_id}
    payload.update(overrides)
    return client.post('/api/games', json=payload)


def test_health(client):
    assert client.get('/health').json() == {'status': 'healthy'}


def test_create_game(client):
    res = _create(client)
    assert res.status_code == 201
    game = res.json()
    assert game['status'] == 'pending'
    assert game['total_pot'] == 0
    assert game['starts_at'] is None
    assert game['players'] == [
        {
            'player_id': 1,
            'deposit_amount': 100,
            'has_deposited': False,
            'wallet_reference': None,
            'wallet_address': None,
            'deposited_at': None,
            'joined_at': game['created_at'],
        }
    ]


def test_create_game_validation(client):
    assert _create(client, name='  ').status_code == 400
    assert _create(client, duration_days=0).status_code == 400
    assert _create(client, deposit_amount=-1).status_code == 400
    assert _create(client, deposit_amount=0.0000001).status_code == 400


def test_join_deposit_and_activate(client, clock):
    code = _create(client).json()['id']

    res = client.post(f'/api/games/{code.lower()}/join', json={'player_id': 2})
    assert res.status_code == 200
    body = res.json()
    assert body['message'] == 'Joined Weekend Warriors! Deposit 100 to start playing.'
    assert [p['player_id'] for p in body['game']['players']] == [1, 2]

    res = client.post(f'/api/games/{code}/deposit', json={'player_id': 1, 'wallet_reference': 'tx1'})
    assert res.status_code == 200
    assert res.json()['status'] == 'pending'
    assert res.json()['total_pot'] == 100

    res = client.post(
        f'/api/games/{code}/deposit',
        json={'player_id': 2, 'wallet_reference': 'tx2', 'wallet_address': '0xfeed'}
    )
    game = res.json()
    assert game['status'] == 'active'
    assert game['total_pot'] == 200
    starts_at = datetime.fromisoformat(game['starts_at'])
    ends_at = datetime.fromisoformat(game['ends_at'])
    assert (ends_at - starts_at).days == 7

    fetched = client.get(f'/api/games/{code}').json()
    assert fetched == game


def test_join_errors(client):
    code = _create(client).json()['id']

    assert client.post('/api/games/ZZZZZZZZ/join', json={'player_id': 2}).status_code == 404

    assert client.post(f'/api/games/{code}/join', json={'player_id': 2}).status_code == 200
    dup = client.post(f'/api/games/{code}/join', json={'player_id': 2})
    assert dup.status_code == 409
    assert len(client.get(f'/api/games/{code}').json()['players']) == 2

    client.post(f'/api/games/{code}/deposit', json={'player_id': 1, 'wallet_reference': 'tx1'})
    client.post(f'/api/games/{code}/deposit', json={'player_id': 2, 'wallet_reference': 'tx2'})
    late = client.post(f'/api/games/{code}/join', json={'player_id': 3})
    assert late.status_code == 409


def test_deposit_errors(client):
    code = _create(client).json()['id']
    assert client.post('/api/games/ZZZZZZZZ/deposit', json={'player_id': 1, 'wallet_reference': 'tx'}).status_code == 404
    assert client.post(f'/api/games/{code}/deposit', json={'player_id': 7, 'wallet_reference': 'tx'}).status_code == 404
    assert client.post(f'/api/games/{code}/deposit', json={'player_id': 1, 'wallet_reference': ''}).status_code == 400


def test_yield_and_completion_flow(client, clock):
    code = _create(client).json()['id']
    client.post(f'/api/games/{code}/join', json={'player_id': 2})

    assert client.post(f'/api/games/{code}/yield', json={'amount': 1}).status_code == 409

    client.post(f'/api/games/{code}/deposit', json={'player_id': 1, 'wallet_reference': 'tx1'})
    client.post(f'/api/games/{code}/deposit', json={'player_id': 2, 'wallet_reference': 'tx2'})

    res = client.post(f'/api/games/{code}/yield', json={'amount': 4.5})
    assert res.json()['current_yield'] == 4.5
    assert client.post(f'/api/games/{code}/yield', json={'amount': -1}).status_code == 400

    early = client.post(f'/api/games/{code}/complete', json={'winner_id': 1})
    assert early.status_code == 400
    assert client.get(f'/api/games/{code}/payouts').status_code == 409

    clock.advance(days=7)
    assert client.post(f'/api/games/{code}/complete', json={'winner_id': 3}).status_code == 404

    done = client.post(f'/api/games/{code}/complete', json={'winner_id': 1})
    assert done.status_code == 200
    assert done.json()['status'] == 'completed'
    assert done.json()['winner_id'] == 1

    again = client.post(f'/api/games/{code}/complete', json={'winner_id': 2})
    assert again.status_code == 409

    payouts = client.get(f'/api/games/{code}/payouts').json()
    assert payouts == [
        {'player_id': 1, 'principal': 100, 'yield_share': 4.5, 'total': 104.5, 'is_winner': True},
        {'player_id': 2, 'principal': 100, 'yield_share': 0, 'total': 100, 'is_winner': False},
    ]

    events = [e['event_type'] for e in client.get(f'/api/games/{code}/events').json()]
    assert events[-2:] == ['GAME_STATE_CHANGED', 'GAME_COMPLETED']


def test_override_requires_admin_token(client, clock, monkeypatch):
    code = _create(client).json()['id']
    client.post(f'/api/games/{code}/deposit', json={'player_id': 1, 'wallet_reference': 'tx1'})
    body = {'winner_id': 1, 'override': True}

    assert client.post(f'/api/games/{code}/complete', json=body).status_code == 403

    monkeypatch.setattr(settings, 'admin_token', 's3cret')
    wrong = client.post(f'/api/games/{code}/complete', json=body, headers={'X-Admin-Token': 'nope'})
    assert wrong.status_code == 403

    ok = client.post(f'/api/games/{code}/complete', json=body, headers={'X-Admin-Token': 's3cret'})
    assert ok.status_code == 200
    assert ok.json()['status'] == 'completed'


def test_list_games(client, clock):
    first = _create(client, creator_id=1).json()['id']
    clock.advance(minutes=1)
    second = _create(client, creator_id=2, name='Second').json()['id']
    client.post(f'/api/games/{second}/join', json={'player_id': 1})
    client.post(f'/api/games/{first}/deposit', json={'player_id': 1, 'wallet_reference': 'tx1'})

    mine = client.get('/api/games', params={'player_id': 1}).json()
    assert [g['id'] for g in mine] == [second, first]

    active = client.get('/api/games', params={'player_id': 1, 'status': 'active'}).json()
    assert [g['id'] for g in active] == [first]

    everything = client.get('/api/games').json()
    assert {g['id'] for g in everything} == {first, second}
    pending = client.get('/api/games', params={'status': 'pending'}).json()
    assert [g['id'] for g in pending] == [second]


def test_get_unknown_game(client):
    assert client.get('/api/games/NOPE1234').status_code == 404
    assert client.get('/api/games/NOPE1234/events').status_code == 404


def test_store_outage_returns_503(client, monkeypatch):
    calls = []

    def broken(db, game_id):
        calls.append(game_id)
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    monkeypatch.setattr(GameManager, 'get_game', staticmethod(store_read(broken)))

    res = client.get('/api/games/ABCDEFGH')
    assert res.status_code == 503
    assert res.json()['detail'] == 'Storage temporarily unavailable'
    assert len(calls) == settings.store_retry_attempts
