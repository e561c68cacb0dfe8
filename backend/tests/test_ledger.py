import pytest


def _transfer(client, headers, game_id, amount, category, **extra):
    body = {'game_id': game_id, 'amount': amount, 'category': category}
    body.update(extra)
    return client.post('/api/games/transfer', json=body, headers=headers)


def _balances(players_list):
    return {p['user_id']: p['balance'] for p in players_list}


def test_rent_moves_money_between_players(client, players, running_game):
    alice, bob = players['alice'], players['bob']
    res = _transfer(client, alice['headers'], running_game['id'], 200, 'rent', to_player_id=bob['id'])
    assert res.status_code == 200
    body = res.get_json()
    assert body['message'] == 'Transaction successful'
    balances = _balances(body['players'])
    assert balances[alice['id']] == 1300
    assert balances[bob['id']] == 1700

    tx = body['transaction']
    assert tx['from'] == alice['id']
    assert tx['to'] == bob['id']
    assert tx['amount'] == 200
    assert tx['category'] == 'rent'
    assert tx['description'] == 'Rent'

    game = client.get(f"/api/games/{running_game['code']}", headers=bob['headers']).get_json()['game']
    assert [t['id'] for t in game['transactions']] == [tx['id']]


def test_insufficient_balance_changes_nothing(client, players, running_game):
    alice, bob = players['alice'], players['bob']
    res = _transfer(client, alice['headers'], running_game['id'], 2000, 'transfer', to_player_id=bob['id'])
    assert res.status_code == 400
    assert res.get_json()['code'] == 'INSUFFICIENT_BALANCE'

    game = client.get(f"/api/games/{running_game['code']}", headers=alice['headers']).get_json()['game']
    assert _balances(game['players']) == {alice['id']: 1500, bob['id']: 1500}
    assert game['transactions'] == []


def test_bank_payment_beyond_balance_is_refused(client, players, running_game):
    alice = players['alice']
    res = _transfer(client, alice['headers'], running_game['id'], 2000, 'bank_pay')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'INSUFFICIENT_BALANCE'
    game = client.get(f"/api/games/{running_game['code']}", headers=alice['headers']).get_json()['game']
    assert _balances(game['players'])[alice['id']] == 1500
    assert game['transactions'] == []


def test_exact_balance_can_be_spent(client, players, running_game):
    res = _transfer(client, players['alice']['headers'], running_game['id'], 1500, 'purchase')
    assert res.status_code == 200
    assert _balances(res.get_json()['players'])[players['alice']['id']] == 0


@pytest.mark.parametrize('category,delta,label', [
    ('bank_pay', -150, 'Paid the bank'),
    ('tax', -150, 'Tax'),
    ('purchase', -150, 'Purchase'),
    ('bank_receive', 150, 'Received from the bank'),
    ('go_salary', 150, 'Passed GO'),
])
def test_bank_categories(client, players, running_game, category, delta, label):
    alice, bob = players['alice'], players['bob']
    res = _transfer(client, alice['headers'], running_game['id'], 150, category)
    assert res.status_code == 200
    body = res.get_json()
    balances = _balances(body['players'])
    assert balances[alice['id']] == 1500 + delta
    assert balances[bob['id']] == 1500
    tx = body['transaction']
    # The acting player is always recorded as the source; the bank side is null
    assert tx['from'] == alice['id']
    assert tx['to'] is None
    assert tx['description'] == label


def test_bank_categories_ignore_recipient(client, players, running_game):
    alice, bob = players['alice'], players['bob']
    res = _transfer(client, alice['headers'], running_game['id'], 100, 'tax', to_player_id=bob['id'])
    body = res.get_json()
    assert _balances(body['players'])[bob['id']] == 1500
    assert body['transaction']['to'] is None


def test_peer_transfers_conserve_money(client, players, running_game):
    alice, bob = players['alice'], players['bob']
    gid = running_game['id']
    _transfer(client, alice['headers'], gid, 120, 'transfer', to_player_id=bob['id'])
    _transfer(client, bob['headers'], gid, 45, 'rent', to_player_id=alice['id'])
    res = _transfer(client, alice['headers'], gid, 10, 'transfer', to_player_id=bob['id'], description='snacks')
    assert res.get_json()['transaction']['description'] == 'snacks'
    assert sum(_balances(res.get_json()['players']).values()) == 3000


def test_description_is_trimmed(client, players, running_game):
    res = _transfer(client, players['alice']['headers'], running_game['id'], 10, 'tax', description='  ' + 'x' * 250)
    assert res.get_json()['transaction']['description'] == 'x' * 200


@pytest.mark.parametrize('amount', [0, -5, 'abc', 12.5, True, None])
def test_invalid_amount(client, players, running_game, amount):
    res = _transfer(client, players['alice']['headers'], running_game['id'], amount, 'tax')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'INVALID_AMOUNT'


def test_amount_from_form_field(client, players, running_game):
    res = _transfer(client, players['alice']['headers'], running_game['id'], '50', 'bank_pay')
    assert res.status_code == 200
    assert res.get_json()['transaction']['amount'] == 50


def test_transfer_requires_running_game(client, players):
    alice, bob = players['alice'], players['bob']
    game = client.post('/api/games/create', json={'name': 'Lobby'}, headers=alice['headers']).get_json()['game']
    client.post('/api/games/join', json={'code': game['code']}, headers=bob['headers'])
    res = _transfer(client, alice['headers'], game['id'], 50, 'transfer', to_player_id=bob['id'])
    assert res.get_json()['code'] == 'NOT_IN_PROGRESS'


def test_transfer_after_end_is_refused(client, players, running_game):
    client.post('/api/games/end', json={'game_id': running_game['id']}, headers=players['alice']['headers'])
    res = _transfer(client, players['bob']['headers'], running_game['id'], 50, 'go_salary')
    assert res.get_json()['code'] == 'NOT_IN_PROGRESS'


def test_outsider_cannot_transfer(client, players, running_game):
    res = _transfer(client, players['cara']['headers'], running_game['id'], 50, 'go_salary')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'NOT_IN_GAME'


def test_recipient_errors(client, players, running_game):
    alice, cara = players['alice'], players['cara']
    gid = running_game['id']
    res = _transfer(client, alice['headers'], gid, 50, 'rent')
    assert res.get_json()['code'] == 'INVALID_RECIPIENT'
    res = _transfer(client, alice['headers'], gid, 50, 'rent', to_player_id=cara['id'])
    assert res.get_json()['code'] == 'RECIPIENT_NOT_FOUND'
    res = _transfer(client, alice['headers'], gid, 50, 'transfer', to_player_id='nobody')
    assert res.get_json()['code'] == 'RECIPIENT_NOT_FOUND'


def test_unknown_category(client, players, running_game):
    res = _transfer(client, players['alice']['headers'], running_game['id'], 50, 'lottery')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'INVALID_CATEGORY'


def test_unknown_game(client, players):
    res = _transfer(client, players['alice']['headers'], 424242, 50, 'tax')
    assert res.status_code == 404
    assert res.get_json()['code'] == 'GAME_NOT_FOUND'


def test_every_category_has_a_rule():
    from monopay.services.games.ledger import CATEGORY_RULES, Category

    assert set(CATEGORY_RULES) == set(Category)
    for rule in CATEGORY_RULES.values():
        # A rule either takes money from the requester or gives it, never both
        assert rule.debits_requester != rule.credits_requester
        assert not rule.credits_recipient or rule.requires_recipient


def test_parse_amount():
    from monopay.errors import ValidationError
    from monopay.services.games.ledger import parse_amount

    assert parse_amount(7) == 7
    assert parse_amount(' 12 ') == 12
    assert parse_amount(3.0) == 3
    for bad in (0, -1, '1.5', '', [], False):
        with pytest.raises(ValidationError):
            parse_amount(bad)


@pytest.mark.parametrize('amount', [2 ** 31, 10 ** 19])
def test_amount_beyond_column_range(client, players, running_game, amount):
    res = _transfer(client, players['alice']['headers'], running_game['id'], amount, 'bank_receive')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'INVALID_AMOUNT'


def test_credit_cannot_overflow_balance(client, players):
    from monopay.models import MAX_MONEY

    alice, bob = players['alice'], players['bob']
    game = client.post('/api/games/create', json={'name': 'High Rollers', 'starting_balance': MAX_MONEY},
                       headers=alice['headers']).get_json()['game']
    client.post('/api/games/join', json={'code': game['code']}, headers=bob['headers'])
    client.post('/api/games/ready', json={'game_id': game['id']}, headers=bob['headers'])
    client.post('/api/games/start', json={'game_id': game['id']}, headers=alice['headers'])

    res = _transfer(client, alice['headers'], game['id'], 1, 'go_salary')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'INVALID_AMOUNT'
    res = _transfer(client, bob['headers'], game['id'], 1, 'rent', to_player_id=alice['id'])
    assert res.get_json()['code'] == 'INVALID_AMOUNT'

    state = client.get(f"/api/games/{game['code']}", headers=alice['headers']).get_json()['game']
    assert _balances(state['players']) == {alice['id']: MAX_MONEY, bob['id']: MAX_MONEY}
    assert state['transactions'] == []
