def _stats(client, headers):
    return client.get('/api/auth/stats', headers=headers).get_json()


def test_ending_records_results(client, players, running_game):
    alice, bob = players['alice'], players['bob']
    client.post('/api/games/transfer', json={
        'game_id': running_game['id'], 'amount': 300, 'category': 'rent', 'to_player_id': bob['id'],
    }, headers=alice['headers'])
    client.post('/api/games/end', json={'game_id': running_game['id']}, headers=alice['headers'])

    bob_stats = _stats(client, bob['headers'])
    assert bob_stats['stats']['games_played'] == 1
    assert bob_stats['stats']['games_won'] == 1
    assert bob_stats['stats']['total_earnings'] == 300
    assert bob_stats['stats']['win_rate'] == '100%'
    assert bob_stats['stats']['current_streak'] == 1
    assert bob_stats['stats']['longest_streak'] == 1
    entry = bob_stats['game_history'][0]
    assert entry['game_id'] == running_game['code']
    assert entry['result'] == 'Won'
    assert entry['players'] == 2
    assert entry['earnings'] == 300
    assert entry['edition'] == 'Classic'

    alice_stats = _stats(client, alice['headers'])
    assert alice_stats['stats']['games_played'] == 1
    assert alice_stats['stats']['games_won'] == 0
    assert alice_stats['stats']['total_earnings'] == -300
    assert alice_stats['stats']['win_rate'] == '0%'
    assert alice_stats['game_history'][0]['result'] == 'Lost'


def test_tied_leaders_all_win(client, players, running_game):
    client.post('/api/games/end', json={'game_id': running_game['id']}, headers=players['alice']['headers'])
    for name in ('alice', 'bob'):
        stats = _stats(client, players[name]['headers'])['stats']
        assert stats['games_won'] == 1
        assert stats['total_earnings'] == 0


def test_ending_twice_counts_once(client, players, running_game):
    headers = players['alice']['headers']
    client.post('/api/games/end', json={'game_id': running_game['id']}, headers=headers)
    client.post('/api/games/end', json={'game_id': running_game['id']}, headers=headers)
    assert _stats(client, headers)['stats']['games_played'] == 1


def test_unstarted_game_records_nothing(client, players):
    headers = players['alice']['headers']
    game = client.post('/api/games/create', json={'name': 'Lobby'}, headers=headers).get_json()['game']
    client.post('/api/games/end', json={'game_id': game['id']}, headers=headers)
    body = _stats(client, headers)
    assert body['stats']['games_played'] == 0
    assert body['game_history'] == []


def test_history_is_pruned_and_newest_first(app_ctx):
    from monopay import db
    from monopay.models import GameHistory, User
    from monopay.services.games import lifecycle
    from monopay.services.games.stats import recent_history

    app_ctx.config['RECENT_GAMES_LIMIT'] = 2
    host = User(username='hosty')
    guest = User(username='guesty')
    db.session.add_all([host, guest])
    db.session.commit()

    codes = []
    for i in range(3):
        game = lifecycle.create_game(host, f'Round {i}')
        lifecycle.join_game(guest, game.code)
        lifecycle.toggle_ready(guest, game.id)
        lifecycle.start_game(host, game.id)
        lifecycle.end_game(host, game.id)
        codes.append(game.code)

    assert GameHistory.query.filter_by(user_id=host.id).count() == 2
    assert [h.game_code for h in recent_history(host, 10)] == [codes[2], codes[1]]
    assert host.games_played == 3
    assert host.longest_streak == 3


def test_last_host_leaving_running_game_records_results(client, players, running_game):
    alice, bob = players['alice'], players['bob']
    client.post('/api/games/leave', json={'game_id': running_game['id']}, headers=bob['headers'])
    client.post('/api/games/leave', json={'game_id': running_game['id']}, headers=alice['headers'])

    state = client.get(f"/api/games/{running_game['code']}", headers=alice['headers']).get_json()['game']
    assert state['status'] == 'finished'
    alice_stats = _stats(client, alice['headers'])
    assert alice_stats['stats']['games_played'] == 1
    assert alice_stats['game_history'][0]['game_id'] == running_game['code']
    # Bob left before the game closed
    assert _stats(client, bob['headers'])['stats']['games_played'] == 0

    # Leaving again records nothing more
    client.post('/api/games/leave', json={'game_id': running_game['id']}, headers=alice['headers'])
    assert _stats(client, alice['headers'])['stats']['games_played'] == 1


def test_last_host_leaving_lobby_records_nothing(client, players):
    headers = players['alice']['headers']
    game = client.post('/api/games/create', json={'name': 'Lobby'}, headers=headers).get_json()['game']
    client.post('/api/games/leave', json={'game_id': game['id']}, headers=headers)
    assert _stats(client, headers)['stats']['games_played'] == 0
