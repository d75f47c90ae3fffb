from gamehub import socketio

from conftest import drain, payloads


def create_game(player):
    player.sio.emit('create_game', {'game_type': 'nim'}, namespace='/ws')
    events = drain(player.sio)
    return payloads(events, 'game_created')[0]['game_id']


def start_game(alice, bob):
    game_id = create_game(alice)
    bob.sio.emit('join_game', {'game_id': game_id}, namespace='/ws')
    drain(alice.sio)
    drain(bob.sio)
    return game_id


def move(player, game_id, num_objects):
    player.sio.emit('make_move', {'game_id': game_id, 'move': {'num_objects': num_objects}}, namespace='/ws')


def test_socket_connect_requires_login(flask_app):
    anonymous = socketio.test_client(flask_app, namespace='/ws')
    assert not anonymous.is_connected('/ws')


def test_socket_connect_and_ping(make_player):
    alice = make_player('alice')
    events = drain(alice.sio)
    assert payloads(events, 'connected')[0]['player'] == 'alice'
    alice.sio.emit('ping', {'n': 1}, namespace='/ws')
    assert payloads(drain(alice.sio), 'pong') == [{'n': 1}]


def test_create_game_over_socket(make_player):
    alice = make_player('alice')
    drain(alice.sio)
    alice.sio.emit('create_game', {'game_type': 'nim'}, namespace='/ws')
    events = drain(alice.sio)
    game_id = payloads(events, 'game_created')[0]['game_id']
    updates = payloads(events, 'game_update')
    assert len(updates) == 1
    assert updates[0]['game_state']['game_id'] == game_id
    assert updates[0]['game_state']['players'] == ['alice']
    assert updates[0]['game_state']['state']['status'] == 'WAITING'


def test_create_invalid_type_errors_to_requester(make_player):
    alice = make_player('alice')
    drain(alice.sio)
    alice.sio.emit('create_game', {'game_type': 'go'}, namespace='/ws')
    errors = payloads(drain(alice.sio), 'game_error')
    assert errors == [{'player': 'alice', 'code': 'InvalidGameType', 'error': 'Unsupported game type: go'}]


def test_join_broadcasts_to_every_subscriber(make_player):
    alice = make_player('alice')
    bob = make_player('bob')
    game_id = create_game(alice)
    drain(bob.sio)

    bob.sio.emit('join_game', {'game_id': game_id}, namespace='/ws')
    for player in (alice, bob):
        updates = payloads(drain(player.sio), 'game_update')
        assert len(updates) == 1
        state = updates[0]['game_state']
        assert state['players'] == ['alice', 'bob']
        assert state['state']['status'] == 'IN_PROGRESS'
        assert state['state']['turn'] == 'alice'


def test_join_errors_are_unicast(make_player):
    alice = make_player('alice')
    bob = make_player('bob')
    carol = make_player('carol')
    game_id = start_game(alice, bob)
    drain(carol.sio)

    carol.sio.emit('join_game', {'game_id': game_id}, namespace='/ws')
    errors = payloads(drain(carol.sio), 'game_error')
    assert [e['code'] for e in errors] == ['SessionFull']
    assert drain(alice.sio) == []
    assert drain(bob.sio) == []

    # Carol was unsubscribed again, so later updates do not reach her
    move(alice, game_id, 2)
    assert payloads(drain(carol.sio), 'game_update') == []

    carol.sio.emit('join_game', {'game_id': 'NOPE42'}, namespace='/ws')
    assert [e['code'] for e in payloads(drain(carol.sio), 'game_error')] == ['SessionNotFound']
    carol.sio.emit('join_game', {}, namespace='/ws')
    assert [e['code'] for e in payloads(drain(carol.sio), 'game_error')] == ['BadRequest']


def test_rejoin_sends_state_to_requester_only(make_player):
    alice = make_player('alice')
    bob = make_player('bob')
    game_id = start_game(alice, bob)

    alice.sio.emit('join_game', {'game_id': game_id}, namespace='/ws')
    updates = payloads(drain(alice.sio), 'game_update')
    assert len(updates) == 1
    assert updates[0]['game_state']['players'] == ['alice', 'bob']
    assert drain(bob.sio) == []


def test_invalid_move_error_goes_to_mover_only(make_player):
    alice = make_player('alice')
    bob = make_player('bob')
    game_id = start_game(alice, bob)

    move(bob, game_id, 1)
    errors = payloads(drain(bob.sio), 'game_error')
    assert len(errors) == 1
    assert errors[0]['code'] == 'NotYourTurn'
    assert errors[0]['player'] == 'bob'
    assert drain(alice.sio) == []

    move(alice, game_id, 4)
    assert [e['code'] for e in payloads(drain(alice.sio), 'game_error')] == ['InvalidQuantity']
    assert drain(bob.sio) == []


def test_full_nim_game_end_to_end(make_player):
    alice = make_player('alice')
    bob = make_player('bob')
    drain(bob.sio)

    alice.sio.emit('create_game', {'game_type': 'nim'}, namespace='/ws')
    events = drain(alice.sio)
    game_id = payloads(events, 'game_created')[0]['game_id']
    assert payloads(events, 'game_update')[0]['game_state']['state']['status'] == 'WAITING'

    bob.sio.emit('join_game', {'game_id': game_id}, namespace='/ws')
    joined = payloads(drain(alice.sio), 'game_update')[-1]['game_state']
    drain(bob.sio)
    assert joined['state']['status'] == 'IN_PROGRESS'
    assert joined['state']['turn'] == 'alice'

    move(alice, game_id, 3)
    after = payloads(drain(bob.sio), 'game_update')[-1]['game_state']['state']
    assert (after['remaining_objects'], after['turn']) == (18, 'bob')
    move(bob, game_id, 1)
    after = payloads(drain(alice.sio), 'game_update')[-1]['game_state']['state']
    assert (after['remaining_objects'], after['turn']) == (17, 'alice')
    drain(alice.sio)
    drain(bob.sio)

    # 17 -> 14 -> 11 -> 8 -> 5 -> 2 -> 0, bob takes the last objects
    plan = [(alice, 3), (bob, 3), (alice, 3), (bob, 3), (alice, 3), (bob, 2)]
    for player, quantity in plan:
        move(player, game_id, quantity)

    for player in (alice, bob):
        updates = payloads(drain(player.sio), 'game_update')
        assert len(updates) == len(plan)
        remaining = [u['game_state']['state']['remaining_objects'] for u in updates]
        assert remaining == [14, 11, 8, 5, 2, 0]
        versions = [u['game_state']['version'] for u in updates]
        assert versions == sorted(versions)
        final_updates = [u for u in updates if u['game_state']['state']['status'] == 'OVER']
        assert len(final_updates) == 1
        assert final_updates[0]['game_state']['state']['winner'] == 'alice'

    history = alice.http.get('/api/games/history').get_json()
    assert [h['winner'] for h in history] == ['alice']

    # Further moves are rejected and only reach the mover
    move(alice, game_id, 1)
    assert [e['code'] for e in payloads(drain(alice.sio), 'game_error')] == ['GameOver']
    assert drain(bob.sio) == []


def test_leave_forfeits_and_notifies_remaining(make_player):
    alice = make_player('alice')
    bob = make_player('bob')
    game_id = start_game(alice, bob)

    bob.sio.emit('leave_game', {'game_id': game_id}, namespace='/ws')
    bob_events = drain(bob.sio)
    assert payloads(bob_events, 'left') == [{'game_id': game_id}]
    assert payloads(bob_events, 'game_update') == []

    updates = payloads(drain(alice.sio), 'game_update')
    assert len(updates) == 1
    state = updates[0]['game_state']
    assert state['players'] == ['alice']
    assert state['state']['status'] == 'OVER'
    assert state['state']['winner'] == 'alice'
    assert state['state']['forfeited_by'] == 'bob'


def test_disconnect_counts_as_leave(make_player):
    alice = make_player('alice')
    bob = make_player('bob')
    game_id = start_game(alice, bob)

    bob.sio.disconnect(namespace='/ws')
    updates = payloads(drain(alice.sio), 'game_update')
    assert len(updates) == 1
    assert updates[0]['game_state']['players'] == ['alice']
    assert updates[0]['game_state']['state']['winner'] == 'alice'


def test_disconnect_while_waiting_shrinks_membership(make_player, hub):
    alice = make_player('alice')
    game_id = create_game(alice)
    alice.sio.disconnect(namespace='/ws')
    game = hub.manager.get_game(game_id)
    assert game.players == ()
    assert game.status.value == 'WAITING'


def test_eviction_ends_session_for_subscribers(make_player, hub):
    alice = make_player('alice')
    bob = make_player('bob')
    game_id = start_game(alice, bob)
    bob.sio.emit('leave_game', {'game_id': game_id}, namespace='/ws')
    drain(alice.sio)

    assert hub.store.evict(game_id)
    assert payloads(drain(alice.sio), 'session_ended') == [{'game_id': game_id}]


def test_disconnect_forfeits_game_joined_over_http(make_player, hub):
    alice = make_player('alice')
    bob = make_player('bob')
    game_id = alice.http.post('/api/games/create', json={'game_type': 'nim'}).get_json()['game_id']
    assert bob.http.post(f'/api/games/{game_id}/join').status_code == 200
    assert hub.manager.get_game(game_id).status.value == 'IN_PROGRESS'

    bob.sio.disconnect(namespace='/ws')
    game = hub.manager.get_game(game_id)
    assert game.status.value == 'OVER'
    assert game.players == ('alice',)
    assert game.state.winner == 'alice'
    assert game.state.forfeited_by == 'bob'


def test_http_seat_kept_while_another_socket_is_open(flask_app, make_player, hub):
    alice = make_player('alice')
    bob = make_player('bob')
    game_id = alice.http.post('/api/games/create', json={'game_type': 'nim'}).get_json()['game_id']
    bob.http.post(f'/api/games/{game_id}/join')

    second_tab = socketio.test_client(flask_app, namespace='/ws', flask_test_client=bob.http)
    assert second_tab.is_connected('/ws')
    bob.sio.disconnect(namespace='/ws')
    assert hub.manager.get_game(game_id).status.value == 'IN_PROGRESS'

    second_tab.disconnect(namespace='/ws')
    assert hub.manager.get_game(game_id).state.forfeited_by == 'bob'
