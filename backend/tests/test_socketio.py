from golflive import socketio


def names(packets):
    return [pkt['name'] for pkt in packets]


def test_socket_connect_and_ping(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    assert 'connected' in names(sio_client.get_received('/ws'))

    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert received[-1]['name'] == 'pong'
    assert received[-1]['args'][0] == {'n': 1}


def test_join_requires_tournament_id(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_tournament', {}, namespace='/ws')
    assert names(sio_client.get_received('/ws')) == ['error']


def test_join_sends_current_standings(sio_client, tournament):
    sio_client.get_received('/ws')
    sio_client.emit('join_tournament', {'tournament_id': tournament.id}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert names(received) == ['joined', 'leaderboard_update']
    payload = received[1]['args'][0]
    assert payload['tournament_id'] == tournament.id
    assert len(payload['leaderboard']) == 4


def test_score_events_reach_the_tournament_room(sio_client, client, tournament):
    sio_client.emit('join_tournament', {'tournament_id': tournament.id}, namespace='/ws')
    sio_client.get_received('/ws')  # flush

    client.post(f'/api/tournaments/{tournament.id}/rounds/1/sidegame', json={'game_type': 'sum-match'})
    client.post(f'/api/tournaments/{tournament.id}/scoring-updates',
                json={'player': 'Alice', 'action': 'birdie', 'hole': 1})

    received = sio_client.get_received('/ws')
    events = names(received)
    assert 'scoring_update' in events
    assert 'leaderboard_update' in events
    assert 'team_match_update' in events
    assert 'team_leaderboard_update' in events
    update = next(p for p in received if p['name'] == 'scoring_update')['args'][0]
    assert update['score_entry']['strokes'] == 3


def test_other_rooms_do_not_hear_scores(flask_app, client, engine, tournament):
    other = engine.create_tournament('Elsewhere', players=['Zed'])
    listener = socketio.test_client(flask_app, namespace='/ws')
    listener.emit('join_tournament', {'tournament_id': other.id}, namespace='/ws')
    listener.get_received('/ws')

    client.post(f'/api/tournaments/{tournament.id}/scoring-updates',
                json={'player': 'Alice', 'action': 'par', 'hole': 1})
    assert listener.get_received('/ws') == []

    listener.emit('leave_tournament', {'tournament_id': other.id}, namespace='/ws')
    assert names(listener.get_received('/ws')) == ['left']
    listener.disconnect(namespace='/ws')
