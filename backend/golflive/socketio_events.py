from flask_socketio import join_room, leave_room, emit
from flask import current_app
from golflive import socketio, get_engine

NAMESPACE = '/ws'


def room_for(tournament_id: str) -> str:
    return f"tournament:{tournament_id}"


def broadcast(event: str, payload: dict, tournament_id: str = None) -> None:
    """Push an engine event to every client following the tournament."""
    if tournament_id:
        socketio.emit(event, payload, to=room_for(tournament_id), namespace=NAMESPACE)
    else:
        socketio.emit(event, payload, namespace=NAMESPACE)


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    pass


def handle_join_tournament(data):
    tournament_id = (data or {}).get('tournament_id')
    if not tournament_id:
        emit('error', {'message': 'tournament_id is required'})
        return
    room = room_for(tournament_id)
    join_room(room)
    emit('joined', {'room': room})
    # Late joiners get the current standings straight away
    engine = get_engine()
    board = engine.leaderboard(tournament_id)
    emit('leaderboard_update', {
        'tournament_id': tournament_id,
        'leaderboard': [e.to_dict() for e in board],
    })
    tournament = engine.get_tournament(tournament_id)
    sidegame = engine.sidegame_for_round(tournament_id, tournament.current_round) if tournament else None
    if sidegame:
        emit('team_leaderboard_update', {
            'sidegame_id': sidegame.id,
            'leaderboard': [e.to_dict() for e in engine.team_leaderboard(sidegame.id)],
        })
    current_app.logger.info(f"[ws-join] tournament={tournament_id} known={tournament is not None}")


def handle_leave_tournament(data):
    tournament_id = (data or {}).get('tournament_id')
    if not tournament_id:
        emit('error', {'message': 'tournament_id is required'})
        return
    room = room_for(tournament_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for namespace in ([NAMESPACE, '/'] if testing else [NAMESPACE]):
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_tournament', handle_join_tournament, namespace=namespace)
        socketio.on_event('leave_tournament', handle_leave_tournament, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
