from flask import Blueprint, jsonify, request, current_app
from golflive import get_engine
from golflive.errors import GolfLiveError, ValidationError


tournaments = Blueprint('tournaments', __name__)


@tournaments.app_errorhandler(GolfLiveError)
def handle_golflive_error(exc):
    return jsonify({'error': exc.message}), exc.status_code


def _as_int(value, label):
    """Accept ints and numeric strings (form posts); None passes through."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{label} must be an integer')
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value.strip())
    raise ValidationError(f'{label} must be an integer')


@tournaments.route('', methods=['POST'])
def create_tournament():
    data = request.get_json(silent=True) or {}
    engine = get_engine()
    total_rounds = data.get('total_rounds')
    if total_rounds is None:
        total_rounds = current_app.config.get('DEFAULT_TOTAL_ROUNDS', 1)
    tournament = engine.create_tournament(
        data.get('name'),
        course=data.get('course') or '',
        players=data.get('players') or [],
        total_rounds=_as_int(total_rounds, 'total_rounds'),
        course_rating=data.get('course_rating'),
        slope_rating=data.get('slope_rating'),
        par=data.get('par'),
    )
    return jsonify(tournament.to_dict()), 201


@tournaments.route('/active', methods=['GET'])
def get_active_tournament():
    tournament = get_engine().active_tournament()
    if not tournament:
        return jsonify({'error': 'No active tournament'}), 404
    return jsonify(tournament.to_dict())


@tournaments.route('/<string:tournament_id>', methods=['GET'])
def get_tournament(tournament_id):
    tournament = get_engine().get_tournament(tournament_id)
    if not tournament:
        return jsonify({'error': 'Tournament not found'}), 404
    return jsonify(tournament.to_dict())


@tournaments.route('/<string:tournament_id>/leaderboard', methods=['GET'])
def get_leaderboard(tournament_id):
    round_no = _as_int(request.args.get('round'), 'round')
    view = request.args.get('view', 'stroke')
    board = get_engine().leaderboard(tournament_id, round_no, view)
    return jsonify([e.to_dict() for e in board])


@tournaments.route('/<string:tournament_id>/players/<string:player_id>/scorecard', methods=['GET'])
def get_scorecard(tournament_id, player_id):
    round_no = _as_int(request.args.get('round'), 'round')
    scorecard = get_engine().scorecard(tournament_id, player_id, round_no)
    if scorecard is None:
        return jsonify({'error': 'Player or tournament not found'}), 404
    return jsonify(scorecard)


@tournaments.route('/<string:tournament_id>/scoring-updates', methods=['POST'])
def post_scoring_updates(tournament_id):
    """Structured score events from the transcription parser: one update or {"updates": [...]}."""
    data = request.get_json(silent=True)
    if isinstance(data, dict) and 'updates' in data:
        updates = data['updates']
    elif isinstance(data, list):
        updates = data
    elif isinstance(data, dict):
        updates = [data]
    else:
        return jsonify({'error': 'A scoring update or a list of updates is required'}), 400
    if not isinstance(updates, list) or not all(isinstance(u, dict) for u in updates):
        return jsonify({'error': 'updates must be a list of objects'}), 400

    result = get_engine().apply_updates(tournament_id, updates)
    if result is None:
        return jsonify({'error': 'Tournament not found'}), 404
    payload = result.to_dict()
    payload['total_updates'] = len(updates)
    return jsonify(payload)


@tournaments.route('/<string:tournament_id>/manual-score', methods=['POST'])
def post_manual_score(tournament_id):
    data = request.get_json(silent=True) or {}
    player_id = data.get('player_id')
    if not player_id or data.get('hole') is None or 'strokes' not in data:
        return jsonify({'error': 'Missing required fields: player_id, hole, strokes'}), 400
    hole = _as_int(data.get('hole'), 'Hole')
    strokes = _as_int(data.get('strokes'), 'Strokes')

    result = get_engine().manual_score(tournament_id, player_id, hole, strokes)
    if result is None:
        return jsonify({'error': 'Player or tournament not found'}), 404
    if not result.changed:
        return jsonify({'error': 'No score to delete'}), 404
    return jsonify(dict(result.to_dict(), success=True))


@tournaments.route('/<string:tournament_id>/rounds/<int:round_no>', methods=['POST'])
def set_round(tournament_id, round_no):
    tournament = get_engine().set_current_round(tournament_id, round_no)
    if tournament is None:
        return jsonify({'error': 'Tournament not found'}), 404
    return jsonify({'success': True, 'current_round': tournament.current_round})


@tournaments.route('/<string:tournament_id>/advance-round', methods=['POST'])
def advance_round(tournament_id):
    tournament = get_engine().advance_round(tournament_id)
    if tournament is None:
        return jsonify({'error': 'Tournament not found'}), 404
    return jsonify({'success': True, 'current_round': tournament.current_round})


@tournaments.route('/<string:tournament_id>/clear', methods=['POST'])
def clear_tournament(tournament_id):
    data = request.get_json(silent=True) or {}
    if data.get('confirm') is not True:
        return jsonify({'error': 'Clearing is irreversible; send {"confirm": true}'}), 400
    if not get_engine().clear_tournament(tournament_id):
        return jsonify({'error': 'Tournament not found'}), 404
    return jsonify({'success': True, 'message': 'Tournament data cleared successfully'})
