from flask import Blueprint, jsonify, request
from golflive import get_engine


sidegames = Blueprint('sidegames', __name__)


@sidegames.route('/teams', methods=['GET'])
def get_teams():
    return jsonify([t.to_dict() for t in get_engine().teams])


@sidegames.route('/tournaments/<string:tournament_id>/rounds/<int:round_no>/sidegame', methods=['POST'])
def create_sidegame(tournament_id, round_no):
    data = request.get_json(silent=True) or {}
    sidegame = get_engine().create_sidegame(
        tournament_id, round_no, data.get('game_type'), data.get('groupings'),
    )
    if sidegame is None:
        return jsonify({'error': 'Tournament not found'}), 404
    return jsonify(sidegame.to_dict()), 201


@sidegames.route('/tournaments/<string:tournament_id>/rounds/<int:round_no>/sidegame', methods=['GET'])
def get_sidegame(tournament_id, round_no):
    sidegame = get_engine().sidegame_for_round(tournament_id, round_no)
    if not sidegame:
        return jsonify({'error': 'No sidegame found for this round'}), 404
    return jsonify(sidegame.to_dict())


@sidegames.route('/sidegames/<string:sidegame_id>/leaderboard', methods=['GET'])
def get_team_leaderboard(sidegame_id):
    return jsonify([e.to_dict() for e in get_engine().team_leaderboard(sidegame_id)])


@sidegames.route('/sidegames/<string:sidegame_id>/scorecard', methods=['GET'])
def get_sum_match_scorecard(sidegame_id):
    scorecard = get_engine().sum_match_scorecard(sidegame_id)
    return jsonify({str(hole): teams for hole, teams in scorecard.items()})
