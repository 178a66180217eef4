import pytest

from golflive.errors import ConflictError, ValidationError
from golflive.models import SUM_MATCH, ScoringUpdate
from golflive.services.engine import ScoringEngine
from golflive.services.storage import FileSnapshotStore
from golflive.services.sidegame import load_teams

TEAMS = {
    'teams': {
        'green': {'name': 'Green', 'color': '#2e7d32', 'players': ['Alice', 'Bob']},
        'red': {'name': 'Red', 'color': '#c62828', 'players': ['Carl', 'Dana']},
    }
}


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, payload, tournament_id=None):
        self.events.append((event, payload, tournament_id))

    def names(self):
        return [e[0] for e in self.events]

    def last(self, name):
        for event, payload, _ in reversed(self.events):
            if event == name:
                return payload
        return None


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def scoring(recorder):
    return ScoringEngine(teams=load_teams(TEAMS), publish=recorder)


@pytest.fixture()
def open_t(scoring):
    return scoring.create_tournament(
        'Club Champs', players=['Alice', 'Bob', 'Carl', 'Dana'], total_rounds=2,
    )


def test_create_tournament_with_course_and_handicaps(scoring):
    t = scoring.create_tournament(
        'El Saler Trip', course='El Saler 72.7 133',
        players=['Erik Qvist 8.7', {'name': 'Anna', 'handicap': 0}],
    )
    assert (t.course, t.course_rating, t.slope_rating) == ('El Saler', 72.7, 133.0)
    erik, anna = t.players
    assert (erik.name, erik.handicap, erik.received_strokes) == ('Erik Qvist', 8.7, 11)
    # 0 x 133 / 113 + (72.7 - 72) = 0.7 rounds to one stroke
    assert anna.received_strokes == 1
    assert t.current_round == 1
    assert scoring.get_tournament(t.id) is t


@pytest.mark.parametrize('kwargs', [
    {'name': ''},
    {'name': 'X', 'total_rounds': 0},
    {'name': 'X', 'par': [4] * 17},
    {'name': 'X', 'par': [6] * 18},
    {'name': 'X', 'players': [{'name': 'Bob', 'handicap': 'low'}]},
])
def test_create_tournament_validation(scoring, kwargs):
    with pytest.raises(ValidationError):
        scoring.create_tournament(**kwargs)


def test_active_tournament(recorder):
    scoring = ScoringEngine(publish=recorder)
    assert scoring.active_tournament() is None
    first = scoring.create_tournament('First')
    second = scoring.create_tournament('Second')
    assert scoring.active_tournament() is second
    scoring.active_tournament_name = 'First'
    assert scoring.active_tournament() is first


def test_relative_terms_and_hole_pointer(scoring, open_t, recorder):
    result = scoring.apply_updates(open_t.id, [
        {'player': 'Alice', 'action': 'birdie', 'hole': 1, 'rawTranscription': 'Alice birdie on one'},
        {'player': 'alice', 'action': 'par'},
        {'player': 'Bob', 'action': 'score', 'hole': 3, 'strokes': 7},
    ])
    assert [(e.hole, e.strokes) for e in result.entries] == [(1, 3), (2, 4), (3, 7)]
    assert result.skipped == []
    assert result.entries[0].round == 1
    assert recorder.names().count('scoring_update') == 3
    board = recorder.last('leaderboard_update')
    assert board['tournament_id'] == open_t.id
    assert board['leaderboard'][0]['player_name'] == 'Alice'
    first = recorder.events[0]
    assert first[1]['update']['raw_text'] == 'Alice birdie on one'
    assert first[2] == open_t.id


def test_invalid_updates_are_skipped_not_fatal(scoring, open_t):
    result = scoring.apply_updates(open_t.id, [
        {'player': 'Alice', 'action': 'score', 'hole': 19, 'strokes': 4},
        {'player': 'Alice', 'action': 'score', 'hole': 1},
        {'player': 'Alice', 'action': 'albatross', 'hole': 1},
        {'player': '', 'action': 'par', 'hole': 1},
        {'player': 'Bob', 'action': 'bogey', 'hole': 1},
    ])
    assert len(result.skipped) == 4
    assert [(e.hole, e.strokes) for e in result.entries] == [(1, 5)]
    assert len(open_t.scores) == 1


def test_unknown_player_is_registered(scoring, open_t):
    scoring.apply_updates(open_t.id, [{'player': 'Zoe', 'action': 'par', 'hole': 1}])
    assert [p.name for p in open_t.players][-1] == 'Zoe'


def test_unknown_player_rejected_without_auto_register(recorder):
    scoring = ScoringEngine(publish=recorder, auto_register_players=False)
    t = scoring.create_tournament('Strict', players=['Alice'])
    result = scoring.apply_updates(t.id, [{'player': 'Zoe', 'action': 'par', 'hole': 1}])
    assert result.entries == []
    assert result.skipped[0]['error'] == 'Unknown player'
    assert recorder.names() == []


def test_delete_updates(scoring, open_t, recorder):
    scoring.apply_updates(open_t.id, [
        {'player': 'Alice', 'action': 'par', 'hole': 1},
        {'player': 'Alice', 'action': 'par', 'hole': 2},
        {'player': 'Bob', 'action': 'par', 'hole': 1},
    ])
    result = scoring.apply_updates(open_t.id, [{'player': 'Alice', 'action': 'delete'}])
    assert [d.hole for d in result.deleted] == [2]
    assert recorder.last('score_deletion')['score_entry']['hole'] == 2

    result = scoring.apply_updates(open_t.id, [{'player': '', 'action': 'delete'}])
    assert len(result.deleted) == 1
    assert len(open_t.scores) == 1

    result = scoring.apply_updates(open_t.id, [{'player': 'Carl', 'action': 'delete'}])
    assert result.deleted == []
    assert result.skipped[0]['error'] == 'No score to delete'


def test_unknown_tournament(scoring):
    assert scoring.apply_updates('nope', [{'player': 'A', 'action': 'par'}]) is None
    assert scoring.manual_score('nope', 'p', 1, 4) is None
    assert scoring.set_current_round('nope', 2) is None
    assert scoring.create_sidegame('nope', 1, SUM_MATCH) is None
    assert scoring.clear_tournament('nope') is False
    assert scoring.leaderboard('nope') == []


def test_manual_score_and_delete(scoring, open_t):
    alice = open_t.players[0]
    result = scoring.manual_score(open_t.id, alice.id, 4, 2)
    assert result.entries[0].strokes == 2
    assert scoring.manual_score(open_t.id, 'ghost', 4, 2) is None
    with pytest.raises(ValidationError):
        scoring.manual_score(open_t.id, alice.id, 4, 0)

    result = scoring.manual_score(open_t.id, alice.id, 4, None)
    assert [d.hole for d in result.deleted] == [4]
    result = scoring.manual_score(open_t.id, alice.id, 4, None)
    assert not result.changed


def test_rounds_only_move_forward(scoring, open_t):
    scoring.apply_updates(open_t.id, [{'player': 'Alice', 'action': 'par', 'hole': 1}])
    assert scoring.advance_round(open_t.id).current_round == 2
    with pytest.raises(ValidationError):
        scoring.set_current_round(open_t.id, 1)
    with pytest.raises(ValidationError):
        scoring.set_current_round(open_t.id, 3)
    with pytest.raises(ValidationError):
        scoring.advance_round(open_t.id)

    result = scoring.apply_updates(open_t.id, [{'player': 'Alice', 'action': 'bogey', 'hole': 1}])
    assert result.entries[0].round == 2
    assert len(open_t.scores) == 2
    assert scoring.leaderboard(open_t.id, 1)[0].current_score == 0


def test_sidegame_follows_scores(scoring, open_t, recorder):
    sg = scoring.create_sidegame(open_t.id, 1, SUM_MATCH)
    assert recorder.last('team_leaderboard_update')['sidegame_id'] == sg.id
    with pytest.raises(ConflictError):
        scoring.create_sidegame(open_t.id, 1, SUM_MATCH)

    scoring.apply_updates(open_t.id, [
        {'player': 'Alice', 'action': 'birdie', 'hole': 1},
        {'player': 'Carl', 'action': 'par', 'hole': 1},
    ])
    match = recorder.last('team_match_update')
    assert match['sidegame_id'] == sg.id
    assert match['team_match']['team_points'] == {'green': 1, 'red': -1}
    board = recorder.last('team_leaderboard_update')['leaderboard']
    assert [(e['team_id'], e['total_points']) for e in board] == [('green', 1), ('red', -1)]
    assert len(sg.matches) == 1

    # re-scoring replaces the hole's result instead of adding one
    scoring.apply_updates(open_t.id, [{'player': 'Carl', 'action': 'eagle', 'hole': 1}])
    assert len(sg.matches) == 1
    assert sg.matches[0].team_points == {'green': -1, 'red': 1}
    assert [e.total_points for e in scoring.team_leaderboard(sg.id)] == [1, -1]


def test_sidegame_created_mid_round_picks_up_played_holes(scoring, open_t):
    scoring.apply_updates(open_t.id, [
        {'player': 'Alice', 'action': 'par', 'hole': 1},
        {'player': 'Dana', 'action': 'bogey', 'hole': 1},
    ])
    sg = scoring.create_sidegame(open_t.id, 1, SUM_MATCH)
    assert [m.hole for m in sg.matches] == [1]
    assert scoring.sum_match_scorecard(sg.id) == {1: {'green': 0, 'red': 1}}


def test_all_vs_all_sidegame(scoring, open_t):
    with pytest.raises(ValidationError):
        scoring.create_sidegame(open_t.id, 1, 'all-vs-all')
    sg = scoring.create_sidegame(open_t.id, 1, 'all-vs-all', [['Alice', 'Carl'], ['Bob', 'Dana']])
    scoring.apply_updates(open_t.id, [
        {'player': 'Alice', 'action': 'birdie', 'hole': 1},
        {'player': 'Carl', 'action': 'par', 'hole': 1},
        {'player': 'Bob', 'action': 'bogey', 'hole': 1},
        {'player': 'Dana', 'action': 'par', 'hole': 1},
    ])
    assert sg.matches[0].team_points == {'green': 1, 'red': 1}


def test_clear_tournament(scoring, open_t, recorder):
    scoring.create_sidegame(open_t.id, 1, SUM_MATCH)
    scoring.apply_updates(open_t.id, [{'player': 'Alice', 'action': 'par', 'hole': 1}])
    scoring.advance_round(open_t.id)

    assert scoring.clear_tournament(open_t.id) is True
    assert open_t.scores == []
    assert open_t.current_round == 1
    assert scoring.sidegame_for_round(open_t.id, 1) is None
    board = recorder.last('leaderboard_update')
    assert board['tournament_id'] == open_t.id
    assert [e['player_name'] for e in board['leaderboard']] == ['Alice', 'Bob', 'Carl', 'Dana']
    assert all(e['holes_completed'] == 0 for e in board['leaderboard'])
    assert recorder.last('team_leaderboard_update') == {'sidegame_id': None, 'leaderboard': []}


def test_publish_failure_does_not_undo_the_score():
    def explode(event, payload, tournament_id=None):
        raise RuntimeError('socket gone')

    scoring = ScoringEngine(publish=explode)
    t = scoring.create_tournament('Windy', players=['Alice'])
    result = scoring.apply_updates(t.id, [{'player': 'Alice', 'action': 'par', 'hole': 1}])
    assert len(result.entries) == 1
    assert len(t.scores) == 1


@pytest.mark.parametrize('data', [
    {'player': 5, 'action': 'par'},
    {'player': 'Alice', 'action': ['par']},
    {'player': 'Alice', 'action': 'score', 'hole': '3', 'strokes': 4},
    {'player': 'Alice', 'action': 'score', 'hole': 3, 'strokes': True},
    'Alice par',
])
def test_malformed_scoring_update_is_a_validation_error(data):
    with pytest.raises(ValidationError):
        ScoringUpdate.from_dict(data)


def test_malformed_update_in_batch_keeps_the_rest(tmp_path, recorder):
    scoring = ScoringEngine(store=FileSnapshotStore(str(tmp_path)), publish=recorder)
    t = scoring.create_tournament('Mixed Bag', players=['Alice', 'Bob'])
    result = scoring.apply_updates(t.id, [
        {'player': 'Alice', 'action': 'birdie', 'hole': 1},
        {'player': 5, 'action': 'par', 'hole': 2},
        {'player': 'Bob', 'action': 'par', 'hole': 1},
    ])
    assert [(e.hole, e.strokes) for e in result.entries] == [(1, 3), (1, 4)]
    assert result.skipped == [{
        'update': {'player': 5, 'action': 'par', 'hole': 2},
        'error': 'player, action and raw_text must be strings',
    }]
    assert recorder.names().count('scoring_update') == 2
    assert 'leaderboard_update' in recorder.names()

    reloaded = ScoringEngine(store=FileSnapshotStore(str(tmp_path)))
    reloaded.load()
    assert len(reloaded.get_tournament(t.id).scores) == 2


def test_ambiguous_name_is_skipped_not_registered(scoring):
    t = scoring.create_tournament('Namesakes', players=['Erik Qvist', 'Erik Berg'])
    result = scoring.apply_updates(t.id, [
        {'player': 'Erik', 'action': 'par', 'hole': 1},
        {'player': 'Erik', 'action': 'delete'},
        {'player': 'Qvist', 'action': 'bogey', 'hole': 1},
    ])
    assert [p.name for p in t.players] == ['Erik Qvist', 'Erik Berg']
    assert [s['error'] for s in result.skipped] == ['Ambiguous player', 'Ambiguous player']
    assert [(e.player_id, e.strokes) for e in result.entries] == [(t.players[0].id, 5)]


def test_round_change_publishes_that_rounds_sidegame(scoring, open_t, recorder):
    sg = scoring.create_sidegame(open_t.id, 2, SUM_MATCH)
    scoring.create_sidegame(open_t.id, 1, SUM_MATCH)
    recorder.events.clear()

    scoring.advance_round(open_t.id)
    assert recorder.names() == ['leaderboard_update', 'team_leaderboard_update']
    assert recorder.last('team_leaderboard_update')['sidegame_id'] == sg.id
