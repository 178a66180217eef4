"""Individual stroke-play and Stableford standings.

Entries are rebuilt from the ledger on every call; nothing here keeps state.
"""
from typing import Dict, List, Optional

from golflive.errors import ValidationError
from golflive.models import LeaderboardEntry, Player, RoundBreakdown, ScoreEntry, Tournament
from .handicap import STANDARD_STROKE_INDEX, hole_stableford
from .ledger import HOLES, scores_for

STROKE_VIEW = 'stroke'
STABLEFORD_VIEW = 'stableford'
VIEWS = (STROKE_VIEW, STABLEFORD_VIEW)

# Two Stableford points per hole is net-par golf
EXPECTED_POINTS_PER_HOLE = 2


def _round_breakdown(player: Player, entries: List[ScoreEntry], round_no: int) -> RoundBreakdown:
    hole_scores: List[Optional[int]] = [None] * HOLES
    points: List[Optional[int]] = [None] * HOLES
    breakdown = RoundBreakdown(round=round_no, hole_scores=hole_scores, stableford_points=points)
    for s in entries:
        pts = hole_stableford(s.strokes, s.par, player.received_strokes, s.hole, STANDARD_STROKE_INDEX)
        hole_scores[s.hole - 1] = s.strokes
        points[s.hole - 1] = pts
        breakdown.round_strokes += s.strokes
        breakdown.round_stableford_points += pts
        breakdown.holes_completed += 1
    return breakdown


def _build_entry(tournament: Tournament, player: Player, display_round: int,
                 by_round: Dict[int, List[ScoreEntry]]) -> LeaderboardEntry:
    current = by_round.get(display_round, [])
    shown = _round_breakdown(player, current, display_round)
    par_played = sum(s.par for s in current)
    holes = shown.holes_completed

    entry = LeaderboardEntry(
        player_id=player.id,
        player_name=player.name,
        total_strokes=shown.round_strokes,
        holes_completed=holes,
        current_score=shown.round_strokes - par_played,
        hole_scores=shown.hole_scores,
        hole_pars=list(tournament.par),
        stableford_points=shown.stableford_points,
        total_stableford_points=shown.round_stableford_points,
        average_stableford_points=(shown.round_stableford_points / holes) if holes else 0,
        stableford_vs_par=shown.round_stableford_points - EXPECTED_POINTS_PER_HOLE * holes,
        handicap=player.handicap,
        received_strokes=player.received_strokes,
        total_rounds=tournament.total_rounds,
        display_round=display_round,
    )

    if tournament.total_rounds > 1:
        rounds = [
            _round_breakdown(player, by_round.get(r, []), r)
            for r in range(1, tournament.total_rounds + 1)
        ]
        entry.round_scores = rounds
        entry.tournament_strokes = sum(r.round_strokes for r in rounds)
        entry.tournament_stableford_points = sum(r.round_stableford_points for r in rounds)
    return entry


def rank_entries(entries: List[LeaderboardEntry], view: str = STROKE_VIEW) -> List[LeaderboardEntry]:
    """Order entries for a view and number them 1..n.

    Ties keep their incoming order and still get consecutive positions;
    positions are never shared.
    """
    if view == STROKE_VIEW:
        ordered = sorted(entries, key=lambda e: (e.current_score, -e.holes_completed))
    elif view == STABLEFORD_VIEW:
        ordered = sorted(entries, key=lambda e: (-e.stableford_vs_par, -e.holes_completed))
    else:
        raise ValidationError(f"Unknown leaderboard view '{view}'")
    for i, entry in enumerate(ordered):
        entry.position = i + 1
    return ordered


def generate_leaderboard(tournament: Optional[Tournament], display_round: int = None,
                         view: str = STROKE_VIEW) -> List[LeaderboardEntry]:
    if view not in VIEWS:
        raise ValidationError(f"Unknown leaderboard view '{view}'")
    if tournament is None:
        return []
    if display_round is None:
        display_round = tournament.current_round

    entries = []
    for player in tournament.players:
        by_round: Dict[int, List[ScoreEntry]] = {}
        for s in scores_for(tournament, player_id=player.id):
            by_round.setdefault(s.round, []).append(s)
        entries.append(_build_entry(tournament, player, display_round, by_round))
    return rank_entries(entries, view)


def get_player_scorecard(tournament: Optional[Tournament], player_id: str, round: int = None):
    if tournament is None:
        return None
    player = tournament.get_player(player_id)
    if player is None:
        return None
    target_round = round if round is not None else tournament.current_round
    scores = sorted(scores_for(tournament, player_id=player_id, round=target_round), key=lambda s: s.hole)
    return {
        'player': player.to_dict(),
        'round': target_round,
        'scores': [s.to_dict() for s in scores],
        'par': list(tournament.par),
    }
