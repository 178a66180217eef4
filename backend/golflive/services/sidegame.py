"""Team sidegames played on top of the individual scores of one round.

Two rule sets:

* sum-match: each team's strokes-vs-par on a hole are summed; every team
  at the best total gets +1 and every team at the worst total gets -1
  (ties at either extreme are all awarded). A hole where all teams are
  level scores nothing.
* all-vs-all: inside each configured group every pair of players from
  different teams is compared on Stableford points; the better player's
  team gets +1, the other team gets nothing, equal points score nothing.

Hole results are always computed from the ledger, so a re-scored or
deleted score simply changes the next computation.
"""
import json
import logging
from collections.abc import Mapping
from itertools import combinations
from typing import Dict, Iterable, List, Optional

from golflive.errors import ValidationError
from golflive.models import (
    ALL_VS_ALL, GAME_TYPES, SUM_MATCH, Team, TeamLeaderboardEntry, TeamMatch, TeamSidegame,
    Tournament, generate_id, utcnow_iso,
)
from .handicap import STANDARD_STROKE_INDEX, hole_stableford
from .ledger import find_player, scores_for

logger = logging.getLogger(__name__)


def load_teams(source) -> List[Team]:
    """Read the team roster from a mapping or a JSON file path.

    Expected shape: {"teams": {"green": {"name": ..., "color": ...,
    "players": [...], "alternation": {"players": [...]}}}}.
    """
    if source is None:
        return []
    if isinstance(source, Mapping):
        data = source
    else:
        try:
            with open(source, encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.info(f"[teams-missing] path={source}")
            return []
        except (OSError, ValueError):
            logger.exception(f"[teams-unreadable] path={source}")
            return []
    teams_cfg = data.get('teams') or {}
    if isinstance(teams_cfg, Mapping):
        teams = [Team.from_dict(cfg, team_id=tid) for tid, cfg in teams_cfg.items()]
    else:
        teams = [Team.from_dict(cfg) for cfg in teams_cfg]
    logger.info(f"[teams-loaded] count={len(teams)}")
    return teams


class TeamIndex:
    """Team membership of a tournament's players, resolved once per computation."""

    def __init__(self, teams: List[Team], tournament: Tournament):
        self.teams = teams
        self._team_of: Dict[str, Team] = {}
        self._alternates: Dict[str, List[Optional[str]]] = {}
        for team in teams:
            for name in team.players:
                player = find_player(tournament, name)
                if player is None:
                    continue
                if player.id in self._team_of and self._team_of[player.id].id != team.id:
                    logger.warning(
                        f"[team-overlap] player={player.name!r} teams={self._team_of[player.id].id},{team.id}"
                    )
                    continue
                self._team_of[player.id] = team
            if team.alternation:
                resolved = []
                for name in team.alternation.players:
                    player = find_player(tournament, name)
                    resolved.append(player.id if player else None)
                self._alternates[team.id] = resolved

    def team_of(self, player_id: str) -> Optional[Team]:
        return self._team_of.get(player_id)

    def counts(self, team: Team, player_id: str, hole: int) -> bool:
        """Whether this player's score counts for the team on this hole."""
        alternates = self._alternates.get(team.id)
        if not alternates or player_id not in alternates:
            return True
        return alternates[team.alternation.slot_for(hole)] == player_id


def award_sum_match(totals: Dict[str, int]) -> Dict[str, int]:
    """+1 to every team at the lowest total, -1 to every team at the highest."""
    points = {tid: 0 for tid in totals}
    if not totals:
        return points
    best = min(totals.values())
    worst = max(totals.values())
    if best == worst:
        return points
    for tid, total in totals.items():
        if total == best:
            points[tid] = 1
        elif total == worst:
            points[tid] = -1
    return points


def validate_groupings(groupings) -> List[List[str]]:
    if not groupings or not isinstance(groupings, list):
        raise ValidationError('all-vs-all requires groupings')
    cleaned = []
    for group in groupings:
        if not isinstance(group, list):
            raise ValidationError('Each grouping must be a list of player names')
        names = [n.strip() for n in group if isinstance(n, str) and n.strip()]
        if len(names) != len(group):
            raise ValidationError('Grouping entries must be non-empty player names')
        if len(names) < 2:
            raise ValidationError('Each grouping needs at least two players')
        cleaned.append(names)
    return cleaned


def create_sidegame(tournament: Tournament, round: int, game_type: str, teams: List[Team],
                    groupings=None) -> TeamSidegame:
    if game_type not in GAME_TYPES:
        raise ValidationError('Invalid game type')
    if isinstance(round, bool) or not isinstance(round, int) or not 1 <= round <= tournament.total_rounds:
        raise ValidationError(f'Round must be between 1 and {tournament.total_rounds}')
    if not teams:
        raise ValidationError('No teams configured')
    cleaned = validate_groupings(groupings) if game_type == ALL_VS_ALL else None
    if cleaned:
        for name in {n for g in cleaned for n in g}:
            if find_player(tournament, name) is None:
                logger.warning(f"[grouping-unresolved] tournament={tournament.id} name={name!r}")
    sidegame = TeamSidegame(
        id=generate_id(),
        tournament_id=tournament.id,
        round=round,
        game_type=game_type,
        teams=list(teams),
        groupings=cleaned,
    )
    logger.info(
        f"[sidegame-created] tournament={tournament.id} round={round} type={game_type} teams={len(teams)}"
    )
    return sidegame


def _sum_match_totals(sidegame: TeamSidegame, tournament: Tournament, index: TeamIndex, hole: int):
    totals = {t.id: 0 for t in sidegame.teams}
    results: Dict[str, int] = {}
    for s in scores_for(tournament, round=sidegame.round, hole=hole):
        team = index.team_of(s.player_id)
        if team is None or not index.counts(team, s.player_id, hole):
            continue
        totals[team.id] += s.strokes_vs_par
        results[tournament.get_player(s.player_id).name] = s.strokes_vs_par
    return totals, results


def _all_vs_all(sidegame: TeamSidegame, tournament: Tournament, index: TeamIndex, hole: int):
    values: Dict[str, int] = {}
    for s in scores_for(tournament, round=sidegame.round, hole=hole):
        player = tournament.get_player(s.player_id)
        values[player.id] = hole_stableford(s.strokes, s.par, player.received_strokes, hole, STANDARD_STROKE_INDEX)

    points = {t.id: 0 for t in sidegame.teams}
    results: Dict[str, int] = {}
    for group in sidegame.groupings or []:
        members: List[str] = []
        for name in group:
            player = find_player(tournament, name)
            if player is not None and player.id in values and player.id not in members:
                members.append(player.id)
        for pid in members:
            results[tournament.get_player(pid).name] = values[pid]
        for a, b in combinations(members, 2):
            team_a, team_b = index.team_of(a), index.team_of(b)
            if team_a is None or team_b is None or team_a.id == team_b.id:
                continue
            if values[a] > values[b]:
                points[team_a.id] += 1
            elif values[b] > values[a]:
                points[team_b.id] += 1
    return points, results


def score_hole(sidegame: TeamSidegame, tournament: Tournament, hole: int,
               index: TeamIndex = None) -> Optional[TeamMatch]:
    """Compute the team result of one hole from the ledger, or None if nothing to score."""
    if index is None:
        index = TeamIndex(sidegame.teams, tournament)
    if sidegame.game_type == SUM_MATCH:
        totals, results = _sum_match_totals(sidegame, tournament, index, hole)
        if not results:
            return None
        team_points = award_sum_match(totals)
    else:
        team_points, results = _all_vs_all(sidegame, tournament, index, hole)
        if len(results) < 2:
            return None
    return TeamMatch(
        id=generate_id(),
        sidegame_id=sidegame.id,
        hole=hole,
        game_type=sidegame.game_type,
        participants=list(results),
        team_points=team_points,
        hole_results=results,
        timestamp=utcnow_iso(),
    )


def refresh_holes(sidegame: TeamSidegame, tournament: Tournament, holes: Iterable[int]) -> List[TeamMatch]:
    """Recompute the cached TeamMatch of each hole; one record per hole at most."""
    index = TeamIndex(sidegame.teams, tournament)
    updated = []
    for hole in sorted(set(holes)):
        previous = sidegame.match_for(hole)
        match = score_hole(sidegame, tournament, hole, index)
        sidegame.matches = [m for m in sidegame.matches if m.hole != hole]
        if match is None:
            if previous is not None:
                logger.info(f"[team-match-removed] sidegame={sidegame.id} hole={hole}")
            continue
        if previous is not None:
            match.id = previous.id
        sidegame.matches.append(match)
        updated.append(match)
        logger.info(f"[team-match] sidegame={sidegame.id} hole={hole} points={match.team_points}")
    return updated


def _holes_played(sidegame: TeamSidegame, tournament: Tournament) -> List[int]:
    return sorted({s.hole for s in scores_for(tournament, round=sidegame.round)})


def generate_team_leaderboard(sidegame: Optional[TeamSidegame],
                              tournament: Optional[Tournament]) -> List[TeamLeaderboardEntry]:
    if sidegame is None or tournament is None:
        return []
    index = TeamIndex(sidegame.teams, tournament)
    totals = {t.id: 0 for t in sidegame.teams}
    matches_played = 0
    for hole in _holes_played(sidegame, tournament):
        match = score_hole(sidegame, tournament, hole, index)
        if match is None:
            continue
        matches_played += 1
        for tid, pts in match.team_points.items():
            totals[tid] = totals.get(tid, 0) + pts

    leaderboard = [
        TeamLeaderboardEntry(
            team_id=t.id,
            team_name=t.name,
            team_color=t.color,
            total_points=totals.get(t.id, 0),
            matches_played=matches_played,
        )
        for t in sidegame.teams
    ]
    leaderboard.sort(key=lambda e: (-e.total_points, e.team_name))
    for i, entry in enumerate(leaderboard):
        entry.position = i + 1
    return leaderboard


def sum_match_scorecard(sidegame: Optional[TeamSidegame],
                        tournament: Optional[Tournament]) -> Dict[int, Dict[str, int]]:
    """Hole -> team -> strokes vs par, straight from the ledger."""
    if sidegame is None or tournament is None or sidegame.game_type != SUM_MATCH:
        return {}
    index = TeamIndex(sidegame.teams, tournament)
    scorecard = {}
    for hole in _holes_played(sidegame, tournament):
        totals, _ = _sum_match_totals(sidegame, tournament, index, hole)
        scorecard[hole] = totals
    return scorecard
