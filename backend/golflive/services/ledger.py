"""Score ledger: upsert / delete / clear of per-(player, hole, round) strokes.

Every function takes the ``Tournament`` it works on; the ledger is the
tournament's ``scores`` list and is the only source the leaderboards read.
Callers hold the tournament's lock while mutating (see ``ScoringEngine``).
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from golflive.errors import ValidationError
from golflive.models import Player, ScoreEntry, Tournament, generate_id, normalize_name, utcnow_iso
from .handicap import course_handicap

logger = logging.getLogger(__name__)

HOLES = 18


def _require_int(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{label} must be an integer')
    return value


def _parse_ts(ts: str) -> datetime:
    try:
        parsed = datetime.fromisoformat((ts or '').replace('Z', '+00:00'))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _most_recent(entries: List[ScoreEntry]) -> Optional[ScoreEntry]:
    # Ledger position breaks timestamp ties: the later append wins.
    best = None
    best_key = None
    for pos, entry in enumerate(entries):
        key = (_parse_ts(entry.timestamp), pos)
        if best_key is None or key >= best_key:
            best, best_key = entry, key
    return best


def match_players(tournament: Optional[Tournament], name: str) -> List[Player]:
    """Players a spoken/typed name could refer to.

    An exact match on the normalised name wins outright. Otherwise every
    player whose name contains (or is contained in) the query is a candidate.
    """
    if tournament is None:
        return []
    key = normalize_name(name)
    if not key:
        return []
    for p in tournament.players:
        if p.key == key:
            return [p]
    return [p for p in tournament.players if p.key and (key in p.key or p.key in key)]


def find_player(tournament: Optional[Tournament], name: str) -> Optional[Player]:
    """Resolve a name to a single player; an ambiguous fragment resolves nothing."""
    candidates = match_players(tournament, name)
    if len(candidates) == 1:
        return candidates[0]
    if candidates:
        logger.warning(
            f"[player-ambiguous] tournament={tournament.id} query={name!r} candidates={[p.name for p in candidates]}"
        )
    return None


def register_player(tournament: Tournament, name: str, handicap: Optional[float] = None) -> Player:
    name = (name or '').strip()
    if not name:
        raise ValidationError('Player name is required')
    received = 0
    if handicap is not None:
        received = course_handicap(handicap, tournament.slope_rating, tournament.course_rating, tournament.total_par)
    player = Player(id=generate_id(), name=name, handicap=handicap, received_strokes=received)
    tournament.players.append(player)
    logger.info(
        f"[player-registered] tournament={tournament.id} player={player.id} name={name!r} handicap={handicap} received={received}"
    )
    return player


def scores_for(tournament: Optional[Tournament], player_id: str = None, round: int = None,
               hole: int = None) -> List[ScoreEntry]:
    if tournament is None:
        return []
    return [
        s for s in tournament.scores
        if (player_id is None or s.player_id == player_id)
        and (round is None or s.round == round)
        and (hole is None or s.hole == hole)
    ]


def record_score(tournament: Tournament, player_id: str, hole: int, round: int, strokes: int,
                 par: int = None, timestamp: str = None) -> ScoreEntry:
    """Insert or overwrite the score for (player, hole, round)."""
    hole = _require_int(hole, 'Hole')
    strokes = _require_int(strokes, 'Strokes')
    round = _require_int(round, 'Round')
    if not 1 <= hole <= HOLES:
        raise ValidationError(f'Hole must be between 1 and {HOLES}')
    if strokes < 1:
        raise ValidationError('Strokes must be at least 1')
    if not 1 <= round <= tournament.total_rounds:
        raise ValidationError(f'Round must be between 1 and {tournament.total_rounds}')
    if par is None:
        par = tournament.par_for(hole)
    par = _require_int(par, 'Par')
    if not 3 <= par <= 5:
        raise ValidationError('Par must be between 3 and 5')
    player = tournament.get_player(player_id)
    if player is None:
        raise ValidationError('Unknown player')

    entry = ScoreEntry(
        player_id=player.id, hole=hole, round=round, strokes=strokes, par=par,
        timestamp=timestamp or utcnow_iso(),
    )
    for i, existing in enumerate(tournament.scores):
        if existing.player_id == player.id and existing.hole == hole and existing.round == round:
            tournament.scores[i] = entry
            break
    else:
        tournament.scores.append(entry)

    # Only an in-sequence hole moves the pointer; catch-up entries leave it alone.
    if hole == player.current_hole and hole < HOLES:
        player.current_hole = hole + 1

    logger.info(
        f"[score-recorded] tournament={tournament.id} player={player.name!r} hole={hole} round={round} strokes={strokes} par={par}"
    )
    return entry


def delete_score(tournament: Optional[Tournament], player_id: str = None, hole: int = None,
                 round: int = None) -> Optional[ScoreEntry]:
    """Remove one score and return it, or None when nothing resolves.

    Resolution order: player and hole given -> that score; player only ->
    the player's most recent score; neither -> the most recent score of
    anyone ("undo last"). All within ``round`` (default: current round).
    """
    if tournament is None:
        return None
    if round is None:
        round = tournament.current_round

    target = None
    if player_id is not None and hole is not None:
        matches = scores_for(tournament, player_id=player_id, round=round, hole=hole)
        target = matches[0] if matches else None
    elif player_id is not None:
        target = _most_recent(scores_for(tournament, player_id=player_id, round=round))
    elif hole is None:
        target = _most_recent(scores_for(tournament, round=round))

    if target is None:
        logger.info(
            f"[delete-noop] tournament={tournament.id} player={player_id} hole={hole} round={round} nothing to delete"
        )
        return None

    tournament.scores.remove(target)
    logger.info(
        f"[score-deleted] tournament={tournament.id} player={target.player_id} hole={target.hole} round={target.round} strokes={target.strokes}"
    )
    return target


def clear_tournament(tournament: Tournament) -> None:
    """Drop every score and rewind the round and hole pointers; players stay."""
    tournament.scores = []
    tournament.current_round = 1
    for p in tournament.players:
        p.current_hole = 1
    logger.info(f"[tournament-cleared] tournament={tournament.id} name={tournament.name!r}")
