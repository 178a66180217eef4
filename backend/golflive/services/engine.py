"""The single mutation path for tournaments and their sidegames.

A score event is applied to the ledger, the individual leaderboard is
rebuilt, and if a sidegame exists for the round the touched holes are
recomputed; all of it under the tournament's lock. Results are handed to a
``publish(event, payload, tournament_id)`` callable (Socket.IO in the app).
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from golflive.errors import ConflictError, ValidationError
from golflive.models import (
    ACTIONS, RELATIVE_OFFSETS, Player, ScoreEntry, ScoringUpdate, TeamSidegame, Tournament,
    generate_id,
)
from . import ledger, leaderboard as boards, sidegame as sidegames
from .handicap import STANDARD_PAR, parse_course_spec, parse_player_spec
from .storage import Repository


@dataclass
class UpdateResult:
    entries: List[ScoreEntry] = field(default_factory=list)
    deleted: List[ScoreEntry] = field(default_factory=list)
    skipped: List[dict] = field(default_factory=list)
    events: List[tuple] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.entries or self.deleted)

    def to_dict(self):
        return {
            'score_entries': [e.to_dict() for e in self.entries],
            'deleted': [e.to_dict() for e in self.deleted],
            'skipped': self.skipped,
        }


def _noop_publish(event, payload, tournament_id=None):
    return None


class ScoringEngine:

    def __init__(self, store=None, teams=None, publish=None, logger=None,
                 auto_register_players=True, active_tournament_name=None):
        self.logger = logger or logging.getLogger(__name__)
        self.tournaments = Repository('tournament', Tournament.from_dict, store, self.logger)
        self.sidegames = Repository('sidegame', TeamSidegame.from_dict, store, self.logger)
        self.teams = list(teams or [])
        self.publish = publish or _noop_publish
        self.auto_register_players = auto_register_players
        self.active_tournament_name = active_tournament_name
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def load(self) -> None:
        self.tournaments.load()
        self.sidegames.load()

    def lock_for(self, tournament_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(tournament_id)
            if lock is None:
                lock = self._locks[tournament_id] = threading.RLock()
            return lock

    # ---- setup --------------------------------------------------------

    def create_tournament(self, name, course='', players=(), total_rounds=1, course_rating=None,
                          slope_rating=None, par=None) -> Tournament:
        """Create a tournament.

        ``course`` may carry rating and slope ("El Saler 72.7 133"); explicit
        ``course_rating`` / ``slope_rating`` win over the parsed values.
        ``players`` holds "Name 4.9" strings or {"name", "handicap"} dicts.
        """
        name = (name or '').strip()
        if not name:
            raise ValidationError('Tournament name is required')
        if isinstance(total_rounds, bool) or not isinstance(total_rounds, int) or total_rounds < 1:
            raise ValidationError('total_rounds must be a positive integer')
        par = list(STANDARD_PAR) if par is None else par
        if not isinstance(par, list) or len(par) != 18 or any(
                isinstance(p, bool) or not isinstance(p, int) or not 3 <= p <= 5 for p in par):
            raise ValidationError('par must list 18 holes, each par 3 to 5')

        course_name, parsed_rating, parsed_slope = parse_course_spec(course)
        rating = float(course_rating) if course_rating is not None else parsed_rating
        slope = float(slope_rating) if slope_rating is not None else parsed_slope
        if slope <= 0:
            raise ValidationError('Slope rating must be positive')

        tournament = Tournament(
            id=generate_id(), name=name, course=course_name, course_rating=rating,
            slope_rating=slope, par=par, total_rounds=total_rounds,
        )
        for spec in players or ():
            self._add_player(tournament, spec)

        self.tournaments.put(tournament)
        self.logger.info(
            f"[tournament-created] tournament={tournament.id} name={name!r} players={len(tournament.players)} rounds={total_rounds}"
        )
        return tournament

    def _add_player(self, tournament: Tournament, spec) -> Player:
        if isinstance(spec, dict):
            player_name = (spec.get('name') or '').strip()
            handicap = spec.get('handicap')
        else:
            player_name, handicap = parse_player_spec(spec)
        if handicap is not None:
            if isinstance(handicap, bool) or not isinstance(handicap, (int, float)):
                raise ValidationError(f'Handicap for {player_name} must be a number')
            handicap = float(handicap)
        return ledger.register_player(tournament, player_name, handicap)

    def get_tournament(self, tournament_id: str) -> Optional[Tournament]:
        return self.tournaments.get(tournament_id)

    def active_tournament(self) -> Optional[Tournament]:
        tournaments = self.tournaments.values()
        if self.active_tournament_name:
            for t in tournaments:
                if t.name == self.active_tournament_name:
                    return t
        if not tournaments:
            return None
        return max(tournaments, key=lambda t: t.created_at)

    def set_current_round(self, tournament_id: str, round_no) -> Optional[Tournament]:
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return None
        with self.lock_for(tournament.id):
            if isinstance(round_no, bool) or not isinstance(round_no, int) or not 1 <= round_no <= tournament.total_rounds:
                raise ValidationError(f'Round must be between 1 and {tournament.total_rounds}')
            if round_no < tournament.current_round:
                raise ValidationError('The current round cannot move backwards')
            tournament.current_round = round_no
            self.tournaments.save(tournament)
        self.logger.info(f"[round-set] tournament={tournament.id} round={round_no}")
        self._publish_leaderboard(tournament)
        sg = self.sidegame_for_round(tournament.id, round_no)
        if sg is not None:
            self._publish_team_leaderboard(sg, tournament)
        return tournament

    def advance_round(self, tournament_id: str) -> Optional[Tournament]:
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return None
        with self.lock_for(tournament.id):
            if tournament.current_round >= tournament.total_rounds:
                raise ValidationError('Already at the final round')
            return self.set_current_round(tournament.id, tournament.current_round + 1)

    # ---- queries ------------------------------------------------------

    def leaderboard(self, tournament_id: str, round_no: int = None, view: str = boards.STROKE_VIEW):
        return boards.generate_leaderboard(self.get_tournament(tournament_id), round_no, view)

    def scorecard(self, tournament_id: str, player_id: str, round_no: int = None):
        return boards.get_player_scorecard(self.get_tournament(tournament_id), player_id, round_no)

    def get_sidegame(self, sidegame_id: str) -> Optional[TeamSidegame]:
        return self.sidegames.get(sidegame_id)

    def sidegame_for_round(self, tournament_id: str, round_no: int) -> Optional[TeamSidegame]:
        for sg in self.sidegames.values():
            if sg.tournament_id == tournament_id and sg.round == round_no:
                return sg
        return None

    def team_leaderboard(self, sidegame_id: str):
        sg = self.get_sidegame(sidegame_id)
        if sg is None:
            return []
        return sidegames.generate_team_leaderboard(sg, self.get_tournament(sg.tournament_id))

    def sum_match_scorecard(self, sidegame_id: str):
        sg = self.get_sidegame(sidegame_id)
        if sg is None:
            return {}
        return sidegames.sum_match_scorecard(sg, self.get_tournament(sg.tournament_id))

    # ---- mutations ----------------------------------------------------

    def apply_updates(self, tournament_id: str, updates: Iterable) -> Optional[UpdateResult]:
        """Apply a batch of parser events in order; invalid ones are skipped and reported."""
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return None
        result = UpdateResult()
        with self.lock_for(tournament.id):
            try:
                for raw in updates:
                    update = None
                    try:
                        update = raw if isinstance(raw, ScoringUpdate) else ScoringUpdate.from_dict(raw)
                        self._apply_one(tournament, update, result)
                    except ValidationError as exc:
                        shown = update.to_dict() if update is not None else raw
                        self.logger.info(f"[update-rejected] tournament={tournament.id} update={shown} error={exc.message}")
                        result.skipped.append({'update': shown, 'error': exc.message})
            finally:
                # Whatever was applied before a failure is still saved and published
                self._commit(tournament, result)
        return result

    def _resolve_player(self, tournament: Tournament, name: str) -> Optional[Player]:
        candidates = ledger.match_players(tournament, name)
        if len(candidates) > 1:
            self.logger.warning(
                f"[player-ambiguous] tournament={tournament.id} query={name!r} candidates={[p.name for p in candidates]}"
            )
            raise ValidationError('Ambiguous player')
        return candidates[0] if candidates else None

    def _apply_one(self, tournament: Tournament, update: ScoringUpdate, result: UpdateResult) -> None:
        if update.action not in ACTIONS:
            raise ValidationError(f"Unknown action '{update.action}'")

        if update.action == 'delete':
            player = None
            if update.player:
                player = self._resolve_player(tournament, update.player)
                if player is None:
                    result.skipped.append({'update': update.to_dict(), 'error': 'Unknown player'})
                    return
            deleted = ledger.delete_score(tournament, player.id if player else None, update.hole)
            if deleted is None:
                result.skipped.append({'update': update.to_dict(), 'error': 'No score to delete'})
                return
            result.deleted.append(deleted)
            result.events.append(('score_deletion', {'score_entry': deleted.to_dict(), 'update': update.to_dict()}))
            return

        if not update.player:
            raise ValidationError('Player is required')
        player = self._resolve_player(tournament, update.player)
        hole = update.hole if update.hole is not None else (player.current_hole if player else 1)
        if isinstance(hole, bool) or not isinstance(hole, int) or not 1 <= hole <= ledger.HOLES:
            raise ValidationError(f'Hole must be between 1 and {ledger.HOLES}')
        par = tournament.par_for(hole)
        strokes = update.strokes
        if strokes is None:
            if update.action == 'score':
                raise ValidationError('Strokes are required for a score')
            strokes = par + RELATIVE_OFFSETS[update.action]
        if isinstance(strokes, bool) or not isinstance(strokes, int) or strokes < 1:
            raise ValidationError('Strokes must be at least 1')

        if player is None:
            if not self.auto_register_players:
                result.skipped.append({'update': update.to_dict(), 'error': 'Unknown player'})
                return
            player = ledger.register_player(tournament, update.player)

        entry = ledger.record_score(tournament, player.id, hole, tournament.current_round, strokes, par)
        result.entries.append(entry)
        result.events.append(('scoring_update', {'score_entry': entry.to_dict(), 'update': update.to_dict()}))

    def manual_score(self, tournament_id: str, player_id: str, hole, strokes) -> Optional[UpdateResult]:
        """Score entry by player id; ``strokes=None`` deletes the hole's score."""
        tournament = self.get_tournament(tournament_id)
        if tournament is None or tournament.get_player(player_id) is None:
            return None
        result = UpdateResult()
        with self.lock_for(tournament.id):
            player = tournament.get_player(player_id)
            update = ScoringUpdate(
                player=player.name, action='delete' if strokes is None else 'score', hole=hole, strokes=strokes,
                raw_text=f"Manual entry: {player.name} hole {hole} {'deleted' if strokes is None else f'{strokes} strokes'}",
            )
            if strokes is None:
                if isinstance(hole, bool) or not isinstance(hole, int):
                    raise ValidationError('Hole must be an integer')
                deleted = ledger.delete_score(tournament, player.id, hole)
                if deleted is not None:
                    result.deleted.append(deleted)
                    result.events.append(('score_deletion', {'score_entry': deleted.to_dict(), 'update': update.to_dict()}))
                else:
                    result.skipped.append({'update': update.to_dict(), 'error': 'No score to delete'})
            else:
                entry = ledger.record_score(tournament, player.id, hole, tournament.current_round, strokes)
                result.entries.append(entry)
                result.events.append(('scoring_update', {'score_entry': entry.to_dict(), 'update': update.to_dict()}))
            self._commit(tournament, result)
        return result

    def _commit(self, tournament: Tournament, result: UpdateResult) -> None:
        """Persist and publish after a mutation batch (caller holds the lock)."""
        if not result.changed:
            return
        self.tournaments.save(tournament)
        for event, payload in result.events:
            self._emit(event, payload, tournament.id)
        self._publish_leaderboard(tournament)

        touched: Dict[int, set] = {}
        for e in result.entries + result.deleted:
            touched.setdefault(e.round, set()).add(e.hole)
        for round_no, holes in sorted(touched.items()):
            sg = self.sidegame_for_round(tournament.id, round_no)
            if sg is None:
                continue
            matches = sidegames.refresh_holes(sg, tournament, holes)
            self.sidegames.save(sg)
            for match in matches:
                self._emit('team_match_update', {'sidegame_id': sg.id, 'team_match': match.to_dict()}, tournament.id)
            self._publish_team_leaderboard(sg, tournament)

    def create_sidegame(self, tournament_id: str, round_no, game_type: str, groupings=None) -> Optional[TeamSidegame]:
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return None
        with self.lock_for(tournament.id):
            if self.sidegame_for_round(tournament.id, round_no) is not None:
                raise ConflictError('A sidegame already exists for this round')
            sg = sidegames.create_sidegame(tournament, round_no, game_type, self.teams, groupings)
            # A sidegame created mid-round picks up the holes already scored.
            played = {s.hole for s in ledger.scores_for(tournament, round=sg.round)}
            sidegames.refresh_holes(sg, tournament, played)
            self.sidegames.put(sg)
            self._publish_team_leaderboard(sg, tournament)
        return sg

    def clear_tournament(self, tournament_id: str) -> bool:
        """Wipe scores, rewind round/hole pointers and drop the tournament's sidegames."""
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return False
        with self.lock_for(tournament.id):
            ledger.clear_tournament(tournament)
            removed = [sg.id for sg in self.sidegames.values() if sg.tournament_id == tournament.id]
            for sg_id in removed:
                self.sidegames.delete(sg_id)
            self.tournaments.save(tournament)
            if removed:
                self.logger.info(f"[sidegames-cleared] tournament={tournament.id} count={len(removed)}")
            self._publish_leaderboard(tournament)
            self._emit('team_leaderboard_update', {'sidegame_id': None, 'leaderboard': []}, tournament.id)
        return True

    # ---- delivery -----------------------------------------------------

    def _emit(self, event: str, payload: dict, tournament_id: str) -> None:
        try:
            self.publish(event, payload, tournament_id)
        except Exception:
            self.logger.exception(f"[publish-failed] event={event} tournament={tournament_id}")

    def _publish_leaderboard(self, tournament: Tournament) -> None:
        board = boards.generate_leaderboard(tournament)
        self._emit('leaderboard_update', {
            'tournament_id': tournament.id,
            'leaderboard': [e.to_dict() for e in board],
        }, tournament.id)

    def _publish_team_leaderboard(self, sg: TeamSidegame, tournament: Tournament) -> None:
        board = sidegames.generate_team_leaderboard(sg, tournament)
        self._emit('team_leaderboard_update', {
            'sidegame_id': sg.id,
            'leaderboard': [e.to_dict() for e in board],
        }, tournament.id)
