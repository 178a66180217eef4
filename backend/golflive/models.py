from golflive import db
from golflive.errors import ValidationError
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional
import unicodedata
import uuid

SUM_MATCH = 'sum-match'
ALL_VS_ALL = 'all-vs-all'
GAME_TYPES = (SUM_MATCH, ALL_VS_ALL)

# Relative scoring terms emitted by the transcription parser, as offsets from par
RELATIVE_OFFSETS = {
    'eagle': -2,
    'birdie': -1,
    'par': 0,
    'bogey': 1,
    'double_bogey': 2,
}
ACTIONS = tuple(RELATIVE_OFFSETS) + ('score', 'delete')


def generate_id() -> str:
    return str(uuid.uuid4())


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='microseconds')


def normalize_name(name: str) -> str:
    """Canonical lookup key for a player name: NFKC, casefolded, single-spaced."""
    return ' '.join(unicodedata.normalize('NFKC', name or '').casefold().split())


class Snapshot(db.Model):
    """Last persisted JSON document for one tournament or sidegame."""
    __tablename__ = 'snapshot'
    kind = db.Column(db.String(32), primary_key=True)
    key = db.Column(db.String(64), primary_key=True)
    payload = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'kind': self.kind,
            'key': self.key,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class Player:
    id: str
    name: str
    handicap: Optional[float] = None
    received_strokes: int = 0
    current_hole: int = 1
    key: str = field(default='', compare=False)

    def __post_init__(self):
        self.key = normalize_name(self.name)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'handicap': self.handicap,
            'received_strokes': self.received_strokes,
            'current_hole': self.current_hole,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            name=data['name'],
            handicap=data.get('handicap'),
            received_strokes=int(data.get('received_strokes') or 0),
            current_hole=int(data.get('current_hole') or 1),
        )


@dataclass
class ScoreEntry:
    player_id: str
    hole: int
    round: int
    strokes: int
    par: int
    timestamp: str = field(default_factory=utcnow_iso)

    @property
    def strokes_vs_par(self) -> int:
        return self.strokes - self.par

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(**{k: data[k] for k in ('player_id', 'hole', 'round', 'strokes', 'par', 'timestamp')})


@dataclass
class Tournament:
    id: str
    name: str
    course: str
    course_rating: float
    slope_rating: float
    par: List[int]
    players: List[Player] = field(default_factory=list)
    scores: List[ScoreEntry] = field(default_factory=list)
    total_rounds: int = 1
    current_round: int = 1
    created_at: str = field(default_factory=utcnow_iso)

    @property
    def total_par(self) -> int:
        return sum(self.par)

    def par_for(self, hole: int) -> int:
        return self.par[hole - 1]

    def get_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def to_dict(self, include_scores=True):
        data = {
            'id': self.id,
            'name': self.name,
            'course': self.course,
            'course_rating': self.course_rating,
            'slope_rating': self.slope_rating,
            'par': list(self.par),
            'players': [p.to_dict() for p in self.players],
            'total_rounds': self.total_rounds,
            'current_round': self.current_round,
            'created_at': self.created_at,
        }
        if include_scores:
            data['scores'] = [s.to_dict() for s in self.scores]
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            name=data['name'],
            course=data.get('course', ''),
            course_rating=float(data['course_rating']),
            slope_rating=float(data['slope_rating']),
            par=[int(p) for p in data['par']],
            players=[Player.from_dict(p) for p in data.get('players', [])],
            scores=[ScoreEntry.from_dict(s) for s in data.get('scores', [])],
            total_rounds=int(data.get('total_rounds', 1)),
            current_round=int(data.get('current_round', 1)),
            created_at=data.get('created_at') or utcnow_iso(),
        )


@dataclass
class AlternationRule:
    """Designated alternates of which only one counts per hole: players[hole % N]."""
    players: List[str]

    def slot_for(self, hole: int) -> int:
        return hole % len(self.players)

    def to_dict(self):
        return {'players': list(self.players)}


@dataclass
class Team:
    id: str
    name: str
    color: str
    players: List[str]
    alternation: Optional[AlternationRule] = None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'players': list(self.players),
            'alternation': self.alternation.to_dict() if self.alternation else None,
        }

    @classmethod
    def from_dict(cls, data, team_id=None):
        alternation = data.get('alternation')
        return cls(
            id=team_id or data['id'],
            name=data['name'],
            color=data.get('color', ''),
            players=list(data.get('players', [])),
            alternation=AlternationRule(list(alternation['players'])) if alternation and alternation.get('players') else None,
        )


@dataclass
class TeamMatch:
    id: str
    sidegame_id: str
    hole: int
    game_type: str
    participants: List[str]
    team_points: Dict[str, int]
    hole_results: Dict[str, int]
    timestamp: str = field(default_factory=utcnow_iso)

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            sidegame_id=data['sidegame_id'],
            hole=int(data['hole']),
            game_type=data['game_type'],
            participants=list(data.get('participants', [])),
            team_points=dict(data.get('team_points', {})),
            hole_results=dict(data.get('hole_results', {})),
            timestamp=data.get('timestamp') or utcnow_iso(),
        )


@dataclass
class TeamSidegame:
    id: str
    tournament_id: str
    round: int
    game_type: str
    teams: List[Team]
    groupings: Optional[List[List[str]]] = None
    matches: List[TeamMatch] = field(default_factory=list)
    created_at: str = field(default_factory=utcnow_iso)

    def match_for(self, hole: int) -> Optional[TeamMatch]:
        for m in self.matches:
            if m.hole == hole:
                return m
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'round': self.round,
            'game_type': self.game_type,
            'teams': [t.to_dict() for t in self.teams],
            'groupings': [list(g) for g in self.groupings] if self.groupings is not None else None,
            'matches': [m.to_dict() for m in sorted(self.matches, key=lambda m: m.hole)],
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data):
        groupings = data.get('groupings')
        return cls(
            id=data['id'],
            tournament_id=data['tournament_id'],
            round=int(data['round']),
            game_type=data['game_type'],
            teams=[Team.from_dict(t) for t in data.get('teams', [])],
            groupings=[list(g) for g in groupings] if groupings is not None else None,
            matches=[TeamMatch.from_dict(m) for m in data.get('matches', [])],
            created_at=data.get('created_at') or utcnow_iso(),
        )


@dataclass
class RoundBreakdown:
    round: int
    hole_scores: List[Optional[int]]
    stableford_points: List[Optional[int]]
    round_strokes: int = 0
    round_stableford_points: int = 0
    holes_completed: int = 0


@dataclass
class LeaderboardEntry:
    player_id: str
    player_name: str
    total_strokes: int
    holes_completed: int
    current_score: int
    hole_scores: List[Optional[int]]
    hole_pars: List[int]
    stableford_points: List[Optional[int]]
    total_stableford_points: int
    average_stableford_points: float
    stableford_vs_par: int
    handicap: Optional[float]
    received_strokes: int
    total_rounds: int
    display_round: int
    position: int = 0
    round_scores: Optional[List[RoundBreakdown]] = None
    tournament_strokes: Optional[int] = None
    tournament_stableford_points: Optional[int] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class TeamLeaderboardEntry:
    team_id: str
    team_name: str
    team_color: str
    total_points: int
    matches_played: int
    position: int = 0

    def to_dict(self):
        return asdict(self)


@dataclass
class ScoringUpdate:
    """A structured score event as produced by the transcription parser."""
    player: str
    action: str
    hole: Optional[int] = None
    strokes: Optional[int] = None
    raw_text: str = ''

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ValidationError('A scoring update must be an object')
        player = data.get('player') or ''
        action = data.get('action') or ''
        raw_text = data.get('raw_text') or data.get('rawTranscription') or ''
        if not isinstance(player, str) or not isinstance(action, str) or not isinstance(raw_text, str):
            raise ValidationError('player, action and raw_text must be strings')
        for label in ('hole', 'strokes'):
            value = data.get(label)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ValidationError(f'{label} must be an integer')
        return cls(
            player=player.strip(),
            action=action,
            hole=data.get('hole'),
            strokes=data.get('strokes'),
            raw_text=raw_text,
        )
