from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def get_engine(flask_app=None):
    """The ScoringEngine owned by the running app."""
    from flask import current_app
    return (flask_app or current_app).extensions['golflive']


def _build_store(flask_app):
    from golflive.services.storage import FileSnapshotStore, SqlSnapshotStore
    backend = flask_app.config.get('SNAPSHOT_BACKEND', 'sql')
    if backend == 'file':
        return FileSnapshotStore(flask_app.config.get('SNAPSHOT_DIR', 'tournament-data'))
    if backend == 'sql':
        return SqlSnapshotStore(db)
    if backend in (None, 'none', 'memory'):
        return None
    raise ValueError(f"Unknown SNAPSHOT_BACKEND {backend!r}")


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from golflive.services.engine import ScoringEngine
    from golflive.services.sidegame import load_teams
    from golflive.socketio_events import broadcast

    teams_source = flask_app.config.get('TEAMS')
    if teams_source is None:
        teams_source = flask_app.config.get('TEAMS_CONFIG_PATH')
    engine = ScoringEngine(
        store=_build_store(flask_app),
        teams=load_teams(teams_source),
        publish=broadcast,
        logger=flask_app.logger,
        auto_register_players=flask_app.config.get('AUTO_REGISTER_PLAYERS', True),
        active_tournament_name=flask_app.config.get('ACTIVE_TOURNAMENT_NAME'),
    )
    flask_app.extensions['golflive'] = engine

    with flask_app.app_context():
        # Ensure the snapshot table exists before the engine reads it
        import golflive.models  # noqa: F401
        db.create_all()
        engine.load()

    from golflive.api.tournaments import tournaments
    flask_app.register_blueprint(tournaments, url_prefix='/api/tournaments')

    from golflive.api.sidegames import sidegames
    flask_app.register_blueprint(sidegames, url_prefix='/api')

    from golflive.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the snapshot table."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Snapshot store has been reset!')

    @click.command('seed-tournament')
    @click.argument('name')
    @click.option('--course', default='', help='Course, optionally with rating and slope: "El Saler 72.7 133"')
    @click.option('--player', 'players', multiple=True, help='Player with optional handicap index: "Erik Qvist 8.7"')
    @click.option('--rounds', 'total_rounds', type=int, default=None, help='Number of rounds')
    def seed_tournament_command(name, course, players, total_rounds):
        """Creates a tournament from the command line."""
        with flask_app.app_context():
            tournament = engine.create_tournament(
                name, course=course, players=list(players),
                total_rounds=total_rounds or flask_app.config.get('DEFAULT_TOTAL_ROUNDS', 1),
            )
            print(f'Created tournament {tournament.name} ({tournament.id}) with {len(tournament.players)} players')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_tournament_command)

    return flask_app
