import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///golflive.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Snapshot persistence: 'sql' (snapshot table) or 'file' (JSON files under SNAPSHOT_DIR)
    SNAPSHOT_BACKEND = os.environ.get('SNAPSHOT_BACKEND', 'sql')
    SNAPSHOT_DIR = os.environ.get('SNAPSHOT_DIR', 'tournament-data')
    # Team roster for sidegames (JSON file). Tests may set TEAMS to an in-line mapping instead.
    TEAMS_CONFIG_PATH = os.environ.get('TEAMS_CONFIG_PATH', 'teams-config.json')
    TEAMS = None
    # Tournament returned by /api/tournaments/active; newest tournament when unset
    ACTIVE_TOURNAMENT_NAME = os.environ.get('ACTIVE_TOURNAMENT_NAME') or None
    # Parser events naming an unknown player register that player on the fly
    AUTO_REGISTER_PLAYERS = os.environ.get('AUTO_REGISTER_PLAYERS', '1') not in ('0', 'false', 'False')
    DEFAULT_TOTAL_ROUNDS = int(os.environ.get('DEFAULT_TOTAL_ROUNDS', '1'))
