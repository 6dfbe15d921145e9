import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # The database only holds the pre-built ticket pool; rooms live in memory
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///tambola.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [o for o in os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000',
    ).split(',') if o]
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    # Per-player ticket cap used when the moderator does not set one
    MAX_TICKETS_PER_PLAYER = int(os.environ.get('MAX_TICKETS_PER_PLAYER', '5'))
    # Timed draw intervals (seconds)
    DEFAULT_DRAW_INTERVAL_SEC = float(os.environ.get('DEFAULT_DRAW_INTERVAL_SEC', '5'))
    MIN_DRAW_INTERVAL_SEC = float(os.environ.get('MIN_DRAW_INTERVAL_SEC', '1'))
    # Layout generator retry ceiling
    GENERATOR_MAX_ATTEMPTS = int(os.environ.get('GENERATOR_MAX_ATTEMPTS', '10'))
    # Seed this many grids on startup when the pool table is empty. 0 disables.
    POOL_AUTOSEED = int(os.environ.get('POOL_AUTOSEED', '0'))
    # Keep a disconnected player's tickets so a rejoin by name restores them
    RETAIN_DISCONNECTED_PLAYERS = os.environ.get('RETAIN_DISCONNECTED_PLAYERS', '1').lower() not in ('0', 'false', 'no')
