import os


def _env_bool(name, default='false'):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///gamehub.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Comma separated list of frontend origins allowed for CORS and Socket.IO
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173,http://localhost:4530,http://127.0.0.1:4530',
    ).split(',') if o.strip()]
    # Nim rules
    NIM_PILE_SIZE = int(os.environ.get('NIM_PILE_SIZE', '21'))
    NIM_MAX_TAKE = int(os.environ.get('NIM_MAX_TAKE', '3'))
    # False: whoever takes the last object loses
    NIM_LAST_TAKE_WINS = _env_bool('NIM_LAST_TAKE_WINS')
    # Session cleanup (seconds)
    FINISHED_GAME_TTL_SEC = int(os.environ.get('FINISHED_GAME_TTL_SEC', '30'))
    # Evict any session untouched for this long. 0 disables.
    IDLE_GAME_TTL_SEC = int(os.environ.get('IDLE_GAME_TTL_SEC', '3600'))
    GC_INTERVAL_SEC = int(os.environ.get('GC_INTERVAL_SEC', '10'))
