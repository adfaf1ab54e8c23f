import os
import pathlib

BASE_DIR = pathlib.Path(__file__).parent.resolve()


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Defaults for ``create_app``. Every key can be overridden from the environment."""

    SECRET_KEY = os.environ.get('MEDITRACK_SECRET_KEY', 'dev-secret-key-change-in-production')

    # SQLite file sits alongside app.py, never silently in an instance folder
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'MEDITRACK_DATABASE_URL', f"sqlite:///{BASE_DIR / 'meditrack.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 'sql', 'remote' or 'memory'
    STORE_BACKEND = os.environ.get('MEDITRACK_STORE', 'sql')

    REMOTE_BASE_URL = os.environ.get('MEDITRACK_REMOTE_URL', '')
    REMOTE_PROJECT_ID = os.environ.get('MEDITRACK_REMOTE_PROJECT_ID', '')
    REMOTE_PUBLIC_KEY = os.environ.get('MEDITRACK_REMOTE_PUBLIC_KEY', '')
    REMOTE_TIMEOUT = float(os.environ.get('MEDITRACK_REMOTE_TIMEOUT', '10'))

    FETCH_MAX_WORKERS = int(os.environ.get('MEDITRACK_FETCH_WORKERS', '6'))

    # 'session' or 'static'
    AUTH_BACKEND = os.environ.get('MEDITRACK_AUTH', 'session')
    AUTH_SESSION_KEY = os.environ.get('MEDITRACK_AUTH_SESSION_KEY', 'identity')

    SEED_SAMPLE_DATA = _env_bool('MEDITRACK_SEED', True)
    LOG_LEVEL = os.environ.get('MEDITRACK_LOG_LEVEL', 'INFO')
